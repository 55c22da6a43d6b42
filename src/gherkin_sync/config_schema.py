"""Unified configuration schema for gherkin_sync.

Defines Pydantic models for the YAML config structure with dedicated
sections for the remote service, sync behaviour and logging.  Includes
an adapter that turns the file-level config into the fallback dict
consumed by ``load_config()``.

Usage:
    from gherkin_sync.config_schema import build_config, to_fallbacks

    raw = load_hierarchical_config()
    unified = build_config(raw)
    config = load_config(project_id="42", yaml_fallbacks=to_fallbacks(unified))
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.testcollab.io"
DEFAULT_FEATURE_EXTENSION = ".feature"


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class ServiceConfig(BaseModel):
    """Where and how to reach the test-management service.

    Every field may be left out of the file; the token and project id
    usually come from the environment or the command line.
    """

    api_url: str | None = Field(
        default=None, description="Service API base URL"
    )
    project_id: int | None = Field(
        default=None, description="Remote project identifier"
    )
    token: str | None = Field(
        default=None,
        description="API token (prefer the TESTCOLLAB_TOKEN env var)",
    )
    request_timeout: float = Field(
        default=60.0,
        gt=0,
        le=600,
        description="Read timeout in seconds for each HTTP request",
    )

    model_config = {"frozen": True}


class SyncSettings(BaseModel):
    """Behaviour of the reconciliation run.

    Attributes:
        feature_extension: Suffix identifying spec files in the repository.
        warn_uncommitted: Warn about uncommitted spec files before syncing.
    """

    feature_extension: str = Field(
        default=DEFAULT_FEATURE_EXTENSION,
        min_length=1,
        description="Spec file suffix",
    )
    warn_uncommitted: bool = Field(
        default=True,
        description="Warn about uncommitted spec files before syncing",
    )

    model_config = {"frozen": True}


class LoggingConfig(BaseModel):
    """Log output settings.

    Attributes:
        level: Level name used when LOG_LEVEL is not set.
        file: Also append records to this file.
    """

    level: str = Field(default="WARNING", description="Log level")
    file: str | None = Field(default=None, description="Log file path")

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Whole file
# ---------------------------------------------------------------------------


class UnifiedConfig(BaseModel):
    """Parsed contents of the merged config files.

    Sections default independently, so an empty file (or no file at all)
    yields a valid instance.
    """

    service: ServiceConfig = Field(default_factory=ServiceConfig)
    sync: SyncSettings = Field(default_factory=SyncSettings)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------


def build_config(raw_data: dict) -> UnifiedConfig:
    """Validate the output of ``load_hierarchical_config()``.

    Raises:
        pydantic.ValidationError: If a section has unknown types or
            out-of-range values.
    """
    return UnifiedConfig.model_validate(raw_data or {})


# ---------------------------------------------------------------------------
# Adapter: UnifiedConfig -> load_config() fallbacks
# ---------------------------------------------------------------------------


def to_fallbacks(unified: UnifiedConfig) -> dict[str, Any]:
    """Flatten a ``UnifiedConfig`` into the fallback dict for ``load_config()``.

    ``None`` values are dropped so that they never shadow built-in
    defaults.

    Args:
        unified: The unified config produced by ``build_config()``.

    Returns:
        Dict keyed by ``Config`` field names.
    """
    flat: dict[str, Any] = {
        **unified.service.model_dump(),
        **unified.sync.model_dump(),
    }
    return {k: v for k, v in flat.items() if v is not None}
