"""Runtime configuration for a sync run.

Reads service settings from CLI args, environment variables, .env files,
and YAML config file fallbacks.

Precedence (highest to lowest):
    CLI args > Environment variables > .env file > YAML config > Built-in defaults

Environment variables:
    TESTCOLLAB_TOKEN: API token for the remote service (required)
    TESTCOLLAB_API_URL: API base URL (optional, default: https://api.testcollab.io)
    TESTCOLLAB_PROJECT_ID: Remote project id (optional if passed on the CLI)
    GHERKIN_SYNC_DEBUG: Enable debug output (optional, default: false)
    GHERKIN_SYNC_TIMEOUT: HTTP read timeout in seconds (optional, default: 60)
"""

import logging
import os
from dataclasses import dataclass
from urllib.parse import urlparse

from .config_schema import DEFAULT_API_URL, DEFAULT_FEATURE_EXTENSION
from .errors import ConfigurationError

logger = logging.getLogger(__name__)


@dataclass
class Config:
    api_url: str
    token: str
    project_id: int
    debug: bool = False
    request_timeout: float = 60.0
    feature_extension: str = DEFAULT_FEATURE_EXTENSION
    warn_uncommitted: bool = True


def validate_config(config: Config) -> None:
    """Validate configuration values and raise ConfigurationError if invalid.

    Args:
        config: Config instance to validate.

    Raises:
        ConfigurationError: If the URL format is invalid, the token is
            empty, or the timeout is out of range.
    """
    # Normalize URL: strip whitespace
    config.api_url = config.api_url.strip()

    if not config.api_url.startswith(("http://", "https://")):
        raise ConfigurationError(
            f"Invalid API URL '{config.api_url}': must start with http:// or https://"
        )

    parsed = urlparse(config.api_url)
    if not parsed.hostname:
        raise ConfigurationError(
            f"Invalid API URL '{config.api_url}': URL must include a hostname"
        )

    config.api_url = config.api_url.removesuffix("/")

    if not config.token.strip():
        raise ConfigurationError(
            "API token cannot be empty. Set TESTCOLLAB_TOKEN environment variable."
        )

    if not (0 < config.request_timeout <= 600):
        raise ConfigurationError(
            f"Invalid request timeout {config.request_timeout}: "
            "must be greater than 0 and at most 600 seconds"
        )

    if not config.feature_extension.startswith("."):
        config.feature_extension = f".{config.feature_extension}"


def _coerce_project_id(raw: object) -> int:
    try:
        return int(str(raw).strip())
    except ValueError:
        raise ConfigurationError(
            f"Invalid project id '{raw}': must be an integer"
        ) from None


def load_config(
    project_id: str | int | None = None,
    api_url: str | None = None,
    token: str | None = None,
    debug: bool = False,
    yaml_fallbacks: dict | None = None,
) -> Config:
    """Load configuration with unified precedence.

    Resolution order for each field (highest to lowest):
        CLI arg > env var / .env > yaml_fallbacks > built-in default

    The caller is responsible for calling ``load_dotenv()`` before this
    function so that .env values are available via ``os.getenv()``.

    Args:
        project_id: Remote project id from the CLI.
        api_url: Override API base URL.
        token: Override API token (tests only; the CLI never takes it).
        debug: Enable debug output (CLI flag).
        yaml_fallbacks: Flat dict from ``to_fallbacks()``.  Used as
            fallback when CLI arg and env var are both unset.

    Returns:
        Validated Config instance.

    Raises:
        ConfigurationError: If the token or project id is missing after
            checking all sources, or any value is invalid.
    """
    fb = yaml_fallbacks or {}

    # --- Required fields: CLI > env > YAML > error ---

    final_token = token or os.getenv("TESTCOLLAB_TOKEN") or fb.get("token")
    if not final_token:
        raise ConfigurationError(
            "TESTCOLLAB_TOKEN environment variable is not set. "
            "Export your API token, e.g. export TESTCOLLAB_TOKEN=your_api_token_here"
        )

    raw_project = project_id
    if raw_project is None or raw_project == "":
        raw_project = os.getenv("TESTCOLLAB_PROJECT_ID") or fb.get("project_id")
    if raw_project is None or raw_project == "":
        raise ConfigurationError(
            "Project id not found. Pass --project, set TESTCOLLAB_PROJECT_ID, "
            "or add 'project_id' to the service section of config.yml."
        )
    final_project = _coerce_project_id(raw_project)

    final_url = (
        api_url
        or os.getenv("TESTCOLLAB_API_URL")
        or fb.get("api_url")
        or DEFAULT_API_URL
    )

    # --- Boolean fields: CLI > env > YAML > default ---

    def get_bool_env(key: str) -> bool | None:
        """Return True/False from env var, or None if unset."""
        val = os.getenv(key)
        if val is None:
            return None
        return val.lower() in ("true", "1", "yes", "on")

    if debug:
        final_debug = True
    else:
        env_debug = get_bool_env("GHERKIN_SYNC_DEBUG")
        if env_debug is not None:
            final_debug = env_debug
        else:
            final_debug = bool(fb.get("debug", False))

    # --- Numeric fields: env > YAML > default ---

    timeout_raw = os.getenv("GHERKIN_SYNC_TIMEOUT")
    if timeout_raw is not None:
        try:
            final_timeout = float(timeout_raw)
        except ValueError:
            raise ConfigurationError(
                f"Invalid GHERKIN_SYNC_TIMEOUT '{timeout_raw}': must be a number of seconds"
            ) from None
    else:
        final_timeout = float(fb.get("request_timeout", 60.0))

    config = Config(
        api_url=final_url,
        token=final_token.strip(),
        project_id=final_project,
        debug=final_debug,
        request_timeout=final_timeout,
        feature_extension=fb.get("feature_extension", DEFAULT_FEATURE_EXTENSION),
        warn_uncommitted=bool(fb.get("warn_uncommitted", True)),
    )

    validate_config(config)

    return config
