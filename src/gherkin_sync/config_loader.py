"""
YAML config files for gherkin-sync.

Config files are looked up in a few well-known places, loaded with
``!include`` support, merged (project files win over the global one) and
finally passed through ``${VAR}`` / ``${VAR:-default}`` substitution.

Usage:
    from gherkin_sync.config_loader import load_hierarchical_config

    raw = load_hierarchical_config()
"""

import logging
import os
import re
from collections.abc import Iterator
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "GHERKIN_SYNC_CONFIG"
PROJECT_CONFIG_DIR = ".gherkin_sync"
PROJECT_CONFIG_NAMES = ("config.yml", "config.yaml")
GLOBAL_CONFIG_PATH = Path(".config") / "gherkin_sync" / "config.yml"

# ---------------------------------------------------------------------------
# Substitution
# ---------------------------------------------------------------------------

# ${NAME} or ${NAME:-fallback}
_PLACEHOLDER = re.compile(r"\$\{(?P<name>[^}:]+?)(?::-(?P<fallback>.*?))?\}")


def interpolate_env_vars(value: str) -> str:
    """Substitute ``${NAME}`` / ``${NAME:-fallback}`` placeholders in *value*.

    Empty and unset variables both fall back (to ``""`` without a
    fallback).  An unterminated ``${`` is kept literally.
    """
    return _PLACEHOLDER.sub(
        lambda m: os.environ.get(m.group("name")) or m.group("fallback") or "",
        value,
    )


def _interpolate_tree(node: Any) -> Any:
    if isinstance(node, dict):
        return {key: _interpolate_tree(item) for key, item in node.items()}
    if isinstance(node, list):
        return [_interpolate_tree(item) for item in node]
    if isinstance(node, str):
        return interpolate_env_vars(node)
    return node


# ---------------------------------------------------------------------------
# Loading with !include
# ---------------------------------------------------------------------------


class IncludeLoader(yaml.SafeLoader):
    """Safe loader with an ``!include <path>`` tag.

    Relative include paths resolve against the including file.  The tag is
    registered on this subclass only; ``yaml.safe_load`` is unaffected.
    """

    include_chain: tuple[Path, ...] = ()


def _construct_include(loader: IncludeLoader, node: yaml.ScalarNode) -> Any:
    including_file = Path(loader.name).resolve()
    target = Path(loader.construct_scalar(node))
    if not target.is_absolute():
        target = including_file.parent / target
    target = target.resolve()

    if target in loader.include_chain:
        cycle = " -> ".join(str(p) for p in (*loader.include_chain, target))
        raise ValueError(f"Circular include detected: {cycle}")
    if not target.is_file():
        raise FileNotFoundError(
            f"Include file not found: {target} (referenced from {including_file})"
        )
    return load_yaml_file(target, loader.include_chain)


IncludeLoader.add_constructor("!include", _construct_include)


def load_yaml_file(path: Path, include_chain: tuple[Path, ...] = ()) -> Any:
    """Parse one YAML file, following ``!include`` tags.

    Raises:
        ValueError: On an include cycle.
        FileNotFoundError: When an included file is missing.
        yaml.YAMLError: On malformed YAML.
    """
    path = path.resolve()
    with path.open(encoding="utf-8") as stream:
        loader = IncludeLoader(stream)
        loader.include_chain = (*include_chain, path)
        try:
            return loader.get_single_data()
        finally:
            loader.dispose()


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------


def _candidate_paths() -> Iterator[Path]:
    explicit = os.environ.get(CONFIG_ENV_VAR)
    if explicit:
        yield Path(explicit).expanduser().resolve()
    project_dir = Path.cwd() / PROJECT_CONFIG_DIR
    for name in PROJECT_CONFIG_NAMES:
        yield project_dir / name
    yield Path.home() / GLOBAL_CONFIG_PATH


def discover_config_files() -> list[Path]:
    """Existing config files, highest precedence first.

    1. The file named by ``GHERKIN_SYNC_CONFIG``.
    2. ``./.gherkin_sync/config.yml``, then ``./.gherkin_sync/config.yaml``.
    3. ``~/.config/gherkin_sync/config.yml``.
    """
    return [path for path in _candidate_paths() if path.is_file()]


def load_hierarchical_config() -> dict[str, Any]:
    """Merge every discovered config file into one dict.

    Top-level keys from a higher-precedence file replace the whole value
    from a lower one (no deep merge).  Placeholders are substituted after
    merging.  A file whose root is not a mapping is skipped with a warning.
    """
    merged: dict[str, Any] = {}
    for path in reversed(discover_config_files()):
        logger.debug("Reading config file %s", path)
        data = load_yaml_file(path)
        if data is None:
            continue
        if not isinstance(data, dict):
            logger.warning(
                "Ignoring %s: top level is a %s, not a mapping",
                path,
                type(data).__name__,
            )
            continue
        merged.update(data)

    if not merged:
        logger.debug("No config file values, using defaults")
    return _interpolate_tree(merged)
