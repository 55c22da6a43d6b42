"""Turn raw feature-file text into a normalised ``SpecDocument``.

The Gherkin grammar itself is handled by the ``gherkin-official`` parser;
this module walks the resulting AST, normalises steps, and derives the
scenario and feature hashes.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from typing import Any

from gherkin.errors import ParserError
from gherkin.parser import Parser
from gherkin.token_scanner import TokenScanner

from ..errors import ParseError
from .hashing import feature_hash, scenario_hash
from .models import ScenarioRecord, SpecDocument, Step

logger = logging.getLogger(__name__)

FEATURE_PREFIX = "Feature:"
# Lines that end the free-text feature description.
BLOCK_PREFIXES = (
    "Background:",
    "Scenario:",
    "Scenario Outline:",
    "Scenario Template:",
    "Example:",
    "Rule:",
)


def extract_description(content: str) -> str:
    """Return the free text between the ``Feature:`` line and the first block.

    Comment lines (leading ``#``) and blank lines are skipped; the
    remaining lines are stripped and joined with newlines.
    """
    collected: list[str] = []
    in_description = False

    for raw in content.splitlines():
        line = raw.strip()
        if not in_description:
            in_description = line.startswith(FEATURE_PREFIX)
            continue
        if line.startswith(BLOCK_PREFIXES):
            break
        if line and not line.startswith("#"):
            collected.append(line)

    return "\n".join(collected).strip()


def _to_step(node: dict[str, Any]) -> Step:
    raw = node["keyword"]
    keyword = raw.rstrip()
    return Step(keyword=keyword, separator=raw[len(keyword):], text=node["text"])


def _to_steps(node: dict[str, Any]) -> list[Step]:
    return [_to_step(step) for step in node.get("steps", [])]


def _iter_children(feature: dict[str, Any]) -> Iterator[dict[str, Any]]:
    """Yield feature-level children, flattening scenarios nested in rules.

    Rule-level backgrounds are not yielded; only the feature background
    contributes to the document.
    """
    for child in feature.get("children", []):
        if "rule" in child:
            for rule_child in child["rule"].get("children", []):
                if "scenario" in rule_child:
                    yield rule_child
        else:
            yield child


def extract(content: str, path: str) -> SpecDocument | None:
    """Parse *content* (read from *path*) into a ``SpecDocument``.

    Args:
        content: Raw feature-file text.
        path: Repository path of the file; part of every hash.

    Returns:
        The document, or ``None`` when the content has no Feature heading.

    Raises:
        ParseError: If the Gherkin parser rejects the content.
    """
    try:
        gherkin_document = Parser().parse(TokenScanner(content))
    except ParserError as exc:
        raise ParseError(
            f"Failed to parse Gherkin file: {exc}", path=path
        ) from exc

    feature = gherkin_document.get("feature")
    if not feature:
        return None

    background: list[Step] | None = None
    scenarios: list[ScenarioRecord] = []

    for child in _iter_children(feature):
        if "background" in child:
            if background is not None:
                logger.warning(
                    "%s: ignoring additional Background block", path
                )
                continue
            background = _to_steps(child["background"])
        elif "scenario" in child:
            node = child["scenario"]
            steps = _to_steps(node)
            scenarios.append(
                ScenarioRecord(
                    title=node.get("name", ""),
                    steps=steps,
                    hash=scenario_hash(steps, path),
                )
            )

    description = extract_description(content)

    return SpecDocument(
        path=path,
        title=feature.get("name", ""),
        description=description,
        background=background,
        scenarios=scenarios,
        feature_hash=feature_hash(description, background, scenarios, path),
    )
