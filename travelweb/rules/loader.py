"""
Engagement rules loading.

rules.yaml is either plain YAML or a markdown document carrying the rules in
a ```yaml fenced block. Sections the service does not know are logged and
dropped; everything else is validated by the Rules model.
"""

import logging
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from travelweb.rules.models import Rules

logger = logging.getLogger(__name__)

_FENCED_YAML = re.compile(r"^\s*```ya?ml\s*$(.*?)^\s*```", re.MULTILINE | re.DOTALL)


def extract_yaml(content: str) -> str:
    """The first fenced yaml block of a markdown document, or the whole text."""
    match = _FENCED_YAML.search(content)
    return match.group(1) if match else content


def _known_sections(data: dict[str, Any], path: Path) -> dict[str, Any]:
    known = {name: value for name, value in data.items() if name in Rules.model_fields}
    for name in sorted(set(data) - set(known)):
        logger.warning("Ignoring unknown rules section %r in %s", name, path)
    return known


def load_rules(path: Path) -> Rules:
    """
    Load and validate the engagement rules file.

    An empty file means all defaults.

    Raises:
        FileNotFoundError: the file is missing
        ValueError: the YAML is malformed, is not a mapping, or fails validation
    """
    if not path.exists():
        raise FileNotFoundError(f"Rules file not found at: {path}")

    content = path.read_text(encoding="utf-8")
    try:
        data = yaml.safe_load(extract_yaml(content))
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML syntax in rules file: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValueError(f"Rules file {path} must hold a mapping of sections")

    try:
        rules = Rules.model_validate(_known_sections(data, path))
    except ValidationError as e:
        raise ValueError(f"Rules validation failed:\n{e}") from e

    logger.info(
        "Loaded rules from %s (storage=%s, default range=%s)",
        path,
        rules.storage.backend,
        rules.aggregation.default_range,
    )
    return rules
