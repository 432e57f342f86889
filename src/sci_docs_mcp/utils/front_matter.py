"""YAML front matter utilities for markdown documentation sources.

A front matter block is YAML fenced by ``---`` lines at the very start of a
document (or of a section):

    ---
    kind: function
    signature: numpy.zeros(shape, dtype=float)
    tags: [array, creation]
    ---
    Return a new array of given shape and type, filled with zeros.
"""

import re
from typing import Any

import yaml


DELIMITER = "---"

_PATTERN = re.compile(
    rf"\A\s*{re.escape(DELIMITER)}[ \t]*\n(?:(.*?)\n)?{re.escape(DELIMITER)}[ \t]*(?:\n|\Z)",
    re.DOTALL,
)


class FrontMatterError(ValueError):
    """Raised when a front matter block exists but is not a YAML mapping."""


def has_front_matter(content: str) -> bool:
    return _PATTERN.match(content) is not None


def parse_front_matter(content: str) -> tuple[dict[str, Any], str]:
    """Parse YAML front matter from markdown content.

    Returns:
        Tuple of (front_matter_dict, remaining_markdown). When no block is
        present, returns (empty dict, original content).

    Raises:
        FrontMatterError: the block is present but is invalid YAML or not a mapping.

    Example:
        >>> metadata, markdown = parse_front_matter("---\\nkind: class\\n---\\nBody")
        >>> metadata["kind"]
        'class'
        >>> markdown
        'Body'
    """
    match = _PATTERN.match(content)
    if not match:
        return {}, content

    yaml_text = match.group(1) or ""
    markdown_content = content[match.end() :]

    try:
        metadata = yaml.safe_load(yaml_text) if yaml_text.strip() else {}
    except yaml.YAMLError as exc:
        raise FrontMatterError(f"invalid YAML front matter: {exc}") from exc

    if metadata is None:
        metadata = {}
    if not isinstance(metadata, dict):
        raise FrontMatterError(f"front matter must be a mapping, got {type(metadata).__name__}")

    return metadata, markdown_content
