"""Split and render YAML frontmatter in markdown documents.

A document with frontmatter looks like::

    ---
    title: Hello
    ---
    Body text.
"""

from typing import Any, Dict, Tuple

import yaml

from mdstore.documents import dump_yaml

DELIMITER = "---"


def _is_delimiter(line: str) -> bool:
    if line.endswith("\r"):
        line = line[:-1]
    return line == DELIMITER


def split_frontmatter(content: str) -> Tuple[str, str]:
    """
    Split a markdown document into raw frontmatter and body.

    The first non-blank line must be ``---``; the frontmatter ends at the
    next line that is exactly ``---``. The line break closing that line
    (``\\n`` or ``\\r\\n``) is not part of the body. Without an opening or a
    closing delimiter the whole document is the body. Never raises.

    Returns:
        Tuple of (frontmatter text, body)
    """
    lines = content.lstrip().split("\n")

    if len(lines) < 2 or not _is_delimiter(lines[0]):
        return "", content

    for index in range(1, len(lines)):
        if _is_delimiter(lines[index]):
            frontmatter = "\n".join(lines[1:index])
            if frontmatter.endswith("\r"):
                frontmatter = frontmatter[:-1]
            body = "\n".join(lines[index + 1:])
            return frontmatter, body

    return "", content


def parse_frontmatter(content: str) -> Tuple[Dict[str, Any], str]:
    """
    Split a document and parse its frontmatter as YAML.

    Returns:
        Tuple of (metadata dict, body); metadata is empty without frontmatter

    Raises:
        yaml.YAMLError: If the frontmatter is not valid YAML
        ValueError: If the frontmatter is valid YAML but not a mapping
    """
    frontmatter, body = split_frontmatter(content)
    metadata = yaml.safe_load(frontmatter) if frontmatter.strip() else None

    if metadata is None:
        return {}, body
    if not isinstance(metadata, dict):
        raise ValueError(f"Frontmatter must be a mapping, got {type(metadata).__name__}")
    return metadata, body


def render_frontmatter(metadata: Any, body: str = "") -> str:
    """Render metadata between ``---`` lines, followed by the body."""
    parts = [DELIMITER, "\n", dump_yaml(metadata), DELIMITER, "\n"]
    if body:
        parts.append(body)
    return "".join(parts)
