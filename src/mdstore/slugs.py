"""Filename-safe slugs."""

import re
from typing import Callable

_NON_ALPHANUMERIC = re.compile(r"[^a-z0-9]+")


def slugify(text: str) -> str:
    """
    Convert text to a lowercase, hyphen-separated slug.

    Every run of characters outside ``a-z0-9`` (after lowercasing) becomes a
    single hyphen. Returns "untitled" when nothing is left.

    Example:
        >>> slugify("Hello, World!")
        'hello-world'
    """
    slug = _NON_ALPHANUMERIC.sub("-", text.lower()).strip("-")
    return slug or "untitled"


def unique_slug(text: str, exists: Callable[[str], bool]) -> str:
    """
    Slugify text, adding ``-2``, ``-3``, ... until ``exists`` returns False.

    Args:
        text: Text to slugify
        exists: Collision check, e.g. ``lambda s: (notes_dir / f"{s}.md").exists()``
    """
    base = slugify(text)
    if not exists(base):
        return base

    n = 2
    while exists(f"{base}-{n}"):
        n += 1
    return f"{base}-{n}"
