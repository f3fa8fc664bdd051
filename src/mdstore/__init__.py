"""Storage primitives for YAML records and markdown documents.

Atomic file replacement, cross-process directory locks, YAML document
helpers and frontmatter handling, safe to use from several processes at once.
"""

from .config import StoreConfig
from .documents import append_yaml, read_records, read_yaml, write_yaml
from .frontmatter import parse_frontmatter, render_frontmatter, split_frontmatter
from .locking import (
    DirectoryLock,
    KernelLock,
    LockTimeout,
    RetryLock,
    directory_lock,
    with_lock,
)
from .persistence import atomic_write, ensure_dir
from .slugs import slugify, unique_slug
from .timefmt import format_time, parse_time

__version__ = "0.1.0"

__all__ = [
    "StoreConfig",
    "atomic_write",
    "ensure_dir",
    "DirectoryLock",
    "KernelLock",
    "RetryLock",
    "LockTimeout",
    "directory_lock",
    "with_lock",
    "read_yaml",
    "read_records",
    "write_yaml",
    "append_yaml",
    "split_frontmatter",
    "parse_frontmatter",
    "render_frontmatter",
    "slugify",
    "unique_slug",
    "format_time",
    "parse_time",
]
