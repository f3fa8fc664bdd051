"""YAML document helpers: read, write and append.

Writes go through ``atomic_write`` so readers never see a partial document,
and reads never lock. ``append_yaml`` is a read-modify-write sequence and
takes the directory lock of the document's parent directory.
"""

import dataclasses
from pathlib import Path
from typing import Any, List, Optional, Type, TypeVar, Union

import yaml

from mdstore.config import StoreConfig
from mdstore.locking import with_lock
from mdstore.persistence import atomic_write

R = TypeVar("R")


def to_plain(value: Any) -> Any:
    """Convert dataclass instances (also nested in lists and dicts) to dicts."""
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    if isinstance(value, dict):
        return {k: to_plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_plain(v) for v in value]
    return value


def dump_yaml(value: Any) -> str:
    """Serialize ``value`` as block-style YAML, keeping key order."""
    return yaml.safe_dump(
        to_plain(value),
        default_flow_style=False,
        sort_keys=False,
        allow_unicode=True,
    )


def read_yaml(path: Union[str, Path], default: Any = None) -> Any:
    """
    Read and parse a YAML document.

    A missing file is not an error: ``default`` is returned, so callers can
    write ``read_yaml(path, {})`` instead of checking for existence first.
    An empty document also yields ``default``.

    Args:
        path: Document path
        default: Value returned when the file is absent or empty

    Returns:
        The parsed document

    Raises:
        yaml.YAMLError: If the document is malformed
        OSError: For I/O failures other than a missing file
    """
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except FileNotFoundError:
        return default

    return default if data is None else data


def read_records(path: Union[str, Path], record_type: Optional[Type[R]] = None) -> List[Any]:
    """
    Read a sequence document.

    Args:
        path: Document path
        record_type: Optional dataclass; each mapping becomes ``record_type(**mapping)``

    Returns:
        List of records, empty if the file is absent

    Raises:
        TypeError: If the document is not a sequence
        yaml.YAMLError: If the document is malformed
    """
    records = read_yaml(path, [])
    if not isinstance(records, list):
        raise TypeError(
            f"{path} holds a {type(records).__name__}, expected a list of records"
        )

    if record_type is None:
        return records
    return [record_type(**record) for record in records]


def write_yaml(path: Union[str, Path], value: Any) -> None:
    """
    Serialize ``value`` to YAML and replace the document atomically.

    Raises:
        yaml.YAMLError: If the value cannot be represented; the file is untouched
        OSError: If the write fails
    """
    atomic_write(path, dump_yaml(value))


def append_yaml(
    path: Union[str, Path],
    item: Any,
    *,
    lock: bool = True,
    config: Optional[StoreConfig] = None,
) -> None:
    """
    Append one record to a sequence document.

    Reads the existing list (empty if the file is missing), appends ``item``
    and writes the list back. The whole sequence runs under the exclusive
    lock of the document's directory, so concurrent appends from other
    processes are never lost.

    Args:
        path: Document path
        item: Record to append (mapping, scalar or dataclass instance)
        lock: Set to False when the caller already holds ``with_lock`` on the
            document's directory; the lock is not re-entrant
        config: Lock tuning

    Raises:
        TypeError: If the existing document is not a sequence
        LockTimeout: If the directory lock could not be obtained
    """
    path = Path(path)

    def _append() -> None:
        records = read_records(path)
        records.append(item)
        write_yaml(path, records)

    if lock:
        with_lock(path.parent, _append, config)
    else:
        _append()
