"""General helpers shared across the package."""

from __future__ import annotations

import hashlib
from pathlib import Path
from typing import Callable, Iterable, Optional, TypeVar, Union

T = TypeVar("T")

DEFAULT_NAMESPACE = "lws-system"
SERVICE_ACCOUNT_NAMESPACE_FILE = "/var/run/secrets/kubernetes.io/serviceaccount/namespace"


def sha1_hash(s: str) -> str:
    """Return the 40 character hex SHA1 digest of ``s``."""
    return hashlib.sha1(s.encode("utf-8")).hexdigest()


def non_zero_value(value: int) -> int:
    """Clamp negative values to zero."""
    return max(value, 0)


def sort_by_index(
    index_func: Callable[[T], int],
    items: Iterable[T],
    length: int,
) -> list[Optional[T]]:
    """Place each item at the slot given by ``index_func``.

    The result always has ``length`` slots; slots that no item claims hold
    ``None``. Items whose index cannot be determined (``index_func`` raises
    ``ValueError`` or ``LookupError``) or falls beyond the end are skipped.
    """
    result: list[Optional[T]] = [None] * length
    for item in items:
        try:
            index = index_func(item)
        except (ValueError, LookupError):
            continue
        if index >= length:
            continue
        if index < 0:
            raise IndexError(f"negative index {index} for item {item!r}")
        result[index] = item
    return result


def get_operator_namespace(path: Union[str, Path] = SERVICE_ACCOUNT_NAMESPACE_FILE) -> str:
    """Return the namespace from the service account file, or the default one."""
    try:
        namespace = Path(path).read_text().strip()
    except OSError:
        return DEFAULT_NAMESPACE
    return namespace or DEFAULT_NAMESPACE