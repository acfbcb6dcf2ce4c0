"""StatefulSet naming and readiness helpers."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Optional

_STATEFUL_POD_PATTERN = re.compile(r"(.*)-([0-9]+)\Z")
_INT32_MAX = 2**31 - 1


@dataclass
class StatefulSet:
    """The parts of a StatefulSet that readiness depends on."""

    name: str = ""
    replicas: Optional[int] = 1
    status_replicas: int = 0
    current_revision: str = ""
    update_revision: str = ""
    labels: dict[str, str] = field(default_factory=dict)


def get_parent_name_and_ordinal(name: str) -> tuple[str, int]:
    """Split a pod name into its parent StatefulSet name and ordinal.

    A name that was not produced by a StatefulSet yields ``("", -1)``.
    An ordinal too large for a 32-bit integer yields ``-1`` as ordinal.
    """
    match = _STATEFUL_POD_PATTERN.search(name)
    if match is None:
        return "", -1
    parent, digits = match.groups()
    ordinal = int(digits)
    if ordinal > _INT32_MAX:
        ordinal = -1
    return parent, ordinal


def statefulset_ready(sts: StatefulSet) -> bool:
    """True when all replicas are present and the current revision is the update revision."""
    if sts.replicas is None:
        raise ValueError(f"statefulset {sts.name!r} has no replica count")
    return (
        sts.replicas == sts.status_replicas
        and sts.current_revision == sts.update_revision
    )