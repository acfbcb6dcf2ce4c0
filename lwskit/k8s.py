"""A minimal model of the Kubernetes pod objects the package works with."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Optional, Union

SET_NAME_LABEL_KEY = "leaderworkerset.sigs.k8s.io/name"
GROUP_INDEX_LABEL_KEY = "leaderworkerset.sigs.k8s.io/group-index"
WORKER_INDEX_LABEL_KEY = "leaderworkerset.sigs.k8s.io/worker-index"
SUBGROUP_INDEX_LABEL_KEY = "leaderworkerset.sigs.k8s.io/subgroup-index"
REVISION_KEY = "leaderworkerset.sigs.k8s.io/template-revision-hash"
SIZE_ANNOTATION_KEY = "leaderworkerset.sigs.k8s.io/size"
SUBGROUP_SIZE_ANNOTATION_KEY = "leaderworkerset.sigs.k8s.io/subgroup-size"
LWS_LEADER_ADDRESS = "LWS_LEADER_ADDRESS"
LWS_GROUP_SIZE = "LWS_GROUP_SIZE"

POD_PENDING = "Pending"
POD_RUNNING = "Running"
POD_SUCCEEDED = "Succeeded"
POD_FAILED = "Failed"

POD_READY = "Ready"
CONDITION_TRUE = "True"
CONDITION_FALSE = "False"

Quantity = Union[str, int, float, Decimal]


@dataclass
class EnvVar:
    name: str
    value: str = ""


@dataclass
class Container:
    name: str = ""
    image: str = ""
    env: list[EnvVar] = field(default_factory=list)
    limits: dict[str, Quantity] = field(default_factory=dict)
    requests: dict[str, Quantity] = field(default_factory=dict)
    ports: list[int] = field(default_factory=list)


@dataclass
class ContainerStatus:
    name: str = ""
    restart_count: int = 0


@dataclass
class PodCondition:
    type: str
    status: str = CONDITION_FALSE


@dataclass
class PodStatus:
    phase: str = ""
    conditions: Optional[list[PodCondition]] = None
    init_container_statuses: list[ContainerStatus] = field(default_factory=list)
    container_statuses: list[ContainerStatus] = field(default_factory=list)


@dataclass
class PodSpec:
    containers: list[Container] = field(default_factory=list)
    init_containers: list[Container] = field(default_factory=list)
    subdomain: str = ""


@dataclass
class ObjectMeta:
    name: str = ""
    namespace: str = ""
    labels: dict[str, str] = field(default_factory=dict)
    annotations: dict[str, str] = field(default_factory=dict)
    uid: str = ""
    deletion_timestamp: Optional[datetime] = None


@dataclass
class Pod:
    metadata: ObjectMeta = field(default_factory=ObjectMeta)
    spec: PodSpec = field(default_factory=PodSpec)
    status: PodStatus = field(default_factory=PodStatus)

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def namespace(self) -> str:
        return self.metadata.namespace

    @property
    def labels(self) -> dict[str, str]:
        return self.metadata.labels

    @property
    def annotations(self) -> dict[str, str]:
        return self.metadata.annotations


_BINARY_SUFFIXES = {
    "Ki": 2**10,
    "Mi": 2**20,
    "Gi": 2**30,
    "Ti": 2**40,
    "Pi": 2**50,
    "Ei": 2**60,
}
_DECIMAL_SUFFIXES = {
    "n": Decimal("1e-9"),
    "u": Decimal("1e-6"),
    "m": Decimal("1e-3"),
    "": Decimal(1),
    "k": Decimal(10) ** 3,
    "M": Decimal(10) ** 6,
    "G": Decimal(10) ** 9,
    "T": Decimal(10) ** 12,
    "P": Decimal(10) ** 15,
    "E": Decimal(10) ** 18,
}
_QUANTITY_PATTERN = re.compile(
    r"([+-]?(?:\d+(?:\.\d*)?|\.\d+))"
    r"((?:[eE][+-]?\d+)|Ki|Mi|Gi|Ti|Pi|Ei|[numkMGTPE])?"
)


def parse_quantity(value: Quantity) -> Decimal:
    """Parse a resource quantity such as ``"4"``, ``"500m"`` or ``"2Gi"`` exactly."""
    if isinstance(value, bool):
        raise ValueError(f"invalid quantity {value!r}")
    if isinstance(value, (int, Decimal)):
        return Decimal(value)
    if isinstance(value, float):
        return Decimal(str(value))
    match = _QUANTITY_PATTERN.fullmatch(value.strip())
    if match is None:
        raise ValueError(f"invalid quantity {value!r}")
    number, suffix = match.group(1), match.group(2) or ""
    amount = Decimal(number)
    if suffix in _BINARY_SUFFIXES:
        return amount * _BINARY_SUFFIXES[suffix]
    if suffix in _DECIMAL_SUFFIXES:
        return amount * _DECIMAL_SUFFIXES[suffix]
    return amount.scaleb(int(suffix[1:]))