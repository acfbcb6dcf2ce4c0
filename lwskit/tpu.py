"""TPU environment variable injection for LeaderWorkerSet pods."""

from __future__ import annotations

import math
import re
from typing import Iterable, MutableMapping, Optional

from lwskit.k8s import (
    SUBGROUP_INDEX_LABEL_KEY,
    SUBGROUP_SIZE_ANNOTATION_KEY,
    WORKER_INDEX_LABEL_KEY,
    Container,
    EnvVar,
    Pod,
    PodSpec,
    parse_quantity,
)
from lwskit.statefulset import get_parent_name_and_ordinal

TPU_RESOURCE_NAME = "google.com/tpu"
TPU_WORKER_HOSTNAMES = "TPU_WORKER_HOSTNAMES"
TPU_WORKER_ID = "TPU_WORKER_ID"
TPU_NAME = "TPU_NAME"
LEADER_REQUESTS_TPUS_ANNOTATION_KEY = "leaderworkerset.sigs.k8s.io/leader-requests-tpus"

_INTEGER_PATTERN = re.compile(r"[+-]?[0-9]+")


def _num_tpus_requested(container: Container) -> int:
    """Return the TPU count from limits, falling back to requests, rounded up."""
    for resources in (container.limits, container.requests):
        quantity = resources.get(TPU_RESOURCE_NAME)
        if quantity is None:
            continue
        amount = parse_quantity(quantity)
        if amount != 0:
            return math.ceil(amount)
    return 0


def _containers_request_tpus(containers: Iterable[Container]) -> bool:
    return any(_num_tpus_requested(container) != 0 for container in containers)


def pod_requests_tpus(spec: PodSpec) -> bool:
    """True when any container or init container of the spec requests TPUs."""
    return _containers_request_tpus(spec.containers) or _containers_request_tpus(
        spec.init_containers
    )


def get_container_requesting_tpus(spec: PodSpec) -> Optional[Container]:
    """Return the first container requesting TPUs, searching init containers last."""
    for container in [*spec.containers, *spec.init_containers]:
        if _num_tpus_requested(container) != 0:
            return container
    return None


def _has_tpu_env(container: Container) -> bool:
    return any(env.name in (TPU_WORKER_HOSTNAMES, TPU_WORKER_ID) for env in container.env)


def _parse_int(text: Optional[str], what: str) -> int:
    if text is None or not _INTEGER_PATTERN.fullmatch(text):
        raise ValueError(f"invalid {what}: {text!r}")
    return int(text)


def _truncated_mod(dividend: int, divisor: int) -> int:
    """Remainder whose sign follows the dividend."""
    if divisor == 0:
        raise ValueError("subgroup size must not be zero")
    remainder = abs(dividend) % abs(divisor)
    return -remainder if dividend < 0 else remainder


def _parent_name(pod: Pod) -> tuple[str, int]:
    parent, ordinal = get_parent_name_and_ordinal(pod.name)
    if not parent:
        raise ValueError(f"parsing parent name from pod {pod.name}")
    return parent, ordinal


def _append_tpu_env(
    container: Container, hostnames: list[str], worker_id: int, leader_name: str
) -> None:
    container.env.extend(
        [
            EnvVar(TPU_WORKER_HOSTNAMES, ",".join(hostnames)),
            EnvVar(TPU_WORKER_ID, str(worker_id)),
            EnvVar(TPU_NAME, leader_name),
        ]
    )


def add_tpu_variables_subgroup(pod: Pod) -> None:
    """Inject TPU variables scoped to the pod's subgroup."""
    container = get_container_requesting_tpus(pod.spec)
    if container is None or _has_tpu_env(container):
        return

    subdomain = pod.spec.subdomain
    leader_name = pod.name
    subgroup_size = _parse_int(
        pod.annotations.get(SUBGROUP_SIZE_ANNOTATION_KEY), "subgroup size"
    )
    subgroup_index = _parse_int(pod.labels.get(SUBGROUP_INDEX_LABEL_KEY), "subgroup index")
    worker_index = _parse_int(pod.labels.get(WORKER_INDEX_LABEL_KEY), "worker index")

    leader_requests = pod.annotations.get(LEADER_REQUESTS_TPUS_ANNOTATION_KEY) == "true"
    worker_id = _truncated_mod(
        worker_index if leader_requests else worker_index - 1, subgroup_size
    )

    start = subgroup_size * subgroup_index + 1
    end = subgroup_size * (subgroup_index + 1)
    hostnames: list[str] = []

    if pod.labels.get(WORKER_INDEX_LABEL_KEY) == "0":
        # The leader requests TPUs, so it belongs in the hostname list.
        hostnames.append(f"{leader_name}.{subdomain}")
        end -= 1
    else:
        leader_name, _ = _parent_name(pod)
        if leader_requests and subgroup_index == 0:
            # Subgroup 0 holds the leader, shifting its worker range left by one.
            end -= 1
            hostnames.append(f"{leader_name}.{subdomain}")
        elif leader_requests:
            # Later subgroups shift along with the first one.
            start -= 1
            end -= 1

    hostnames.extend(f"{leader_name}-{i}.{subdomain}" for i in range(start, end + 1))
    _append_tpu_env(container, hostnames, worker_id, leader_name)


def add_tpu_variables(pod: Pod, size: int) -> None:
    """Inject TPU worker hostnames, worker id and TPU name into the TPU container."""
    if SUBGROUP_SIZE_ANNOTATION_KEY in pod.annotations:
        add_tpu_variables_subgroup(pod)
        return

    container = get_container_requesting_tpus(pod.spec)
    if container is None or _has_tpu_env(container):
        return

    subdomain = pod.spec.subdomain
    leader_name = pod.name
    worker_id = 0
    hostnames: list[str] = []

    if pod.labels.get(WORKER_INDEX_LABEL_KEY) == "0":
        # A leader reaching here requests TPUs and takes worker id 0.
        hostnames.append(f"{leader_name}.{subdomain}")
    else:
        leader_name, worker_id = _parent_name(pod)
        if pod.annotations.get(LEADER_REQUESTS_TPUS_ANNOTATION_KEY) == "true":
            hostnames.append(f"{leader_name}.{subdomain}")
        else:
            # The leader is not a TPU worker, so worker ids start one lower.
            worker_id -= 1

    hostnames.extend(f"{leader_name}-{i}.{subdomain}" for i in range(1, size))
    _append_tpu_env(container, hostnames, worker_id, leader_name)


def add_tpu_annotations(leader_pod: Pod, annotations: MutableMapping[str, str]) -> None:
    """Mark ``annotations`` when the leader pod requests TPUs."""
    if pod_requests_tpus(leader_pod.spec):
        annotations[LEADER_REQUESTS_TPUS_ANNOTATION_KEY] = "true"