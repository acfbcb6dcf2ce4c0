"""Pod inspection helpers and LeaderWorkerSet environment injection."""

from __future__ import annotations

from typing import Optional

from lwskit.k8s import (
    CONDITION_TRUE,
    GROUP_INDEX_LABEL_KEY,
    LWS_GROUP_SIZE,
    LWS_LEADER_ADDRESS,
    POD_PENDING,
    POD_READY,
    POD_RUNNING,
    SET_NAME_LABEL_KEY,
    SIZE_ANNOTATION_KEY,
    WORKER_INDEX_LABEL_KEY,
    Container,
    EnvVar,
    Pod,
    PodCondition,
    PodStatus,
)


def container_restarted(pod: Pod) -> bool:
    """True when a running or pending pod has any restarted container."""
    if pod.status.phase not in (POD_RUNNING, POD_PENDING):
        return False
    statuses = [*pod.status.init_container_statuses, *pod.status.container_statuses]
    return any(stat.restart_count > 0 for stat in statuses)


def pod_deleted(pod: Pod) -> bool:
    """True when the pod is marked for deletion."""
    return pod.metadata.deletion_timestamp is not None


def leader_pod(pod: Pod) -> bool:
    """True when the pod is the leader of its group."""
    return pod.labels.get(WORKER_INDEX_LABEL_KEY) == "0"


def pod_running_and_ready(pod: Pod) -> bool:
    """True when the pod is running and its Ready condition is true."""
    return pod.status.phase == POD_RUNNING and is_pod_ready(pod)


def _object_ref(pod: Pod) -> str:
    if pod.namespace:
        return f"{pod.namespace}/{pod.name}"
    return pod.name


def _prepend_env_vars(container: Container, *env_vars: EnvVar) -> None:
    """Put ``env_vars`` first, keeping other existing variables after them in order."""
    names = {env.name for env in env_vars}
    container.env = [*env_vars, *(env for env in container.env if env.name not in names)]


def add_lws_variables(pod: Pod) -> None:
    """Inject the leader address and group size variables into every container."""
    missing = "Failure constructing environment variables, no {} found for pod {}"
    try:
        lws_name = pod.labels[SET_NAME_LABEL_KEY]
    except KeyError:
        raise ValueError(missing.format("name label", _object_ref(pod))) from None
    try:
        group_index = pod.labels[GROUP_INDEX_LABEL_KEY]
    except KeyError:
        raise ValueError(missing.format("group index label", _object_ref(pod))) from None

    leader_address = EnvVar(
        LWS_LEADER_ADDRESS,
        f"{lws_name}-{group_index}.{pod.spec.subdomain}.{pod.namespace}",
    )
    try:
        size = pod.annotations[SIZE_ANNOTATION_KEY]
    except KeyError:
        raise ValueError(missing.format("size annotation", _object_ref(pod))) from None
    group_size = EnvVar(LWS_GROUP_SIZE, size)

    for container in [*pod.spec.containers, *pod.spec.init_containers]:
        _prepend_env_vars(
            container,
            EnvVar(leader_address.name, leader_address.value),
            EnvVar(group_size.name, group_size.value),
        )


def is_pod_ready(pod: Pod) -> bool:
    """True when the pod's Ready condition is true."""
    return is_pod_ready_condition_true(pod.status)


def is_pod_ready_condition_true(status: PodStatus) -> bool:
    """True when the status carries a Ready condition that is true."""
    condition = get_pod_ready_condition(status)
    return condition is not None and condition.status == CONDITION_TRUE


def get_pod_ready_condition(status: PodStatus) -> Optional[PodCondition]:
    """Return the Ready condition, or None if absent."""
    _, condition = get_pod_condition(status, POD_READY)
    return condition


def get_pod_condition(
    status: Optional[PodStatus], condition_type: str
) -> tuple[int, Optional[PodCondition]]:
    """Return the index and condition of the given type, or ``(-1, None)``."""
    if status is None:
        return -1, None
    return get_pod_condition_from_list(status.conditions, condition_type)


def get_pod_condition_from_list(
    conditions: Optional[list[PodCondition]], condition_type: str
) -> tuple[int, Optional[PodCondition]]:
    """Return the index and first condition of the given type, or ``(-1, None)``."""
    if conditions is None:
        return -1, None
    for index, condition in enumerate(conditions):
        if condition.type == condition_type:
            return index, condition
    return -1, None