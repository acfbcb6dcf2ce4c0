import pytest

from lwskit.k8s import (
    SUBGROUP_INDEX_LABEL_KEY,
    SUBGROUP_SIZE_ANNOTATION_KEY,
    WORKER_INDEX_LABEL_KEY,
    Container,
    EnvVar,
    ObjectMeta,
    Pod,
    PodSpec,
)
from lwskit.tpu import (
    LEADER_REQUESTS_TPUS_ANNOTATION_KEY,
    TPU_NAME,
    TPU_WORKER_HOSTNAMES,
    TPU_WORKER_ID,
    add_tpu_annotations,
    add_tpu_variables,
    add_tpu_variables_subgroup,
    get_container_requesting_tpus,
    pod_requests_tpus,
)


def make_leader_pod_spec():
    return PodSpec(containers=[Container(name="worker", image="busybox")])


def make_leader_pod_spec_with_tpu_resource():
    return PodSpec(
        containers=[
            Container(name="worker", image="busybox", limits={"google.com/tpu": "4"})
        ],
        subdomain="default",
    )


def make_leader_pod_spec_with_tpu_resource_multiple_containers():
    return PodSpec(
        containers=[
            Container(name="worker", image="busybox", limits={"google.com/tpu": "4"}),
            Container(name="leader", image="nginx:1.14.2", ports=[8080]),
        ],
        subdomain="default",
    )


def make_pod(name, labels, annotations=None, spec=None):
    return Pod(
        metadata=ObjectMeta(
            name=name,
            namespace="default",
            labels=labels,
            annotations=annotations or {},
        ),
        spec=spec or make_leader_pod_spec_with_tpu_resource(),
    )


def env_values(pod):
    return [env.value for env in pod.spec.containers[0].env]


@pytest.mark.parametrize(
    "pod,size,hostnames,worker_id,tpu_name",
    [
        (
            make_pod("test-sample-1", {WORKER_INDEX_LABEL_KEY: "0"}),
            1,
            "test-sample-1.default",
            "0",
            "test-sample-1",
        ),
        (
            make_pod(
                "test-sample-1-3",
                {WORKER_INDEX_LABEL_KEY: "3"},
                {LEADER_REQUESTS_TPUS_ANNOTATION_KEY: "true"},
            ),
            5,
            "test-sample-1.default,test-sample-1-1.default,test-sample-1-2.default,"
            "test-sample-1-3.default,test-sample-1-4.default",
            "3",
            "test-sample-1",
        ),
        (
            make_pod("test-sample-1-3", {WORKER_INDEX_LABEL_KEY: "3"}),
            5,
            "test-sample-1-1.default,test-sample-1-2.default,"
            "test-sample-1-3.default,test-sample-1-4.default",
            "2",
            "test-sample-1",
        ),
        (
            make_pod(
                "test-sample-1-1",
                {WORKER_INDEX_LABEL_KEY: "1"},
                {LEADER_REQUESTS_TPUS_ANNOTATION_KEY: "true"},
            ),
            2,
            "test-sample-1.default,test-sample-1-1.default",
            "1",
            "test-sample-1",
        ),
    ],
)
def test_add_tpu_variables(pod, size, hostnames, worker_id, tpu_name):
    add_tpu_variables(pod, size)
    env = pod.spec.containers[0].env
    assert [e.name for e in env] == [TPU_WORKER_HOSTNAMES, TPU_WORKER_ID, TPU_NAME]
    assert env_values(pod) == [hostnames, worker_id, tpu_name]


@pytest.mark.parametrize(
    "pod,hostnames,worker_id,tpu_name",
    [
        (
            make_pod(
                "test-sample-1-3",
                {WORKER_INDEX_LABEL_KEY: "3", SUBGROUP_INDEX_LABEL_KEY: "0"},
                {
                    LEADER_REQUESTS_TPUS_ANNOTATION_KEY: "true",
                    SUBGROUP_SIZE_ANNOTATION_KEY: "5",
                },
            ),
            "test-sample-1.default,test-sample-1-1.default,test-sample-1-2.default,"
            "test-sample-1-3.default,test-sample-1-4.default",
            "3",
            "test-sample-1",
        ),
        (
            make_pod(
                "test-sample-1-7",
                {WORKER_INDEX_LABEL_KEY: "7", SUBGROUP_INDEX_LABEL_KEY: "1"},
                {
                    LEADER_REQUESTS_TPUS_ANNOTATION_KEY: "true",
                    SUBGROUP_SIZE_ANNOTATION_KEY: "4",
                },
            ),
            "test-sample-1-4.default,test-sample-1-5.default,"
            "test-sample-1-6.default,test-sample-1-7.default",
            "3",
            "test-sample-1",
        ),
        (
            make_pod(
                "test-sample-1-5",
                {WORKER_INDEX_LABEL_KEY: "5", SUBGROUP_INDEX_LABEL_KEY: "1"},
                {SUBGROUP_SIZE_ANNOTATION_KEY: "4"},
            ),
            "test-sample-1-5.default,test-sample-1-6.default,"
            "test-sample-1-7.default,test-sample-1-8.default",
            "0",
            "test-sample-1",
        ),
    ],
)
def test_add_tpu_variables_subgroup(pod, hostnames, worker_id, tpu_name):
    add_tpu_variables_subgroup(pod)
    assert env_values(pod) == [hostnames, worker_id, tpu_name]


def test_add_tpu_variables_dispatches_to_subgroup():
    pod = make_pod(
        "test-sample-1-5",
        {WORKER_INDEX_LABEL_KEY: "5", SUBGROUP_INDEX_LABEL_KEY: "1"},
        {SUBGROUP_SIZE_ANNOTATION_KEY: "4"},
    )
    add_tpu_variables(pod, 100)
    assert env_values(pod)[0] == (
        "test-sample-1-5.default,test-sample-1-6.default,"
        "test-sample-1-7.default,test-sample-1-8.default"
    )


@pytest.mark.parametrize(
    "spec,expected",
    [
        (
            make_leader_pod_spec_with_tpu_resource(),
            Container(name="worker", image="busybox", limits={"google.com/tpu": "4"}),
        ),
        (
            make_leader_pod_spec_with_tpu_resource_multiple_containers(),
            Container(name="worker", image="busybox", limits={"google.com/tpu": "4"}),
        ),
        (make_leader_pod_spec(), None),
    ],
)
def test_get_container_requesting_tpus(spec, expected):
    assert get_container_requesting_tpus(spec) == expected


def test_get_container_requesting_tpus_finds_init_container_via_requests():
    init = Container(name="init", requests={"google.com/tpu": "1"})
    spec = PodSpec(containers=[Container(name="main")], init_containers=[init])
    assert get_container_requesting_tpus(spec) is init
    assert pod_requests_tpus(spec) is True


def test_zero_limit_falls_back_to_requests():
    container = Container(
        name="main", limits={"google.com/tpu": "0"}, requests={"google.com/tpu": "2"}
    )
    assert pod_requests_tpus(PodSpec(containers=[container])) is True
    assert pod_requests_tpus(make_leader_pod_spec()) is False


def test_no_tpu_container_leaves_pod_untouched():
    pod = make_pod("test-sample-1", {WORKER_INDEX_LABEL_KEY: "0"}, spec=make_leader_pod_spec())
    add_tpu_variables(pod, 3)
    assert pod.spec.containers[0].env == []


def test_existing_tpu_env_is_kept():
    pod = make_pod("test-sample-1", {WORKER_INDEX_LABEL_KEY: "0"})
    pod.spec.containers[0].env.append(EnvVar(TPU_WORKER_ID, "7"))
    add_tpu_variables(pod, 3)
    assert pod.spec.containers[0].env == [EnvVar(TPU_WORKER_ID, "7")]


def test_worker_without_ordinal_raises():
    pod = make_pod("worker", {WORKER_INDEX_LABEL_KEY: "2"})
    with pytest.raises(ValueError, match="parsing parent name"):
        add_tpu_variables(pod, 3)


def test_subgroup_missing_index_raises():
    pod = make_pod(
        "test-sample-1-3",
        {WORKER_INDEX_LABEL_KEY: "3"},
        {SUBGROUP_SIZE_ANNOTATION_KEY: "2"},
    )
    with pytest.raises(ValueError):
        add_tpu_variables_subgroup(pod)


def test_add_tpu_annotations():
    annotations = {}
    add_tpu_annotations(make_pod("leader", {}), annotations)
    assert annotations == {LEADER_REQUESTS_TPUS_ANNOTATION_KEY: "true"}

    untouched = {}
    add_tpu_annotations(make_pod("leader", {}, spec=make_leader_pod_spec()), untouched)
    assert untouched == {}