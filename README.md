# lwskit

lwskit is a set of helpers for groups of pods. Each group has one leader and several workers. The pods are described by small dataclasses in `lwskit.k8s`: `Pod`, `ObjectMeta`, `PodSpec`, `Container`, `EnvVar`, `PodStatus`, `PodCondition` and `ContainerStatus`. The package has no dependencies outside the standard library.

## What it provides

- **`lwskit.core`**
  - `sha1_hash` returns the hex SHA1 digest of a string.
  - `non_zero_value` turns negative numbers into zero.
  - `sort_by_index(index_func, items, length)` puts each item into the slot that `index_func` gives it. The result always has `length` slots, and a slot no item claims holds `None`. An item is skipped when its index is out of range or when `index_func` raises `ValueError` or `LookupError`.
  - `get_operator_namespace(path)` reads a namespace from the service-account file. If the file is missing or empty, it returns `"lws-system"`.
- **`lwskit.statefulset`**
  - `get_parent_name_and_ordinal` splits a pod name such as `web-3` into `("web", 3)`. A name that does not end in `-<digits>` gives `("", -1)`.
  - `statefulset_ready` checks a `StatefulSet`. It is ready when its replica counts match and its current revision equals its update revision.
- **`lwskit.k8s.parse_quantity`** parses resource quantities such as `"4"`, `"500m"` or `"2Gi"` into a `Decimal`.
- **`lwskit.pod`**
  - Checks on pods: `container_restarted`, `pod_deleted`, `leader_pod`, `pod_running_and_ready` and `is_pod_ready`.
  - Condition lookups: `get_pod_condition`, `get_pod_condition_from_list`, `get_pod_ready_condition` and `is_pod_ready_condition_true`.
  - `add_lws_variables` puts `LWS_LEADER_ADDRESS` and `LWS_GROUP_SIZE` at the front of the environment of every container and init container.
- **`lwskit.tpu`**
  - `pod_requests_tpus` and `get_container_requesting_tpus` look for containers that request the `google.com/tpu` resource.
  - `add_tpu_variables(pod, size)` and `add_tpu_variables_subgroup(pod)` set `TPU_WORKER_HOSTNAMES`, `TPU_WORKER_ID` and `TPU_NAME` on the container that requests TPUs.
  - `add_tpu_annotations` marks a pod's annotations when its leader requests TPUs.
- **`lwskit.client.InMemoryClient`** is an object store keyed by kind, namespace and name.
  - It offers `get`, `create`, `list` (filtered by labels) and `delete`.
  - Looking up an object that is not there raises `NotFoundError`. Creating an object that already exists raises `AlreadyExistsError`.
- **`lwskit.service.create_headless_service_if_not_exists`** returns the existing `Service`. If there is none, it creates a headless one with `cluster_ip="None"`, owned by the object you pass in.
- **`lwskit.revision`**
  - `new_revision` records the `leaderWorkerTemplate` and `networkConfig` of a set's spec as a `ControllerRevision`. The spec is a JSON-like mapping.
  - `create_revision` stores a revision.
  - `get_revision`, `list_revisions` and `get_highest_revision` look revisions up.
  - `apply_revision` restores the recorded state.
  - `equal_revision` compares two revisions.
  - `truncate_revisions` deletes every revision except the one with a given key.
  - `strategic_merge_patch` is the merge that `apply_revision` uses.

## Installing

```
pip install lwskit
```

To run the tests:

```
pip install "lwskit[test]"
pytest
```

## Example

```python
from lwskit.k8s import Container, ObjectMeta, Pod, PodSpec
from lwskit.tpu import add_tpu_variables

pod = Pod(
    metadata=ObjectMeta(
        name="test-sample-1",
        labels={"leaderworkerset.sigs.k8s.io/worker-index": "0"},
    ),
    spec=PodSpec(
        containers=[
            Container(name="worker", image="busybox", limits={"google.com/tpu": "4"})
        ],
        subdomain="default",
    ),
)
add_tpu_variables(pod, 1)
print([(env.name, env.value) for env in pod.spec.containers[0].env])
# [('TPU_WORKER_HOSTNAMES', 'test-sample-1.default'), ('TPU_WORKER_ID', '0'), ('TPU_NAME', 'test-sample-1')]
```

Functions that cannot finish their work raise an exception. For example:

- A missing label, or a pod name with no parent name, raises `ValueError`.
- A lookup in the client that finds nothing raises `NotFoundError`.

## What it does not do

lwskit is a library of helpers, not a controller.

- It does not connect to a cluster, and it has no command, server or admission webhook.
- Objects live only in the memory of an `InMemoryClient`.
- `strategic_merge_patch` merges mappings key by key. It replaces lists as a whole and does not merge them by key.