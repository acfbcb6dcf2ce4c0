"""Controller revisions that record and restore a LeaderWorkerSet's template state.

A LeaderWorkerSet is any object with a ``metadata`` attribute holding an
``ObjectMeta`` and a ``spec`` attribute holding a JSON-like mapping keyed by the
API field names (``leaderWorkerTemplate``, ``networkConfig`` and so on).
"""

from __future__ import annotations

import copy
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional

from lwskit.client import InMemoryClient
from lwskit.k8s import REVISION_KEY, SET_NAME_LABEL_KEY, ObjectMeta

CONTROLLER_REVISION_KIND = "ControllerRevision"
LWS_KIND = "LeaderWorkerSet"
LWS_API_VERSION = "leaderworkerset.x-k8s.io/v1"
SUBDOMAIN_SHARED = "Shared"
MAX_PREFIX_LENGTH = 220

_PATCH_DIRECTIVE = "$patch"
_SAFE_ALPHANUMS = "bcdfghjklmnpqrstvwxz2456789"
_FNV32_OFFSET = 2166136261
_FNV32_PRIME = 16777619
_MASK32 = 0xFFFFFFFF

_log = logging.getLogger(__name__)


@dataclass
class ControllerRevision:
    """A recorded patch that restores a LeaderWorkerSet's saved state."""

    metadata: ObjectMeta = field(default_factory=ObjectMeta)
    data: bytes = b""
    revision: int = 0
    owner_references: list[dict[str, Any]] = field(default_factory=list)


def _prune_none(value: Any) -> Any:
    """Drop keys whose value is None, as unset optional fields are omitted."""
    if isinstance(value, Mapping):
        return {k: _prune_none(v) for k, v in value.items() if v is not None}
    if isinstance(value, list):
        return [_prune_none(item) for item in value]
    return value


def _encode(obj: Any) -> bytes:
    return json.dumps(obj, sort_keys=True, separators=(",", ":")).encode("utf-8")


def _get_patch(lws: Any) -> bytes:
    """Build a patch that replaces the template and network config when applied."""
    spec = _prune_none(copy.deepcopy(dict(lws.spec)))
    # A missing network config is recorded as its default so the revision does
    # not change once defaulting fills it in.
    if spec.get("networkConfig") is None:
        spec["networkConfig"] = {"subdomainPolicy": SUBDOMAIN_SHARED}
    network_config = dict(spec["networkConfig"])
    template = dict(spec.get("leaderWorkerTemplate") or {})
    network_config[_PATCH_DIRECTIVE] = "replace"
    template[_PATCH_DIRECTIVE] = "replace"
    return _encode(
        {"spec": {"networkConfig": network_config, "leaderWorkerTemplate": template}}
    )


def _controller_of(obj: Any) -> Optional[dict[str, Any]]:
    refs = getattr(obj, "owner_references", None) or []
    return next((ref for ref in refs if ref.get("controller")), None)


def _fnv1_32(data: bytes) -> int:
    value = _FNV32_OFFSET
    for byte in data:
        value = (value * _FNV32_PRIME) & _MASK32
        value ^= byte
    return value


def _safe_encode(text: str) -> str:
    return "".join(_SAFE_ALPHANUMS[b % len(_SAFE_ALPHANUMS)] for b in text.encode("utf-8"))


def hash_revision(revision: ControllerRevision) -> str:
    """Hash the revision's data with 32-bit FNV-1 and encode it as a safe string."""
    return _safe_encode(str(_fnv1_32(revision.data)))


def revision_name(prefix: str, hash_: str, revision_number: int) -> str:
    """Return ``prefix-hash-number``, truncating the prefix to 220 characters."""
    return f"{prefix[:MAX_PREFIX_LENGTH]}-{hash_}-{revision_number}"


def get_highest_revision(
    revisions: Iterable[ControllerRevision],
) -> Optional[ControllerRevision]:
    """Return the revision with the largest number; the last one wins a tie."""
    highest = 0
    result: Optional[ControllerRevision] = None
    for revision in revisions:
        if highest <= revision.revision:
            highest = revision.revision
            result = revision
    return result


def list_revisions(
    client: InMemoryClient, parent: Any, selector: Mapping[str, str]
) -> list[ControllerRevision]:
    """List revisions matching ``selector`` owned by ``parent`` or by no controller."""
    history = client.list(
        CONTROLLER_REVISION_KIND, parent.metadata.namespace, selector
    )
    owned = []
    for revision in history:
        ref = _controller_of(revision)
        if ref is None or ref.get("uid") == parent.metadata.uid:
            owned.append(revision)
    return owned


def new_revision(client: InMemoryClient, lws: Any, revision_key: str = "") -> ControllerRevision:
    """Build, without storing, the next revision recording ``lws``'s current state."""
    name = lws.metadata.name
    revisions = list_revisions(client, lws, {SET_NAME_LABEL_KEY: name})
    highest = get_highest_revision(revisions)
    number = highest.revision + 1 if highest is not None else 1

    revision = ControllerRevision(
        metadata=ObjectMeta(
            namespace=lws.metadata.namespace,
            labels={SET_NAME_LABEL_KEY: name},
        ),
        data=_get_patch(lws),
        revision=number,
        owner_references=[
            {
                "api_version": LWS_API_VERSION,
                "kind": LWS_KIND,
                "name": name,
                "uid": lws.metadata.uid,
                "controller": True,
                "block_owner_deletion": True,
            }
        ],
    )
    digest = hash_revision(revision)
    revision.metadata.name = revision_name(name, digest, number)
    revision.metadata.labels[REVISION_KEY] = revision_key or digest
    return revision


def create_revision(
    client: InMemoryClient, revision: ControllerRevision, lws: Any
) -> ControllerRevision:
    """Store ``revision`` and return it."""
    return client.create(CONTROLLER_REVISION_KIND, revision)


def get_revision_key(obj: Any) -> str:
    """Return the revision key label of ``obj``, or an empty string."""
    labels = obj.metadata.labels or {}
    return labels.get(REVISION_KEY, "")


def get_revision(
    client: InMemoryClient, lws: Any, revision_key: str
) -> Optional[ControllerRevision]:
    """Return the stored revision carrying ``revision_key``, the latest if several do."""
    if not revision_key:
        return None
    selector = {SET_NAME_LABEL_KEY: lws.metadata.name, REVISION_KEY: revision_key}
    revisions = list_revisions(client, lws, selector)
    if not revisions:
        return None
    if len(revisions) > 1:
        _log.error(
            "More than one revision exists for the given template hash; "
            "returning the latest revision (leaderworkerset %s/%s)",
            lws.metadata.namespace,
            lws.metadata.name,
        )
        return get_highest_revision(revisions)
    return revisions[0]


def strategic_merge_patch(original: Mapping[str, Any], patch: Mapping[str, Any]) -> dict[str, Any]:
    """Merge ``patch`` into ``original`` and return the result.

    Mappings merge key by key, a None value removes the key, and lists and
    scalars are replaced whole. A ``$patch`` directive of ``replace`` makes a
    mapping replace its counterpart entirely; ``delete`` removes it.
    """
    result = _merge(original, patch)
    return {} if result is None else result


def _merge(original: Optional[Mapping[str, Any]], patch: Mapping[str, Any]) -> Optional[dict]:
    directive = patch.get(_PATCH_DIRECTIVE)
    body = {k: v for k, v in patch.items() if k != _PATCH_DIRECTIVE}
    if directive == "replace":
        return _strip_directives(body)
    if directive == "delete":
        return None
    if directive is not None:
        raise ValueError(f"unknown patch directive {directive!r}")

    merged = copy.deepcopy(dict(original or {}))
    for key, value in body.items():
        if value is None:
            merged.pop(key, None)
        elif isinstance(value, Mapping):
            current = merged.get(key)
            sub = _merge(current if isinstance(current, Mapping) else None, value)
            if sub is None:
                merged.pop(key, None)
            else:
                merged[key] = sub
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def _strip_directives(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {k: _strip_directives(v) for k, v in value.items() if k != _PATCH_DIRECTIVE}
    if isinstance(value, list):
        return [_strip_directives(item) for item in value]
    return value


def apply_revision(lws: Any, revision: ControllerRevision) -> Any:
    """Return a copy of ``lws`` with the state saved in ``revision`` restored."""
    patch = json.loads(revision.data.decode("utf-8"))
    current = {"spec": _prune_none(copy.deepcopy(dict(lws.spec)))}
    patched = strategic_merge_patch(current, patch)
    restored = copy.deepcopy(lws)
    restored.spec = patched.get("spec", {})
    return restored


def equal_revision(
    lhs: Optional[ControllerRevision], rhs: Optional[ControllerRevision]
) -> bool:
    """True when both are None or both record the same data."""
    if lhs is None or rhs is None:
        return lhs is rhs
    return lhs.data == rhs.data


def truncate_revisions(client: InMemoryClient, lws: Any, revision_key: str) -> None:
    """Delete every revision of ``lws`` whose key differs from ``revision_key``."""
    revisions = list_revisions(client, lws, {SET_NAME_LABEL_KEY: lws.metadata.name})
    for revision in revisions:
        if get_revision_key(revision) != revision_key:
            client.delete(
                CONTROLLER_REVISION_KIND,
                revision.metadata.namespace,
                revision.metadata.name,
            )