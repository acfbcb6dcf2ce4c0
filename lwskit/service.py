"""Headless service creation for leader/worker groups."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping

from lwskit.client import InMemoryClient, NotFoundError
from lwskit.k8s import ObjectMeta

SERVICE_KIND = "Service"
HEADLESS_CLUSTER_IP = "None"

_log = logging.getLogger(__name__)


@dataclass
class Service:
    metadata: ObjectMeta = field(default_factory=ObjectMeta)
    cluster_ip: str = ""
    selector: dict[str, str] = field(default_factory=dict)
    publish_not_ready_addresses: bool = False
    owner_references: list[dict[str, Any]] = field(default_factory=list)


def _set_controller_reference(owner: Any, obj: Service) -> None:
    owner_meta = owner.metadata
    owner_namespace = owner_meta.namespace
    if owner_namespace:
        if not obj.metadata.namespace:
            raise ValueError(
                f"cluster-scoped resource must not have a namespace-scoped owner, "
                f"owner's namespace {owner_namespace}"
            )
        if owner_namespace != obj.metadata.namespace:
            raise ValueError(
                f"cross-namespace owner references are disallowed, owner's namespace "
                f"{owner_namespace}, obj's namespace {obj.metadata.namespace}"
            )
    kind = getattr(owner, "kind", type(owner).__name__)
    for ref in obj.owner_references:
        if ref.get("controller") and ref.get("uid") != owner_meta.uid:
            raise ValueError(
                f"object {obj.metadata.name} is already owned by another "
                f"{ref.get('kind')} controller {ref.get('name')}"
            )
    obj.owner_references = [
        ref for ref in obj.owner_references if ref.get("uid") != owner_meta.uid
    ]
    obj.owner_references.append(
        {
            "kind": kind,
            "name": owner_meta.name,
            "uid": owner_meta.uid,
            "controller": True,
            "block_owner_deletion": True,
        }
    )


def create_headless_service_if_not_exists(
    client: InMemoryClient,
    lws: Any,
    service_name: str,
    service_selector: Mapping[str, str],
    owner: Any,
) -> Service:
    """Create a headless service in the set's namespace unless one exists; return it."""
    namespace = lws.metadata.namespace
    try:
        return client.get(SERVICE_KIND, namespace, service_name)
    except NotFoundError:
        pass

    service = Service(
        metadata=ObjectMeta(name=service_name, namespace=namespace),
        cluster_ip=HEADLESS_CLUSTER_IP,
        selector=dict(service_selector),
        publish_not_ready_addresses=True,
    )
    _set_controller_reference(owner, service)
    _log.debug("Creating headless service %s/%s", namespace, service_name)
    return client.create(SERVICE_KIND, service)