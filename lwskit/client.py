"""An in-memory object store with the get/create/list/delete operations the helpers need."""

from __future__ import annotations

import copy
import uuid
from typing import Any, Mapping, Optional


class NotFoundError(LookupError):
    """The requested object does not exist."""


class AlreadyExistsError(ValueError):
    """An object with the same kind, namespace and name already exists."""


class InMemoryClient:
    """Stores objects that carry an ``ObjectMeta`` in their ``metadata`` attribute."""

    def __init__(self) -> None:
        self._objects: dict[tuple[str, str, str], Any] = {}

    def get(self, kind: str, namespace: str, name: str) -> Any:
        """Return a copy of the stored object."""
        try:
            return copy.deepcopy(self._objects[(kind, namespace, name)])
        except KeyError:
            raise NotFoundError(f'{kind} "{namespace}/{name}" not found') from None

    def create(self, kind: str, obj: Any) -> Any:
        """Store ``obj``, assigning it a uid when it has none, and return it."""
        meta = obj.metadata
        if not meta.name:
            raise ValueError(f"{kind} must have a name")
        key = (kind, meta.namespace, meta.name)
        if key in self._objects:
            raise AlreadyExistsError(f'{kind} "{meta.namespace}/{meta.name}" already exists')
        if not meta.uid:
            meta.uid = str(uuid.uuid4())
        self._objects[key] = copy.deepcopy(obj)
        return obj

    def list(
        self,
        kind: str,
        namespace: str = "",
        labels: Optional[Mapping[str, str]] = None,
    ) -> list[Any]:
        """Return copies of objects of ``kind`` matching every label in ``labels``.

        An empty ``namespace`` matches all namespaces.
        """
        selector = dict(labels or {})
        matches = [
            obj
            for (obj_kind, obj_namespace, _), obj in sorted(
                self._objects.items(), key=lambda item: item[0]
            )
            if obj_kind == kind
            and (not namespace or obj_namespace == namespace)
            and all(obj.metadata.labels.get(k) == v for k, v in selector.items())
        ]
        return copy.deepcopy(matches)

    def delete(self, kind: str, namespace: str, name: str) -> None:
        """Remove the stored object."""
        try:
            del self._objects[(kind, namespace, name)]
        except KeyError:
            raise NotFoundError(f'{kind} "{namespace}/{name}" not found') from None