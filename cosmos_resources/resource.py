"""
CosmosResource — the shape every stored document satisfies.

A resource exposes ``document_id`` and ``partition_key`` and carries the
``etag`` handed back by the store.  Application code reads the etag and
passes it back on replace; it never sets it.
"""

from __future__ import annotations

from typing import Any, Protocol, TypeVar, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field

# Cosmos system properties stripped from documents before validation.
SYSTEM_KEYS = frozenset({"_rid", "_self", "_etag", "_attachments", "_ts", "_lsn"})


@runtime_checkable
class ResourceLike(Protocol):
    etag: str | None

    @property
    def document_id(self) -> str: ...

    @property
    def partition_key(self) -> str: ...


class CosmosResource(BaseModel):
    """Base model for documents persisted in Cosmos.

    Subclasses implement ``document_id`` and ``partition_key``, usually as
    properties over their own fields.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    etag: str | None = Field(default=None, exclude=True)

    @property
    def document_id(self) -> str:
        raise NotImplementedError

    @property
    def partition_key(self) -> str:
        raise NotImplementedError


R = TypeVar("R", bound=CosmosResource)


def to_document(resource: CosmosResource, serializer_options: dict[str, Any] | None = None) -> dict[str, Any]:
    """Serialize a resource to a Cosmos document body (always carries ``id``)."""
    options = {"by_alias": True, **(serializer_options or {})}
    body = resource.model_dump(mode="json", **options)
    body.setdefault("id", resource.document_id)
    return body


def from_document(resource_type: type[R], document: dict[str, Any]) -> R:
    """Validate a Cosmos document into ``resource_type`` and attach its ETag."""
    body = {k: v for k, v in document.items() if k not in SYSTEM_KEYS}
    resource = resource_type.model_validate(body)
    resource.etag = document.get("_etag")
    return resource


def has_identity(resource: ResourceLike) -> bool:
    return bool(resource.document_id) and bool(resource.partition_key)
