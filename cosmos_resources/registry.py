"""
Container registry — maps resource types to their storage location.

Each resource type is bound exactly once to a (container, database,
options) triple.  Generic resource families can be bound as a whole:

    registry.register(ResourceKey.family(Envelope), "envelopes")
    registry.resolve(Envelope[Order])   # -> the "envelopes" binding

Resolution tries the exact type first, then its generic family.
"""

from __future__ import annotations

import logging
import threading
import typing
from dataclasses import dataclass
from enum import Enum
from typing import Any

from cosmos_resources.config import CosmosOptions
from cosmos_resources.errors import DuplicateRegistration, UnknownResource

logger = logging.getLogger("cosmos-resources.registry")


class KeyKind(Enum):
    CONCRETE = "concrete"
    FAMILY = "family"


def _generic_origin(tp: Any) -> Any | None:
    """Return the open generic a parametrised type was built from, if any."""
    metadata = getattr(tp, "__pydantic_generic_metadata__", None)
    if metadata and metadata.get("origin") is not None and metadata.get("args"):
        return metadata["origin"]
    return typing.get_origin(tp)


@dataclass(frozen=True)
class ResourceKey:
    """Either a concrete resource type or an open generic family tag."""

    kind: KeyKind
    target: Any
    origin: Any | None = None

    @classmethod
    def of(cls, resource_type: Any) -> "ResourceKey":
        if isinstance(resource_type, ResourceKey):
            return resource_type
        return cls(KeyKind.CONCRETE, resource_type, _generic_origin(resource_type))

    @classmethod
    def family(cls, origin: Any) -> "ResourceKey":
        return cls(KeyKind.FAMILY, origin)

    @property
    def family_key(self) -> "ResourceKey | None":
        """Family key a concrete instantiation belongs to."""
        if self.kind is KeyKind.CONCRETE and self.origin is not None:
            return ResourceKey.family(self.origin)
        return None

    @property
    def name(self) -> str:
        label = getattr(self.target, "__name__", None) or repr(self.target)
        return f"{label}[...]" if self.kind is KeyKind.FAMILY else label


@dataclass(frozen=True)
class ContainerBinding:
    key: ResourceKey
    container_name: str
    database_name: str | None = None
    options: CosmosOptions | None = None


class ContainerRegistry:
    """Append-only map of ResourceKey -> ContainerBinding.

    ``default_options`` apply to every binding registered without options
    of its own.
    """

    def __init__(self, default_options: CosmosOptions):
        self.default_options = default_options
        self._bindings: dict[ResourceKey, ContainerBinding] = {}
        self._lock = threading.Lock()

    def register(
        self,
        resource_type: Any,
        container_name: str,
        database_name: str | None = None,
        options: CosmosOptions | None = None,
    ) -> ContainerBinding:
        """Bind a resource type (or ``ResourceKey.family(...)``) to a container.

        Raises DuplicateRegistration if the type, its generic family, or
        (for a family) any already-bound instantiation of it is registered.
        """
        if not container_name:
            raise ValueError("container_name must not be empty")
        key = ResourceKey.of(resource_type)
        binding = ContainerBinding(key, container_name, database_name, options)

        with self._lock:
            self._check_unbound(key)
            self._bindings[key] = binding

        logger.debug(
            "Registered %s -> %s/%s",
            key.name, database_name or "<default>", container_name,
        )
        return binding

    def _check_unbound(self, key: ResourceKey) -> None:
        if key in self._bindings:
            raise DuplicateRegistration(f"Type {key.name} can only be registered once.")

        family = key.family_key
        if family is not None and family in self._bindings:
            raise DuplicateRegistration(
                f"Type {key.name} is already covered by the registration of {family.name}."
            )

        if key.kind is KeyKind.FAMILY:
            for bound in self._bindings:
                if bound.family_key == key:
                    raise DuplicateRegistration(
                        f"Generic family {key.name} cannot be registered after "
                        f"its instantiation {bound.name}."
                    )

    def resolve(self, resource_type: Any) -> ContainerBinding:
        key = ResourceKey.of(resource_type)
        # dict reads are atomic; registration only ever adds keys.
        binding = self._bindings.get(key)
        if binding is None and key.family_key is not None:
            binding = self._bindings.get(key.family_key)
        if binding is None:
            raise UnknownResource(f"Type {key.name} is not supported.")
        return binding

    def options_for(self, binding: ContainerBinding) -> CosmosOptions:
        return binding.options or self.default_options

    def database_for(self, binding: ContainerBinding) -> str:
        return binding.database_name or self.options_for(binding).database_name

    @property
    def bindings(self) -> list[ContainerBinding]:
        with self._lock:
            return list(self._bindings.values())

    def all_options(self) -> list[CosmosOptions]:
        """Distinct option sets in use (default first), by identity."""
        seen: dict[int, CosmosOptions] = {id(self.default_options): self.default_options}
        for binding in self.bindings:
            if binding.options is not None:
                seen.setdefault(id(binding.options), binding.options)
        return list(seen.values())
