"""Port for talking to a content-addressable registry."""

from abc import abstractmethod
from pathlib import Path
from typing import Protocol, runtime_checkable

from imgsync.domain.image.model.descriptor import Descriptor
from imgsync.domain.image.model.registry import Registry
from imgsync.domain.shared.port import Port


@runtime_checkable
class RegistryClient(Port, Protocol):
    """Operations against one registry endpoint."""

    registry: Registry

    @abstractmethod
    async def fetch(self, name: str, tag: str) -> Descriptor:
        """Resolve a manifest descriptor without transferring blobs."""
        ...

    @abstractmethod
    async def exist(self, name: str, tag: str) -> bool:
        """True iff the manifest resolves.

        A missing manifest returns False. Any other failure raises, so callers
        that need to tell "absent" from "unreachable" can.
        """
        ...

    @abstractmethod
    async def pull(self, name: str, tag: str) -> Descriptor:
        """Copy the artifact into a transient in-memory store."""
        ...

    @abstractmethod
    async def push(
        self,
        source: Registry,
        name: str,
        tag: str,
        architecture: str | None = None,
        *,
        source_ref: str | None = None,
    ) -> Descriptor:
        """Copy `name:tag` (or `name@source_ref`) from `source` into this registry.

        A digest `tag` writes the manifest by digest and sets no tag.

        Raises:
            PlatformNotFoundError: If `architecture` matches nothing in the source.
        """
        ...

    @abstractmethod
    async def push_archive(self, archive: Path, name: str, tag: str) -> Descriptor:
        """Upload an OCI image-layout tarball and tag its root manifest."""
        ...


@runtime_checkable
class RegistryClientFactory(Port, Protocol):
    """Hands out a client per registry endpoint."""

    @abstractmethod
    def for_registry(self, registry: Registry) -> RegistryClient: ...
