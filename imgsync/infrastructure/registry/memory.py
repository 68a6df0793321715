"""Transient in-memory content store."""

from collections.abc import AsyncIterable, AsyncIterator

from imgsync.domain.image.model.descriptor import Descriptor
from imgsync.domain.shared.error import ManifestNotFoundError, NotFoundError
from imgsync.infrastructure.registry.content import manifest_descriptor, verify_digest


class MemoryStore:
    """Holds blobs and manifests for the duration of one operation."""

    def __init__(self) -> None:
        self._blobs: dict[str, bytes] = {}
        self._manifests: dict[str, tuple[Descriptor, bytes]] = {}
        self._tags: dict[str, str] = {}

    async def has_blob(self, digest: str) -> bool:
        return digest in self._blobs

    async def put_blob(self, digest: str, chunks: AsyncIterable[bytes]) -> None:
        data = b"".join([chunk async for chunk in chunks])
        verify_digest(digest, data)
        self._blobs[digest] = data

    async def get_blob(self, digest: str) -> bytes:
        try:
            return self._blobs[digest]
        except KeyError:
            raise NotFoundError(f"Blob {digest} not in memory store") from None

    async def iter_blob(self, digest: str) -> AsyncIterator[bytes]:
        yield await self.get_blob(digest)

    async def put_manifest(self, reference: str, media_type: str, body: bytes) -> Descriptor:
        descriptor = manifest_descriptor(body, media_type)
        self._manifests[descriptor.digest] = (descriptor, body)
        if reference != descriptor.digest:
            self._tags[reference] = descriptor.digest
        return descriptor

    async def get_manifest(self, reference: str) -> tuple[Descriptor, bytes]:
        digest = self._tags.get(reference, reference)
        try:
            return self._manifests[digest]
        except KeyError:
            raise ManifestNotFoundError(f"Manifest {reference} not in memory store") from None

    @property
    def blob_count(self) -> int:
        return len(self._blobs)

    @property
    def tags(self) -> dict[str, str]:
        return dict(self._tags)
