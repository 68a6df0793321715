"""Read-only content source over an OCI image-layout tarball."""

import asyncio
import json
import tarfile
from collections.abc import AsyncIterator
from pathlib import Path
from typing import IO

from imgsync.domain.image.model.descriptor import Descriptor
from imgsync.domain.shared.error import ManifestNotFoundError, NotFoundError, StorageUnavailableError
from imgsync.infrastructure.registry.content import (
    BLOB_CHUNK_SIZE,
    is_digest,
    manifest_descriptor,
    verify_digest,
)

_INDEX = "index.json"
_REF_NAME_ANNOTATIONS = ("org.opencontainers.image.ref.name", "io.containerd.image.name")


class OciLayoutArchive:
    """An image-layout tarball as produced by `docker save` (Docker 25+).

    `get_manifest` accepts a digest or a tag; a tag is matched against the
    ref-name annotations of `index.json`, and the only entry is used when
    nothing matches.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self._index: dict | None = None

    def _read_member(self, name: str) -> bytes:
        tar, member = self._open_member(name)
        with tar:
            return self._read_chunk(member, -1)

    def _open_member(self, name: str) -> tuple[tarfile.TarFile, IO[bytes]]:
        try:
            tar = tarfile.open(self.path)
        except (OSError, tarfile.TarError) as e:
            raise StorageUnavailableError(f"Cannot read archive {self.path}: {e}") from e
        try:
            member = tar.extractfile(name.removeprefix("./"))
        except KeyError:
            tar.close()
            raise NotFoundError(f"{name} not found in {self.path}") from None
        except (OSError, tarfile.TarError) as e:
            tar.close()
            raise StorageUnavailableError(f"Cannot read archive {self.path}: {e}") from e
        if member is None:
            tar.close()
            raise NotFoundError(f"{name} is not a file in {self.path}")
        return tar, member

    def _read_chunk(self, member: IO[bytes], size: int) -> bytes:
        try:
            return member.read(size)
        except (OSError, tarfile.TarError) as e:
            raise StorageUnavailableError(f"Cannot read archive {self.path}: {e}") from e

    async def _read(self, name: str) -> bytes:
        return await asyncio.to_thread(self._read_member, name)

    async def index(self) -> dict:
        if self._index is None:
            self._index = json.loads(await self._read(_INDEX))
        return self._index

    async def _root(self, reference: str) -> dict:
        entries = (await self.index()).get("manifests") or []
        for entry in entries:
            names = [(entry.get("annotations") or {}).get(key, "") for key in _REF_NAME_ANNOTATIONS]
            if any(n == reference or n.endswith(f":{reference}") for n in names if n):
                return entry
        if len(entries) == 1:
            return entries[0]
        raise ManifestNotFoundError(f"No manifest tagged {reference} in {self.path}")

    @staticmethod
    def _blob_path(digest: str) -> str:
        algorithm, _, encoded = digest.partition(":")
        return f"blobs/{algorithm}/{encoded}"

    async def get_blob(self, digest: str) -> bytes:
        data = await self._read(self._blob_path(digest))
        verify_digest(digest, data)
        return data

    async def iter_blob(self, digest: str) -> AsyncIterator[bytes]:
        """Read a blob in chunks without loading the member whole."""
        tar, member = await asyncio.to_thread(self._open_member, self._blob_path(digest))
        try:
            while chunk := await asyncio.to_thread(self._read_chunk, member, BLOB_CHUNK_SIZE):
                yield chunk
        finally:
            tar.close()

    async def get_manifest(self, reference: str) -> tuple[Descriptor, bytes]:
        media_type = None
        if not is_digest(reference):
            entry = await self._root(reference)
            reference, media_type = entry["digest"], entry.get("mediaType")
        body = await self.get_blob(reference)
        return manifest_descriptor(body, media_type), body
