"""Content-addressed graph copy between a source and a target store."""

import hashlib
import json
import logging
from collections.abc import AsyncIterable, AsyncIterator
from typing import Protocol

from imgsync.domain.image.model.descriptor import OCI_MANIFEST, Descriptor, Platform
from imgsync.domain.shared.error import DigestMismatchError, PlatformNotFoundError

logger = logging.getLogger(__name__)

# Blobs move between stores in pieces of this size; layers are never held whole
BLOB_CHUNK_SIZE = 4 * 1024 * 1024


def compute_digest(data: bytes, algorithm: str = "sha256") -> str:
    return f"{algorithm}:{hashlib.new(algorithm, data).hexdigest()}"


def verify_digest(expected: str, data: bytes) -> None:
    """Raises DigestMismatchError if `data` does not hash to `expected`."""
    algorithm, _, _ = expected.partition(":")
    actual = compute_digest(data, algorithm)
    if actual != expected:
        raise DigestMismatchError(expected, actual)


def is_digest(reference: str) -> bool:
    return reference.startswith(("sha256:", "sha512:"))


async def verified_chunks(expected: str, chunks: AsyncIterable[bytes]) -> AsyncIterator[bytes]:
    """Pass `chunks` through, raising DigestMismatchError after the last one if the
    content does not hash to `expected`."""
    algorithm, _, _ = expected.partition(":")
    hasher = hashlib.new(algorithm)
    async for chunk in chunks:
        hasher.update(chunk)
        yield chunk
    actual = f"{algorithm}:{hasher.hexdigest()}"
    if actual != expected:
        raise DigestMismatchError(expected, actual)


def manifest_descriptor(body: bytes, media_type: str | None = None) -> Descriptor:
    """Descriptor of a raw manifest, using its own mediaType when none is given."""
    if not media_type:
        media_type = json.loads(body).get("mediaType") or OCI_MANIFEST
    return Descriptor(media_type=media_type, digest=compute_digest(body), size=len(body))


class ContentSource(Protocol):
    async def get_manifest(self, reference: str) -> tuple[Descriptor, bytes]: ...

    async def get_blob(self, digest: str) -> bytes: ...

    def iter_blob(self, digest: str) -> AsyncIterator[bytes]: ...


class ContentTarget(Protocol):
    async def has_blob(self, digest: str) -> bool: ...

    async def put_blob(self, digest: str, chunks: AsyncIterable[bytes]) -> None: ...

    async def put_manifest(self, reference: str, media_type: str, body: bytes) -> Descriptor: ...


async def select_platform(
    source: ContentSource,
    root: Descriptor,
    body: bytes,
    platform: Platform,
    reference: str,
) -> tuple[Descriptor, bytes]:
    """Narrow `root` to the manifest for `platform`.

    For an index, pick the first child whose platform matches. For a single
    manifest, check its config instead.

    Raises:
        PlatformNotFoundError: If nothing matches.
    """
    doc = json.loads(body)
    if root.is_index:
        for child in doc.get("manifests", []):
            child_platform = child.get("platform")
            if child_platform and platform.matches(Platform.model_validate(child_platform)):
                return await source.get_manifest(child["digest"])
        raise PlatformNotFoundError(reference, str(platform))

    config_digest = (doc.get("config") or {}).get("digest")
    if config_digest:
        config = json.loads(await source.get_blob(config_digest))
        candidate = Platform(
            architecture=config.get("architecture", ""),
            os=config.get("os", ""),
            variant=config.get("variant"),
            os_version=config.get("os.version"),
            os_features=tuple(config.get("os.features") or ()),
        )
        if platform.matches(candidate):
            return root, body
    raise PlatformNotFoundError(reference, str(platform))


async def _copy_blobs(source: ContentSource, target: ContentTarget, doc: dict) -> None:
    blobs = [doc["config"]] if doc.get("config") else []
    blobs.extend(doc.get("layers") or [])
    for blob in blobs:
        digest = blob["digest"]
        if await target.has_blob(digest):
            logger.debug("Blob %s already present", digest)
            continue
        await target.put_blob(digest, verified_chunks(digest, source.iter_blob(digest)))


async def _copy_children(
    source: ContentSource, target: ContentTarget, descriptor: Descriptor, body: bytes
) -> None:
    doc = json.loads(body)
    if not descriptor.is_index:
        await _copy_blobs(source, target, doc)
        return
    for child in doc.get("manifests", []):
        child_descriptor, child_body = await source.get_manifest(child["digest"])
        await _copy_children(source, target, child_descriptor, child_body)
        await target.put_manifest(child_descriptor.digest, child_descriptor.media_type, child_body)


async def copy_graph(
    source: ContentSource,
    src_ref: str,
    target: ContentTarget,
    dst_ref: str,
    platform: Platform | None = None,
) -> Descriptor:
    """Copy the manifest at `src_ref` and everything below it, then tag it `dst_ref`.

    Blobs come before the manifests that reference them; the root is written last.
    A digest `dst_ref` writes the root by its own digest and sets no tag; after
    platform selection that is the selected manifest's digest.
    """
    root, body = await source.get_manifest(src_ref)
    if platform is not None:
        root, body = await select_platform(source, root, body, platform, src_ref)
    await _copy_children(source, target, root, body)
    if is_digest(dst_ref):
        if dst_ref != root.digest:
            logger.debug("Writing %s as %s after platform selection", dst_ref, root.digest)
        dst_ref = root.digest
    return await target.put_manifest(dst_ref, root.media_type, body)
