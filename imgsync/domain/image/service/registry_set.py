"""RegistrySet - existence probing and push fan-out across target registries."""

import logging
from enum import StrEnum
from functools import partial
from pathlib import Path

from imgsync.domain.image.model.descriptor import Descriptor
from imgsync.domain.image.model.image import Image, ImageRef
from imgsync.domain.image.model.registry import Registry
from imgsync.domain.image.port.registry_client import RegistryClientFactory
from imgsync.domain.shared.error import ImgSyncError, RegistryUnreachableError
from imgsync.domain.shared.service import Service
from imgsync.util.concurrency import gather_bounded

logger = logging.getLogger(__name__)

ExistenceMatrix = dict[Registry, bool]


class Presence(StrEnum):
    EXISTS = "exists"
    ABSENT = "absent"
    UNREACHABLE = "unreachable"


class RegistrySet(Service):
    """Fans registry operations out over every configured registry.

    Every existence check or push of one call shares a single pool of `concurrency`
    workers, however many images and registries it spans. A failed check reads
    as "absent" unless `strict` is set, so one unreachable registry cannot block
    the decision for the others.

    Images are looked up and written under `Image.target_reference`: the tag, or
    the digest for a digest-only reference, which is never given a tag.
    """

    clients: RegistryClientFactory
    concurrency: int = 4
    strict: bool = False
    logger: logging.Logger = logger

    async def _check_one(self, image: Image, registry: Registry) -> Presence:
        client = self.clients.for_registry(registry)
        try:
            found = await client.exist(image.name, image.target_reference)
        except ImgSyncError as e:
            self.logger.debug("Existence check failed for %s in %s: %s", image.ref, registry.url, e)
            return Presence.UNREACHABLE
        return Presence.EXISTS if found else Presence.ABSENT

    async def _check_many(
        self, images: list[Image], registries: list[Registry]
    ) -> list[dict[Registry, Presence]]:
        pairs = [(image, registry) for image in images for registry in registries]
        results = await gather_bounded(
            [partial(self._check_one, image, registry) for image, registry in pairs],
            self.concurrency,
        )
        width = len(registries)
        return [
            dict(zip(registries, results[i * width : (i + 1) * width])) for i in range(len(images))
        ]

    def _matrix(self, image: Image, results: dict[Registry, Presence]) -> ExistenceMatrix:
        unreachable = [r.url for r, result in results.items() if result is Presence.UNREACHABLE]
        if unreachable and self.strict:
            raise RegistryUnreachableError(
                f"Could not determine whether {image.ref} exists in: {', '.join(unreachable)}"
            )
        return {registry: result is Presence.EXISTS for registry, result in results.items()}

    async def check(self, image: Image, registries: list[Registry]) -> dict[Registry, Presence]:
        """Check every registry for `image`, keeping failures distinct from absence."""
        (results,) = await self._check_many([image], registries)
        return results

    async def exists(self, image: Image, registries: list[Registry]) -> ExistenceMatrix:
        """Existence matrix for one image. Never cached."""
        return self._matrix(image, await self.check(image, registries))

    async def existence(
        self, images: list[Image], registries: list[Registry]
    ) -> dict[ImageRef, ExistenceMatrix]:
        """Existence matrices for many images, keyed by canonical reference."""
        results = await self._check_many(images, registries)
        return {image.ref: self._matrix(image, result) for image, result in zip(images, results)}

    async def push(
        self,
        image: Image,
        registries: list[Registry] | tuple[Registry, ...],
        *,
        architecture: str | None = None,
        archive: Path | None = None,
    ) -> dict[Registry, Descriptor]:
        """Copy `image` into every registry; the first failure propagates.

        With `archive`, the patched image-layout tarball is uploaded instead of
        copying from the image's own registry.
        """
        source = Registry.endpoint(image.registry)
        destination = image.target_reference

        async def one(registry: Registry) -> Descriptor:
            client = self.clients.for_registry(registry)
            if archive is not None:
                descriptor = await client.push_archive(archive, image.name, destination)
            else:
                descriptor = await client.push(
                    source,
                    image.name,
                    destination,
                    architecture or image.architecture,
                    source_ref=image.reference,
                )
            self.logger.info("Pushed %s to %s (%s)", image.ref, registry.url, descriptor.digest)
            return descriptor

        descriptors = await gather_bounded(
            [partial(one, registry) for registry in registries], self.concurrency
        )
        return dict(zip(registries, descriptors))
