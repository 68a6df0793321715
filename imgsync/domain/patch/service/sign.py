"""SignCoordinator - signs distributed images in every registry."""

import logging
from functools import partial

from imgsync.domain.image.model.image import Image
from imgsync.domain.image.model.registry import Registry
from imgsync.domain.image.port.registry_client import RegistryClientFactory
from imgsync.domain.patch.port.signer import Signer
from imgsync.domain.shared.service import Service
from imgsync.util.concurrency import gather_bounded

logger = logging.getLogger(__name__)


class SignCoordinator(Service):
    """Signs each image by digest in each registry.

    Insecure/plain-HTTP allowances follow the registry's own transport flags,
    widened by the global overrides. Any failure stops the remaining signing work.
    """

    signer: Signer
    clients: RegistryClientFactory
    key_ref: str
    key_ref_pass: str | None = None
    allow_insecure: bool = False
    allow_http_registry: bool = False
    concurrency: int = 4
    logger: logging.Logger = logger

    async def _sign_one(self, image: Image, registry: Registry) -> str:
        client = self.clients.for_registry(registry)
        descriptor = await client.fetch(image.name, image.target_reference)
        reference = f"{registry.url}/{image.name}@{descriptor.digest}"
        await self.signer.sign(
            reference,
            key_ref=self.key_ref,
            passphrase=self.key_ref_pass,
            allow_insecure=registry.insecure or self.allow_insecure,
            allow_http=registry.plain_http or self.allow_http_registry,
        )
        self.logger.info("Signed %s", reference)
        return reference

    async def sign(self, images: list[Image], registries: list[Registry]) -> list[str]:
        """Sign every image in every registry; returns the signed references."""
        signed: list[str] = []
        for image in images:
            signed.extend(
                await gather_bounded(
                    [partial(self._sign_one, image, registry) for registry in registries],
                    self.concurrency,
                )
            )
        return signed
