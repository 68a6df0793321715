"""PatchCoordinator - runs the patcher over the images selected for patching."""

import logging
from collections.abc import Mapping
from pathlib import Path

from imgsync.domain.image.model.image import Image, ImageRef
from imgsync.domain.patch.port.patcher import Patcher
from imgsync.domain.shared.error import PatchError
from imgsync.domain.shared.service import Service

logger = logging.getLogger(__name__)


class PatchCoordinator(Service):
    """Patches images one at a time against a single patch backend.

    With `ignore_errors`, a failing image is logged and skipped; it stays in its
    pre-patch state and is still pushed. Otherwise the first failure ends the batch.
    """

    patcher: Patcher
    ignore_errors: bool = False
    logger: logging.Logger = logger

    async def patch(
        self,
        images: list[Image],
        prescan_paths: Mapping[ImageRef, Path],
        archive_paths: Mapping[ImageRef, Path],
    ) -> list[ImageRef]:
        """Patch every image; returns the refs that failed (only with ignore_errors)."""
        failed: list[ImageRef] = []
        for image in images:
            archive = archive_paths[image.ref]
            try:
                await self.patcher.patch(image, prescan_paths[image.ref], archive)
            except PatchError as e:
                if not self.ignore_errors:
                    raise
                self.logger.warning("Patching %s failed, skipping: %s", image.ref, e)
                failed.append(image.ref)
                continue
            self.logger.info("Patched %s -> %s", image.ref, archive)
        return failed
