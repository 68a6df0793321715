"""Port for the OS-package patcher."""

from abc import abstractmethod
from pathlib import Path
from typing import Protocol, runtime_checkable

from imgsync.domain.image.model.image import Image
from imgsync.domain.shared.port import Port


@runtime_checkable
class Patcher(Port, Protocol):
    """Patch OS-package vulnerabilities out of an image."""

    @abstractmethod
    def supported_os(self, family: str | None) -> bool:
        """Whether images of this OS family can be patched."""
        ...

    @abstractmethod
    async def patch(self, image: Image, report: Path, archive: Path) -> Path:
        """Patch `image` using its prescan `report`, writing the result to `archive`.

        Raises:
            PatchError: If patching fails.
        """
        ...
