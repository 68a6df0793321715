"""Port for progress and overview output."""

from abc import abstractmethod
from typing import Protocol, runtime_checkable

from imgsync.domain.image.model.overview import Overview
from imgsync.domain.shared.port import Port


@runtime_checkable
class ProgressReporter(Port, Protocol):
    """Receives pipeline progress. Implementations must not block the event loop."""

    @abstractmethod
    async def overview(self, snapshot: Overview) -> None:
        """Render an overview of images and their presence per registry."""
        ...

    @abstractmethod
    def start(self, description: str, total: int) -> None: ...

    @abstractmethod
    def advance(self) -> None: ...

    @abstractmethod
    def finish(self) -> None: ...


class NullReporter(ProgressReporter):
    """Discards all progress."""

    async def overview(self, snapshot: Overview) -> None:
        return None

    def start(self, description: str, total: int) -> None:
        return None

    def advance(self) -> None:
        return None

    def finish(self) -> None:
        return None
