"""Port for discovering images in charts."""

from abc import abstractmethod
from typing import Protocol, runtime_checkable

from imgsync.domain.image.model.chart import Chart, ChartImages
from imgsync.domain.image.model.rules import ImageRules
from imgsync.domain.shared.port import Port


@runtime_checkable
class ChartDiscovery(Port, Protocol):
    """Produces chart -> image -> value paths."""

    @abstractmethod
    async def discover(self) -> ChartImages: ...

    @abstractmethod
    def rules(self) -> dict[Chart, ImageRules]:
        """Per-chart reference rules to apply after discovery."""
        ...
