"""Chart discovery from charts listed in configuration."""

import logging

from imgsync.config import ChartConfig
from imgsync.domain.image.model.chart import Chart, ChartImages, ImageEntry
from imgsync.domain.image.model.image import parse_image_ref
from imgsync.domain.image.model.rules import ImageRules
from imgsync.domain.image.port.discovery import ChartDiscovery

logger = logging.getLogger(__name__)


class ConfigChartDiscovery(ChartDiscovery):
    """Reads chart -> image -> value paths straight from configuration.

    Chart rendering and value parsing happen upstream; each chart entry already
    lists the image references it uses. The same reference listed twice in one
    chart has its value paths merged.
    """

    def __init__(self, charts: list[ChartConfig]):
        self._charts = charts

    async def discover(self) -> ChartImages:
        found: ChartImages = {}
        for chart_config in self._charts:
            chart = chart_config.to_chart()
            entries = found.setdefault(chart, {})
            for item in chart_config.images:
                image = parse_image_ref(item.ref)
                existing = entries.get(image.ref)
                paths = tuple(item.value_paths)
                if existing is not None:
                    paths = existing.value_paths + tuple(
                        p for p in paths if p not in existing.value_paths
                    )
                entries[image.ref] = ImageEntry(image=image, value_paths=paths)
            logger.debug("Chart %s references %d images", chart, len(entries))
        return found

    def rules(self) -> dict[Chart, ImageRules]:
        return {
            c.to_chart(): c.rules
            for c in self._charts
            if c.rules != ImageRules()
        }
