"""Immutable snapshot of discovered images for rendering."""

from collections.abc import Mapping, Sequence

from imgsync.domain.image.model.chart import ChartImages
from imgsync.domain.image.model.image import ImageRef
from imgsync.domain.image.model.registry import Registry
from imgsync.domain.shared.model.value import ValueObject


class OverviewRow(ValueObject):
    chart: str
    image: str
    value_paths: tuple[str, ...]
    patch: str
    presence: tuple[bool, ...]  # aligned with Overview.registries


class Overview(ValueObject):
    """A finalized copy handed to renderers running concurrently with the pipeline."""

    registries: tuple[str, ...]
    rows: tuple[OverviewRow, ...]

    @property
    def missing(self) -> int:
        return sum(1 for row in self.rows if not all(row.presence))


def build_overview(
    chart_images: ChartImages,
    matrices: Mapping[ImageRef, Mapping[Registry, bool]],
    registries: Sequence[Registry],
) -> Overview:
    rows = []
    for chart, entries in chart_images.items():
        for ref, entry in entries.items():
            matrix = matrices.get(ref, {})
            rows.append(
                OverviewRow(
                    chart=str(chart),
                    image=ref,
                    value_paths=entry.value_paths,
                    patch=entry.image.patch.value,
                    presence=tuple(matrix.get(registry, False) for registry in registries),
                )
            )
    return Overview(registries=tuple(r.name for r in registries), rows=tuple(rows))
