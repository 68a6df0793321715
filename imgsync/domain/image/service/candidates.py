"""Import candidate selection."""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from imgsync.domain.image.model.chart import PLACEHOLDER_CHART, Chart, ChartImages, ImageEntry
from imgsync.domain.image.model.image import Image, ImageRef
from imgsync.domain.image.model.registry import Registry
from imgsync.domain.shared.model.value import ValueObject


class ImportCandidate(ValueObject):
    """An image and the registries it must be copied to."""

    image: Image
    targets: tuple[Registry, ...]


@dataclass
class ImportSelection:
    """Result of candidate selection."""

    images: dict[ImageRef, ImportCandidate] = field(default_factory=dict)
    charts: list[Chart] = field(default_factory=list)


def with_static_images(chart_images: ChartImages, images: Iterable[Image]) -> ChartImages:
    """Attach images from configuration to the placeholder chart."""
    result = dict(chart_images)
    static = {image.ref: ImageEntry(image=image) for image in images}
    if static:
        result[PLACEHOLDER_CHART] = {**result.get(PLACEHOLDER_CHART, {}), **static}
    return result


def select_import_candidates(
    chart_images: ChartImages,
    matrices: Mapping[ImageRef, Mapping[Registry, bool]],
    include_all: bool = False,
) -> ImportSelection:
    """Pick images missing from at least one registry.

    Each candidate targets exactly the registries it is missing from, or every
    registry when `include_all` forces a full resync. An image referenced by
    several charts is selected once (first occurrence wins).
    """
    selection = ImportSelection()
    for chart, entries in chart_images.items():
        contributes = False
        for ref, entry in entries.items():
            matrix = matrices.get(ref, {})
            targets = tuple(
                registry for registry, present in matrix.items() if include_all or not present
            )
            if not targets:
                continue
            contributes = True
            selection.images.setdefault(ref, ImportCandidate(image=entry.image, targets=targets))
        if contributes:
            selection.charts.append(chart)
    return selection
