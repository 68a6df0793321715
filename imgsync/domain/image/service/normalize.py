"""Reference normalization: exclusion, patch exclusion, rewrite and mirrors."""

import logging
from collections.abc import Mapping, Sequence

from imgsync.domain.image.model.chart import Chart, ChartImages, ImageEntry
from imgsync.domain.image.model.image import Image, ImageRef, PatchMode, parse_image_ref
from imgsync.domain.image.model.rules import ImageRules, Mirror

logger = logging.getLogger(__name__)


def _rewrite(image: Image, rules: ImageRules, log: logging.Logger) -> Image | None:
    ref = image.ref

    if any(ref.startswith(rule.ref) for rule in rules.exclude):
        log.info("Excluded image %s", ref)
        return None

    if any(ref.startswith(rule.ref) for rule in rules.exclude_copacetic):
        log.info("Excluded image %s from patching", ref)
        image = image.with_patch(PatchMode.EXCLUDED)

    for rule in rules.modify:
        if rule.from_ and ref.startswith(rule.from_):
            rewritten = parse_image_ref(ref.replace(rule.from_, rule.to, 1))
            image = rewritten.model_copy(
                update={
                    "digest": image.digest,
                    "use_digest": image.use_digest,
                    "tag": image.tag,
                    "patch": image.patch,
                    "architecture": image.architecture,
                }
            )
            log.info("Modified image reference %s -> %s", ref, image.ref)
            break

    return image


def _apply_mirror(image: Image, mirrors: Sequence[Mirror]) -> Image:
    for mirror in mirrors:
        if mirror.registry == image.registry:
            return image.model_copy(update={"registry": mirror.mirror})
    return image


def normalize_references(
    chart_images: ChartImages,
    rules: Mapping[Chart, ImageRules],
    mirrors: Sequence[Mirror] = (),
    log: logging.Logger = logger,
) -> ChartImages:
    """Apply chart rules and mirrors once, returning a freshly keyed collection.

    Images that collapse onto the same reference within a chart merge their
    value paths.
    """
    result: ChartImages = {}
    for chart, entries in chart_images.items():
        chart_rules = rules.get(chart, ImageRules())
        keyed: dict[ImageRef, ImageEntry] = {}
        for entry in entries.values():
            image = _rewrite(entry.image, chart_rules, log)
            if image is None:
                continue
            image = _apply_mirror(image, mirrors)
            existing = keyed.get(image.ref)
            paths = entry.value_paths
            if existing is not None:
                paths = existing.value_paths + tuple(p for p in paths if p not in existing.value_paths)
                image = existing.image
            keyed[image.ref] = ImageEntry(image=image, value_paths=paths)
        result[chart] = keyed
    return result
