from imgsync.domain.image.model.chart import PLACEHOLDER_CHART, Chart, ChartImages, ImageEntry
from imgsync.domain.image.model.descriptor import Descriptor, Platform
from imgsync.domain.image.model.image import Image, ImageRef, PatchMode, parse_image_ref
from imgsync.domain.image.model.registry import Registry
from imgsync.domain.image.model.rules import ImageRules, Mirror, ModifyRule, RefRule

__all__ = [
    "PLACEHOLDER_CHART",
    "Chart",
    "ChartImages",
    "Descriptor",
    "Image",
    "ImageEntry",
    "ImageRef",
    "ImageRules",
    "Mirror",
    "ModifyRule",
    "PatchMode",
    "Platform",
    "RefRule",
    "Registry",
    "parse_image_ref",
]
