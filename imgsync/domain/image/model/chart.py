"""Charts and the images discovered in them."""

from imgsync.domain.image.model.image import Image, ImageRef, PatchMode, parse_image_ref
from imgsync.domain.shared.model.value import ValueObject


class Chart(ValueObject):
    """A deployable package bundle that references images.

    `repository` is where the packaged chart itself is published as an OCI
    artifact (e.g. "oci://ghcr.io/org/charts"); charts without one are only a
    source of image references.
    """

    name: str
    version: str
    repository: str | None = None

    def artifact(self) -> Image | None:
        """The chart package as a registry artifact, tagged with its version."""
        if not self.repository:
            return None
        location = self.repository.removeprefix("oci://").rstrip("/")
        # OCI tags cannot carry "+", helm publishes semver build metadata with "_"
        tag = self.version.replace("+", "_")
        image = parse_image_ref(f"{location}/{self.name}:{tag}")
        return image.with_patch(PatchMode.EXCLUDED)

    def __str__(self) -> str:
        return f"{self.name}:{self.version}"


# Images listed directly in configuration are attributed to this chart
PLACEHOLDER_CHART = Chart(name="images", version="0.0.0")


class ImageEntry(ValueObject):
    """An image found in a chart and the value paths it was found under."""

    image: Image
    value_paths: tuple[str, ...] = ()


ChartImages = dict[Chart, dict[ImageRef, ImageEntry]]
