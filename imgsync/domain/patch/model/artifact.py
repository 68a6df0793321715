"""Per-image artifact paths."""

from pathlib import Path

from imgsync.domain.image.model.image import Image
from imgsync.domain.shared.model.value import ValueObject


def artifact_stem(image: Image) -> str:
    """`<name>:<tag>` with path separators flattened; digest-only images use the digest."""
    return f"{image.name}:{image.label}".replace("/", "-")


class ArtifactPaths(ValueObject):
    """Where an image's reports and patched archive live."""

    prescan: Path
    postscan: Path
    archive: Path

    @classmethod
    def for_image(cls, image: Image, reports_dir: Path, tars_dir: Path) -> "ArtifactPaths":
        stem = artifact_stem(image)
        return cls(
            prescan=reports_dir / f"prescan-{stem}.json",
            postscan=reports_dir / f"postscan-{stem}.json",
            archive=tars_dir / f"{stem}.tar",
        )

    @property
    def reports(self) -> tuple[Path, Path]:
        return self.prescan, self.postscan
