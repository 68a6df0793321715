"""ArtifactStore - report/archive paths, report writing and scoped cleanup."""

import logging
from collections.abc import Iterable
from pathlib import Path

from imgsync.domain.image.model.image import Image
from imgsync.domain.patch.model.artifact import ArtifactPaths
from imgsync.domain.patch.model.report import ScanReport
from imgsync.domain.shared.error import ArtifactWriteError
from imgsync.domain.shared.service import Service

logger = logging.getLogger(__name__)


class ArtifactStore(Service):
    reports_dir: Path
    tars_dir: Path
    logger: logging.Logger = logger

    def paths_for(self, image: Image) -> ArtifactPaths:
        return ArtifactPaths.for_image(image, self.reports_dir, self.tars_dir)

    def prepare(self) -> None:
        """Create the output folders."""
        try:
            self.reports_dir.mkdir(parents=True, exist_ok=True)
            self.tars_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ArtifactWriteError(f"Cannot create output folders: {e}") from e

    def write_report(self, path: Path, report: ScanReport) -> Path:
        """Write a report. Write failures are always fatal."""
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(report.to_json())
        except OSError as e:
            raise ArtifactWriteError(f"Cannot write report {path}: {e}") from e
        self.logger.debug("Wrote report %s", path)
        return path

    def cleanup(
        self, paths: Iterable[ArtifactPaths], *, reports: bool, archives: bool
    ) -> None:
        """Best-effort removal of generated artifacts; errors are only logged."""
        targets: list[Path] = []
        for p in paths:
            if reports:
                targets.extend(p.reports)
            if archives:
                targets.append(p.archive)
        for target in targets:
            try:
                target.unlink(missing_ok=True)
            except OSError as e:
                self.logger.debug("Could not remove %s: %s", target, e)
