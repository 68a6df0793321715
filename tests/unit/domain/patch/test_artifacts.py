from pathlib import Path

import pytest

from imgsync.domain.image.model.image import Image
from imgsync.domain.patch.model.artifact import ArtifactPaths
from imgsync.domain.patch.model.report import ScanReport
from imgsync.domain.patch.service.artifacts import ArtifactStore
from imgsync.domain.shared.error import ArtifactWriteError


class TestArtifactPaths:
    def test_names_follow_name_and_tag(self, tmp_path):
        image = Image(registry="registry.local", repository="app", tag="1.0")

        paths = ArtifactPaths.for_image(image, tmp_path / "reports", tmp_path / "tars")

        assert paths.prescan == tmp_path / "reports" / "prescan-app:1.0.json"
        assert paths.postscan == tmp_path / "reports" / "postscan-app:1.0.json"
        assert paths.archive == tmp_path / "tars" / "app:1.0.tar"

    def test_slashes_are_flattened(self, tmp_path):
        image = Image(registry="ghcr.io", repository="org/tool", tag="2.3")

        paths = ArtifactPaths.for_image(image, tmp_path, tmp_path)

        assert paths.archive.name == "org-tool:2.3.tar"


class TestArtifactStore:
    @pytest.fixture
    def store(self, tmp_path: Path) -> ArtifactStore:
        return ArtifactStore(reports_dir=tmp_path / "reports", tars_dir=tmp_path / "tars")

    def test_write_report(self, store):
        store.prepare()
        path = store.reports_dir / "prescan-app:1.0.json"

        store.write_report(path, ScanReport(artifact_name="app:1.0"))

        assert '"ArtifactName": "app:1.0"' in path.read_text()

    def test_write_failure_is_fatal(self, store, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("")

        with pytest.raises(ArtifactWriteError):
            store.write_report(blocker / "report.json", ScanReport())

    def test_cleanup_respects_flags(self, store):
        store.prepare()
        image = Image(registry="registry.local", repository="app", tag="1.0")
        paths = store.paths_for(image)
        for p in (paths.prescan, paths.postscan, paths.archive):
            p.write_text("x")

        store.cleanup([paths], reports=True, archives=False)

        assert not paths.prescan.exists()
        assert not paths.postscan.exists()
        assert paths.archive.exists()

    def test_cleanup_ignores_missing_files(self, store):
        image = Image(registry="registry.local", repository="app", tag="1.0")

        store.cleanup([store.paths_for(image)], reports=True, archives=True)
