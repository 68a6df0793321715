from imgsync.domain.image.model.chart import Chart
from imgsync.domain.image.model.image import PatchMode


class TestChartArtifact:
    def test_packaged_chart_is_an_oci_artifact(self):
        chart = Chart(name="web", version="1.0.0+build.7", repository="oci://ghcr.io/org/charts/")

        artifact = chart.artifact()

        assert artifact.ref == "ghcr.io/org/charts/web:1.0.0_build.7"
        assert artifact.name == "org/charts/web"
        assert artifact.patch is PatchMode.EXCLUDED

    def test_chart_without_repository_has_no_artifact(self):
        assert Chart(name="web", version="1.0.0").artifact() is None

    def test_repository_is_part_of_chart_identity(self):
        plain = Chart(name="web", version="1.0.0")
        packaged = Chart(name="web", version="1.0.0", repository="oci://ghcr.io/org/charts")
        assert plain != packaged
        assert str(packaged) == "web:1.0.0"
