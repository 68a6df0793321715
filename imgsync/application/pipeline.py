"""Pipeline - sequences existence checks, scan/patch/push decisions and signing."""

import asyncio
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from imgsync.domain.image.model.chart import Chart, ChartImages
from imgsync.domain.image.model.descriptor import Descriptor
from imgsync.domain.image.model.image import Image, ImageRef, PatchMode
from imgsync.domain.image.model.overview import Overview, build_overview
from imgsync.domain.image.model.registry import Registry
from imgsync.domain.image.model.rules import ImageRules, Mirror
from imgsync.domain.image.service.candidates import (
    ImportCandidate,
    select_import_candidates,
    with_static_images,
)
from imgsync.domain.image.service.normalize import normalize_references
from imgsync.domain.image.service.registry_set import RegistrySet
from imgsync.domain.patch.model.artifact import ArtifactPaths
from imgsync.domain.patch.model.decision import DecisionReason, PatchDecision
from imgsync.domain.patch.service.artifacts import ArtifactStore
from imgsync.domain.patch.service.patch import PatchCoordinator
from imgsync.domain.patch.service.scan import ScanCoordinator
from imgsync.domain.patch.service.sign import SignCoordinator
from imgsync.domain.shared.port.reporter import NullReporter, ProgressReporter
from imgsync.domain.shared.service import Service

logger = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    """What one batch did."""

    candidates: dict[ImageRef, ImportCandidate] = field(default_factory=dict)
    charts: list[Chart] = field(default_factory=list)
    decisions: dict[ImageRef, PatchDecision] = field(default_factory=dict)
    artifacts: dict[ImageRef, ArtifactPaths] = field(default_factory=dict)
    pushed: dict[ImageRef, dict[Registry, Descriptor]] = field(default_factory=dict)
    charts_pushed: dict[ImageRef, dict[Registry, Descriptor]] = field(default_factory=dict)
    patch_failures: list[ImageRef] = field(default_factory=list)
    signed: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    overview: Overview | None = None

    @property
    def patched(self) -> list[ImageRef]:
        return [ref for ref, d in self.decisions.items() if d.needs_patch]


class Pipeline(Service):
    """Runs one batch.

    Modes:
    - import disabled: discovery and existence only
    - import enabled: contributing charts published as OCI artifacts are copied
      (and signed) first, then the images:
      - import-only: push all candidates, then sign if enabled
      - patch-enabled: scan, decide, patch, push, rescan patched, sign if enabled

    Per image, scan -> patch -> push -> rescan -> sign is strictly ordered.
    Generated reports/archives are removed at exit when the clean flags are set,
    whether the batch succeeded or not. The first fatal error is raised.
    """

    registries: list[Registry]
    registry_set: RegistrySet
    scanner: ScanCoordinator | None = None
    patcher: PatchCoordinator | None = None
    signer: SignCoordinator | None = None
    artifacts: ArtifactStore | None = None
    reporter: ProgressReporter = field(default_factory=NullReporter)
    mirrors: tuple[Mirror, ...] = ()
    import_enabled: bool = False
    include_all: bool = False
    architecture: str | None = None
    clean_reports: bool = False
    clean_archives: bool = False
    logger: logging.Logger = logger

    @property
    def patching_enabled(self) -> bool:
        return self.scanner is not None and self.patcher is not None and self.artifacts is not None

    async def run(
        self,
        chart_images: ChartImages,
        rules: Mapping[Chart, ImageRules] | None = None,
        static_images: Iterable[Image] = (),
    ) -> PipelineResult:
        result = PipelineResult()

        normalized = normalize_references(chart_images, rules or {}, self.mirrors, self.logger)
        normalized = with_static_images(normalized, static_images)

        images: dict[ImageRef, Image] = {}
        for entries in normalized.values():
            for ref, entry in entries.items():
                images.setdefault(ref, entry.image)

        self.logger.debug(
            "Checking presence of %d images in %d registries", len(images), len(self.registries)
        )
        matrices = await self.registry_set.existence(list(images.values()), self.registries)
        selection = select_import_candidates(normalized, matrices, self.include_all)
        result.candidates = dict(selection.images)
        result.charts = selection.charts

        # Renderers get a finalized copy; the pipeline keeps mutating its own state
        result.overview = build_overview(normalized, matrices, self.registries)
        overview_task = asyncio.create_task(
            self.reporter.overview(result.overview), name="imgsync-overview"
        )
        self.logger.debug("Finished checking image availability in registries")

        try:
            if not self.import_enabled:
                self.logger.debug("Import disabled, nothing to distribute")
                return result
            await self._import_charts(result)
            if self.patching_enabled:
                self.logger.debug("Import enabled and patching enabled")
                await self._patch_and_push(result, self.scanner, self.patcher, self.artifacts)
            else:
                self.logger.debug("Only import enabled")
                await self._push_all(result)
        finally:
            (outcome,) = await asyncio.gather(overview_task, return_exceptions=True)
            if isinstance(outcome, Exception):
                self.logger.warning("Rendering the image overview failed: %s", outcome)

        return result

    async def _push(
        self, ref: ImageRef, candidate: ImportCandidate, result: PipelineResult, **kwargs
    ) -> None:
        result.pushed[ref] = await self.registry_set.push(
            candidate.image, candidate.targets, architecture=self.architecture, **kwargs
        )

    async def _sign(self, images: list[Image], result: PipelineResult) -> None:
        if self.signer is None or not images:
            return
        self.logger.debug("Signing %d artifacts", len(images))
        result.signed.extend(await self.signer.sign(images, self.registries))

    async def _import_charts(self, result: PipelineResult) -> None:
        """Copy the packaged charts that contributed candidates, then sign them."""
        artifacts = [a for a in (chart.artifact() for chart in result.charts) if a is not None]
        if not artifacts:
            return
        matrices = await self.registry_set.existence(artifacts, self.registries)
        pushed: list[Image] = []
        for artifact in artifacts:
            targets = [
                registry
                for registry, present in matrices[artifact.ref].items()
                if self.include_all or not present
            ]
            if not targets:
                self.logger.debug("Chart %s present in every registry", artifact.ref)
                continue
            result.charts_pushed[artifact.ref] = await self.registry_set.push(artifact, targets)
            pushed.append(artifact)
        await self._sign(pushed, result)

    async def _push_all(self, result: PipelineResult) -> None:
        for ref, candidate in result.candidates.items():
            await self._push(ref, candidate, result)
        await self._sign([c.image for c in result.candidates.values()], result)

    def _record(self, ref: ImageRef, decision: PatchDecision, result: PipelineResult) -> None:
        result.decisions[ref] = decision
        if decision.warning:
            result.warnings.append(f"{ref}: {decision.warning}")
        if not decision.needs_patch:
            candidate = result.candidates[ref]
            result.candidates[ref] = candidate.model_copy(
                update={"image": candidate.image.with_patch(PatchMode.EXCLUDED)}
            )

    async def _patch_and_push(
        self,
        result: PipelineResult,
        scanner: ScanCoordinator,
        patcher: PatchCoordinator,
        artifacts: ArtifactStore,
    ) -> None:
        result.artifacts = {
            ref: artifacts.paths_for(c.image) for ref, c in result.candidates.items()
        }
        try:
            artifacts.prepare()

            self.reporter.start("Scanning images before patching...", len(result.candidates))
            for ref, candidate in list(result.candidates.items()):
                decision, report = await scanner.decide(candidate.image)
                if report is not None:
                    artifacts.write_report(result.artifacts[ref].prescan, report)
                self._record(ref, decision, result)
                self.reporter.advance()
            self.reporter.finish()

            to_patch = [result.candidates[ref].image for ref in result.patched]
            failed = await patcher.patch(
                to_patch,
                {ref: paths.prescan for ref, paths in result.artifacts.items()},
                {ref: paths.archive for ref, paths in result.artifacts.items()},
            )
            for ref in failed:
                self._record(ref, PatchDecision.push(DecisionReason.PATCH_FAILED), result)
            result.patch_failures = failed

            patched = result.patched
            for ref in patched:
                image = result.candidates[ref].image
                if image.tag is None:
                    # New content cannot keep the source digest; publish under the patched tag
                    result.candidates[ref] = result.candidates[ref].model_copy(
                        update={"image": image.retagged(image.label)}
                    )
            for ref, candidate in result.candidates.items():
                if ref in patched:
                    await self._push(ref, candidate, result, archive=result.artifacts[ref].archive)
                else:
                    await self._push(ref, candidate, result)

            # Observational only: the decision is not revisited
            self.reporter.start("Scanning images after patching...", len(patched))
            for ref in patched:
                candidate = result.candidates[ref]
                image = candidate.image
                registry = candidate.targets[0]
                report = await scanner.scan(
                    image,
                    reference=registry.reference(image.name, image.target_reference),
                    registry=registry,
                )
                artifacts.write_report(result.artifacts[ref].postscan, report)
                self.reporter.advance()
            self.reporter.finish()

            await self._sign([c.image for c in result.candidates.values()], result)
        finally:
            if self.clean_reports or self.clean_archives:
                artifacts.cleanup(
                    result.artifacts.values(),
                    reports=self.clean_reports,
                    archives=self.clean_archives,
                )
