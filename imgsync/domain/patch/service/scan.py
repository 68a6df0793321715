"""ScanCoordinator - scans images and decides push-only vs patch-then-push."""

import logging

from imgsync.domain.image.model.image import Image
from imgsync.domain.image.model.registry import Registry
from imgsync.domain.patch.model.decision import DecisionReason, PatchDecision
from imgsync.domain.patch.model.report import ScanReport
from imgsync.domain.patch.port.patcher import Patcher
from imgsync.domain.patch.port.scanner import Scanner
from imgsync.domain.shared.service import Service

logger = logging.getLogger(__name__)

# OS families copa knows how to patch
SUPPORTED_OS_FAMILIES = frozenset(
    {
        "alpine",
        "debian",
        "ubuntu",
        "cbl-mariner",
        "azurelinux",
        "redhat",
        "rocky",
        "centos",
        "amazon",
        "oracle",
        "alma",
    }
)


class ScanCoordinator(Service):
    """Invokes the scanner and classifies its result.

    | patch    | supported OS | OS-pkg findings | decision            |
    |----------|--------------|-----------------|---------------------|
    | excluded | -            | -               | push (no scan)      |
    | other    | no           | -               | push, warn          |
    | other    | yes          | no              | push, warn          |
    | other    | yes          | yes             | patch, then push    |
    """

    scanner: Scanner
    patcher: Patcher
    architecture: str | None = None
    logger: logging.Logger = logger

    async def scan(
        self, image: Image, reference: str | None = None, registry: Registry | None = None
    ) -> ScanReport:
        """Scan `image`, or its copy at `reference` inside `registry`.

        The scanner reaches the registry with that registry's transport flags.
        Scanner failures propagate and end the batch.
        """
        ref = reference or image.ref
        registry = registry or Registry.endpoint(image.registry)
        self.logger.debug("Scanning %s", ref)
        return await self.scanner.scan(
            ref,
            architecture=image.architecture or self.architecture,
            insecure=registry.insecure,
            plain_http=registry.plain_http,
        )

    def classify(self, image: Image, report: ScanReport) -> PatchDecision:
        if not image.patch.allows_patching:
            return PatchDecision.push(DecisionReason.EXCLUDED)

        if not self.patcher.supported_os(report.os_family):
            decision = PatchDecision.push(DecisionReason.UNSUPPORTED_OS)
            self.logger.warning("%s image=%s os=%s", decision.warning, image.ref, report.os_family)
            return decision

        if not report.contains_os_pkgs():
            decision = PatchDecision.push(DecisionReason.NO_OS_PKGS)
            self.logger.warning("%s image=%s", decision.warning, image.ref)
            return decision

        self.logger.debug("Image does contain os-pkgs vulnerabilities: %s", image.ref)
        return PatchDecision.patch()

    async def decide(self, image: Image) -> tuple[PatchDecision, ScanReport | None]:
        """Scan unless excluded, then classify. Excluded images are never scanned."""
        if not image.patch.allows_patching:
            self.logger.debug("Image should not be patched: %s", image.ref)
            return PatchDecision.push(DecisionReason.EXCLUDED), None
        report = await self.scan(image)
        return self.classify(image, report), report
