from imgsync.domain.patch.model.artifact import ArtifactPaths, artifact_stem
from imgsync.domain.patch.model.decision import Decision, DecisionReason, PatchDecision
from imgsync.domain.patch.model.report import ScanReport

__all__ = [
    "ArtifactPaths",
    "Decision",
    "DecisionReason",
    "PatchDecision",
    "ScanReport",
    "artifact_stem",
]
