"""Push-or-patch decision."""

from enum import StrEnum

from imgsync.domain.shared.model.value import ValueObject


class Decision(StrEnum):
    PUSH = "push"
    PATCH = "patch"


class DecisionReason(StrEnum):
    EXCLUDED = "excluded"
    UNSUPPORTED_OS = "unsupported-os"
    NO_OS_PKGS = "no-os-pkgs"
    OS_PKGS = "os-pkgs"
    PATCH_FAILED = "patch-failed"


_WARNINGS = {
    DecisionReason.UNSUPPORTED_OS: "Image contains an unsupported OS. The image will not be patched.",
    DecisionReason.NO_OS_PKGS: "Image does not contain os-pkgs. The image will not be patched.",
    DecisionReason.PATCH_FAILED: "Patching failed. The image will be pushed unpatched.",
}


class PatchDecision(ValueObject):
    decision: Decision
    reason: DecisionReason

    @classmethod
    def push(cls, reason: DecisionReason) -> "PatchDecision":
        return cls(decision=Decision.PUSH, reason=reason)

    @classmethod
    def patch(cls) -> "PatchDecision":
        return cls(decision=Decision.PATCH, reason=DecisionReason.OS_PKGS)

    @property
    def needs_patch(self) -> bool:
        return self.decision is Decision.PATCH

    @property
    def warning(self) -> str | None:
        return _WARNINGS.get(self.reason)
