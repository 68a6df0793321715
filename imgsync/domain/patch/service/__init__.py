from imgsync.domain.patch.service.artifacts import ArtifactStore
from imgsync.domain.patch.service.patch import PatchCoordinator
from imgsync.domain.patch.service.scan import SUPPORTED_OS_FAMILIES, ScanCoordinator
from imgsync.domain.patch.service.sign import SignCoordinator

__all__ = [
    "SUPPORTED_OS_FAMILIES",
    "ArtifactStore",
    "PatchCoordinator",
    "ScanCoordinator",
    "SignCoordinator",
]
