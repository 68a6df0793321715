from imgsync.domain.image.service.candidates import (
    ImportCandidate,
    ImportSelection,
    select_import_candidates,
    with_static_images,
)
from imgsync.domain.image.service.normalize import normalize_references
from imgsync.domain.image.service.registry_set import ExistenceMatrix, Presence, RegistrySet

__all__ = [
    "ExistenceMatrix",
    "ImportCandidate",
    "ImportSelection",
    "Presence",
    "RegistrySet",
    "normalize_references",
    "select_import_candidates",
    "with_static_images",
]
