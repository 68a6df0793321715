"""Content descriptors and platforms (OCI image-spec subset)."""

from pydantic import ConfigDict, Field

from imgsync.domain.shared.model.value import ValueObject

OCI_INDEX = "application/vnd.oci.image.index.v1+json"
OCI_MANIFEST = "application/vnd.oci.image.manifest.v1+json"
DOCKER_MANIFEST_LIST = "application/vnd.docker.distribution.manifest.list.v2+json"
DOCKER_MANIFEST = "application/vnd.docker.distribution.manifest.v2+json"

INDEX_MEDIA_TYPES = frozenset({OCI_INDEX, DOCKER_MANIFEST_LIST})
MANIFEST_MEDIA_TYPES = frozenset({OCI_MANIFEST, DOCKER_MANIFEST})
ALL_MANIFEST_MEDIA_TYPES = INDEX_MEDIA_TYPES | MANIFEST_MEDIA_TYPES


class Platform(ValueObject):
    """Architecture/OS tuple used to select one entry from an index."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    architecture: str
    os: str
    os_version: str | None = Field(default=None, alias="os.version")
    os_features: tuple[str, ...] = Field(default=(), alias="os.features")
    variant: str | None = None

    @classmethod
    def parse(cls, value: str) -> "Platform":
        """Parse "os/arch[/variant][:osversion]"; a bare value is a linux architecture."""
        spec, _, os_version = value.partition(":")
        parts = [p for p in spec.split("/") if p]
        if not parts or len(parts) > 3:
            raise ValueError(f"invalid platform: {value!r}")
        if len(parts) == 1:
            parts = ["linux", parts[0]]
        return cls(
            os=parts[0],
            architecture=parts[1],
            variant=parts[2] if len(parts) == 3 else None,
            os_version=os_version or None,
        )

    def matches(self, candidate: "Platform") -> bool:
        """Whether `candidate` satisfies this (requested) platform."""
        if candidate.architecture != self.architecture or candidate.os != self.os:
            return False
        if self.os_version and candidate.os_version != self.os_version:
            return False
        if self.variant and candidate.variant != self.variant:
            return False
        return set(self.os_features) <= set(candidate.os_features)

    def __str__(self) -> str:
        parts = [self.os, self.architecture]
        if self.variant:
            parts.append(self.variant)
        return "/".join(parts)


class Descriptor(ValueObject):
    """Content-addressable reference to a registry artifact."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    media_type: str = Field(alias="mediaType")
    digest: str
    size: int
    platform: Platform | None = None
    annotations: dict[str, str] | None = None

    @property
    def is_index(self) -> bool:
        return self.media_type in INDEX_MEDIA_TYPES
