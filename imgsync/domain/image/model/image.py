"""Image reference model.

An Image is a frozen value. Its canonical reference (`Image.ref`) is the key used by
every collection in the pipeline; rewriting an image produces a new Image with a new
key, and whoever rewrites it must re-key the collection it lives in.
"""

import re
from enum import StrEnum
from typing import NewType

from pydantic import field_validator, model_validator

from imgsync.domain.shared.error import InvalidReferenceError
from imgsync.domain.shared.model.value import ValueObject

ImageRef = NewType("ImageRef", str)

DEFAULT_REGISTRY = "docker.io"
DEFAULT_TAG = "latest"

_PATH_COMPONENT_RE = re.compile(r"^[a-z0-9]+(?:(?:[._]|__|-+)[a-z0-9]+)*$")
_TAG_RE = re.compile(r"^[\w][\w.-]{0,127}$")
_DIGEST_RE = re.compile(r"^[a-z0-9]+(?:[.+_-][a-z0-9]+)*:[a-fA-F0-9]{32,}$")


class PatchMode(StrEnum):
    """Whether an image takes part in vulnerability patching.

    UNSET and EXCLUDED are different: UNSET images are scanned and patched when
    the scan says so, EXCLUDED images are always pushed as they are.
    """

    UNSET = "unset"
    EXCLUDED = "excluded"
    INCLUDED = "included"

    @classmethod
    def from_flag(cls, flag: bool | None) -> "PatchMode":
        if flag is None:
            return cls.UNSET
        return cls.INCLUDED if flag else cls.EXCLUDED

    @property
    def allows_patching(self) -> bool:
        return self is not PatchMode.EXCLUDED


class Image(ValueObject):
    """A container image reference plus its per-image sync options."""

    registry: str
    repository: str
    tag: str | None = DEFAULT_TAG  # None only for digest-only references
    digest: str | None = None
    use_digest: bool = False
    patch: PatchMode = PatchMode.UNSET
    architecture: str | None = None  # platform string, e.g. "linux/arm64"

    @field_validator("digest")
    @classmethod
    def _check_digest(cls, v: str | None) -> str | None:
        if v is not None and not _DIGEST_RE.match(v):
            raise ValueError(f"invalid digest: {v}")
        return v

    @model_validator(mode="after")
    def _tag_or_digest(self) -> "Image":
        if self.tag is None and self.digest is None:
            raise ValueError("an image needs a tag or a digest")
        return self

    @property
    def pinned(self) -> bool:
        """Whether the image is addressed by digest (use_digest, or no tag at all)."""
        return self.digest is not None and (self.use_digest or self.tag is None)

    @property
    def ref(self) -> ImageRef:
        """Canonical reference, pinned by digest when use_digest is set."""
        base = f"{self.registry}/{self.repository}"
        if self.pinned:
            return ImageRef(f"{base}@{self.digest}")
        return ImageRef(f"{base}:{self.tag}")

    @property
    def name(self) -> str:
        """Registry-relative repository path."""
        return self.repository

    @property
    def reference(self) -> str:
        """Tag or digest used when pulling from the source registry."""
        if self.pinned:
            return self.digest  # type: ignore[return-value]
        return self.tag  # type: ignore[return-value]

    @property
    def target_reference(self) -> str:
        """What is written at a target: the tag, or the digest when there is no tag.

        A digest-only image is never given a tag, so it cannot overwrite one.
        """
        return self.tag or self.digest  # type: ignore[return-value]

    @property
    def label(self) -> str:
        """Tag-safe name for file names and patched images."""
        if self.tag:
            return self.tag
        return self.digest.replace(":", "-")  # type: ignore[union-attr]

    def retagged(self, tag: str) -> "Image":
        """The same repository under `tag`, no longer pinned to a digest."""
        return self.model_copy(update={"tag": tag, "digest": None, "use_digest": False})

    def with_patch(self, mode: PatchMode) -> "Image":
        return self.model_copy(update={"patch": mode})

    def __str__(self) -> str:
        return self.ref


def parse_image_ref(ref: str) -> Image:
    """Parse an image reference the way the Docker CLI does.

    Raises:
        InvalidReferenceError: If the reference is malformed.
    """
    if not ref or ref != ref.strip():
        raise InvalidReferenceError(ref, "empty or surrounded by whitespace")

    remainder = ref
    digest: str | None = None
    if "@" in remainder:
        remainder, digest = remainder.split("@", 1)
        if not _DIGEST_RE.match(digest):
            raise InvalidReferenceError(ref, f"bad digest {digest!r}")

    tag: str | None = None
    colon = remainder.rfind(":")
    if colon > remainder.rfind("/"):
        remainder, tag = remainder[:colon], remainder[colon + 1 :]
        if not _TAG_RE.match(tag):
            raise InvalidReferenceError(ref, f"bad tag {tag!r}")

    parts = remainder.split("/")
    first = parts[0]
    if len(parts) > 1 and ("." in first or ":" in first or first == "localhost"):
        registry, path = first, parts[1:]
    else:
        registry, path = DEFAULT_REGISTRY, parts
        if len(path) == 1:
            path = ["library", *path]

    for component in path:
        if not _PATH_COMPONENT_RE.match(component):
            raise InvalidReferenceError(ref, f"bad path component {component!r}")

    return Image(
        registry=registry,
        repository="/".join(path),
        tag=tag or (None if digest else DEFAULT_TAG),
        digest=digest,
        use_digest=digest is not None,
    )
