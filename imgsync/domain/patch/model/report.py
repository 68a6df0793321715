"""Vulnerability scan report (trivy JSON schema subset)."""

from pydantic import ConfigDict, Field, field_validator

from imgsync.domain.shared.model.value import ValueObject

OS_PKGS_CLASS = "os-pkgs"


class _TrivyModel(ValueObject):
    # extra="allow" keeps the scanner's full output when the report is written back
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="allow")


class Vulnerability(_TrivyModel):
    vulnerability_id: str = Field(alias="VulnerabilityID")
    pkg_name: str = Field(default="", alias="PkgName")
    installed_version: str = Field(default="", alias="InstalledVersion")
    fixed_version: str | None = Field(default=None, alias="FixedVersion")
    severity: str = Field(default="UNKNOWN", alias="Severity")


class Result(_TrivyModel):
    target: str = Field(default="", alias="Target")
    class_: str = Field(default="", alias="Class")
    type: str = Field(default="", alias="Type")
    vulnerabilities: tuple[Vulnerability, ...] = Field(default=(), alias="Vulnerabilities")

    @field_validator("vulnerabilities", mode="before")
    @classmethod
    def _none_is_empty(cls, v):
        return () if v is None else v


class OperatingSystem(_TrivyModel):
    family: str = Field(alias="Family")
    name: str = Field(default="", alias="Name")


class Metadata(_TrivyModel):
    os: OperatingSystem | None = Field(default=None, alias="OS")


class ScanReport(_TrivyModel):
    """Per-image scan result. Immutable once produced."""

    schema_version: int = Field(default=2, alias="SchemaVersion")
    artifact_name: str = Field(default="", alias="ArtifactName")
    metadata: Metadata = Field(default_factory=Metadata, alias="Metadata")
    results: tuple[Result, ...] = Field(default=(), alias="Results")

    @field_validator("results", mode="before")
    @classmethod
    def _none_is_empty(cls, v):
        return () if v is None else v

    @property
    def os_family(self) -> str | None:
        if self.metadata.os is None:
            return None
        return self.metadata.os.family.lower()

    @property
    def findings(self) -> list[Vulnerability]:
        return [v for result in self.results for v in result.vulnerabilities]

    def contains_os_pkgs(self) -> bool:
        """Whether any finding is rooted in the OS package manager inventory."""
        return any(r.class_ == OS_PKGS_CLASS and r.vulnerabilities for r in self.results)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, indent=2, exclude_none=True)
