import logging
import os
import sys
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource

from imgsync.domain.image.model.chart import Chart
from imgsync.domain.image.model.image import Image, PatchMode, parse_image_ref
from imgsync.domain.image.model.registry import Registry
from imgsync.domain.image.model.rules import ImageRules, Mirror
from imgsync.domain.shared.error import ConfigurationError

CONFIG_FILE_ENV = "IMGSYNC_CONFIG_FILE"


# =============================================================================
# Registries and Images
# =============================================================================


class RegistryConfig(BaseModel):
    """A target registry."""

    name: str
    url: str  # host[:port][/prefix]
    insecure: bool = False  # skip TLS verification
    plain_http: bool = False

    def to_registry(self) -> Registry:
        return Registry(
            name=self.name, url=self.url, insecure=self.insecure, plain_http=self.plain_http
        )


class ImageConfig(BaseModel):
    """An image listed directly in configuration."""

    ref: str
    use_digest: bool = False
    patch: bool | None = None  # None = decided by the scan
    architecture: str | None = None

    def to_image(self) -> Image:
        image = parse_image_ref(self.ref)
        return image.model_copy(
            update={
                "use_digest": self.use_digest and image.digest is not None,
                "patch": PatchMode.from_flag(self.patch),
                "architecture": self.architecture,
            }
        )


class ChartImageConfig(BaseModel):
    """An image a chart references, and where in the chart values it was found."""

    ref: str
    value_paths: list[str] = []


class ChartConfig(BaseModel):
    """A chart and its already-extracted image references."""

    name: str
    version: str
    repository: str | None = None  # OCI location of the packaged chart, imported with its images
    images: list[ChartImageConfig] = []
    rules: ImageRules = ImageRules()

    def to_chart(self) -> Chart:
        return Chart(name=self.name, version=self.version, repository=self.repository)


class RegistrySettings(BaseModel):
    """Registry client behaviour (nested in Config, uses env_nested_delimiter)."""

    concurrency: int = Field(default=4, ge=1)  # registries/images in flight at once
    timeout: float = 30.0  # seconds per HTTP request
    retries: int = 3  # transport-level connection retries
    strict_existence: bool = False  # abort on failed existence checks instead of reading "absent"


# =============================================================================
# Import Configuration
# =============================================================================


class BuildkitdConfig(BaseModel):
    addr: str = "tcp://0.0.0.0:8888"
    ca_cert_path: str | None = None
    cert_path: str | None = None
    key_path: str | None = None


class TrivyConfig(BaseModel):
    addr: str = "http://0.0.0.0:8887"
    insecure: bool = False
    ignore_unfixed: bool = False
    timeout: float = 300.0


class OutputFolder(BaseModel):
    folder: Path
    clean: bool = True


class OutputConfig(BaseModel):
    reports: OutputFolder = OutputFolder(folder=Path("out/reports"))
    tars: OutputFolder = OutputFolder(folder=Path("out/tars"))


class CopaceticConfig(BaseModel):
    """Scan and patch settings."""

    enabled: bool = False
    ignore_errors: bool = False  # push unpatched when patching an image fails
    buildkitd: BuildkitdConfig = BuildkitdConfig()
    trivy: TrivyConfig = TrivyConfig()
    output: OutputConfig = OutputConfig()
    timeout: float = 600.0  # seconds per patch


class CosignConfig(BaseModel):
    enabled: bool = False
    key_ref: str = ""
    key_ref_pass: str | None = None
    allow_insecure: bool = False
    allow_http_registry: bool = False
    timeout: float = 120.0


class ImportConfig(BaseModel):
    enabled: bool = False
    architecture: str | None = None  # e.g. "linux/amd64"; None copies every platform
    copacetic: CopaceticConfig = CopaceticConfig()
    cosign: CosignConfig = CosignConfig()


# =============================================================================
# Application Configuration
# =============================================================================


class YamlConfigSettingsSource(PydanticBaseSettingsSource):
    """Load settings from YAML file specified by IMGSYNC_CONFIG_FILE env var."""

    def get_field_value(self, field: Any, field_name: str) -> tuple[Any, str, bool]:
        yaml_data = self._load_yaml_config()
        field_value = yaml_data.get(field.alias or field_name, yaml_data.get(field_name))
        return field_value, field_name, False

    def __call__(self) -> dict[str, Any]:
        return self._load_yaml_config()

    def _load_yaml_config(self) -> dict[str, Any]:
        config_file = os.environ.get(CONFIG_FILE_ENV)
        if config_file:
            path = Path(config_file)
            if not path.exists():
                raise ConfigurationError(f"Config file {path} does not exist")
            try:
                data = yaml.safe_load(path.read_text()) or {}
            except (OSError, yaml.YAMLError) as e:
                raise ConfigurationError(f"Cannot read config file {path}: {e}") from e
            if not isinstance(data, dict):
                raise ConfigurationError(f"Config file {path} must contain a mapping")
            return data
        return {}


class LoggingConfig(BaseModel):
    """Logging configuration (nested in Config, uses env_nested_delimiter)."""

    level: str = Field(default_factory=lambda: os.environ.get("IMGSYNC_LOG_LEVEL", "INFO"))
    format: str = "%(asctime)s %(levelname)-8s [%(name)s] %(message)s"
    date_format: str = "%Y-%m-%d %H:%M:%S"
    logfire: bool = False  # send spans/events to logfire and instrument httpx

    @property
    def file(self) -> str | None:
        """Get log file path from IMGSYNC_LOG_FILE env var."""
        return os.environ.get("IMGSYNC_LOG_FILE")


class Config(BaseSettings):
    registries: list[RegistryConfig] = []
    images: list[ImageConfig] = []  # static images, attributed to the placeholder chart
    charts: list[ChartConfig] = []
    mirrors: list[Mirror] = []
    all: bool = False  # import into every registry, not only the ones missing the image
    verbose: bool = False
    registry: RegistrySettings = RegistrySettings()
    # "import" is a keyword; the section is read from the "import" key
    import_: ImportConfig = Field(default=ImportConfig(), alias="import")
    logging: LoggingConfig = LoggingConfig()

    model_config = {
        "env_prefix": "IMGSYNC_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "env_nested_delimiter": "__",  # Allows IMGSYNC_REGISTRY__CONCURRENCY override
        "populate_by_name": True,
        "extra": "ignore",
    }

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Customize settings sources to include YAML config.

        Priority (highest to lowest):
        1. init_settings - values passed to Config()
        2. env_settings - environment variables
        3. dotenv_settings - .env file
        4. yaml_settings - IMGSYNC_CONFIG_FILE yaml
        5. file_secret_settings - secrets from files
        """
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlConfigSettingsSource(settings_cls),
            file_secret_settings,
        )

    def target_registries(self) -> list[Registry]:
        return [r.to_registry() for r in self.registries]

    def static_images(self) -> list[Image]:
        return [i.to_image() for i in self.images]

    def validate_for_run(self) -> None:
        """Check combinations that only matter once a batch actually runs.

        Raises:
            ConfigurationError: If the configuration cannot drive a batch.
        """
        if not self.registries:
            raise ConfigurationError("No registries configured")
        names = [r.name for r in self.registries]
        if len(set(names)) != len(names):
            raise ConfigurationError(f"Registry names must be unique: {names}")
        cosign = self.import_.cosign
        if self.import_.enabled and cosign.enabled and not cosign.key_ref:
            raise ConfigurationError("import.cosign.key_ref is required when signing is enabled")


def configure_logging(config: LoggingConfig, verbose: bool = False) -> None:
    """Configure Python logging based on config.

    Should be called early in application startup so every logger picks up the
    configuration.
    """
    level = "DEBUG" if verbose else config.level.upper()
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Remove existing handlers to avoid duplicates
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    formatter = logging.Formatter(config.format, datefmt=config.date_format)

    if config.file:
        log_path = Path(config.file).expanduser()
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handler: logging.Handler = logging.FileHandler(log_path)
    else:
        handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(formatter)
    root_logger.addHandler(handler)

    # Reduce noise from third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)
    logging.getLogger("markdown_it").setLevel(logging.WARNING)

    logging.debug("Logging configured: level=%s, file=%s", level, config.file)
