"""Run and check commands."""

import asyncio
import os
import sys
from pathlib import Path
from typing import Annotated

import cyclopts
import logfire
from pydantic import ValidationError

from imgsync.application.di import create_container
from imgsync.application.pipeline import Pipeline, PipelineResult
from imgsync.cli.console import Console, RichReporter, get_console
from imgsync.config import CONFIG_FILE_ENV, Config, configure_logging
from imgsync.domain.image.port.discovery import ChartDiscovery
from imgsync.domain.shared.error import ConfigurationError, ImgSyncError
from imgsync.util.di.scope import Scope

app = cyclopts.App(name="run", help="Sync images into the configured registries")


def load_config(config: Path | None, **overrides) -> Config:
    """Load configuration, with `config` taking precedence over IMGSYNC_CONFIG_FILE."""
    if config is not None:
        os.environ[CONFIG_FILE_ENV] = str(config)
    try:
        return Config(**{k: v for k, v in overrides.items() if v})
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e


async def execute(config: Config, console: Console) -> PipelineResult:
    """Discover images and run one pipeline batch."""
    container = create_container(config, RichReporter(console))
    try:
        discovery = await container.get(ChartDiscovery)
        chart_images = await discovery.discover()
        async with container(scope=Scope.BATCH) as batch:
            pipeline = await batch.get(Pipeline)
            return await pipeline.run(chart_images, discovery.rules(), config.static_images())
    finally:
        await container.close()


def _summarize(result: PipelineResult, console: Console) -> None:
    for warning in result.warnings:
        console.warning(warning)
    if result.charts_pushed:
        console.success(f"Imported {len(result.charts_pushed)} chart(s)")
    if result.pushed:
        console.success(f"Distributed {len(result.pushed)} image(s)")
    if result.patched:
        console.success(f"Patched {len(result.patched)} image(s)")
    if result.patch_failures:
        console.warning(f"{len(result.patch_failures)} image(s) pushed unpatched after errors")
    if result.signed:
        console.success(f"Signed {len(result.signed)} reference(s)")
    if not result.candidates:
        console.info("All images are present in every registry")


def _main(config: Config, console: Console) -> None:
    configure_logging(config.logging, verbose=config.verbose)
    if config.logging.logfire:
        logfire.configure(service_name="imgsync", send_to_logfire="if-token-present")
        logfire.instrument_httpx()
    try:
        config.validate_for_run()
        result = asyncio.run(execute(config, console))
    except ImgSyncError as e:
        console.error(e.message, hint=e.code)
        sys.exit(1)
    _summarize(result, console)


@app.default
def run(
    *,
    config: Annotated[Path | None, cyclopts.Parameter(name=["--config", "-c"])] = None,
    all_: Annotated[bool, cyclopts.Parameter(name="--all")] = False,
    verbose: Annotated[bool, cyclopts.Parameter(name=["--verbose", "-v"])] = False,
) -> None:
    """Check registries and import, patch and sign images as configured.

    Args:
        config: YAML configuration file (defaults to $IMGSYNC_CONFIG_FILE).
        all_: Import into every registry, not only those missing the image.
        verbose: Debug logging.
    """
    console = get_console()
    try:
        settings = load_config(config, all=all_, verbose=verbose)
    except ImgSyncError as e:
        console.error(e.message)
        sys.exit(1)
    _main(settings, console)


check = cyclopts.App(name="check", help="Report which images are missing, import nothing")


@check.default
def check_only(
    *,
    config: Annotated[Path | None, cyclopts.Parameter(name=["--config", "-c"])] = None,
    verbose: Annotated[bool, cyclopts.Parameter(name=["--verbose", "-v"])] = False,
) -> None:
    """Discover images and show their presence per registry.

    Args:
        config: YAML configuration file (defaults to $IMGSYNC_CONFIG_FILE).
        verbose: Debug logging.
    """
    console = get_console()
    try:
        settings = load_config(config, verbose=verbose)
    except ImgSyncError as e:
        console.error(e.message)
        sys.exit(1)
    settings = settings.model_copy(
        update={"import_": settings.import_.model_copy(update={"enabled": False})}
    )
    _main(settings, console)
