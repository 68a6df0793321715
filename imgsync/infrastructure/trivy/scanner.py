"""Vulnerability scanning via the trivy CLI in client/server mode."""

import logfire
from pydantic import ValidationError

from imgsync.domain.patch.model.report import ScanReport
from imgsync.domain.patch.port.scanner import Scanner
from imgsync.domain.shared.error import ScanError
from imgsync.infrastructure.process import ProcessRunner


class TrivyScanner(Scanner):
    """Scans through a trivy server; the report is trivy's JSON output."""

    def __init__(
        self,
        runner: ProcessRunner,
        server: str,
        *,
        insecure: bool = False,
        ignore_unfixed: bool = False,
        timeout: float | None = None,
        executable: str = "trivy",
    ):
        self._runner = runner
        self._server = server
        self._insecure = insecure
        self._ignore_unfixed = ignore_unfixed
        self._timeout = timeout
        self._executable = executable

    def command(
        self, reference: str, architecture: str | None = None, insecure: bool = False
    ) -> list[str]:
        args = [self._executable, "image", "--quiet", "--format", "json", "--server", self._server]
        if self._insecure or insecure:
            args.append("--insecure")
        if self._ignore_unfixed:
            args.append("--ignore-unfixed")
        if architecture:
            args.extend(["--platform", architecture])
        args.append(reference)
        return args

    async def scan(
        self,
        reference: str,
        *,
        architecture: str | None = None,
        insecure: bool = False,
        plain_http: bool = False,
    ) -> ScanReport:
        logfire.info("Scanning image", image=reference, server=self._server)
        # trivy reaches plain-HTTP registries only with TRIVY_NON_SSL
        env = {"TRIVY_NON_SSL": "true"} if plain_http else None
        try:
            result = await self._runner.run(
                self.command(reference, architecture, insecure), env=env, timeout=self._timeout
            )
        except TimeoutError as e:
            raise ScanError(f"Scan of {reference} timed out after {self._timeout}s") from e
        except OSError as e:
            raise ScanError(f"Cannot run {self._executable}: {e}") from e

        if not result.ok:
            logfire.error("Scan failed", image=reference, returncode=result.returncode)
            raise ScanError(
                f"Scan of {reference} failed (exit {result.returncode}): {result.stderr_tail()}"
            )
        try:
            return ScanReport.model_validate_json(result.stdout)
        except ValidationError as e:
            raise ScanError(f"Unreadable scan report for {reference}: {e}") from e
