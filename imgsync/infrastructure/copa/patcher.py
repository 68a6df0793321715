"""OS-package patching via the copa CLI against a buildkitd instance."""

from pathlib import Path

import logfire

from imgsync.domain.image.model.image import Image
from imgsync.domain.patch.port.patcher import Patcher
from imgsync.domain.patch.service.scan import SUPPORTED_OS_FAMILIES
from imgsync.domain.shared.error import PatchError
from imgsync.infrastructure.process import ProcessResult, ProcessRunner


class CopaPatcher(Patcher):
    """Patches with `copa patch`, then exports the result with `docker save`.

    The patched image keeps the source tag; the archive is an OCI image layout
    that the registry client can upload.
    """

    def __init__(
        self,
        runner: ProcessRunner,
        buildkit_addr: str,
        *,
        ca_cert_path: str | None = None,
        cert_path: str | None = None,
        key_path: str | None = None,
        timeout: float | None = None,
        executable: str = "copa",
        docker: str = "docker",
    ):
        self._runner = runner
        self._addr = buildkit_addr
        self._ca_cert_path = ca_cert_path
        self._cert_path = cert_path
        self._key_path = key_path
        self._timeout = timeout
        self._executable = executable
        self._docker = docker

    def supported_os(self, family: str | None) -> bool:
        return family is not None and family.lower() in SUPPORTED_OS_FAMILIES

    @staticmethod
    def patched_reference(image: Image) -> str:
        return f"{image.registry}/{image.repository}:{image.label}"

    def patch_command(self, image: Image, report: Path) -> list[str]:
        args = [
            self._executable,
            "patch",
            "--image",
            image.ref,
            "--report",
            str(report),
            "--tag",
            image.label,
            "--addr",
            self._addr,
        ]
        for flag, value in (
            ("--cacert", self._ca_cert_path),
            ("--cert", self._cert_path),
            ("--key", self._key_path),
        ):
            if value:
                args.extend([flag, value])
        if self._timeout:
            args.extend(["--timeout", f"{int(self._timeout)}s"])
        return args

    def save_command(self, image: Image, archive: Path) -> list[str]:
        return [self._docker, "save", "--output", str(archive), self.patched_reference(image)]

    async def _run(self, image: Image, args: list[str]) -> ProcessResult:
        try:
            result = await self._runner.run(args, timeout=self._timeout)
        except TimeoutError as e:
            raise PatchError(f"{args[0]} timed out for {image.ref}") from e
        except OSError as e:
            raise PatchError(f"Cannot run {args[0]}: {e}") from e
        if not result.ok:
            logfire.error(
                "Patch step failed", image=image.ref, command=args[0], returncode=result.returncode
            )
            raise PatchError(
                f"{args[0]} failed for {image.ref} (exit {result.returncode}): "
                f"{result.stderr_tail()}"
            )
        return result

    async def patch(self, image: Image, report: Path, archive: Path) -> Path:
        logfire.info("Patching image", image=image.ref, buildkit=self._addr)
        await self._run(image, self.patch_command(image, report))
        archive.parent.mkdir(parents=True, exist_ok=True)
        await self._run(image, self.save_command(image, archive))
        return archive
