"""Image signing via the cosign CLI."""

import logfire

from imgsync.domain.patch.port.signer import Signer
from imgsync.domain.shared.error import SignError
from imgsync.infrastructure.process import ProcessRunner


class CosignSigner(Signer):
    def __init__(
        self,
        runner: ProcessRunner,
        *,
        timeout: float | None = None,
        executable: str = "cosign",
    ):
        self._runner = runner
        self._timeout = timeout
        self._executable = executable

    def command(
        self, reference: str, key_ref: str, allow_insecure: bool, allow_http: bool
    ) -> list[str]:
        args = [self._executable, "sign", "--yes", "--key", key_ref]
        if allow_insecure:
            args.append("--allow-insecure-registry")
        if allow_http:
            args.append("--allow-http-registry")
        args.append(reference)
        return args

    async def sign(
        self,
        reference: str,
        *,
        key_ref: str,
        passphrase: str | None = None,
        allow_insecure: bool = False,
        allow_http: bool = False,
    ) -> None:
        # cosign reads the key passphrase from the environment, never from argv
        env = {"COSIGN_PASSWORD": passphrase or ""}
        logfire.info("Signing image", image=reference)
        try:
            result = await self._runner.run(
                self.command(reference, key_ref, allow_insecure, allow_http),
                env=env,
                timeout=self._timeout,
            )
        except TimeoutError as e:
            raise SignError(f"Signing {reference} timed out after {self._timeout}s") from e
        except OSError as e:
            raise SignError(f"Cannot run {self._executable}: {e}") from e
        if not result.ok:
            logfire.error("Signing failed", image=reference, returncode=result.returncode)
            raise SignError(
                f"Signing {reference} failed (exit {result.returncode}): {result.stderr_tail()}"
            )
