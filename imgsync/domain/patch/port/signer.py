"""Port for the image signer."""

from abc import abstractmethod
from typing import Protocol, runtime_checkable

from imgsync.domain.shared.port import Port


@runtime_checkable
class Signer(Port, Protocol):
    """Sign a distributed image reference."""

    @abstractmethod
    async def sign(
        self,
        reference: str,
        *,
        key_ref: str,
        passphrase: str | None = None,
        allow_insecure: bool = False,
        allow_http: bool = False,
    ) -> None:
        """Sign `reference` (ideally pinned by digest).

        Raises:
            SignError: If signing fails.
        """
        ...
