"""Port for the vulnerability scanner."""

from abc import abstractmethod
from typing import Protocol, runtime_checkable

from imgsync.domain.patch.model.report import ScanReport
from imgsync.domain.shared.port import Port


@runtime_checkable
class Scanner(Port, Protocol):
    """Scan an image reference for vulnerabilities."""

    @abstractmethod
    async def scan(
        self,
        reference: str,
        *,
        architecture: str | None = None,
        insecure: bool = False,
        plain_http: bool = False,
    ) -> ScanReport:
        """Scan `reference`, reaching its registry with the given transport flags.

        Raises:
            ScanError: If the scanner fails or its output cannot be parsed.
        """
        ...
