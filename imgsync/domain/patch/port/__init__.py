from imgsync.domain.patch.port.patcher import Patcher
from imgsync.domain.patch.port.scanner import Scanner
from imgsync.domain.patch.port.signer import Signer

__all__ = ["Patcher", "Scanner", "Signer"]
