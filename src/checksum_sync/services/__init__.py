"""Services package."""

from .fingerprint_service import FingerprintService
from .transfer_service import TransferOptions, TransferOutcome, TransferService

__all__ = [
    "FingerprintService",
    "TransferOptions",
    "TransferOutcome",
    "TransferService",
]
