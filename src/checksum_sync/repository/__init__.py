from .fingerprint_repository import FingerprintRepository

__all__ = ["FingerprintRepository"]
