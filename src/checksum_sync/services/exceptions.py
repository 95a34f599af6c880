class SyncError(Exception):
    """Base class for checksum-sync errors"""

    pass


class ConfigError(SyncError):
    """Raised when the sync configuration is invalid"""

    pass


class ReadError(SyncError):
    """Raised when a source file cannot be read to completion"""

    pass


class StoreUnavailable(SyncError):
    """Raised when the fingerprint store cannot be opened, read or written"""

    pass


class TransferError(SyncError):
    """Raised when a file cannot be copied to its destination"""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class WalkError(SyncError):
    """Raised when the source tree walk cannot start"""

    pass


class SinkUnavailable(SyncError):
    """Raised when metrics cannot be delivered"""

    pass
