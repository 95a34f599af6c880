"""checksum-sync - incremental, checksum-verified directory synchronization"""

__version__ = "0.3.0"
