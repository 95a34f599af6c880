"""CLI tools for checksum-sync."""
