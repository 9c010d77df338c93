"""Release asset handling, checksum and cosign verification, Distfiles, configuration and release API clients."""

__version__ = "1.0.0"