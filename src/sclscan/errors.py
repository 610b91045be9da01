"""
Exceptions raised at sclscan's library boundaries.

The scanner and the lint rules never raise; these cover configuration and
file handling around them.
"""


class SclScanError(Exception):
    """Base class for sclscan errors."""


class ConfigError(SclScanError):
    """Invalid configuration file or value."""
    def __init__(self, message: str, path=None):
        self.path = path
        if path:
            super().__init__(f"{path}: {message}")
        else:
            super().__init__(message)
