"""
Custom exception hierarchy for the asset recovery tool.

Fatal errors (authentication, canvas listing, missing asset folder) propagate
to the CLI. Per-item problems are collected in result objects instead.
"""
from typing import Optional


class AssetRecoveryError(Exception):
    """Base exception for all asset recovery errors."""
    pass


class ConfigurationError(AssetRecoveryError):
    """Raised when settings are missing or invalid."""
    pass


class CanvusAPIError(AssetRecoveryError):
    """Raised when the Canvus server answers with a non-2xx status or cannot be reached."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code

    def __str__(self):
        if self.status_code is not None:
            return f"HTTP {self.status_code}: {self.args[0]}"
        return self.args[0]


class AuthenticationError(AssetRecoveryError):
    """Raised when login against the Canvus server fails."""
    pass


class DiscoveryError(AssetRecoveryError):
    """Raised when asset discovery cannot start (e.g. canvases cannot be listed)."""
    pass


class AssetFolderNotFoundError(AssetRecoveryError, FileNotFoundError):
    """Raised when the live asset folder does not exist."""
    pass


class BackupSearchError(AssetRecoveryError):
    """Raised when an existing backup root cannot be read at all."""
    pass


class RestoreError(AssetRecoveryError):
    """Raised when a single asset cannot be restored."""
    pass


class ReportError(AssetRecoveryError):
    """Raised when report files cannot be written."""
    pass
