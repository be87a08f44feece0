"""Exception classes for daemon binary installation."""

from typing import List, Optional


class InstallerError(Exception):
    """Base exception for installer errors."""

    def __init__(self, message: str, details: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def __str__(self):
        if self.details:
            return f"{self.message}: {self.details}"
        return self.message


class UnsupportedPlatformError(InstallerError):
    """Exception raised when the host OS/architecture has no release build."""

    pass


class AcquisitionError(InstallerError):
    """Exception raised when a candidate source cannot provide an archive."""

    pass


class DownloadError(AcquisitionError):
    """Exception raised when an archive download fails."""

    def __init__(
        self,
        message: str,
        details: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message, details)
        self.status_code = status_code


class TooManyRedirectsError(DownloadError):
    """Exception raised when a download exceeds the redirect hop limit."""

    pass


class ArchiveError(InstallerError):
    """Exception raised when an archive is corrupt or cannot be extracted."""

    pass


class InstallationError(InstallerError):
    """Exception raised when every candidate source has been exhausted."""

    def __init__(self, message: str, attempts: Optional[List] = None):
        super().__init__(message)
        self.attempts = attempts or []

    def __str__(self):
        if not self.attempts:
            return self.message
        failures = "; ".join(
            f"{attempt.kind.value}: {attempt.error}" for attempt in self.attempts
        )
        return f"{self.message} ({failures})"
