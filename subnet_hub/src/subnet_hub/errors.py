"""
Error taxonomy.

NetworkFailure, HttpFailure, ParseFailure and VerificationFailure are raised
inside the component that detects them and converted into an Outcome (or a
VerificationResult) at that component's boundary. ManifestError and
SiteWriteError are the only errors a build lets escape.
"""


class SubnetHubError(Exception):
    """Base class for all subnet hub errors."""


class NetworkFailure(SubnetHubError):
    """Timeout, DNS failure, refused connection."""


class HttpFailure(SubnetHubError):
    """Remote answered with a non-2xx status."""

    def __init__(self, status_code: int, url: str = ""):
        super().__init__(f"HTTP {status_code}")
        self.status_code = status_code
        self.url = url


class ParseFailure(SubnetHubError):
    """Document could not be understood (unknown format, bad JSON)."""


class VerificationFailure(SubnetHubError):
    """Back-link absent or pointing at a different hub."""


class ManifestError(SubnetHubError):
    """The hub manifest is missing or invalid."""


class SiteWriteError(SubnetHubError):
    """The build output could not be written."""
