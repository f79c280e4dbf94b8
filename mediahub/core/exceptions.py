"""
Custom application exceptions.
"""

class MediaHubException(Exception):
    """Base exception for the media hub."""
    pass


class EncryptionNotConfiguredError(MediaHubException):
    """Raised when ENCRYPTION_KEY is missing or too short to use."""
    pass


class DecryptionFailedError(MediaHubException):
    """
    Raised when a stored credential cannot be decrypted.

    This occurs when:
    - The blob was tampered with (authentication tag mismatch)
    - ENCRYPTION_KEY changed since the value was written
    - The value is not a vault blob at all (e.g. legacy plaintext)
    """
    pass


class ServiceNotFoundError(MediaHubException):
    """Raised when a service name is not in the service registry."""

    def __init__(self, service_name: str):
        super().__init__(f"Service '{service_name}' is not supported")
        self.service_name = service_name
