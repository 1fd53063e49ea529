"""
providers/errors.py

Typed failures raised by every provider and by the dispatcher.

The HTTP and CLI layers never inspect SDK exceptions. Providers translate
botocore / hcloud errors into one of these at the boundary, and callers
choose 4xx vs 5xx from `is_client_fault` (or the concrete subclass).

    ProviderError
      ├── ClientInputError          caller sent something we can reject up front
      ├── VendorRejection           cloud API refused the call (auth, quota, ...)
      ├── NotFoundError             delete/status against an unknown id
      ├── ResourceResolutionError   no image / datacenter / server type matched
      └── ConfigurationError        credentials missing on the server side
"""

from typing import Optional, Sequence


class ProviderError(Exception):
    """Base class. `provider` names the backend that failed, if any."""

    is_client_fault = False

    def __init__(self, message: str, provider: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.provider = provider

    def __str__(self) -> str:
        if self.provider:
            return f"[{self.provider}] {self.message}"
        return self.message


class ClientInputError(ProviderError):
    """Unknown provider, unsupported instance type, malformed id. Never retried."""

    is_client_fault = True


class VendorRejection(ProviderError):
    """The vendor API rejected the request; message carries the vendor text."""


class NotFoundError(ProviderError):
    """The instance/server id does not exist on the backend."""


class ResourceResolutionError(ProviderError):
    """
    A create-time lookup found nothing.

    Args:
        step:     Which resolution failed ("image", "datacenter", ...).
        searched: The pattern(s) or name(s) that were tried, in order.
    """

    def __init__(self, step: str, searched: Sequence[str], provider: Optional[str] = None):
        self.step = step
        self.searched = list(searched)
        tried = ", ".join(f"'{s}'" for s in self.searched) or "nothing"
        super().__init__(f"could not resolve {step} (searched: {tried})", provider=provider)


class ConfigurationError(ProviderError):
    """Server-side configuration (credentials, tokens) is missing."""
