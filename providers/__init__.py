"""
providers/__init__.py

Public API for the providers package.

Usage:
    from providers import Dispatcher
    dispatcher = Dispatcher.from_config(load_config())
    dispatcher.create(VMRequest(...))          # validated, then AWS or Hetzner
    dispatcher.status("i-0abc...", "aws")
"""

from .base import (
    CanonicalStatus,
    CloudProvider,
    ProviderName,
    VMRequest,
    VMResponse,
    VMStatus,
)
from .aws_provider import AWSProvider
from .hetzner_provider import HetznerProvider
from .dispatcher import Dispatcher
from .errors import (
    ClientInputError,
    ConfigurationError,
    NotFoundError,
    ProviderError,
    ResourceResolutionError,
    VendorRejection,
)

__all__ = [
    "AWSProvider",
    "CanonicalStatus",
    "ClientInputError",
    "CloudProvider",
    "ConfigurationError",
    "Dispatcher",
    "HetznerProvider",
    "NotFoundError",
    "ProviderError",
    "ProviderName",
    "ResourceResolutionError",
    "VMRequest",
    "VMResponse",
    "VMStatus",
    "VendorRejection",
]
