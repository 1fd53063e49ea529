"""
providers/base.py

Defines the abstract CloudProvider interface and the data model shared by
every backend.
Every cloud provider (AWS, Hetzner) must implement this contract.
This is the Strategy Pattern: the API and CLI don't care which provider
is underneath, they just call the same methods through the Dispatcher.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional

logger = logging.getLogger("wolkenlauf.providers")

LogFn = Callable[[str], None]


class ProviderName(str, Enum):
    """Registered backends. Lookup is exact and case-sensitive."""
    AWS     = "aws"
    HETZNER = "hetzner"


class CanonicalStatus(str, Enum):
    """
    Normalised lifecycle state exposed to callers.

    Every backend maps its native vendor states onto this closed set.
    Unknown vendor states become PENDING, never a raw vendor string.
    """
    PENDING    = "pending"
    RUNNING    = "running"
    STOPPING   = "stopping"
    STOPPED    = "stopped"
    TERMINATED = "terminated"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class VMRequest:
    """
    All inputs needed to create a VM on any cloud.
    Provider-specific details (AMI owners, datacenters) live
    in the concrete provider, not here.
    """
    name: str
    provider: str
    instance_type: str
    region: str
    user_id: str
    use_spot_instance: bool = False
    image: Optional[str] = None
    auto_terminate_minutes: int = 0   # accepted for compatibility, not acted on


@dataclass
class VMResponse:
    """Returned once per successful create_vm(). The caller is the system of record."""
    id: str
    name: str
    provider: str
    instance_type: str
    region: str
    status: CanonicalStatus
    ssh_username: str
    ssh_password: str
    image: str
    public_ip: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)


@dataclass
class VMStatus:
    """
    Normalised VM status returned by any provider's get_vm_status().
    Recomputed on every call, never cached.
    """
    id: str
    status: CanonicalStatus
    public_ip: Optional[str] = None
    updated_at: datetime = field(default_factory=utcnow)


class CloudProvider(ABC):
    """
    Abstract base class for all cloud providers.

    To add a new provider (e.g. GCP):
      1. Create providers/gcp_provider.py
      2. Subclass CloudProvider
      3. Implement all abstract methods
      4. Add it to ProviderName and to Dispatcher.from_config()

    The API and CLI layers need zero changes.
    """

    name: ProviderName

    @abstractmethod
    def supports_instance_type(self, instance_type: str) -> bool:
        """Pure allow-list membership test. Must not touch the network."""
        ...

    @abstractmethod
    def create_vm(self, request: VMRequest, log: LogFn = logger.info) -> VMResponse:
        """
        Provision one instance and return its VMResponse.
        Generates a fresh SSH password per call and embeds it in user-data.
        """
        ...

    @abstractmethod
    def delete_vm(self, vm_id: str, log: LogFn = logger.info) -> None:
        """
        Best-effort teardown of the instance and any address bound to it.
        Raises NotFoundError if the id cannot be looked up.
        """
        ...

    @abstractmethod
    def get_vm_status(self, vm_id: str) -> VMStatus:
        """
        Query the cloud API for the real-time status of the VM.
        Returns a normalised VMStatus, never raw SDK objects.
        """
        ...

    @abstractmethod
    def check_credentials(self) -> str:
        """
        Issue a cheap read-only call to prove the credentials work.
        Returns a one-line human summary.
        """
        ...
