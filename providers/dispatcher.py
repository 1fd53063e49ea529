"""
providers/dispatcher.py

Routes a provider name to its backend and guards create_vm() with the
backend's instance-type allow-list.

Built once at process start. The API holds one Dispatcher for its whole
lifetime, the CLI builds one per invocation.
"""

import logging
from typing import Dict, List, Mapping, Optional

from config import AppConfig
from .aws_provider import AWSProvider
from .base import CloudProvider, LogFn, ProviderName, VMRequest, VMResponse, VMStatus
from .errors import ClientInputError
from .hetzner_provider import HetznerProvider

logger = logging.getLogger("wolkenlauf.dispatcher")


class Dispatcher:
    """
    Maps ProviderName → CloudProvider.

    Unknown names and unsupported instance types raise ClientInputError
    before any vendor API is contacted.
    """

    def __init__(self, providers: Mapping[ProviderName, CloudProvider]):
        self._providers: Dict[ProviderName, CloudProvider] = dict(providers)

    @classmethod
    def from_config(cls, config: AppConfig) -> "Dispatcher":
        return cls({
            ProviderName.AWS:     AWSProvider(config.aws),
            ProviderName.HETZNER: HetznerProvider(config.hetzner),
        })

    def supported_providers(self) -> List[str]:
        return [name.value for name in self._providers]

    def get(self, provider: Optional[str]) -> CloudProvider:
        """Exact, case-sensitive lookup ("aws", not "AWS")."""
        try:
            return self._providers[ProviderName(provider)]
        except (KeyError, ValueError):
            supported = ", ".join(self.supported_providers())
            raise ClientInputError(
                f"unsupported provider: {provider} (supported: {supported})"
            ) from None

    def create(self, request: VMRequest, log: LogFn = logger.info) -> VMResponse:
        provider = self.get(request.provider)
        if not provider.supports_instance_type(request.instance_type):
            raise ClientInputError(
                f"instance type {request.instance_type} not supported by provider {request.provider}"
            )
        logger.info(
            "Creating VM %s (%s %s in %s) for user %s",
            request.name, request.provider, request.instance_type, request.region, request.user_id,
        )
        return provider.create_vm(request, log=log)

    def delete(self, vm_id: str, provider: str, log: LogFn = logger.info) -> None:
        backend = self.get(provider)
        logger.info("Deleting VM %s (%s)", vm_id, provider)
        backend.delete_vm(vm_id, log=log)

    def status(self, vm_id: str, provider: str) -> VMStatus:
        return self.get(provider).get_vm_status(vm_id)
