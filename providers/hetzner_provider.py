"""
providers/hetzner_provider.py

Concrete implementation of CloudProvider for Hetzner Cloud (the CPU backend).
Uses the `hcloud` Python SDK.

Create order:
  Server type → Placement (datacenter by name, else first datacenter of the
  location, else the bare location) → Image → Server

Hetzner ids are integers; the API and CLI carry them as strings, so every
id-taking method parses first and rejects non-numeric ids as client input.
"""

import logging
from typing import Dict, Optional

from hcloud import APIException, Client
from requests.exceptions import RequestException

from config import HetznerConfig
from .base import (
    CanonicalStatus,
    CloudProvider,
    LogFn,
    ProviderName,
    VMRequest,
    VMResponse,
    VMStatus,
)
from .cloud_init import generate_password, hetzner_user_data, sanitize_server_name
from .errors import (
    ClientInputError,
    ConfigurationError,
    NotFoundError,
    ResourceResolutionError,
    VendorRejection,
)

logger = logging.getLogger("wolkenlauf.hetzner")

SSH_USERNAME = "root"

# Current shared-vCPU line-up. The retired cx11–cx51 SKUs are not accepted.
HETZNER_INSTANCE_TYPES = frozenset({
    "cpx11", "cpx21", "cpx31", "cpx41", "cpx51",   # AMD
    "cax11", "cax21", "cax31", "cax41",            # ARM (Ampere)
    "cx22", "cx32", "cx42", "cx52",                # Intel
})

_STATUS_MAP: Dict[str, CanonicalStatus] = {
    "initializing": CanonicalStatus.PENDING,
    "starting":     CanonicalStatus.PENDING,
    "running":      CanonicalStatus.RUNNING,
    "stopping":     CanonicalStatus.STOPPING,
    "off":          CanonicalStatus.STOPPED,
    "deleting":     CanonicalStatus.TERMINATED,
}


def map_hetzner_status(status: Optional[str]) -> CanonicalStatus:
    """Total mapping from a Hetzner server status to CanonicalStatus."""
    canonical = _STATUS_MAP.get((status or "").lower())
    if canonical is None:
        logger.warning("Unknown Hetzner status '%s', defaulting to 'pending'", status)
        return CanonicalStatus.PENDING
    return canonical


def _public_ipv4(server) -> Optional[str]:
    public_net = getattr(server, "public_net", None)
    ipv4 = getattr(public_net, "ipv4", None)
    return getattr(ipv4, "ip", None) or None


class HetznerProvider(CloudProvider):
    """
    Hetzner Cloud implementation of CloudProvider.

    The hcloud client is created lazily; a missing token surfaces as a
    ConfigurationError on the first call instead of at import time.
    """

    name = ProviderName.HETZNER

    def __init__(self, config: Optional[HetznerConfig] = None, client: Optional[Client] = None):
        self._config = config or HetznerConfig()
        self._client = client

    def _ensure_client(self) -> Client:
        if self._client is None:
            if not self._config.token:
                raise ConfigurationError(
                    "HETZNER_TOKEN environment variable is not set.",
                    provider=self.name.value,
                )
            self._client = Client(token=self._config.token)
        return self._client

    def _rejected(self, action: str, exc: Exception) -> VendorRejection:
        return VendorRejection(f"{action} failed: {exc}", provider=self.name.value)

    def _parse_id(self, vm_id: str) -> int:
        try:
            return int(vm_id)
        except (TypeError, ValueError):
            raise ClientInputError(
                f"invalid server ID format '{vm_id}'", provider=self.name.value
            ) from None

    # ------------------------------------------------------------------
    # supports_instance_type
    # ------------------------------------------------------------------

    def supports_instance_type(self, instance_type: str) -> bool:
        return instance_type in HETZNER_INSTANCE_TYPES

    # ------------------------------------------------------------------
    # create_vm
    # ------------------------------------------------------------------

    def create_vm(self, request: VMRequest, log: LogFn = logger.info) -> VMResponse:
        """
        Creates one Hetzner server.

        The server name is always sanitized; the response echoes the
        caller's original name.
        """
        client = self._ensure_client()
        password = generate_password()

        try:
            server_type = client.server_types.get_by_name(request.instance_type)
            if server_type is None:
                raise ResourceResolutionError(
                    "server type", [request.instance_type], provider=self.name.value
                )

            placement = self._resolve_placement(request.region)
            for kind, target in placement.items():
                log(f"📍 Using {kind} {target.name}.")

            image_name = request.image or self._config.default_image
            image = client.images.get_by_name_and_architecture(
                image_name, server_type.architecture
            )
            if image is None:
                raise ResourceResolutionError(
                    "image", [f"{image_name} ({server_type.architecture})"],
                    provider=self.name.value,
                )

            server_name = sanitize_server_name(request.name)
            result = client.servers.create(
                name=server_name,
                server_type=server_type,
                image=image,
                **placement,
                user_data=hetzner_user_data(SSH_USERNAME, password, request.instance_type),
                labels={"provider": "wolkenlauf", "managed": "true"},
            )
        except (APIException, RequestException) as exc:
            raise self._rejected("server create", exc) from exc

        server = result.server
        log(f"✅ Hetzner server '{server_name}' created (id={server.id}).")

        return VMResponse(
            id=str(server.id),
            name=request.name,
            provider=self.name.value,
            instance_type=request.instance_type,
            region=request.region,
            status=map_hetzner_status(getattr(server, "status", None)),
            public_ip=_public_ipv4(server),
            ssh_username=SSH_USERNAME,
            ssh_password=password,
            image=image.name,
        )

    def _resolve_placement(self, region: str) -> Dict[str, object]:
        """
        Region is a datacenter name (fsn1-dc14) or a location name (fsn1).

        Returns the servers.create() keyword for it: {"datacenter": ...} when
        a datacenter matches, {"location": ...} when the location exists but
        the datacenter listing has nothing for it.
        """
        client = self._ensure_client()
        datacenter = client.datacenters.get_by_name(region)
        if datacenter is not None:
            return {"datacenter": datacenter}

        location = client.locations.get_by_name(region)
        if location is not None:
            for candidate in client.datacenters.get_all():
                if candidate.location.name == location.name:
                    return {"datacenter": candidate}
            return {"location": location}
        raise ResourceResolutionError(
            "datacenter", [f"datacenter:{region}", f"location:{region}"],
            provider=self.name.value,
        )

    # ------------------------------------------------------------------
    # delete_vm
    # ------------------------------------------------------------------

    def delete_vm(self, vm_id: str, log: LogFn = logger.info) -> None:
        client = self._ensure_client()
        server = self._get_server(vm_id)
        try:
            client.servers.delete(server)
        except (APIException, RequestException) as exc:
            raise self._rejected("server delete", exc) from exc
        log(f"🔥 Hetzner server {vm_id} deleting.")

    # ------------------------------------------------------------------
    # get_vm_status
    # ------------------------------------------------------------------

    def get_vm_status(self, vm_id: str) -> VMStatus:
        server = self._get_server(vm_id)
        status = map_hetzner_status(server.status)
        public_ip = _public_ipv4(server)
        logger.debug("Hetzner server %s: %s -> %s (ip=%s)", vm_id, server.status, status.value, public_ip)
        return VMStatus(id=vm_id, status=status, public_ip=public_ip)

    def _get_server(self, vm_id: str):
        client = self._ensure_client()
        server_id = self._parse_id(vm_id)
        try:
            server = client.servers.get_by_id(server_id)
        except APIException as exc:
            if exc.code == "not_found":
                raise NotFoundError(f"server '{vm_id}' not found", provider=self.name.value) from exc
            raise self._rejected("server lookup", exc) from exc
        except RequestException as exc:
            raise self._rejected("server lookup", exc) from exc
        if server is None:
            raise NotFoundError(f"server '{vm_id}' not found", provider=self.name.value)
        return server

    # ------------------------------------------------------------------
    # check_credentials
    # ------------------------------------------------------------------

    def check_credentials(self) -> str:
        client = self._ensure_client()
        try:
            server_types = client.server_types.get_all()
        except (APIException, RequestException) as exc:
            raise self._rejected("server type listing", exc) from exc
        return f"Hetzner API reachable, {len(server_types)} server types visible"
