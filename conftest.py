"""
conftest.py

Shared fixtures. Keeps the audit log out of the working tree and provides
a FakeProvider that records calls instead of talking to a cloud API.
"""

import os
import tempfile

os.environ.setdefault("AUDIT_LOG_FILE", os.path.join(tempfile.gettempdir(), "wolkenlauf-test-audit.log"))

import pytest

from providers import (
    CanonicalStatus,
    CloudProvider,
    Dispatcher,
    ProviderName,
    VMResponse,
    VMStatus,
)


class FakeProvider(CloudProvider):
    """In-memory backend. `error` is raised from every vendor-touching call."""

    def __init__(self, name: ProviderName, allowed=("small", "large")):
        self.name = name
        self.allowed = set(allowed)
        self.calls = []
        self.error = None

    def _maybe_fail(self):
        if self.error is not None:
            raise self.error

    def supports_instance_type(self, instance_type):
        return instance_type in self.allowed

    def create_vm(self, request, log=print):
        self.calls.append(("create", request))
        self._maybe_fail()
        return VMResponse(
            id=f"{self.name.value}-1",
            name=request.name,
            provider=self.name.value,
            instance_type=request.instance_type,
            region=request.region,
            status=CanonicalStatus.PENDING,
            ssh_username="root",
            ssh_password="Abcdefgh12345678",
            image="ubuntu-22.04",
        )

    def delete_vm(self, vm_id, log=print):
        self.calls.append(("delete", vm_id))
        self._maybe_fail()

    def get_vm_status(self, vm_id):
        self.calls.append(("status", vm_id))
        self._maybe_fail()
        return VMStatus(id=vm_id, status=CanonicalStatus.RUNNING, public_ip="203.0.113.7")

    def check_credentials(self):
        self._maybe_fail()
        return "ok"


@pytest.fixture
def fake_aws():
    return FakeProvider(ProviderName.AWS)


@pytest.fixture
def fake_hetzner():
    return FakeProvider(ProviderName.HETZNER)


@pytest.fixture
def dispatcher(fake_aws, fake_hetzner):
    return Dispatcher({ProviderName.AWS: fake_aws, ProviderName.HETZNER: fake_hetzner})
