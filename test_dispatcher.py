"""
test_dispatcher.py

Provider lookup and the instance-type guard in front of create_vm().
"""

import pytest

from config import AppConfig
from providers import (
    AWSProvider,
    ClientInputError,
    Dispatcher,
    HetznerProvider,
    VendorRejection,
    VMRequest,
)


def make_request(**overrides):
    fields = dict(name="box", provider="aws", instance_type="small", region="r1", user_id="u-1")
    fields.update(overrides)
    return VMRequest(**fields)


def test_from_config_registers_both_backends():
    dispatcher = Dispatcher.from_config(AppConfig())
    assert dispatcher.supported_providers() == ["aws", "hetzner"]
    assert isinstance(dispatcher.get("aws"), AWSProvider)
    assert isinstance(dispatcher.get("hetzner"), HetznerProvider)


@pytest.mark.parametrize("name", ["gcp", "AWS", "Hetzner", "", None])
def test_unknown_provider_is_client_error(dispatcher, fake_aws, fake_hetzner, name):
    with pytest.raises(ClientInputError) as info:
        dispatcher.create(make_request(provider=name))
    assert info.value.is_client_fault
    assert fake_aws.calls == [] and fake_hetzner.calls == []


def test_unsupported_instance_type_never_reaches_backend(dispatcher, fake_hetzner):
    with pytest.raises(ClientInputError) as info:
        dispatcher.create(make_request(provider="hetzner", instance_type="cx11"))
    assert str(info.value) == "instance type cx11 not supported by provider hetzner"
    assert fake_hetzner.calls == []


def test_create_delegates_to_selected_backend(dispatcher, fake_aws, fake_hetzner):
    vm = dispatcher.create(make_request(provider="hetzner"))
    assert vm.provider == "hetzner"
    assert [c[0] for c in fake_hetzner.calls] == ["create"]
    assert fake_aws.calls == []


def test_delete_and_status_delegate(dispatcher, fake_aws):
    dispatcher.delete("i-1", "aws")
    status = dispatcher.status("i-1", "aws")
    assert status.id == "i-1"
    assert fake_aws.calls == [("delete", "i-1"), ("status", "i-1")]


def test_backend_errors_propagate_unchanged(dispatcher, fake_aws):
    fake_aws.error = VendorRejection("quota exceeded", provider="aws")
    with pytest.raises(VendorRejection):
        dispatcher.status("i-1", "aws")
