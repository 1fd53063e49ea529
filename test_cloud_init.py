"""
test_cloud_init.py

Password generation, server-name sanitizing and the rendered boot scripts.
"""

import re

import pytest

from providers.cloud_init import (
    DEFAULT_SERVER_NAME,
    PASSWORD_ALPHABET,
    aws_user_data,
    generate_password,
    hetzner_user_data,
    sanitize_server_name,
)

NAME_PATTERN = re.compile(r"^[a-z0-9]([a-z0-9-]{0,61}[a-z0-9])?$")

NAMES = [
    "My_Test VM!!",
    "---",
    "",
    "a" * 100,
    "a" * 62 + "-b",
    "UPPER case",
    "über-server",
    "--lead--trail--",
    "dots.and_underscores",
    "x" * 63 + "!!!",
    "ok-name-1",
]


def test_alphabet_is_letters_and_digits():
    assert len(PASSWORD_ALPHABET) == 62
    assert set(PASSWORD_ALPHABET) == set(
        "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"
    )


@pytest.mark.parametrize("length", [1, 16, 64])
def test_password_length_and_alphabet(length):
    password = generate_password(length)
    assert len(password) == length
    assert set(password) <= set(PASSWORD_ALPHABET)


def test_password_default_length_is_16():
    assert len(generate_password()) == 16


def test_passwords_do_not_repeat():
    passwords = {generate_password() for _ in range(500)}
    assert len(passwords) == 500


def test_password_rejects_non_positive_length():
    with pytest.raises(ValueError):
        generate_password(0)


def test_sanitize_examples():
    assert sanitize_server_name("My_Test VM!!") == "my-test-vm"
    assert sanitize_server_name("---") == DEFAULT_SERVER_NAME == "wolkenlauf-vm"
    assert sanitize_server_name("a" * 100) == "a" * 63


def test_sanitize_trims_hyphen_left_by_truncation():
    assert sanitize_server_name("a" * 62 + "-b") == "a" * 62


@pytest.mark.parametrize("name", NAMES)
def test_sanitize_is_idempotent_and_valid(name):
    once = sanitize_server_name(name)
    assert sanitize_server_name(once) == once
    assert len(once) <= 63
    assert NAME_PATTERN.match(once) or once == DEFAULT_SERVER_NAME


def test_aws_script_sets_password_and_enables_password_auth():
    script = aws_user_data("ubuntu", "Secret123abcXYZ0", "t3.micro")
    assert script.startswith("#!/bin/bash")
    assert "echo 'ubuntu:Secret123abcXYZ0' | chpasswd" in script
    assert "PasswordAuthentication yes" in script
    assert "apt-get install -y htop git curl wget" in script
    assert "Instance Type: t3.micro" in script
    # the password only goes to chpasswd, never into the world-readable motd
    assert script.count("Secret123abcXYZ0") == 1


def test_hetzner_script_installs_dev_toolchain():
    script = hetzner_user_data("root", "Secret123abcXYZ0", "cpx21")
    assert "echo 'root:Secret123abcXYZ0' | chpasswd" in script
    assert "PasswordAuthentication yes" in script
    assert "docker.io" in script
    assert "tensorflow-cpu" in script
    assert "Instance Type: cpx21" in script
