"""
test_config.py

Environment → AppConfig.
"""

import pytest

from config import load_config

_KEYS = [
    "AWS_REGION", "AWS_ACCESS_KEY_ID", "AWS_SECRET_ACCESS_KEY", "AWS_IMAGE_PREFERENCE",
    "HETZNER_TOKEN", "HETZNER_DEFAULT_IMAGE", "PORT", "ALLOWED_ORIGINS", "LOG_LEVEL",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in _KEYS:
        monkeypatch.delenv(key, raising=False)


def test_defaults():
    config = load_config(dotenv=False)
    assert config.aws.region == "us-east-1"
    assert config.aws.access_key_id is None
    assert config.aws.image_preference == "ubuntu"
    assert config.hetzner.token is None
    assert config.hetzner.default_image == "ubuntu-22.04"
    assert config.port == 8080
    assert config.allowed_origins == ["*"]


def test_values_from_environment(monkeypatch):
    monkeypatch.setenv("AWS_REGION", "eu-central-1")
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "AKIA123")
    monkeypatch.setenv("AWS_IMAGE_PREFERENCE", "Amazon-Linux")
    monkeypatch.setenv("HETZNER_TOKEN", "secret")
    monkeypatch.setenv("PORT", "9000")
    monkeypatch.setenv("ALLOWED_ORIGINS", "https://a.example, https://b.example,")

    config = load_config(dotenv=False)

    assert config.aws.region == "eu-central-1"
    assert config.aws.access_key_id == "AKIA123"
    assert config.aws.image_preference == "amazon-linux"
    assert config.hetzner.token == "secret"
    assert config.port == 9000
    assert config.allowed_origins == ["https://a.example", "https://b.example"]


def test_empty_values_count_as_unset(monkeypatch):
    monkeypatch.setenv("AWS_REGION", "")
    monkeypatch.setenv("HETZNER_TOKEN", "")
    config = load_config(dotenv=False)
    assert config.aws.region == "us-east-1"
    assert config.hetzner.token is None


def test_bad_image_preference(monkeypatch):
    monkeypatch.setenv("AWS_IMAGE_PREFERENCE", "windows")
    with pytest.raises(ValueError):
        load_config(dotenv=False)
