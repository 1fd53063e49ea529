"""
config.py

Environment-driven settings for the API server and the CLI.

Every knob is an env var so you tune without code changes. A `.env` file in
the working directory is loaded first (python-dotenv), real environment
variables win over it.

    AWS_REGION              default us-east-1
    AWS_ACCESS_KEY_ID       empty → boto3 default credential chain
    AWS_SECRET_ACCESS_KEY
    AWS_IMAGE_PREFERENCE    ubuntu | amazon-linux  (first general-purpose AMI searched)
    HETZNER_TOKEN           required for any Hetzner call
    HETZNER_DEFAULT_IMAGE   default ubuntu-22.04
    PORT                    default 8080
    ALLOWED_ORIGINS         comma-separated CORS origins, default "*"
    LOG_LEVEL               default INFO
    AUDIT_LOG_FILE          default audit.log
"""

import logging
import os
from dataclasses import dataclass, field
from typing import List, Optional

from dotenv import load_dotenv

IMAGE_PREFERENCES = ("ubuntu", "amazon-linux")


@dataclass(frozen=True)
class AWSConfig:
    region: str = "us-east-1"
    access_key_id: Optional[str] = None
    secret_access_key: Optional[str] = None
    image_preference: str = "ubuntu"


@dataclass(frozen=True)
class HetznerConfig:
    token: Optional[str] = None
    default_image: str = "ubuntu-22.04"


@dataclass(frozen=True)
class AppConfig:
    aws: AWSConfig = field(default_factory=AWSConfig)
    hetzner: HetznerConfig = field(default_factory=HetznerConfig)
    port: int = 8080
    allowed_origins: List[str] = field(default_factory=lambda: ["*"])
    log_level: str = "INFO"
    audit_log_file: str = "audit.log"


def _env(key: str, default: Optional[str] = None) -> Optional[str]:
    """Like os.getenv, but an empty string counts as unset."""
    value = os.getenv(key)
    return value if value else default


def load_config(dotenv: bool = True) -> AppConfig:
    """Read the environment (after an optional .env load) into an AppConfig."""
    if dotenv:
        load_dotenv()

    preference = _env("AWS_IMAGE_PREFERENCE", "ubuntu").lower()
    if preference not in IMAGE_PREFERENCES:
        raise ValueError(
            f"AWS_IMAGE_PREFERENCE must be one of {', '.join(IMAGE_PREFERENCES)}, "
            f"got '{preference}'"
        )

    raw_origins = _env("ALLOWED_ORIGINS", "*")
    origins = (
        [o.strip() for o in raw_origins.split(",") if o.strip()]
        if raw_origins != "*"
        else ["*"]
    )

    return AppConfig(
        aws=AWSConfig(
            region=_env("AWS_REGION", "us-east-1"),
            access_key_id=_env("AWS_ACCESS_KEY_ID"),
            secret_access_key=_env("AWS_SECRET_ACCESS_KEY"),
            image_preference=preference,
        ),
        hetzner=HetznerConfig(
            token=_env("HETZNER_TOKEN"),
            default_image=_env("HETZNER_DEFAULT_IMAGE", "ubuntu-22.04"),
        ),
        port=int(_env("PORT", "8080")),
        allowed_origins=origins,
        log_level=_env("LOG_LEVEL", "INFO").upper(),
        audit_log_file=_env("AUDIT_LOG_FILE", "audit.log"),
    )


def configure_logging(level: str = "INFO") -> None:
    """Root logging setup shared by server.py and main.py."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
    )
