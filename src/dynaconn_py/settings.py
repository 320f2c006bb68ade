from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

import boto3
from botocore.config import Config

from .log import get_logger

_log = get_logger("settings")


@dataclass(frozen=True)
class ConnectorSettings:
    host: str = "localhost"
    port: int = 8000
    region: str = "ap-southeast-1"
    access_key_id: str = "fake"
    secret_access_key: str = "fake"
    max_retries: int = 0
    log_level: str | None = None
    connect_timeout: float = 5.0
    read_timeout: float = 30.0
    endpoint: str | None = None

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any] | None) -> ConnectorSettings:
        raw = raw or {}
        defaults = cls()
        return cls(
            host=str(raw.get("host") or defaults.host),
            port=int(raw.get("port") or defaults.port),
            region=str(raw.get("region") or defaults.region),
            access_key_id=str(raw.get("accessKeyId") or defaults.access_key_id),
            secret_access_key=str(raw.get("secretAccessKey") or defaults.secret_access_key),
            max_retries=int(raw.get("maxRetries") or defaults.max_retries),
            log_level=str(raw["logLevel"]) if raw.get("logLevel") else None,
            connect_timeout=float(raw.get("connectTimeout") or defaults.connect_timeout),
            read_timeout=float(raw.get("readTimeout") or defaults.read_timeout),
            endpoint=raw.get("endpoint") or None,
        )

    @property
    def endpoint_url(self) -> str:
        return self.endpoint or f"http://{self.host}:{self.port}"


def has_environment_credentials(environ: Mapping[str, str] = os.environ) -> bool:
    return bool(environ.get("AWS_ACCESS_KEY_ID") and environ.get("AWS_SECRET_ACCESS_KEY"))


def create_boto3_config(settings: ConnectorSettings) -> Config:
    return Config(
        region_name=settings.region,
        connect_timeout=settings.connect_timeout,
        read_timeout=settings.read_timeout,
        retries={"total_max_attempts": settings.max_retries + 1, "mode": "standard"},
    )


def create_dynamodb_client(
    settings: ConnectorSettings,
    *,
    environ: Mapping[str, str] = os.environ,
    session: Any | None = None,
) -> Any:
    session = session or boto3.Session()
    config = create_boto3_config(settings)

    if has_environment_credentials(environ) and settings.endpoint is None:
        _log.debug("credentials selected from environment variables")
        return session.client("dynamodb", region_name=settings.region, config=config)

    _log.info("using credentials and endpoint from connector settings: %s", settings.endpoint_url)
    return session.client(
        "dynamodb",
        region_name=settings.region,
        endpoint_url=settings.endpoint_url,
        aws_access_key_id=settings.access_key_id,
        aws_secret_access_key=settings.secret_access_key,
        config=config,
    )
