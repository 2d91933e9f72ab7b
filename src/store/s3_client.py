"""S3 client construction.

This module encapsulates boto3 session and client creation so the
uploader and the reconciliation auditor share one credential policy.
"""

from __future__ import annotations

import os
from typing import Any

import boto3
from botocore.config import Config

from core.config import S3Settings
from core.logging_config import get_logger

_LOGGER = get_logger(__name__)


def create_s3_client(settings: S3Settings) -> Any:
    """Create a boto3 S3 client.

    ``S3_ACCESS_KEY``/``S3_SECRET_KEY`` take precedence; otherwise the
    default AWS credential chain applies. Custom endpoints use path-style
    addressing for S3-compatible services.

    Args:
        settings: Object storage settings.

    Returns:
        Boto3 S3 client.
    """
    session = boto3.session.Session(**_build_session_kwargs(settings))
    client_kwargs: dict[str, Any] = {}
    if settings.endpoint_url:
        _LOGGER.info("s3_custom_endpoint", endpoint_url=settings.endpoint_url)
        client_kwargs["endpoint_url"] = settings.endpoint_url
        client_kwargs["config"] = Config(s3={"addressing_style": "path"})
    return session.client("s3", **client_kwargs)


def _build_session_kwargs(settings: S3Settings) -> dict[str, str]:
    kwargs: dict[str, str] = {}
    if settings.profile:
        kwargs["profile_name"] = settings.profile
    if settings.region:
        kwargs["region_name"] = settings.region
    access_key = os.getenv("S3_ACCESS_KEY")
    secret_key = os.getenv("S3_SECRET_KEY")
    if access_key and secret_key:
        kwargs["aws_access_key_id"] = access_key
        kwargs["aws_secret_access_key"] = secret_key
    return kwargs
