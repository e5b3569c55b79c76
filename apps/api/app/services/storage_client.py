"""Helpers for creating object-store clients."""

from __future__ import annotations

import boto3
from botocore.client import BaseClient
from botocore.config import Config

from app.core.config import settings


def _normalize_endpoint(endpoint_url: str | None) -> str | None:
    if endpoint_url:
        return endpoint_url.rstrip("/")
    return None


def _build_s3_config() -> Config:
    timeout = settings.UPLOAD_TIMEOUT_SECONDS
    return Config(
        connect_timeout=timeout,
        read_timeout=timeout,
        retries={"max_attempts": 3, "mode": "standard"},
    )


def get_s3_client(
    *,
    region: str | None = None,
    endpoint_url: str | None = None,
) -> BaseClient:
    """Return a configured S3 client (supports S3-compatible endpoints)."""
    return boto3.client(
        "s3",
        region_name=region or settings.S3_REGION or None,
        aws_access_key_id=settings.AWS_ACCESS_KEY_ID or None,
        aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY or None,
        endpoint_url=_normalize_endpoint(endpoint_url or settings.S3_ENDPOINT_URL),
        config=_build_s3_config(),
    )


def public_object_url(key: str) -> str:
    """URL under which a stored object is served to browsers."""
    if settings.S3_PUBLIC_BASE_URL:
        return f"{settings.S3_PUBLIC_BASE_URL.rstrip('/')}/{key}"
    endpoint = _normalize_endpoint(settings.S3_ENDPOINT_URL)
    if endpoint:
        return f"{endpoint}/{settings.S3_BUCKET}/{key}"
    return f"https://{settings.S3_BUCKET}.s3.{settings.S3_REGION or 'us-east-1'}.amazonaws.com/{key}"
