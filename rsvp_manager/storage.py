"""
Cloudflare R2 object storage (S3 compatible)
"""

import logging
from typing import Optional

import boto3
from botocore.config import Config

from .config import R2_ACCESS_KEY_ID, R2_ACCOUNT_ID, R2_BUCKET_NAME, R2_SECRET_ACCESS_KEY

logger = logging.getLogger(__name__)

PRESIGNED_URL_EXPIRATION = 3600  # 1 hour

_r2_client = None


def is_r2_configured() -> bool:
    return bool(R2_ACCOUNT_ID and R2_ACCESS_KEY_ID and R2_SECRET_ACCESS_KEY and R2_BUCKET_NAME)


def get_r2_client():
    """Create (once) and return an R2 client."""
    global _r2_client
    if _r2_client is None:
        _r2_client = boto3.client(
            "s3",
            endpoint_url=f"https://{R2_ACCOUNT_ID}.r2.cloudflarestorage.com",
            aws_access_key_id=R2_ACCESS_KEY_ID,
            aws_secret_access_key=R2_SECRET_ACCESS_KEY,
            config=Config(signature_version="s3v4"),
        )
    return _r2_client


def upload_bytes(key: str, body: bytes, content_type: str = "application/octet-stream") -> None:
    r2 = get_r2_client()
    r2.put_object(Bucket=R2_BUCKET_NAME, Key=key, Body=body, ContentType=content_type)
    logger.info(f"✅ Uploaded {len(body)} bytes to R2: {key}")


def download_bytes(key: str) -> bytes:
    r2 = get_r2_client()
    response = r2.get_object(Bucket=R2_BUCKET_NAME, Key=key)
    return response["Body"].read()


def delete_object(key: str) -> bool:
    """Best effort delete. Returns False instead of raising."""
    try:
        get_r2_client().delete_object(Bucket=R2_BUCKET_NAME, Key=key)
        logger.info(f"🗑️ Deleted R2 object: {key}")
        return True
    except Exception as e:
        logger.warning(f"⚠️ Failed to delete R2 object {key}: {e}")
        return False


def generate_presigned_url(
    key: str, expiration: int = PRESIGNED_URL_EXPIRATION, download_name: Optional[str] = None
) -> str:
    """Generate a presigned URL for accessing a private object in R2."""
    params = {"Bucket": R2_BUCKET_NAME, "Key": key}
    if download_name:
        params["ResponseContentDisposition"] = f'attachment; filename="{download_name}"'

    try:
        url = get_r2_client().generate_presigned_url("get_object", Params=params, ExpiresIn=expiration)
        logger.info(f"✅ Generated presigned URL for key: {key}")
        return url
    except Exception as e:
        logger.error(f"❌ Failed to generate presigned URL for key {key}: {e}")
        raise
