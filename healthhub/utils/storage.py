"""
Object storage utilities for chat attachments.
Files live in a private Cloudflare R2 bucket and are served through presigned URLs.
"""

import logging
from typing import Optional

import boto3
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError

from ..config import (
    R2_ACCESS_KEY_ID,
    R2_ACCOUNT_ID,
    R2_BUCKET_NAME,
    R2_SECRET_ACCESS_KEY,
)
from ..security_utils import safe_storage_name

logger = logging.getLogger(__name__)

MAX_ATTACHMENT_SIZE_BYTES = 15 * 1024 * 1024  # 15MB


def storage_configured() -> bool:
    return bool(R2_ACCOUNT_ID and R2_ACCESS_KEY_ID and R2_SECRET_ACCESS_KEY)


def get_r2_client():
    """Get configured boto3 client for Cloudflare R2"""
    return boto3.client(
        "s3",
        endpoint_url=f"https://{R2_ACCOUNT_ID}.r2.cloudflarestorage.com",
        aws_access_key_id=R2_ACCESS_KEY_ID,
        aws_secret_access_key=R2_SECRET_ACCESS_KEY,
        config=Config(signature_version="s3v4"),
        region_name="auto",
    )


def attachment_key(thread_id: str, message_id: str, filename: str, timestamp_ms: int) -> str:
    """
    Storage key for a chat attachment.

    Format: {thread_id}/{message_id}/{timestamp_ms}-{safe_filename}
    """
    return f"{thread_id}/{message_id}/{timestamp_ms}-{safe_storage_name(filename or 'file')}"


def upload_attachment(content: bytes, key: str, mime_type: str) -> bool:
    """
    Upload an attachment to the private bucket.

    Returns:
        True if successful, False otherwise
    """
    if not storage_configured():
        logger.warning(f"⚠️ Object storage not configured, skipping upload of {key}")
        return False
    try:
        get_r2_client().put_object(
            Bucket=R2_BUCKET_NAME,
            Key=key,
            Body=content,
            ContentType=mime_type or "application/octet-stream",
        )
        return True
    except (ClientError, BotoCoreError) as e:
        logger.error(f"❌ Error uploading attachment to R2: {e}")
        return False


def generate_presigned_url(key: str, expiration_minutes: int = 15) -> Optional[str]:
    if not storage_configured():
        return None
    try:
        return get_r2_client().generate_presigned_url(
            "get_object",
            Params={"Bucket": R2_BUCKET_NAME, "Key": key},
            ExpiresIn=expiration_minutes * 60,
        )
    except (ClientError, BotoCoreError) as e:
        logger.error(f"❌ Error generating presigned URL: {e}")
        return None
