"""
R2 storage backend using boto3 (S3-compatible).
Stores generated images in a Cloudflare R2 bucket instead of a local directory.
"""
import os
import logging

import boto3
from botocore.config import Config

# Configuration from environment
R2_ACCOUNT_ID = os.getenv("R2_ACCOUNT_ID")
R2_ACCESS_KEY_ID = os.getenv("R2_ACCESS_KEY_ID")
R2_SECRET_ACCESS_KEY = os.getenv("R2_SECRET_ACCESS_KEY")
R2_BUCKET_NAME = os.getenv("R2_BUCKET_NAME", "layerstack-output")
R2_ENDPOINT_URL = os.getenv(
    "R2_ENDPOINT_URL",
    f"https://{R2_ACCOUNT_ID}.r2.cloudflarestorage.com" if R2_ACCOUNT_ID else None
)

s3_client = None
if R2_ENDPOINT_URL and R2_ACCESS_KEY_ID and R2_SECRET_ACCESS_KEY:
    s3_client = boto3.client(
        "s3",
        endpoint_url=R2_ENDPOINT_URL,
        aws_access_key_id=R2_ACCESS_KEY_ID,
        aws_secret_access_key=R2_SECRET_ACCESS_KEY,
        region_name="auto",
        config=Config(max_pool_connections=50),
    )
    logging.info(f"📦 R2 client initialized for bucket: {R2_BUCKET_NAME}")


def put_bytes(key: str, data: bytes, content_type: str = "application/octet-stream"):
    """Upload a byte payload to R2."""
    if not s3_client:
        raise RuntimeError(
            "R2 client not initialized. Set R2_ACCOUNT_ID, R2_ACCESS_KEY_ID, R2_SECRET_ACCESS_KEY"
        )

    try:
        s3_client.put_object(
            Bucket=R2_BUCKET_NAME,
            Key=key,
            Body=data,
            ContentType=content_type,
            CacheControl="public, max-age=31536000, immutable",
        )
        logging.info(f"☁️ Uploaded to R2: {key}")
    except Exception as e:
        logging.error(f"❌ Failed to upload to R2 {key}: {e}")
        raise


def make_writer(prefix: str):
    prefix = prefix.strip("/")

    def _writer(key: str, data: bytes, content_type: str):
        put_bytes(f"{prefix}/{key}" if prefix else key, data, content_type)

    return _writer
