from pathlib import Path

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import ClientError
from django.conf import settings

CONTENT_TYPES = {
    ".mpd": "application/dash+xml",
    ".m3u8": "application/vnd.apple.mpegurl",
    ".mp4": "video/mp4",
    ".m4s": "video/iso.segment",
    ".ts": "video/MP2T",
}

_MISSING_CODES = {"404", "NoSuchKey", "NoSuchBucket", "NotFound"}


def content_type_for(path) -> str | None:
    return CONTENT_TYPES.get(Path(path).suffix.lower())


def is_missing(exc: ClientError) -> bool:
    code = str(exc.response.get("Error", {}).get("Code", ""))
    return code in _MISSING_CODES


def get_s3_client():
    """
    SDK client for server-side upload/download.
    """
    session = boto3.session.Session(
        aws_access_key_id=settings.S3_ACCESS_KEY,
        aws_secret_access_key=settings.S3_SECRET_KEY,
        region_name=settings.S3_REGION,
    )
    return session.client(
        "s3",
        endpoint_url=settings.S3_ENDPOINT_URL,  # e.g. http://127.0.0.1:9000
        config=BotoConfig(
            s3={"addressing_style": "path"},
            signature_version="s3v4",
            retries={"max_attempts": 3, "mode": "standard"},
        ),
    )


class BlobStorage:
    """
    Thin wrapper over one boto3 S3 client. boto3 clients are thread-safe,
    so a single instance is shared by every concurrent job.
    """

    def __init__(self, client=None):
        self.client = client or get_s3_client()

    def download_file(self, bucket: str, key: str, dest: Path) -> None:
        self.client.download_file(bucket, key, str(dest))

    def upload_file(self, local_path: Path, bucket: str, key: str, content_type: str | None = None) -> None:
        """
        Upload a single file with an optional Content-Type.
        """
        extra = {}
        if content_type:
            extra["ContentType"] = content_type
        self.client.upload_file(str(local_path), bucket, key, ExtraArgs=extra or None)

    def ensure_bucket(self, bucket: str) -> None:
        try:
            self.client.head_bucket(Bucket=bucket)
        except ClientError as e:
            if not is_missing(e):
                raise
            try:
                self.client.create_bucket(Bucket=bucket)
            except ClientError as create_err:
                # Another job may have created it in between
                code = create_err.response.get("Error", {}).get("Code")
                if code not in ("BucketAlreadyOwnedByYou", "BucketAlreadyExists"):
                    raise
