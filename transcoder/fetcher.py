import logging
from pathlib import Path

from boto3.exceptions import Boto3Error
from botocore.exceptions import BotoCoreError, ClientError

from .errors import SourceUnavailable
from .s3 import BlobStorage, is_missing

logger = logging.getLogger(__name__)


def fetch_source(storage: BlobStorage, bucket: str, key: str, dest: Path) -> Path:
    """Download the uploaded original into the workspace."""
    try:
        storage.download_file(bucket, key, dest)
    except ClientError as e:
        if is_missing(e):
            raise SourceUnavailable(f"{bucket}/{key} does not exist") from e
        raise SourceUnavailable(f"could not download {bucket}/{key}", detail=str(e)) from e
    except (BotoCoreError, Boto3Error, OSError) as e:
        raise SourceUnavailable(f"could not download {bucket}/{key}", detail=str(e)) from e

    if not dest.is_file():
        raise SourceUnavailable(f"download of {bucket}/{key} produced no file")
    logger.info("Downloaded %s/%s to %s (%d bytes)", bucket, key, dest, dest.stat().st_size)
    return dest
