import logging

from boto3.exceptions import Boto3Error
from botocore.exceptions import BotoCoreError, ClientError

from .errors import PublishFailed
from .packager import PackagedOutput
from .s3 import BlobStorage, content_type_for

logger = logging.getLogger(__name__)


def artifact_key(lesson_id: str, filename: str) -> str:
    return f"{lesson_id}/{filename}"


def publish_artifacts(storage: BlobStorage, packaged: PackagedOutput, bucket: str, lesson_id: str,
                      primary_protocol: str = "dash") -> str:
    """
    Upload every packaged file to `{bucket}/{lesson_id}/` and return the
    storage path of the primary manifest. Not transactional: a failure
    midway leaves the files uploaded so far in place.
    """
    try:
        storage.ensure_bucket(bucket)
    except (ClientError, BotoCoreError) as e:
        raise PublishFailed(f"bucket {bucket} unavailable", detail=str(e)) from e

    uploaded = 0
    for p in packaged.files:
        key = artifact_key(lesson_id, p.name)
        try:
            storage.upload_file(p, bucket, key, content_type=content_type_for(p))
        except (ClientError, BotoCoreError, Boto3Error, OSError) as e:
            raise PublishFailed(
                f"upload of {key} failed after {uploaded}/{len(packaged.files)} files", detail=str(e)
            ) from e
        uploaded += 1
        logger.info("Uploaded %s to %s/%s", p.name, bucket, key)

    manifest = packaged.manifest_for(primary_protocol)
    return f"{bucket}/{artifact_key(lesson_id, manifest.name)}"
