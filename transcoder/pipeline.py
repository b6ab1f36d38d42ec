import logging
from dataclasses import dataclass
from pathlib import PurePosixPath

from .config import PipelineConfig
from .encoder import encode_ladder
from .errors import PipelineError, UnknownLesson
from .fetcher import fetch_source
from .keys import ContentKeyProvider, get_key_provider
from .models import Lesson
from .packager import package_renditions
from .publisher import publish_artifacts
from .s3 import BlobStorage
from .serializers import JobMessage
from .status import StatusRecorder
from .utils import base_name, source_key
from .workspace import JobWorkspace

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class JobOutcome:
    lesson_id: str
    status: str
    video_url: str | None = None
    failed_stage: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == Lesson.Status.READY


class VideoPipeline:
    """
    Runs one job end to end: fetch -> encode (every tier) -> package ->
    publish, then records exactly one terminal status and removes the
    workspace. Stage failures never escape `run`; only a failure to write
    the terminal status does.
    """

    def __init__(self, config: PipelineConfig, storage: BlobStorage,
                 recorder: StatusRecorder | None = None,
                 key_provider: ContentKeyProvider | None = None):
        self.config = config
        self.storage = storage
        self.recorder = recorder or StatusRecorder()
        self.key_provider = key_provider or get_key_provider()

    def run(self, job: JobMessage) -> JobOutcome:
        lesson_id = job.lesson_id
        logger.info("Processing lesson %s from %s", lesson_id, job.original_file_path)

        stage = "status"
        video_url = None
        failed_stage = None
        with JobWorkspace(self.config.workspace_root, label=f"lesson {lesson_id}") as workspace:
            try:
                if not self.recorder.mark_processing(lesson_id):
                    raise UnknownLesson(f"lesson {lesson_id} does not exist", lesson_id=lesson_id)

                key = source_key(job.original_file_path)
                base = base_name(job.original_file_path)

                stage = "fetch"
                # Fixed local name; the upload name only shapes artifact names
                local = workspace.subdir("source") / f"source{PurePosixPath(key).suffix}"
                source = fetch_source(self.storage, self.config.uploads_bucket, key, local)

                stage = "encode"
                encoded = encode_ladder(
                    source, self.config.renditions, workspace.subdir("renditions"), base,
                    ffmpeg_bin=self.config.ffmpeg_bin,
                    audio_bitrate=self.config.audio_bitrate,
                    timeout=self.config.encode_timeout,
                )

                stage = "package"
                packaged = package_renditions(
                    encoded, workspace.subdir("packaged"), base,
                    self.key_provider.keys_for(lesson_id),
                    packager_bin=self.config.packager_bin,
                    timeout=self.config.package_timeout,
                )

                stage = "publish"
                video_url = publish_artifacts(
                    self.storage, packaged, self.config.processed_bucket, lesson_id,
                    primary_protocol=self.config.primary_protocol,
                )
            except PipelineError as e:
                failed_stage = e.stage
                logger.error("Lesson %s failed at %s: %s", lesson_id, e.stage, e)
            except Exception:
                failed_stage = stage
                logger.exception("Lesson %s failed at %s with an unexpected error", lesson_id, stage)
            finally:
                self._record_outcome(lesson_id, video_url)

        if video_url:
            return JobOutcome(lesson_id, Lesson.Status.READY, video_url=video_url)
        return JobOutcome(lesson_id, Lesson.Status.FAILED, failed_stage=failed_stage)

    def _record_outcome(self, lesson_id: str, video_url: str | None) -> None:
        if video_url:
            self.recorder.mark_ready(lesson_id, video_url)
        else:
            self.recorder.mark_failed(lesson_id)
