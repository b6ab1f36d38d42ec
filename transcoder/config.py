from dataclasses import dataclass
from pathlib import Path

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured


@dataclass(frozen=True)
class Rendition:
    """One rung of the quality ladder."""

    name: str
    width: int
    height: int
    bitrate: str  # ffmpeg notation, e.g. "2500k"


# Ascending quality; the encoder walks it in this order
RENDITION_LADDER: tuple[Rendition, ...] = (
    Rendition("480p", 854, 480, "1000k"),
    Rendition("720p", 1280, 720, "2500k"),
    Rendition("1080p", 1920, 1080, "5000k"),
)

PROTOCOLS = ("dash", "hls")


@dataclass(frozen=True)
class PipelineConfig:
    queue_name: str
    max_in_flight: int
    uploads_bucket: str
    processed_bucket: str
    workspace_root: Path
    workspace_max_age: int
    ffmpeg_bin: str
    packager_bin: str
    encode_timeout: int
    package_timeout: int
    audio_bitrate: str
    primary_protocol: str
    renditions: tuple[Rendition, ...] = RENDITION_LADDER

    def __post_init__(self):
        if self.primary_protocol not in PROTOCOLS:
            raise ImproperlyConfigured(
                f"VIDEO_PRIMARY_PROTOCOL must be one of {PROTOCOLS}, got {self.primary_protocol!r}"
            )
        if self.max_in_flight < 1:
            raise ImproperlyConfigured("VIDEO_MAX_IN_FLIGHT must be at least 1")
        if not self.renditions:
            raise ImproperlyConfigured("Rendition ladder is empty")

    @classmethod
    def from_settings(cls) -> "PipelineConfig":
        return cls(
            queue_name=settings.VIDEO_QUEUE_NAME,
            max_in_flight=settings.VIDEO_MAX_IN_FLIGHT,
            uploads_bucket=settings.VIDEO_UPLOADS_BUCKET,
            processed_bucket=settings.VIDEO_PROCESSED_BUCKET,
            workspace_root=Path(settings.VIDEO_WORKSPACE_ROOT),
            workspace_max_age=settings.VIDEO_WORKSPACE_MAX_AGE,
            ffmpeg_bin=settings.FFMPEG_BIN,
            packager_bin=settings.PACKAGER_BIN,
            encode_timeout=settings.VIDEO_ENCODE_TIMEOUT,
            package_timeout=settings.VIDEO_PACKAGE_TIMEOUT,
            audio_bitrate=settings.VIDEO_AUDIO_BITRATE,
            primary_protocol=settings.VIDEO_PRIMARY_PROTOCOL,
        )
