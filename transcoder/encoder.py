import logging
from dataclasses import dataclass
from pathlib import Path

from .config import Rendition
from .errors import EncodingFailed
from .process import ToolFailed, ToolTimeout, run_tool

logger = logging.getLogger(__name__)

# Fixed GOP so every tier has keyframes at the same timestamps;
# the packager needs aligned segments to switch bitrates cleanly.
GOP_SIZE = "48"


@dataclass(frozen=True)
class EncodedFile:
    rendition: Rendition
    path: Path


def _bufsize(bitrate: str) -> str:
    """Twice the target bitrate, kept in ffmpeg notation."""
    digits = bitrate.rstrip("kKmM")
    suffix = bitrate[len(digits):]
    return f"{int(digits) * 2}{suffix}"


def build_encode_command(ffmpeg_bin: str, source: Path, rendition: Rendition, output: Path,
                         audio_bitrate: str = "128k") -> list[str]:
    return [
        ffmpeg_bin,
        "-y",
        "-hide_banner",
        "-i", str(source),
        "-vf", f"scale={rendition.width}:{rendition.height}",
        "-c:v", "libx264",
        "-preset", "veryfast",
        "-b:v", rendition.bitrate,
        "-maxrate", rendition.bitrate,
        "-bufsize", _bufsize(rendition.bitrate),
        "-g", GOP_SIZE,
        "-keyint_min", GOP_SIZE,
        "-sc_threshold", "0",
        "-c:a", "aac",
        "-b:a", audio_bitrate,
        str(output),
    ]


def encode_rendition(source: Path, rendition: Rendition, out_dir: Path, base: str, *,
                     ffmpeg_bin: str = "ffmpeg", audio_bitrate: str = "128k",
                     timeout: float | None = None) -> EncodedFile:
    """Transcode the source to one tier (H.264/AAC MP4)."""
    output = out_dir / f"{base}-{rendition.name}.mp4"
    cmd = build_encode_command(ffmpeg_bin, source, rendition, output, audio_bitrate)
    logger.info("Transcoding %s to %s (%dx%d @ %s)", source.name, rendition.name,
                rendition.width, rendition.height, rendition.bitrate)
    try:
        run_tool(cmd, timeout=timeout)
    except ToolTimeout as e:
        raise EncodingFailed(f"{rendition.name} encode timed out after {timeout}s",
                             tier=rendition.name, detail=e.stderr) from e
    except ToolFailed as e:
        raise EncodingFailed(f"{rendition.name} encode failed (exit {e.returncode})",
                             tier=rendition.name, detail=e.stderr) from e

    if not output.is_file():
        raise EncodingFailed(f"{rendition.name} encode produced no output", tier=rendition.name)
    logger.info("Transcoding %s finished", rendition.name)
    return EncodedFile(rendition=rendition, path=output)


def encode_ladder(source: Path, renditions, out_dir: Path, base: str, **kwargs) -> list[EncodedFile]:
    """Encode every tier in order. The first failure aborts the whole ladder."""
    return [encode_rendition(source, r, out_dir, base, **kwargs) for r in renditions]
