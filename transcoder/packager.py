import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Sequence

from .encoder import EncodedFile
from .errors import PackagingFailed
from .keys import AUDIO_LABEL, VIDEO_LABEL, ContentKey
from .process import ToolFailed, ToolTimeout, run_tool
from .utils import DESCRIPTOR_RESERVED

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StreamSpec:
    input_path: Path
    kind: str  # "audio" | "video"
    output: str
    playlist: str

    def descriptor(self) -> str:
        label = AUDIO_LABEL if self.kind == "audio" else VIDEO_LABEL
        return (
            f"in={self.input_path},stream={self.kind},output={self.output},"
            f"playlist_name={self.playlist},drm_label={label}"
        )


@dataclass
class PackagedOutput:
    directory: Path
    dash_manifest: Path
    hls_manifest: Path
    files: list[Path] = field(default_factory=list)

    def manifest_for(self, protocol: str) -> Path:
        return self.dash_manifest if protocol == "dash" else self.hls_manifest


def plan_streams(encoded: Sequence[EncodedFile], base: str) -> list[StreamSpec]:
    """
    One video stream per tier plus a single audio stream. Every tier carries
    the same AAC track, so audio is taken from the first (lowest) rendition.
    """
    if not encoded:
        raise PackagingFailed("no renditions to package")
    for part in [base, *(str(e.path) for e in encoded)]:
        if any(c in part for c in DESCRIPTOR_RESERVED):
            raise PackagingFailed(f"{part!r} cannot be used in a stream descriptor")
    streams = [
        StreamSpec(encoded[0].path, "audio", f"{base}_audio.mp4", f"{base}_audio.m3u8"),
    ]
    for enc in encoded:
        tier = enc.rendition.name
        streams.append(
            StreamSpec(enc.path, "video", f"{base}_video_{tier}.mp4", f"{base}_video_{tier}.m3u8")
        )
    return streams


def build_package_command(packager_bin: str, streams: Sequence[StreamSpec], keys: Sequence[ContentKey],
                          mpd_name: str, hls_name: str) -> list[str]:
    cmd = [packager_bin]
    cmd.extend(s.descriptor() for s in streams)
    cmd += [
        "--enable_raw_key_encryption",
        "--protection_scheme", "cenc",
        "--clear_lead", "0",
        "--keys", ",".join(k.as_packager_arg() for k in keys),
        "--mpd_output", mpd_name,
        "--hls_master_playlist_output", hls_name,
    ]
    return cmd


def package_renditions(encoded: Sequence[EncodedFile], out_dir: Path, base: str, keys: Sequence[ContentKey], *,
                       packager_bin: str = "packager", timeout: float | None = None) -> PackagedOutput:
    """
    Segment and encrypt all renditions in one packager run, writing both
    the DASH and the HLS manifests into `out_dir`.
    """
    if not keys:
        raise PackagingFailed("no content keys available")
    streams = plan_streams(encoded, base)
    mpd_name, hls_name = f"{base}.mpd", f"{base}.m3u8"
    cmd = build_package_command(packager_bin, streams, keys, mpd_name, hls_name)

    logger.info("Packaging %d streams into %s", len(streams), out_dir)
    try:
        # Relative output names keep manifest URLs relative to the manifest
        run_tool(cmd, timeout=timeout, cwd=out_dir)
    except ToolTimeout as e:
        raise PackagingFailed(f"packager timed out after {timeout}s", detail=e.stderr) from e
    except ToolFailed as e:
        raise PackagingFailed(f"packager failed (exit {e.returncode})", detail=e.stderr) from e

    output = PackagedOutput(
        directory=out_dir,
        dash_manifest=out_dir / mpd_name,
        hls_manifest=out_dir / hls_name,
        files=sorted(p for p in out_dir.iterdir() if p.is_file()),
    )
    for manifest in (output.dash_manifest, output.hls_manifest):
        if not manifest.is_file():
            raise PackagingFailed(f"packager did not write {manifest.name}")
    logger.info("Packaging finished: %d files", len(output.files))
    return output
