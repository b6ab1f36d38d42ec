from unittest.mock import MagicMock

import pytest
from botocore.exceptions import EndpointConnectionError

from transcoder.errors import PublishFailed, SourceUnavailable
from transcoder.fetcher import fetch_source
from transcoder.packager import PackagedOutput
from transcoder.publisher import publish_artifacts


def test_fetch_downloads_into_workspace(storage, tmp_path):
    dest = fetch_source(storage, "uploads", "v1.mp4", tmp_path / "v1.mp4")

    assert dest.read_bytes() == b"\x00video"


def test_fetch_missing_object(storage, tmp_path):
    with pytest.raises(SourceUnavailable, match="does not exist"):
        fetch_source(storage, "uploads", "gone.mp4", tmp_path / "gone.mp4")


def test_fetch_network_error():
    broken = MagicMock()
    broken.download_file.side_effect = EndpointConnectionError(endpoint_url="http://minio:9000")

    with pytest.raises(SourceUnavailable):
        fetch_source(broken, "uploads", "v1.mp4", MagicMock())


@pytest.fixture
def packaged(tmp_path):
    for name in ("v1.mpd", "v1.m3u8", "v1_audio.mp4", "v1_video_480p.mp4"):
        (tmp_path / name).write_text(name)
    return PackagedOutput(
        directory=tmp_path,
        dash_manifest=tmp_path / "v1.mpd",
        hls_manifest=tmp_path / "v1.m3u8",
        files=sorted(tmp_path.iterdir()),
    )


def test_publish_uploads_under_lesson_prefix(storage, packaged):
    url = publish_artifacts(storage, packaged, "processed-videos", "L1")

    assert url == "processed-videos/L1/v1.mpd"
    assert "processed-videos" in storage.buckets
    assert storage.keys("processed-videos") == [
        "L1/v1.m3u8", "L1/v1.mpd", "L1/v1_audio.mp4", "L1/v1_video_480p.mp4",
    ]


def test_publish_failure_reports_progress(storage, packaged):
    storage.fail_upload_after = 1

    with pytest.raises(PublishFailed, match="after 1/4 files"):
        publish_artifacts(storage, packaged, "processed-videos", "L1")
