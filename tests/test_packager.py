from pathlib import Path

import pytest

from transcoder.config import RENDITION_LADDER
from transcoder.encoder import EncodedFile
from transcoder.errors import PackagingFailed
from transcoder.packager import build_package_command, package_renditions, plan_streams


@pytest.fixture
def encoded(tmp_path):
    files = []
    for r in RENDITION_LADDER:
        p = tmp_path / f"v1-{r.name}.mp4"
        p.write_bytes(b"enc")
        files.append(EncodedFile(r, p))
    return files


@pytest.fixture
def out_dir(tmp_path):
    d = tmp_path / "packaged"
    d.mkdir()
    return d


def test_plan_has_one_audio_and_one_video_per_tier(encoded):
    streams = plan_streams(encoded, "v1")

    assert [s.kind for s in streams] == ["audio", "video", "video", "video"]
    assert streams[0].input_path == encoded[0].path
    assert streams[0].output == "v1_audio.mp4"
    assert [s.output for s in streams[1:]] == ["v1_video_480p.mp4", "v1_video_720p.mp4", "v1_video_1080p.mp4"]


def test_plan_rejects_empty_ladder():
    with pytest.raises(PackagingFailed):
        plan_streams([], "v1")


def test_command_carries_keys_and_both_manifests(encoded, key_provider):
    keys = key_provider.keys_for("L1")
    cmd = build_package_command("packager", plan_streams(encoded, "v1"), keys, "v1.mpd", "v1.m3u8")

    descriptors = [a for a in cmd if a.startswith("in=")]
    assert len(descriptors) == 4
    assert "stream=audio" in descriptors[0] and "drm_label=AUDIO" in descriptors[0]
    assert "--enable_raw_key_encryption" in cmd
    assert cmd[cmd.index("--protection_scheme") + 1] == "cenc"
    assert cmd[cmd.index("--clear_lead") + 1] == "0"
    assert cmd[cmd.index("--keys") + 1] == (
        "label=AUDIO:key_id=eb67645e591c528ca2d0f6850b99e27f:key=100b6c20940f779a6c489557e2d2a118,"
        "label=VIDEO:key_id=eb67645e591c528ca2d0f6850b99e27f:key=100b6c20940f779a6c489557e2d2a118"
    )
    assert cmd[cmd.index("--mpd_output") + 1] == "v1.mpd"
    assert cmd[cmd.index("--hls_master_playlist_output") + 1] == "v1.m3u8"


def test_package_collects_outputs(encoded, out_dir, key_provider, tools):
    packaged = package_renditions(encoded, out_dir, "v1", key_provider.keys_for("L1"), timeout=5)

    assert packaged.dash_manifest == out_dir / "v1.mpd"
    assert packaged.hls_manifest == out_dir / "v1.m3u8"
    names = {p.name for p in packaged.files}
    assert {"v1.mpd", "v1.m3u8", "v1_audio.mp4", "v1_video_1080p.mp4"} <= names
    assert packaged.manifest_for("hls") == packaged.hls_manifest


def test_packager_runs_inside_output_dir(encoded, out_dir, key_provider, tools, monkeypatch):
    seen = {}
    real = tools.__call__

    def spy(argv, **kwargs):
        seen["cwd"] = kwargs.get("cwd")
        return real(argv, **kwargs)

    monkeypatch.setattr("transcoder.process.subprocess.run", spy)
    package_renditions(encoded, out_dir, "v1", key_provider.keys_for("L1"))

    assert Path(seen["cwd"]) == out_dir


def test_non_zero_exit_raises(encoded, out_dir, key_provider, tools):
    tools.fail_packager = True

    with pytest.raises(PackagingFailed) as info:
        package_renditions(encoded, out_dir, "v1", key_provider.keys_for("L1"))

    assert "exit 255" in str(info.value)
    assert "Packaging failed" in info.value.detail


def test_timeout_raises(encoded, out_dir, key_provider, tools):
    tools.timeout_tool = "packager"

    with pytest.raises(PackagingFailed, match="timed out"):
        package_renditions(encoded, out_dir, "v1", key_provider.keys_for("L1"), timeout=1)


def test_no_keys_is_refused(encoded, out_dir, tools):
    with pytest.raises(PackagingFailed):
        package_renditions(encoded, out_dir, "v1", [])
    assert tools.calls == []


@pytest.mark.parametrize("base", ["my,clip", "a=b"])
def test_plan_refuses_names_that_break_descriptors(encoded, base):
    with pytest.raises(PackagingFailed, match="stream descriptor"):
        plan_streams(encoded, base)


def test_plan_refuses_input_paths_that_break_descriptors(tmp_path):
    bad = tmp_path / "odd,dir" / "v1-480p.mp4"

    with pytest.raises(PackagingFailed):
        plan_streams([EncodedFile(RENDITION_LADDER[0], bad)], "v1")


def test_every_descriptor_has_exactly_the_expected_fields(encoded):
    for spec in plan_streams(encoded, "v1"):
        keys = [part.split("=", 1)[0] for part in spec.descriptor().split(",")]
        assert keys == ["in", "stream", "output", "playlist_name", "drm_label"]
