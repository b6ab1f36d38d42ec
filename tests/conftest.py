import subprocess
from concurrent.futures import Executor, Future
from pathlib import Path

import pytest
from botocore.exceptions import ClientError

from transcoder.config import PipelineConfig
from transcoder.keys import StaticKeyProvider
from transcoder.models import Lesson
from transcoder.pipeline import VideoPipeline


def client_error(code: str, op: str = "HeadObject") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, op)


class FakeStorage:
    """In-memory stand-in for BlobStorage."""

    def __init__(self):
        self.objects: dict[tuple[str, str], bytes] = {}
        self.buckets: set[str] = {"uploads"}
        self.uploads: list[tuple[str, str, str | None]] = []
        self.fail_upload_after: int | None = None

    def put(self, bucket: str, key: str, data: bytes = b"\x00video") -> None:
        self.buckets.add(bucket)
        self.objects[(bucket, key)] = data

    def download_file(self, bucket, key, dest):
        if (bucket, key) not in self.objects:
            raise client_error("404")
        Path(dest).write_bytes(self.objects[(bucket, key)])

    def upload_file(self, local_path, bucket, key, content_type=None):
        if self.fail_upload_after is not None and len(self.uploads) >= self.fail_upload_after:
            raise client_error("InternalError", "PutObject")
        self.objects[(bucket, key)] = Path(local_path).read_bytes()
        self.uploads.append((bucket, key, content_type))

    def ensure_bucket(self, bucket):
        self.buckets.add(bucket)

    def keys(self, bucket: str) -> list[str]:
        return sorted(k for b, k in self.objects if b == bucket)


class FakeTools:
    """
    Replacement for subprocess.run that imitates ffmpeg and the packager:
    it writes the files the real tools would write and can be told to fail.
    """

    def __init__(self):
        self.calls: list[list[str]] = []
        self.fail_tier: str | None = None
        self.fail_packager = False
        self.timeout_tool: str | None = None

    def __call__(self, argv, check=False, stdout=None, stderr=None, timeout=None, cwd=None):
        self.calls.append(list(argv))
        tool = Path(argv[0]).name
        if tool == self.timeout_tool:
            raise subprocess.TimeoutExpired(argv, timeout, stderr=b"still running")
        if tool == "ffmpeg":
            return self._ffmpeg(argv)
        if tool == "packager":
            return self._packager(argv, Path(cwd))
        raise FileNotFoundError(argv[0])

    def _ffmpeg(self, argv):
        output = Path(argv[-1])
        if self.fail_tier and output.stem.endswith(f"-{self.fail_tier}"):
            raise subprocess.CalledProcessError(1, argv, output=b"", stderr=b"Conversion failed!")
        output.write_bytes(b"encoded")
        return subprocess.CompletedProcess(argv, 0, b"", b"")

    def _packager(self, argv, cwd: Path):
        if self.fail_packager:
            raise subprocess.CalledProcessError(255, argv, output=b"", stderr=b"Packaging failed")
        for arg in argv[1:]:
            if not arg.startswith("in="):
                continue
            fields = dict(part.split("=", 1) for part in arg.split(","))
            (cwd / fields["output"]).write_bytes(b"segments")
            (cwd / fields["playlist_name"]).write_text("#EXTM3U\n")
        (cwd / argv[argv.index("--mpd_output") + 1]).write_text("<MPD/>")
        (cwd / argv[argv.index("--hls_master_playlist_output") + 1]).write_text("#EXTM3U\n")
        return subprocess.CompletedProcess(argv, 0, b"packaged", b"")

    def invoked(self, tool: str) -> list[list[str]]:
        return [c for c in self.calls if Path(c[0]).name == tool]


class InlineExecutor(Executor):
    """Runs submitted work immediately on the calling thread."""

    def submit(self, fn, *args, **kwargs):
        future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except BaseException as e:
            future.set_exception(e)
        return future


@pytest.fixture
def storage():
    s = FakeStorage()
    s.put("uploads", "v1.mp4")
    return s


@pytest.fixture
def tools(monkeypatch):
    fake = FakeTools()
    monkeypatch.setattr("transcoder.process.subprocess.run", fake)
    return fake


@pytest.fixture
def workspace_root(tmp_path):
    return tmp_path / "work"


@pytest.fixture
def config(workspace_root):
    return PipelineConfig(
        queue_name="video-processing-queue",
        max_in_flight=2,
        uploads_bucket="uploads",
        processed_bucket="processed-videos",
        workspace_root=workspace_root,
        workspace_max_age=3600,
        ffmpeg_bin="ffmpeg",
        packager_bin="packager",
        encode_timeout=30,
        package_timeout=30,
        audio_bitrate="128k",
        primary_protocol="dash",
    )


@pytest.fixture
def key_provider():
    return StaticKeyProvider("eb67645e-591c-528c-a2d0-f6850b99e27f", "100b6c20940f779a6c489557e2d2a118")


@pytest.fixture
def pipeline(config, storage, key_provider):
    return VideoPipeline(config, storage, key_provider=key_provider)


@pytest.fixture
def lesson(db):
    return Lesson.objects.create(id="L1", title="Intro")
