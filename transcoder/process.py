import logging
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

logger = logging.getLogger(__name__)

STDERR_TAIL_CHARS = 4000


def _decode(raw) -> str:
    if not raw:
        return ""
    if isinstance(raw, bytes):
        return raw.decode("utf-8", errors="ignore")
    return raw


@dataclass(frozen=True)
class ToolResult:
    argv: tuple[str, ...]
    stdout: str
    stderr: str
    elapsed: float


class ToolFailed(Exception):
    """External tool could not be started or exited non-zero."""

    def __init__(self, argv: Sequence[str], returncode: int | None, stderr: str = ""):
        self.argv = tuple(argv)
        self.returncode = returncode
        self.stderr = stderr[-STDERR_TAIL_CHARS:]
        super().__init__(f"{self.argv[0]} exited with {returncode}")


class ToolTimeout(ToolFailed):
    def __init__(self, argv: Sequence[str], timeout: float, stderr: str = ""):
        super().__init__(argv, None, stderr)
        self.timeout = timeout
        self.args = (f"{self.argv[0]} timed out after {timeout}s",)


def run_tool(cmd: Sequence[str], *, timeout: float | None = None, cwd: Path | None = None) -> ToolResult:
    """
    Run an external tool from an explicit argv list (never through a shell).
    Output is captured; non-zero exit, timeout, or a missing executable
    raise ToolFailed / ToolTimeout.
    """
    argv = [str(part) for part in cmd]
    started = time.monotonic()
    try:
        proc = subprocess.run(
            argv,
            check=True,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            timeout=timeout,
            cwd=str(cwd) if cwd else None,
        )
    except subprocess.TimeoutExpired as e:
        raise ToolTimeout(argv, timeout, _decode(e.stderr)) from e
    except subprocess.CalledProcessError as e:
        raise ToolFailed(argv, e.returncode, _decode(e.stderr)) from e
    except OSError as e:
        raise ToolFailed(argv, None, str(e)) from e

    result = ToolResult(
        argv=tuple(argv),
        stdout=_decode(proc.stdout),
        stderr=_decode(proc.stderr),
        elapsed=time.monotonic() - started,
    )
    logger.debug("%s finished in %.1fs", argv[0], result.elapsed)
    if result.stdout:
        logger.debug("%s stdout: %s", argv[0], result.stdout[-STDERR_TAIL_CHARS:])
    if result.stderr:
        logger.debug("%s stderr: %s", argv[0], result.stderr[-STDERR_TAIL_CHARS:])
    return result
