"""ffmpeg command building, version checks and a streaming child-process runner."""

from __future__ import annotations

import logging
import re
import shlex
import subprocess
from collections import deque
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Sequence

from cinecut.effects.timecode import format_number
from cinecut.errors import DependencyError, ExecutionError

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float], None]

PROGRESS_PATTERN = re.compile(r"time=(\d+):(\d+):(\d+(?:\.\d+)?)")
_VERSION_PATTERN = re.compile(r"ffmpeg version (\S+)")
_MAJOR_PATTERN = re.compile(r"^n?(\d+)(?:\.\d+)*")

DEFAULT_TAIL_CHARS = 500
MIN_MAJOR_VERSION = 6


@dataclass(slots=True)
class FFmpegInput:
    path: str
    options: list[str] = field(default_factory=list)


class FFmpegCommand:
    """Fluent builder for an ffmpeg argument vector (the binary itself is not included)."""

    def __init__(self) -> None:
        self.global_options: list[str] = []
        self.inputs: list[FFmpegInput] = []
        self.filters: list[str] = []
        self.maps: list[str] = []
        self.output_options: list[str] = []
        self.output_path: str | None = None

    def overwrite(self) -> FFmpegCommand:
        self.global_options.append("-y")
        return self

    def input(self, path: str | Path, options: Sequence[str] | None = None) -> FFmpegCommand:
        self.inputs.append(FFmpegInput(path=str(path), options=list(options or [])))
        return self

    def filter(self, graph: str) -> FFmpegCommand:
        if graph:
            self.filters.append(graph)
        return self

    def map(self, stream: str) -> FFmpegCommand:
        self.maps.append(stream)
        return self

    def video_codec(self, codec: str) -> FFmpegCommand:
        return self.arg("-c:v", codec)

    def audio_codec(self, codec: str) -> FFmpegCommand:
        return self.arg("-c:a", codec)

    def audio_bitrate(self, bitrate: str) -> FFmpegCommand:
        return self.arg("-b:a", bitrate)

    def crf(self, value: int) -> FFmpegCommand:
        return self.arg("-crf", str(value))

    def preset(self, name: str) -> FFmpegCommand:
        return self.arg("-preset", name)

    def pixel_format(self, name: str) -> FFmpegCommand:
        return self.arg("-pix_fmt", name)

    def fps(self, rate: float) -> FFmpegCommand:
        return self.arg("-r", format_number(rate))

    def duration(self, seconds: float) -> FFmpegCommand:
        return self.arg("-t", format_number(seconds))

    def arg(self, key: str, value: str | None = None) -> FFmpegCommand:
        self.output_options.append(key)
        if value is not None:
            self.output_options.append(value)
        return self

    def output(self, path: str | Path) -> FFmpegCommand:
        self.output_path = str(path)
        return self

    def build(self) -> list[str]:
        args = list(self.global_options)
        for item in self.inputs:
            args.extend(item.options)
            args.extend(["-i", item.path])
        if self.filters:
            args.extend(["-filter_complex", ";".join(self.filters)])
        for stream in self.maps:
            args.extend(["-map", stream])
        args.extend(self.output_options)
        if self.output_path:
            args.append(self.output_path)
        return args

    def missing_inputs(self) -> list[str]:
        return [item.path for item in self.inputs if not Path(item.path).exists()]

    def __str__(self) -> str:
        return shlex.join(["ffmpeg", *self.build()])


def parse_progress_time(line: str) -> float | None:
    """Elapsed media seconds from an ffmpeg ``time=HH:MM:SS.ms`` stats line."""

    match = PROGRESS_PATTERN.search(line)
    if match is None:
        return None
    hours, minutes, seconds = match.groups()
    return int(hours) * 3600 + int(minutes) * 60 + float(seconds)


def ffmpeg_version(binary: str = "ffmpeg") -> str | None:
    """Version token from ``ffmpeg -version``; ``None`` when the binary cannot run."""

    try:
        completed = subprocess.run(
            [binary, "-version"],
            check=True,
            capture_output=True,
            text=True,
        )
    except (FileNotFoundError, subprocess.CalledProcessError):
        return None

    match = _VERSION_PATTERN.search(completed.stdout)
    return match.group(1) if match else "unknown"


def check_ffmpeg_available(binary: str = "ffmpeg") -> bool:
    return ffmpeg_version(binary) is not None


def parse_major_version(version: str) -> int | None:
    match = _MAJOR_PATTERN.match(version)
    return int(match.group(1)) if match else None


def ensure_ffmpeg(binary: str = "ffmpeg", min_major: int = MIN_MAJOR_VERSION) -> str:
    """Fail fast with ``DependencyError`` when ffmpeg is missing or older than ``min_major``."""

    version = ffmpeg_version(binary)
    if version is None:
        raise DependencyError("ffmpeg", f"FFmpeg not found ({binary}).")

    major = parse_major_version(version)
    if major is None:
        logger.warning("Could not determine FFmpeg major version from %r; continuing", version)
    elif major < min_major:
        raise DependencyError(
            "ffmpeg",
            f"FFmpeg {version} is too old; version {min_major}.0 or newer is required.",
        )
    return version


class FFmpegRunner:
    """Runs one ffmpeg invocation at a time, streaming stderr for progress.

    ``on_progress`` receives elapsed media seconds and runs on the thread
    reading stderr, so it must return quickly.
    """

    def __init__(self, binary: str = "ffmpeg", tail_chars: int = DEFAULT_TAIL_CHARS) -> None:
        self.binary = binary
        self.tail_chars = tail_chars
        self._process: subprocess.Popen[str] | None = None
        self._cancelled = False

    def __call__(self, command: FFmpegCommand | Sequence[str], on_progress: ProgressCallback | None = None) -> None:
        self.run(command, on_progress=on_progress)

    def run(self, command: FFmpegCommand | Sequence[str], *, on_progress: ProgressCallback | None = None) -> None:
        if isinstance(command, FFmpegCommand):
            missing = command.missing_inputs()
            if missing:
                raise FileNotFoundError(f"Input file not found: {missing[0]}")
            args = command.build()
        else:
            args = list(command)

        full_command = [self.binary, *args]
        logger.info("Running ffmpeg")
        logger.debug("Command: %s", shlex.join(full_command))

        self._cancelled = False
        try:
            process = subprocess.Popen(
                full_command,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.PIPE,
                encoding="utf-8",
                errors="replace",
                bufsize=1,
            )
        except FileNotFoundError as exc:
            raise DependencyError("ffmpeg", f"FFmpeg not found ({self.binary}).") from exc

        self._process = process
        tail: deque[str] = deque()
        tail_size = 0
        returncode: int | None = None

        try:
            if process.stderr is not None:
                for line in process.stderr:
                    tail.append(line)
                    tail_size += len(line)
                    while tail_size > self.tail_chars and len(tail) > 1:
                        tail_size -= len(tail.popleft())

                    if on_progress is not None:
                        elapsed = parse_progress_time(line)
                        if elapsed is not None:
                            self._notify(on_progress, elapsed)
            returncode = process.wait()
        finally:
            if returncode is None:
                # Reading stderr failed part way; never leave the child running.
                process.kill()
                process.wait()
            self._process = None

        stderr_tail = "".join(tail)[-self.tail_chars :]
        if self._cancelled:
            raise ExecutionError("FFmpeg was cancelled", returncode=returncode, stderr_tail=stderr_tail)
        if returncode != 0:
            raise ExecutionError(
                f"FFmpeg exited with code {returncode}: {stderr_tail}",
                returncode=returncode,
                stderr_tail=stderr_tail,
            )

    def cancel(self) -> None:
        """Terminate the running child; the pending ``run`` raises ``ExecutionError``."""

        process = self._process
        if process is None or process.poll() is not None:
            return
        self._cancelled = True
        logger.info("Cancelling ffmpeg (pid %s)", process.pid)
        process.terminate()

    @staticmethod
    def _notify(callback: ProgressCallback, elapsed: float) -> None:
        try:
            callback(elapsed)
        except Exception:
            logger.exception("Progress callback failed; continuing encode")
