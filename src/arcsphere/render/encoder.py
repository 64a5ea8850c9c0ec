"""
FFmpeg video encoder.

Rendered frames are written as raw rgb24 to ffmpeg's stdin. When an audio
path is given the track is muxed in and the output is cut to the shorter
of the two streams.
"""

import contextlib
import subprocess
from pathlib import Path
from typing import Callable, Iterable

# quality -> (x264 preset, crf, pix_fmt)
QUALITY_PRESETS = {
    "high": ("slow", "18", "yuv444p"),
    "medium": ("medium", "23", "yuv420p"),
    "fast": ("ultrafast", "28", "yuv420p"),
}


def build_command(
    output_path: Path,
    width: int,
    height: int,
    fps: int,
    quality: str = "high",
    audio_path: Path | None = None,
    duration: float | None = None,
) -> list[str]:
    """Assemble the ffmpeg argument list. Unknown qualities use "high"."""
    preset, crf, pix_fmt = QUALITY_PRESETS.get(quality, QUALITY_PRESETS["high"])

    inputs = [
        "-f", "rawvideo", "-pix_fmt", "rgb24",
        "-s", f"{width}x{height}", "-r", str(fps),
        "-i", "pipe:0",
    ]
    video = ["-c:v", "libx264", "-preset", preset, "-crf", crf, "-pix_fmt", pix_fmt]

    if audio_path is None:
        audio = ["-an"]
    else:
        inputs += ["-i", str(audio_path)]
        audio = ["-c:a", "aac", "-b:a", "192k", "-shortest"]

    limit = [] if duration is None else ["-t", str(duration)]
    # stderr is only drained after the pipe closes, so keep it short
    head = ["ffmpeg", "-y", "-loglevel", "error", "-nostats"]
    return head + inputs + video + audio + limit + [str(output_path)]


def _summarize_stderr(raw: bytes, keep: int = 5) -> str:
    text = raw.decode("utf-8", errors="replace")
    flagged = [ln for ln in text.splitlines() if "error" in ln.lower() or "invalid" in ln.lower()]
    return "\n".join(flagged[-keep:]) if flagged else text[-500:]


def encode_video(
    frame_iterator: Iterable,
    output_path: Path,
    width: int = 1280,
    height: int = 720,
    fps: int = 60,
    quality: str = "high",
    audio_path: Path | None = None,
    duration: float | None = None,
    total_frames: int | None = None,
    progress_callback: Callable[[int, int], None] | None = None,
) -> Path:
    """
    Encode rendered frames to an MP4.

    Args:
        frame_iterator: Yields (H, W, 3) uint8 arrays of the given size.
        output_path: Destination file; parent directories are created.
        width, height, fps: Raw stream geometry and rate.
        quality: Key of QUALITY_PRESETS.
        audio_path: Track to mux in, or None for a silent video.
        duration: Optional cut-off in seconds.
        total_frames: Expected frame count, for progress reporting.
        progress_callback: Called as (frames_written, total_frames).

    Returns:
        The output path.

    Raises:
        RuntimeError: If ffmpeg exits with a non-zero code.
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    cmd = build_command(output_path, width, height, fps, quality, audio_path, duration)
    with subprocess.Popen(cmd, stdin=subprocess.PIPE, stderr=subprocess.PIPE) as proc:
        written = 0
        try:
            for frame in frame_iterator:
                proc.stdin.write(frame.tobytes())
                written += 1
                if progress_callback and total_frames:
                    progress_callback(written, total_frames)
        except BrokenPipeError:
            # ffmpeg quit early; the return code below says why
            pass
        finally:
            with contextlib.suppress(BrokenPipeError):
                proc.stdin.close()
        stderr = proc.stderr.read()
        returncode = proc.wait()

    if returncode != 0:
        raise RuntimeError(f"ffmpeg exited with code {returncode}: {_summarize_stderr(stderr)}")
    return output_path
