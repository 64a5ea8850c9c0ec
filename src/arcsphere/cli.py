"""
Offline renderer: audio file in, ArcSphere MP4 out.

Usage:
    arcsphere <audio_file> [options]
"""

import argparse
import sys
import time
from pathlib import Path
from typing import Iterator

import numpy as np

from arcsphere.core.spectrum import AnalyserSpectrum
from arcsphere.engine import ArcSphereEngine, EngineConfig
from arcsphere.lightning.automaton import LightningConfig
from arcsphere.render.encoder import QUALITY_PRESETS, encode_video
from arcsphere.render.preview import PreviewConfig, PreviewRenderer

PROFILES = {
    "low": {"width": 854, "height": 480, "fps": 30, "quality": "fast"},
    "medium": {"width": 1280, "height": 720, "fps": 60, "quality": "medium"},
    "high": {"width": 1920, "height": 1080, "fps": 60, "quality": "high"},
}


def _progress_bar(current: int, total: int, width: int = 30):
    """Redraw a bar on a terminal; print every 5% when piped."""
    frac = current / max(total, 1)
    line = f"{frac * 100:5.1f}%  {current}/{total} frames"
    if sys.stdout.isatty():
        done = int(width * frac)
        end = "\n" if current >= total else ""
        sys.stdout.write(f"\r[{'=' * done}{' ' * (width - done)}] {line}{end}")
        sys.stdout.flush()
    elif current >= total or current % max(1, total // 20) == 0:
        print(line, flush=True)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="arcsphere",
        description="Render particle shells and lightning arcs driven by an audio file",
    )
    parser.add_argument("audio", type=Path, help="Input audio file (wav, mp3, flac)")
    parser.add_argument("-o", "--output", type=Path, default=None,
                        help="Output MP4 (default: <audio>_arcsphere.mp4 next to the input)")

    video = parser.add_argument_group("video")
    video.add_argument("-p", "--profile", choices=list(PROFILES), default="medium",
                       help="low: 480p30, medium: 720p60, high: 1080p60")
    video.add_argument("--width", type=int, default=None, help="Override profile width")
    video.add_argument("--height", type=int, default=None, help="Override profile height")
    video.add_argument("-f", "--fps", type=int, default=None, help="Override profile frame rate")
    video.add_argument("-q", "--quality", choices=list(QUALITY_PRESETS), default=None,
                       help="Override profile encoder quality")
    video.add_argument("--max-duration", type=float, default=None, metavar="SECONDS",
                       help="Stop rendering after this many seconds")

    scene = parser.add_argument_group("scene")
    scene.add_argument("--seed", type=int, default=None, help="Seed for a repeatable render")
    scene.add_argument("--pool-size", type=int, default=30, help="Concurrent bolt limit (default: 30)")
    scene.add_argument("--rings", type=int, default=0, help="Orbiting rings to add (default: 0)")
    scene.add_argument("--no-bloom", action="store_true", help="Skip the bloom pass")
    scene.add_argument("--no-vignette", action="store_true", help="Skip the vignette")
    return parser


def resolve_video(args: argparse.Namespace) -> dict:
    """Profile settings with any explicit overrides applied."""
    settings = dict(PROFILES[args.profile])
    for key in ("width", "height", "fps", "quality"):
        value = getattr(args, key)
        if value:
            settings[key] = value
    return settings


def render_frames(
    engine: ArcSphereEngine,
    renderer: PreviewRenderer,
    spectrum: AnalyserSpectrum,
    n_frames: int,
    fps: int,
) -> Iterator[np.ndarray]:
    """Tick the engine on the frame clock and yield rendered images."""
    try:
        for i in range(n_frames):
            t = i / fps
            spectrum.seek(t)
            yield renderer.render(engine.tick(t))
    finally:
        engine.stop()


def main(argv: list[str] | None = None):
    args = build_parser().parse_args(argv)
    if not args.audio.exists():
        print(f"Error: no such audio file: {args.audio}", file=sys.stderr)
        sys.exit(1)

    video = resolve_video(args)
    fps = video["fps"]
    output = args.output or args.audio.with_name(f"{args.audio.stem}_arcsphere.mp4")

    started = time.time()
    print(f"Analyzing {args.audio.name} ...")
    spectrum = AnalyserSpectrum.from_file(args.audio, fps=fps)
    n_frames = spectrum.n_frames
    if args.max_duration is not None:
        n_frames = min(n_frames, int(args.max_duration * fps))
    print(f"  {spectrum.duration:.1f}s of audio, {spectrum.n_frames} spectra "
          f"({time.time() - started:.1f}s)")

    engine = ArcSphereEngine(
        EngineConfig(fps=fps, rings=args.rings, lightning=LightningConfig(pool_size=args.pool_size)),
        source=spectrum,
        seed=args.seed,
    )
    renderer = PreviewRenderer(
        PreviewConfig(
            width=video["width"],
            height=video["height"],
            fps=fps,
            bloom_enabled=not args.no_bloom,
            vignette_strength=0.0 if args.no_vignette else 0.3,
        )
    )
    engine.attach_renderer(renderer)

    print(f"Rendering {n_frames} frames, {video['width']}x{video['height']} at {fps}fps "
          f"({args.profile}, quality {video['quality']}, {args.pool_size} bolts, {args.rings} rings)")
    started = time.time()
    try:
        encode_video(
            frame_iterator=render_frames(engine, renderer, spectrum, n_frames, fps),
            output_path=output,
            width=video["width"],
            height=video["height"],
            fps=fps,
            quality=video["quality"],
            audio_path=args.audio,
            duration=n_frames / fps,
            total_frames=n_frames,
            progress_callback=_progress_bar,
        )
    finally:
        # The frame generator may never have started
        engine.stop()
    elapsed = max(time.time() - started, 0.01)

    size_mb = output.stat().st_size / (1024 * 1024)
    print(f"Wrote {output} ({size_mb:.1f} MB) in {elapsed:.1f}s, {n_frames / elapsed:.1f} fps")


if __name__ == "__main__":
    main()
