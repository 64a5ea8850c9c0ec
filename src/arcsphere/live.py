"""
Live pygame host.

Plays an audio file and ticks the engine once per display frame. The
playback position drives the spectrum read head; a monotonic clock
drives motion, so particles keep breathing while playback is paused.

Usage:
    arcsphere-live <audio_file> [options]

Keys: space pauses/resumes, escape quits.
"""

import argparse
import sys
import time
from pathlib import Path

import numpy as np
import pygame

from arcsphere.core.spectrum import AnalyserSpectrum
from arcsphere.engine import ArcSphereEngine, EngineConfig
from arcsphere.render.preview import PreviewConfig, PreviewRenderer


def to_surface(rgb: np.ndarray) -> pygame.Surface:
    """(H, W, 3) uint8 -> pygame Surface (pygame wants (W, H, 3))."""
    return pygame.surfarray.make_surface(np.ascontiguousarray(rgb.swapaxes(0, 1)))


def run_live(
    audio_path: Path,
    width: int = 960,
    height: int = 540,
    fps: int = 60,
    seed: int | None = None,
    rings: int = 0,
):
    spectrum = AnalyserSpectrum.from_file(audio_path, fps=fps)
    engine = ArcSphereEngine(EngineConfig(fps=fps, rings=rings), source=spectrum, seed=seed)
    renderer = PreviewRenderer(PreviewConfig(width=width, height=height, fps=fps))
    engine.attach_renderer(renderer)

    pygame.init()
    pygame.display.set_caption(f"ArcSphere - {audio_path.name}")
    screen = pygame.display.set_mode((width, height), pygame.RESIZABLE)
    pygame.mixer.music.load(str(audio_path))
    pygame.mixer.music.play()

    clock = pygame.time.Clock()
    start = time.monotonic()
    paused = False
    playhead = 0.0

    try:
        running = True
        while running:
            for event in pygame.event.get():
                if event.type == pygame.QUIT:
                    running = False
                elif event.type == pygame.KEYDOWN and event.key == pygame.K_ESCAPE:
                    running = False
                elif event.type == pygame.KEYDOWN and event.key == pygame.K_SPACE:
                    paused = not paused
                    if paused:
                        pygame.mixer.music.pause()
                    else:
                        pygame.mixer.music.unpause()
                elif event.type == pygame.VIDEORESIZE:
                    screen = pygame.display.set_mode((event.w, event.h), pygame.RESIZABLE)
                    renderer.resize(event.w, event.h)

            pos_ms = pygame.mixer.music.get_pos()
            if pos_ms >= 0:
                playhead = pos_ms / 1000.0
            if paused or not pygame.mixer.music.get_busy():
                engine.attach_source(None)
            else:
                engine.attach_source(spectrum)
                spectrum.seek(playhead)

            frame = engine.tick(time.monotonic() - start)
            screen.blit(to_surface(renderer.render(frame)), (0, 0))
            pygame.display.flip()
            clock.tick(fps)
    finally:
        engine.stop()
        pygame.mixer.music.stop()
        pygame.quit()


def main(argv: list[str] | None = None):
    parser = argparse.ArgumentParser(
        prog="arcsphere-live",
        description="Play an audio file with the live ArcSphere visualization",
    )
    parser.add_argument("audio", type=Path, help="Input audio file (wav, mp3, ogg)")
    parser.add_argument("--width", type=int, default=960)
    parser.add_argument("--height", type=int, default=540)
    parser.add_argument("-f", "--fps", type=int, default=60)
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--rings", type=int, default=0)
    args = parser.parse_args(argv)

    if not args.audio.exists():
        print(f"Error: Audio file not found: {args.audio}", file=sys.stderr)
        sys.exit(1)

    run_live(args.audio, args.width, args.height, args.fps, args.seed, args.rings)


if __name__ == "__main__":
    main()
