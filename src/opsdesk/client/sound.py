"""Audible alerts: an ordered chain of independently fallible strategies.

1. InlineToneStrategy: short precomputed square-wave beep
2. SirenStrategy: three swept oscillators (sawtooth, square, triangle)
3. BellStrategy: repeated terminal BEL

Audio strategies render with numpy and play through sounddevice; the audio
backend is imported on first use so a machine without PortAudio still gets
the terminal bell.
"""

from __future__ import annotations

import sys
import threading
import time
from typing import Protocol, TextIO

import numpy as np

from opsdesk.observability.logging import get_logger
from opsdesk.observability.redaction import safe_log_context

logger = get_logger(__name__)

SAMPLE_RATE = 44100


class SoundStrategy(Protocol):
    name: str

    def play(self) -> None: ...


def _output():
    import sounddevice as sd

    return sd


def square_wave(frequency: float, duration: float, *, gain: float, sample_rate: int = SAMPLE_RATE) -> np.ndarray:
    t = np.arange(int(duration * sample_rate)) / sample_rate
    return (gain * np.sign(np.sin(2 * np.pi * frequency * t))).astype(np.float32)


def _sweep(start: float, step_seconds: float, duration: float, sample_rate: int) -> np.ndarray:
    """Per-sample frequency bouncing between 800 and 2000 Hz in 100 Hz steps."""
    steps = int(np.ceil(duration / step_seconds))
    values = np.empty(steps)
    frequency, direction = start, 1
    for n in range(steps):
        values[n] = frequency
        if not 800 <= frequency + direction * 100 <= 2000:
            direction = -direction
        frequency += direction * 100
    samples_per_step = int(step_seconds * sample_rate)
    return np.repeat(values, samples_per_step)[: int(duration * sample_rate)]


def siren_wave(duration: float = 2.0, *, gain: float = 0.7, sample_rate: int = SAMPLE_RATE) -> np.ndarray:
    """Mix of three oscillators starting at 1500, 1700 and 1900 Hz."""
    total = int(duration * sample_rate)
    mix = np.zeros(total)
    for i, shape in enumerate(("sawtooth", "square", "triangle")):
        freq = _sweep(1500 + i * 200, (40 + i * 10) / 1000, duration, sample_rate)
        cycles = np.cumsum(freq) / sample_rate
        frac = cycles - np.floor(cycles)
        if shape == "sawtooth":
            wave = 2 * frac - 1
        elif shape == "square":
            wave = np.where(frac < 0.5, 1.0, -1.0)
        else:
            wave = 1 - 4 * np.abs(frac - 0.5)
        mix[: len(wave)] += wave
    return (gain * mix / 3).astype(np.float32)


class InlineToneStrategy:
    name = "inline_tone"

    def __init__(self, frequency: float = 800.0, duration: float = 0.1, gain: float = 0.1) -> None:
        self._samples = square_wave(frequency, duration, gain=gain)

    def play(self) -> None:
        _output().play(self._samples, SAMPLE_RATE)


class SirenStrategy:
    name = "siren"

    def __init__(self, duration: float = 2.0) -> None:
        self._samples = siren_wave(duration)

    def play(self) -> None:
        _output().play(self._samples, SAMPLE_RATE)


class BellStrategy:
    """Terminal BEL, written ``repeats`` times ``spacing`` seconds apart."""

    name = "bell"

    def __init__(self, stream: TextIO | None = None, *, repeats: int = 6, spacing: float = 0.3) -> None:
        self._stream = stream
        self.repeats = repeats
        self.spacing = spacing

    def _ring(self) -> None:
        stream = self._stream or sys.stdout
        for n in range(self.repeats):
            if n:
                time.sleep(self.spacing)
            stream.write("\a")
            stream.flush()

    def play(self) -> None:
        if self._stream is None and not sys.stdout.isatty():
            raise RuntimeError("stdout is not a terminal")
        threading.Thread(target=self._ring, name="bell", daemon=True).start()


class SoundChain:
    """Try strategies in order.

    ``exhaustive=False`` stops at the first strategy that plays;
    ``exhaustive=True`` tries every strategy.
    """

    def __init__(self, strategies: list[SoundStrategy]) -> None:
        self.strategies = list(strategies)

    def play(self, *, exhaustive: bool = False) -> list[str]:
        played: list[str] = []
        for strategy in self.strategies:
            try:
                strategy.play()
            except Exception as e:
                logger.debug(
                    "sound strategy failed",
                    extra={
                        "extra_fields": safe_log_context(
                            strategy=strategy.name,
                            error_type=type(e).__name__,
                        )
                    },
                )
                continue
            played.append(strategy.name)
            if not exhaustive:
                break
        return played


def default_chain(*, sound_enabled: bool = True, pc_beep_enabled: bool = True) -> SoundChain:
    strategies: list[SoundStrategy] = []
    if sound_enabled:
        strategies.extend([InlineToneStrategy(), SirenStrategy()])
    if pc_beep_enabled:
        strategies.append(BellStrategy())
    return SoundChain(strategies)
