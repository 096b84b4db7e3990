"""Per resource block received power of a downlink subframe."""

from __future__ import annotations

import math
from typing import Sequence

import numpy as np

SYMBOLS_PER_SUBFRAME = 14
SUBCARRIERS_PER_RB = 12


class SubframePower:
    """Average power per resource block in dB, with its extremes."""

    def __init__(self, nof_prb: int) -> None:
        if nof_prb < 0:
            raise ValueError("nof_prb must not be negative")
        self.nof_prb = nof_prb
        self._rb_power = np.zeros(nof_prb, dtype=np.float32)
        self.max = 0.0
        self.min = 0.0

    def compute(self, symbols: Sequence[complex]) -> None:
        """Compute the power from a subframe grid of 14 OFDM symbols."""
        needed = SYMBOLS_PER_SUBFRAME * SUBCARRIERS_PER_RB * self.nof_prb
        grid = np.asarray(symbols, dtype=np.complex64).ravel()
        if grid.size < needed:
            raise ValueError(f"need {needed} symbols, got {grid.size}")
        grid = grid[:needed].reshape(SYMBOLS_PER_SUBFRAME, self.nof_prb, SUBCARRIERS_PER_RB)
        energy = (grid.real * grid.real + grid.imag * grid.imag).astype(np.float32)
        accumulated = energy.mean(axis=2).sum(axis=0)
        offset = np.float32(10 * math.log10(SYMBOLS_PER_SUBFRAME))
        with np.errstate(divide="ignore"):
            power = (np.float32(10) * np.log10(accumulated) - offset).astype(np.float32)
        self._rb_power = power
        if power.size:
            self.max = float(power.max())
            self.min = float(power.min())
        else:
            self.max = -float(np.finfo(np.float32).max)
            self.min = float(np.finfo(np.float32).max)

    def rb_power_dl(self) -> np.ndarray:
        """Downlink power per resource block in dB."""
        return self._rb_power.copy()

    def rb_power_ul(self) -> np.ndarray:
        """Uplink power per resource block; the same grid as the downlink one."""
        return self._rb_power.copy()