"""Per-RNTI uplink modulation tracking with SNR and timing advance statistics."""

from __future__ import annotations

import copy
import dataclasses
import math
import sys
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, TextIO, Tuple

from lteradiotrack.tracking import (
    BOLDGREEN,
    DEFAULT_INTERVAL,
    DEFAULT_MAX_SIZE,
    NOF_MCS,
    RESET,
    UeSpecConfig,
    UlModulation,
)

Clock = Callable[[], float]

_DASHES = "-" * 86 + "\n"
_MODULATED = (
    (UlModulation.QAM16_MAX, "16QAM"),
    (UlModulation.QAM64_MAX, "64QAM"),
    (UlModulation.QAM256_MAX, "256QAM"),
)


@dataclass
class UlTrackingEntry:
    """Statistics and modulation belief for one uplink RNTI."""

    time: float = 0.0
    mcs_mod: UlModulation = UlModulation.UNKNOWN
    ue_spec_config: UeSpecConfig = field(default_factory=UeSpecConfig)
    nof_active: int = 0
    nof_newtx: int = 0
    nof_success_mgs: int = 0
    nof_retx: int = 0
    nof_success_retx_nom: int = 0
    nof_success_retx_harq: int = 0
    nof_success_retx: int = 0
    nof_unsupport_mimo: int = 0
    nof_pinfo: int = 0
    nof_other_mimo: int = 0
    mcs: List[int] = field(default_factory=lambda: [0] * NOF_MCS)
    mcs_sc: List[int] = field(default_factory=lambda: [0] * NOF_MCS)
    snr: List[float] = field(default_factory=list)
    ta: List[float] = field(default_factory=list)
    to_all_database: bool = True

    @property
    def has_mimo_errors(self) -> bool:
        return bool(self.nof_unsupport_mimo or self.nof_pinfo or self.nof_other_mimo)

    @property
    def average_snr(self) -> float:
        return _mean(self.snr)

    @property
    def average_ta(self) -> float:
        return _mean(self.ta)


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def _roundf(value: float) -> int:
    return math.floor(value + 0.5) if value >= 0 else math.ceil(value - 0.5)


def _fmt(value: float) -> str:
    return format(value, ".3g")


def _merge(target: UlTrackingEntry, source: UlTrackingEntry) -> None:
    target.nof_active += source.nof_active
    target.nof_newtx += source.nof_newtx
    target.nof_success_mgs += source.nof_success_mgs
    target.nof_retx += source.nof_retx
    target.nof_success_retx_nom += source.nof_success_retx_nom
    target.nof_success_retx_harq += source.nof_success_retx_harq
    target.nof_success_retx += source.nof_success_retx
    target.nof_unsupport_mimo += source.nof_unsupport_mimo
    target.mcs = [a + b for a, b in zip(target.mcs, source.mcs)]
    target.mcs_sc = [a + b for a, b in zip(target.mcs_sc, source.mcs_sc)]
    target.snr.append(source.average_snr)
    target.ta.append(source.average_ta)


def _tail(e: UlTrackingEntry) -> str:
    snr = _fmt(e.average_snr)
    ta = e.average_ta
    ta_cell = "+" + f"{_fmt(ta):<17}" if ta >= 0 else f"{_fmt(ta):<18}"
    return f"{snr:<9}{ta_cell}{e.nof_other_mimo:<9}\n"


def _header() -> str:
    return (
        f"{'Num':<5}{'RNTI':<9}{'Max Mod':<12}{'Active':<9}{'Success':<9}"
        f"{'SNR(dB)':<9}{'DL-UL_delay(us)':<18}{'Other_Info':<9}\n"
    )


def _colored_header(num_label: str) -> str:
    return (
        f"{num_label:<5}{'RNTI':<9}{'Max Mod':<12}{'Active':<9}"
        f"{BOLDGREEN}{'Success':<13}{RESET}"
        f"{'SNR(dB)':<9}{'DL-UL_delay(us)':<18}{'Other_Info':<9}\n"
    )


def _row(num: int, rnti: int, info: str, e: UlTrackingEntry) -> str:
    return (
        f"{num:<5}{rnti:<9}{info:<12}{e.nof_active:<9}{e.nof_success_mgs:<9}" + _tail(e)
    )


def _colored_row(
    num: int, rnti: int, info: str, e: UlTrackingEntry, use_newtx: bool = False
) -> str:
    gate = e.nof_newtx if use_newtx else e.nof_active
    pct = _roundf(e.nof_success_mgs / e.nof_active * 100) if gate > 0 else 0
    success = f"{e.nof_success_mgs}({pct}%)"
    return (
        f"{num:<5}{rnti:<9}{info:<12}{e.nof_active:<9}"
        f"{BOLDGREEN}{success:<13}{RESET}" + _tail(e)
    )


class UlTracker:
    """Live and archived per-RNTI uplink tracking databases."""

    def __init__(
        self,
        max_size: int = DEFAULT_MAX_SIZE,
        interval: float = DEFAULT_INTERVAL,
        clock: Optional[Clock] = None,
    ) -> None:
        self.max_size = max_size
        self.interval = interval
        self._clock: Clock = clock or time.monotonic
        self._lock = threading.RLock()
        self.entries: Dict[int, UlTrackingEntry] = {}
        self.archive: Dict[int, UlTrackingEntry] = {}

    def __len__(self) -> int:
        return len(self.entries)

    def lookup(self, rnti: int) -> UlModulation:
        """Known modulation of an RNTI, refreshing its activity time."""
        with self._lock:
            entry = self.entries.get(rnti)
            if entry is None:
                if len(self.entries) < self.max_size:
                    return UlModulation.UNKNOWN
                return UlModulation.FULL_BUFFER
            entry.time = self._clock()
            return entry.mcs_mod

    def add(self, rnti: int, modulation: UlModulation, ue_config: UeSpecConfig) -> None:
        """Start tracking an RNTI; an already tracked RNTI is left unchanged."""
        with self._lock:
            if rnti in self.entries:
                return
            config = dataclasses.replace(ue_config, has_ue_config=False)
            self.entries[rnti] = UlTrackingEntry(
                time=self._clock(), mcs_mod=UlModulation(modulation), ue_spec_config=config
            )

    def update_modulation(
        self, rnti: int, modulation: UlModulation, ue_config: UeSpecConfig
    ) -> None:
        """Set the modulation of a tracked RNTI; an unknown one is added as unknown."""
        with self._lock:
            entry = self.entries.get(rnti)
            if entry is None:
                self.add(rnti, UlModulation.UNKNOWN, ue_config)
            else:
                entry.mcs_mod = UlModulation(modulation)

    def _archive(self, rnti: int, entry: UlTrackingEntry) -> None:
        stored = self.archive.get(rnti)
        if stored is None:
            self.archive[rnti] = copy.deepcopy(entry)
        else:
            _merge(stored, entry)

    def expire(self) -> None:
        """Drop idle or misdetected RNTIs, archiving the genuine ones."""
        with self._lock:
            now = self._clock()
            expired: List[int] = []
            for rnti in sorted(self.entries):
                entry = self.entries[rnti]
                idle_seconds = int(now - entry.time)
                wrong_detect = entry.nof_active == 0 or (
                    entry.nof_active <= 10
                    and entry.nof_success_mgs == 0
                    and entry.has_mimo_errors
                )
                if wrong_detect:
                    entry.to_all_database = False
                if idle_seconds > self.interval or wrong_detect:
                    expired.append(rnti)
            for rnti in expired:
                entry = self.entries.pop(rnti)
                if entry.to_all_database:
                    self._archive(rnti, entry)

    def merge_all(self) -> None:
        """Fold every live entry into the archive without removing it."""
        with self._lock:
            for rnti in sorted(self.entries):
                self._archive(rnti, self.entries[rnti])

    @staticmethod
    def _split_unknown(
        ordered: List[Tuple[int, UlTrackingEntry]],
    ) -> Tuple[List[Tuple[int, UlTrackingEntry]], List[Tuple[int, UlTrackingEntry]]]:
        unknown = [
            (rnti, e)
            for rnti, e in ordered
            if e.mcs_mod == UlModulation.UNKNOWN and e.nof_active > 0
        ]
        clean = [(r, e) for r, e in unknown if not e.has_mimo_errors]
        faulty = [(r, e) for r, e in unknown if e.has_mimo_errors]
        return clean, faulty

    @staticmethod
    def _summary(counts: Dict[UlModulation, int], nof_unknown: int, table_word: str) -> str:
        return (
            f"[256Tracking] Total: {counts[UlModulation.QAM16_MAX]} RNTIs are max 16QAM"
            f"{table_word}, {counts[UlModulation.QAM64_MAX]} RNTIs are max 64QAM table, "
            f"{counts[UlModulation.QAM256_MAX]} RNTIs are max 256QAM, "
            f"{nof_unknown} RNTIs are Unknown \n\n"
        )

    def report(self, file: Optional[TextIO] = None) -> None:
        """Write a table of the live database."""
        out = file if file is not None else sys.stdout
        with self._lock:
            ordered = sorted(self.entries.items())
            num = 1
            counts = {mod: 0 for mod, _ in _MODULATED}
            out.write(_DASHES)
            out.write(_header())
            out.write(_DASHES)
            for mod, label in _MODULATED:
                for rnti, entry in ordered:
                    if entry.mcs_mod == mod and entry.nof_active > 0:
                        out.write(_row(num, rnti, label, entry))
                        counts[mod] += 1
                        num += 1
            out.write(_DASHES)
            out.write(_header())
            clean, faulty = self._split_unknown(ordered)
            for rnti, entry in clean:
                out.write(_row(num, rnti, "Unknown", entry))
                num += 1
            out.write(_DASHES)
            for rnti, entry in faulty:
                out.write(_row(num, rnti, "Unknown", entry))
                num += 1
            out.write(self._summary(counts, len(clean) + len(faulty), ""))

    def report_all(self, file: Optional[TextIO] = None) -> None:
        """Write a table of the archive."""
        out = file if file is not None else sys.stdout
        with self._lock:
            ordered = sorted(self.archive.items())
            num = 1
            counts = {mod: 0 for mod, _ in _MODULATED}
            out.write(_DASHES)
            out.write(_colored_header("Num"))
            out.write(_DASHES)
            for mod, label in _MODULATED:
                for rnti, entry in ordered:
                    if entry.mcs_mod == mod and entry.nof_active > 0:
                        out.write(_colored_row(num, rnti, label, entry))
                        counts[mod] += 1
                        num += 1
            out.write(_DASHES)
            out.write(_colored_header("Num "))
            clean, faulty = self._split_unknown(ordered)
            for rnti, entry in clean:
                out.write(_colored_row(num, rnti, "Unknown", entry))
                num += 1
            out.write(_DASHES)
            for rnti, entry in faulty:
                out.write(_colored_row(num, rnti, "Unknown", entry, use_newtx=True))
                num += 1
            out.write(self._summary(counts, len(clean) + len(faulty), " table"))

    def update_statistics(
        self,
        rnti: int,
        success: bool,
        modulation: UlModulation,
        snr: float,
        ta: float,
        ue_config: UeSpecConfig,
    ) -> None:
        """Count one PUSCH decode with its SNR and timing advance."""
        with self._lock:
            self.add(rnti, modulation, ue_config)
            entry = self.entries[rnti]
            entry.nof_active += 1
            if success:
                entry.nof_success_mgs += 1
            entry.snr.append(snr)
            entry.ta.append(ta)