"""Per-RNTI downlink MCS table tracking and the shared tracking vocabulary."""

from __future__ import annotations

import copy
import dataclasses
import enum
import math
import sys
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, TextIO

from lteradiotrack.harq import TransmissionStatus

NOF_MCS = 32
DEFAULT_MAX_SIZE = 500
DEFAULT_INTERVAL = 10.0
DEFAULT_RAR_THRESHOLD = 5
LOW_SUCCESS_RATE = 0.15
_DCI_FORMAT1A = 2

RESET = "\033[0m"
RED = "\033[31m"
BOLDGREEN = "\033[1m\033[32m"

Clock = Callable[[], float]

_NEW_TX_TYPES = (
    TransmissionStatus.NEW_TX,
    TransmissionStatus.HARQ_FULL_BUFFER,
    TransmissionStatus.HARQ_BUSY,
)


class SnifferMode(enum.IntEnum):
    """Which link direction the sniffer decodes."""

    DL = 0
    UL = 1


class McsTable(enum.IntEnum):
    """MCS table a downlink RNTI is believed to use."""

    UNKNOWN = 0
    QAM64 = 1
    QAM256 = 2
    FULL_BUFFER = 3


class UlModulation(enum.IntEnum):
    """Highest uplink modulation observed for an RNTI."""

    UNKNOWN = 0
    QAM16_MAX = 1
    QAM64_MAX = 2
    QAM256_MAX = 3
    FULL_BUFFER = 4


class MimoResult(enum.IntEnum):
    """Outcome of the MIMO configuration check of a PDSCH decode."""

    SUCCESS = 0
    NOT_SUPPORTED = 1
    PMI_WRONG = 2
    LAYER_WRONG = 3


@dataclass
class UeSpecConfig:
    """UE-specific configuration learned from RRC signalling."""

    i_offset_ack: int = 10
    i_offset_cqi: int = 8
    i_offset_ri: int = 11
    p_a: float = 0.0
    cqi_type: str = "subband_hl"
    has_ue_config: bool = False


@dataclass
class DlTrackingEntry:
    """Statistics and MCS table belief for one downlink RNTI."""

    time: float = 0.0
    mcs_table: McsTable = McsTable.UNKNOWN
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
    has_rar: bool = False
    nof_msg_after_rar: int = 0
    to_all_database: bool = True

    @property
    def has_mimo_errors(self) -> bool:
        return bool(self.nof_unsupport_mimo or self.nof_pinfo or self.nof_other_mimo)


def _roundf(value: float) -> int:
    """Round half away from zero."""
    return math.floor(value + 0.5) if value >= 0 else math.ceil(value - 0.5)


def _percent(part: int, whole: int) -> int:
    return _roundf(part / whole * 100) if whole else 0


def _table_name(table: int) -> str:
    if table == McsTable.QAM64:
        return "64QAM"
    if table == McsTable.QAM256:
        return "256QAM"
    if table == McsTable.UNKNOWN:
        return "Unknown"
    return ""


def write_csv_row(writer: Any, rnti: int, entry: DlTrackingEntry, table: int) -> None:
    """Write one per-RNTI summary row, with a success ratio per MCS index."""
    row: List[Any] = [
        rnti,
        _table_name(table),
        entry.nof_newtx,
        entry.nof_success_mgs,
        _percent(entry.nof_success_mgs, entry.nof_newtx),
    ]
    for total, success in zip(entry.mcs, entry.mcs_sc):
        row.append(f"{success}/{total}={_percent(success, total)}%")
    row.append("")
    writer.writerow(row)


def _merge_counters(target: DlTrackingEntry, source: DlTrackingEntry) -> None:
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


def _header(num_label: str = "Num", other_label: str = "Other ") -> str:
    return (
        f"{num_label:<5}{'RNTI':<9}{'Table':<12}{'Active':<9}{'New TX':<9}{'ReTX':<9}"
        f"{'Success':<9}{'HARQ':<9}{'Normal':<9}{'W_MIMO':<9}{'W_pinfor':<9}"
        f"{other_label:<9}\n"
    )


def _colored_header(num_label: str, other_label: str) -> str:
    return (
        f"{num_label:<5}{'RNTI':<9}{'Table':<12}{'Active':<9}"
        f"{RED}{'New TX':<9}{RESET}{'ReTX':<9}"
        f"{BOLDGREEN}{'Success':<13}{RESET}"
        f"{'HARQ':<9}{'Normal':<9}{'W_MIMO':<9}{'W_pinfor':<9}{other_label:<9}\n"
    )


def _row(num: int, rnti: int, info: str, e: DlTrackingEntry) -> str:
    values = (
        e.nof_active,
        e.nof_newtx,
        e.nof_retx,
        e.nof_success_mgs,
        e.nof_success_retx_harq,
        e.nof_success_retx_nom,
        e.nof_unsupport_mimo,
        e.nof_pinfo,
        e.nof_other_mimo,
    )
    return f"{num:<5}{rnti:<9}{info:<12}" + "".join(f"{v:<9}" for v in values) + "\n"


def _colored_row(num: int, rnti: int, info: str, e: DlTrackingEntry) -> str:
    pct = _percent(e.nof_success_mgs, e.nof_active) if e.nof_newtx > 0 else 0
    success = f"{e.nof_success_mgs}({pct}%)"
    tail = (
        e.nof_success_retx_harq,
        e.nof_success_retx_nom,
        e.nof_unsupport_mimo,
        e.nof_pinfo,
        e.nof_other_mimo,
    )
    return (
        f"{num:<5}{rnti:<9}{info:<12}{e.nof_active:<9}"
        f"{RED}{e.nof_newtx:<9}{RESET}{e.nof_retx:<9}"
        f"{BOLDGREEN}{success:<13}{RESET}"
        + "".join(f"{v:<9}" for v in tail)
        + "\n"
    )


def _summary(nof_64qam: int, nof_256qam: int, nof_unknown: int) -> str:
    return (
        f"[256Tracking] Total: {nof_64qam} RNTIs are 64QAM table, {nof_256qam} RNTIs "
        f"are 256QAM table, {nof_unknown} RNTIs are Unknown \n\n"
    )


class DlTracker:
    """Live and archived per-RNTI downlink tracking databases."""

    def __init__(
        self,
        max_size: int = DEFAULT_MAX_SIZE,
        interval: float = DEFAULT_INTERVAL,
        rar_threshold: int = DEFAULT_RAR_THRESHOLD,
        harq_mode: int = 0,
        clock: Optional[Clock] = None,
    ) -> None:
        self.max_size = max_size
        self.interval = interval
        self.rar_threshold = rar_threshold
        self.harq_mode = harq_mode
        self._clock: Clock = clock or time.monotonic
        self._lock = threading.RLock()
        self.entries: Dict[int, DlTrackingEntry] = {}
        self.archive: Dict[int, DlTrackingEntry] = {}

    def __len__(self) -> int:
        return len(self.entries)

    def lookup(self, rnti: int) -> McsTable:
        """Known table of an RNTI, refreshing its activity time."""
        with self._lock:
            entry = self.entries.get(rnti)
            if entry is None:
                if len(self.entries) < self.max_size:
                    return McsTable.UNKNOWN
                return McsTable.FULL_BUFFER
            entry.time = self._clock()
            return entry.mcs_table

    def add(self, rnti: int, table: McsTable, ue_config: UeSpecConfig) -> None:
        """Start tracking an RNTI; an already tracked RNTI is left unchanged."""
        with self._lock:
            if rnti in self.entries:
                return
            config = dataclasses.replace(ue_config, has_ue_config=False)
            self.entries[rnti] = DlTrackingEntry(
                time=self._clock(), mcs_table=McsTable(table), ue_spec_config=config
            )

    def update_table(self, rnti: int, table: McsTable, ue_config: UeSpecConfig) -> None:
        """Set the table of an RNTI, holding it unknown shortly after a RAR."""
        with self._lock:
            entry = self.entries.get(rnti)
            if entry is None:
                self.add(rnti, McsTable.UNKNOWN, ue_config)
                return
            if entry.has_rar:
                if entry.nof_msg_after_rar > self.rar_threshold:
                    entry.mcs_table = McsTable(table)
                    entry.has_rar = False
                else:
                    entry.mcs_table = McsTable.UNKNOWN
            else:
                entry.mcs_table = McsTable(table)

    def mark_rar(self, crnti: int, ue_config: UeSpecConfig) -> None:
        """Note that a random access response assigned this C-RNTI."""
        with self._lock:
            self.add(crnti, McsTable.UNKNOWN, ue_config)
            entry = self.entries[crnti]
            entry.has_rar = True
            entry.mcs_table = McsTable.UNKNOWN

    def _archive(self, rnti: int, entry: DlTrackingEntry) -> None:
        stored = self.archive.get(rnti)
        if stored is None:
            self.archive[rnti] = copy.deepcopy(entry)
        else:
            _merge_counters(stored, entry)

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
                elif (
                    entry.nof_success_mgs / entry.nof_active < LOW_SUCCESS_RATE
                    and entry.mcs_table != McsTable.UNKNOWN
                ):
                    entry.mcs_table = McsTable.UNKNOWN
            for rnti in expired:
                entry = self.entries.pop(rnti)
                if entry.to_all_database:
                    self._archive(rnti, entry)

    def merge_all(self) -> None:
        """Fold every live entry into the archive without removing it."""
        with self._lock:
            for rnti in sorted(self.entries):
                self._archive(rnti, self.entries[rnti])

    def report(self, file: Optional[TextIO] = None) -> None:
        """Write a table of the live database."""
        out = file if file is not None else sys.stdout
        dashes = "-" * 104 + "\n"
        with self._lock:
            ordered = sorted(self.entries.items())
            num = 1
            counts = {McsTable.QAM64: 0, McsTable.QAM256: 0}
            out.write(dashes)
            out.write(_header())
            out.write(dashes)
            for table, label in ((McsTable.QAM64, "64QAM"), (McsTable.QAM256, "256QAM")):
                for rnti, entry in ordered:
                    if entry.mcs_table == table:
                        out.write(_row(num, rnti, label, entry))
                        counts[table] += 1
                        num += 1
            out.write(dashes)
            out.write(_header())
            nof_unknown = 0
            unknown = [
                (rnti, e)
                for rnti, e in ordered
                if e.mcs_table == McsTable.UNKNOWN and e.nof_active > 0
            ]
            for rnti, entry in unknown:
                if not entry.has_mimo_errors:
                    out.write(_row(num, rnti, "Unknown", entry))
                    nof_unknown += 1
                    num += 1
            out.write(dashes)
            for rnti, entry in unknown:
                if entry.has_mimo_errors:
                    out.write(_row(num, rnti, "Unknown", entry))
                    nof_unknown += 1
                    num += 1
            out.write(_summary(counts[McsTable.QAM64], counts[McsTable.QAM256], nof_unknown))

    def report_all(self, file: Optional[TextIO] = None, csv_writer: Any = None) -> None:
        """Write a table of the archive, optionally also as CSV rows."""
        out = file if file is not None else sys.stdout
        dashes = "-" * 109 + "\n"

        def emit_csv(rnti: int, entry: DlTrackingEntry) -> None:
            if csv_writer is not None:
                write_csv_row(csv_writer, rnti, entry, entry.mcs_table)

        with self._lock:
            ordered = sorted(self.archive.items())
            num = 1
            counts = {McsTable.QAM64: 0, McsTable.QAM256: 0}
            out.write(dashes)
            out.write(_colored_header("Num", "Other "))
            out.write(dashes)
            for table, label in ((McsTable.QAM64, "64QAM"), (McsTable.QAM256, "256QAM")):
                for rnti, entry in ordered:
                    if entry.mcs_table == table:
                        out.write(_colored_row(num, rnti, label, entry))
                        counts[table] += 1
                        num += 1
                        emit_csv(rnti, entry)
            out.write(dashes)
            out.write(_colored_header("Num ", "Other"))
            nof_unknown = 0
            unknown = [
                (rnti, e)
                for rnti, e in ordered
                if e.mcs_table == McsTable.UNKNOWN and e.nof_active > 0
            ]
            for rnti, entry in unknown:
                if not entry.has_mimo_errors:
                    out.write(_colored_row(num, rnti, "Unknown", entry))
                    nof_unknown += 1
                    num += 1
                    emit_csv(rnti, entry)
            out.write(dashes)
            for rnti, entry in unknown:
                if entry.has_mimo_errors:
                    out.write(_colored_row(num, rnti, "Unknown", entry))
                    nof_unknown += 1
                    num += 1
            out.write(_summary(counts[McsTable.QAM64], counts[McsTable.QAM256], nof_unknown))

    def update_statistics(
        self,
        rnti: int,
        tb_enabled: Sequence[bool],
        transmission_types: Sequence[int],
        success: Sequence[bool],
        dci_table: McsTable,
        dci_format: int,
        mimo_result: MimoResult,
        mcs_indices: Sequence[int],
        ue_config: UeSpecConfig,
    ) -> None:
        """Count the outcome of one PDSCH decode, one value per codeword."""
        with self._lock:
            self.add(rnti, McsTable.UNKNOWN, ue_config)
            entry = self.entries[rnti]
            if dci_format > _DCI_FORMAT1A and entry.has_rar:
                entry.nof_msg_after_rar += 1
            codewords = list(zip(tb_enabled, transmission_types, success, mcs_indices))

            if dci_table in (McsTable.QAM64, McsTable.QAM256):
                is64 = dci_table == McsTable.QAM64
                is256 = dci_table == McsTable.QAM256
                for enabled, tx_type, ok, mcs in codewords:
                    if enabled:
                        entry.nof_active += 1
                    if enabled and tx_type in _NEW_TX_TYPES:
                        if self.harq_mode:
                            if (mcs <= 28 and is64) or (mcs <= 27 and is256):
                                entry.nof_newtx += 1
                        else:
                            entry.nof_newtx += 1
                    elif enabled and (
                        tx_type in (TransmissionStatus.RE_TX, TransmissionStatus.DECODED)
                        or (mcs > 28 and is64)
                        or (mcs > 27 and is256)
                    ):
                        entry.nof_retx += 1
                    if ok:
                        entry.nof_success_mgs += 1
                        if tx_type == TransmissionStatus.RE_TX:
                            entry.nof_success_retx_harq += 1
                    decoded = tx_type == TransmissionStatus.DECODED
                    if decoded and not ok:
                        entry.nof_success_mgs += 1
                    if (ok and tx_type == TransmissionStatus.RE_TX) or decoded:
                        entry.nof_success_retx += 1
                    if decoded:
                        entry.nof_success_retx_nom += 1
                    self._count_mimo(entry, mimo_result, enabled)
            elif dci_table == McsTable.UNKNOWN:
                for enabled, _tx_type, ok, _mcs in codewords:
                    if enabled:
                        entry.nof_active += 1
                        entry.nof_newtx += 1
                    if ok:
                        entry.nof_success_mgs += 1
                    self._count_mimo(entry, mimo_result, enabled)

            for enabled, tx_type, ok, mcs in codewords:
                if not enabled or not 0 <= mcs < NOF_MCS:
                    continue
                entry.mcs[mcs] += 1
                if ok or tx_type == TransmissionStatus.DECODED:
                    entry.mcs_sc[mcs] += 1

    @staticmethod
    def _count_mimo(entry: DlTrackingEntry, mimo_result: int, enabled: bool) -> None:
        if not enabled:
            return
        if mimo_result == MimoResult.NOT_SUPPORTED:
            entry.nof_unsupport_mimo += 1
        elif mimo_result == MimoResult.PMI_WRONG:
            entry.nof_pinfo += 1
        elif mimo_result == MimoResult.LAYER_WRONG:
            entry.nof_other_mimo += 1