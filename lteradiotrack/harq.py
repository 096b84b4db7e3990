"""Downlink and uplink HARQ bookkeeping for sniffed LTE traffic."""

from __future__ import annotations

import dataclasses
import enum
import sys
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, TextIO

MAX_HARQ_PROCESSES = 8
MAX_HARQ_SIZE = 150
MAX_CODEWORDS = 2
TTI_PERIOD = 10240
HARQ_RTT = 8
INACTIVE_INTERVAL_DL = 5.0
INACTIVE_INTERVAL_UL = 10.0
_REFILL_THRESHOLD = 10
_U32 = 0xFFFFFFFF

Clock = Callable[[], float]


class TransmissionStatus(enum.IntEnum):
    """Outcome of classifying a downlink transport block."""

    NEW_TX = 0
    RE_TX = 1
    HARQ_FULL_BUFFER = 2
    DECODED = 3
    HARQ_BUSY = 4


class HarqMode(enum.IntEnum):
    """How downlink HARQ combining is performed."""

    OFF = 0
    ON = 1
    NO_BUFFER = 2


@dataclass
class HarqGrant:
    """The part of a downlink grant that HARQ tracking needs."""

    last_decoded: bool = False
    ndi: bool = False
    ndi_present: bool = False
    rv: int = 0
    tbs: int = 0
    is_first_transmission: bool = True


@dataclass
class HarqTransportBlock:
    """State of one codeword of one HARQ process."""

    sfn: int = 0
    sf_idx: int = 0
    grant: HarqGrant = field(default_factory=HarqGrant)
    buffer: bytearray = field(default_factory=bytearray)
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    @property
    def tti(self) -> int:
        return self.sfn * 10 + self.sf_idx


@dataclass
class HarqProcess:
    """One HARQ process with a transport block per codeword."""

    pid: int = 0
    nof_retx: int = 0
    blocks: List[HarqTransportBlock] = field(
        default_factory=lambda: [HarqTransportBlock() for _ in range(MAX_CODEWORDS)]
    )


@dataclass
class HarqEntity:
    """HARQ state of a single RNTI; rnti 0 marks a free slot."""

    rnti: int = 0
    time: float = 0.0
    nof_active: int = 0
    nof_success: int = 0
    nof_retx_success: int = 0
    processes: List[HarqProcess] = field(
        default_factory=lambda: [HarqProcess(pid=pid) for pid in range(MAX_HARQ_PROCESSES)]
    )

    def block(self, pid: int, tid: int) -> HarqTransportBlock:
        return self.processes[pid].blocks[tid]


def is_harq_interval(last_tti: int, cur_tti: int) -> bool:
    """True when cur_tti lies exactly one HARQ round trip after last_tti."""
    direct = (cur_tti - last_tti) & _U32
    wrapped = (cur_tti + TTI_PERIOD - last_tti) & _U32
    return direct == HARQ_RTT or wrapped == HARQ_RTT


class DownlinkHarq:
    """Fixed-size table of per-RNTI downlink HARQ entities."""

    def __init__(self, clock: Optional[Clock] = None) -> None:
        self._clock: Clock = clock or time.monotonic
        self._lock = threading.Lock()
        self.harq_mode = HarqMode.OFF
        self.max_size = MAX_HARQ_SIZE
        self.nof_available = MAX_HARQ_SIZE
        self.interval = INACTIVE_INTERVAL_DL
        self._entities: List[HarqEntity] = [HarqEntity() for _ in range(self.max_size)]

    def init(self, harq_mode: int) -> None:
        """Select the HARQ mode; an active mode adds a fresh set of entities."""
        self.harq_mode = HarqMode(harq_mode)
        if self.harq_mode:
            with self._lock:
                self._entities.extend(HarqEntity() for _ in range(self.max_size))
                for entity in self._entities:
                    for process in entity.processes:
                        for block in process.blocks:
                            block.buffer = bytearray()

    def __len__(self) -> int:
        return len(self._entities)

    def _find(self, rnti: int) -> Optional[HarqEntity]:
        found = None
        for entity in self._entities:
            if entity.rnti == rnti:
                found = entity
        return found

    def is_retransmission(
        self, rnti: int, pid: int, tid: int, grant: HarqGrant, sfn: int, sf_idx: int
    ) -> TransmissionStatus:
        """Classify a transport block and reserve it unless it is already decoded.

        A reserved block stays locked until update_rnti is called for it.
        """
        with self._lock:
            entity = None
            available = None
            for candidate in self._entities:
                if candidate.rnti == rnti:
                    entity = candidate
                elif candidate.rnti == 0:
                    available = candidate

            if entity is None:
                if available is None:
                    return TransmissionStatus.HARQ_FULL_BUFFER
                available.rnti = rnti
                available.block(pid, tid).lock.acquire()
                if self.nof_available > 0:
                    self.nof_available -= 1
                return TransmissionStatus.NEW_TX

            block = entity.block(pid, tid)
            cur_tti = sfn * 10 + sf_idx
            if not is_harq_interval(block.tti, cur_tti):
                return self._reserve(block, TransmissionStatus.NEW_TX)

            last = block.grant
            new_data = (
                (grant.ndi_present and grant.ndi != last.ndi)
                or last.is_first_transmission
                or last.tbs != grant.tbs
            )
            if new_data:
                return self._reserve(block, TransmissionStatus.NEW_TX)
            if not last.last_decoded:
                return self._reserve(block, TransmissionStatus.RE_TX)
            return TransmissionStatus.DECODED

    @staticmethod
    def _reserve(block: HarqTransportBlock, status: TransmissionStatus) -> TransmissionStatus:
        if block.lock.acquire(blocking=False):
            return status
        return TransmissionStatus.HARQ_BUSY

    def get_buffer(self, rnti: int, pid: int, tid: int) -> bytearray:
        """Return the soft buffer of a transport block of a known RNTI."""
        with self._lock:
            entity = self._find(rnti)
            if entity is None:
                raise KeyError(rnti)
            return entity.block(pid, tid).buffer

    def update_rnti(
        self, rnti: int, pid: int, tid: int, sfn: int, sf_idx: int, grant: HarqGrant
    ) -> None:
        """Store the latest grant for a block and release its reservation."""
        with self._lock:
            for entity in self._entities:
                if entity.rnti != rnti:
                    continue
                entity.time = self._clock()
                block = entity.block(pid, tid)
                block.sfn = sfn
                block.sf_idx = sf_idx
                block.grant = dataclasses.replace(grant)
                if block.lock.locked():
                    block.lock.release()

    def update_statistics(self, rnti: int, pid: int, is_retx: bool, success: bool) -> None:
        """Count one decoding attempt for an RNTI."""
        with self._lock:
            for entity in self._entities:
                if entity.rnti != rnti:
                    continue
                entity.nof_active += 1
                if success:
                    entity.nof_success += 1
                if is_retx:
                    entity.processes[pid].nof_retx += 1
                if success and is_retx:
                    entity.nof_retx_success += 1

    def expire_inactive(self) -> None:
        """Free entities idle for longer than the interval once few slots remain."""
        with self._lock:
            now = self._clock()
            if self.nof_available > _REFILL_THRESHOLD:
                return
            for entity in self._entities:
                idle_seconds = int(now - entity.time)
                if idle_seconds <= self.interval:
                    continue
                entity.rnti = 0
                entity.time = 0.0
                for process in entity.processes:
                    for block in process.blocks:
                        with block.lock:
                            block.grant.is_first_transmission = True
                            block.grant.last_decoded = False
                            block.grant.tbs = 0
                            block.sf_idx = 0
                self.nof_available += 1

    def report(self, file: Optional[TextIO] = None) -> None:
        """Write retransmission statistics of all active RNTIs."""
        out = file if file is not None else sys.stdout
        with self._lock:
            total_retx = 0
            for entity in self._entities:
                if entity.rnti == 0:
                    continue
                retx = sum(process.nof_retx for process in entity.processes)
                total_retx += retx
                out.write(
                    f"[HARQ] RNTI {entity.rnti}: -- total: {retx} reTX"
                    f" -- nof_retx_success: {entity.nof_retx_success}"
                    f" -- nof_active: {entity.nof_active}"
                    f" -- nof_success: {entity.nof_success}\n"
                )
            out.write(f"[HARQ] Total reTX for all RNTIs: {total_retx} \n")

    def last_tbs(self, rnti: int, pid: int, tid: int) -> int:
        """Transport block size of the last grant, or 0 for an unknown RNTI."""
        with self._lock:
            entity = self._find(rnti)
            return 0 if entity is None else entity.block(pid, tid).grant.tbs


@dataclass
class UlHarqRecord:
    """Last uplink grant seen for an RNTI, with its PHICH parameters."""

    rnti: int = 0
    tti: int = 0
    time: float = 0.0
    last_dci: Any = None
    decode_result: int = 0
    i_phich: int = 0
    n_dmrs: int = 0
    n_prb_lowest: int = 0


class UplinkHarq:
    """Growing table of the last uplink grant per RNTI."""

    def __init__(self, clock: Optional[Clock] = None) -> None:
        self._clock: Clock = clock or time.monotonic
        self._lock = threading.Lock()
        self.max_size = MAX_HARQ_SIZE
        self.interval = INACTIVE_INTERVAL_UL
        self._records: List[UlHarqRecord] = []

    def update_rnti(
        self,
        rnti: int,
        sfn: int,
        sf_idx: int,
        decode_result: int,
        n_dmrs: int,
        n_prb_lowest: int,
        dci: Any,
    ) -> None:
        """Record an uplink grant, adding the RNTI when it is new."""
        with self._lock:
            now = self._clock()
            tti = (sfn * 10 + sf_idx) & 0xFFFF
            found = False
            for record in self._records:
                if record.rnti != rnti:
                    continue
                found = True
                record.tti = tti
                record.last_dci = dci
                record.time = now
                record.decode_result = decode_result
                record.i_phich = 0
                record.n_dmrs = n_dmrs
                record.n_prb_lowest = n_prb_lowest
            if not found:
                self._records.append(
                    UlHarqRecord(
                        rnti=rnti,
                        tti=tti,
                        time=now,
                        last_dci=dci,
                        decode_result=decode_result,
                        n_dmrs=n_dmrs,
                        n_prb_lowest=n_prb_lowest,
                    )
                )

    def records(self) -> List[UlHarqRecord]:
        """A snapshot of the stored records."""
        with self._lock:
            return list(self._records)