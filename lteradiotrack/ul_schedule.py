"""Uplink grant scheduling: DCI 0 and RAR grants waiting for their PUSCH subframe."""

from __future__ import annotations

import dataclasses
import threading
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

TTI_PERIOD = 10240
UL_GRANT_DELAY = 4
RAR_GRANT_DELAY = 6

NOF_AVERAGE = 100
NOF_PRINT = 20
INACTIVE_TIMER = 3
SNR_THRESHOLD = 5


def _shift_tti(cur_tti: int, delay: int) -> int:
    tti = cur_tti - delay
    return tti if tti >= 0 else tti + TTI_PERIOD


def ul_tti(cur_tti: int) -> int:
    """TTI of the DCI 0 whose PUSCH is sent in cur_tti."""
    return _shift_tti(cur_tti, UL_GRANT_DELAY)


def rar_ul_tti(cur_tti: int) -> int:
    """TTI of the random access response whose PUSCH is sent in cur_tti."""
    return _shift_tti(cur_tti, RAR_GRANT_DELAY)


@dataclass
class Sib2Config:
    """The SIB2 radio resource fields the uplink decoder needs."""

    cyclic_shift: int = 0
    group_hop_enabled: bool = False
    seq_hop_enabled: bool = False
    group_assign_pusch: int = 0
    root_seq_idx: int = 0
    prach_cfg_idx: int = 0
    high_speed_flag: bool = False
    zero_correlation_zone_cfg: int = 0
    prach_freq_offset: int = 0
    pusch_hop_offset: int = 0
    n_sb: int = 1


@dataclass
class DmrsConfig:
    """PUSCH demodulation reference signal configuration."""

    cyclic_shift: int = 0
    group_hopping_en: bool = False
    sequence_hopping_en: bool = False
    delta_ss: int = 0


@dataclass
class PrachConfig:
    """Physical random access channel configuration."""

    is_nr: bool = False
    root_seq_idx: int = 0
    config_idx: int = 0
    hs_flag: bool = False
    zero_corr_zone: int = 0
    freq_offset: int = 0


class ULSchedule:
    """Holds uplink grants per TTI until the matching uplink subframe arrives."""

    def __init__(self, rnti: int = 0, debug: bool = False) -> None:
        self.rnti = rnti
        self.debug = debug
        self.config = False
        self.multi_ul_offset = 0
        self.has_rrc_con_set = False
        self.rrc_con_set: Any = None
        self.sib2 = Sib2Config()
        self.prach_config = PrachConfig()
        self._dmrs = DmrsConfig()
        self._lock = threading.Lock()
        self._grants: Dict[int, List[Any]] = {}
        self._rar_grants: Dict[int, List[Any]] = {}

    def push(self, tti: int, dcis: Iterable[Any]) -> None:
        """Store uplink DCIs received in tti, appending to any already stored."""
        with self._lock:
            self._grants.setdefault(tti, []).extend(dcis)

    def push_rar(self, tti: int, dcis: Iterable[Any]) -> None:
        """Store RAR grants received in tti; an existing entry is kept."""
        with self._lock:
            if tti not in self._rar_grants:
                self._rar_grants[tti] = list(dcis)

    def get(self, tti: int) -> Optional[List[Any]]:
        """Uplink DCIs that schedule PUSCH in tti, or None."""
        with self._lock:
            return self._grants.get(ul_tti(tti))

    def get_rar(self, tti: int) -> Optional[List[Any]]:
        """RAR grants that schedule PUSCH in tti, or None."""
        with self._lock:
            return self._rar_grants.get(rar_ul_tti(tti))

    def delete(self, tti: int) -> None:
        """Forget the uplink DCIs that scheduled PUSCH in tti."""
        with self._lock:
            self._grants.pop(ul_tti(tti), None)

    def delete_rar(self, tti: int) -> None:
        """Forget the RAR grants that scheduled PUSCH in tti."""
        with self._lock:
            self._rar_grants.pop(rar_ul_tti(tti), None)

    def set_sib2(self, sib2: Sib2Config) -> None:
        with self._lock:
            self.sib2 = dataclasses.replace(sib2)

    def apply_config(self) -> None:
        """Derive DMRS and PRACH configuration from the stored SIB2."""
        with self._lock:
            sib2 = self.sib2
            self._dmrs = DmrsConfig(
                cyclic_shift=sib2.cyclic_shift,
                group_hopping_en=sib2.group_hop_enabled,
                sequence_hopping_en=sib2.seq_hop_enabled,
                delta_ss=sib2.group_assign_pusch,
            )
            self.prach_config = PrachConfig(
                is_nr=False,
                root_seq_idx=sib2.root_seq_idx,
                config_idx=sib2.prach_cfg_idx,
                hs_flag=sib2.high_speed_flag,
                zero_corr_zone=sib2.zero_correlation_zone_cfg,
                freq_offset=sib2.prach_freq_offset,
            )
            self.config = True

    def dmrs(self) -> DmrsConfig:
        """A copy of the current DMRS configuration."""
        with self._lock:
            return dataclasses.replace(self._dmrs)

    def set_rrc_connection_setup(self, setup: Any) -> None:
        """Keep the RRC Connection Setup that carries the UE configuration."""
        self.rrc_con_set = setup
        self.has_rrc_con_set = True