"""Front end that routes MCS tracking to the downlink or uplink tracker."""

from __future__ import annotations

import csv
import dataclasses
import sys
import threading
from typing import Optional, TextIO

from lteradiotrack.tracking import NOF_MCS, DlTracker, SnifferMode, UeSpecConfig
from lteradiotrack.ul_tracking import UlTracker

_CSV_HEADER = (
    "RNTI, table, total,success,percent,"
    + "".join(f"{index}," for index in range(NOF_MCS))
    + "\n"
)


class MCSTracking:
    """Per-RNTI tracking for the active sniffer mode, with a CSV summary file."""

    def __init__(
        self,
        tracking_mode: int = 0,
        target_rnti: int = 0,
        debug: bool = False,
        sniffer_mode: int = SnifferMode.DL,
        api_mode: int = -1,
        csv_path: Optional[str] = None,
    ) -> None:
        self.tracking_mode = tracking_mode
        self.target_rnti = target_rnti
        self.debug = debug
        self.sniffer_mode = SnifferMode(sniffer_mode)
        self.api_mode = api_mode
        self.est_cfo = 0.0
        self.nof_api_msg = 0
        self._lock = threading.Lock()
        self._default_config = UeSpecConfig()
        self.dl = DlTracker()
        self.ul = UlTracker()
        self.csv_file: Optional[TextIO] = None
        self._csv_writer = None
        if csv_path is not None:
            self.csv_file = open(csv_path, "w", newline="")
            self.csv_file.write(_CSV_HEADER)
            self._csv_writer = csv.writer(self.csv_file, lineterminator="\n")

    @property
    def default_ue_config(self) -> UeSpecConfig:
        """A copy of the configuration given to newly seen RNTIs."""
        with self._lock:
            return dataclasses.replace(self._default_config)

    def set_default_ue_config(self, config: UeSpecConfig) -> None:
        """Replace the configuration given to newly seen RNTIs."""
        with self._lock:
            self._default_config = dataclasses.replace(config)

    def update_ue_config(self, rnti: int, config: UeSpecConfig) -> None:
        """Store the UE-specific configuration of an RNTI, tracking it if new."""
        default = self.default_ue_config
        stored = dataclasses.replace(config)
        if self.sniffer_mode == SnifferMode.DL:
            with self.dl._lock:
                self.dl.add(rnti, self.dl.lookup(rnti) if rnti in self.dl.entries else 0, default)
                self.dl.entries[rnti].ue_spec_config = stored
        else:
            with self.ul._lock:
                self.ul.add(rnti, self.ul.lookup(rnti) if rnti in self.ul.entries else 0, default)
                self.ul.entries[rnti].ue_spec_config = stored

    def get_ue_config(self, rnti: int) -> UeSpecConfig:
        """Configuration of an RNTI, or the default marked as not UE-specific."""
        tracker = self.dl if self.sniffer_mode == SnifferMode.DL else self.ul
        with tracker._lock:
            entry = tracker.entries.get(rnti)
            if entry is not None:
                return dataclasses.replace(entry.ue_spec_config)
        return dataclasses.replace(self.default_ue_config, has_ue_config=False)

    def report_all(self, file: Optional[TextIO] = None) -> None:
        """Write the archived statistics of the active mode."""
        out = file if file is not None else sys.stdout
        if self.sniffer_mode == SnifferMode.DL:
            self.dl.report_all(out, self._csv_writer)
            if self.csv_file is not None:
                self.csv_file.flush()
        else:
            self.ul.report_all(out)

    def close(self) -> None:
        """Close the CSV summary file."""
        if self.csv_file is not None and not self.csv_file.closed:
            self.csv_file.close()

    def __enter__(self) -> "MCSTracking":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()