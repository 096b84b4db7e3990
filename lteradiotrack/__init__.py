"""State tracking for passive LTE analysis: HARQ, DCI format ranking, MCS tables, uplink scheduling and power."""

__version__ = "0.1.0"