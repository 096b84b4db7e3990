"""Ranking of DCI formats by how often they were found in blind search."""

from __future__ import annotations

import sys
from dataclasses import dataclass
from typing import Any, Iterable, List, Optional, TextIO


@dataclass
class MetaFormat:
    """A DCI format together with its hit counter."""

    format: Any
    global_index: int
    hits: int = 0


def _sort_by_hits(formats: List[MetaFormat]) -> List[MetaFormat]:
    """Order formats by descending hits with an in-place selection sort.

    The swap-based selection sort is kept on purpose: among equal hit
    counts it yields the same order as the blind search expects.
    """
    ordered = list(formats)
    for i in range(len(ordered) - 1):
        max_idx = i
        for j in range(i, len(ordered)):
            if ordered[j].hits > ordered[max_idx].hits:
                max_idx = j
        ordered[i], ordered[max_idx] = ordered[max_idx], ordered[i]
    return ordered


class DCIMetaFormats:
    """Split DCI formats into a frequently hit primary set and the rest."""

    def __init__(self, formats: Iterable[Any], split_ratio: float = 1.0) -> None:
        self._all: List[MetaFormat] = [
            MetaFormat(format=fmt, global_index=index) for index, fmt in enumerate(formats)
        ]
        self._primary: List[MetaFormat] = []
        self._secondary: List[MetaFormat] = []
        self.skip_secondary = False
        self.split_ratio = split_ratio
        self.update_formats()

    def __len__(self) -> int:
        return len(self._all)

    def hit(self, index: int) -> None:
        """Count one successful detection of the format at a global index."""
        if index < 0:
            raise IndexError(index)
        self._all[index].hits += 1

    def update_formats(self) -> None:
        """Re-rank the formats by hits, split them and reset the counters."""
        total_hits = sum(meta.hits for meta in self._all)
        threshold = total_hits * self.split_ratio
        cumulation = 0
        primary: List[MetaFormat] = []
        secondary: List[MetaFormat] = []
        for meta in _sort_by_hits(self._all):
            if cumulation <= threshold:
                primary.append(meta)
            else:
                secondary.append(meta)
            cumulation += meta.hits
            meta.hits = 0
        self._primary = primary
        self._secondary = secondary

    def primary(self) -> List[MetaFormat]:
        """Formats searched first."""
        return list(self._primary)

    def secondary(self) -> List[MetaFormat]:
        """Formats searched only when secondary formats are not skipped."""
        return list(self._secondary)

    def print_primary(self, file: Optional[TextIO] = None) -> None:
        """Write the names of the primary formats."""
        self._print("Primary DCI meta formats:", self._primary, file)

    def print_secondary(self, file: Optional[TextIO] = None) -> None:
        """Write the names of the secondary formats."""
        self._print("Secondary DCI meta formats:", self._secondary, file)

    @staticmethod
    def _print(title: str, formats: List[MetaFormat], file: Optional[TextIO]) -> None:
        out = file if file is not None else sys.stdout
        out.write(title + "\n")
        for meta in formats:
            out.write(f"{meta.format}\n")