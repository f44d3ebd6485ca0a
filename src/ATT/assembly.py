"""
Genome assembly lookups.

Maps RefSeq chromosome accessions (NC_0000NN.V) onto the genome build they
belong to, turns chromosome numbers into UCSC-style names and holds the
genome-build policy (which builds a definition table may use).

Environment flags
----------------------------------------
ATT_PERMITTED_BUILDS=b38      : Comma-separated build tags a table may resolve to.
"""

from __future__ import annotations

import os
import re
from types import MappingProxyType
from typing import Iterable, Mapping, Optional

# Build tags as they appear in generated definitions
BUILD_37 = "b37"
BUILD_38 = "b38"

# GRCh major version -> build tag
_GRCH_BUILD_TAGS = {
    37: BUILD_37,
    38: BUILD_38,
}

_GRCH_LABEL = re.compile(r"^GRCh(?P<major>\d+)(?:\.p\d+)?$")

# RefSeq chromosome accessions, chromosomes 1-22 then X (23) and Y (24)
_GRCH37_ACCESSIONS = (
    "NC_000001.10", "NC_000002.11", "NC_000003.11", "NC_000004.11",
    "NC_000005.9", "NC_000006.11", "NC_000007.13", "NC_000008.10",
    "NC_000009.11", "NC_000010.10", "NC_000011.9", "NC_000012.11",
    "NC_000013.10", "NC_000014.8", "NC_000015.9", "NC_000016.9",
    "NC_000017.10", "NC_000018.9", "NC_000019.9", "NC_000020.10",
    "NC_000021.8", "NC_000022.10", "NC_000023.10", "NC_000024.9",
)
_GRCH38_ACCESSIONS = (
    "NC_000001.11", "NC_000002.12", "NC_000003.12", "NC_000004.12",
    "NC_000005.10", "NC_000006.12", "NC_000007.14", "NC_000008.11",
    "NC_000009.12", "NC_000010.11", "NC_000011.10", "NC_000012.12",
    "NC_000013.11", "NC_000014.9", "NC_000015.10", "NC_000016.10",
    "NC_000017.11", "NC_000018.10", "NC_000019.10", "NC_000020.11",
    "NC_000021.9", "NC_000022.11", "NC_000023.11", "NC_000024.10",
)

DEFAULT_PERMITTED_BUILDS = frozenset({BUILD_38})


def _default_table() -> dict[str, str]:
    table = {accession: BUILD_37 for accession in _GRCH37_ACCESSIONS}
    table.update({accession: BUILD_38 for accession in _GRCH38_ACCESSIONS})
    return table


class AssemblyMap:
    """
    Read-only lookup from a RefSeq chromosome accession to a build tag.

    The table is fixed at construction; `extra` lets callers register more
    accessions (e.g. patch-level contigs) without mutating the shared default.
    """

    def __init__(self, extra: Optional[Mapping[str, str]] = None):
        table = _default_table()
        if extra:
            table.update(extra)
        self._table = MappingProxyType(table)

    def resolve(self, accession: str) -> Optional[str]:
        """Return the build tag for `accession`, or None if it is not in the table."""
        if not isinstance(accession, str):
            return None
        return self._table.get(accession.strip())

    def __contains__(self, accession: object) -> bool:
        return isinstance(accession, str) and accession.strip() in self._table

    def __len__(self) -> int:
        return len(self._table)

    @property
    def builds(self) -> frozenset[str]:
        return frozenset(self._table.values())


def chromosome_name(number: int) -> str:
    """
    Turn a RefSeq chromosome number into a UCSC-style name.

    1-22 -> "chr1".."chr22", 23 -> "chrX", 24 -> "chrY".
    """
    if isinstance(number, bool) or not isinstance(number, int):
        raise ValueError(f"Chromosome number must be an integer, got {number!r}")
    if number == 23:
        return "chrX"
    if number == 24:
        return "chrY"
    if 1 <= number <= 22:
        return f"chr{number}"
    raise ValueError(f"Unknown or unsupported chromosome number {number}")


def build_for_label(label: str) -> Optional[str]:
    """Map a GRCh label such as 'GRCh38.p2' onto its build tag ('b38'), if known."""
    m = _GRCH_LABEL.match(label.strip()) if isinstance(label, str) else None
    if not m:
        return None
    return _GRCH_BUILD_TAGS.get(int(m.group("major")))


def permitted_builds(builds: Optional[Iterable[str]] = None) -> frozenset[str]:
    """
    Resolve the genome-build policy.

    Explicit `builds` win; otherwise ATT_PERMITTED_BUILDS is read; otherwise
    only the current build is accepted.
    """
    if builds:
        chosen = {b.strip() for b in builds if b and b.strip()}
        if chosen:
            return frozenset(chosen)
    env = os.getenv("ATT_PERMITTED_BUILDS", "")
    from_env = {b.strip() for b in env.split(",") if b.strip()}
    return frozenset(from_env) if from_env else DEFAULT_PERMITTED_BUILDS
