"""
Field grammars for allele definition tables.

Each validator checks exactly one kind of field and returns a FieldMatch:
either the captured groups or an error message naming the offending value.
Validators never raise and never touch parser state, so callers can collect
several failures before deciding to abort.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

# ----------------------------------
# Patterns
# ----------------------------------

_GENE_FIELD = re.compile(r"^GENE:\s*(\w+)$")
_REFSEQ = re.compile(r"(N\w_(\d+)\.\d+)")
_GENOME_BUILD = re.compile(r"(GRCh\d+(?:\.p\d+)?)")
_POSITION_TOKEN = re.compile(r"^[cgp]\.\d+.*$")

# IUPAC nucleotide codes, ambiguity codes included
IUPAC_BASES = "ACGTURYSWKMBDHVN"
_ALLELE_TOKEN = re.compile(
    rf"""
    ^(?:
        del[{IUPAC_BASES}]*       # deletion, bases optional
      | ins[{IUPAC_BASES}]+       # insertion of one or more bases
      | [{IUPAC_BASES}]*          # plain (possibly empty) base sequence
    )$
    """,
    re.VERBOSE,
)

DATE_FORMAT = "%m/%d/%y"
POPULATION_SUFFIX = " Allele Frequency"
DELETION = "-"


@dataclass(frozen=True)
class FieldMatch:
    """
    Capture-or-error result of one field grammar.

    Attributes:
        raw: The text that was checked.
        groups: Captured values (meaning depends on the grammar).
        error: None on success, otherwise why the field was rejected.
    """

    raw: str
    groups: tuple[str, ...] = ()
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def group(self, index: int) -> str:
        return self.groups[index]

    def __bool__(self) -> bool:
        return self.ok


def _fail(raw: str, message: str) -> FieldMatch:
    return FieldMatch(raw=raw, error=message)


def match_gene(text: str) -> FieldMatch:
    """`GENE: <symbol>` → groups (symbol,)."""
    raw = text or ""
    m = _GENE_FIELD.match(raw.strip())
    if not m:
        return _fail(raw, "gene field not in expected format 'GENE: <symbol>'")
    return FieldMatch(raw=raw, groups=(m.group(1),))


def match_date(text: str) -> FieldMatch:
    """A content date written as MM/DD/YY → groups (date text,)."""
    raw = text or ""
    try:
        datetime.strptime(raw.strip(), DATE_FORMAT)
    except ValueError:
        return _fail(raw, "date not in expected format MM/DD/YY")
    return FieldMatch(raw=raw, groups=(raw.strip(),))


def match_refseq(text: str) -> FieldMatch:
    """
    Find a RefSeq accession embedded in free text.

    Groups: (accession, accession number digits), e.g.
    "Chromosome (NC_000010.11)" -> ("NC_000010.11", "000010").
    """
    raw = text or ""
    if not raw.strip():
        return _fail(raw, "no description specified")
    m = _REFSEQ.search(raw)
    if not m:
        return _fail(raw, "no RefSeq identifier")
    return FieldMatch(raw=raw, groups=(m.group(1), m.group(2)))


def match_genome_build(text: str) -> FieldMatch:
    """Find a genome build token such as 'GRCh38.p2' → groups (token,)."""
    raw = text or ""
    m = _GENOME_BUILD.search(raw)
    if not m:
        return _fail(raw, "no genome build identifier")
    return FieldMatch(raw=raw, groups=(m.group(1),))


def match_position(text: str) -> FieldMatch:
    """
    One or more ';'-separated HGVS-style coordinates (c., g. or p.).

    Groups hold the individual tokens; on failure the message names every
    token that did not match.
    """
    raw = text or ""
    tokens = [token.strip() for token in raw.split(";")]
    if not raw.strip():
        return _fail(raw, "position is blank")
    bad = [token for token in tokens if not _POSITION_TOKEN.match(token)]
    if bad:
        return _fail(raw, f"invalid position token(s): {', '.join(repr(t) for t in bad)}")
    return FieldMatch(raw=raw, groups=tuple(tokens))


def match_allele_token(text: str) -> FieldMatch:
    """A base-pair, deletion (del…) or insertion (ins…) token; blank is a valid no-call."""
    raw = text or ""
    token = raw.strip()
    if not _ALLELE_TOKEN.match(token):
        return _fail(raw, f"invalid allele token {token!r}")
    return FieldMatch(raw=raw, groups=(token,))


def match_population_title(text: str) -> FieldMatch:
    """Population column titles look like '<population> Allele Frequency'."""
    raw = text or ""
    title = raw.strip()
    if not title.endswith(POPULATION_SUFFIX) or not title[: -len(POPULATION_SUFFIX)].strip():
        return _fail(raw, f"population column title must end in {POPULATION_SUFFIX.strip()!r}")
    return FieldMatch(raw=raw, groups=(title[: -len(POPULATION_SUFFIX)].strip(),))


def normalize_allele(token: str) -> str:
    """
    Normalize a validated allele token.

        "delAT" -> "-", "insGG" -> "GG", "A" -> "A", "" -> ""
    """
    token = (token or "").strip()
    if token.startswith("ins"):
        return token[3:]
    if token.startswith("del"):
        return DELETION
    return token
