"""
Allele definition domain model.

A DefinitionFile is what the TableParser produces for one gene: the header
metadata, one Variant per defining position and one NamedAllele per allele
row. Instances are frozen; the parser builds them only after every check has
passed.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Optional

from .errors import CrossFieldInvariantError

_FIRST_OFFSET = re.compile(r"^[cgp]\.(\d+)")


@dataclass(frozen=True)
class Variant:
    """
    One defining genomic position (one variant column of the table).

    Attributes:
        chr_position: Chromosomal HGVS position(s), e.g. "g.94942290C>T".
        gene_position: Gene-sequence HGVS position(s), may be blank.
        protein_note: Protein-level effect text, may be blank.
        resource_note: Nomenclature/resource note, may be blank.
        rsid: dbSNP identifier(s), may be blank.
    """

    chr_position: str
    gene_position: str = ""
    protein_note: str = ""
    resource_note: str = ""
    rsid: str = ""

    @property
    def position(self) -> Optional[int]:
        """Numeric offset of the first chromosomal position token, if there is one."""
        m = _FIRST_OFFSET.match(self.chr_position.split(";")[0].strip())
        return int(m.group(1)) if m else None


@dataclass(frozen=True)
class NamedAllele:
    """
    A named haplotype and its call at every variant.

    Attributes:
        name: Allele name as written in the table (e.g. "*2").
        function_status: Allele functional status text.
        alleles: Normalized call per variant ("-" deletion, "" no call).
        id: Canonical allele ID, None when unmapped.
    """

    name: str
    function_status: str
    alleles: tuple[str, ...]
    id: Optional[str] = None

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not self.name.strip():
            raise ValueError("Named allele must have a non-empty name")


@dataclass(frozen=True)
class DefinitionFile:
    """
    Structured allele definition for one gene.

    Attributes:
        gene_symbol: Gene symbol from the 'GENE:' line.
        gene_ref_seq: RefSeq accession of the gene sequence (NG_...).
        chromosome_ref_seq: RefSeq accession of the chromosome (NC_...).
        protein_ref_seq: RefSeq accession of the protein (NP_...).
        genome_build: Build tag resolved from chromosome_ref_seq ("b37"/"b38").
        chromosome_name: "chr1".."chr22", "chrX" or "chrY".
        version_date: Content date, MM/DD/YY.
        version_tag: Opaque content version supplied by the caller.
        gene_orientation: Strand indicator, empty when undetermined.
        variants: Defining positions in column order.
        named_alleles: Allele rows in table order.
        notes: Free-text notes.
    """

    gene_symbol: str
    gene_ref_seq: str
    chromosome_ref_seq: str
    protein_ref_seq: str
    genome_build: str
    chromosome_name: str
    version_date: str
    variants: tuple[Variant, ...]
    named_alleles: tuple[NamedAllele, ...]
    version_tag: str = ""
    gene_orientation: str = ""
    notes: tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        width = len(self.variants)
        for named_allele in self.named_alleles:
            if len(named_allele.alleles) != width:
                raise CrossFieldInvariantError(
                    f"allele {named_allele.name!r} has {len(named_allele.alleles)} "
                    f"positions but {width} variants are defined",
                    field="alleles",
                )

    @property
    def num_variants(self) -> int:
        return len(self.variants)

    # Parallel views, aligned index-for-index with `variants`

    @property
    def resource_notes(self) -> tuple[str, ...]:
        return tuple(v.resource_note for v in self.variants)

    @property
    def protein_notes(self) -> tuple[str, ...]:
        return tuple(v.protein_note for v in self.variants)

    @property
    def chr_positions(self) -> tuple[str, ...]:
        return tuple(v.chr_position for v in self.variants)

    @property
    def gene_positions(self) -> tuple[str, ...]:
        return tuple(v.gene_position for v in self.variants)

    @property
    def rsids(self) -> tuple[str, ...]:
        return tuple(v.rsid for v in self.variants)

    def get_named_allele(self, name: str) -> Optional[NamedAllele]:
        for named_allele in self.named_alleles:
            if named_allele.name == name:
                return named_allele
        return None
