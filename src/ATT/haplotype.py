"""
Haplotype name -> canonical ID lookup.

The reference table is a tab-separated file with one row per named allele.
Headers are normalized the same way worksheet headers are (trim, lowercase,
spaces to underscores) and common spellings are renamed via RENAME_MAP, so
both "Gene Symbol / Haplotype Name / PharmGKB ID" and "gene / name / id"
layouts load.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from types import MappingProxyType
from typing import Mapping, Optional

import pandas as pd

logger = logging.getLogger(__name__)

# Header spellings seen in haplotype reference tables → canonical columns
RENAME_MAP = {
    "gene_symbol": "gene",
    "symbol": "gene",
    "haplotype_name": "name",
    "allele_name": "name",
    "allele": "name",
    "haplotype_id": "id",
    "pharmgkb_id": "id",
    "allele_id": "id",
}

REQUIRED_COLUMNS = {"gene", "name", "id"}


class HaplotypeIDResolver:
    """
    Resolves (gene symbol, allele name) to a canonical allele ID.

    All per-gene mappings are built once in the constructor and exposed as
    read-only views, so one resolver can be shared by parsers running in
    parallel.
    """

    def __init__(self, mapping: Optional[Mapping[str, Mapping[str, str]]] = None):
        genes: dict[str, Mapping[str, str]] = {}
        for gene, names in (mapping or {}).items():
            genes[gene.strip().upper()] = MappingProxyType(
                {str(name).strip(): str(allele_id).strip() for name, allele_id in names.items()}
            )
        self._genes = MappingProxyType(genes)

    @classmethod
    def from_table(cls, path: str) -> "HaplotypeIDResolver":
        """Load a resolver from a tab-separated haplotype reference table."""
        df = pd.read_csv(path, sep="\t", dtype=str, keep_default_na=False)
        df.columns = (
            df.columns.str.strip()
            .str.replace(r"\s+", "_", regex=True)
            .str.lower()
        )
        df = df.rename(
            columns={orig: target for orig, target in RENAME_MAP.items() if orig in df.columns}
        )
        duplicated = sorted(set(df.columns[df.columns.duplicated()]))
        if duplicated:
            raise ValueError(f"Haplotype table {path!r}: more than one column maps to: {duplicated}")
        missing = REQUIRED_COLUMNS - set(df.columns)
        if missing:
            raise ValueError(f"Haplotype table {path!r}: missing required columns: {sorted(missing)}")

        grouped: dict[str, dict[str, str]] = defaultdict(dict)
        for _, row in df.iterrows():
            gene = row["gene"].strip()
            name = row["name"].strip()
            allele_id = row["id"].strip()
            if not (gene and name and allele_id):
                continue
            previous = grouped[gene].get(name)
            if previous is not None and previous != allele_id:
                logger.warning(f"{gene} {name}: duplicate ID {allele_id!r}, keeping {previous!r}")
                continue
            grouped[gene][name] = allele_id
        logger.debug(f"Loaded haplotype IDs for {len(grouped)} genes from {path}")
        return cls(grouped)

    def for_gene(self, gene_symbol: str) -> Mapping[str, str]:
        """Every known allele name → ID for one gene (empty if the gene is unknown)."""
        return self._genes.get(gene_symbol.strip().upper(), MappingProxyType({}))

    def resolve(self, gene_symbol: str, allele_name: str) -> Optional[str]:
        """Return the canonical ID, or None when the allele is not mapped."""
        return self.for_gene(gene_symbol).get(allele_name.strip())

    @property
    def genes(self) -> frozenset[str]:
        return frozenset(self._genes)

    def __len__(self) -> int:
        return sum(len(names) for names in self._genes.values())
