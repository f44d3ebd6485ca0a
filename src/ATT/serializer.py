"""
DefinitionSerializer: DefinitionFile ⇄ versioned definition files.

Tab-separated layout (FormatVersion 1):

    FormatVersion   1
    GeneName        CYP2C9
    GeneRefSeq      NG_008385.1
    GeneOrientation
    ContentDate     07/13/16
    ContentVersion  <tag>
    GenomeBuild     b38
    ChrName         chr10
    ChrRefSeq       NC_000010.11
    ProteinRefSeq   NP_000762.2
    NumVariants     3
    ResourceNote    <blank> <blank> <blank> v1 v2 v3
    ProteinNote     ...
    ChrPosition     ...
    GenePosition    ...
    rsID            ...
    Header          ID      Name    FunctionStatus
    Allele          <id>    <name>  <status>  a1 a2 a3
    Note            <text>

Annotation rows carry three blank columns so their values sit under the
allele tokens of the Allele lines. Output is rendered completely in memory
before any file is opened, so a definition that cannot be rendered never
leaves a partial file behind.
"""

from __future__ import annotations

import dataclasses
import json
import logging
import pathlib
import typing
from typing import Optional

from .definition import DefinitionFile, NamedAllele, Variant
from .errors import FieldFormatError, StructuralError

logger = logging.getLogger(__name__)

FORMAT_VERSION = 1
SEPARATOR = "\t"
TSV_SUFFIX = ".definition.tsv"
JSON_SUFFIX = ".definition.json"

ALLELE_HEADER = ("Header", "ID", "Name", "FunctionStatus")
ALLELE_COLUMN_OFFSET = len(ALLELE_HEADER)

# preamble key → DefinitionFile attribute
PREAMBLE_FIELDS = (
    ("GeneName", "gene_symbol"),
    ("GeneRefSeq", "gene_ref_seq"),
    ("GeneOrientation", "gene_orientation"),
    ("ContentDate", "version_date"),
    ("ContentVersion", "version_tag"),
    ("GenomeBuild", "genome_build"),
    ("ChrName", "chromosome_name"),
    ("ChrRefSeq", "chromosome_ref_seq"),
    ("ProteinRefSeq", "protein_ref_seq"),
)

# annotation row label → Variant attribute
ANNOTATION_ROWS = (
    ("ResourceNote", "resource_note"),
    ("ProteinNote", "protein_note"),
    ("ChrPosition", "chr_position"),
    ("GenePosition", "gene_position"),
    ("rsID", "rsid"),
)


class DefinitionSerializer:
    """Renders, writes and reads generated allele definitions."""

    # ---- TSV -------------------------------------------------------------------

    def render(self, definition: DefinitionFile) -> str:
        """Render the whole definition as text; same input gives byte-identical output."""
        rows: list[list[str]] = [["FormatVersion", str(FORMAT_VERSION)]]
        for key, attr in PREAMBLE_FIELDS:
            rows.append([key, getattr(definition, attr)])
        rows.append(["NumVariants", str(definition.num_variants)])

        padding = [""] * (ALLELE_COLUMN_OFFSET - 1)
        for label, attr in ANNOTATION_ROWS:
            rows.append([label, *padding, *(getattr(v, attr) for v in definition.variants)])

        rows.append(list(ALLELE_HEADER))
        for named_allele in definition.named_alleles:
            rows.append(
                [
                    "Allele",
                    named_allele.id or "",
                    named_allele.name,
                    named_allele.function_status,
                    *named_allele.alleles,
                ]
            )
        for note in definition.notes:
            rows.append(["Note", note])

        return "".join(SEPARATOR.join(row) + "\n" for row in rows)

    def write(self, definition: DefinitionFile, output_dir: typing.Union[str, pathlib.Path]) -> pathlib.Path:
        """Write `<GENE>.definition.tsv` into `output_dir` and return its path."""
        text = self.render(definition)
        out = pathlib.Path(output_dir) / f"{definition.gene_symbol}{TSV_SUFFIX}"
        with open(out, "w", encoding="utf-8", newline="") as fh:
            fh.write(text)
        logger.debug(f"Wrote {out}")
        return out

    def loads(self, text: str) -> DefinitionFile:
        """Parse text produced by `render` back into a DefinitionFile."""
        lines = text.splitlines()
        if not lines:
            raise StructuralError("Empty definition file")

        version = lines[0].split(SEPARATOR)
        if version[0] != "FormatVersion" or len(version) < 2:
            raise StructuralError("Missing FormatVersion line", line=1, field="FormatVersion", value=lines[0])
        if version[1].strip() != str(FORMAT_VERSION):
            raise StructuralError(
                f"Unsupported format version (expected {FORMAT_VERSION})",
                line=1,
                field="FormatVersion",
                value=version[1],
            )

        preamble: dict[str, str] = {}
        annotations: dict[str, list[str]] = {}
        named_alleles: list[NamedAllele] = []
        notes: list[str] = []
        num_variants: Optional[int] = None
        annotation_labels = {label for label, _ in ANNOTATION_ROWS}
        preamble_keys = {key for key, _ in PREAMBLE_FIELDS}

        for lineno, line in enumerate(lines[1:], start=2):
            fields = line.split(SEPARATOR)
            kind = fields[0]
            if kind in preamble_keys:
                preamble[kind] = fields[1] if len(fields) > 1 else ""
            elif kind == "NumVariants":
                try:
                    num_variants = int(fields[1])
                except (IndexError, ValueError) as e:
                    raise FieldFormatError(
                        "NumVariants must be an integer", line=lineno, field=kind, value=line
                    ) from e
            elif kind in annotation_labels:
                annotations[kind] = self._cells(fields, num_variants, lineno, kind)
            elif kind == "Header":
                continue
            elif kind == "Allele":
                if len(fields) < ALLELE_COLUMN_OFFSET:
                    raise FieldFormatError("Allele line is too short", line=lineno, field=kind, value=line)
                named_alleles.append(
                    NamedAllele(
                        id=fields[1] or None,
                        name=fields[2],
                        function_status=fields[3],
                        alleles=tuple(self._cells(fields, num_variants, lineno, kind)),
                    )
                )
            elif kind == "Note":
                notes.append(SEPARATOR.join(fields[1:]))
            elif line.strip():
                raise FieldFormatError("Unknown line type", line=lineno, field="type", value=kind)

        missing = sorted(preamble_keys - set(preamble))
        if missing or num_variants is None:
            raise StructuralError(f"Definition is missing preamble fields: {missing or ['NumVariants']}")

        blank = [""] * num_variants
        columns = {attr: annotations.get(label, blank) for label, attr in ANNOTATION_ROWS}
        variants = tuple(
            Variant(**{attr: values[i] for attr, values in columns.items()}) for i in range(num_variants)
        )
        return DefinitionFile(
            variants=variants,
            named_alleles=tuple(named_alleles),
            notes=tuple(notes),
            **{attr: preamble[key] for key, attr in PREAMBLE_FIELDS},
        )

    def read(self, path: typing.Union[str, pathlib.Path]) -> DefinitionFile:
        with open(path, encoding="utf-8") as fh:
            return self.loads(fh.read())

    @staticmethod
    def _cells(fields: list[str], num_variants: Optional[int], lineno: int, kind: str) -> list[str]:
        if num_variants is None:
            raise StructuralError(f"{kind} line appears before NumVariants", line=lineno, field=kind)
        cells = fields[ALLELE_COLUMN_OFFSET:ALLELE_COLUMN_OFFSET + num_variants]
        return cells + [""] * (num_variants - len(cells))

    # ---- JSON ------------------------------------------------------------------

    def to_json(self, definition: DefinitionFile) -> str:
        payload = {"formatVersion": FORMAT_VERSION, **dataclasses.asdict(definition)}
        return json.dumps(payload, indent=2, ensure_ascii=False)

    def from_json(self, text: str) -> DefinitionFile:
        payload = json.loads(text)
        version = payload.pop("formatVersion", None)
        if version != FORMAT_VERSION:
            raise StructuralError(
                f"Unsupported format version (expected {FORMAT_VERSION})", field="formatVersion", value=str(version)
            )
        try:
            payload["variants"] = tuple(Variant(**v) for v in payload["variants"])
            payload["named_alleles"] = tuple(
                NamedAllele(**{**a, "alleles": tuple(a["alleles"])}) for a in payload["named_alleles"]
            )
            payload["notes"] = tuple(payload.get("notes", ()))
            return DefinitionFile(**payload)
        except (KeyError, TypeError) as e:
            raise StructuralError(f"Malformed JSON definition: {e}") from e

    def write_json(self, definition: DefinitionFile, output_dir: typing.Union[str, pathlib.Path]) -> pathlib.Path:
        """Write `<GENE>.definition.json` into `output_dir` and return its path."""
        text = self.to_json(definition)
        out = pathlib.Path(output_dir) / f"{definition.gene_symbol}{JSON_SUFFIX}"
        with open(out, "w", encoding="utf-8") as fh:
            fh.write(text)
        logger.debug(f"Wrote {out}")
        return out

    def read_json(self, path: typing.Union[str, pathlib.Path]) -> DefinitionFile:
        with open(path, encoding="utf-8") as fh:
            return self.from_json(fh.read())
