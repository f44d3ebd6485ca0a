"""
TableParser: allele definition table → DefinitionFile.

Table layout (tab-separated, 0-based line numbers):

    0  GENE: <symbol>        <MM/DD/YY>
    1  <blank>               <naming text>        resource note per variant ...
    2  <label>               <protein NP_...>     protein note per variant ...
    3  <label>               <chromosome NC_..., GRCh..>  chromosomal position per variant ...
    4  <label>               <gene NG_...>        gene position per variant ...
    5  <label>               <text>               rsID per variant ...
    6+ Allele  Allele Functional Status  <variant columns>  <pop> Allele Frequency ...
       <name>  <function status>         <allele tokens>     <frequencies> ...
       Notes:
       <free text> ...

The chromosome line is read first because the number of variant columns is
taken from it; every other per-variant row is padded or truncated to that
width. All state for one table lives in a ParserContext, so a single
TableParser can be shared between threads.
"""

from __future__ import annotations

import enum
import logging
import pathlib
import typing
from dataclasses import dataclass, field
from typing import Iterable, Optional

from stairval.notepad import Notepad

from .assembly import AssemblyMap, build_for_label, chromosome_name, permitted_builds
from .definition import DefinitionFile, NamedAllele, Variant
from .errors import (
    AlleleRowsError,
    BuildNotPermittedError,
    CrossFieldInvariantError,
    FieldFormatError,
    LookupMiss,
    StructuralError,
)
from .grammar import (
    match_allele_token,
    match_date,
    match_gene,
    match_genome_build,
    match_population_title,
    match_position,
    match_refseq,
    normalize_allele,
)
from .haplotype import HaplotypeIDResolver

logger = logging.getLogger(__name__)

MIN_LINE_COUNT = 7
SEPARATOR = "\t"
FIRST_VARIANT_COLUMN = 2

LINE_GENE = 0
LINE_NAMING = 1
LINE_PROTEIN = 2
LINE_CHROMO = 3
LINE_GENESEQ = 4
LINE_RSID = 5
HEADER_LINE_COUNT = 6

ALLELE_HEADER_COLUMNS = ("Allele", "Allele Functional Status")
NOTES_TOKEN = "notes:"


class ParseState(enum.Enum):
    EXPECT_CHROMO_LINE = enum.auto()
    EXPECT_HEADER_LINES = enum.auto()
    EXPECT_ALLELE_ROWS = enum.auto()
    EXPECT_NOTES = enum.auto()
    DONE = enum.auto()


@dataclass
class ParserContext:
    """Everything accumulated while reading one table."""

    source: str
    header: list[list[str]]
    state: ParseState = ParseState.EXPECT_CHROMO_LINE
    num_variants: int = 0
    gene_symbol: str = ""
    version_date: str = ""
    gene_ref_seq: str = ""
    chromosome_ref_seq: str = ""
    protein_ref_seq: str = ""
    genome_build: str = ""
    chromosome_name: str = ""
    chr_positions: list[str] = field(default_factory=list)
    variants: list[Variant] = field(default_factory=list)
    populations: list[str] = field(default_factory=list)
    seen_allele_header: bool = False
    named_alleles: list[NamedAllele] = field(default_factory=list)
    row_errors: list[FieldFormatError] = field(default_factory=list)
    notes: list[str] = field(default_factory=list)


def _column(fields: typing.Sequence[str], index: int) -> str:
    return fields[index].strip() if index < len(fields) else ""


def _variant_cells(fields: typing.Sequence[str], num_variants: int) -> list[str]:
    """Cells of the variant columns, padded with blanks / truncated to `num_variants`."""
    cells = [c.strip() for c in fields[FIRST_VARIANT_COLUMN:FIRST_VARIANT_COLUMN + num_variants]]
    return cells + [""] * (num_variants - len(cells))


def _check_positions(cells: list[str], lineno: int, role: str, required: bool) -> None:
    """Validate a row of position cells; every bad cell is reported in one error."""
    problems = []
    for index, cell in enumerate(cells, start=1):
        if not cell:
            if required:
                problems.append(f"variant {index}: position is blank")
            continue
        result = match_position(cell)
        if not result:
            problems.append(f"variant {index}: {result.error}")
    if problems:
        raise FieldFormatError("; ".join(problems), line=lineno, field=role)


class TableParser:
    """
    Reads allele definition tables.

    Parameters
    ----------
    assembly_map : AssemblyMap, optional
        Accession → build lookup (default: the built-in GRCh37/GRCh38 table).
    haplotype_resolver : HaplotypeIDResolver, optional
        Allele name → ID lookup; without one every ID is left empty.
    builds : iterable of str, optional
        Permitted genome builds; see `assembly.permitted_builds`.
    version_tag : str
        Opaque content version copied into every parsed definition.
    """

    def __init__(
        self,
        assembly_map: Optional[AssemblyMap] = None,
        haplotype_resolver: Optional[HaplotypeIDResolver] = None,
        builds: Optional[Iterable[str]] = None,
        version_tag: str = "",
    ):
        self._assembly_map = assembly_map or AssemblyMap()
        self._resolver = haplotype_resolver or HaplotypeIDResolver()
        self.permitted_builds = permitted_builds(builds)
        self.version_tag = version_tag

    def parse_file(self, path: typing.Union[str, pathlib.Path], notepad: Optional[Notepad] = None) -> DefinitionFile:
        path = pathlib.Path(path)
        with open(path, encoding="utf-8-sig") as fh:
            lines = fh.read().splitlines()
        return self.parse(lines, notepad, source=path.name)

    def parse(
        self,
        lines: Iterable[str],
        notepad: Optional[Notepad] = None,
        source: str = "<table>",
    ) -> DefinitionFile:
        """
        Parse the lines of one table.

        Raises a DefinitionError subclass on the first structural or
        cross-field problem; bad allele rows are collected and raised together
        as AlleleRowsError once the allele block has been read. Non-fatal
        findings (unmapped allele IDs) go to `notepad` as warnings.
        """
        lines = [line.rstrip("\r\n") for line in lines]
        if len(lines) < MIN_LINE_COUNT:
            raise StructuralError(
                f"Not enough lines in the table, expecting at least {MIN_LINE_COUNT}, found {len(lines)}"
            )
        logger.debug(f"Parsing {source}")

        ctx = ParserContext(
            source=source,
            header=[line.split(SEPARATOR) for line in lines[:HEADER_LINE_COUNT]],
        )

        # Phase one: the chromosome line fixes the variant count
        self._read_chromosome_line(ctx)
        # Phase two: the rest of the fixed header block
        self._read_header_lines(ctx)

        ctx.state = ParseState.EXPECT_ALLELE_ROWS
        for lineno, line in enumerate(lines[HEADER_LINE_COUNT:], start=HEADER_LINE_COUNT + 1):
            if ctx.state is ParseState.EXPECT_NOTES:
                self._read_note(ctx, line)
            elif line.strip().lower().startswith(NOTES_TOKEN):
                ctx.state = ParseState.EXPECT_NOTES
            elif not ctx.seen_allele_header:
                if line.strip():
                    self._read_allele_header(ctx, line.split(SEPARATOR), lineno)
            else:
                self._read_allele_row(ctx, line, lineno, notepad)

        if not ctx.seen_allele_header:
            raise StructuralError("No allele definitions found: missing 'Allele' header row")
        if ctx.row_errors:
            raise AlleleRowsError(ctx.row_errors)
        if not ctx.named_alleles:
            raise StructuralError("No named alleles defined")
        ctx.state = ParseState.DONE

        logger.debug(
            f"{source}: {ctx.gene_symbol} with {ctx.num_variants} variants, "
            f"{len(ctx.named_alleles)} named alleles, {len(ctx.notes)} notes"
        )
        return DefinitionFile(
            gene_symbol=ctx.gene_symbol,
            gene_ref_seq=ctx.gene_ref_seq,
            chromosome_ref_seq=ctx.chromosome_ref_seq,
            protein_ref_seq=ctx.protein_ref_seq,
            genome_build=ctx.genome_build,
            chromosome_name=ctx.chromosome_name,
            version_date=ctx.version_date,
            version_tag=self.version_tag,
            gene_orientation="",
            variants=tuple(ctx.variants),
            named_alleles=tuple(ctx.named_alleles),
            notes=tuple(ctx.notes),
        )

    # ----------------------
    # Header block
    # ----------------------

    def _read_chromosome_line(self, ctx: ParserContext) -> None:
        fields = ctx.header[LINE_CHROMO]
        lineno = LINE_CHROMO + 1
        title = _column(fields, 1)

        refseq = match_refseq(title)
        if not refseq:
            raise FieldFormatError(
                f"{refseq.error} for chromosomal line", line=lineno, field="chromosome", value=title
            )
        ctx.chromosome_ref_seq = refseq.group(0)

        # the accession number is always base 10, leading zeros included
        number = int(refseq.group(1), 10)
        try:
            ctx.chromosome_name = chromosome_name(number)
        except ValueError as e:
            raise CrossFieldInvariantError(
                str(e), line=lineno, field="chromosome", value=ctx.chromosome_ref_seq
            ) from e

        build_token = match_genome_build(title)
        if not build_token:
            raise FieldFormatError(
                f"{build_token.error} for chromosomal line", line=lineno, field="genome build", value=title
            )

        build = self._assembly_map.resolve(ctx.chromosome_ref_seq)
        if build is None:
            raise LookupMiss(
                "Chromosome accession does not map to a known genome build",
                line=lineno,
                field="genome build",
                value=ctx.chromosome_ref_seq,
            )
        labelled = build_for_label(build_token.group(0))
        if labelled is not None and labelled != build:
            raise CrossFieldInvariantError(
                f"Genome build {build_token.group(0)} disagrees with {ctx.chromosome_ref_seq} ({build})",
                line=lineno,
                field="genome build",
                value=build_token.group(0),
            )
        if build not in self.permitted_builds:
            raise BuildNotPermittedError(
                f"Genome build {build} is not permitted (allowed: {', '.join(sorted(self.permitted_builds))})",
                line=lineno,
                field="genome build",
                value=ctx.chromosome_ref_seq,
            )
        ctx.genome_build = build

        last_variant_column = None
        for index in range(FIRST_VARIANT_COLUMN, len(fields)):
            if fields[index].strip():
                last_variant_column = index
        if last_variant_column is None:
            raise StructuralError("No variants specified on chromosomal line", line=lineno, field="chromosome")
        ctx.num_variants = last_variant_column - 1

        ctx.chr_positions = _variant_cells(fields, ctx.num_variants)
        _check_positions(ctx.chr_positions, lineno, "chromosomal position", required=True)

        logger.debug(
            f"{ctx.source}: chromosome {ctx.chromosome_name} ({ctx.chromosome_ref_seq}), "
            f"build {ctx.genome_build}, {ctx.num_variants} variants"
        )
        ctx.state = ParseState.EXPECT_HEADER_LINES

    def _read_header_lines(self, ctx: ParserContext) -> None:
        n = ctx.num_variants

        # gene line
        fields = ctx.header[LINE_GENE]
        lineno = LINE_GENE + 1
        gene = match_gene(_column(fields, 0))
        if not gene:
            raise FieldFormatError(gene.error, line=lineno, field="gene", value=_column(fields, 0))
        ctx.gene_symbol = gene.group(0)
        date = match_date(_column(fields, 1))
        if not date:
            raise FieldFormatError(date.error, line=lineno, field="date", value=_column(fields, 1))
        ctx.version_date = date.group(0)

        # naming line
        fields = ctx.header[LINE_NAMING]
        if _column(fields, 0):
            raise FieldFormatError(
                "Column 1 expected to be blank", line=LINE_NAMING + 1, field="naming", value=_column(fields, 0)
            )
        resource_notes = _variant_cells(fields, n)

        # protein line
        fields = ctx.header[LINE_PROTEIN]
        refseq = match_refseq(_column(fields, 1))
        if not refseq:
            raise FieldFormatError(
                f"{refseq.error} for protein line", line=LINE_PROTEIN + 1, field="protein", value=_column(fields, 1)
            )
        ctx.protein_ref_seq = refseq.group(0)
        protein_notes = _variant_cells(fields, n)

        # gene sequence line
        fields = ctx.header[LINE_GENESEQ]
        refseq = match_refseq(_column(fields, 1))
        if not refseq:
            raise FieldFormatError(
                f"{refseq.error} for gene sequence line",
                line=LINE_GENESEQ + 1,
                field="gene sequence",
                value=_column(fields, 1),
            )
        ctx.gene_ref_seq = refseq.group(0)
        gene_positions = _variant_cells(fields, n)
        _check_positions(gene_positions, LINE_GENESEQ + 1, "gene position", required=False)

        # rsID line
        rsids = _variant_cells(ctx.header[LINE_RSID], n)

        ctx.variants = [
            Variant(
                chr_position=ctx.chr_positions[i],
                gene_position=gene_positions[i],
                protein_note=protein_notes[i],
                resource_note=resource_notes[i],
                rsid=rsids[i],
            )
            for i in range(n)
        ]
        logger.debug(
            f"{ctx.source}: gene {ctx.gene_symbol} ({ctx.gene_ref_seq}), protein {ctx.protein_ref_seq}, "
            f"dated {ctx.version_date}"
        )

    # ----------------------
    # Allele block
    # ----------------------

    def _read_allele_header(self, ctx: ParserContext, fields: list[str], lineno: int) -> None:
        for index, expected in enumerate(ALLELE_HEADER_COLUMNS):
            actual = _column(fields, index)
            if actual != expected:
                raise FieldFormatError(
                    f"Column {index + 1} title must be {expected!r}",
                    line=lineno,
                    field="allele header",
                    value=actual,
                )

        problems = []
        for title in fields[FIRST_VARIANT_COLUMN + ctx.num_variants:]:
            if not title.strip():
                continue
            result = match_population_title(title)
            if result:
                ctx.populations.append(result.group(0))
            else:
                problems.append(f"{title.strip()!r}: {result.error}")
        if problems:
            raise FieldFormatError("; ".join(problems), line=lineno, field="population")

        ctx.seen_allele_header = True
        logger.debug(f"{ctx.source}: allele block starts on line {lineno}, populations {ctx.populations}")

    def _read_allele_row(self, ctx: ParserContext, line: str, lineno: int, notepad: Optional[Notepad]) -> None:
        fields = line.split(SEPARATOR)
        if not line.strip() or len(fields) <= 2:
            return

        name = fields[0].strip()
        function_status = fields[1].strip()
        if not name:
            ctx.row_errors.append(FieldFormatError("Allele name is blank", line=lineno, field="allele"))
            return
        if any(existing.name == name for existing in ctx.named_alleles):
            ctx.row_errors.append(
                FieldFormatError("Duplicate allele name", line=lineno, field="allele", value=name)
            )
            return

        tokens = _variant_cells(fields, ctx.num_variants)
        bad = [token for token in tokens if not match_allele_token(token)]
        if bad:
            ctx.row_errors.append(
                FieldFormatError(
                    f"Allele {name!r}: invalid allele token(s) {', '.join(repr(t) for t in bad)}",
                    line=lineno,
                    field="alleles",
                )
            )
            return

        allele_id = self._resolver.resolve(ctx.gene_symbol, name)
        if allele_id is None:
            if self._resolver.for_gene(ctx.gene_symbol) and notepad is not None:
                notepad.add_warning(f"{ctx.gene_symbol} {name}: no allele ID found (line {lineno})")
            logger.debug(f"{ctx.source}: no ID for {ctx.gene_symbol} {name}")

        ctx.named_alleles.append(
            NamedAllele(
                name=name,
                function_status=function_status,
                alleles=tuple(normalize_allele(token) for token in tokens),
                id=allele_id,
            )
        )

    @staticmethod
    def _read_note(ctx: ParserContext, line: str) -> None:
        # spreadsheet exports pad every row with tabs; blank lines stay as empty notes
        ctx.notes.append(line.rstrip("\t"))
