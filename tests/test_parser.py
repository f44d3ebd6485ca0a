"""
Tests for TableParser against the CYP2C9 sample table in tests/data and
edited copies of it.
"""

import pytest
from stairval.notepad import create_notepad

from ATT.errors import (
    AlleleRowsError,
    BuildNotPermittedError,
    CrossFieldInvariantError,
    FieldFormatError,
    LookupMiss,
    StructuralError,
)
from ATT.parser import TableParser

CHROMO_LINE = 3


def _edit(lines, index, old, new):
    assert old in lines[index]
    lines[index] = lines[index].replace(old, new)
    return lines


def test_parse_sample_table(parser, fpath_table):
    d = parser.parse_file(fpath_table)

    assert d.gene_symbol == "CYP2C9"
    assert d.version_date == "07/13/16"
    assert d.version_tag == "v1.0"
    assert d.chromosome_ref_seq == "NC_000010.11"
    assert d.chromosome_name == "chr10"
    assert d.genome_build == "b38"
    assert d.protein_ref_seq == "NP_000762.2"
    assert d.gene_ref_seq == "NG_008385.1"
    assert d.gene_orientation == ""
    assert d.num_variants == 3
    assert d.chr_positions == ("g.94942290C>T", "g.94981296A>C", "g.94981301T>A")
    assert d.gene_positions == ("g.8633C>T", "g.47639A>C", "g.47644T>A")
    assert d.protein_notes == ("p.R144C", "p.I359L", "p.D360E")
    assert d.resource_notes == ("", "", "Likely splice variant")
    assert d.rsids == ("rs1799853", "rs1057910", "rs1057911")
    assert [a.name for a in d.named_alleles] == ["*1", "*2", "*3", "*4", "*5"]


def test_every_allele_has_one_call_per_variant(parser, table_lines):
    d = parser.parse(table_lines)
    assert all(len(a.alleles) == d.num_variants for a in d.named_alleles)


def test_allele_tokens_are_normalized(parser, table_lines):
    d = parser.parse(table_lines)
    assert d.get_named_allele("*1").alleles == ("C", "A", "T")
    assert d.get_named_allele("*2").alleles == ("T", "", "")
    assert d.get_named_allele("*4").alleles == ("", "GG", "-")


def test_short_row_is_padded(parser, table_lines):
    d = parser.parse(table_lines)
    assert d.get_named_allele("*5").alleles == ("Y", "", "")


def test_population_columns_are_not_allele_calls(parser, table_lines):
    d = parser.parse(table_lines)
    assert "0.9" not in d.get_named_allele("*1").alleles


def test_notes_are_kept_verbatim(parser, table_lines):
    d = parser.parse(table_lines)
    assert d.notes == ("Allele frequencies are illustrative.", "Positions are on the forward strand.")


def test_blank_note_lines_are_kept_as_empty_notes(parser, table_lines):
    table_lines.insert(15, "\t\t\t")
    table_lines.append("")
    d = parser.parse(table_lines)
    assert d.notes == ("Allele frequencies are illustrative.", "", "Positions are on the forward strand.", "")


def test_ids_resolved_and_unmapped_alleles_warned(parser, table_lines):
    notepad = create_notepad("CYP2C9")
    d = parser.parse(table_lines, notepad)

    assert d.get_named_allele("*1").id == "PA165816542"
    assert d.get_named_allele("*3").id == "PA165816544"
    assert d.get_named_allele("*4").id is None
    assert not notepad.has_errors(include_subsections=True)
    warnings = [w.message for w in notepad.warnings()]
    assert len(warnings) == 2
    assert any("*4" in w for w in warnings)


def test_without_resolver_ids_are_empty_and_silent(table_lines):
    notepad = create_notepad("CYP2C9")
    d = TableParser(builds=["b38"]).parse(table_lines, notepad)
    assert all(a.id is None for a in d.named_alleles)
    assert not notepad.has_warnings(include_subsections=True)


def test_parser_is_reusable(parser, table_lines):
    assert parser.parse(table_lines) == parser.parse(list(table_lines))


def test_blank_and_two_field_lines_in_allele_block_are_skipped(parser, table_lines):
    table_lines.insert(9, "")
    table_lines.insert(9, "stray\tcell")
    d = parser.parse(table_lines)
    assert len(d.named_alleles) == 5


def test_trailing_blank_chromosome_columns_do_not_add_variants(parser, table_lines):
    table_lines[CHROMO_LINE] += "\t\t\t"
    assert parser.parse(table_lines).num_variants == 3


def test_too_few_lines(parser, table_lines):
    with pytest.raises(StructuralError, match="expecting at least 7"):
        parser.parse(table_lines[:6])


def test_unsupported_build_is_rejected(parser, table_lines):
    _edit(table_lines, CHROMO_LINE, "NC_000010.11, GRCh38.p2", "NC_000010.10, GRCh37.p13")
    with pytest.raises(BuildNotPermittedError) as e:
        parser.parse(table_lines)
    assert e.value.value == "NC_000010.10"


def test_permitted_b37_table(resolver, table_lines):
    _edit(table_lines, CHROMO_LINE, "NC_000010.11, GRCh38.p2", "NC_000010.10, GRCh37.p13")
    d = TableParser(haplotype_resolver=resolver, builds=["b37", "b38"]).parse(table_lines)
    assert d.genome_build == "b37"
    assert d.chromosome_name == "chr10"


def test_unknown_accession(parser, table_lines):
    _edit(table_lines, CHROMO_LINE, "NC_000010.11", "NC_000010.9")
    with pytest.raises(LookupMiss):
        parser.parse(table_lines)


def test_build_label_must_agree_with_accession(parser, table_lines):
    _edit(table_lines, CHROMO_LINE, "GRCh38.p2", "GRCh37.p13")
    with pytest.raises(CrossFieldInvariantError, match="disagrees") as e:
        parser.parse(table_lines)
    assert not isinstance(e.value, BuildNotPermittedError)


@pytest.mark.parametrize("accession", ["NC_000025.1", "NC_000000.1"])
def test_chromosome_number_out_of_range(parser, table_lines, accession):
    _edit(table_lines, CHROMO_LINE, "NC_000010.11", accession)
    with pytest.raises(CrossFieldInvariantError, match="Unknown or unsupported chromosome number"):
        parser.parse(table_lines)


def test_missing_genome_build(parser, table_lines):
    _edit(table_lines, CHROMO_LINE, ", GRCh38.p2", "")
    with pytest.raises(FieldFormatError) as e:
        parser.parse(table_lines)
    assert e.value.field == "genome build"
    assert e.value.line == 4


def test_chromosome_line_without_variants(parser, table_lines):
    table_lines[CHROMO_LINE] = "Chromosome\tChromosomal position (NC_000010.11, GRCh38.p2)"
    with pytest.raises(StructuralError, match="No variants"):
        parser.parse(table_lines)


def test_malformed_chromosomal_position(parser, table_lines):
    _edit(table_lines, CHROMO_LINE, "g.94981296A>C", "94981296A>C")
    with pytest.raises(FieldFormatError, match="variant 2") as e:
        parser.parse(table_lines)
    assert "'94981296A>C'" in str(e.value)


def test_blank_chromosomal_position(parser, table_lines):
    _edit(table_lines, CHROMO_LINE, "\tg.94981296A>C\t", "\t\t")
    with pytest.raises(FieldFormatError, match="variant 2: position is blank"):
        parser.parse(table_lines)


def test_malformed_gene_position(parser, table_lines):
    _edit(table_lines, 4, "g.47639A>C", "47639A>C")
    with pytest.raises(FieldFormatError) as e:
        parser.parse(table_lines)
    assert e.value.field == "gene position"


@pytest.mark.parametrize(
    "old, new, field",
    [
        ("GENE: CYP2C9", "GENE CYP2C9", "gene"),
        ("07/13/16", "2016-07-13", "date"),
    ],
)
def test_malformed_gene_line(parser, table_lines, old, new, field):
    _edit(table_lines, 0, old, new)
    with pytest.raises(FieldFormatError) as e:
        parser.parse(table_lines)
    assert e.value.field == field
    assert e.value.line == 1


def test_naming_line_first_column_must_be_blank(parser, table_lines):
    table_lines[1] = "Naming" + table_lines[1]
    with pytest.raises(FieldFormatError, match="expected to be blank"):
        parser.parse(table_lines)


def test_missing_protein_refseq(parser, table_lines):
    _edit(table_lines, 2, " (NP_000762.2)", "")
    with pytest.raises(FieldFormatError, match="no RefSeq identifier for protein line"):
        parser.parse(table_lines)


def test_misspelled_allele_header(parser, table_lines):
    _edit(table_lines, 6, "Allele\t", "Alelle\t")
    with pytest.raises(FieldFormatError) as e:
        parser.parse(table_lines)
    assert e.value.field == "allele header"
    assert e.value.value == "Alelle"
    assert e.value.line == 7


def test_bad_population_title(parser, table_lines):
    _edit(table_lines, 6, "African Allele Frequency", "African Frequency")
    with pytest.raises(FieldFormatError, match="African Frequency"):
        parser.parse(table_lines)


def test_bad_allele_rows_are_reported_together(parser, table_lines):
    _edit(table_lines, 7, "\tC\tA\tT", "\tX\tA\tZ")
    _edit(table_lines, 9, "\t\tC\t", "\t\tdup\t")
    with pytest.raises(AlleleRowsError) as e:
        parser.parse(table_lines)
    errors = e.value.row_errors
    assert [err.line for err in errors] == [8, 10]
    assert "'X', 'Z'" in str(errors[0])
    assert "'dup'" in str(errors[1])


def test_duplicate_and_blank_allele_names(parser, table_lines):
    table_lines.insert(12, "*2\tDecreased function\tT\t\t")
    table_lines.insert(12, "\tNo function\tT\t\t")
    with pytest.raises(AlleleRowsError) as e:
        parser.parse(table_lines)
    messages = [err.message for err in e.value.row_errors]
    assert messages == ["Allele name is blank", "Duplicate allele name"]


def test_missing_allele_header(parser, table_lines):
    with pytest.raises(StructuralError, match="missing 'Allele' header"):
        parser.parse(table_lines[:6] + ["", "Notes:", "nothing here"])


def test_header_without_alleles(parser, table_lines):
    with pytest.raises(StructuralError, match="No named alleles"):
        parser.parse(table_lines[:7] + ["", "Notes:"])
