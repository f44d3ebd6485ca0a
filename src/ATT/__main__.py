"""
Command-line interface for ATT.

Converts allele definition workbooks to tab-separated tables, parses and
validates those tables, and writes one versioned definition file per gene.
A table that fails validation is reported and skipped; it never stops the
remaining tables and never produces an output file.
"""

import logging
import os
import pathlib
import sys
import typing

import click
import requests
from stairval.notepad import Notepad, create_notepad

from .assembly import AssemblyMap, permitted_builds
from .definition import DefinitionFile
from .errors import AlleleRowsError, CrossFieldInvariantError, DefinitionError
from .haplotype import HaplotypeIDResolver
from .loader import convert_to_tsv, is_excel_file
from .parser import TableParser
from .serializer import JSON_SUFFIX, TSV_SUFFIX, DefinitionSerializer


@click.group()
def main():
    """ATT: Allele Translation Tables - parse and validate allele definition tables."""
    pass


@main.command(name="convert")
@click.argument("path", type=click.Path(exists=True))
def convert(path: str):
    """
    Convert an Excel workbook (or every workbook in a directory) into
    <GENE>.allele.translation.tsv next to it.
    """
    source = pathlib.Path(path)
    if source.is_dir():
        click.echo(f"Converting all files in {source}")
        workbooks = sorted(p for p in source.iterdir() if is_excel_file(p))
    else:
        workbooks = [source]

    failures = 0
    for workbook in workbooks:
        click.echo(f"Converting file {workbook}")
        try:
            out = convert_to_tsv(workbook)
        except ValueError as e:
            click.echo(click.style(f"Error: {e}", fg="red"), err=True)
            failures += 1
            continue
        click.echo(f"Wrote {out}")

    if failures:
        sys.exit(1)


@main.command(name="parse")
@click.argument("inputs", nargs=-1, required=True, type=click.Path(exists=True))
@click.option(
    "-o",
    "--output-dir",
    "output_dir",
    default="generatedDefinitions",
    type=click.Path(file_okay=False),
    help="where to write definition files (default: generatedDefinitions)",
)
@click.option("-b", "--build", "builds", multiple=True, help="permitted genome build tag, repeatable (default: $ATT_PERMITTED_BUILDS or b38)")
@click.option("--haplotypes", "haplotype_path", type=click.Path(exists=True, dir_okay=False), help="tab-separated haplotype ID reference table")
@click.option("--version-tag", default=None, type=str, help="content version written into each definition (default: $ATT_VERSION_TAG)")
@click.option("--format", "output_format", type=click.Choice(["tsv", "json"]), default="tsv", show_default=True)
@click.option("--verbose-logging", is_flag=True, help="Also emit debug logs to stderr")
@click.option("--log-file-path", type=click.Path(dir_okay=False, writable=True), help="Append timestamped logs to this file")
def parse(
    inputs: typing.Tuple[str, ...],
    output_dir: str,
    builds: typing.Tuple[str, ...],
    haplotype_path: typing.Optional[str],
    version_tag: typing.Optional[str],
    output_format: str,
    verbose_logging: bool,
    log_file_path: typing.Optional[str],
):
    """
    Parse allele definition tables (.tsv files or directories of them) and
    write one definition file per valid table.
    """
    _configure_logging(verbose_logging, log_file_path)
    parser = _build_parser(builds, haplotype_path, version_tag)
    serializer = DefinitionSerializer()

    out_dir = pathlib.Path(output_dir)
    out_dir.mkdir(parents=True, exist_ok=True)

    written = 0
    failed = 0
    for table_path in _collect_tables(inputs):
        notepad = create_notepad(table_path.name)
        definition = _parse_table(parser, table_path, notepad)
        _report_issues(table_path.name, notepad)
        if definition is None:
            failed += 1
            continue
        if output_format == "json":
            out = serializer.write_json(definition, out_dir)
        else:
            out = serializer.write(definition, out_dir)
        logging.info(f"{table_path} -> {out}")
        written += 1

    click.echo(f"Wrote {written} definition files to {out_dir}")
    if failed:
        click.echo(f"{failed} table(s) failed validation", err=True)
        sys.exit(1)


@main.command(name="validate")
@click.argument("inputs", nargs=-1, required=True, type=click.Path(exists=True))
@click.option("-b", "--build", "builds", multiple=True, help="permitted genome build tag, repeatable")
@click.option("--haplotypes", "haplotype_path", type=click.Path(exists=True, dir_okay=False), help="tab-separated haplotype ID reference table")
def validate(inputs: typing.Tuple[str, ...], builds: typing.Tuple[str, ...], haplotype_path: typing.Optional[str]):
    """
    Check allele definition tables, or previously generated
    .definition.tsv / .definition.json files, without writing anything.
    """
    parser = _build_parser(builds, haplotype_path, None)
    serializer = DefinitionSerializer()

    failed = 0
    paths = _collect_tables(inputs, suffixes=(".tsv", ".json"))
    for path in paths:
        notepad = create_notepad(path.name)
        if path.name.endswith(TSV_SUFFIX) or path.name.endswith(JSON_SUFFIX):
            definition = _read_generated(serializer, path, notepad)
        else:
            definition = _parse_table(parser, path, notepad)
        if definition is not None and not definition.named_alleles:
            notepad.add_error("No named alleles defined")
        _report_issues(path.name, notepad)
        if notepad.has_errors(include_subsections=True):
            failed += 1
        else:
            click.echo(
                f"OK {path.name}: {definition.gene_symbol}, {definition.num_variants} variants, "
                f"{len(definition.named_alleles)} named alleles"
            )

    click.echo(f"Checked {len(paths)} file(s), {failed} failed")
    if failed:
        sys.exit(1)


@main.command(name="download")
@click.option("--url", required=True, type=str, help="URL of a tab-separated haplotype ID table")
@click.option(
    "-d",
    "--data-path",
    "data_dir",
    default="data",
    type=click.Path(file_okay=False),
    help="where to save haplotypes.tsv (default: data)",
)
def download(url: str, data_dir: str):
    """
    Download the haplotype ID reference table used by --haplotypes.
    """
    datadir = pathlib.Path(data_dir)
    datadir.mkdir(parents=True, exist_ok=True)

    click.echo(f"Downloading haplotype table from {url} …")
    resp = requests.get(url, timeout=60)
    resp.raise_for_status()

    out = datadir / "haplotypes.tsv"
    with open(out, "wb") as f:
        f.write(resp.content)

    click.echo(f"Saved haplotype table to {out}")


def _configure_logging(verbose_logging: bool, log_file_path: typing.Optional[str]) -> None:
    handlers: list[logging.Handler] = []
    if log_file_path:
        handlers.append(logging.FileHandler(log_file_path, mode="a", encoding="utf-8"))
    if verbose_logging:
        handlers.append(logging.StreamHandler(sys.stderr))
    if handlers:
        logging.basicConfig(
            level=logging.DEBUG if verbose_logging else logging.INFO,
            format="%(asctime)s %(levelname)s %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
            handlers=handlers,
        )


def _build_parser(
    builds: typing.Sequence[str],
    haplotype_path: typing.Optional[str],
    version_tag: typing.Optional[str],
) -> TableParser:
    resolver = None
    if haplotype_path:
        try:
            resolver = HaplotypeIDResolver.from_table(haplotype_path)
        except ValueError as e:
            click.echo(click.style(f"Error: {e}", fg="red"), err=True)
            sys.exit(1)
    if version_tag is None:
        version_tag = os.getenv("ATT_VERSION_TAG", "")
    return TableParser(
        assembly_map=AssemblyMap(),
        haplotype_resolver=resolver,
        builds=permitted_builds(builds),
        version_tag=version_tag,
    )


def _collect_tables(inputs: typing.Sequence[str], suffixes: typing.Tuple[str, ...] = (".tsv",)) -> list[pathlib.Path]:
    # expand directories into their table files, keep explicit files as given
    paths: list[pathlib.Path] = []
    for item in inputs:
        path = pathlib.Path(item)
        if path.is_dir():
            paths.extend(sorted(p for p in path.iterdir() if p.is_file() and p.suffix in suffixes))
        else:
            paths.append(path)
    return paths


def _parse_table(parser: TableParser, path: pathlib.Path, notepad: Notepad) -> typing.Optional[DefinitionFile]:
    logging.info(f"Checking {path}")
    try:
        return parser.parse_file(path, notepad)
    except AlleleRowsError as e:
        for row_error in e.row_errors:
            notepad.add_error(str(row_error))
    except DefinitionError as e:
        notepad.add_error(str(e))
    except (OSError, UnicodeDecodeError) as e:
        notepad.add_error(f"Cannot read {path}: {e}")
    return None


def _read_generated(
    serializer: DefinitionSerializer, path: pathlib.Path, notepad: Notepad
) -> typing.Optional[DefinitionFile]:
    try:
        if path.name.endswith(JSON_SUFFIX):
            return serializer.read_json(path)
        return serializer.read(path)
    except CrossFieldInvariantError as e:
        notepad.add_error(f"Number of variants and number of allele positions don't match: {e}")
    except (ValueError, OSError) as e:
        notepad.add_error(str(e))
    return None


def _report_issues(label: str, notepad: Notepad) -> None:
    # errors first, then warnings; processing always continues
    if notepad.has_errors(include_subsections=True):
        click.echo(click.style(f"Errors found in {label}:", fg="red"))
        for err in notepad.errors():
            click.echo(f"- {err.message}")
    if notepad.has_warnings(include_subsections=True):
        click.echo(click.style(f"Warnings found in {label}:", fg="yellow"))
        for w in notepad.warnings():
            click.echo(f"- {w.message}")


if __name__ == "__main__":
    main()
