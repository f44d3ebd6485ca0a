import os
import pytest

from ATT.haplotype import HaplotypeIDResolver
from ATT.parser import TableParser


@pytest.fixture(scope="session")
def fpath_test_dir() -> str:
    """
    Path to `tests/data/` folder.
    """
    return os.path.join(os.path.dirname(__file__), "data")


@pytest.fixture(scope="session")
def fpath_table(fpath_test_dir: str) -> str:
    return os.path.join(fpath_test_dir, "CYP2C9.allele.translation.tsv")


@pytest.fixture(scope="session")
def fpath_haplotypes(fpath_test_dir: str) -> str:
    return os.path.join(fpath_test_dir, "haplotypes.tsv")


@pytest.fixture
def table_lines(fpath_table: str) -> list:
    """
    Lines of the CYP2C9 sample table, fresh for every test so tests can edit them.
    """
    with open(fpath_table, encoding="utf-8") as fh:
        return fh.read().splitlines()


@pytest.fixture(scope="session")
def resolver(fpath_haplotypes: str) -> HaplotypeIDResolver:
    return HaplotypeIDResolver.from_table(fpath_haplotypes)


@pytest.fixture
def parser(resolver: HaplotypeIDResolver) -> TableParser:
    return TableParser(haplotype_resolver=resolver, builds=["b38"], version_tag="v1.0")
