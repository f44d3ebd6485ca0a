"""
Error kinds raised while reading allele definition tables.

Every error knows where it came from (1-based line number, field role) and
which raw value was rejected, so the CLI can report it without re-parsing.
"""

from __future__ import annotations

from typing import Optional, Sequence


class DefinitionError(ValueError):
    """Base class for any validation failure of an allele definition table."""

    def __init__(
        self,
        message: str,
        *,
        line: Optional[int] = None,
        field: Optional[str] = None,
        value: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.line = line
        self.field = field
        self.value = value

    def __str__(self) -> str:
        where = []
        if self.line is not None:
            where.append(f"line {self.line}")
        if self.field:
            where.append(f"field {self.field!r}")
        prefix = f"{', '.join(where)}: " if where else ""
        suffix = f" (got {self.value!r})" if self.value is not None else ""
        return f"{prefix}{self.message}{suffix}"


class StructuralError(DefinitionError):
    """The table is too short or a required block is missing."""


class FieldFormatError(DefinitionError):
    """A single field does not match its grammar."""


class CrossFieldInvariantError(DefinitionError):
    """Two fields disagree (variant counts, build, chromosome number)."""


class BuildNotPermittedError(CrossFieldInvariantError):
    """The chromosome accession resolves to a build outside the policy."""


class LookupMiss(DefinitionError):
    """A required lookup (genome build) found nothing."""


class AlleleRowsError(FieldFormatError):
    """One or more allele rows failed; all of them are kept in ``row_errors``."""

    def __init__(self, row_errors: Sequence[FieldFormatError]):
        self.row_errors = list(row_errors)
        summary = "; ".join(str(e) for e in self.row_errors)
        super().__init__(
            f"{len(self.row_errors)} allele row(s) failed validation: {summary}",
            field="alleles",
        )

    def __str__(self) -> str:
        return self.message
