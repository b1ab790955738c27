"""
Error taxonomy
==============

- FetchFailure: a remote read (or a local source file) could not be read or is not CSV.
- ParseFailure: a date header or a numeric cell could not be parsed.
- IntegrityError: a key that must be unique was repeated.

Rows dropped by the cases-sign filters are not errors; they are counted in a
`DropReport` (see `covtidy.validate`).
"""


class CovTidyError(Exception):
    """Base class for fatal pipeline errors."""


class FetchFailure(CovTidyError):
    def __init__(self, source: str, reason: str):
        super().__init__(f"Could not read {source}: {reason}")
        self.source = source
        self.reason = reason


class ParseFailure(CovTidyError, ValueError):
    def __init__(self, table: str, reason: str):
        super().__init__(f"{table}: {reason}")
        self.table = table
        self.reason = reason


class IntegrityError(CovTidyError):
    """A join key or a (county, date) pair occurs more than once."""
