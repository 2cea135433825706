"""
Import error hierarchy.

Routes translate every AttendanceImportError into a 400 response with the
exception message as the error string. Anything else is an internal
failure and is reported generically.
"""


class AttendanceImportError(Exception):
    """Base class for errors that reject an uploaded file."""


class ImportValidationError(AttendanceImportError):
    """Missing or invalid form input (intake, year, module code, file)."""


class ExportFormatError(AttendanceImportError):
    """The uploaded file does not have the expected attendance export layout."""


class RosterFormatError(AttendanceImportError):
    """A module master or enrollment file could not be read."""
