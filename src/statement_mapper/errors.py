"""Exception hierarchy for statement-mapper."""


class StatementMapperError(Exception):
    """Base class for errors raised by statement-mapper."""


class MappingError(StatementMapperError):
    """A reviewer-supplied mapping references unknown headers or misses required fields."""


class TemplateStoreError(StatementMapperError):
    """The template store could not be read or written."""


class ExtractionError(StatementMapperError):
    """A statement file could not be turned into rows."""


class UnsupportedFileError(ExtractionError):
    """No row extractor is registered for the file type."""
