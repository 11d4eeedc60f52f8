# Contains the exception hierarchy


class JsonToCsvError(Exception):
    """Base class for every error raised by the normalizer."""


class InvalidRecordError(JsonToCsvError, ValueError):
    """A top-level record is not a JSON object (or not valid JSON at all)."""


class UnknownTableError(JsonToCsvError, KeyError):
    """A record was pushed against a root table that was never registered."""

    def __str__(self):
        # KeyError would repr() the message otherwise
        return str(self.args[0]) if self.args else ""


class TableWriteError(JsonToCsvError):
    """Writing to a table's CSV file failed. Always fatal to the run."""

    def __init__(self, message, *, path=None):
        super().__init__(message)
        self.path = path
