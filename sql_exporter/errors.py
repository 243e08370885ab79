"""Exception hierarchy for the SQL exporter"""
from typing import Any, Sequence


class SQLExporterError(Exception):
    """Base class for all exporter errors"""


class ConfigError(SQLExporterError):
    """Query configuration could not be loaded"""


class ConfigReadError(ConfigError):
    """Config file could not be read"""

    def __init__(self, path, reason):
        self.path = str(path)
        self.reason = str(reason)
        super().__init__(f"failed to load config; path: <{self.path}>, err: <{self.reason}>")


class ConfigParseError(ConfigError):
    """Config file content is malformed"""

    def __init__(self, reason):
        self.reason = str(reason)
        super().__init__(f"failed to parse config; err: <{self.reason}>")


class ConnectivityError(SQLExporterError):
    """Database is unreachable"""


class QueryError(SQLExporterError):
    """A configured statement failed to execute"""

    def __init__(self, sql: str, reason):
        self.sql = sql
        self.reason = str(reason)
        super().__init__(f"query failed; sql: <{sql}>, err: <{self.reason}>")


class ScanError(SQLExporterError):
    """A result cell could not be decoded as a metric value or label"""

    def __init__(self, sql: str, column: str, value: Any, reason):
        self.sql = sql
        self.column = column
        self.value = value
        self.reason = str(reason)
        super().__init__(
            f"cannot scan column <{column}> value <{value!r}>; sql: <{sql}>, err: <{self.reason}>"
        )


class SchemaMismatchError(SQLExporterError):
    """A query returned different label columns than it did at startup"""

    def __init__(self, sql: str, expected: Sequence[str], actual: Sequence[str]):
        self.sql = sql
        self.expected = list(expected)
        self.actual = list(actual)
        super().__init__(
            f"label columns changed; sql: <{sql}>, expected: {self.expected}, got: {self.actual}"
        )


# Errors that fail a single scrape cycle without stopping the process
SCRAPE_ERRORS = (ConnectivityError, QueryError, ScanError, SchemaMismatchError)
