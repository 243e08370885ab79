"""Collector that republishes SQL query results as metrics"""
import math
from decimal import Decimal
from typing import Any, List, Optional, Sequence

from prometheus_client.metrics_core import Metric

from ..config import ExporterConfig, QueryDefinition
from ..database import Database
from ..errors import QueryError, ScanError, SchemaMismatchError
from ..logging_config import get_logger
from ..metrics.models import QueryMetricFamily, validate_label_names
from .base import BaseCollector


logger = get_logger(__name__)


def format_float(value: float) -> str:
    """Shortest text for ``value``, in exponent form below 1e-4 and from 1e6 up"""
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"

    number = Decimal(repr(value)).normalize()
    sign, digits, exponent = number.as_tuple()
    exp10 = len(digits) + exponent - 1
    if -4 <= exp10 < 6:
        return format(number, "f")

    mantissa = "".join(str(d) for d in digits)
    if len(mantissa) > 1:
        mantissa = f"{mantissa[0]}.{mantissa[1:]}"
    return f"{'-' if sign else ''}{mantissa}e{'-' if exp10 < 0 else '+'}{abs(exp10):02d}"


def decode_value(sql: str, column: str, raw: Any) -> float:
    """Decode the value column of a row as a float"""
    if raw is None:
        raise ScanError(sql, column, raw, "NULL is not a number")
    if isinstance(raw, (bytes, bytearray, memoryview)):
        try:
            raw = bytes(raw).decode("utf-8")
        except UnicodeDecodeError as e:
            raise ScanError(sql, column, raw, e) from e
    try:
        return float(raw)
    except (TypeError, ValueError) as e:
        raise ScanError(sql, column, raw, e) from e


def decode_label(sql: str, column: str, raw: Any) -> str:
    """Decode a label column of a row as text, whatever its SQL type"""
    if raw is None:
        raise ScanError(sql, column, raw, "NULL cannot be used as a label value")
    if isinstance(raw, str):
        return raw
    if isinstance(raw, (bytes, bytearray, memoryview)):
        try:
            return bytes(raw).decode("utf-8")
        except UnicodeDecodeError as e:
            raise ScanError(sql, column, raw, e) from e
    if isinstance(raw, bool):
        return "true" if raw else "false"
    if isinstance(raw, float):
        return format_float(raw)
    return str(raw)


class SQLExporter(BaseCollector):
    """Republishes the rows of configured SQL queries as Prometheus metrics.

    The first column of every query result is the metric value, by position,
    and the remaining columns are labels. Label names are learned at
    construction by running each query once and never change afterwards; a
    later result with different label columns fails the scrape.

    Every scrape pings the database and runs the queries in config order.
    The first error stops the cycle: families of queries that already ran are
    still emitted, the rest keep whatever values they had.
    """

    def __init__(self, config: ExporterConfig, database: Database, namespace: str = "sql",
                 clear_stale_on_failure: bool = False):
        super().__init__(namespace, "sql", "SQL queries")
        self.config = config
        self.database = database
        self.clear_stale_on_failure = clear_stale_on_failure
        self._failed_index: Optional[int] = None
        self.families: List[QueryMetricFamily] = self._probe_families()

    def _probe_families(self) -> List[QueryMetricFamily]:
        """Run every query once to learn its label columns"""
        self.database.ping()

        families = []
        for query in self.config.queries:
            logger.debug("Running query", sql=query.statement)
            result = self.database.query(query.statement)
            if not result.columns:
                raise QueryError(query.statement, "query returned no columns")

            label_names = tuple(result.columns[1:])
            problems = validate_label_names(label_names)
            if problems:
                raise QueryError(query.statement, "; ".join(problems))

            logger.debug("Columns", sql=query.statement, label_names=list(label_names))
            families.append(QueryMetricFamily(
                name=f"{self.namespace}_{query.metric_name}",
                help_text=query.help_text,
                label_names=label_names,
            ))
        return families

    def describe_families(self) -> List[Metric]:
        return [family.to_prometheus(with_samples=False) for family in self.families]

    def scrape(self, metrics: List[Metric]) -> None:
        self._failed_index = 0
        self.database.ping()

        for index, (query, family) in enumerate(zip(self.config.queries, self.families)):
            self._failed_index = index
            self._scrape_query(index, query, family)
            metrics.append(family.to_prometheus())

        self._failed_index = None

    def _scrape_query(self, index: int, query: QueryDefinition, family: QueryMetricFamily) -> None:
        logger.debug("Running query", sql=query.statement)
        result = self.database.query(query.statement)
        self._check_columns(query, family, result.columns)

        value_column = result.columns[0]
        label_columns = result.columns[1:]
        for row in result.rows:
            value = decode_value(query.statement, value_column, row[0])
            label_values = [
                decode_label(query.statement, column, raw)
                for column, raw in zip(label_columns, row[1:])
            ]
            logger.debug("Result", query_index=index, labels=label_values, value=value)
            family.set(label_values, value)

    def _check_columns(self, query: QueryDefinition, family: QueryMetricFamily,
                       columns: Sequence[str]) -> None:
        if not columns or tuple(columns[1:]) != family.label_names:
            raise SchemaMismatchError(query.statement, family.label_names, list(columns[1:]))

    def on_scrape_failure(self, error: Exception) -> None:
        if self.clear_stale_on_failure and self._failed_index is not None:
            for family in self.families[self._failed_index:]:
                family.clear()
        self._failed_index = None
