"""Base collector class and interfaces"""
import threading
import time
from abc import ABC, abstractmethod
from typing import List, Optional

from prometheus_client.core import CounterMetricFamily
from prometheus_client.metrics_core import Metric
from prometheus_client.registry import Collector

from ..errors import SCRAPE_ERRORS
from ..logging_config import get_logger, log_scrape


logger = get_logger(__name__)


class BaseCollector(Collector, ABC):
    """Base class for collectors that query a backend on every scrape.

    One lock is held for the whole scrape cycle, so concurrent scrapes run
    one after another. A scrape error aborts the cycle, increments
    ``<namespace>_exporter_scrape_failures_total`` and emits that counter
    after whatever families were emitted before the error.
    """

    def __init__(self, namespace: str = "sql", name: str = "", help_text: str = ""):
        self.namespace = namespace
        self._name = name
        self._help_text = help_text
        self._lock = threading.Lock()

        # Scrape state, only changed while holding the lock
        self.scrape_count = 0
        self.scrape_failures = 0
        self.last_scrape_time = 0.0
        self.last_scrape_duration = 0.0
        self.last_scrape_error: Optional[str] = None

    @abstractmethod
    def scrape(self, metrics: List[Metric]) -> None:
        """Run one scrape cycle, appending each emitted family to ``metrics``"""
        pass

    @abstractmethod
    def describe_families(self) -> List[Metric]:
        """Families this collector emits, without samples"""
        pass

    def on_scrape_failure(self, error: Exception) -> None:
        """Hook called with the lock held after a scrape error"""
        pass

    @property
    def name(self) -> str:
        return self._name

    @property
    def help_text(self) -> str:
        return self._help_text or self.name

    def describe(self) -> List[Metric]:
        return [self._failure_family(with_value=False)] + self.describe_families()

    def collect(self) -> List[Metric]:
        with self._lock:
            metrics: List[Metric] = []
            start_time = time.time()
            self.scrape_count += 1

            try:
                self.scrape(metrics)
            except SCRAPE_ERRORS as e:
                self.scrape_failures += 1
                self.last_scrape_error = str(e)
                self.on_scrape_failure(e)
                metrics.append(self._failure_family())
            else:
                self.last_scrape_error = None

            self.last_scrape_time = time.time()
            self.last_scrape_duration = self.last_scrape_time - start_time
            log_scrape(logger, len(metrics), self.last_scrape_duration,
                       self.scrape_failures, self.last_scrape_error)
            return metrics

    def _failure_family(self, with_value: bool = True) -> CounterMetricFamily:
        return CounterMetricFamily(
            f"{self.namespace}_exporter_scrape_failures_total",
            f"Number of errors while scraping {self.help_text}.",
            value=self.scrape_failures if with_value else None,
        )
