"""Shared fixtures for SQL exporter tests"""
import sqlite3
import threading
import time
from typing import Dict, List, Optional

import pytest

from sql_exporter.config import ExporterConfig, QueryDefinition
from sql_exporter.database import Database, QueryResult
from sql_exporter.errors import ConnectivityError, QueryError


STATS_SQL = "SELECT count, region FROM stats"


def make_config(*queries, driver_name="sqlite3", data_source_name=":memory:") -> ExporterConfig:
    """Build a config from (sql, name, help) tuples"""
    return ExporterConfig(
        driver_name=driver_name,
        data_source_name=data_source_name,
        queries=[QueryDefinition(sql=sql, name=name, help=help_text) for sql, name, help_text in queries],
    )


def samples_by_name(metrics) -> Dict[str, List]:
    """Index emitted samples by family name"""
    return {metric.name: metric.samples for metric in metrics}


class FakeDatabase:
    """In-memory stand-in for Database with scriptable results and failures"""

    def __init__(self, results: Optional[Dict[str, QueryResult]] = None):
        self.results = dict(results or {})
        self.failing: Dict[str, str] = {}
        self.ping_error: Optional[str] = None
        self.calls: List[str] = []

    def ping(self):
        self.calls.append("ping")
        if self.ping_error:
            raise ConnectivityError(self.ping_error)

    def query(self, sql):
        self.calls.append(sql)
        if sql in self.failing:
            raise QueryError(sql, self.failing[sql])
        return self.results[sql]

    def close(self):
        pass


class SlowDatabase(FakeDatabase):
    """FakeDatabase that sleeps in every call and records which thread made it"""

    def __init__(self, results, delay: float = 0.02):
        super().__init__(results)
        self.delay = delay
        self.events: List[str] = []
        self._events_lock = threading.Lock()

    def _record(self):
        with self._events_lock:
            self.events.append(threading.current_thread().name)
        time.sleep(self.delay)

    def ping(self):
        self._record()
        super().ping()

    def query(self, sql):
        self._record()
        return super().query(sql)


@pytest.fixture
def fake_db():
    return FakeDatabase({
        STATS_SQL: QueryResult(columns=["count", "region"], rows=[(5, "us"), (7, "eu")]),
    })


@pytest.fixture
def sqlite_path(tmp_path):
    """SQLite file with a populated stats table"""
    path = tmp_path / "stats.db"
    conn = sqlite3.connect(str(path))
    conn.execute("CREATE TABLE stats (count INTEGER, region TEXT)")
    conn.executemany("INSERT INTO stats VALUES (?, ?)", [(5, "us"), (7, "eu")])
    conn.commit()
    conn.close()
    return path


@pytest.fixture
def sqlite_db(sqlite_path):
    database = Database.open("sqlite3", str(sqlite_path))
    yield database
    database.close()
