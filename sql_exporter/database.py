"""SQLAlchemy-backed database access for query execution"""
import re
from dataclasses import dataclass
from typing import Any, List, Optional, Tuple
from urllib.parse import parse_qsl

from sqlalchemy import create_engine
from sqlalchemy.engine import URL, Engine
from sqlalchemy.exc import SQLAlchemyError

from .errors import ConnectivityError, QueryError
from .logging_config import get_logger


logger = get_logger(__name__)

# Driver names accepted for compatibility with Go-style configs
DRIVER_ALIASES = {
    "sqlite3": "sqlite",
    "postgres": "postgresql",
    "mysql": "mysql+pymysql",
}

# net(addr) part of a go-sql-driver/mysql DSN, e.g. tcp(db:3306) or unix(/run/mysqld.sock)
MYSQL_ADDRESS_RE = re.compile(r"^(?P<net>[a-z0-9]+)(?:\((?P<addr>[^)]*)\))?$")

# go-sql-driver/mysql DSN parameters that PyMySQL understands
MYSQL_PASSED_PARAMS = {"charset"}


def _split_host_port(addr: str) -> Tuple[str, Optional[int]]:
    if addr.startswith("["):
        host, _, rest = addr[1:].partition("]")
        return host, int(rest[1:]) if rest.startswith(":") else None
    host, sep, port = addr.rpartition(":")
    if not sep:
        return addr, None
    return host, int(port)


def parse_mysql_dsn(driver: str, data_source_name: str) -> Optional[URL]:
    """Translate a ``user:pass@tcp(host:port)/db?params`` DSN into an SQLAlchemy URL.

    Returns None when the DSN is not in that form. Only parameters PyMySQL
    accepts are kept.
    """
    head, slash, tail = data_source_name.rpartition("/")
    if not slash:
        return None
    credentials, at, address = head.rpartition("@")
    match = MYSQL_ADDRESS_RE.match(address)
    if address and not match:
        return None

    host = port = None
    query = {}
    if match:
        net, addr = match.group("net"), match.group("addr")
        if net == "unix":
            if addr:
                query["unix_socket"] = addr
        elif net in ("tcp", "tcp4", "tcp6"):
            if addr:
                host, port = _split_host_port(addr)
        else:
            return None

    database, _, params = tail.partition("?")
    for key, value in parse_qsl(params):
        if key in MYSQL_PASSED_PARAMS:
            query[key] = value
        else:
            logger.debug("Ignoring MySQL DSN parameter", parameter=key)

    username, _, password = credentials.partition(":") if at else ("", "", "")
    return URL.create(
        driver,
        username=username or None,
        password=password or None,
        host=host or None,
        port=port,
        database=database or None,
        query=query,
    )


def build_database_url(driver_name: str, data_source_name: str) -> str:
    """Build an SQLAlchemy URL from a driver name and a data source name.

    A data source name that already contains ``://`` is taken as a complete
    URL. Otherwise the driver becomes the URL scheme. SQLite data source names
    are file paths, ``:memory:`` or ``file:`` URIs, the latter keeping their
    query arguments. MySQL data source names may use the
    ``user:pass@tcp(host:port)/db`` form.
    """
    if "://" in data_source_name:
        return data_source_name

    driver = DRIVER_ALIASES.get(driver_name, driver_name)
    dialect = driver.split("+", 1)[0]
    if dialect == "sqlite":
        if data_source_name.startswith("file:") and "uri=" not in data_source_name:
            sep = "&" if "?" in data_source_name else "?"
            return f"{driver}:///{data_source_name}{sep}uri=true"
        return f"{driver}:///{data_source_name}"
    if dialect == "mysql":
        url = parse_mysql_dsn(driver, data_source_name)
        if url is not None:
            return url.render_as_string(hide_password=False)
    return f"{driver}://{data_source_name}"


@dataclass(frozen=True)
class QueryResult:
    """Column names and fetched rows of one statement"""
    columns: List[str]
    rows: List[Tuple[Any, ...]]


class Database:
    """Thin wrapper exposing ping and query over an SQLAlchemy engine"""

    def __init__(self, engine: Engine):
        self.engine = engine

    @classmethod
    def open(cls, driver_name: str, data_source_name: str, pool_timeout: float = 30.0) -> "Database":
        """Create the engine; no connection is made until the first ping or query"""
        try:
            url = build_database_url(driver_name, data_source_name)
            options = {"pool_pre_ping": True}
            if not url.startswith("sqlite"):
                options["pool_timeout"] = pool_timeout
            engine = create_engine(url, **options)
        except (SQLAlchemyError, ImportError, ValueError) as e:
            raise ConnectivityError(f"cannot open database with driver {driver_name!r}: {e}") from e

        logger.info("Database engine created", driver=driver_name, dialect=engine.dialect.name)
        return cls(engine)

    def ping(self) -> None:
        """Check out a pooled connection, which pings it first"""
        try:
            with self.engine.connect():
                pass
        except SQLAlchemyError as e:
            raise ConnectivityError(f"database ping failed: {e}") from e

    def query(self, sql: str) -> QueryResult:
        """Execute ``sql`` as-is and fetch every row"""
        try:
            with self.engine.connect() as conn:
                result = conn.exec_driver_sql(sql)
                if not result.returns_rows:
                    raise QueryError(sql, "statement does not return rows")
                columns = list(result.keys())
                rows = [tuple(row) for row in result.fetchall()]
        except SQLAlchemyError as e:
            raise QueryError(sql, e) from e

        return QueryResult(columns=columns, rows=rows)

    def close(self) -> None:
        self.engine.dispose()
