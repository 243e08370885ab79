"""Main entry point for the SQL exporter"""
import argparse
import sys
from typing import List, Optional

import uvicorn
from pydantic import ValidationError

from . import __version__
from .app.server import MetricsServer
from .collectors.sql import SQLExporter
from .config import Settings, load_config
from .database import Database
from .logging_config import get_logger, log_error, log_server_startup, setup_structured_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sql_exporter",
        description="Export SQL query results as Prometheus metrics",
    )
    parser.add_argument("--listen-address", dest="listen_address", default=None,
                        help="The address to listen on for HTTP requests (default: :9012)")
    parser.add_argument("--config", dest="config_path", default=None,
                        help="Config file path (default: config.yml)")
    parser.add_argument("--log-level", dest="log_level", default=None,
                        help="Log level (default: INFO)")
    parser.add_argument("--version", action="store_true", help="Show version number")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main application entry point"""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.version:
        print(f"{parser.prog} version {__version__}", file=sys.stderr)
        return 0

    # Flags override SQL_EXPORTER_* environment settings
    overrides = {
        key: value for key, value in vars(args).items()
        if key != "version" and value is not None
    }
    try:
        settings = Settings(**overrides)
    except ValidationError as e:
        print(f"{parser.prog}: invalid settings: {e}", file=sys.stderr)
        return 2

    setup_structured_logging(settings)
    logger = get_logger(__name__)

    database = None
    try:
        config = load_config(settings.config_path)
        log_server_startup(logger, settings, config)

        database = Database.open(config.driver_name, config.data_source_name, settings.pool_timeout)
        exporter = SQLExporter(
            config,
            database,
            namespace=settings.namespace,
            clear_stale_on_failure=settings.clear_stale_on_failure,
        )
        server = MetricsServer(settings, exporter)

        host, port = settings.get_listen_host_port()
        logger.info("Listening", host=host, port=port)
        uvicorn.run(
            server.get_app(),
            host=host,
            port=port,
            log_config=None  # We handle logging ourselves
        )
    except Exception as e:
        log_error(logger, e, {"component": "main", "phase": "startup"})
        print(f"{parser.prog}: {e}", file=sys.stderr)
        return 1
    finally:
        if database is not None:
            database.close()

    return 0


if __name__ == '__main__':
    sys.exit(main())
