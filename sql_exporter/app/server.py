"""FastAPI server setup and routes"""
import html
import time

from fastapi import FastAPI, HTTPException, Response
from fastapi.responses import HTMLResponse
from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, generate_latest

from .. import __version__
from ..collectors.base import BaseCollector
from ..config import Settings
from ..logging_config import get_logger
from ..middleware.request_logging import RequestLoggingMiddleware


logger = get_logger(__name__)


class MetricsServer:
    """FastAPI server exposing one collector on /metrics.

    The server owns its own ``CollectorRegistry``; the collector is registered
    once here and nothing touches the process-wide default registry.
    """

    def __init__(self, settings: Settings, collector: BaseCollector):
        self.settings = settings
        self.collector = collector
        self.registry = CollectorRegistry(auto_describe=True)
        self.registry.register(collector)

        self.app = FastAPI(
            title="SQL Exporter",
            version=__version__,
            docs_url=None,
            redoc_url=None,
            openapi_url=None
        )

        self._setup_middleware()
        self._setup_routes()
        self._setup_events()

    def _setup_middleware(self):
        if self.settings.enable_request_logging:
            self.app.add_middleware(RequestLoggingMiddleware)

    def _setup_routes(self):
        """Setup FastAPI routes"""

        # Sync handler: FastAPI runs it in a worker thread, the collector
        # lock serializes concurrent scrapes.
        @self.app.get('/metrics', response_class=Response)
        def get_metrics():
            """Serve metrics in Prometheus text format"""
            return Response(generate_latest(self.registry), media_type=CONTENT_TYPE_LATEST)

        @self.app.get('/health')
        def health_check():
            """Report the outcome of the last scrape"""
            collector = self.collector
            last = collector.last_scrape_time
            health_data = {
                "status": "healthy" if collector.last_scrape_error is None else "unhealthy",
                "total_scrapes": collector.scrape_count,
                "scrape_failures": collector.scrape_failures,
                "last_scrape_seconds_ago": round(time.time() - last, 1) if last > 0 else None,
                "last_scrape_duration_seconds": round(collector.last_scrape_duration, 3),
                "last_error": collector.last_scrape_error,
            }

            if collector.last_scrape_error is not None:
                raise HTTPException(status_code=503, detail=health_data)

            return health_data

        @self.app.get('/', response_class=HTMLResponse)
        def index():
            """Web interface"""
            return self._generate_html_interface()

    def _setup_events(self):
        @self.app.on_event("shutdown")
        async def shutdown_event():
            logger.info("Shutting down sql exporter", event_type="server_shutdown")

    def _generate_html_interface(self) -> str:
        families = getattr(self.collector, "families", [])
        rows = "".join(
            f"<li><strong>{html.escape(family.name)}</strong>"
            f" [{html.escape(', '.join(family.label_names))}] - {html.escape(family.help_text)}</li>"
            for family in families
        )

        return f"""
        <!DOCTYPE html>
        <html>
        <head><title>SQL Exporter</title></head>
        <body>
            <h1>SQL Exporter</h1>
            <p>Version {html.escape(self.settings.service_version)}</p>
            <h2>Endpoints:</h2>
            <ul>
                <li><a href="/metrics">/metrics</a> - Prometheus metrics</li>
                <li><a href="/health">/health</a> - Last scrape status</li>
            </ul>
            <h2>Queries:</h2>
            <ul>{rows}</ul>
        </body>
        </html>
        """

    def get_app(self) -> FastAPI:
        """Get the FastAPI application"""
        return self.app
