"""FastAPI server setup and routes"""
from typing import Optional

from fastapi import FastAPI, Response
from fastapi.responses import HTMLResponse, PlainTextResponse

from maya_exporter import __version__
from maya_exporter.config import Config
from maya_exporter.logging_config import get_logger, log_error
from maya_exporter.metrics.exporters.base import ExporterFactory
from maya_exporter.metrics.models import ExportFormat
from maya_exporter.metrics.registry import MetricsRegistry
from maya_exporter.middleware.request_logging import RequestLoggingMiddleware


logger = get_logger(__name__)


class MetricsServer:
    """FastAPI server exposing the collector registry"""

    def __init__(self, config: Config, registry: Optional[MetricsRegistry] = None):
        self.config = config
        self.registry = registry or MetricsRegistry(config)
        self.app = FastAPI(
            title="Maya Exporter",
            version=__version__,
            docs_url=None,
            redoc_url=None,
            openapi_url=None
        )
        self.app.add_middleware(RequestLoggingMiddleware)
        self._setup_routes()
        self._setup_events()

    def _setup_routes(self):
        """Setup FastAPI routes"""
        path = self.config.metrics_path

        # Sync handlers run in the threadpool, so scrapes are served concurrently
        @self.app.get(path, response_class=Response)
        @self.app.get(path + "/", response_class=Response, include_in_schema=False)
        def get_metrics(format: Optional[str] = None):
            """Serve metrics in text or JSON format"""
            return self.scrape(ExportFormat.from_query(format))

        @self.app.get('/', response_class=HTMLResponse)
        def index():
            """Landing page"""
            return self._generate_html_interface()

    def _setup_events(self):
        """Setup FastAPI shutdown event"""

        @self.app.on_event("shutdown")
        def shutdown_event():
            logger.info("Shutting down maya-exporter", event_type="server_shutdown")
            self.registry.cleanup()

    def scrape(self, export_format: ExportFormat) -> Response:
        """Gather every collector and encode the result"""
        exporter = ExporterFactory.create_exporter(export_format)
        try:
            families = self.registry.gather()
        except Exception as e:
            log_error(logger, e, {"component": "scrape", "stage": "gather"})
            return PlainTextResponse(f"Error fetching metrics : {e}", status_code=500)

        try:
            body = exporter.export_metrics(families)
        except Exception as e:
            log_error(logger, e, {"component": "scrape", "stage": "encode", "format": export_format.value})
            return PlainTextResponse(f"Error encoding metric family: {e}", status_code=500)

        return Response(body, media_type=exporter.content_type)

    def _generate_html_interface(self) -> str:
        """Generate HTML interface"""
        path = self.config.metrics_path
        collectors = ''.join(
            f'<li><strong>{name}:</strong> {info["help"]}</li>'
            for name, info in self.registry.get_collector_status().items()
        )
        return f"""<html>
<head><title>OpenEBS Exporter</title></head>
<body>
<h1>OpenEBS Exporter</h1>
<p><a href="{path}">Metrics</a></p>
<p><a href="{path}?format=json">Metrics (JSON)</a></p>
<p>Storage engine: {self.config.storage_engine}</p>
<ul>{collectors}</ul>
</body>
</html>
"""

    def get_app(self) -> FastAPI:
        """Get the FastAPI application"""
        return self.app
