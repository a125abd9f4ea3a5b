from __future__ import annotations
import logging

from azure.monitor.opentelemetry import configure_azure_monitor
from opentelemetry import trace

from thread_board.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)

_configured = False

def setup_telemetry(cfg: Settings | None = None) -> None:
    global _configured
    if _configured:
        return
    cfg = cfg or default_settings

    logging.basicConfig(
        level=cfg.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    # The Azure SDK logs every HTTP request at INFO
    logging.getLogger("azure.core.pipeline.policies.http_logging_policy").setLevel(logging.WARNING)

    if cfg.appinsights_connection_string:
        try:
            configure_azure_monitor(connection_string=cfg.appinsights_connection_string)
        except Exception as e:
            logger.warning("Failed to setup Azure Monitor exporter: %s", e)
    else:
        logger.info("APPLICATIONINSIGHTS_CONNECTION_STRING not set; spans stay local")

    _configured = True

def get_tracer(name: str = "thread-board"):
    return trace.get_tracer(name)
