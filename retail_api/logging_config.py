import logging
import os
import opentelemetry.trace
from azure.monitor.opentelemetry import configure_azure_monitor

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# SDK loggers that report every storage round trip at INFO
NOISY_SDK_LOGGERS = (
    "azure.core.pipeline.policies.http_logging_policy",
    "azure.data.tables",
    "azure.storage.blob",
    "azure.storage.queue",
    "azure.storage.fileshare",
)


def _configure_azure_monitor():
    # Application Insights is only reachable from the Functions host
    if not (
        os.environ.get("FUNCTIONS_WORKER_RUNTIME")
        and os.environ.get("APPLICATIONINSIGHTS_CONNECTION_STRING")
    ):
        return
    try:
        configure_azure_monitor(logger_name="retail_api")
        logging.info("Azure Monitor OpenTelemetry configured successfully")
    except Exception as e:
        logging.error(f"Error configuring Azure Monitor: {str(e)}")


def _build_logger():
    app_logger = logging.getLogger("retail_api")
    app_logger.setLevel(os.environ.get("RETAIL_API_LOG_LEVEL", "INFO").upper())

    if not app_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        app_logger.addHandler(handler)

    for name in NOISY_SDK_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    return app_logger


_configure_azure_monitor()

tracer = opentelemetry.trace.get_tracer("retail_api")
logger = _build_logger()


def get_child_logger(name):
    """Get a child logger under ``retail_api``, e.g. ``retail_api.crud.table``."""
    return logger.getChild(name)
