import logging
import sys

import uvicorn

from dialogflow_proxy.app import create_app
from dialogflow_proxy.config import get_settings
from dialogflow_proxy.errors import ConfigError
from dialogflow_proxy.function import dialogflow_proxy_webhook  # Cloud Functions entry point
from dialogflow_proxy.logging_config import configure_logging

logger = logging.getLogger("dialogflow_proxy")

try:
    settings = get_settings()
except ConfigError as exc:
    configure_logging()
    for problem in exc.problems:
        logger.critical("Invalid configuration: %s", problem)
    sys.exit(1)

configure_logging(settings.log_level, settings.service_name)

app = create_app(settings)

__all__ = ["app", "dialogflow_proxy_webhook"]

if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=settings.port, log_config=None)
