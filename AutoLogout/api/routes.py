import logging

import uvicorn

from AutoLogout.config import config
from AutoLogout.core.policy import load_settings
from .routes_api import create_app

logger = logging.getLogger(__name__)


def run(api_port=config.DEFAULT_API_PORT, host=config.DEFAULT_HOST, settings_file=None):
    """
    Run the autologout API with Uvicorn.

    Args:
        api_port (int): Port for the api.
        host (str): Interface to bind.
        settings_file (str): JSON settings file (defaults to config.SETTINGS_FILE).
    """
    app = create_app(settings=load_settings(settings_file))
    logger.info("Starting autologout api on %s:%s", host, api_port)
    uvicorn.run(app, host=host, port=api_port, log_config=None)
