import AutoLogout.api as _api
from AutoLogout.config import config
from AutoLogout.core.logging import auto_configure


def api(port=config.DEFAULT_API_PORT, host=config.DEFAULT_HOST, settings_file=None):
    """
    Start the AutoLogout API server.

    Args:
        port (int): Port number for the API server (default: 8766).
        host (str): Interface to bind to.
        settings_file (str): JSON settings file (default: AUTOLOGOUT_SETTINGS).
    """
    auto_configure()
    _api.run(api_port=port, host=host, settings_file=settings_file)
