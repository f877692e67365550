"""
Client startup module for AutoLogout.
Opens the desktop demo client against a running API server.
"""

from AutoLogout.config import config
from AutoLogout.core.logging import auto_configure

__all__ = ['client']


def client(host=config.DEFAULT_HOST, port=config.DEFAULT_API_PORT, user="demo", roles=(), refresh_only=False):
    """
    Start the GUI client with the specified connection parameters.

    Args:
        host (str): API server hostname (default: localhost)
        port (int): API server port (default: 8766)
        user (str): User id the session is opened for
        roles (Iterable[str]): Roles of that user
        refresh_only (bool): Keep the session alive instead of logging out
    """
    from AutoLogout.client.gui import GUIClient

    auto_configure()
    print("Welcome AutoLogout Client!")
    print(f"Current setting: server={host}:{port}, user={user}, roles={list(roles)}")
    try:
        GUIClient(host, port, user_id=user, roles=roles, refresh_only=refresh_only).run()
    except KeyboardInterrupt:
        print("Client stopped.")
