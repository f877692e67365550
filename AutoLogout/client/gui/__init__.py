"""
tkinter front end: warning dialog, background loop and the demo client.
"""

from .async_service import AsyncService
from .client import GUIClient
from .warning_dialog import TkWarningDialog

__all__ = ['AsyncService', 'GUIClient', 'TkWarningDialog']
