"""
Desktop demo client for AutoLogout.

Opens a session on an AutoLogout API server and watches it the way a page
would: a SessionController counts down on the background loop, the warning
is a ttk dialog, and the final redirect closes the window.
"""

import logging
import tkinter as tk
from tkinter import messagebox, ttk
from typing import Iterable, Optional

# noinspection PyUnusedImports
import darkdetect
import sv_ttk

from AutoLogout.api.client import AutoLogoutAPIClient, close_session
from AutoLogout.config import config
from AutoLogout.core.clock import AsyncioTimeoutClock
from AutoLogout.core.controller import SessionController
from AutoLogout.core.exceptions import AutoLogoutError
from AutoLogout.core.policy import TimeoutPolicy
from .async_service import AsyncService
from .warning_dialog import TkWarningDialog

logger = logging.getLogger(__name__)

STATUS_REFRESH_MS = 1000


class GUIClient:
    """Tk window showing the countdown and state of one watched session."""

    def __init__(
        self,
        api_host: str = config.DEFAULT_HOST,
        api_port: int = config.DEFAULT_API_PORT,
        user_id: str = "demo",
        roles: Iterable[str] = (),
        refresh_only: bool = False
    ):
        self._api_client = AutoLogoutAPIClient(api_host, api_port)
        self._user_id = user_id
        self._roles = list(roles)
        self._refresh_only = refresh_only

        self._async_service = AsyncService()
        self._controller: Optional[SessionController] = None
        self._closing = False

        self.root: Optional[tk.Tk] = None
        self._status_var: Optional[tk.StringVar] = None
        self._deadline_var: Optional[tk.StringVar] = None

    # ==================== Lifecycle ====================

    def run(self):
        """Open the window and block in the Tk main loop."""
        self.root = tk.Tk()
        self.root.title("AutoLogout")
        self.root.geometry("420x160")
        self.root.minsize(360, 140)

        sv_ttk.set_theme((darkdetect.theme() or "light").lower())

        self._build()
        self._async_service.start()
        self._async_service.run_async(self._bootstrap())

        self.root.protocol("WM_DELETE_WINDOW", self._on_close)
        self.root.after(STATUS_REFRESH_MS, self._refresh_status)
        self.root.mainloop()

    def _build(self):
        frm = ttk.Frame(self.root, padding=16)
        frm.pack(fill="both", expand=True)

        ttk.Label(frm, text=f"Signed in as {self._user_id}").pack(anchor="w")
        self._status_var = tk.StringVar(value="Opening session…")
        self._deadline_var = tk.StringVar(value="")
        ttk.Label(frm, textvariable=self._status_var).pack(anchor="w", pady=(8, 0))
        ttk.Label(frm, textvariable=self._deadline_var).pack(anchor="w")

    def _ui_alive(self) -> bool:
        return bool(self.root) and not self._closing and bool(self.root.winfo_exists())

    def _set_status(self, text: str):
        if self._ui_alive():
            self.root.after(0, lambda: self._status_var.set(text))

    # ==================== Session ====================

    async def _bootstrap(self):
        """Open the server session and attach the controller on the loop thread."""
        try:
            response = await self._api_client.open_session(
                self._user_id, self._roles, refresh_only=self._refresh_only
            )
            if not response.get("token"):
                self._set_status(response.get("message") or "Autologout does not apply")
                return
            policy = TimeoutPolicy.from_dict(response.get("policy") or {})
        except AutoLogoutError as e:
            logger.error("Could not open a session: %s", e)
            self._set_status(f"Error: {e.message}")
            return

        if policy.use_alt_logout_method:
            policy = TimeoutPolicy.from_dict({**policy.to_dict(), "alt_logout_url": self._api_client.alt_logout_url()})

        dialog = TkWarningDialog(self.root, dispatch=self._async_service.call_soon)
        self._controller = SessionController(
            policy,
            self._api_client,
            dialog=dialog,
            clock=AsyncioTimeoutClock(self._async_service.loop),
            navigator=self._navigate
        )
        self._controller.attach()

    async def _shutdown(self):
        if self._controller is not None:
            self._controller.detach()
        await close_session()

    def _navigate(self, url: str, message: str):
        """Final redirect: tell the user and close the window."""
        logger.info("Session ended, leaving for %s", url)

        def show():
            if not self._ui_alive():
                return
            text = message or "You have been logged out."
            messagebox.showinfo("AutoLogout", f"{text}\n\nRedirect: {url}", parent=self.root)
            self._on_close()

        if self.root is not None:
            self.root.after(0, show)

    def _refresh_status(self):
        if not self._ui_alive():
            return
        controller = self._controller
        if controller is not None:
            self._status_var.set(f"State: {controller.state.name}")
            deadline = controller.clock.deadline
            loop = self._async_service.loop
            if deadline is not None and loop is not None:
                self._deadline_var.set(f"Next check in {max(0, int(deadline - loop.time()))}s")
            else:
                self._deadline_var.set("")
        self.root.after(STATUS_REFRESH_MS, self._refresh_status)

    def _on_close(self):
        """Detach the controller, stop the loop and close the window."""
        if self._closing:
            return
        self._closing = True

        future = self._async_service.run_async(self._shutdown())
        if future is not None:
            try:
                future.result(timeout=2.0)
            except Exception as e:
                logger.warning("Shutdown did not complete cleanly: %s", e)
        self._async_service.stop()

        if self.root is not None:
            self.root.destroy()
            self.root = None
