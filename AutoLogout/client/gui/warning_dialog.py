"""
Logout warning dialog - tkinter/ttk.
"""
import itertools
import logging
import tkinter as tk
from tkinter import ttk
from typing import Callable, Dict, Optional, Set

from AutoLogout.config import config

logger = logging.getLogger(__name__)


class TkWarningDialog:
    """
    Modal "session about to expire" prompt.

    `open` and `close` may be called from any thread: the window work is
    posted to the Tk thread with `root.after`. User decisions go back
    through `dispatch`, which moves them to the controller's loop. Each
    dialog reports at most one decision and never closes itself.
    """

    def __init__(
        self,
        root: tk.Tk,
        dispatch: Optional[Callable[[Callable[[], None]], None]] = None,
        title: str = config.DIALOG_TITLE
    ):
        self.root = root
        self.title = title
        self._dispatch = dispatch or (lambda fn: fn())
        self._windows: Dict[int, tk.Toplevel] = {}
        self._resolved: Set[int] = set()
        self._ids = itertools.count(1)

    def open(self, message: str, on_extend: Callable[[], None],
             on_logout: Callable[[], None], on_dismiss: Callable[[], None]) -> int:
        handle = next(self._ids)
        self.root.after(0, lambda: self._build(handle, message, on_extend, on_logout, on_dismiss))
        return handle

    def close(self, handle: int) -> None:
        self._resolved.add(handle)
        self.root.after(0, lambda: self._destroy(handle))

    def _build(self, handle: int, message: str, on_extend, on_logout, on_dismiss):
        if handle in self._resolved:
            return

        window = tk.Toplevel(self.root)
        window.title(self.title)
        window.resizable(False, False)
        window.transient(self.root)
        self._windows[handle] = window

        frm = ttk.Frame(window, padding=16)
        frm.pack(fill="both", expand=True)

        ttk.Label(frm, text=message, wraplength=360, justify="left").pack(anchor="w", pady=(0, 12))

        btns = ttk.Frame(frm)
        btns.pack(fill="x")
        ttk.Button(btns, text="Yes", command=lambda: self._choose(handle, on_extend)).pack(side="right")
        ttk.Button(btns, text="No", command=lambda: self._choose(handle, on_logout)).pack(side="right", padx=(0, 8))

        # Closing through the window manager counts as "No"; Escape does nothing.
        window.protocol("WM_DELETE_WINDOW", lambda: self._choose(handle, on_dismiss))
        window.bind("<Escape>", lambda e: "break")

        window.update_idletasks()
        try:
            window.grab_set()
        except tk.TclError as e:
            logger.debug("Could not make the warning dialog modal: %s", e)
        window.lift()

    def _choose(self, handle: int, callback: Callable[[], None]):
        if handle in self._resolved:
            return
        self._resolved.add(handle)
        window = self._windows.get(handle)
        if window is not None:
            for child in window.winfo_children():
                _disable_buttons(child)
        self._dispatch(callback)

    def _destroy(self, handle: int):
        window = self._windows.pop(handle, None)
        if window is None:
            return
        try:
            window.grab_release()
            window.destroy()
        except tk.TclError as e:
            logger.debug("Warning dialog already gone: %s", e)

    def is_open(self, handle: int) -> bool:
        return handle in self._windows


def _disable_buttons(widget: tk.Widget) -> None:
    if isinstance(widget, ttk.Button):
        widget.state(["disabled"])
    for child in widget.winfo_children():
        _disable_buttons(child)
