"""
Test configuration and fixtures for AutoLogout tests.

Provides:
- A virtual clock and a ready-made timeout policy
- Fakes for the session gateway, the warning dialog and the navigator
- A controller factory wiring them together
- A live uvicorn server for the aiohttp client tests
"""

import asyncio
import json
import os
import tempfile
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable, Dict, Generator, List, Optional, Tuple

import pytest
import pytest_asyncio

from AutoLogout.core.clock import ManualTimeoutClock
from AutoLogout.core.controller import SessionController
from AutoLogout.core.interfaces import DialogChoice
from AutoLogout.core.policy import TimeoutPolicy


@dataclass
class TestConfig:
    """Configuration for server tests."""
    host: str = "127.0.0.1"
    api_port: int = 18766
    startup_timeout: float = 10.0

    @property
    def api_url(self) -> str:
        return f"http://{self.host}:{self.api_port}"


class FakeGateway:
    """
    Session gateway answering from queues.

    Each probe takes the next entry of `remaining`, the last one repeats.
    Entries that are exceptions are raised instead of returned.
    """

    def __init__(self, remaining=(0,), keep_alive=(None,), logout=(None,)):
        self.remaining = deque(remaining)
        self.keep_alive_results = deque(keep_alive)
        self.logout_results = deque(logout)
        self.calls: Dict[str, int] = {"get_remaining": 0, "keep_alive": 0, "logout": 0}
        self.in_flight = 0
        self.max_in_flight = 0

    @staticmethod
    def _next(queue):
        return queue.popleft() if len(queue) > 1 else queue[0]

    async def _call(self, name, queue):
        self.calls[name] += 1
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0)
            value = self._next(queue)
            if isinstance(value, BaseException):
                raise value
            return value
        finally:
            self.in_flight -= 1

    async def get_remaining(self) -> int:
        return await self._call("get_remaining", self.remaining)

    async def keep_alive(self) -> None:
        await self._call("keep_alive", self.keep_alive_results)

    async def logout(self) -> None:
        await self._call("logout", self.logout_results)


class RecordingDialog:
    """Warning dialog that remembers what it was asked to do."""

    def __init__(self, auto_answer: Optional[DialogChoice] = None):
        self.auto_answer = auto_answer
        self.opened: List[str] = []
        self.closed: List[int] = []
        self.callbacks: Dict[int, Dict[DialogChoice, Callable[[], None]]] = {}
        self.current: Optional[int] = None

    def open(self, message, on_extend, on_logout, on_dismiss) -> int:
        handle = len(self.opened) + 1
        self.opened.append(message)
        self.callbacks[handle] = {
            DialogChoice.EXTEND: on_extend,
            DialogChoice.LOGOUT: on_logout,
            DialogChoice.DISMISS: on_dismiss,
        }
        self.current = handle
        if self.auto_answer is not None:
            self.callbacks[handle][self.auto_answer]()
        return handle

    def close(self, handle: int) -> None:
        self.closed.append(handle)

    def choose(self, choice: DialogChoice, handle: Optional[int] = None) -> None:
        """Press a button, even on a dialog that is already closed."""
        self.callbacks[handle or self.current][choice]()

    @property
    def is_open(self) -> bool:
        return self.current is not None and self.current not in self.closed


class RecordingNavigator:
    def __init__(self):
        self.calls: List[Tuple[str, str]] = []

    def __call__(self, url: str, message: str) -> None:
        self.calls.append((url, message))


@pytest.fixture(scope="session")
def test_config() -> TestConfig:
    """Provide test configuration."""
    return TestConfig()


@pytest.fixture
def policy() -> TimeoutPolicy:
    """60 s timeout with a 10 s warning padding."""
    return TimeoutPolicy(
        idle_timeout_seconds=60,
        warning_padding_seconds=10,
        redirect_url="/user/login",
        warning_message="Still there?",
        inactivity_message="Logged out for inactivity.",
    )


@pytest.fixture
def clock() -> ManualTimeoutClock:
    return ManualTimeoutClock()


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def dialog() -> RecordingDialog:
    return RecordingDialog()


@pytest.fixture
def navigator() -> RecordingNavigator:
    return RecordingNavigator()


@pytest.fixture
def make_controller(policy, gateway, dialog, clock, navigator):
    """Factory building a controller from the default fakes plus overrides."""
    def factory(**overrides: Any) -> SessionController:
        kwargs = {
            "policy": policy,
            "gateway": gateway,
            "dialog": dialog,
            "clock": clock,
            "navigator": navigator,
        }
        kwargs.update(overrides)
        return SessionController(**kwargs)
    return factory


@pytest.fixture
def settings_file() -> Generator[Callable[[Dict[str, Any]], str], None, None]:
    """Write settings dictionaries to temporary JSON files."""
    paths: List[str] = []

    def write(data: Dict[str, Any]) -> str:
        with tempfile.NamedTemporaryFile(mode='w', suffix='.json', delete=False) as f:
            json.dump(data, f)
            paths.append(f.name)
        return f.name

    yield write

    for path in paths:
        try:
            os.unlink(path)
        except OSError:
            pass


@pytest_asyncio.fixture(scope="function")
async def api_server(test_config: TestConfig):
    """Serve a fresh autologout app (60 s timeout, 10 s padding) with uvicorn."""
    import uvicorn

    from AutoLogout.api.client import close_session
    from AutoLogout.api.routes_api import create_app
    from AutoLogout.core.policy import AutologoutSettings

    app = create_app(settings=AutologoutSettings(timeout=60, padding=10))
    server = uvicorn.Server(uvicorn.Config(
        app,
        host=test_config.host,
        port=test_config.api_port,
        log_config=None,
        lifespan="off",
    ))
    server_task = asyncio.create_task(server.serve())

    waited = 0.0
    while not server.started:
        if server_task.done():
            server_task.result()
            raise RuntimeError("Server exited during startup")
        if waited > test_config.startup_timeout:
            raise RuntimeError("Server did not start in time")
        await asyncio.sleep(0.05)
        waited += 0.05

    yield app

    await close_session()
    server.should_exit = True
    await server_task


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "integration: mark test as integration test"
    )
