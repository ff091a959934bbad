"""Pytest fixtures for sync integration tests.

The live ``sync_server`` fixture lives in the top-level conftest; this
module adds client devices, each with its own library, session and engine.
"""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Generator, Optional

import pytest

from tests.live_server import Device, SyncServer, create_device


@pytest.fixture
def make_device(
    tmp_path: Path, sync_server: SyncServer
) -> Generator[Callable[..., Device], None, None]:
    """Factory for client devices talking to ``sync_server``.

    Pass ``base_url`` to point a device somewhere else (e.g. a dead port).
    """
    devices = []

    def factory(name: str, base_url: Optional[str] = None) -> Device:
        device = create_device(name, tmp_path / f"{name}.db", base_url or sync_server.url)
        devices.append(device)
        return device

    yield factory
    for device in devices:
        device.close()
