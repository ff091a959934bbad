"""Pytest fixtures for web API tests.

Provides a Flask test client backed by an in-memory server database, and
tokens for a regular and an admin account.
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Generator

import pytest
from flask import Flask
from flask.testing import FlaskClient

from hysync.core.remote_store import RemoteStore
from hysync.server import create_app

from tests.helpers import (
    ADMIN_EMAIL,
    ADMIN_PASSWORD,
    TEST_EMAIL,
    TEST_PASSWORD,
    TEST_SECRET,
    bearer,
    register,
)


@pytest.fixture
def web_app(test_config_dir: Path) -> Generator[Flask, None, None]:
    """Create Flask app for testing.

    Yields:
        Flask application instance
    """
    app = create_app(config_dir=test_config_dir, database_file=":memory:", secret=TEST_SECRET)
    app.config["TESTING"] = True
    yield app
    app.config["HYSYNC_STORE"].close()


@pytest.fixture
def client(web_app: Flask) -> FlaskClient:
    """Create Flask test client."""
    return web_app.test_client()


@pytest.fixture
def store(web_app: Flask) -> RemoteStore:
    return web_app.config["HYSYNC_STORE"]


@pytest.fixture
def user(client: FlaskClient) -> Dict:
    """A registered regular account: {"token", "user"}."""
    return register(client, TEST_EMAIL, TEST_PASSWORD)


@pytest.fixture
def user_headers(user: Dict) -> Dict[str, str]:
    return bearer(user["token"])


@pytest.fixture
def admin(client: FlaskClient, store: RemoteStore) -> Dict:
    """A registered account with admin rights."""
    body = register(client, ADMIN_EMAIL, ADMIN_PASSWORD)
    store.set_admin(body["user"]["id"], True)
    return body


@pytest.fixture
def admin_headers(admin: Dict) -> Dict[str, str]:
    return bearer(admin["token"])
