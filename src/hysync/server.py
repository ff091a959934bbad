#!/usr/bin/env python3
"""HYMusic remote sync endpoint.

Flask application serving the account, sync and admin API that the
sync engine talks to.

Usage:
    hysync server                    # Listen on 0.0.0.0:3000
    hysync server --port 8080        # Custom port
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Any, Optional, Tuple, Union

from flask import Flask, Response, jsonify
from flask_cors import CORS

from hysync import __version__
from hysync.core.config import Config
from hysync.core.remote_store import RemoteStore
from hysync.core.sync_server import (
    create_admin_blueprint,
    create_auth_blueprint,
    create_sync_blueprint,
)
from hysync.core.validation import ValidationError

logger = logging.getLogger(__name__)


def create_app(
    config_dir: Optional[Path] = None,
    database_file: Optional[Union[Path, str]] = None,
    secret: Optional[str] = None,
) -> Flask:
    """Create and configure Flask application.

    Args:
        config_dir: Custom configuration directory (default: None)
        database_file: Server database path, or ':memory:' (default: from config)
        secret: Token signing secret (default: from config / HYSYNC_SECRET)

    Returns:
        Configured Flask application
    """
    app = Flask(__name__)
    app.config["JSON_SORT_KEYS"] = False
    CORS(app)

    config = Config(config_dir=config_dir)
    if database_file is None:
        db_path = config.get_server_database_file()
        db_path.parent.mkdir(parents=True, exist_ok=True)
        database_file = db_path
    if secret is None:
        secret = config.get_server_secret()

    store = RemoteStore(database_file)
    app.config["HYSYNC_STORE"] = store

    app.register_blueprint(
        create_auth_blueprint(store, secret, config.get_token_ttl_days())
    )
    app.register_blueprint(create_sync_blueprint(store, secret))
    app.register_blueprint(create_admin_blueprint(store, secret))

    logger.info(f"Sync API initialized with database: {database_file}")

    @app.route("/", methods=["GET"])
    def index() -> Tuple[Response, int]:
        return jsonify({
            "status": "ok",
            "message": "HYMusic API is running",
            "version": __version__,
        }), 200

    @app.route("/health", methods=["GET"])
    def health() -> Tuple[Response, int]:
        return jsonify({"status": "healthy"}), 200

    @app.errorhandler(404)
    def not_found(error: Any) -> Tuple[Response, int]:
        return jsonify({"error": "Not found"}), 404

    @app.errorhandler(405)
    def method_not_allowed(error: Any) -> Tuple[Response, int]:
        return jsonify({"error": "Method not allowed"}), 405

    @app.errorhandler(500)
    def internal_error(error: Any) -> Tuple[Response, int]:
        logger.error(f"Internal error: {error}")
        return jsonify({"error": "Something went wrong!"}), 500

    @app.errorhandler(ValidationError)
    def validation_error(error: ValidationError) -> Tuple[Response, int]:
        logger.warning(f"Validation error: {error.field} - {error.message}")
        return jsonify({"error": f"Invalid {error.field}: {error.message}"}), 400

    return app


def add_server_subparser(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> None:
    """Add server subparser and its arguments.

    Args:
        subparsers: Parent subparsers object to add server parser to
    """
    server_parser = subparsers.add_parser(
        "server",
        help="Run the remote sync endpoint",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    server_parser.add_argument(
        "--host",
        type=str,
        default=None,
        help="Host to bind to (default: server.host from config)"
    )

    server_parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port to bind to (default: server.port from config, or HYSYNC_PORT)"
    )

    server_parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug mode"
    )


def run(config_dir: Optional[Path], args: argparse.Namespace) -> int:
    """Run the sync server with given arguments.

    Args:
        config_dir: Custom configuration directory or None for default
        args: Parsed command-line arguments (host, port, debug)

    Returns:
        Exit code (0 for success)
    """
    config = Config(config_dir=config_dir)
    host = args.host or config.get_server_host()
    port = args.port or config.get_server_port()

    logger.info(f"Starting HYMusic sync API on {host}:{port}")
    app = create_app(config_dir=config_dir)
    app.run(host=host, port=port, debug=args.debug, threaded=True)
    return 0
