"""Application factory and blueprint registration."""
from __future__ import annotations

from typing import Optional

from flask import Flask

from kamaya_analysis import config
from kamaya_analysis.api.errors import register_error_handlers
from kamaya_analysis.api.routes import bp as api_bp


def create_app(download_dir: Optional[str] = None) -> Flask:
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config["DOWNLOAD_DIR"] = download_dir or config.DOWNLOAD_DIR
    app.json.ensure_ascii = False  # type: ignore[attr-defined]

    app.register_blueprint(api_bp, url_prefix="/api")

    # Global error handlers
    register_error_handlers(app)
    return app
