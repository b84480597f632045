"""
Web UI: upload a witness statement .docx, preview how each paragraph is classified and
download the formatted statement.
Run: python run_flask.py  then open http://127.0.0.1:5000
"""
import logging

from flask import Flask, send_from_directory

from formatter_bp import formatter_bp
from witness_ai.config import Config

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)


def create_app(config: Config | None = None) -> Flask:
    cfg = config or Config()
    app = Flask(__name__, static_folder="static")
    app.config["MAX_CONTENT_LENGTH"] = 16 * 1024 * 1024  # 16 MB max upload
    app.config["WITNESS_CONFIG"] = cfg
    app.register_blueprint(formatter_bp)

    @app.route("/")
    def index():
        return send_from_directory(app.static_folder, "index.html")

    return app
