# app.py
from __future__ import annotations
import logging
import os
import uuid
from pathlib import Path

import click
import requests
from dotenv import load_dotenv
from flask import Flask, jsonify, request
from flask_cors import CORS
from flask_talisman import Talisman
from werkzeug.exceptions import HTTPException

# --- Load env BEFORE importing config (so config sees env) ---
ENV_PATH = Path(__file__).with_name(".env")
load_dotenv(ENV_PATH)

# --- Local modules ---
from config import configure_logging, get_config, validate_required_secrets
from api import api_bp, init_api
from auth import TokenVerifier
from errors import JobFlowError
from file_storage import KeyValueStore, open_workspace
from job_store import JobStore, make_engine
from llm_client import LLMClient, extract_job_from_url, get_smart_application_url
from models import Job, JobSource, JobStatus

LOG = logging.getLogger("jobflow.app")

ALLOWED_HEADERS = ["Authorization", "Content-Type"]
ALLOWED_METHODS = ["GET", "POST", "DELETE", "OPTIONS"]


def create_app(config=None, *, engine=None, llm=None, verifier=None, http=None) -> Flask:
    """Build the app and the process-wide resources it owns.

    The engine (connection pool), model client, token verifier and outbound
    HTTP session are created here once and handed to the request handlers
    through ``app.extensions["jobflow"]``. Tests pass their own.
    """
    app = Flask(__name__)
    if config is None:
        validate_required_secrets()  # raises only when ENV=prod and secrets missing
        config = get_config()
    app.config.from_object(config)
    app.url_map.strict_slashes = False
    configure_logging(app.config.get("LOG_LEVEL", "INFO"))

    if app.config.get("ENV_NAME") == "prod" and app.config.get("AUTH_DEV_BYPASS"):
        raise RuntimeError("AUTH_DEV_BYPASS must never be enabled in production")

    http = http or requests.Session()
    store = JobStore(engine or make_engine(app.config["DATABASE_URL"]))
    if app.config.get("TESTING") or app.config.get("DEBUG"):
        store.create_schema()

    app.extensions["jobflow"] = {
        "store": store,
        "http": http,
        "llm": llm or LLMClient(
            api_key=app.config.get("LLM_API_KEY", ""),
            base_url=app.config["LLM_BASE_URL"],
            model=app.config["LLM_MODEL"],
        ),
        "verifier": verifier or TokenVerifier(
            secret=app.config.get("AUTH_SECRET_KEY", ""),
            verify_url=app.config["AUTH_VERIFY_URL"],
            dev_bypass=bool(app.config.get("AUTH_DEV_BYPASS")),
            session=http,
        ),
    }
    if app.config.get("AUTH_DEV_BYPASS"):
        LOG.warning("AUTH_DEV_BYPASS is on: every request runs as the development user")

    CORS(
        app,
        resources={r"/api/*": {"origins": app.config.get("CORS_ORIGINS") or "*"}},
        send_wildcard=True,
        supports_credentials=False,
        allow_headers=ALLOWED_HEADERS,
        methods=ALLOWED_METHODS,
    )

    # Security headers; HTTPS + HSTS only where the config asks for it
    Talisman(
        app,
        force_https=app.config.get("FORCE_HTTPS", False),
        strict_transport_security=app.config.get("FORCE_HTTPS", False),
        content_security_policy={"default-src": ["'none'"], "frame-ancestors": ["'none'"]},
        session_cookie_secure=app.config.get("FORCE_HTTPS", False),
        frame_options="DENY",
        referrer_policy="strict-origin-when-cross-origin",
    )

    @app.before_request
    def _cors_preflight_shortcircuit():
        if request.method == "OPTIONS":
            resp = app.make_response(("", 200))
            resp.headers["Access-Control-Allow-Origin"] = "*"
            resp.headers["Access-Control-Allow-Headers"] = ", ".join(ALLOWED_HEADERS)
            resp.headers["Access-Control-Allow-Methods"] = ",".join(ALLOWED_METHODS)
            resp.headers["Access-Control-Max-Age"] = "600"
            return resp

    app.register_blueprint(api_bp, url_prefix="/api")
    init_api(app)
    _register_error_handlers(app)
    _register_cli(app)

    @app.get("/health")
    def health():
        return jsonify({"ok": True})

    return app


def _register_error_handlers(app: Flask) -> None:
    @app.errorhandler(JobFlowError)
    def _jobflow_error(e: JobFlowError):
        if e.status_code >= 500:
            LOG.error("%s: %s", type(e).__name__, e.message)
            return jsonify({"error": "Internal Server Error"}), 500
        return jsonify({"error": e.message}), e.status_code

    @app.errorhandler(HTTPException)
    def _http_error(e: HTTPException):
        return jsonify({"error": e.name}), e.code

    @app.errorhandler(Exception)
    def _unexpected(e: Exception):
        LOG.exception("unhandled error on %s %s", request.method, request.path)
        return jsonify({"error": "Internal Server Error"}), 500


def _register_cli(app: Flask) -> None:
    @app.cli.command("init-db")
    def init_db():
        """Create the jobs and profiles tables."""
        app.extensions["jobflow"]["store"].create_schema()
        click.echo("tables created")

    @app.cli.command("import-links")
    @click.option("--user", "user_id", required=True, help="Owner of the imported jobs.")
    @click.option("--dir", "directory", default="", help="Workspace directory; virtual workspace when omitted.")
    @click.option("--file", "filename", default="jobs.txt", show_default=True)
    @click.option("--state", "state_path", default="", help="JSON file backing the virtual workspace.")
    def import_links(user_id, directory, filename, state_path):
        """Import every job URL listed in a workspace file."""
        ext = app.extensions["jobflow"]
        workspace = open_workspace(lambda: directory or None, store=KeyValueStore(path=state_path or None))
        try:
            lines = workspace.read(filename).splitlines()
        except JobFlowError as e:
            raise click.ClickException(e.message)

        imported = 0
        for line in lines:
            url = line.strip()
            if not url or url.startswith("#"):
                continue
            url = get_smart_application_url(url)
            data = extract_job_from_url(ext["llm"], url, session=ext["http"])["data"]
            job = Job(
                id=str(uuid.uuid4()),
                title=data["title"],
                company=data["company"],
                location=data["location"],
                salaryRange=data["salaryRange"],
                description=data["description"],
                requirements=data["requirements"],
                source=JobSource.IMPORTED_LINK.value,
                status=JobStatus.DETECTED.value,
                applicationUrl=url,
            )
            ext["store"].upsert_job(user_id, job)
            imported += 1
            click.echo(f"{data['title']} @ {data['company']}  <- {url}")
        click.echo(f"imported {imported} job(s) from {workspace.name}/{filename}")


# ------------------------------
# Entrypoint
# ------------------------------
if __name__ == "__main__":
    application = create_app()
    application.run(host="0.0.0.0", port=int(os.getenv("PORT", "8000")), debug=application.config.get("DEBUG", False))
