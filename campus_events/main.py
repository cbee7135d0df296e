"""Campus events service application entrypoint."""
from __future__ import annotations

import atexit
from typing import Any, Dict, Optional

import structlog
from flask import Flask

from campus_events.config import get_config
from campus_events.database import init_engine
from campus_events.logging import configure_logging
from campus_events.routes import register_blueprints
from campus_events.routes.dependencies import cleanup_services
from campus_events.routes.utils import error_response
from campus_events.services.lifecycle import LifecycleScheduler

logger = structlog.get_logger(__name__)


def create_app(config_overrides: Optional[Dict[str, Any]] = None) -> Flask:
    settings = get_config()
    configure_logging(settings.log_level)

    app = Flask(__name__)
    if config_overrides:
        app.config.update(config_overrides)

    init_engine(app.config.get("DATABASE_URL"))
    register_blueprints(app)
    app.teardown_appcontext(cleanup_services)
    register_error_handlers(app)

    @app.get("/health")
    def health():
        return {"status": "ok", "service": "campus-events"}

    if settings.lifecycle.enabled and not app.config.get("TESTING"):
        start_lifecycle_scheduler(app)
    return app


def start_lifecycle_scheduler(app: Flask) -> LifecycleScheduler:
    scheduler = LifecycleScheduler(get_config().lifecycle)
    scheduler.start()
    app.extensions["lifecycle_scheduler"] = scheduler
    atexit.register(scheduler.shutdown)
    return scheduler


def register_error_handlers(flask_app: Flask) -> None:
    @flask_app.errorhandler(404)
    def handle_404(e):
        return error_response(404, "Resource not found.")

    @flask_app.errorhandler(405)
    def handle_405(e):
        return error_response(405, "Method not allowed for this resource.")

    @flask_app.errorhandler(500)
    def handle_500(e):
        logger.error("unhandled_error", error=str(e))
        return error_response(500, "Internal server error.")


if __name__ == "__main__":
    create_app().run(debug=True, port=5003)
