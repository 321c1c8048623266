from __future__ import annotations

from flask import Flask

from ..services.notification_logs import NotificationLogService
from .notifications import SERVICE_KEY, notifications_bp

"""Flask application factory for the notification-log query server."""

__all__ = ["create_app"]


def create_app(notification_logs: NotificationLogService) -> Flask:
    app = Flask(__name__)
    app.json.ensure_ascii = False
    app.extensions[SERVICE_KEY] = notification_logs
    app.register_blueprint(notifications_bp)
    return app
