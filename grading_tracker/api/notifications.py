from __future__ import annotations

import logging
from datetime import datetime

from dateutil.parser import isoparse
from flask import Blueprint, current_app, jsonify, request

"""GET /notifications/emails

Query parameters (all optional):
    startDate, endDate  ISO 8601 dates or datetimes
    ficheNumber         case-insensitive prefix of the ficha number
"""

__all__ = [
    "notifications_bp",
    "SERVICE_KEY",
    "InvalidQueryParameter",
    "parse_date_param",
]

logger = logging.getLogger(__name__)

notifications_bp = Blueprint("notifications", __name__)

SERVICE_KEY = "notification_logs"
RETRIEVAL_FAILED_MESSAGE = "No se pudieron recuperar las notificaciones."


class InvalidQueryParameter(ValueError):
    def __init__(self, name: str) -> None:
        super().__init__(f"Parámetro {name} inválido.")
        self.name = name


def parse_date_param(name: str) -> datetime | None:
    raw = request.args.get(name, "").strip()
    if not raw:
        return None
    try:
        parsed = isoparse(raw)
    except (ValueError, OverflowError) as e:
        raise InvalidQueryParameter(name) from e
    if parsed.tzinfo is not None:
        # stored timestamps are local and naive
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


@notifications_bp.get("/notifications/emails")
def list_email_notifications():
    try:
        start = parse_date_param("startDate")
        end = parse_date_param("endDate")
    except InvalidQueryParameter as e:
        return jsonify({"message": str(e)}), 400

    fiche_number = request.args.get("ficheNumber", "").strip() or None
    service = current_app.extensions[SERVICE_KEY]
    try:
        logs = service.find_email_notification_logs(
            start=start, end=end, fiche_number=fiche_number
        )
    except Exception:
        logger.exception("error retrieving notification logs")
        return jsonify({"message": RETRIEVAL_FAILED_MESSAGE}), 500
    return jsonify(logs)
