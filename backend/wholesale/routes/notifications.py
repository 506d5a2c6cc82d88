# Overview: Flask API routes for in-app store notifications.

from flask import Blueprint, jsonify

from ..errors import NotFound
from ..services import notification_service
from .common import int_arg, bool_arg

notifications_bp = Blueprint("notifications", __name__, url_prefix="/api/notifications")


@notifications_bp.get("")
def list_notifications():
    """Query params: store_id, unread_only, limit."""
    notifications = notification_service.list_notifications(
        int_arg("store_id"),
        unread_only=bool_arg("unread_only"),
        limit=min(int_arg("limit") or 100, 500),
    )
    return jsonify({"notifications": [n.to_dict() for n in notifications]}), 200


@notifications_bp.post("/<int:notification_id>/read")
def mark_read(notification_id: int):
    notification = notification_service.mark_read(notification_id)
    if notification is None:
        raise NotFound("Notification", notification_id)
    return jsonify(notification.to_dict()), 200
