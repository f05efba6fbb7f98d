"""
HTTP functions.

Plain JSON endpoints for the mobile app and web admin:
    POST /lookupEmailByStudentId      optional X-API-Key
    POST /createUserAccount           bearer token (admin) + optional X-API-Key
    POST /sendPushToSelf              bearer token
    POST /sendPushToUser              bearer token (admin)
    POST /hooks/notificationCreated   required X-API-Key

OPTIONS answers 204 on every route; other methods answer 405 JSON.
Classified failures are rendered by the app-level ServiceError handler.
"""
import hmac
import logging

from flask import Blueprint, current_app, jsonify, request

from internquest.api.decorators import authenticate_request, get_caller, require_id_token
from internquest.core import accounts, notifications
from internquest.core.authz import authorize
from internquest.core.lookup import lookup_email_by_student_id

logger = logging.getLogger(__name__)

bp = Blueprint("functions", __name__)

API_KEY_HEADER = "X-API-Key"
METHODS = ["POST", "OPTIONS"]


@bp.before_request
def preflight():
    if request.method == "OPTIONS":
        return ("", 204)


def _services():
    return current_app.config["SERVICES"]


def _config():
    return current_app.config["APP_CONFIG"]


def _json_body() -> dict:
    body = request.get_json(silent=True)
    return body if isinstance(body, dict) else {}


def check_api_key():
    """Return a 403 response if a shared secret is configured and not presented."""
    expected = _config().lookup_api_key
    if not expected:
        return None
    presented = request.headers.get(API_KEY_HEADER, "")
    if not hmac.compare_digest(presented.encode("utf-8"), expected.encode("utf-8")):
        logger.warning("Rejected request to %s: bad or missing %s", request.path, API_KEY_HEADER)
        return jsonify({"error": "Forbidden"}), 403
    return None


@bp.route("/lookupEmailByStudentId", methods=METHODS)
def lookup_email():
    """Resolve a student id to its login email (403 ACCOUNT_BLOCKED if blocked)."""
    denied = check_api_key()
    if denied is not None:
        return denied

    services = _services()
    result = lookup_email_by_student_id(
        services.store,
        _json_body().get("studentId"),
        users_collection=services.users_collection,
        student_id_field=services.student_id_field,
    )
    return jsonify(result.to_dict())


@bp.route("/createUserAccount", methods=METHODS)
def create_user_account():
    """Admin-provisioned account creation with a password."""
    cfg = _config()
    if cfg.emulator_writes_blocked:
        return jsonify({
            "error": (
                "createUserAccount is disabled in emulator by default. "
                "Set ALLOW_EMULATOR_CREATE_USER=true if you intend to create real accounts."
            )
        }), 403

    caller, error_response = authenticate_request()
    if error_response is not None:
        return error_response
    authorize(caller, "provision_account")

    denied = check_api_key()
    if denied is not None:
        return denied

    return jsonify(accounts.provision_account(_services(), caller, _json_body()))


@bp.route("/sendPushToSelf", methods=METHODS)
@require_id_token
def send_push_to_self():
    return jsonify(notifications.push_to_self(_services(), get_caller(), _json_body()))


@bp.route("/sendPushToUser", methods=METHODS)
@require_id_token
def send_push_to_user():
    return jsonify(notifications.push_to_user(_services(), get_caller(), _json_body()))


@bp.route("/hooks/notificationCreated", methods=METHODS)
def notification_created():
    """Document-created hook for the notifications collection: {id}.

    Requires the shared secret; the record itself is read from the store.
    """
    if not _config().lookup_api_key:
        logger.warning("Rejected request to %s: no shared secret configured", request.path)
        return jsonify({"error": "Forbidden"}), 403
    denied = check_api_key()
    if denied is not None:
        return denied

    notification_id = str(_json_body().get("id") or "").strip()
    if not notification_id:
        return jsonify({"error": "id is required"}), 400

    tickets = notifications.push_stored_notification(_services(), notification_id)
    return jsonify({
        "ok": True,
        "pushed": tickets is not None,
        "ticketsCount": len(tickets) if tickets else 0,
    })
