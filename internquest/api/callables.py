"""
Callable functions endpoint.

Wire protocol (POST /callable/<name>):
    Request:  {"data": {...}}  with optional "Authorization: Bearer <ID token>"
    Success:  200 {"result": ...}
    Failure:  mapped status, {"error": {"status": KIND, "message": ..., "details"?: ...}}
"""
import logging

from flask import Blueprint, current_app, jsonify, request

from internquest.api.decorators import resolve_caller
from internquest.core import accounts
from internquest.core.errors import ErrorKind, ServiceError
from internquest.core.migration import run_student_id_migration

logger = logging.getLogger(__name__)

bp = Blueprint("callables", __name__, url_prefix="/callable")

CALLABLES = {
    "listManagedUsers": accounts.list_managed_users,
    "createUserWithRole": accounts.create_user_with_role,
    "migrateStudentIds": run_student_id_migration,
    "deleteUser": accounts.delete_user,
    "updateUserPassword": accounts.update_user_password,
}


def _error_response(error: ServiceError):
    return jsonify({"error": error.to_dict()}), error.http_status


@bp.route("/<name>", methods=["POST"])
def invoke(name: str):
    handler = CALLABLES.get(name)
    if handler is None:
        return _error_response(ServiceError(ErrorKind.NOT_FOUND, f"Function {name} not found."))

    body = request.get_json(silent=True)
    if not isinstance(body, dict) or "data" not in body:
        return _error_response(
            ServiceError(ErrorKind.INVALID_ARGUMENT, "Request body must be a JSON object with a 'data' field.")
        )

    try:
        caller = resolve_caller()
        result = handler(current_app.config["SERVICES"], caller, body.get("data"))
    except ServiceError as e:
        if e.kind is ErrorKind.INTERNAL:
            logger.error("Callable %s failed: %s", name, e.message)
        else:
            logger.info("Callable %s rejected: %s %s", name, e.kind.value, e.message)
        return _error_response(e)
    except Exception:
        logger.exception("Callable %s raised an unclassified error", name)
        return _error_response(ServiceError(ErrorKind.INTERNAL, "Internal error"))

    return jsonify({"result": result})
