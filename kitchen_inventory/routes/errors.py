from __future__ import annotations

import traceback

from flask import Blueprint, current_app, render_template, request
from werkzeug.exceptions import HTTPException

from kitchen_inventory.extensions import db

bp = Blueprint("errors", __name__)

GENERIC_MESSAGE = "Internal Server Error"


def _describe(error: Exception) -> str:
    if isinstance(error, HTTPException):
        return error.description or GENERIC_MESSAGE
    return str(error) or GENERIC_MESSAGE


def _debug_stacktrace(error: Exception) -> str:
    if not current_app.debug:
        return ""
    cause = getattr(error, "original_exception", None)
    if not isinstance(cause, BaseException):
        cause = error
    return "".join(traceback.format_exception(type(cause), cause, cause.__traceback__))


@bp.app_errorhandler(Exception)
def handle_exception(error: Exception):
    # 404, 405 and friends keep Flask's own pages.
    if isinstance(error, HTTPException) and error.code != 500:
        return error

    # Drop whatever the failed request left in the session.
    db.session.rollback()
    current_app.logger.exception("Unhandled exception on %s", request.path, exc_info=error)

    return (
        render_template(
            "errors/server_error.html",
            error_message=_describe(error),
            stacktrace=_debug_stacktrace(error),
            endpoint=request.endpoint,
            path=request.path,
        ),
        500,
    )
