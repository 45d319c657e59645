# alertia_api/common/errors.py
from flask import current_app
from werkzeug.exceptions import HTTPException, RequestEntityTooLarge
from sqlalchemy.exc import IntegrityError
from alertia_api.common.http import fail


class APIError(Exception):
    """Error raised by services; rendered as the standard failure envelope."""
    def __init__(self, code, message, status_code=400, payload=None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = status_code
        self.payload = payload


class NotFound(APIError):
    def __init__(self, what, ident=None):
        msg = f"{what} no encontrada" if ident is None else f"{what} {ident} no encontrada"
        super().__init__("NOT_FOUND", msg, 404, payload={"id": ident} if ident is not None else None)


def register_error_handlers(app):
    @app.errorhandler(APIError)
    def _api_error(e: APIError):
        return fail(message=e.message, status=e.status_code, code=e.code, detail=e.payload)

    @app.errorhandler(RequestEntityTooLarge)
    def _too_large(e: RequestEntityTooLarge):
        limit = current_app.config.get("MAX_CONTENT_LENGTH")
        return fail("El archivo excede el tamaño máximo permitido", status=413, code="FILE_TOO_LARGE",
                    detail={"max_bytes": limit} if limit else None)

    @app.errorhandler(HTTPException)
    def _http(e: HTTPException):
        return fail(e.description or e.name, status=e.code or 500)

    @app.errorhandler(IntegrityError)
    def _integrity(e: IntegrityError):
        from alertia_api.extensions import db
        db.session.rollback()
        # 409 for unique/FK violations
        return fail("Conflict / integrity error", status=409, code="CONSTRAINT_ERROR",
                    detail=str(e.orig) if getattr(e, "orig", None) else str(e))

    @app.errorhandler(Exception)
    def _500(e: Exception):
        current_app.logger.exception(e)
        return fail("Internal server error", status=500, detail=str(e))
