# alertia_api/blueprints/email.py
"""
POST /api/v1/email/send

Keeps the response shape the front-end expects from the mail endpoint:
    200 {success, messageId, message, to, cc}
    4xx/5xx {error, message, code}
"""
from flask import Blueprint, current_app, jsonify, request
from flask_jwt_extended import jwt_required

from alertia_api.common.errors import APIError
from alertia_api.services.email_sender import EmailSendError, send_email

bp = Blueprint("email", __name__, url_prefix="/api/v1/email")


@bp.post("/send")
@jwt_required()
def send():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({"error": "Body inválido", "message": "El body debe ser un JSON válido"}), 400
    try:
        return jsonify(send_email(data)), 200
    except EmailSendError as e:
        return jsonify({"error": e.error, "message": e.message, "code": e.code}), e.status_code
    except APIError as e:
        current_app.logger.info("email rejected: %s", e.message)
        return jsonify({"error": e.message, "code": e.code}), e.status_code
