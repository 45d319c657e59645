# alertia_api/services/email_sender.py
"""
Outbound email.

Providers (ALERTIA_EMAIL_PROVIDER):
    ses   Amazon SES through boto3 (production)
    log   nothing leaves the process; the message is logged and kept in the
          bounded in-memory outbox `app.extensions["alertia_outbox"]` (local mode, tests)
"""
from __future__ import annotations

import logging
import re
import uuid
from collections import deque

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from flask import current_app

from alertia_api.common.errors import APIError

log = logging.getLogger(__name__)

_SPLIT = re.compile(r"[,;]")


class EmailSendError(APIError):
    """Provider failure. `error` is the short label returned to API clients."""
    def __init__(self, error, message, status_code=500, code="UNKNOWN_ERROR"):
        super().__init__(code, message, status_code)
        self.error = error


def normalize_recipients(value) -> list[str]:
    """Accepts a list, a single address or a ',' / ';' separated string."""
    if not value:
        return []
    if isinstance(value, (list, tuple)):
        return [str(v).strip() for v in value if v and str(v).strip()]
    return [p.strip() for p in _SPLIT.split(str(value)) if p.strip()]


def html_from_text(body: str) -> str:
    return body.replace("\r", "").replace("\n", "<br>")


def outbox() -> deque:
    """Recent messages handed to the log provider, newest last (ALERTIA_OUTBOX_SIZE kept)."""
    box = current_app.extensions.get("alertia_outbox")
    if box is None:
        box = deque(maxlen=int(current_app.config.get("ALERTIA_OUTBOX_SIZE") or 100))
        current_app.extensions["alertia_outbox"] = box
    return box


def get_ses_client():
    client = current_app.extensions.get("alertia_ses")
    if client is None:
        client = boto3.client("ses", region_name=current_app.config.get("AWS_REGION") or "us-east-1")
        current_app.extensions["alertia_ses"] = client
    return client


def build_message(payload: dict) -> dict:
    """Validate an email request and turn it into SES send_email kwargs."""
    to = payload.get("to")
    subject = payload.get("subject")
    body = payload.get("body")
    if not to:
        raise APIError("MISSING_TO", "Falta el parámetro requerido: to (destinatario)", 400)
    if not subject:
        raise APIError("MISSING_SUBJECT", "Falta el parámetro requerido: subject (asunto)", 400)
    if not body:
        raise APIError("MISSING_BODY", "Falta el parámetro requerido: body (cuerpo del correo)", 400)

    cfg = current_app.config
    from_email = payload.get("from") or cfg.get("FROM_EMAIL")
    from_name = payload.get("fromName") or cfg.get("FROM_NAME")
    to_addrs = normalize_recipients(to)
    cc_addrs = normalize_recipients(payload.get("cc"))

    destination = {"ToAddresses": to_addrs}
    if cc_addrs:
        destination["CcAddresses"] = cc_addrs  # SES rejects an empty list

    html = payload.get("html") or html_from_text(body)
    return {
        "Source": f"{from_name} <{from_email}>" if from_name else from_email,
        "Destination": destination,
        "Message": {
            "Subject": {"Data": subject, "Charset": "UTF-8"},
            "Body": {
                "Html": {"Data": html, "Charset": "UTF-8"},
                "Text": {"Data": body, "Charset": "UTF-8"},
            },
        },
    }


def send_email(payload: dict) -> dict:
    """
    Send one email. Returns {success, messageId, message, to, cc}.
    Raises APIError(400) for a bad request or a provider rejection and
    EmailSendError(500) for any other provider failure.
    """
    params = build_message(payload)
    to_addrs = params["Destination"]["ToAddresses"]
    cc_addrs = params["Destination"].get("CcAddresses", [])
    provider = (current_app.config.get("ALERTIA_EMAIL_PROVIDER") or "log").lower()

    if provider == "ses":
        try:
            result = get_ses_client().send_email(**params)
        except ClientError as e:
            err = e.response.get("Error", {})
            code = err.get("Code") or "UNKNOWN_ERROR"
            msg = err.get("Message") or str(e)
            log.error("SES send_email failed (%s): %s", code, msg)
            if code == "MessageRejected":
                raise EmailSendError("Correo rechazado", msg or "El correo fue rechazado por SES. "
                                     "Verifica que el remitente esté verificado.", 400, code)
            raise EmailSendError("Error al enviar correo", msg, 500, code)
        except BotoCoreError as e:
            log.error("SES transport error: %s", e)
            raise EmailSendError("Error al enviar correo", str(e), 500)
        message_id = result.get("MessageId")
    else:
        message_id = f"local-{uuid.uuid4()}"
        outbox().append({"messageId": message_id, **params})
        log.info("[email:log] %s -> %s (cc %s): %s", params["Source"], to_addrs, cc_addrs,
                 params["Message"]["Subject"]["Data"])

    return {
        "success": True,
        "messageId": message_id,
        "message": "Correo enviado exitosamente",
        "to": to_addrs,
        "cc": cc_addrs,
    }
