# alertia_api/storage/api_client.py
from __future__ import annotations

import logging

import requests

from alertia_api.common.errors import APIError

log = logging.getLogger(__name__)


class ApiClient:
    """
    REST backend used in api mode. Talks to a remote AlertIA deployment
    (`ALERTIA_API_BASE_URL`) that exposes the same resources as this service.
    """

    def __init__(self, base_url: str, token: str | None = None, timeout: float = 15.0, session=None):
        if not base_url:
            raise APIError("API_NOT_CONFIGURED", "ALERTIA_API_BASE_URL is not set", 500)
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"Content-Type": "application/json", "Accept": "application/json"})
        if token:
            self.session.headers["Authorization"] = f"Bearer {token}"

    # ---------- transport ----------
    def _request(self, method: str, path: str, params=None, json=None, allow_404=False):
        url = f"{self.base_url}{path}"
        try:
            resp = self.session.request(method, url, params=params, json=json, timeout=self.timeout)
        except requests.RequestException as e:
            log.error("api %s %s failed: %s", method, url, e)
            raise APIError("API_UNREACHABLE", f"No se pudo contactar la API: {e}", 502)

        if resp.status_code == 404 and allow_404:
            return None
        try:
            payload = resp.json() if resp.content else None
        except ValueError:
            payload = None

        if resp.status_code >= 400:
            msg = None
            if isinstance(payload, dict):
                err = payload.get("error")
                msg = err.get("message") if isinstance(err, dict) else (err or payload.get("message"))
            raise APIError("API_ERROR", msg or f"HTTP {resp.status_code}", resp.status_code, payload=payload)

        # unwrap {"success": true, "data": ...}
        if isinstance(payload, dict) and "success" in payload and "data" in payload:
            return payload["data"]
        return payload

    @staticmethod
    def _items(data):
        if isinstance(data, dict):
            return data.get("items") or data.get("Items") or []
        return data or []

    # ---------- obligaciones ----------
    def get_obligaciones(self, filters: dict | None = None) -> list[dict]:
        return self._items(self._request("GET", "/obligaciones", params=filters or None))

    def get_obligacion(self, obligacion_id: str) -> dict | None:
        return self._request("GET", f"/obligaciones/{obligacion_id}", allow_404=True)

    def save_obligacion(self, data: dict) -> dict:
        if data.get("id") and self.get_obligacion(data["id"]) is not None:
            return self._request("PUT", f"/obligaciones/{data['id']}", json=data)
        return self._request("POST", "/obligaciones", json=data)

    def save_all_obligaciones(self, rows: list[dict]) -> int:
        n = 0
        for row in rows:
            self.save_obligacion(row)
            n += 1
        return n

    def update_obligacion_estado(self, obligacion_id: str, estatus: str, extra: dict | None = None) -> dict | None:
        return self._request("PATCH", f"/obligaciones/{obligacion_id}/estado",
                             json={**(extra or {}), "estatus": estatus}, allow_404=True)

    def delete_obligacion(self, obligacion_id: str) -> bool:
        return self._request("DELETE", f"/obligaciones/{obligacion_id}", allow_404=True) is not None

    # ---------- alertas ----------
    def get_alertas(self, filters: dict | None = None) -> list[dict]:
        return self._items(self._request("GET", "/alertas", params=filters or None))

    def save_alerta(self, data: dict) -> dict:
        return self._request("POST", "/alertas", json=data)

    def update_alerta_estado(self, alerta_id: str, estado: str, extra: dict | None = None) -> dict | None:
        return self._request("PATCH", f"/alertas/{alerta_id}",
                             json={**(extra or {}), "estado": estado}, allow_404=True)

    # ---------- envios ----------
    def get_envios(self, filters: dict | None = None) -> list[dict]:
        return self._items(self._request("GET", "/envios", params=filters or None))

    def get_envio(self, envio_id: str) -> dict | None:
        return self._request("GET", f"/envios/{envio_id}", allow_404=True)

    def create_envio(self, data: dict) -> dict:
        return self._request("POST", "/envios/registro", json=data)

    # ---------- auditoria ----------
    def get_auditoria(self, filters: dict | None = None) -> list[dict]:
        return self._items(self._request("GET", "/auditoria", params=filters or None))

    def save_auditoria(self, data: dict) -> dict:
        return self._request("POST", "/auditoria", json=data)

    # ---------- configuracion ----------
    def get_configuracion(self) -> dict | None:
        return self._request("GET", "/configuracion", allow_404=True)

    def save_configuracion(self, data: dict) -> dict:
        return self._request("PUT", "/configuracion/datos", json=data)

    # ---------- email ----------
    def send_email(self, payload: dict) -> dict:
        return self._request("POST", "/email/send", json=payload)
