# alertia_api/storage/adapter.py
from __future__ import annotations

import logging

from flask import current_app

from alertia_api.storage.local_store import LocalStore
from alertia_api.storage.api_client import ApiClient

log = logging.getLogger(__name__)

MODES = ("local", "api")


class DataAdapter:
    """
    Single entry point for persistence. Services only talk to this class;
    the backend (local SQL store or remote REST API) is picked by
    ALERTIA_STORAGE_MODE.
    """

    def __init__(self, mode: str = "local", backend=None):
        if mode not in MODES:
            raise ValueError(f"unknown storage mode {mode!r} (expected one of {MODES})")
        self.mode = mode
        self.backend = backend

    @classmethod
    def from_config(cls, config) -> "DataAdapter":
        mode = (config.get("ALERTIA_STORAGE_MODE") or "local").lower()
        if mode == "api":
            backend = ApiClient(
                config.get("ALERTIA_API_BASE_URL"),
                token=config.get("ALERTIA_API_TOKEN"),
                timeout=float(config.get("ALERTIA_API_TIMEOUT", 15)),
            )
        else:
            backend = LocalStore()
        log.info("storage mode: %s", mode)
        return cls(mode, backend)

    def is_local(self) -> bool:
        return self.mode == "local"

    def __getattr__(self, name):
        # get_obligaciones, save_alerta, create_envio, ... are all backend calls
        backend = self.__dict__.get("backend")
        if backend is None:
            raise AttributeError(name)
        return getattr(backend, name)

    def send_email(self, payload: dict) -> dict:
        """Local mode sends in-process; api mode delegates to the remote email endpoint."""
        if self.is_local():
            from alertia_api.services.email_sender import send_email
            return send_email(payload)
        return self.backend.send_email(payload)


def get_adapter() -> DataAdapter:
    adapter = current_app.extensions.get("alertia_adapter")
    if adapter is None:
        adapter = DataAdapter.from_config(current_app.config)
        current_app.extensions["alertia_adapter"] = adapter
    return adapter
