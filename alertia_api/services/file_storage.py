# alertia_api/services/file_storage.py
import os
import json

from flask import current_app
from werkzeug.utils import secure_filename

from alertia_api.common.errors import APIError


class FileStorage:
    """
    Files kept on disk under a single root, one folder per obligation:
        <root>/obligaciones/<id>/bitacora.txt
        <root>/obligaciones/<id>/calendario.json
        <root>/obligaciones/<id>/archivos/<arch_id>_<name>
    """

    def __init__(self, storage_root=None):
        self.storage_root = storage_root or os.path.join(os.getcwd(), "alertia_storage")
        if not os.path.exists(self.storage_root):
            os.makedirs(self.storage_root, exist_ok=True)

    def obligation_dir(self, obligacion_id: str) -> str:
        return os.path.join("obligaciones", secure_filename(str(obligacion_id)) or "_")

    def _abs(self, rel: str) -> str:
        root = os.path.realpath(self.storage_root)
        full = os.path.realpath(os.path.join(root, rel))
        if not (full == root or full.startswith(root + os.sep)):
            raise APIError("INVALID_PATH", "Ruta fuera del almacenamiento", 400)
        return full

    def exists(self, rel: str) -> bool:
        return os.path.exists(self._abs(rel))

    def save_file(self, rel: str, content) -> str:
        full = self._abs(rel)
        os.makedirs(os.path.dirname(full), exist_ok=True)
        mode = "wb" if isinstance(content, (bytes, bytearray)) else "w"
        kwargs = {} if mode == "wb" else {"encoding": "utf-8"}
        with open(full, mode, **kwargs) as f:
            f.write(content)
        return rel

    def append_to_file(self, rel: str, text: str) -> str:
        full = self._abs(rel)
        os.makedirs(os.path.dirname(full), exist_ok=True)
        with open(full, "a", encoding="utf-8") as f:
            f.write(text)
        return rel

    def read_text(self, rel: str):
        full = self._abs(rel)
        if not os.path.exists(full):
            return None
        with open(full, "r", encoding="utf-8") as f:
            return f.read()

    def read_bytes(self, rel: str):
        full = self._abs(rel)
        if not os.path.exists(full):
            return None
        with open(full, "rb") as f:
            return f.read()

    def read_json(self, rel: str):
        raw = self.read_text(rel)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            return None

    def save_json(self, rel: str, data) -> str:
        return self.save_file(rel, json.dumps(data, ensure_ascii=False, indent=2, default=str))

    def delete(self, rel: str) -> bool:
        full = self._abs(rel)
        if os.path.exists(full):
            os.remove(full)
            return True
        return False


def get_file_storage() -> FileStorage:
    return FileStorage(current_app.config.get("ALERTIA_STORAGE_ROOT"))
