# alertia_api/storage/__init__.py
from alertia_api.storage.adapter import DataAdapter, get_adapter

__all__ = ["DataAdapter", "get_adapter"]
