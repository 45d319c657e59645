# alertia_api/common/paging.py
from flask import request

DEFAULT_PAGE = 1
DEFAULT_SIZE = 50
MAX_SIZE = 500


def page_limit():
    try:
        page = max(int(request.args.get("page", DEFAULT_PAGE)), 1)
    except Exception:
        page = DEFAULT_PAGE
    try:
        size = int(request.args.get("size", DEFAULT_SIZE))
        size = max(1, min(size, MAX_SIZE))
    except Exception:
        size = DEFAULT_SIZE
    return page, size


def paginate(items: list, page: int, size: int):
    """Slice an already filtered list; returns (rows, total)."""
    total = len(items)
    start = (page - 1) * size
    return items[start:start + size], total


def filter_args(*keys: str) -> dict:
    """
    Collect non-empty query-string values for the given keys.
    ?area=Finanzas&estatus=  => {"area": "Finanzas"}
    """
    out = {}
    for k in keys:
        v = request.args.get(k)
        if v is not None and v.strip() != "":
            out[k] = v.strip()
    return out


def text_q():
    q = request.args.get("q", "") or request.args.get("search", "")
    return q.strip() or None
