# alertia_api/common/ids.py
import secrets
import string
import time

_ALPHABET = string.ascii_lowercase + string.digits


def millis() -> int:
    return int(time.time() * 1000)


def new_id(prefix: str) -> str:
    """PREFIX-<epoch ms>-<9 random base36 chars>, e.g. OBL-1718900000000-k3j9x0a1b."""
    rand = "".join(secrets.choice(_ALPHABET) for _ in range(9))
    return f"{prefix}-{millis()}-{rand}"
