import re
import uuid

# <prefix>_<uuid4 hex>, e.g. lst_0f8e...
ID_PATTERN = r"^[a-z]{3}_[0-9a-f]{32}$"
_ID_RE = re.compile(ID_PATTERN)


def gen_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex}"


def is_valid_id(value: str | None) -> bool:
    return bool(_ID_RE.match(value or ""))
