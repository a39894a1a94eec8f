"""Limit/offset bounds shared by the user listing and the audit trail."""
from typing import Optional, Tuple

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 200


def _as_int(raw: Optional[str], name: str, default: int) -> int:
    if raw is None or str(raw).strip() == '':
        return default
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise ValueError(f'{name} must be an integer, got {raw!r}')


def normalize_pagination(limit_raw: Optional[str], offset_raw: Optional[str]) -> Tuple[int, int]:
    """Clamp limit to 1..MAX_PAGE_SIZE and offset to >= 0; blank values take the defaults."""
    limit = _as_int(limit_raw, 'limit', DEFAULT_PAGE_SIZE)
    offset = _as_int(offset_raw, 'offset', 0)
    return max(1, min(limit, MAX_PAGE_SIZE)), max(0, offset)
