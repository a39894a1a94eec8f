"""Paginated list responses with ETag / Last-Modified validators.

Used by the audit trail listing; conditional requests answer 304 when nothing changed.
"""
from __future__ import annotations
from typing import Iterable, Optional
from flask import request, make_response
import hashlib
from datetime import datetime, timezone, timedelta
from email.utils import parsedate_to_datetime, format_datetime

TIMESTAMP_TOLERANCE = timedelta(seconds=1)


def canonicalize_timestamp(dt: datetime) -> datetime:
    """UTC, tz-aware, whole seconds (SQLite hands back naive values)."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.replace(microsecond=0)


def _iso(dt: datetime) -> str:
    return dt.isoformat().replace('+00:00', 'Z')


def compute_etag(ids: Iterable, total: int, limit: int, offset: int, latest_iso: str = '') -> str:
    seed = f"{list(ids)}|{total}|{limit}|{offset}|{latest_iso}"
    return hashlib.sha256(seed.encode()).hexdigest()[:32]


def build_list_payload(rows: list, total: int, limit: int, offset: int):
    return {
        'data': rows,
        'pagination': {'total': total, 'limit': limit, 'offset': offset, 'returned': len(rows)},
    }


def _set_validators(resp, etag: str, latest: Optional[datetime]):
    resp.headers['ETag'] = etag
    if latest:
        resp.headers['Last-Modified'] = format_datetime(latest, usegmt=True)
        resp.headers['X-Last-Modified-ISO'] = _iso(latest)
    return resp


def make_cached_list_response(rows: list, total: int, limit: int, offset: int, latest_ts: Optional[datetime] = None):
    latest = canonicalize_timestamp(latest_ts) if isinstance(latest_ts, datetime) else None
    etag = compute_etag([r.get('id') for r in rows], total, limit, offset, _iso(latest) if latest else '')
    resp = make_response(build_list_payload(rows, total, limit, offset))
    return _set_validators(resp, etag, latest), etag


def _parse_http_or_iso(value: str) -> Optional[datetime]:
    try:
        dt = datetime.fromisoformat(value.replace('Z', '+00:00'))
    except ValueError:
        try:
            dt = parsedate_to_datetime(value)
        except (TypeError, ValueError):
            return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def handle_conditional(etag_value: str, latest_ts: Optional[datetime]):
    """304 response when If-None-Match (preferred) or If-Modified-Since matches, else None."""
    latest = canonicalize_timestamp(latest_ts) if isinstance(latest_ts, datetime) else None
    inm = request.headers.get('If-None-Match')
    if inm:
        if inm.strip('"') == etag_value:
            return _set_validators(make_response('', 304), etag_value, latest)
        return None
    ims = request.headers.get('If-Modified-Since')
    if ims and latest:
        since = _parse_http_or_iso(ims)
        if since and latest <= canonicalize_timestamp(since) + TIMESTAMP_TOLERANCE:
            return _set_validators(make_response('', 304), etag_value, latest)
    return None
