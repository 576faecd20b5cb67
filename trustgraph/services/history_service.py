"""
Recently viewed survey runs.

The list lives either in the Flask session (forgotten when the browser
closes) or, when the visitor chose "remember this device", in a long-lived
signed cookie. Storage problems never break the page, so every read falls
back to an empty list and every write failure is only logged.
"""
import json
import logging
from datetime import datetime, timezone

from flask import after_this_request, current_app, request, session
from itsdangerous import BadSignature, URLSafeSerializer

logger = logging.getLogger(__name__)

HISTORY_KEY = 'ti_recent_runs'
REMEMBER_DEVICE_KEY = 'ti_remember_device'
DEVICE_COOKIE = 'ti_device_storage'
DEVICE_COOKIE_MAX_AGE = 60 * 60 * 24 * 365
MAX_HISTORY = 10

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _created_at(entry):
    value = entry.get('createdAtISO') if isinstance(entry, dict) else None
    if not value:
        return _EPOCH
    try:
        parsed = datetime.fromisoformat(str(value).replace('Z', '+00:00'))
    except ValueError:
        return _EPOCH
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _valid_entries(entries):
    return [e for e in entries if isinstance(e, dict) and e.get('runId')]


def sort_and_cap(entries):
    return sorted(entries, key=_created_at, reverse=True)[:MAX_HISTORY]


def add_entry(history, entry):
    """Replaces any entry for the same run, newest first, at most ten."""
    filtered = [e for e in _valid_entries(history) if e['runId'] != entry['runId']]
    return sort_and_cap([entry] + filtered)


def merge_histories(existing, incoming):
    merged = []
    index = {}
    for entry in _valid_entries(existing) + _valid_entries(incoming):
        run_id = entry['runId']
        if run_id not in index:
            index[run_id] = len(merged)
            merged.append(entry)
        elif _created_at(entry) > _created_at(merged[index[run_id]]):
            merged[index[run_id]] = entry
    return sort_and_cap(merged)


def parse_history(raw):
    if not raw:
        return []
    try:
        parsed = json.loads(raw)
    except (TypeError, ValueError):
        return []
    return parsed if isinstance(parsed, list) else []


class SessionStorage:
    """Per-browser-session storage on top of the Flask session."""

    def get_item(self, key):
        return session.get(key)

    def set_item(self, key, value):
        session[key] = value

    def remove_item(self, key):
        session.pop(key, None)


class DeviceStorage:
    """Items kept in one signed cookie that outlives the browser session."""

    def __init__(self):
        self._serializer = URLSafeSerializer(current_app.config['SECRET_KEY'], salt='device-storage')
        self._items = self._load()
        self._dirty = False

    def _load(self):
        raw = request.cookies.get(DEVICE_COOKIE)
        if not raw:
            return {}
        try:
            items = self._serializer.loads(raw)
        except BadSignature:
            logger.warning("Discarding device storage cookie with a bad signature")
            return {}
        return items if isinstance(items, dict) else {}

    def get_item(self, key):
        return self._items.get(key)

    def set_item(self, key, value):
        self._items[key] = value
        self._schedule_flush()

    def remove_item(self, key):
        if key in self._items:
            del self._items[key]
            self._schedule_flush()

    def _schedule_flush(self):
        if self._dirty:
            return
        self._dirty = True

        @after_this_request
        def flush(response):
            if self._items:
                response.set_cookie(
                    DEVICE_COOKIE,
                    self._serializer.dumps(self._items),
                    max_age=DEVICE_COOKIE_MAX_AGE,
                    httponly=True,
                    samesite='Lax',
                    secure=current_app.config.get('SESSION_COOKIE_SECURE', False),
                )
            else:
                response.delete_cookie(DEVICE_COOKIE)
            return response


class HistoryService:
    def __init__(self):
        self.session_storage = SessionStorage()
        self.device_storage = DeviceStorage()

    @property
    def remember_device(self):
        return self.device_storage.get_item(REMEMBER_DEVICE_KEY) == 'true'

    def backend(self):
        return self.device_storage if self.remember_device else self.session_storage

    def _read(self, storage):
        try:
            return parse_history(storage.get_item(HISTORY_KEY))
        except Exception as e:
            logger.warning(f"Could not read run history: {e}")
            return []

    def _write(self, storage, history):
        try:
            storage.set_item(HISTORY_KEY, json.dumps(history))
        except Exception as e:
            logger.warning(f"Could not write run history: {e}")

    def get_history(self):
        return self._read(self.backend())

    def add(self, entry):
        history = add_entry(self.get_history(), entry)
        self._write(self.backend(), history)
        return history

    def clear(self):
        for storage in (self.session_storage, self.device_storage):
            try:
                storage.remove_item(HISTORY_KEY)
            except Exception as e:
                logger.warning(f"Could not clear run history: {e}")

    def migrate(self, source, target):
        incoming = self._read(source)
        if not incoming:
            return self._read(target)
        merged = merge_histories(self._read(target), incoming)
        self._write(target, merged)
        try:
            source.remove_item(HISTORY_KEY)
        except Exception as e:
            logger.warning(f"Could not remove migrated run history: {e}")
        return merged

    def set_remember_device(self, enabled):
        if enabled:
            self.device_storage.set_item(REMEMBER_DEVICE_KEY, 'true')
            return self.migrate(self.session_storage, self.device_storage)
        self.device_storage.remove_item(REMEMBER_DEVICE_KEY)
        return self.migrate(self.device_storage, self.session_storage)
