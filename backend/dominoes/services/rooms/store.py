"""Key-value broadcast stores used as room transports.

A store only knows keys and JSON values: ``write`` replaces the whole value,
``subscribe`` reports the latest value (or ``None`` once deleted) after every
change. No transactions; last write wins.
"""
import json
import logging
import os
import threading
from collections import defaultdict
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)

Callback = Callable[[Optional[Any]], None]
Unsubscribe = Callable[[], None]


class StoreError(Exception):
    """The store could not complete a read or write."""


class _Listeners:
    def __init__(self):
        self._by_key: Dict[str, List[Callback]] = defaultdict(list)

    def add(self, key: str, callback: Callback) -> Unsubscribe:
        self._by_key[key].append(callback)

        def _remove():
            remaining = [cb for cb in self._by_key.get(key, []) if cb is not callback]
            if remaining:
                self._by_key[key] = remaining
            else:
                self._by_key.pop(key, None)
        return _remove

    def fire(self, key: str, value: Optional[Any]) -> None:
        for callback in list(self._by_key.get(key, [])):
            # each subscriber gets its own copy, like a replica would
            callback(_copy(value))

    def count(self, key: str) -> int:
        return len(self._by_key.get(key, []))


def _copy(value):
    return None if value is None else json.loads(json.dumps(value))


class KeyValueStore:
    def read(self, key: str) -> Optional[Any]:
        raise NotImplementedError

    def write(self, key: str, value: Any) -> None:
        raise NotImplementedError

    def delete(self, key: str) -> None:
        raise NotImplementedError

    def subscribe(self, key: str, callback: Callback) -> Unsubscribe:
        raise NotImplementedError


class MemoryStore(KeyValueStore):
    """In-process store; several services sharing one instance behave like separate clients."""

    def __init__(self):
        self._data: Dict[str, str] = {}
        self._listeners = _Listeners()

    def read(self, key):
        raw = self._data.get(key)
        return json.loads(raw) if raw is not None else None

    def write(self, key, value):
        self._data[key] = json.dumps(value)
        self._listeners.fire(key, value)

    def delete(self, key):
        self._data.pop(key, None)
        self._listeners.fire(key, None)

    def subscribe(self, key, callback):
        return self._listeners.add(key, callback)

    def keys(self) -> List[str]:
        return sorted(self._data)


# Shared by every SqlStore in this process so request-scoped services see each other
_sql_listeners = _Listeners()


class SqlStore(KeyValueStore):
    """Replicated store backed by the ``store_record`` table.

    Changes are pushed to remote subscribers over Socket.IO (``value`` events
    in room ``store:<key>``) and to in-process callbacks. Requires an
    application context.
    """

    def __init__(self, db=None, socketio=None, namespace='/ws'):
        if db is None or socketio is None:
            from dominoes import db as default_db, socketio as default_socketio
            db = db or default_db
            socketio = socketio or default_socketio
        self.db = db
        self.socketio = socketio
        self.namespace = namespace

    def read(self, key):
        from dominoes.models import StoreRecord
        try:
            record = self.db.session.get(StoreRecord, key)
        except SQLAlchemyError as exc:
            self.db.session.rollback()
            raise StoreError(f"read {key} failed: {exc}") from exc
        return json.loads(record.value) if record else None

    def write(self, key, value):
        from dominoes.models import StoreRecord
        try:
            record = self.db.session.get(StoreRecord, key)
            if record is None:
                record = StoreRecord(key=key, value=json.dumps(value))
            else:
                record.value = json.dumps(value)
            self.db.session.add(record)
            self.db.session.commit()
        except SQLAlchemyError as exc:
            self.db.session.rollback()
            raise StoreError(f"write {key} failed: {exc}") from exc
        self._broadcast(key, value)

    def delete(self, key):
        from dominoes.models import StoreRecord
        try:
            record = self.db.session.get(StoreRecord, key)
            if record is not None:
                self.db.session.delete(record)
                self.db.session.commit()
        except SQLAlchemyError as exc:
            self.db.session.rollback()
            raise StoreError(f"delete {key} failed: {exc}") from exc
        self._broadcast(key, None)

    def subscribe(self, key, callback):
        return _sql_listeners.add(key, callback)

    def _broadcast(self, key, value):
        self.socketio.emit('value', {'key': key, 'value': value}, to=f"store:{key}", namespace=self.namespace)
        _sql_listeners.fire(key, value)


_file_listeners: Dict[str, _Listeners] = defaultdict(_Listeners)
_file_locks: Dict[str, threading.Lock] = defaultdict(threading.Lock)


class LocalFileStore(KeyValueStore):
    """Single JSON file on disk; the no-network fallback transport."""

    def __init__(self, path: str):
        self.path = os.path.abspath(path)

    def _load(self) -> Dict[str, Any]:
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except ValueError:
            logger.warning(f"[store-corrupt] path={self.path} resetting local store")
            return {}
        except OSError as exc:
            raise StoreError(f"cannot read {self.path}: {exc}") from exc
        return data if isinstance(data, dict) else {}

    def _dump(self, data: Dict[str, Any]) -> None:
        tmp = self.path + '.tmp'
        try:
            with open(tmp, 'w', encoding='utf-8') as f:
                json.dump(data, f, ensure_ascii=False, indent=2)
            os.replace(tmp, self.path)
        except OSError as exc:
            raise StoreError(f"cannot write {self.path}: {exc}") from exc

    def read(self, key):
        with _file_locks[self.path]:
            return self._load().get(key)

    def write(self, key, value):
        with _file_locks[self.path]:
            data = self._load()
            data[key] = value
            self._dump(data)
        _file_listeners[self.path].fire(key, value)

    def delete(self, key):
        with _file_locks[self.path]:
            data = self._load()
            data.pop(key, None)
            self._dump(data)
        _file_listeners[self.path].fire(key, None)

    def subscribe(self, key, callback):
        return _file_listeners[self.path].add(key, callback)
