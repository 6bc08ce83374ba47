"""Per-room set of connections ready to open a peer link.

This is soft state: losing it on restart is fine because clients announce
readiness again when they reconnect.
"""

from collections import defaultdict
from threading import RLock
from typing import List

import redis


class ReadySet:
    def register_ready(self, room_code: str, connection_id: str) -> List[str]:
        """Add ``connection_id`` and return the peers that were already ready."""
        raise NotImplementedError

    def list_ready(self, room_code: str) -> List[str]:
        raise NotImplementedError

    def unregister(self, room_code: str, connection_id: str) -> List[str]:
        """Remove ``connection_id`` and return the peers still ready in that room.

        Returns an empty list when the connection was not registered.
        """
        raise NotImplementedError

    def rooms_for(self, connection_id: str) -> List[str]:
        raise NotImplementedError


class InMemoryReadySet(ReadySet):
    def __init__(self):
        self._lock = RLock()
        self._rooms = defaultdict(list)

    def register_ready(self, room_code, connection_id):
        with self._lock:
            members = self._rooms[room_code]
            existing = [sid for sid in members if sid != connection_id]
            if connection_id not in members:
                members.append(connection_id)
            return existing

    def list_ready(self, room_code):
        with self._lock:
            return list(self._rooms.get(room_code, ()))

    def unregister(self, room_code, connection_id):
        with self._lock:
            members = self._rooms.get(room_code)
            if not members or connection_id not in members:
                return []
            members.remove(connection_id)
            if not members:
                del self._rooms[room_code]
            return list(members)

    def rooms_for(self, connection_id):
        with self._lock:
            return [code for code, members in self._rooms.items() if connection_id in members]


class RedisReadySet(ReadySet):
    """Ready set shared by several server processes through Redis sets."""

    def __init__(self, client, prefix='wordchain:ready'):
        self._client = client
        self._prefix = prefix

    def _room_key(self, room_code):
        return f"{self._prefix}:room:{room_code}"

    def _conn_key(self, connection_id):
        return f"{self._prefix}:conn:{connection_id}"

    def register_ready(self, room_code, connection_id):
        key = self._room_key(room_code)
        pipe = self._client.pipeline()
        pipe.smembers(key)
        pipe.sadd(key, connection_id)
        pipe.sadd(self._conn_key(connection_id), room_code)
        members, _, _ = pipe.execute()
        return sorted(sid for sid in members if sid != connection_id)

    def list_ready(self, room_code):
        return sorted(self._client.smembers(self._room_key(room_code)))

    def unregister(self, room_code, connection_id):
        key = self._room_key(room_code)
        pipe = self._client.pipeline()
        pipe.srem(key, connection_id)
        pipe.srem(self._conn_key(connection_id), room_code)
        pipe.smembers(key)
        removed, _, remaining = pipe.execute()
        if not removed:
            return []
        # Redis drops empty sets on its own
        return sorted(remaining)

    def rooms_for(self, connection_id):
        return sorted(self._client.smembers(self._conn_key(connection_id)))


def build_ready_set(url=None) -> ReadySet:
    if url:
        return RedisReadySet(redis.from_url(url, decode_responses=True))
    return InMemoryReadySet()
