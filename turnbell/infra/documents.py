from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any
from uuid import uuid4

import redis


@dataclass(frozen=True, slots=True)
class Document:
    id: str
    data: dict[str, Any]


class DocumentCollection:
    """A named group of schemaless JSON documents kept in a single Redis hash.

    Hash field = document id, hash value = JSON object. There are no secondary
    indexes: `find_one` scans the hash and returns the first document whose fields
    equal every given value.

    Nothing here is transactional. A caller that queries and then writes can race
    with another caller doing the same.
    """

    def __init__(self, *, r: redis.Redis, name: str, prefix: str) -> None:
        self._r = r
        self.name = name
        self.key = f"{prefix}:{name}"

    @staticmethod
    def new_id() -> str:
        return uuid4().hex

    def get(self, doc_id: str) -> Document | None:
        raw = self._r.hget(self.key, doc_id)
        if not raw:
            return None
        return Document(id=doc_id, data=json.loads(raw))

    def put(self, doc_id: str, data: Mapping[str, Any]) -> None:
        self._r.hset(self.key, doc_id, json.dumps(dict(data)))

    def find_one(self, **equals: Any) -> Document | None:
        for doc_id, raw in self._r.hscan_iter(self.key):
            data = json.loads(raw)
            if all(data.get(field) == value for field, value in equals.items()):
                return Document(id=doc_id, data=data)
        return None

    def count(self) -> int:
        return int(self._r.hlen(self.key))
