"""
Reference storage backends for the persistence benchmark harness

Each client implements the BackendAdapter contract and the EntityStore
primitives; run() hands the test type to the shared scenarios.
"""

import asyncio
import base64
import copy
import logging
import os
import platform
import sqlite3
from collections import defaultdict
from typing import Any, Callable, Dict, Iterable, List, Optional, Set, Type

import aiohttp

from perfbench.backend import BackendAdapter, BackendContext
from perfbench.config import Config, DatabaseConfig
from perfbench.entities import E, ENTITY_TYPES, FIELD_NAMES, SimpleEntity
from perfbench.errors import BackendRequestError, ConfigurationError
from perfbench.models import TestType
from perfbench.scenarios import run_scenario

logger = logging.getLogger(__name__)


def _chunks(items: List[Any], size: int) -> Iterable[List[Any]]:
    for start in range(0, len(items), size):
        yield items[start:start + size]


class MemoryClient:
    """In-process dict store

    The indexed entity type gets a hand-kept secondary index per indexed
    field, so the indexed variants pay for index maintenance and profit on
    lookups just like a real engine.
    """

    def __init__(self, config: Optional[DatabaseConfig] = None):
        self.config = config or DatabaseConfig()
        self.context: Optional[BackendContext] = None
        self._tables: Dict[type, Dict[int, SimpleEntity]] = {}
        self._indexes: Dict[type, Dict[str, Dict[Any, Set[int]]]] = {}

    def name(self) -> str:
        return "Memory"

    def set_up(self, context: BackendContext):
        self.context = context
        self._tables = {entity_type: {} for entity_type in ENTITY_TYPES}
        self._indexes = {
            entity_type: {field_name: defaultdict(set) for field_name in entity_type.indexed_fields}
            for entity_type in ENTITY_TYPES
        }
        context.announce_version(
            f"Memory store ({platform.python_implementation()} {platform.python_version()})"
        )

    def run(self, test_type: TestType):
        run_scenario(self, self.context, test_type)

    def tear_down(self):
        self._tables = {}
        self._indexes = {}
        self.context = None

    def _index_add(self, entity_type: type, entity: SimpleEntity):
        for field_name, index in self._indexes[entity_type].items():
            index[getattr(entity, field_name)].add(entity.id)

    def _index_remove(self, entity_type: type, entity: SimpleEntity):
        for field_name, index in self._indexes[entity_type].items():
            value = getattr(entity, field_name)
            ids = index.get(value)
            if ids is not None:
                ids.discard(entity.id)
                if not ids:
                    del index[value]

    def put(self, entity_type: Type[E], entities: List[E]):
        table = self._tables[entity_type]
        for entity in entities:
            previous = table.get(entity.id)
            if previous is not None:
                self._index_remove(entity_type, previous)
            stored = copy.copy(entity)
            table[entity.id] = stored
            self._index_add(entity_type, stored)

    def update(self, entity_type: Type[E], entities: List[E]):
        table = self._tables[entity_type]
        missing = [entity.id for entity in entities if entity.id not in table]
        if missing:
            raise BackendRequestError(f"Cannot update {len(missing)} unknown {entity_type.__name__} objects")
        self.put(entity_type, entities)

    def load_all(self, entity_type: Type[E]) -> List[E]:
        return [copy.copy(entity) for entity in self._tables[entity_type].values()]

    def get(self, entity_type: Type[E], entity_id: int) -> Optional[E]:
        entity = self._tables[entity_type].get(entity_id)
        return copy.copy(entity) if entity is not None else None

    def find_by(self, entity_type: Type[E], field_name: str, value: Any) -> List[E]:
        table = self._tables[entity_type]
        index = self._indexes[entity_type].get(field_name)
        if index is not None:
            return [copy.copy(table[entity_id]) for entity_id in sorted(index.get(value, ()))]
        return [copy.copy(entity) for entity in table.values() if getattr(entity, field_name) == value]

    def delete(self, entity_type: Type[E], entities: List[E]):
        table = self._tables[entity_type]
        for entity in entities:
            stored = table.pop(entity.id, None)
            if stored is not None:
                self._index_remove(entity_type, stored)

    def delete_all(self, entity_type: Type[E]):
        self._tables[entity_type].clear()
        for index in self._indexes[entity_type].values():
            index.clear()

    def count(self, entity_type: Type[E]) -> int:
        return len(self._tables[entity_type])


_SQLITE_TYPES = {
    "id": "INTEGER PRIMARY KEY",
    "boolean_field": "INTEGER NOT NULL",
    "byte_field": "INTEGER NOT NULL",
    "short_field": "INTEGER NOT NULL",
    "int_field": "INTEGER NOT NULL",
    "long_field": "INTEGER NOT NULL",
    "float_field": "REAL NOT NULL",
    "double_field": "REAL NOT NULL",
    "string_field": "TEXT",
    "byte_array_field": "BLOB",
}
_SQLITE_SUFFIXES = ("", "-journal", "-wal", "-shm")


class SqliteClient:
    """Embedded relational store, one table per entity type"""

    def __init__(self, config: DatabaseConfig):
        self.config = config
        self.path = config.database
        self.context: Optional[BackendContext] = None
        self.connection: Optional[sqlite3.Connection] = None

    def name(self) -> str:
        return "SQLite"

    def set_up(self, context: BackendContext):
        self.context = context
        if self._delete_files():
            logger.info("DB existed before start - deleted")

        self.connection = sqlite3.connect(self.path)
        with self.connection:
            for entity_type in ENTITY_TYPES:
                columns = ", ".join(f"{name} {_SQLITE_TYPES[name]}" for name in FIELD_NAMES)
                self.connection.execute(f"CREATE TABLE {entity_type.table_name} ({columns})")
                for field_name in entity_type.indexed_fields:
                    self.connection.execute(
                        f"CREATE INDEX idx_{entity_type.table_name}_{field_name} "
                        f"ON {entity_type.table_name} ({field_name})"
                    )

        version = self.connection.execute("SELECT sqlite_version()").fetchone()[0]
        context.announce_version(f"SQLite version {version}")

    def run(self, test_type: TestType):
        run_scenario(self, self.context, test_type)

    def tear_down(self):
        if self.connection is not None:
            self.connection.close()
            self.connection = None
        deleted = self._delete_files()
        logger.debug(f"DB deleted: {deleted}")
        self.context = None

    def _delete_files(self) -> bool:
        deleted = False
        for suffix in _SQLITE_SUFFIXES:
            path = self.path + suffix
            if os.path.exists(path):
                os.remove(path)
                deleted = True
        return deleted

    @staticmethod
    def _row(entity: SimpleEntity) -> tuple:
        return tuple(getattr(entity, name) for name in FIELD_NAMES)

    @staticmethod
    def _entity(entity_type: Type[E], row: tuple) -> E:
        entity = entity_type(*row)
        entity.boolean_field = bool(entity.boolean_field)
        return entity

    def _select(self, entity_type: Type[E], where: str = "", params: tuple = ()) -> List[E]:
        cursor = self.connection.execute(
            f"SELECT {', '.join(FIELD_NAMES)} FROM {entity_type.table_name} {where}", params
        )
        return [self._entity(entity_type, row) for row in cursor.fetchall()]

    def put(self, entity_type: Type[E], entities: List[E]):
        placeholders = ", ".join("?" for _ in FIELD_NAMES)
        with self.connection:
            self.connection.executemany(
                f"INSERT INTO {entity_type.table_name} ({', '.join(FIELD_NAMES)}) "
                f"VALUES ({placeholders})",
                [self._row(entity) for entity in entities],
            )

    def update(self, entity_type: Type[E], entities: List[E]):
        assignments = ", ".join(f"{name} = ?" for name in FIELD_NAMES[1:])
        with self.connection:
            self.connection.executemany(
                f"UPDATE {entity_type.table_name} SET {assignments} WHERE id = ?",
                [self._row(entity)[1:] + (entity.id,) for entity in entities],
            )

    def load_all(self, entity_type: Type[E]) -> List[E]:
        return self._select(entity_type)

    def get(self, entity_type: Type[E], entity_id: int) -> Optional[E]:
        found = self._select(entity_type, "WHERE id = ?", (entity_id,))
        return found[0] if found else None

    def find_by(self, entity_type: Type[E], field_name: str, value: Any) -> List[E]:
        if field_name not in FIELD_NAMES:
            raise ValueError(f"Unknown field: {field_name}")
        return self._select(entity_type, f"WHERE {field_name} = ?", (value,))

    def delete(self, entity_type: Type[E], entities: List[E]):
        with self.connection:
            self.connection.executemany(
                f"DELETE FROM {entity_type.table_name} WHERE id = ?",
                [(entity.id,) for entity in entities],
            )

    def delete_all(self, entity_type: Type[E]):
        with self.connection:
            self.connection.execute(f"DELETE FROM {entity_type.table_name}")

    def count(self, entity_type: Type[E]) -> int:
        return self.connection.execute(f"SELECT COUNT(*) FROM {entity_type.table_name}").fetchone()[0]


_QDRANT_PAYLOAD_SCHEMAS = {
    "string_field": "keyword",
    "int_field": "integer",
}


def entity_to_point(entity: SimpleEntity) -> Dict[str, Any]:
    """Qdrant point for an entity; bytes travel base64 encoded in the payload"""
    payload = {name: getattr(entity, name) for name in FIELD_NAMES[1:]}
    if entity.byte_array_field is not None:
        payload["byte_array_field"] = base64.b64encode(entity.byte_array_field).decode("ascii")
    # Every point needs a vector, the benchmark never searches by it
    return {"id": entity.id, "vector": [1.0], "payload": payload}


def point_to_entity(entity_type: Type[E], point: Dict[str, Any]) -> E:
    payload = dict(point.get("payload") or {})
    raw = payload.get("byte_array_field")
    if raw is not None:
        payload["byte_array_field"] = base64.b64decode(raw)
    return entity_type(id=point["id"], **{name: payload.get(name) for name in FIELD_NAMES[1:]})


class QdrantClient:
    """Qdrant HTTP API client

    The core is synchronous; this client drives its aiohttp session on a
    private event loop that lives from set_up to tear_down.
    """

    batch_size = 1000

    def __init__(self, config: DatabaseConfig,
                 session_factory: Optional[Callable[..., Any]] = None):
        self.config = config
        self.base_url = f"http://{config.host}:{config.port}"
        self.session_factory = session_factory or aiohttp.ClientSession
        self.session: Optional[aiohttp.ClientSession] = None
        self.context: Optional[BackendContext] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    def name(self) -> str:
        return "Qdrant"

    def set_up(self, context: BackendContext):
        self.context = context
        self._loop = asyncio.new_event_loop()
        try:
            self._call(self._connect())
        except Exception:
            self._close()
            raise

    def run(self, test_type: TestType):
        run_scenario(self, self.context, test_type)

    def tear_down(self):
        try:
            if self.session is not None:
                self._call(self._drop_collections())
        finally:
            self._close()
            self.context = None

    def _call(self, coro):
        return self._loop.run_until_complete(coro)

    def _close(self):
        if self.session is not None:
            self._loop.run_until_complete(self.session.close())
            self.session = None
        if self._loop is not None:
            self._loop.close()
            self._loop = None

    def collection(self, entity_type: type) -> str:
        return f"{self.config.collection}_{entity_type.table_name}"

    async def _request(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None,
                       allow_missing: bool = False) -> Optional[Dict[str, Any]]:
        async with self.session.request(method, f"{self.base_url}{path}", json=payload) as response:
            if response.status == 404 and allow_missing:
                return None
            if response.status not in (200, 201, 202):
                response_text = await response.text()
                raise BackendRequestError(
                    f"Qdrant {method} {path} failed: {response.status} - {response_text[:100]}"
                )
            return await response.json()

    async def _connect(self):
        headers = {"api-key": self.config.password} if self.config.password else {}
        self.session = self.session_factory(headers=headers)

        info = await self._request("GET", "/")
        self.context.announce_version(f"Qdrant {info.get('version', 'unknown')}")

        await self._drop_collections()
        for entity_type in ENTITY_TYPES:
            name = self.collection(entity_type)
            await self._request("PUT", f"/collections/{name}",
                                {"vectors": {"size": 1, "distance": "Dot"}})
            for field_name in entity_type.indexed_fields:
                await self._request("PUT", f"/collections/{name}/index?wait=true", {
                    "field_name": field_name,
                    "field_schema": _QDRANT_PAYLOAD_SCHEMAS[field_name],
                })
            logger.debug(f"Qdrant collection {name} created")

    async def _drop_collections(self):
        for entity_type in ENTITY_TYPES:
            await self._request("DELETE", f"/collections/{self.collection(entity_type)}",
                                allow_missing=True)

    async def _upsert(self, entity_type: type, entities: List[SimpleEntity]):
        path = f"/collections/{self.collection(entity_type)}/points?wait=true"
        for chunk in _chunks(entities, self.batch_size):
            await self._request("PUT", path, {"points": [entity_to_point(e) for e in chunk]})

    async def _scroll(self, entity_type: Type[E],
                      query_filter: Optional[Dict[str, Any]] = None) -> List[E]:
        path = f"/collections/{self.collection(entity_type)}/points/scroll"
        entities: List[E] = []
        offset = None
        while True:
            body: Dict[str, Any] = {"limit": self.batch_size, "with_payload": True, "with_vector": False}
            if query_filter is not None:
                body["filter"] = query_filter
            if offset is not None:
                body["offset"] = offset
            data = await self._request("POST", path, body)
            result = data["result"]
            entities.extend(point_to_entity(entity_type, point) for point in result["points"])
            offset = result.get("next_page_offset")
            if offset is None:
                return entities

    async def _retrieve(self, entity_type: Type[E], entity_id: int) -> Optional[E]:
        data = await self._request("POST", f"/collections/{self.collection(entity_type)}/points",
                                   {"ids": [entity_id], "with_payload": True, "with_vector": False})
        points = data["result"]
        return point_to_entity(entity_type, points[0]) if points else None

    async def _delete_points(self, entity_type: type, selector: Dict[str, Any]):
        await self._request(
            "POST", f"/collections/{self.collection(entity_type)}/points/delete?wait=true", selector
        )

    async def _delete_ids(self, entity_type: type, ids: List[int]):
        for chunk in _chunks(ids, self.batch_size):
            await self._delete_points(entity_type, {"points": chunk})

    async def _count(self, entity_type: type) -> int:
        data = await self._request("POST", f"/collections/{self.collection(entity_type)}/points/count",
                                   {"exact": True})
        return data["result"]["count"]

    def put(self, entity_type: Type[E], entities: List[E]):
        self._call(self._upsert(entity_type, entities))

    def update(self, entity_type: Type[E], entities: List[E]):
        self._call(self._upsert(entity_type, entities))

    def load_all(self, entity_type: Type[E]) -> List[E]:
        return self._call(self._scroll(entity_type))

    def get(self, entity_type: Type[E], entity_id: int) -> Optional[E]:
        return self._call(self._retrieve(entity_type, entity_id))

    def find_by(self, entity_type: Type[E], field_name: str, value: Any) -> List[E]:
        query_filter = {"must": [{"key": field_name, "match": {"value": value}}]}
        return self._call(self._scroll(entity_type, query_filter))

    def delete(self, entity_type: Type[E], entities: List[E]):
        self._call(self._delete_ids(entity_type, [entity.id for entity in entities]))

    def delete_all(self, entity_type: Type[E]):
        # An empty filter matches every point
        self._call(self._delete_points(entity_type, {"filter": {}}))

    def count(self, entity_type: Type[E]) -> int:
        return self._call(self._count(entity_type))


BACKENDS: Dict[str, Callable[[DatabaseConfig], BackendAdapter]] = {
    'memory': MemoryClient,
    'sqlite': SqliteClient,
    'qdrant': QdrantClient,
}


def create_adapters(config: Config, names: Optional[Iterable[str]] = None) -> Dict[str, BackendAdapter]:
    """Registration map for the selected backends, in the order given"""
    if not names:
        names = config.benchmark_settings.get('backends') or list(BACKENDS)

    adapters: Dict[str, BackendAdapter] = {}
    for name in names:
        if name not in BACKENDS:
            raise ConfigurationError(f"Unknown backend {name!r} (known: {', '.join(BACKENDS)})")
        adapters[name] = BACKENDS[name](config.database_config(name))
    return adapters
