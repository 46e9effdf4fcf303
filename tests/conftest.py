"""
Pytest Configuration and Shared Fixtures.

Provides a recording backend adapter for runner tests and an in-process
stand-in for the Qdrant REST API.
"""

import copy
import json
from typing import Any, Dict, List, Optional, Set, Tuple
from urllib.parse import urlparse

import pytest

from perfbench.backend import BackendContext
from perfbench.db_clients import MemoryClient
from perfbench.models import TestType
from perfbench.random_values import WorkloadGenerator
from perfbench.scenarios import run_scenario


# =============================================================================
# Recording adapter
# =============================================================================


class RecordingAdapter:
    """Backend adapter that records every call and stores into a MemoryClient"""

    def __init__(self, name: str = "Recorder", fail_run_on: Optional[Set[str]] = None,
                 fail_set_up: bool = False, fail_tear_down: bool = False,
                 banner: str = "Recorder 1.0"):
        self._name = name
        self.fail_run_on = fail_run_on or set()
        self.fail_set_up = fail_set_up
        self.fail_tear_down = fail_tear_down
        self.banner = banner
        self.calls: List[Tuple[str, Optional[str]]] = []
        self.inserted: List[Any] = []
        self.updated: List[Any] = []
        self.store = MemoryClient()
        self.context: Optional[BackendContext] = None

    def name(self) -> str:
        return self._name

    def set_up(self, context: BackendContext):
        self.calls.append(("set_up", None))
        if self.fail_set_up:
            raise ConnectionError("storage unavailable")
        self.context = context
        # announced first so it is the banner the runner keeps for this backend
        context.announce_version(self.banner)
        self.store.set_up(context)

    def run(self, test_type: TestType):
        self.calls.append(("run", test_type.short_name))
        if test_type.short_name in self.fail_run_on:
            self.context.clock.start("query")
            raise RuntimeError(f"{test_type.short_name} exploded")
        run_scenario(self, self.context, test_type)

    def tear_down(self):
        self.calls.append(("tear_down", None))
        self.store.tear_down()
        if self.fail_tear_down:
            raise OSError("could not delete files")

    # EntityStore primitives, delegated after recording the written data

    def put(self, entity_type, entities):
        self.inserted.extend(copy.deepcopy(entities))
        self.store.put(entity_type, entities)

    def update(self, entity_type, entities):
        self.updated.extend(copy.deepcopy(entities))
        self.store.update(entity_type, entities)

    def load_all(self, entity_type):
        return self.store.load_all(entity_type)

    def get(self, entity_type, entity_id):
        return self.store.get(entity_type, entity_id)

    def find_by(self, entity_type, field_name, value):
        return self.store.find_by(entity_type, field_name, value)

    def delete(self, entity_type, entities):
        self.store.delete(entity_type, entities)

    def delete_all(self, entity_type):
        self.store.delete_all(entity_type)

    def count(self, entity_type):
        return self.store.count(entity_type)


@pytest.fixture
def recorder() -> RecordingAdapter:
    return RecordingAdapter()


@pytest.fixture
def generator() -> WorkloadGenerator:
    return WorkloadGenerator()


@pytest.fixture
def context(generator: WorkloadGenerator) -> BackendContext:
    return BackendContext(entity_count=20, generator=generator)


# =============================================================================
# Fake Qdrant REST API
# =============================================================================


class FakeResponse:
    def __init__(self, status: int, body: Dict[str, Any]):
        self.status = status
        self.body = body

    async def json(self) -> Dict[str, Any]:
        return self.body

    async def text(self) -> str:
        return json.dumps(self.body)

    async def __aenter__(self) -> "FakeResponse":
        return self

    async def __aexit__(self, *exc_info) -> bool:
        return False


_OK = {"result": True, "status": "ok"}
_NOT_FOUND = {"status": {"error": "Not found"}}


class FakeQdrantSession:
    """Implements the subset of the Qdrant REST API the client calls"""

    version = "1.9.2"

    def __init__(self, headers: Optional[Dict[str, str]] = None,
                 failures: Optional[Dict[Tuple[str, str], int]] = None):
        self.headers = headers or {}
        self.failures = failures or {}
        self.collections: Dict[str, Dict[int, Dict[str, Any]]] = {}
        self.indexes: Dict[str, Dict[str, str]] = {}
        self.requests: List[Tuple[str, str]] = []
        self.closed = False

    def request(self, method: str, url: str, **kwargs) -> FakeResponse:
        parsed = urlparse(url)
        self.requests.append((method, parsed.path))
        for (failing_method, suffix), status in self.failures.items():
            if failing_method == method and parsed.path.endswith(suffix):
                return FakeResponse(status, {"status": {"error": "injected failure"}})
        status, body = self._handle(method, parsed.path.strip("/").split("/"), kwargs.get("json"))
        return FakeResponse(status, copy.deepcopy(body))

    async def close(self):
        self.closed = True

    def _handle(self, method: str, parts: List[str], body: Optional[Dict[str, Any]]):
        if parts == [""]:
            return 200, {"title": "qdrant - vector search engine", "version": self.version}

        name, rest = parts[1], parts[2:]
        if not rest:
            if method == "PUT":
                self.collections[name] = {}
                self.indexes[name] = {}
                return 200, _OK
            if method == "DELETE":
                if name not in self.collections:
                    return 404, _NOT_FOUND
                del self.collections[name]
                del self.indexes[name]
                return 200, _OK

        if name not in self.collections:
            return 404, _NOT_FOUND
        points = self.collections[name]

        if rest == ["index"]:
            self.indexes[name][body["field_name"]] = body["field_schema"]
            return 200, _OK
        if rest == ["points"] and method == "PUT":
            for point in body["points"]:
                points[point["id"]] = copy.deepcopy(point)
            return 200, _OK
        if rest == ["points"] and method == "POST":
            return 200, {"result": [points[i] for i in body["ids"] if i in points]}
        if rest == ["points", "scroll"]:
            matches = [p for _, p in sorted(points.items()) if self._matches(p, body.get("filter"))]
            if body.get("offset") is not None:
                matches = [p for p in matches if p["id"] >= body["offset"]]
            limit = body["limit"]
            next_offset = matches[limit]["id"] if len(matches) > limit else None
            return 200, {"result": {"points": matches[:limit], "next_page_offset": next_offset}}
        if rest == ["points", "delete"]:
            if "points" in body:
                doomed = list(body["points"])
            else:
                doomed = [i for i, p in points.items() if self._matches(p, body["filter"])]
            for point_id in doomed:
                points.pop(point_id, None)
            return 200, _OK
        if rest == ["points", "count"]:
            return 200, {"result": {"count": len(points)}}
        return 404, _NOT_FOUND

    @staticmethod
    def _matches(point: Dict[str, Any], query_filter: Optional[Dict[str, Any]]) -> bool:
        if not query_filter:
            return True
        return all(
            point["payload"].get(condition["key"]) == condition["match"]["value"]
            for condition in query_filter.get("must", [])
        )


@pytest.fixture
def qdrant_sessions() -> List[FakeQdrantSession]:
    """Every fake session handed out by qdrant_session_factory, in order"""
    return []


@pytest.fixture
def qdrant_session_factory(qdrant_sessions: List[FakeQdrantSession]):
    def factory(**kwargs) -> FakeQdrantSession:
        session = FakeQdrantSession(**kwargs)
        qdrant_sessions.append(session)
        return session
    return factory
