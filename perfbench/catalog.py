"""
Fixed catalog of benchmark test types
"""

from enum import Enum
from typing import Dict, Tuple, Union

from perfbench.errors import CatalogLookupError
from perfbench.models import TestType


class TestTypeId(Enum):
    CREATE_UPDATE = "create-update"
    CREATE_UPDATE_SCALARS = "create-update-scalars"
    CREATE_UPDATE_INDEXED = "create-update-indexed"
    CRUD = "crud"
    CRUD_SCALARS = "crud-scalars"
    CRUD_INDEXED = "crud-indexed"
    QUERY_STRING = "query-string"
    QUERY_STRING_INDEXED = "query-string-indexed"
    QUERY_INTEGER = "query-integer"
    QUERY_INTEGER_INDEXED = "query-integer-indexed"
    QUERY_ID = "query-id"
    QUERY_ID_RANDOM = "query-id-random"
    DELETE_ALL = "delete-all"

    # Keeps pytest from collecting this enum as a test class
    __test__ = False


_DISPLAY_NAMES = (
    (TestTypeId.CREATE_UPDATE, "Create & Update"),
    (TestTypeId.CREATE_UPDATE_SCALARS, "Create & Update - scalars"),
    (TestTypeId.CREATE_UPDATE_INDEXED, "Create & Update - indexed"),
    (TestTypeId.CRUD, "Basic operations (CRUD)"),
    (TestTypeId.CRUD_SCALARS, "Basic operations (CRUD) - scalars"),
    (TestTypeId.CRUD_INDEXED, "Basic operations (CRUD) - indexed"),
    (TestTypeId.QUERY_STRING, "Query by string"),
    (TestTypeId.QUERY_STRING_INDEXED, "Query by string - indexed"),
    (TestTypeId.QUERY_INTEGER, "Query by integer"),
    (TestTypeId.QUERY_INTEGER_INDEXED, "Query by integer - indexed"),
    (TestTypeId.QUERY_ID, "Query by ID"),
    (TestTypeId.QUERY_ID_RANDOM, "Query by ID - random"),
    (TestTypeId.DELETE_ALL, "Delete All"),
)


class TestCatalog:
    """Ordered, read-only set of test types"""

    __test__ = False

    def __init__(self, entries=_DISPLAY_NAMES):
        types = tuple(
            TestType(identity=identity, display_name=display_name, short_name=identity.value)
            for identity, display_name in entries
        )
        self._types: Tuple[TestType, ...] = types
        self._by_identity: Dict[TestTypeId, TestType] = {t.identity: t for t in types}
        self._by_short_name: Dict[str, TestType] = {t.short_name: t for t in types}

    def all(self) -> Tuple[TestType, ...]:
        return self._types

    def by_identity(self, identity: Union[TestTypeId, str]) -> TestType:
        if isinstance(identity, str):
            return self.by_short_name(identity)
        try:
            return self._by_identity[identity]
        except KeyError:
            raise CatalogLookupError(f"Unknown test type: {identity!r}") from None

    def by_short_name(self, short_name: str) -> TestType:
        try:
            return self._by_short_name[short_name]
        except KeyError:
            known = ", ".join(self._by_short_name)
            raise CatalogLookupError(
                f"Unknown test type: {short_name!r} (known: {known})"
            ) from None

    def __len__(self):
        return len(self._types)

    def __iter__(self):
        return iter(self._types)


CATALOG = TestCatalog()
