"""
Canonical workloads for every test type

Adapters that implement the EntityStore primitives run these from their
run() method, so all backends execute the same operations on the same data
and time the same phases.
"""

import logging
from typing import Callable, Dict, List, Type

from perfbench.backend import BackendContext, EntityStore
from perfbench.catalog import TestTypeId
from perfbench.entities import E, SimpleEntity, SimpleEntityIndexed, access_all
from perfbench.errors import CatalogLookupError, ScenarioVerificationError
from perfbench.models import TestType

logger = logging.getLogger(__name__)

Scenario = Callable[[EntityStore, BackendContext], None]


def _insert(store: EntityStore, context: BackendContext, entity_type: Type[E],
            scalars_only: bool = False, label: str = "insert") -> List[E]:
    factory = context.entity_factory()
    entities = factory.create_many(entity_type, context.entity_count, scalars_only)
    with context.clock.phase(label):
        store.put(entity_type, entities)
    return entities


def _create_update(store: EntityStore, context: BackendContext, entity_type: Type[E],
                   scalars_only: bool = False) -> List[E]:
    factory = context.entity_factory()
    entities = factory.create_many(entity_type, context.entity_count, scalars_only)
    with context.clock.phase("insert"):
        store.put(entity_type, entities)

    # Same stream continues, so the updated values are reproducible too
    factory.randomize_all(entities, scalars_only)
    with context.clock.phase("update"):
        store.update(entity_type, entities)
    return entities


def _crud(store: EntityStore, context: BackendContext, entity_type: Type[E],
          scalars_only: bool = False):
    _create_update(store, context, entity_type, scalars_only)

    clock = context.clock
    with clock.phase("load"):
        reloaded = store.load_all(entity_type)
    with clock.phase("access"):
        accessed = access_all(reloaded)
    with clock.phase("delete"):
        store.delete(entity_type, reloaded)

    if accessed != context.entity_count:
        raise ScenarioVerificationError(
            f"Loaded {accessed} {entity_type.__name__} objects, expected {context.entity_count}"
        )


def probe_indices(context: BackendContext) -> List[int]:
    """Deterministic sequence of positions into the inserted entities"""
    return context.generator.generate_indices(context.entity_count, context.entity_count - 1)


def _probe_entity(store: EntityStore, context: BackendContext, entity_type: Type[E],
                  entities: List[E]) -> E:
    entity_id = entities[probe_indices(context)[0]].id
    entity = store.get(entity_type, entity_id)
    if entity is None:
        raise ScenarioVerificationError(f"{entity_type.__name__} {entity_id} not found")
    return entity


def _query_by(store: EntityStore, context: BackendContext, entity_type: Type[E], field_name: str):
    entities = _insert(store, context, entity_type)
    value = getattr(_probe_entity(store, context, entity_type, entities), field_name)

    with context.clock.phase("query"):
        result = store.find_by(entity_type, field_name, value)
        access_all(result)

    logger.info(f"Entities found: {len(result)}")
    if not result:
        raise ScenarioVerificationError(
            f"Query on {entity_type.__name__}.{field_name} found nothing for a stored value"
        )


def _query_by_id(store: EntityStore, context: BackendContext):
    entities = _insert(store, context, SimpleEntity)
    entity_id = entities[probe_indices(context)[0]].id

    with context.clock.phase("query"):
        entity = store.get(SimpleEntity, entity_id)
        if entity is not None:
            access_all((entity,))

    if entity is None:
        raise ScenarioVerificationError(f"SimpleEntity {entity_id} not found")


def _query_by_id_random(store: EntityStore, context: BackendContext):
    entities = _insert(store, context, SimpleEntity)
    ids = [entities[index].id for index in probe_indices(context)]

    missing = 0
    with context.clock.phase("query"):
        for entity_id in ids:
            entity = store.get(SimpleEntity, entity_id)
            if entity is None:
                missing += 1
            else:
                access_all((entity,))

    if missing:
        raise ScenarioVerificationError(f"{missing} of {len(ids)} random lookups found nothing")


def _delete_all(store: EntityStore, context: BackendContext):
    _insert(store, context, SimpleEntity)
    _insert(store, context, SimpleEntityIndexed, label="insert indexed")

    clock = context.clock
    with clock.phase("delete"):
        store.delete_all(SimpleEntity)
    with clock.phase("delete indexed"):
        store.delete_all(SimpleEntityIndexed)

    remaining = store.count(SimpleEntity) + store.count(SimpleEntityIndexed)
    if remaining:
        raise ScenarioVerificationError(f"{remaining} objects left after delete all")


SCENARIOS: Dict[TestTypeId, Scenario] = {
    TestTypeId.CREATE_UPDATE: lambda s, c: _create_update(s, c, SimpleEntity),
    TestTypeId.CREATE_UPDATE_SCALARS: lambda s, c: _create_update(s, c, SimpleEntity, scalars_only=True),
    TestTypeId.CREATE_UPDATE_INDEXED: lambda s, c: _create_update(s, c, SimpleEntityIndexed),
    TestTypeId.CRUD: lambda s, c: _crud(s, c, SimpleEntity),
    TestTypeId.CRUD_SCALARS: lambda s, c: _crud(s, c, SimpleEntity, scalars_only=True),
    TestTypeId.CRUD_INDEXED: lambda s, c: _crud(s, c, SimpleEntityIndexed),
    TestTypeId.QUERY_STRING: lambda s, c: _query_by(s, c, SimpleEntity, "string_field"),
    TestTypeId.QUERY_STRING_INDEXED: lambda s, c: _query_by(s, c, SimpleEntityIndexed, "string_field"),
    TestTypeId.QUERY_INTEGER: lambda s, c: _query_by(s, c, SimpleEntity, "int_field"),
    TestTypeId.QUERY_INTEGER_INDEXED: lambda s, c: _query_by(s, c, SimpleEntityIndexed, "int_field"),
    TestTypeId.QUERY_ID: _query_by_id,
    TestTypeId.QUERY_ID_RANDOM: _query_by_id_random,
    TestTypeId.DELETE_ALL: _delete_all,
}


def run_scenario(store: EntityStore, context: BackendContext, test_type: TestType):
    """Execute the canonical workload of `test_type` against `store`"""
    scenario = SCENARIOS.get(test_type.identity)
    if scenario is None:
        raise CatalogLookupError(f"No scenario for test type {test_type.short_name!r}")

    if logger.isEnabledFor(logging.DEBUG):
        current = store.count(SimpleEntity) + store.count(SimpleEntityIndexed)
        logger.debug(f"Current data on db: {current} objects")
    scenario(store, context)
