"""
Entity shapes used by every benchmark and the factory that populates them
"""

from dataclasses import dataclass, fields
from typing import ClassVar, Iterable, List, Optional, Tuple, Type, TypeVar

from perfbench.random_values import JavaRandom, MAX_LENGTH, MIN_LENGTH, random_string


@dataclass
class SimpleEntity:
    """Plain entity: primary key plus one field of every scalar type"""

    table_name: ClassVar[str] = "simple_entity"
    indexed_fields: ClassVar[Tuple[str, ...]] = ()

    id: int = 0
    boolean_field: bool = False
    byte_field: int = 0
    short_field: int = 0
    int_field: int = 0
    long_field: int = 0
    float_field: float = 0.0
    double_field: float = 0.0
    string_field: Optional[str] = None
    byte_array_field: Optional[bytes] = None


@dataclass
class SimpleEntityIndexed(SimpleEntity):
    """Same fields as SimpleEntity; string_field and int_field carry a secondary index"""

    table_name: ClassVar[str] = "simple_entity_indexed"
    indexed_fields: ClassVar[Tuple[str, ...]] = ("string_field", "int_field")


ENTITY_TYPES: Tuple[Type[SimpleEntity], ...] = (SimpleEntity, SimpleEntityIndexed)
FIELD_NAMES: Tuple[str, ...] = tuple(f.name for f in fields(SimpleEntity))

E = TypeVar("E", bound=SimpleEntity)


def _to_int8(value: int) -> int:
    value &= 0xFF
    return value - 0x100 if value & 0x80 else value


def _to_int16(value: int) -> int:
    value &= 0xFFFF
    return value - 0x10000 if value & 0x8000 else value


def access_all(entities: Iterable[SimpleEntity]) -> int:
    """Read every field of every entity; returns how many were touched"""
    accessed = 0
    for entity in entities:
        (entity.id, entity.boolean_field, entity.byte_field, entity.short_field,
         entity.int_field, entity.long_field, entity.float_field, entity.double_field,
         entity.string_field, entity.byte_array_field)
        accessed += 1
    return accessed


class EntityFactory:
    """Creates and re-randomizes entities from one seeded stream

    A new factory replays the same values, which is what makes runs on
    different backends see identical data.
    """

    def __init__(self, seed: int, min_length: int = MIN_LENGTH, max_length: int = MAX_LENGTH):
        self.random = JavaRandom(seed)
        self.min_length = min_length
        self.max_length = max_length

    def create(self, entity_type: Type[E], entity_id: int, scalars_only: bool = False) -> E:
        entity = entity_type(id=entity_id)
        self.randomize(entity, scalars_only)
        return entity

    def create_many(self, entity_type: Type[E], count: int, scalars_only: bool = False) -> List[E]:
        """Entities with ids 1..count"""
        return [self.create(entity_type, entity_id, scalars_only)
                for entity_id in range(1, count + 1)]

    def randomize(self, entity: SimpleEntity, scalars_only: bool = False):
        rnd = self.random
        entity.boolean_field = rnd.next_boolean()
        entity.byte_field = _to_int8(rnd.next_int())
        entity.short_field = _to_int16(rnd.next_int())
        entity.int_field = rnd.next_int(1000)
        entity.long_field = rnd.next_long()
        entity.double_field = rnd.next_double()
        entity.float_field = rnd.next_float()
        if not scalars_only:
            entity.string_field = random_string(rnd, self.min_length, self.max_length)
            entity.byte_array_field = self.random_bytes()

    def randomize_all(self, entities: Iterable[SimpleEntity], scalars_only: bool = False):
        for entity in entities:
            self.randomize(entity, scalars_only)

    def random_bytes(self) -> bytes:
        length = self.min_length + self.random.next_int(self.max_length - self.min_length)
        return self.random.next_bytes(length)
