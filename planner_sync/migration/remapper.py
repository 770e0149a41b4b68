"""
Identifier remapper
Allocates target ids for source ids, one namespace per entity type
"""

import re
import uuid
from typing import Any, Dict, Optional, Set

# UUID versions 1-5, RFC 4122 variant
TARGET_ID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[1-5][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$",
    re.IGNORECASE,
)


def is_valid_target_id(value: Any) -> bool:
    """Whether value has the remote store's identifier syntax"""
    return isinstance(value, str) and bool(TARGET_ID_PATTERN.match(value))


def new_target_id() -> str:
    return str(uuid.uuid4())


class IdRemapper:
    """Source id -> target id tables

    ``allocate`` is idempotent per (entity_type, source_id). An allocation only
    becomes visible to ``resolve`` once it is committed, i.e. once the entity
    has actually been created at the target.
    """

    def __init__(self):
        self._allocated: Dict[str, Dict[str, str]] = {}
        self._committed: Dict[str, Set[str]] = {}

    def allocate(self, entity_type: str, source_id: Optional[str]) -> str:
        """Get the target id for source_id, allocating one on first use

        A missing source id always gets a fresh id that is not recorded.
        """
        if not source_id:
            return new_target_id()

        table = self._allocated.setdefault(entity_type, {})
        target_id = table.get(source_id)
        if target_id is None:
            target_id = new_target_id()
            table[source_id] = target_id
        return target_id

    def commit(self, entity_type: str, source_id: Optional[str]) -> None:
        """Mark the allocation as created at the target"""
        if source_id and source_id in self._allocated.get(entity_type, {}):
            self._committed.setdefault(entity_type, set()).add(source_id)

    def discard(self, entity_type: str, source_id: Optional[str]) -> None:
        """Drop an allocation whose create call failed"""
        if not source_id:
            return
        self._allocated.get(entity_type, {}).pop(source_id, None)
        self._committed.get(entity_type, set()).discard(source_id)

    def resolve(self, entity_type: str, source_id: Optional[str]) -> Optional[str]:
        """Target id of a created entity, None when unknown or not created"""
        if not source_id or not self.is_committed(entity_type, source_id):
            return None
        return self._allocated[entity_type][source_id]

    def is_committed(self, entity_type: str, source_id: Optional[str]) -> bool:
        return bool(source_id) and source_id in self._committed.get(entity_type, set())

    def mapping(self, entity_type: str) -> Dict[str, str]:
        """Copy of the committed source -> target table"""
        committed = self._committed.get(entity_type, set())
        table = self._allocated.get(entity_type, {})
        return {source: target for source, target in table.items() if source in committed}

    def count(self, entity_type: str) -> int:
        return len(self._committed.get(entity_type, set()))
