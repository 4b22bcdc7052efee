"""moltmem types -- memory categories and the MemoryRecord result object."""

from enum import Enum
from typing import Any, Dict, Optional


class MemoryCategory(str, Enum):
    """Closed set of categories a memory can belong to."""

    PREFERENCE = "preference"
    FACT = "fact"
    DECISION = "decision"
    ENTITY = "entity"
    CONVERSATION = "conversation"
    OTHER = "other"

    @classmethod
    def values(cls) -> tuple:
        return tuple(c.value for c in cls)

    @classmethod
    def is_known(cls, value: Optional[str]) -> bool:
        return value in cls.values()


DEFAULT_CATEGORY = MemoryCategory.OTHER.value


class MemoryRecord:
    """One stored memory as returned by the store.

    ``category`` is kept as a plain string: the host may pass categories
    outside MemoryCategory and they are returned exactly as stored.
    """

    __slots__ = (
        "id",
        "text",
        "category",
        "importance",
        "created_at",
        "updated_at",
        "session_key",
        "metadata",
    )

    def __init__(
        self,
        id: str,
        text: str,
        category: str = DEFAULT_CATEGORY,
        importance: float = 0.7,
        created_at: str = "",
        updated_at: str = "",
        session_key: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ):
        self.id = id
        self.text = text
        self.category = category
        self.importance = importance
        self.created_at = created_at
        self.updated_at = updated_at or created_at
        self.session_key = session_key
        self.metadata = metadata

    def to_dict(self) -> Dict[str, Any]:
        """Host-facing representation (camelCase keys, absent fields omitted)."""
        data: Dict[str, Any] = {
            "id": self.id,
            "text": self.text,
            "category": self.category,
            "importance": self.importance,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }
        if self.session_key is not None:
            data["sessionKey"] = self.session_key
        if self.metadata is not None:
            data["metadata"] = self.metadata
        return data

    def __eq__(self, other) -> bool:
        if not isinstance(other, MemoryRecord):
            return NotImplemented
        return all(getattr(self, s) == getattr(other, s) for s in self.__slots__)

    def __repr__(self) -> str:
        preview = self.text[:40]
        return f"MemoryRecord(id={self.id!r}, category={self.category!r}, importance={self.importance!r}, text={preview!r})"
