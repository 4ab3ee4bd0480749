"""Resolve denormalized element names to network topology nodes."""

from typing import Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session

from outage_sync.models.fact import NetworkElement


class NetworkElementMatcher:
    """Exact, trimmed, case-sensitive name matching within one element type.

    Duplicate reference names resolve to the lowest element key, so the
    result for a given reference set and name never changes.
    """

    def __init__(self, type_key: int, elements: Iterable[tuple[int, str | None, int]]):
        """Build the lookup index.

        Args:
            type_key: Element type every match must belong to
            elements: (element_key, name, type_key) rows; other types are ignored
        """
        self.type_key = type_key
        self._index: dict[str, int] = {}

        for element_key, name, element_type in elements:
            if element_type != type_key or name is None:
                continue
            trimmed = name.strip()
            if not trimmed:
                continue
            current = self._index.get(trimmed)
            if current is None or element_key < current:
                self._index[trimmed] = element_key

    @classmethod
    def load(cls, session: Session, type_key: int) -> "NetworkElementMatcher":
        """Read the reference elements of one type from the fact schema."""
        rows = session.execute(
            select(NetworkElement.element_key, NetworkElement.name, NetworkElement.type_key)
            .where(NetworkElement.type_key == type_key)
        ).all()
        return cls(type_key, rows)

    def match(self, name: str | None) -> int | None:
        """Return the matching element key, or None when unmatched."""
        if name is None:
            return None
        trimmed = name.strip()
        if not trimmed:
            return None
        return self._index.get(trimmed)

    def __len__(self) -> int:
        return len(self._index)
