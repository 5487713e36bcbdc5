"""
app/domain/master_data.py

Read-only snapshot of reference entities used to validate an import.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

MASTER_DATA_KINDS: tuple[str, ...] = (
    "countries",
    "categories",
    "ranges",
    "media_types",
    "media_sub_types",
    "business_units",
    "pm_types",
    "campaigns",
)


@dataclass(frozen=True)
class ReferenceEntity:
    """
    ``{id, name}`` pair. ``parent_id`` holds the owning media type for
    media subtypes and the owning range for campaigns; ``sub_region`` is
    only set on countries.
    """

    id: int
    name: str
    parent_id: int | None = None
    sub_region: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"id": self.id, "name": self.name}
        if self.parent_id is not None:
            payload["parent_id"] = self.parent_id
        if self.sub_region is not None:
            payload["sub_region"] = self.sub_region
        return payload

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> ReferenceEntity:
        parent_id = payload.get("parent_id")
        sub_region = payload.get("sub_region")
        return cls(
            id=int(payload["id"]),
            name=str(payload["name"]),
            parent_id=int(parent_id) if parent_id is not None else None,
            sub_region=str(sub_region) if sub_region is not None else None,
        )


@dataclass(frozen=True)
class MasterData:
    countries: tuple[ReferenceEntity, ...] = ()
    categories: tuple[ReferenceEntity, ...] = ()
    ranges: tuple[ReferenceEntity, ...] = ()
    media_types: tuple[ReferenceEntity, ...] = ()
    media_sub_types: tuple[ReferenceEntity, ...] = ()
    business_units: tuple[ReferenceEntity, ...] = ()
    pm_types: tuple[ReferenceEntity, ...] = ()
    campaigns: tuple[ReferenceEntity, ...] = ()
    media_to_subtypes: dict[str, tuple[str, ...]] = field(default_factory=dict)

    def names(self, kind: str) -> frozenset[str]:
        if kind not in MASTER_DATA_KINDS:
            raise KeyError(f"Unknown master data kind: {kind}")
        entities: tuple[ReferenceEntity, ...] = getattr(self, kind)
        return frozenset(entity.name for entity in entities)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            kind: [entity.to_dict() for entity in getattr(self, kind)]
            for kind in MASTER_DATA_KINDS
        }
        payload["media_to_subtypes"] = {
            media_type: list(subtypes) for media_type, subtypes in self.media_to_subtypes.items()
        }
        return payload

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any] | None) -> MasterData:
        if not payload:
            return cls()
        lists = {
            kind: tuple(ReferenceEntity.from_dict(item) for item in payload.get(kind) or [])
            for kind in MASTER_DATA_KINDS
        }
        media_to_subtypes = {
            str(media_type): tuple(str(name) for name in subtypes)
            for media_type, subtypes in (payload.get("media_to_subtypes") or {}).items()
        }
        return cls(media_to_subtypes=media_to_subtypes, **lists)
