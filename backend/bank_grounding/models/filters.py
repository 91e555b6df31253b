"""Metadata filter predicate applied before vector scoring."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, AbstractSet, Literal, Sequence

from bank_grounding.models.entities import ALL_BANK_TYPES, Chunk

BankScopeKind = Literal["any", "global", "bank"]


@dataclass(frozen=True, slots=True)
class BankScope:
    """Which bank association a chunk must carry.

    ``any`` leaves the bank unconstrained, ``global`` keeps only chunks with
    no bank association, and ``bank`` keeps chunks of exactly one idrssd.
    """

    kind: BankScopeKind = "any"
    idrssd: str | None = None

    def __post_init__(self) -> None:
        if self.kind == "bank" and not self.idrssd:
            raise ValueError("bank scope requires an idrssd")
        if self.kind != "bank" and self.idrssd is not None:
            raise ValueError(f"{self.kind} scope does not take an idrssd")

    @classmethod
    def any(cls) -> "BankScope":
        return cls("any")

    @classmethod
    def global_only(cls) -> "BankScope":
        return cls("global")

    @classmethod
    def bank(cls, idrssd: str) -> "BankScope":
        return cls("bank", idrssd)

    @classmethod
    def from_request(cls, fields_set: AbstractSet[str], idrssd: str | None, field_name: str = "idrssd") -> "BankScope":
        """Build a scope from a parsed request body.

        An omitted field means every bank; an explicit ``null`` means global
        content only.
        """
        if field_name not in fields_set:
            return cls.any()
        if idrssd is None:
            return cls.global_only()
        return cls.bank(idrssd)

    def matches(self, idrssd: str | None) -> bool:
        if self.kind == "any":
            return True
        if self.kind == "global":
            return idrssd is None
        return idrssd == self.idrssd


@dataclass(frozen=True, slots=True)
class ChunkFilters:
    """Clauses a chunk must satisfy to be scored. Omitted clauses match all."""

    bank_scope: BankScope = BankScope()
    bank_types: tuple[str, ...] = ()
    topics: tuple[str, ...] = ()

    @classmethod
    def build(
        cls,
        bank_scope: BankScope | None = None,
        bank_types: Sequence[str] | None = None,
        topics: Sequence[str] | None = None,
    ) -> "ChunkFilters":
        return cls(
            bank_scope=bank_scope or BankScope.any(),
            bank_types=tuple(bank_types or ()),
            topics=tuple(topics or ()),
        )

    def matches(self, chunk: Chunk) -> bool:
        if not self.bank_scope.matches(chunk.idrssd):
            return False
        if self.bank_types:
            tags = set(chunk.bank_types)
            if ALL_BANK_TYPES not in tags and tags.isdisjoint(self.bank_types):
                return False
        if self.topics and set(chunk.topics).isdisjoint(self.topics):
            return False
        return True

    def to_sql(self, table: str = "chunks") -> tuple[str, list[Any]]:
        """Render the predicate as a WHERE fragment over ``table``."""
        clauses: list[str] = []
        params: list[Any] = []
        scope = self.bank_scope
        if scope.kind == "global":
            clauses.append(f"{table}.idrssd IS NULL")
        elif scope.kind == "bank":
            clauses.append(f"{table}.idrssd = ?")
            params.append(scope.idrssd)
        if self.bank_types:
            wanted = [*self.bank_types, ALL_BANK_TYPES]
            placeholders = ",".join("?" for _ in wanted)
            clauses.append(
                f"EXISTS (SELECT 1 FROM json_each({table}.bank_types) WHERE json_each.value IN ({placeholders}))"
            )
            params.extend(wanted)
        if self.topics:
            placeholders = ",".join("?" for _ in self.topics)
            clauses.append(
                f"EXISTS (SELECT 1 FROM json_each({table}.topics) WHERE json_each.value IN ({placeholders}))"
            )
            params.extend(self.topics)
        if not clauses:
            return "1 = 1", params
        return " AND ".join(clauses), params

    def as_dict(self) -> dict[str, Any]:
        return {
            "bank_scope": self.bank_scope.kind,
            "idrssd": self.bank_scope.idrssd,
            "bank_types": list(self.bank_types),
            "topics": list(self.topics),
        }


__all__ = ["BankScope", "ChunkFilters"]
