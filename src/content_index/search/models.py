"""Search data models."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from content_index.search.fields import DocumentId, Fields


@dataclass(frozen=True, slots=True)
class SearchHit:
    """One ranked search result."""

    doc_id: DocumentId
    score: int
    fields: Fields = field(default_factory=dict, compare=False, repr=False)


class MutationOp(str, Enum):
    ADD = "add"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(frozen=True, slots=True)
class MutationRecord:
    """A single entry of the mutation log."""

    seq: int
    op: MutationOp
    doc_id: DocumentId
    fields: Fields | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"seq": self.seq, "op": self.op.value, "id": self.doc_id}
        if self.fields is not None:
            data["fields"] = self.fields
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MutationRecord:
        return cls(
            seq=int(data["seq"]),
            op=MutationOp(data["op"]),
            doc_id=data["id"],
            fields=data.get("fields"),
        )
