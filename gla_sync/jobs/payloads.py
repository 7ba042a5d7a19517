"""Typed argument payloads for the two batched-job hooks.

On the wire (scheduled_action.args) they are plain JSON lists:
create_batch -> `[page]`, process_item -> `[item_ids]`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from gla_sync.kernel.errors import ValidationError


def _to_int(value: Any, *, field: str) -> int:
    if isinstance(value, bool):
        raise ValidationError(message=f"{field} must be an integer", meta={field: value})
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(message=f"{field} must be an integer", meta={field: value}) from None


@dataclass(frozen=True)
class CreateBatchArgs:
    page: int

    def to_args(self) -> list[Any]:
        return [self.page]

    @classmethod
    def from_args(cls, args: list[Any]) -> "CreateBatchArgs":
        if len(args) != 1:
            raise ValidationError(message="create_batch expects [page]", meta={"args": args})
        page = _to_int(args[0], field="page")
        if page < 1:
            raise ValidationError(message="create_batch page must be >= 1", meta={"page": page})
        return cls(page=page)


@dataclass(frozen=True)
class ProcessItemArgs:
    item_ids: tuple[int, ...]

    def to_args(self) -> list[Any]:
        return [list(self.item_ids)]

    @classmethod
    def from_args(cls, args: list[Any]) -> "ProcessItemArgs":
        if len(args) != 1 or not isinstance(args[0], (list, tuple)):
            raise ValidationError(message="process_item expects [item_ids]", meta={"args": args})
        return cls(item_ids=tuple(_to_int(i, field="item_id") for i in args[0]))
