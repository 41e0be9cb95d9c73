"""Result shape for operations that process many items independently."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, is_dataclass
from typing import Any


@dataclass
class BatchFailure:
    """An item that could not be processed."""

    item: str
    error: str


@dataclass
class BatchResult:
    """Ordered successes and failures of a batch.

    Every input item ends up in exactly one of the two lists.
    """

    succeeded: list[Any] = field(default_factory=list)
    failed: list[BatchFailure] = field(default_factory=list)

    def add_success(self, item: Any) -> None:
        self.succeeded.append(item)

    def add_failure(self, item: str, error: str) -> None:
        self.failed.append(BatchFailure(item=item, error=error))

    @property
    def total(self) -> int:
        return len(self.succeeded) + len(self.failed)

    def to_envelope(self) -> dict:
        return {
            "success": True,
            "succeeded": [asdict(s) if is_dataclass(s) else s for s in self.succeeded],
            "failed": [asdict(f) for f in self.failed],
        }
