"""Per-request trace returned with each answer instead of a shared log."""

import time
from dataclasses import dataclass, field
from typing import Any, Dict, List

from .query_builder import SynthesizedQuery


@dataclass
class RequestTrace:
    question: str
    events: List[Dict[str, Any]] = field(default_factory=list)
    queries: List[Dict[str, Any]] = field(default_factory=list)
    started_at: float = field(default_factory=time.time)

    def record(self, stage: str, **details: Any) -> None:
        elapsed_ms = round((time.time() - self.started_at) * 1000, 2)
        self.events.append({"stage": stage, "elapsed_ms": elapsed_ms, **details})

    def record_query(self, query: SynthesizedQuery, row_count: int) -> None:
        entry = query.to_dict()
        entry["rows"] = row_count
        self.queries.append(entry)

    def to_dict(self) -> Dict[str, Any]:
        return {"events": list(self.events), "queries": list(self.queries)}
