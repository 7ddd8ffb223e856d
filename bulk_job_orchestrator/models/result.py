"""
Batch result models for Bulk Job Orchestrator

A batch resolves to a result envelope: one ``LoadResult`` per submitted record
for load operations, or one ``QueryResultRef`` per retrievable result part for
query operations.
"""

from typing import Optional, Dict, Any, List, Union
from dataclasses import dataclass, field


@dataclass
class LoadResult:
    """Outcome of one submitted record."""

    id: Optional[str]
    success: bool
    errors: List[str] = field(default_factory=list)

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "LoadResult":
        """Decode one row of the remote's textual result (Id, Success, Error)."""
        error = row.get("Error")
        return cls(
            id=row.get("Id") or None,
            success=str(row.get("Success", "")).strip().lower() == "true",
            errors=[error] if error else []
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "success": self.success, "errors": list(self.errors)}


@dataclass
class QueryResultRef:
    """Pointer to one result part of a query batch."""

    id: str
    batch_id: str
    job_id: str

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "batch_id": self.batch_id, "job_id": self.job_id}


BatchResult = Union[List[LoadResult], List[QueryResultRef]]


def summarize_load_results(results: List[LoadResult]) -> Dict[str, Any]:
    """Count successes and failures of a load result envelope."""
    failed = [r for r in results if not r.success]
    return {
        "total": len(results),
        "succeeded": len(results) - len(failed),
        "failed": len(failed),
        "errors": [{"id": r.id, "errors": r.errors} for r in failed]
    }
