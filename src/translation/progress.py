"""
Run Progress Data Classes

Contains the RunProgress counter and the per-pair outcome records of a run.
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class RunProgress:
    """Global progress across all module x locale pairs of a run."""
    total_pairs: int = 0
    completed_pairs: int = 0

    @property
    def percent(self) -> int:
        """Completed share, rounded half up to a whole percent."""
        if self.total_pairs <= 0:
            return 0
        return int(self.completed_pairs * 100 / self.total_pairs + 0.5)

    def tick(self) -> None:
        self.completed_pairs += 1

    def describe(self) -> str:
        return f"{self.completed_pairs}/{self.total_pairs} ({self.percent}%)"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_pairs": self.total_pairs,
            "completed_pairs": self.completed_pairs,
            "percent": self.percent,
        }


@dataclass
class PairOutcome:
    """Result of one module/locale pair."""
    module_name: str
    folder_code: str
    success: bool
    strategy: Optional[str] = None   # "batch" | "fallback"
    output_path: Optional[str] = None
    error: Optional[str] = None
    error_code: Optional[str] = None


@dataclass
class RunSummary:
    """Everything a caller needs to inspect after run_pipeline returns."""
    job_dir: Optional[str] = None
    progress: RunProgress = field(default_factory=RunProgress)
    outcomes: List[PairOutcome] = field(default_factory=list)

    @property
    def succeeded(self) -> List[PairOutcome]:
        return [o for o in self.outcomes if o.success]

    @property
    def failed(self) -> List[PairOutcome]:
        return [o for o in self.outcomes if not o.success]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "job_dir": self.job_dir,
            "progress": self.progress.to_dict(),
            "succeeded": len(self.succeeded),
            "failed": len(self.failed),
            "outcomes": [asdict(o) for o in self.outcomes],
        }
