"""Type definitions for generation pipeline runs."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

from costimator.boq.generator import BOQGenerationResult
from costimator.models import BOQLine, TakeoffLine


class RunStatus(str, Enum):
    """Status of a generation run."""

    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    PARTIAL_SUCCESS = "PARTIAL_SUCCESS"
    SKIPPED = "SKIPPED"


@dataclass
class GenerationResult:
    """Result of one schedule → takeoff → BOQ run for a project."""

    project_id: str
    status: RunStatus
    run_id: Optional[str] = None
    takeoff_lines: list[TakeoffLine] = field(default_factory=list)
    boq: Optional[BOQGenerationResult] = None
    calculation_errors: list[str] = field(default_factory=list)
    saved_to_run: bool = False
    version_id: Optional[str] = None
    started_at: datetime = field(default_factory=datetime.utcnow)
    duration_seconds: float = 0.0

    @property
    def success(self) -> bool:
        """Check if the run produced usable output."""
        return self.status in (RunStatus.SUCCESS, RunStatus.PARTIAL_SUCCESS)

    @property
    def boq_lines(self) -> list[BOQLine]:
        return self.boq.boq_lines if self.boq else []

    @property
    def warnings(self) -> list[str]:
        return self.boq.warnings if self.boq else []

    @property
    def errors(self) -> list[str]:
        """Calculation and aggregation errors, in pipeline order."""
        return self.calculation_errors + (self.boq.errors if self.boq else [])
