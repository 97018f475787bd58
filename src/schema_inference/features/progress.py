"""
Extraction progress tracking

Turns the ``(completed, total, message)`` callbacks of the extraction phases
into a FeatureExtractionProgress snapshot that a UI or workflow can poll.
"""
from __future__ import annotations

import copy
import threading
from typing import Any, Callable, Dict, Optional

from ..schemas import FeatureExtractionProgress, PhaseProgress, PhaseStatus

ExtractionProgressCallback = Callable[[int, int, str], None]

PHASES = (
    ("phase1", "Profiling columns"),
    ("phase2", "Classifying columns"),
    ("phase3", "Analyzing enum values"),
    ("phase4", "Resolving FK targets"),
    ("phase5", "Analyzing column relationships"),
)


class ProgressTracker:
    """Thread-safe progress state shared by all phases of one extraction run"""

    def __init__(self, on_update: Optional[Callable[[Dict[str, Any]], None]] = None):
        self._lock = threading.Lock()
        self._on_update = on_update
        self._progress = FeatureExtractionProgress(
            phases=[PhaseProgress(phase_id=pid, name=name) for pid, name in PHASES]
        )

    def _phase(self, phase_id: str) -> PhaseProgress:
        for phase in self._progress.phases:
            if phase.phase_id == phase_id:
                return phase
        raise KeyError(f"Unknown phase: {phase_id}")

    def start_phase(self, phase_id: str, total_items: int = 0) -> None:
        with self._lock:
            phase = self._phase(phase_id)
            phase.status = PhaseStatus.IN_PROGRESS
            phase.total_items = total_items
            phase.completed_items = 0
            self._progress.current_phase = phase_id
            self._progress.phase_description = phase.name
            self._progress.total_items = total_items
            self._progress.completed_items = 0
        self._notify()

    def callback_for(self, phase_id: str) -> ExtractionProgressCallback:
        """A ``(completed, total, message)`` callback bound to one phase"""
        def update(completed: int, total: int, message: str) -> None:
            self.update(phase_id, completed, total, message)
        return update

    def update(self, phase_id: str, completed: int, total: int, message: str) -> None:
        with self._lock:
            phase = self._phase(phase_id)
            phase.completed_items = completed
            phase.total_items = total
            phase.message = message
            if phase.status == PhaseStatus.PENDING:
                phase.status = PhaseStatus.IN_PROGRESS
            if self._progress.current_phase == phase_id:
                self._progress.completed_items = completed
                self._progress.total_items = total
                self._progress.phase_description = message or phase.name
        self._notify()

    def finish_phase(self, phase_id: str, status: PhaseStatus = PhaseStatus.COMPLETE) -> None:
        with self._lock:
            self._phase(phase_id).status = status
        self._notify()

    def set_counts(
        self,
        total_columns: Optional[int] = None,
        enum_candidates: Optional[int] = None,
        fk_candidates: Optional[int] = None,
        cross_column_candidates: Optional[int] = None,
    ) -> None:
        with self._lock:
            if total_columns is not None:
                self._progress.total_columns = total_columns
            if enum_candidates is not None:
                self._progress.enum_candidates = enum_candidates
            if fk_candidates is not None:
                self._progress.fk_candidates = fk_candidates
            if cross_column_candidates is not None:
                self._progress.cross_column_candidates = cross_column_candidates
        self._notify()

    @property
    def progress(self) -> FeatureExtractionProgress:
        with self._lock:
            return copy.deepcopy(self._progress)

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            return self._progress.to_dict()

    def _notify(self) -> None:
        if self._on_update is not None:
            self._on_update(self.snapshot())
