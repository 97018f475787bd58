"""
Unit Tests for ProgressTracker
"""
import pytest
import sys
import os

# Add src to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..', 'src'))

from schema_inference.features import ProgressTracker
from schema_inference.schemas import PhaseStatus


class TestProgressTracker:
    """Tests for multi-phase progress state"""

    def test_initial_phases(self):
        progress = ProgressTracker().progress
        assert [p.phase_id for p in progress.phases] == ["phase1", "phase2", "phase3", "phase4", "phase5"]
        assert all(p.status == PhaseStatus.PENDING for p in progress.phases)

    def test_phase_lifecycle(self):
        tracker = ProgressTracker()
        tracker.start_phase("phase2", total_items=10)
        tracker.callback_for("phase2")(4, 10, "Classifying columns (4/10)")

        progress = tracker.progress
        assert progress.current_phase == "phase2"
        assert progress.completed_items == 4
        assert progress.phase_description == "Classifying columns (4/10)"

        tracker.finish_phase("phase2")
        assert tracker.progress.phases[1].status == PhaseStatus.COMPLETE

    def test_updates_for_other_phase_do_not_move_current(self):
        tracker = ProgressTracker()
        tracker.start_phase("phase3", total_items=2)
        tracker.update("phase4", 1, 5, "Resolving")

        progress = tracker.progress
        assert progress.current_phase == "phase3"
        assert progress.total_items == 2
        assert progress.phases[3].status == PhaseStatus.IN_PROGRESS

    def test_counts(self):
        tracker = ProgressTracker()
        tracker.set_counts(total_columns=12, fk_candidates=2)
        snapshot = tracker.snapshot()
        assert snapshot["total_columns"] == 12
        assert snapshot["fk_candidates"] == 2
        assert snapshot["enum_candidates"] == 0

    def test_on_update_receives_snapshots(self):
        snapshots = []
        tracker = ProgressTracker(on_update=snapshots.append)
        tracker.start_phase("phase1", total_items=3)
        tracker.finish_phase("phase1", PhaseStatus.SKIPPED)

        assert len(snapshots) == 2
        assert snapshots[-1]["phases"][0]["status"] == "skipped"

    def test_progress_is_a_copy(self):
        tracker = ProgressTracker()
        tracker.progress.phases[0].status = PhaseStatus.FAILED
        assert tracker.progress.phases[0].status == PhaseStatus.PENDING

    def test_unknown_phase(self):
        with pytest.raises(KeyError):
            ProgressTracker().start_phase("phase9")
