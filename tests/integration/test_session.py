"""
Integration tests for the Session workflow: editing, history, locking and runs.
"""

import threading
import warnings

import numpy as np
import pandas as pd
import pytest

from randsim import EmptyDataError, InvalidStateError, LockedError, RunStatus, Session
from tests.config import BACKGROUND_TIMEOUT, SEED


def _assert_normalized(session):
    rows = session.rows
    assert rows[-1].is_placeholder
    assert sum(row.is_placeholder for row in rows) == 1


class TestEditing:
    """Test data commands through the session."""

    def test_new_session_is_empty(self, session):
        assert session.dataset.n_eligible == 0
        assert session.status is RunStatus.IDLE
        assert not session.can_undo
        assert session.summary() is None
        _assert_normalized(session)

    def test_typing_into_placeholder_appends_new_one(self, session):
        session.update_cell(0, 0, 5)
        assert session.dataset.n_rows == 2
        session.update_cell(1, 1, 8)
        session.toggle_assignment(1)
        assert session.dataset.n_eligible == 2
        assert session.rows[1].assignment == 1
        _assert_normalized(session)

    def test_mutation_sequence_keeps_single_placeholder(self, session):
        session.update_cell(0, 0, 1)
        session.update_cell(1, 0, 2)
        session.add_row()
        session.add_row()
        session.update_cell(0, 0, None)
        session.delete_row(0)
        session.impute_treatment_effect(1.0)
        _assert_normalized(session)
        assert session.dataset.n_eligible == 0

    def test_failed_edit_leaves_state_untouched(self, loaded_session):
        before = loaded_session.dataset
        depth = loaded_session.history.depth
        with pytest.raises(ValueError):
            loaded_session.update_cell(0, 0, "abc")
        with pytest.raises(IndexError):
            loaded_session.delete_row(99)
        assert loaded_session.dataset is before
        assert loaded_session.history.depth == depth

    def test_noop_edit_not_recorded(self, loaded_session):
        depth = loaded_session.history.depth
        loaded_session.add_row()
        loaded_session.update_cell(0, 0, 4.1)
        assert loaded_session.history.depth == depth

    def test_rename_and_control_group(self, session):
        session.rename_column(0, "Baseline")
        session.set_control_group(1)
        assert session.column_names == ("Baseline", "Treatment")
        assert session.control_group_index == 1

    def test_column_means(self, loaded_session):
        means = loaded_session.column_means()
        assert means[0] == pytest.approx(4.375)
        assert means[1] == pytest.approx(7.1)

    def test_data_event(self, session):
        events = []
        session.subscribe(lambda event, s: events.append(event))
        session.update_cell(0, 0, 1)
        session.add_row()
        assert events == ["data"]


class TestImport:
    """Test bulk import through set_user_data and import_data."""

    def test_set_user_data_keeps_current_names(self, session):
        session.rename_column(0, "Before")
        session.set_user_data({"rows": [([1, None], 0)]})
        assert session.column_names[0] == "Before"
        assert session.dataset.n_eligible == 1

    def test_import_dataframe(self, session):
        df = pd.DataFrame(
            {
                "Placebo": [4.1, 5.0, np.nan],
                "Drug": [np.nan, np.nan, 6.9],
                "group": [0, 0, 1],
            }
        )
        session.import_data(df)
        assert session.column_names == ("Placebo", "Drug")
        assert session.dataset.n_eligible == 3
        assert session.rows[2].data == (None, 6.9)
        _assert_normalized(session)

    def test_import_is_undoable(self, session):
        session.import_data([[1, None, 0], [None, 2, 1]])
        assert session.dataset.n_eligible == 2
        session.undo()
        assert session.dataset.n_eligible == 0

    def test_bad_import_leaves_data(self, loaded_session):
        before = loaded_session.dataset
        with pytest.raises(ValueError, match="assignment"):
            loaded_session.import_data([[1, None, 3]])
        assert loaded_session.dataset is before


class TestUndoRedo:
    """Test history navigation through the session."""

    def test_round_trip(self, session):
        v0 = session.dataset
        session.update_cell(0, 0, 5)
        v1 = session.dataset
        session.update_cell(1, 1, 8)
        v2 = session.dataset

        assert session.undo() == v1
        assert session.undo() == v0
        assert not session.can_undo
        assert session.undo() == v0
        assert session.redo() == v1
        assert session.redo() == v2
        assert not session.can_redo

    def test_new_edit_clears_redo(self, session):
        session.update_cell(0, 0, 5)
        session.undo()
        assert session.can_redo
        session.update_cell(0, 1, 7)
        assert not session.can_redo

    def test_history_limit(self, session):
        session.set_history_limit(2)
        for value in range(5):
            session.update_cell(0, 0, value + 1)
        assert session.history.depth == 2
        session.undo()
        session.undo()
        assert not session.can_undo
        assert session.rows[0].data == (3.0, None)


class TestLocking:
    """Test that edits are rejected while a run is in progress."""

    def test_edit_while_running_raises(self, loaded_session):
        loaded_session.start(drive=False)
        before = loaded_session.dataset
        assert loaded_session.is_running
        with pytest.raises(LockedError):
            loaded_session.update_cell(0, 0, 1.0)
        with pytest.raises(LockedError):
            loaded_session.import_data([[1, 2, 0]])
        assert loaded_session.dataset is before

    def test_undo_redo_locked(self, loaded_session):
        loaded_session.update_cell(0, 0, 4.2)
        loaded_session.start(drive=False)
        assert not loaded_session.can_undo
        with pytest.raises(LockedError):
            loaded_session.undo()
        with pytest.raises(LockedError):
            loaded_session.redo()

    def test_edit_allowed_after_cancel(self, loaded_session):
        loaded_session.start(drive=False)
        loaded_session.step()
        loaded_session.cancel()
        assert loaded_session.status is RunStatus.CANCELLED
        loaded_session.update_cell(0, 0, 1.0)
        assert loaded_session.rows[0].data == (1.0, None)

    def test_edit_discards_finished_run(self, loaded_session):
        loaded_session.start()
        assert loaded_session.status is RunStatus.COMPLETED
        loaded_session.update_cell(0, 0, 1.0)
        assert loaded_session.status is RunStatus.IDLE
        assert loaded_session.p_value is None

    def test_failed_start_does_not_leave_data_locked(self, loaded_session):
        def listener(event, s):
            if event == "batch":
                raise RuntimeError("display failed")

        unsubscribe = loaded_session.subscribe(listener)
        loaded_session.set_simulations(1000)
        with pytest.raises(RuntimeError, match="display failed"):
            loaded_session.start()
        assert loaded_session.status is RunStatus.CANCELLED
        assert len(loaded_session.trials) == 10
        assert not loaded_session.is_running

        unsubscribe()
        loaded_session.update_cell(0, 0, 6.0)
        assert loaded_session.rows[0].data == (6.0, None)
        assert loaded_session.status is RunStatus.IDLE

    def test_failing_progress_callback_cancels_run(self, loaded_session):
        def progress(current, total):
            if current > 0:
                raise ValueError("bad progress")

        with pytest.raises(ValueError, match="bad progress"):
            loaded_session.start(progress_callback=progress)
        assert loaded_session.status is RunStatus.CANCELLED
        loaded_session.undo()

    def test_locked_error_is_runtime_error(self):
        assert issubclass(LockedError, RuntimeError)


class TestRuns:
    """Test starting, driving and inspecting runs."""

    def test_two_row_scenario(self, session):
        session.set_user_data({"rows": [([5, None], 0), ([None, 8], 1)]})
        session.start()
        assert session.status is RunStatus.COMPLETED
        assert len(session.trials) == 100
        assert set(session.null_distribution().tolist()) <= {-3.0, 3.0}
        assert session.observed_statistic == pytest.approx(3.0)
        assert session.p_value == 1.0

    def test_start_on_empty_data(self, session):
        with pytest.raises(EmptyDataError):
            session.start()
        assert session.status is RunStatus.IDLE

    def test_start_twice_while_running(self, loaded_session):
        loaded_session.start(drive=False)
        with pytest.raises(InvalidStateError):
            loaded_session.start(drive=False)

    def test_restart_after_completion(self, loaded_session):
        loaded_session.start()
        first = [t.assignments for t in loaded_session.trials]
        loaded_session.start()
        assert [t.assignments for t in loaded_session.trials] == first

    def test_step_mode(self, loaded_session):
        loaded_session.start(drive=False)
        assert len(loaded_session.trials) == 0
        assert loaded_session.step() == 10
        assert len(loaded_session.trials) == 10
        assert loaded_session.p_value is not None

    def test_background_run(self, loaded_session):
        loaded_session.start(background=True)
        assert loaded_session.wait(BACKGROUND_TIMEOUT)
        assert loaded_session.status is RunStatus.COMPLETED
        assert len(loaded_session.trials) == 100

    def test_background_events_reach_session_listeners(self, loaded_session):
        done = threading.Event()
        events = []

        def listener(event, s):
            events.append(event)
            if event == "status" and s.status is RunStatus.COMPLETED:
                done.set()

        loaded_session.subscribe(listener)
        loaded_session.start(background=True)
        assert done.wait(BACKGROUND_TIMEOUT)
        loaded_session.wait(BACKGROUND_TIMEOUT)
        assert events.count("batch") == 10
        assert events[0] == "status"

    def test_background_degenerate_run_warns_on_wait(self, session):
        session.set_user_data({"rows": [([10, 12], 0)]})
        session.start(background=True)
        with pytest.warns(UserWarning, match="not available"):
            assert session.wait(BACKGROUND_TIMEOUT)
        assert session.p_value is None

    def test_background_warning_issued_once(self, session):
        session.set_user_data({"rows": [([10, 12], 0)]})
        session.start(background=True)
        with pytest.warns(UserWarning):
            session.wait(BACKGROUND_TIMEOUT)
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            assert session.wait(BACKGROUND_TIMEOUT)

    def test_progress_callback(self, loaded_session):
        calls = []
        loaded_session.start(progress_callback=lambda c, t: calls.append((c, t)))
        assert calls[0] == (0, 100)
        assert calls[-1] == (100, 100)

    def test_set_statistic_does_not_rerun(self, loaded_session):
        loaded_session.start()
        trials = loaded_session.trials
        loaded_session.set_statistic("welch_t")
        assert loaded_session.trials == trials
        assert loaded_session.run.statistic_key == "welch_t"
        assert loaded_session.status is RunStatus.COMPLETED

    def test_set_statistic_rejects_unknown(self, session):
        with pytest.raises(ValueError, match="statistic"):
            session.set_statistic("nope")

    def test_single_row_warns_not_available(self, session):
        session.set_user_data({"rows": [([10, 12], 0)]})
        with pytest.warns(UserWarning, match="not available"):
            session.start()
        assert session.p_value is None

    def test_complete_scheme_keeps_group_sizes(self, loaded_session):
        loaded_session.set_scheme("complete").start()
        for trial in loaded_session.trials:
            assert int(np.sum(trial.assignments)) == 4

    def test_low_simulation_count_warns(self, session):
        with pytest.warns(UserWarning, match="Low simulation count"):
            session.set_simulations(10)
        assert session.n_simulations == 10


class TestSummary:
    """Test result summaries."""

    def test_summary_fields(self, loaded_session):
        loaded_session.start()
        result = loaded_session.summary()
        model = result["model"]
        results = result["results"]
        assert model["statistic"] == "difference_in_means"
        assert model["n_rows"] == 8
        assert model["seed"] == SEED
        assert results["n_trials"] == 100
        assert results["status"] == "completed"
        assert 0.0 <= results["p_value"] <= 1.0

    def test_print_summary(self, loaded_session, capsys):
        loaded_session.print_summary()
        assert "No simulation has been run" in capsys.readouterr().out
        loaded_session.start()
        loaded_session.print_summary()
        out = capsys.readouterr().out
        assert "p-value:" in out
        assert "Observed statistic:" in out

    def test_set_seed_prints(self, capsys):
        with warnings.catch_warnings():
            warnings.simplefilter("ignore")
            Session().set_seed(11)
        assert "Seed set to: 11" in capsys.readouterr().out

    def test_repr(self, loaded_session):
        assert "rows=8" in repr(loaded_session)
