"""
Tests for step-scoped error tracking.
"""

from shared.error_tracking import ErrorTracker, step_name


def test_log_records_detail():
    tracker = ErrorTracker()
    detail = tracker.log(2, "API Error at Batch 1 Attempt 1: 503", batch_index=0, scene_range="1-3")

    assert detail.level == "ERROR"
    assert detail.step_name == "Create Outline"
    assert tracker.get_last_n(1) == [detail]


def test_history_is_bounded():
    tracker = ErrorTracker(max_history=3)
    for i in range(5):
        tracker.log(3, f"error {i}")
    assert [e.message for e in tracker.get_last_n(10)] == ["error 2", "error 3", "error 4"]


def test_get_last_n_zero():
    tracker = ErrorTracker()
    tracker.log(2, "x")
    assert tracker.get_last_n(0) == []


def test_get_by_step_and_summary():
    tracker = ErrorTracker()
    tracker.log(2, "a", "WARNING")
    tracker.log(2, "b")
    tracker.log(4, "c", "CRITICAL")

    assert [e.message for e in tracker.get_by_step(2)] == ["a", "b"]
    summary = tracker.summary()
    assert summary.total_errors == 3
    assert summary.by_level == {"INFO": 0, "WARNING": 1, "ERROR": 1, "CRITICAL": 1}
    assert summary.by_step == {2: 2, 4: 1}
    assert summary.last_error.message == "c"


def test_subscribe_and_unsubscribe():
    tracker = ErrorTracker()
    snapshots = []
    unsubscribe = tracker.subscribe(snapshots.append)

    tracker.log(5, "first")
    unsubscribe()
    tracker.log(5, "second")

    assert len(snapshots) == 1
    assert snapshots[0][0].message == "first"


def test_format_for_display():
    tracker = ErrorTracker()
    assert tracker.format_for_display() == "(No errors recorded)"

    tracker.log(2, "Recovery Failed: timeout", scene_range="4-6")
    line = tracker.format_for_display()
    assert "ERROR - Create Outline [Scene 4-6]: Recovery Failed: timeout" in line


def test_format_single_error():
    text = ErrorTracker.format_single_error(2, batch_index=1, scene_range="4-6", details=["Scene 5 missing"])
    assert text == "Create Outline | Batch 2 | Scene 4-6\n  - Scene 5 missing"


def test_clear():
    tracker = ErrorTracker()
    tracker.log(6, "x")
    tracker.clear()
    assert tracker.summary().total_errors == 0


def test_step_names():
    assert step_name(0) == "Batch Queue"
    assert step_name(1) == "Research & Ideas"
    assert step_name(9) == "Step 9"
