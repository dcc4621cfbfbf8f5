from datetime import datetime, timedelta, timezone

import pytest

from task_tracker.errors import ErrorKind
from task_tracker.manager import SAMPLE_TASKS, TaskManager, TaskStats
from task_tracker.models import Priority


def assert_completion_invariant(tasks):
    for t in tasks:
        assert t["completed"] == (t["completed_at"] is not None)
        assert t["updated_at"] >= t["created_at"]


def make(manager, description, priority=None):
    result = manager.create(description, priority)
    assert result.ok, result.error
    return result.value


class TestCreate:
    @pytest.mark.parametrize("description", ["", "   ", None])
    def test_blank_description_is_rejected(self, manager, description):
        result = manager.create(description)
        assert not result.ok
        assert result.error.kind is ErrorKind.VALIDATION
        assert manager.list_all() == []

    def test_defaults(self, manager, clock):
        task = make(manager, "  Write report  ")
        assert task["description"] == "Write report"
        assert task["priority"] is Priority.MEDIUM
        assert task["completed"] is False
        assert task["completed_at"] is None
        assert task["notes"] is None
        assert task["created_at"] == clock.now
        assert task["updated_at"] == clock.now

    def test_priority_text_is_case_insensitive(self, manager):
        assert make(manager, "x", "urgent")["priority"] is Priority.URGENT

    def test_unknown_priority_is_rejected(self, manager):
        result = manager.create("x", "CRITICAL")
        assert result.error.kind is ErrorKind.VALIDATION

    def test_length_limits(self, manager):
        assert manager.create("a" * 255).ok
        assert manager.create("a" * 256).error.kind is ErrorKind.VALIDATION
        assert manager.create("a", notes="n" * 501).error.kind is ErrorKind.VALIDATION
        assert manager.create("a", notes="n" * 500).value["notes"] == "n" * 500


class TestUpdate:
    def test_only_notes_change(self, manager, clock):
        task = make(manager, "Keep me", Priority.HIGH)
        clock.advance(minutes=5)
        result = manager.update(task["id"], description=None, priority=None, notes="x")
        updated = result.value
        assert updated["notes"] == "x"
        assert updated["description"] == "Keep me"
        assert updated["priority"] is Priority.HIGH
        assert updated["created_at"] == task["created_at"]
        assert updated["updated_at"] == clock.now

    def test_blank_description_is_ignored(self, manager):
        task = make(manager, "Original")
        updated = manager.update(task["id"], description="   ", priority="low").value
        assert updated["description"] == "Original"
        assert updated["priority"] is Priority.LOW

    def test_empty_notes_clear(self, manager):
        task = manager.create("with notes", notes="something").value
        assert manager.update(task["id"], notes="").value["notes"] is None

    def test_invalid_fields_leave_task_untouched(self, manager):
        task = make(manager, "Stable")
        assert manager.update(task["id"], description="d" * 300).error.kind is ErrorKind.VALIDATION
        assert manager.update(task["id"], priority="nope").error.kind is ErrorKind.VALIDATION
        assert manager.get(task["id"]).value == task

    def test_missing_task(self, manager):
        assert manager.update(42, notes="x").error.kind is ErrorKind.NOT_FOUND

    def test_does_not_change_completion(self, manager):
        task = make(manager, "Done")
        manager.complete(task["id"])
        updated = manager.update(task["id"], description="Done, renamed").value
        assert updated["completed"] is True
        assert updated["completed_at"] is not None


class TestDelete:
    def test_delete_existing(self, manager):
        task = make(manager, "bye")
        assert manager.delete(task["id"]).ok
        assert manager.get(task["id"]).error.kind is ErrorKind.NOT_FOUND

    def test_delete_missing_leaves_store_unchanged(self, manager):
        make(manager, "stays")
        before = manager.list_all()
        result = manager.delete(999)
        assert result.error.kind is ErrorKind.NOT_FOUND
        assert "999" in result.error.message
        assert manager.list_all() == before


class TestCompletion:
    def test_complete_then_uncomplete_round_trip(self, manager, clock):
        task = manager.create("Toggle", Priority.URGENT, notes="n").value

        clock.advance(minutes=1)
        done = manager.complete(task["id"]).value
        assert done["completed"] is True
        assert done["completed_at"] == clock.now
        assert done["updated_at"] == clock.now

        clock.advance(minutes=1)
        reopened = manager.uncomplete(task["id"]).value
        assert reopened["completed"] is False
        assert reopened["completed_at"] is None
        for field in ("description", "priority", "notes", "created_at"):
            assert reopened[field] == task[field]
        assert_completion_invariant(manager.list_all())

    def test_completing_twice_keeps_first_timestamp(self, manager, clock):
        task = make(manager, "Once")
        first = manager.complete(task["id"]).value
        clock.advance(hours=1)
        again = manager.complete(task["id"]).value
        assert again["completed_at"] == first["completed_at"]

    def test_reopening_pending_task_changes_nothing(self, manager, clock):
        task = make(manager, "Still open")
        clock.advance(hours=1)
        again = manager.uncomplete(task["id"]).value
        assert again["completed"] is False
        assert again["completed_at"] is None
        assert again["updated_at"] == task["updated_at"]
        assert manager.get(task["id"]).value == task

    def test_missing_task(self, manager):
        assert manager.complete(7).error.kind is ErrorKind.NOT_FOUND
        assert manager.uncomplete(7).error.kind is ErrorKind.NOT_FOUND


class TestChangePriority:
    def test_change(self, manager, clock):
        task = make(manager, "Escalate", Priority.LOW)
        clock.advance(seconds=30)
        changed = manager.change_priority(task["id"], "Urgent").value
        assert changed["priority"] is Priority.URGENT
        assert changed["updated_at"] == clock.now

    def test_errors(self, manager):
        task = make(manager, "Escalate")
        assert manager.change_priority(task["id"], "extreme").error.kind is ErrorKind.VALIDATION
        assert manager.change_priority(task["id"], None).error.kind is ErrorKind.VALIDATION
        assert manager.change_priority(999, Priority.HIGH).error.kind is ErrorKind.NOT_FOUND


class TestQueries:
    def test_pending_and_completed(self, manager):
        a = make(manager, "a")
        make(manager, "b")
        manager.complete(a["id"])
        assert [t["description"] for t in manager.pending()] == ["b"]
        assert [t["description"] for t in manager.completed()] == ["a"]

    def test_by_priority(self, manager):
        make(manager, "low", Priority.LOW)
        make(manager, "high", Priority.HIGH)
        assert [t["description"] for t in manager.by_priority("high").value] == ["high"]
        assert manager.by_priority("whatever").error.kind is ErrorKind.VALIDATION

    def test_search(self, manager):
        make(manager, "Buy milk")
        make(manager, "Walk the dog")
        assert [t["description"] for t in manager.search("  MILK ").value] == ["Buy milk"]
        assert manager.search("   ").error.kind is ErrorKind.VALIDATION
        assert manager.search(None).error.kind is ErrorKind.VALIDATION

    def test_pending_by_priority_order(self, manager, clock):
        make(manager, "t1", Priority.LOW)
        clock.advance(minutes=1)
        make(manager, "t2", Priority.URGENT)
        clock.advance(minutes=1)
        make(manager, "t3", Priority.HIGH)
        ordered = manager.pending_by_priority()
        assert [(t["priority"], t["description"]) for t in ordered] == [
            (Priority.URGENT, "t2"),
            (Priority.HIGH, "t3"),
            (Priority.LOW, "t1"),
        ]

    def test_urgent_excludes_completed_and_lower_levels(self, manager, clock):
        make(manager, "high", Priority.HIGH)
        clock.advance(minutes=1)
        make(manager, "urgent", Priority.URGENT)
        make(manager, "medium", Priority.MEDIUM)
        done = make(manager, "done urgent", Priority.URGENT)
        manager.complete(done["id"])
        assert [t["description"] for t in manager.urgent()] == ["urgent", "high"]

    def test_created_today(self, manager, clock):
        clock.now = datetime(2026, 10, 18, 23, 59, tzinfo=timezone.utc)
        make(manager, "yesterday")
        clock.now = datetime(2026, 10, 19, 0, 0, tzinfo=timezone.utc)
        make(manager, "midnight")
        clock.now = datetime(2026, 10, 19, 18, 0, tzinfo=timezone.utc)
        make(manager, "evening")
        assert [t["description"] for t in manager.created_today()] == ["midnight", "evening"]

    def test_created_today_uses_configured_timezone(self, store, clock):
        plus_two = timezone(timedelta(hours=2))
        local = TaskManager(store, clock=clock, tz=plus_two)
        clock.now = datetime(2026, 10, 19, 21, 30, tzinfo=timezone.utc)  # 23:30 local on the 19th
        make(local, "local 19th")
        clock.now = datetime(2026, 10, 19, 22, 30, tzinfo=timezone.utc)  # 00:30 local on the 20th
        make(local, "local 20th")
        assert [t["description"] for t in local.created_today()] == ["local 20th"]

    def test_recently_completed(self, manager, clock):
        old = make(manager, "old")
        recent = make(manager, "recent")
        make(manager, "open")
        manager.complete(old["id"])
        clock.advance(days=5)
        manager.complete(recent["id"])
        clock.advance(days=1)
        assert [t["description"] for t in manager.recently_completed(3).value] == ["recent"]
        assert len(manager.recently_completed(6).value) == 2

    @pytest.mark.parametrize("days", [0, -1])
    def test_recently_completed_rejects_non_positive_days(self, manager, days):
        assert manager.recently_completed(days).error.kind is ErrorKind.VALIDATION


class TestStats:
    def test_empty(self, manager):
        stats = manager.stats()
        assert stats == TaskStats(0, 0, 0, 0, 0)
        assert stats.completion_percentage == 0

    def test_counts_and_percentage(self, manager):
        a = make(manager, "a", Priority.URGENT)
        make(manager, "b", Priority.HIGH)
        make(manager, "c", Priority.HIGH)
        manager.complete(a["id"])
        stats = manager.stats()
        assert (stats.total, stats.completed, stats.pending) == (3, 1, 2)
        assert (stats.urgent, stats.high_priority) == (1, 2)
        assert stats.completion_percentage == pytest.approx(33.333333, rel=1e-6)


class TestBulk:
    def test_mark_all_completed_shares_one_timestamp(self, manager, clock):
        for i in range(3):
            make(manager, f"task {i}")
            clock.advance(seconds=1)
        already = make(manager, "already done")
        manager.complete(already["id"])
        clock.advance(minutes=10)

        assert manager.mark_all_completed() == 3
        assert manager.pending() == []
        completed = manager.completed()
        assert len(completed) == 4
        batch = [t for t in completed if t["id"] != already["id"]]
        assert {t["completed_at"] for t in batch} == {clock.now}
        assert_completion_invariant(completed)

    def test_delete_all_completed(self, manager):
        a = make(manager, "a")
        b = make(manager, "b")
        make(manager, "c")
        manager.complete(a["id"])
        manager.complete(b["id"])
        assert manager.delete_all_completed() == 2
        assert [t["description"] for t in manager.list_all()] == ["c"]
        assert manager.delete_all_completed() == 0

    def test_sample_tasks(self, manager):
        created = manager.create_sample_tasks()
        assert len(created) == 6
        assert [(t["description"], t["priority"]) for t in created] == list(SAMPLE_TASKS)
        assert manager.stats().urgent == 1
        assert manager.stats().high_priority == 2
        assert_completion_invariant(created)
