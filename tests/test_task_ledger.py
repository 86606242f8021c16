"""
Unit tests for the task ledger and reward account.

Tests cover:
- Reference catalog
- Idempotent completion
- Pure task resolution
- Stage-advance resolution
- Balance monotonicity and concurrent reads
"""
import threading
import pytest

from fieldquest.domain.errors import TaskNotFoundError
from fieldquest.domain.models import Stage, TaskType, Tool
from fieldquest.services.domain.task_ledger import (
    DEFAULT_TASK_CATALOG,
    RewardAccount,
    TaskLedger,
    resolve_task_for_tool,
    resolve_tasks_for_stage_advance,
)


# ============================================================
# Catalog Tests
# ============================================================

class TestCatalog:
    """Tests for the reference task catalog."""

    def test_four_tasks_one_per_type(self, ledger):
        types = [task.type for task in ledger.tasks]

        assert types == [TaskType.PLOUGH, TaskType.SOW, TaskType.WATER, TaskType.HARVEST]

    def test_reference_points(self, ledger):
        points = {task.type: task.points for task in ledger.tasks}

        assert points == {
            TaskType.PLOUGH: 50,
            TaskType.SOW: 75,
            TaskType.WATER: 40,
            TaskType.HARVEST: 100,
        }

    def test_all_pending_at_start(self, ledger):
        assert len(ledger.active_tasks) == 4
        assert ledger.completed_tasks == []

    def test_ledgers_do_not_share_state(self, account):
        first = TaskLedger(account)
        second = TaskLedger(RewardAccount())

        first.complete_task("1")

        assert second.get("1").completed is False
        assert DEFAULT_TASK_CATALOG[0].completed is False


# ============================================================
# Completion Tests
# ============================================================

class TestCompleteTask:
    """Tests for completing tasks."""

    def test_completion_credits_points(self, ledger, account):
        task = ledger.complete_task("1")

        assert task.completed
        assert account.balance == 50
        assert [t.id for t in ledger.completed_tasks] == ["1"]
        assert "1" not in [t.id for t in ledger.active_tasks]

    def test_completion_is_idempotent(self, ledger, account):
        ledger.complete_task("2")
        second = ledger.complete_task("2")

        assert second is None
        assert account.balance == 75
        assert [t.id for t in ledger.completed_tasks] == ["2"]

    def test_completion_order_preserved(self, ledger):
        for task_id in ("3", "1", "4"):
            ledger.complete_task(task_id)

        assert [t.id for t in ledger.completed_tasks] == ["3", "1", "4"]

    def test_unknown_task(self, ledger, account):
        with pytest.raises(TaskNotFoundError):
            ledger.complete_task("99")

        assert account.balance == 0

    def test_snapshots_are_copies(self, ledger):
        snapshot = ledger.tasks
        snapshot[0].completed = True

        assert ledger.get("1").completed is False

    def test_concurrent_completion_credits_once(self, ledger, account):
        threads = [threading.Thread(target=ledger.complete_task, args=("4",)) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert account.balance == 100
        assert len(ledger.completed_tasks) == 1


# ============================================================
# Resolution Tests
# ============================================================

class TestResolution:
    """Tests for pure task lookups."""

    def test_first_pending_task_of_type(self, ledger):
        task = ledger.resolve_for_tool(Tool.SOW)

        assert task.id == "2"

    def test_completed_task_not_resolved(self, ledger):
        ledger.complete_task("1")

        assert ledger.resolve_for_tool(Tool.PLOUGH) is None

    def test_resolution_has_no_side_effects(self, ledger, account):
        ledger.resolve_for_tool(Tool.HARVEST)

        assert account.balance == 0
        assert ledger.completed_tasks == []

    def test_resolve_on_plain_list(self):
        assert resolve_task_for_tool(DEFAULT_TASK_CATALOG, Tool.WATER).id == "3"
        assert resolve_task_for_tool([], Tool.WATER) is None

    def test_stage_advance_unlocks_each_stage_passed(self):
        tasks = resolve_tasks_for_stage_advance(
            DEFAULT_TASK_CATALOG, Stage.EMPTY, Stage.GROWING
        )

        assert [task.type for task in tasks] == [TaskType.PLOUGH, TaskType.SOW, TaskType.WATER]

    def test_mature_unlocks_nothing_new(self):
        tasks = resolve_tasks_for_stage_advance(
            DEFAULT_TASK_CATALOG, Stage.GROWING, Stage.MATURE
        )

        assert tasks == []

    def test_no_advance_unlocks_nothing(self):
        assert resolve_tasks_for_stage_advance(
            DEFAULT_TASK_CATALOG, Stage.PLANTED, Stage.PLANTED
        ) == []
        assert resolve_tasks_for_stage_advance(
            DEFAULT_TASK_CATALOG, Stage.HARVESTED, Stage.EMPTY
        ) == []

    def test_stage_advance_skips_completed(self, ledger):
        ledger.complete_task("1")

        tasks = ledger.resolve_for_stage_advance(Stage.EMPTY, Stage.PLANTED)

        assert [task.id for task in tasks] == ["2"]


# ============================================================
# Reward Account Tests
# ============================================================

class TestRewardAccount:
    """Tests for the point balance."""

    def test_credit_adds(self):
        account = RewardAccount(1285)

        assert account.credit(50) == 1335
        assert account.balance == 1335

    @pytest.mark.parametrize("points", [0, -10])
    def test_non_positive_credit_rejected(self, points):
        account = RewardAccount(10)

        with pytest.raises(ValueError):
            account.credit(points)

        assert account.balance == 10

    def test_negative_start_rejected(self):
        with pytest.raises(ValueError):
            RewardAccount(-1)

    def test_balance_never_decreases(self):
        account = RewardAccount()
        seen = []

        def reader():
            for _ in range(500):
                seen.append(account.balance)

        def writer():
            for _ in range(500):
                account.credit(1)

        threads = [threading.Thread(target=reader), threading.Thread(target=writer)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert account.balance == 500
        assert seen == sorted(seen)
