"""
Domain service: task catalog, completion ledger and point balance.
"""
from typing import Iterable, Optional
import threading
import logging

from fieldquest.domain.errors import TaskNotFoundError
from fieldquest.domain.models import Stage, Task, TaskType, Tool

logger = logging.getLogger(__name__)


DEFAULT_TASK_CATALOG: tuple[Task, ...] = (
    Task(
        id="1",
        type=TaskType.PLOUGH,
        title="Plough Your Field",
        description="Prepare the soil for planting by ploughing",
        points=50,
        strategy="Plough when soil moisture is optimal (20-30%). "
                 "Use cross-ploughing for better soil structure.",
    ),
    Task(
        id="2",
        type=TaskType.SOW,
        title="Sow Seeds",
        description="Plant seeds in the prepared field",
        points=75,
        strategy="Choose seeds based on season and soil type. "
                 "Maintain proper spacing and depth.",
    ),
    Task(
        id="3",
        type=TaskType.WATER,
        title="Water Crops",
        description="Provide adequate irrigation to your crops",
        points=40,
        strategy="Water early morning or evening. Check soil moisture before watering.",
    ),
    Task(
        id="4",
        type=TaskType.HARVEST,
        title="Harvest Crops",
        description="Harvest your mature crops",
        points=100,
        strategy="Harvest at optimal maturity. Use proper tools to minimize crop damage.",
    ),
)

# Stage a scanned field must reach for the matching task to count as done
STAGE_TASK_TYPES: dict[Stage, TaskType] = {
    Stage.PLOUGHED: TaskType.PLOUGH,
    Stage.PLANTED: TaskType.SOW,
    Stage.GROWING: TaskType.WATER,
    Stage.HARVESTED: TaskType.HARVEST,
}

_STAGE_ORDER = list(Stage)


def resolve_task_for_tool(tasks: Iterable[Task], tool: Tool) -> Optional[Task]:
    """First pending task whose type matches the tool, if any."""
    return next(
        (task for task in tasks if not task.completed and task.type == tool),
        None,
    )


def resolve_tasks_for_stage_advance(
    tasks: Iterable[Task],
    previous: Stage,
    current: Stage,
) -> list[Task]:
    """
    Pending tasks unlocked by a scanned field moving between stages.

    Every stage strictly after ``previous`` up to and including
    ``current`` unlocks the first pending task of its type. A scan that
    does not move the field forward unlocks nothing.
    """
    tasks = list(tasks)
    start = _STAGE_ORDER.index(previous) + 1
    end = _STAGE_ORDER.index(current) + 1

    resolved = []
    for stage in _STAGE_ORDER[start:end]:
        task_type = STAGE_TASK_TYPES.get(stage)
        if task_type is None:
            continue
        task = resolve_task_for_tool(tasks, task_type)
        if task is not None:
            resolved.append(task)
    return resolved


class RewardAccount:
    """
    Running point balance.

    Points can only be added. Reads and credits share a lock so a reader
    always sees the balance either before or after a credit.
    """

    def __init__(self, balance: int = 0):
        if balance < 0:
            raise ValueError(f"Starting balance must not be negative, got {balance}")
        self._balance = balance
        self._lock = threading.Lock()

    @property
    def balance(self) -> int:
        with self._lock:
            return self._balance

    def credit(self, points: int) -> int:
        """
        Add points to the balance.

        Returns:
            The balance after the credit

        Raises:
            ValueError: If points is not positive
        """
        if points <= 0:
            raise ValueError(f"Credited points must be positive, got {points}")
        with self._lock:
            self._balance += points
            return self._balance


class TaskLedger:
    """
    Tracks which catalog tasks are pending and which are completed.

    Completing a task flips it, records it in completion order and
    credits its points, all under one lock. Completing it again does
    nothing.
    """

    def __init__(
        self,
        account: RewardAccount,
        catalog: Iterable[Task] = DEFAULT_TASK_CATALOG,
    ):
        self.account = account
        self._tasks = [task.model_copy() for task in catalog]
        self._completed: list[Task] = []
        self._lock = threading.RLock()

    @property
    def tasks(self) -> list[Task]:
        """Snapshot of all tasks in catalog order."""
        with self._lock:
            return [task.model_copy() for task in self._tasks]

    @property
    def active_tasks(self) -> list[Task]:
        with self._lock:
            return [task.model_copy() for task in self._tasks if not task.completed]

    @property
    def completed_tasks(self) -> list[Task]:
        with self._lock:
            return [task.model_copy() for task in self._completed]

    def get(self, task_id: str) -> Task:
        with self._lock:
            return self._tasks[self._index_of(task_id)].model_copy()

    def _index_of(self, task_id: str) -> int:
        for index, task in enumerate(self._tasks):
            if task.id == task_id:
                return index
        raise TaskNotFoundError(f"Unknown task '{task_id}'")

    def resolve_for_tool(self, tool: Tool) -> Optional[Task]:
        """First pending task matching the tool, from the current snapshot."""
        return resolve_task_for_tool(self.tasks, tool)

    def resolve_for_stage_advance(self, previous: Stage, current: Stage) -> list[Task]:
        return resolve_tasks_for_stage_advance(self.tasks, previous, current)

    def complete_task(self, task_id: str) -> Optional[Task]:
        """
        Complete a task and credit its points.

        Args:
            task_id: Catalog task id

        Returns:
            The completed task, or None if it was already completed

        Raises:
            TaskNotFoundError: If the id is not in the catalog
        """
        with self._lock:
            index = self._index_of(task_id)
            task = self._tasks[index]
            if task.completed:
                logger.debug(f"Task {task_id} already completed")
                return None

            completed = task.model_copy(update={"completed": True})
            self._tasks[index] = completed
            self._completed.append(completed)
            balance = self.account.credit(completed.points)

        logger.info(
            f"Task completed: {completed.title} (+{completed.points} points, balance {balance})"
        )
        return completed.model_copy()
