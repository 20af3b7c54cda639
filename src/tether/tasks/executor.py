"""Execute scheduled tasks against the external prompt executor."""

from dataclasses import dataclass
from typing import Protocol

from tether.core.logging import get_logger
from tether.core.types import ActionResult
from tether.tasks.store import TaskStore
from tether.tasks.types import ScheduledTask
from tether.usage.costs import CostLedger

logger = get_logger("tasks.executor")


@dataclass
class PromptResult:
    """What the agent runtime returns for one prompt."""

    text: str
    cost_usd: float = 0.0
    turns: int = 0
    session_id: str | None = None
    model: str = ""


class PromptExecutor(Protocol):
    """Runs a prompt through the agent runtime. May raise or time out."""

    async def run(self, prompt: str) -> PromptResult: ...


class Notifier(Protocol):
    """Sends markup text to a channel. May raise."""

    async def send(self, channel_id: str, text: str) -> None: ...


async def deliver(notifier: Notifier | None, channel_id: str, text: str) -> ActionResult:
    """Best-effort send. Never raises; failure comes back as a result."""
    if notifier is None:
        logger.warning("No notifier configured")
        return ActionResult(success=False, error="No notifier available")

    try:
        await notifier.send(channel_id, text)
    except Exception as e:
        logger.error(f"Failed to send message to {channel_id}: {e}")
        return ActionResult(success=False, error=f"Notification failed: {e}")
    return ActionResult(success=True)


def format_success(task: ScheduledTask, text: str) -> str:
    return f"⏰ <b>Scheduled Task #{task.id}</b>\n\n{text}"


def format_failure(task: ScheduledTask, message: str) -> str:
    return f"⏰ Task #{task.id} failed: {message}"


class TaskExecutor:
    """Runs one firing: prompt, record outcome, notify."""

    def __init__(
        self,
        store: TaskStore,
        prompt_executor: PromptExecutor,
        notifier: Notifier | None = None,
        costs: CostLedger | None = None,
    ):
        """
        Initialize executor.

        Args:
            store: Where run outcomes are recorded
            prompt_executor: Agent runtime that answers the task's prompt
            notifier: Sends results to the task's channel
            costs: Ledger charged for each completed prompt
        """
        self.store = store
        self._prompt_executor = prompt_executor
        self._notifier = notifier
        self._costs = costs

    async def execute(self, task: ScheduledTask) -> ActionResult:
        """
        Fire a task once.

        A failing prompt is recorded as "ERROR: ..." and reported; it does
        not change the task's status. No retry happens within a firing.

        Returns:
            ActionResult with the prompt outcome (delivery is not reflected)
        """
        logger.info(f"Task {task.id} fired: {task.prompt[:50]}")

        try:
            result = await self._prompt_executor.run(task.prompt)
        except Exception as e:
            message = str(e) or type(e).__name__
            logger.error(f"Task {task.id} execution failed: {message}", exc_info=True)
            await self._record(task, f"ERROR: {message}")
            # Delivery failure already logged inside deliver(); nothing more to do
            await deliver(self._notifier, task.channel_id, format_failure(task, message))
            return ActionResult(success=False, error=message)

        logger.info(
            f"Task {task.id} completed: cost=${result.cost_usd:.4f} turns={result.turns}"
        )
        await self._record(task, result.text)
        await self._log_cost(task, result)
        # Delivery failure already logged inside deliver(); nothing more to do
        await deliver(self._notifier, task.channel_id, format_success(task, result.text))
        return ActionResult(success=True, data={"text": result.text})

    async def _log_cost(self, task: ScheduledTask, result: PromptResult) -> None:
        if self._costs is None:
            return
        try:
            await self._costs.log(task.channel_id, result.cost_usd, result.turns, result.model)
        except Exception as e:
            logger.error(f"Failed to log cost of task {task.id}: {e}", exc_info=True)

    async def _record(self, task: ScheduledTask, result: str) -> None:
        try:
            await self.store.record_run(task.id, result)
        except Exception as e:
            logger.error(f"Failed to record run of task {task.id}: {e}", exc_info=True)
