from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any

from .rescan_task import rescan_task as indexer__rescan_task
from .start_indexer_task import start_indexer_task as indexer__start_indexer_task
from .status_task import status_task as indexer__status_task

TaskFn = Callable[..., Awaitable[Any]]

TASKS: dict[str, TaskFn] = {
    "indexer__start_indexer_task": indexer__start_indexer_task,
    "indexer__rescan_task": indexer__rescan_task,
    "indexer__status_task": indexer__status_task,
}
