"""Worker threads for the FTP relay.

The listener runs every accepted session as a ThreadedTask: a daemon
thread named after the session that records how the session ended and
reports back through a completion callback.
"""

import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Generic, Optional, TypeVar


logger = logging.getLogger(__name__)

T = TypeVar("T")


class TaskStatus(Enum):
    """Lifecycle of a worker."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class TaskResult(Generic[T]):
    """What a worker returned or raised, and how long it ran."""
    status: TaskStatus
    result: Optional[T] = None
    error: Optional[Exception] = None
    elapsed: float = 0.0

    @property
    def succeeded(self) -> bool:
        return self.status == TaskStatus.COMPLETED


class ThreadedTask(Generic[T]):
    """
    Runs a callable once on a daemon thread.

    Usage:
        task = ThreadedTask(relay.run, name="session-1", on_complete=done)
        task.start()
        outcome = task.wait(timeout=10).result
    """

    def __init__(
        self,
        target: Callable[[], T],
        name: Optional[str] = None,
        on_complete: Optional[Callable[[TaskResult[T]], None]] = None
    ):
        """
        Args:
            target: Zero-argument callable run on the worker thread
            name: Thread name; appears in every log record the worker emits
            on_complete: Called on the worker thread with the TaskResult
        """
        self._target = target
        self._name = name
        self._on_complete = on_complete

        self._thread: Optional[threading.Thread] = None
        self._result: TaskResult[T] = TaskResult(status=TaskStatus.PENDING)

    @property
    def name(self) -> Optional[str]:
        return self._name

    @property
    def status(self) -> TaskStatus:
        return self._result.status

    def start(self) -> None:
        """
        Start the worker thread.

        Raises:
            RuntimeError: If the task was already started, or the thread
                cannot be created
        """
        if self._thread is not None:
            raise RuntimeError(f"Task {self._name} already started")

        self._result = TaskResult(status=TaskStatus.RUNNING)
        self._thread = threading.Thread(target=self._run, name=self._name, daemon=True)
        self._thread.start()

    def wait(self, timeout: Optional[float] = None) -> TaskResult[T]:
        """
        Block until the worker finishes.

        Args:
            timeout: Seconds to wait (None = forever)

        Raises:
            TimeoutError: If the worker is still running after timeout
        """
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            if self._thread.is_alive():
                raise TimeoutError(f"Task {self._name} still running after {timeout}s")
        return self._result

    def _run(self) -> None:
        started = time.monotonic()
        try:
            value = self._target()
        except Exception as e:
            logger.exception("Task %s failed", self._name)
            result = TaskResult(status=TaskStatus.FAILED, error=e)
        else:
            result = TaskResult(status=TaskStatus.COMPLETED, result=value)

        result.elapsed = time.monotonic() - started
        self._result = result

        if self._on_complete is not None:
            self._on_complete(result)
