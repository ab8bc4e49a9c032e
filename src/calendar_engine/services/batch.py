"""
Batch execution with per-item failure isolation.

Items run strictly one after another. A failing item is recorded in its own
result and the batch moves on; the batch itself never fails because of an
item. Nothing is rolled back or retried.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional, Sequence, TypeVar

from calendar_engine.errors import CalendarEngineError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class BatchItemResult:
    """Outcome of one batch item."""

    index: int
    success: bool
    input_id: Optional[str] = None
    result_id: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> dict:
        result: dict = {"index": self.index, "success": self.success}
        if self.input_id is not None:
            result["input_id"] = self.input_id
        if self.result_id is not None:
            result["result_id"] = self.result_id
        if self.error is not None:
            result["error"] = self.error
        return result


@dataclass
class BatchResult:
    """Aggregate of a batch run. Computed per call, never stored."""

    items: list[BatchItemResult] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.items)

    @property
    def succeeded(self) -> int:
        return sum(1 for item in self.items if item.success)

    @property
    def failed(self) -> int:
        return self.total - self.succeeded

    @property
    def failures(self) -> list[BatchItemResult]:
        return [item for item in self.items if not item.success]

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "results": [item.to_dict() for item in self.items],
            "failures": [item.to_dict() for item in self.failures],
        }


@dataclass
class BatchPreview:
    """What a destructive selection-based batch would affect."""

    items: list[Any]

    @property
    def count(self) -> int:
        return len(self.items)


async def run_batch(
    items: Sequence[T],
    operation: Callable[[T], Awaitable[Optional[str]]],
    identify: Optional[Callable[[T], Optional[str]]] = None,
) -> BatchResult:
    """
    Run `operation` on every item in order, isolating failures.

    Args:
        items: Batch inputs (ids or argument dicts)
        operation: Coroutine per item returning the resulting identifier
        identify: Extracts the input identifier recorded in each result

    Returns:
        BatchResult with one entry per input, in input order
    """
    batch = BatchResult()

    for index, item in enumerate(items):
        input_id = identify(item) if identify else None
        try:
            result_id = await operation(item)
        except CalendarEngineError as e:
            logger.warning(f"Batch item {index} failed: {e.message}")
            batch.items.append(
                BatchItemResult(index=index, success=False, input_id=input_id, error=e.message)
            )
            continue
        except Exception as e:
            logger.warning(f"Batch item {index} failed unexpectedly: {e}", exc_info=True)
            batch.items.append(
                BatchItemResult(index=index, success=False, input_id=input_id, error=str(e))
            )
            continue

        batch.items.append(
            BatchItemResult(index=index, success=True, input_id=input_id, result_id=result_id)
        )

    logger.info(
        f"Batch finished: {batch.succeeded}/{batch.total} succeeded, {batch.failed} failed"
    )
    return batch
