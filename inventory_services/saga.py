"""
inventory_services.saga -- step-wise execution with declared compensation.

Responsibility:
    Runs an ordered list of SagaSteps inside the caller's transaction.
    Each step runs in its own SAVEPOINT, so a failing step is undone on its
    own.  The compensations of the steps that already succeeded then run in
    reverse order, each in its own SAVEPOINT.

Architecture position:
    Services layer.  Knows nothing about transfers; the Transfer
    Orchestrator builds the steps.

Outcomes:
    - All steps succeed: results are returned in step order.
    - The first step fails: its own error propagates unchanged (nothing to
      compensate; e.g. InsufficientStockError on a source debit).
    - A later step fails and every compensation succeeds:
      TransferFailedError carrying the failed step, the compensated steps
      and the original cause.  The compensated trail is left in the
      session for the caller to commit.
    - A compensation fails: CompensationFailedError; the caller must roll
      back the whole transaction.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

from sqlalchemy.orm import Session

from inventory_kernel.exceptions import CompensationFailedError, TransferFailedError
from inventory_kernel.logging_config import get_logger

logger = get_logger("services.saga")


@dataclass(frozen=True)
class SagaStep:
    """
    One forward action and, optionally, the action that undoes it.

    The compensation receives the forward action's result.
    """

    name: str
    action: Callable[[], Any]
    compensation: Callable[[Any], Any] | None = None


class SagaExecutor:
    """Executes saga steps for one subject (a transfer id)."""

    def __init__(self, session: Session, saga_name: str, subject_id: Any):
        self._session = session
        self._saga_name = saga_name
        self._subject_id = subject_id

    def _log_extra(self, **extra: Any) -> dict[str, Any]:
        return {"saga": self._saga_name, "subject_id": str(self._subject_id), **extra}

    def run(self, steps: Sequence[SagaStep]) -> list[Any]:
        completed: list[tuple[SagaStep, Any]] = []
        t0 = time.monotonic()

        for step in steps:
            try:
                with self._session.begin_nested():
                    result = step.action()
            except Exception as exc:
                logger.warning(
                    "saga_step_failed",
                    extra=self._log_extra(
                        step=step.name,
                        error_type=type(exc).__name__,
                        error_code=getattr(exc, "code", None),
                    ),
                )
                if not completed:
                    raise
                compensated = self._compensate(step, completed, exc)
                raise TransferFailedError(
                    transfer_id=str(self._subject_id),
                    failed_step=step.name,
                    compensated_steps=compensated,
                    cause=exc,
                ) from exc

            completed.append((step, result))
            logger.debug("saga_step_completed", extra=self._log_extra(step=step.name))

        logger.info(
            "saga_completed",
            extra=self._log_extra(
                steps=[s.name for s, _ in completed],
                duration_ms=round((time.monotonic() - t0) * 1000, 2),
            ),
        )
        return [result for _, result in completed]

    def _compensate(
        self,
        failed_step: SagaStep,
        completed: list[tuple[SagaStep, Any]],
        cause: BaseException,
    ) -> tuple[str, ...]:
        logger.warning(
            "saga_compensation_started",
            extra=self._log_extra(
                failed_step=failed_step.name,
                to_compensate=[s.name for s, _ in reversed(completed)],
            ),
        )
        compensated: list[str] = []
        for step, result in reversed(completed):
            if step.compensation is None:
                continue
            try:
                with self._session.begin_nested():
                    step.compensation(result)
            except Exception as exc:
                logger.error(
                    "saga_compensation_failed",
                    extra=self._log_extra(
                        failed_step=failed_step.name,
                        compensation_step=step.name,
                        error_type=type(exc).__name__,
                    ),
                )
                raise CompensationFailedError(
                    transfer_id=str(self._subject_id),
                    failed_step=failed_step.name,
                    compensation_step=step.name,
                    compensated_steps=tuple(compensated),
                    cause=cause,
                ) from exc
            compensated.append(step.name)

        logger.warning(
            "saga_compensated",
            extra=self._log_extra(failed_step=failed_step.name, compensated=compensated),
        )
        return tuple(compensated)
