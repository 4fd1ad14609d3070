from __future__ import annotations
import threading
from typing import Any, Callable, Dict, Optional

from licsync.core.auth import AuthError
from licsync.core.directory import Directory
from licsync.core.logging_utils import get_logger
from licsync.core.models import Outcome, OutcomeStatus, ReconciliationPlan
from licsync.http.errors import HttpError, TransientApiError
from licsync.http.throttle import RetryPolicy, sleep_backoff

log = get_logger(__name__)


class ExecutionEngine:
    """
    Applies one principal's plan as a single assignLicense call.

    Throttling (429) and capacity (502/503/504) errors are retried with a fixed
    delay up to `policy.attempts`; every other failure is recorded at once.
    No exception escapes `execute`, so one principal never stops another.
    """
    def __init__(
        self,
        directory: Directory,
        *,
        policy: RetryPolicy | None = None,
        sleeper: Optional[Callable[[float], None]] = None,
        cancel: threading.Event | None = None,
    ):
        self.directory = directory
        self.policy = policy or RetryPolicy()
        self._sleep = sleeper
        self._cancel = cancel

    def _wait(self, seconds: float) -> bool:
        """Sleep between attempts. Returns False when the run was cancelled meanwhile.

        An injected sleeper always does the waiting and the cancel token is
        checked afterwards; without one, the wait itself is interruptible.
        """
        if self._sleep is not None:
            self._sleep(seconds)
            return self._cancel is None or not self._cancel.is_set()
        if self._cancel is not None:
            return not self._cancel.wait(seconds)
        sleep_backoff(seconds)
        return True

    def execute(
        self,
        identifier: str,
        principal_id: str,
        plan: ReconciliationPlan,
        *,
        dry_run: bool = False,
        source: Optional[Dict[str, Any]] = None,
        credential: Optional[str] = None,
    ) -> Outcome:
        out = Outcome(
            identifier=identifier,
            status=OutcomeStatus.SKIPPED_NOOP,
            plan=plan,
            principal_id=principal_id,
            source=dict(source or {}),
            credential=credential,
        )
        if plan.is_noop:
            log.info("%s: already in desired state", identifier)
            return out
        if dry_run:
            log.info("%s: dry-run, add=%s remove=%s", identifier,
                     [a.sku_id for a in plan.add_assignments], list(plan.remove_sku_ids))
            out.status = OutcomeStatus.DRY_RUN
            return out

        attempt = 0
        while True:
            if self._cancel is not None and self._cancel.is_set():
                return self._failed(out, attempt, f"cancelled before attempt {attempt + 1}")
            attempt += 1
            try:
                self.directory.assign_licenses(principal_id, plan.add_assignments, plan.remove_sku_ids)
            except TransientApiError as ex:
                if attempt >= self.policy.attempts:
                    return self._failed(out, attempt, f"gave up after {attempt} attempts: {ex.detail()}")
                delay = self.policy.delay_for(ex.retry_after)
                log.warning("%s: %s (attempt %d/%d), retrying in %.0fs",
                            identifier, type(ex).__name__, attempt, self.policy.attempts, delay)
                if not self._wait(delay):
                    return self._failed(out, attempt, f"cancelled after attempt {attempt}: {ex.detail()}")
                continue
            except HttpError as ex:
                return self._failed(out, attempt, f"non-retryable: {ex.detail()}")
            except AuthError as ex:
                return self._failed(out, attempt, f"authentication failed ({ex.code}): {ex}")
            except Exception as ex:  # per-principal isolation
                log.exception("%s: unexpected error during assignLicense", identifier)
                return self._failed(out, attempt, f"unexpected {type(ex).__name__}: {ex}")

            out.status = OutcomeStatus.SUCCESS
            out.attempts = attempt
            log.info("%s: licenses updated (attempts=%d)", identifier, attempt)
            return out

    @staticmethod
    def _failed(out: Outcome, attempts: int, detail: str) -> Outcome:
        out.status = OutcomeStatus.FAILED
        out.attempts = attempts
        out.error_detail = detail
        log.error("%s: %s", out.identifier, detail)
        return out
