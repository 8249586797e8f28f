# removals/core/engine/use_cases.py
from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional, Union

from removals.core.calculator.domain import CalcStep, CalculatorState, Tracking
from removals.core.calculator.engine import (
    QuoteResult,
    StepOutcome,
    advance,
    compute_quote,
    go_to_step,
    new_state,
    retreat,
    submission_payload,
)
from removals.core.calculator.errors import CalculatorError
from removals.core.engine.ports import (
    AsyncCalculatorStateStore,
    CallbackNotifier,
    MileageProvider,
)
from removals.infra.logging_config import LogContext, get_logger
from removals.infra.metrics import AppMetrics

logger = get_logger(__name__)


class SessionNotFoundError(LookupError):
    """Unknown, expired or already-submitted quote session."""

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Quote session not found: {session_id}")
        self.session_id = session_id


@dataclass
class SubmitResult:
    quote: Optional[QuoteResult] = None
    errors: list[CalculatorError] = field(default_factory=list)
    payload: Optional[dict] = None
    notified: bool = False

    @property
    def ok(self) -> bool:
        return not self.errors


class QuoteSessionService:
    """
    Application service / use-case layer for quote sessions.
    Workflow: load (TTL check) -> engine call -> route lookup -> persist.

    On submit the quote is computed, escalated cases are handed to the
    callback notifier once, and the session is discarded.
    """

    def __init__(
        self,
        *,
        sessions: AsyncCalculatorStateStore,
        mileage: MileageProvider | None = None,
        notifier: CallbackNotifier | None = None,
        ttl_seconds: int | None = None,
    ) -> None:
        if ttl_seconds is None:
            from removals.config import settings
            ttl_seconds = settings.state_ttl_seconds

        self.sessions = sessions
        self.mileage = mileage
        self.notifier = notifier
        self.ttl_seconds = ttl_seconds

    @staticmethod
    def _elapsed_seconds(state: CalculatorState) -> float | None:
        """Seconds since the state was last saved, or None if unknown."""
        updated = state.tracking.updated_at
        if updated is None:
            return None
        if updated.tzinfo is None:
            updated = updated.replace(tzinfo=timezone.utc)
        return (datetime.now(timezone.utc) - updated).total_seconds()

    def _is_expired(self, state: CalculatorState) -> bool:
        elapsed = self._elapsed_seconds(state)
        if elapsed is None:
            return False
        return elapsed > self.ttl_seconds

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    async def load(self, session_id: str) -> CalculatorState:
        state = await self.sessions.get(session_id)
        if state is None:
            raise SessionNotFoundError(session_id)

        if self._is_expired(state):
            await self.sessions.delete(session_id)
            AppMetrics.session_expired()
            logger.info("session_expired", extra={"session_id": session_id})
            raise SessionNotFoundError(session_id)

        return state

    async def _save(self, session_id: str, state: CalculatorState) -> None:
        state.tracking.session_id = session_id
        state.tracking.updated_at = datetime.now(timezone.utc)
        await self.sessions.upsert(session_id, state)

    # ------------------------------------------------------------------
    # Use cases
    # ------------------------------------------------------------------

    async def start(self, tracking: Tracking | None = None) -> tuple[str, CalculatorState]:
        """Create an empty session; returns its id and state."""
        session_id = uuid.uuid4().hex
        tracking = tracking or Tracking()
        tracking.session_id = session_id

        state = new_state(tracking)
        await self._save(session_id, state)

        AppMetrics.session_created()
        logger.info("session_created", extra={
            "session_id": session_id,
            "utm_source": tracking.utm_source,
            "has_gclid": bool(tracking.gclid),
        })
        return session_id, state

    async def answer(self, session_id: str, answer: dict[str, Any]) -> StepOutcome:
        state = await self.load(session_id)
        step = state.current_step
        log = LogContext(logger, session_id=session_id, step=step.value)

        with AppMetrics.track_step_time(step.value):
            outcome = advance(state, answer)

            if not outcome.ok:
                AppMetrics.step_rejected(step.value, outcome.errors[0].kind)
                # A failed manual override still records the attempt.
                if outcome.state is not state:
                    await self._save(session_id, outcome.state)
                return outcome

            if step == CalcStep.TO_ADDRESS:
                await self._attach_route(outcome.state, log)

            await self._save(session_id, outcome.state)

        AppMetrics.step_advanced(step.value)
        return outcome

    async def _attach_route(self, state: CalculatorState, log: LogContext) -> None:
        if state.route is not None or self.mileage is None:
            return
        if state.from_address is None or state.to_address is None:
            return

        route = await self.mileage.estimate_route(state.from_address, state.to_address)
        if route is None:
            log.warning("route_unavailable")
            return
        state.route = route

    async def back(self, session_id: str) -> CalculatorState:
        state = await self.load(session_id)
        previous = retreat(state)
        if previous.current_step != state.current_step:
            await self._save(session_id, previous)
        return previous

    async def go_to(self, session_id: str, step: CalcStep | str) -> StepOutcome:
        state = await self.load(session_id)
        outcome = go_to_step(state, step)
        if outcome.ok:
            await self._save(session_id, outcome.state)
        else:
            LogContext(logger, session_id=session_id, step=state.current_step.value).error(
                "inapplicable_step_requested", extra={"target": str(step)},
            )
        return outcome

    def _compute(self, state: CalculatorState) -> Union[QuoteResult, list[CalculatorError]]:
        result = compute_quote(state)
        if isinstance(result, QuoteResult) and result.breakdown is not None:
            AppMetrics.quote_computed(state.service_type.value, result.breakdown.display_total)
        return result

    async def quote(self, session_id: str) -> Union[QuoteResult, list[CalculatorError]]:
        state = await self.load(session_id)
        return self._compute(state)

    async def submit(self, session_id: str) -> SubmitResult:
        """
        Finalize the session: compute the quote, notify an operator if the
        case is escalated, then discard the stored state.

        The state is deleted even when notification fails; a second submit
        raises SessionNotFoundError, so the notifier runs at most once.
        """
        state = await self.load(session_id)
        result = self._compute(state)
        if isinstance(result, list):
            return SubmitResult(errors=result)

        payload = submission_payload(state, result)
        notified = False

        if result.callback_required:
            AppMetrics.callback_escalated(result.decision.primary_reason or "unknown")
            if self.notifier is not None:
                notified = await self.notifier.notify(state, result.decision, payload)
            if not notified:
                logger.warning("callback_not_delivered", extra={
                    "session_id": session_id,
                    "reasons": list(result.decision.reasons),
                })

        await self.sessions.delete(session_id)
        logger.info("session_submitted", extra={
            "session_id": session_id,
            "callback_required": result.callback_required,
            "notified": notified,
        })
        return SubmitResult(quote=result, payload=payload, notified=notified)

    async def discard(self, session_id: str) -> None:
        await self.sessions.delete(session_id)

    async def cleanup_expired(self) -> dict:
        deleted = await self.sessions.cleanup_expired(self.ttl_seconds)
        return {"ok": True, "deleted_sessions": deleted, "ttl_seconds": self.ttl_seconds}
