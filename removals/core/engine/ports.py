# removals/core/engine/ports.py
from __future__ import annotations
from typing import Protocol, Optional

from removals.core.calculator.domain import Address, CalculatorState, RouteEstimate
from removals.core.calculator.escalation import CallbackDecision


# ============================================================================
# ASYNC PROTOCOLS
# ============================================================================

class AsyncCalculatorStateStore(Protocol):
    """Persists one CalculatorState per session id.

    ``get`` returns the state with ``tracking.updated_at`` set to the time
    of the last ``upsert`` so callers can enforce the TTL.
    """
    async def get(self, session_id: str) -> Optional[CalculatorState]: ...
    async def upsert(self, session_id: str, state: CalculatorState) -> None: ...
    async def delete(self, session_id: str) -> None: ...
    async def cleanup_expired(self, ttl_seconds: int) -> int: ...


class MileageProvider(Protocol):
    async def estimate_route(self, from_address: Address, to_address: Address) -> Optional[RouteEstimate]:
        """
        Driving figures for depot -> from -> to -> depot.
        None => route unavailable; the quote is priced without mileage.
        """
        ...


class CallbackNotifier(Protocol):
    async def notify(self, state: CalculatorState, decision: CallbackDecision, payload: dict) -> bool:
        """
        Tell an operator that a customer needs a callback.
        True => delivered; False => delivery failed (already logged).
        """
        ...
