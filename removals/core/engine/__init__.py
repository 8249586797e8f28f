# removals/core/engine/__init__.py
"""
Application layer -- async session orchestration around the calculator.

Canonical imports:
    from removals.core.engine import QuoteSessionService, SessionNotFoundError
    from removals.core.engine.ports import AsyncCalculatorStateStore
"""
from removals.core.engine.ports import (  # noqa: F401
    AsyncCalculatorStateStore,
    CallbackNotifier,
    MileageProvider,
)
from removals.core.engine.use_cases import (  # noqa: F401
    QuoteSessionService,
    SessionNotFoundError,
    SubmitResult,
)

__all__ = [
    "AsyncCalculatorStateStore",
    "CallbackNotifier",
    "MileageProvider",
    "QuoteSessionService",
    "SessionNotFoundError",
    "SubmitResult",
]
