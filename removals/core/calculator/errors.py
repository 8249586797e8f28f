# removals/core/calculator/errors.py
"""
Error values returned by the calculator engine.

None of these are raised: the engine returns them alongside the
(unchanged) state so the caller can display them and resubmit the step.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Union

__all__ = [
    "StepValidationError",
    "ManualOverrideBoundsError",
    "InapplicableStepError",
    "CalculatorError",
]


@dataclass(frozen=True)
class StepValidationError:
    """A required field is missing or out of range for the current step."""
    step: str
    field: str
    message: str

    kind: Literal["step_validation"] = "step_validation"

    def to_dict(self) -> dict:
        return {"kind": self.kind, "step": self.step, "field": self.field, "message": self.message}


@dataclass(frozen=True)
class ManualOverrideBoundsError:
    """Movers below ``vans`` or above ``3 × vans`` for a manual override."""
    kind: Literal["min", "max"]
    bound_value: int
    vans: int
    movers: int
    message: str

    def to_dict(self) -> dict:
        return {
            "kind": f"override_{self.kind}",
            "bound_value": self.bound_value,
            "vans": self.vans,
            "movers": self.movers,
            "message": self.message,
        }


@dataclass(frozen=True)
class InapplicableStepError:
    """A step was completed or re-entered that the skip rules rule out.

    Indicates a caller/sequencing bug, not a user mistake.
    """
    step: str
    message: str

    kind: Literal["inapplicable_step"] = "inapplicable_step"

    def to_dict(self) -> dict:
        return {"kind": self.kind, "step": self.step, "message": self.message}


CalculatorError = Union[StepValidationError, ManualOverrideBoundsError, InapplicableStepError]
