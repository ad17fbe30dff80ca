"""Five-step survey wizard modelled as an explicit state machine.

The mini-app walks a user through one question per screen. This module keeps
that flow independent of any UI: each step has a completeness predicate that
gates ``next()``, and the only hand-off to the submission workflow is the
``SurveyAnswers`` payload returned by ``begin_submit()``.
"""
from __future__ import annotations

from enum import Enum
from typing import Callable, Iterable, Optional

from pydantic import ValidationError

from coupon_survey.models.enums import AgeRange, Channel, Gender, PriceRange
from coupon_survey.schemas.survey import SurveyAnswers


class WizardState(str, Enum):
    """Wizard states in display order."""

    AGE = "age"
    GENDER = "gender"
    CHANNELS = "channels"
    PRICE = "price"
    BRAND = "brand"
    SUBMITTING = "submitting"
    DONE = "done"


STEPS = (
    WizardState.AGE,
    WizardState.GENDER,
    WizardState.CHANNELS,
    WizardState.PRICE,
    WizardState.BRAND,
)


class WizardError(RuntimeError):
    """Raised on a transition that is not allowed from the current state."""


class SurveyWizard:
    """Collects answers step by step and hands a complete payload to submission."""

    def __init__(self):
        self.state = WizardState.AGE
        self.age_range: Optional[AgeRange] = None
        self.gender: Optional[Gender] = None
        self.channels: list[Channel] = []
        self.channel_other_text: str = ""
        self.price_range: Optional[PriceRange] = None
        self.current_brand: str = ""
        self.coupon_code: Optional[str] = None

    @property
    def step_number(self) -> int:
        """1-based step index, or the step count once past the questions."""
        if self.state in STEPS:
            return STEPS.index(self.state) + 1
        return len(STEPS)

    def _completeness(self) -> dict[WizardState, Callable[[], bool]]:
        return {
            WizardState.AGE: lambda: self.age_range is not None,
            WizardState.GENDER: lambda: self.gender is not None,
            WizardState.CHANNELS: lambda: len(self.channels) > 0,
            WizardState.PRICE: lambda: self.price_range is not None,
            WizardState.BRAND: lambda: len(self.current_brand.strip()) > 0,
        }

    def is_step_complete(self, step: Optional[WizardState] = None) -> bool:
        step = step or self.state
        predicate = self._completeness().get(step)
        return bool(predicate and predicate())

    def _require_question_step(self) -> None:
        if self.state not in STEPS:
            raise WizardError(f"answers are locked in state {self.state.value}")

    # Answer setters

    def set_age_range(self, value: AgeRange | str) -> None:
        self._require_question_step()
        self.age_range = AgeRange(value)

    def set_gender(self, value: Gender | str) -> None:
        self._require_question_step()
        self.gender = Gender(value)

    def set_channels(self, values: Iterable[Channel | str], other_text: str = "") -> None:
        self._require_question_step()
        self.channels = list(dict.fromkeys(Channel(value) for value in values))
        self.channel_other_text = other_text

    def set_price_range(self, value: PriceRange | str) -> None:
        self._require_question_step()
        self.price_range = PriceRange(value)

    def set_current_brand(self, value: str) -> None:
        self._require_question_step()
        self.current_brand = value

    # Transitions

    def next(self) -> WizardState:
        """Advance to the following question if the current one is answered."""
        self._require_question_step()
        if self.state == STEPS[-1]:
            raise WizardError("already on the last step; use begin_submit()")
        if not self.is_step_complete():
            raise WizardError(f"step {self.state.value} is incomplete")
        self.state = STEPS[STEPS.index(self.state) + 1]
        return self.state

    def back(self) -> WizardState:
        """Return to the previous question; a no-op on the first one."""
        self._require_question_step()
        index = STEPS.index(self.state)
        if index > 0:
            self.state = STEPS[index - 1]
        return self.state

    def begin_submit(self) -> SurveyAnswers:
        """Move to SUBMITTING and return the validated answers payload."""
        if self.state != STEPS[-1]:
            raise WizardError("submission is only possible from the last step")
        incomplete = [step.value for step in STEPS if not self.is_step_complete(step)]
        if incomplete:
            raise WizardError(f"incomplete steps: {', '.join(incomplete)}")

        try:
            answers = SurveyAnswers(
                age_range=self.age_range,
                gender=self.gender,
                channels=self.channels,
                channel_other_text=self.channel_other_text,
                price_range=self.price_range,
                current_brand=self.current_brand,
            )
        except ValidationError as exc:
            raise WizardError(f"answers failed validation: {exc.error_count()} error(s)") from exc

        self.state = WizardState.SUBMITTING
        return answers

    def complete(self, coupon_code: str) -> None:
        """Record the issued coupon after a successful submission."""
        if self.state != WizardState.SUBMITTING:
            raise WizardError("no submission in progress")
        self.coupon_code = coupon_code
        self.state = WizardState.DONE

    def fail(self) -> WizardState:
        """Return to the last question after a failed submission, keeping answers."""
        if self.state != WizardState.SUBMITTING:
            raise WizardError("no submission in progress")
        self.state = STEPS[-1]
        return self.state

    def restore_completed(self, coupon_code: str) -> None:
        """Jump straight to DONE for a user who had already submitted."""
        self.coupon_code = coupon_code
        self.state = WizardState.DONE
