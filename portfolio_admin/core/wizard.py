"""
Form Wizard Engine
==================

Drives an ``EntityDraft`` through its ordered steps. The engine is generic:
steps, required fields and payload construction come from the draft variant.

Navigation Rules:
-----------------
- Moving forward (next step or a later step) requires the current step to
  validate. Failed validation records per-field errors and keeps the step.
- Moving backward never validates.
- Editing a field clears that field's error as soon as it has a value.
- Submitting re-validates only the current step, then hands the draft to a
  persistence coroutine. While it runs, further submits are ignored.

Author: Portfolio Admin Project
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Optional

from portfolio_admin.core.drafts import EntityDraft, is_blank
from portfolio_admin.core.errors import DraftValidationError, RemoteCallError
from portfolio_admin.core.retry import RemoteCallResult

SUBMIT_FAILED_MESSAGE = "Failed to save. Please try again."


@dataclass
class WizardState:
    """Snapshot of where an editor is and what is wrong with it."""
    current_step: int
    total_steps: int
    draft: EntityDraft
    step_errors: Dict[str, str] = field(default_factory=dict)


class FormWizard:
    """
    Multi-step editor for one draft.

    Attributes:
        state: Current step, step count, draft and field errors.
        is_submitting: True while ``submit`` awaits persistence.
        submit_error: User-facing message from the last failed submit.
        closed: True after a successful submit or an explicit close.
    """

    def __init__(self, draft: EntityDraft):
        self.state = WizardState(current_step=1, total_steps=len(draft.STEPS), draft=draft)
        self.is_submitting = False
        self.submit_error: Optional[str] = None
        self.closed = False
        self.saved_entity: Any = None
        self.logger = logging.getLogger(__name__)

    # ------------------------------------------------------------------
    # Convenience accessors
    # ------------------------------------------------------------------

    @property
    def draft(self) -> EntityDraft:
        return self.state.draft

    @property
    def current_step(self) -> int:
        return self.state.current_step

    @property
    def total_steps(self) -> int:
        return self.state.total_steps

    @property
    def step_errors(self) -> Dict[str, str]:
        return self.state.step_errors

    @property
    def step_title(self) -> str:
        return self.draft.STEPS[self.current_step - 1].title

    @property
    def is_last_step(self) -> bool:
        return self.current_step == self.total_steps

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate_current_step(self) -> bool:
        """Validate the current step and replace the recorded errors with the outcome."""
        self.state.step_errors = self.draft.validate_step(self.current_step)
        if self.state.step_errors:
            self.logger.debug(
                f"Step {self.current_step} of {self.draft.KIND} editor invalid: "
                f"{sorted(self.state.step_errors)}"
            )
        return not self.state.step_errors

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    def go_next(self) -> bool:
        """Advance one step if the current step validates. Returns True when moved."""
        if not self.validate_current_step():
            return False
        if self.is_last_step:
            return False
        self.state.current_step += 1
        return True

    def go_previous(self) -> bool:
        """Go back one step without validating. Refused on the first step."""
        if self.current_step <= 1:
            return False
        self.state.current_step -= 1
        return True

    def jump_to_step(self, step: int) -> bool:
        """
        Jump directly to ``step``.

        Backward jumps are always allowed. Forward jumps require the current
        step to validate. Out-of-range targets are refused.
        """
        if step < 1 or step > self.total_steps:
            return False
        if step == self.current_step:
            return True
        if step > self.current_step and not self.validate_current_step():
            return False
        self.logger.debug(f"Jumping from step {self.current_step} to {step}")
        self.state.current_step = step
        return True

    # ------------------------------------------------------------------
    # Editing
    # ------------------------------------------------------------------

    def update_field(self, name: str, value: Any) -> None:
        """Apply an edit to the draft and clear the field's error once it has a value."""
        self.draft.set_field(name, value)
        if name in self.state.step_errors and not is_blank(value):
            del self.state.step_errors[name]

    def close(self) -> bool:
        """Close the editor. Refused while a submit is in flight."""
        if self.is_submitting:
            return False
        self.closed = True
        return True

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    async def submit(self, persist: Callable[[EntityDraft], Awaitable[Any]]) -> bool:
        """
        Validate the current step and persist the draft.

        Args:
            persist: Coroutine function receiving the draft. It may return a
                value, return a ``RemoteCallResult``, or raise a ``RemoteCallError``.

        Returns:
            True when the draft was saved and the editor closed.
        """
        if self.is_submitting:
            self.logger.debug("Submit ignored: a submit is already in flight")
            return False
        if not self.validate_current_step():
            return False

        self.is_submitting = True
        self.submit_error = None
        try:
            outcome = await persist(self.draft)
            if isinstance(outcome, RemoteCallResult):
                outcome = outcome.unwrap()
        except DraftValidationError as e:
            self.state.step_errors.update(e.errors)
            self.submit_error = str(e)
            return False
        except RemoteCallError as e:
            self.logger.warning(f"Saving {self.draft.KIND} failed: {e}")
            self.submit_error = e.user_message or SUBMIT_FAILED_MESSAGE
            return False
        finally:
            self.is_submitting = False

        self.saved_entity = outcome
        self.closed = True
        self.logger.info(f"Saved {self.draft.KIND} draft")
        return True
