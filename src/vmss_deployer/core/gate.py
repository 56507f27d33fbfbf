"""
Confirmation gates.

AutoApproveGate approves every mutation and only logs progress; it is used
for automated runs (CLI --yes) and as the executor default.
ConsoleConfirmationGate asks on the console before each mutation, with the
usual Yes / Yes to All / No / No to All choices.
"""

from typing import Callable, Optional

from ..logger import logger
from .protocols import ProgressPhase
from .resource import ResourceIdentity


class AutoApproveGate:
    """Approve everything, log progress."""

    def should_proceed(self, description: str) -> bool:
        logger.debug(f"Auto-approved: {description}")
        return True

    def report_progress(self, identity: ResourceIdentity, phase: ProgressPhase) -> None:
        if phase == ProgressPhase.STARTED:
            logger.info(f"→ Started: {identity}")
        elif phase == ProgressPhase.DONE:
            logger.info(f"✓ Done: {identity}")
        elif phase == ProgressPhase.FAILED:
            logger.error(f"✗ Failed: {identity}")
        elif phase == ProgressPhase.SKIPPED:
            logger.warning(f"Skipped by user: {identity}")


class ConsoleConfirmationGate(AutoApproveGate):
    """
    Interactive gate.

    Answers:
        y / yes   - apply this change
        a / all   - apply this and every following change without asking
        n / no    - skip this change (and everything depending on it)
        l / none  - skip this and every following change without asking

    End of input is treated as "none".
    """

    ANSWERS = {
        "y": (True, False), "yes": (True, False),
        "a": (True, True), "all": (True, True),
        "n": (False, False), "no": (False, False),
        "l": (False, True), "none": (False, True),
    }

    def __init__(self, input_func: Callable[[str], str] = input):
        self._input = input_func
        self._sticky: Optional[bool] = None

    def should_proceed(self, description: str) -> bool:
        if self._sticky is not None:
            return self._sticky

        while True:
            try:
                answer = self._input(f"{description}? [y]es / yes to [a]ll / [n]o / no to a[l]l: ")
            except EOFError:
                logger.warning("No input available, declining remaining changes")
                self._sticky = False
                return False

            choice = self.ANSWERS.get(answer.strip().lower())
            if choice is None:
                print("Please answer y, a, n or l.")
                continue

            proceed, remember = choice
            if remember:
                self._sticky = proceed
            return proceed
