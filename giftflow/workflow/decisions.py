"""
Yes/no decisions the workflow may need from its operator.

**Conceptual**: A few steps can't decide on their own, e.g. "a class with this
id already exists, mint into it anyway?". Steps ask a DecisionProvider instead
of prompting directly, so the same pipeline runs interactively from the CLI and
unattended in tests:
  - InteractiveDecisionProvider asks on the terminal.
  - ProgrammaticDecisionProvider answers from a dict of preset answers.

**Example**:
    def ensure_class(context, config, decisions: DecisionProvider):
        if not decisions.confirm(APPEND_TO_CLASS, "Mint into the existing class?"):
            raise UserDeclinedError(...)

    ensure_class(context, config, InteractiveDecisionProvider())            # CLI
    ensure_class(context, config, ProgrammaticDecisionProvider({APPEND_TO_CLASS: True}))  # tests
"""

import sys
from typing import Callable, Dict, List, Optional, Protocol, TextIO, Tuple

APPEND_TO_CLASS = "append_to_class"
CONTINUE_WITHOUT_CLASS_METADATA = "continue_without_class_metadata"


class DecisionProvider(Protocol):
    """Anything that can answer a yes/no question identified by a key."""

    def confirm(self, key: str, message: str, default: bool = False) -> bool:
        """
        Return the answer to the question `message`.

        Args:
            key: Stable identifier of the question (e.g. APPEND_TO_CLASS).
            message: Human-readable question.
            default: Answer used when no explicit answer is given.
        """
        ...


class InteractiveDecisionProvider:
    """
    Asks on the terminal; an empty answer or end of input means `default`.

    Args:
        input_fn: Function reading one line (default: built-in input).
        output: Stream the hint for invalid answers is written to (default:
                stdout).
    """

    YES = ("y", "yes")
    NO = ("n", "no")

    def __init__(self, input_fn: Optional[Callable[[str], str]] = None, output: Optional[TextIO] = None):
        self._input = input_fn or input
        self._output = output or sys.stdout

    def confirm(self, key: str, message: str, default: bool = False) -> bool:
        suffix = "[Y/n]" if default else "[y/N]"
        while True:
            try:
                answer = self._input(f"? {message} {suffix} ").strip().lower()
            except EOFError:
                return default
            if not answer:
                return default
            if answer in self.YES:
                return True
            if answer in self.NO:
                return False
            print("Please answer 'y' or 'n'.", file=self._output)


class ProgrammaticDecisionProvider:
    """
    Answers from preset values, for tests and non-interactive runs.

    Questions without a preset answer get `fallback` if given, otherwise the
    question's own default. Every question asked is recorded in `asked`.

    Example:
        >>> decisions = ProgrammaticDecisionProvider({APPEND_TO_CLASS: True})
        >>> decisions.confirm(APPEND_TO_CLASS, "Mint into the existing class?")
        True
        >>> decisions.asked
        [('append_to_class', 'Mint into the existing class?')]
    """

    def __init__(self, answers: Optional[Dict[str, bool]] = None, fallback: Optional[bool] = None):
        self.answers = dict(answers or {})
        self.fallback = fallback
        self.asked: List[Tuple[str, str]] = []

    def confirm(self, key: str, message: str, default: bool = False) -> bool:
        self.asked.append((key, message))
        if key in self.answers:
            return self.answers[key]
        return default if self.fallback is None else self.fallback
