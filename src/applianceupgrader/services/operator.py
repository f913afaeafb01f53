"""Operator interaction for applianceupgrader."""

from typing import Optional

import click


class ConsoleOperator:
    """Asks the operator on the terminal.

    The orchestrator only relies on ``confirm`` and ``ask``, so scripted runs
    can pass any object providing those two methods.
    """

    def confirm(self, message: str) -> bool:
        # No default: the operator has to answer y or n explicitly.
        return click.confirm(message, default=None)

    def ask(self, message: str, hide_input: bool = False, default: Optional[str] = None) -> str:
        return click.prompt(
            message,
            hide_input=hide_input,
            default=default,
            show_default=False,
        )
