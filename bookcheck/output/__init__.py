"""Stage report rendering.

A stage report can be printed three ways, picked by the CLI's --json and
--plain flags: as Rich panels and a findings table for a terminal, as plain
text for logs and CI output, or as JSON for other tools to consume.
Formatter modules are imported only when asked for.
"""

from __future__ import annotations

from importlib import import_module
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from bookcheck.models import StageReport

# Output name -> (module, class)
FORMATTERS: dict[str, tuple[str, str]] = {
    "rich": ("bookcheck.output.rich_formatter", "RichFormatter"),
    "plain": ("bookcheck.output.plain_formatter", "PlainFormatter"),
    "json": ("bookcheck.output.json_formatter", "JsonFormatter"),
}


class Formatter(Protocol):
    def format_report(self, report: StageReport) -> str:
        """Render one stage's findings and summary as text."""
        ...


def get_formatter(name: str = "rich") -> Formatter:
    """Instantiate the formatter registered under name.

    Raises:
        ValueError: If no formatter has that name.
    """
    try:
        module_name, class_name = FORMATTERS[name]
    except KeyError:
        choices = ", ".join(repr(n) for n in FORMATTERS)
        raise ValueError(f"Unknown formatter: {name!r}. Choose one of {choices}.") from None
    return getattr(import_module(module_name), class_name)()
