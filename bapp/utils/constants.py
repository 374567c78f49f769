"""
Application-wide constants for the BAPP period engine.

Month labels, half-month sub-periods and reporting-period labels shared by
services and schemas.
"""

from typing import Final

# ---------------------------------------------------------------------------
# Calendar
# ---------------------------------------------------------------------------

MONTHS_PER_YEAR: Final[int] = 12

# Indonesian short month names, indexed 1–12 (index 0 unused)
MONTH_LABELS: Final[list[str]] = [
    "",
    "Jan", "Feb", "Mar", "Apr", "Mei", "Jun",
    "Jul", "Agu", "Sep", "Okt", "Nov", "Des",
]

# Half-month sub-periods: 1 = days 1–20, 2 = days 21–30
SUB_PERIODS: Final[tuple[int, int]] = (1, 2)

SUB_PERIOD_LABELS: Final[dict[int, str]] = {
    1: "1/2",
    2: "2/2",
}

# ---------------------------------------------------------------------------
# Reporting periods
# ---------------------------------------------------------------------------

HALF_MONTH_VALUE: Final[float] = 0.5

PERIOD_LABEL_TEMPLATE: Final[str] = "Per {} Bulan"
HALF_MONTH_LABEL: Final[str] = "Per 1/2 Bulan"

# ---------------------------------------------------------------------------
# Progress
# ---------------------------------------------------------------------------

PERCENTAGE_COMPLETE: Final[int] = 100
