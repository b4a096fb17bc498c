"""
Terminal pie chart renderer.

Draws a sequence of labeled values as an elliptical pie built from coloured
fill glyphs, with an optional legend to the right of the chart. Colours are
ANSI escape prefixes (colorama ``Fore`` codes); each painted cell is closed
with ``Style.RESET_ALL``.
"""

import bisect
import math
import sys
from dataclasses import dataclass
from typing import List, Optional, Sequence, TextIO

from colorama import Style

DEFAULT_FILL = "•"
NO_DATA = "(no data)"


@dataclass(frozen=True)
class ChartRecord:
    """One labeled slice of the chart"""

    label: str
    value: float
    color: str = ""
    fill: str = DEFAULT_FILL

    def __post_init__(self):
        # Rows are laid out one glyph per cell
        if len(self.fill) != 1 or not self.fill.isprintable() or self.fill.isspace():
            raise ValueError(f"fill must be a single visible character, got {self.fill!r}")


def format_value(value: float) -> str:
    if float(value).is_integer():
        return f"{int(value):,}"
    return f"{value:,.1f}"


class PieChart:
    """
    Proportional pie chart drawn with text cells.

    Args:
        radius: Vertical radius in terminal rows
        aspect_ratio: Horizontal stretch, since terminal cells are taller than wide
        legend: Draw a legend to the right of the chart
        use_colors: Wrap glyphs in their record's colour
    """

    def __init__(
        self,
        radius: int = 9,
        aspect_ratio: int = 3,
        legend: bool = True,
        use_colors: bool = True,
    ):
        if radius < 1:
            raise ValueError(f"radius must be at least 1, got {radius}")
        if aspect_ratio < 1:
            raise ValueError(f"aspect_ratio must be at least 1, got {aspect_ratio}")
        self.radius = radius
        self.aspect_ratio = aspect_ratio
        self.legend = legend
        self.use_colors = use_colors

    def _paint(self, record: ChartRecord, text: str) -> str:
        if self.use_colors and record.color:
            return f"{record.color}{text}{Style.RESET_ALL}"
        return text

    def _boundaries(self, records: Sequence[ChartRecord], total: float) -> List[float]:
        """Cumulative end angle (radians) of each slice"""
        bounds = []
        running = 0.0
        for record in records:
            running += record.value
            bounds.append(running / total * 2 * math.pi)
        return bounds

    def _pie_rows(self, records: Sequence[ChartRecord], total: float) -> List[str]:
        bounds = self._boundaries(records, total)
        half_width = self.radius * self.aspect_ratio
        rows = []

        for y in range(-self.radius, self.radius + 1):
            cells = []
            for x in range(-half_width, half_width + 1):
                dx = x / self.aspect_ratio
                if dx * dx + y * y > self.radius * self.radius:
                    cells.append(" ")
                    continue
                # Start at twelve o'clock and sweep clockwise
                angle = math.atan2(dx, -y) % (2 * math.pi)
                owner = min(bisect.bisect_right(bounds, angle), len(records) - 1)
                record = records[owner]
                cells.append(self._paint(record, record.fill))
            rows.append("".join(cells))

        return rows

    def _legend_rows(self, records: Sequence[ChartRecord], total: float) -> List[str]:
        rows = []
        for record in records:
            percent = (record.value / total * 100) if total > 0 else 0.0
            glyph = self._paint(record, record.fill)
            rows.append(
                f"{glyph} {record.label}: {format_value(record.value)} ({percent:.1f}%)"
            )
        return rows

    def render_rows(self, records: Sequence[ChartRecord]) -> List[str]:
        """Render the chart as a list of text rows"""
        for record in records:
            if record.value < 0:
                raise ValueError(
                    f"Chart values must be non-negative: {record.label}={record.value}"
                )

        total = sum(record.value for record in records)
        if total > 0:
            pie = self._pie_rows(records, total)
            pie_width = 2 * self.radius * self.aspect_ratio + 1
        else:
            pie = [NO_DATA]
            pie_width = len(NO_DATA)

        if not self.legend or not records:
            return [row.rstrip() for row in pie]

        legend = self._legend_rows(records, total)
        height = max(len(pie), len(legend))
        top = (height - len(pie)) // 2
        legend_top = (height - len(legend)) // 2

        # Pie rows contain escape codes, so pad by cell count rather than len()
        blank = " " * pie_width
        lines = []
        for i in range(height):
            pie_index = i - top
            left = pie[pie_index] if 0 <= pie_index < len(pie) else blank
            legend_index = i - legend_top
            right = legend[legend_index] if 0 <= legend_index < len(legend) else ""
            lines.append(f"{left}   {right}".rstrip())
        return lines

    def render(self, records: Sequence[ChartRecord]) -> str:
        return "\n".join(self.render_rows(records))

    def draw(self, records: Sequence[ChartRecord], file: Optional[TextIO] = None):
        """Print the chart to ``file`` (stdout by default)"""
        print(self.render(records), file=file or sys.stdout)
