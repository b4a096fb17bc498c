import io
import pytest
from colorama import Fore, Style

from pie_chart import NO_DATA, ChartRecord, PieChart, format_value


def _cells(rows, glyph):
    return sum(row.count(glyph) for row in rows)


def test_format_value():
    assert format_value(1234) == "1,234"
    assert format_value(2.0) == "2"
    assert format_value(1234.56) == "1,234.6"


def test_empty_chart():
    chart = PieChart(use_colors=False)
    assert chart.render([]) == NO_DATA


def test_all_zero_values_keep_legend():
    chart = PieChart(use_colors=False)
    rows = chart.render_rows([ChartRecord("alice", 0), ChartRecord("bob", 0)])
    text = "\n".join(rows)
    assert NO_DATA in text
    assert "alice: 0 (0.0%)" in text
    assert "bob: 0 (0.0%)" in text


def test_single_record_fills_ellipse():
    chart = PieChart(radius=4, aspect_ratio=2, legend=False, use_colors=False)
    rows = chart.render_rows([ChartRecord("alice", 10, fill="#")])
    assert len(rows) == 9
    assert all(set(row) <= {"#", " "} for row in rows)
    # Widest row spans the full diameter
    assert rows[4] == "#" * 17
    assert rows[0].strip() == "#"


def test_equal_values_split_evenly():
    chart = PieChart(radius=9, aspect_ratio=3, legend=False, use_colors=False)
    rows = chart.render_rows([ChartRecord("a", 5, fill="A"), ChartRecord("b", 5, fill="B")])
    a, b = _cells(rows, "A"), _cells(rows, "B")
    assert a > 0 and b > 0
    assert abs(a - b) <= 2 * 9 + 1


def test_proportions_follow_values():
    chart = PieChart(radius=9, aspect_ratio=3, legend=False, use_colors=False)
    rows = chart.render_rows([ChartRecord("a", 3, fill="A"), ChartRecord("b", 1, fill="B")])
    a, b = _cells(rows, "A"), _cells(rows, "B")
    assert 2.5 < a / b < 3.5


def test_zero_record_has_legend_but_no_cells():
    chart = PieChart(radius=5, use_colors=False)
    rows = chart.render_rows([ChartRecord("alice", 4, fill="A"), ChartRecord("bob", 0, fill="B")])
    text = "\n".join(rows)
    assert "B bob: 0 (0.0%)" in text
    assert "A alice: 4 (100.0%)" in text
    assert _cells(rows, "B") == 1   # only the legend glyph


def test_legend_is_vertically_centred():
    chart = PieChart(radius=3, aspect_ratio=1, use_colors=False)
    rows = chart.render_rows([ChartRecord("solo", 1, fill="#")])
    assert len(rows) == 7
    assert rows[3].endswith("# solo: 1 (100.0%)")


def test_long_legend_extends_chart():
    chart = PieChart(radius=1, aspect_ratio=1, use_colors=False)
    records = [ChartRecord(f"dev{i}", 1) for i in range(6)]
    rows = chart.render_rows(records)
    assert len(rows) == 6
    assert all(f"dev{i}: 1" in rows[i] for i in range(6))


def test_colors():
    chart = PieChart(radius=2, use_colors=True)
    text = chart.render([ChartRecord("alice", 1, color=Fore.RED)])
    assert f"{Fore.RED}•{Style.RESET_ALL}" in text

    plain = PieChart(radius=2, use_colors=False).render([ChartRecord("alice", 1, color=Fore.RED)])
    assert Fore.RED not in plain


def test_invalid_input():
    with pytest.raises(ValueError):
        PieChart(radius=0)
    with pytest.raises(ValueError):
        PieChart(aspect_ratio=0)
    with pytest.raises(ValueError):
        PieChart().render([ChartRecord("alice", -1)])


@pytest.mark.parametrize("fill", ["ab", "", " ", "\t"])
def test_fill_must_be_one_visible_character(fill):
    with pytest.raises(ValueError, match="single visible character"):
        ChartRecord("alice", 1, fill=fill)


def test_rows_keep_their_width_with_legend():
    chart = PieChart(radius=2, aspect_ratio=3, use_colors=False)
    rows = chart.render_rows([ChartRecord("d0", 1, fill="#"), ChartRecord("d1", 1, fill="*")])
    # Legend text starts in the same column on every row
    assert {row.index(" d") for row in rows if " d" in row} == {2 * 2 * 3 + 1 + 3 + 1}


def test_draw_to_file():
    out = io.StringIO()
    PieChart(use_colors=False).draw([], file=out)
    assert out.getvalue() == NO_DATA + "\n"
