"""
Testing the column layout engine.
"""

from ls_python.layout import MIN_COLUMN_WIDTH, calculate_columns, column_of, max_columns


class TestCalculateColumns:
    """Choice of the column count and per-column widths."""

    def test_row_major_example(self):
        layout = calculate_columns([1, 2, 3], 10, by_columns=False)
        assert layout.columns == 3
        assert layout.column_widths == (3, 4, 3)
        assert layout.line_length == 10
        assert layout.rows == 1

    def test_column_major_fits_on_one_line(self):
        layout = calculate_columns([1, 2, 3], 10, by_columns=True)
        assert layout.columns == 3
        assert layout.rows == 1

    def test_too_narrow_falls_back_to_fewer_columns(self):
        layout = calculate_columns([1, 2, 3], 9, by_columns=False)
        assert layout.columns == 2
        # row-major: a, ccc in column 0; bb in column 1
        assert layout.column_widths == (5, 3)

    def test_single_wide_entry_still_gets_one_column(self):
        layout = calculate_columns([200], 80)
        assert layout.columns == 1
        assert layout.column_widths == (200,)
        assert layout.line_length == 200

    def test_empty(self):
        layout = calculate_columns([], 80)
        assert layout.columns == 1
        assert layout.rows == 0

    def test_column_major_rows(self):
        # 5 entries of width 1: every column keeps the minimum width
        layout = calculate_columns([1] * 5, 80, by_columns=True)
        assert layout.columns == 5
        assert layout.column_widths == (3, 3, 3, 3, 3)
        assert layout.rows == 1

    def test_column_major_wraps(self):
        layout = calculate_columns([4] * 6, 14, by_columns=True)
        # three columns need 6 + 6 + 4 = 16 > 14, two need 6 + 4 = 10
        assert layout.columns == 2
        assert layout.rows == 3
        assert layout.column_widths == (6, 4)

    def test_candidates_bounded_by_width(self):
        layout = calculate_columns([1] * 50, 9, by_columns=False)
        assert layout.columns <= 9 // MIN_COLUMN_WIDTH

    def test_every_chosen_layout_fits(self):
        widths = [5, 12, 1, 7, 30, 2, 2, 9]
        for line_width in range(1, 100):
            for by_columns in (True, False):
                layout = calculate_columns(widths, line_width, by_columns)
                assert layout.columns == 1 or layout.line_length <= line_width


class TestHelpers:
    def test_max_columns(self):
        assert max_columns(10, 80) == 10
        assert max_columns(100, 80) == 26
        assert max_columns(5, 2) == 1
        assert max_columns(0, 80) == 1

    def test_column_of(self):
        # 7 entries in 3 columns: column-major has 3 rows
        assert [column_of(i, 7, 3, True) for i in range(7)] == [0, 0, 0, 1, 1, 1, 2]
        assert [column_of(i, 7, 3, False) for i in range(7)] == [0, 1, 2, 0, 1, 2, 0]
