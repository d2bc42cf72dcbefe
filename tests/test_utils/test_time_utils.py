from datetime import date, time

import pytest

from easistent_timetable_core.errors import ParseError
from easistent_timetable_core.utils.time_utils import (
    infer_year,
    parse_day_month,
    parse_full_date,
    parse_time_range,
    school_year_start,
)


class TestDates:
    def test_full_date(self):
        assert parse_full_date("1. 9. 2025") == date(2025, 9, 1)
        assert parse_full_date(" 29.12.2025 ") == date(2025, 12, 29)

    @pytest.mark.parametrize("text", ["", "2025-09-01", "31. 2. 2025"])
    def test_full_date_invalid(self, text):
        with pytest.raises(ParseError):
            parse_full_date(text)

    def test_day_month(self):
        assert parse_day_month("1. 9.") == (1, 9)
        assert parse_day_month("15. 10") == (15, 10)
        assert parse_day_month("") == (None, None)
        assert parse_day_month("x. 9.") == (None, 9)

    def test_infer_year_across_new_year(self):
        ws, we = date(2025, 12, 29), date(2026, 1, 2)
        assert infer_year(ws, we, 31, 12) == 2025
        assert infer_year(ws, we, 1, 1) == 2026
        assert infer_year(ws, we, None, 1) == 2025

    def test_school_year_start(self):
        assert school_year_start(date(2025, 10, 19)) == date(2025, 9, 1)
        assert school_year_start(date(2025, 9, 1)) == date(2025, 9, 1)
        assert school_year_start(date(2026, 3, 3)) == date(2025, 9, 1)


class TestTimeRange:
    def test_valid(self):
        tr = parse_time_range("7:30 - 8:15")
        assert (tr.start, tr.end) == (time(7, 30), time(8, 15))
        assert not tr.is_unknown
        assert str(tr) == "07:30-08:15"

    @pytest.mark.parametrize("text", ["", "ura", "25:99 - 26:00", "7:30"])
    def test_unparseable_is_sentinel(self, text):
        tr = parse_time_range(text)
        assert tr.is_unknown
        assert str(tr) == "?"
