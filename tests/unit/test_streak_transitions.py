"""Unit tests for the pure streak transition rules."""

from datetime import date, datetime, timedelta, timezone

from pdportal.progression.streak_service import StreakState, advance_streak, is_stale, to_calendar_day

LAST = date(2024, 6, 10)


class TestAdvanceStreak:
    def test_same_day_unchanged(self) -> None:
        state = StreakState(3, 5, LAST)
        assert advance_streak(state, date(2024, 6, 10)) == state

    def test_next_day_increments(self) -> None:
        state = StreakState(3, 5, LAST)
        assert advance_streak(state, date(2024, 6, 11)) == StreakState(4, 5, date(2024, 6, 11))

    def test_next_day_raises_longest(self) -> None:
        state = StreakState(5, 5, LAST)
        assert advance_streak(state, date(2024, 6, 11)) == StreakState(6, 6, date(2024, 6, 11))

    def test_gap_resets_to_one(self) -> None:
        state = StreakState(3, 5, LAST)
        assert advance_streak(state, date(2024, 6, 13)) == StreakState(1, 5, date(2024, 6, 13))

    def test_earlier_day_ignored(self) -> None:
        state = StreakState(3, 5, LAST)
        assert advance_streak(state, date(2024, 6, 9)) == state

    def test_no_prior_activity_starts_at_one(self) -> None:
        assert advance_streak(StreakState(0, 0, None), LAST) == StreakState(1, 1, LAST)

    def test_no_prior_activity_keeps_longest(self) -> None:
        assert advance_streak(StreakState(0, 4, None), LAST) == StreakState(1, 4, LAST)

    def test_seven_consecutive_days(self) -> None:
        state = StreakState(0, 0, None)
        for offset in range(7):
            state = advance_streak(state, LAST + timedelta(days=offset))
        assert state.current_streak == 7
        assert state.longest_streak == 7


class TestCalendarDay:
    def test_date_passthrough(self) -> None:
        assert to_calendar_day(LAST) == LAST

    def test_naive_datetime_drops_time(self) -> None:
        assert to_calendar_day(datetime(2024, 6, 10, 23, 30)) == LAST

    def test_aware_datetime_converted_to_utc(self) -> None:
        eastern = timezone(timedelta(hours=-5))
        assert to_calendar_day(datetime(2024, 6, 10, 23, 30, tzinfo=eastern)) == date(2024, 6, 11)


class TestIsStale:
    def test_never_active(self) -> None:
        assert is_stale(None, LAST) is False

    def test_yesterday_not_stale(self) -> None:
        assert is_stale(LAST, date(2024, 6, 11)) is False

    def test_two_days_stale(self) -> None:
        assert is_stale(LAST, date(2024, 6, 12)) is True
