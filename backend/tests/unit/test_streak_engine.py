"""
Unit Tests for the Streak Engine.

Tests for:
- Current streak rules (anchor today/yesterday, gaps reset to zero)
- Calendar aggregation and full rebuild
- Full recompute: counters, window, monotonic longest streak, idempotence
- Incremental same-day update and its fallback to full recompute
- Best-effort refresh and the streak read model
"""

from datetime import date, timedelta
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from app.db.models_study import StreakRecord, StudyCalendarDay
from app.models.study import ActivityResponse
from app.services.study.activity_log import ActivityLogService
from app.services.study.dates import day_start, study_date
from app.services.study.streak_engine import (
    StreakEngine,
    aggregate_calendar_day,
    build_study_calendar,
    calculate_current_streak,
)
from tests.conftest import NOW, STUDENT_ID, days_ago

TODAY = date(2024, 1, 15)


def keys(*offsets: int) -> set[str]:
    """Day keys for the given offsets before TODAY."""
    return {(TODAY - timedelta(days=n)).isoformat() for n in offsets}


def fake_activity(day_key: str, subject_id: int, lesson_id=None, total_time=30, confidence=3):
    return SimpleNamespace(
        study_day=day_key,
        subject_id=subject_id,
        lesson_id=lesson_id,
        total_time=total_time,
        confidence=confidence,
    )


async def calendar_rows(db, record: StreakRecord) -> list[StudyCalendarDay]:
    result = await db.execute(
        select(StudyCalendarDay)
        .where(StudyCalendarDay.streak_record_id == record.id)
        .order_by(StudyCalendarDay.day_key.desc())
    )
    return list(result.scalars().all())


# =============================================================================
# Pure streak rules
# =============================================================================


class TestCalculateCurrentStreak:
    """Tests for calculate_current_streak."""

    @pytest.mark.parametrize(
        "offsets,expected_streak,expected_start",
        [
            ((0, 1, 2, 3, 4), 5, 4),
            ((1, 2, 3), 3, 3),
            ((0,), 1, 0),
            ((0, 2, 3), 1, 0),
            ((3, 5), 0, None),
            ((2,), 0, None),
            ((), 0, None),
        ],
        ids=[
            "five_days_ending_today",
            "ending_yesterday",
            "today_only",
            "gap_after_today",
            "gap_before_today",
            "day_before_yesterday",
            "no_activity",
        ],
    )
    def test_streak(self, offsets, expected_streak, expected_start) -> None:
        streak, start = calculate_current_streak(keys(*offsets), TODAY)

        assert streak == expected_streak
        if expected_start is None:
            assert start is None
        else:
            assert start == TODAY - timedelta(days=expected_start)


class TestCalendarAggregation:
    """Tests for aggregate_calendar_day and build_study_calendar."""

    def test_aggregate_day(self) -> None:
        activities = [
            fake_activity("2024-01-15", subject_id=2, lesson_id=7, total_time=20, confidence=2),
            fake_activity("2024-01-15", subject_id=1, lesson_id=None, total_time=15, confidence=4),
            fake_activity("2024-01-15", subject_id=2, lesson_id=3, total_time=10, confidence=3),
        ]

        day = aggregate_calendar_day("2024-01-15", activities)

        assert day["day_key"] == "2024-01-15"
        assert day["date"] == day_start(date(2024, 1, 15))
        assert day["subjects_studied"] == [1, 2]
        assert day["lessons_studied"] == [3, 7]
        assert day["total_time"] == 45
        assert day["confidence"] == 4

    def test_calendar_is_newest_first(self) -> None:
        activities = [
            fake_activity("2024-01-10", 1),
            fake_activity("2024-01-15", 1),
            fake_activity("2024-01-12", 1),
            fake_activity("2024-01-15", 2),
        ]

        calendar = build_study_calendar(activities)

        assert [d["day_key"] for d in calendar] == ["2024-01-15", "2024-01-12", "2024-01-10"]
        assert calendar[0]["subjects_studied"] == [1, 2]


# =============================================================================
# Full recompute
# =============================================================================


class TestRecomputeStreak:
    """Tests for StreakEngine.recompute_streak."""

    @pytest.mark.asyncio
    async def test_consecutive_days_through_today(self, db_session, add_activity) -> None:
        for n in range(5):
            await add_activity(days_ago(n))

        record = await StreakEngine(db_session).recompute_streak(STUDENT_ID, NOW)

        assert record.current_streak == 5
        assert record.longest_streak == 5
        assert record.total_study_days == 5
        assert record.streak_start_date == day_start(TODAY - timedelta(days=4))
        assert record.last_study_date == NOW
        assert len(await calendar_rows(db_session, record)) == 5

    @pytest.mark.asyncio
    async def test_gap_resets_current_but_keeps_longest(self, db_session, add_activity) -> None:
        db_session.add(StreakRecord(student_id=STUDENT_ID, current_streak=4, longest_streak=4))
        await db_session.commit()
        await add_activity(days_ago(5))
        await add_activity(days_ago(3))

        record = await StreakEngine(db_session).recompute_streak(STUDENT_ID, NOW)

        assert record.current_streak == 0
        assert record.longest_streak == 4
        assert record.streak_start_date is None
        assert record.total_study_days == 2

    @pytest.mark.asyncio
    async def test_streak_alive_until_end_of_today(self, db_session, add_activity) -> None:
        for n in (1, 2, 3):
            await add_activity(days_ago(n))

        record = await StreakEngine(db_session).recompute_streak(STUDENT_ID, NOW)

        assert record.current_streak == 3

    @pytest.mark.asyncio
    async def test_history_beyond_window_counts_toward_totals(
        self, db_session, add_activity
    ) -> None:
        await add_activity(days_ago(40))
        await add_activity(days_ago(0))

        record = await StreakEngine(db_session).recompute_streak(STUDENT_ID, NOW)

        assert record.current_streak == 1
        assert record.total_study_days == 2
        rows = await calendar_rows(db_session, record)
        assert [r.day_key for r in rows] == ["2024-01-15", "2023-12-06"]

    @pytest.mark.asyncio
    async def test_multiple_activities_same_day_count_once(
        self, db_session, add_activity, other_subject
    ) -> None:
        await add_activity(days_ago(0), total_time=20, confidence=2)
        await add_activity(days_ago(0), subject_id=other_subject.id, total_time=25, confidence=5)

        record = await StreakEngine(db_session).recompute_streak(STUDENT_ID, NOW)

        assert record.current_streak == 1
        assert record.total_study_days == 1
        (today_row,) = await calendar_rows(db_session, record)
        assert today_row.total_time == 45
        assert today_row.confidence == 5
        assert len(today_row.subjects_studied) == 2

    @pytest.mark.asyncio
    async def test_recompute_is_idempotent(self, db_session, add_activity) -> None:
        for n in (0, 1, 2, 6):
            await add_activity(days_ago(n))
        engine = StreakEngine(db_session)

        def snapshot(record, rows):
            return (
                record.current_streak,
                record.longest_streak,
                record.last_study_date,
                record.streak_start_date,
                record.total_study_days,
                [
                    (r.day_key, r.date, r.subjects_studied, r.lessons_studied, r.total_time, r.confidence)
                    for r in rows
                ],
            )

        first = await engine.recompute_streak(STUDENT_ID, NOW)
        first_state = snapshot(first, await calendar_rows(db_session, first))
        second = await engine.recompute_streak(STUDENT_ID, NOW)
        second_state = snapshot(second, await calendar_rows(db_session, second))

        assert first_state == second_state
        assert first_state[0] == 3

    @pytest.mark.asyncio
    async def test_no_activity_creates_empty_record(self, db_session) -> None:
        record = await StreakEngine(db_session).recompute_streak(STUDENT_ID, NOW)

        assert record.current_streak == 0
        assert record.total_study_days == 0
        assert record.last_study_date is None


# =============================================================================
# Incremental update
# =============================================================================


class TestIncrementalUpdate:
    """Tests for StreakEngine.incremental_update."""

    @pytest.mark.asyncio
    async def test_first_activity_of_day_runs_full_recompute(
        self, db_session, add_activity
    ) -> None:
        await add_activity(days_ago(1))
        engine = StreakEngine(db_session)
        await engine.recompute_streak(STUDENT_ID, NOW)
        activity = await add_activity(days_ago(0))

        record = await engine.incremental_update(
            STUDENT_ID, ActivityResponse.model_validate(activity), NOW
        )

        assert record.current_streak == 2
        assert record.total_study_days == 2

    @pytest.mark.asyncio
    async def test_same_day_update_refreshes_today_only(
        self, db_session, add_activity, subject, other_subject
    ) -> None:
        await add_activity(days_ago(0), total_time=20)
        engine = StreakEngine(db_session)
        record = await engine.recompute_streak(STUDENT_ID, NOW)
        activity = await add_activity(
            days_ago(0), subject_id=other_subject.id, total_time=15, confidence=5
        )

        with patch.object(StreakEngine, "recompute_streak", new_callable=AsyncMock) as recompute:
            await engine.incremental_update(
                STUDENT_ID, ActivityResponse.model_validate(activity), NOW
            )

        recompute.assert_not_awaited()
        (today_row,) = await calendar_rows(db_session, record)
        assert today_row.total_time == 35
        assert today_row.confidence == 5
        assert today_row.subjects_studied == sorted([subject.id, other_subject.id])

    @pytest.mark.asyncio
    async def test_incremental_matches_full_rebuild(
        self, db_session, add_activity, other_subject, lesson
    ) -> None:
        await add_activity(days_ago(1))
        await add_activity(days_ago(0), lesson_id=lesson.id)
        engine = StreakEngine(db_session)
        record = await engine.recompute_streak(STUDENT_ID, NOW)
        activity = await add_activity(days_ago(0), subject_id=other_subject.id, confidence=4)

        await engine.incremental_update(STUDENT_ID, ActivityResponse.model_validate(activity), NOW)
        incremental = [
            (r.day_key, r.subjects_studied, r.lessons_studied, r.total_time, r.confidence)
            for r in await calendar_rows(db_session, record)
        ]
        counters = (record.current_streak, record.longest_streak, record.total_study_days)

        record = await engine.recompute_streak(STUDENT_ID, NOW)
        full = [
            (r.day_key, r.subjects_studied, r.lessons_studied, r.total_time, r.confidence)
            for r in await calendar_rows(db_session, record)
        ]

        assert incremental == full
        assert counters == (record.current_streak, record.longest_streak, record.total_study_days)

    @pytest.mark.asyncio
    async def test_activity_from_another_day_runs_full_recompute(
        self, db_session, add_activity
    ) -> None:
        await add_activity(days_ago(0))
        engine = StreakEngine(db_session)
        await engine.recompute_streak(STUDENT_ID, NOW)
        older = await add_activity(days_ago(1))

        record = await engine.incremental_update(
            STUDENT_ID, ActivityResponse.model_validate(older), NOW
        )

        assert record.current_streak == 2


# =============================================================================
# Refresh and read model
# =============================================================================


class TestRefreshAndRead:
    """Tests for refresh and get_streak_data."""

    @pytest.mark.asyncio
    async def test_failed_refresh_keeps_previous_counters(
        self, db_session, add_activity
    ) -> None:
        for n in range(3):
            await add_activity(days_ago(n))
        engine = StreakEngine(db_session)
        await engine.recompute_streak(STUDENT_ID, NOW)

        with patch.object(
            ActivityLogService,
            "fetch_activities",
            new_callable=AsyncMock,
            side_effect=OperationalError("SELECT", {}, Exception("database is locked")),
        ):
            ok = await engine.refresh(STUDENT_ID, NOW + timedelta(days=5))

        assert ok is False
        record = await engine.get_record(STUDENT_ID)
        assert record.current_streak == 3

    @pytest.mark.asyncio
    async def test_refresh_succeeds(self, db_session, add_activity) -> None:
        await add_activity(days_ago(0))

        assert await StreakEngine(db_session).refresh(STUDENT_ID, NOW) is True

    @pytest.mark.asyncio
    async def test_streak_data_with_milestones(self, db_session, add_activity) -> None:
        for n in range(7):
            await add_activity(days_ago(n))
        engine = StreakEngine(db_session)
        await engine.recompute_streak(STUDENT_ID, NOW)

        data = await engine.get_streak_data(STUDENT_ID, NOW)

        assert data.current_streak == 7
        assert data.is_active_today is True
        assert data.milestones_reached == [7]
        assert data.next_milestone == 30
        assert data.study_calendar[0].day_key == "2024-01-15"
        assert len(data.study_calendar) == 7

    @pytest.mark.asyncio
    async def test_streak_data_for_new_student(self, db_session) -> None:
        data = await StreakEngine(db_session).get_streak_data("new-student", NOW)

        assert data.current_streak == 0
        assert data.is_active_today is False
        assert data.milestones_reached == []
        assert data.next_milestone == 7
        assert data.study_calendar == []
        assert data.achievements == []

    @pytest.mark.asyncio
    async def test_today_is_the_study_timezone_day(self, db_session, add_activity) -> None:
        # 23:45Z on Jan 14 is already Jan 15 in IST
        late = NOW.replace(day=14, hour=23, minute=45)
        await add_activity(late)

        record = await StreakEngine(db_session).recompute_streak(STUDENT_ID, NOW)

        assert study_date(late) == TODAY
        assert record.current_streak == 1
