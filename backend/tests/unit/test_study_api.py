"""
API Tests for the study tracking endpoints.

Runs the FastAPI app in-process over httpx.ASGITransport with get_db
overridden to the per-test SQLite session. Identity comes from the
X-Student-Id / X-User-Role headers.
"""

from collections.abc import AsyncGenerator

import httpx
import pytest
import pytest_asyncio

from app.db.base import get_db
from app.main import app
from app.models.base import ErrorDetail
from tests.conftest import ADMIN_ID, OTHER_STUDENT_ID, STUDENT_ID

STUDENT = {"X-Student-Id": STUDENT_ID}
OTHER_STUDENT = {"X-Student-Id": OTHER_STUDENT_ID}
ADMIN = {"X-Student-Id": ADMIN_ID, "X-User-Role": "admin"}


@pytest_asyncio.fixture
async def client(db_session) -> AsyncGenerator[httpx.AsyncClient, None]:
    """Async client bound to the app with the test database session."""

    async def get_test_db():
        yield db_session

    app.dependency_overrides[get_db] = get_test_db
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.pop(get_db, None)


class TestAuth:
    """Identity headers."""

    @pytest.mark.asyncio
    async def test_missing_identity(self, client) -> None:
        response = await client.get("/api/study")

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_unknown_role(self, client) -> None:
        response = await client.get(
            "/api/study", headers={"X-Student-Id": STUDENT_ID, "X-User-Role": "parent"}
        )

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_student_cannot_act_for_another(self, client) -> None:
        response = await client.get(
            "/api/study", params={"student_id": OTHER_STUDENT_ID}, headers=STUDENT
        )

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_admin_can_act_for_a_student(self, client, subject) -> None:
        await client.post("/api/study", json={"subject_id": subject.id}, headers=STUDENT)

        response = await client.get(
            "/api/study", params={"student_id": STUDENT_ID}, headers=ADMIN
        )

        assert response.status_code == 200
        assert len(response.json()) == 1


class TestStudyEndpoints:
    """POST/GET/PUT/DELETE /api/study."""

    @pytest.mark.asyncio
    async def test_record_and_merge(self, client, subject, lesson) -> None:
        first = await client.post(
            "/api/study",
            json={
                "subject_id": subject.id,
                "lesson_id": lesson.id,
                "reading": {"completed": True, "notes": "Sets"},
                "confidence": 4,
                "total_time": 30,
            },
            headers=STUDENT,
        )
        second = await client.post(
            "/api/study",
            json={"subject_id": subject.id, "math_practice": {"completed": True}},
            headers=STUDENT,
        )

        assert first.status_code == 201
        body = first.json()
        assert body["success"] is True
        assert body["activity"]["confidence"] == 4
        assert body["derived_state"]["streak_updated"] is True
        assert body["derived_state"]["progress_updated"] is True
        assert body["derived_state"]["errors"] == []

        assert second.status_code == 201
        merged = second.json()["activity"]
        assert merged["id"] == body["activity"]["id"]
        assert merged["revision"] == 2
        assert merged["reading"]["notes"] == "Sets"
        assert merged["math_practice"]["completed"] is True

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "payload",
        [
            {"subject_id": 1, "confidence": 6},
            {"subject_id": 1, "total_time": -1},
            {"subject_id": 1, "mood": "happy"},
            {"confidence": 3},
        ],
        ids=["confidence_too_high", "negative_time", "unknown_field", "missing_subject"],
    )
    async def test_invalid_payload(self, client, payload) -> None:
        response = await client.post("/api/study", json=payload, headers=STUDENT)

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_unknown_subject(self, client) -> None:
        response = await client.post("/api/study", json={"subject_id": 999}, headers=STUDENT)

        assert response.status_code == 404
        error = ErrorDetail.model_validate(response.json())
        assert error.error == "not_found"
        assert error.message == "Subject 999 not found"

    @pytest.mark.asyncio
    async def test_lesson_of_another_subject(self, client, other_subject, lesson) -> None:
        response = await client.post(
            "/api/study",
            json={"subject_id": other_subject.id, "lesson_id": lesson.id},
            headers=STUDENT,
        )

        assert response.status_code == 400
        assert response.json()["error"] == "validation_error"

    @pytest.mark.asyncio
    async def test_owner_checks(self, client, subject) -> None:
        created = await client.post("/api/study", json={"subject_id": subject.id}, headers=STUDENT)
        activity_id = created.json()["activity"]["id"]

        assert (await client.get(f"/api/study/{activity_id}", headers=STUDENT)).status_code == 200
        assert (
            await client.get(f"/api/study/{activity_id}", headers=OTHER_STUDENT)
        ).status_code == 403
        assert (await client.get(f"/api/study/{activity_id}", headers=ADMIN)).status_code == 200
        assert (
            await client.put(
                f"/api/study/{activity_id}", json={"confidence": 2}, headers=OTHER_STUDENT
            )
        ).status_code == 403
        assert (
            await client.delete(f"/api/study/{activity_id}", headers=OTHER_STUDENT)
        ).status_code == 403
        assert (await client.get("/api/study/999", headers=STUDENT)).status_code == 404

    @pytest.mark.asyncio
    async def test_update_and_delete(self, client, subject) -> None:
        created = await client.post("/api/study", json={"subject_id": subject.id}, headers=STUDENT)
        activity_id = created.json()["activity"]["id"]

        updated = await client.put(
            f"/api/study/{activity_id}", json={"confidence": 5}, headers=STUDENT
        )
        deleted = await client.delete(f"/api/study/{activity_id}", headers=ADMIN)

        assert updated.status_code == 200
        assert updated.json()["activity"]["confidence"] == 5
        assert deleted.status_code == 200
        assert deleted.json()["message"] == "Study activity deleted successfully"
        assert deleted.json()["derived_state"]["streak_updated"] is True
        streak = await client.get("/api/streak", headers=STUDENT)
        assert streak.json()["current_streak"] == 0

    @pytest.mark.asyncio
    async def test_list_filters_and_stats(self, client, subject, other_subject) -> None:
        await client.post(
            "/api/study", json={"subject_id": subject.id, "total_time": 20}, headers=STUDENT
        )
        await client.post(
            "/api/study", json={"subject_id": other_subject.id, "total_time": 40}, headers=STUDENT
        )

        listed = await client.get(
            "/api/study", params={"subject_id": other_subject.id}, headers=STUDENT
        )
        stats = await client.get("/api/study/stats", headers=STUDENT)

        assert [a["subject_id"] for a in listed.json()] == [other_subject.id]
        assert stats.json()["total_study_time"] == 60
        assert stats.json()["total_entries"] == 2

    @pytest.mark.asyncio
    async def test_bad_date_filter(self, client) -> None:
        response = await client.get("/api/study", params={"date": "15-01-2024"}, headers=STUDENT)

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_daily_progress(self, client, subject) -> None:
        first = await client.post(
            "/api/study", json={"subject_id": subject.id, "total_time": 45}, headers=STUDENT
        )
        day = first.json()["activity"]["study_day"]
        await client.post(
            "/api/study", json={"subject_id": subject.id, "total_time": 75}, headers=STUDENT
        )

        response = await client.get(
            "/api/study/daily-progress", params={"date": day}, headers=STUDENT
        )

        assert first.json()["derived_state"]["daily_progress_updated"] is True
        assert response.status_code == 200
        [row] = response.json()
        assert row["subject_id"] == subject.id
        assert row["study_day"] == day
        assert row["total_study_time"] == 75
        assert row["daily_goal"] == 60
        assert row["goal_achieved"] is True


class TestStreakEndpoints:
    """/api/streak read models."""

    @pytest.mark.asyncio
    async def test_streak_after_first_activity(self, client, subject) -> None:
        await client.post("/api/study", json={"subject_id": subject.id}, headers=STUDENT)

        response = await client.get("/api/streak", headers=STUDENT)

        assert response.status_code == 200
        body = response.json()
        assert body["current_streak"] == 1
        assert body["total_study_days"] == 1
        assert body["is_active_today"] is True
        assert body["next_milestone"] == 7
        assert len(body["study_calendar"]) == 1

    @pytest.mark.asyncio
    async def test_new_student_has_empty_streak(self, client) -> None:
        response = await client.post("/api/streak/refresh", headers=STUDENT)

        assert response.status_code == 200
        assert response.json()["current_streak"] == 0
        assert response.json()["achievements"] == []

    @pytest.mark.asyncio
    async def test_revision_endpoints(self, client, subject, lesson) -> None:
        await client.post(
            "/api/study",
            json={"subject_id": subject.id, "lesson_id": lesson.id, "confidence": 2},
            headers=STUDENT,
        )

        plan = await client.get("/api/streak/revision-plan", headers=STUDENT)
        overview = await client.get("/api/streak/review-overview", headers=STUDENT)
        progress = await client.get("/api/streak/progress", headers=STUDENT)

        assert plan.status_code == 200
        assert [i["lesson_id"] for i in plan.json()["items"]] == [lesson.id]
        assert overview.status_code == 200
        assert [s["subject_name"] for s in overview.json()["subject_progress"]] == ["Maths"]
        assert progress.json()[0]["study_count"] == 1

    @pytest.mark.asyncio
    async def test_revision_window_bounds(self, client) -> None:
        response = await client.get(
            "/api/streak/revision-plan", params={"window_days": 0}, headers=STUDENT
        )

        assert response.status_code == 422


class TestCatalogEndpoints:
    """/api/subjects and /api/lessons."""

    @pytest.mark.asyncio
    async def test_subject_admin_only(self, client) -> None:
        payload = {"name": "History", "total_marks": 80}

        denied = await client.post("/api/subjects", json=payload, headers=STUDENT)
        created = await client.post("/api/subjects", json=payload, headers=ADMIN)
        duplicate = await client.post("/api/subjects", json=payload, headers=ADMIN)

        assert denied.status_code == 403
        assert created.status_code == 201
        assert duplicate.status_code == 400

    @pytest.mark.asyncio
    async def test_initialize_and_list(self, client) -> None:
        initialized = await client.post("/api/subjects/initialize", headers=ADMIN)
        listed = await client.get("/api/subjects", headers=STUDENT)

        assert len(initialized.json()) == 7
        assert len(listed.json()) == 7

    @pytest.mark.asyncio
    async def test_lessons(self, client, subject) -> None:
        created = await client.post(
            "/api/lessons",
            json={"subject_id": subject.id, "name": "Algebra", "chapter_number": 1},
            headers=ADMIN,
        )
        grouped = await client.get("/api/lessons/by-subject", headers=STUDENT)

        assert created.status_code == 201
        assert created.json()["created_by"] == ADMIN_ID
        assert grouped.json()[0]["lessons"][0]["name"] == "Algebra"


class TestNoteEndpoints:
    """/api/notes."""

    @pytest.mark.asyncio
    async def test_note_lifecycle(self, client) -> None:
        created = await client.post(
            "/api/notes", json={"content": "Revise chapter 3"}, headers=STUDENT
        )
        note_id = created.json()["id"]

        updated = await client.put(
            f"/api/notes/{note_id}", json={"content": "Revise chapter 4"}, headers=STUDENT
        )
        listed = await client.get("/api/notes", headers=STUDENT)
        deleted = await client.delete(f"/api/notes/{note_id}", headers=STUDENT)
        missing = await client.get(f"/api/notes/{note_id}", headers=STUDENT)

        assert created.status_code == 201
        assert created.json()["student_id"] == STUDENT_ID
        assert updated.json()["content"] == "Revise chapter 4"
        assert [n["content"] for n in listed.json()] == ["Revise chapter 4"]
        assert deleted.json()["message"] == "Note deleted successfully"
        assert missing.status_code == 404
        assert missing.json()["error"] == "not_found"

    @pytest.mark.asyncio
    async def test_owner_checks(self, client) -> None:
        created = await client.post("/api/notes", json={"content": "Mine"}, headers=STUDENT)
        note_id = created.json()["id"]

        assert (
            await client.get(f"/api/notes/{note_id}", headers=OTHER_STUDENT)
        ).status_code == 403
        assert (await client.get(f"/api/notes/{note_id}", headers=ADMIN)).status_code == 200
        assert (
            await client.put(f"/api/notes/{note_id}", json={"content": "x"}, headers=OTHER_STUDENT)
        ).status_code == 403
        assert (
            await client.delete(f"/api/notes/{note_id}", headers=OTHER_STUDENT)
        ).status_code == 403
        assert (await client.get("/api/notes", headers=OTHER_STUDENT)).json() == []

    @pytest.mark.asyncio
    async def test_content_required(self, client) -> None:
        empty = await client.post("/api/notes", json={"content": ""}, headers=STUDENT)
        blank = await client.post("/api/notes", json={"content": "   "}, headers=STUDENT)

        assert empty.status_code == 422
        assert blank.status_code == 400
        error = ErrorDetail.model_validate(blank.json())
        assert error.error == "validation_error"
        assert error.message == "Content is required"


class TestHealth:
    """Health endpoints."""

    @pytest.mark.asyncio
    async def test_health(self, client) -> None:
        response = await client.get("/api/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    @pytest.mark.asyncio
    async def test_detailed_health(self, client) -> None:
        response = await client.get("/api/health/detailed")

        assert response.json()["dependencies"]["database"]["status"] == "healthy"

    @pytest.mark.asyncio
    async def test_ready(self, client) -> None:
        response = await client.get("/api/health/ready")

        assert response.status_code == 200
        assert response.json() == {"ready": True}
