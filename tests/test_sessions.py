"""Tests for live class sessions: scheduling, status changes, content, attendance."""

from datetime import datetime, timedelta, timezone

import pytest

PASSWORD = "Password123!"


def _login(client, email):
    resp = client.post("/api/auth/login", data={"username": email, "password": PASSWORD})
    assert resp.status_code == 200, resp.text
    return resp.json()["access_token"]


def _auth(client, email):
    return {"Authorization": f"Bearer {_login(client, email)}"}


def _at(minutes):
    return datetime.now(timezone.utc) + timedelta(minutes=minutes)


@pytest.fixture()
def setup(make_user, make_class):
    teacher = make_user("ses_teacher@test.com", "teacher")
    other_teacher = make_user("ses_teacher2@test.com", "teacher")
    student = make_user("ses_student@test.com", "student")
    student2 = make_user("ses_student2@test.com", "student")
    outsider = make_user("ses_outsider@test.com", "student")
    cls = make_class("SESCLS01", teacher, members=[student, student2])
    return {
        "teacher": teacher, "other_teacher": other_teacher, "student": student,
        "student2": student2, "outsider": outsider, "class": cls,
    }


@pytest.fixture()
def make_session(db_session, setup):
    """Insert a session directly so start/end can lie in the past."""
    from edumessage.models.session import ClassSession

    def _make(start_minutes=-5, end_minutes=55, **fields):
        fields.setdefault("title", "Direct session")
        session = ClassSession(
            class_id=setup["class"].id,
            teacher_id=setup["teacher"].id,
            scheduled_start=_at(start_minutes),
            scheduled_end=_at(end_minutes),
            **fields,
        )
        db_session.add(session)
        db_session.commit()
        db_session.refresh(session)
        return session

    return _make


def _create(client, headers, class_id, **fields):
    payload = {
        "class_id": class_id,
        "title": "Fractions review",
        "scheduled_start": _at(60).isoformat(),
        "scheduled_end": _at(120).isoformat(),
        "passcode": "1234",
    }
    payload.update(fields)
    return client.post("/api/sessions/", json=payload, headers=headers)


class TestCreateAndList:
    def test_teacher_creates_session(self, client, setup):
        teacher = _auth(client, "ses_teacher@test.com")
        resp = _create(client, teacher, setup["class"].id)
        assert resp.status_code == 201, resp.text
        data = resp.json()
        assert data["status"] == "scheduled"
        assert data["session_type"] == "lecture"
        assert data["passcode"] == "1234"

    def test_start_must_be_in_future(self, client, setup):
        teacher = _auth(client, "ses_teacher@test.com")
        resp = _create(client, teacher, setup["class"].id, scheduled_start=_at(-10).isoformat())
        assert resp.status_code == 400

    def test_end_after_start(self, client, setup):
        teacher = _auth(client, "ses_teacher@test.com")
        resp = _create(client, teacher, setup["class"].id, scheduled_end=_at(30).isoformat())
        assert resp.status_code == 400

    def test_only_class_teacher_creates(self, client, setup):
        other = _auth(client, "ses_teacher2@test.com")
        assert _create(client, other, setup["class"].id).status_code == 403

    def test_listing_views(self, client, setup):
        class_id = setup["class"].id
        teacher = _auth(client, "ses_teacher@test.com")
        session_id = _create(client, teacher, class_id, title="Listing").json()["id"]

        teacher_items = client.get("/api/sessions/", params={"class_id": class_id}, headers=teacher).json()
        entry = next(s for s in teacher_items if s["id"] == session_id)
        assert entry["participant_count"] == 0
        assert entry["pending_questions"] == 0

        student = _auth(client, "ses_student@test.com")
        student_items = client.get(
            "/api/sessions/", params={"class_id": class_id, "upcoming": "true"}, headers=student,
        ).json()
        entry = next(s for s in student_items if s["id"] == session_id)
        assert entry["my_participation"] is None
        assert "passcode" not in entry

    def test_status_filter(self, client, setup, make_session):
        class_id = setup["class"].id
        cancelled = make_session(status="cancelled")
        teacher = _auth(client, "ses_teacher@test.com")
        items = client.get(
            "/api/sessions/", params={"class_id": class_id, "status": "cancelled"}, headers=teacher,
        ).json()
        assert cancelled.id in [s["id"] for s in items]
        assert all(s["status"] == "cancelled" for s in items)

    def test_outsider_cannot_list(self, client, setup):
        outsider = _auth(client, "ses_outsider@test.com")
        resp = client.get("/api/sessions/", params={"class_id": setup["class"].id}, headers=outsider)
        assert resp.status_code == 403


class TestDetail:
    def test_teacher_and_student_views(self, client, setup, make_session):
        session = make_session()
        teacher = _auth(client, "ses_teacher@test.com")
        student = _auth(client, "ses_student@test.com")
        assert client.post(f"/api/sessions/{session.id}/join", headers=student).status_code == 200

        teacher_view = client.get(f"/api/sessions/{session.id}", headers=teacher).json()
        assert len(teacher_view["participants"]) == 1
        assert teacher_view["my_participation"] is None

        student_view = client.get(f"/api/sessions/{session.id}", headers=student).json()
        assert student_view["participants"] == []
        assert student_view["my_participation"]["status"] == "joined"
        assert student_view["session"].get("passcode") is None

    def test_outsider_forbidden_and_missing(self, client, setup, make_session):
        session = make_session()
        outsider = _auth(client, "ses_outsider@test.com")
        assert client.get(f"/api/sessions/{session.id}", headers=outsider).status_code == 403
        assert client.get("/api/sessions/999999", headers=outsider).status_code == 404


class TestUpdate:
    def test_scheduled_to_live_to_completed(self, client, setup, make_session):
        session = make_session()
        teacher = _auth(client, "ses_teacher@test.com")
        student = _auth(client, "ses_student@test.com")
        client.post(f"/api/sessions/{session.id}/join", headers=student)

        live = client.put(f"/api/sessions/{session.id}", json={"status": "live"}, headers=teacher)
        assert live.status_code == 200, live.text
        assert live.json()["actual_start"] is not None

        done = client.put(f"/api/sessions/{session.id}", json={"status": "completed"}, headers=teacher)
        assert done.status_code == 200
        assert done.json()["actual_end"] is not None

        mine = client.get(f"/api/sessions/{session.id}", headers=student).json()["my_participation"]
        assert mine["status"] == "left"
        assert mine["left_at"] is not None

    def test_invalid_transition(self, client, setup, make_session):
        session = make_session()
        teacher = _auth(client, "ses_teacher@test.com")
        resp = client.put(f"/api/sessions/{session.id}", json={"status": "completed"}, headers=teacher)
        assert resp.status_code == 400

        cancelled = make_session(status="cancelled")
        resp = client.put(f"/api/sessions/{cancelled.id}", json={"status": "live"}, headers=teacher)
        assert resp.status_code == 400

    def test_live_session_limits_fields(self, client, setup, make_session):
        session = make_session(status="live")
        teacher = _auth(client, "ses_teacher@test.com")

        resp = client.put(f"/api/sessions/{session.id}", json={"title": "New title"}, headers=teacher)
        assert resp.status_code == 400

        resp = client.put(
            f"/api/sessions/{session.id}",
            json={"title": "Ignored", "chat_enabled": False, "description": "Now with notes"},
            headers=teacher,
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["chat_enabled"] is False
        assert data["description"] == "Now with notes"
        assert data["title"] == "Direct session"

    def test_only_session_teacher_updates(self, client, setup, make_session):
        session = make_session()
        student = _auth(client, "ses_student@test.com")
        assert client.put(f"/api/sessions/{session.id}", json={"title": "x"}, headers=student).status_code == 403

    def test_delete_rules(self, client, setup, make_session):
        teacher = _auth(client, "ses_teacher@test.com")
        live = make_session(status="live")
        assert client.delete(f"/api/sessions/{live.id}", headers=teacher).status_code == 400

        scheduled = make_session()
        assert client.delete(f"/api/sessions/{scheduled.id}", headers=teacher).status_code == 200
        assert client.get(f"/api/sessions/{scheduled.id}", headers=teacher).status_code == 404


class TestContent:
    def test_add_and_reorder(self, client, setup, make_session):
        session = make_session()
        teacher = _auth(client, "ses_teacher@test.com")

        first = client.post(f"/api/sessions/{session.id}/content", json={
            "content_type": "video", "title": "Intro", "url": "https://videos.test/1", "order_index": 0,
        }, headers=teacher)
        assert first.status_code == 201, first.text
        second = client.post(f"/api/sessions/{session.id}/content", json={
            "content_type": "document", "title": "Notes", "url": "https://docs.test/2", "order_index": 1,
        }, headers=teacher)

        resp = client.put(f"/api/sessions/{session.id}/content", json={"content_updates": [
            {"id": first.json()["id"], "order_index": 1},
            {"id": second.json()["id"], "order_index": 0},
        ]}, headers=teacher)
        assert resp.status_code == 200
        assert [c["title"] for c in resp.json()] == ["Notes", "Intro"]

        detail = client.get(f"/api/sessions/{session.id}", headers=teacher).json()
        assert [c["title"] for c in detail["content"]] == ["Notes", "Intro"]

    def test_invalid_content_type(self, client, setup, make_session):
        session = make_session()
        teacher = _auth(client, "ses_teacher@test.com")
        resp = client.post(f"/api/sessions/{session.id}/content", json={
            "content_type": "hologram", "title": "x", "url": "https://x.test",
        }, headers=teacher)
        assert resp.status_code == 422

    def test_student_cannot_add_content(self, client, setup, make_session):
        session = make_session()
        student = _auth(client, "ses_student@test.com")
        resp = client.post(f"/api/sessions/{session.id}/content", json={
            "content_type": "link", "title": "x", "url": "https://x.test",
        }, headers=student)
        assert resp.status_code == 403


class TestJoinLeave:
    def test_join_leave_rejoin(self, client, setup, make_session):
        session = make_session()
        student = _auth(client, "ses_student@test.com")

        joined = client.post(f"/api/sessions/{session.id}/join", headers=student)
        assert joined.status_code == 200, joined.text
        assert joined.json()["rejoined"] is False
        assert joined.json()["participation"]["status"] == "joined"

        assert client.post(f"/api/sessions/{session.id}/join", headers=student).status_code == 400

        left = client.delete(f"/api/sessions/{session.id}/join", headers=student)
        assert left.status_code == 200
        assert left.json()["duration_minutes"] >= 0
        assert client.delete(f"/api/sessions/{session.id}/join", headers=student).status_code == 400

        rejoined = client.post(f"/api/sessions/{session.id}/join", headers=student)
        assert rejoined.json()["rejoined"] is True
        assert rejoined.json()["participation"]["status"] == "reconnected"

    def test_leave_without_joining(self, client, setup, make_session):
        session = make_session()
        student = _auth(client, "ses_student2@test.com")
        assert client.delete(f"/api/sessions/{session.id}/join", headers=student).status_code == 404

    def test_cancelled_and_completed_reject_join(self, client, setup, make_session):
        student = _auth(client, "ses_student@test.com")
        for status in ("cancelled", "completed"):
            session = make_session(status=status)
            assert client.post(f"/api/sessions/{session.id}/join", headers=student).status_code == 400

    def test_late_join_not_allowed(self, client, setup, make_session):
        session = make_session(allow_late_join=False)
        student = _auth(client, "ses_student@test.com")
        assert client.post(f"/api/sessions/{session.id}/join", headers=student).status_code == 400

    def test_join_after_end(self, client, setup, make_session):
        session = make_session(start_minutes=-120, end_minutes=-60)
        student = _auth(client, "ses_student@test.com")
        assert client.post(f"/api/sessions/{session.id}/join", headers=student).status_code == 400

    def test_full_session(self, client, setup, make_session):
        session = make_session(max_participants=1)
        first = _auth(client, "ses_student@test.com")
        second = _auth(client, "ses_student2@test.com")
        assert client.post(f"/api/sessions/{session.id}/join", headers=first).status_code == 200
        assert client.post(f"/api/sessions/{session.id}/join", headers=second).status_code == 400

        # A seat frees up once someone leaves
        client.delete(f"/api/sessions/{session.id}/join", headers=first)
        assert client.post(f"/api/sessions/{session.id}/join", headers=second).status_code == 200

    def test_outsider_cannot_join(self, client, setup, make_session):
        session = make_session()
        outsider = _auth(client, "ses_outsider@test.com")
        assert client.post(f"/api/sessions/{session.id}/join", headers=outsider).status_code == 403

    def test_teacher_join_after_start_goes_live(self, client, setup, make_session):
        session = make_session()
        teacher = _auth(client, "ses_teacher@test.com")
        assert client.post(f"/api/sessions/{session.id}/join", headers=teacher).status_code == 200

        detail = client.get(f"/api/sessions/{session.id}", headers=teacher).json()
        assert detail["session"]["status"] == "live"
        assert detail["session"]["actual_start"] is not None

    def test_teacher_join_before_start_stays_scheduled(self, client, setup, make_session):
        session = make_session(start_minutes=30, end_minutes=90)
        teacher = _auth(client, "ses_teacher@test.com")
        assert client.post(f"/api/sessions/{session.id}/join", headers=teacher).status_code == 200
        detail = client.get(f"/api/sessions/{session.id}", headers=teacher).json()
        assert detail["session"]["status"] == "scheduled"
