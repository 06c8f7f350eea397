"""Tests for class messages and teacher moderation."""

import pytest

PASSWORD = "Password123!"


def _login(client, email):
    resp = client.post("/api/auth/login", data={"username": email, "password": PASSWORD})
    assert resp.status_code == 200, resp.text
    return resp.json()["access_token"]


def _auth(client, email):
    return {"Authorization": f"Bearer {_login(client, email)}"}


@pytest.fixture()
def setup(make_user, make_class):
    teacher = make_user("msg_teacher@test.com", "teacher")
    other_teacher = make_user("msg_teacher2@test.com", "teacher")
    alice = make_user("msg_alice@test.com", "student")
    bob = make_user("msg_bob@test.com", "student")
    outsider = make_user("msg_outsider@test.com", "student")
    cls = make_class("MSGCLS01", teacher, members=[alice, bob])
    return {
        "teacher": teacher, "other_teacher": other_teacher,
        "alice": alice, "bob": bob, "outsider": outsider, "class": cls,
    }


def _post(client, headers, class_id, content, type_="text"):
    return client.post("/api/messages/", json={"class_id": class_id, "content": content, "type": type_}, headers=headers)


class TestSendMessage:
    def test_teacher_message_auto_approved(self, client, setup):
        headers = _auth(client, "msg_teacher@test.com")
        resp = _post(client, headers, setup["class"].id, "Welcome!", "announcement")
        assert resp.status_code == 201, resp.text
        data = resp.json()
        assert data["is_approved"] is True
        assert data["type"] == "announcement"
        assert data["sender"]["id"] == setup["teacher"].id

    def test_student_message_needs_approval(self, client, setup):
        headers = _auth(client, "msg_alice@test.com")
        resp = _post(client, headers, setup["class"].id, "  Is there homework?  ", "question")
        assert resp.status_code == 201
        assert resp.json()["is_approved"] is False
        assert resp.json()["content"] == "Is there homework?"

    def test_blank_content_rejected(self, client, setup):
        headers = _auth(client, "msg_alice@test.com")
        assert _post(client, headers, setup["class"].id, "   ").status_code == 422

    def test_invalid_type_rejected(self, client, setup):
        headers = _auth(client, "msg_alice@test.com")
        assert _post(client, headers, setup["class"].id, "hi", "gossip").status_code == 422

    def test_outsider_forbidden(self, client, setup):
        headers = _auth(client, "msg_outsider@test.com")
        assert _post(client, headers, setup["class"].id, "hello").status_code == 403

    def test_missing_class(self, client, setup):
        headers = _auth(client, "msg_alice@test.com")
        assert _post(client, headers, 999999, "hello").status_code == 404


class TestVisibility:
    def test_unapproved_message_hidden_from_other_students(self, client, setup):
        class_id = setup["class"].id
        alice = _auth(client, "msg_alice@test.com")
        bob = _auth(client, "msg_bob@test.com")
        teacher = _auth(client, "msg_teacher@test.com")

        msg_id = _post(client, alice, class_id, "Pending visibility check").json()["id"]

        alice_ids = [m["id"] for m in client.get("/api/messages/", params={"class_id": class_id}, headers=alice).json()]
        bob_ids = [m["id"] for m in client.get("/api/messages/", params={"class_id": class_id}, headers=bob).json()]
        teacher_ids = [m["id"] for m in client.get("/api/messages/", params={"class_id": class_id}, headers=teacher).json()]

        assert msg_id in alice_ids
        assert msg_id not in bob_ids
        assert msg_id in teacher_ids

        approve = client.post("/api/messages/approve", json={"message_id": msg_id, "approved": True}, headers=teacher)
        assert approve.status_code == 200

        bob_ids = [m["id"] for m in client.get("/api/messages/", params={"class_id": class_id}, headers=bob).json()]
        assert msg_id in bob_ids

    def test_messages_newest_first(self, client, setup):
        class_id = setup["class"].id
        teacher = _auth(client, "msg_teacher@test.com")
        first = _post(client, teacher, class_id, "first").json()["id"]
        second = _post(client, teacher, class_id, "second").json()["id"]

        ids = [m["id"] for m in client.get("/api/messages/", params={"class_id": class_id}, headers=teacher).json()]
        assert ids.index(second) < ids.index(first)


class TestModeration:
    def test_pending_lists_oldest_first(self, client, setup):
        class_id = setup["class"].id
        alice = _auth(client, "msg_alice@test.com")
        teacher = _auth(client, "msg_teacher@test.com")
        a = _post(client, alice, class_id, "pending one").json()["id"]
        b = _post(client, alice, class_id, "pending two").json()["id"]

        resp = client.get("/api/messages/pending", params={"class_id": class_id}, headers=teacher)
        assert resp.status_code == 200
        ids = [m["id"] for m in resp.json()]
        assert ids.index(a) < ids.index(b)
        assert all(m["is_approved"] is False for m in resp.json())

    def test_pending_requires_class_teacher(self, client, setup):
        headers = _auth(client, "msg_alice@test.com")
        resp = client.get("/api/messages/pending", params={"class_id": setup["class"].id}, headers=headers)
        assert resp.status_code == 403

    def test_reject_deletes_message(self, client, setup, db_session):
        from edumessage.models.message import Message

        alice = _auth(client, "msg_alice@test.com")
        teacher = _auth(client, "msg_teacher@test.com")
        msg_id = _post(client, alice, setup["class"].id, "reject me").json()["id"]

        resp = client.post("/api/messages/approve", json={"message_id": msg_id, "approved": False}, headers=teacher)
        assert resp.status_code == 200
        assert resp.json()["approved"] is False
        assert db_session.query(Message).filter(Message.id == msg_id).first() is None

    def test_student_cannot_approve(self, client, setup):
        alice = _auth(client, "msg_alice@test.com")
        msg_id = _post(client, alice, setup["class"].id, "self approve").json()["id"]
        resp = client.post("/api/messages/approve", json={"message_id": msg_id, "approved": True}, headers=alice)
        assert resp.status_code == 403

    def test_other_teacher_cannot_approve(self, client, setup):
        alice = _auth(client, "msg_alice@test.com")
        msg_id = _post(client, alice, setup["class"].id, "wrong teacher").json()["id"]
        other = _auth(client, "msg_teacher2@test.com")
        resp = client.post("/api/messages/approve", json={"message_id": msg_id, "approved": True}, headers=other)
        assert resp.status_code == 403

    def test_unknown_message(self, client, setup):
        teacher = _auth(client, "msg_teacher@test.com")
        resp = client.post("/api/messages/approve", json={"message_id": 999999, "approved": True}, headers=teacher)
        assert resp.status_code == 404

    def test_non_boolean_approved_rejected(self, client, setup):
        teacher = _auth(client, "msg_teacher@test.com")
        resp = client.post("/api/messages/approve", json={"message_id": 1, "approved": "yes"}, headers=teacher)
        assert resp.status_code == 422
