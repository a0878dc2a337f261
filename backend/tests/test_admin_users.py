from datetime import timedelta

import pytest

from tourillo.models_sqlalchemy.models import User, UserSession
from tourillo.services.session_manager import create_session
from tourillo.utils.logger import utcnow


@pytest.fixture
def admin(make_user, login):
    user = make_user("admin@example.com", is_admin=True)
    login(user)
    return user


@pytest.fixture
def people(make_user):
    now = utcnow()
    return {
        "customer": make_user("customer@example.com", created_at=now - timedelta(days=3)),
        "agent": make_user("agent@example.com", is_agent=True, created_at=now - timedelta(days=2)),
        "both": make_user("both@example.com", is_agent=True, is_admin=True, created_at=now - timedelta(days=1)),
    }


def _emails(resp):
    assert resp.status_code == 200
    return [u["email"] for u in resp.json()]


def test_anonymous_and_plain_users_are_refused(client, make_user, login):
    assert client.get("/api/admin/users/").status_code == 401

    login(make_user())
    assert client.get("/api/admin/users/").status_code == 403


def test_list_by_kind_newest_first(client, admin, people):
    assert _emails(client.get("/api/admin/users/", params={"kind": "users"})) == ["customer@example.com"]
    assert _emails(client.get("/api/admin/users/", params={"kind": "agents"})) == [
        "both@example.com",
        "agent@example.com",
    ]
    assert _emails(client.get("/api/admin/users/", params={"kind": "admins"})) == [
        "admin@example.com",
        "both@example.com",
    ]
    assert len(_emails(client.get("/api/admin/users/"))) == 4


def test_list_rejects_unknown_kind(client, admin):
    assert client.get("/api/admin/users/", params={"kind": "robots"}).status_code == 422


def test_list_includes_session_counts(client, db, admin, people):
    create_session(db, people["agent"].id)
    create_session(db, people["agent"].id)

    users = {u["email"]: u for u in client.get("/api/admin/users/").json()}

    assert users["agent@example.com"]["session_count"] == 2
    assert users["customer@example.com"]["session_count"] == 0


def test_update_flags_and_name(client, admin, people):
    resp = client.patch(
        f"/api/admin/users/{people['customer'].id}",
        json={"name": "Renamed", "is_agent": True},
    )

    assert resp.status_code == 200
    body = resp.json()
    assert body["name"] == "Renamed"
    assert body["is_agent"] is True
    assert body["is_admin"] is False


def test_update_rejects_duplicate_email(client, admin, people):
    resp = client.patch(f"/api/admin/users/{people['customer'].id}", json={"email": "agent@example.com"})

    assert resp.status_code == 400


def test_deactivating_through_update_wipes_sessions(client, db, admin, people):
    target = people["agent"]
    create_session(db, target.id)

    resp = client.patch(f"/api/admin/users/{target.id}", json={"is_active": False})

    assert resp.status_code == 200
    assert resp.json()["is_active"] is False
    assert resp.json()["session_count"] == 0
    assert db.query(UserSession).filter(UserSession.user_id == target.id).count() == 0


def test_status_toggle(client, db, admin, people):
    target = people["customer"]
    create_session(db, target.id)

    off = client.post(f"/api/admin/users/{target.id}/status", json={"is_active": False})
    on = client.post(f"/api/admin/users/{target.id}/status", json={"is_active": True})

    assert off.json()["is_active"] is False
    assert off.json()["session_count"] == 0
    assert on.json()["is_active"] is True


def test_promote_to_admin(client, admin, people):
    resp = client.post(f"/api/admin/users/{people['agent'].id}/promote")

    assert resp.status_code == 200
    assert resp.json()["is_admin"] is True
    assert resp.json()["is_agent"] is True


def test_admin_cannot_delete_themselves(client, db, admin):
    resp = client.delete(f"/api/admin/users/{admin.id}")

    assert resp.status_code == 400
    db.expire_all()
    assert db.query(User).filter(User.id == admin.id).count() == 1


def test_delete_user(client, db, admin, people):
    target = people["customer"]
    create_session(db, target.id)

    resp = client.delete(f"/api/admin/users/{target.id}")

    assert resp.json() == {"success": True}
    assert db.query(User).filter(User.id == target.id).count() == 0
    assert db.query(UserSession).filter(UserSession.user_id == target.id).count() == 0


def test_unknown_user_is_404(client, admin):
    assert client.get("/api/admin/users/missing").status_code == 404
    assert client.post("/api/admin/users/missing/promote").status_code == 404
    assert client.delete("/api/admin/users/missing").status_code == 404
