from tourillo.models_sqlalchemy.models import User
from tourillo.services.wishlist import add_to_wishlist, get_wishlist, remove_from_wishlist


def _stored_ids(db, user_id):
    db.expire_all()
    return db.query(User).filter(User.id == user_id).one().wishlist_ids


def test_add_is_idempotent_and_keeps_order(db, make_user):
    user = make_user()

    add_to_wishlist(db, user.id, "pkg-1")
    add_to_wishlist(db, user.id, "pkg-2")
    result = add_to_wishlist(db, user.id, "pkg-1")

    assert result.success is True
    assert result.wishlist_ids == ["pkg-1", "pkg-2"]
    assert _stored_ids(db, user.id) == ["pkg-1", "pkg-2"]


def test_remove_is_idempotent(db, make_user):
    user = make_user(wishlist_ids=["pkg-1", "pkg-2", "pkg-3"])

    remove_from_wishlist(db, user.id, "pkg-2")
    result = remove_from_wishlist(db, user.id, "pkg-2")

    assert result.success is True
    assert result.wishlist_ids == ["pkg-1", "pkg-3"]
    assert _stored_ids(db, user.id) == ["pkg-1", "pkg-3"]


def test_unknown_user_is_reported(db):
    result = add_to_wishlist(db, "nobody", "pkg-1")

    assert result.success is False
    assert result.error == "User not found"
    assert get_wishlist(db, "nobody").success is False


def test_api_rejects_anonymous_visitors(client):
    resp = client.post("/api/wishlist/pkg-1")

    assert resp.status_code == 401
    assert resp.json() == {"success": False, "wishlist_ids": [], "error": "Not authenticated"}


def test_api_reports_session_error_tag(client, db, make_user, login):
    user = make_user()
    login(user)
    user.is_active = False
    db.commit()

    resp = client.post("/api/wishlist/pkg-1")

    assert resp.status_code == 401
    assert resp.json()["error"] == "user-inactive"
    assert _stored_ids(db, user.id) == []


def test_api_add_and_remove(client, db, make_user, login):
    user = make_user()
    login(user)

    assert client.post("/api/wishlist/pkg-1").json()["wishlist_ids"] == ["pkg-1"]
    assert client.post("/api/wishlist/pkg-2").json()["wishlist_ids"] == ["pkg-1", "pkg-2"]
    assert client.delete("/api/wishlist/pkg-1").json() == {
        "success": True,
        "wishlist_ids": ["pkg-2"],
        "error": None,
    }
    assert client.get("/api/wishlist").json()["wishlist_ids"] == ["pkg-2"]
    assert _stored_ids(db, user.id) == ["pkg-2"]
