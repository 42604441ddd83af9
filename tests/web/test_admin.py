import pytest

from rpay.models.api_key import ApiKey
from rpay.models.user import User


@pytest.fixture
def admin(make_user, login_as):
    user = make_user(is_admin=True, password="admin-password")
    login_as(user, password="admin-password", admin=True)
    return user


class TestAdminPanel:
    def test_lists_customers(self, client, admin, make_user):
        merchant = make_user(username="tokobaju")
        resp = client.get("/admin")
        assert resp.status_code == 200
        assert merchant.username in resp.text

    def test_verify_api_keys(self, client, db, admin, make_user, make_api_key):
        merchant = make_user()
        key = make_api_key(merchant, verified=False)

        resp = client.post(f"/admin/verify-api-key/{merchant.id}", follow_redirects=False)
        assert resp.headers["location"].startswith("/admin?success=")
        db.refresh(key)
        assert key.verified is True

    def test_verify_without_keys(self, client, admin, make_user):
        resp = client.post(f"/admin/verify-api-key/{make_user().id}", follow_redirects=False)
        assert resp.headers["location"].startswith("/admin?error=")

    def test_delete_user(self, client, db, admin, make_user, make_api_key):
        merchant = make_user()
        make_api_key(merchant)
        merchant_id = merchant.id

        resp = client.post(f"/admin/delete-user/{merchant_id}", follow_redirects=False)
        assert resp.headers["location"].startswith("/admin?success=")
        db.expire_all()
        assert db.query(User).filter(User.id == merchant_id).one_or_none() is None
        assert db.query(ApiKey).count() == 0

    def test_cannot_delete_self(self, client, db, admin):
        resp = client.post(f"/admin/delete-user/{admin.id}", follow_redirects=False)
        assert resp.headers["location"].startswith("/admin?error=")
        assert db.query(User).filter(User.id == admin.id).one_or_none() is not None
