from rpay.models.api_key import ApiKey
from rpay.models.withdrawal import Withdrawal


class TestApiKeys:
    def test_generate_creates_unverified_key(self, client, db, make_user, login_as):
        user = make_user()
        login_as(user)

        resp = client.post("/dashboard/api-keys/generate", follow_redirects=False)
        assert resp.headers["location"].startswith("/dashboard/api-keys?success=")
        key = db.query(ApiKey).filter(ApiKey.user_id == user.id).one()
        assert key.verified is False
        assert key.api_key in client.get("/dashboard/api-keys").text


class TestWithdraw:
    def test_redirects_to_admin_contact(self, client, db, make_user, login_as):
        user = make_user(saldo=50000)
        login_as(user)

        resp = client.post("/dashboard/withdraw", data={"nominal": "20000"}, follow_redirects=False)
        assert resp.status_code == 303
        assert resp.headers["location"].startswith("https://wa.me/6289525036410?text=")
        db.refresh(user)
        assert user.saldo == 30000
        assert db.query(Withdrawal).filter(Withdrawal.user_id == user.id).one().status == "pending"

    def test_insufficient_balance(self, client, db, make_user, login_as):
        user = make_user(saldo=1000)
        login_as(user)

        resp = client.post("/dashboard/withdraw", data={"nominal": "5000"}, follow_redirects=False)
        assert resp.headers["location"].startswith("/dashboard?error=")
        db.refresh(user)
        assert user.saldo == 1000
        assert db.query(Withdrawal).count() == 0


class TestPaymentPage:
    def test_owner_key_shows_qr(self, client, make_user, make_api_key, make_transaction):
        user = make_user()
        key = make_api_key(user)
        make_transaction(user, reff_id="INV-1", nominal=10000)

        resp = client.get(f"/pg/INV-1/{key.api_key}")
        assert resp.status_code == 200
        assert "INV-1" in resp.text

    def test_foreign_key_is_not_found(self, client, make_user, make_api_key, make_transaction):
        make_transaction(make_user(), reff_id="INV-1")
        stranger = make_api_key(make_user())
        assert client.get(f"/pg/INV-1/{stranger.api_key}").status_code == 404


class TestWithdrawLimits:
    def test_oversized_amount_redirects_with_error(self, client, db, make_user, login_as):
        user = make_user(saldo=1000)
        login_as(user)

        resp = client.post("/dashboard/withdraw", data={"nominal": str(10**30)}, follow_redirects=False)
        assert resp.status_code == 303
        assert resp.headers["location"].startswith("/dashboard?error=")
        db.refresh(user)
        assert user.saldo == 1000
