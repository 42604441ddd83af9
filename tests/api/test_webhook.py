from rpay.models.webhook_log import WebhookLog


class TestAtlanticWebhook:
    def test_success_credits_owner(self, client, db, make_user, make_transaction):
        user = make_user()
        make_transaction(user, reff_id="INV-1", nominal=10000)

        resp = client.post("/webhook/atlantic", json={"reff_id": "INV-1", "status": "success"})
        assert resp.status_code == 200
        assert resp.json() == {"received": True}
        db.refresh(user)
        assert user.saldo == 9560

    def test_redelivery_does_not_double_credit(self, client, db, make_user, make_transaction):
        user = make_user()
        make_transaction(user, reff_id="INV-1", nominal=10000)
        for _ in range(3):
            client.post("/webhook/atlantic", json={"reff_id": "INV-1", "status": "success"})
        db.refresh(user)
        assert user.saldo == 9560
        assert db.query(WebhookLog).count() == 3

    def test_malformed_body_is_acknowledged_and_logged(self, client, db):
        resp = client.post(
            "/webhook/atlantic", content=b"{not json", headers={"Content-Type": "application/json"}
        )
        assert resp.json() == {"received": True}
        log = db.query(WebhookLog).one()
        assert log.payload == "{not json"
        assert log.reff_id is None

    def test_unknown_reference_is_acknowledged(self, client, db):
        resp = client.post("/webhook/atlantic", json={"reff_id": "GHOST", "status": "success"})
        assert resp.json() == {"received": True}
        assert db.query(WebhookLog).one().reff_id == "GHOST"
