"""Wallet endpoints and the wallet read model behind them."""


def _adjust(client, admin, amount, user_id="buyer-001", description="Festive bonus"):
    return client.post(f"/wallet/admin/{user_id}/adjust", json={"amount": amount, "description": description}, headers=admin)


class TestWalletEndpoints:
    def test_empty_wallet(self, client, buyer):
        body = client.get("/wallet", headers=buyer).json()
        assert body["balance"] == 0
        assert body["next_expiry"] is None

    def test_admin_adjustment_shows_in_wallet(self, client, buyer, admin):
        response = _adjust(client, admin, 300)

        assert response.status_code == 200
        assert response.json()["balance"] == 300
        body = client.get("/wallet", headers=buyer).json()
        assert body["balance"] == 300
        assert body["lifetime_earned"] == 300
        assert body["next_expiry"] is not None

    def test_buyer_cannot_adjust(self, client, buyer):
        assert _adjust(client, buyer, 300).status_code == 403

    def test_debit_beyond_balance(self, client, admin):
        _adjust(client, admin, 50)

        response = _adjust(client, admin, -80, description="Clawback")

        assert response.status_code == 422
        body = response.json()
        assert body["code"] == "insufficient_funds"
        assert body["available"] == 50

    def test_transactions_page(self, client, buyer, admin):
        _adjust(client, admin, 100)
        _adjust(client, admin, -40, description="Correction")

        body = client.get("/wallet/transactions", params={"limit": 1}, headers=buyer).json()
        assert body["total"] == 2
        assert len(body["transactions"]) == 1
        assert body["transactions"][0]["txn_type"] == "debit"

    def test_redemption_tracked_in_view(self, client, buyer, admin, make_product, add_to_cart, address):
        _adjust(client, admin, 100)
        add_to_cart(make_product(price=1000.0))

        client.post("/checkout", json={"shipping_address": address, "redeem_coins": 60}, headers=buyer)

        body = client.get("/wallet", headers=buyer).json()
        assert body["balance"] == 40
        assert body["lifetime_redeemed"] == 60


class TestWalletSettingsEndpoints:
    def test_anyone_reads_settings(self, client, buyer):
        assert client.get("/wallet/settings", headers=buyer).json()["conversion_rate"] == 10.0

    def test_admin_updates_settings(self, client, admin):
        response = client.put("/wallet/settings", json={"max_usage_percentage": 35}, headers=admin)
        assert response.status_code == 200
        assert response.json()["max_usage_percentage"] == 35
        assert response.json()["conversion_rate"] == 10.0

    def test_invalid_settings(self, client, admin):
        assert client.put("/wallet/settings", json={"conversion_rate": 0}, headers=admin).status_code == 400

    def test_expiry_sweep(self, client, admin):
        response = client.post("/wallet/admin/expire", headers=admin)
        assert response.status_code == 200
        assert response.json()["coins_expired"] == 0
