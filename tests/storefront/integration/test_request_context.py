"""Request correlation ids on API responses."""


class TestRequestId:
    def test_forwarded_request_id_is_echoed(self, client):
        response = client.get("/health", headers={"X-Request-Id": "gw-123"})
        assert response.headers["x-request-id"] == "gw-123"

    def test_missing_request_id_is_generated(self, client, buyer):
        first = client.get("/wishlist", headers=buyer).headers["x-request-id"]
        second = client.get("/wishlist", headers=buyer).headers["x-request-id"]
        assert first and second and first != second
