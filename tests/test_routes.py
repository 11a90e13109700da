"""Behaviour of the demo routes on both sides of the comparison."""

import pytest

XSS_PAYLOAD = "<script>alert(1)</script>"


def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_index_links_both_sides(client):
    response = client.get("/")
    assert 'href="/vulnerable' in response.text
    assert 'href="/protected' in response.text


class TestVulnerable:
    def test_reflects_payload_raw(self, client):
        response = client.get("/vulnerable", params={"userInput": XSS_PAYLOAD})
        assert response.status_code == 200
        assert f"Vulnerable Echo: {XSS_PAYLOAD}" in response.text

    def test_forged_transfer_succeeds(self, client):
        response = client.post("/vulnerable/transfer", data={"amount": "1000"})
        assert response.status_code == 200
        assert "Transferred $1000" in response.text

    def test_forged_password_change_succeeds(self, client):
        response = client.post(
            "/vulnerable/change-password", data={"newPassword": "pwned"}
        )
        assert response.status_code == 200
        assert "Password changed to pwned" in response.text


class TestProtected:
    def test_payload_escaped(self, client):
        response = client.get("/protected", params={"userInput": XSS_PAYLOAD})
        assert "&lt;script&gt;alert(1)&lt;/script&gt;" in response.text
        assert XSS_PAYLOAD not in response.text

    def test_escaped_exactly_once(self, client):
        response = client.get("/protected", params={"userInput": "a&b"})
        assert "Safe Echo: a&amp;b" in response.text
        assert "&amp;amp;" not in response.text

    def test_page_embeds_token_in_forms(self, client, csrf_token):
        page = client.get("/protected").text
        assert page.count(f'value="{csrf_token}"') == 2

    def test_transfer_rejects_negative_amount(self, client, csrf_token):
        response = client.post(
            "/protected/transfer", data={"amount": "-5", "csrfToken": csrf_token}
        )
        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == "amount"

    def test_transfer_rejects_non_numeric_amount(self, client, csrf_token):
        response = client.post(
            "/protected/transfer", data={"amount": "lots", "csrfToken": csrf_token}
        )
        assert response.status_code == 400

    @pytest.mark.parametrize("amount", ["inf", "nan", "-inf"])
    def test_transfer_rejects_non_finite_amount(self, client, csrf_token, amount):
        response = client.post(
            "/protected/transfer", data={"amount": amount, "csrfToken": csrf_token}
        )
        assert response.status_code == 400

    def test_change_password(self, client, csrf_token):
        response = client.post(
            "/protected/change-password",
            data={"newPassword": "correct-horse", "csrfToken": csrf_token},
        )
        assert response.status_code == 200
        assert "Password changed successfully" in response.text
        assert "correct-horse" not in response.text

    def test_change_password_too_short(self, client, csrf_token):
        response = client.post(
            "/protected/change-password",
            data={"newPassword": "short", "csrfToken": csrf_token},
        )
        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == "newPassword"

    def test_change_password_without_token(self, client, csrf_token):
        response = client.post(
            "/protected/change-password", data={"newPassword": "correct-horse"}
        )
        assert response.status_code == 403
