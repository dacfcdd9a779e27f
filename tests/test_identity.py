from helpers import register
from sqlalchemy.exc import OperationalError

from pricecompare.extensions import login_manager


def test_first_visit_sets_a_week_long_visitor_cookie(client):
    resp = client.get("/auth/me")

    assert resp.get_json()["identity"]["kind"] == "visitor"
    headers = [h for h in resp.headers.getlist("Set-Cookie") if h.startswith("visitor_id=")]
    assert len(headers) == 1
    assert "Max-Age=604800" in headers[0]
    assert "HttpOnly" in headers[0]
    assert "SameSite=Lax" in headers[0]


def test_visitor_id_is_stable_across_requests(client):
    first = client.get("/auth/me").get_json()["identity"]["id"]
    second = client.get("/auth/me").get_json()["identity"]["id"]
    assert first == second == client.get_cookie("visitor_id").value


def test_failed_account_lookup_falls_back_to_visitor(client, monkeypatch):
    register(client)

    def broken_loader(user_id):
        raise OperationalError("SELECT users", {}, Exception("connection reset"))

    monkeypatch.setattr(login_manager, "_user_callback", broken_loader)

    resp = client.get("/auth/me")

    assert resp.status_code == 200
    body = resp.get_json()
    assert body["identity"]["kind"] == "visitor"
    assert body["user"] is None
