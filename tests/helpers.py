BANK_ANSWERS = {"bank": "TD", "monthly_fee": "12", "free_transactions": "10"}


def answer_all(client, slug, answers, query=""):
    last = None
    for step, value in enumerate(answers):
        resp = client.post(f"/compare/{slug}/{step}{query}", json={"answer": value})
        assert resp.status_code == 200, resp.get_json()
        last = resp.get_json()
    return last


def register(client, name="Alice", email="alice@example.com", password="password123"):
    return client.post(
        "/auth/register",
        json={"full_name": name, "email": email, "password": password, "confirm_password": password},
    )


def login(client, email="alice@example.com", password="password123"):
    return client.post("/auth/login", json={"email": email, "password": password})
