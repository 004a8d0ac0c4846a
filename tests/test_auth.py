import pytest

from conftest import FakeResult, entity_handler, make_dsa, make_user
from loanportal.api.v1.routers import auth as auth_router
from loanportal.core.security import (
    create_access_token,
    create_password_reset_token,
    decode_token,
    verify_password,
)
from loanportal.core.settings import settings
from loanportal.models import AuditLog, DSAActivity, User

REGISTER_BODY = {
    "email": "Priya.Sharma@Example.com",
    "password": "Secur3!Pass",
    "first_name": "Priya",
    "last_name": "Sharma",
    "phone": "9876543210",
}


@pytest.fixture(autouse=True)
def _no_redis_login_guards(monkeypatch):
    async def _allow(*args, **kwargs):
        return None

    monkeypatch.setattr(auth_router, "enforce_login_limits", _allow)
    monkeypatch.setattr(auth_router, "record_login_attempt", _allow)


def test_register_user(fake_db, act_as) -> None:
    response = act_as(make_user()).post("/api/v1/auth/register", json=REGISTER_BODY)

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["message"] == "Registration successful"
    assert data["user"]["email"] == "priya.sharma@example.com"
    assert data["user"]["is_verified"] is True
    stored = fake_db.added_of(User)[0]
    assert verify_password("Secur3!Pass", stored.hashed_password)


def test_register_dsa_is_pending_verification(fake_db, act_as) -> None:
    body = {**REGISTER_BODY, "role": "dsa", "bank_name": "HDFC"}

    response = act_as(make_user()).post("/api/v1/auth/register", json=body)

    assert response.status_code == 201
    data = response.json()["data"]
    assert "pending admin verification" in data["message"]
    assert data["user"]["is_verified"] is False
    assert data["user"]["dsa_id"].startswith("HDF")
    assert fake_db.added_of(User)[0].specialization == ["education"]


def test_register_dsa_without_bank_fails_validation(act_as) -> None:
    response = act_as(make_user()).post("/api/v1/auth/register", json={**REGISTER_BODY, "role": "dsa"})
    assert response.status_code == 422
    assert response.json()["code"] == "validation_error"


def test_register_weak_password(act_as) -> None:
    response = act_as(make_user()).post("/api/v1/auth/register", json={**REGISTER_BODY, "password": "weakpassword"})
    assert response.status_code == 400
    assert "password" in response.json()["details"]


def test_register_duplicate_email(fake_db, act_as) -> None:
    existing = make_user(email="priya.sharma@example.com")
    fake_db.on_execute(entity_handler(User, FakeResult(items=[existing])))

    response = act_as(make_user()).post("/api/v1/auth/register", json=REGISTER_BODY)

    assert response.status_code == 409
    assert response.json()["details"] == {"field": "email"}


def test_login_returns_token(fake_db, act_as) -> None:
    user = make_user(email="asha@example.com")
    fake_db.on_execute(entity_handler(User, FakeResult(scalar=user)))

    response = act_as(user).post("/api/v1/auth/login", json={"email": "Asha@example.com", "password": "Password123!"})

    assert response.status_code == 200
    data = response.json()["data"]
    assert decode_token(data["access_token"])["sub"] == str(user.id)
    assert data["user"]["role"] == "user"
    assert user.last_login_at is not None


def test_dsa_login_records_activity(fake_db, act_as) -> None:
    dsa = make_dsa(email="dsa@example.com")
    fake_db.on_execute(entity_handler(User, FakeResult(scalar=dsa)))

    response = act_as(dsa).post("/api/v1/auth/login", json={"email": "dsa@example.com", "password": "Password123!"})

    assert response.status_code == 200
    assert [a.activity_type for a in fake_db.added_of(DSAActivity)] == ["login"]


def test_login_wrong_password(fake_db, act_as) -> None:
    user = make_user(email="asha@example.com")
    fake_db.on_execute(entity_handler(User, FakeResult(scalar=user)))

    response = act_as(user).post("/api/v1/auth/login", json={"email": "asha@example.com", "password": "Wrong123!"})

    assert response.status_code == 401
    assert response.json()["code"] == "unauthorized"


def test_login_inactive_account(fake_db, act_as) -> None:
    user = make_user(email="asha@example.com", is_active=False)
    fake_db.on_execute(entity_handler(User, FakeResult(scalar=user)))

    response = act_as(user).post("/api/v1/auth/login", json={"email": "asha@example.com", "password": "Password123!"})

    assert response.status_code == 401


def test_me_returns_current_user(act_as) -> None:
    user = make_user()
    response = act_as(user).get("/api/v1/auth/me")
    assert response.status_code == 200
    assert response.json()["data"]["id"] == str(user.id)


def test_change_password(fake_db, act_as) -> None:
    user = make_user()

    response = act_as(user).post(
        "/api/v1/auth/change-password",
        json={"current_password": "Password123!", "new_password": "N3w!Password"},
    )

    assert response.status_code == 200
    assert verify_password("N3w!Password", user.hashed_password)


def test_change_password_wrong_current(act_as) -> None:
    response = act_as(make_user()).post(
        "/api/v1/auth/change-password",
        json={"current_password": "Nope123!x", "new_password": "N3w!Password"},
    )
    assert response.status_code == 400


def test_protected_route_requires_token() -> None:
    from fastapi.testclient import TestClient

    from loanportal.main import app

    response = TestClient(app).get("/api/v1/auth/me")
    assert response.status_code == 401


def _reset_body(token: str, password: str = "Fr3sh!Start") -> dict:
    return {"token": token, "password": password, "confirm_password": password}


def test_forgot_password_issues_reset_token(fake_db, act_as, monkeypatch) -> None:
    user = make_user()
    fake_db.on_execute(entity_handler(User, FakeResult(scalar=user)))
    monkeypatch.setattr(settings, "expose_reset_token", True)

    response = act_as(make_user()).post("/api/v1/auth/forgot-password", json={"email": user.email})

    assert response.status_code == 200
    claims = decode_token(response.json()["data"]["reset_token"], expected_type="password_reset")
    assert claims["sub"] == str(user.id)


def test_forgot_password_does_not_reveal_unknown_email(act_as, monkeypatch) -> None:
    monkeypatch.setattr(settings, "expose_reset_token", True)
    response = act_as(make_user()).post("/api/v1/auth/forgot-password", json={"email": "nobody@example.com"})

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["reset_token"] is None
    assert data["message"].startswith("If an account with this email exists")


def test_forgot_password_hides_token_by_default(fake_db, act_as) -> None:
    user = make_user()
    fake_db.on_execute(entity_handler(User, FakeResult(scalar=user)))

    response = act_as(make_user()).post("/api/v1/auth/forgot-password", json={"email": user.email})

    assert response.json()["data"]["reset_token"] is None


def test_reset_password(fake_db, act_as) -> None:
    user = make_user()
    fake_db.on_execute(entity_handler(User, FakeResult(scalar=user)))
    token = create_password_reset_token(str(user.id), user.hashed_password)

    response = act_as(make_user()).post("/api/v1/auth/reset-password", json=_reset_body(token))

    assert response.status_code == 200
    assert verify_password("Fr3sh!Start", user.hashed_password)
    assert [entry.action for entry in fake_db.added_of(AuditLog)] == ["user.password_reset"]


def test_reset_token_is_single_use(fake_db, act_as) -> None:
    user = make_user()
    fake_db.on_execute(entity_handler(User, FakeResult(scalar=user)))
    token = create_password_reset_token(str(user.id), user.hashed_password)
    client = act_as(make_user())

    assert client.post("/api/v1/auth/reset-password", json=_reset_body(token)).status_code == 200
    again = client.post("/api/v1/auth/reset-password", json=_reset_body(token, "An0ther!Pass"))

    assert again.status_code == 400
    assert verify_password("Fr3sh!Start", user.hashed_password)


def test_reset_rejects_access_token(fake_db, act_as) -> None:
    user = make_user()
    fake_db.on_execute(entity_handler(User, FakeResult(scalar=user)))
    access_token = create_access_token(str(user.id), role=user.role)

    response = act_as(make_user()).post("/api/v1/auth/reset-password", json=_reset_body(access_token))

    assert response.status_code == 400
    assert response.json()["message"] == "Invalid or expired reset token"


def test_reset_rejects_expired_token(fake_db, act_as, monkeypatch) -> None:
    user = make_user()
    fake_db.on_execute(entity_handler(User, FakeResult(scalar=user)))
    monkeypatch.setattr(settings, "password_reset_expire_minutes", -1)
    token = create_password_reset_token(str(user.id), user.hashed_password)

    response = act_as(make_user()).post("/api/v1/auth/reset-password", json=_reset_body(token))

    assert response.status_code == 400


def test_reset_rejects_token_for_removed_user(act_as) -> None:
    user = make_user()
    token = create_password_reset_token(str(user.id), user.hashed_password)

    response = act_as(make_user()).post("/api/v1/auth/reset-password", json=_reset_body(token))

    assert response.status_code == 400
    assert response.json()["code"] == "bad_request"


def test_reset_applies_password_rules(fake_db, act_as) -> None:
    user = make_user()
    fake_db.on_execute(entity_handler(User, FakeResult(scalar=user)))
    token = create_password_reset_token(str(user.id), user.hashed_password)

    response = act_as(make_user()).post("/api/v1/auth/reset-password", json=_reset_body(token, "alllowercase1"))

    assert response.status_code == 400
    assert response.json()["details"]["password"]


def test_reset_requires_matching_confirmation(act_as) -> None:
    body = {"token": "x", "password": "Fr3sh!Start", "confirm_password": "Fr3sh!Stark"}

    response = act_as(make_user()).post("/api/v1/auth/reset-password", json=body)

    assert response.status_code == 422
