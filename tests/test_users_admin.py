import pytest

from conftest import FakeResult, entity_handler, make_admin, make_dsa, make_user
from loanportal.core.errors import BadRequestError, ForbiddenError
from loanportal.models import AuditLog, User
from loanportal.services import users as user_service


def test_profile_masks_government_ids(act_as) -> None:
    user = make_user(aadhar_number="123412341234", pan_number="ABCDE1234F")

    response = act_as(user).get("/api/v1/users/profile")

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["aadhar_number"] == "********1234"
    assert data["pan_number"] == "******234F"


def test_update_profile(fake_db, act_as) -> None:
    user = make_user()

    response = act_as(user).put("/api/v1/users/profile", json={"course": "MBA", "annual_income": "450000"})

    assert response.status_code == 200
    assert response.json()["data"]["course"] == "MBA"
    assert user.course == "MBA"
    audit = fake_db.added_of(AuditLog)[0]
    assert "hashed_password" not in (audit.new_value or {})


def test_update_profile_rejects_role_change(act_as) -> None:
    response = act_as(make_user()).put("/api/v1/users/profile", json={"role": "admin"})
    assert response.status_code == 422


def test_update_profile_rejects_taken_phone(fake_db, act_as) -> None:
    user = make_user()
    fake_db.on_execute_return(FakeResult(scalar=make_user().id))

    response = act_as(user).put("/api/v1/users/profile", json={"phone": "9123456789"})

    assert response.status_code == 409


@pytest.mark.asyncio
async def test_dsa_sees_profile_of_assigned_applicant(fake_db) -> None:
    dsa, applicant = make_dsa(), make_user()
    fake_db.on_execute(entity_handler(User, FakeResult(scalar=applicant)))
    fake_db.on_execute_return(FakeResult(scalar=1))

    assert await user_service.get_profile_for(fake_db, dsa, applicant.id) is applicant


@pytest.mark.asyncio
async def test_dsa_cannot_see_unrelated_applicant(fake_db) -> None:
    dsa, applicant = make_dsa(), make_user()
    fake_db.on_execute(entity_handler(User, FakeResult(scalar=applicant)))
    fake_db.on_execute_return(FakeResult(scalar=0))

    with pytest.raises(ForbiddenError):
        await user_service.get_profile_for(fake_db, dsa, applicant.id)


@pytest.mark.asyncio
async def test_user_cannot_see_other_profiles(fake_db) -> None:
    other = make_user()
    fake_db.on_execute(entity_handler(User, FakeResult(scalar=other)))
    with pytest.raises(ForbiddenError):
        await user_service.get_profile_for(fake_db, make_user(), other.id)


def test_admin_verifies_dsa(fake_db, act_as) -> None:
    admin = make_admin()
    dsa = make_dsa(is_verified=False)
    fake_db.on_execute(entity_handler(User, FakeResult(scalar=dsa)))

    response = act_as(admin).put(f"/api/v1/admin/users/{dsa.id}/verify", json={"is_verified": True})

    assert response.status_code == 200
    assert dsa.is_verified is True
    assert dsa.verified_by == admin.id
    assert dsa.verified_at is not None


def test_dsa_cannot_use_admin_routes(act_as) -> None:
    assert act_as(make_dsa()).get("/api/v1/admin/users").status_code == 403
    assert act_as(make_user()).get("/api/v1/admin/system-logs").status_code == 403


@pytest.mark.asyncio
async def test_admin_cannot_deactivate_self(fake_db) -> None:
    admin = make_admin()
    with pytest.raises(BadRequestError):
        await user_service.set_active(fake_db, admin, False, actor=admin)


def test_admin_lists_users(fake_db, act_as) -> None:
    users = [make_user(), make_dsa()]
    fake_db.on_execute_return(FakeResult(scalar=2, items=users))

    response = act_as(make_admin()).get("/api/v1/admin/users", params={"status": "active"})

    assert response.status_code == 200
    data = response.json()["data"]
    assert len(data["items"]) == 2
    assert data["pagination"]["total"] == 2
