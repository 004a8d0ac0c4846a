from uuid import uuid4

import pytest

from conftest import FakeResult, entity_handler, make_admin, make_application, make_dsa, make_user
from loanportal.core.errors import BadRequestError, ConflictError, ForbiddenError
from loanportal.models import DSAActivity, LoanApplication, User
from loanportal.schemas.applications import ReviewCreate
from loanportal.services import assignment, reviews


def _review(status: str, **extra) -> ReviewCreate:
    return ReviewCreate(status=status, **extra)


@pytest.mark.asyncio
async def test_single_approval_below_threshold_is_partial(fake_db) -> None:
    panel = [make_dsa(), make_dsa(), make_dsa()]
    application = make_application(status="under_review", dsas=panel)

    await reviews.submit_review(fake_db, application, _review("approved"), reviewer=panel[0])

    assert application.status == "partially_approved"
    assert reviews.approval_summary(application) == {"approved": 1, "rejected": 0, "pending": 2}
    activities = fake_db.added_of(DSAActivity)
    assert [item.activity_type for item in activities] == ["application_approve"]


@pytest.mark.asyncio
async def test_threshold_reached_approves(fake_db) -> None:
    panel = [make_dsa(), make_dsa(), make_dsa()]
    application = make_application(status="under_review", dsas=panel)

    await reviews.submit_review(fake_db, application, _review("approved"), reviewer=panel[0])
    await reviews.submit_review(fake_db, application, _review("approved"), reviewer=panel[1])

    assert application.status == "approved"
    assert [entry.status for entry in application.status_history] == [
        "pending",
        "partially_approved",
        "approved",
    ]


@pytest.mark.asyncio
async def test_rejection_waits_for_outstanding_reviews(fake_db) -> None:
    panel = [make_dsa(), make_dsa()]
    application = make_application(status="under_review", dsas=panel)

    await reviews.submit_review(fake_db, application, _review("rejected"), reviewer=panel[0])
    assert application.status == "under_review"

    await reviews.submit_review(fake_db, application, _review("rejected"), reviewer=panel[1])
    assert application.status == "rejected"


@pytest.mark.asyncio
async def test_review_records_risk_assessment(fake_db) -> None:
    reviewer = make_dsa()
    application = make_application(status="under_review", dsas=[reviewer, make_dsa()])
    payload = _review(
        "pending",
        comments="Need salary slips",
        documents_reviewed=["aadhar_card"],
        risk_assessment={"credit_score": 720, "risk_level": "low", "recommendations": ["co-signer"]},
    )

    await reviews.submit_review(fake_db, application, payload, reviewer=reviewer)

    review = next(r for r in application.reviews if r.dsa_id == reviewer.id)
    assert review.comments == "Need salary slips"
    assert review.risk_assessment["credit_score"] == 720
    assert review.reviewed_at is not None


@pytest.mark.asyncio
async def test_unassigned_dsa_cannot_review(fake_db) -> None:
    application = make_application(status="under_review", dsas=[make_dsa()])
    with pytest.raises(ForbiddenError):
        await reviews.submit_review(fake_db, application, _review("approved"), reviewer=make_dsa())


@pytest.mark.asyncio
async def test_review_on_decided_application_conflicts(fake_db) -> None:
    reviewer = make_dsa()
    application = make_application(status="approved", dsas=[reviewer])
    with pytest.raises(ConflictError):
        await reviews.submit_review(fake_db, application, _review("rejected"), reviewer=reviewer)


@pytest.mark.asyncio
async def test_select_dsa_requires_an_approval_or_review_state(fake_db) -> None:
    owner = make_user()
    panel = [make_dsa(), make_dsa()]
    application = make_application(applicant=owner, status="pending", dsas=panel)

    with pytest.raises(BadRequestError):
        await reviews.select_dsa(fake_db, application, panel[1].id, actor=owner)

    application.status = "under_review"
    await reviews.select_dsa(fake_db, application, panel[1].id, actor=owner)
    assert application.dsa_id == panel[1].id


@pytest.mark.asyncio
async def test_select_dsa_rejects_unassigned_and_non_owner(fake_db) -> None:
    owner = make_user()
    application = make_application(applicant=owner, status="under_review", dsas=[make_dsa()])

    with pytest.raises(BadRequestError):
        await reviews.select_dsa(fake_db, application, uuid4(), actor=owner)
    with pytest.raises(ForbiddenError):
        await reviews.select_dsa(fake_db, application, application.dsa_id, actor=make_user())


@pytest.mark.asyncio
async def test_assign_dsas_starts_review_round(fake_db) -> None:
    admin = make_admin()
    panel = [make_dsa(), make_dsa()]
    application = make_application()
    fake_db.on_execute(entity_handler(User, FakeResult(items=panel)))

    await assignment.assign_dsas(fake_db, application, [dsa.id for dsa in panel], threshold=5, actor=admin)

    assert application.status == "under_review"
    assert application.status_history[-1].comments == "Assigned to 2 DSA(s)"
    assert application.final_approval_threshold == 2
    assert {r.status for r in application.reviews} == {"pending"}
    assert application.dsa_id == panel[0].id
    assert application.review_deadline > application.assigned_at


@pytest.mark.asyncio
async def test_reassignment_resets_reviews_and_keeps_status(fake_db) -> None:
    admin = make_admin()
    kept, dropped, added = make_dsa(), make_dsa(), make_dsa()
    application = make_application(status="partially_approved", dsas=[kept, dropped])
    application.reviews[0].status = "approved"
    fake_db.on_execute(entity_handler(User, FakeResult(items=[kept, added])))

    await assignment.assign_dsas(fake_db, application, [kept.id, added.id], threshold=2, actor=admin)

    assert application.status == "partially_approved"
    assert {str(dsa_id) for dsa_id in application.assigned_dsa_ids} == {str(kept.id), str(added.id)}
    assert [r.status for r in application.reviews] == ["pending", "pending"]


@pytest.mark.asyncio
async def test_assign_dsas_validates_input(fake_db) -> None:
    admin = make_admin()
    dsa = make_dsa()
    application = make_application()

    with pytest.raises(BadRequestError):
        await assignment.assign_dsas(fake_db, application, [], threshold=1, actor=admin)
    with pytest.raises(BadRequestError):
        await assignment.assign_dsas(fake_db, application, [dsa.id, dsa.id], threshold=1, actor=admin)

    fake_db.on_execute(entity_handler(User, FakeResult(items=[])))
    with pytest.raises(BadRequestError):
        await assignment.assign_dsas(fake_db, application, [dsa.id], threshold=1, actor=admin)


@pytest.mark.asyncio
async def test_assign_dsas_on_decided_application_conflicts(fake_db) -> None:
    application = make_application(status="rejected")
    with pytest.raises(ConflictError):
        await assignment.assign_dsas(fake_db, application, [uuid4()], threshold=1, actor=make_admin())


@pytest.mark.asyncio
async def test_available_dsas_sorted_by_workload(fake_db) -> None:
    busy = make_dsa(first_name="Anil")
    idle = make_dsa(first_name="Zoya")
    application = make_application(dsas=[busy])
    fake_db.on_execute(entity_handler(User, FakeResult(items=[busy, idle])))
    fake_db.on_execute_return(FakeResult(rows=[(busy.id, 3)]))

    payload = await assignment.list_available_dsas(fake_db, application)

    names = [item["name"] for item in payload["available_dsas"]]
    assert names == [idle.full_name, busy.full_name]
    assert payload["available_dsas"][1]["is_currently_assigned"] is True
    assert payload["available_dsas"][1]["workload"] == 3


def test_reviews_route_for_assigned_dsa(fake_db, act_as) -> None:
    reviewer = make_dsa()
    application = make_application(status="under_review", dsas=[reviewer])
    application.final_approval_threshold = 1
    fake_db.on_execute(entity_handler(LoanApplication, FakeResult(scalar=application)))

    response = act_as(reviewer).post(
        f"/api/v1/applications/{application.id}/reviews",
        json={"status": "approved", "comments": "All good"},
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["status"] == "approved"
    assert data["summary"] == {"approved": 1, "rejected": 0, "pending": 0}
    assert data["can_select_dsa"] is True


def test_reviews_route_forbidden_for_applicant(fake_db, act_as) -> None:
    owner = make_user()
    application = make_application(applicant=owner, status="under_review", dsas=[make_dsa()])
    fake_db.on_execute(entity_handler(LoanApplication, FakeResult(scalar=application)))

    response = act_as(owner).post(f"/api/v1/applications/{application.id}/reviews", json={"status": "approved"})

    assert response.status_code == 403
