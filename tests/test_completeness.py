from conftest import FakeResult, entity_handler, make_application, make_document, make_user
from loanportal.models import LoanApplication
from loanportal.services.completeness import (
    application_completeness,
    compute_completeness,
    required_documents_for,
)


def test_no_required_documents_is_complete() -> None:
    result = compute_completeness([], ["aadhar_card"])
    assert result.percentage == 100.0
    assert result.missing == []


def test_percentage_is_rounded_to_one_decimal() -> None:
    result = compute_completeness(["a", "b", "c"], ["a"])
    assert result.percentage == 33.3
    assert result.submitted == ["a"]
    assert result.missing == ["b", "c"]


def test_extra_and_duplicate_documents_do_not_exceed_full() -> None:
    result = compute_completeness(["a", "a", "b"], ["a", "b", "b", "z"])
    assert result.required == ["a", "b"]
    assert result.percentage == 100.0


def test_education_requires_five_documents() -> None:
    assert len(required_documents_for("education")) == 5
    assert required_documents_for("unknown") == []


def test_deleted_documents_do_not_count() -> None:
    application = make_application()
    make_document(application, "aadhar_card")
    make_document(application, "pan_card", is_deleted=True)

    result = application_completeness(application)

    assert result.submitted == ["aadhar_card"]
    assert "pan_card" in result.missing
    assert result.percentage == 20.0


def test_completeness_route_for_owner(fake_db, act_as) -> None:
    owner = make_user()
    application = make_application(applicant=owner)
    for document_type in ("aadhar_card", "pan_card"):
        make_document(application, document_type)
    fake_db.on_execute(entity_handler(LoanApplication, FakeResult(scalar=application)))

    response = act_as(owner).get(f"/api/v1/applications/{application.id}/completeness")

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["percentage"] == 40.0
    assert data["missing"] == ["income_certificate", "admission_letter", "bank_statement"]


def test_completeness_route_hidden_from_other_users(fake_db, act_as) -> None:
    application = make_application(applicant=make_user())
    fake_db.on_execute(entity_handler(LoanApplication, FakeResult(scalar=application)))

    response = act_as(make_user()).get(f"/api/v1/applications/{application.id}/completeness")

    assert response.status_code == 403
