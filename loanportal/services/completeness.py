from dataclasses import dataclass
from typing import Iterable

from loanportal.models.loan_application import LoanApplication


REQUIRED_DOCUMENTS: dict[str, tuple[str, ...]] = {
    "education": (
        "aadhar_card",
        "pan_card",
        "income_certificate",
        "admission_letter",
        "bank_statement",
    ),
}


@dataclass(frozen=True)
class Completeness:
    required: list[str]
    submitted: list[str]
    missing: list[str]
    percentage: float


def required_documents_for(loan_type: str) -> list[str]:
    return list(REQUIRED_DOCUMENTS.get(loan_type, ()))


def compute_completeness(required: Iterable[str], submitted_types: Iterable[str]) -> Completeness:
    required_list = list(dict.fromkeys(required))
    present = set(submitted_types)
    submitted = [doc for doc in required_list if doc in present]
    missing = [doc for doc in required_list if doc not in present]
    if not required_list:
        percentage = 100.0
    else:
        percentage = min(100.0, max(0.0, len(submitted) / len(required_list) * 100))
    return Completeness(
        required=required_list,
        submitted=submitted,
        missing=missing,
        percentage=round(percentage, 1),
    )


def application_completeness(application: LoanApplication) -> Completeness:
    required = application.required_documents or required_documents_for(application.loan_type)
    return compute_completeness(required, (doc.document_type for doc in application.active_documents))
