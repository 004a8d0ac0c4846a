from urllib.parse import parse_qs, urlsplit

import pytest
from fastapi.testclient import TestClient

from loanportal.main import app
from loanportal.services.storage import signing
from loanportal.services.storage.store import get_document_store


def _signed_query(object_key: str, expires_in: int = 300) -> dict:
    url = get_document_store().download_url(object_key, expires_in)
    return {key: values[0] for key, values in parse_qs(urlsplit(url).query).items()}


def test_signed_url_serves_file(upload_dir) -> None:
    target = upload_dir / "applications" / "abc" / "documents"
    target.mkdir(parents=True)
    (target / "offer.pdf").write_bytes(b"%PDF-1.4 offer letter")

    response = TestClient(app).get(
        "/api/v1/files/local-content", params=_signed_query("applications/abc/documents/offer.pdf")
    )

    assert response.status_code == 200
    assert response.content == b"%PDF-1.4 offer letter"
    assert response.headers["content-type"].startswith("application/pdf")


def test_tampered_signature_is_rejected(upload_dir) -> None:
    params = _signed_query("applications/abc/documents/offer.pdf")
    params["key"] = "applications/other/documents/offer.pdf"

    response = TestClient(app).get("/api/v1/files/local-content", params=params)

    assert response.status_code == 403


def test_expired_link_is_rejected(upload_dir) -> None:
    params = _signed_query("applications/abc/documents/offer.pdf", expires_in=-10)

    response = TestClient(app).get("/api/v1/files/local-content", params=params)

    assert response.status_code == 403


def test_missing_file_returns_404(upload_dir) -> None:
    response = TestClient(app).get(
        "/api/v1/files/local-content", params=_signed_query("applications/abc/documents/gone.pdf")
    )

    assert response.status_code == 404


def test_link_signature_is_bound_to_key_and_expiry() -> None:
    query = signing.signed_query("secret", "applications/a/documents/x.pdf", 60, now=1_000)

    assert query["expires"] == 1_060
    assert signing.link_is_valid("secret", query["key"], 1_060, query["signature"], now=1_000)
    assert not signing.link_is_valid("secret", query["key"], 1_061, query["signature"], now=1_000)
    assert not signing.link_is_valid("secret", query["key"], 1_060, query["signature"], now=1_061)
    assert not signing.link_is_valid("other", query["key"], 1_060, query["signature"], now=1_000)


def test_storage_keys_cannot_escape_upload_root(upload_dir) -> None:
    store = get_document_store()

    for key in ("../secrets.txt", "/etc/passwd", "applications\\..\\x"):
        with pytest.raises(ValueError):
            store.path_for(key)
