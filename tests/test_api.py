import pytest
from fastapi.testclient import TestClient

from quote_api.core.config import settings
from quote_api.core.exceptions import UpstreamFailure
from quote_api.deps import get_quote_service
from quote_api.domain.services import QuoteService
from quote_api.main import app


BODY = {
    "userPrompt": "Quote 2 laptops for jane@acme.com",
    "products": [{"productCode": "LAPTOP13", "unitPrice": 1300}],
}

HEADERS = {"X-Org-Id": "00D000000000001", "X-Session-Id": "sess-api"}


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def use_generator(tokenizer, validator):
    def _install(generator):
        app.dependency_overrides[get_quote_service] = lambda: QuoteService(
            tokenizer, validator, generator
        )
        return generator

    return _install


def test_health(client):
    resp = client.get("/api/health")

    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "ok"
    assert body["version"] == settings.APP_VERSION
    assert "timestamp" in body


def test_generate_returns_audited_quote(client, use_generator, fake_generator):
    gen = use_generator(fake_generator({
        "quote_lines": [{
            "product_code": "LAPTOP13", "quantity": 2, "list_price": 1300,
            "unit_price": 1000, "discount_percent": 20, "total_price": 2000,
        }],
        "quote_summary": {"subtotal": 2600, "total_discount": 600, "net_total": 2000},
        "approval": {"required": False, "chain": "", "reason": ""},
        "warnings": ["Please confirm with EMAIL_0"],
    }))

    resp = client.post("/api/quote/generate", json=BODY, headers=HEADERS)

    assert resp.status_code == 200
    data = resp.json()
    assert data["success"] is True
    assert data["session_id"] == "sess-api"
    assert data["quote_lines"][0]["unit_price"] == 1040.0
    assert data["quote_lines"][0]["total_price"] == 2080.0
    assert data["quote_summary"] == {"subtotal": 2600.0, "total_discount": 520.0, "net_total": 2080.0}
    assert data["warnings"][0] == "Please confirm with jane@acme.com"
    assert len(data["warnings"]) == 4
    assert gen.requests[0].user_prompt == "Quote 2 laptops for EMAIL_0"
    assert resp.headers.get("X-Request-Id")


def test_generate_with_default_mock_backend(client):
    resp = client.post("/api/quote/generate", json=BODY, headers={"X-Org-Id": "00D000000000001"})

    assert resp.status_code == 200
    data = resp.json()
    assert data["quote_lines"][0]["product_code"] == "LAPTOP13"
    assert data["session_id"]
    assert data["warnings"][0].startswith("MOCK MODE")


def test_missing_org_header_is_rejected(client):
    resp = client.post("/api/quote/generate", json=BODY)

    assert resp.status_code == 401


def test_org_outside_allowlist_is_rejected(client, monkeypatch):
    monkeypatch.setattr(settings, "ALLOWED_ORG_IDS", ["00D000000000002"])

    resp = client.post("/api/quote/generate", json=BODY, headers=HEADERS)

    assert resp.status_code == 403


@pytest.mark.parametrize(
    "body",
    [
        {},
        {"userPrompt": "hi"},
        {"userPrompt": "x" * 2001},
        {"userPrompt": "Quote laptops", "products": [{"productCode": "A"}]},
    ],
)
def test_invalid_body_is_rejected(client, body):
    resp = client.post("/api/quote/generate", json=body, headers=HEADERS)

    assert resp.status_code == 422


def test_upstream_failure_maps_to_502(client, use_generator, fake_generator):
    use_generator(fake_generator(error=UpstreamFailure("LLM call failed: timeout")))

    resp = client.post("/api/quote/generate", json=BODY, headers=HEADERS)

    assert resp.status_code == 502
    data = resp.json()
    assert data["success"] is False
    assert data["error"] == "upstream_failure"
    assert data["request_id"]


def test_non_record_candidate_maps_to_502(client, use_generator, fake_generator):
    use_generator(fake_generator("just text"))

    resp = client.post("/api/quote/generate", json=BODY, headers=HEADERS)

    assert resp.status_code == 502
    assert resp.json()["error"] == "input_shape"


def test_numeric_product_code_is_returned_as_text(client, use_generator, fake_generator):
    use_generator(fake_generator({
        "quote_lines": [{
            "product_code": 12345, "quantity": 1, "list_price": 50,
            "unit_price": 50, "discount_percent": 0, "total_price": 50,
        }],
        "quote_summary": {"subtotal": 50, "total_discount": 0, "net_total": 50},
    }))

    resp = client.post("/api/quote/generate", json=BODY, headers=HEADERS)

    assert resp.status_code == 200
    data = resp.json()
    assert data["quote_lines"][0]["product_code"] == "12345"
    assert data["warnings"] == []


def test_container_product_code_drops_the_line(client, use_generator, fake_generator):
    use_generator(fake_generator({
        "quote_lines": [{"product_code": {"sku": "X"}, "quantity": 1, "list_price": 50}],
    }))

    resp = client.post("/api/quote/generate", json=BODY, headers=HEADERS)

    assert resp.status_code == 200
    data = resp.json()
    assert data["quote_lines"] == []
    assert data["warnings"] == ["Line 1 has a non-scalar product_code; line skipped"]


@pytest.mark.parametrize("approval", ["none", ["Sales Manager"], True, None])
def test_approval_of_any_shape_is_passed_through(client, use_generator, fake_generator, approval):
    use_generator(fake_generator({"quote_lines": [], "approval": approval}))

    resp = client.post("/api/quote/generate", json=BODY, headers=HEADERS)

    assert resp.status_code == 200
    assert resp.json()["approval"] == approval
