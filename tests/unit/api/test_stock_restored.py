"""Unit tests for the Shopify Flow stock-restored webhook."""

import pytest
from fastapi.testclient import TestClient

SHOP_ID = "66638577877"

URL = "/api/v1/stock-restored"


def _payload(**overrides) -> dict:
    payload = {
        "shopId": f"gid://shopify/Shop/{SHOP_ID}",
        "variantId": "gid://shopify/ProductVariant/V1",
        "inventoryQuantity": 2,
        "previousInventoryQuantity": 0,
    }
    payload.update(overrides)
    return payload


def test_health_get(client: TestClient) -> None:
    response = client.get(URL)
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_bad_secret_rejected_before_body(client: TestClient) -> None:
    response = client.post(URL, content=b"not json", headers={"X-Flow-Secret": "wrong"})
    assert response.status_code == 401
    assert response.json() == {"ok": False, "error": "Unauthorized"}


def test_invalid_json(client: TestClient, flow_headers: dict) -> None:
    response = client.post(URL, content=b"{nope", headers=flow_headers)
    assert response.status_code == 400
    assert response.json()["error"] == "Invalid JSON"


def test_missing_shop_id(client: TestClient, flow_headers: dict) -> None:
    response = client.post(URL, json=_payload(shopId=None), headers=flow_headers)
    assert response.status_code == 400
    assert response.json()["error"] == "Missing shopId"


def test_missing_variant_id(client: TestClient, flow_headers: dict) -> None:
    response = client.post(URL, json=_payload(variantId=""), headers=flow_headers)
    assert response.status_code == 400
    assert response.json()["error"] == "Missing variantId"


@pytest.mark.parametrize("field", ["shopId", "variantId"])
@pytest.mark.parametrize("value", [{"id": 1}, ["gid://shopify/Shop/1"]])
def test_non_scalar_id_names_the_field(client: TestClient, flow_headers: dict, field: str, value) -> None:
    response = client.post(URL, json=_payload(**{field: value}), headers=flow_headers)
    assert response.status_code == 400
    assert response.json()["error"] == f"{field} must be a string or number"


def test_quantities_must_be_numbers(client: TestClient, flow_headers: dict) -> None:
    response = client.post(URL, json=_payload(inventoryQuantity="3"), headers=flow_headers)
    assert response.status_code == 400
    assert response.json()["error"] == "inventoryQuantity and previousInventoryQuantity must be numbers"


def test_threshold_not_crossed(client: TestClient, flow_headers: dict) -> None:
    response = client.post(
        URL, json=_payload(previousInventoryQuantity=2, inventoryQuantity=5), headers=flow_headers
    )
    assert response.status_code == 200
    assert response.json() == {"ok": True, "skipped": True, "reason": "Inventory threshold not crossed"}


def test_unknown_shop(client: TestClient, flow_headers: dict) -> None:
    response = client.post(URL, json=_payload(shopId="gid://shopify/Shop/1"), headers=flow_headers)
    assert response.status_code == 500
    body = response.json()
    assert body["error"] == "Unknown or misconfigured shopId"
    assert body["shopIdNormalized"] == "1"


def test_variant_not_found(client: TestClient, flow_headers: dict) -> None:
    response = client.post(URL, json=_payload(), headers=flow_headers)
    assert response.status_code == 404
    assert response.json() == {"ok": False, "error": "Variant not found"}


def test_no_subscribers(client: TestClient, flow_headers: dict, fake_shopify) -> None:
    fake_shopify.add_variant("V1")
    response = client.post(URL, json=_payload(), headers=flow_headers)
    assert response.json() == {"ok": True, "skipped": True, "reason": "No subscribed companies"}


def test_sent(client: TestClient, flow_headers: dict, fake_shopify, fake_dispatcher) -> None:
    fake_shopify.add_variant("V1", subscribers=["C9"], product_id="gid://shopify/Product/555")
    fake_shopify.add_company("C9", "Acme", "a@acme.com")

    response = client.post(URL, json=_payload(), headers=flow_headers)

    assert response.status_code == 200
    body = response.json()
    assert body["ok"] is True
    assert body["sent"] == 1
    assert body["product_id"] == 555
    assert body["shopIdNormalized"] == SHOP_ID
    assert body["shopIdRaw"] == f"gid://shopify/Shop/{SHOP_ID}"
    assert body["ocResponse"] == {"secret_valid": True}
    assert fake_dispatcher.calls[0]["subscribers"] == ["a@acme.com"]
    assert fake_shopify.subscribers("V1") == []


def test_dispatch_failure_is_502(client: TestClient, flow_headers: dict, fake_shopify, fake_dispatcher) -> None:
    fake_shopify.add_variant("V1", subscribers=["C9"])
    fake_shopify.add_company("C9", "Acme", "a@acme.com")
    fake_dispatcher.status_code = 500

    response = client.post(URL, json=_payload(), headers=flow_headers)

    assert response.status_code == 502
    body = response.json()
    assert body["ok"] is False
    assert body["status"] == 500
    assert body["ocResponse"] == {"secret_valid": True}
    assert fake_shopify.subscribers("V1") == ["C9"]


def test_admin_failure_is_500(client: TestClient, flow_headers: dict, fake_shopify) -> None:
    fake_shopify.add_variant("V1", subscribers=["C9"])
    fake_shopify.fail_reads = True

    response = client.post(URL, json=_payload(), headers=flow_headers)

    assert response.status_code == 500
    assert response.json()["error"] == "Error loading variant via Admin API"
