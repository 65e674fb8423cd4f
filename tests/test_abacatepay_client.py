import json

import httpx
import pytest

from storefront.core.config import settings
from storefront.core.errors import ExternalServiceError
from storefront.schemas.billing import AbacateBillingCreate, AbacateCustomer, AbacateProduct
from storefront.services import abacatepay

pytestmark = pytest.mark.anyio


def _request() -> AbacateBillingCreate:
    return AbacateBillingCreate(
        products=[
            AbacateProduct(external_id="b-1", name="Plan PRO", description="Plan PRO", price=4900)
        ],
        return_url="http://localhost/billing",
        completion_url="http://localhost/billing",
        customer=AbacateCustomer(name="Ana", email="ana@example.com", tax_id="12345678901"),
        coupons=["RRFULLSTACKDEVS"],
    )


async def test_success_sends_camel_case_with_bearer(monkeypatch):
    monkeypatch.setattr(settings, "ABACATE_PAY_API_KEY", "abc_dev_key")
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(
            200,
            json={"data": {"id": "bill_9", "url": "https://pay.test/bill_9", "status": "PENDING"}, "error": None},
        )

    data = await abacatepay.create_billing(_request(), transport=httpx.MockTransport(handler))

    assert data.id == "bill_9"
    assert data.url == "https://pay.test/bill_9"
    assert seen["url"] == "https://api.abacatepay.com/v1/billing/create"
    assert seen["auth"] == "Bearer abc_dev_key"
    assert seen["body"]["returnUrl"] == "http://localhost/billing"
    assert seen["body"]["allowCoupons"] is True
    assert seen["body"]["products"][0]["externalId"] == "b-1"
    assert seen["body"]["customer"]["taxId"] == "12345678901"


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(500, text="internal"),
        httpx.Response(200, json={"data": None, "error": "invalid customer"}),
        httpx.Response(200, json={"error": None}),
        httpx.Response(200, text="<html>nope</html>"),
    ],
)
async def test_provider_errors_become_external_service_error(response):
    transport = httpx.MockTransport(lambda request: response)
    with pytest.raises(ExternalServiceError) as ctx:
        await abacatepay.create_billing(_request(), transport=transport)
    assert ctx.value.status_code == 502


async def test_transport_failure_becomes_external_service_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(ExternalServiceError) as ctx:
        await abacatepay.create_billing(_request(), transport=httpx.MockTransport(handler))
    assert "unreachable" in ctx.value.message
