"""HTTP client for the AbacatePay billing API."""

from __future__ import annotations

from typing import Optional

import httpx
from loguru import logger
from pydantic import ValidationError

from storefront.core.config import settings
from storefront.core.errors import ExternalServiceError
from storefront.schemas.billing import AbacateBillingCreate, AbacateBillingData, AbacateBillingResponse

CREATE_BILLING_PATH = "/v1/billing/create"


async def create_billing(
    body: AbacateBillingCreate,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> AbacateBillingData:
    """Create a one-time PIX charge and return the provider's billing data.

    Every failure mode (transport, HTTP status, error field, unexpected body)
    surfaces as ``ExternalServiceError``.
    """

    url = settings.ABACATE_PAY_URL.rstrip("/") + CREATE_BILLING_PATH
    headers = {"Authorization": f"Bearer {settings.ABACATE_PAY_API_KEY}"}
    try:
        async with httpx.AsyncClient(
            timeout=settings.ABACATE_PAY_TIMEOUT_SEC, transport=transport
        ) as client:
            resp = await client.post(url, json=body.model_dump(by_alias=True), headers=headers)
    except httpx.HTTPError as exc:
        logger.bind(error=str(exc)).error("abacatepay_request_failed")
        raise ExternalServiceError(f"Payment provider unreachable: {exc}") from exc

    if resp.status_code >= 400:
        logger.bind(status=resp.status_code, body=resp.text[:500]).error("abacatepay_error_status")
        raise ExternalServiceError(
            f"Payment provider returned {resp.status_code}: {resp.text[:500]}"
        )

    try:
        parsed = AbacateBillingResponse.model_validate(resp.json())
    except (ValueError, ValidationError) as exc:
        logger.bind(error=str(exc)).error("abacatepay_unexpected_body")
        raise ExternalServiceError("Payment provider returned an unexpected response") from exc

    if parsed.error or parsed.data is None:
        logger.bind(error=str(parsed.error)).error("abacatepay_billing_rejected")
        raise ExternalServiceError(f"Payment provider error: {parsed.error or 'no data returned'}")

    return parsed.data
