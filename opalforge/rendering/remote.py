"""
Remote HTML rendering of certificates.

The certificate is rendered to HTML locally and converted to PDF by an external
HTML-to-PDF API. Failures of that API are reported with its status code and body verbatim.
"""

from datetime import date
from typing import Optional

import httpx
from starlette.concurrency import run_in_threadpool

from opalforge.config import settings
from opalforge.exceptions import DependencyError
from opalforge.logging import get_logger
from opalforge.rendering import qr
from opalforge.rendering.base import (
    TIER_COLORS,
    TIER_LABELS,
    CertificateRenderer,
    confidence_tier,
    format_issue_date,
    format_score,
)
from opalforge.rendering.templates import CERTIFICATE_TEMPLATE

logger = get_logger(__name__)


def render_certificate_html(
    cert_id: str,
    qr_data_uri: str,
    confidence: float,
    issued_on: Optional[date] = None,
) -> str:
    tier = confidence_tier(confidence)
    return CERTIFICATE_TEMPLATE.render(
        cert_id=cert_id,
        score=format_score(confidence),
        tier=tier.value,
        tier_color=TIER_COLORS[tier],
        tier_label=TIER_LABELS[tier],
        issued=format_issue_date(issued_on),
        qr_data_uri=qr_data_uri,
    )


class RemoteRenderer(CertificateRenderer):
    """Converts the HTML certificate through an external API. Output may be cached."""

    name = "remote"
    cache_output = True

    def __init__(
        self,
        api_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_url = api_url or settings.remote_render_url
        self.api_key = api_key if api_key is not None else settings.remote_render_api_key
        self.timeout = timeout or settings.remote_render_timeout
        self._transport = transport

    def filename(self, cert_id: str) -> str:
        return f"OpalForge_Cert_{cert_id}.pdf"

    async def render(self, cert_id: str, qr_payload: str, confidence: float) -> bytes:
        qr_data_uri = await run_in_threadpool(qr.encode_data_uri, qr_payload)
        html = render_certificate_html(cert_id, qr_data_uri, confidence)

        headers = {"Accept": "application/pdf"}
        if self.api_key:
            headers["X-API-Key"] = self.api_key
        payload = {"source": html, "landscape": True, "format": "A4", "margin": "0"}

        logger.info(f"Submitting certificate {cert_id} to remote renderer at {self.api_url}")
        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=self.timeout) as client:
                response = await client.post(self.api_url, json=payload, headers=headers)
        except httpx.RequestError as e:
            logger.error(f"Request error contacting remote renderer for {cert_id}: {e}")
            raise DependencyError(f"Could not reach the remote rendering service: {type(e).__name__}") from e

        if not response.is_success:
            logger.error(
                f"Remote renderer returned {response.status_code} for {cert_id}: {response.text}"
            )
            raise DependencyError(
                f"Remote rendering failed with status {response.status_code}.",
                upstream_status=response.status_code,
                upstream_body=response.text,
            )
        return response.content
