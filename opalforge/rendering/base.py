from abc import ABC, abstractmethod
from datetime import date
from enum import Enum
from typing import Optional


class ConfidenceTier(str, Enum):
    PASS = "pass"
    CAUTION = "caution"
    FAIL = "fail"


PASS_THRESHOLD = 85.0
CAUTION_THRESHOLD = 50.0

# Band colours shared by both rendering strategies
TIER_COLORS = {
    ConfidenceTier.PASS: "#1B8A3A",
    ConfidenceTier.CAUTION: "#D98E04",
    ConfidenceTier.FAIL: "#C0392B",
}

TIER_LABELS = {
    ConfidenceTier.PASS: "VERIFIED AUTHENTIC",
    ConfidenceTier.CAUTION: "REVIEW RECOMMENDED",
    ConfidenceTier.FAIL: "NOT VERIFIED",
}


def confidence_tier(confidence: float) -> ConfidenceTier:
    """Boundary values belong to the higher band."""
    if confidence >= PASS_THRESHOLD:
        return ConfidenceTier.PASS
    if confidence >= CAUTION_THRESHOLD:
        return ConfidenceTier.CAUTION
    return ConfidenceTier.FAIL


def format_score(confidence: float) -> str:
    return f"{confidence:.1f}%"


def format_issue_date(day: Optional[date] = None) -> str:
    day = day or date.today()
    return f"{day:%B} {day.day}, {day.year}"


class CertificateRenderer(ABC):
    """A PDF rendering strategy for certificates.

    Strategies are independent boundary contracts: each owns its download filename and
    decides whether its output may be cached.
    """

    name: str
    cache_output: bool = False

    @abstractmethod
    def filename(self, cert_id: str) -> str:
        ...

    @abstractmethod
    async def render(self, cert_id: str, qr_payload: str, confidence: float) -> bytes:
        """Renders the certificate and returns the raw PDF bytes."""
        ...
