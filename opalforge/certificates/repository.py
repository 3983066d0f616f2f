"""
Two-tier certificate repository.

Reads go to the cache first and fall back to the durable store, writing the store's
answer back into the cache. Writes go to the store first; the cache is only populated
once the row is durable. Cache failures never fail an operation: on read they count as a
miss, on write they are logged and dropped.
"""

from typing import Any, Dict, Optional
from urllib.parse import quote

from redis import RedisError

from opalforge.certificates.cache import CertificateCache, certificate_key
from opalforge.certificates.crud import CertificateStore
from opalforge.certificates.schemas import CertificateCreate, utc_now_iso
from opalforge.config import settings
from opalforge.exceptions import NotFoundError
from opalforge.logging import get_logger

logger = get_logger(__name__)

PROJECTION_FIELDS = frozenset({"certId", "confidence", "timestamp", "qrPayload", "status"})


def verification_url(cert_id: str) -> str:
    """Canonical public verification URL for a certificate."""
    return f"{settings.verify_base_url.rstrip('/')}/{quote(cert_id, safe='')}"


class CertificateRepository:
    def __init__(self, store: CertificateStore, cache: CertificateCache, ttl: Optional[int] = None):
        self.store = store
        self.cache = cache
        self.ttl = ttl if ttl is not None else settings.certificate_cache_ttl

    def create(self, data: CertificateCreate) -> Dict[str, Any]:
        """
        Persists a new certificate and warms the cache with its projection.

        Raises:
            ConflictError: If the certId is already taken.
            DependencyError: If the durable store fails.
        """
        record = self.store.insert(
            cert_id=data.cert_id,
            confidence=data.confidence,
            timestamp=data.timestamp or utc_now_iso(),
            qr_payload=data.qr_payload or verification_url(data.cert_id),
        )
        certificate = record.to_dict()
        logger.info(f"Certificate {record.cert_id} stored with confidence {record.confidence}")
        self._write_back(certificate)
        return certificate

    def verify(self, cert_id: str) -> Dict[str, Any]:
        """
        Returns the certificate for `cert_id`, from the cache when warm.

        Raises:
            NotFoundError: If the certificate is in neither tier.
            DependencyError: If the durable store fails.
        """
        certificate = self.find(cert_id)
        if certificate is None:
            raise NotFoundError(f"Certificate '{cert_id}' not found.")
        return certificate

    def exists(self, cert_id: str) -> bool:
        return self.find(cert_id) is not None

    def find(self, cert_id: str) -> Optional[Dict[str, Any]]:
        cached = self._read_cache(cert_id)
        if cached is not None:
            return cached

        record = self.store.get(cert_id)
        if record is None:
            return None

        certificate = record.to_dict()
        self._write_back(certificate)
        return certificate

    def _read_cache(self, cert_id: str) -> Optional[Dict[str, Any]]:
        try:
            cached = self.cache.get_json(certificate_key(cert_id))
        except (RedisError, ValueError) as e:
            logger.warning(f"Cache read failed for certificate {cert_id}, falling back to store: {e}")
            return None
        if cached is not None and not (isinstance(cached, dict) and PROJECTION_FIELDS <= cached.keys()):
            logger.warning(f"Ignoring malformed cache entry for certificate {cert_id}")
            return None
        return cached

    def _write_back(self, certificate: Dict[str, Any]) -> None:
        cert_id = certificate["certId"]
        try:
            self.cache.set_json(certificate_key(cert_id), certificate, self.ttl)
        except RedisError as e:
            logger.warning(f"Cache write failed for certificate {cert_id}: {e}")
