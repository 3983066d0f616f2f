from typing import Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, Query, Response, status
from redis import RedisError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from opalforge.certificates import schemas
from opalforge.certificates.cache import CertificateCache, get_cache, pdf_key
from opalforge.certificates.crud import CertificateStore
from opalforge.certificates.database import get_db
from opalforge.certificates.repository import CertificateRepository, verification_url
from opalforge.config import settings
from opalforge.exceptions import NotFoundError
from opalforge.logging import get_logger
from opalforge.rendering import qr
from opalforge.rendering.base import CertificateRenderer
from opalforge.rendering.strategies import get_renderer

logger = get_logger(__name__)

router = APIRouter(
    tags=["Certificates"],
)


def get_repository(
    db: Session = Depends(get_db),
    cache: CertificateCache = Depends(get_cache),
) -> CertificateRepository:
    return CertificateRepository(CertificateStore(db), cache)


@router.post(
    "/certificate",
    response_model=schemas.CertificateCreateResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_certificate(
    request: schemas.CertificateCreate,
    repository: CertificateRepository = Depends(get_repository),
):
    """
    Issues a new certificate.

    - **certId**: Unique certificate identifier (required).
    - **confidence**: Authentication confidence in percent (required).
    - **timestamp**: ISO 8601 issuance time. Defaults to now.
    - **qrPayload**: Data encoded into the QR code. Defaults to the verification URL.
    """
    certificate = repository.create(request)
    return schemas.CertificateCreateResponse(
        success=True,
        cert_id=certificate["certId"],
        message="Certificate created successfully.",
    )

@router.get("/certificate/{cert_id}", response_model=schemas.Certificate, response_model_by_alias=True)
def verify_certificate(
    cert_id: str,
    repository: CertificateRepository = Depends(get_repository),
):
    """Returns the certificate stored under `cert_id`."""
    return repository.verify(cert_id)

@router.head("/certificate/{cert_id}")
def certificate_exists(
    cert_id: str,
    repository: CertificateRepository = Depends(get_repository),
):
    """Existence check: 200 if the certificate exists, 404 otherwise, never a body."""
    if repository.exists(cert_id):
        return Response(status_code=status.HTTP_200_OK)
    return Response(status_code=status.HTTP_404_NOT_FOUND)

@router.get("/certificate/{cert_id}/pdf")
async def render_certificate(
    cert_id: str,
    qr_data: Optional[str] = Query(default=None, alias="qrData"),
    confidence: Optional[float] = Query(default=None, allow_inf_nan=False),
    repository: CertificateRepository = Depends(get_repository),
    renderer: CertificateRenderer = Depends(get_renderer),
):
    """
    Renders the certificate as a PDF download.

    Query parameters override the stored values. Without a `confidence` parameter the
    certificate must exist; its confidence is never defaulted.
    """
    use_cached_pdf = renderer.cache_output and qr_data is None and confidence is None
    if use_cached_pdf:
        cached_pdf = await run_in_threadpool(_read_cached_pdf, repository.cache, cert_id)
        if cached_pdf is not None:
            return _pdf_response(cached_pdf, renderer.filename(cert_id))

    stored = None
    if qr_data is None or confidence is None:
        stored = await run_in_threadpool(repository.find, cert_id)
    if confidence is None:
        if stored is None:
            raise NotFoundError(f"Certificate '{cert_id}' not found and no confidence was supplied.")
        confidence = stored["confidence"]
    qr_payload = qr_data or (stored or {}).get("qrPayload") or verification_url(cert_id)

    logger.info(f"Generating certificate {cert_id} with {renderer.name} renderer | QR payload: {qr_payload}")
    pdf = await renderer.render(cert_id, qr_payload, confidence)

    if use_cached_pdf:
        await run_in_threadpool(_write_cached_pdf, repository.cache, cert_id, pdf)
    return _pdf_response(pdf, renderer.filename(cert_id))

@router.get("/qr/{cert_id}")
async def certificate_qr(cert_id: str):
    """Returns a PNG QR code pointing at the certificate's verification URL."""
    png = await run_in_threadpool(qr.encode_png, verification_url(cert_id))
    return Response(
        content=png,
        media_type="image/png",
        headers={"Cache-Control": f"public, max-age={settings.qr_cache_max_age}"},
    )


def content_disposition(filename: str) -> str:
    """Attachment header with an ASCII fallback name and the exact UTF-8 name (RFC 6266 / RFC 5987)."""
    fallback = "".join(
        char if char.isascii() and char.isprintable() and char not in "\"\\" else "_" for char in filename
    )
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename, safe='')}"

def _pdf_response(pdf: bytes, filename: str) -> Response:
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": content_disposition(filename)},
    )

def _read_cached_pdf(cache: CertificateCache, cert_id: str) -> Optional[bytes]:
    try:
        return cache.get_bytes(pdf_key(cert_id))
    except RedisError as e:
        logger.warning(f"Cache read failed for rendered PDF {cert_id}: {e}")
        return None

def _write_cached_pdf(cache: CertificateCache, cert_id: str, pdf: bytes) -> None:
    try:
        cache.set_bytes(pdf_key(cert_id), pdf, settings.pdf_cache_ttl)
    except RedisError as e:
        logger.warning(f"Cache write failed for rendered PDF {cert_id}: {e}")
