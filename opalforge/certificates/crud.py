from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from opalforge.exceptions import ConflictError, DependencyError
from opalforge.logging import get_logger
from . import models as db_models

logger = get_logger(__name__)

# Markers used by SQLite, PostgreSQL and MySQL drivers to report unique-key violations
_UNIQUE_VIOLATION_MARKERS = ("unique", "duplicate")
_UNIQUE_VIOLATION_SQLSTATE = "23505"


def is_unique_violation(exc: IntegrityError) -> bool:
    """Tells a unique-key violation apart from other integrity failures (NOT NULL, FK...)."""
    if getattr(exc.orig, "pgcode", None) == _UNIQUE_VIOLATION_SQLSTATE:
        return True
    message = str(exc.orig).lower()
    return any(marker in message for marker in _UNIQUE_VIOLATION_MARKERS)


class CertificateStore:
    """Durable certificate store backed by a SQLAlchemy session."""

    def __init__(self, db: Session):
        self.db = db

    def get(self, cert_id: str) -> Optional[db_models.CertificateRecord]:
        """Retrieves a certificate row by its certId."""
        try:
            return (
                self.db.query(db_models.CertificateRecord)
                .filter(db_models.CertificateRecord.cert_id == cert_id)
                .first()
            )
        except SQLAlchemyError as e:
            logger.error(f"Store lookup failed for certificate {cert_id}: {e}")
            raise DependencyError(f"Certificate store unavailable: {type(e).__name__}") from e

    def insert(
        self,
        cert_id: str,
        confidence: float,
        timestamp: str,
        qr_payload: Optional[str],
    ) -> db_models.CertificateRecord:
        """
        Inserts a new active certificate row.

        Raises:
            ConflictError: If a row with the same certId already exists.
            DependencyError: If the store rejects the write for any other reason.
        """
        db_cert = db_models.CertificateRecord(
            cert_id=cert_id,
            confidence=confidence,
            timestamp=timestamp,
            qr_payload=qr_payload,
            status=db_models.STATUS_ACTIVE,
        )
        try:
            self.db.add(db_cert)
            self.db.commit()
            self.db.refresh(db_cert)
        except IntegrityError as e:
            self.db.rollback()
            if is_unique_violation(e):
                raise ConflictError(f"Certificate with ID '{cert_id}' already exists.") from e
            logger.error(f"Store rejected certificate {cert_id}: {e}")
            raise DependencyError(f"Certificate store rejected the write: {type(e).__name__}") from e
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Store write failed for certificate {cert_id}: {e}")
            raise DependencyError(f"Certificate store unavailable: {type(e).__name__}") from e

        return db_cert
