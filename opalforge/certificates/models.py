from sqlalchemy import Column, Float, Index, Integer, String, Text, text

from opalforge.certificates.database import Base

STATUS_ACTIVE = "active"
STATUS_REVOKED = "revoked"


class CertificateRecord(Base):
    __tablename__ = "certificates"

    id = Column(Integer, primary_key=True, autoincrement=True)
    cert_id = Column(String, unique=True, nullable=False)
    confidence = Column(Float, nullable=False)
    timestamp = Column(Text, nullable=False)
    qr_payload = Column(Text, nullable=True)
    status = Column(Text, nullable=False, default=STATUS_ACTIVE, server_default=STATUS_ACTIVE)

    created_at = Column(Text, nullable=False, server_default=text("CURRENT_TIMESTAMP"))
    updated_at = Column(Text, nullable=False, server_default=text("CURRENT_TIMESTAMP"))

    __table_args__ = (
        Index("idx_cert_id", "cert_id"),
        Index("idx_status", "status"),
        Index("idx_timestamp", "timestamp"),
    )

    def to_dict(self) -> dict:
        """JSON projection served by verify and stored in the cache."""
        return {
            "certId": self.cert_id,
            "confidence": self.confidence,
            "timestamp": self.timestamp,
            "qrPayload": self.qr_payload,
            "status": self.status,
        }

    def __repr__(self):
        return f"<CertificateRecord(cert_id='{self.cert_id}', status='{self.status}')>"
