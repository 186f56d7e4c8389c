# restock/models/verification_code.py
from sqlalchemy import Column, Integer, String, DateTime
from datetime import datetime, timezone
from restock.db.base import Base


class VerificationCode(Base):
    """Side-channel password reset code, one active record per email."""
    __tablename__ = "verification_codes"

    id = Column(Integer, primary_key=True)
    email = Column(String(255), index=True, nullable=False)
    code_hash = Column(String(64), nullable=False)  # sha256 of the numeric code
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    attempts = Column(Integer, default=0, nullable=False)  # wrong codes submitted against this record

    def __repr__(self):
        return f"<VerificationCode email={self.email} expires_at={self.expires_at}>"
