"""CV processing job (read-only from this service)."""

from sqlalchemy import Column, String

from cvplus_payments.models.base import Base, JSONType, TimestampMixin


class CvJob(Base, TimestampMixin):

    __tablename__ = "cv_jobs"

    id = Column(String(64), primary_key=True)
    user_id = Column(String(128), nullable=False, index=True)
    parsed_data = Column(JSONType, nullable=True, comment="Parsed CV content")

    def __repr__(self) -> str:
        return f"<CvJob(id={self.id}, user_id={self.user_id})>"
