"""
MeetingRequest model.

Created when a visitor books time with the owner of a public CV.
"""

from sqlalchemy import Column, String, Integer, Text

from cvplus_payments.models.base import Base, JSONType, TimestampMixin, generate_uuid


class MeetingStatus:
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class MeetingRequest(Base, TimestampMixin):

    __tablename__ = "meetings"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    job_id = Column(String(64), nullable=False, index=True)
    attendee_email = Column(String(320), nullable=False)
    attendee_name = Column(String(255), nullable=True)
    professional_name = Column(String(255), nullable=False)
    professional_email = Column(String(320), nullable=False)
    duration = Column(Integer, nullable=False, comment="Minutes")
    meeting_type = Column(String(64), nullable=True)
    status = Column(String(32), nullable=False, default=MeetingStatus.PENDING)
    calendar_url = Column(Text, nullable=True)
    meeting_details = Column(JSONType, nullable=True)
    requested_via = Column(String(64), nullable=True)

    def __repr__(self) -> str:
        return f"<MeetingRequest(id={self.id}, job_id={self.job_id}, status={self.status})>"
