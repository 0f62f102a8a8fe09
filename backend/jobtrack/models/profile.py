"""
Profile model holding the uploaded resume and its parsed extract
"""
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, JSON
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from ..database import Base


class CandidateProfile(Base):
    """Main profile linked to User, populated from resume parsing"""
    __tablename__ = "candidate_profiles"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), unique=True, nullable=False)

    # Resume info
    resume_url = Column(String(500), nullable=True)
    resume_filename = Column(String(255), nullable=True)

    # Parsed extract (written only by the background parser)
    parsed_resume_data = Column(JSON, nullable=True)
    resume_parsed_at = Column(DateTime(timezone=True), nullable=True)
    resume_parsing_error = Column(Text, nullable=True)
    skills = Column(JSON, nullable=True)  # denormalized copy of parsed_resume_data["skills"]

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    user = relationship("User", back_populates="profile")
