"""
Resume parsing API schemas
"""
from typing import Any, Dict, List, Optional
from pydantic import BaseModel
from datetime import datetime


class TriggerParsingResponse(BaseModel):
    success: bool = True
    job_id: str


class JobStatusResponse(BaseModel):
    success: bool = True
    job_id: str
    status: str  # pending, processing, completed, failed
    error: Optional[str] = None


class LatestJobStatusResponse(BaseModel):
    success: bool = True
    job_id: Optional[str] = None
    status: str  # pending, processing, completed, failed, or none
    error: Optional[str] = None
    can_retry: bool = False
    message: Optional[str] = None


class UploadResumeResponse(BaseModel):
    success: bool = True
    url: str
    file_name: str
    # Parsing starts right after the upload; a trigger failure doesn't undo the upload
    job_id: Optional[str] = None
    parsing_error: Optional[str] = None


class ParsedResumeResponse(BaseModel):
    resume_url: Optional[str] = None
    resume_filename: Optional[str] = None
    parsed_resume_data: Optional[Dict[str, Any]] = None
    skills: List[str] = []
    resume_parsed_at: Optional[datetime] = None
    resume_parsing_error: Optional[str] = None

    class Config:
        from_attributes = True


class MessageResponse(BaseModel):
    message: str
    success: bool = True


class ErrorResponse(BaseModel):
    success: bool = False
    error: str
    detail: str
