"""
Resume Parser Service using Gemini for structured data extraction.
Takes plain resume text (already extracted from PDF/DOCX) and returns a
validated ParsedResume.
"""
import json
import logging
from typing import List, Optional

from google import genai
from pydantic import BaseModel, Field, ValidationError

from ..config import get_settings

logger = logging.getLogger(__name__)

# Lazy initialization of Gemini client
_genai_client = None


def get_genai_client():
    """Get the Gemini client, initializing lazily if needed."""
    global _genai_client
    if _genai_client is None:
        settings = get_settings()
        if not settings.gemini_api_key:
            logger.warning("GEMINI_API_KEY not set - resume parsing disabled")
            return None
        _genai_client = genai.Client(api_key=settings.gemini_api_key)
    return _genai_client


class ResumeParseError(Exception):
    """Raised when the AI service fails or returns unusable output."""


# ============================================================================
# Pydantic Schemas for Validated Output
# ============================================================================

class ExperienceEntry(BaseModel):
    company: str
    title: str
    start_date: Optional[str] = None  # YYYY-MM or YYYY
    end_date: Optional[str] = None  # None for current position
    description: Optional[str] = None


class EducationEntry(BaseModel):
    institution: str
    degree: Optional[str] = None
    field: Optional[str] = None
    graduation_date: Optional[str] = None


class ContactInfo(BaseModel):
    email: Optional[str] = None
    phone: Optional[str] = None
    linkedin: Optional[str] = None


class ParsedResume(BaseModel):
    """Complete parsed resume schema"""
    skills: List[str]
    experience: List[ExperienceEntry]
    education: List[EducationEntry]
    contact: Optional[ContactInfo] = None
    summary: Optional[str] = None


# ============================================================================
# Resume Parsing Prompt
# ============================================================================

RESUME_PARSER_PROMPT = """You are a resume parser. Extract structured information from the resume text provided.

Return ONLY valid JSON matching this exact schema:
{
  "skills": string[],
  "experience": [
    {
      "company": string,
      "title": string,
      "start_date": string,        // YYYY-MM or YYYY format
      "end_date": string | null,   // null if current position
      "description": string | null
    }
  ],
  "education": [
    {
      "institution": string,
      "degree": string,
      "field": string | null,
      "graduation_date": string | null  // YYYY-MM or YYYY format
    }
  ],
  "contact": {
    "email": string | null,
    "phone": string | null,
    "linkedin": string | null
  } | null,
  "summary": string | null
}

Rules:
- Extract ALL skills mentioned (technical, soft skills, tools, languages)
- List experiences in chronological order (most recent first)
- If dates are ranges, use start_date and end_date
- Set end_date to null for current positions
- Extract contact info if present
- Create a brief professional summary (2-3 sentences) if objective/summary exists
- Return valid JSON only, no markdown formatting
"""


# ============================================================================
# Core Functions
# ============================================================================

def strip_code_fences(response_text: str) -> str:
    """Remove a ```json ... ``` wrapper if the model added one."""
    text = response_text.strip()
    if text.startswith("```json"):
        text = text[7:]
    elif text.startswith("```"):
        text = text[3:]
    if text.endswith("```"):
        text = text[:-3]
    return text.strip()


def parse_model_response(response_text: str) -> ParsedResume:
    """Decode and validate the model's JSON answer."""
    try:
        data = json.loads(strip_code_fences(response_text))
    except json.JSONDecodeError as e:
        raise ResumeParseError(f"Failed to parse AI response as JSON: {e}")

    if not isinstance(data, dict):
        raise ResumeParseError("Invalid parsed data: expected a JSON object")
    for key in ("skills", "experience", "education"):
        if not isinstance(data.get(key), list):
            raise ResumeParseError(f"Invalid parsed data: missing {key} array")

    try:
        return ParsedResume.model_validate(data)
    except ValidationError as e:
        raise ResumeParseError(f"Invalid parsed data: {e.error_count()} field error(s)")


async def parse_resume_text(text: str, user_id: int) -> ParsedResume:
    """
    Parse resume text using Gemini.

    Args:
        text: Plain resume text
        user_id: Owner of the resume, used for request attribution in logs

    Returns:
        ParsedResume with skills, experience, education, contact and summary

    Raises:
        ResumeParseError on any AI service or output failure
    """
    client = get_genai_client()
    if not client:
        raise ResumeParseError("Gemini API not configured. Please set GEMINI_API_KEY.")

    settings = get_settings()
    try:
        response = await client.aio.models.generate_content(
            model=settings.gemini_model,
            contents=f"Parse this resume:\n\n{text}",
            config=genai.types.GenerateContentConfig(
                system_instruction=RESUME_PARSER_PROMPT,
                temperature=0.1,
                max_output_tokens=settings.gemini_max_output_tokens,
                response_mime_type="application/json",
            ),
        )
    except Exception as e:
        raise ResumeParseError(f"Resume parsing failed: {e}")

    response_text = response.text
    if not response_text:
        raise ResumeParseError("Expected text response from AI service")

    logger.info("Gemini returned %d characters for user %s", len(response_text), user_id)
    return parse_model_response(response_text)
