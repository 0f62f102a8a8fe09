from .errors import (
    ResumePipelineError,
    Unauthorized,
    NoResumeFound,
    AlreadyInProgress,
    JobNotFound,
    InvalidUpload,
    InvalidReference,
    DownloadFailure,
    ExtractionFailure,
    ParsingFailure,
    ProfileUpdateFailure,
    UnexpectedError,
    InvalidStatusTransition,
    StorageError
)
from .storage import (
    ObjectStorage,
    SupabaseStorage,
    LocalStorage,
    resolve_storage_path
)
from .document_extractor import (
    DocumentType,
    ExtractedText,
    DocumentExtractionError,
    infer_document_type,
    extract_document_text,
    redact_pii
)
from .resume_parser import (
    ParsedResume,
    ResumeParseError,
    parse_resume_text
)
from .invalidation import ProfileCacheInvalidator

# auth and resume_parsing import the models, which import .errors;
# import them from their modules to avoid a cycle.

__all__ = [
    # Errors
    "ResumePipelineError",
    "Unauthorized",
    "NoResumeFound",
    "AlreadyInProgress",
    "JobNotFound",
    "InvalidUpload",
    "InvalidReference",
    "DownloadFailure",
    "ExtractionFailure",
    "ParsingFailure",
    "ProfileUpdateFailure",
    "UnexpectedError",
    "InvalidStatusTransition",
    "StorageError",
    # Storage
    "ObjectStorage",
    "SupabaseStorage",
    "LocalStorage",
    "resolve_storage_path",
    # Document extraction
    "DocumentType",
    "ExtractedText",
    "DocumentExtractionError",
    "infer_document_type",
    "extract_document_text",
    "redact_pii",
    # Resume parsing
    "ParsedResume",
    "ResumeParseError",
    "parse_resume_text",
    # Cache invalidation
    "ProfileCacheInvalidator"
]
