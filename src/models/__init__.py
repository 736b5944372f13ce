"""Data models for Parch MCP Server."""

from .diagram_schemas import (
    Diagnostic,
    DiagramRecord,
    DiagramStats,
    ParseResult,
    ValidationResult,
)
from .schemas import ErrorInfo, ErrorResponse, FileContent, FileType

__all__ = [
    "Diagnostic",
    "DiagramRecord",
    "DiagramStats",
    "ParseResult",
    "ValidationResult",
    "ErrorInfo",
    "ErrorResponse",
    "FileContent",
    "FileType",
]
