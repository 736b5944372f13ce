"""mermaid_parse / mermaid_detect_type / mermaid_get_stats MCPツールの実装."""

import logging
from typing import Dict, Any

from src.validators.mermaid_extractor import MermaidExtractor
from src.models.schemas import ErrorResponse, ErrorInfo


logger = logging.getLogger(__name__)


def _internal_error(e: Exception) -> Dict[str, Any]:
    """予期しない例外をErrorResponseに変換する."""
    logger.exception("Unexpected error while parsing Mermaid content")
    error_response = ErrorResponse(
        error=ErrorInfo(
            code="INTERNAL_ERROR",
            message=f"An unexpected error occurred during parsing: {str(e)}",
            details="Please check the content and try again.",
        )
    )
    return error_response.model_dump()


async def parse_mermaid(content: str) -> Dict[str, Any]:
    """
    Markdown内の全てのMermaidコードブロックを抽出・検証する.
    
    Args:
        content: Markdown形式の文字列
        
    Returns:
        ParseResult（diagrams, total_errors, parsing_time_ms）またはErrorResponse
    """
    try:
        extractor = MermaidExtractor()
        return extractor.extract(content).model_dump()
    except Exception as e:
        return _internal_error(e)


async def detect_type(content: str) -> Dict[str, Any]:
    """
    Mermaidダイアグラムの種類を判定する.
    
    Args:
        content: Mermaidダイアグラムコード
        
    Returns:
        {"diagram_type": 種類}（判定できない場合は "unknown"）
    """
    try:
        extractor = MermaidExtractor()
        return {"diagram_type": extractor.detect_type(content)}
    except Exception as e:
        return _internal_error(e)


async def get_stats(content: str) -> Dict[str, Any]:
    """
    Markdown内のMermaidコードブロックの統計情報を取得する.
    
    Args:
        content: Markdown形式の文字列
        
    Returns:
        DiagramStats（total_diagrams, total_errors, parsing_time_ms, diagram_types）
    """
    try:
        extractor = MermaidExtractor()
        return extractor.get_stats(content).model_dump()
    except Exception as e:
        return _internal_error(e)
