"""mermaid_validate MCPツールの実装."""

from typing import Dict, Any

from src.validators.mermaid_extractor import MermaidExtractor
from src.models.schemas import ErrorResponse, ErrorInfo


async def validate_mermaid(
    content: str,
    start_line: int = 1,
) -> Dict[str, Any]:
    """
    Mermaidダイアグラム本体（フェンス行を除く）をバリデーションする.
    
    不正な記法は例外ではなく診断として返す。
    
    Args:
        content: Mermaidダイアグラムコード
        start_line: コードの1行目の行番号（診断の行番号に使用）デフォルト: 1
        
    Returns:
        バリデーション結果（成功時はValidationResult、失敗時はErrorResponse）
    """
    try:
        if isinstance(start_line, bool) or not isinstance(start_line, int) or start_line < 1:
            raise ValueError(f"start_line must be a positive integer, got {start_line!r}")
        
        extractor = MermaidExtractor()
        result = extractor.validate(content, start_line=start_line)
        
        return result.model_dump()
        
    except ValueError as e:
        # 入力検証エラー
        error_response = ErrorResponse(
            error=ErrorInfo(
                code="INVALID_INPUT",
                message="Invalid input parameters",
                details=str(e),
            )
        )
        return error_response.model_dump()
        
    except Exception as e:
        # その他のエラー
        error_response = ErrorResponse(
            error=ErrorInfo(
                code="INTERNAL_ERROR",
                message=f"An unexpected error occurred during validation: {str(e)}",
                details="Please check the content and try again.",
            )
        )
        return error_response.model_dump()
