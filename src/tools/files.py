"""file_new / file_open / file_save / file_check_modified MCPツールの実装."""

from datetime import datetime
from typing import Dict, Any, Optional

from src.core.file_manager import (
    DiagramFileManager,
    FileDownloadError,
    FileSizeExceededError,
    UnsupportedFileTypeError,
)
from src.models.schemas import ErrorResponse, ErrorInfo, FileOpenResult


def _error(code: str, message: str, details: str) -> Dict[str, Any]:
    error_response = ErrorResponse(
        error=ErrorInfo(code=code, message=message, details=details)
    )
    return error_response.model_dump()


async def new_file() -> Dict[str, Any]:
    """空の新規ファイルを作成する."""
    return DiagramFileManager.create_new_file().model_dump(mode="json")


async def open_file(path: Optional[str]) -> Dict[str, Any]:
    """
    ファイルを開く.
    
    パスが未指定の場合はキャンセル扱い（success=False, error=None）。
    
    Args:
        path: ファイルパスまたはHTTP/HTTPSのURL
        
    Returns:
        FileOpenResultまたはErrorResponse
    """
    if not path:
        return FileOpenResult(success=False).model_dump(mode="json")
    
    manager = DiagramFileManager()
    
    try:
        if manager.is_url(path):
            file_content = await manager.download_file(path)
        else:
            file_content = manager.load_file(path)
        
        return FileOpenResult(success=True, file_content=file_content).model_dump(mode="json")
        
    except FileNotFoundError as e:
        return _error("FILE_NOT_FOUND", "File not found", str(e))
        
    except UnsupportedFileTypeError as e:
        return _error("UNSUPPORTED_FILE_TYPE", "Unsupported file type", str(e))
        
    except FileSizeExceededError as e:
        return _error("FILE_TOO_LARGE", "File is too large", str(e))
        
    except FileDownloadError as e:
        return _error("FILE_DOWNLOAD_FAILED", "Failed to download file", str(e))
        
    except (OSError, UnicodeDecodeError) as e:
        return _error("INTERNAL_ERROR", "Failed to read file", str(e))


async def save_file(content: str, target_path: Optional[str]) -> Dict[str, Any]:
    """
    ファイルを保存する.
    
    Args:
        content: 保存する内容
        target_path: 保存先パス（未指定の場合はキャンセル扱い）
        
    Returns:
        SaveResult
    """
    manager = DiagramFileManager()
    return manager.save_file(content, target_path).model_dump()


async def check_file_modified(path: str, last_modified: Optional[str]) -> Dict[str, Any]:
    """
    ファイルが外部で変更されたかどうか判定する.
    
    Args:
        path: ファイルパス
        last_modified: 読み込み時の最終更新日時（ISO 8601）
        
    Returns:
        {"modified": bool}またはErrorResponse
    """
    try:
        known = datetime.fromisoformat(last_modified) if last_modified else None
        modified = DiagramFileManager.check_file_modified(path, known)
        return {"modified": modified}
        
    except ValueError as e:
        return _error("INVALID_INPUT", "Invalid input parameters", str(e))
        
    except FileNotFoundError as e:
        return _error("FILE_NOT_FOUND", "File not found", str(e))
        
    except OSError as e:
        return _error("INTERNAL_ERROR", "Failed to read file information", str(e))
