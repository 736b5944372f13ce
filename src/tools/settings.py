"""設定ストア関連MCPツールの実装."""

from typing import Dict, Any

from pydantic import ValidationError

from src.core.settings_store import SettingsStore, SettingsStoreError, WindowStateManager
from src.models.schemas import ErrorResponse, ErrorInfo


def _error(code: str, message: str, details: str) -> Dict[str, Any]:
    error_response = ErrorResponse(
        error=ErrorInfo(code=code, message=message, details=details)
    )
    return error_response.model_dump()


async def get_setting(key: str) -> Dict[str, Any]:
    """
    設定値を取得する.
    
    Args:
        key: 設定キー
        
    Returns:
        {"key": key, "value": 値（未設定の場合None）}またはErrorResponse
    """
    try:
        return {"key": key, "value": SettingsStore().get(key)}
    except SettingsStoreError as e:
        return _error("SETTINGS_ERROR", "Failed to read settings", str(e))


async def set_setting(key: str, value: Any) -> Dict[str, Any]:
    """
    設定値を保存する（即座にファイルへ書き込む）.
    
    Args:
        key: 設定キー
        value: 設定値（YAMLで表現可能な値）
        
    Returns:
        {"success": True}またはErrorResponse
    """
    try:
        store = SettingsStore()
        store.set(key, value)
        store.save()
        return {"success": True}
    except SettingsStoreError as e:
        return _error("SETTINGS_ERROR", "Failed to write settings", str(e))


async def get_window_settings() -> Dict[str, Any]:
    """ウィンドウ設定を取得する."""
    try:
        return WindowStateManager().get_window_settings().model_dump(mode="json")
    except SettingsStoreError as e:
        return _error("SETTINGS_ERROR", "Failed to read settings", str(e))


async def update_window_settings(changes: Dict[str, Any]) -> Dict[str, Any]:
    """
    ウィンドウ設定を部分更新する.
    
    opacityは0.1〜1.0、split_pane_sizeは0.1〜0.9に丸められる。
    
    Args:
        changes: 更新するフィールドと値
        
    Returns:
        更新後のWindowSettingsまたはErrorResponse
    """
    try:
        settings = WindowStateManager().update_window_settings(**changes)
        return settings.model_dump(mode="json")
    except (ValidationError, ValueError) as e:
        return _error("INVALID_INPUT", "Invalid window settings", str(e))
    except SettingsStoreError as e:
        return _error("SETTINGS_ERROR", "Failed to write settings", str(e))


async def get_application_state() -> Dict[str, Any]:
    """アプリケーション状態を取得する."""
    try:
        return WindowStateManager().get_application_state().model_dump(mode="json")
    except SettingsStoreError as e:
        return _error("SETTINGS_ERROR", "Failed to read settings", str(e))


async def update_application_state(changes: Dict[str, Any]) -> Dict[str, Any]:
    """
    アプリケーション状態を部分更新する.
    
    Args:
        changes: 更新するフィールドと値
        
    Returns:
        更新後のApplicationStateまたはErrorResponse
    """
    try:
        app_state = WindowStateManager().update_application_state(**changes)
        return app_state.model_dump(mode="json")
    except (ValidationError, ValueError) as e:
        return _error("INVALID_INPUT", "Invalid application state", str(e))
    except SettingsStoreError as e:
        return _error("SETTINGS_ERROR", "Failed to write settings", str(e))
