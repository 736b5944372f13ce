"""
MCPツールの入出力スキーマ定義
"""
from enum import Enum
from typing import Optional, Tuple
from datetime import datetime
from pydantic import BaseModel, Field, field_validator


class FileType(str, Enum):
    """対応ファイル種別"""
    MARKDOWN = "Markdown"
    MERMAID = "Mermaid"
    MERMAID_MARKDOWN = "MermaidMarkdown"

    @classmethod
    def from_extension(cls, ext: str) -> "FileType":
        """拡張子から種別を判定する（不明な拡張子はMarkdown扱い）"""
        return _EXTENSION_TO_TYPE.get(ext.lower().lstrip("."), cls.MARKDOWN)

    @property
    def extension(self) -> str:
        return _TYPE_TO_EXTENSION[self]

    @property
    def filter_name(self) -> str:
        return _TYPE_TO_FILTER_NAME[self]


_EXTENSION_TO_TYPE = {
    "md": FileType.MARKDOWN,
    "mmd": FileType.MERMAID,
    "mermaid": FileType.MERMAID_MARKDOWN,
}
_TYPE_TO_EXTENSION = {v: k for k, v in _EXTENSION_TO_TYPE.items()}
_TYPE_TO_FILTER_NAME = {
    FileType.MARKDOWN: "Markdown Files",
    FileType.MERMAID: "Mermaid Files",
    FileType.MERMAID_MARKDOWN: "Mermaid Diagram Files",
}


class FileContent(BaseModel):
    """エディタに読み込まれたファイルの内容"""
    id: str = Field(..., description="ファイルの一意なID（UUID）")
    name: str = Field(..., description="ファイル名")
    path: Optional[str] = Field(None, description="ファイルパスまたはURL（未保存の場合None）")
    content: str = Field(..., description="ファイル内容")
    last_modified: Optional[datetime] = Field(None, description="最終更新日時")
    is_saved: bool = Field(..., description="保存済みかどうか")
    file_type: FileType = Field(..., description="ファイル種別")


class FileOpenResult(BaseModel):
    """file_openツールのレスポンス（キャンセル時はsuccess=False, error=None）"""
    success: bool = Field(..., description="読み込み成功フラグ")
    file_content: Optional[FileContent] = Field(None, description="読み込んだファイル")
    error: Optional[str] = Field(None, description="エラーメッセージ")


class SaveResult(BaseModel):
    """file_saveツールのレスポンス（キャンセル時はsuccess=False, error=None）"""
    success: bool = Field(..., description="保存成功フラグ")
    file_path: Optional[str] = Field(None, description="保存先の絶対パス")
    error: Optional[str] = Field(None, description="エラーメッセージ")


class WindowSettings(BaseModel):
    """ウィンドウ設定"""
    always_on_top: bool = Field(False, description="常に最前面に表示")
    click_through: bool = Field(False, description="マウスイベントを透過")
    opacity: float = Field(1.0, description="不透明度（0.1〜1.0）")
    position: Optional[Tuple[int, int]] = Field(None, description="ウィンドウ位置 (x, y)")
    size: Optional[Tuple[int, int]] = Field(None, description="ウィンドウサイズ (width, height)")
    split_pane_size: float = Field(0.5, description="分割ペインの比率（0.1〜0.9）")

    @field_validator("opacity")
    @classmethod
    def _clamp_opacity(cls, value: float) -> float:
        return min(max(value, 0.1), 1.0)

    @field_validator("split_pane_size")
    @classmethod
    def _clamp_split_pane_size(cls, value: float) -> float:
        return min(max(value, 0.1), 0.9)


class ApplicationState(BaseModel):
    """アプリケーション状態"""
    theme: str = Field("light", description="テーマ（light または dark）")
    show_settings: bool = Field(False, description="設定パネルの表示状態")
    active_diagram_index: int = Field(-1, description="選択中のダイアグラム番号（未選択は-1）")
    cursor_position: Optional[Tuple[int, int]] = Field(None, description="カーソル位置 (line, column)")
    last_file_path: Optional[str] = Field(None, description="最後に開いたファイルのパス")
    last_file_content: Optional[str] = Field(None, description="最後に開いたファイルの内容")
    last_file_name: Optional[str] = Field(None, description="最後に開いたファイルの名前")
    has_unsaved_changes: bool = Field(False, description="未保存の変更があるか")
    show_tree_view: bool = Field(False, description="ツリービューの表示状態")

    @field_validator("theme")
    @classmethod
    def _check_theme(cls, value: str) -> str:
        if value not in ("light", "dark"):
            raise ValueError(f"theme must be 'light' or 'dark', got '{value}'")
        return value


class WindowState(BaseModel):
    """設定ストアに永続化される状態全体"""
    settings: WindowSettings = Field(default_factory=WindowSettings, description="ウィンドウ設定")
    app_state: ApplicationState = Field(default_factory=ApplicationState, description="アプリケーション状態")
    last_saved: datetime = Field(default_factory=datetime.now, description="最終保存日時")


class AppInfo(BaseModel):
    """アプリケーション情報"""
    name: str = Field(..., description="アプリケーション名")
    version: str = Field(..., description="バージョン")
    description: str = Field(..., description="説明")


class ErrorInfo(BaseModel):
    """エラー詳細情報"""
    code: str = Field(..., description="エラーコード")
    message: str = Field(..., description="エラーの概要メッセージ")
    details: str = Field(..., description="エラーの詳細説明")
    timestamp: str = Field(default_factory=lambda: datetime.now().isoformat(), description="エラー発生日時")


class ErrorResponse(BaseModel):
    """失敗時のレスポンス"""
    success: bool = Field(False, description="常にFalse")
    error: ErrorInfo = Field(..., description="エラー詳細情報")
