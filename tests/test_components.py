"""
コンポーネント単体テスト
ファイル管理・設定ストア・スキーマが正しく動作することを確認
"""
from datetime import datetime, timedelta, timezone

import httpx
import pytest
import yaml
from pydantic import ValidationError

from src.core.file_manager import (
    DiagramFileManager,
    FileDownloadError,
    FileSizeExceededError,
    UnsupportedFileTypeError,
)
from src.core.settings_store import SettingsStore, SettingsStoreError, WindowStateManager
from src.models.schemas import (
    ApplicationState, FileType, WindowSettings, ErrorResponse, ErrorInfo
)


class TestFileType:
    """FileTypeのテストクラス."""

    @pytest.mark.parametrize("ext, expected", [
        ("md", FileType.MARKDOWN),
        (".MD", FileType.MARKDOWN),
        ("mmd", FileType.MERMAID),
        ("mermaid", FileType.MERMAID_MARKDOWN),
        ("txt", FileType.MARKDOWN),
        ("", FileType.MARKDOWN),
    ])
    def test_from_extension(self, ext, expected):
        """拡張子から種別を判定できること（不明な拡張子はMarkdown）."""
        assert FileType.from_extension(ext) == expected

    def test_extension_and_filter_name(self):
        """種別ごとの拡張子とフィルタ名."""
        assert FileType.MERMAID.extension == "mmd"
        assert FileType.MERMAID_MARKDOWN.filter_name == "Mermaid Diagram Files"
        assert FileType.MARKDOWN.value == "Markdown"


class TestDiagramFileManager:
    """DiagramFileManagerのテストクラス."""

    def setup_method(self):
        """各テストメソッドの前に実行される."""
        self.manager = DiagramFileManager()

    def test_create_new_file(self):
        """新規ファイルは未保存の空ファイルであること."""
        new_file = self.manager.create_new_file()

        assert new_file.name == "Untitled"
        assert new_file.path is None
        assert new_file.content == ""
        assert new_file.is_saved is False
        assert new_file.file_type == FileType.MARKDOWN
        assert new_file.id != self.manager.create_new_file().id

    def test_load_file(self, tmp_path):
        """ファイルを読み込めること."""
        path = tmp_path / "diagram.mmd"
        path.write_text("graph TD\n    A --> B\n", encoding="utf-8")

        loaded = self.manager.load_file(str(path))

        assert loaded.name == "diagram.mmd"
        assert loaded.path == str(path.absolute())
        assert loaded.content == "graph TD\n    A --> B\n"
        assert loaded.is_saved is True
        assert loaded.file_type == FileType.MERMAID
        assert loaded.last_modified is not None

    def test_load_missing_file(self, tmp_path):
        """存在しないファイルはFileNotFoundErrorになること."""
        with pytest.raises(FileNotFoundError):
            self.manager.load_file(tmp_path / "missing.md")

    def test_load_unsupported_file(self, tmp_path):
        """対応していない拡張子はエラーになること."""
        path = tmp_path / "notes.txt"
        path.write_text("hello")

        with pytest.raises(UnsupportedFileTypeError):
            self.manager.load_file(path)

    def test_save_file(self, tmp_path):
        """ファイルを保存できること."""
        target = tmp_path / "out.md"

        result = self.manager.save_file("# Title\n", str(target))

        assert result.success is True
        assert result.file_path == str(target.absolute())
        assert result.error is None
        assert target.read_text(encoding="utf-8") == "# Title\n"
        # 一時ファイルが残っていないこと
        assert [p.name for p in tmp_path.iterdir()] == ["out.md"]

    def test_save_file_overwrites(self, tmp_path):
        """既存ファイルを上書きできること."""
        target = tmp_path / "out.md"
        target.write_text("old")

        self.manager.save_file("new", str(target))

        assert target.read_text() == "new"

    def test_save_cancelled(self):
        """保存先が未指定の場合はキャンセル扱いになること."""
        result = self.manager.save_file("content", None)

        assert result.success is False
        assert result.error is None
        assert result.file_path is None

    def test_save_to_missing_directory(self, tmp_path):
        """書き込めない場合はエラーを返すこと（例外にはしない）."""
        result = self.manager.save_file("content", str(tmp_path / "missing" / "out.md"))

        assert result.success is False
        assert result.error.startswith("Failed to save file:")

    def test_save_onto_directory(self, tmp_path):
        """保存先がディレクトリの場合はエラーを返し、一時ファイルを残さないこと."""
        directory = tmp_path / "existing_dir"
        directory.mkdir()

        result = self.manager.save_file("graph TD", str(directory))

        assert result.success is False
        assert result.file_path is None
        assert result.error.startswith("Failed to save file:")
        assert directory.is_dir()
        assert list(directory.iterdir()) == []
        assert [p.name for p in tmp_path.iterdir()] == ["existing_dir"]

    def test_check_file_modified(self, tmp_path):
        """更新日時の比較で外部変更を判定すること."""
        path = tmp_path / "doc.md"
        path.write_text("x")
        mtime = datetime.fromtimestamp(path.stat().st_mtime)

        assert self.manager.check_file_modified(path, mtime) is False
        assert self.manager.check_file_modified(path, mtime - timedelta(seconds=10)) is True
        assert self.manager.check_file_modified(path, None) is False

    def test_check_file_modified_with_timezone(self, tmp_path):
        """タイムゾーン付きの日時でも比較できること."""
        path = tmp_path / "doc.md"
        path.write_text("x")
        mtime = datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc)

        assert self.manager.check_file_modified(path, mtime) is False
        assert self.manager.check_file_modified(
            path, datetime(2000, 1, 1, tzinfo=timezone.utc)
        ) is True
        later = mtime.astimezone(timezone(timedelta(hours=9))) + timedelta(hours=1)
        assert self.manager.check_file_modified(path, later) is False

    def test_supported_extensions(self):
        """対応拡張子の判定."""
        assert self.manager.supported_extensions() == ["md", "mmd", "mermaid"]
        assert self.manager.is_supported_file("a/b/c.MERMAID") is True
        assert self.manager.is_supported_file("a/b/c.txt") is False
        assert self.manager.is_supported_file("README") is False

    def test_is_url(self):
        """URL判定."""
        assert self.manager.is_url("https://example.com/a.md") is True
        assert self.manager.is_url("/tmp/a.md") is False
        assert self.manager.is_url("ftp://example.com/a.md") is False

    def test_env_var_override(self, monkeypatch):
        """環境変数でダウンロード設定を上書きできること."""
        monkeypatch.setenv("PARCH_MCP_DOWNLOAD_TIMEOUT", "5")
        monkeypatch.setenv("PARCH_MCP_MAX_FILE_SIZE", "not-a-number")

        manager = DiagramFileManager(max_download_size=1234)

        assert manager.download_timeout == 5
        assert manager.max_download_size == 1234


def _downloader(handler, **kwargs):
    """httpx.MockTransportで応答を差し替えたファイルマネージャー."""
    return DiagramFileManager(transport=httpx.MockTransport(handler), **kwargs)


class TestDownloadFile:
    """URLからの読み込みのテストクラス."""

    @pytest.mark.asyncio
    async def test_download(self):
        """ダウンロードした内容を保存済みファイルとして返すこと."""
        requested = []

        def handler(request):
            requested.append(str(request.url))
            return httpx.Response(200, content="graph TD\n    A --> B\n".encode("utf-8"))

        url = "https://example.com/docs/flow.mmd"
        file_content = await _downloader(handler).download_file(url)

        assert requested == [url]
        assert file_content.name == "flow.mmd"
        assert file_content.path == url
        assert file_content.content == "graph TD\n    A --> B\n"
        assert file_content.is_saved is True
        assert file_content.last_modified is None
        assert file_content.file_type == FileType.MERMAID

    @pytest.mark.asyncio
    async def test_download_without_filename(self):
        """URLにファイル名が無い場合はUntitled.mdとすること."""
        def handler(request):
            return httpx.Response(200, content=b"# Title")

        file_content = await _downloader(handler).download_file("https://example.com/")

        assert file_content.name == "Untitled.md"
        assert file_content.file_type == FileType.MARKDOWN

    @pytest.mark.asyncio
    async def test_content_length_exceeds_limit(self):
        """Content-Lengthが上限を超える場合はサイズエラーになること."""
        def handler(request):
            return httpx.Response(200, content=b"x" * 100)

        with pytest.raises(FileSizeExceededError, match="100 bytes"):
            await _downloader(handler, max_download_size=10).download_file(
                "https://example.com/big.md"
            )

    @pytest.mark.asyncio
    async def test_streamed_size_exceeds_limit(self):
        """Content-Lengthが無くても受信量が上限を超えればサイズエラーになること."""
        async def body():
            yield b"a" * 60
            yield b"b" * 60

        def handler(request):
            return httpx.Response(200, content=body())

        with pytest.raises(FileSizeExceededError):
            await _downloader(handler, max_download_size=100).download_file(
                "https://example.com/stream.md"
            )

    @pytest.mark.asyncio
    async def test_malformed_content_length_is_ignored(self):
        """不正なContent-Lengthは無視して本文を読み込むこと."""
        def handler(request):
            return httpx.Response(200, headers={"content-length": "abc"}, content=b"pie")

        file_content = await _downloader(handler).download_file("https://example.com/a.md")

        assert file_content.content == "pie"

    @pytest.mark.asyncio
    async def test_malformed_content_length_still_limited(self):
        """不正なContent-Lengthでも受信量の上限は守ること."""
        def handler(request):
            return httpx.Response(200, headers={"content-length": "abc"}, content=b"x" * 50)

        with pytest.raises(FileSizeExceededError):
            await _downloader(handler, max_download_size=10).download_file(
                "https://example.com/a.md"
            )

    @pytest.mark.asyncio
    async def test_timeout(self):
        """タイムアウトはダウンロードエラーになること."""
        def handler(request):
            raise httpx.ConnectTimeout("timed out", request=request)

        with pytest.raises(FileDownloadError, match="timed out after 7 seconds"):
            await _downloader(handler, download_timeout=7).download_file(
                "https://example.com/slow.md"
            )

    @pytest.mark.asyncio
    async def test_http_status_error(self):
        """HTTPエラーステータスはダウンロードエラーになること."""
        def handler(request):
            return httpx.Response(404)

        with pytest.raises(FileDownloadError, match="HTTP error 404"):
            await _downloader(handler).download_file("https://example.com/missing.md")

    @pytest.mark.asyncio
    async def test_connection_error(self):
        """接続エラーはダウンロードエラーになること."""
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(FileDownloadError, match="Failed to download"):
            await _downloader(handler).download_file("https://example.com/a.md")


class TestSettingsStore:
    """SettingsStoreのテストクラス."""

    def test_get_set_save(self, tmp_path):
        """値を設定し、save()でファイルに書き込むこと."""
        path = tmp_path / "settings.yaml"
        store = SettingsStore(path)

        assert store.get("theme") is None
        store.set("theme", "dark")
        assert not path.exists()

        store.save()

        assert yaml.safe_load(path.read_text(encoding="utf-8")) == {"theme": "dark"}
        assert SettingsStore(path).get("theme") == "dark"

    def test_delete(self, tmp_path):
        """値を削除できること."""
        store = SettingsStore(tmp_path / "settings.yaml")
        store.set("key", 1)

        assert store.delete("key") is True
        assert store.delete("key") is False
        assert store.get("key") is None

    def test_env_path(self, tmp_path, monkeypatch):
        """環境変数で保存先を指定できること."""
        path = tmp_path / "nested" / "state.yaml"
        monkeypatch.setenv("PARCH_MCP_SETTINGS_PATH", str(path))

        store = SettingsStore()
        store.set("a", [1, 2])
        store.save()

        assert store.path == path
        assert path.exists()

    def test_non_mapping_file_is_ignored(self, tmp_path):
        """マッピングでない設定ファイルは空として扱うこと."""
        path = tmp_path / "settings.yaml"
        path.write_text("- just\n- a list\n")

        assert SettingsStore(path).get("anything") is None


class TestWindowStateManager:
    """WindowStateManagerのテストクラス."""

    def setup_method(self):
        """各テストメソッドの前に実行される."""
        self.store = None

    def _manager(self, tmp_path):
        self.store = SettingsStore(tmp_path / "window-state.yaml")
        return WindowStateManager(self.store)

    def test_defaults(self, tmp_path):
        """初期値."""
        manager = self._manager(tmp_path)

        settings = manager.get_window_settings()
        app_state = manager.get_application_state()

        assert settings.opacity == 1.0
        assert settings.split_pane_size == 0.5
        assert app_state.theme == "light"
        assert app_state.active_diagram_index == -1
        assert app_state.show_tree_view is False

    def test_update_window_settings_persists(self, tmp_path):
        """更新がファイルに保存され、再読み込みで復元されること."""
        manager = self._manager(tmp_path)

        manager.update_window_settings(always_on_top=True, position=(10, 20))

        reloaded = WindowStateManager(SettingsStore(tmp_path / "window-state.yaml"))
        settings = reloaded.get_window_settings()
        assert settings.always_on_top is True
        assert settings.position == (10, 20)

    def test_opacity_and_split_pane_are_clamped(self, tmp_path):
        """不透明度と分割比率は範囲内に丸められること."""
        manager = self._manager(tmp_path)

        settings = manager.update_window_settings(opacity=0.01, split_pane_size=2.0)

        assert settings.opacity == 0.1
        assert settings.split_pane_size == 0.9

    def test_update_application_state(self, tmp_path):
        """アプリケーション状態を更新できること."""
        manager = self._manager(tmp_path)

        app_state = manager.update_application_state(theme="dark", cursor_position=(3, 7))

        assert app_state.theme == "dark"
        assert app_state.cursor_position == (3, 7)
        assert manager.get_application_state().theme == "dark"

    def test_invalid_theme(self, tmp_path):
        """不正なテーマはエラーになること."""
        manager = self._manager(tmp_path)

        with pytest.raises(ValidationError):
            manager.update_application_state(theme="blue")

    def test_unknown_field(self, tmp_path):
        """存在しないフィールドはエラーになること."""
        manager = self._manager(tmp_path)

        with pytest.raises(ValueError):
            manager.update_window_settings(transparency=0.5)

    def test_last_saved_is_updated(self, tmp_path):
        """更新時に最終保存日時が記録されること."""
        manager = self._manager(tmp_path)
        before = manager.state.last_saved

        manager.update_application_state(show_settings=True)

        assert manager.state.last_saved >= before
        stored = self.store.get(WindowStateManager.SETTINGS_KEY)
        assert stored["app_state"]["show_settings"] is True
        assert "last_saved" in stored

    def test_failed_save_keeps_previous_state(self, tmp_path, monkeypatch):
        """保存に失敗した場合はメモリ上の状態を変更しないこと."""
        manager = self._manager(tmp_path)
        manager.update_window_settings(opacity=0.8)
        saved_state = manager.state
        stored = self.store.get(WindowStateManager.SETTINGS_KEY)

        def fail():
            raise SettingsStoreError("disk full")

        monkeypatch.setattr(self.store, "save", fail)

        with pytest.raises(SettingsStoreError):
            manager.update_window_settings(opacity=0.3)

        assert manager.get_window_settings().opacity == 0.8
        assert manager.state is saved_state
        assert self.store.get(WindowStateManager.SETTINGS_KEY) == stored

    def test_failed_first_save_leaves_store_empty(self, tmp_path, monkeypatch):
        """初回の保存に失敗した場合はストアに値を残さないこと."""
        manager = self._manager(tmp_path)

        def fail():
            raise SettingsStoreError("read-only")

        monkeypatch.setattr(self.store, "save", fail)

        with pytest.raises(SettingsStoreError):
            manager.update_application_state(theme="dark")

        assert manager.get_application_state().theme == "light"
        assert self.store.get(WindowStateManager.SETTINGS_KEY) is None

    def test_invalid_stored_state_is_reset(self, tmp_path):
        """形式の不正な保存状態は削除して初期値を使うこと."""
        path = tmp_path / "window-state.yaml"
        path.write_text(yaml.safe_dump({"window_settings": {"settings": "broken"}, "other": 1}))

        manager = WindowStateManager(SettingsStore(path))

        assert manager.get_window_settings() == WindowSettings()
        assert yaml.safe_load(path.read_text()) == {"other": 1}


class TestSchemas:
    """スキーマのテストクラス."""

    def test_window_settings_clamp(self):
        """WindowSettingsの丸め."""
        assert WindowSettings(opacity=5).opacity == 1.0
        assert WindowSettings(split_pane_size=0.0).split_pane_size == 0.1

    def test_application_state_theme(self):
        """ApplicationStateのテーマ検証."""
        assert ApplicationState(theme="dark").theme == "dark"
        with pytest.raises(ValidationError):
            ApplicationState(theme="sepia")

    def test_error_response(self):
        """ErrorResponseのダンプ."""
        dumped = ErrorResponse(
            error=ErrorInfo(code="INVALID_INPUT", message="bad", details="details")
        ).model_dump()

        assert dumped["success"] is False
        assert dumped["error"]["code"] == "INVALID_INPUT"
        assert "timestamp" in dumped["error"]
