"""ウィンドウ・アプリケーション設定の永続化（YAMLファイルのキーバリューストア）."""

import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import ValidationError

from src.models.schemas import ApplicationState, WindowSettings, WindowState


logger = logging.getLogger(__name__)

DEFAULT_SETTINGS_PATH = Path("~/.parch/window-state.yaml")


class SettingsStoreError(Exception):
    """設定ストアの読み書きエラー."""
    pass


class SettingsStore:
    """
    YAMLファイルをバックエンドとするキーバリューストア.

    set/deleteはメモリ上の値を更新するだけで、save()を呼ぶまで
    ファイルには書き込まない。ファイルは最初のアクセス時に読み込む。
    """

    def __init__(self, path: Optional[Path] = None):
        """
        Args:
            path: 設定ファイルのパス（未指定時は環境変数PARCH_MCP_SETTINGS_PATH、
                  それも無ければ ~/.parch/window-state.yaml）
        """
        if path is None:
            env_path = os.environ.get("PARCH_MCP_SETTINGS_PATH")
            path = Path(env_path) if env_path else DEFAULT_SETTINGS_PATH
        self.path = Path(path).expanduser()
        self._data: Optional[Dict[str, Any]] = None

    def _load(self) -> Dict[str, Any]:
        """設定ファイルを読み込む（未作成の場合は空）."""
        if self._data is not None:
            return self._data

        self._data = {}
        if not self.path.exists():
            return self._data

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                loaded = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            raise SettingsStoreError(f"Failed to read settings file {self.path}: {e}") from e

        if isinstance(loaded, dict):
            self._data = loaded
        elif loaded is not None:
            logger.warning("Settings file %s is not a mapping, ignoring its content", self.path)

        return self._data

    def get(self, key: str) -> Any:
        """値を取得する（存在しない場合None）."""
        return self._load().get(key)

    def set(self, key: str, value: Any) -> None:
        """値を設定する（save()で永続化）."""
        self._load()[key] = value

    def delete(self, key: str) -> bool:
        """値を削除する（存在した場合True）."""
        return self._load().pop(key, None) is not None

    def save(self) -> None:
        """
        メモリ上の内容をファイルに書き込む.

        Raises:
            SettingsStoreError: 書き込み失敗
        """
        data = self._load()
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w", encoding="utf-8") as f:
                yaml.safe_dump(data, f, allow_unicode=True, default_flow_style=False, sort_keys=True)
        except (OSError, yaml.YAMLError) as e:
            raise SettingsStoreError(f"Failed to persist settings to {self.path}: {e}") from e
        logger.info("Settings saved to %s", self.path)


class WindowStateManager:
    """設定ストア上のウィンドウ設定とアプリケーション状態を管理するクラス."""

    SETTINGS_KEY = "window_settings"

    def __init__(self, store: Optional[SettingsStore] = None):
        """初期化."""
        self.store = store or SettingsStore()
        self._state: Optional[WindowState] = None

    @property
    def state(self) -> WindowState:
        """現在の状態（初回アクセス時にストアから読み込む）."""
        if self._state is None:
            self._state = self._load_state()
        return self._state

    def get_window_settings(self) -> WindowSettings:
        return self.state.settings.model_copy()

    def get_application_state(self) -> ApplicationState:
        return self.state.app_state.model_copy()

    def update_window_settings(self, **changes: Any) -> WindowSettings:
        """
        ウィンドウ設定を更新して保存する.

        Raises:
            ValidationError: 値が不正
            SettingsStoreError: 保存失敗
        """
        settings = self._apply(WindowSettings, self.state.settings, changes)
        self._save(settings=settings)
        return settings.model_copy()

    def update_application_state(self, **changes: Any) -> ApplicationState:
        """
        アプリケーション状態を更新して保存する.

        Raises:
            ValidationError: 値が不正
            SettingsStoreError: 保存失敗
        """
        app_state = self._apply(ApplicationState, self.state.app_state, changes)
        self._save(app_state=app_state)
        return app_state.model_copy()

    @staticmethod
    def _apply(model: Any, current: Any, changes: Dict[str, Any]) -> Any:
        """現在値に変更を適用し、バリデーション済みの新しいモデルを返す."""
        unknown = set(changes) - set(model.model_fields)
        if unknown:
            raise ValueError(f"Unknown field(s): {', '.join(sorted(unknown))}")
        merged = current.model_dump()
        merged.update(changes)
        return model.model_validate(merged)

    def _save(self, **updates: Any) -> None:
        """
        更新後の状態を保存する.

        保存に成功した場合のみメモリ上の状態を置き換える。
        失敗時はストアの値も元に戻す。
        """
        new_state = self.state.model_copy(update={**updates, "last_saved": datetime.now()})
        previous = self.store.get(self.SETTINGS_KEY)
        self.store.set(self.SETTINGS_KEY, new_state.model_dump(mode="json"))
        try:
            self.store.save()
        except SettingsStoreError:
            if previous is None:
                self.store.delete(self.SETTINGS_KEY)
            else:
                self.store.set(self.SETTINGS_KEY, previous)
            raise
        self._state = new_state

    def _load_state(self) -> WindowState:
        """ストアから状態を読み込む（形式が不正な場合は削除して初期値を使う）."""
        value = self.store.get(self.SETTINGS_KEY)
        if value is None:
            return WindowState()

        try:
            return WindowState.model_validate(value)
        except ValidationError as e:
            logger.warning("Stored window state is invalid, resetting to defaults: %s", e)
            self.store.delete(self.SETTINGS_KEY)
            self.store.save()
            return WindowState()
