"""Markdown/Mermaidファイルの読み込み・保存."""

import logging
import os
import tempfile
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Generator, List, Optional, Union
from urllib.parse import urlparse

import httpx

from src.models.schemas import FileContent, FileType, SaveResult


logger = logging.getLogger(__name__)


class FileManagerError(Exception):
    """ファイル操作関連のエラー基底クラス."""
    pass


class UnsupportedFileTypeError(FileManagerError):
    """対応していない拡張子のエラー."""
    pass


class FileDownloadError(FileManagerError):
    """URLからのダウンロード失敗エラー."""
    pass


class FileSizeExceededError(FileManagerError):
    """ファイルサイズが制限超過エラー."""
    pass


class DiagramFileManager:
    """
    エディタで扱うファイルの読み込み・保存を担当するクラス.

    ローカルファイルに加えて、HTTP/HTTPSのURLからの読み込みをサポート.
    """

    SUPPORTED_EXTENSIONS = ["md", "mmd", "mermaid"]

    def __init__(
        self,
        download_timeout: int = 30,
        max_download_size: int = 10 * 1024 * 1024,  # 10MB
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            download_timeout: URLダウンロードのタイムアウト秒数
            max_download_size: ダウンロード可能な最大ファイルサイズ（バイト）
            transport: httpxのトランスポート（未指定時は通常のHTTP通信）
        """
        # 環境変数があれば優先
        env_timeout = os.environ.get("PARCH_MCP_DOWNLOAD_TIMEOUT")
        if env_timeout is not None:
            try:
                download_timeout = int(env_timeout)
            except ValueError:
                pass  # 不正な値は無視してデフォルト/引数を使う
        env_max_size = os.environ.get("PARCH_MCP_MAX_FILE_SIZE")
        if env_max_size is not None:
            try:
                max_download_size = int(env_max_size)
            except ValueError:
                pass
        self.download_timeout = download_timeout
        self.max_download_size = max_download_size
        self.transport = transport

    @classmethod
    def supported_extensions(cls) -> List[str]:
        """対応している拡張子のリストを返す."""
        return list(cls.SUPPORTED_EXTENSIONS)

    @classmethod
    def is_supported_file(cls, path: Union[str, Path]) -> bool:
        """拡張子が対応しているかどうか判定する."""
        suffix = Path(path).suffix.lstrip(".").lower()
        return suffix in cls.SUPPORTED_EXTENSIONS

    @staticmethod
    def is_url(value: str) -> bool:
        """文字列がHTTP/HTTPSのURLかどうか判定する."""
        return urlparse(value).scheme in ("http", "https")

    @staticmethod
    def create_new_file() -> FileContent:
        """空の新規ファイルを作成する."""
        return FileContent(
            id=str(uuid.uuid4()),
            name="Untitled",
            path=None,
            content="",
            last_modified=None,
            is_saved=False,
            file_type=FileType.MARKDOWN,
        )

    def load_file(self, path: Union[str, Path]) -> FileContent:
        """
        ローカルファイルを読み込む.

        Args:
            path: ファイルパス

        Returns:
            読み込んだファイル

        Raises:
            FileNotFoundError: ファイルが存在しない
            UnsupportedFileTypeError: 対応していない拡張子
        """
        file_path = Path(path).expanduser()

        if not file_path.is_file():
            raise FileNotFoundError(f"File not found: {file_path}")

        if not self.is_supported_file(file_path):
            raise UnsupportedFileTypeError(
                f"Unsupported file type: '{file_path.suffix}'. "
                f"Supported extensions: {', '.join(self.SUPPORTED_EXTENSIONS)}"
            )

        content = file_path.read_text(encoding="utf-8")
        last_modified = datetime.fromtimestamp(file_path.stat().st_mtime)

        logger.info("Loaded %s (%d chars)", file_path, len(content))

        return FileContent(
            id=str(uuid.uuid4()),
            name=file_path.name,
            path=str(file_path.absolute()),
            content=content,
            last_modified=last_modified,
            is_saved=True,
            file_type=FileType.from_extension(file_path.suffix),
        )

    async def download_file(self, url: str) -> FileContent:
        """
        URLからファイルを読み込む.

        Args:
            url: ファイルのURL（HTTP/HTTPS）

        Returns:
            読み込んだファイル（pathはURL、保存済み扱い）

        Raises:
            FileDownloadError: ダウンロード失敗・タイムアウト・不正なURL
            FileSizeExceededError: ファイルサイズが制限超過
        """
        parsed_url = urlparse(url)
        if parsed_url.scheme not in ("http", "https") or not parsed_url.netloc:
            raise FileDownloadError(f"Invalid URL: {url}")

        filename = Path(parsed_url.path).name or "Untitled.md"

        try:
            async with httpx.AsyncClient(
                timeout=self.download_timeout, transport=self.transport
            ) as client:
                async with client.stream("GET", url, follow_redirects=True) as response:
                    response.raise_for_status()

                    # 不正なContent-Lengthは無視（ストリーミング中のチェックで制限）
                    try:
                        content_length = int(response.headers.get("content-length", ""))
                    except ValueError:
                        content_length = None
                    if content_length is not None and content_length > self.max_download_size:
                        raise FileSizeExceededError(
                            f"File size ({content_length} bytes) exceeds "
                            f"maximum allowed size ({self.max_download_size} bytes)"
                        )

                    # ストリーミングでサイズを監視
                    chunks = []
                    downloaded_size = 0
                    async for chunk in response.aiter_bytes(chunk_size=8192):
                        downloaded_size += len(chunk)
                        if downloaded_size > self.max_download_size:
                            raise FileSizeExceededError(
                                f"File size exceeds maximum allowed size "
                                f"({self.max_download_size} bytes)"
                            )
                        chunks.append(chunk)

        except httpx.TimeoutException as e:
            raise FileDownloadError(
                f"Download timed out after {self.download_timeout} seconds: {url}"
            ) from e
        except httpx.HTTPStatusError as e:
            raise FileDownloadError(
                f"HTTP error {e.response.status_code} while downloading: {url}"
            ) from e
        except httpx.HTTPError as e:
            raise FileDownloadError(f"Failed to download {url}: {e}") from e

        content = b"".join(chunks).decode("utf-8", errors="replace")
        logger.info("Downloaded %s (%d bytes)", url, downloaded_size)

        return FileContent(
            id=str(uuid.uuid4()),
            name=filename,
            path=url,
            content=content,
            last_modified=None,
            is_saved=True,
            file_type=FileType.from_extension(Path(filename).suffix),
        )

    def save_file(self, content: str, target_path: Optional[str]) -> SaveResult:
        """
        ファイルを保存する.

        保存先が未指定の場合はキャンセル扱い（エラーなし・結果なし）。
        書き込みエラーは例外ではなくSaveResultのerrorで返す。

        Args:
            content: 保存する内容
            target_path: 保存先パス

        Returns:
            保存結果
        """
        if not target_path:
            logger.info("Save cancelled: no target path")
            return SaveResult(success=False, file_path=None, error=None)

        path = Path(target_path).expanduser().absolute()

        try:
            with self._atomic_write(path) as temp_path:
                temp_path.write_text(content, encoding="utf-8")
        except OSError as e:
            logger.warning("Failed to save %s: %s", path, e)
            return SaveResult(success=False, file_path=None, error=f"Failed to save file: {e}")

        logger.info("Saved %s (%d chars)", path, len(content))
        return SaveResult(success=True, file_path=str(path), error=None)

    @staticmethod
    def check_file_modified(path: Union[str, Path], last_modified: Optional[datetime]) -> bool:
        """
        ファイルが外部で変更されたかどうか判定する.

        タイムゾーン付きの日時はUTCに揃えて比較し、タイムゾーン無しの日時は
        ローカル時刻として扱う。

        Raises:
            FileNotFoundError: ファイルが存在しない
            OSError: ファイル情報を取得できない
        """
        if last_modified is None:
            return False
        mtime = Path(path).expanduser().stat().st_mtime
        if last_modified.tzinfo is not None:
            current = datetime.fromtimestamp(mtime, tz=timezone.utc)
            return current > last_modified.astimezone(timezone.utc)
        return datetime.fromtimestamp(mtime) > last_modified

    @contextmanager
    def _atomic_write(self, path: Path) -> Generator[Path, None, None]:
        """
        同じディレクトリの一時ファイルに書き込み、成功時に置き換える.

        Yields:
            Path: 書き込み先の一時ファイルパス
        """
        fd, temp_name = tempfile.mkstemp(prefix=".parch_", dir=str(path.parent))
        os.close(fd)
        temp_path = Path(temp_name)
        try:
            yield temp_path
            # 保存先がディレクトリの場合はOSErrorになる
            os.replace(temp_path, path)
        finally:
            # クリーンアップ（失敗時のみ一時ファイルが残る）
            if temp_path.exists():
                temp_path.unlink()
