"""app_info MCPツールの実装."""

from importlib import metadata
from typing import Dict, Any

from src.models.schemas import AppInfo


DISTRIBUTION_NAME = "parch-mcp-server"
DEFAULT_DESCRIPTION = "MCP server for extracting and validating Mermaid diagrams in Markdown"


async def app_info() -> Dict[str, Any]:
    """
    アプリケーション名・バージョン・説明を返す.
    
    パッケージ未インストール時（ソースから直接起動時）はバージョンを "0.0.0" とする。
    """
    try:
        dist = metadata.metadata(DISTRIBUTION_NAME)
        version = dist["Version"]
        description = dist.get("Summary") or DEFAULT_DESCRIPTION
    except metadata.PackageNotFoundError:
        version = "0.0.0"
        description = DEFAULT_DESCRIPTION
    
    return AppInfo(name=DISTRIBUTION_NAME, version=version, description=description).model_dump()
