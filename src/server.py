"""Parch MCP Server - メインサーバー実装."""

import asyncio
import json
import logging
import os
import sys
from typing import Any

from mcp.server import Server
from mcp.types import Tool, TextContent
import mcp.server.stdio

from src.tools import app_info, files, parse_mermaid, settings, validate_mermaid


logger = logging.getLogger(__name__)

# サーバーインスタンス
server = Server("parch-mcp-server")


_CONTENT_SCHEMA = {
    "type": "object",
    "properties": {
        "content": {
            "type": "string",
            "description": "Markdown content containing ```mermaid / ```mmd code blocks",
        },
    },
    "required": ["content"],
}

_EMPTY_SCHEMA = {"type": "object", "properties": {}}


@server.list_tools()
async def list_tools() -> list[Tool]:
    """
    利用可能なMCPツールの一覧を返す.

    Returns:
        ツール定義のリスト
    """
    return [
        Tool(
            name="mermaid_parse",
            description=(
                "Extract every Mermaid code block (```mermaid or ```mmd) from Markdown content, "
                "classify its diagram type and validate its syntax. "
                "Returns diagrams with 1-indexed line ranges, total error count and parsing time."
            ),
            inputSchema=_CONTENT_SCHEMA,
        ),
        Tool(
            name="mermaid_validate",
            description=(
                "Validate a single Mermaid diagram (without fence lines). "
                "Returns is_valid and a list of diagnostics with line, column, message and severity."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "content": {
                        "type": "string",
                        "description": "Mermaid diagram source",
                    },
                    "start_line": {
                        "type": "integer",
                        "description": "Line number of the first diagram line (default: 1)",
                        "minimum": 1,
                    },
                },
                "required": ["content"],
            },
        ),
        Tool(
            name="mermaid_detect_type",
            description=(
                "Detect the Mermaid diagram type (flowchart, sequence, class, state, er, gantt, pie, "
                "journey, gitgraph, requirement, c4context, mindmap, timeline or unknown) "
                "from the first line of a diagram."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "content": {
                        "type": "string",
                        "description": "Mermaid diagram source",
                    },
                },
                "required": ["content"],
            },
        ),
        Tool(
            name="mermaid_get_stats",
            description="Count Mermaid diagrams in Markdown content by type, with total error count.",
            inputSchema=_CONTENT_SCHEMA,
        ),
        Tool(
            name="file_new",
            description="Create a new empty, unsaved Markdown document.",
            inputSchema=_EMPTY_SCHEMA,
        ),
        Tool(
            name="file_open",
            description=(
                "Open a .md, .mmd or .mermaid file from a local path or an HTTP/HTTPS URL. "
                "An empty path is treated as a cancelled dialog."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "path": {
                        "type": "string",
                        "description": "File path or HTTP/HTTPS URL",
                    },
                },
            },
        ),
        Tool(
            name="file_save",
            description="Save content to a file. An empty target_path is treated as a cancelled dialog.",
            inputSchema={
                "type": "object",
                "properties": {
                    "content": {
                        "type": "string",
                        "description": "Content to save",
                    },
                    "target_path": {
                        "type": "string",
                        "description": "Destination file path",
                    },
                },
                "required": ["content"],
            },
        ),
        Tool(
            name="file_check_modified",
            description="Check whether a file was modified on disk after it was loaded.",
            inputSchema={
                "type": "object",
                "properties": {
                    "path": {
                        "type": "string",
                        "description": "File path",
                    },
                    "last_modified": {
                        "type": "string",
                        "description": "Modification time recorded when the file was loaded (ISO 8601)",
                    },
                },
                "required": ["path"],
            },
        ),
        Tool(
            name="settings_get",
            description="Read a value from the persistent settings store.",
            inputSchema={
                "type": "object",
                "properties": {
                    "key": {"type": "string", "description": "Setting key"},
                },
                "required": ["key"],
            },
        ),
        Tool(
            name="settings_set",
            description="Write a value to the persistent settings store and flush it to disk.",
            inputSchema={
                "type": "object",
                "properties": {
                    "key": {"type": "string", "description": "Setting key"},
                    "value": {"description": "Setting value"},
                },
                "required": ["key", "value"],
            },
        ),
        Tool(
            name="window_settings_get",
            description="Get persisted window settings (always on top, click through, opacity, geometry).",
            inputSchema=_EMPTY_SCHEMA,
        ),
        Tool(
            name="window_settings_update",
            description=(
                "Update persisted window settings. Opacity is clamped to 0.1-1.0 and "
                "split_pane_size to 0.1-0.9."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "always_on_top": {"type": "boolean"},
                    "click_through": {"type": "boolean"},
                    "opacity": {"type": "number"},
                    "position": {"type": "array", "items": {"type": "integer"}},
                    "size": {"type": "array", "items": {"type": "integer"}},
                    "split_pane_size": {"type": "number"},
                },
                "additionalProperties": False,
            },
        ),
        Tool(
            name="app_state_get",
            description="Get persisted application state (theme, panels, cursor, last file).",
            inputSchema=_EMPTY_SCHEMA,
        ),
        Tool(
            name="app_state_update",
            description="Update persisted application state.",
            inputSchema={
                "type": "object",
                "properties": {
                    "theme": {"type": "string", "enum": ["light", "dark"]},
                    "show_settings": {"type": "boolean"},
                    "active_diagram_index": {"type": "integer"},
                    "cursor_position": {"type": "array", "items": {"type": "integer"}},
                    "last_file_path": {"type": ["string", "null"]},
                    "last_file_content": {"type": ["string", "null"]},
                    "last_file_name": {"type": ["string", "null"]},
                    "has_unsaved_changes": {"type": "boolean"},
                    "show_tree_view": {"type": "boolean"},
                },
                "additionalProperties": False,
            },
        ),
        Tool(
            name="app_info",
            description="Get the server name, version and description.",
            inputSchema=_EMPTY_SCHEMA,
        ),
    ]


def _text_result(result: Any) -> list[TextContent]:
    """結果をJSON文字列として返す."""
    return [TextContent(type="text", text=json.dumps(result, indent=2, ensure_ascii=False))]


def _missing(*names: str) -> list[TextContent]:
    return [
        TextContent(
            type="text",
            text=f"Error: Missing required parameter(s) ({', '.join(names)})",
        )
    ]


@server.call_tool()
async def call_tool(name: str, arguments: dict) -> list[TextContent]:
    """
    MCPツールを実行する.

    Args:
        name: ツール名
        arguments: ツール引数

    Returns:
        実行結果
    """
    arguments = arguments or {}
    logger.debug("call_tool: %s", name)

    if name in ("mermaid_parse", "mermaid_validate", "mermaid_detect_type", "mermaid_get_stats"):
        # 空文字列も有効な入力（空のダイアグラムとして診断する）
        content = arguments.get("content")
        if content is None:
            return _missing("content")

        if name == "mermaid_parse":
            result = await parse_mermaid.parse_mermaid(content)
        elif name == "mermaid_validate":
            result = await validate_mermaid.validate_mermaid(
                content=content,
                start_line=arguments.get("start_line", 1),
            )
        elif name == "mermaid_detect_type":
            result = await parse_mermaid.detect_type(content)
        else:
            result = await parse_mermaid.get_stats(content)
        return _text_result(result)

    elif name == "file_new":
        return _text_result(await files.new_file())

    elif name == "file_open":
        return _text_result(await files.open_file(arguments.get("path")))

    elif name == "file_save":
        content = arguments.get("content")
        if content is None:
            return _missing("content")
        return _text_result(await files.save_file(content, arguments.get("target_path")))

    elif name == "file_check_modified":
        path = arguments.get("path")
        if not path:
            return _missing("path")
        return _text_result(await files.check_file_modified(path, arguments.get("last_modified")))

    elif name == "settings_get":
        key = arguments.get("key")
        if not key:
            return _missing("key")
        return _text_result(await settings.get_setting(key))

    elif name == "settings_set":
        key = arguments.get("key")
        if not key or "value" not in arguments:
            return _missing("key", "value")
        return _text_result(await settings.set_setting(key, arguments["value"]))

    elif name == "window_settings_get":
        return _text_result(await settings.get_window_settings())

    elif name == "window_settings_update":
        return _text_result(await settings.update_window_settings(arguments))

    elif name == "app_state_get":
        return _text_result(await settings.get_application_state())

    elif name == "app_state_update":
        return _text_result(await settings.update_application_state(arguments))

    elif name == "app_info":
        return _text_result(await app_info.app_info())

    else:
        return [TextContent(type="text", text=f"Error: Unknown tool '{name}'")]


def resolve_log_level() -> int:
    """環境変数PARCH_MCP_LOG_LEVELからログレベルを決める（不正な値はWARNING）."""
    level_name = os.environ.get("PARCH_MCP_LOG_LEVEL", "WARNING").upper()
    level = getattr(logging, level_name, None)
    if not isinstance(level, int):
        return logging.WARNING
    return level


def configure_logging() -> None:
    """ログ出力を設定する（標準出力はMCP通信に使うため標準エラーへ出力）."""
    logging.basicConfig(
        level=resolve_log_level(),
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


async def run_server():
    """MCPサーバーを起動する."""
    async with mcp.server.stdio.stdio_server() as (read_stream, write_stream):
        await server.run(
            read_stream,
            write_stream,
            server.create_initialization_options()
        )


def main():
    """エントリーポイント."""
    configure_logging()
    asyncio.run(run_server())


if __name__ == "__main__":
    main()
