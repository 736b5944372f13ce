"""Mermaidダイアグラムの種類判定."""

import re
from typing import Tuple


# ダイアグラム種類のシグネチャ（先に一致したものを優先するため順序固定）
DIAGRAM_SIGNATURES: Tuple[Tuple[str, re.Pattern], ...] = tuple(
    (diagram_type, re.compile(pattern))
    for diagram_type, pattern in (
        ("flowchart", r"^\s*(?:graph|flowchart)\s+(?:TD|TB|BT|RL|LR|TOP|BOTTOM|LEFT|RIGHT)"),
        ("sequence", r"^\s*sequenceDiagram"),
        ("class", r"^\s*classDiagram"),
        ("state", r"^\s*stateDiagram(?:-v2)?"),
        ("er", r"^\s*erDiagram"),
        ("gantt", r"^\s*gantt"),
        ("pie", r"^\s*pie(?:\s+title)?"),
        ("journey", r"^\s*journey"),
        ("gitgraph", r"^\s*gitgraph"),
        ("requirement", r"^\s*requirementDiagram"),
        ("c4context", r"^\s*C4Context"),
        ("mindmap", r"^\s*mindmap"),
        ("timeline", r"^\s*timeline"),
    )
)

# シグネチャに一致しなかった場合の部分一致判定（小文字で比較）
FALLBACK_KEYWORDS: Tuple[Tuple[Tuple[str, ...], str], ...] = (
    (("graph", "flowchart"), "flowchart"),
    (("sequencediagram",), "sequence"),
    (("classdiagram",), "class"),
    (("statediagram",), "state"),
    (("erdiagram",), "er"),
    (("gantt",), "gantt"),
    (("pie",), "pie"),
)

# 宣言行として許容する前方一致キーワード（小文字で比較）
DECLARATION_PREFIXES: Tuple[str, ...] = (
    "graph", "flowchart", "sequencediagram", "classdiagram", "statediagram",
    "erdiagram", "gantt", "pie", "journey", "gitgraph",
)

UNKNOWN_TYPE = "unknown"


def first_line(text: str) -> str:
    """テキストの1行目を前後の空白を除いて返す."""
    return text.split("\n", 1)[0].strip()


class DiagramClassifier:
    """
    ダイアグラムの1行目からMermaidの種類を判定する.

    シグネチャ表はモジュール読み込み時に一度だけコンパイルされ、
    全インスタンスで共有される（変更されない）.
    """

    def __init__(self):
        """初期化."""
        self._signatures = DIAGRAM_SIGNATURES

    def classify(self, text: str) -> str:
        """
        ダイアグラムの種類を判定する.

        Args:
            text: ダイアグラム本体（複数行可、1行目のみ参照）

        Returns:
            ダイアグラム種類。判定できない場合は "unknown"
        """
        line = first_line(text)

        for diagram_type, pattern in self._signatures:
            if pattern.match(line):
                return diagram_type

        # フォールバック: 部分一致で判定
        lowered = line.lower()
        for keywords, diagram_type in FALLBACK_KEYWORDS:
            if any(keyword in lowered for keyword in keywords):
                return diagram_type

        return UNKNOWN_TYPE

    def is_valid_declaration(self, line: str) -> bool:
        """宣言行として妥当かどうか（シグネチャ一致または前方一致）."""
        if any(pattern.match(line) for _, pattern in self._signatures):
            return True
        return line.lower().startswith(DECLARATION_PREFIXES)
