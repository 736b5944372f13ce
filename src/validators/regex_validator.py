"""正規表現ベースのMermaidバリデータ."""

import re
from typing import List, Optional

from src.models.diagram_schemas import Diagnostic, ValidationResult
from src.validators.diagram_classifier import DiagramClassifier, first_line


class RegexValidator:
    """
    正規表現ベースのMermaid構文検証.

    宣言行・括弧の対応・ノードIDの3種類を検査する。括弧の対応は行単位で
    検査し、複数行にまたがる括弧は解決しない。
    """

    # 開き括弧 → 対応する閉じ括弧
    BRACKET_PAIRS = {'(': ')', '[': ']', '{': '}'}
    CLOSING_BRACKETS = frozenset(BRACKET_PAIRS.values())

    NODE_ID_PATTERN = re.compile(r'\b([A-Za-z_][A-Za-z0-9_]*)\s*[\[(]')
    MAX_NODE_ID_LENGTH = 50

    def __init__(self, classifier: Optional[DiagramClassifier] = None):
        """初期化."""
        self.classifier = classifier or DiagramClassifier()

    def validate(self, mermaid_code: str, start_line: int = 1) -> ValidationResult:
        """
        Mermaidコードを検証する.

        診断は 宣言行 → 各行（括弧 → ノードID）の順に並ぶ。

        Args:
            mermaid_code: Mermaidダイアグラムコード（フェンス行を除く）
            start_line: コードの1行目の行番号（入力全体での1始まり）

        Returns:
            バリデーション結果（errorの診断が無ければ有効）
        """
        # 空のコードは他の検査をせずに終了
        if not mermaid_code.strip():
            return ValidationResult.from_diagnostics([
                Diagnostic(line=start_line, message="Empty diagram content", severity="error")
            ])

        diagnostics: List[Diagnostic] = []

        declaration = first_line(mermaid_code)
        if not self.classifier.is_valid_declaration(declaration):
            diagnostics.append(Diagnostic(
                line=start_line,
                message=f"Invalid diagram declaration: '{declaration}'",
                severity="error",
            ))

        for offset, line in enumerate(mermaid_code.split('\n')):
            line_number = start_line + offset

            if self._has_unmatched_brackets(line):
                diagnostics.append(Diagnostic(
                    line=line_number,
                    message="Unmatched brackets detected",
                    severity="warning",
                ))

            if self._has_invalid_node_id(line):
                diagnostics.append(Diagnostic(
                    line=line_number,
                    message="Invalid characters in node ID",
                    severity="warning",
                ))

        return ValidationResult.from_diagnostics(diagnostics)

    def _has_unmatched_brackets(self, line: str) -> bool:
        """行内の括弧の対応をチェックする."""
        expected: List[str] = []

        for char in line:
            if char in self.BRACKET_PAIRS:
                expected.append(self.BRACKET_PAIRS[char])
            elif char in self.CLOSING_BRACKETS:
                if not expected or expected.pop() != char:
                    return True

        return bool(expected)

    def _has_invalid_node_id(self, line: str) -> bool:
        """不正なノードIDが含まれるかチェックする."""
        for match in self.NODE_ID_PATTERN.finditer(line):
            node_id = match.group(1)
            if (
                len(node_id) > self.MAX_NODE_ID_LENGTH
                or '--' in node_id
                or node_id.startswith('__')
            ):
                return True
        return False
