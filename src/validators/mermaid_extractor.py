"""Mermaidコードブロック抽出と検証."""

import logging
import time
import uuid
from collections import Counter
from typing import List, Optional, Tuple

from src.models.diagram_schemas import (
    DiagramRecord,
    DiagramStats,
    ParseResult,
    ValidationResult,
)
from src.validators.diagram_classifier import DiagramClassifier
from src.validators.regex_validator import RegexValidator


logger = logging.getLogger(__name__)


class MermaidExtractor:
    """Markdown内のMermaidコードブロックを抽出し、種類判定と検証を行う."""

    # コードブロック開始マーカー（前後の空白を除いた行の先頭と比較）
    FENCE_OPENERS = ("```mermaid", "```mmd")
    FENCE_CLOSER = "```"

    def __init__(
        self,
        classifier: Optional[DiagramClassifier] = None,
        validator: Optional[RegexValidator] = None,
    ):
        """初期化."""
        self.classifier = classifier or DiagramClassifier()
        self.validator = validator or RegexValidator(self.classifier)

    def extract(self, content: str) -> ParseResult:
        """
        テキストから全てのMermaidコードブロックを抽出する.

        1行ずつ走査し、開始マーカーの次の行から終了マーカーの前の行までを
        1つのダイアグラムとして扱う。閉じられていないブロックは入力の
        最終行までをダイアグラムとする（未閉鎖であること自体はエラーにしない）。
        本体が0行のブロックは結果に含めない。

        Args:
            content: Markdown形式のコンテンツ

        Returns:
            文書順のダイアグラムリスト、error診断数の合計、処理時間
        """
        start_time = time.perf_counter()

        diagrams: List[DiagramRecord] = []
        total_errors = 0
        lines = self._split_lines(content)

        in_block = False
        block_lines: List[str] = []
        start_line = 0

        for index, line in enumerate(lines):
            stripped = line.strip()

            # コードブロック開始（ブロック内でも開始し直す）
            if stripped.startswith(self.FENCE_OPENERS):
                in_block = True
                start_line = index + 2  # 開始マーカーの次の行（1始まり）
                block_lines = []
                continue

            # コードブロック終了
            if in_block and stripped == self.FENCE_CLOSER:
                if block_lines:
                    diagram, validation = self._build_diagram(block_lines, start_line, end_line=index)
                    diagrams.append(diagram)
                    total_errors += validation.error_count
                in_block = False
                block_lines = []
                continue

            if in_block:
                block_lines.append(line)

        # 未閉鎖のブロック
        if in_block and block_lines:
            diagram, validation = self._build_diagram(block_lines, start_line, end_line=len(lines))
            diagrams.append(diagram)
            total_errors += validation.error_count

        parsing_time_ms = int((time.perf_counter() - start_time) * 1000)
        logger.debug(
            "Extracted %d diagram(s) with %d error(s) in %d ms",
            len(diagrams), total_errors, parsing_time_ms,
        )

        return ParseResult(
            diagrams=diagrams,
            total_errors=total_errors,
            parsing_time_ms=parsing_time_ms,
        )

    def validate(self, mermaid_code: str, start_line: int = 1) -> ValidationResult:
        """ダイアグラム本体を検証する（RegexValidatorに委譲）."""
        return self.validator.validate(mermaid_code, start_line)

    def detect_type(self, mermaid_code: str) -> str:
        """ダイアグラムの種類を判定する（DiagramClassifierに委譲）."""
        return self.classifier.classify(mermaid_code)

    def get_stats(self, content: str) -> DiagramStats:
        """
        抽出結果の統計情報を返す.

        Args:
            content: Markdown形式のコンテンツ

        Returns:
            ダイアグラム数、error診断数、処理時間、種類ごとの件数
        """
        result = self.extract(content)
        type_counts = Counter(diagram.diagram_type for diagram in result.diagrams)

        return DiagramStats(
            total_diagrams=len(result.diagrams),
            total_errors=result.total_errors,
            parsing_time_ms=result.parsing_time_ms,
            diagram_types=dict(type_counts),
        )

    def _build_diagram(
        self,
        block_lines: List[str],
        start_line: int,
        end_line: int,
    ) -> Tuple[DiagramRecord, ValidationResult]:
        """収集した行から種類判定と検証を行い、ダイアグラムを生成する."""
        code = '\n'.join(block_lines)
        diagram_type = self.classifier.classify(code)
        validation = self.validator.validate(code, start_line)

        diagram = DiagramRecord(
            id=str(uuid.uuid4()),
            diagram_type=diagram_type,
            content=code,
            start_line=start_line,
            end_line=end_line,
            has_error=not validation.is_valid,
            error_message=validation.errors[0].message if validation.errors else None,
        )
        return diagram, validation

    @staticmethod
    def _split_lines(content: str) -> List[str]:
        """改行で分割する（行末のCRを除去し、末尾の改行では空行を作らない）."""
        if not content:
            return []
        lines = content.split('\n')
        if lines[-1] == '':
            lines.pop()
        return [line[:-1] if line.endswith('\r') else line for line in lines]
