"""Mermaidダイアグラム抽出・検証用スキーマ定義."""

from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


Severity = Literal["error", "warning", "info"]


class Diagnostic(BaseModel):
    """単一の検証結果（位置・メッセージ・重大度）."""

    model_config = ConfigDict(frozen=True)

    line: int = Field(description="行番号（入力全体での1始まり）")
    column: int = Field(default=1, description="列番号（1始まり、特定できない場合は1）")
    message: str = Field(description="メッセージ")
    severity: Severity = Field(description="重大度（error, warning, info）")


class ValidationResult(BaseModel):
    """ダイアグラム1件のバリデーション結果."""

    is_valid: bool = Field(description="errorの診断が無い場合True")
    errors: List[Diagnostic] = Field(default_factory=list, description="診断のリスト（検出順）")

    @classmethod
    def from_diagnostics(cls, diagnostics: List[Diagnostic]) -> "ValidationResult":
        """診断リストから有効性を導出して生成する."""
        return cls(
            is_valid=all(d.severity != "error" for d in diagnostics),
            errors=list(diagnostics),
        )

    @property
    def error_count(self) -> int:
        """重大度errorの診断数."""
        return sum(1 for d in self.errors if d.severity == "error")


class DiagramRecord(BaseModel):
    """抽出されたMermaidコードブロック1件."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="抽出時に割り当てる一意なID（UUID）")
    diagram_type: str = Field(description="ダイアグラムの種類（flowchart, sequence等、不明な場合unknown）")
    content: str = Field(description="フェンス行を除いたコードブロック本体")
    start_line: int = Field(description="本体の開始行番号（1始まり）")
    end_line: int = Field(description="本体の終了行番号（1始まり）")
    has_error: bool = Field(description="errorの診断がある場合True")
    error_message: Optional[str] = Field(default=None, description="最初の診断のメッセージ")


class ParseResult(BaseModel):
    """テキスト全体の抽出結果."""

    diagrams: List[DiagramRecord] = Field(default_factory=list, description="文書順のダイアグラムリスト")
    total_errors: int = Field(default=0, description="全ダイアグラムのerror診断数の合計")
    parsing_time_ms: int = Field(default=0, description="処理時間（ミリ秒）")


class DiagramStats(BaseModel):
    """抽出結果の統計情報."""

    total_diagrams: int = Field(description="ダイアグラム数")
    total_errors: int = Field(description="error診断数の合計")
    parsing_time_ms: int = Field(description="処理時間（ミリ秒）")
    diagram_types: Dict[str, int] = Field(default_factory=dict, description="種類ごとのダイアグラム数")
