"""Instruction prompt sent to the CLI alongside the piped input text."""

from __future__ import annotations

from md_memo.models import TransformIntent, TransformMode, TransformRequest

INTENT_LABELS: dict[TransformIntent, str] = {
    TransformIntent.MEETING: "会議メモ",
    TransformIntent.REQUIREMENTS: "要件メモ",
    TransformIntent.INCIDENT: "インシデント記録",
    TransformIntent.STUDY: "学習ノート",
    TransformIntent.DRAFT_ARTICLE: "記事下書き",
    TransformIntent.CHAT_SUMMARY: "チャット要約",
    TransformIntent.GENERIC: "汎用メモ",
}
DEFAULT_INTENT_LABEL = "自動判定"

MODE_INSTRUCTIONS: dict[TransformMode, str] = {
    TransformMode.STRICT: "厳密に原文に忠実に整理してください。",
    TransformMode.COMPACT: "簡潔にまとめてください。",
    TransformMode.VERBOSE: "詳細に展開してください。",
}
DEFAULT_MODE_INSTRUCTION = "バランスよく整理してください。"

_RAW_SECTION_INCLUDED = (
    "最後に「---」の後に「## 原文」セクションとして入力テキストをそのまま含めてください。"
)
_RAW_SECTION_OMITTED = "原文セクションは不要です。"

_PROMPT_TEMPLATE = """\
あなたはメモ整形アシスタントです。入力されたテキストを以下のMarkdown構造に変換してください。

## 出力テンプレート（必須）:
1. # タイトル（形式: YYYY-MM-DD HH:mm_推定タイトル、推定タイトルは最大30文字）
2. ## サマリー
3. ## 要点
4. ## 詳細
5. ## 不明点 / 要確認

## 任意セクション（内容がある場合のみ）:
- ## 決定事項 / 結論
- ## TODO / 次アクション（TODOは - [ ] 形式）
- ## 参照 / リンク

{raw_section}

## ルール:
- 推測で情報を補完しない（不明な点は「不明点」に記載）
- 固有名詞・専門用語は原文のまま維持
- 文書の種類: {intent_label}
- {mode_instruction}
{title_hint}

入力テキストが標準入力から渡されます。Markdownのみを出力してください。説明や前置きは不要です。
"""


def intent_label(intent: TransformIntent) -> str:
    return INTENT_LABELS.get(intent, DEFAULT_INTENT_LABEL)


def mode_instruction(mode: TransformMode) -> str:
    return MODE_INSTRUCTIONS.get(mode, DEFAULT_MODE_INSTRUCTION)


def build_prompt(request: TransformRequest) -> str:
    """Render the instruction prompt; identical requests give identical prompts."""

    title_hint = ""
    if request.title_hint is not None and request.title_hint.strip():
        title_hint = f"タイトルのヒント: {request.title_hint.strip()}"

    return _PROMPT_TEMPLATE.format(
        raw_section=_RAW_SECTION_INCLUDED if request.include_raw else _RAW_SECTION_OMITTED,
        intent_label=intent_label(request.intent),
        mode_instruction=mode_instruction(request.mode),
        title_hint=title_hint,
    )
