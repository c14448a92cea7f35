"""Deterministic recovery of unfenced code, log and config regions."""

from __future__ import annotations

import re

from md_review.analysis.lexical import split_lines, truncate_preview
from md_review.types import CodeRecoveryResult, CodeRecoverySuggestion

_SHELL_PREFIX = re.compile(r"^\s*(\$|>|npm|pnpm|yarn|bun|node|npx|git|curl)\b", re.IGNORECASE)
_CODE_SYNTAX = re.compile(
    r"(=>|::|[{}\[\]();]|</?[a-z]+>|^[a-z_][a-z0-9_]*\s*=|`|import\s+|export\s+"
    r"|function\s+|const\s+|let\s+)",
    re.IGNORECASE,
)
_DEEP_INDENT = re.compile(r"^\s{4,}\S")
_SHALLOW_INDENT = re.compile(r"^\s{2,}\S")
_BULLET = re.compile(r"^[-*+]\s+")
_ORDERED = re.compile(r"^\d+[.)]\s+")
_SENTENCE_END = re.compile(r"[.!?。！？]$")
_CODE_PUNCTUATION = re.compile(r"[{}\[\]();=<>]")
_FENCE = re.compile(r"^\s*(```|~~~)")
_LIST_LINE = re.compile(r"^\s*(?:[-*+]|\d+[.)])\s+")
_COMMAND_START = re.compile(r"^\s*(\$|npm|pnpm|yarn|bun|node|npx|git|curl)\b", re.IGNORECASE)

# (language, predicate) pairs, evaluated in order; first match wins.
_JSON_PAIR = re.compile(r'"\s*:')
_JSON_START = re.compile(r"^\s*[{\[]")
_SHELL_LINE = re.compile(r"^\s*(\$|npm|pnpm|yarn|bun|node|npx|git|curl)\b", re.IGNORECASE | re.MULTILINE)
_HTML_TAG = re.compile(r"</?[a-z][^>]*>", re.IGNORECASE)
_JS_BINDING = re.compile(r"\b(import|export|const|let)\b")
_PYTHON = re.compile(r"\b(def\s+\w+|class\s+\w+|from\s+\w+\s+import|print\s*\()")
_GO = re.compile(r"\b(func\s+\w+|package\s+\w+|fmt\.\w+)")
_RUST = re.compile(r"\b(fn\s+\w+|let\s+mut\s|impl\s+\w+|pub\s+fn)")
_CSHARP = re.compile(r"\b(using\s+\w+|namespace\s+\w+|public\s+(class|void|static))")
_SQL = re.compile(
    r"\b(SELECT\s+.+\s+FROM|INSERT\s+INTO|UPDATE\s+\w+\s+SET|CREATE\s+TABLE)\b", re.IGNORECASE
)
_CSS_RULE = re.compile(r"[.#]?[a-z][\w-]*\s*\{[^}]*:[^}]+\}", re.IGNORECASE)
_JS_CALLABLE = re.compile(r"\b(function|const|let|var)\b")
_TS_KEYWORD = re.compile(r"\b(import|export|const|let|function|interface|type|await)\b")
_YAML_PAIR = re.compile(r"^\s*[A-Za-z0-9_-]+\s*:\s*\S+", re.MULTILINE)
_BRACES = re.compile(r"[{};]")

START_SCORE_STRONG = 0.7
START_SCORE_PAIRED = 0.45
START_NEXT_SCORE = 0.35
INDENTED_START_SCORE = 0.35
CONTINUE_SCORE = 0.33
BLANK_BRIDGE_SCORE = 0.4
LIST_OVERRIDE_SCORE = 0.55
MAX_CONFIDENCE = 0.95


def line_code_score(line: str) -> float:
    """Score how likely one line is code, clamped to [0, 1]."""
    trimmed = line.strip()
    if not trimmed:
        return 0.0
    score = 0.0
    if _SHELL_PREFIX.search(trimmed):
        score += 0.55
    if _CODE_SYNTAX.search(trimmed):
        score += 0.4
    if _DEEP_INDENT.search(line):
        score += 0.35
    if _BULLET.search(trimmed) or _ORDERED.search(trimmed):
        score -= 0.2
    if _SENTENCE_END.search(trimmed) and not _CODE_PUNCTUATION.search(trimmed):
        score -= 0.2
    return max(0.0, min(1.0, score))


def detect_code_language(lines: list[str]) -> str:
    """Return a fence language tag for a block, or "" when nothing matches."""
    joined = "\n".join(lines)
    first = next((line for line in lines if line.strip()), "")

    if _JSON_START.search(first) and _JSON_PAIR.search(joined):
        return "json"
    if _SHELL_LINE.search(joined):
        return "bash"
    if _HTML_TAG.search(joined) and not _JS_BINDING.search(joined):
        return "html"
    if _PYTHON.search(joined):
        return "python"
    if _GO.search(joined):
        return "go"
    if _RUST.search(joined):
        return "rust"
    if _CSHARP.search(joined):
        return "csharp"
    if _SQL.search(joined):
        return "sql"
    if _CSS_RULE.search(joined) and not _JS_CALLABLE.search(joined):
        return "css"
    if _TS_KEYWORD.search(joined):
        return "ts"
    if _YAML_PAIR.search(joined) and not _BRACES.search(joined):
        return "yaml"
    return ""


def _is_fence_line(line: str) -> bool:
    return bool(_FENCE.search(line))


def _is_list_line(line: str) -> bool:
    return bool(_LIST_LINE.search(line))


def _should_start_block(line: str, next_line: str | None) -> bool:
    trimmed = line.strip()
    if not trimmed or _is_list_line(line):
        return False
    score = line_code_score(line)
    next_score = line_code_score(next_line) if next_line is not None else 0.0
    if _DEEP_INDENT.search(line) and score >= INDENTED_START_SCORE:
        return True
    if _COMMAND_START.search(trimmed):
        return True
    if score >= START_SCORE_STRONG:
        return True
    return score >= START_SCORE_PAIRED and next_score >= START_NEXT_SCORE


def _should_continue_block(line: str, next_line: str | None) -> bool:
    # an existing fence always ends the recovered region
    if _is_fence_line(line):
        return False
    if not line.strip():
        return (
            next_line is not None
            and not _is_fence_line(next_line)
            and line_code_score(next_line) >= BLANK_BRIDGE_SCORE
        )
    score = line_code_score(line)
    if _is_list_line(line) and score < LIST_OVERRIDE_SCORE:
        return False
    return score >= CONTINUE_SCORE or bool(_SHALLOW_INDENT.search(line))


def recover_code_blocks(
    text: str,
    *,
    include_recovered_markdown: bool = False,
    max_suggestions: int = 20,
    preview_chars: int = 180,
) -> CodeRecoveryResult:
    """Wrap probable code regions that sit outside any fence.

    Lines inside an existing fence are passed through untouched, so running
    the pass on its own output changes nothing further.
    """
    max_suggestions = max(1, max_suggestions)
    lines = split_lines(text)
    output: list[str] = []
    suggestions: list[CodeRecoverySuggestion] = []
    in_fence = False
    recovered = 0
    candidate_lines = 0
    index = 0

    def _at(position: int) -> str | None:
        return lines[position] if position < len(lines) else None

    while index < len(lines):
        line = lines[index]
        if _is_fence_line(line):
            in_fence = not in_fence
            output.append(line)
            index += 1
            continue

        if in_fence or not _should_start_block(line, _at(index + 1)):
            output.append(line)
            index += 1
            continue

        start = end = index
        while end + 1 < len(lines) and _should_continue_block(lines[end + 1], _at(end + 2)):
            end += 1
        block = lines[start : end + 1]
        language = detect_code_language(block)
        confidence = min(
            MAX_CONFIDENCE,
            0.5 + sum(line_code_score(item) for item in block) / max(1, len(block)),
        )

        output.append(f"```{language}")
        output.extend(block)
        output.append("```")

        recovered += 1
        candidate_lines += len(block)
        if len(suggestions) < max_suggestions:
            suggestions.append(
                CodeRecoverySuggestion(
                    start_line=start + 1,
                    end_line=end + 1,
                    language=language,
                    confidence=confidence,
                    preview=truncate_preview("\n".join(block), preview_chars),
                )
            )
        index = end + 1

    recovered_markdown = "\n".join(output)
    return CodeRecoveryResult(
        changed=recovered_markdown != text,
        recovered_block_count=recovered,
        candidate_line_count=candidate_lines,
        suggestions=tuple(suggestions),
        recovered_markdown=recovered_markdown if include_recovered_markdown else None,
    )
