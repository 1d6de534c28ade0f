"""Prompt templating helpers for Latin sentence generation."""
from __future__ import annotations
import re
from dataclasses import dataclass, field
from pathlib import Path

WORDS_MODES = {
    "study": "using only words from daily review (including suspended words) and selected grammar concepts",
    "learn": "introducing one word or grammar concept at a time",
}

DIFFICULTIES = {
    "easy": "simple sentences with basic vocabulary and grammar",
    "medium": "moderate complexity with varied sentence structures",
    "hard": "complex sentences with advanced grammar and vocabulary",
}

DEFAULT_TEMPLATE = """Generate a Latin sentence {{mode}}. The difficulty should be {{difficulty}}: {{difficulty_description}}.{{focus}}

Please provide:
1. A Latin sentence
2. English translation
3. Brief explanation of grammar concepts used

Format your response as:
**Latin:** [sentence]
**English:** [translation]
**Grammar:** [explanation]"""


@dataclass
class StudySettings:
    """Study parameters chosen in the app's sentence generator settings."""
    words_mode: str = "study"
    difficulty: str = "easy"
    focus_vocab: list[str] = field(default_factory=list)
    focus_grammar: list[str] = field(default_factory=list)
    custom_prompt: str | None = None

    def __post_init__(self) -> None:
        if self.words_mode not in WORDS_MODES:
            raise ValueError(f"words_mode must be one of {sorted(WORDS_MODES)}")
        if self.difficulty not in DIFFICULTIES:
            raise ValueError(f"difficulty must be one of {sorted(DIFFICULTIES)}")


@dataclass
class ParsedSentence:
    sentence: str
    translation: str
    explanation: str = ""


class SentenceParseError(ValueError):
    """Raised when generated text lacks the Latin or English section."""


def load_template(path: str | Path | None = None) -> str:
    """
    Load a prompt template file.

    Args:
        path: Path to template; the built-in template when omitted.
    """
    if path is None:
        return DEFAULT_TEMPLATE
    return Path(path).read_text(encoding="utf-8")


def render_prompt(template: str, values: dict[str, str]) -> str:
    """
    Render values into the template.

    Args:
        template: Template content containing {{name}} placeholders.
        values: Replacement text per placeholder name.

    Returns:
        Rendered prompt.
    """
    out = template
    for name, value in values.items():
        out = out.replace("{{" + name + "}}", value)
    return out


def build_prompt(settings: StudySettings, template: str | None = None) -> str:
    """Compose the generation prompt from study settings."""
    focus = ""
    if settings.focus_vocab:
        focus += f"\n\nFocus on vocabulary from: {', '.join(settings.focus_vocab)}"
    if settings.focus_grammar:
        focus += f"\n\nEmphasize these grammar concepts: {', '.join(settings.focus_grammar)}"
    if settings.custom_prompt and settings.custom_prompt.strip():
        focus += f"\n\nAdditional instructions: {settings.custom_prompt.strip()}"
    return render_prompt(
        template or DEFAULT_TEMPLATE,
        {
            "mode": WORDS_MODES[settings.words_mode],
            "difficulty": settings.difficulty,
            "difficulty_description": DIFFICULTIES[settings.difficulty],
            "focus": focus,
        },
    )


def _section(label: str, text: str) -> str | None:
    match = re.search(rf"\*\*{label}:\*\*\s*(.+?)(?=\*\*|\Z)", text, re.DOTALL)
    return match.group(1).strip() if match else None


def parse_sentence(text: str) -> ParsedSentence:
    """Split generated text into sentence, translation and grammar notes."""
    latin = _section("Latin", text)
    english = _section("English", text)
    if not latin or not english:
        raise SentenceParseError("Could not parse response format")
    return ParsedSentence(sentence=latin, translation=english, explanation=_section("Grammar", text) or "")
