from __future__ import annotations

from pathlib import Path

import pytest

from ludus_gateway.client.prompts import (
    SentenceParseError,
    StudySettings,
    build_prompt,
    load_template,
    parse_sentence,
    render_prompt,
)


def test_render_prompt_substitution() -> None:
    out = render_prompt("Hello {{name}}, {{name}}!", {"name": "world"})
    assert out == "Hello world, world!"


def test_load_template_from_file(tmp_path: Path) -> None:
    path = tmp_path / "tpl.txt"
    path.write_text("Latin {{difficulty}}", encoding="utf-8")
    assert load_template(path) == "Latin {{difficulty}}"
    assert "**Latin:**" in load_template()


def test_build_prompt_study_mode() -> None:
    prompt = build_prompt(
        StudySettings(words_mode="study", difficulty="medium", focus_vocab=["amo", "puella"], focus_grammar=["ablative"])
    )
    assert prompt.startswith("Generate a Latin sentence using only words from daily review")
    assert "The difficulty should be medium: moderate complexity" in prompt
    assert "Focus on vocabulary from: amo, puella" in prompt
    assert "Emphasize these grammar concepts: ablative" in prompt
    assert "{{" not in prompt


def test_build_prompt_without_focus() -> None:
    prompt = build_prompt(StudySettings(words_mode="learn", difficulty="hard"))
    assert "introducing one word or grammar concept at a time" in prompt
    assert "Focus on vocabulary" not in prompt
    assert "Emphasize" not in prompt
    assert "Additional instructions" not in prompt


def test_build_prompt_custom_instructions() -> None:
    prompt = build_prompt(StudySettings(custom_prompt="  Use the word Roma.  "))
    assert "Additional instructions: Use the word Roma." in prompt


@pytest.mark.parametrize("kwargs", [{"words_mode": "cram"}, {"difficulty": "extreme"}])
def test_invalid_study_settings(kwargs: dict[str, str]) -> None:
    with pytest.raises(ValueError):
        StudySettings(**kwargs)


def test_parse_sentence() -> None:
    text = (
        "**Latin:** Puella rosam amat.\n"
        "**English:** The girl loves the rose.\n"
        "**Grammar:** Rosam is accusative singular."
    )
    parsed = parse_sentence(text)
    assert parsed.sentence == "Puella rosam amat."
    assert parsed.translation == "The girl loves the rose."
    assert parsed.explanation == "Rosam is accusative singular."


def test_parse_sentence_without_grammar() -> None:
    parsed = parse_sentence("**Latin:** Salve.\n**English:** Hello.")
    assert parsed.explanation == ""


def test_parse_sentence_missing_translation() -> None:
    with pytest.raises(SentenceParseError):
        parse_sentence("**Latin:** Salve.")
