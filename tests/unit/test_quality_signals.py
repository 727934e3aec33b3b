"""Tests for the pure quality signal measurements."""

from conftest import SPAM_README, good_readme
from skill_registry.quality.signals import (
    compute_quality_signals,
    effective_word_count,
    is_generic_summary,
    strip_frontmatter,
)


class TestFrontmatter:
    def test_strips_leading_block(self):
        text = "---\nname: demo\nversion: 1\n---\n# Title\nBody"
        assert strip_frontmatter(text) == "# Title\nBody"

    def test_leaves_text_without_frontmatter(self):
        text = "# Title\n---\nnot frontmatter\n---"
        assert strip_frontmatter(text) == text


class TestGenericSummary:
    def test_empty_is_generic(self):
        assert is_generic_summary(None)
        assert is_generic_summary("   ")

    def test_boilerplate_is_generic(self):
        assert is_generic_summary("Expert guidance for docker.")
        assert is_generic_summary("A skill for reminders")
        assert is_generic_summary("TBD")

    def test_specific_summary_is_not_generic(self):
        assert not is_generic_summary("Schedules reminders from natural language time phrases.")


class TestComputeSignals:
    def test_spam_document(self):
        signals = compute_quality_signals(SPAM_README, "Expert guidance for everything.")
        assert signals.word_count == 10
        assert signals.heading_count == 1
        assert signals.bullet_count == 3
        assert signals.template_marker_hits == 3
        assert signals.generic_summary_flag

    def test_good_document(self):
        signals = compute_quality_signals(good_readme("remind-me"), "Schedules reminders.")
        assert signals.heading_count == 4
        assert signals.bullet_count == 6
        assert signals.template_marker_hits == 0
        assert signals.word_count > 120
        assert not signals.generic_summary_flag
        # frontmatter keys are not counted as body text
        assert signals.body_length < len(good_readme("remind-me"))

    def test_empty_document(self):
        signals = compute_quality_signals("---\nname: x\n---\n")
        assert signals.body_length == 0
        assert signals.word_count == 0
        assert signals.unique_word_ratio == 0.0

    def test_non_latin_script_counts_toward_words(self):
        signals = compute_quality_signals("# 提醒\n设置提醒并在时间到达时通知用户")
        assert signals.word_count == 0
        assert signals.non_latin_char_count == 17
        assert effective_word_count(signals) == 8.5

    def test_signals_are_deterministic(self):
        text = good_readme("remind-me")
        assert compute_quality_signals(text, "x") == compute_quality_signals(text, "x")
