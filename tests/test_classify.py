"""Tests for pattern compilation and heuristic classification."""

import pytest

from opencode_notifier.classify import (
    Classifier,
    classify_line,
    compile_pattern,
    compile_patterns,
    matches_any,
)
from opencode_notifier.exceptions import ConfigurationError


class TestCompilePattern:
    """Literal substrings and /regex/flags strings."""

    def test_literal_is_case_insensitive(self):
        pattern = compile_pattern("Build Complete")
        assert pattern.search("build complete!")

    def test_literal_escapes_metacharacters(self):
        pattern = compile_pattern("[done]")
        assert pattern.search("task [done]")
        assert not pattern.search("task d")

    def test_regex_literal(self):
        pattern = compile_pattern(r"/^done in \d+s$/")
        assert pattern.search("Done in 12s")
        assert not pattern.search("Done in 12 seconds")

    def test_explicit_flags(self):
        pattern = compile_pattern("/^plan$/m")
        assert pattern.search("intro\nplan")
        assert not pattern.search("PLAN")

    def test_unknown_flags_mean_literal(self):
        assert compile_pattern("/x/q").search("a /x/q b")

    def test_invalid_regex_raises(self):
        with pytest.raises(ConfigurationError):
            compile_pattern("/[unclosed/")

    def test_empty_raises(self):
        with pytest.raises(ConfigurationError):
            compile_pattern("")

    def test_fallback_when_empty(self):
        patterns = compile_patterns([], fallback=["ready"])
        assert matches_any("Ready now", patterns)
        assert not matches_any("", patterns)


class TestClassifyLine:
    def test_both_signals(self):
        build = compile_patterns(["build complete"])
        waiting = compile_patterns(["waiting for input"])

        signal = classify_line("Build complete", build, waiting)
        assert signal.build_complete and not signal.waiting_input

        signal = classify_line("waiting for input", build, waiting)
        assert signal.waiting_input and not signal.build_complete


class TestIntermediateAnalysis:
    """Hard markers alone, soft markers in pairs."""

    def test_hard_marker(self):
        classifier = Classifier()
        assert classifier.is_intermediate_analysis("[search-mode] scanning the repo")
        assert classifier.is_intermediate_analysis("Plan\n1. read files")

    def test_single_soft_marker_is_not_enough(self):
        assert not Classifier().is_intermediate_analysis("Literal request: rename the module")

    def test_two_soft_markers(self):
        text = "Literal request: rename the module\nActual need: consistent naming"
        assert Classifier().is_intermediate_analysis(text)

    def test_threshold_is_configurable(self):
        classifier = Classifier(soft_marker_threshold=1)
        assert classifier.is_intermediate_analysis("Literal request: rename the module")

    def test_ordinary_reply(self):
        assert not Classifier().is_intermediate_analysis("Fixed the bug and added a regression test.")
        assert not Classifier().is_intermediate_analysis("")


class TestTermination:
    @pytest.mark.parametrize("token,expected", [
        ("aborted", "cancelled"),
        ("Canceled", "cancelled"),
        ("interrupted", "interrupted"),
        ("ProviderAuthError", "failed"),
        ("timed out", "failed"),
        ("idle", None),
        ("busy", None),
        ("", None),
        (None, None),
    ])
    def test_classify(self, token, expected):
        assert Classifier().classify_termination(token) == expected

    def test_first_rule_wins(self):
        assert Classifier().classify_termination("cancelled after error") == "cancelled"

    def test_custom_rules_replace_defaults(self):
        classifier = Classifier.from_config({"termination_rules": {"failed": "/boom/"}})
        assert classifier.classify_termination("boom") == "failed"
        assert classifier.classify_termination("aborted") is None

    def test_rule_list_form(self):
        classifier = Classifier.from_config({"termination_rules": [["cancelled", "stop"]]})
        assert classifier.classify_termination("STOP") == "cancelled"


class TestInterruptPrompt:
    def test_asks_for_input(self):
        assert Classifier().is_user_interrupt_prompt("Please enter your API key")
        assert Classifier().is_user_interrupt_prompt("승인이 필요합니다")

    def test_transient_trouble_is_not_an_interrupt(self):
        assert not Classifier().is_user_interrupt_prompt("Rate limit reached, retrying input soon")
        assert not Classifier().is_user_interrupt_prompt("network timeout")

    def test_no_keyword(self):
        assert not Classifier().is_user_interrupt_prompt("Retrying soon")
        assert not Classifier().is_user_interrupt_prompt(None)


class TestAgents:
    def test_subagent_title(self):
        classifier = Classifier()
        assert classifier.is_subagent_title("Explore code (@explore subagent)")
        assert classifier.is_subagent_title("ask @oracle subagent for review")
        assert not classifier.is_subagent_title("mail dev@example subagent notes")
        assert not classifier.is_subagent_title("Refactor parser")
        assert not classifier.is_subagent_title("")

    def test_delegation_tools(self):
        classifier = Classifier()
        assert classifier.is_delegation_tool("Task")
        assert classifier.is_delegation_tool(" delegate_task ")
        assert not classifier.is_delegation_tool("bash")
        assert not classifier.is_delegation_tool(None)

    def test_junior_agent(self):
        classifier = Classifier()
        assert classifier.is_junior_agent("sisyphus-junior")
        assert not classifier.is_junior_agent("junior")
        assert not classifier.is_junior_agent(None)
