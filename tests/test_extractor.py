"""Tests for tool call extraction and argument normalization."""

import textwrap

import pytest

from toolrelay.core.extractor import CallExtractor


# ---------------------------------------------------------------------------
# extract
# ---------------------------------------------------------------------------


class TestExtract:
    def setup_method(self):
        self.extractor = CallExtractor()

    def test_plain_answer_has_no_calls(self):
        assert self.extractor.extract("The capital of Norway is Oslo.") is None

    def test_empty_text(self):
        assert self.extractor.extract("") is None
        assert self.extractor.extract(None) is None

    def test_fenced_block(self):
        text = textwrap.dedent('''
            Sure, let me check.
            ```json
            {"tool_calls":[{"name":"echo","arguments":{"msg":"5"}}]}
            ```
        ''')
        calls = self.extractor.extract(text)
        assert calls is not None
        assert len(calls) == 1
        assert calls[0].name == "echo"
        assert calls[0].arguments == {"msg": "5"}

    def test_whole_text_object(self):
        text = '  {"tool_calls": [{"name": "get-forecast", "arguments": {"latitude": "59.9"}}]}  '
        calls = self.extractor.extract(text)
        assert [c.name for c in calls] == ["get-forecast"]

    def test_multiple_calls_keep_order(self):
        text = textwrap.dedent('''
            ```json
            {"tool_calls": [
              {"name": "first", "arguments": {}},
              {"name": "second", "arguments": {"x": 1}}
            ]}
            ```
        ''')
        calls = self.extractor.extract(text)
        assert [c.name for c in calls] == ["first", "second"]

    def test_only_first_fenced_block_is_used(self):
        text = textwrap.dedent('''
            ```json
            {"tool_calls": [{"name": "first", "arguments": {}}]}
            ```
            and also
            ```json
            {"tool_calls": [{"name": "second", "arguments": {}}]}
            ```
        ''')
        calls = self.extractor.extract(text)
        assert [c.name for c in calls] == ["first"]

    def test_first_fenced_block_wins_even_when_not_a_call(self):
        text = textwrap.dedent('''
            ```json
            {"city": "Oslo"}
            ```
            ```json
            {"tool_calls": [{"name": "second", "arguments": {}}]}
            ```
        ''')
        assert self.extractor.extract(text) is None

    def test_malformed_json_is_not_an_error(self):
        text = "```json\n{\"tool_calls\": [{\"name\": \"echo\",]}\n```"
        assert self.extractor.extract(text) is None

    def test_mentioned_json_in_prose_is_ignored(self):
        text = 'You could reply with {"tool_calls": []} if you wanted.'
        assert self.extractor.extract(text) is None

    def test_empty_call_list_means_no_calls(self):
        assert self.extractor.extract('{"tool_calls": []}') is None

    def test_call_list_must_be_a_list(self):
        assert self.extractor.extract('{"tool_calls": {"name": "echo"}}') is None

    def test_object_without_key(self):
        assert self.extractor.extract('{"answer": 42}') is None

    def test_entries_without_name_are_skipped(self):
        text = '{"tool_calls": [{"arguments": {}}, {"name": "echo", "arguments": {"a": 1}}]}'
        calls = self.extractor.extract(text)
        assert [c.name for c in calls] == ["echo"]

    def test_non_mapping_arguments_become_empty(self):
        calls = self.extractor.extract('{"tool_calls": [{"name": "echo", "arguments": "oops"}]}')
        assert calls[0].arguments == {}

    def test_missing_arguments_default_to_empty(self):
        calls = self.extractor.extract('{"tool_calls": [{"name": "echo"}]}')
        assert calls[0].arguments == {}


# ---------------------------------------------------------------------------
# normalize
# ---------------------------------------------------------------------------


class TestNormalize:
    def setup_method(self):
        self.extractor = CallExtractor()

    def test_nested_coercion(self):
        result = self.extractor.normalize({"a": "3", "b": {"c": "4.5"}, "d": "x"})
        assert result == {"a": 3, "b": {"c": 4.5}, "d": "x"}
        assert isinstance(result["a"], int)
        assert isinstance(result["b"]["c"], float)

    @pytest.mark.parametrize("raw, expected", [
        ("0", 0),
        ("-12", -12),
        ("3.25", 3.25),
        ("-0.5", -0.5),
        ("1e3", 1000.0),
        ("2.5E-2", 0.025),
    ])
    def test_numeric_strings(self, raw, expected):
        assert self.extractor.normalize({"v": raw}) == {"v": expected}

    @pytest.mark.parametrize("raw", ["", "abc", "007", " 5", "5 ", "1,000", "0x1f", "NaN", "inf", "1e999", "+3"])
    def test_lossy_or_non_numeric_strings_stay(self, raw):
        assert self.extractor.normalize({"v": raw}) == {"v": raw}

    def test_other_values_pass_through(self):
        args = {"flag": True, "none": None, "n": 7, "items": ["1", "2"]}
        assert self.extractor.normalize(args) == args

    def test_does_not_mutate_input(self):
        args = {"a": "1", "b": {"c": "2"}}
        self.extractor.normalize(args)
        assert args == {"a": "1", "b": {"c": "2"}}
