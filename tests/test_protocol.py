"""Tests for extracting tool calls from model output."""

from __future__ import annotations

from forq.core.audit import AuditEvent, AuditLog
from forq.core.protocol import ToolCall, extract_tool_calls


class TestNoBlocks:
    def test_plain_text_yields_nothing(self):
        assert extract_tool_calls("Sure, here is an explanation.") == []

    def test_empty_text(self):
        assert extract_tool_calls("") == []

    def test_open_tag_without_close_bracket(self):
        assert extract_tool_calls("look: <tool:readFile") == []


class TestSingleBlock:
    def test_read_file_call(self):
        calls = extract_tool_calls('<tool:readFile>{"filePath":"a.txt"}</tool>')
        assert calls == [ToolCall(name="readFile", parameters={"filePath": "a.txt"})]

    def test_embedded_in_prose(self):
        text = 'Let me check.\n<tool:listDir>{"dirPath": "src"}</tool>\nThen I will report.'
        calls = extract_tool_calls(text)
        assert len(calls) == 1
        assert calls[0].name == "listDir"

    def test_empty_payload_is_empty_object(self):
        assert extract_tool_calls("<tool:listDir></tool>") == [ToolCall("listDir", {})]

    def test_whitespace_payload_is_empty_object(self):
        assert extract_tool_calls("<tool:listDir>  \n </tool>") == [ToolCall("listDir", {})]

    def test_whitespace_around_payload(self):
        calls = extract_tool_calls('<tool:bash>\n  {"command": "ls"}\n</tool>')
        assert calls[0].parameters == {"command": "ls"}


class TestOrdering:
    def test_calls_in_appearance_order(self):
        text = (
            '<tool:editFile>{"filePath": "a", "oldString": "x", "newString": "y"}</tool>'
            ' then '
            '<tool:readFile>{"filePath": "a"}</tool>'
            '<tool:bash>{"command": "cat a"}</tool>'
        )
        assert [c.name for c in extract_tool_calls(text)] == ["editFile", "readFile", "bash"]


class TestNestedPayloads:
    def test_nested_braces(self):
        text = '<tool:createFile>{"filePath": "x.json", "content": "{\\"a\\": {\\"b\\": 1}}"}</tool>'
        calls = extract_tool_calls(text)
        assert calls[0].parameters["content"] == '{"a": {"b": 1}}'

    def test_nested_objects_and_arrays(self):
        text = '<tool:t>{"opts": {"list": [1, [2, 3], {"k": "v"}]}}</tool>'
        assert extract_tool_calls(text)[0].parameters == {"opts": {"list": [1, [2, 3], {"k": "v"}]}}

    def test_closing_tag_inside_string(self):
        text = '<tool:createFile>{"filePath": "a.html", "content": "<b></tool></b>"}</tool>'
        calls = extract_tool_calls(text)
        assert len(calls) == 1
        assert calls[0].parameters["content"] == "<b></tool></b>"

    def test_escaped_quote_inside_string(self):
        text = '<tool:bash>{"command": "echo \\"}\\""}</tool>'
        assert extract_tool_calls(text)[0].parameters == {"command": 'echo "}"'}


class TestMalformedBlocks:
    def test_malformed_block_skipped_good_block_kept(self):
        text = (
            "<tool:readFile>{filePath: a.txt}</tool>"
            '<tool:readFile>{"filePath": "b.txt"}</tool>'
        )
        calls = extract_tool_calls(text)
        assert calls == [ToolCall("readFile", {"filePath": "b.txt"})]

    def test_unbalanced_payload_does_not_swallow_next_block(self):
        text = '<tool:bad>{"a": 1</tool> <tool:good>{"x": 1}</tool>'
        assert extract_tool_calls(text) == [ToolCall("good", {"x": 1})]

    def test_non_object_payload_skipped(self):
        text = '<tool:a>[1, 2]</tool><tool:b>"str"</tool><tool:c>{}</tool>'
        assert extract_tool_calls(text) == [ToolCall("c", {})]

    def test_unterminated_block_stops_scan(self):
        text = '<tool:ok>{}</tool><tool:open>{"a": 1}'
        assert extract_tool_calls(text) == [ToolCall("ok", {})]

    def test_name_with_whitespace_ignored(self):
        text = '<tool:read file>{}</tool><tool:readFile>{"filePath": "a"}</tool>'
        assert [c.name for c in extract_tool_calls(text)] == ["readFile"]

    def test_malformed_block_is_audited_not_raised(self):
        audit = AuditLog()
        calls = extract_tool_calls("<tool:x>{oops}</tool>", audit=audit)
        assert calls == []
        assert audit.events() == [AuditEvent.TOOL_CALL_PARSE_FAILED]
        assert audit.entries[0].fields["name"] == "x"
