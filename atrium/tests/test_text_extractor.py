"""Tests for rich-text extraction."""

import json

from atrium.indexer.text_extractor import ELLIPSIS, extract_text


class TestExtractText:
    def test_quill_delta(self):
        body = json.dumps({"ops": [{"insert": "Hello "}, {"insert": "world"}, {"insert": "\n"}]})
        assert extract_text(body) == "Hello world"

    def test_non_string_inserts_are_ignored(self):
        body = json.dumps({"ops": [{"insert": "see "}, {"insert": {"image": "x.png"}}, {"insert": "attached"}]})
        assert extract_text(body) == "see attached"

    def test_bare_ops_list(self):
        body = json.dumps([{"insert": "list form"}])
        assert extract_text(body) == "list form"

    def test_markup_is_stripped(self):
        assert extract_text("<p>Ship <b>it</b></p>") == "Ship it"

    def test_plain_text_passthrough(self):
        assert extract_text("  just text  ") == "just text"

    def test_json_scalar_kept_verbatim(self):
        assert extract_text("42") == "42"

    def test_none_and_non_string(self):
        assert extract_text(None) == ""
        assert extract_text(123) == "123"

    def test_truncation_appends_ellipsis(self):
        assert extract_text("abcdefghij", max_len=4) == "abcd" + ELLIPSIS
        assert extract_text("abc", max_len=4) == "abc"

    def test_never_raises_on_odd_json(self):
        assert extract_text(json.dumps({"ops": "not a list"})) == json.dumps({"ops": "not a list"})
