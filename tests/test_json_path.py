"""
Tests for JSON path parsing and resolution.
"""

from __future__ import annotations

import pytest

from stressbench.core.error_handling import JsonPathError
from stressbench.core.validation import UNDEFINED, parse_path, resolve_path

DOC = {
    "success": True,
    "data": {
        "items": [{"id": 1, "tags": ["x", "y"]}, {"id": 2, "tags": []}],
        "matrix": [[1, 2], [3, 4]],
        "empty": None,
    },
}


class TestParsePath:
    def test_dotted_with_indices(self) -> None:
        assert parse_path("data.items[0].id") == ["data", "items", 0, "id"]

    def test_leading_dollar_stripped(self) -> None:
        assert parse_path("$.data") == ["data"]
        assert parse_path("$[0]") == [0]
        assert parse_path("$") == []

    def test_multiple_indices(self) -> None:
        assert parse_path("data.matrix[1][0]") == ["data", "matrix", 1, 0]

    @pytest.mark.parametrize("path", ["data..id", "data.items[x]", "data.items[0"])
    def test_malformed(self, path: str) -> None:
        with pytest.raises(JsonPathError):
            parse_path(path)


class TestResolvePath:
    def test_resolves_nested_values(self) -> None:
        assert resolve_path(DOC, "success") is True
        assert resolve_path(DOC, "data.items[1].id") == 2
        assert resolve_path(DOC, "$.data.matrix[1][0]") == 3
        assert resolve_path(DOC, "data.items[0].tags[1]") == "y"

    def test_empty_path_is_whole_document(self) -> None:
        assert resolve_path(DOC, "") is DOC

    def test_missing_is_undefined(self) -> None:
        assert resolve_path(DOC, "data.nope") is UNDEFINED
        assert resolve_path(DOC, "data.items[5].id") is UNDEFINED
        assert resolve_path(DOC, "data.items[-1]") is UNDEFINED
        assert resolve_path(DOC, "data.empty.deeper") is UNDEFINED

    def test_null_is_not_undefined(self) -> None:
        assert resolve_path(DOC, "data.empty") is None

    def test_text_body(self) -> None:
        assert resolve_path("plain", "data") is UNDEFINED
