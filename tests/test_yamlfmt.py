import pytest

from helmgen.yamlfmt import indent, marshal


@pytest.mark.parametrize(
    ("content", "n", "expected"),
    [
        ("a", -1, "a"),
        ("a", 0, "a"),
        ("a", 1, " a"),
        ("a", 2, "  a"),
    ],
)
def test_indent_cases(content, n, expected):
    assert indent(content, n) == expected


def test_indent_multiline():
    assert indent("a\nb", 2) == "  a\n  b"


def test_marshal_sorted_and_indented():
    result = marshal({"b": 1, "a": {"c": [1, 2]}}, 2)
    assert result == "  a:\n    c:\n    - 1\n    - 2\n  b: 1"


def test_marshal_without_indent():
    assert marshal({"rules": [{"verbs": ["get"]}]}, 0) == "rules:\n- verbs:\n  - get"


def test_marshal_scalar_has_no_document_marker():
    assert marshal("x", 0) == "x"


def test_marshal_quotes_template_strings():
    result = marshal({"name": "{{ .Values.x }}"}, 0)
    assert result == "name: '{{ .Values.x }}'"