"""YAML rendering helpers used when building chart templates."""

from __future__ import annotations

from typing import Any

import yaml

_DOCUMENT_END = "\n...\n"


def indent(content: str, n: int) -> str:
    """Prefix every line of ``content`` with ``n`` spaces; negative ``n`` leaves it unchanged."""
    if n < 0:
        return content
    pad = " " * n
    return pad + content.replace("\n", "\n" + pad)


def _dump(obj: Any) -> str:
    text = yaml.safe_dump(
        obj,
        default_flow_style=False,
        sort_keys=True,
        allow_unicode=True,
        width=2**31 - 1,
    )
    if text.endswith(_DOCUMENT_END):
        text = text[: -len(_DOCUMENT_END)] + "\n"
    return text


def marshal(obj: Any, indent: int) -> str:  # noqa: A002 - mirrors the public signature
    """Serialise ``obj`` to YAML, indented by ``indent`` spaces, without trailing blanks."""
    text = _dump(obj)
    return _indent_text(text, indent).rstrip("\n ")


_indent_text = indent