"""Render pull-request markdown into the HTML subset Asana accepts.

Asana's ``html_notes`` only allows a handful of tags (strong, em, s, code,
pre, a, ul, ol, li, h1, h2, hr, blockquote) inside a <body> root and rejects
anything else with a 400. The renderer therefore emits nothing outside that
set; callers still fall back to plain notes if Asana rejects the result.
"""

from __future__ import annotations

import html
import re

_FENCE_RE = re.compile(r"^\s*(```|~~~)")
_HEADING_RE = re.compile(r"^(#{1,6})\s+(.*)$")
_BULLET_RE = re.compile(r"^\s*[-*+]\s+(.*)$")
_NUMBERED_RE = re.compile(r"^\s*\d+[.)]\s+(.*)$")
_RULE_RE = re.compile(r"^\s*([-*_])(\s*\1){2,}\s*$")
_QUOTE_RE = re.compile(r"^\s*&gt;\s?(.*)$")

_CODE_SPAN_RE = re.compile(r"`([^`]+)`")
_LINK_RE = re.compile(r"\[([^\]]+)\]\((https?://[^\s)\"]+)\)")
_BARE_URL_RE = re.compile(r"(?<![\">=])(https?://[^\s<\"]+)")
_BOLD_RE = re.compile(r"(\*\*|__)(?=\S)(.+?)(?<=\S)\1")
_ITALIC_RE = re.compile(r"(?<![\w*])([*_])(?=\S)(.+?)(?<=\S)\1(?![\w*])")
_STRIKE_RE = re.compile(r"~~(?=\S)(.+?)(?<=\S)~~")


def _inline(text: str) -> str:
    """Format one escaped line. Code spans are left untouched."""
    parts = _CODE_SPAN_RE.split(text)
    out = []
    for i, part in enumerate(parts):
        if i % 2:
            out.append(f"<code>{part}</code>")
            continue
        part = _LINK_RE.sub(r'<a href="\2">\1</a>', part)
        part = _BARE_URL_RE.sub(r'<a href="\1">\1</a>', part)
        part = _BOLD_RE.sub(r"<strong>\2</strong>", part)
        part = _ITALIC_RE.sub(r"<em>\2</em>", part)
        part = _STRIKE_RE.sub(r"<s>\1</s>", part)
        out.append(part)
    return "".join(out)


def render_rich_text(text: str) -> str:
    """Convert markdown-ish text to Asana rich text (without the <body> root)."""
    lines = html.escape(text or "", quote=False).splitlines()
    out: list[str] = []
    list_tag: str | None = None
    in_code = False
    code: list[str] = []

    def close_list():
        nonlocal list_tag
        if list_tag:
            out.append(f"</{list_tag}>")
            list_tag = None

    for line in lines:
        if _FENCE_RE.match(line):
            if in_code:
                out.append("<pre>" + "\n".join(code) + "</pre>")
                code = []
            else:
                close_list()
            in_code = not in_code
            continue
        if in_code:
            code.append(line)
            continue

        bullet = _BULLET_RE.match(line)
        numbered = None if bullet else _NUMBERED_RE.match(line)
        if (bullet or numbered) and not _RULE_RE.match(line):
            tag = "ul" if bullet else "ol"
            if list_tag != tag:
                close_list()
                out.append(f"<{tag}>")
                list_tag = tag
            out.append(f"<li>{_inline((bullet or numbered).group(1))}</li>")
            continue
        close_list()

        if _RULE_RE.match(line):
            out.append("<hr/>")
            continue
        heading = _HEADING_RE.match(line)
        if heading:
            level = 1 if len(heading.group(1)) == 1 else 2
            out.append(f"<h{level}>{_inline(heading.group(2))}</h{level}>")
            continue
        quote = _QUOTE_RE.match(line)
        if quote:
            out.append(f"<blockquote>{_inline(quote.group(1))}</blockquote>")
            continue
        out.append(_inline(line) + "\n")

    if in_code:
        # Unterminated fence: keep the content rather than dropping it.
        out.append("<pre>" + "\n".join(code) + "</pre>")
    close_list()
    return "".join(out).rstrip("\n")
