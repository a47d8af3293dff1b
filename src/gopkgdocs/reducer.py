"""Best-effort HTML to Markdown reducer for README blocks.

Narrow, regex-based transform tuned for the README markup pkg.go.dev embeds
in package pages. It is not a general HTML parser. The stages run in a fixed
order; each one assumes the text shape left by the previous stage. Reducing
already-reduced text is not supported.
"""

from __future__ import annotations

import re

# "&amp;" is last so a single pass never double-unescapes "&amp;lt;".
_ENTITIES: tuple[tuple[str, str], ...] = (
    ("&quot;", '"'),
    ("&#34;", '"'),
    ("&apos;", "'"),
    ("&#39;", "'"),
    ("&lt;", "<"),
    ("&gt;", ">"),
    ("&nbsp;", " "),
    ("&amp;", "&"),
)

_ENTITY_RE = re.compile(r"&(?:#\d+|[a-zA-Z]+);")

_PRE_CODE_RE = re.compile(r"<pre[^>]*>\s*<code([^>]*)>(.*?)</code>\s*</pre>", re.I | re.S)
_LANGUAGE_RE = re.compile(r"language-([\w+-]+)", re.I)

_HEADING_RES = [
    (level, re.compile(rf"<h{level}[^>]*>(.*?)</h{level}>", re.I | re.S)) for level in range(1, 7)
]

_ANCHOR_RE = re.compile(r"<a[^>]*\shref=\"([^\"]+)\"[^>]*>(.*?)</a>", re.I | re.S)
_IMG_ALT_SRC_RE = re.compile(
    r"<img[^>]*\salt=\"([^\"]*)\"[^>]*\ssrc=\"([^\"]+)\"[^>]*/?>", re.I | re.S
)
_IMG_SRC_ALT_RE = re.compile(
    r"<img[^>]*\ssrc=\"([^\"]+)\"[^>]*\salt=\"([^\"]*)\"[^>]*/?>", re.I | re.S
)
_IMG_SRC_ONLY_RE = re.compile(r"<img[^>]*\ssrc=\"([^\"]+)\"[^>]*/?>", re.I | re.S)

_INLINE_CODE_RE = re.compile(r"<code>(.*?)</code>", re.I | re.S)

_BLOCK_TAGS: tuple[tuple[str, str], ...] = (
    ("<p>", "\n"),
    ("</p>", "\n\n"),
    ("<br>", "\n"),
    ("<br/>", "\n"),
    ("<br />", "\n"),
    ("<strong>", "**"),
    ("</strong>", "**"),
    ("<b>", "**"),
    ("</b>", "**"),
    ("<em>", "*"),
    ("</em>", "*"),
    ("<i>", "*"),
    ("</i>", "*"),
    ("<ul>", "\n"),
    ("</ul>", "\n"),
    ("<ol>", "\n"),
    ("</ol>", "\n"),
    ("<li>", "- "),
    ("</li>", "\n"),
    ("<blockquote>", "> "),
    ("</blockquote>", "\n"),
    ("<hr>", "\n---\n"),
    ("<hr/>", "\n---\n"),
    ("<hr />", "\n---\n"),
)

_BLANK_RUN_RE = re.compile(r"\n{3,}")


def looks_like_html(text: str) -> bool:
    """Return True if ``text`` contains something tag-shaped."""
    return bool(text) and "<" in text and ">" in text


def unescape_entities(text: str) -> str:
    """Replace the small fixed set of entities README markup actually uses."""
    for entity, char in _ENTITIES:
        text = text.replace(entity, char)
    return text


def strip_tags(text: str) -> str:
    """Remove ``<...>`` spans left to right until none remain.

    An unterminated ``<`` stops the scan; the rest of the text is kept.
    """
    while True:
        start = text.find("<")
        if start == -1:
            return text
        end = text.find(">", start)
        if end == -1:
            return text
        text = text[:start] + text[end + 1 :]


def _fence(match: re.Match[str]) -> str:
    attrs, code = match.group(1), match.group(2)
    lang_match = _LANGUAGE_RE.search(attrs)
    lang = lang_match.group(1).lower() if lang_match else ""
    return f"```{lang}\n{unescape_entities(code)}\n```\n\n"


def reduce_html(fragment: str) -> str:
    """Reduce an HTML fragment to Markdown.

    Never raises. Blank input and plain text without tags or entities are
    returned unchanged; anything else is worst-case returned with its tags
    stripped.
    """
    if not fragment.strip():
        return fragment
    if not looks_like_html(fragment) and not _ENTITY_RE.search(fragment):
        return fragment

    text = fragment.replace("\r\n", "\n")
    text = unescape_entities(text)

    text = _PRE_CODE_RE.sub(_fence, text)

    for level, heading_re in _HEADING_RES:
        text = heading_re.sub(lambda m, n=level: "#" * n + " " + m.group(1) + "\n\n", text)

    text = _ANCHOR_RE.sub(r"[\2](\1)", text)
    text = _IMG_ALT_SRC_RE.sub(r"![\1](\2)", text)
    text = _IMG_SRC_ALT_RE.sub(r"![\2](\1)", text)
    text = _IMG_SRC_ONLY_RE.sub(r"![](\1)", text)

    text = _INLINE_CODE_RE.sub(r"`\1`", text)

    for tag, replacement in _BLOCK_TAGS:
        text = text.replace(tag, replacement)

    text = strip_tags(text)
    # A closing fence mangled to a lone backtick by the inline-code pass.
    text = text.replace("\n`\n", "\n```\n")

    text = unescape_entities(text)
    text = _BLANK_RUN_RE.sub("\n\n", text)
    return text.strip()
