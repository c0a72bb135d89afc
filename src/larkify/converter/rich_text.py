"""Flatten inline AST tokens into styled text runs.

:func:`build_text_runs` folds nested ``strong`` / ``emphasis`` /
``strikethrough`` / ``underline`` / ``link`` / ``codespan`` tokens into a
flat list of :class:`StyledTextRun`, each carrying the union of the styles
of every span enclosing it.  No nested structure survives.
"""

from __future__ import annotations

from urllib.parse import quote

from larkify.models import StyledTextRun, TextStyle

IMAGE_PLACEHOLDER = "[image]"

# Characters encodeURI leaves alone, plus "%" so existing escapes are kept.
_URL_SAFE_CHARS = ";,/?:@&=+$-_.!~*'()#%"

_PLAIN = TextStyle()


def encode_link(url: str) -> str:
    """Percent-encode *url* for storage in a link style."""
    return quote(url.strip(), safe=_URL_SAFE_CHARS)


def build_text_runs(
    children: list[dict],
    style: TextStyle | None = None,
) -> list[StyledTextRun]:
    """Convert inline tokens to a flat list of styled runs.

    Parameters
    ----------
    children:
        Canonical inline tokens from :class:`ASTNormalizer`.
    style:
        Ambient style inherited from enclosing spans.

    Returns
    -------
    list[StyledTextRun]
        Runs in document order.  Adjacent runs with identical style are
        merged; an unstyled run has ``style=None``.
    """
    runs: list[StyledTextRun] = []
    _collect(children, style or _PLAIN, runs)
    return runs


def ensure_runs(runs: list[StyledTextRun]) -> list[StyledTextRun]:
    """Return *runs*, or a single empty run when there are none."""
    return runs if runs else [StyledTextRun(content="")]


def extract_text(children: list[dict]) -> str:
    """Recursively extract plain text from inline tokens."""
    parts: list[str] = []
    for token in children:
        token_type = token.get("type", "")
        if token_type in ("softbreak", "linebreak"):
            parts.append("\n")
        elif "children" in token:
            parts.append(extract_text(token["children"]))
        elif "raw" in token:
            parts.append(token["raw"])
    return "".join(parts)


def _append(runs: list[StyledTextRun], content: str, style: TextStyle) -> None:
    if not content:
        return
    effective = None if style.is_plain else style
    if runs and runs[-1].style == effective:
        runs[-1].content += content
        return
    runs.append(StyledTextRun(content=content, style=effective))


def _collect(tokens: list[dict], style: TextStyle, runs: list[StyledTextRun]) -> None:
    for token in tokens:
        token_type = token.get("type", "")
        children = token.get("children", [])

        if token_type in ("text", "html_inline"):
            _append(runs, token.get("raw", ""), style)
        elif token_type in ("softbreak", "linebreak"):
            _append(runs, "\n", style)
        elif token_type == "codespan":
            _append(runs, token.get("raw", ""), style.merged(inline_code=True))
        elif token_type == "strong":
            _collect(children, style.merged(bold=True), runs)
        elif token_type == "emphasis":
            _collect(children, style.merged(italic=True), runs)
        elif token_type == "strikethrough":
            _collect(children, style.merged(strikethrough=True), runs)
        elif token_type == "underline":
            _collect(children, style.merged(underline=True), runs)
        elif token_type == "link":
            url = token.get("attrs", {}).get("url", "")
            link_style = style.merged(link=encode_link(url)) if url else style
            _collect(children, link_style, runs)
        elif token_type == "image":
            _append(runs, extract_text(children) or IMAGE_PLACEHOLDER, style)
        elif children:
            _collect(children, style, runs)
        elif "raw" in token:
            _append(runs, token["raw"], style)
