"""Text cleaning utilities for crawled Korean news text."""
import html
import re
from typing import List

_WHITESPACE = re.compile(r"[ \t]+")
_MULTI_NEWLINE = re.compile(r"\n{3,}")
_TAG = re.compile(r"<[^>]+>")
# reporter lines ("홍길동 기자 = ...", "... 기자") and e-mail addresses
_BYLINE = re.compile(r"(?m)(^.*기자\s*=.*$|.*기자$|\S+@\S+\.\S+)")


def _is_zero_width(ch: str) -> bool:
    code = ord(ch)
    return 0x200B <= code <= 0x200F or 0x2028 <= code <= 0x202F or code == 0xFEFF


def remove_zero_width(text: str) -> str:
    return "".join(ch for ch in text if not _is_zero_width(ch))


def remove_control_chars(text: str) -> str:
    """Drop C0/C1 control characters, keeping newlines and tabs."""
    return "".join(
        ch for ch in text
        if ch in "\n\t" or not (ord(ch) < 0x20 or 0x7F <= ord(ch) <= 0x9F)
    )


def decode_html_entities(text: str) -> str:
    return html.unescape(text).replace("\xa0", " ")


def normalize_whitespace(text: str) -> str:
    return _WHITESPACE.sub(" ", text)


def trim_lines(text: str) -> str:
    return "\n".join(line.strip() for line in text.split("\n"))


def collapse_newlines(text: str) -> str:
    return _MULTI_NEWLINE.sub("\n\n", text)


def sanitize_text(text: str) -> str:
    """Full cleanup applied to every extracted title and body."""
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = remove_zero_width(text)
    text = remove_control_chars(text)
    text = decode_html_entities(text)
    text = normalize_whitespace(text)
    text = trim_lines(text)
    text = collapse_newlines(text)
    return text.strip()


def strip_html_tags(markup: str) -> str:
    return _TAG.sub("", markup)


def has_content(text: str) -> bool:
    return bool(text and text.strip())


def truncate(text: str, max_len: int) -> str:
    if len(text) <= max_len:
        return text
    return text[: max(max_len - 3, 0)] + "..."


def remove_byline(text: str) -> str:
    return _BYLINE.sub("", text).strip()


def basic_clean(text: str) -> str:
    """Collapse all whitespace to single spaces; used for embedding input."""
    return " ".join(text.strip().split())


def clean_corpus(texts: List[str]) -> List[str]:
    return [basic_clean(t) for t in texts]
