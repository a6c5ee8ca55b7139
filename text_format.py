from __future__ import annotations

import html as html_lib
import re
from typing import Iterable, List, Optional

from config import MINOR_WORDS


TAG_RE = re.compile(r"<[^>]+>")
WHITESPACE_RE = re.compile(r"\s+")
SANITIZE_RE = re.compile(r"[^a-zA-Z0-9_ \-.!?]")
MULTI_SPACE_RE = re.compile(r"  +")

# colon plus trailing spaces, whitespace runs, or a single punctuation/quote char
TITLE_SEPARATORS_RE = re.compile(r"(:\s*|\s+|[-\u2011\u2013\u2014,:;!?()\u201c\u201d'\u2018\"])")
OPENING_QUOTE_TOKENS = {"'", '"', "\u2018", "\u201c"}
APOSTROPHE_LETTER_RE = re.compile(r"(?<=\w)(['\u2018\u2019])(\w)", re.ASCII)

EN_OPENING_SINGLE_RE = re.compile(r"(^|[-\u2014/(\[{\"\s])'")
EN_OPENING_DOUBLE_RE = re.compile(r"(^|[-\u2014/(\[{\u2018\s])\"")

DE_OPENING_CONTEXT = r"(^|[-\u2014/(\[{\u2018\s])"
DE_OPENING_GUILLEMET_RE = re.compile(DE_OPENING_CONTEXT + "[\u00ab\u00bb]")
DE_OPENING_DOUBLE_RE = re.compile(DE_OPENING_CONTEXT + '"')
DE_OPENING_CURLY_RE = re.compile(DE_OPENING_CONTEXT + "\u201c")
DE_SPACED_DASH_RE = re.compile(r"\s[-\u2013]\s")


def clean_text(text: Optional[str]) -> str:
    """Strip tags and entities from scraped metadata and collapse whitespace."""
    if not text:
        return ""
    txt = TAG_RE.sub(" ", text)
    txt = html_lib.unescape(txt)
    return WHITESPACE_RE.sub(" ", txt).strip()


def sanitize_text(value: Optional[str], max_length: int) -> str:
    """Keep only ``[A-Za-z0-9_ -.!?]``, collapse spaces, truncate to max_length - 1."""
    if not value:
        return ""
    cleaned = SANITIZE_RE.sub("", value).strip()
    cleaned = MULTI_SPACE_RE.sub(" ", cleaned)
    return cleaned[: max(max_length - 1, 0)]


def parse_reasons_csv(reasons_csv: Optional[str], max_length: int) -> List[str]:
    if not reasons_csv:
        return []
    out: List[str] = []
    for reason in reasons_csv.split(","):
        sanitized = sanitize_text(reason, max_length)
        if sanitized:
            out.append(sanitized)
    return out


def capitalize(value: Optional[str]) -> str:
    if not value:
        return ""
    return value[0].upper() + value[1:]


def lowercase_after_apostrophe(value: str) -> str:
    """``Everyone'S`` -> ``Everyone's``: lower-case a letter glued to a word by an apostrophe."""
    return APOSTROPHE_LETTER_RE.sub(lambda m: m.group(1) + m.group(2).lower(), value)


def apply_ap_title_case(value: Optional[str], minor_words: Optional[Iterable[str]] = None) -> Optional[str]:
    """AP-style headline case.

    Minor words stay lower case unless they open or close the string, follow a
    colon, or follow an opening quote. Separators are kept exactly as written.
    """
    if not value:
        return None
    stop = frozenset(minor_words) if minor_words is not None else MINOR_WORDS
    tokens = [t for t in TITLE_SEPARATORS_RE.split(value) if t]
    last = len(tokens) - 1

    out: List[str] = []
    for i, word in enumerate(tokens):
        after_colon = i > 0 and tokens[i - 1].strip() == ":"
        after_quote = i > 0 and tokens[i - 1] in OPENING_QUOTE_TOKENS
        if i == 0 or i == last or after_colon or after_quote or word.lower() not in stop:
            out.append(capitalize(word))
        else:
            out.append(word.lower())
    return lowercase_after_apostrophe("".join(out))


def format_quotes_en(text: Optional[str]) -> Optional[str]:
    """Swap straight quotes for curly ones. Not idempotent on mixed input; apply once."""
    if not text:
        return None
    text = EN_OPENING_SINGLE_RE.sub("\\1\u2018", text)
    text = text.replace("'", "\u2019")
    text = EN_OPENING_DOUBLE_RE.sub("\\1\u201c", text)
    return text.replace('"', "\u201d")


def format_quotes_dashes_de(text: Optional[str]) -> Optional[str]:
    """German low-high quotes for guillemets and straight/curly doubles; spaced dashes become em dashes."""
    if not text:
        return None
    text = DE_OPENING_GUILLEMET_RE.sub("\\1\u201e", text)
    text = text.replace("\u00bb", "\u201d").replace("\u00ab", "\u201d")
    text = DE_OPENING_DOUBLE_RE.sub("\\1\u201e", text)
    text = text.replace('"', "\u201d")
    text = DE_OPENING_CURLY_RE.sub("\\1\u201e", text)
    return DE_SPACED_DASH_RE.sub(" \u2014 ", text)
