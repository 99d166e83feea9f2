"""
Markdown parser for guide chapters.

Extracts headings, fenced code blocks, links, HTML anchors and chapter
navigation links from a Markdown document. The parser is line-oriented and
covers the CommonMark/GFM subset that tutorial guides actually use; nothing
inside a fenced block is treated as a heading or a link.
"""

from __future__ import annotations

import re
from typing import Dict, List, Optional, Tuple

import structlog

from guidelint.core.models import (
    CodeBlock,
    Heading,
    Link,
    LinkKind,
    NavKind,
    NavLink,
    ParsedDocument,
)

logger = structlog.get_logger(__name__)

FENCE_OPEN_RE = re.compile(r"^(?P<indent> {0,3})(?P<fence>`{3,}|~{3,})(?P<info>.*)$")
ATX_HEADING_RE = re.compile(
    r"^ {0,3}(?P<hashes>#{1,6})(?:[ \t]+(?P<text>.*?))?(?:[ \t]+#+)?[ \t]*$"
)
SETEXT_UNDERLINE_RE = re.compile(r"^ {0,3}(?P<char>=+|-+)[ \t]*$")
REF_DEFINITION_RE = re.compile(
    r"^ {0,3}\[(?P<label>[^\]]+)\]:[ \t]*(?:<(?P<angle>[^>]*)>|(?P<bare>\S+))"
)
LIST_OR_QUOTE_RE = re.compile(r"^\s*(?:[-*+]\s|\d{1,9}[.)]\s|>)")
HTML_ANCHOR_RE = re.compile(r"""<[a-zA-Z][^>]*?\b(?:id|name)\s*=\s*["']([^"']+)["']""")

CODE_SPAN_RE = re.compile(r"(`+)(?:.*?)\1")
INLINE_LINK_RE = re.compile(
    r"(?P<bang>!?)\[(?P<text>(?:[^\[\]]|\[[^\[\]]*\])*)\]"
    r"\(\s*(?:<(?P<angle>[^>]*)>|(?P<bare>[^\s()]*(?:\([^\s()]*\)[^\s()]*)*))"
    r"(?:\s+(?:\"[^\"]*\"|'[^']*'|\([^)]*\)))?\s*\)"
)
REFERENCE_LINK_RE = re.compile(
    r"(?P<bang>!?)\[(?P<text>(?:[^\[\]]|\[[^\[\]]*\])*)\]\[(?P<label>[^\[\]]*)\]"
)
SHORTCUT_LINK_RE = re.compile(r"(?P<bang>!?)\[(?P<text>[^\[\]]+)\](?![\[(])")
AUTOLINK_RE = re.compile(r"<(?P<url>[A-Za-z][A-Za-z0-9+.\-]{1,31}:[^<>\s]*)>")
HTML_LINK_RE = re.compile(
    r"""<a\s[^>]*?href\s*=\s*["'](?P<url>[^"']+)["'][^>]*>(?P<text>.*?)</a>""", re.IGNORECASE
)
HTML_IMG_RE = re.compile(r"""<img\s[^>]*?src\s*=\s*["'](?P<url>[^"']+)["']""", re.IGNORECASE)

HTML_TAG_RE = re.compile(r"<[^>]+>")
UNDERSCORE_EMPHASIS_RE = re.compile(r"(?<!\w)(_{1,2})(?=\S)(.+?)(?<=\S)\1(?!\w)")
SLUG_DROP_RE = re.compile(r"[^\w\- ]", re.UNICODE)

PREVIOUS_ARROW_RE = re.compile(r"^\s*(?:←|⬅|«|&larr;|&laquo;)")
NEXT_ARROW_RE = re.compile(r"(?:→|➡|»|&rarr;|&raquo;)\ufe0f?\s*$")
PREVIOUS_WORD_RE = re.compile(r"^prev(?:ious)?\b", re.IGNORECASE)
NEXT_WORD_RE = re.compile(r"^next(?![\w.])", re.IGNORECASE)
INDEX_WORD_RE = re.compile(
    r"^(?:back\s+to\s+(?:the\s+)?|return\s+to\s+(?:the\s+)?)?"
    r"(?:index|contents|table\s+of\s+contents|toc|home)(?:\s+page)?\W*$",
    re.IGNORECASE,
)
NAV_LABEL_RE = re.compile(
    r"^(?:←|⬅|«)?\s*(?P<word>prev(?:ious)?|next|(?:back\s+to\s+(?:the\s+)?)?"
    r"(?:index|contents|table\s+of\s+contents))"
    r"(?:\s+(?:chapter|lesson|part|section|page))?\s*(?:→|➡|»)?$",
    re.IGNORECASE,
)


def slugify(text: str) -> str:
    """Generate the anchor GitHub assigns to a heading."""
    text = INLINE_LINK_RE.sub(lambda m: m.group("text"), text)
    text = HTML_TAG_RE.sub("", text)
    text = UNDERSCORE_EMPHASIS_RE.sub(lambda m: m.group(2), text)
    text = SLUG_DROP_RE.sub("", text.strip().lower())
    return text.replace(" ", "-")


def normalize_label(label: str) -> str:
    return re.sub(r"\s+", " ", label.strip()).lower()


def _blank(text: str, start: int, end: int) -> str:
    return text[:start] + " " * (end - start) + text[end:]


def _blank_code_spans(line: str) -> str:
    return CODE_SPAN_RE.sub(lambda m: " " * len(m.group(0)), line)


def _strip_emphasis(text: str) -> str:
    return re.sub(r"[*_`]", "", text).strip()


def classify_nav(text: str, preceding: str = "") -> Optional[NavKind]:
    """
    Decide whether a link is a chapter navigation link.

    The link text is consulted first ("← Previous", "Next: Setup →",
    "Back to Index"); failing that, the label written just before the link on
    the same line ("**Next:** [Setup](03-setup.md)").
    """
    if PREVIOUS_ARROW_RE.search(text):
        return NavKind.PREVIOUS
    if NEXT_ARROW_RE.search(text):
        return NavKind.NEXT

    words = re.sub(r"^[^\w]+", "", _strip_emphasis(text))
    if PREVIOUS_WORD_RE.match(words):
        return NavKind.PREVIOUS
    if NEXT_WORD_RE.match(words):
        return NavKind.NEXT
    if INDEX_WORD_RE.match(words):
        return NavKind.INDEX

    label = _strip_emphasis(preceding).strip(" \t|:-–—•·")
    match = NAV_LABEL_RE.match(label)
    if match:
        word = match.group("word").lower()
        if word.startswith("prev"):
            return NavKind.PREVIOUS
        if word == "next":
            return NavKind.NEXT
        return NavKind.INDEX
    return None


class _Scanner:
    """Collects link spans from a single line, blanking each span once claimed."""

    def __init__(self, line: str, lineno: int, definitions: Dict[str, str]):
        self.text = _blank_code_spans(line)
        self.lineno = lineno
        self.definitions = definitions
        self.spans: List[Tuple[int, int, Link]] = []

    def _claim(self, start: int, end: int, link: Link) -> None:
        self.spans.append((start, end, link))
        self.text = _blank(self.text, start, end)

    def _add(self, start: int, end: int, target: str, text: str, kind: LinkKind, image: bool):
        target = target.strip()
        if not target:
            self.text = _blank(self.text, start, end)
            return
        link = Link(text=text, target=target, line=self.lineno, kind=kind, is_image=image)
        self._claim(start, end, link)

    def scan(self) -> List[Tuple[int, int, Link]]:
        for m in list(HTML_LINK_RE.finditer(self.text)):
            inner = HTML_TAG_RE.sub("", m.group("text")).strip()
            self._add(m.start(), m.end(), m.group("url"), inner, LinkKind.INLINE, False)
        for m in list(HTML_IMG_RE.finditer(self.text)):
            self._add(m.start(), m.end(), m.group("url"), "", LinkKind.INLINE, True)

        for m in list(INLINE_LINK_RE.finditer(self.text)):
            target = m.group("angle") if m.group("angle") is not None else m.group("bare")
            self._nested_images(m.group("text"), m.start("text"))
            image = bool(m.group("bang"))
            self._add(m.start(), m.end(), target or "", m.group("text"), LinkKind.INLINE, image)

        for m in list(AUTOLINK_RE.finditer(self.text)):
            url = m.group("url")
            self._add(m.start(), m.end(), url, url, LinkKind.AUTOLINK, False)

        for m in list(REFERENCE_LINK_RE.finditer(self.text)):
            label = normalize_label(m.group("label") or m.group("text"))
            if label in self.definitions:
                self._add(
                    m.start(),
                    m.end(),
                    self.definitions[label],
                    m.group("text"),
                    LinkKind.REFERENCE,
                    bool(m.group("bang")),
                )

        for m in list(SHORTCUT_LINK_RE.finditer(self.text)):
            label = normalize_label(m.group("text"))
            if label in self.definitions:
                self._add(
                    m.start(),
                    m.end(),
                    self.definitions[label],
                    m.group("text"),
                    LinkKind.REFERENCE,
                    bool(m.group("bang")),
                )

        self.spans.sort(key=lambda span: span[0])
        return self.spans

    def _nested_images(self, text: str, offset: int) -> None:
        """Badges are images wrapped in links: ``[![alt](img.svg)](target)``."""
        for m in INLINE_LINK_RE.finditer(text):
            if not m.group("bang"):
                continue
            target = m.group("angle") if m.group("angle") is not None else m.group("bare")
            if target and target.strip():
                link = Link(
                    text=m.group("text"),
                    target=target.strip(),
                    line=self.lineno,
                    kind=LinkKind.INLINE,
                    is_image=True,
                )
                self.spans.append((offset + m.start(), offset + m.end(), link))


def _skip_front_matter(lines: List[str]) -> int:
    if lines and lines[0].strip() == "---":
        for i in range(1, len(lines)):
            if lines[i].strip() in ("---", "..."):
                return i + 1
    return 0


def parse_markdown(text: str) -> ParsedDocument:
    """Parse Markdown text into a :class:`ParsedDocument`."""
    lines = text.splitlines()

    headings: List[Heading] = []
    code_blocks: List[CodeBlock] = []
    definitions: Dict[str, str] = {}
    text_lines: List[Tuple[int, str]] = []
    html_anchors: List[str] = []
    slug_counts: Dict[str, int] = {}

    fence: Optional[Dict] = None
    paragraph: List[str] = []
    paragraph_open = False

    def add_heading(level: int, heading_text: str, lineno: int) -> None:
        base = slugify(heading_text)
        count = slug_counts.get(base, 0)
        slug_counts[base] = count + 1
        slug = base if count == 0 else f"{base}-{count}"
        headings.append(Heading(level=level, text=heading_text, line=lineno, slug=slug))

    for index in range(_skip_front_matter(lines), len(lines)):
        line = lines[index]
        lineno = index + 1

        if fence is not None:
            closing = re.match(
                r"^ {0,3}%s{%d,}[ \t]*$" % (re.escape(fence["char"]), fence["length"]), line
            )
            if closing:
                code_blocks.append(
                    CodeBlock(
                        start_line=fence["start"],
                        end_line=lineno,
                        fence_char=fence["char"],
                        fence_length=fence["length"],
                        info=fence["info"],
                        closed=True,
                    )
                )
                fence = None
            continue

        opening = FENCE_OPEN_RE.match(line)
        if opening:
            char = opening.group("fence")[0]
            info = opening.group("info").strip()
            if not (char == "`" and "`" in info):
                fence = {
                    "char": char,
                    "length": len(opening.group("fence")),
                    "info": info,
                    "start": lineno,
                }
                paragraph, paragraph_open = [], False
                continue

        if not line.strip():
            paragraph, paragraph_open = [], False
            continue

        atx = ATX_HEADING_RE.match(line)
        if atx:
            add_heading(len(atx.group("hashes")), (atx.group("text") or "").strip(), lineno)
            text_lines.append((lineno, line))
            html_anchors.extend(HTML_ANCHOR_RE.findall(line))
            paragraph, paragraph_open = [], False
            continue

        underline = SETEXT_UNDERLINE_RE.match(line)
        if underline and paragraph:
            level = 1 if underline.group("char").startswith("=") else 2
            add_heading(level, " ".join(part.strip() for part in paragraph), lineno - len(paragraph))
            paragraph, paragraph_open = [], False
            continue

        definition = REF_DEFINITION_RE.match(line)
        if definition:
            target = definition.group("angle")
            if target is None:
                target = definition.group("bare")
            label = normalize_label(definition.group("label"))
            definitions.setdefault(label, target)
            paragraph, paragraph_open = [], False
            continue

        text_lines.append((lineno, line))
        html_anchors.extend(HTML_ANCHOR_RE.findall(line))

        if not paragraph_open:
            paragraph_open = True
            paragraph = [] if LIST_OR_QUOTE_RE.match(line) or line.startswith("    ") else [line]
        elif paragraph:
            paragraph.append(line)

    if fence is not None:
        code_blocks.append(
            CodeBlock(
                start_line=fence["start"],
                end_line=len(lines),
                fence_char=fence["char"],
                fence_length=fence["length"],
                info=fence["info"],
                closed=False,
            )
        )
        logger.debug("Unclosed code fence", start_line=fence["start"])

    links: List[Link] = []
    nav_links: List[NavLink] = []
    for lineno, line in text_lines:
        spans = _Scanner(line, lineno, definitions).scan()
        previous_end = 0
        for start, end, link in spans:
            links.append(link)
            if not link.is_image:
                kind = classify_nav(link.text, line[previous_end:start])
                if kind is not None:
                    nav_links.append(NavLink(kind=kind, link=link))
            previous_end = max(previous_end, end)

    return ParsedDocument(
        headings=headings,
        code_blocks=code_blocks,
        links=links,
        html_anchors=html_anchors,
        nav_links=nav_links,
    )
