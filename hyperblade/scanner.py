"""
Position-cursor scanning of the nestable constructs: block macros and tags.

Both are matched with the same recursive-or-consume rule. Inside a
construct's content, at each position:
  - the matching end tag closes the construct;
  - the same construct (same identity) opening again is matched recursively
    and skipped as a whole;
  - anything else is consumed as one character of content.
End tags of other constructs are plain content, so `@@end b` never closes
`@@a:`, and `</x:b>` never closes `<x:a>`.
"""

import re
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from .runtime import VOID_ELEMENTS

IDENT_RE = re.compile(r"[\w\-]+")
WORD_RE = re.compile(r"\w")

TAG_OPEN_RE = re.compile(r"<([\w\-]+)(?::([\w\-]+))?(?=[\s/>])")
TAG_END_RE = re.compile(r"\s*(/?)>")
ATTRIBUTE_RE = re.compile(r'''
    \s+
    ([\w\-:]+)              # attribute name, with an optional directive prefix
    (?:
      \s* = \s*
      ( \w+                 # bare variable or constant
      | "[^"]*"             # double quoted value
      | '[^']*'             # single quoted value
      )
    )?
''', re.X)


@dataclass
class MacroSyntax:
    prefix: str = '@@'
    delimiters: str = '.:'
    body_start: str = ':'


@dataclass
class Macro:
    start: int
    end: int
    alias: str
    method: str
    args: Optional[str] = None
    # None for simple macros
    content: Optional[str] = None

    @property
    def identity(self) -> Tuple[str, str]:
        return self.alias, self.method


@dataclass
class OpenTag:
    start: int
    end: int
    prefix: str
    name: str
    attributes: List[Tuple[str, Optional[str]]] = field(default_factory=list)
    attr_text: str = ''
    self_closing: bool = False

    @property
    def qualified_name(self) -> str:
        return f"{self.prefix}:{self.name}" if self.prefix else self.name


@dataclass
class Element:
    tag: OpenTag
    end: int
    content: str = ''

    @property
    def start(self) -> int:
        return self.tag.start


# --- Whitespace helpers ---

def skip_space(text: str, pos: int) -> int:
    while pos < len(text) and text[pos].isspace():
        pos += 1
    return pos


def is_word_before(text: str, pos: int) -> bool:
    return pos > 0 and WORD_RE.match(text[pos - 1]) is not None


def leading_space(text: str, pos: int, floor: int = 0) -> int:
    """Start of the whitespace run that ends at `pos` (never before `floor`)."""
    start = pos
    while start > floor and text[start - 1].isspace():
        start -= 1
    return start


def line_lead(text: str, pos: int, floor: int = 0) -> int:
    """
    Start of the whitespace that precedes `pos` from a line start on.
    Returns `pos` when something other than whitespace precedes it on its line.
    """
    start = leading_space(text, pos, floor)
    if start == 0 or text[start - 1] == '\n':
        return start
    newline = text.find('\n', start, pos)
    return pos if newline == -1 else newline + 1


def indent_of(space: str, at_line_start: bool = False) -> str:
    """The indentation part of a leading whitespace run: the text after its last line break."""
    if '\n' in space:
        return space.rsplit('\n', 1)[1]
    return space if at_line_start else ''


# --- Argument lists ---

def read_balanced(text: str, pos: int, open_char: str = '(', close_char: str = ')') -> Optional[int]:
    """
    Reads a bracketed block starting at `pos`, honoring nesting and quoted
    strings. Returns the index right after the closing bracket, or None.
    """
    depth = 0
    quote = None
    i = pos
    while i < len(text):
        char = text[i]
        if quote:
            if char == '\\':
                i += 1
            elif char == quote:
                quote = None
        elif char in '"\'':
            quote = char
        elif char == open_char:
            depth += 1
        elif char == close_char:
            depth -= 1
            if depth == 0:
                return i + 1
        i += 1
    return None


def count_arguments(args: Optional[str]) -> int:
    """Number of arguments in an argument list: top-level commas + 1, or 0 when empty."""
    if args is None or not args.strip():
        return 0
    count = 1
    depth = 0
    quote = None
    i = 0
    while i < len(args):
        char = args[i]
        if quote:
            if char == '\\':
                i += 1
            elif char == quote:
                quote = None
        elif char in '"\'':
            quote = char
        elif char in '([{':
            depth += 1
        elif char in ')]}':
            depth -= 1
        elif char == ',' and depth == 0:
            count += 1
        i += 1
    return count


# --- Macros ---

def macro_heads(text: str, pos: int, syntax: MacroSyntax) -> List[Tuple[str, str, int]]:
    """
    Candidate (alias, method, end) readings of the macro starting at `pos`.
    The aliased reading comes first; the unaliased one is the fallback
    (`@@section:Hello` may also be macro `section` followed by its body).
    """
    first = IDENT_RE.match(text, pos + len(syntax.prefix))
    if not first:
        return []
    heads = []
    end = first.end()
    if end < len(text) and text[end] in syntax.delimiters:
        second = IDENT_RE.match(text, end + 1)
        if second:
            heads.append((first.group(), second.group(), second.end()))
    heads.append(('', first.group(), end))
    return heads


def parse_end_tag(text: str, pos: int, syntax: MacroSyntax) -> Optional[Tuple[str, str, int]]:
    """Reads an end tag (`@@end alias:method`) at `pos`. Returns (alias, method, end) or None."""
    marker = syntax.prefix + 'end'
    if not text.startswith(marker, pos):
        return None
    i = pos + len(marker)
    while i < len(text) and text[i] in ' \t':
        i += 1
    first = IDENT_RE.match(text, i)
    if not first:
        return None
    end = first.end()
    if end < len(text) and text[end] in syntax.delimiters:
        second = IDENT_RE.match(text, end + 1)
        if second:
            return first.group(), second.group(), second.end()
    return '', first.group(), end


def _read_args(text: str, pos: int) -> Tuple[Optional[str], int, bool]:
    """Reads an optional `(args)` block after `pos`. Returns (args, end, ok)."""
    start = skip_space(text, pos)
    if start < len(text) and text[start] == '(':
        close = read_balanced(text, start)
        if close is None:
            return None, pos, False
        return text[start + 1:close - 1].strip(), close, True
    return None, pos, True


def find_simple_macro(text: str, pos: int, syntax: MacroSyntax) -> Optional[Macro]:
    """Matches `@@[alias.]method[(args)]` at `pos`, unless it opens a block or is an end tag."""
    if parse_end_tag(text, pos, syntax):
        return None
    for alias, method, end in macro_heads(text, pos, syntax):
        following = text[end:end + 2]
        if following[:1] and following[0] in syntax.delimiters and IDENT_RE.match(following, 1):
            continue
        args, end, ok = _read_args(text, end)
        if not ok:
            continue
        after = skip_space(text, end)
        if text.startswith(syntax.body_start, after):
            continue
        if text.startswith('(', after):
            continue
        return Macro(pos, end, alias, method, args)
    return None


def find_macro_block(text: str, pos: int, syntax: MacroSyntax) -> Optional[Macro]:
    """
    Matches `@@[alias.]method[(args)]: content @@end [alias.]method` at `pos`.
    Returns None when the block is not properly closed.
    """
    if parse_end_tag(text, pos, syntax):
        return None
    for alias, method, end in macro_heads(text, pos, syntax):
        args, end, ok = _read_args(text, end)
        if not ok:
            continue
        body = skip_space(text, end)
        if not text.startswith(syntax.body_start, body):
            continue
        content_start = skip_space(text, body + len(syntax.body_start))
        i = content_start
        while i < len(text):
            if text.startswith(syntax.prefix, i):
                closing = parse_end_tag(text, i, syntax)
                if closing:
                    if closing[:2] == (alias, method):
                        return Macro(pos, closing[2], alias, method, args, text[content_start:i])
                else:
                    inner = find_macro_block(text, i, syntax)
                    if inner and inner.identity == (alias, method):
                        i = inner.end
                        continue
            i += 1
    return None


# --- Tags ---

def parse_open_tag(text: str, pos: int) -> Optional[OpenTag]:
    """Reads `<name attr...>`, `<prefix:name attr...>` or their `/>` forms at `pos`."""
    match = TAG_OPEN_RE.match(text, pos)
    if not match:
        return None
    if match.group(2):
        prefix, name = match.group(1), match.group(2)
    else:
        prefix, name = '', match.group(1)

    attributes = []
    i = match.end()
    while True:
        attribute = ATTRIBUTE_RE.match(text, i)
        if not attribute:
            break
        attributes.append((attribute.group(1), attribute.group(2)))
        i = attribute.end()
    close = TAG_END_RE.match(text, i)
    if not close:
        return None
    return OpenTag(pos, close.end(), prefix, name, attributes, text[match.end():i], close.group(1) == '/')


def find_element(text: str, pos: int, prefix: Optional[str] = None, name: Optional[str] = None) -> Optional[Element]:
    """
    Matches a whole element at `pos`, up to its own closing tag.
    When `prefix`/`name` are given, the element must have that identity.
    Unprefixed void elements (ex: <input>) are complete without a closing tag.
    """
    tag = parse_open_tag(text, pos)
    if tag is None:
        return None
    if prefix is not None and (tag.prefix, tag.name) != (prefix, name):
        return None
    if tag.self_closing or (not tag.prefix and tag.name.lower() in VOID_ELEMENTS):
        return Element(tag, tag.end)

    opening = '<' + tag.qualified_name
    closing = f"</{tag.qualified_name}>"
    i = tag.end
    while i < len(text):
        if text.startswith(closing, i):
            return Element(tag, i + len(closing), text[tag.end:i])
        if text.startswith(opening, i) and text[i + len(opening):i + len(opening) + 1] in (' ', '\t', '\r', '\n', '/', '>'):
            inner = find_element(text, i, tag.prefix, tag.name)
            if inner:
                i = inner.end
                continue
        i += 1
    return None
