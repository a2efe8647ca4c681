import ast
import re
from typing import List, Tuple, Union

from .errors import InterpolationSyntaxError

# {{name}} style interpolations that can be inlined in an f-string
SIMPLE_EXPRESSION_RE = re.compile(r"^\w+$")

_ESCAPES = {'\\': '\\\\', '"': '\\"', '\n': '\\n', '\r': '\\r', '\t': '\\t'}


def quote(text: str) -> str:
    """Returns `text` as a double-quoted Python string literal."""
    return '"' + ''.join(_ESCAPES.get(char, char) for char in text) + '"'


class _Literal:
    """Literal text, possibly with simple variables folded in (rendered as an f-string)."""

    def __init__(self, parts: List[Tuple[bool, str]]):
        self.parts = parts

    def render(self) -> str:
        if not any(is_var for is_var, _ in self.parts):
            return quote(''.join(text for _, text in self.parts))
        out = ''
        for is_var, text in self.parts:
            if is_var:
                out += '{' + text + '}'
            else:
                out += ''.join(_ESCAPES.get(char, char) for char in text).replace('{', '{{').replace('}', '}}')
        return 'f"' + out + '"'


class _Variable:
    def __init__(self, name: str):
        self.name = name


class _Expression:
    def __init__(self, code: str):
        self.code = code


Segment = Union[_Literal, _Variable, _Expression]


def split_interpolations(value: str, open_tag: str = '{{', close_tag: str = '}}') -> List[Tuple[bool, str]]:
    """
    Splits a value into (is_expression, text) runs, left to right.
    Unterminated or empty markers are kept as literal text.
    """
    runs: List[Tuple[bool, str]] = []
    pos = 0
    while pos < len(value):
        start = value.find(open_tag, pos)
        if start == -1:
            runs.append((False, value[pos:]))
            break
        end = value.find(close_tag, start + len(open_tag))
        if end == -1:
            runs.append((False, value[pos:]))
            break
        if start > pos:
            runs.append((False, value[pos:start]))
        expression = value[start + len(open_tag):end].strip()
        if expression:
            runs.append((True, expression))
        else:
            runs.append((False, value[start:end + len(close_tag)]))
        pos = end + len(close_tag)
    return runs


def is_single_value(code: str) -> bool:
    """
    True when `code` is one expression both as a dict value and as a call argument,
    the two places generated code puts it. Ex: `a, b` or `x for x in y` are not.
    """
    try:
        tree = ast.parse(f"({{0: {code}}}, f({code}))", mode='eval')
    except (SyntaxError, ValueError):
        return False
    if not isinstance(tree.body, ast.Tuple) or len(tree.body.elts) != 2:
        return False
    as_value, as_argument = tree.body.elts
    return (isinstance(as_value, ast.Dict) and len(as_value.values) == 1
            and isinstance(as_argument, ast.Call) and len(as_argument.args) == 1
            and not as_argument.keywords and not isinstance(as_argument.args[0], ast.Starred))


def compile_interpolation(value: str, open_tag: str = '{{', close_tag: str = '}}') -> str:
    """
    Compiles an attribute value containing interpolations into a Python expression.

    The segment list is kept as small as possible: adjacent literal runs are
    merged and simple `{{name}}` interpolations next to literal text become
    f-string fields. What remains is joined with `+`.

    Ex: `btn {{'on' if active else 'off'}}` -> `"btn " + str('on' if active else 'off')`
    """
    segments: List[Segment] = []
    for is_expression, text in split_interpolations(value, open_tag, close_tag):
        last = segments[-1] if segments else None
        if not is_expression:
            if isinstance(last, _Literal):
                last.parts.append((False, text))
            elif isinstance(last, _Variable):
                segments[-1] = _Literal([(True, last.name), (False, text)])
            else:
                segments.append(_Literal([(False, text)]))
        elif SIMPLE_EXPRESSION_RE.match(text):
            if isinstance(last, _Literal):
                last.parts.append((True, text))
            else:
                segments.append(_Variable(text))
        else:
            segments.append(_Expression(text))

    if not segments:
        expression = '""'
    elif len(segments) == 1:
        # A lone expression keeps its own type (ex: a boolean attribute)
        segment = segments[0]
        if isinstance(segment, _Literal):
            expression = segment.render()
        elif isinstance(segment, _Variable):
            expression = segment.name
        else:
            expression = segment.code
    else:
        rendered = []
        for segment in segments:
            if isinstance(segment, _Literal):
                rendered.append(segment.render())
            elif isinstance(segment, _Variable):
                rendered.append(f"str({segment.name})")
            else:
                rendered.append(f"str({segment.code})")
        expression = ' + '.join(rendered)

    codes = [segment.code for segment in segments if isinstance(segment, _Expression)]
    if not all(is_single_value(code) for code in codes + [expression]):
        raise InterpolationSyntaxError(
            f"Syntax error on interpolated attribute value: {value}\nCompiled expression: {expression}")
    return expression
