import ast
import html
import logging
import re
import time
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Iterator, List, Optional, Tuple, Union

from . import scanner
from .cache import CompileCache
from .config import CompilerOptions
from .context import RUNTIME_ALIAS, CompilationContext, snake_case
from .errors import ArityError, ConstructorArityError, HyperbladeError, InterpolationSyntaxError
from .interpolation import compile_interpolation, is_single_value, quote
from .registry import HandlerRegistry, get_registry
from .runtime import unindent

logger = logging.getLogger(__name__)

# @use(app.forms as form), alone on its line
USE_RE = re.compile(r"(?<!\w)(\s*)@use\s*\(\s*(\S+?)\s*(?:\bas\s+([\w\-]+)\s*)?\)[ \t]*$", re.M)
# xmlns:form="app.forms", on any tag
NAMESPACE_RE = re.compile(r"\bxmlns:([\w\-]+)\s*=\s*([\"'])(.*?)\2\s*", re.S)
CONFIG_RE = re.compile(r"@config\s*^(.*?)^\s*@endconfig\s*", re.S | re.M)
CONFIG_LINE_RE = re.compile(r"^\s*([\w\-]+)\s*:\s*(.+?)\s*$")
CONTENT_RE = re.compile(r"(?<![\w@])@content(?![\w\-])")

# Attribute prefixes that belong to XML itself, never directives (ex: xml:lang, xlink:href)
XML_PREFIXES = ('xml', 'xlink', 'xmlns')
# Bare attribute values written the HTML/JSON way
BARE_LITERALS = {'true': 'True', 'false': 'False', 'null': 'None'}


def directive_of(name: str) -> Optional[Tuple[str, str]]:
    """Splits a directive attribute name into (alias, handler); None for plain attributes."""
    prefix, sep, handler = name.partition(':')
    if not sep or not prefix or not handler or prefix.lower() in XML_PREFIXES:
        return None
    return prefix, handler


class BlockKind(Enum):
    LITERAL = 'literal'
    DYNAMIC = 'dynamic'


@dataclass
class CompiledBlock:
    """
    Result of compiling a nested block.
    LITERAL text can be passed to a handler as a plain string;
    DYNAMIC text contains code and has to be captured at runtime.
    """
    kind: BlockKind
    text: str

    @property
    def is_literal(self) -> bool:
        return self.kind is BlockKind.LITERAL


@contextmanager
def attach_fragment(source: str) -> Iterator[None]:
    """Adds the source text of the construct being compiled to compile errors raised inside."""
    try:
        yield
    except HyperbladeError as error:
        if error.fragment is None:
            error.fragment = source.strip()
        raise


class HyperbladeCompiler:
    """
    Hyperblade Compiler
    Rewrites the Hyperblade constructs of a template into markup interleaved
    with Python code blocks; everything else passes through untouched.

    Passes, in order:
    - @use(target as alias) declarations
    - xmlns:alias="target" declarations
    - @config ... @endconfig blocks
    - @content
    - simple macros (@@alias.method(args))
    - block macros (@@alias.method(args): content @@end alias.method)
    - attribute directives on plain elements (<div alias:mixin="value">)
    - components (<alias:tag attrs>content</alias:tag>)
    """

    def __init__(self, registry: Optional[HandlerRegistry] = None, options: Optional[CompilerOptions] = None,
                 cache: Optional[CompileCache] = None):
        self.registry = registry or get_registry()
        self.options = options or CompilerOptions()
        self.cache = cache if cache is not None else CompileCache(self.options.cache_size)
        self.syntax = scanner.MacroSyntax(self.options.macro_prefix, self.options.alias_delimiters,
                                          self.options.body_start)
        self.passes = [
            self.compile_uses,
            self.compile_namespaces,
            self.compile_config_blocks,
            self.compile_content_injectors,
            self.compile_simple_macros,
            self.compile_block_macros,
            self.compile_attribute_directives,
            self.compile_components,
        ]

    # --- Entry points ---

    def compile(self, segment: str, ctx: CompilationContext) -> str:
        """Compiles a template segment. At the outermost level, the alias prolog is prepended."""
        with ctx.nested() as level:
            text = segment
            for compile_pass in self.passes:
                text = compile_pass(text, ctx)
                logger.debug("%s done (level %d)", compile_pass.__name__, level)

            if level == 1:
                prolog = ctx.take_prolog()
                if prolog:
                    code_open, code_close = self.options.code_tags
                    text = f"{code_open}\n" + '\n'.join(prolog) + f"\n{code_close}" + text
        return text

    def compile_block(self, segment: str, ctx: CompilationContext) -> CompiledBlock:
        emitted = ctx.emitted
        text = self.compile(segment, ctx)
        if ctx.emitted > emitted or self._has_host_code(segment):
            return CompiledBlock(BlockKind.DYNAMIC, text)
        return CompiledBlock(BlockKind.LITERAL, text)

    def compile_string(self, view: str) -> str:
        """Compiles a whole template with a fresh context."""
        cached = self.cache.get(view)
        if cached is not None:
            return cached
        compiled = self.compile(view, CompilationContext(self.registry))
        self.cache.set(view, compiled)
        return compiled

    def compile_file(self, path: Union[str, Path]) -> str:
        start = time.perf_counter()
        with open(path, 'r') as f:
            source = f.read()
        try:
            compiled = self.compile_string(source)
        except HyperbladeError as error:
            logger.debug("Failed to compile %s: %s", path, error.message)
            raise
        if self.options.profile:
            logger.info("Compiled %s in %.2f ms", path, (time.perf_counter() - start) * 1000)
        return compiled

    def compile_to(self, src: Union[str, Path], dst: Union[str, Path]) -> None:
        compiled = self.compile_file(src)
        dst = Path(dst)
        dst.parent.mkdir(parents=True, exist_ok=True)
        with open(dst, 'w') as f:
            f.write(compiled)
        logger.info("Wrote %s", dst)

    # --- Declarations ---

    def compile_uses(self, text: str, ctx: CompilationContext) -> str:
        def replace(match):
            lead, target, alias = match.groups()
            with attach_fragment(match.group(0)):
                ctx.register_namespace(alias or '', target)
            logger.debug("Bound %s to %s", f"alias '{alias}'" if alias else 'default alias', target)
            return lead

        return USE_RE.sub(replace, text)

    def compile_namespaces(self, text: str, ctx: CompilationContext) -> str:
        def replace(match):
            with attach_fragment(match.group(0)):
                ctx.register_namespace(match.group(1), match.group(3))
            return ''

        return NAMESPACE_RE.sub(replace, text)

    def compile_config_blocks(self, text: str, ctx: CompilationContext) -> str:
        """Moves @config blocks into the prolog as a single `my.config({...})` call."""

        def replace(match):
            entries = []
            with attach_fragment(match.group(0)):
                for line in match.group(1).splitlines():
                    if not line.strip():
                        continue
                    entry = CONFIG_LINE_RE.match(line)
                    if not entry:
                        raise HyperbladeError(f"Invalid @config line '{line.strip()}', expected 'key: value'.")
                    key, value = entry.groups()
                    try:
                        ast.parse(value, mode='eval')
                    except SyntaxError:
                        raise HyperbladeError(f"Invalid value for @config key '{key}': {value}")
                    entries.append(f"    {quote(key)}: {value},")
            ctx.prolog.append("my.config({\n" + '\n'.join(entries) + "\n})")
            return ''

        return CONFIG_RE.sub(replace, text)

    def compile_content_injectors(self, text: str, ctx: CompilationContext) -> str:
        code_open, code_close = self.options.code_tags
        text, count = CONTENT_RE.subn(f"{code_open} _h.echo(my.get_content()) {code_close}", text)
        ctx.emitted += count
        return text

    # --- Macros ---

    def compile_simple_macros(self, text: str, ctx: CompilationContext) -> str:
        return self._replace_macros(text, ctx, scanner.find_simple_macro, self._simple_macro)

    def compile_block_macros(self, text: str, ctx: CompilationContext) -> str:
        return self._replace_macros(text, ctx, scanner.find_macro_block, self._block_macro)

    def _replace_macros(self, text: str, ctx: CompilationContext, find, generate) -> str:
        """Replaces every macro `find` matches, left to right, with the code `generate` returns for it."""
        prefix = self.syntax.prefix
        out: List[str] = []
        last = 0
        pos = text.find(prefix)
        while pos != -1:
            macro = find(text, pos, self.syntax)
            start = scanner.leading_space(text, pos, last)
            if macro is None or (start == pos and scanner.is_word_before(text, pos)):
                pos = text.find(prefix, pos + 1)
                continue

            lead = text[start:pos]
            out.append(text[last:start])
            with attach_fragment(text[pos:macro.end]):
                out.append(generate(macro, lead, scanner.indent_of(lead, start == 0), ctx))
            last = macro.end
            pos = text.find(prefix, last)
        out.append(text[last:])
        return ''.join(out)

    def _macro_target(self, macro: scanner.Macro, ctx: CompilationContext, extra: int = 0) -> Tuple[str, str]:
        """Validates a macro call against its handler method, returns the (symbol, method) to call."""
        target = ctx.get_namespace(macro.alias)
        method = snake_case(macro.method)
        signature = ctx.registry.method_signature(target, method)
        count = scanner.count_arguments(macro.args) + extra
        if not signature.accepts(count):
            expected = f"at least {signature.required}" if signature.variadic else \
                f"{signature.required} to {len(signature.params)}"
            raise ArityError(f"{target}.{method}() takes {expected} argument(s), {count} given.")
        return ctx.get_normalized_prefix_alias(macro.alias), method

    def _simple_macro(self, macro: scanner.Macro, lead: str, space: str, ctx: CompilationContext) -> str:
        symbol, method = self._macro_target(macro, ctx)
        ctx.emitted += 1
        return self._write(f"{symbol}.{method}({macro.args or ''})", lead, space)

    def _block_macro(self, macro: scanner.Macro, lead: str, space: str, ctx: CompilationContext) -> str:
        symbol, method = self._macro_target(macro, ctx, extra=1)
        block = self.compile_block(macro.content.rstrip(), ctx)
        args = f", {macro.args}" if macro.args else ''
        ctx.emitted += 1
        if block.is_literal:
            return self._write(f"{symbol}.{method}({quote(block.text)}{args})", lead, space)
        return self._capture(lead) + block.text + self._write(f"{symbol}.{method}(_h.end_capture(){args})", '', space)

    # --- Tags ---

    def compile_attribute_directives(self, text: str, ctx: CompilationContext) -> str:
        """Turns plain elements carrying directive attributes into generic `_h:html` components."""
        out: List[str] = []
        last = 0
        pos = text.find('<')
        while pos != -1:
            tag = scanner.parse_open_tag(text, pos)
            element = None
            directives = [directive_of(name) for name, _ in tag.attributes] if tag and not tag.prefix else []
            directives = [directive for directive in directives if directive]
            if directives:
                element = scanner.find_element(text, pos, '', tag.name)
            if element is None:
                pos = text.find('<', pos + 1)
                continue

            with attach_fragment(text[pos:element.end]):
                for alias, handler in directives:
                    ctx.get_handler_identifier(alias, handler)
            out.append(text[last:pos])
            out.append(self._promote(element))
            last = element.end
            pos = text.find('<', last)
        out.append(text[last:])
        return ''.join(out)

    def _promote(self, element: scanner.Element) -> str:
        tag = element.tag
        name = f"{RUNTIME_ALIAS}:html"
        opening = f'<{name} tag="{tag.name}"{tag.attr_text}'
        if element.end == tag.end:
            return opening + ' />'
        return f"{opening}>{element.content}</{name}>"

    def compile_components(self, text: str, ctx: CompilationContext) -> str:
        out: List[str] = []
        last = 0
        pos = text.find('<')
        while pos != -1:
            tag = scanner.parse_open_tag(text, pos)
            element = scanner.find_element(text, pos, tag.prefix, tag.name) if tag and tag.prefix else None
            if element is None:
                pos = text.find('<', pos + 1)
                continue

            start = scanner.line_lead(text, pos, last)
            lead = text[start:pos]
            out.append(text[last:start])
            with attach_fragment(text[pos:element.end]):
                out.append(self._component(element, lead, scanner.indent_of(lead, True), ctx))
            last = element.end
            pos = text.find('<', last)
        out.append(text[last:])
        return ''.join(out)

    def _component(self, element: scanner.Element, lead: str, space: str, ctx: CompilationContext) -> str:
        tag = element.tag
        identifier = ctx.get_handler_identifier(tag.prefix, tag.name)
        constructor = ctx.registry.get(identifier).constructor
        if constructor is None or len(constructor.params) != 3:
            raise ConstructorArityError(
                f"Component class {identifier} must take exactly 3 constructor arguments (attrs, content, scope).")
        symbol = ctx.get_handler_symbol(tag.prefix, tag.name)
        attrs, mixins = self._compile_attributes(tag.attributes, ctx)

        content = element.content
        if content.startswith('\n') or content.startswith('\r\n'):
            content = content.lstrip()
        block = self.compile_block(unindent(content, space), ctx)
        ctx.emitted += 1

        if block.is_literal:
            call = f"{symbol}({attrs}, {quote(block.text.strip())}, locals()){mixins}.run()"
            return self._write(call, lead, space)
        call = f"{symbol}({attrs}, _h.end_capture(), locals()){mixins}.run()"
        return self._capture(lead) + block.text.strip() + self._write(call, space, space)

    def _compile_attributes(self, attributes, ctx: CompilationContext) -> Tuple[str, str]:
        """Returns the attribute dict literal and the `.mixin(...)` call of a component."""
        attrs = []
        mixins = []
        for name, raw in attributes:
            value = self._attribute_value(raw)
            directive = directive_of(name)
            if directive:
                prefix, mixin_name = directive
                identifier = ctx.get_handler_identifier(prefix, mixin_name)
                constructor = ctx.registry.get(identifier).constructor
                if constructor is None or len(constructor.params) != 1:
                    raise ConstructorArityError(f"Mixin class {identifier} must take exactly 1 constructor argument.")
                mixins.append(f"{ctx.get_handler_symbol(prefix, mixin_name)}({value})")
            else:
                attrs.append(f"{quote(name)}: {value}")
        return '{' + ', '.join(attrs) + '}', (f".mixin({', '.join(mixins)})" if mixins else '')

    def _attribute_value(self, raw: Optional[str]) -> str:
        if raw is None:
            # Valueless attribute
            return 'True'
        if raw[0] in '"\'':
            return compile_interpolation(html.unescape(raw[1:-1]), *self.options.echo_tags)
        if raw in BARE_LITERALS:
            return BARE_LITERALS[raw]
        if not is_single_value(raw):
            raise InterpolationSyntaxError(f"Invalid unquoted attribute value: {raw}")
        return raw

    # --- Output ---

    def _write(self, expression: str, lead: str, space: str) -> str:
        code_open, code_close = self.options.code_tags
        if not self.options.preserve_indent:
            return f"{code_open} _h.echo({expression}) {code_close}"
        return f"{lead}{code_open} _h.out({expression}, {quote(space)}) {code_close}"

    def _capture(self, lead: str) -> str:
        code_open, code_close = self.options.code_tags
        return f"{lead if self.options.preserve_indent else ''}{code_open} _h.capture() {code_close}"

    def _has_host_code(self, segment: str) -> bool:
        markers = (self.options.code_tags[0], self.options.echo_tags[0], self.options.raw_echo_tags[0])
        return any(marker in segment for marker in markers)
