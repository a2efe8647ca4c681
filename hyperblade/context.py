import keyword
import re
from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional

from .errors import AliasConflict, HandlerNotFound, InvalidTarget, UnboundAlias
from .registry import RUNTIME_NAMESPACE, HandlerRegistry, get_registry

TARGET_RE = re.compile(r"^\w+(?:\.\w+)*$")

# Reserved alias for the built-in handlers (ex: <_h:html>)
RUNTIME_ALIAS = '_h'

# Names generated code relies on: the current component, attribute stringification, the view scope
RESERVED_SYMBOLS = ('my', 'str', 'locals')


def normalize_alias(alias: str) -> str:
    """Alias keys are case-insensitive and dash-insensitive."""
    return alias.replace('-', '').lower()


def snake_case(name: str) -> str:
    return name.replace('-', '_')


def class_name(name: str) -> str:
    """Converts a dash-cased tag name into a class name: super-field -> SuperField."""
    return ''.join(part[:1].upper() + part[1:] for part in re.split(r"[-_]", name) if part)


def _terminal(target: str) -> str:
    return target.rsplit('.', 1)[-1]


class CompilationContext:
    """
    State shared by every (recursive) compile of one template.

    Holds the alias registry, the prolog statements to emit before the
    compiled output and the compile nesting level.
    """

    def __init__(self, registry: Optional[HandlerRegistry] = None):
        self.registry = registry or get_registry()
        self.namespaces: Dict[str, str] = {RUNTIME_ALIAS: RUNTIME_NAMESPACE}
        # Code symbols, derived from the spelling the alias was declared with
        self.symbols: Dict[str, str] = {RUNTIME_ALIAS: RUNTIME_ALIAS}
        self.nesting_level = 0
        self.prolog: List[str] = []
        # Number of code fragments generated so far; lets callers tell literal from dynamic output
        self.emitted = 0

    def _describe(self, alias: str) -> str:
        return f"'{alias}' alias" if alias else 'default alias'

    def register_namespace(self, alias: str, target: str) -> None:
        """
        Binds an alias (or the default alias, '') to a handler or namespace target.
        Re-binding an alias to the identical target is allowed, since a block
        may be compiled more than once with the same context.
        """
        if not TARGET_RE.match(target):
            raise InvalidTarget(f"'{target}' is not a valid handler or namespace path.")
        key = normalize_alias(alias)

        current = self.namespaces.get(key)
        if current is not None:
            if current == target:
                return
            raise AliasConflict(
                f"The {self._describe(alias)} is already bound to '{current}', it can't be bound to '{target}'.")

        # The default alias must not shadow a named alias, nor the other way around
        default = self.namespaces.get('')
        if key and default is not None and normalize_alias(_terminal(default)) == key:
            raise AliasConflict(f"The {self._describe(alias)} conflicts with the default handler '{default}'.")
        if not key and normalize_alias(_terminal(target)) in self.namespaces:
            raise AliasConflict(f"The default handler '{target}' conflicts with an alias of the same name.")

        symbol = None
        if key:
            symbol = class_name(alias) if _terminal(target)[:1].isupper() else snake_case(alias)
            if not symbol.isidentifier() or keyword.iskeyword(symbol) or symbol in RESERVED_SYMBOLS:
                raise AliasConflict(f"The {self._describe(alias)} can't be used as the name '{symbol}' in generated code.")
            if symbol in self.symbols.values():
                raise AliasConflict(f"The {self._describe(alias)} generates the symbol '{symbol}', which is already in use.")

        self.namespaces[key] = target
        if symbol:
            self.symbols[key] = symbol
            self.prolog.append(f'{symbol} = _h.resolve("{target}")')

    def get_namespace(self, alias: str) -> str:
        key = normalize_alias(alias)
        target = self.namespaces.get(key)
        if target is None:
            if alias:
                raise UnboundAlias(f"Alias '{alias}' is not bound to a handler or namespace.")
            raise UnboundAlias("The default alias is not bound to a handler or namespace.")
        return target

    def get_handler_identifier(self, prefix: str, name: str) -> str:
        """Resolves `<prefix:name>` to the dotted name of a registered handler class."""
        namespace = self.get_namespace(prefix)
        identifier = f"{namespace}.{class_name(name)}"
        if not self.registry.has(identifier):
            raise HandlerNotFound(f"No handler was found for <{prefix}:{name}> on the '{namespace}' namespace.")
        return identifier

    def get_handler_symbol(self, prefix: str, name: str) -> str:
        """The expression generated code uses to reference the handler of `<prefix:name>`."""
        self.get_handler_identifier(prefix, name)
        return f"{self.get_normalized_prefix_alias(prefix)}.{class_name(name)}"

    def get_normalized_prefix_alias(self, alias: str) -> str:
        """
        The symbol generated code uses for an alias. Capitalized when the bound
        target's last segment is (ie. the alias names a class).
        The default alias has no symbol and is resolved at runtime.
        """
        target = self.get_namespace(alias)
        if not alias:
            return f'_h.resolve("{target}")'
        return self.symbols[normalize_alias(alias)]

    @contextmanager
    def nested(self) -> Iterator[int]:
        """Scoped nesting level guard; always restores the level, even on errors."""
        self.nesting_level += 1
        try:
            yield self.nesting_level
        finally:
            self.nesting_level -= 1

    def take_prolog(self) -> List[str]:
        """Returns the pending prolog statements and clears them."""
        prolog, self.prolog = self.prolog, []
        return prolog
