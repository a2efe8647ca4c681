import inspect
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from .errors import HandlerNotFound

RUNTIME_NAMESPACE = 'hyperblade.runtime'


@dataclass(frozen=True)
class Signature:
    """Declared shape of a callable: positional parameter names, how many are required, and whether *args is accepted."""
    params: Tuple[str, ...] = ()
    required: int = 0
    variadic: bool = False

    def accepts(self, count: int) -> bool:
        if count < self.required:
            return False
        return self.variadic or count <= len(self.params)


@dataclass
class HandlerInfo:
    name: str
    handler: Any = None
    constructor: Optional[Signature] = None
    methods: Dict[str, Signature] = field(default_factory=dict)


def signature_of(func, drop_first: bool = False) -> Signature:
    """Builds a Signature from a Python callable."""
    params = list(inspect.signature(func).parameters.values())
    if drop_first and params:
        params = params[1:]
    names = []
    required = 0
    variadic = False
    for param in params:
        if param.kind == param.VAR_POSITIONAL:
            variadic = True
        elif param.kind in (param.POSITIONAL_ONLY, param.POSITIONAL_OR_KEYWORD):
            names.append(param.name)
            if param.default is param.empty:
                required += 1
    return Signature(tuple(names), required, variadic)


class Namespace:
    """A dotted path with registered handlers below it. Attribute access resolves the children."""

    def __init__(self, registry: "HandlerRegistry", path: str):
        self._registry = registry
        self._path = path

    def __getattr__(self, name: str) -> Any:
        if name.startswith('__'):
            raise AttributeError(name)
        return self._registry.resolve(f"{self._path}.{name}")

    def __repr__(self) -> str:
        return f"<Namespace {self._path}>"


class HandlerRegistry:
    """
    Metadata table of the handlers templates may reference.

    Handlers are registered once, ahead of compilation, under a dotted name
    (ex: `app.forms.Field`). The compiler only performs lookups here, it never
    introspects handler objects itself.
    """

    def __init__(self, builtins: bool = True):
        self.handlers: Dict[str, HandlerInfo] = {}
        if builtins:
            from .runtime import Html
            self.register_class(Html, RUNTIME_NAMESPACE + '.Html')

    def register(self, name: str, handler: Any = None, constructor: Optional[Signature] = None,
                 methods: Optional[Dict[str, Signature]] = None) -> HandlerInfo:
        """Registers a handler with explicit metadata. `handler` may be omitted for compile-only setups."""
        info = HandlerInfo(name, handler, constructor, dict(methods or {}))
        self.handlers[name] = info
        return info

    def register_class(self, cls: type, name: Optional[str] = None) -> HandlerInfo:
        """Registers a class, deriving its constructor and method signatures."""
        name = name or f"{cls.__module__}.{cls.__qualname__}"
        try:
            constructor = signature_of(cls)
        except (TypeError, ValueError):
            constructor = None

        methods: Dict[str, Signature] = {}
        for attr in dir(cls):
            if attr.startswith('_'):
                continue
            raw = inspect.getattr_static(cls, attr)
            if isinstance(raw, staticmethod):
                methods[attr] = signature_of(raw.__func__)
            elif isinstance(raw, classmethod):
                methods[attr] = signature_of(raw.__func__, drop_first=True)
            elif inspect.isfunction(raw):
                # Called on the class, so `self` must be passed explicitly
                methods[attr] = signature_of(raw)
        return self.register(name, cls, constructor, methods)

    def register_module(self, module) -> None:
        """Registers a module as a macro handler (its public functions) and every public class it defines."""
        methods: Dict[str, Signature] = {}
        for attr, value in vars(module).items():
            if attr.startswith('_'):
                continue
            if inspect.isclass(value) and value.__module__ == module.__name__:
                self.register_class(value, f"{module.__name__}.{attr}")
            elif inspect.isfunction(value):
                methods[attr] = signature_of(value)
        self.register(module.__name__, module, None, methods)

    def has(self, name: str) -> bool:
        return name in self.handlers

    def get(self, name: str) -> HandlerInfo:
        info = self.handlers.get(name)
        if info is None:
            raise HandlerNotFound(f"No handler is registered as '{name}'.")
        return info

    def method_signature(self, name: str, method: str) -> Signature:
        info = self.get(name)
        signature = info.methods.get(method)
        if signature is None:
            raise HandlerNotFound(f"Handler '{name}' has no method '{method}'.")
        return signature

    def resolve(self, path: str) -> Any:
        """Returns the runtime object registered at `path`, or a Namespace for a registered prefix."""
        info = self.handlers.get(path)
        if info is not None:
            if info.handler is None:
                raise HandlerNotFound(f"Handler '{path}' was registered without a runtime object.")
            return info.handler
        prefix = path + '.'
        if any(name.startswith(prefix) for name in self.handlers):
            return Namespace(self, path)
        raise HandlerNotFound(f"Nothing is registered at '{path}'.")


_default_registry: Optional[HandlerRegistry] = None


def get_registry() -> HandlerRegistry:
    """Get the process-wide registry, pre-loaded with the runtime handlers."""
    global _default_registry
    if _default_registry is None:
        _default_registry = HandlerRegistry()
    return _default_registry
