import html
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from .registry import RUNTIME_NAMESPACE, HandlerRegistry, get_registry

# HTML tags that should not have closing tags
VOID_ELEMENTS = {
    "area", "base", "br", "col", "embed", "hr", "img", "input",
    "link", "meta", "param", "source", "track", "wbr"
}


def indent(text: str, space: str) -> str:
    """Adds `space` to the beginning of each line in `text`, except for the first one."""
    return text.replace('\n', '\n' + space)


def unindent(text: str, space: str) -> str:
    """Removes `space` from the beginning of each line in `text`."""
    if not space:
        return text
    return '\n'.join(line[len(space):] if line.startswith(space) else line for line in text.split('\n'))


def e(value: Any) -> str:
    """
    Escapes a value for output.

    Lists become space-separated value lists (useful for `class`).
    Dicts become either the list of keys whose value is truthy, or a
    semicolon-separated list of `key:value` pairs if any value is a string.
    Booleans become "true" / "false" and None becomes an empty string.
    """
    if isinstance(value, str):
        return html.escape(value, quote=True)
    if value is None:
        return ''
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, (list, tuple)):
        return html.escape(' '.join(str(item) for item in value), quote=True)
    if isinstance(value, dict):
        items = []
        separator = ' '
        for key, item in value.items():
            if isinstance(item, str):
                items.append(f"{key}:{item}")
                separator = ';'
            elif item:
                items.append(str(key))
        return html.escape(separator.join(items), quote=True)
    raise TypeError(f"Can't output a value of type {type(value).__name__}")


class Output:
    """
    The `_h` helper bound by the host engine while a compiled template runs.
    Collects output, supports nested capture buffers and re-indents emitted blocks.
    """

    def __init__(self, registry: Optional[HandlerRegistry] = None):
        self.registry = registry or get_registry()
        self._buffers: List[List[str]] = [[]]

    def echo(self, text: Any) -> None:
        self._buffers[-1].append(str(text))

    def out(self, text: Any, space: str) -> None:
        """Writes `text` with every line but the first indented by `space`."""
        self.echo(indent(str(text), space))

    def capture(self) -> None:
        self._buffers.append([])

    def end_capture(self) -> str:
        if len(self._buffers) == 1:
            raise RuntimeError("end_capture() called without a matching capture()")
        return ''.join(self._buffers.pop())

    def resolve(self, path: str) -> Any:
        return self.registry.resolve(path)

    def __getattr__(self, name: str) -> Any:
        # Built-in handlers (ex: `_h.Html` for <_h:html>)
        if name.startswith('_'):
            raise AttributeError(name)
        return self.registry.resolve(f"{RUNTIME_NAMESPACE}.{name}")

    def e(self, value: Any) -> str:
        return e(value)

    def getvalue(self) -> str:
        return ''.join(self._buffers[0])


class PropertyList(dict):
    """Dict whose items are also readable as attributes. Unset properties read as None."""

    def __getattr__(self, name: str) -> Any:
        if name.startswith('__'):
            raise AttributeError(name)
        return self.get(name)

    def __setattr__(self, name: str, value: Any) -> None:
        self[name] = value

    def __delattr__(self, name: str) -> None:
        self.pop(name, None)

    def extend(self, data: Dict[str, Any]) -> None:
        """Merges in the given data."""
        self.update(data)

    def defaults(self, data: Dict[str, Any]) -> None:
        """Applies the given values to the properties that are unset."""
        for key, value in data.items():
            self.setdefault(key, value)


class Component(ABC):
    """
    Base class for components.

    Compiled templates construct components with three arguments (the tag's
    attributes, its content and the calling view's scope), apply mixins and
    call run(). Subclassing is optional, any class with that shape works.
    """

    tag_name = ''

    def __init__(self, attrs: Dict[str, Any], content: str, scope: Dict[str, Any]):
        self.tag = self.tag_name
        self.scope = PropertyList()
        self.attr = PropertyList(attrs)
        self.attr['class'] = self.attr_to_list(self.attr.get('class'))
        self.attr['style'] = self.attr_to_list(self.attr.get('style'))
        self.content = content
        self.view_scope = PropertyList(scope)

    def config(self, data: Dict[str, Any]) -> None:
        """Merges data into the component's scope. Used by @config blocks."""
        self.scope.extend(data)

    def get_content(self) -> str:
        """Returns the component's content block. Used by @content."""
        return self.content

    def run(self) -> str:
        self.set_view_model()
        return self.render()

    def mixin(self, *mixins: "Mixin") -> "Component":
        """Applies mixins in order, returns self for chaining."""
        for mixin in mixins:
            mixin.run(self)
        return self

    def add_css_class(self, class_name: str) -> None:
        if class_name not in self.attr['class']:
            self.attr['class'].append(class_name)

    def generate_attributes(self) -> str:
        out = ''
        for name, value in self.attr.items():
            attribute = self.to_attribute(name, value)
            if attribute:
                out += ' ' + attribute
        return out

    def set_view_model(self) -> None:
        # `my` refers back to the component from its view
        self.scope['my'] = self

    @abstractmethod
    def render(self) -> str:
        """Generates the component's output."""

    @staticmethod
    def to_attribute(name: str, value: Any) -> Optional[str]:
        """
        Generates the markup of one attribute, or None when it should be omitted.
        True generates a valueless attribute, False and empty lists omit it.
        """
        if value is None:
            return None
        if isinstance(value, bool):
            return name if value else None
        if isinstance(value, (str, int, float)):
            return f'{name}="{e(value)}"'
        if isinstance(value, (list, tuple, dict)):
            if not value:
                return None
            return f'{name}="{e(value)}"'
        raise TypeError(f"Invalid value of type {type(value).__name__} for attribute {name}")

    @staticmethod
    def attr_to_list(value: Any) -> List[Any]:
        """Converts an attribute value into a list (ex: for `class` and `style`)."""
        if value is None:
            return []
        if isinstance(value, list):
            return value
        if isinstance(value, dict):
            return [key for key, item in value.items() if item]
        return str(value).split()


class Mixin(ABC):
    """
    A lightweight behavior applied to a component instance.
    Declared in markup as a directive attribute: `prefix:name="value"`.
    """

    def __init__(self, value: Any):
        self.value = value

    @abstractmethod
    def run(self, component: Component) -> None:
        pass


class Html(Component):
    """
    Generic HTML component. It echoes the source element, which lets mixins run
    over any ordinary tag. The `tag` attribute names the element to output.
    """

    def __init__(self, attrs: Dict[str, Any], content: str, scope: Dict[str, Any]):
        super().__init__(attrs, content, scope)
        self.tag = self.attr.pop('tag', None) or 'div'

    def render(self) -> str:
        out = [f"<{self.tag}", self.generate_attributes(), '>']
        if self.tag.lower() in VOID_ELEMENTS:
            return ''.join(out)
        out.append(self.get_content() or '')
        out.append(f"</{self.tag}>")
        return ''.join(out)
