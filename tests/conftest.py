import pytest

from hyperblade.compiler import HyperbladeCompiler
from hyperblade.context import CompilationContext
from hyperblade.registry import HandlerRegistry, Signature
from sample_handlers import Broken, Field, Tooltip, Util


@pytest.fixture
def registry():
    registry = HandlerRegistry()
    registry.register_class(Field, 'app.forms.Field')
    registry.register_class(Tooltip, 'app.forms.Tooltip')
    registry.register_class(Broken, 'app.forms.Broken')
    registry.register_class(Util, 'app.util.Util')
    registry.register('app.text', methods={'shout': Signature(('text',), 1)})
    return registry


@pytest.fixture
def ctx(registry):
    return CompilationContext(registry)


@pytest.fixture
def compiler(registry):
    return HyperbladeCompiler(registry)


@pytest.fixture
def bound_ctx(ctx):
    """A context with `form` and `util` bound and the prolog already consumed."""
    ctx.register_namespace('form', 'app.forms')
    ctx.register_namespace('util', 'app.util.Util')
    ctx.take_prolog()
    return ctx
