import pytest

from hyperblade.compiler import HyperbladeCompiler
from hyperblade.config import CompilerOptions
from hyperblade.errors import ArityError, HandlerNotFound, UnboundAlias


def test_simple_macro(compiler, bound_ctx):
    assert compiler.compile('@@util.greet(name)', bound_ctx) == '<?py _h.out(Util.greet(name), "") ?>'


def test_simple_macro_colon_delimiter(compiler, bound_ctx):
    assert compiler.compile('@@util:greet(name)', bound_ctx) == '<?py _h.out(Util.greet(name), "") ?>'


def test_simple_macro_full_template(compiler):
    out = compiler.compile_string('@use(app.util.Util as util)\n@@util.greet(name)')
    assert out == '<?py\nUtil = _h.resolve("app.util.Util")\n?>\n<?py _h.out(Util.greet(name), "") ?>'


def test_simple_macro_keeps_indentation(compiler, bound_ctx):
    out = compiler.compile('<p>\n    @@util.greet(name)\n</p>', bound_ctx)
    assert out == '<p>\n    <?py _h.out(Util.greet(name), "    ") ?>\n</p>'


def test_simple_macro_mid_line(compiler, bound_ctx):
    out = compiler.compile('<p>Hi @@util.greet("you").</p>', bound_ctx)
    assert out == '<p>Hi <?py _h.out(Util.greet("you"), "") ?>.</p>'


def test_dashed_method_name(compiler, bound_ctx):
    assert compiler.compile('@@util.say-hello', bound_ctx) == '<?py _h.out(Util.say_hello(), "") ?>'


def test_module_namespace(compiler, bound_ctx):
    bound_ctx.register_namespace('text', 'app.text')
    bound_ctx.take_prolog()
    assert compiler.compile('@@text.shout(x)', bound_ctx) == '<?py _h.out(text.shout(x), "") ?>'


def test_macro_inside_a_word_is_ignored(compiler, bound_ctx):
    source = 'mail@@util.greet(x)'
    assert compiler.compile(source, bound_ctx) == source


def test_variadic_macro(compiler, bound_ctx):
    out = compiler.compile('@@util.join("a", "b", "c")', bound_ctx)
    assert out == '<?py _h.out(Util.join("a", "b", "c"), "") ?>'


@pytest.mark.parametrize('source', ['@@util.greet', '@@util.greet()', '@@util.greet(a, b)'])
def test_simple_macro_arity(compiler, bound_ctx, source):
    with pytest.raises(ArityError) as info:
        compiler.compile(source, bound_ctx)
    assert info.value.fragment == source


def test_unknown_method(compiler, bound_ctx):
    with pytest.raises(HandlerNotFound):
        compiler.compile('@@util.nope', bound_ctx)


def test_unbound_alias(compiler, bound_ctx):
    with pytest.raises(UnboundAlias):
        compiler.compile('@@other.greet(x)', bound_ctx)
    with pytest.raises(UnboundAlias):
        compiler.compile('@@greet(x)', bound_ctx)


def test_block_macro_literal(compiler, bound_ctx):
    out = compiler.compile('@@util.panel("Title"):\n    Hello\n@@end util.panel', bound_ctx)
    assert out == '<?py _h.out(Util.panel("Hello", "Title"), "") ?>'


def test_block_macro_dynamic(compiler, bound_ctx):
    out = compiler.compile('@@util.panel(title): {{ body }} @@end util.panel', bound_ctx)
    assert out == '<?py _h.capture() ?>{{ body }}<?py _h.out(Util.panel(_h.end_capture(), title), "") ?>'


def test_block_macro_indented(compiler, bound_ctx):
    out = compiler.compile('<div>\n  @@util.section:\n    Hi\n  @@end util.section\n</div>', bound_ctx)
    assert out == '<div>\n  <?py _h.out(Util.section("Hi"), "  ") ?>\n</div>'


def test_nested_block_macros(compiler, bound_ctx):
    out = compiler.compile('@@util:section: @@util:section: x @@end util:section @@end util:section', bound_ctx)
    assert out == ('<?py _h.capture() ?>'
                   '<?py _h.out(Util.section("x"), "") ?>'
                   '<?py _h.out(Util.section(_h.end_capture()), "") ?>')


def test_block_macro_with_simple_macro_inside(compiler, bound_ctx):
    out = compiler.compile('@@util.section: @@util.greet(x) @@end util.section', bound_ctx)
    assert out == ('<?py _h.capture() ?><?py _h.out(Util.greet(x), "") ?>'
                   '<?py _h.out(Util.section(_h.end_capture()), "") ?>')


def test_mismatched_end_is_not_consumed(compiler, bound_ctx):
    source = '@@util.section: x @@end util.other'
    assert compiler.compile(source, bound_ctx) == source


def test_block_macro_arity(compiler, bound_ctx):
    with pytest.raises(ArityError):
        compiler.compile('@@util.section(a, b): x @@end util.section', bound_ctx)


def test_minified_output(registry, bound_ctx):
    compiler = HyperbladeCompiler(registry, CompilerOptions(preserve_indent=False))
    out = compiler.compile('<p>\n    @@util.greet(name)\n</p>', bound_ctx)
    assert out == '<p><?py _h.echo(Util.greet(name)) ?>\n</p>'


def test_custom_macro_prefix(registry, bound_ctx):
    compiler = HyperbladeCompiler(registry, CompilerOptions(macro_prefix='%%'))
    assert compiler.compile('%%util.greet(x) @@util.greet(y)', bound_ctx) == \
        '<?py _h.out(Util.greet(x), "") ?> @@util.greet(y)'
