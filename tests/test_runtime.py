import pytest

from hyperblade.runtime import Component, Html, Output, PropertyList, e, indent, unindent
from sample_handlers import Field, Tooltip


def test_indent():
    assert indent('a\nb\nc', '  ') == 'a\n  b\n  c'


def test_unindent():
    assert unindent('  a\n    b\nc', '  ') == 'a\n  b\nc'
    assert unindent('a\n b', '') == 'a\n b'


@pytest.mark.parametrize('value, expected', [
    ('<b>"x"</b>', '&lt;b&gt;&quot;x&quot;&lt;/b&gt;'),
    (None, ''),
    (True, 'true'),
    (False, 'false'),
    (3, '3'),
    (['a', 'b'], 'a b'),
    ({'a': True, 'b': False, 'c': 1}, 'a c'),
    ({'color': 'red', 'width': '3px'}, 'color:red;width:3px'),
])
def test_escape(value, expected):
    assert e(value) == expected


def test_escape_rejects_objects():
    with pytest.raises(TypeError):
        e(object())


def test_output_capture(registry):
    _h = Output(registry)
    _h.echo('a')
    _h.capture()
    _h.echo('b')
    _h.out('line1\nline2', '  ')
    captured = _h.end_capture()
    _h.echo(captured.upper())
    assert _h.getvalue() == 'aBLINE1\n  LINE2'


def test_output_unbalanced_capture(registry):
    with pytest.raises(RuntimeError):
        Output(registry).end_capture()


def test_output_resolves_handlers(registry):
    _h = Output(registry)
    assert _h.resolve('app.forms.Field') is Field
    assert _h.Html is Html


def test_property_list():
    props = PropertyList({'a': 1})
    props.b = 2
    props.defaults({'a': 5, 'c': 3})
    props.extend({'d': 4})
    assert props == {'a': 1, 'b': 2, 'c': 3, 'd': 4}
    assert props.missing is None


def test_component():
    field = Field({'name': 'email', 'class': 'a b'}, 'Email', {'user': 'x'})
    assert field.attr['class'] == ['a', 'b']
    assert field.attr['style'] == []
    assert field.view_scope.user == 'x'
    field.add_css_class('c')
    field.add_css_class('a')
    assert field.run() == '<label>Email</label><input name="email" class="a b c">'
    assert field.scope.my is field


def test_component_config():
    field = Field({}, '', {})
    field.config({'color': 'primary'})
    assert field.scope.color == 'primary'
    assert field.get_content() == ''


def test_mixin():
    field = Field({}, '', {}).mixin(Tooltip('Help'), Tooltip('More help'))
    assert field.attr['title'] == 'More help'


def test_to_attribute():
    assert Component.to_attribute('disabled', True) == 'disabled'
    assert Component.to_attribute('disabled', False) is None
    assert Component.to_attribute('class', []) is None
    assert Component.to_attribute('title', 'a "b"') == 'title="a &quot;b&quot;"'
    assert Component.to_attribute('hidden', None) is None


def test_html():
    assert Html({'tag': 'span', 'id': 'x'}, 'hi', {}).run() == '<span id="x">hi</span>'
    assert Html({'tag': 'br'}, '', {}).run() == '<br>'
    assert Html({}, 'x', {}).run() == '<div>x</div>'


def test_compiled_output_runs(compiler, registry):
    compiled = compiler.compile_string('@use(app.util.Util as util)\n<p>@@util.greet("you")</p>')
    _h = Output(registry)
    # Minimal host: run code blocks, echo the rest
    scope = {'_h': _h}
    for i, chunk in enumerate(compiled.replace('?>', '<?py').split('<?py')):
        if i % 2:
            exec(chunk.strip(), scope)
        else:
            _h.echo(chunk)
    assert _h.getvalue() == '\n<p>Hello you</p>'
