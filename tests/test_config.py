from pathlib import Path

import pytest

from hyperblade.config import CompilerOptions, load_config
from hyperblade.errors import HyperbladeError

PROJECT = """
options:
  preserve_indent: false
  echo_tags: ["[[", "]]"]
handlers:
  - sample_handlers
write:
  - src: templates/page.hyper.html
    dst: build/page.html
watch:
  - templates/*.html
"""


def test_defaults():
    options = CompilerOptions()
    assert options.preserve_indent
    assert options.macro_prefix == '@@'
    assert options.code_tags == ('<?py', '?>')


def test_from_dict():
    options = CompilerOptions.from_dict({'profile': True, 'raw_echo_tags': ['{%', '%}']})
    assert options.profile
    assert options.raw_echo_tags == ('{%', '%}')


def test_unknown_option():
    with pytest.raises(HyperbladeError, match='colour'):
        CompilerOptions.from_dict({'colour': 'red'})


def test_bad_delimiters():
    with pytest.raises(HyperbladeError):
        CompilerOptions.from_dict({'echo_tags': '{{'})


def test_load_config(tmp_path):
    (tmp_path / 'templates').mkdir()
    (tmp_path / 'templates' / 'page.hyper.html').write_text('')
    (tmp_path / 'templates' / 'layout.html').write_text('')
    config_path = tmp_path / 'project.yaml'
    config_path.write_text(PROJECT)

    project = load_config(config_path)
    assert not project.options.preserve_indent
    assert project.options.echo_tags == ('[[', ']]')
    assert project.handlers == ['sample_handlers']
    assert project.write_pairs == {tmp_path / 'templates/page.hyper.html': tmp_path / 'build/page.html'}
    assert project.watch_paths == {tmp_path / 'templates/layout.html', tmp_path / 'templates/page.hyper.html'}
    assert project.base_path == tmp_path


def test_load_empty_config(tmp_path):
    config_path = tmp_path / 'project.yaml'
    config_path.write_text('')
    project = load_config(config_path)
    assert project.write_pairs == {}
    assert project.options == CompilerOptions()


def test_load_config_missing_dst(tmp_path):
    config_path = tmp_path / 'project.yaml'
    config_path.write_text('write:\n  - src: a.html\n')
    with pytest.raises(HyperbladeError):
        load_config(config_path)


def test_load_config_not_a_mapping(tmp_path):
    config_path = tmp_path / 'project.yaml'
    config_path.write_text('- a\n- b\n')
    with pytest.raises(HyperbladeError):
        load_config(Path(config_path))
