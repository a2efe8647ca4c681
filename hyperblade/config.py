import logging
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Set, Tuple, Union

import yaml

from .errors import HyperbladeError

logger = logging.getLogger(__name__)


@dataclass
class CompilerOptions:
    """Compiler switches. Every key of the `options` section of a project file maps to a field."""
    # When off, generated output drops leading whitespace and is not re-indented
    preserve_indent: bool = True
    profile: bool = False
    macro_prefix: str = '@@'
    alias_delimiters: str = '.:'
    body_start: str = ':'
    echo_tags: Tuple[str, str] = ('{{', '}}')
    raw_echo_tags: Tuple[str, str] = ('{!!', '!!}')
    code_tags: Tuple[str, str] = ('<?py', '?>')
    cache_size: int = 100

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CompilerOptions":
        known = {f.name: f for f in fields(cls)}
        unknown = sorted(set(data) - set(known))
        if unknown:
            raise HyperbladeError(f"Unknown compiler option(s): {', '.join(unknown)}")

        values = {}
        for key, value in data.items():
            if key.endswith('_tags'):
                if not isinstance(value, (list, tuple)) or len(value) != 2:
                    raise HyperbladeError(f"Compiler option '{key}' must be a pair of delimiters.")
                value = (str(value[0]), str(value[1]))
            values[key] = value
        return cls(**values)


@dataclass
class ProjectConfig:
    options: CompilerOptions = field(default_factory=CompilerOptions)
    # Modules whose handlers get registered before compiling
    handlers: List[str] = field(default_factory=list)
    write_pairs: Dict[Path, Path] = field(default_factory=dict)
    watch_paths: Set[Path] = field(default_factory=set)
    base_path: Path = Path('.')


def load_config(path: Union[str, Path]) -> ProjectConfig:
    """
    Loads a YAML project file.
    Relative paths and glob patterns are resolved against the file's directory.
    """
    path = Path(path)
    with open(path, 'r') as f:
        cfg = yaml.safe_load(f) or {}
    if not isinstance(cfg, dict):
        raise HyperbladeError(f"Project file {path} must contain a mapping.")

    base_path = path.parent
    options = CompilerOptions.from_dict(cfg.get('options') or {})
    handlers = list(cfg.get('handlers') or [])
    try:
        write_pairs = {base_path / to_write['src']: base_path / to_write['dst'] for to_write in cfg.get('write') or []}
    except (KeyError, TypeError):
        raise HyperbladeError(f"Every 'write' entry of {path} needs a 'src' and a 'dst'.")
    watch_paths = {watch_path for pattern in cfg.get('watch') or [] for watch_path in base_path.glob(pattern)}

    logger.debug("Loaded %s: %d file(s) to write, %d extra file(s) to watch", path, len(write_pairs), len(watch_paths))
    return ProjectConfig(options, handlers, write_pairs, watch_paths, base_path)
