import argparse
import importlib
import logging
import sys
import time

import yaml

from .compiler import HyperbladeCompiler
from .config import load_config
from .errors import HyperbladeError
from .registry import get_registry
from .watcher import run_watcher, trigger_recompile

logger = logging.getLogger('hyperblade')


def build_compiler(project) -> HyperbladeCompiler:
    """Imports the project's handler modules into the default registry and returns a compiler for it."""
    registry = get_registry()
    for module_name in project.handlers:
        registry.register_module(importlib.import_module(module_name))
        logger.debug("Registered handlers from %s", module_name)
    return HyperbladeCompiler(registry, project.options)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        prog='hyperblade',
        description='Compiles Hyperblade templates into Python-flavoured templates')
    parser.add_argument('config', help='YAML project file')
    parser.add_argument('--once', action='store_true', help='compile every template once and exit')
    parser.add_argument('-v', '--verbose', action='store_true', help='log every compile pass')
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format='%(asctime)s - %(message)s',
                        datefmt='%Y-%m-%d %H:%M:%S')

    if args.once:
        project = load_config(args.config)
        return 1 if trigger_recompile(project.write_pairs, build_compiler(project)) else 0

    while True:
        try:
            project = load_config(args.config)
            compiler = build_compiler(project)
            trigger_recompile(project.write_pairs, compiler)
            run_watcher(project.write_pairs, project.watch_paths, compiler)
            return 0
        except (HyperbladeError, yaml.YAMLError, ImportError, OSError) as e:
            logger.error("Error: %s", e)
            logger.error("Please check your configuration and try again, attempting to reload in 3 seconds...")
            time.sleep(3)


if __name__ == '__main__':
    sys.exit(main())
