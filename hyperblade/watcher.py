import logging
from pathlib import Path
from typing import Dict, Iterable, Set

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from .compiler import HyperbladeCompiler
from .errors import HyperbladeError

logger = logging.getLogger(__name__)


def trigger_recompile(write_pairs: Dict[Path, Path], compiler: HyperbladeCompiler) -> int:
    """
    Compiles every src -> dst pair. A template that fails to compile is
    logged and skipped, the others are still written.
    Returns the number of failures.
    """
    failures = 0
    for src, dst in write_pairs.items():
        try:
            compiler.compile_to(src, dst)
        except (HyperbladeError, OSError) as e:
            failures += 1
            logger.error("Failed to compile %s:\n%s", src, e)
    return failures


class ChangeHandler(FileSystemEventHandler):
    def __init__(self, files_to_watch: Iterable[Path], write_pairs: Dict[Path, Path], compiler: HyperbladeCompiler):
        self.files_to_watch = {x.resolve() for x in files_to_watch}
        self.write_pairs = write_pairs
        self.compiler = compiler

    def on_modified(self, event):
        if event.is_directory:
            return

        src_path_abs = Path(event.src_path).resolve()
        if src_path_abs in self.files_to_watch:
            logger.info("Detected modification in: %s", src_path_abs)
            # Handlers may have changed along with the templates
            self.compiler.cache.clear()
            trigger_recompile(self.write_pairs, self.compiler)

    on_created = on_modified


def run_watcher(write_pairs: Dict[Path, Path], watch_paths: Set[Path], compiler: HyperbladeCompiler) -> None:
    """Sets up and runs the watchdog observer until interrupted."""
    files_to_watch = set(write_pairs.keys()) | watch_paths
    dirs_to_watch = {p.resolve().parent for p in files_to_watch}

    if not dirs_to_watch:
        logger.error("No valid directories provided to watch.")
        return

    event_handler = ChangeHandler(files_to_watch, write_pairs, compiler)
    observer = Observer()

    scheduled_count = 0
    for dir_path in dirs_to_watch:
        if not dir_path.is_dir():
            logger.warning("Directory '%s' does not exist. Cannot watch.", dir_path)
            continue
        observer.schedule(event_handler, str(dir_path), recursive=False)
        scheduled_count += 1
        logger.debug("Scheduled watcher for directory: %s", dir_path)

    if scheduled_count == 0:
        logger.error("No watchers were successfully scheduled. Exiting.")
        return

    observer.start()
    logger.info("Watching for file changes in %d director%s. Press Ctrl+C to stop.",
                scheduled_count, 'y' if scheduled_count == 1 else 'ies')

    try:
        while observer.is_alive():
            observer.join(timeout=1)
    except KeyboardInterrupt:
        logger.info("Stopping watcher (Ctrl+C pressed)...")
    finally:
        if observer.is_alive():
            observer.stop()
        observer.join()
        logger.info("Watcher stopped.")
