"""File watcher that reloads rules when the rules file changes."""

import logging
from pathlib import Path
from typing import Callable

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from proxy_rules.interchange import RuleImportError, dump_export, export_rules, load_export
from proxy_rules.models import Rule

logger = logging.getLogger(__name__)

RulesCallback = Callable[[list[Rule]], None]


class RulesFileHandler(FileSystemEventHandler):
    """Handler for rules file changes."""

    def __init__(self, rules_file: Path, callback: RulesCallback):
        self.rules_file = rules_file
        self.callback = callback
        self._last_mtime: float = 0

    def on_modified(self, event: FileSystemEvent) -> None:
        """Handle file modification events."""
        if event.is_directory:
            return
        if Path(event.src_path) != self.rules_file:
            return

        # Watchdog can fire multiple events for one change
        if self._record_mtime():
            logger.debug(f"Detected change in {self.rules_file}")
            self._read_rules()

    on_created = on_modified

    def on_moved(self, event: FileSystemEvent) -> None:
        """Handle a file being renamed over the rules file."""
        if event.is_directory:
            return
        if Path(event.dest_path) != self.rules_file:
            return

        self._record_mtime()
        logger.debug(f"Detected replacement of {self.rules_file}")
        self._read_rules()

    def _record_mtime(self) -> bool:
        """Remember the file's mtime; False if it was already seen."""
        try:
            current_mtime = self.rules_file.stat().st_mtime
        except OSError:
            return True
        if current_mtime == self._last_mtime:
            return False
        self._last_mtime = current_mtime
        return True

    def _read_rules(self) -> None:
        """Load rules from the file and hand them to the callback."""
        try:
            if not self.rules_file.exists():
                return

            export = load_export(self.rules_file)
            logger.info(f"Read {len(export.rules)} rules from {self.rules_file}")
            self.callback(export.rules)

        except RuleImportError as e:
            logger.error(f"Invalid rules file: {e}")
        except Exception as e:
            logger.error(f"Error reloading rules file: {e}")


class RulesFileWatcher:
    """File watcher for the rules file."""

    def __init__(self, rules_file: Path, callback: RulesCallback):
        self.rules_file = rules_file
        self.callback = callback
        self._observer: Observer | None = None
        self._handler: RulesFileHandler | None = None

    def start(self) -> None:
        """Start watching the rules file."""
        self.rules_file.parent.mkdir(parents=True, exist_ok=True)

        # Ensure file exists with valid structure
        if not self.rules_file.exists():
            dump_export(export_rules([]), self.rules_file)

        self._handler = RulesFileHandler(self.rules_file, self.callback)
        self._observer = Observer()
        self._observer.schedule(
            self._handler,
            str(self.rules_file.parent),
            recursive=False,
        )
        self._observer.start()
        logger.info(f"Started watching {self.rules_file}")

        # Initial read
        self._handler._read_rules()

    def stop(self) -> None:
        """Stop watching the rules file."""
        if self._observer:
            self._observer.stop()
            self._observer.join()
            self._observer = None
            logger.info("Stopped rules file watcher")
