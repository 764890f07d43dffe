"""Watch mode — rebuild artifacts when sources or config change.

Two threads cooperate:
  - The watchdog observer thread classifies each filesystem event and
    puts a RebuildTrigger on a queue. It never waits for a rebuild.
  - One worker thread drains the queue. It takes a trigger, keeps taking
    more until the queue has been quiet for the debounce window (or a
    steady stream has run for ten windows), merges them, and runs a
    single rebuild.

Events that arrive mid-rebuild wait in the queue and are merged into the
next rebuild. So at most one rebuild is in flight, and however many
events land during it, at most one rebuild follows.

Classification:
  CONFIG     the project config file           -> rebuild everything
  SOURCE     one of the tracked source files   -> rebuild that source
  SHARED     other .ts/.xml under a source dir -> rebuild everything
  IRRELEVANT anything else                     -> ignored
"""

import enum
import logging
import os
import queue
import sys
import threading
import time
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from functools import reduce
from pathlib import Path

from watchdog.events import PatternMatchingEventHandler
from watchdog.observers.polling import PollingObserver

from .errors import FilesystemWatchError, VmlError

logger = logging.getLogger(__name__)


POLL_INTERVAL = 0.5
DEBOUNCE_SECONDS = 0.5
# A steady stream of events still rebuilds after this many debounce windows.
MAX_DEBOUNCE_WINDOWS = 10

RELEVANT_SUFFIXES = (".ts", ".xml", ".yml", ".yaml")
SHARED_SUFFIXES = (".ts", ".xml")

# Directory runs whose contents are never watched, at any depth.
IGNORED_DIRS = (
    ("node_modules",),
    (".git",),
    (".babulus", "out"),
    (".videoml", "out"),
    ("dist",),
)

HANDLED_EVENT_TYPES = {"created", "modified", "deleted", "moved"}


class ChangeKind(enum.Enum):
    CONFIG = "config"
    SOURCE = "source"
    SHARED = "shared"
    IRRELEVANT = "irrelevant"


class WatchState(enum.Enum):
    IDLE = "idle"
    WATCHING = "watching"
    REBUILDING = "rebuilding"


@dataclass(frozen=True)
class WatchSession:
    """What a watch run tracks. Fixed at startup."""
    sources: tuple[Path, ...]
    config_path: Path | None = None
    directories: tuple[Path, ...] = ()

    @classmethod
    def create(cls, sources: Iterable[Path], config_path: Path | None = None) -> "WatchSession":
        sources = tuple(dict.fromkeys(Path(p) for p in sources))
        directories = list(dict.fromkeys(p.parent for p in sources))
        if config_path is not None and config_path.parent not in directories:
            directories.append(config_path.parent)
        return cls(sources=sources, config_path=config_path, directories=tuple(directories))

    @property
    def source_directories(self) -> tuple[Path, ...]:
        return tuple(dict.fromkeys(p.parent for p in self.sources))


@dataclass(frozen=True)
class RebuildTrigger:
    """A pending rebuild: everything, or a set of sources."""
    full: bool = False
    sources: frozenset = field(default_factory=frozenset)

    @property
    def scope(self) -> frozenset | None:
        return None if self.full else self.sources

    def merge(self, other: "RebuildTrigger") -> "RebuildTrigger":
        if self.full or other.full:
            return RebuildTrigger(full=True)
        return RebuildTrigger(sources=self.sources | other.sources)


FULL_REBUILD = RebuildTrigger(full=True)


# ── Classification ───────────────────────────────────────────────


def is_ignored(path: str | Path) -> bool:
    parts = Path(path).parts
    return any(
        parts[i:i + len(run)] == run
        for run in IGNORED_DIRS
        for i in range(len(parts) - len(run) + 1)
    )


def classify_change(path: str | Path, session: WatchSession) -> ChangeKind:
    changed = Path(os.path.abspath(path))
    if changed.suffix not in RELEVANT_SUFFIXES:
        return ChangeKind.IRRELEVANT
    if session.config_path is not None and changed == session.config_path:
        return ChangeKind.CONFIG
    if changed in session.sources:
        return ChangeKind.SOURCE
    if changed.suffix in SHARED_SUFFIXES and any(
        directory in changed.parents for directory in session.source_directories
    ):
        return ChangeKind.SHARED
    return ChangeKind.IRRELEVANT


def trigger_for(kind: ChangeKind, path: str | Path) -> RebuildTrigger | None:
    if kind is ChangeKind.SOURCE:
        return RebuildTrigger(sources=frozenset({Path(os.path.abspath(path))}))
    if kind in (ChangeKind.CONFIG, ChangeKind.SHARED):
        return FULL_REBUILD
    return None


def coalesce(triggers: Sequence[RebuildTrigger]) -> RebuildTrigger:
    """Merge a burst of triggers into one."""
    return reduce(RebuildTrigger.merge, triggers)


# ── Engine ───────────────────────────────────────────────────────

_STOP = object()


class WatchEngine:
    """Single-flight rebuild queue for one watch session.

    rebuild is called with a scope: None for everything, or a frozenset
    of source paths. It always runs on the engine's worker thread.
    """

    def __init__(
        self,
        session: WatchSession,
        rebuild: Callable[[frozenset | None], object],
        debounce: float = DEBOUNCE_SECONDS,
        cwd: Path | None = None,
    ):
        self.session = session
        self.debounce = debounce
        self.state = WatchState.IDLE
        self._rebuild = rebuild
        self._cwd = cwd if cwd is not None else Path.cwd()
        self._events = queue.Queue()
        self._worker = None

    def start(self) -> None:
        if self._worker is not None:
            return
        self.state = WatchState.WATCHING
        self._worker = threading.Thread(target=self._run, name="vml-rebuild", daemon=True)
        self._worker.start()

    def stop(self, timeout: float | None = None) -> None:
        """Stop after the in-flight rebuild (if any). Pending triggers are dropped."""
        if self._worker is None:
            return
        self._events.put(_STOP)
        self._worker.join(timeout)
        self._worker = None
        self.state = WatchState.IDLE

    def wait_idle(self) -> None:
        """Block until every queued trigger has been rebuilt."""
        self._events.join()

    def notify(self, path: str | Path) -> ChangeKind:
        """Classify a changed path and queue a rebuild if it matters."""
        kind = classify_change(path, self.session)
        trigger = trigger_for(kind, path)
        if trigger is None:
            return kind
        _report_change(kind, Path(os.path.abspath(path)), self._cwd)
        self.request(trigger)
        return kind

    def request(self, trigger: RebuildTrigger) -> None:
        self._events.put(trigger)

    def _run(self) -> None:
        while True:
            item = self._events.get()
            if item is _STOP:
                self._events.task_done()
                return

            batch = [item]
            stopping = False
            deadline = time.monotonic() + self.debounce * MAX_DEBOUNCE_WINDOWS
            # Debounce: keep collecting until the queue stays quiet.
            while True:
                remaining = min(self.debounce, deadline - time.monotonic())
                if remaining <= 0:
                    break
                try:
                    nxt = self._events.get(timeout=remaining)
                except queue.Empty:
                    break
                if nxt is _STOP:
                    stopping = True
                    self._events.task_done()
                    break
                batch.append(nxt)

            if not stopping:
                self._execute(coalesce(batch))
            for _ in batch:
                self._events.task_done()
            if stopping:
                return

    def _execute(self, trigger: RebuildTrigger) -> None:
        self.state = WatchState.REBUILDING
        try:
            if trigger.full:
                logger.info("Regenerating all compositions...")
            self._rebuild(trigger.scope)
        except VmlError as exc:
            logger.error("Rebuild failed: %s", exc)
        except Exception:
            logger.exception("Rebuild failed")
        finally:
            self.state = WatchState.WATCHING
        print("\nWaiting for changes... (Ctrl+C to stop)\n", file=sys.stderr, flush=True)


def _report_change(kind: ChangeKind, path: Path, cwd: Path) -> None:
    try:
        shown = path.relative_to(cwd)
    except ValueError:
        shown = path
    label = {ChangeKind.CONFIG: "Config", ChangeKind.SOURCE: "DSL", ChangeKind.SHARED: "Shared"}[kind]
    print(f"\nCHANGE DETECTED ({label}): {shown}", file=sys.stderr, flush=True)


# ── Filesystem observer ──────────────────────────────────────────


class ChangeHandler(PatternMatchingEventHandler):
    """Forward file events from watchdog to the engine.

    Moves report both ends, so an editor that saves through a temp file
    and renames it over the source still counts as a change.
    """

    def __init__(self, engine: WatchEngine):
        super().__init__(
            patterns=[f"*{suffix}" for suffix in RELEVANT_SUFFIXES],
            ignore_directories=True,
        )
        self.engine = engine

    def on_any_event(self, event):
        if event.event_type not in HANDLED_EVENT_TYPES:
            return
        paths = [event.src_path]
        dest = getattr(event, "dest_path", None)
        if dest:
            paths.append(dest)
        for path in map(os.fsdecode, paths):
            if not is_ignored(path):
                self.engine.notify(path)


def watch(
    session: WatchSession,
    rebuild: Callable[[frozenset | None], object],
    initial_build: bool = False,
    quiet: bool = False,
    poll_interval: float = POLL_INTERVAL,
    debounce: float = DEBOUNCE_SECONDS,
    stop: threading.Event | None = None,
) -> None:
    """Watch the session's directories until interrupted, or until stop is set.

    Raises:
        FilesystemWatchError: A directory could not be watched.
    """
    missing = [str(d) for d in session.directories if not d.is_dir()]
    if missing:
        raise FilesystemWatchError(f"Cannot watch missing directories: {missing}")

    stop = stop if stop is not None else threading.Event()
    engine = WatchEngine(session, rebuild, debounce=debounce)
    handler = ChangeHandler(engine)
    observer = PollingObserver(timeout=poll_interval)
    try:
        for directory in session.directories:
            observer.schedule(handler, str(directory), recursive=True)
        observer.start()
    except OSError as exc:
        raise FilesystemWatchError(f"Cannot watch {list(map(str, session.directories))}: {exc}") from exc

    engine.start()
    print("Watching for changes... (Ctrl+C to stop)\n", file=sys.stderr, flush=True)
    if not quiet:
        listing = "\n".join(f"  - {d}" for d in session.directories)
        print(f"Watching directories:\n{listing}\n", file=sys.stderr, flush=True)
    if initial_build:
        engine.request(FULL_REBUILD)

    try:
        while observer.is_alive() and not stop.wait(poll_interval):
            pass
    except KeyboardInterrupt:
        pass
    finally:
        observer.stop()
        observer.join()
        engine.stop()
