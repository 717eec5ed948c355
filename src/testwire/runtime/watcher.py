# src/testwire/runtime/watcher.py

"""
Watches test executables on disk and re-discovers them after a rebuild.
"""

import asyncio
from collections.abc import Mapping
from pathlib import Path

import structlog
from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from testwire.config.models import TargetConfig
from testwire.exceptions import AlreadyRunningError, DiscoveryFailed, RunFailed
from testwire.runtime.coordinator import RunCoordinator
from testwire.telemetry import StructLogger

log: StructLogger = structlog.get_logger("runtime.watcher")
# Linkers write an executable in several steps; wait for the writes to settle.
DEBOUNCE_DELAY = 0.5


class _ExecutableChangeHandler(FileSystemEventHandler):
    def __init__(self, watched: Mapping[str, str], queue: asyncio.Queue[str], loop: asyncio.AbstractEventLoop):
        self._watched = watched
        self._queue = queue
        self._loop = loop

    def _dispatch_path(self, path: str | bytes) -> None:
        resolved = str(Path(path if isinstance(path, str) else path.decode()).resolve())
        name = self._watched.get(resolved)
        if name is not None:
            log.debug("Executable changed on disk", target=name, path=resolved)
            self._loop.call_soon_threadsafe(self._queue.put_nowait, name)

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._dispatch_path(event.src_path)

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._dispatch_path(event.src_path)

    def on_moved(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._dispatch_path(event.dest_path)


class ExecutableWatcher:
    """Posts a target's name to ``queue`` whenever its executable is rewritten."""

    def __init__(self, targets: Mapping[str, TargetConfig], queue: asyncio.Queue[str]):
        self.targets = dict(targets)
        self.queue = queue
        self._observer: Observer | None = None

    @property
    def is_running(self) -> bool:
        return self._observer is not None and self._observer.is_alive()

    def start(self) -> None:
        loop = asyncio.get_running_loop()
        watched = {str(target.executable.resolve()): name for name, target in self.targets.items()}
        handler = _ExecutableChangeHandler(watched, self.queue, loop)

        observer = Observer()
        for directory in sorted({str(Path(path).parent) for path in watched}):
            observer.schedule(handler, directory, recursive=False)
            log.info("Watching for rebuilds", directory=directory)
        observer.start()
        self._observer = observer

    def stop(self) -> None:
        if self._observer is None:
            return
        self._observer.stop()
        self._observer.join()
        self._observer = None
        log.debug("Executable watcher stopped")


class RebuildProcessor:
    """
    Consumes rebuild notifications and re-runs discovery (and optionally the tests).

    Bursts of notifications for the same target within ``debounce`` seconds
    collapse into one rediscovery.
    """

    def __init__(
        self,
        coordinator: RunCoordinator,
        targets: Mapping[str, TargetConfig],
        queue: asyncio.Queue[str],
        shutdown_event: asyncio.Event,
        run_after_discovery: bool = False,
        debounce: float = DEBOUNCE_DELAY,
    ):
        self.coordinator = coordinator
        self.targets = dict(targets)
        self.queue = queue
        self.shutdown_event = shutdown_event
        self.run_after_discovery = run_after_discovery
        self.debounce = debounce

    async def run(self) -> None:
        log.info("Rebuild processor is running.")
        while not self.shutdown_event.is_set():
            get_task = asyncio.create_task(self.queue.get())
            shutdown_task = asyncio.create_task(self.shutdown_event.wait())
            done, _ = await asyncio.wait({get_task, shutdown_task}, return_when=asyncio.FIRST_COMPLETED)

            if shutdown_task in done:
                get_task.cancel()
                break
            shutdown_task.cancel()

            pending = {get_task.result()}
            await asyncio.sleep(self.debounce)
            while not self.queue.empty():
                pending.add(self.queue.get_nowait())

            for name in sorted(pending):
                await self.refresh(name)
        log.info("Rebuild processor stopped.")

    async def refresh(self, name: str) -> None:
        target = self.targets.get(name)
        if target is None:
            log.warning("Rebuild reported for unknown target", target=name)
            return

        try:
            result = await self.coordinator.discover(target)
            if self.run_after_discovery and len(result):
                await self.coordinator.run(target)
        except AlreadyRunningError:
            log.warning("Rebuild ignored while another session is active", target=name)
        except (DiscoveryFailed, RunFailed) as e:
            log.error("Refresh after rebuild failed", target=name, error=str(e))


# 🔼⚙️
