"""Watch a folder and add new or changed files to a collection."""

import asyncio
import threading
import time
from pathlib import Path
from typing import Any

from rich.console import Console
from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from .embeddings.embedder import Embedder
from .generation.orchestrator import NotNotGenerator
from .generation.scheduler import GenerationScheduler
from .ingest.processor import SUPPORTED_EXTENSIONS, ingest_documents, process_file
from .storage import DocumentStoreBase

console = Console()


class IngestHandler(FileSystemEventHandler):
    """Collects file events and debounces them."""

    def __init__(self, debounce: float = 5.0):
        super().__init__()
        self._pending: set[str] = set()
        self._lock = threading.Lock()
        self._timer: threading.Timer | None = None
        self._debounce = debounce
        self._callback = None

    def set_callback(self, callback):
        self._callback = callback

    def _is_supported(self, path: str) -> bool:
        return Path(path).suffix.lower() in SUPPORTED_EXTENSIONS

    def on_created(self, event):
        if not event.is_directory and self._is_supported(event.src_path):
            self._add(event.src_path)

    def on_modified(self, event):
        if not event.is_directory and self._is_supported(event.src_path):
            self._add(event.src_path)

    def _add(self, path: str):
        with self._lock:
            self._pending.add(path)
            console.print(f"  [dim]Detected: {Path(path).name}[/]")
            if self._timer:
                self._timer.cancel()
            self._timer = threading.Timer(self._debounce, self._flush)
            self._timer.daemon = True
            self._timer.start()

    def _flush(self):
        with self._lock:
            paths = list(self._pending)
            self._pending.clear()
        if paths and self._callback:
            self._callback(paths)


class FileWatcher:
    """Watches a folder, stores its documents and optionally generates not-nots.

    Each embedded document becomes a DocumentEmbedded event; when a generator
    is configured the events are drained through a GenerationScheduler after
    every batch.
    """

    def __init__(
        self,
        config: dict[str, Any],
        collection_id: str,
        store: DocumentStoreBase,
        embedder: Embedder,
        generator: NotNotGenerator | None = None,
        debounce: float = 5.0,
        watch_path: str | Path | None = None,
    ):
        self.config = config
        self.collection_id = collection_id
        self.store = store
        self.embedder = embedder
        self.generator = generator
        self.watch_path = Path(watch_path or config["ingest_path"])
        self.handler = IngestHandler(debounce=debounce)
        self.handler.set_callback(self._process_batch)
        self.observer = Observer()
        # Async API clients bind their connection pools to the loop that first
        # used them, so every batch runs on this one loop.
        self._runner = asyncio.Runner()
        self._runner_lock = threading.Lock()

    def _process_batch(self, paths: list[str]):
        console.print(f"\n[bold blue]Processing {len(paths)} file(s)...[/]")
        with self._runner_lock:
            saved = self._runner.run(self.process_paths([Path(p) for p in paths]))
        if self.generator is not None:
            console.print(f"  [green]✓ Saved {saved} not-not(s)[/]")
        console.print("[dim]👀 Watching for more files...[/]")

    def close(self):
        with self._runner_lock:
            self._runner.close()

    async def process_paths(self, paths: list[Path]) -> int:
        """Ingest files and run generation for the ones that got embedded."""
        docs = []
        for p in paths:
            try:
                doc = process_file(p, self.collection_id)
            except OSError as e:
                console.print(f"  [red]✗ Failed to read {p.name}: {e}[/]")
                continue
            if doc:
                docs.append(doc)

        if not docs:
            console.print("[yellow]No documents to process.[/]")
            return 0

        events = await ingest_documents(docs, self.store, self.embedder)
        console.print(f"  [green]✓ Stored {len(docs)} document(s), embedded {len(events)}[/]")

        if self.generator is None or not events:
            return 0

        supersede = self.config.get("generation", {}).get("supersede", True)
        scheduler = GenerationScheduler(self.store, self.generator, supersede=supersede)
        for event in events:
            scheduler.publish(event)
        return await scheduler.drain()

    def run(self):
        """Start watching (blocks until Ctrl+C)."""
        self.watch_path.mkdir(parents=True, exist_ok=True)
        self.observer.schedule(self.handler, str(self.watch_path), recursive=True)
        self.observer.start()

        console.print(f"[bold]👀 Watching {self.watch_path} for new files... (Ctrl+C to stop)[/]")
        if self.generator is not None:
            console.print("[dim]  Generation: enabled[/]")

        try:
            while True:
                time.sleep(1)
        except KeyboardInterrupt:
            console.print("\n[yellow]Stopping watcher...[/]")
            self.observer.stop()
        self.observer.join()
        self.close()
        console.print("[green]✓ Watcher stopped.[/]")
