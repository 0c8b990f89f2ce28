"""Local preview for Quire.

``quire serve`` builds the blog, serves the output over HTTP and keeps it
fresh while posts, layouts, static files, themes or quire.yaml change:

- every rebuild is written to a staging directory and swapped over the
  served output only when it succeeds, so a broken post never blanks the
  preview;
- HTML responses get a small script that listens on a websocket and reloads
  the page after a successful rebuild;
- directory listings are disabled, and missing paths get the site's
  404.html when it has one.

Key classes:
- DevServer: owns the build/swap cycle, the HTTP thread and the watcher.
- ReloadHub: websocket endpoint that broadcasts reload messages.
- PreviewRequestHandler: HTTP handler that appends the reload script.
- SourceChangeHandler: watchdog handler that filters events and rebuilds.
"""

from __future__ import annotations

import asyncio
import functools
import json
import os
import shutil
import threading
import time
from http import HTTPStatus
from http.server import SimpleHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
from typing import Any

import websockets
from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from .build import BuildError, build_site
from .config import CONFIG_FILENAME, load_config
from .utils import inject_before

RELOAD_SNIPPET = """<script>
(function () {{
  var socket = new WebSocket("ws://" + location.hostname + ":{port}/");
  socket.addEventListener("message", function (event) {{
    var data = JSON.parse(event.data || "{{}}");
    if (data.type === "reload") {{ location.reload(); }}
  }});
}})();
</script>
"""


class PreviewRequestHandler(SimpleHTTPRequestHandler):
    """Serves the output directory and appends the reload script to HTML."""

    snippet = RELOAD_SNIPPET.format(port=4001)

    def end_headers(self):
        self.send_header("Cache-Control", "no-store")
        super().end_headers()

    def log_message(self, format, *args):  # pragma: no cover - quiet console
        return None

    def list_directory(self, path):  # pragma: no cover - send_head never lists
        return self.not_found()

    def send_head(self):
        target = self._resolve(Path(self.translate_path(self.path)))
        if target is None:
            return self.not_found()
        if target.suffix == ".html":
            self.respond_html(HTTPStatus.OK, target.read_text(encoding="utf-8"))
            return None
        return super().send_head()

    @staticmethod
    def _resolve(path: Path) -> Path | None:
        if path.is_dir():
            path = path / "index.html"
        return path if path.is_file() else None

    def not_found(self):
        page = Path(self.directory) / "404.html"
        if page.is_file():
            self.respond_html(HTTPStatus.NOT_FOUND, page.read_text(encoding="utf-8"))
        else:
            self.send_error(HTTPStatus.NOT_FOUND, "File not found")
        return None

    def respond_html(self, status: HTTPStatus, html: str) -> None:
        body = inject_before(html, "</body>", self.snippet).encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "text/html; charset=utf-8")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)


class ReloadHub:
    """Websocket endpoint telling connected pages to reload.

    The hub runs its own event loop on a background thread; ``notify`` is
    safe to call from any other thread.
    """

    def __init__(self, port: int):
        self.port = port
        self.clients: set[Any] = set()
        self.loop = asyncio.new_event_loop()
        self._closing: asyncio.Event | None = None

    def run(self) -> None:
        asyncio.set_event_loop(self.loop)
        try:
            self.loop.run_until_complete(self._serve())
        except OSError as exc:
            print(f"WebSocket server failed to start (port {self.port}): {exc}")

    async def _serve(self) -> None:  # pragma: no cover - binds a real socket
        self._closing = asyncio.Event()
        async with websockets.serve(self._register, "0.0.0.0", self.port):
            await self._closing.wait()

    async def _register(self, websocket) -> None:
        self.clients.add(websocket)
        try:
            await websocket.wait_closed()
        finally:
            self.clients.discard(websocket)

    def notify(self) -> None:
        message = json.dumps({"type": "reload"})
        asyncio.run_coroutine_threadsafe(self._send_all(message), self.loop)

    async def _send_all(self, message: str) -> None:
        gone = []
        for client in list(self.clients):
            try:
                await client.send(message)
            except websockets.ConnectionClosed:
                gone.append(client)
        self.clients.difference_update(gone)

    def close(self) -> None:
        if self._closing is not None:
            self.loop.call_soon_threadsafe(self._closing.set)


def resolve_ports(config: dict[str, Any], http_port: int | None, ws_port: int | None) -> tuple[int, int]:
    """Pick the HTTP and websocket ports.

    An explicit ``--port`` moves the websocket to the next port unless
    ``--ws-port`` is also given; otherwise ``port``/``ws_port`` from
    quire.yaml apply.
    """
    http = int(http_port or config.get("port") or 4000)
    if ws_port is not None:
        return http, int(ws_port)
    if http_port is None and config.get("ws_port"):
        return http, int(config["ws_port"])
    return http, http + 1


class DevServer:
    """Preview server with staged rebuilds and live reload.

    Attributes:
        project_root: Root directory of the blog.
        config: Site configuration.
        output_dir: Directory being served.
        staging_dir: Directory rebuilds are written to before the swap.
        previous_dir: Where the old output is moved during the swap.
        http_port: HTTP port.
        ws_port: Websocket port for reload messages.
        hub: Websocket reload broadcaster.
    """

    debounce_seconds = 0.05
    settle_seconds = 0.05

    def __init__(self, project_root: Path, http_port: int | None = None, ws_port: int | None = None):
        self.project_root = project_root
        self.config = load_config(project_root)
        self.output_dir = project_root / str(self.config.get("output_dir") or "public")
        self.staging_dir = self.output_dir.with_name(f"{self.output_dir.name}.staging")
        self.previous_dir = self.output_dir.with_name(f"{self.output_dir.name}.previous")
        self.http_port, self.ws_port = resolve_ports(self.config, http_port, ws_port)
        self.hub = ReloadHub(self.ws_port)
        self._observer = None
        self._lock = threading.Lock()
        self._timer_lock = threading.Lock()
        self._timer: threading.Timer | None = None
        self._pending = False
        self._last_rebuild_at = 0.0
        self._signature: tuple | None = None

    @property
    def root_url(self) -> str:
        # Preview pages always link against the local server.
        return f"http://localhost:{self.http_port}"

    @property
    def reload_snippet(self) -> str:
        return RELOAD_SNIPPET.format(port=self.ws_port)

    @property
    def watched_paths(self) -> list[Path]:
        content_dir = str(self.config.get("content_dir") or "content")
        return [self.project_root / name for name in (content_dir, "layouts", "static", "themes")]

    def start(self, include_drafts: bool = False) -> None:  # pragma: no cover - blocks forever
        self.publish(include_drafts)
        self._signature = self.snapshot()
        threading.Thread(target=self._serve_http, daemon=True).start()
        threading.Thread(target=self.hub.run, daemon=True).start()
        self.watch(include_drafts)
        try:
            while True:
                time.sleep(1)
        except KeyboardInterrupt:
            self.stop()

    def stop(self) -> None:
        with self._timer_lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
        if self._observer is not None:
            self._observer.stop()
            self._observer.join()
            self._observer = None
        self.hub.close()

    def publish(self, include_drafts: bool) -> None:
        """Build into the staging directory, then swap it over the output.

        The old output is renamed aside before the staging directory is
        renamed into its place, so the served path is missing only between
        two renames and never while a tree is being deleted.

        Raises:
            BuildError: If the build fails; the served output is untouched.
        """
        build_site(
            self.project_root,
            include_drafts=include_drafts,
            root_url=self.root_url,
            clean_output=True,
            output_dir_override=self.staging_dir,
        )
        if self.previous_dir.exists():
            shutil.rmtree(self.previous_dir)
        if self.output_dir.exists():
            os.replace(self.output_dir, self.previous_dir)
        os.replace(self.staging_dir, self.output_dir)
        if self.previous_dir.exists():
            shutil.rmtree(self.previous_dir)

    def _serve_http(self) -> None:  # pragma: no cover - binds a real socket
        handler_cls = type("BoundPreviewHandler", (PreviewRequestHandler,), {"snippet": self.reload_snippet})
        handler = functools.partial(handler_cls, directory=str(self.output_dir))
        httpd = ThreadingHTTPServer(("", self.http_port), handler)
        print(f"Serving {self.output_dir} at {self.root_url}")
        httpd.serve_forever()

    def watch(self, include_drafts: bool) -> None:
        handler = SourceChangeHandler(self, include_drafts)
        observer = Observer()
        for path in self.watched_paths:
            if path.is_dir():
                observer.schedule(handler, str(path), recursive=True)
        # non-recursive so the output directory is not watched
        observer.schedule(handler, str(self.project_root), recursive=False)
        observer.start()
        self._observer = observer

    def rebuild(self, include_drafts: bool) -> bool:
        """Rebuild after a change.

        A change inside the debounce window schedules a rebuild for when the
        window closes. A change arriving while another rebuild runs marks it
        pending, and the running rebuild goes round again once it finishes.
        Nothing is rebuilt when no watched file changed since the last good
        build.

        Returns:
            True if the output was replaced and clients were told to reload.
        """
        wait = self.debounce_seconds - (time.monotonic() - self._last_rebuild_at)
        if wait > 0:
            self._schedule(wait, include_drafts)
            return False
        if not self._lock.acquire(blocking=False):
            self._pending = True
            return False
        replaced = False
        try:
            while True:
                self._pending = False
                replaced = self._rebuild_once(include_drafts) or replaced
                if not self._pending:
                    return replaced
        finally:
            self._last_rebuild_at = time.monotonic()
            self._lock.release()
            if self._pending:
                self._schedule(self.debounce_seconds, include_drafts)

    def _rebuild_once(self, include_drafts: bool) -> bool:
        signature = self.snapshot()
        if signature is not None and signature == self._signature:
            return False
        print("Change detected; rebuilding...")
        try:
            self.publish(include_drafts)
        except BuildError as exc:
            print(f"Build failed: {exc.source_path}: {exc.message}")
            return False
        self._signature = signature
        if self.settle_seconds:
            time.sleep(self.settle_seconds)
        self.hub.notify()
        return True

    def _schedule(self, delay: float, include_drafts: bool) -> None:
        with self._timer_lock:
            running = self._timer is not None and self._timer.is_alive()
            if running and self._timer is not threading.current_thread():
                return
            self._timer = threading.Timer(delay, self.rebuild, args=(include_drafts,))
            self._timer.daemon = True
            self._timer.start()

    def snapshot(self) -> tuple | None:
        """(path, mtime, size) of every watched file, or None if there are none."""
        files = [
            path
            for root in self.watched_paths
            if root.is_dir()
            for path in sorted(root.rglob("*"))
            if not path.is_dir()
        ]
        config_path = self.project_root / CONFIG_FILENAME
        if config_path.is_file():
            files.append(config_path)
        entries = []
        for path in files:
            try:
                stat = path.stat()
            except OSError:
                continue
            entries.append((path.relative_to(self.project_root).as_posix(), stat.st_mtime_ns, stat.st_size))
        return tuple(entries) or None


class SourceChangeHandler(FileSystemEventHandler):
    """Triggers a rebuild for changes to blog sources."""

    def __init__(self, server: DevServer, include_drafts: bool):
        super().__init__()
        self.server = server
        self.include_drafts = include_drafts

    def on_any_event(self, event):
        if event.is_directory:
            return
        if self.is_source(Path(os.fsdecode(event.src_path))):
            self.server.rebuild(self.include_drafts)

    def is_source(self, path: Path) -> bool:
        if ".git" in path.parts:
            return False
        for generated in (self.server.output_dir, self.server.staging_dir, self.server.previous_dir):
            if path == generated or generated in path.parents:
                return False
        if path.parent == self.server.project_root:
            return path.name == CONFIG_FILENAME
        return True
