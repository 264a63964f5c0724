"""
MPV playback engine over JSON IPC.

Commands use short-lived socket connections. A second, long-lived connection
observes ``pause`` and ``playlist-pos`` and watches ``end-file`` events; the
reader thread hands every event to ``dispatch`` so listeners run on the
owning loop.
"""

import json
import os
import socket
import subprocess
import tempfile
import threading
import time
from pathlib import Path
from typing import Any, Callable, Optional, Sequence

from loguru import logger

from tunemux.core.config import PlayerConfig

from .engine import EngineError, EngineListener, QueueItem

SOCKET_TIMEOUT = 2.0
STARTUP_TIMEOUT = 5.0

PAUSE_OBSERVER_ID = 1
PLAYLIST_POS_OBSERVER_ID = 2


class MpvUnavailable(EngineError):
    """mpv could not be started or its socket did not come up."""


def check_mpv_available() -> bool:
    """Check if MPV is available on the system."""
    try:
        result = subprocess.run(
            ["mpv", "--version"], capture_output=True, text=True, timeout=5
        )
        return result.returncode == 0
    except (subprocess.SubprocessError, FileNotFoundError, OSError):
        return False


def _request(socket_path: str, command: list[Any]) -> Optional[dict[str, Any]]:
    """Send one command and return mpv's reply, or None if unreachable."""
    if not os.path.exists(socket_path):
        return None

    try:
        with socket.socket(socket.AF_UNIX, socket.SOCK_STREAM) as sock:
            sock.settimeout(SOCKET_TIMEOUT)
            sock.connect(socket_path)
            sock.sendall((json.dumps({"command": command}) + "\n").encode("utf-8"))

            buffer = b""
            while True:
                chunk = sock.recv(4096)
                if not chunk:
                    return None
                buffer += chunk
                while b"\n" in buffer:
                    line, buffer = buffer.split(b"\n", 1)
                    try:
                        reply = json.loads(line)
                    except json.JSONDecodeError:
                        continue
                    # Skip events that share the connection with the reply
                    if "error" in reply:
                        return reply
    except (socket.error, OSError):
        return None


def send_mpv_command(socket_path: str, *command: Any) -> bool:
    """Send JSON IPC command to MPV."""
    reply = _request(socket_path, list(command))
    return reply is not None and reply.get("error") == "success"


def get_mpv_property(socket_path: str, property_name: str) -> Any:
    """Get a property value from MPV."""
    reply = _request(socket_path, ["get_property", property_name])
    if reply is not None and reply.get("error") == "success":
        return reply.get("data")
    return None


class MpvEngine:
    """PlaybackEngine backed by an mpv subprocess.

    mpv is started lazily by prepare() so commands that only build a queue
    never spawn a player.

    Args:
        config: Player configuration (socket path, volume)
        dispatch: Called as ``dispatch(callback, *args)`` from the reader
            thread; must hand the call to the owning loop (``MainLoop.post``)
    """

    def __init__(self, config: PlayerConfig, dispatch: Callable[..., None]):
        self._config = config
        self._dispatch = dispatch
        self._listener: Optional[EngineListener] = None

        self._process: Optional[subprocess.Popen] = None
        self._socket_path: Optional[str] = None
        self._reader: Optional[threading.Thread] = None
        self._event_sock: Optional[socket.socket] = None

        self._lock = threading.Lock()
        self._items: list[QueueItem] = []
        self._index = -1
        self._failed_index: Optional[int] = None
        self._pending = False
        self._released = False

    def set_listener(self, listener: EngineListener) -> None:
        self._listener = listener

    # Process lifecycle

    def _ensure_started(self) -> str:
        if self._socket_path is not None and self._process is not None:
            if self._process.poll() is None:
                return self._socket_path
            logger.warning("MPV exited unexpectedly, restarting")
            self._stop_process()
            self._pending = True

        socket_path = self._config.mpv_socket_path or str(
            Path(tempfile.gettempdir()) / f"tunemux-mpv-{os.getpid()}"
        )
        logger.info(f"Starting MPV player with socket: {socket_path}")

        if os.path.exists(socket_path):
            logger.debug(f"Removing existing socket: {socket_path}")
            os.unlink(socket_path)

        cmd = [
            "mpv",
            "--idle=yes",
            "--no-video",
            "--no-terminal",
            f"--input-ipc-server={socket_path}",
            f"--volume={self._config.volume}",
            "--load-scripts=no",
        ]
        try:
            process = subprocess.Popen(
                cmd,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                stdin=subprocess.DEVNULL,
            )
        except (subprocess.SubprocessError, OSError) as e:
            raise MpvUnavailable(f"Failed to start MPV: {e}") from e

        start_time = time.monotonic()
        while not os.path.exists(socket_path):
            if time.monotonic() - start_time > STARTUP_TIMEOUT:
                process.kill()
                raise MpvUnavailable(
                    f"MPV socket creation timeout after {STARTUP_TIMEOUT}s"
                )
            time.sleep(0.1)

        self._process = process
        self._socket_path = socket_path
        self._start_reader(socket_path)
        logger.info("MPV started successfully")
        return socket_path

    def _start_reader(self, socket_path: str) -> None:
        sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        sock.connect(socket_path)
        for observer_id, name in (
            (PAUSE_OBSERVER_ID, "pause"),
            (PLAYLIST_POS_OBSERVER_ID, "playlist-pos"),
        ):
            message = {"command": ["observe_property", observer_id, name]}
            sock.sendall((json.dumps(message) + "\n").encode("utf-8"))

        self._event_sock = sock
        self._reader = threading.Thread(
            target=self._read_events, args=(sock,), name="tunemux-mpv-events", daemon=True
        )
        self._reader.start()

    def _read_events(self, sock: socket.socket) -> None:
        buffer = b""
        try:
            while True:
                chunk = sock.recv(4096)
                if not chunk:
                    break
                buffer += chunk
                while b"\n" in buffer:
                    line, buffer = buffer.split(b"\n", 1)
                    try:
                        message = json.loads(line)
                    except json.JSONDecodeError:
                        continue
                    if "event" in message:
                        self._handle_event(message)
        except OSError:
            pass  # Socket closed by release()
        logger.debug("MPV event reader stopped")

    def _handle_event(self, message: dict[str, Any]) -> None:
        event = message["event"]

        if event == "property-change":
            name = message.get("name")
            data = message.get("data")
            if name == "pause" and isinstance(data, bool):
                self._emit("on_is_playing_changed", not data)
            elif name == "playlist-pos" and isinstance(data, int) and data >= 0:
                with self._lock:
                    self._index = data
                    item = self._items[data] if data < len(self._items) else None
                if item is not None:
                    self._emit("on_item_transition", item.stable_id)

        elif event == "end-file" and message.get("reason") == "error":
            error = message.get("file_error") or "playback error"
            with self._lock:
                self._failed_index = self._index
            logger.warning(f"MPV failed to play item {self._index}: {error}")
            self._emit("on_error", str(error))

    def _emit(self, method: str, *args: Any) -> None:
        listener = self._listener
        if listener is not None:
            self._dispatch(getattr(listener, method), *args)

    def _stop_process(self) -> None:
        if self._event_sock is not None:
            try:
                self._event_sock.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass
            self._event_sock.close()
            self._event_sock = None

        if self._process is not None:
            try:
                self._process.kill()
                self._process.wait(timeout=2.0)
            except (OSError, subprocess.TimeoutExpired):
                pass  # Process already terminated or couldn't be killed
            self._process = None

        if self._socket_path and os.path.exists(self._socket_path):
            try:
                os.unlink(self._socket_path)
            except OSError:
                pass
        self._socket_path = None

    # PlaybackEngine

    def _push_items(self, socket_path: str) -> None:
        with self._lock:
            items = list(self._items)
            self._pending = False

        if not items:
            send_mpv_command(socket_path, "stop")
            return
        send_mpv_command(socket_path, "set_property", "pause", True)
        for position, item in enumerate(items):
            mode = "replace" if position == 0 else "append"
            send_mpv_command(socket_path, "loadfile", item.uri, mode)
        logger.debug(f"Loaded {len(items)} items into MPV")

    def load(self, items: Sequence[QueueItem]) -> None:
        """Replace the queue. mpv only sees it once started by prepare()."""
        with self._lock:
            self._items = list(items)
            self._index = -1
            self._failed_index = None
            self._pending = True

        if self._socket_path is not None:
            self._push_items(self._socket_path)

    def prepare(self) -> None:
        socket_path = self._ensure_started()
        if self._pending:
            self._push_items(socket_path)

    def seek_to_index(self, index: int, offset_ms: int = 0) -> None:
        self.prepare()
        with self._lock:
            self._index = index
            self._failed_index = None
        send_mpv_command(self._socket_path, "playlist-play-index", index)
        if offset_ms > 0:
            send_mpv_command(
                self._socket_path, "seek", offset_ms / 1000.0, "absolute"
            )

    def play(self) -> None:
        if self._socket_path is not None:
            send_mpv_command(self._socket_path, "set_property", "pause", False)

    def pause(self) -> None:
        if self._socket_path is not None:
            send_mpv_command(self._socket_path, "set_property", "pause", True)

    def seek_to_position_ms(self, position_ms: int) -> None:
        if self._socket_path is not None:
            send_mpv_command(
                self._socket_path, "seek", max(0, position_ms) / 1000.0, "absolute"
            )

    def _anchor_index(self) -> int:
        # mpv may already have moved past a failed item on its own
        with self._lock:
            if self._failed_index is not None:
                return self._failed_index
            return self._index

    def has_next(self) -> bool:
        return 0 <= self._anchor_index() + 1 < len(self._items)

    def next(self) -> None:
        if self.has_next():
            self.seek_to_index(self._anchor_index() + 1)

    def has_prev(self) -> bool:
        return self._anchor_index() > 0

    def prev(self) -> None:
        if self.has_prev():
            self.seek_to_index(self._anchor_index() - 1)

    def current_position_ms(self) -> int:
        if self._socket_path is None:
            return 0
        position = get_mpv_property(self._socket_path, "time-pos")
        if not isinstance(position, (int, float)):
            return 0
        return int(position * 1000)

    def item_count(self) -> int:
        return len(self._items)

    def release(self) -> None:
        """Stop mpv and the event reader. Idempotent."""
        if self._released:
            return
        self._released = True
        self._stop_process()
        with self._lock:
            self._items = []
            self._index = -1
        logger.debug("MPV engine released")
