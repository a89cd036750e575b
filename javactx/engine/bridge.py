"""
Asynchronous request bridge to an out-of-process analysis engine.
"""
import asyncio
import json
import logging
import sys
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from javactx.core.config import EngineConfig
from javactx.core.errors import (
    EngineStartTimeout,
    EngineTerminated,
    RequestTimeout,
    error_from_dict,
)
from .worker import READY_MARKER


DEFAULT_STARTUP_TIMEOUT = 5.0
DEFAULT_REQUEST_TIMEOUT = 30.0
# Type trees of large DTO graphs easily exceed asyncio's 64 KiB line limit.
STREAM_LIMIT = 64 * 1024 * 1024


class BridgeState(str, Enum):
    STARTING = "starting"
    READY = "ready"
    STOPPED = "stopped"
    CRASHED = "crashed"


@dataclass
class PendingRequest:
    request_id: int
    operation: str
    future: asyncio.Future
    created_at: float
    timeout_handle: Optional[asyncio.TimerHandle] = None


class EngineBridge:
    """
    Owns one engine process and correlates its responses with callers.

    Many requests may be in flight at once; the engine answers them in
    arrival order and each response is matched back by request id.
    """

    def __init__(self, config: EngineConfig, command: Optional[List[str]] = None,
                 startup_timeout: float = DEFAULT_STARTUP_TIMEOUT,
                 request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
                 ready_marker: str = READY_MARKER):
        """
        Initialize the bridge; the engine is launched by :meth:`start`.

        Args:
            config: Engine configuration passed to the worker
            command: Override the worker command line
            startup_timeout: Seconds to wait for the readiness marker
            request_timeout: Default per-request timeout in seconds
            ready_marker: Line the engine writes to stderr once it accepts requests
        """
        self.config = config
        self.command = command
        self.startup_timeout = startup_timeout
        self.request_timeout = request_timeout
        self.ready_marker = ready_marker
        self.logger = logging.getLogger(__name__)

        self.state = BridgeState.STOPPED
        self.process: Optional[asyncio.subprocess.Process] = None
        self.returncode: Optional[int] = None
        self._pending: Dict[int, PendingRequest] = {}
        self._next_id = 0
        self._ready: Optional[asyncio.Event] = None
        self._launch: Optional[asyncio.Future] = None
        self._tasks: List[asyncio.Task] = []
        self._stdout_task: Optional[asyncio.Task] = None

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def worker_command(self) -> List[str]:
        if self.command is not None:
            return list(self.command)
        return [
            sys.executable, "-m", "javactx.engine.worker",
            self.config.project_root,
            "--config-json", self.config.model_dump_json(),
        ]

    async def start(self) -> None:
        """
        Launch the engine process and the reader tasks.

        Concurrent callers share one launch, so only one engine is ever spawned.
        """
        if self._launch is None:
            self.state = BridgeState.STARTING
            self._ready = asyncio.Event()
            self._launch = asyncio.ensure_future(self._spawn())
        await asyncio.shield(self._launch)

    async def _spawn(self) -> None:
        command = self.worker_command()
        self.logger.info(f"Starting engine: {command[0]} {' '.join(command[1:3])}")
        try:
            self.process = await asyncio.create_subprocess_exec(
                *command,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                limit=STREAM_LIMIT,
            )
        except OSError as e:
            self.state = BridgeState.CRASHED
            raise EngineTerminated(f"Engine could not be launched: {e}", {"command": command[0]}) from e
        self._stdout_task = asyncio.create_task(self._read_stdout())
        self._tasks = [
            self._stdout_task,
            asyncio.create_task(self._read_stderr()),
            asyncio.create_task(self._watch_process()),
        ]

    async def wait_ready(self) -> None:
        """
        Wait until the engine reported readiness.

        A startup timeout is final: the engine is killed and the bridge
        ends up CRASHED, so later sends fail at once.

        Raises:
            EngineStartTimeout: if the marker does not appear in time
            EngineTerminated: if the engine exited or the bridge was closed
        """
        if self.state == BridgeState.READY:
            return
        if self.state in (BridgeState.STOPPED, BridgeState.CRASHED):
            raise EngineTerminated(
                f"Engine is not running ({self.state.value})",
                {"state": self.state.value, "exitCode": self.returncode},
            )
        try:
            await asyncio.wait_for(self._ready.wait(), self.startup_timeout)
        except asyncio.TimeoutError:
            self._abandon_startup()
            raise EngineStartTimeout(
                f"Engine did not become ready within {self.startup_timeout}s",
                {"startupTimeoutSeconds": self.startup_timeout},
            ) from None
        if self.state != BridgeState.READY:
            raise EngineTerminated(
                f"Engine exited before becoming ready (exit code {self.returncode})",
                {"state": self.state.value, "exitCode": self.returncode},
            )

    def _abandon_startup(self) -> None:
        if self.state != BridgeState.STARTING:
            return
        self.state = BridgeState.CRASHED
        self.logger.error(f"Engine did not become ready within {self.startup_timeout}s, killing it")
        if self.process is not None and self.process.returncode is None:
            self.process.kill()

    async def send(self, operation: str, params: Optional[Dict[str, Any]] = None,
                   timeout: Optional[float] = None) -> Any:
        """
        Send one operation and wait for its result.

        Raises:
            AnalysisError: the engine's structured error, re-created caller-side
            RequestTimeout: if no response arrives within the timeout
            EngineTerminated: if the engine exits while the request is pending
        """
        await self.start()
        await self.wait_ready()

        loop = asyncio.get_running_loop()
        self._next_id += 1
        request_id = self._next_id
        timeout = self.request_timeout if timeout is None else timeout

        pending = PendingRequest(
            request_id=request_id,
            operation=operation,
            future=loop.create_future(),
            created_at=loop.time(),
        )
        pending.timeout_handle = loop.call_later(timeout, self._expire, request_id, timeout)
        self._pending[request_id] = pending

        message = {"requestId": request_id, "operation": operation, "params": params or {}}
        try:
            self.process.stdin.write((json.dumps(message) + "\n").encode("utf-8"))
            await self.process.stdin.drain()
        except (BrokenPipeError, ConnectionResetError) as e:
            self._reject(request_id, EngineTerminated(
                f"Engine input closed: {e}", {"requestId": request_id, "operation": operation},
            ))

        self.logger.debug(f"Sent request {request_id} ({operation})")
        return await pending.future

    def _expire(self, request_id: int, timeout: float) -> None:
        pending = self._pending.get(request_id)
        if pending is None:
            return
        self.logger.warning(f"Request {request_id} ({pending.operation}) timed out after {timeout}s")
        self._reject(request_id, RequestTimeout(
            f"Request {request_id} ({pending.operation}) timed out after {timeout}s",
            {"requestId": request_id, "operation": pending.operation, "timeoutSeconds": timeout},
        ))

    def _reject(self, request_id: int, error: Exception) -> None:
        pending = self._pending.pop(request_id, None)
        if pending is None:
            return
        if pending.timeout_handle is not None:
            pending.timeout_handle.cancel()
        if not pending.future.done():
            pending.future.set_exception(error)

    def _dispatch(self, raw: bytes) -> None:
        """Resolve or reject the pending request a response line belongs to."""
        text = raw.decode("utf-8", errors="replace").strip()
        if not text:
            return
        try:
            message = json.loads(text)
        except ValueError:
            self.logger.warning(f"Dropping malformed engine output: {text[:200]}")
            return
        if not isinstance(message, dict):
            self.logger.warning(f"Dropping non-object engine output: {text[:200]}")
            return

        request_id = message.get("requestId")
        pending = self._pending.pop(request_id, None) if isinstance(request_id, int) else None
        if pending is None:
            self.logger.warning(f"Dropping response for unknown request id {request_id!r}")
            return

        if pending.timeout_handle is not None:
            pending.timeout_handle.cancel()
        if pending.future.done():
            return
        if message.get("success"):
            pending.future.set_result(message.get("data"))
        else:
            pending.future.set_exception(error_from_dict(message.get("error") or {}))

    async def _read_stdout(self) -> None:
        while True:
            try:
                line = await self.process.stdout.readline()
            except ValueError as e:
                self.logger.error(f"Engine output line could not be read: {e}")
                break
            if not line:
                break
            self._dispatch(line)

    async def _read_stderr(self) -> None:
        while True:
            line = await self.process.stderr.readline()
            if not line:
                break
            text = line.decode("utf-8", errors="replace").rstrip()
            if self.state == BridgeState.STARTING and self.ready_marker in text:
                self.state = BridgeState.READY
                self._ready.set()
                self.logger.info("Engine is ready")
            else:
                self.logger.debug(f"engine: {text}")

    async def _watch_process(self) -> None:
        self.returncode = await self.process.wait()
        # Let responses already written by the engine reach their callers first.
        await asyncio.gather(self._stdout_task, return_exceptions=True)

        if self.state not in (BridgeState.STOPPED, BridgeState.CRASHED):
            self.state = BridgeState.CRASHED
            self.logger.error(f"Engine exited unexpectedly with code {self.returncode}")
        self._reject_all(f"Engine exited with code {self.returncode}")
        self._ready.set()

    def _reject_all(self, reason: str) -> None:
        for request_id in list(self._pending):
            pending = self._pending[request_id]
            self._reject(request_id, EngineTerminated(
                reason,
                {"requestId": request_id, "operation": pending.operation, "exitCode": self.returncode},
            ))

    async def close(self, timeout: float = 2.0) -> None:
        """Stop the engine; pending requests are rejected with EngineTerminated."""
        if self._launch is not None:
            await asyncio.gather(self._launch, return_exceptions=True)
        if self.process is None:
            self.state = BridgeState.STOPPED
            return
        if self.state != BridgeState.CRASHED:
            self.state = BridgeState.STOPPED

        if self.process.returncode is None:
            try:
                self.process.stdin.close()
            except (BrokenPipeError, ConnectionResetError):
                pass
            try:
                await asyncio.wait_for(self.process.wait(), timeout)
            except asyncio.TimeoutError:
                self.logger.warning("Engine did not exit after closing its input, terminating it")
                self.process.terminate()
                try:
                    await asyncio.wait_for(self.process.wait(), timeout)
                except asyncio.TimeoutError:
                    self.process.kill()
                    await self.process.wait()

        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._reject_all("Bridge closed")
        self.logger.info(f"Engine stopped ({self.state.value})")

    async def __aenter__(self) -> "EngineBridge":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
