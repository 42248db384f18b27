#!/usr/bin/env python

"""Streaming route tracing with the system traceroute/tracert command.

The orchestrator runs the platform tool in a subprocess, parses its output
while it is being produced and hands every hop to the caller as soon as it
is seen. Only one trace runs at a time: starting a new one kills the
previous process and silences its callbacks.

Example:
    >>> async def main():
    ...     orchestrator = TraceOrchestrator()
    ...     async for event in orchestrator.stream("example.com"):
    ...         print(event)
"""

from __future__ import annotations

import asyncio
import codecs
import logging
import re
from collections.abc import AsyncIterator, Callable
from contextlib import aclosing
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from .commands import UnsupportedPlatformError, build_command, trace_deadline
from .config import TracerouteConfig
from .models import Hop, TraceResult
from .parser import parse_line

READ_CHUNK_SIZE = 4096
BANNER_RE = re.compile(
    r"^(?:traceroute6? to |Tracing route to |over a maximum of |Trace complete)",
    re.IGNORECASE,
)

HopCallback = Callable[[Hop], Any]
ResultCallback = Callable[[TraceResult], Any]


class TraceCancelledError(Exception):
    """The trace was superseded by a newer one before it completed."""

    pass


class LineBuffer:
    """Reassemble text lines from a byte stream delivered in arbitrary chunks.

    The trailing fragment of each chunk is held back until a later chunk
    completes it or the stream ends.
    """

    def __init__(self, encoding: str = "utf-8") -> None:
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._pending = ""

    def feed(self, chunk: bytes) -> list[str]:
        """Add a chunk and return the lines it completed."""
        self._pending += self._decoder.decode(chunk)
        *lines, self._pending = self._pending.split("\n")
        return [line.rstrip("\r") for line in lines]

    def flush(self) -> list[str]:
        """Return the unterminated final line, if there is one."""
        tail = (self._pending + self._decoder.decode(b"", final=True)).rstrip("\r")
        self._pending = ""
        return [tail] if tail.strip() else []


def _notify(callback: Callable[..., Any], *args: Any) -> None:
    try:
        callback(*args)
    except Exception:
        logging.exception(f"Trace consumer {callback!r} failed")


@dataclass
class _TraceAttempt:
    target: str
    command: list[str]
    deadline: float
    on_hop: HopCallback
    on_complete: ResultCallback
    on_superseded: Callable[[], Any] | None = None
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    hops: list[Hop] = field(default_factory=list)
    diagnostics: list[str] = field(default_factory=list)
    messages: list[str] = field(default_factory=list)
    process: asyncio.subprocess.Process | None = None
    task: asyncio.Task | None = None
    superseded: bool = False
    finished: bool = False

    def kill(self) -> None:
        if self.process is not None and self.process.returncode is None:
            try:
                self.process.kill()
            except ProcessLookupError:
                pass


class TraceOrchestrator:
    """Run one route trace at a time and stream its hops.

    Args:
        config: Tool settings; the defaults for ``max_hops`` and
            ``per_hop_timeout`` come from here.
    """

    def __init__(self, config: TracerouteConfig | None = None) -> None:
        self.config = config or TracerouteConfig()
        self._active: _TraceAttempt | None = None
        # Serialises process creation so superseded processes are reaped first
        self._spawn_lock = asyncio.Lock()

    @property
    def is_active(self) -> bool:
        return self._active is not None

    def cancel_active(self) -> bool:
        """Kill the running trace, if any, and drop its pending events.

        Returns:
            True if a trace was cancelled.
        """
        attempt, self._active = self._active, None
        if attempt is None:
            return False

        logging.info(f"Cancelling trace to {attempt.target}")
        attempt.superseded = True
        attempt.kill()
        if attempt.on_superseded is not None:
            _notify(attempt.on_superseded)
        return True

    def run_streaming(
        self,
        target: str,
        on_hop: HopCallback,
        on_complete: ResultCallback,
        max_hops: int | None = None,
        per_hop_timeout: int | None = None,
    ) -> asyncio.Task | None:
        """Start tracing the route to a target without waiting for it.

        Any trace already running is cancelled first. Must be called from
        a running event loop.

        Args:
            target: Bare hostname or IP literal.
            on_hop: Called with each hop, in discovery order, as it is parsed.
            on_complete: Called once with the final result, after the last
                ``on_hop`` call. Never called if the trace is superseded.
            max_hops: Maximum number of hops for the tool to probe.
            per_hop_timeout: Seconds the tool waits for each hop.

        Returns:
            The task driving the trace, or None when the platform has no
            route-tracing command (``on_complete`` has then already fired).

        Raises:
            ValueError: If the target is empty or a tuning value is not positive.
        """
        attempt = self._start(target, on_hop, on_complete, max_hops, per_hop_timeout)
        return attempt.task if attempt is not None else None

    async def stream(
        self,
        target: str,
        max_hops: int | None = None,
        per_hop_timeout: int | None = None,
    ) -> AsyncIterator[Hop | TraceResult]:
        """Trace a route, yielding each Hop and finally the TraceResult.

        Iteration ends without a result if the trace is superseded. Closing
        the iterator early cancels the trace.
        """
        queue: asyncio.Queue[Hop | TraceResult | None] = asyncio.Queue()

        def on_complete(result: TraceResult) -> None:
            queue.put_nowait(result)
            queue.put_nowait(None)

        attempt = self._start(
            target,
            queue.put_nowait,
            on_complete,
            max_hops,
            per_hop_timeout,
            on_superseded=lambda: queue.put_nowait(None),
        )
        try:
            while (event := await queue.get()) is not None:
                yield event
        finally:
            if attempt is not None and self._active is attempt:
                self.cancel_active()

    async def trace(
        self,
        target: str,
        max_hops: int | None = None,
        per_hop_timeout: int | None = None,
    ) -> TraceResult:
        """Trace a route and return the final result.

        Raises:
            TraceCancelledError: If a newer trace superseded this one.
        """
        async with aclosing(self.stream(target, max_hops, per_hop_timeout)) as events:
            async for event in events:
                if isinstance(event, TraceResult):
                    return event
        raise TraceCancelledError(f"Trace to {target} was superseded")

    def _start(
        self,
        target: str,
        on_hop: HopCallback,
        on_complete: ResultCallback,
        max_hops: int | None,
        per_hop_timeout: int | None,
        on_superseded: Callable[[], Any] | None = None,
    ) -> _TraceAttempt | None:
        loop = asyncio.get_running_loop()
        self.cancel_active()

        if max_hops is None:
            max_hops = self.config.max_hops
        if per_hop_timeout is None:
            per_hop_timeout = self.config.per_hop_timeout
        started_at = datetime.now(timezone.utc)

        try:
            command = build_command(
                target,
                max_hops,
                per_hop_timeout,
                icmp=self.config.icmp,
                resolve_hostnames=self.config.resolve_hostnames,
                queries_per_hop=self.config.queries_per_hop,
            )
        except UnsupportedPlatformError as e:
            logging.error(f"Cannot trace {target}: {e}")
            result = TraceResult(
                target=target, started_at=started_at, complete=False, error=str(e)
            )
            _notify(on_complete, result)
            return None

        attempt = _TraceAttempt(
            target=target,
            command=command,
            deadline=trace_deadline(
                max_hops, per_hop_timeout, self.config.deadline_margin
            ),
            on_hop=on_hop,
            on_complete=on_complete,
            on_superseded=on_superseded,
            started_at=started_at,
        )
        self._active = attempt
        attempt.task = loop.create_task(self._run(attempt))
        return attempt

    async def _run(self, attempt: _TraceAttempt) -> None:
        async with self._spawn_lock:
            if attempt.superseded:
                return

            logging.info(f"Tracing route to {attempt.target}: {' '.join(attempt.command)}")
            try:
                process = await asyncio.create_subprocess_exec(
                    *attempt.command,
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.PIPE,
                )
            except (OSError, ValueError) as e:
                logging.error(f"Failed to start {attempt.command[0]}: {e}")
                self._finish(attempt, complete=False, error=str(e))
                return

            attempt.process = process
            if attempt.superseded:
                attempt.kill()
                await process.wait()
                return

        buffers = {"stdout": LineBuffer(), "stderr": LineBuffer()}
        timed_out = False
        try:
            returncode = await asyncio.wait_for(
                self._communicate(attempt, process, buffers), timeout=attempt.deadline
            )
        except asyncio.TimeoutError:
            logging.warning(
                f"Trace to {attempt.target} exceeded {attempt.deadline:g}s, killing it"
            )
            attempt.kill()
            returncode = await process.wait()
            timed_out = True
        finally:
            attempt.kill()

        if attempt.superseded:
            logging.debug(f"Discarding output of superseded trace to {attempt.target}")
            return

        for source, buffer in buffers.items():
            for line in buffer.flush():
                self._handle_line(attempt, line, source)

        tool = attempt.command[0]
        logging.info(
            f"Trace to {attempt.target} ended: {len(attempt.hops)} hops "
            f"(exit code: {returncode})"
        )
        if timed_out:
            self._finish(
                attempt,
                complete=False,
                error=f"{tool} did not finish within {attempt.deadline:g} seconds",
            )
        elif returncode == 0:
            self._finish(attempt, complete=True)
        elif attempt.hops:
            # Unreachable destinations exit non-zero after a valid partial path
            self._finish(
                attempt, complete=True, error=f"{tool} exited with status {returncode}"
            )
        else:
            error = "\n".join(attempt.diagnostics or attempt.messages)
            self._finish(
                attempt,
                complete=False,
                error=error or f"{tool} exited with status {returncode}",
            )

    async def _communicate(
        self,
        attempt: _TraceAttempt,
        process: asyncio.subprocess.Process,
        buffers: dict[str, LineBuffer],
    ) -> int:
        await asyncio.gather(
            self._pump(attempt, process.stdout, buffers["stdout"], "stdout"),
            self._pump(attempt, process.stderr, buffers["stderr"], "stderr"),
        )
        return await process.wait()

    async def _pump(
        self,
        attempt: _TraceAttempt,
        stream: asyncio.StreamReader,
        buffer: LineBuffer,
        source: str,
    ) -> None:
        while chunk := await stream.read(READ_CHUNK_SIZE):
            if attempt.superseded:
                return
            for line in buffer.feed(chunk):
                self._handle_line(attempt, line, source)

    def _handle_line(self, attempt: _TraceAttempt, line: str, source: str) -> None:
        if attempt.superseded:
            return

        logging.debug(f"[{source}] {line!r}")
        hop = parse_line(line)
        if hop is None:
            text = line.strip()
            if not text:
                return
            if source == "stderr":
                attempt.diagnostics.append(text)
            elif not BANNER_RE.match(text):
                # tracert reports resolution failures on stdout
                attempt.messages.append(text)
            return

        if attempt.hops and hop.hop_number < attempt.hops[-1].hop_number:
            logging.debug(f"Ignoring out-of-order hop {hop.hop_number} from {source}")
            return

        attempt.hops.append(hop)
        logging.debug(
            f"Hop {hop.hop_number}: {hop.address or hop.hostname or '*'} "
            f"(rtt: {hop.round_trip_ms} ms)"
        )
        _notify(attempt.on_hop, hop)

    def _finish(
        self, attempt: _TraceAttempt, complete: bool, error: str | None = None
    ) -> None:
        if attempt.superseded or attempt.finished:
            return
        attempt.finished = True
        if self._active is attempt:
            self._active = None

        result = TraceResult(
            target=attempt.target,
            hops=tuple(attempt.hops),
            started_at=attempt.started_at,
            complete=complete,
            error=error,
        )
        _notify(attempt.on_complete, result)
