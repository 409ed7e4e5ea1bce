"""Background execution host for encrypt/decrypt jobs.

Each job runs the streaming pipeline in its own worker process so a
caller (the TUI, the CLI) stays responsive and can kill the job at any
point. The worker talks to the caller only through an ordered queue of
event objects:

- ``Progress(fraction)`` zero or more times, non-decreasing
- exactly one terminal event, ``Succeeded`` or ``Failed``

After :meth:`CryptoJob.cancel` no further events are delivered and the
worker process is terminated and reaped.
"""
from __future__ import annotations

import logging
import multiprocessing
import queue
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterator, Optional, Union

from twistbox.core.exceptions import (
    CancelledOperation,
    TwistBoxError,
    WorkerCrashedError,
)
from twistbox.security.container import DEFAULT_CHUNK_SIZE
from twistbox.security.kdf import DEFAULT_ITERATIONS
from twistbox.security.stream import (
    decrypt_file_stream,
    encrypt_file_stream,
    validate_paths,
)

logger = logging.getLogger(__name__)


class Direction(str, Enum):
    ENCRYPT = "encrypt"
    DECRYPT = "decrypt"


@dataclass(frozen=True)
class Progress:
    fraction: float


@dataclass(frozen=True)
class Succeeded:
    bytes_written: int


@dataclass(frozen=True)
class Failed:
    error: TwistBoxError


Event = Union[Progress, Succeeded, Failed]


def _worker_main(events, direction, in_path, out_path, passphrase, chunk_size, iterations) -> None:
    """Entry point of the worker process."""

    def relay(fraction: float) -> None:
        events.put(Progress(fraction))

    try:
        if direction == Direction.ENCRYPT:
            written = encrypt_file_stream(
                in_path,
                out_path,
                passphrase,
                chunk_size=chunk_size,
                iterations=iterations,
                on_progress=relay,
            )
        else:
            written = decrypt_file_stream(
                in_path,
                out_path,
                passphrase,
                chunk_size=chunk_size,
                on_progress=relay,
            )
    except TwistBoxError as exc:
        events.put(Failed(exc))
        return
    except Exception as exc:
        logger.exception("unexpected failure in %s worker", direction.value)
        events.put(Failed(TwistBoxError(f"{type(exc).__name__}: {exc}")))
        return
    events.put(Succeeded(written))


class CryptoJob:
    """One encrypt or decrypt operation running in a worker process."""

    def __init__(
        self,
        direction: Direction,
        in_path,
        out_path,
        passphrase: str,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        iterations: int = DEFAULT_ITERATIONS,
        on_progress: Optional[Callable[[float], None]] = None,
        poll_interval: float = 0.1,
    ):
        self.direction = Direction(direction)
        self.in_path = str(in_path)
        self.out_path = str(out_path)
        self._passphrase = passphrase
        self.chunk_size = chunk_size
        self.iterations = iterations
        self.on_progress = on_progress
        self.poll_interval = poll_interval

        self._ctx = multiprocessing.get_context()
        self._queue = None
        self._process = None
        self._lock = threading.RLock()
        # held while polling the queue and while closing it
        self._poll_lock = threading.Lock()
        self._stopped = threading.Event()
        self._started = False
        self._cancelled = False
        self._finished = False
        self._terminal: Optional[Event] = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def started(self) -> bool:
        return self._started

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def finished(self) -> bool:
        return self._finished

    def start(self) -> "CryptoJob":
        """Validate paths and spawn the worker. Raises IOFailure before spawning."""
        if self.started:
            raise RuntimeError("job already started")
        validate_paths(self.in_path, self.out_path)

        self._queue = self._ctx.Queue()
        self._process = self._ctx.Process(
            target=_worker_main,
            args=(
                self._queue,
                self.direction,
                self.in_path,
                self.out_path,
                self._passphrase,
                self.chunk_size,
                self.iterations,
            ),
            name=f"twistbox-{self.direction.value}",
            daemon=True,
        )
        self._process.start()
        self._started = True
        # the worker owns the passphrase from here on
        self._passphrase = None
        logger.info("started %s job for %s", self.direction.value, self.in_path)
        return self

    def cancel(self, timeout: float = 5.0) -> bool:
        """Abandon the job: suppress further events and tear the worker down.

        Returns False when there was nothing to cancel.
        """
        with self._lock:
            if self._finished or self._cancelled:
                return False
            self._cancelled = True
            process = self._process
        if process is not None:
            if process.is_alive():
                process.terminate()
            process.join(timeout)
            if process.is_alive():
                process.kill()
                process.join()
        self._stopped.set()
        # a thread blocked in events() releases once its poll returns
        if self._poll_lock.acquire(blocking=False):
            try:
                self._release()
            finally:
                self._poll_lock.release()
        logger.info("cancelled %s job for %s", self.direction.value, self.in_path)
        return True

    def _release(self) -> None:
        if self._queue is not None:
            self._queue.cancel_join_thread()
            self._queue.close()
            self._queue = None
        if self._process is not None:
            self._process.join()
            self._process.close()
            self._process = None

    def __enter__(self) -> "CryptoJob":
        if not self.started:
            self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if not self._finished:
            self.cancel()

    # ------------------------------------------------------------------
    # Event delivery
    # ------------------------------------------------------------------

    def _next_message(self) -> Optional[Event]:
        try:
            return self._queue.get(timeout=self.poll_interval)
        except queue.Empty:
            pass
        if self._process.is_alive():
            return None
        # The worker exited; anything it sent is already in the pipe.
        try:
            return self._queue.get(timeout=self.poll_interval)
        except queue.Empty:
            return Failed(
                WorkerCrashedError(
                    f"worker exited without a result (exit code {self._process.exitcode})"
                )
            )

    def events(self) -> Iterator[Event]:
        """Yield progress events followed by exactly one terminal event."""
        if self._cancelled or self._finished:
            return
        if not self.started:
            self.start()
        while True:
            with self._poll_lock:
                if self._finished:
                    return
                if self._cancelled:
                    self._abandon()
                    return
                message = self._next_message()
                with self._lock:
                    cancelled = self._cancelled
                    if not cancelled and message is not None and not isinstance(message, Progress):
                        self._finished = True
                        self._terminal = message
                        self._release()
                if cancelled:
                    self._abandon()
                    return
                if message is None:
                    continue
            yield message
            if not isinstance(message, Progress):
                return

    def _abandon(self) -> None:
        # cancel() owns stopping the worker; wait for it before closing
        self._stopped.wait()
        self._release()

    def wait(self) -> Succeeded:
        """Run to completion, relaying progress to ``on_progress``.

        Returns the Succeeded event or raises the worker's typed error.
        """
        for event in self.events():
            if isinstance(event, Progress) and self.on_progress is not None:
                self.on_progress(event.fraction)
        if self._cancelled:
            raise CancelledOperation("operation cancelled")
        if isinstance(self._terminal, Failed):
            raise self._terminal.error
        return self._terminal


def start_encrypt(
    in_path,
    out_path,
    passphrase: str,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    iterations: int = DEFAULT_ITERATIONS,
    on_progress: Optional[Callable[[float], None]] = None,
) -> CryptoJob:
    job = CryptoJob(
        Direction.ENCRYPT,
        in_path,
        out_path,
        passphrase,
        chunk_size=chunk_size,
        iterations=iterations,
        on_progress=on_progress,
    )
    return job.start()


def start_decrypt(
    in_path,
    out_path,
    passphrase: str,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    on_progress: Optional[Callable[[float], None]] = None,
) -> CryptoJob:
    job = CryptoJob(
        Direction.DECRYPT,
        in_path,
        out_path,
        passphrase,
        chunk_size=chunk_size,
        on_progress=on_progress,
    )
    return job.start()


def encrypt(in_path, out_path, passphrase: str, chunk_size: int = DEFAULT_CHUNK_SIZE, **kwargs) -> Succeeded:
    """Encrypt ``in_path`` into ``out_path`` in a worker and wait for the result."""
    return start_encrypt(in_path, out_path, passphrase, chunk_size=chunk_size, **kwargs).wait()


def decrypt(in_path, out_path, passphrase: str, chunk_size: int = DEFAULT_CHUNK_SIZE, **kwargs) -> Succeeded:
    """Decrypt ``in_path`` into ``out_path`` in a worker and wait for the result."""
    return start_decrypt(in_path, out_path, passphrase, chunk_size=chunk_size, **kwargs).wait()
