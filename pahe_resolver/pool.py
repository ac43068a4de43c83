"""
Fixed-size pool of pre-warmed browser sessions
"""
import time
import logging
import threading
from collections import deque
from contextlib import contextmanager
from enum import Enum

from .errors import PoolExhausted, PoolNotReady

logger = logging.getLogger(__name__)


class PoolState(Enum):
    INITIALIZING = "initializing"
    READY = "ready"
    DRAINING = "draining"
    CLOSED = "closed"


class SessionPool:
    """Hands out browser sessions to at most ``size`` callers at a time.

    ``factory`` is called with a zero-based index and must return an object
    with ``navigate(url)`` and ``close()``. ``open()`` creates every session
    and warms it with one visit to ``warm_url``; a failed warm-up is logged
    and the session is still pooled.

    ``acquire()`` waits without a timeout by default, so when every session
    is busy callers queue until one is released. Callers that cannot wait
    forever should pass ``timeout`` and handle PoolExhausted. Waiters are
    not served in any guaranteed order.
    """

    def __init__(self, factory, size, warm_url=None):
        if size < 1:
            raise ValueError(f"Pool size must be at least 1, got {size}")
        self.factory = factory
        self.size = size
        self.warm_url = warm_url

        self.available = deque()
        self.in_use = set()
        self._sessions = []
        self._state = PoolState.INITIALIZING
        self._cond = threading.Condition()

    @property
    def state(self):
        return self._state

    @property
    def checked_out(self):
        with self._cond:
            return len(self.in_use)

    @property
    def idle(self):
        with self._cond:
            return len(self.available)

    def open(self):
        """Create and warm every session, then mark the pool READY"""
        with self._cond:
            if self._state is not PoolState.INITIALIZING:
                raise PoolNotReady(self._state.value)

        created = []
        try:
            for i in range(self.size):
                created.append(self.factory(i))
        except Exception:
            logger.error(f"Failed to create browser session {len(created) + 1}/{self.size}")
            for session in created:
                self._close_session(session)
            with self._cond:
                self._state = PoolState.CLOSED
            raise

        for i, session in enumerate(created):
            self._warm(i, session)

        with self._cond:
            closed_meanwhile = self._state is not PoolState.INITIALIZING
            if not closed_meanwhile:
                self._sessions = list(created)
                self.available.extend(created)
                self._state = PoolState.READY
                self._cond.notify_all()

        if closed_meanwhile:
            for session in created:
                self._close_session(session)
            raise PoolNotReady(self._state.value)

        logger.info(f"Session pool ready with {self.size} sessions")
        return self

    def _warm(self, index, session):
        if not self.warm_url:
            return
        try:
            session.navigate(self.warm_url)
            logger.info(f"Browser session {index + 1} warmed")
        except Exception as e:
            logger.warning(f"Failed to warm session {index + 1}: {str(e)}")

    def acquire(self, timeout=None):
        """Take exclusive ownership of an idle session, waiting if none is free"""
        deadline = None if timeout is None else time.monotonic() + timeout

        with self._cond:
            while True:
                if self._state is not PoolState.READY:
                    raise PoolNotReady(self._state.value)

                if self.available:
                    session = self.available.popleft()
                    self.in_use.add(session)
                    return session

                if deadline is None:
                    self._cond.wait()
                else:
                    remaining = deadline - time.monotonic()
                    if remaining <= 0:
                        raise PoolExhausted(f"No browser session became free within {timeout}s")
                    self._cond.wait(remaining)

    def release(self, session):
        """Give a session back; wakes one blocked acquire()"""
        with self._cond:
            if session not in self.in_use:
                if self._state is not PoolState.READY:
                    # Forced close already tore this session down
                    logger.debug(f"Ignoring release of {session!r} after close")
                    return
                raise ValueError(f"{session!r} is not checked out from this pool")
            self.in_use.remove(session)
            self.available.append(session)
            # Draining close() waits on the same condition
            self._cond.notify_all()

    @contextmanager
    def session(self, timeout=None):
        session = self.acquire(timeout)
        try:
            yield session
        finally:
            self.release(session)

    def close(self, timeout=None):
        """Stop handing out sessions, wait for holders to finish, then close all"""
        with self._cond:
            if self._state is PoolState.CLOSED:
                return
            self._state = PoolState.DRAINING
            self._cond.notify_all()

            deadline = None if timeout is None else time.monotonic() + timeout
            while self.in_use:
                if deadline is None:
                    self._cond.wait()
                    continue
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    logger.warning(f"Closing pool with {len(self.in_use)} sessions still in use")
                    break
                self._cond.wait(remaining)

            sessions = list(self._sessions)
            self._sessions = []
            self.available.clear()
            self.in_use.clear()

        for session in sessions:
            self._close_session(session)

        with self._cond:
            self._state = PoolState.CLOSED
        logger.info("Session pool closed")

    def _close_session(self, session):
        try:
            session.close()
        except Exception as e:
            logger.warning(f"Error closing browser session: {str(e)}")

    def __enter__(self):
        return self.open()

    def __exit__(self, exc_type, exc, tb):
        self.close()
