import threading
import time
import unittest

from fakes import FakeSession

from pahe_resolver.errors import PoolExhausted, PoolNotReady
from pahe_resolver.pool import PoolState, SessionPool

LANDING = "https://animepahe.ru/"


def fake_factory(created):
    def factory(index):
        session = FakeSession(name=f"s{index}")
        created.append(session)
        return session
    return factory


class SessionPoolLifecycleTestCase(unittest.TestCase):
    def test_open_warms_every_session(self) -> None:
        created = []
        pool = SessionPool(fake_factory(created), 3, warm_url=LANDING).open()
        try:
            self.assertEqual(pool.state, PoolState.READY)
            self.assertEqual(len(created), 3)
            for session in created:
                self.assertEqual(session.calls, [("navigate", LANDING)])
            self.assertEqual(pool.idle, 3)
        finally:
            pool.close()

    def test_failed_warmup_does_not_abort(self) -> None:
        created = []

        def factory(index):
            session = FakeSession(name=f"s{index}")
            if index == 0:
                session.fail_navigation.add(LANDING)
            created.append(session)
            return session

        pool = SessionPool(factory, 2, warm_url=LANDING)
        with self.assertLogs("pahe_resolver.pool", level="WARNING") as logs:
            pool.open()
        self.assertEqual(pool.state, PoolState.READY)
        self.assertEqual(pool.idle, 2)
        self.assertIn("Failed to warm session 1", logs.output[0])
        pool.close()

    def test_creation_failure_closes_created_sessions(self) -> None:
        created = []

        def factory(index):
            if index == 2:
                raise RuntimeError("chrome not found")
            session = FakeSession(name=f"s{index}")
            created.append(session)
            return session

        pool = SessionPool(factory, 3)
        with self.assertRaises(RuntimeError):
            pool.open()
        self.assertEqual(pool.state, PoolState.CLOSED)
        self.assertTrue(all(session.closed for session in created))

    def test_acquire_before_open_fails_fast(self) -> None:
        pool = SessionPool(fake_factory([]), 1)
        with self.assertRaises(PoolNotReady) as ctx:
            pool.acquire()
        self.assertEqual(ctx.exception.state, "initializing")

    def test_close_shuts_sessions_down(self) -> None:
        created = []
        pool = SessionPool(fake_factory(created), 2).open()
        pool.close()
        self.assertEqual(pool.state, PoolState.CLOSED)
        self.assertTrue(all(session.closed for session in created))
        with self.assertRaises(PoolNotReady):
            pool.acquire()

    def test_close_while_initializing_discards_late_sessions(self) -> None:
        created = []
        in_factory = threading.Event()
        release_factory = threading.Event()

        def factory(index):
            in_factory.set()
            release_factory.wait(1)
            return fake_factory(created)(index)

        pool = SessionPool(factory, 1)
        errors = []

        def opener():
            try:
                pool.open()
            except PoolNotReady as e:
                errors.append(e)

        thread = threading.Thread(target=opener)
        thread.start()
        self.assertTrue(in_factory.wait(1))
        pool.close()
        release_factory.set()
        thread.join(2)

        self.assertEqual(len(errors), 1)
        self.assertTrue(created[0].closed)

    def test_zero_capacity_rejected(self) -> None:
        with self.assertRaises(ValueError):
            SessionPool(fake_factory([]), 0)


class SessionPoolConcurrencyTestCase(unittest.TestCase):
    def test_never_more_than_capacity_checked_out(self) -> None:
        for capacity in (1, 2, 3):
            pool = SessionPool(fake_factory([]), capacity).open()
            lock = threading.Lock()
            active = [0]
            peak = [0]
            owners = {}

            def worker():
                with pool.session() as session:
                    with lock:
                        self.assertNotIn(session, owners)
                        owners[session] = threading.get_ident()
                        active[0] += 1
                        peak[0] = max(peak[0], active[0])
                    time.sleep(0.01)
                    with lock:
                        active[0] -= 1
                        del owners[session]

            threads = [threading.Thread(target=worker) for _ in range(capacity * 4)]
            for thread in threads:
                thread.start()
            for thread in threads:
                thread.join(5)

            self.assertLessEqual(peak[0], capacity)
            self.assertEqual(pool.checked_out, 0)
            self.assertEqual(pool.idle, capacity)
            pool.close()

    def test_release_wakes_blocked_acquire(self) -> None:
        pool = SessionPool(fake_factory([]), 1).open()
        held = pool.acquire()
        got = []
        acquired = threading.Event()

        def waiter():
            got.append(pool.acquire())
            acquired.set()

        thread = threading.Thread(target=waiter)
        thread.start()
        self.assertFalse(acquired.wait(0.1))

        pool.release(held)
        self.assertTrue(acquired.wait(1))
        self.assertIs(got[0], held)
        self.assertEqual(pool.idle, 0)

        pool.release(got[0])
        thread.join(1)
        pool.close()

    def test_acquire_timeout_raises_exhausted(self) -> None:
        pool = SessionPool(fake_factory([]), 1).open()
        held = pool.acquire()
        started = time.monotonic()
        with self.assertRaises(PoolExhausted):
            pool.acquire(timeout=0.1)
        self.assertGreaterEqual(time.monotonic() - started, 0.1)
        pool.release(held)
        pool.close()

    def test_release_of_foreign_session_rejected(self) -> None:
        pool = SessionPool(fake_factory([]), 1).open()
        with self.assertRaises(ValueError):
            pool.release(FakeSession())
        pool.close()

    def test_session_context_releases_on_error(self) -> None:
        pool = SessionPool(fake_factory([]), 1).open()
        with self.assertRaises(KeyError):
            with pool.session():
                raise KeyError("boom")
        self.assertEqual(pool.idle, 1)
        pool.close()

    def test_close_wakes_waiters_and_waits_for_holders(self) -> None:
        created = []
        pool = SessionPool(fake_factory(created), 1).open()
        held = pool.acquire()
        waiter_errors = []

        def waiter():
            try:
                pool.acquire()
            except PoolNotReady as e:
                waiter_errors.append(e)

        waiting = threading.Thread(target=waiter)
        waiting.start()
        time.sleep(0.05)

        threading.Timer(0.1, pool.release, [held]).start()
        pool.close(timeout=2)
        waiting.join(1)

        self.assertEqual(len(waiter_errors), 1)
        self.assertEqual(pool.state, PoolState.CLOSED)
        self.assertTrue(created[0].closed)


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
