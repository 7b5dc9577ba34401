"""Tests for the readers/writer lock and concurrent tree use."""

from __future__ import annotations

import threading
import time
from concurrent.futures import ThreadPoolExecutor

import pytest

from kdspace import KDTree, Range, build_tree
from kdspace.locking import ReadWriteLock

_TIMEOUT = 5.0


def _wait_until(predicate, timeout: float = _TIMEOUT) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.005)
    return False


# =========================================================================
# ReadWriteLock
# =========================================================================


class TestReadWriteLock:
    """Tests for shared and exclusive acquisition."""

    def test_readers_share(self):
        lock = ReadWriteLock()
        barrier = threading.Barrier(2, timeout=_TIMEOUT)
        errors: list[BaseException] = []

        def reader() -> None:
            try:
                with lock.read_locked():
                    barrier.wait()
            except threading.BrokenBarrierError as exc:
                errors.append(exc)

        threads = [threading.Thread(target=reader) for _ in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(_TIMEOUT)
        assert errors == []

    def test_writer_excludes_reader(self):
        lock = ReadWriteLock()
        entered = threading.Event()

        def reader() -> None:
            with lock.read_locked():
                entered.set()

        lock.acquire_write()
        t = threading.Thread(target=reader)
        t.start()
        assert not entered.wait(0.1)
        lock.release_write()
        assert entered.wait(_TIMEOUT)
        t.join(_TIMEOUT)

    def test_reader_excludes_writer(self):
        lock = ReadWriteLock()
        entered = threading.Event()

        def writer() -> None:
            with lock.write_locked():
                entered.set()

        lock.acquire_read()
        t = threading.Thread(target=writer)
        t.start()
        assert not entered.wait(0.1)
        lock.release_read()
        assert entered.wait(_TIMEOUT)
        t.join(_TIMEOUT)

    def test_waiting_writer_blocks_new_readers(self):
        lock = ReadWriteLock()
        order: list[str] = []

        def writer() -> None:
            with lock.write_locked():
                order.append("writer")

        def late_reader() -> None:
            with lock.read_locked():
                order.append("reader")

        lock.acquire_read()
        w = threading.Thread(target=writer)
        w.start()
        assert _wait_until(lambda: lock._writers_waiting == 1)
        r = threading.Thread(target=late_reader)
        r.start()
        time.sleep(0.05)
        assert order == []
        lock.release_read()
        w.join(_TIMEOUT)
        r.join(_TIMEOUT)
        assert order == ["writer", "reader"]

    def test_release_without_hold(self):
        lock = ReadWriteLock()
        with pytest.raises(RuntimeError):
            lock.release_read()
        with pytest.raises(RuntimeError):
            lock.release_write()


# =========================================================================
# Concurrent tree use
# =========================================================================


class TestConcurrentTree:
    """Mixed readers and writers on one tree."""

    def test_parallel_inserts(self, make_nodes):
        tree = build_tree(make_nodes(4, 2000, seed=30))
        extra = make_nodes(4, 800, seed=31)
        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(tree.insert, extra))
        assert tree.size() == 2800
        assert tree.validate()
        assert all(tree.find(n.coords) is n for n in extra)

    def test_mixed_operations(self, make_nodes):
        base = make_nodes(3, 1500, seed=40)
        extra = make_nodes(3, 300, seed=41)
        tree = build_tree(base)
        victims = base[:300]
        survivors = base[300:]
        errors: list[Exception] = []

        def remover() -> None:
            for node in victims:
                tree.remove(node)

        def inserter() -> None:
            for node in extra:
                tree.insert(node)

        def reader() -> None:
            try:
                for node in survivors[:300]:
                    assert tree.find(node.coords) is node
                    tree.find_range({0: Range(0.4, 0.6)})
                    tree.size()
            except Exception as exc:
                errors.append(exc)

        def balancer() -> None:
            for _ in range(5):
                tree.balance()

        with ThreadPoolExecutor(max_workers=6) as pool:
            futures = [
                pool.submit(remover),
                pool.submit(inserter),
                pool.submit(reader),
                pool.submit(reader),
                pool.submit(balancer),
            ]
            for future in futures:
                future.result(timeout=60)

        assert errors == []
        assert tree.size() == 1500
        assert tree.validate()
        assert all(tree.find(n.coords) is n for n in survivors + extra)
        assert all(n not in tree for n in victims)

    def test_concurrent_traverse_and_insert(self, make_nodes):
        tree = KDTree()
        nodes = make_nodes(2, 400, seed=50)
        counts: list[int] = []

        def counter() -> None:
            for _ in range(20):
                seen: list[int] = []
                tree.traverse(lambda n: seen.append(1))
                counts.append(len(seen))

        with ThreadPoolExecutor(max_workers=3) as pool:
            f1 = pool.submit(tree.insert_many, nodes)
            f2 = pool.submit(counter)
            f1.result(timeout=60)
            f2.result(timeout=60)

        assert tree.size() == 400
        assert counts == sorted(counts)
