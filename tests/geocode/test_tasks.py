"""Tests for cancellable keyed geocode tasks and the sequential refetch queue."""

import asyncio

import pytest

from highlighter.errors import NetworkError, NotFoundError
from highlighter.geocode import RefetchJob, RefetchQueue, TaskRegistry


@pytest.mark.unit
class TestTaskRegistry:
    def test_returns_result(self):
        async def go():
            registry = TaskRegistry()

            async def work(token):
                return "done"

            result = await registry.run(("layer", "q"), work)
            return result, len(registry)

        assert asyncio.run(go()) == ("done", 0)

    def test_newer_task_supersedes_older(self):
        """The stale task yields None; only the newest result is delivered."""
        async def go():
            registry = TaskRegistry()
            gate = asyncio.Event()

            async def slow(token):
                await gate.wait()
                return "stale"

            async def fast(token):
                return "fresh"

            first = asyncio.ensure_future(registry.run((1, "Paris"), slow))
            await asyncio.sleep(0)
            second = await registry.run((1, "Paris"), fast)
            return await first, second

        assert asyncio.run(go()) == (None, "fresh")

    def test_different_keys_independent(self):
        async def go():
            registry = TaskRegistry()

            async def work(token, value):
                await asyncio.sleep(0)
                return value

            return await asyncio.gather(
                registry.run((1, "a"), lambda t: work(t, "a")),
                registry.run((2, "a"), lambda t: work(t, "b")),
            )

        assert asyncio.run(go()) == ["a", "b"]

    def test_cancel(self):
        async def go():
            registry = TaskRegistry()
            gate = asyncio.Event()

            async def slow(token):
                await gate.wait()
                return "late"

            pending = asyncio.ensure_future(registry.run("key", slow))
            await asyncio.sleep(0)
            assert "key" in registry
            assert registry.cancel("key")
            return await pending

        assert asyncio.run(go()) is None

    def test_result_discarded_when_token_cancelled(self):
        async def go():
            registry = TaskRegistry()

            async def work(token):
                token.cancel()
                return "ignored"

            return await registry.run("key", work)

        assert asyncio.run(go()) is None

    def test_errors_propagate(self):
        async def go():
            async def work(token):
                raise NotFoundError("nothing")

            await TaskRegistry().run("key", work)

        with pytest.raises(NotFoundError):
            asyncio.run(go())

    def test_cancel_all(self):
        async def go():
            registry = TaskRegistry()
            gate = asyncio.Event()

            async def slow(token):
                await gate.wait()

            tasks = [asyncio.ensure_future(registry.run(k, slow)) for k in ("a", "b")]
            await asyncio.sleep(0)
            count = registry.cancel_all()
            results = await asyncio.gather(*tasks)
            return count, results

        assert asyncio.run(go()) == (2, [None, None])


def _job(n: int) -> RefetchJob:
    return RefetchJob(layer_id=1, feature_id=f"way/{n}", osm_type="way", osm_id=n)


@pytest.mark.unit
class TestRefetchQueue:
    def test_sequential_with_delay_between_jobs(self):
        events = []

        async def worker(job):
            events.append(("job", job.osm_id))

        async def sleep(seconds):
            events.append(("sleep", seconds))

        queue = RefetchQueue(worker, delay=1.0, sleep=sleep)
        report = asyncio.run(queue.run([_job(1), _job(2), _job(3)]))
        assert events == [
            ("job", 1), ("sleep", 1.0),
            ("job", 2), ("sleep", 1.0),
            ("job", 3),
        ]
        assert [j.osm_id for j in report.completed] == [1, 2, 3]

    def test_one_worker_at_a_time(self):
        active = []
        peak = []

        async def worker(job):
            active.append(job)
            peak.append(len(active))
            await asyncio.sleep(0)
            active.remove(job)

        async def no_sleep(_):
            return None

        queue = RefetchQueue(worker, delay=0, sleep=no_sleep)

        async def go():
            queue.submit([_job(1), _job(2)])
            queue.submit([_job(3)])
            return await queue.join()

        report = asyncio.run(go())
        assert max(peak) == 1
        assert report.total == 3

    def test_failure_continues_by_default(self):
        async def worker(job):
            if job.osm_id == 2:
                raise NetworkError("timeout")

        async def no_sleep(_):
            return None

        report = asyncio.run(RefetchQueue(worker, sleep=no_sleep).run([_job(1), _job(2), _job(3)]))
        assert [j.osm_id for j in report.completed] == [1, 3]
        assert [j.osm_id for j, _ in report.failed] == [2]
        assert not report.aborted

    def test_stop_on_error(self):
        async def worker(job):
            raise NotFoundError("gone")

        async def no_sleep(_):
            return None

        queue = RefetchQueue(worker, stop_on_error=True, sleep=no_sleep)
        report = asyncio.run(queue.run([_job(1), _job(2)]))
        assert report.aborted
        assert len(report.failed) == 1
        assert report.completed == []
        assert queue.pending == 0

    def test_duplicate_pending_job_not_queued(self):
        seen = []

        async def worker(job):
            seen.append(job.feature_id)

        async def no_sleep(_):
            return None

        queue = RefetchQueue(worker, sleep=no_sleep)

        async def go():
            added = queue.submit([_job(1), _job(1), _job(2)])
            await queue.join()
            return added

        assert asyncio.run(go()) == 2
        assert seen == ["way/1", "way/2"]

    def test_stop_drops_pending(self):
        async def worker(job):
            await asyncio.sleep(10)

        queue = RefetchQueue(worker)

        async def go():
            queue.submit([_job(1), _job(2)])
            await asyncio.sleep(0)
            await queue.stop()
            return queue.pending, queue.running

        assert asyncio.run(go()) == (0, False)
