"""Tests for analysis_queue_service module."""

import asyncio

import pytest

from modl.datatypes.moderation_datatypes import AnalysisState
from modl.services.analysis_queue_service import AnalysisQueueService


class TestAnalysisQueueService:
    @pytest.mark.asyncio
    async def test_submit_returns_immediately_and_job_completes(self):
        service = AnalysisQueueService(worker_count=1, queue_size=10)
        release = asyncio.Event()

        async def handler():
            await release.wait()
            return AnalysisState.AUTO_APPLIED

        job = service.submit("T-1", handler)
        assert job.state is AnalysisState.ANALYSIS_QUEUED
        assert not job.done.done()

        await asyncio.sleep(0)
        assert job.state is AnalysisState.ANALYZING

        release.set()
        assert await asyncio.wait_for(job.wait(), timeout=1) is AnalysisState.AUTO_APPLIED
        assert job.state is AnalysisState.AUTO_APPLIED
        await service.shutdown()

    @pytest.mark.asyncio
    async def test_full_queue_rejects_without_blocking(self):
        service = AnalysisQueueService(worker_count=1, queue_size=1)
        release = asyncio.Event()

        async def handler():
            await release.wait()
            return AnalysisState.SUGGESTED_ONLY

        first = service.submit("T-1", handler)
        await asyncio.sleep(0)  # worker picks up the first job
        second = service.submit("T-2", handler)
        third = service.submit("T-3", handler)

        assert third.state is AnalysisState.ANALYSIS_FAILED
        assert third.done.done()
        assert "full" in third.error

        release.set()
        assert await asyncio.wait_for(first.wait(), timeout=1) is AnalysisState.SUGGESTED_ONLY
        assert await asyncio.wait_for(second.wait(), timeout=1) is AnalysisState.SUGGESTED_ONLY
        await service.shutdown()

    @pytest.mark.asyncio
    async def test_handler_exception_fails_job_but_not_worker(self):
        service = AnalysisQueueService(worker_count=1, queue_size=10)

        async def broken():
            raise RuntimeError("kaboom")

        async def fine():
            return AnalysisState.SUGGESTED_ONLY

        bad = service.submit("T-1", broken)
        good = service.submit("T-2", fine)

        assert await asyncio.wait_for(bad.wait(), timeout=1) is AnalysisState.ANALYSIS_FAILED
        assert bad.error == "kaboom"
        assert await asyncio.wait_for(good.wait(), timeout=1) is AnalysisState.SUGGESTED_ONLY
        await service.shutdown()

    @pytest.mark.asyncio
    async def test_shutdown_fails_pending_jobs(self):
        service = AnalysisQueueService(worker_count=1, queue_size=10)
        never = asyncio.Event()

        async def handler():
            await never.wait()
            return AnalysisState.SUGGESTED_ONLY

        running = service.submit("T-1", handler)
        await asyncio.sleep(0)
        waiting = service.submit("T-2", handler)

        await service.shutdown()

        assert running.state is AnalysisState.ANALYSIS_FAILED
        assert waiting.state is AnalysisState.ANALYSIS_FAILED
        assert waiting.error == "service shut down"

    @pytest.mark.asyncio
    async def test_workers_run_concurrently(self):
        service = AnalysisQueueService(worker_count=3, queue_size=10)
        started = 0
        gate = asyncio.Event()

        async def handler():
            nonlocal started
            started += 1
            if started == 3:
                gate.set()
            await asyncio.wait_for(gate.wait(), timeout=1)
            return AnalysisState.SUGGESTED_ONLY

        jobs = [service.submit(f"T-{index}", handler) for index in range(3)]
        states = await asyncio.gather(*(job.wait() for job in jobs))
        assert states == [AnalysisState.SUGGESTED_ONLY] * 3
        await service.shutdown()

    @pytest.mark.asyncio
    async def test_join_waits_for_queued_work(self):
        service = AnalysisQueueService(worker_count=1, queue_size=0)
        finished = []

        async def handler():
            await asyncio.sleep(0)
            finished.append(True)
            return AnalysisState.SUGGESTED_ONLY

        for index in range(4):
            service.submit(f"T-{index}", handler)
        assert service.pending == 4

        await asyncio.wait_for(service.join(), timeout=1)
        assert len(finished) == 4
        assert service.pending == 0
        await service.shutdown()
