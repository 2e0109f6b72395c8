"""运行状态测试"""

import asyncio

import pytest

from share_dl.core.run import Run
from share_dl.models import DownloadedFile, Manifest, RunStatus

ENDPOINT = "http://phone.local:8080/"


def _file(index):
    return DownloadedFile(index=index, filename=f"{index}.bin", path=f"/tmp/{index}.bin", size=1)


@pytest.fixture
def run(tmp_path):
    run = Run(tmp_path, [ENDPOINT])
    run.record_manifest(Manifest(endpoint=ENDPOINT, total=2))
    return run


class TestRun:
    def test_initial_state(self, tmp_path):
        fresh = Run(tmp_path, [ENDPOINT])
        assert fresh.status == RunStatus.POLLING
        assert fresh.active
        assert fresh.received == 0
        assert fresh.all_terminal is False

    def test_manifest_recorded(self, run):
        assert run.winner == ENDPOINT
        assert run.expected == 2
        assert run.status == RunStatus.FETCHING

    def test_completes_exactly_once(self, run):
        assert run.record_success(_file(0)) is False
        assert run.record_success(_file(1)) is True
        assert run.status == RunStatus.COMPLETED
        assert run.received == 2

        assert run.record_success(_file(2)) is False
        assert run.received == 2

    def test_duplicate_index_not_counted(self, run):
        run.record_success(_file(0))
        assert run.record_success(_file(0)) is False
        assert run.received == 1

    def test_no_updates_after_terminal(self, run):
        run.finish(RunStatus.CANCELLED)

        assert run.record_success(_file(0)) is False
        run.record_abandoned(1)
        assert run.received == 0
        assert run.abandoned == set()

    def test_first_finish_wins(self, run):
        assert run.finish(RunStatus.ABORTED) is True
        assert run.finish(RunStatus.CANCELLED) is False
        assert run.status == RunStatus.ABORTED

    def test_terminal_tracking(self, run):
        run.record_success(_file(0))
        run.record_abandoned(1)

        assert run.terminal_count == 2
        assert run.all_terminal

    def test_elapsed_frozen_after_finish(self, tmp_path):
        clock = iter([10.0, 13.0, 99.0])
        timed = Run(tmp_path, [ENDPOINT], time_source=lambda: next(clock))
        timed.finish(RunStatus.CANCELLED)

        assert timed.elapsed == 3.0
        assert timed.elapsed == 3.0

    def test_result(self, run):
        run.record_success(_file(1))
        run.record_failed(0)
        run.finish(RunStatus.PARTIAL)

        result = run.result()
        assert result.status == RunStatus.PARTIAL
        assert result.received == 1
        assert result.failed == [0]
        assert [f.index for f in result.files] == [1]

    @pytest.mark.asyncio
    async def test_wait(self, run):
        asyncio.get_running_loop().call_later(0.01, run.finish, RunStatus.CANCELLED)
        result = await run.wait(timeout=1)
        assert result.status == RunStatus.CANCELLED

    @pytest.mark.asyncio
    async def test_wait_timeout(self, run):
        with pytest.raises(asyncio.TimeoutError):
            await run.wait(timeout=0.01)
