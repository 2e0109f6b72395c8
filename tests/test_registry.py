"""请求注册表测试"""

import asyncio

import pytest

from share_dl.core.registry import ALL, RequestHandle, RequestRegistry

from .utils.fake_transport import ENDPOINT_A, ENDPOINT_B, drain


def _handle(endpoint, suffix="info"):
    return RequestHandle(endpoint, f"{endpoint}{suffix}")


class TestRequestRegistry:
    """注册、查询与移除"""

    def test_register_and_lookup(self):
        registry = RequestRegistry()
        handle = _handle(ENDPOINT_A)
        registry.register(ENDPOINT_A, handle)

        assert registry.is_registered(ENDPOINT_A, handle) is True
        assert registry.is_registered(ENDPOINT_B, handle) is False
        assert registry.count(ENDPOINT_A) == 1
        assert registry.endpoints() == [ENDPOINT_A]

    def test_lookup_uses_identity(self):
        """同样内容的另一个请求对象不算已登记"""
        registry = RequestRegistry()
        registry.register(ENDPOINT_A, _handle(ENDPOINT_A))
        assert registry.is_registered(ENDPOINT_A, _handle(ENDPOINT_A)) is False

    def test_many_requests_per_endpoint(self):
        registry = RequestRegistry()
        handles = [_handle(ENDPOINT_A, str(i)) for i in range(3)]
        for h in handles:
            registry.register(ENDPOINT_A, h)

        registry.discard(ENDPOINT_A, handles[1])

        assert registry.count(ENDPOINT_A) == 2
        assert registry.is_registered(ENDPOINT_A, handles[1]) is False
        assert registry.is_registered(ENDPOINT_A, handles[2]) is True

    def test_discard_last_removes_bucket(self):
        registry = RequestRegistry()
        handle = _handle(ENDPOINT_A)
        registry.register(ENDPOINT_A, handle)
        registry.discard(ENDPOINT_A, handle)
        registry.discard(ENDPOINT_A, handle)

        assert registry.endpoints() == []
        assert len(registry) == 0


class TestCancel:
    """按选择器取消"""

    def _filled(self):
        registry = RequestRegistry()
        registry.register(ENDPOINT_A, _handle(ENDPOINT_A))
        registry.register(ENDPOINT_A, _handle(ENDPOINT_A, "0"))
        registry.register(ENDPOINT_B, _handle(ENDPOINT_B))
        return registry

    def test_cancel_single_endpoint(self):
        registry = self._filled()
        assert registry.cancel(ENDPOINT_A) == 2
        assert registry.endpoints() == [ENDPOINT_B]

    def test_cancel_all_except(self):
        """invert=True 取消除选择器以外的所有端点"""
        registry = self._filled()
        assert registry.cancel(ENDPOINT_A, invert=True) == 1
        assert registry.endpoints() == [ENDPOINT_A]
        assert registry.count() == 2

    def test_cancel_all(self):
        registry = self._filled()
        assert registry.cancel(ALL) == 3
        assert len(registry) == 0

    def test_cancel_all_inverted_is_noop(self):
        registry = self._filled()
        assert registry.cancel(ALL, invert=True) == 0
        assert len(registry) == 3

    def test_cancel_unknown_endpoint(self):
        registry = self._filled()
        assert registry.cancel("http://nowhere/") == 0
        assert len(registry) == 3

    def test_cancel_is_idempotent(self):
        registry = self._filled()
        registry.cancel(ALL)
        assert registry.cancel(ALL) == 0

    def test_all_is_singleton(self):
        assert repr(ALL) == "ALL"
        assert type(ALL)() is ALL


class TestAbort:
    """取消会中止底层任务"""

    @pytest.mark.asyncio
    async def test_cancel_aborts_task_after_removal(self):
        """任务收到取消信号时，注册表中已经查不到它"""
        registry = RequestRegistry()
        handle = _handle(ENDPOINT_A)
        seen = {}

        async def pending():
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                seen["registered"] = registry.is_registered(ENDPOINT_A, handle)
                raise

        registry.register(ENDPOINT_A, handle)
        handle.attach(asyncio.get_running_loop().create_task(pending()))
        await drain(2)

        registry.cancel(ENDPOINT_A)
        with pytest.raises(asyncio.CancelledError):
            await handle.task

        assert seen == {"registered": False}
        assert handle.task.cancelled()

    @pytest.mark.asyncio
    async def test_abort_finished_task_is_noop(self):
        handle = _handle(ENDPOINT_A)

        async def done():
            return 1

        task = asyncio.get_running_loop().create_task(done())
        handle.attach(task)
        await task
        handle.abort()

        assert task.result() == 1

    def test_abort_without_task(self):
        _handle(ENDPOINT_A).abort()
