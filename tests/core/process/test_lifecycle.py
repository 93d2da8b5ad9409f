"""Tests for ServerLifecycle."""

import asyncio

import pytest

from lila.core.process import ServerLifecycle
from lila.core.types import ServerState


class TestServerLifecycle:
    """Tests for start/stop and exit tracking."""

    @pytest.mark.asyncio
    async def test_initial_state(self, fake_launcher):
        """New lifecycles are stopped."""
        server = ServerLifecycle("lila_server", launcher=fake_launcher())
        assert server.get_state() is ServerState.STOPPED
        assert not server.is_running()
        assert server.handle is None

    @pytest.mark.asyncio
    async def test_start(self, fake_launcher):
        """start() launches the configured command."""
        launcher = fake_launcher()
        states = []
        output = []
        server = ServerLifecycle(
            "lila_server --port 9090",
            launcher=launcher,
            on_output=output.append,
            on_state_change=states.append,
        )

        assert await server.start() is True

        assert launcher.commands == ["lila_server --port 9090"]
        assert states == [ServerState.STARTING, ServerState.RUNNING]
        assert server.is_running()
        assert output == ["listening"]
        await server.stop()

    @pytest.mark.asyncio
    async def test_start_twice_reuses_handle(self, fake_launcher):
        """A live backend is not launched again."""
        launcher = fake_launcher()
        server = ServerLifecycle("lila_server", launcher=launcher)

        await server.start()
        assert await server.start() is True

        assert len(launcher.commands) == 1
        await server.stop()

    @pytest.mark.asyncio
    async def test_start_failure(self, fake_launcher):
        """A failed launch ends in error and returns False."""
        states = []
        server = ServerLifecycle(
            "missing", launcher=fake_launcher(fail=True), on_state_change=states.append
        )

        assert await server.start() is False

        assert states == [ServerState.STARTING, ServerState.ERROR]
        assert server.handle is None

    @pytest.mark.asyncio
    async def test_stop(self, fake_launcher):
        """stop() stops the handle and reports stopped."""
        launcher = fake_launcher()
        server = ServerLifecycle("lila_server", launcher=launcher)
        await server.start()

        await server.stop()

        assert launcher.handles[0].stopped
        assert server.get_state() is ServerState.STOPPED
        assert server.handle is None

    @pytest.mark.asyncio
    async def test_stop_when_not_running(self, fake_launcher):
        """stop() without a backend is harmless."""
        server = ServerLifecycle("lila_server", launcher=fake_launcher())
        await server.stop()
        assert server.get_state() is ServerState.STOPPED

    @pytest.mark.asyncio
    async def test_clean_exit(self, fake_launcher, eventually):
        """Exit code 0 moves to stopped."""
        launcher = fake_launcher()
        server = ServerLifecycle("lila_server", launcher=launcher)
        await server.start()

        launcher.handles[0].exit(0)

        await eventually(lambda: server.get_state() is ServerState.STOPPED)
        assert server.handle is None

    @pytest.mark.asyncio
    async def test_crash(self, fake_launcher, eventually):
        """Non-zero exit moves to error."""
        launcher = fake_launcher()
        server = ServerLifecycle("lila_server", launcher=launcher)
        await server.start()

        launcher.handles[0].exit(3)

        await eventually(lambda: server.get_state() is ServerState.ERROR)

    @pytest.mark.asyncio
    async def test_restart_after_crash(self, fake_launcher, eventually):
        """start() after an exit launches a fresh backend."""
        launcher = fake_launcher()
        server = ServerLifecycle("lila_server", launcher=launcher)
        await server.start()
        launcher.handles[0].exit(1)
        await eventually(lambda: server.get_state() is ServerState.ERROR)

        assert await server.start() is True

        assert len(launcher.handles) == 2
        assert server.handle is launcher.handles[1]
        await server.stop()

    @pytest.mark.asyncio
    async def test_stop_does_not_report_exit(self, fake_launcher):
        """An exit caused by stop() ends in stopped, not error."""
        launcher = fake_launcher()
        states = []
        server = ServerLifecycle("lila_server", launcher=launcher, on_state_change=states.append)
        await server.start()

        await server.stop()
        await asyncio.sleep(0.01)

        assert states[-1] is ServerState.STOPPED
        assert ServerState.ERROR not in states

    @pytest.mark.asyncio
    async def test_listener_errors_contained(self, fake_launcher):
        """A failing listener does not break transitions."""

        def broken(state):
            raise RuntimeError("listener bug")

        states = []
        server = ServerLifecycle("lila_server", launcher=fake_launcher(), on_state_change=broken)
        server.add_state_listener(states.append)

        assert await server.start() is True
        assert states == [ServerState.STARTING, ServerState.RUNNING]
        await server.stop()

    @pytest.mark.asyncio
    async def test_remove_listener(self, fake_launcher):
        """The returned callable unregisters the listener."""
        states = []
        server = ServerLifecycle("lila_server", launcher=fake_launcher())
        remove = server.add_state_listener(states.append)
        remove()

        await server.start()
        await server.stop()

        assert states == []

    @pytest.mark.asyncio
    async def test_concurrent_starts_share_launch(self, fake_launcher):
        """Overlapping start() calls launch one backend."""
        launcher = fake_launcher(delay=0.05)
        server = ServerLifecycle("lila_server", launcher=launcher)

        results = await asyncio.gather(server.start(), server.start(), server.start())

        assert results == [True, True, True]
        assert len(launcher.handles) == 1
        await server.stop()
        assert launcher.handles[0].stopped

    @pytest.mark.asyncio
    async def test_start_while_running_after_overlap(self, fake_launcher):
        """A start() after the shared launch reuses its backend."""
        launcher = fake_launcher(delay=0.01)
        server = ServerLifecycle("lila_server", launcher=launcher)
        await asyncio.gather(server.start(), server.start())

        assert await server.start() is True

        assert len(launcher.commands) == 1
        await server.stop()

    @pytest.mark.asyncio
    async def test_stop_during_launch(self, fake_launcher):
        """A backend that comes up after stop() is stopped, not kept."""
        launcher = fake_launcher(delay=0.05)
        server = ServerLifecycle("lila_server", launcher=launcher)

        attempt = asyncio.create_task(server.start())
        await asyncio.sleep(0.01)
        await server.stop()

        assert await attempt is False
        assert launcher.handles[0].stopped
        assert server.handle is None
        assert server.get_state() is ServerState.STOPPED

    @pytest.mark.asyncio
    async def test_unexpected_launcher_error(self, fake_launcher):
        """Any launcher exception ends in error instead of propagating."""
        states = []
        server = ServerLifecycle(
            "lila_server",
            launcher=fake_launcher(error=RuntimeError("host terminal unavailable")),
            on_state_change=states.append,
        )

        assert await server.start() is False

        assert states == [ServerState.STARTING, ServerState.ERROR]
        assert server.handle is None

    @pytest.mark.asyncio
    async def test_retry_after_unexpected_error(self, fake_launcher):
        """A failed launch does not block the next start()."""
        launcher = fake_launcher(error=ValueError("bad command"))
        server = ServerLifecycle("lila_server", launcher=launcher)
        await server.start()

        launcher.error = None
        assert await server.start() is True

        assert server.is_running()
        await server.stop()
