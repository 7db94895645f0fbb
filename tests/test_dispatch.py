"""Tests for render dispatch: mount rule, props merging, readiness discipline."""

import asyncio
import gc

import pytest

from compregistry.dispatch import (
    DispatchState,
    RenderDispatch,
    loading_indicator,
    merge_props,
    should_mount,
)
from compregistry.environment import OperatingMode
from compregistry.lazy import LazyComponent
from compregistry.ledger import ReadinessLedger
from compregistry.selection import Selection
from conftest import make_record, scene


class SpyLedger(ReadinessLedger):
    """Ledger that counts every release call, including no-op ones."""

    def __init__(self):
        super().__init__()
        self.release_calls = []

    def release_token(self, handle):
        self.release_calls.append(handle)
        super().release_token(handle)


def _dispatch(composition_id, registry, selection, ledger, portal, mode, props=None):
    """Dispatch with a fixed mode (or a callable) and fixed input props."""
    mode_provider = mode if callable(mode) else (lambda: mode)
    return RenderDispatch(
        composition_id, registry, selection, ledger, portal,
        mode_provider=mode_provider,
        props_provider=lambda: props or {},
    )


def _never_resolves():
    async def loader():
        await asyncio.Event().wait()
    return LazyComponent(loader=loader)


def _resolves_after(event):
    async def loader():
        await event.wait()
        return scene
    return LazyComponent(loader=loader)


class TestShouldMount:
    def test_selected_and_interactive(self):
        assert should_mount(make_record(), "intro", OperatingMode.INTERACTIVE)

    def test_selected_and_headless(self):
        assert should_mount(make_record(), "intro", OperatingMode.HEADLESS_RENDER)

    def test_other_mode_never_mounts(self):
        assert not should_mount(make_record(), "intro", OperatingMode.OTHER)

    def test_not_selected(self):
        assert not should_mount(make_record(), "outro", OperatingMode.INTERACTIVE)

    def test_no_selection_or_record(self):
        assert not should_mount(make_record(), None, OperatingMode.INTERACTIVE)
        assert not should_mount(None, "intro", OperatingMode.INTERACTIVE)


class TestMergeProps:
    def test_input_props_win(self):
        assert merge_props({"a": 1, "b": 2}, {"b": 3}) == {"a": 1, "b": 3}

    def test_merge_is_shallow(self):
        merged = merge_props({"style": {"color": "red", "size": 2}}, {"style": {"color": "blue"}})
        assert merged == {"style": {"color": "blue"}}

    def test_none_sides(self):
        assert merge_props(None, None) == {}
        assert merge_props({"a": 1}, None) == {"a": 1}


class TestEagerDispatch:
    def test_only_selected_composition_mounts(self, registry, ledger, portal):
        registry.register(make_record(id="compA", default_props={"title": "A"}))
        registry.register(make_record(id="compB"))
        selection = Selection("compA")
        a = _dispatch("compA", registry, selection, ledger, portal, OperatingMode.INTERACTIVE)
        b = _dispatch("compB", registry, selection, ledger, portal, OperatingMode.INTERACTIVE)

        assert a.evaluate() is DispatchState.READY
        assert b.evaluate() is DispatchState.IDLE
        assert len(portal.views) == 1
        assert portal.views[0] is a.view
        assert a.view.output == {"scene": {"title": "A"}}

    def test_other_mode_registers_but_does_not_mount(self, registry, ledger, portal):
        registry.register(make_record())
        d = _dispatch("intro", registry, Selection("intro"), ledger, portal, OperatingMode.OTHER)
        assert d.evaluate() is DispatchState.IDLE
        assert "intro" in registry
        assert portal.views == []

    def test_input_props_override_defaults(self, registry, ledger, portal):
        registry.register(make_record(default_props={"title": "Default", "color": "red"}))
        d = _dispatch(
            "intro", registry, Selection("intro"), ledger, portal,
            OperatingMode.HEADLESS_RENDER, props={"title": "Override"},
        )
        d.evaluate()
        assert d.view.props == {"title": "Override", "color": "red"}

    def test_deselect_unmounts(self, registry, ledger, portal):
        registry.register(make_record())
        selection = Selection("intro")
        d = _dispatch("intro", registry, selection, ledger, portal, OperatingMode.INTERACTIVE)
        d.evaluate()
        selection.select("other")
        assert d.evaluate() is DispatchState.IDLE
        assert d.view is None
        assert portal.views == []

    def test_mode_is_reread_on_every_evaluation(self, registry, ledger, portal):
        registry.register(make_record())
        current = [OperatingMode.INTERACTIVE]
        d = _dispatch("intro", registry, Selection("intro"), ledger, portal, lambda: current[0])
        assert d.evaluate() is DispatchState.READY
        current[0] = OperatingMode.OTHER
        assert d.evaluate() is DispatchState.IDLE
        assert portal.views == []

    def test_replaced_record_remounts(self, registry, ledger, portal):
        lazy = LazyComponent.eager(scene)
        registry.register(make_record(component=lazy, default_props={"v": 1}))
        d = _dispatch("intro", registry, Selection("intro"), ledger, portal, OperatingMode.INTERACTIVE)
        d.evaluate()
        first_view = d.view

        registry.unregister("intro")
        registry.register(make_record(component=lazy, default_props={"v": 2}))
        d.evaluate()
        assert d.view is not first_view
        assert d.view.props == {"v": 2}
        assert portal.views == [d.view]

    def test_unchanged_record_keeps_view(self, registry, ledger, portal):
        registry.register(make_record())
        d = _dispatch("intro", registry, Selection("intro"), ledger, portal, OperatingMode.INTERACTIVE)
        d.evaluate()
        view = d.view
        d.evaluate()
        assert d.view is view

    def test_unregistered_record_unmounts(self, registry, ledger, portal):
        registry.register(make_record())
        d = _dispatch("intro", registry, Selection("intro"), ledger, portal, OperatingMode.INTERACTIVE)
        d.evaluate()
        registry.unregister("intro")
        assert d.evaluate() is DispatchState.IDLE
        assert portal.views == []


class TestInteractiveLoading:
    def test_placeholder_while_loading_and_no_token(self, registry, ledger, portal):
        async def run():
            event = asyncio.Event()
            registry.register(make_record(component=_resolves_after(event)))
            d = _dispatch("intro", registry, Selection("intro"), ledger, portal, OperatingMode.INTERACTIVE)

            assert d.evaluate() is DispatchState.MOUNTING
            assert [v.component for v in portal.views] == [loading_indicator]
            assert ledger.is_ready()

            event.set()
            assert await d.wait() is DispatchState.READY
            assert [v.component for v in portal.views] == [scene]

        asyncio.run(run())


class TestHeadlessLoading:
    def test_token_held_until_view_mounted(self, registry, portal):
        ledger = SpyLedger()

        async def run():
            event = asyncio.Event()
            registry.register(make_record(component=_resolves_after(event)))
            d = _dispatch("intro", registry, Selection("intro"), ledger, portal, OperatingMode.HEADLESS_RENDER)

            d.evaluate()
            assert not ledger.is_ready()
            (description,) = ledger.pending().values()
            assert "intro" in description
            assert portal.views == []

            event.set()
            await d.wait()
            assert d.state is DispatchState.READY
            assert ledger.is_ready()
            assert len(ledger.release_calls) == 1

        asyncio.run(run())

    def test_teardown_mid_resolution_releases_token_once(self, registry, portal):
        ledger = SpyLedger()

        async def run():
            registry.register(make_record(component=_never_resolves()))
            d = _dispatch("intro", registry, Selection("intro"), ledger, portal, OperatingMode.HEADLESS_RENDER)
            d.evaluate()
            await asyncio.sleep(0)
            assert not ledger.is_ready()

            d.teardown()
            d.teardown()
            await asyncio.sleep(0)
            await asyncio.sleep(0)

            assert ledger.is_ready()
            assert len(ledger.release_calls) == 1
            assert d.state is DispatchState.IDLE

        asyncio.run(run())

    def test_deselect_mid_resolution_releases_token_once(self, registry, portal):
        ledger = SpyLedger()

        async def run():
            registry.register(make_record(component=_never_resolves()))
            selection = Selection("intro")
            d = _dispatch("intro", registry, selection, ledger, portal, OperatingMode.HEADLESS_RENDER)
            d.evaluate()
            selection.clear()
            d.evaluate()
            assert await d.wait() is DispatchState.IDLE
            assert ledger.is_ready()
            assert len(ledger.release_calls) == 1

        asyncio.run(run())

    def test_loader_failure_releases_token_and_reraises(self, registry, portal):
        ledger = SpyLedger()

        async def broken():
            raise RuntimeError("boom")

        async def run():
            registry.register(make_record(component=LazyComponent(loader=broken)))
            d = _dispatch("intro", registry, Selection("intro"), ledger, portal, OperatingMode.HEADLESS_RENDER)
            d.evaluate()
            with pytest.raises(RuntimeError, match="boom"):
                await d.wait()
            assert d.state is DispatchState.IDLE
            assert isinstance(d.error, RuntimeError)
            assert ledger.is_ready()
            assert len(ledger.release_calls) == 1

            d.teardown()
            assert len(ledger.release_calls) == 1

        asyncio.run(run())

    def test_already_resolved_view_needs_no_token(self, registry, portal):
        ledger = SpyLedger()
        registry.register(make_record())
        d = _dispatch("intro", registry, Selection("intro"), ledger, portal, OperatingMode.HEADLESS_RENDER)
        assert d.evaluate() is DispatchState.READY
        assert ledger.release_calls == []


class TestWantsMount:
    def test_follows_selection(self, registry, ledger, portal):
        registry.register(make_record())
        selection = Selection()
        d = _dispatch("intro", registry, selection, ledger, portal, OperatingMode.HEADLESS_RENDER)
        assert not d.wants_mount()
        selection.select("intro")
        assert d.wants_mount()
        assert d.state is DispatchState.IDLE


class TestLoaderFailureInBackground:
    def test_no_unretrieved_task_error(self, registry, ledger, portal):
        errors = []

        async def broken():
            raise RuntimeError("boom")

        async def run():
            asyncio.get_running_loop().set_exception_handler(
                lambda loop, context: errors.append(context["message"])
            )
            registry.register(make_record(component=LazyComponent(loader=broken)))
            d = _dispatch("intro", registry, Selection("intro"), ledger, portal, OperatingMode.INTERACTIVE)
            d.evaluate()
            for _ in range(3):
                await asyncio.sleep(0)

            assert d.state is DispatchState.IDLE
            assert isinstance(d.error, RuntimeError)
            assert portal.views == []

            d.teardown()
            gc.collect()
            await asyncio.sleep(0)

        asyncio.run(run())
        assert errors == []
