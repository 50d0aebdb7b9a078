"""Tests for the stage controller: transitions, dispatch and failures."""

import asyncio

import pytest

from scenekit.scenes.base_scene import Scene
from scenekit.scenes.echo_scene import build_echo_scene
from scenekit.scenes.errors import HandlerError, SceneError, UnknownSceneError
from scenekit.scenes.greeter_scene import build_greeter_scene
from scenekit.scenes.handlers import HandlerChain
from scenekit.scenes.session import SessionSceneState
from scenekit.scenes.stage import Stage, enter, leave


def _global_handlers() -> HandlerChain:
    chain = HandlerChain()
    chain.command("greeter", enter("greeter"))
    chain.command("echo", enter("echo"))
    return chain


def _scene_with_hooks(name: str, log: list) -> Scene:
    scene = Scene(name)

    @scene.on_enter
    async def on_enter(ctx):
        log.append(f"enter:{name}")

    @scene.on_leave
    async def on_leave(ctx):
        log.append(f"leave:{name}")

    return scene


class TestEnterAndLeave:
    @pytest.mark.asyncio
    async def test_enter_sets_scene_and_step(self, store, sink):
        stage = Stage([build_greeter_scene(), build_echo_scene()], store=store, sink=sink)

        async with stage.session("s1") as ctx:
            await ctx.enter("echo")
            assert ctx.scene_name == "echo"
            assert ctx.step is None

        state = await store.get("s1")
        assert state.scene == "echo"
        assert sink.texts("s1") == ["echo scene"]

    @pytest.mark.asyncio
    async def test_enter_unknown_scene_fails(self, store):
        stage = Stage([Scene("greeter")], store=store)
        async with stage.session("s1") as ctx:
            with pytest.raises(UnknownSceneError):
                await ctx.enter("missing")
            assert ctx.scene_name is None

    @pytest.mark.asyncio
    async def test_switching_scenes_runs_leave_then_enter(self, store):
        log = []
        stage = Stage([_scene_with_hooks("a", log), _scene_with_hooks("b", log)], store=store)

        async with stage.session("s1") as ctx:
            await ctx.enter("a")
            ctx.scene_data["value"] = 1
            await ctx.enter("b")
            assert ctx.scene_data == {}

        assert log == ["enter:a", "leave:a", "enter:b"]

    @pytest.mark.asyncio
    async def test_reentering_same_scene_keeps_payload(self, store):
        stage = Stage([Scene("a")], store=store)
        async with stage.session("s1") as ctx:
            await ctx.enter("a", {"count": 1})
            await ctx.enter("a")
            assert ctx.scene_data == {"count": 1}
            await ctx.enter("a", {"count": 5})
            assert ctx.scene_data == {"count": 5}

    @pytest.mark.asyncio
    async def test_leave_clears_scene_state_but_keeps_session_data(self, store):
        log = []
        stage = Stage([_scene_with_hooks("a", log)], store=store)
        async with stage.session("s1") as ctx:
            await ctx.enter("a", {"draft": "x"})
            ctx.session["visits"] = 3
            await ctx.leave()
            assert ctx.scene_name is None
            assert ctx.step is None
            assert ctx.scene_data == {}
            assert ctx.session == {"visits": 3}
        assert log == ["enter:a", "leave:a"]

    @pytest.mark.asyncio
    async def test_leave_without_scene_is_noop(self, store):
        stage = Stage([Scene("a")], store=store)
        async with stage.session("s1") as ctx:
            await ctx.leave()
            await ctx.leave()
            assert ctx.scene_name is None

    @pytest.mark.asyncio
    async def test_next_outside_wizard_fails(self, store):
        stage = Stage([Scene("a")], store=store)
        async with stage.session("s1") as ctx:
            with pytest.raises(SceneError):
                await ctx.next()
            await ctx.enter("a")
            with pytest.raises(SceneError):
                await ctx.next()


class TestHookFailures:
    @pytest.mark.asyncio
    async def test_broken_leave_hook_does_not_block_enter(self, store):
        errors = []

        async def on_error(error, ctx):
            errors.append(error)

        broken = Scene("broken")

        @broken.on_leave
        async def explode(ctx):
            raise RuntimeError("leave failed")

        stage = Stage([broken, Scene("next")], store=store, on_error=on_error)
        async with stage.session("s1") as ctx:
            await ctx.enter("broken")
            await ctx.enter("next")
            assert ctx.scene_name == "next"

        assert len(errors) == 1
        assert isinstance(errors[0], HandlerError)
        assert errors[0].scene == "broken"
        assert errors[0].phase == "leave"
        assert isinstance(errors[0].__cause__, RuntimeError)

    @pytest.mark.asyncio
    async def test_broken_enter_hook_still_enters(self, store):
        scene = Scene("a")

        @scene.on_enter
        async def explode(ctx):
            raise ValueError("enter failed")

        stage = Stage([scene], store=store)
        async with stage.session("s1") as ctx:
            await ctx.enter("a")
            assert ctx.scene_name == "a"

    @pytest.mark.asyncio
    async def test_failing_handler_counts_as_handled(self, store, updates):
        scene = Scene("a")

        @scene.use()
        async def explode(ctx):
            raise RuntimeError("boom")

        fallback_calls = []

        async def fallback(ctx):
            fallback_calls.append(ctx)

        stage = Stage([scene], store=store, default_scene="a")
        assert await stage.dispatch(updates.text("hi"), fallback=fallback) is True
        assert fallback_calls == []

    @pytest.mark.asyncio
    async def test_failing_error_callback_is_contained(self, store, updates):
        scene = Scene("a")

        @scene.use()
        async def explode(ctx):
            raise RuntimeError("boom")

        async def on_error(error, ctx):
            raise RuntimeError("callback failed too")

        stage = Stage([scene], store=store, default_scene="a", on_error=on_error)
        assert await stage.dispatch(updates.text("hi")) is True


class TestDispatch:
    @pytest.mark.asyncio
    async def test_without_scene_update_goes_to_fallback(self, store, updates):
        seen = []

        async def fallback(ctx):
            seen.append(ctx.scene_name)

        stage = Stage([Scene("a")], store=store)
        assert await stage.dispatch(updates.text("hello"), fallback=fallback) is True
        assert seen == [None]

    @pytest.mark.asyncio
    async def test_unhandled_update_reports_false(self, store, updates):
        scene = Scene("a")
        scene.command("back", leave())
        stage = Stage([scene], store=store, default_scene="a")
        assert await stage.dispatch(updates.text("hello")) is False
        assert await stage.dispatch(updates.text("hello"), fallback=HandlerChain()) is False

    @pytest.mark.asyncio
    async def test_default_scene_only_for_untouched_sessions(self, store, updates):
        log = []
        scene = _scene_with_hooks("home", log)
        scene.command("back", leave())
        stage = Stage([scene], store=store, default_scene="home")

        await stage.dispatch(updates.text("/back"))
        assert (await store.get(updates.session_id)).scene is None

        await stage.dispatch(updates.text("hello"))
        assert (await store.get(updates.session_id)).scene is None
        assert log == ["enter:home", "leave:home"]

    @pytest.mark.asyncio
    async def test_unknown_default_scene_fails_fast(self, store, updates):
        stage = Stage([Scene("a")], store=store, default_scene="missing")
        with pytest.raises(UnknownSceneError):
            await stage.dispatch(updates.text("hi"))

    @pytest.mark.asyncio
    async def test_stale_scene_is_discarded(self, store, updates):
        await store.set(updates.session_id, SessionSceneState(scene="deleted", touched_at=1.0))
        seen = []

        async def fallback(ctx):
            seen.append(ctx.scene_name)

        stage = Stage([Scene("a")], store=store)
        assert await stage.dispatch(updates.text("hi"), fallback=fallback) is True
        assert seen == [None]
        assert (await store.get(updates.session_id)).scene is None

    @pytest.mark.asyncio
    async def test_registration_closes_when_dispatch_starts(self, store, updates):
        stage = Stage([Scene("a")], store=store)
        await stage.dispatch(updates.text("hi"))
        with pytest.raises(SceneError):
            stage.register(Scene("late"))

    @pytest.mark.asyncio
    async def test_greeter_and_echo_walkthrough(self, store, sink, updates):
        stage = Stage([build_greeter_scene(), build_echo_scene()], store=store, sink=sink)
        fallback = _global_handlers()
        sid = updates.session_id

        assert await stage.dispatch(updates.text("/greeter"), fallback=fallback)
        assert (await store.get(sid)).scene == "greeter"

        assert await stage.dispatch(updates.text("hi"), fallback=fallback)
        state = await store.get(sid)
        assert state.scene == "greeter"
        assert state.scene_data == {"greetings": 2}

        assert await stage.dispatch(updates.text("/echo"), fallback=fallback)
        state = await store.get(sid)
        assert state.scene == "echo"
        assert state.scene_data == {}

        assert await stage.dispatch(updates.text("hello"), fallback=fallback)
        assert await stage.dispatch(updates.photo(), fallback=fallback)
        assert await stage.dispatch(updates.text("/back"), fallback=fallback)
        assert (await store.get(sid)).scene is None

        assert sink.texts(sid) == [
            "Hi",
            "Bye",
            "Hi",
            "Bye",
            "echo scene",
            "hello",
            "Only text messages please",
            "exiting echo scene",
        ]

    @pytest.mark.asyncio
    async def test_greeter_prompts_for_other_text(self, store, sink, updates):
        stage = Stage([build_greeter_scene()], store=store, sink=sink, default_scene="greeter")
        await stage.dispatch(updates.text("what?"))
        assert sink.sent[updates.session_id][-1] == {
            "text": "Send <code>hi</code>",
            "parse_mode": "HTML",
        }


class TestConcurrency:
    @pytest.mark.asyncio
    async def test_same_session_updates_are_serialized(self, store, updates):
        scene = Scene("counter")

        @scene.use()
        async def count(ctx):
            value = ctx.scene_data.get("n", 0)
            await asyncio.sleep(0.01)
            ctx.scene_data["n"] = value + 1

        stage = Stage([scene], store=store, default_scene="counter")
        results = await asyncio.gather(*(stage.dispatch(updates.text(str(i))) for i in range(5)))

        assert all(results)
        assert (await store.get(updates.session_id)).scene_data == {"n": 5}

    @pytest.mark.asyncio
    async def test_different_sessions_run_concurrently(self, store, updates):
        released = asyncio.Event()
        scene = Scene("wait")

        @scene.use()
        async def wait_or_release(ctx):
            if ctx.session_id == "waiter":
                await released.wait()
            else:
                released.set()

        stage = Stage([scene], store=store, default_scene="wait")
        await asyncio.wait_for(
            asyncio.gather(
                stage.dispatch(updates.text("a", session_id="waiter")),
                stage.dispatch(updates.text("b", session_id="releaser")),
            ),
            timeout=1,
        )
        assert stage._locks == {}


class TestFallbackFailures:
    @pytest.mark.asyncio
    async def test_transition_is_persisted_when_fallback_raises(self, store, sink, updates):
        stage = Stage([build_echo_scene()], store=store, sink=sink)

        async def fallback(ctx):
            await ctx.enter("echo")
            raise RuntimeError("send failed")

        with pytest.raises(RuntimeError):
            await stage.dispatch(updates.text("/echo"), fallback=fallback)

        assert sink.texts(updates.session_id) == ["echo scene"]
        assert (await store.get(updates.session_id)).scene == "echo"

    @pytest.mark.asyncio
    async def test_expiry_is_persisted_when_fallback_raises(self, store, clock, updates):
        stage = Stage([Scene("a")], store=store, ttl_seconds=10, clock=clock)
        async with stage.session(updates.session_id) as ctx:
            await ctx.enter("a")
        clock.advance(11)

        async def fallback(ctx):
            raise RuntimeError("send failed")

        with pytest.raises(RuntimeError):
            await stage.dispatch(updates.text("hi"), fallback=fallback)

        assert (await store.get(updates.session_id)).scene is None


class TestEchoScene:
    @pytest.mark.asyncio
    async def test_text_is_echoed_without_markup_parsing(self, store, sink, updates):
        stage = Stage([build_echo_scene()], store=store, sink=sink)
        async with stage.session(updates.session_id) as ctx:
            await ctx.enter("echo")

        await stage.dispatch(updates.text("a < b <x>"))

        assert sink.sent[updates.session_id][-1] == {"text": "a < b <x>", "parse_mode": None}
