import asyncio
from dataclasses import replace

import pytest

from config_mods.chain import ModChain, failed_link
from config_mods.executor import evaluate, evaluate_sync
from config_mods.mod_config import ModConfig
from config_mods.types import ExportedConfig


def _config(*mods, platform: str = "ios", slot: str = "info_plist") -> ExportedConfig:
    tree = ModConfig()
    for mod in mods:
        tree.register(platform, slot, mod)
    return ExportedConfig(app={"name": "demo"}, mods=tree)


def _run(config: ExportedConfig, base, *, platform: str = "ios", slot: str = "info_plist"):
    return evaluate_sync(
        config,
        platform,
        slot,
        project_root="/proj",
        platform_project_root=f"/proj/{platform}",
        base_value=base,
    )


def _pure(fn):
    """同步 mod：返回新 payload 并继续链。"""

    def mod(config):
        return config.mod_request.next_mod(replace(config, mod_results=fn(config.mod_results)))

    return mod


def _pure_async(fn):
    async def mod(config):
        await asyncio.sleep(0)
        nxt = config.mod_request.next_mod
        return await nxt(replace(config, mod_results=fn(config.mod_results)))

    return mod


def _plus_one(v):
    return {"count": v["count"] + 1}


def _times_ten(v):
    return {"count": v["count"] * 10}


def test_chain_runs_in_registration_order() -> None:
    assert _run(_config(_pure(_plus_one), _pure(_times_ten)), {"count": 0}) == {"count": 10}
    assert _run(_config(_pure(_times_ten), _pure(_plus_one)), {"count": 0}) == {"count": 1}


def test_each_mod_runs_exactly_once_in_order() -> None:
    calls: list[int] = []

    def recorder(i: int):
        def mod(config):
            calls.append(i)
            return config.mod_request.next_mod(config)

        return mod

    _run(_config(*(recorder(i) for i in range(5))), {})
    assert calls == [0, 1, 2, 3, 4]


def test_mod_that_does_not_continue_ends_chain() -> None:
    seen: list[str] = []

    def set_five(config):
        seen.append("a")
        return replace(config, mod_results={"count": 5})

    def set_999(config):
        seen.append("b")
        return config.mod_request.next_mod(replace(config, mod_results={"count": 999}))

    assert _run(_config(set_five, set_999), {"count": 0}) == {"count": 5}
    assert seen == ["a"]


def test_unregistered_slot_returns_base_value_unchanged() -> None:
    base = {"count": 3}
    config = _config(_pure(_plus_one), slot="entitlements")

    assert _run(config, base) is base
    assert _run(ExportedConfig(app={}), base) is base


def test_unknown_slot_is_rejected() -> None:
    with pytest.raises(ValueError, match="unknown mod slot"):
        _run(ExportedConfig(app={}), {}, platform="ios", slot="podfile")


def test_sync_and_async_mix_matches_all_sync() -> None:
    steps = [_plus_one, _times_ten, _plus_one, _times_ten]
    all_sync = _config(*(_pure(f) for f in steps))
    mixed = _config(
        _pure_async(steps[0]),
        _pure(steps[1]),
        _pure_async(steps[2]),
        _pure(steps[3]),
    )

    assert _run(all_sync, {"count": 1}) == _run(mixed, {"count": 1}) == {"count": 210}


def test_async_link_sees_downstream_result_after_continuing() -> None:
    async def outer(config):
        config.mod_results.append("outer:before")
        result = await config.mod_request.next_mod(config)
        result.mod_results.append("outer:after")
        return result

    def inner(config):
        config.mod_results.append("inner")
        return config.mod_request.next_mod(config)

    assert _run(_config(outer, inner), []) == ["outer:before", "inner", "outer:after"]


def test_sync_link_may_return_continuation_directly() -> None:
    async def slow_tail(config):
        await asyncio.sleep(0)
        config.mod_results.append("tail")
        return config

    def head(config):
        config.mod_results.append("head")
        return config.mod_request.next_mod(config)

    assert _run(_config(head, slow_tail), []) == ["head", "tail"]


def test_failure_aborts_remaining_links_and_propagates() -> None:
    ran: list[str] = []

    def first(config):
        ran.append("first")
        return config.mod_request.next_mod(config)

    async def broken(config):
        await asyncio.sleep(0)
        raise ValueError("boom")

    def last(config):
        ran.append("last")
        return config.mod_request.next_mod(config)

    with pytest.raises(ValueError, match="boom"):
        _run(_config(first, broken, last), {})
    assert ran == ["first"]


def test_next_mod_can_only_be_invoked_once() -> None:
    async def twice(config):
        await config.mod_request.next_mod(config)
        return await config.mod_request.next_mod(config)

    with pytest.raises(RuntimeError, match="already invoked"):
        _run(_config(twice, _pure(_plus_one)), {"count": 0})


def test_dropped_continuation_is_an_error() -> None:
    tail_ran: list[bool] = []

    def dropper(config):
        config.mod_request.next_mod(config)
        return config

    def tail(config):
        tail_ran.append(True)
        return config

    with pytest.raises(RuntimeError, match="without awaiting or returning"):
        _run(_config(dropper, tail), {})
    assert tail_ran == []


def test_link_must_return_config() -> None:
    def returns_payload(config):
        return config.mod_results

    with pytest.raises(TypeError, match="must return the config"):
        _run(_config(returns_payload), {"count": 0})


def test_link_cannot_switch_platform() -> None:
    def switch(config):
        return replace(config, mod_request=replace(config.mod_request, platform="android"))

    with pytest.raises(RuntimeError, match="platform 'android'"):
        _run(_config(switch), {})


def test_request_context_carries_slot_metadata() -> None:
    seen: dict = {}

    def capture(config):
        req = config.mod_request
        seen.update(
            platform=req.platform,
            mod_name=req.mod_name,
            project_root=req.project_root,
            platform_project_root=req.platform_project_root,
            has_next=req.next_mod is not None,
            app=config.app,
        )
        return req.next_mod(config)

    _run(_config(capture, platform="android", slot="manifest"), None, platform="android", slot="manifest")

    assert seen == {
        "platform": "android",
        "mod_name": "manifest",
        "project_root": "/proj",
        "platform_project_root": "/proj/android",
        "has_next": True,
        "app": {"name": "demo"},
    }


def test_composed_chain_can_be_used_as_a_link() -> None:
    inner = ModChain.of([_pure(_plus_one), _pure(_plus_one)])
    config = _config(inner, _pure(_times_ten))

    assert _run(config, {"count": 0}) == {"count": 20}


def test_evaluate_inside_running_loop() -> None:
    config = _config(_pure_async(_plus_one), _pure(_times_ten))

    async def main():
        return await evaluate(
            config,
            "ios",
            "info_plist",
            project_root="/proj",
            platform_project_root="/proj/ios",
            base_value={"count": 4},
        )

    assert asyncio.run(main()) == {"count": 50}


def test_empty_chain_is_rejected() -> None:
    with pytest.raises(ValueError):
        ModChain.of([])


def test_failure_records_the_link_that_raised() -> None:
    def passthrough(config):
        return config.mod_request.next_mod(config)

    def explode(config):
        raise ValueError("boom")

    with pytest.raises(ValueError) as e:
        _run(_config(passthrough, passthrough, explode), {})
    assert failed_link(e.value) == "mod explode [3/3]"

    def returns_payload(config):
        return config.mod_results

    with pytest.raises(TypeError) as e:
        _run(_config(passthrough, returns_payload), {})
    assert failed_link(e.value) == "mod returns_payload [2/2]"
