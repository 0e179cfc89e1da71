"""
Mod chain composition.

All mods registered for one slot run as a single pipeline, strictly in
registration order:

- each link receives the config with `mod_request.next_mod` bound to a one-shot
  continuation that runs the rest of the chain;
- calling `next_mod(config)` hands the payload downstream and returns an
  awaitable of the downstream result (async links `await` it, sync links may
  simply `return` it);
- a link that never calls `next_mod` ends the chain there, and its returned
  config is the chain result;
- exceptions raised by a link propagate unchanged and nothing after it runs.

The links are kept as an ordered tuple owned by the chain; a run walks them
with an integer cursor, so nothing in the request context points back at a mod.
"""

from __future__ import annotations

import inspect
from collections.abc import Awaitable, Sequence
from dataclasses import dataclass, replace
from typing import Any

from .types import ExportedConfigWithProps, Mod


def mod_label(mod: Any) -> str:
    """返回用于日志/报错的 mod 名称。"""
    name = getattr(mod, "__name__", "") or getattr(mod, "__qualname__", "")
    return name or type(mod).__name__


async def resolve(value: Any) -> Any:
    """同步结果视为已完成；可等待对象则等待到非可等待值为止。"""
    while inspect.isawaitable(value):
        value = await value
    return value


_FAILED_LINK_ATTR = "_config_mods_failed_link"


def _mark_failed(exc: BaseException, label: str) -> None:
    # 只记录最内层：下游失败会穿过上游节点的 `await next_mod` 再次经过这里。
    if isinstance(exc, Exception) and not getattr(exc, _FAILED_LINK_ATTR, ""):
        setattr(exc, _FAILED_LINK_ATTR, label)


def failed_link(exc: BaseException) -> str:
    """返回抛出该异常的链节点描述（如 `mod fix_icons [2/3]`），未知时为空串。"""
    return getattr(exc, _FAILED_LINK_ATTR, "")


class _Continuation:
    """单个链节点持有的一次性 `next_mod`。"""

    def __init__(self, run: _ChainRun, index: int) -> None:
        self._run = run
        self._index = index
        self._pending: Any = None
        self.invoked = False
        self.completed = False

    def __call__(self, config: ExportedConfigWithProps) -> Awaitable[ExportedConfigWithProps]:
        if self.invoked:
            raise RuntimeError(
                f"next_mod of {self._run.describe(self._index)} was already invoked; "
                "a chain can only be continued once per link"
            )
        self.invoked = True
        self._pending = self._advance(config)
        return self._pending

    async def _advance(self, config: ExportedConfigWithProps) -> ExportedConfigWithProps:
        try:
            return await self._run.step(self._index + 1, config)
        finally:
            self.completed = True

    @property
    def dangling(self) -> bool:
        return self.invoked and not self.completed

    def discard(self) -> None:
        # 未开始的协程需要显式关闭，否则解释器会报告 never awaited。
        if self._pending is not None:
            self._pending.close()


class _ChainRun:
    """一次链求值的状态：节点序列 + 游标，以及链尾之后的外部 `next_mod`。"""

    def __init__(self, chain: ModChain, platform: str, outer_next: Mod | None) -> None:
        self._chain = chain
        self._platform = platform
        self._outer_next = outer_next

    def describe(self, index: int) -> str:
        links = self._chain.links
        return f"mod {mod_label(links[index])} [{index + 1}/{len(links)}]"

    async def step(self, index: int, config: ExportedConfigWithProps) -> ExportedConfigWithProps:
        links = self._chain.links
        if index >= len(links):
            if self._outer_next is None:
                return config
            return await resolve(self._outer_next(config))

        cont = _Continuation(self, index)
        current = replace(config, mod_request=replace(config.mod_request, next_mod=cont))
        try:
            result = await resolve(links[index](current))
            self._check(index, cont, result)
        except BaseException as e:
            if cont.dangling:
                cont.discard()
            _mark_failed(e, self.describe(index))
            raise
        return result

    def _check(self, index: int, cont: _Continuation, result: Any) -> None:
        if cont.dangling:
            cont.discard()
            raise RuntimeError(
                f"{self.describe(index)} called next_mod without awaiting or returning its result"
            )
        if not isinstance(result, ExportedConfigWithProps):
            raise TypeError(
                f"{self.describe(index)} must return the config it received, "
                f"got {type(result).__name__}"
            )
        if result.mod_request.platform != self._platform:
            raise RuntimeError(
                f"{self.describe(index)} returned a config for platform "
                f"{result.mod_request.platform!r} while running on {self._platform!r}"
            )


@dataclass(frozen=True)
class ModChain:
    """一个槽位上按注册顺序组合的 mod；自身也是一个 mod。"""

    links: tuple[Mod, ...]

    @classmethod
    def of(cls, mods: Sequence[Mod]) -> ModChain:
        if not mods:
            raise ValueError("a mod chain needs at least one mod")
        return cls(tuple(mods))

    def then(self, mod: Mod) -> ModChain:
        """返回在链尾追加 `mod` 的新链。"""
        return ModChain(self.links + (mod,))

    def names(self) -> list[str]:
        return [mod_label(m) for m in self.links]

    def __len__(self) -> int:
        return len(self.links)

    async def run(
        self, config: ExportedConfigWithProps, *, outer_next: Mod | None = None
    ) -> ExportedConfigWithProps:
        """从第一个节点开始执行；最后一个节点继续时交给 `outer_next`（若有）。"""
        return await _ChainRun(self, config.mod_request.platform, outer_next).step(0, config)

    async def __call__(self, config: ExportedConfigWithProps) -> ExportedConfigWithProps:
        return await self.run(config, outer_next=config.mod_request.next_mod)
