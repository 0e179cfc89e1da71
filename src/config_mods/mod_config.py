"""
mod 配置树：平台 -> 槽位 -> 按注册顺序排列的 mod。

设计原则：
- 只做登记与查找，不校验 payload 类型。
- 平台与槽位名限定在 `types.SLOTS` 的固定集合内。
- 求值开始前冻结，之后不再接受登记。
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import replace

from .chain import ModChain
from .types import SLOTS, ExportedConfig, Mod, slot_spec


class ModConfig:
    """一次配置过程的 mod 配置树。"""

    def __init__(self) -> None:
        self._chains: dict[str, dict[str, ModChain]] = {}
        self._frozen = False

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> None:
        self._frozen = True

    def register(self, platform: str, slot: str, mod: Mod) -> None:
        """把 `mod` 作为 (platform, slot) 上最新的一环追加到链尾。"""
        slot_spec(platform, slot)
        if self._frozen:
            raise RuntimeError(f"mod config is frozen; cannot register {platform}.{slot}")
        if not callable(mod):
            raise TypeError(f"mod for {platform}.{slot} must be callable, got {type(mod).__name__}")
        slots = self._chains.setdefault(platform, {})
        head = slots.get(slot)
        slots[slot] = ModChain.of([mod]) if head is None else head.then(mod)

    def lookup(self, platform: str, slot: str) -> ModChain | None:
        """返回组合后的链头；该槽位从未登记时返回 `None`。"""
        slot_spec(platform, slot)
        return self._chains.get(platform, {}).get(slot)

    def platforms(self) -> list[str]:
        """已登记 mod 的平台，按固定平台顺序。"""
        return [p for p in SLOTS if self._chains.get(p)]

    def slots(self, platform: str) -> Iterator[tuple[str, ModChain]]:
        """按槽位目录顺序遍历某平台已登记的 `(slot, chain)`。"""
        chains = self._chains.get(platform, {})
        for name in SLOTS.get(platform, {}):
            chain = chains.get(name)
            if chain is not None:
                yield name, chain


def with_mod(config: ExportedConfig, platform: str, slot: str, mod: Mod) -> ExportedConfig:
    """插件辅助：必要时创建配置树，并在 (platform, slot) 上登记 `mod`。"""
    mods = config.mods
    if mods is None:
        mods = ModConfig()
        config = replace(config, mods=mods)
    mods.register(platform, slot, mod)
    return config
