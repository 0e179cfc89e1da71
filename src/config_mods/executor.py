"""
单个槽位的 mod 链求值。

执行器不关心 payload 的具体形态：解码/编码由外部格式协作方在求值前后完成。
"""

from __future__ import annotations

import asyncio
from typing import Any

from .types import ExportedConfig, ExportedConfigWithProps, ModProps, slot_spec


async def evaluate(
    config: ExportedConfig,
    platform: str,
    slot: str,
    *,
    project_root: str,
    platform_project_root: str,
    base_value: Any,
    project_name: str = "",
) -> Any:
    """对 (platform, slot) 执行已登记的链并返回最终 payload；未登记时原样返回 `base_value`。"""
    slot_spec(platform, slot)
    head = config.mods.lookup(platform, slot) if config.mods is not None else None
    if head is None:
        return base_value

    props = ModProps(
        project_root=project_root,
        platform_project_root=platform_project_root,
        mod_name=slot,
        platform=platform,
        project_name=project_name,
        next_mod=head,
    )
    initial = ExportedConfigWithProps(app=config.app, mod_results=base_value, mod_request=props)
    # 初始上下文的游标就是链头本身；链尾之后没有更多节点。
    final = await head.run(initial, outer_next=None)
    return final.mod_results


def evaluate_sync(
    config: ExportedConfig,
    platform: str,
    slot: str,
    *,
    project_root: str,
    platform_project_root: str,
    base_value: Any,
    project_name: str = "",
) -> Any:
    """`evaluate` 的同步版本，供没有事件循环的调用方使用。"""
    return asyncio.run(
        evaluate(
            config,
            platform,
            slot,
            project_root=project_root,
            platform_project_root=platform_project_root,
            base_value=base_value,
            project_name=project_name,
        )
    )
