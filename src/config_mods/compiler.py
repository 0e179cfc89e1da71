"""
Apply registered mods to a native project directory.

High-level flow, per requested platform:
1) Freeze the mod config so no plugin can register while chains run.
2) Resolve the platform project root (`<root>/ios`, `<root>/android`) and, for
   iOS, the project name from the first `*.xcodeproj`.
3) For every slot that has mods, in catalogue order:
   - locate and read the slot file, decode it into the slot payload;
   - run the slot's chain through `executor.evaluate`;
   - check the final payload still has the slot's payload type;
   - encode it and write it back when the content changed (not in dry-run).
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import Sequence
from dataclasses import dataclass

from . import project_files
from .chain import failed_link
from .executor import evaluate
from .types import SLOTS, ExportedConfig, slot_spec


@dataclass(frozen=True)
class SlotOutcome:
    platform: str
    slot: str
    path: str
    changed: bool


async def compile_mods_async(
    config: ExportedConfig,
    *,
    project_root: str,
    platforms: Sequence[str],
    project_name: str = "",
    dry_run: bool = False,
    verbose: bool = False,
) -> list[SlotOutcome]:
    for platform in platforms:
        if platform not in SLOTS:
            raise SystemExit(f"Error: unknown platform: {platform} (expected: {', '.join(SLOTS)})")

    mods = config.mods
    if mods is None:
        return []
    mods.freeze()

    outcomes: list[SlotOutcome] = []
    for platform in platforms:
        chains = list(mods.slots(platform))
        if not chains:
            continue

        platform_root = project_files.platform_project_root(project_root, platform)
        if not os.path.isdir(platform_root):
            raise SystemExit(f"Error: {platform} project not found: {platform_root}")

        name = ""
        if platform == "ios":
            try:
                name = project_files.resolve_ios_project_name(platform_root, project_name)
            except RuntimeError as e:
                raise SystemExit(f"Error: {e}") from e
            if verbose:
                print(f"iOS project: {name}")

        for slot, chain in chains:
            path = project_files.slot_path(platform, slot, platform_root, name)
            if verbose:
                print(f"Mods: {platform}.{slot} <- {' -> '.join(chain.names())}")
                print(f"  File: {path}")

            sf = project_files.open_slot(platform, slot, path)
            base_value = project_files.decode(sf)
            try:
                results = await evaluate(
                    config,
                    platform,
                    slot,
                    project_root=project_root,
                    platform_project_root=platform_root,
                    base_value=base_value,
                    project_name=name,
                )
            except Exception as e:
                where = failed_link(e)
                raise SystemExit(
                    f"Error: mod chain failed for {platform}.{slot}"
                    f"{' at ' + where if where else ''} "
                    f"({' -> '.join(chain.names())}): {e}"
                ) from e

            expected = slot_spec(platform, slot).payload_type
            if not isinstance(results, expected):
                raise SystemExit(
                    f"Error: mod results for {platform}.{slot} must be {expected.__name__}, "
                    f"got {type(results).__name__}"
                )

            data = project_files.encode(sf, results)
            if sf.original is None and not results:
                # 可选文件不存在且 mod 未写入内容：不创建空文件。
                changed = False
            elif dry_run:
                changed = data != sf.original
            else:
                changed = project_files.write_slot(sf, data)
            if verbose:
                print(f"  {'Changed' if changed else 'Unchanged'}{' (dry-run)' if dry_run else ''}")
            outcomes.append(SlotOutcome(platform, slot, path, changed))

    return outcomes


def compile_mods(
    config: ExportedConfig,
    *,
    project_root: str,
    platforms: Sequence[str],
    project_name: str = "",
    dry_run: bool = False,
    verbose: bool = False,
) -> list[SlotOutcome]:
    """`compile_mods_async` 的同步入口。"""
    return asyncio.run(
        compile_mods_async(
            config,
            project_root=project_root,
            platforms=platforms,
            project_name=project_name,
            dry_run=dry_run,
            verbose=verbose,
        )
    )
