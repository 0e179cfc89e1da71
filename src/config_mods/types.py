"""
mod 流水线、插件与 CLI 共享的轻量类型定义。
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Literal, Union
from xml.etree.ElementTree import Element

from .xcode_project import XcodeProject

if TYPE_CHECKING:
    from .mod_config import ModConfig


ModPlatform = Literal["android", "ios"]

AndroidSlot = Literal[
    "manifest",
    "strings",
    "main_activity",
    "app_build_gradle",
    "project_build_gradle",
    "expo_app_build_gradle",
    "expo_project_build_gradle",
]
IosSlot = Literal["info_plist", "entitlements", "expo_plist", "xcodeproj"]


@dataclass(frozen=True)
class SlotSpec:
    """描述一个 (platform, slot) 槽位及其固定的 payload 类型。"""

    platform: str
    name: str
    payload_type: type
    description: str


# 平台 -> 槽位目录；顺序即驱动器处理槽位的顺序。
SLOTS: dict[str, dict[str, SlotSpec]] = {
    "android": {
        "manifest": SlotSpec("android", "manifest", Element, "AndroidManifest.xml"),
        "strings": SlotSpec("android", "strings", Element, "res/values/strings.xml"),
        "main_activity": SlotSpec("android", "main_activity", str, "MainActivity source"),
        "app_build_gradle": SlotSpec("android", "app_build_gradle", str, "app/build.gradle"),
        "project_build_gradle": SlotSpec("android", "project_build_gradle", str, "build.gradle"),
        "expo_app_build_gradle": SlotSpec(
            "android", "expo_app_build_gradle", str, ".expo/app-build.gradle"
        ),
        "expo_project_build_gradle": SlotSpec(
            "android", "expo_project_build_gradle", str, ".expo/project-build.gradle"
        ),
    },
    "ios": {
        "info_plist": SlotSpec("ios", "info_plist", dict, "Info.plist"),
        "entitlements": SlotSpec("ios", "entitlements", dict, "<name>.entitlements"),
        "expo_plist": SlotSpec("ios", "expo_plist", dict, "Supporting/Expo.plist"),
        "xcodeproj": SlotSpec("ios", "xcodeproj", XcodeProject, "project.pbxproj"),
    },
}


def slot_spec(platform: str, slot: str) -> SlotSpec:
    """返回槽位描述；平台或槽位不在固定集合内时抛出 `ValueError`。"""
    slots = SLOTS.get(platform)
    if slots is None:
        raise ValueError(f"unknown mod platform: {platform} (expected one of: {', '.join(SLOTS)})")
    spec = slots.get(slot)
    if spec is None:
        raise ValueError(
            f"unknown mod slot: {platform}.{slot} (expected one of: {', '.join(slots)})"
        )
    return spec


@dataclass(frozen=True)
class ModProps:
    """单个槽位求值期间随 payload 传递的请求上下文。"""

    # 通用应用工程根目录。
    project_root: str
    # 平台工程根目录，如 `<root>/ios`。
    platform_project_root: str
    # 槽位名，如 `info_plist`。
    mod_name: str
    platform: str
    # [iOS] 查询工程文件时使用的目录名：`<root>/ios/<project_name>/`。
    project_name: str = ""
    # 链游标：调用后执行剩余链路；每个引用只能调用一次。
    next_mod: Mod | None = None


@dataclass(frozen=True)
class ExportedConfig:
    """整个应用配置，以及可选的 mod 配置树。"""

    app: dict[str, Any]
    mods: ModConfig | None = None


@dataclass(frozen=True)
class ExportedConfigWithProps:
    """在 mod 链中流转的配置：当前 payload（`mod_results`）与请求上下文。"""

    app: dict[str, Any]
    mod_results: Any
    mod_request: ModProps


ModResult = Union[ExportedConfigWithProps, Awaitable[ExportedConfigWithProps]]
Mod = Callable[[ExportedConfigWithProps], ModResult]
ConfigPlugin = Callable[..., ExportedConfig]


@dataclass(frozen=True)
class Op:
    """描述一次对 plist 槽位的可序列化操作。"""

    # `target` 目标 plist 槽位：`info_plist` / `entitlements` / `expo_plist`。
    target: str
    # `kind` 操作类型：
    # - `set_string` / `set_int` / `set_bool`
    # - `delete`
    # - `array_add` / `array_remove`
    kind: str
    key_path: str
    value: str | None = None
