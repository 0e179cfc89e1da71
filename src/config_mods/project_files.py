"""
原生工程文件定位与各槽位的格式协作方（解码 -> payload -> 编码）。

mod 链本身不做任何文件 I/O；这里负责在链运行前读取并解码，在运行后编码写回。
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any

from . import android_xml
from .errors import MalformedInputError
from .plist_edit import dumps_plist, loads_plist
from .xcode_project import XcodeProject

# 不存在时以空 payload 开始、写回时创建的槽位。
_CREATABLE: dict[tuple[str, str], Any] = {
    ("ios", "entitlements"): dict,
    ("ios", "expo_plist"): dict,
    ("android", "expo_app_build_gradle"): str,
    ("android", "expo_project_build_gradle"): str,
}

_MAIN_ACTIVITY_NAMES = ("MainActivity.java", "MainActivity.kt")


@dataclass
class SlotFile:
    """一个槽位对应的磁盘文件及其原始内容（文件不存在时为 `None`）。"""

    platform: str
    slot: str
    path: str
    original: bytes | None


def platform_project_root(project_root: str, platform: str) -> str:
    return os.path.join(project_root, platform)


def _find_first_dir(parent: str, suffix: str) -> str:
    if not os.path.isdir(parent):
        return ""
    for name in sorted(os.listdir(parent)):
        p = os.path.join(parent, name)
        if os.path.isdir(p) and name.endswith(suffix):
            return p
    return ""


def resolve_ios_project_name(ios_root: str, hint: str = "") -> str:
    """返回 iOS 工程名：优先使用显式提示，否则取第一个 `*.xcodeproj` 的名称。"""
    if hint:
        return hint
    xcodeproj = _find_first_dir(ios_root, ".xcodeproj")
    if not xcodeproj:
        raise RuntimeError(f"No .xcodeproj found under {ios_root}")
    return os.path.basename(xcodeproj)[: -len(".xcodeproj")]


def _find_main_activity(android_root: str) -> str:
    src_main = os.path.join(android_root, "app", "src", "main")
    found: list[str] = []
    for lang_dir in ("java", "kotlin"):
        base = os.path.join(src_main, lang_dir)
        for root, _dirs, files in os.walk(base):
            for name in files:
                if name in _MAIN_ACTIVITY_NAMES:
                    found.append(os.path.join(root, name))
    if not found:
        raise RuntimeError(f"MainActivity not found under {src_main}")
    found.sort(key=lambda p: (len(p), p))
    return found[0]


def _find_entitlements(ios_root: str, project_name: str) -> str:
    app_dir = os.path.join(ios_root, project_name)
    preferred = os.path.join(app_dir, f"{project_name}.entitlements")
    if os.path.isfile(preferred) or not os.path.isdir(app_dir):
        return preferred
    for name in sorted(os.listdir(app_dir)):
        if name.endswith(".entitlements"):
            return os.path.join(app_dir, name)
    return preferred


def slot_path(platform: str, slot: str, platform_root: str, project_name: str = "") -> str:
    """返回 (platform, slot) 对应文件的绝对路径。"""
    if platform == "android":
        main = os.path.join(platform_root, "app", "src", "main")
        if slot == "manifest":
            return os.path.join(main, "AndroidManifest.xml")
        if slot == "strings":
            return os.path.join(main, "res", "values", "strings.xml")
        if slot == "main_activity":
            return _find_main_activity(platform_root)
        if slot == "app_build_gradle":
            return os.path.join(platform_root, "app", "build.gradle")
        if slot == "project_build_gradle":
            return os.path.join(platform_root, "build.gradle")
        if slot == "expo_app_build_gradle":
            return os.path.join(platform_root, ".expo", "app-build.gradle")
        if slot == "expo_project_build_gradle":
            return os.path.join(platform_root, ".expo", "project-build.gradle")
    elif platform == "ios":
        if slot == "info_plist":
            return os.path.join(platform_root, project_name, "Info.plist")
        if slot == "entitlements":
            return _find_entitlements(platform_root, project_name)
        if slot == "expo_plist":
            return os.path.join(platform_root, project_name, "Supporting", "Expo.plist")
        if slot == "xcodeproj":
            return os.path.join(platform_root, f"{project_name}.xcodeproj", "project.pbxproj")
    raise ValueError(f"unknown mod slot: {platform}.{slot}")


def open_slot(platform: str, slot: str, path: str) -> SlotFile:
    """读取槽位文件原始内容；必需文件缺失时抛出 `RuntimeError`。"""
    if not os.path.isfile(path):
        if (platform, slot) in _CREATABLE:
            return SlotFile(platform, slot, path, None)
        raise RuntimeError(f"{platform}.{slot} file not found: {path}")
    with open(path, "rb") as f:
        return SlotFile(platform, slot, path, f.read())


def decode(sf: SlotFile) -> Any:
    """把原始内容解码为该槽位的 payload。"""
    if sf.original is None:
        return _CREATABLE[(sf.platform, sf.slot)]()

    key = (sf.platform, sf.slot)
    if key[0] == "ios" and key[1] in ("info_plist", "entitlements", "expo_plist"):
        return loads_plist(sf.original, source=sf.path)

    try:
        text = sf.original.decode("utf-8")
    except UnicodeDecodeError as e:
        raise MalformedInputError(f"{sf.path} is malformed: {e}") from e
    if key == ("android", "manifest"):
        return android_xml.parse_manifest(text, source=sf.path)
    if key == ("android", "strings"):
        return android_xml.parse_resources(text, source=sf.path)
    if key == ("ios", "xcodeproj"):
        return XcodeProject.parse(text, path=sf.path)
    return text


def encode(sf: SlotFile, payload: Any) -> bytes:
    """把 payload 编码回文件内容。"""
    if sf.platform == "ios" and sf.slot in ("info_plist", "entitlements", "expo_plist"):
        return dumps_plist(payload)
    if (sf.platform, sf.slot) in (("android", "manifest"), ("android", "strings")):
        return android_xml.to_xml(payload).encode("utf-8")
    if isinstance(payload, XcodeProject):
        return payload.to_text().encode("utf-8")
    return payload.encode("utf-8")


def write_slot(sf: SlotFile, data: bytes) -> bool:
    """内容有变化时写回磁盘（必要时创建目录），返回是否写入。"""
    if data == sf.original:
        return False
    parent = os.path.dirname(sf.path)
    if parent:
        os.makedirs(parent, exist_ok=True)
    with open(sf.path, "wb") as f:
        f.write(data)
    return True
