"""
内置配置插件与插件加载。

插件签名为 `plugin(config, *props) -> ExportedConfig`：插件本身不改文件，只向
配置树登记 mod；真正的修改在 `compiler.compile_mods` 运行各槽位的链时发生。

内置 mod 都是同步函数，修改 `config.mod_results` 后通过
`return config.mod_request.next_mod(config)` 把链交给下一环。
"""

from __future__ import annotations

import importlib
import re
from collections.abc import Callable, Sequence
from dataclasses import replace
from typing import Any

from . import android_xml
from .entitlements import adjust_entitlements, current_team_id, validate_entitlements
from .mod_config import with_mod
from .plist_ops import (
    apply_ops,
    ops_by_target,
    rewrite_bundle_id_in_url_types,
    rewrite_bundle_id_strings,
    rewrite_bundle_id_value,
)
from .provisioning import ProvisioningProfile
from .types import ExportedConfig, ExportedConfigWithProps, Mod, ModResult, Op


def _slot_plugin(platform: str, slot: str) -> Callable[[ExportedConfig, Mod], ExportedConfig]:
    def plugin(config: ExportedConfig, action: Mod) -> ExportedConfig:
        return with_mod(config, platform, slot, action)

    plugin.__name__ = f"with_{platform}_{slot}"
    plugin.__doc__ = f"在 `{platform}.{slot}` 槽位上登记 `action`。"
    return plugin


with_android_manifest = _slot_plugin("android", "manifest")
with_string_resources = _slot_plugin("android", "strings")
with_main_activity = _slot_plugin("android", "main_activity")
with_app_build_gradle = _slot_plugin("android", "app_build_gradle")
with_project_build_gradle = _slot_plugin("android", "project_build_gradle")
with_expo_app_build_gradle = _slot_plugin("android", "expo_app_build_gradle")
with_expo_project_build_gradle = _slot_plugin("android", "expo_project_build_gradle")
with_info_plist = _slot_plugin("ios", "info_plist")
with_entitlements = _slot_plugin("ios", "entitlements")
with_expo_plist = _slot_plugin("ios", "expo_plist")
with_xcode_project = _slot_plugin("ios", "xcodeproj")


def _next(config: ExportedConfigWithProps) -> ModResult:
    next_mod = config.mod_request.next_mod
    if next_mod is None:
        return config
    return next_mod(config)


_GRADLE_APPLICATION_ID_RE = re.compile(r"""(\bapplicationId\s*=?\s*)(["'])([^"']*)(\2)""")
_GRADLE_VERSION_NAME_RE = re.compile(r"""(\bversionName\s*=?\s*)(["'])([^"']*)(\2)""")
_GRADLE_VERSION_CODE_RE = re.compile(r"(\bversionCode\s*=?\s*)(\d+)")


def _gradle_set(pattern: re.Pattern[str], text: str, value: str) -> str:
    if pattern.groups == 4:
        return pattern.sub(lambda m: f"{m.group(1)}{m.group(2)}{value}{m.group(4)}", text)
    return pattern.sub(lambda m: f"{m.group(1)}{value}", text)


def with_plist_ops(config: ExportedConfig, ops: Sequence[Op]) -> ExportedConfig:
    """把 PlistBuddy 风格的 `Op` 按目标槽位登记为 mod。"""
    for target, target_ops in ops_by_target(ops).items():

        def plist_ops(cfg: ExportedConfigWithProps, _ops: list[Op] = target_ops) -> ModResult:
            apply_ops(cfg.mod_results, _ops)
            return _next(cfg)

        config = with_mod(config, "ios", target, plist_ops)
    return config


def with_bundle_identifier(
    config: ExportedConfig,
    bundle_id: str,
    *,
    rewrite_values: bool = False,
) -> ExportedConfig:
    """修改主应用标识：iOS `Info.plist`/Xcode 工程与 Android `applicationId`/清单 `package`。"""
    if not bundle_id:
        return config

    def bundle_identifier_plist(cfg: ExportedConfigWithProps) -> ModResult:
        plist = cfg.mod_results
        old_id = plist.get("CFBundleIdentifier", "")
        if isinstance(old_id, str) and old_id and "$(" not in old_id:
            plist["CFBundleIdentifier"] = bundle_id
            rewrite_bundle_id_in_url_types(plist, old_id=old_id, new_id=bundle_id)
            if rewrite_values:
                rewrite_bundle_id_strings(plist, old_id=old_id, new_id=bundle_id)
        elif not old_id:
            plist["CFBundleIdentifier"] = bundle_id
        return _next(cfg)

    def bundle_identifier_xcodeproj(cfg: ExportedConfigWithProps) -> ModResult:
        project = cfg.mod_results
        values = [
            v
            for v in project.build_setting_values("PRODUCT_BUNDLE_IDENTIFIER")
            if v and "$(" not in v
        ]
        if values:
            # 主应用标识是各 target 标识的公共前缀，取最短者。
            old_main = min(values, key=len)
            project.map_build_setting(
                "PRODUCT_BUNDLE_IDENTIFIER",
                lambda v: rewrite_bundle_id_value(v, old_id=old_main, new_id=bundle_id),
            )
        return _next(cfg)

    def bundle_identifier_gradle(cfg: ExportedConfigWithProps) -> ModResult:
        text = _gradle_set(_GRADLE_APPLICATION_ID_RE, cfg.mod_results, bundle_id)
        return _next(replace(cfg, mod_results=text))

    def bundle_identifier_manifest(cfg: ExportedConfigWithProps) -> ModResult:
        # 新版 AGP 使用 `namespace`，清单里没有 package 属性时不补写。
        if android_xml.get_package(cfg.mod_results):
            android_xml.set_package(cfg.mod_results, bundle_id)
        return _next(cfg)

    config = with_info_plist(config, bundle_identifier_plist)
    config = with_xcode_project(config, bundle_identifier_xcodeproj)
    config = with_app_build_gradle(config, bundle_identifier_gradle)
    return with_android_manifest(config, bundle_identifier_manifest)


def with_version(config: ExportedConfig, version: str = "", build: str = "") -> ExportedConfig:
    """设置版本号与构建号（iOS `Info.plist`，Android `versionName`/`versionCode`）。"""
    if not version and not build:
        return config
    if build and not build.isdigit():
        raise ValueError(f"build number must be a positive integer for Android versionCode: {build}")

    def version_plist(cfg: ExportedConfigWithProps) -> ModResult:
        if version:
            cfg.mod_results["CFBundleShortVersionString"] = version
        if build:
            cfg.mod_results["CFBundleVersion"] = build
        return _next(cfg)

    def version_gradle(cfg: ExportedConfigWithProps) -> ModResult:
        text = cfg.mod_results
        if version:
            text = _gradle_set(_GRADLE_VERSION_NAME_RE, text, version)
        if build:
            text = _gradle_set(_GRADLE_VERSION_CODE_RE, text, build)
        return _next(replace(cfg, mod_results=text))

    config = with_info_plist(config, version_plist)
    return with_app_build_gradle(config, version_gradle)


def with_display_name(config: ExportedConfig, name: str) -> ExportedConfig:
    """设置显示名：iOS `CFBundleDisplayName`/`CFBundleName`，Android `app_name`。"""
    if not name:
        return config

    def display_name_plist(cfg: ExportedConfigWithProps) -> ModResult:
        cfg.mod_results["CFBundleDisplayName"] = name
        cfg.mod_results["CFBundleName"] = name
        return _next(cfg)

    def display_name_strings(cfg: ExportedConfigWithProps) -> ModResult:
        android_xml.set_string_resource(cfg.mod_results, "app_name", name)
        return _next(cfg)

    config = with_info_plist(config, display_name_plist)
    return with_string_resources(config, display_name_strings)


def with_team_entitlements(
    config: ExportedConfig,
    profile: ProvisioningProfile,
    *,
    bundle_id: str = "",
    strict: bool = False,
) -> ExportedConfig:
    """把签名权限中的应用标识与钥匙串分组改写到描述文件的团队下，并校验结果。"""

    def team_entitlements(cfg: ExportedConfigWithProps) -> ModResult:
        ent = cfg.mod_results
        old_team = current_team_id(ent)
        old_id = ""
        app_id = ent.get("application-identifier")
        if isinstance(app_id, str) and old_team and app_id.startswith(old_team + "."):
            old_id = app_id[len(old_team) + 1:]
        new_id = bundle_id or old_id
        ent = adjust_entitlements(
            ent,
            team_id=profile.team_id,
            old_bundle_id=old_id or new_id,
            new_bundle_id=new_id,
        )
        validate_entitlements(
            ent,
            old_bundle_id=old_id,
            new_bundle_id=new_id,
            team_id=profile.team_id,
            require_app_identifier=strict,
            source=f"{cfg.mod_request.platform}.{cfg.mod_request.mod_name}",
        )
        return _next(replace(cfg, mod_results=ent))

    return with_entitlements(config, team_entitlements)


def with_permissions(config: ExportedConfig, permissions: Sequence[str]) -> ExportedConfig:
    """向 Android 清单追加 `<uses-permission>`（去重）。"""
    if not permissions:
        return config

    def permissions_manifest(cfg: ExportedConfigWithProps) -> ModResult:
        for permission in permissions:
            android_xml.add_permission(cfg.mod_results, permission)
        return _next(cfg)

    return with_android_manifest(config, permissions_manifest)


BUILTIN_PLUGINS: dict[str, Callable[..., ExportedConfig]] = {
    "bundle_identifier": with_bundle_identifier,
    "version": with_version,
    "display_name": with_display_name,
    "permissions": with_permissions,
}


def _resolve_plugin(ref: str) -> Callable[..., ExportedConfig]:
    """按 `module:function` 或内置名称解析插件。"""
    builtin = BUILTIN_PLUGINS.get(ref)
    if builtin is not None:
        return builtin
    if ":" not in ref:
        raise SystemExit(
            f"Error: invalid plugin reference: {ref}\n"
            f"Hint: use module:function or one of: {', '.join(BUILTIN_PLUGINS)}"
        )
    module_name, attr = ref.split(":", 1)
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise SystemExit(f"Error: failed to import plugin module {module_name}: {e}") from e
    plugin = getattr(module, attr, None)
    if not callable(plugin):
        raise SystemExit(f"Error: plugin {ref} is not a callable in {module_name}")
    return plugin


def apply_plugins(config: ExportedConfig, specs: Sequence[Any]) -> ExportedConfig:
    """
    按声明顺序应用插件。

    每项可以是：
    - 可调用对象；
    - `"module:function"` 或内置名称；
    - `[ref, props]`：`props` 为字典时按关键字参数传入，否则作为单个位置参数。
    """
    for spec in specs:
        props: Any = None
        has_props = False
        if isinstance(spec, (list, tuple)):
            if not spec or len(spec) > 2:
                raise SystemExit(f"Error: invalid plugin entry: {spec!r}")
            ref = spec[0]
            if len(spec) == 2:
                props, has_props = spec[1], True
        else:
            ref = spec

        plugin = ref if callable(ref) else _resolve_plugin(str(ref))
        if not has_props:
            result = plugin(config)
        elif isinstance(props, dict):
            result = plugin(config, **props)
        else:
            result = plugin(config, props)
        if not isinstance(result, ExportedConfig):
            raise SystemExit(f"Error: plugin {ref!r} must return the config, got {type(result).__name__}")
        config = result
    return config
