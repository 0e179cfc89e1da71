"""
`config-mods` 的命令行入口模块。

负责读取应用配置（`app.json`）、收集插件与 plist 操作参数、登记 mod，
并调用 `config_mods.compiler.compile_mods` 修改原生工程文件。
"""

import argparse
import json
import os
from collections.abc import Sequence
from typing import Any

from .compiler import compile_mods
from .errors import MalformedInputError
from .plugins import (
    apply_plugins,
    with_bundle_identifier,
    with_display_name,
    with_permissions,
    with_plist_ops,
    with_team_entitlements,
    with_version,
)
from .provisioning import ProvisioningProfile, load_mobileprovision
from .types import SLOTS, ExportedConfig, Op

# 参数后缀 -> plist 目标槽位。
_PLIST_TARGET_SUFFIXES = (
    ("", "info_plist", "Info.plist"),
    ("-entitlements", "entitlements", "entitlements"),
    ("-expo-plist", "expo_plist", "Expo.plist"),
)
_OP_FLAGS = (
    ("set", "set_string"),
    ("set_int", "set_int"),
    ("set_bool", "set_bool"),
    ("delete", "delete"),
    ("array_add", "array_add"),
    ("array_remove", "array_remove"),
)


def _add_op(ops: list[Op], target: str, kind: str, spec: str) -> None:
    """将一条命令行参数规范转换为内部 `Op` 并追加到列表。"""
    if kind in ("delete",):
        if not spec:
            raise SystemExit(f"Error: missing KEY_PATH for {kind}")
        ops.append(Op(target=target, kind=kind, key_path=spec, value=None))
        return

    if "=" not in spec:
        raise SystemExit(f"Error: expected KEY_PATH=VALUE, got: {spec}")
    k, v = spec.split("=", 1)
    if not k:
        raise SystemExit(f"Error: empty KEY_PATH in: {spec}")
    ops.append(Op(target=target, kind=kind, key_path=k, value=v))


def _add_plist_variants(
    parser: argparse.ArgumentParser, name: str, help_text: str, *, metavar: str
) -> None:
    """注册作用于 Info.plist / entitlements / Expo.plist 的同一类参数。"""
    for suffix, _target, label in _PLIST_TARGET_SUFFIXES:
        parser.add_argument(
            f"{name}{suffix}",
            action="append",
            default=[],
            metavar=metavar,
            help=f"{help_text} ({label})",
        )


def _parse_ops(ns: argparse.Namespace) -> list[Op]:
    """把 argparse 命名空间整理成统一的 `Op` 序列（同一目标内保持参数类别顺序）。"""
    ops: list[Op] = []
    for dest, kind in _OP_FLAGS:
        for suffix, target, _label in _PLIST_TARGET_SUFFIXES:
            attr = dest + suffix.replace("-", "_")
            for spec in getattr(ns, attr):
                _add_op(ops, target, kind, spec)
    return ops


def _log_step(message: str) -> None:
    """输出简洁的流程阶段提示。"""
    print(f"[config-mods] {message}")


def _load_app_config(path: str) -> dict[str, Any]:
    """读取 `app.json`；兼容 `{"expo": {...}}` 包裹形式。"""
    try:
        with open(path, encoding="utf-8") as f:
            obj = json.load(f)
    except json.JSONDecodeError as e:
        raise SystemExit(f"Error: app config is malformed: {path}: {e}") from e
    if isinstance(obj, dict) and isinstance(obj.get("expo"), dict):
        obj = obj["expo"]
    if not isinstance(obj, dict):
        raise SystemExit(f"Error: app config must be a JSON object: {path}")
    return obj


def _find_app_config(project_root: str) -> str:
    """在工程根目录自动发现 `app.json`；找不到时返回空串。"""
    candidate = os.path.join(project_root, "app.json")
    return candidate if os.path.isfile(candidate) else ""


def _print_profile(profile: ProvisioningProfile) -> None:
    print("Provisioning Profile:")
    print(f"  Name     : {profile.name or '-'}")
    print(f"  Team ID  : {profile.team_id}")
    print(f"  Team Name: {profile.team_name or '-'}")
    app_id = profile.entitlements.get("application-identifier")
    print(f"  App ID   : {app_id if isinstance(app_id, str) else '-'}")


def _print_mods(config: ExportedConfig) -> None:
    print("Registered mods:")
    mods = config.mods
    if mods is None or not mods.platforms():
        print("  -")
        return
    for platform in mods.platforms():
        for slot, chain in mods.slots(platform):
            print(f"  {platform}.{slot}: {' -> '.join(chain.names())}")


def build_parser() -> argparse.ArgumentParser:
    """构建并返回 `config-mods` 命令行参数解析器。"""
    p = argparse.ArgumentParser(
        prog="config-mods",
        formatter_class=argparse.RawTextHelpFormatter,
        description=(
            "Apply config plugins (mods) to native ios/ and android/ project files.\n"
            "Mods registered for the same file run in registration order."
        ),
    )

    p.add_argument("-r", "--project-root", default="", help="Project root (default: current dir)")
    p.add_argument(
        "-c",
        "--config",
        default="",
        help="App config JSON (default: <project-root>/app.json when present)",
    )
    p.add_argument(
        "--platform",
        action="append",
        default=[],
        choices=list(SLOTS),
        help="Platform to apply mods to (repeatable; default: all)",
    )
    p.add_argument(
        "--project-name",
        default="",
        help="iOS project name (default: name of the first *.xcodeproj under ios/)",
    )
    p.add_argument(
        "--plugin",
        action="append",
        default=[],
        metavar="MODULE:FUNC",
        help="Extra config plugin, applied after the plugins listed in app config",
    )
    p.add_argument(
        "-p",
        "--profile",
        default="",
        help="Provisioning profile (.mobileprovision, raw or base64) for entitlements team",
    )
    p.add_argument(
        "--strict-entitlements",
        action="store_true",
        help="Fail when application-identifier is missing from entitlements",
    )
    p.add_argument(
        "--inspect-profile",
        default="",
        metavar="PROFILE",
        help="Only print provisioning profile name and team, then exit",
    )
    p.add_argument(
        "--list-mods",
        action="store_true",
        help="Only print registered mods per platform/slot without touching files",
    )
    p.add_argument(
        "--dry-run",
        action="store_true",
        help="Run all mod chains but do not write any file",
    )
    p.add_argument(
        "--auto-rewrite-bundle-id-values",
        action="store_true",
        help="Auto rewrite bundle-id-like string values in Info.plist when using -b",
    )
    p.add_argument("--verbose", action="store_true", help="Verbose logging")

    p.add_argument("-b", "--bundle-id", default="", help="New bundle identifier / applicationId")
    p.add_argument("-v", "--version", default="", help="New CFBundleShortVersionString / versionName")
    p.add_argument("-n", "--build", default="", help="New CFBundleVersion / versionCode")
    p.add_argument(
        "-d",
        "--display-name",
        default="",
        help="New CFBundleDisplayName (also sets CFBundleName and Android app_name)",
    )
    p.add_argument(
        "--permission",
        action="append",
        default=[],
        metavar="NAME",
        help="Add an Android <uses-permission> (repeatable)",
    )

    _add_plist_variants(p, "--set", "Set plist value as string", metavar="KEY_PATH=VALUE")
    _add_plist_variants(p, "--set-int", "Set plist value as integer", metavar="KEY_PATH=VALUE")
    _add_plist_variants(
        p, "--set-bool", "Set plist value as bool (true/false/1/0)", metavar="KEY_PATH=VALUE"
    )
    _add_plist_variants(p, "--delete", "Delete plist key/path", metavar="KEY_PATH")
    _add_plist_variants(
        p, "--array-add", "Append a string element to an array at KEY_PATH", metavar="KEY_PATH=VALUE"
    )
    _add_plist_variants(
        p,
        "--array-remove",
        "Remove string elements matching VALUE from array at KEY_PATH",
        metavar="KEY_PATH=VALUE",
    )

    return p


def main(argv: Sequence[str] | None = None) -> int:
    """CLI 入口：解析参数、构建 mod 配置树并执行各槽位的 mod 链。"""
    parser = build_parser()
    ns = parser.parse_args(argv)
    if ns.list_mods and ns.dry_run:
        raise SystemExit("Error: --list-mods and --dry-run cannot be used together.")

    def _abs(p: str) -> str:
        """将输入路径展开为绝对路径，统一后续文件校验逻辑。"""
        return os.path.abspath(os.path.expanduser(p))

    if ns.inspect_profile:
        path = _abs(ns.inspect_profile)
        if not os.path.isfile(path):
            raise SystemExit(f"Error: profile not found: {path}")
        try:
            _print_profile(load_mobileprovision(path))
        except MalformedInputError as e:
            raise SystemExit(f"Error: {e}") from e
        return 0

    ops = _parse_ops(ns)

    _log_step("Resolving project root")
    project_root = _abs(ns.project_root) if ns.project_root else os.getcwd()
    if not os.path.isdir(project_root):
        raise SystemExit(f"Error: project root not found: {project_root}")
    _log_step(f"Project root: {project_root}")

    _log_step("Resolving app config")
    config_path = _abs(ns.config) if ns.config else _find_app_config(project_root)
    if ns.config and not os.path.isfile(config_path):
        raise SystemExit(f"Error: app config not found: {config_path}")
    app: dict[str, Any] = _load_app_config(config_path) if config_path else {}
    if config_path:
        src = "provided" if ns.config else "auto"
        _log_step(f"Using {src} app config: {config_path}")
    else:
        _log_step("No app config found, using empty config")

    profile: ProvisioningProfile | None = None
    if ns.profile:
        profile_path = _abs(ns.profile)
        if not os.path.isfile(profile_path):
            raise SystemExit(f"Error: profile not found: {profile_path}")
        try:
            profile = load_mobileprovision(profile_path)
        except MalformedInputError as e:
            raise SystemExit(
                f"Error: {e}\nHint: pass a .mobileprovision file (raw or base64).\n"
            ) from e
        _log_step(f"Using profile: {profile.name or profile_path} (team {profile.team_id})")

    _log_step("Registering mods")
    config = ExportedConfig(app=app)
    plugin_specs = app.get("plugins", [])
    if not isinstance(plugin_specs, list):
        raise SystemExit("Error: app config 'plugins' must be a list")
    config = apply_plugins(config, [*plugin_specs, *ns.plugin])
    config = with_bundle_identifier(
        config, ns.bundle_id or "", rewrite_values=bool(ns.auto_rewrite_bundle_id_values)
    )
    try:
        config = with_version(config, ns.version or "", ns.build or "")
    except ValueError as e:
        raise SystemExit(f"Error: {e}") from e
    config = with_display_name(config, ns.display_name or "")
    config = with_permissions(config, ns.permission)
    if ops:
        config = with_plist_ops(config, ops)
    if profile is not None:
        config = with_team_entitlements(
            config,
            profile,
            bundle_id=ns.bundle_id or "",
            strict=bool(ns.strict_entitlements),
        )

    if ns.list_mods:
        _print_mods(config)
        return 0

    platforms = ns.platform or list(SLOTS)
    if ns.dry_run:
        _log_step("Dry-run mode enabled (no file modifications)")
    _log_step(f"Applying mods: {', '.join(platforms)}")
    try:
        outcomes = compile_mods(
            config,
            project_root=project_root,
            platforms=platforms,
            project_name=ns.project_name or "",
            dry_run=bool(ns.dry_run),
            verbose=bool(ns.verbose),
        )
    except (MalformedInputError, RuntimeError) as e:
        raise SystemExit(f"Error: {e}") from e

    print("Done:")
    print(f"  Root   : {project_root}")
    if not outcomes:
        print("  Files  : no mods registered")
    for outcome in outcomes:
        state = "changed" if outcome.changed else "unchanged"
        rel = os.path.relpath(outcome.path, project_root)
        print(f"  {outcome.platform}.{outcome.slot}: {rel} ({state})")
    return 0
