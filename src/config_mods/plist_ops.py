"""
将高层 `Op` 操作与 bundle id 重写应用到 plist 字典（mod 链中的 payload）。
"""

from __future__ import annotations

from collections.abc import Sequence

from .plist_edit import array_add_string, array_remove_string, delete_value, set_value
from .types import Op

PLIST_TARGETS = ("info_plist", "entitlements", "expo_plist")


def _bool_from_str(s: str) -> bool:
    """将常见布尔字符串（true/false/1/0 等）转换为 bool。"""
    v = s.strip().lower()
    if v in ("true", "1", "yes", "y"):
        return True
    if v in ("false", "0", "no", "n"):
        return False
    raise ValueError(f"invalid bool: {s}")


def _apply_one(plist_obj: dict, op: Op) -> None:
    if op.kind == "set_string":
        set_value(plist_obj, op.key_path, op.value or "")
    elif op.kind == "set_int":
        set_value(plist_obj, op.key_path, int(op.value or "0"))
    elif op.kind == "set_bool":
        set_value(plist_obj, op.key_path, _bool_from_str(op.value or "false"))
    elif op.kind == "delete":
        delete_value(plist_obj, op.key_path)
    elif op.kind == "array_add":
        array_add_string(plist_obj, op.key_path, op.value or "")
    elif op.kind == "array_remove":
        array_remove_string(plist_obj, op.key_path, op.value or "")
    else:
        raise RuntimeError(f"Unknown op: {op.kind}")


def apply_ops(plist_obj: dict, ops: Sequence[Op]) -> None:
    """按顺序将 `Op` 列表应用到给定 plist 字典。"""
    for op in ops:
        try:
            _apply_one(plist_obj, op)
        except (TypeError, ValueError) as e:
            suffix = f"={op.value}" if op.value is not None else ""
            raise ValueError(
                f"invalid plist operation {op.kind} on "
                f"{op.target}:{op.key_path}{suffix}: {e}"
            ) from e


def ops_by_target(ops: Sequence[Op]) -> dict[str, list[Op]]:
    """按目标 plist 槽位分组，保持每组内的原始顺序。"""
    out: dict[str, list[Op]] = {}
    for op in ops:
        if op.target not in PLIST_TARGETS:
            raise ValueError(f"unknown plist target: {op.target}")
        out.setdefault(op.target, []).append(op)
    return out


def rewrite_bundle_id_value(value: str, *, old_id: str, new_id: str) -> str:
    """重写单个字符串中的 bundle id（仅精确值与前缀子标识）。"""
    if value == new_id or value.startswith(new_id + "."):
        return value
    if value == old_id:
        return new_id
    if value.startswith(old_id + "."):
        return new_id + value[len(old_id):]
    return value


def _rewrite_slot(container: dict | list, key: str | int, *, old_id: str, new_id: str) -> int:
    value = container[key]
    if not isinstance(value, str):
        return 0
    replaced = rewrite_bundle_id_value(value, old_id=old_id, new_id=new_id)
    if replaced == value:
        return 0
    container[key] = replaced
    return 1


def rewrite_bundle_id_strings(obj: object, *, old_id: str, new_id: str) -> int:
    """递归重写 plist 结构中的 bundle id 字符串，返回替换次数。"""
    if not old_id or old_id == new_id:
        return 0

    count = 0
    stack: list[object] = [obj]
    while stack:
        node = stack.pop()
        if isinstance(node, dict):
            keys: list[str | int] = list(node.keys())
        elif isinstance(node, list):
            keys = list(range(len(node)))
        else:
            continue
        for key in keys:
            value = node[key]
            if isinstance(value, (dict, list)):
                stack.append(value)
            else:
                count += _rewrite_slot(node, key, old_id=old_id, new_id=new_id)
    return count


def rewrite_bundle_id_in_url_types(plist_obj: dict, *, old_id: str, new_id: str) -> int:
    """重写 `CFBundleURLTypes` 里的 bundle id 相关值，返回替换次数。"""
    if not old_id or old_id == new_id:
        return 0

    url_types = plist_obj.get("CFBundleURLTypes")
    if not isinstance(url_types, list):
        return 0

    count = 0
    for item in url_types:
        if not isinstance(item, dict):
            continue
        if "CFBundleURLName" in item:
            count += _rewrite_slot(item, "CFBundleURLName", old_id=old_id, new_id=new_id)
        schemes = item.get("CFBundleURLSchemes")
        if isinstance(schemes, list):
            for i in range(len(schemes)):
                count += _rewrite_slot(schemes, i, old_id=old_id, new_id=new_id)
    return count
