"""
plist 槽位（`Info.plist` / `.entitlements` / `Expo.plist`）的编解码与路径化修改工具。

设计原则：
- 解码失败直接抛出 `MalformedInputError`，不回退到空字典。
- 写回统一使用 XML 格式，并保持原有键顺序。
- 设置值时按需创建中间容器（`dict` 或 `list`）；删除采用尽力而为策略。
"""

from __future__ import annotations

import plistlib
from typing import Any

from .errors import MalformedInputError

PathElem = str | int


def parse_key_path(key_path: str) -> list[PathElem]:
    """
    将 PlistBuddy 风格路径解析为字典键/数组索引序列。

    - `A:B:C` 表示字典键 `A -> B -> C`；纯数字段视为数组索引。
    - 允许前导 `:`，兼容 PlistBuddy 习惯。
    """
    s = key_path.strip().removeprefix(":")
    if not s:
        raise ValueError("empty key path")
    out: list[PathElem] = []
    for part in s.split(":"):
        if not part:
            raise ValueError(f"invalid key path: {key_path}")
        out.append(int(part) if part.isdigit() else part)
    return out


def loads_plist(data: bytes, *, source: str = "plist") -> dict[str, Any]:
    """解码 plist 字节（XML/Binary 自动识别），顶层必须是字典。"""
    try:
        obj = plistlib.loads(data)
    except Exception as e:
        raise MalformedInputError(f"{source} is malformed: {e}") from e
    if not isinstance(obj, dict):
        raise MalformedInputError(f"{source} is malformed: top-level object is not a dict")
    return obj


def dumps_plist(obj: dict[str, Any]) -> bytes:
    return plistlib.dumps(obj, fmt=plistlib.FMT_XML, sort_keys=False)


def _pad(lst: list, idx: int) -> None:
    if idx >= len(lst):
        lst.extend([None] * (idx + 1 - len(lst)))


def _child(cur: Any, elem: PathElem, nxt: PathElem) -> Any:
    """取出（必要时创建）`cur[elem]`，新容器的类型由下一段路径决定。"""
    if isinstance(elem, int):
        if not isinstance(cur, list):
            raise TypeError("array index used on non-list container")
        _pad(cur, elem)
    elif not isinstance(cur, dict):
        raise TypeError("dict key used on non-dict container")
    elif elem not in cur:
        cur[elem] = None
    if cur[elem] is None:
        cur[elem] = [] if isinstance(nxt, int) else {}
    return cur[elem]


def _walk_create(root: Any, path: list[PathElem]) -> tuple[Any, PathElem]:
    cur = root
    for elem, nxt in zip(path, path[1:]):
        cur = _child(cur, elem, nxt)
    return cur, path[-1]


def get_value(root: Any, key_path: str, default: Any = None) -> Any:
    """读取 key path 对应值；路径不存在时返回 `default`。"""
    cur = root
    for elem in parse_key_path(key_path):
        if isinstance(elem, int):
            if not isinstance(cur, list) or elem >= len(cur):
                return default
        elif not isinstance(cur, dict) or elem not in cur:
            return default
        cur = cur[elem]
    return cur


def set_value(root: Any, key_path: str, value: Any) -> None:
    """在指定 key path 处设置值（必要时自动创建中间结构）。"""
    parent, leaf = _walk_create(root, parse_key_path(key_path))
    if isinstance(leaf, int):
        if not isinstance(parent, list):
            raise TypeError("array index used on non-list container")
        _pad(parent, leaf)
    elif not isinstance(parent, dict):
        raise TypeError("dict key used on non-dict container")
    parent[leaf] = value


def delete_value(root: Any, key_path: str) -> None:
    """删除指定 key path 对应值；路径不存在时静默跳过。"""
    path = parse_key_path(key_path)
    parent = get_value(root, ":".join(str(p) for p in path[:-1])) if len(path) > 1 else root
    leaf = path[-1]
    if isinstance(leaf, int):
        if isinstance(parent, list) and leaf < len(parent):
            parent.pop(leaf)
    elif isinstance(parent, dict):
        parent.pop(leaf, None)


def _get_or_create_array(root: Any, key_path: str) -> list:
    """获取或创建目标数组节点，不是数组时抛出类型错误。"""
    parent, leaf = _walk_create(root, parse_key_path(key_path))
    if isinstance(leaf, int):
        raise TypeError("array path must point to a key, not an index")
    if not isinstance(parent, dict):
        raise TypeError("dict key used on non-dict container")
    if parent.get(leaf) is None:
        parent[leaf] = []
    if not isinstance(parent[leaf], list):
        raise TypeError(f"target is not an array: {key_path}")
    return parent[leaf]


def array_add_string(root: Any, key_path: str, value: str) -> None:
    """向目标数组追加一个字符串元素（已存在则不重复追加）。"""
    arr = _get_or_create_array(root, key_path)
    if value not in arr:
        arr.append(value)


def array_remove_string(root: Any, key_path: str, value: str) -> None:
    """从目标数组中删除所有匹配字符串元素。"""
    arr = _get_or_create_array(root, key_path)
    arr[:] = [x for x in arr if x != value]
