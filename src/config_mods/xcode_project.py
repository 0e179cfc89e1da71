"""
`project.pbxproj` 的轻量内存表示。

不做完整的 OpenStep plist 解析：保留原始文本，并提供按正则改写构建设置的
最小变更接口，写回时文本中未触及的部分保持逐字节不变。
"""

from __future__ import annotations

import re
from collections.abc import Callable

from .errors import MalformedInputError

_HEADER = "// !$*UTF8*$!"
_SAFE_VALUE_RE = re.compile(r"^[A-Za-z0-9_$/:.-]+$")


def _setting_re(name: str) -> re.Pattern[str]:
    return re.compile(rf"(^\s*{re.escape(name)}\s*=\s*)(\"(?:[^\"\\]|\\.)*\"|[^;\n]*)(;)", re.M)


def _quote(value: str) -> str:
    """按 pbxproj 习惯：安全字符直接写出，其余加双引号转义。"""
    if value and _SAFE_VALUE_RE.match(value):
        return value
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def _unquote(raw: str) -> str:
    raw = raw.strip()
    if len(raw) >= 2 and raw[0] == '"' and raw[-1] == '"':
        return raw[1:-1].replace('\\"', '"').replace("\\\\", "\\")
    return raw


class XcodeProject:
    """可变的 Xcode 工程对象（`xcodeproj` 槽位的 payload）。"""

    def __init__(self, contents: str, *, path: str = "") -> None:
        self.contents = contents
        self.path = path

    @classmethod
    def parse(cls, contents: str, *, path: str = "") -> XcodeProject:
        """校验文本像一个 pbxproj 文件并构造对象，否则抛出 `MalformedInputError`。"""
        where = path or "project.pbxproj"
        if not contents.lstrip().startswith(_HEADER):
            raise MalformedInputError(f"Xcode project is malformed: {where}: missing {_HEADER} header")
        if "objects = {" not in contents:
            raise MalformedInputError(f"Xcode project is malformed: {where}: missing object graph")
        return cls(contents, path=path)

    def build_setting_values(self, name: str) -> list[str]:
        """返回所有构建配置中 `name` 的取值（去掉引号），按出现顺序。"""
        return [_unquote(m.group(2)) for m in _setting_re(name).finditer(self.contents)]

    def map_build_setting(self, name: str, fn: Callable[[str], str]) -> int:
        """对所有 `name = ...;` 的取值应用 `fn`，返回实际改变的条目数。"""
        changed = 0

        def _sub(m: re.Match[str]) -> str:
            nonlocal changed
            old = _unquote(m.group(2))
            new = fn(old)
            if new == old:
                return m.group(0)
            changed += 1
            return f"{m.group(1)}{_quote(new)}{m.group(3)}"

        self.contents = _setting_re(name).sub(_sub, self.contents)
        return changed

    def set_build_setting(self, name: str, value: str) -> int:
        """把所有已存在的 `name = ...;` 改写为 `value`。"""
        return self.map_build_setting(name, lambda _old: value)

    def to_text(self) -> str:
        return self.contents
