"""
Android `AndroidManifest.xml` / `strings.xml` 的编解码与常用修改。

payload 为 `xml.etree.ElementTree.Element` 根节点；`android:` 属性以
`{http://schemas.android.com/apk/res/android}name` 的全名访问。
解析时保留根节点内的注释，以及根节点上声明但未使用的命名空间。
"""

from __future__ import annotations

import re
import xml.etree.ElementTree as ET

from .errors import MalformedInputError

ANDROID_NS = "http://schemas.android.com/apk/res/android"
TOOLS_NS = "http://schemas.android.com/tools"

ET.register_namespace("android", ANDROID_NS)
ET.register_namespace("tools", TOOLS_NS)

_XMLNS_DECL_RE = re.compile(r"""\sxmlns:([A-Za-z_][\w.-]*)\s*=\s*(["'])(.*?)\2""")


def android_attr(name: str) -> str:
    return f"{{{ANDROID_NS}}}{name}"


def _root_namespaces(text: str, root_tag: str) -> list[tuple[str, str]]:
    """返回根节点起始标签上的 `xmlns:prefix` 声明。"""
    m = re.search(rf"<{root_tag}\b[^>]*>", text)
    if m is None:
        return []
    return [(prefix, uri) for prefix, _q, uri in _XMLNS_DECL_RE.findall(m.group(0))]


def _parse(text: str, *, root_tag: str, source: str) -> ET.Element:
    parser = ET.XMLParser(target=ET.TreeBuilder(insert_comments=True))
    try:
        root = ET.fromstring(text, parser=parser)
    except ET.ParseError as e:
        raise MalformedInputError(f"{source} is malformed: {e}") from e
    if root.tag != root_tag:
        raise MalformedInputError(f"{source} is malformed: expected <{root_tag}> root, got <{root.tag}>")
    # ElementTree 只输出用到的命名空间；原样记下声明，由 `to_xml` 补回未用到的。
    for prefix, uri in _root_namespaces(text, root_tag):
        root.set(f"xmlns:{prefix}", uri)
    return root


def parse_manifest(text: str, *, source: str = "AndroidManifest.xml") -> ET.Element:
    return _parse(text, root_tag="manifest", source=source)


def parse_resources(text: str, *, source: str = "strings.xml") -> ET.Element:
    return _parse(text, root_tag="resources", source=source)


def _used_namespaces(root: ET.Element) -> set[str]:
    used: set[str] = set()
    for el in root.iter():
        for name in (el.tag, *el.attrib):
            if isinstance(name, str) and name.startswith("{"):
                used.add(name[1:name.index("}")])
    return used


def to_xml(root: ET.Element) -> str:
    """以缩进格式输出 XML（带声明），用于写回工程文件。"""
    used = _used_namespaces(root)
    # 已被使用的命名空间由 ElementTree 自行声明，重复声明会生成非法 XML。
    declared = {k: v for k, v in root.attrib.items() if k.startswith("xmlns:")}
    for key, uri in declared.items():
        if uri in used:
            del root.attrib[key]
    try:
        tree = ET.ElementTree(root)
        ET.indent(tree, space="    ")
        body = ET.tostring(root, encoding="unicode")
    finally:
        for key, uri in declared.items():
            root.set(key, uri)
    return f'<?xml version="1.0" encoding="utf-8"?>\n{body}\n'


def get_package(manifest: ET.Element) -> str:
    return manifest.get("package", "")


def set_package(manifest: ET.Element, package: str) -> None:
    manifest.set("package", package)


def permissions(manifest: ET.Element) -> list[str]:
    """按出现顺序列出 `<uses-permission>` 的权限名。"""
    out: list[str] = []
    for el in manifest.findall("uses-permission"):
        name = el.get(android_attr("name"))
        if name:
            out.append(name)
    return out


def add_permission(manifest: ET.Element, permission: str) -> bool:
    """追加 `<uses-permission>`（已存在时跳过），返回是否有改动。"""
    if permission in permissions(manifest):
        return False
    el = ET.Element("uses-permission")
    el.set(android_attr("name"), permission)
    # 与 Android 习惯一致：权限声明放在 `<application>` 之前。
    children = list(manifest)
    app_idx = next((i for i, c in enumerate(children) if c.tag == "application"), len(children))
    manifest.insert(app_idx, el)
    return True


def get_string_resource(resources: ET.Element, name: str) -> str | None:
    for el in resources.findall("string"):
        if el.get("name") == name:
            return el.text or ""
    return None


def set_string_resource(resources: ET.Element, name: str, value: str) -> None:
    """设置 `<string name=...>`，不存在时追加。"""
    for el in resources.findall("string"):
        if el.get("name") == name:
            el.text = value
            return
    el = ET.SubElement(resources, "string", {"name": name})
    el.text = value
