"""
签名描述文件（`mobileprovision`）解析辅助模块。

`.mobileprovision` 本质是 CMS（PKCS#7）封装的 XML plist。CMS 的 content 以原样
八位组串保存，因此无需 macOS `security cms`，直接在 DER 数据中定位 plist 即可。
描述文件可以是原始 DER，也可以是 base64 文本（凭据服务通常以此形式返回）。
"""

from __future__ import annotations

import base64
import binascii
import plistlib
from dataclasses import dataclass
from typing import Any

from .errors import MalformedInputError

_MALFORMED = "Provisioning profile is malformed"
_PLIST_START = b"<?xml"
_PLIST_END = b"</plist>"


@dataclass(frozen=True)
class ProvisioningProfile:
    """描述已解析签名描述文件的关键信息。"""

    raw: dict[str, Any]
    team_id: str
    entitlements: dict[str, Any]

    @property
    def name(self) -> str:
        v = self.raw.get("Name")
        return v if isinstance(v, str) else ""

    @property
    def team_name(self) -> str:
        v = self.raw.get("TeamName")
        return v if isinstance(v, str) else ""


@dataclass(frozen=True)
class AppleTeam:
    team_id: str
    team_name: str


def _team_id_from(raw: dict[str, Any], ents: dict[str, Any]) -> str:
    ids = raw.get("TeamIdentifier")
    if isinstance(ids, list) and ids and isinstance(ids[0], str) and ids[0]:
        return ids[0]
    v = ents.get("com.apple.developer.team-identifier")
    if isinstance(v, str) and v:
        return v
    app_id = ents.get("application-identifier")
    if isinstance(app_id, str) and "." in app_id:
        return app_id.split(".", 1)[0]
    return ""


def _extract_plist(data: bytes) -> dict[str, Any]:
    start = data.find(_PLIST_START)
    end = data.find(_PLIST_END, start)
    if start < 0 or end < 0:
        raise MalformedInputError(_MALFORMED)
    try:
        raw = plistlib.loads(data[start:end + len(_PLIST_END)])
    except Exception as e:
        raise MalformedInputError(f"{_MALFORMED}: {e}") from e
    if not isinstance(raw, dict):
        raise MalformedInputError(_MALFORMED)
    return raw


def parse_mobileprovision(data: bytes) -> ProvisioningProfile:
    """解析 DER 编码的描述文件并提取团队标识（Team ID）与签名权限。"""
    raw = _extract_plist(data)
    ents = raw.get("Entitlements", {})
    if not isinstance(ents, dict):
        ents = {}

    team_id = _team_id_from(raw, ents)
    if not team_id:
        raise MalformedInputError(f"{_MALFORMED}: no team identifier")
    return ProvisioningProfile(raw=raw, team_id=team_id, entitlements=ents)


def decode_base64_profile(profile_b64: str | bytes) -> ProvisioningProfile:
    """解析 base64 形式的描述文件。"""
    try:
        data = base64.b64decode(profile_b64, validate=False)
    except (binascii.Error, ValueError) as e:
        raise MalformedInputError(_MALFORMED) from e
    return parse_mobileprovision(data)


def load_mobileprovision(path: str) -> ProvisioningProfile:
    """从磁盘读取描述文件，自动识别原始 DER 与 base64 文本。"""
    with open(path, "rb") as f:
        data = f.read()
    if _PLIST_START in data:
        return parse_mobileprovision(data)
    return decode_base64_profile(data.strip())


def read_apple_team(profile_b64: str) -> AppleTeam:
    """读取 base64 描述文件中的团队标识与团队名称。"""
    profile = decode_base64_profile(profile_b64)
    return AppleTeam(team_id=profile.team_id, team_name=profile.team_name)


def read_profile_name(profile_b64: str) -> str:
    """读取 base64 描述文件的名称（`Name`）。"""
    profile = decode_base64_profile(profile_b64)
    if not profile.name:
        raise MalformedInputError(f"{_MALFORMED}: missing Name")
    return profile.name
