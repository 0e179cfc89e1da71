from __future__ import annotations

"""
签名权限（`entitlements`）重写与校验辅助模块。

应用标识（`application-identifier`）与钥匙串分组规则独立于 mod 链，
由 `plugins.with_team_entitlements` 在 `ios.entitlements` 槽位上调用。
"""

_APP_ID_KEYS = ("application-identifier", "com.apple.application-identifier")


def _team_id_from_app_identifier(value: object) -> str:
    """从 `TEAMID.bundle.id` 形式的标识里提取 TEAMID。"""
    if not isinstance(value, str) or "." not in value:
        return ""
    return value.split(".", 1)[0].strip()


def current_team_id(ent: dict) -> str:
    """读取签名权限里已有的团队标识，找不到时返回空串。"""
    value = ent.get("com.apple.developer.team-identifier")
    if isinstance(value, str) and value.strip():
        return value.strip()
    for key in _APP_ID_KEYS:
        team_id = _team_id_from_app_identifier(ent.get(key))
        if team_id:
            return team_id
    return ""


def adjust_entitlements(
    ent: dict,
    *,
    team_id: str,
    old_bundle_id: str,
    new_bundle_id: str,
) -> dict:
    """按新团队/包标识重写应用标识与钥匙串访问组前缀，返回新字典。"""
    old_team = current_team_id(ent) or team_id
    if not team_id or (old_bundle_id == new_bundle_id and old_team == team_id):
        return ent

    out = dict(ent)
    new_prefix = f"{team_id}.{new_bundle_id}"

    for key in _APP_ID_KEYS:
        if key in out:
            out[key] = new_prefix
    if "com.apple.developer.team-identifier" in out:
        out["com.apple.developer.team-identifier"] = team_id

    kag = out.get("keychain-access-groups")
    if isinstance(kag, list):
        old_prefix = f"{old_team}.{old_bundle_id}"
        new_kag = []
        for item in kag:
            if isinstance(item, str) and item.startswith(new_prefix):
                new_kag.append(item)
            elif isinstance(item, str) and item.startswith(old_prefix):
                new_kag.append(new_prefix + item[len(old_prefix):])
            elif isinstance(item, str) and old_team != team_id and item.startswith(old_team + "."):
                new_kag.append(team_id + item[len(old_team):])
            else:
                new_kag.append(item)
        out["keychain-access-groups"] = new_kag

    return out


def validate_entitlements(
    ent: dict | None,
    *,
    old_bundle_id: str,
    new_bundle_id: str,
    team_id: str,
    require_app_identifier: bool = False,
    source: str = "entitlements",
) -> None:
    """校验签名权限关键字段一致性，不一致时以 `ValueError` 一次报告全部问题。"""
    if ent is None:
        return

    errors: list[str] = []
    app_ids: dict[str, str] = {}

    for key in _APP_ID_KEYS:
        if key not in ent:
            continue
        value = ent.get(key)
        if not isinstance(value, str) or not value.strip():
            errors.append(f"{key} must be a non-empty string")
            continue
        app_ids[key] = value.strip()

    if require_app_identifier and not app_ids:
        errors.append("missing application-identifier/com.apple.application-identifier")

    if len(set(app_ids.values())) > 1:
        errors.append("application-identifier and com.apple.application-identifier must match")

    team = team_id.strip() if team_id else ""
    if not team:
        for value in app_ids.values():
            team = _team_id_from_app_identifier(value)
            if team:
                break

    expected_app_id = f"{team}.{new_bundle_id}" if team and new_bundle_id else ""
    if expected_app_id:
        for key, value in app_ids.items():
            if value != expected_app_id:
                errors.append(f"{key} mismatch: expected {expected_app_id}, got {value}")

    kag = ent.get("keychain-access-groups")
    if kag is not None:
        if not isinstance(kag, list):
            errors.append("keychain-access-groups must be an array")
        else:
            for i, item in enumerate(kag):
                if not isinstance(item, str):
                    errors.append(f"keychain-access-groups[{i}] must be a string")

            if team and old_bundle_id and new_bundle_id and old_bundle_id != new_bundle_id:
                old_prefix = f"{team}.{old_bundle_id}"
                new_prefix = f"{team}.{new_bundle_id}"
                stale = [
                    x
                    for x in kag
                    if isinstance(x, str)
                    and x.startswith(old_prefix)
                    and not x.startswith(new_prefix)
                ]
                if stale:
                    errors.append(f"keychain-access-groups contains old bundle prefix {old_prefix}")

    if errors:
        detail = "\n  - ".join(errors)
        raise ValueError(f"invalid entitlements in {source}:\n  - {detail}")
