import pytest

from config_mods.entitlements import adjust_entitlements, current_team_id, validate_entitlements


def test_current_team_id_prefers_team_identifier_key() -> None:
    assert current_team_id({"com.apple.developer.team-identifier": " TEAM9 "}) == "TEAM9"
    assert current_team_id({"application-identifier": "TEAM123.com.app"}) == "TEAM123"
    assert current_team_id({"application-identifier": "noprefix"}) == ""


def test_adjust_entitlements_rewrites_app_identifier_fields() -> None:
    ent = {
        "application-identifier": "TEAM123.com.old.app",
        "com.apple.application-identifier": "TEAM123.com.old.app",
    }

    out = adjust_entitlements(
        ent,
        team_id="TEAM123",
        old_bundle_id="com.old.app",
        new_bundle_id="com.new.app",
    )

    assert out["application-identifier"] == "TEAM123.com.new.app"
    assert out["com.apple.application-identifier"] == "TEAM123.com.new.app"
    assert ent["application-identifier"] == "TEAM123.com.old.app"


def test_adjust_entitlements_rewrites_keychain_group_prefix() -> None:
    ent = {
        "keychain-access-groups": [
            "TEAM123.com.old.app",
            "TEAM123.com.old.app.shared",
            "TEAM123.com.new.app.widget",
            "OTHER.group",
        ]
    }

    out = adjust_entitlements(
        ent,
        team_id="TEAM123",
        old_bundle_id="com.old.app",
        new_bundle_id="com.new.app",
    )

    assert out["keychain-access-groups"] == [
        "TEAM123.com.new.app",
        "TEAM123.com.new.app.shared",
        "TEAM123.com.new.app.widget",
        "OTHER.group",
    ]


def test_adjust_entitlements_moves_groups_to_new_team() -> None:
    ent = {
        "application-identifier": "OLDTEAM.com.app",
        "com.apple.developer.team-identifier": "OLDTEAM",
        "keychain-access-groups": ["OLDTEAM.*", "OLDTEAM.com.app.shared"],
    }

    out = adjust_entitlements(
        ent,
        team_id="NEWTEAM",
        old_bundle_id="com.app",
        new_bundle_id="com.app",
    )

    assert out["application-identifier"] == "NEWTEAM.com.app"
    assert out["com.apple.developer.team-identifier"] == "NEWTEAM"
    assert out["keychain-access-groups"] == ["NEWTEAM.*", "NEWTEAM.com.app.shared"]


def test_adjust_entitlements_noop_when_team_missing_or_nothing_changes() -> None:
    ent = {"application-identifier": "TEAM123.com.old.app"}
    out_no_team = adjust_entitlements(
        ent,
        team_id="",
        old_bundle_id="com.old.app",
        new_bundle_id="com.new.app",
    )
    out_same = adjust_entitlements(
        ent,
        team_id="TEAM123",
        old_bundle_id="com.old.app",
        new_bundle_id="com.old.app",
    )

    assert out_no_team is ent
    assert out_same is ent


def test_validate_entitlements_accepts_matching_identifiers() -> None:
    ent = {
        "application-identifier": "TEAM123.com.new.app",
        "com.apple.application-identifier": "TEAM123.com.new.app",
        "keychain-access-groups": ["TEAM123.com.new.app", "TEAM123.shared"],
    }
    validate_entitlements(
        ent,
        old_bundle_id="com.old.app",
        new_bundle_id="com.new.app",
        team_id="TEAM123",
    )
    validate_entitlements(None, old_bundle_id="a", new_bundle_id="b", team_id="T")


def test_validate_entitlements_rejects_mismatched_app_identifiers() -> None:
    ent = {
        "application-identifier": "TEAM123.com.new.app",
        "com.apple.application-identifier": "TEAM123.com.other.app",
    }
    with pytest.raises(ValueError) as e:
        validate_entitlements(
            ent,
            old_bundle_id="com.old.app",
            new_bundle_id="com.new.app",
            team_id="TEAM123",
            source="ios/Demo/Demo.entitlements",
        )
    msg = str(e.value)
    assert "ios/Demo/Demo.entitlements" in msg
    assert "must match" in msg


def test_validate_entitlements_rejects_wrong_expected_app_id() -> None:
    with pytest.raises(ValueError, match="expected TEAM123.com.new.app"):
        validate_entitlements(
            {"application-identifier": "TEAM123.com.wrong.app"},
            old_bundle_id="com.old.app",
            new_bundle_id="com.new.app",
            team_id="TEAM123",
        )


def test_validate_entitlements_rejects_stale_keychain_prefix() -> None:
    ent = {
        "application-identifier": "TEAM123.com.new.app",
        "keychain-access-groups": [
            "TEAM123.com.old.app",
            "TEAM123.com.new.app.shared",
        ],
    }
    with pytest.raises(ValueError, match="old bundle prefix TEAM123.com.old.app"):
        validate_entitlements(
            ent,
            old_bundle_id="com.old.app",
            new_bundle_id="com.new.app",
            team_id="TEAM123",
        )


def test_validate_entitlements_allows_new_id_extending_old_id() -> None:
    ent = {
        "application-identifier": "TEAM123.com.app.beta",
        "keychain-access-groups": ["TEAM123.com.app.beta"],
    }
    validate_entitlements(
        ent,
        old_bundle_id="com.app",
        new_bundle_id="com.app.beta",
        team_id="TEAM123",
    )


def test_validate_entitlements_reports_every_problem() -> None:
    ent = {"keychain-access-groups": "TEAM123.com.new.app"}
    with pytest.raises(ValueError) as e:
        validate_entitlements(
            ent,
            old_bundle_id="com.old.app",
            new_bundle_id="com.new.app",
            team_id="TEAM123",
            require_app_identifier=True,
        )
    msg = str(e.value)
    assert "missing application-identifier" in msg
    assert "keychain-access-groups must be an array" in msg
