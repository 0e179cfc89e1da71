import pytest

from config_mods.chain import ModChain
from config_mods.mod_config import ModConfig, with_mod
from config_mods.types import ExportedConfig


def _noop(config):
    return config.mod_request.next_mod(config)


def _other(config):
    return config


def test_first_registration_becomes_head_and_later_ones_append() -> None:
    tree = ModConfig()
    assert tree.lookup("ios", "info_plist") is None

    tree.register("ios", "info_plist", _noop)
    head = tree.lookup("ios", "info_plist")
    assert isinstance(head, ModChain)
    assert head.links == (_noop,)

    tree.register("ios", "info_plist", _other)
    assert tree.lookup("ios", "info_plist").links == (_noop, _other)


def test_register_rejects_unknown_platform_and_slot() -> None:
    tree = ModConfig()
    with pytest.raises(ValueError, match="unknown mod platform"):
        tree.register("web", "manifest", _noop)
    with pytest.raises(ValueError, match="unknown mod slot"):
        tree.register("android", "info_plist", _noop)


def test_register_rejects_non_callable() -> None:
    with pytest.raises(TypeError, match="must be callable"):
        ModConfig().register("ios", "entitlements", "not-a-mod")


def test_frozen_tree_rejects_registration() -> None:
    tree = ModConfig()
    tree.register("android", "manifest", _noop)
    tree.freeze()

    with pytest.raises(RuntimeError, match="frozen"):
        tree.register("android", "manifest", _other)
    assert tree.lookup("android", "manifest").links == (_noop,)


def test_slots_iterate_in_catalogue_order() -> None:
    tree = ModConfig()
    tree.register("ios", "xcodeproj", _noop)
    tree.register("ios", "info_plist", _noop)
    tree.register("android", "strings", _noop)

    assert tree.platforms() == ["android", "ios"]
    assert [slot for slot, _chain in tree.slots("ios")] == ["info_plist", "xcodeproj"]
    assert list(tree.slots("android"))[0][0] == "strings"


def test_with_mod_creates_tree_on_demand() -> None:
    config = ExportedConfig(app={"name": "demo"})

    out = with_mod(config, "ios", "entitlements", _noop)
    out = with_mod(out, "ios", "entitlements", _other)

    assert config.mods is None
    assert out.app == {"name": "demo"}
    assert out.mods.lookup("ios", "entitlements").links == (_noop, _other)
