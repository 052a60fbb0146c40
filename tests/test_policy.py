from __future__ import annotations

import pytest

from mc_excavator.policy import (
    MaterialPolicy,
    MaterialRule,
    ToolRequirement,
    ToolTier,
    best_tool,
    is_empty,
    normalize_material,
    parse_tool,
)


def test_default_policy_ignores_unbreakable_blocks() -> None:
    policy = MaterialPolicy.default()

    assert policy.is_ignored("bedrock")
    assert policy.is_ignored("minecraft:obsidian")
    assert not policy.is_ignored("stone")
    assert set(policy.ignored()) == {"bedrock", "obsidian"}


@pytest.mark.parametrize(
    ("material", "expected"),
    [
        ("diamond_ore", "diamond_pickaxe"),
        ("minecraft:deepslate_diamond_ore", "diamond_pickaxe"),
        ("emerald_ore", "diamond_pickaxe"),
        ("iron_ore", "iron_pickaxe"),
        ("deepslate_gold_ore", "iron_pickaxe"),
        ("stone", "stone_pickaxe"),
        ("polished_granite", "stone_pickaxe"),
        ("oak_wood", "axe"),
    ],
)
def test_default_tool_requirements(material: str, expected: str) -> None:
    assert str(MaterialPolicy.default().tool_for(material)) == expected


def test_unknown_material_has_no_requirement() -> None:
    policy = MaterialPolicy.default()

    assert policy.tool_for("dirt") is None
    assert policy.lookup("dirt") == MaterialRule()


def test_exact_rule_wins_over_family() -> None:
    policy = MaterialPolicy.default()
    policy.set_material("stone_bricks", MaterialRule(ignore=True))

    assert policy.is_ignored("stone_bricks")
    assert not policy.is_ignored("stone")


def test_add_ignored_keeps_tool_requirement() -> None:
    policy = MaterialPolicy()
    policy.set_material("iron_ore", MaterialRule(required_tool=ToolRequirement("pickaxe", ToolTier.IRON)))

    policy.add_ignored(["MINECRAFT:Iron_Ore", "dirt"])

    assert policy.is_ignored("iron_ore")
    assert policy.tool_for("iron_ore") == ToolRequirement("pickaxe", ToolTier.IRON)
    assert policy.ignored() == ["iron_ore", "dirt"]


def test_normalize_and_empty() -> None:
    assert normalize_material("minecraft:Cave_Air") == "cave_air"
    assert is_empty("minecraft:air")
    assert is_empty(None)
    assert not is_empty("water")


def test_parse_tool() -> None:
    assert parse_tool("minecraft:netherite_pickaxe") == (ToolTier.NETHERITE, "pickaxe")
    assert parse_tool("stick") == (None, "stick")
    assert parse_tool("copper_pickaxe") is None


def test_best_tool_prefers_highest_sufficient_tier() -> None:
    requirement = ToolRequirement("pickaxe", ToolTier.STONE)
    items = ["wooden_pickaxe", "iron_pickaxe", "diamond_axe", "stone_pickaxe", "torch"]

    assert best_tool(requirement, items) == "iron_pickaxe"
    assert best_tool(ToolRequirement("pickaxe", ToolTier.DIAMOND), items) is None
    assert best_tool(ToolRequirement("axe"), items) == "diamond_axe"
