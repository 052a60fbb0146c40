"""Material policy: which materials to skip and which tool each one wants."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum

EMPTY_MATERIALS = frozenset({"air", "cave_air", "void_air"})


def normalize_material(material: str) -> str:
    """Strip a namespace prefix such as ``minecraft:`` and lowercase the id."""
    return material.split(":", 1)[-1].strip().lower()


def is_empty(material: str | None) -> bool:
    return material is None or normalize_material(material) in EMPTY_MATERIALS


class ToolTier(str, Enum):
    WOODEN = "wooden"
    GOLDEN = "golden"
    STONE = "stone"
    IRON = "iron"
    DIAMOND = "diamond"
    NETHERITE = "netherite"

    @property
    def rank(self) -> int:
        return _TIER_RANKS[self]


_TIER_RANKS = {
    ToolTier.WOODEN: 0,
    ToolTier.GOLDEN: 0,
    ToolTier.STONE: 1,
    ToolTier.IRON: 2,
    ToolTier.DIAMOND: 3,
    ToolTier.NETHERITE: 4,
}


@dataclass(frozen=True, slots=True)
class ToolRequirement:
    kind: str
    tier: ToolTier | None = None

    def __str__(self) -> str:
        return f"{self.tier.value}_{self.kind}" if self.tier else self.kind


@dataclass(frozen=True, slots=True)
class MaterialRule:
    ignore: bool = False
    required_tool: ToolRequirement | None = None


_DEFAULT_RULE = MaterialRule()


def parse_tool(item: str) -> tuple[ToolTier | None, str] | None:
    """Split an item id like ``minecraft:iron_pickaxe`` into (tier, kind)."""
    name = normalize_material(item)
    prefix, _, kind = name.rpartition("_")
    if not kind:
        return None
    try:
        tier = ToolTier(prefix) if prefix else None
    except ValueError:
        return None
    return tier, kind


def best_tool(requirement: ToolRequirement, items: Iterable[str]) -> str | None:
    """Return the highest-tier held item satisfying ``requirement``, or None."""
    best: str | None = None
    best_rank = -1
    for item in items:
        parsed = parse_tool(item)
        if parsed is None:
            continue
        tier, kind = parsed
        if kind != requirement.kind:
            continue
        rank = tier.rank if tier else 0
        if requirement.tier is not None and rank < requirement.tier.rank:
            continue
        if rank > best_rank:
            best, best_rank = item, rank
    return best


class MaterialPolicy:
    """Maps material ids, or id families matched by substring, to a :class:`MaterialRule`.

    Exact ids take precedence over families; families are checked in the order
    they were registered.
    """

    def __init__(self) -> None:
        self._exact: dict[str, MaterialRule] = {}
        self._families: dict[str, MaterialRule] = {}

    @classmethod
    def default(cls) -> MaterialPolicy:
        policy = cls()
        policy.add_ignored(["bedrock", "obsidian"])
        for family in ("diamond_ore", "deepslate_diamond_ore", "emerald_ore"):
            policy.set_family(family, MaterialRule(required_tool=ToolRequirement("pickaxe", ToolTier.DIAMOND)))
        for family in ("iron_ore", "deepslate_iron_ore", "gold_ore", "deepslate_gold_ore"):
            policy.set_family(family, MaterialRule(required_tool=ToolRequirement("pickaxe", ToolTier.IRON)))
        for family in ("stone", "granite", "diorite", "andesite", "slate"):
            policy.set_family(family, MaterialRule(required_tool=ToolRequirement("pickaxe", ToolTier.STONE)))
        for family in ("oak_wood", "spruce_wood", "birch_wood", "jungle_wood"):
            policy.set_family(family, MaterialRule(required_tool=ToolRequirement("axe")))
        return policy

    def set_material(self, material: str, rule: MaterialRule) -> None:
        self._exact[normalize_material(material)] = rule

    def set_family(self, family: str, rule: MaterialRule) -> None:
        self._families[normalize_material(family)] = rule

    def add_ignored(self, materials: Iterable[str]) -> None:
        for material in materials:
            key = normalize_material(material)
            current = self._exact.get(key, _DEFAULT_RULE)
            self._exact[key] = MaterialRule(ignore=True, required_tool=current.required_tool)

    def ignored(self) -> list[str]:
        return [material for material, rule in self._exact.items() if rule.ignore] + [
            family for family, rule in self._families.items() if rule.ignore
        ]

    def lookup(self, material: str) -> MaterialRule:
        key = normalize_material(material)
        if key in self._exact:
            return self._exact[key]
        for family, rule in self._families.items():
            if family in key:
                return rule
        return _DEFAULT_RULE

    def is_ignored(self, material: str) -> bool:
        return self.lookup(material).ignore

    def tool_for(self, material: str) -> ToolRequirement | None:
        return self.lookup(material).required_tool
