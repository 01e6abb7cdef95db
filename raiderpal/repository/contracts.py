"""View contracts: which relation to read, which columns, and the row shape.

Row models are validated on the way in; a row that does not fit its contract
is reported as a data access error rather than leaking into responses.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Type

from pydantic import BaseModel, ConfigDict

from ..providers.rowstore import normalize_columns


class _Row(BaseModel):
    model_config = ConfigDict(extra="ignore")


class ItemListRow(_Row):
    id: str
    name: Optional[str] = None
    icon: Optional[str] = None
    rarity: Optional[str] = None
    item_type: Optional[str] = None


class ItemDetailRow(_Row):
    id: str
    name: Optional[str] = None
    description: Optional[str] = None
    item_type: Optional[str] = None
    rarity: Optional[str] = None
    icon: Optional[str] = None
    value: Optional[float] = None
    workbench: Optional[str] = None
    loot_area: Optional[str] = None


class VersionRow(_Row):
    id: str
    version: int
    last_synced_at: Optional[str] = None


class CraftingRow(_Row):
    item_id: Optional[str] = None
    quantity: Optional[float] = None
    component_id: Optional[str] = None
    component_name: Optional[str] = None
    component_icon: Optional[str] = None
    component_rarity: Optional[str] = None
    component_type: Optional[str] = None
    component_value: Optional[float] = None


class RecyclingRow(_Row):
    source_item_id: Optional[str] = None
    quantity: Optional[float] = None
    component_id: Optional[str] = None
    component_name: Optional[str] = None
    component_icon: Optional[str] = None
    component_rarity: Optional[str] = None
    component_type: Optional[str] = None
    component_value: Optional[float] = None


class SourceRow(_Row):
    source_item_id: str
    component_id: Optional[str] = None
    quantity: float = 0
    source_name: Optional[str] = None
    source_icon: Optional[str] = None
    source_rarity: Optional[str] = None
    source_type: Optional[str] = None


class UsedInViewRow(_Row):
    component_id: Optional[str] = None
    quantity: Optional[float] = None
    result_item_id: Optional[str] = None
    result_item_name: Optional[str] = None
    result_item_icon: Optional[str] = None
    result_item_rarity: Optional[str] = None
    result_item_type: Optional[str] = None
    result_item_value: Optional[float] = None


class RepairEconomyRawRow(_Row):
    id: str
    name: Optional[str] = None
    item_type: Optional[str] = None
    rarity: Optional[str] = None
    icon: Optional[str] = None
    max_durability: Any = None
    cheap_threshold: Any = None
    required_item_id: Optional[str] = None
    net_upgrade_cost: Any = None
    cheap_repair_cost: Any = None
    expensive_repair_cost: Any = None
    craft_components: Any = None
    recycle_outputs: Any = None


class RepairProfileRow(_Row):
    item_id: str
    max_durability: float
    step_durability: float
    notes: Optional[str] = None


class RepairRecipeRow(_Row):
    item_id: str
    component_id: Optional[str] = None
    quantity_per_cycle: Optional[float] = None


@dataclass(frozen=True)
class ViewContract:
    relation: str
    select: str
    schema: Type[BaseModel]


def _contract(relation: str, select: str, schema: Type[BaseModel]) -> ViewContract:
    return ViewContract(relation=relation, select=normalize_columns(select), schema=schema)


VIEW_CONTRACTS = {
    "items": _contract("rp_view_items", "id, name, icon, rarity, item_type", ItemListRow),
    "item_detail": _contract(
        "rp_view_items",
        "id, name, description, item_type, rarity, icon, value, workbench, loot_area",
        ItemDetailRow,
    ),
    "data_version": _contract("rp_app_metadata", "id, version, last_synced_at", VersionRow),
    "crafting": _contract(
        "rp_view_crafting_recipes",
        """
        item_id, quantity, component_id, component_name, component_icon,
        component_rarity, component_type, component_value
        """,
        CraftingRow,
    ),
    "recycling": _contract(
        "rp_view_recycling_sources",
        """
        source_item_id, quantity, component_id, component_name, component_icon,
        component_rarity, component_type, component_value
        """,
        RecyclingRow,
    ),
    "sources": _contract(
        "rp_view_recycling_sources_full",
        "source_item_id, component_id, quantity, source_name, source_icon, source_rarity, source_type",
        SourceRow,
    ),
    "used_in": _contract(
        "rp_view_used_in",
        """
        component_id, quantity, result_item_id, result_item_name, result_item_icon,
        result_item_rarity, result_item_type, result_item_value
        """,
        UsedInViewRow,
    ),
    "repair_economy": _contract(
        "rp_view_repairable_items",
        """
        id, name, item_type, rarity, icon, max_durability, cheap_threshold,
        required_item_id, net_upgrade_cost, cheap_repair_cost, expensive_repair_cost,
        craft_components, recycle_outputs
        """,
        RepairEconomyRawRow,
    ),
    "repair_profiles": _contract(
        "rp_repair_profiles", "item_id, max_durability, step_durability, notes", RepairProfileRow
    ),
    "repair_recipes": _contract(
        "rp_repair_recipes", "item_id, component_id, quantity_per_cycle", RepairRecipeRow
    ),
}
