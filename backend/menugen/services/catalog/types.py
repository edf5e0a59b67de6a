from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Optional, Tuple


@dataclass(frozen=True)
class Recipe:
    recipe_id: str
    name: str
    cost: Decimal
    kcal: Decimal
    is_unique: bool = False
    conditional_pair_id: Optional[str] = None
    category: Optional[str] = None


@dataclass(frozen=True)
class MenuSlot:
    slot_id: str
    name: str
    eligible_recipes: Tuple[Recipe, ...]
    is_constant: bool = False
    unique: bool = False  # "único" on the menu component: every recipe in the slot counts as unique
    priority: int = 0
    premium: bool = False
    # slot_id of the partner component; exactly one of the two is served per menu
    conditional: Optional[str] = None


@dataclass(frozen=True)
class MealType:
    meal_type_id: str
    name: str
    slots: Tuple[MenuSlot, ...]
    # Menu-type overrides of the client defaults (price and kcal set per tipo de menú).
    budget_per_menu: Optional[Decimal] = None
    kcal_min: Optional[Decimal] = None
    kcal_max: Optional[Decimal] = None


@dataclass(frozen=True)
class ClientConstraint:
    client_id: str
    name: str
    meals_per_week: int
    budget_per_menu: Decimal
    kcal_min: Decimal
    kcal_max: Decimal
    meal_types: Tuple[MealType, ...] = ()
    meat_preferences: Dict[str, int] = field(default_factory=dict, hash=False, compare=False)


@dataclass(frozen=True)
class CatalogSnapshot:
    clients: Dict[str, ClientConstraint] = field(hash=False)

    def get(self, client_id) -> Optional[ClientConstraint]:
        return self.clients.get(str(client_id))
