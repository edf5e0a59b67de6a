"""Constraint model: one immutable, search-ready description of a client's week.

Translates a catalog snapshot plus (start_date, end_date, client ids) into the
ordered list of menus and cells to fill, with the per-cell lookahead tables the
search uses for pruning. Pure: no I/O, nothing is mutated after construction.

Two components linked as a conditional pair share one serving per menu: exactly
one of their cells is filled and the other stays empty (None in the plan).
"""

from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Dict, FrozenSet, Iterable, List, Optional, Sequence, Tuple

from menugen.config import settings
from menugen.errors import InvalidRequest
from menugen.logging import get_logger
from menugen.services.catalog.types import CatalogSnapshot, ClientConstraint, MealType, MenuSlot, Recipe

logger = get_logger(__name__)

_ZERO = Decimal(0)

# group slot_id -> remaining mandatory cells per fit profile of that group
Demand = Tuple[Tuple[str, Tuple[int, ...]], ...]


@dataclass(frozen=True)
class MenuSpec:
    ordinal: int
    date: date
    meal_type: MealType
    slots: Tuple[MenuSlot, ...]  # search order: main slots, then constant slots
    budget: Decimal
    kcal_min: Decimal
    kcal_max: Decimal


@dataclass(frozen=True)
class Cell:
    index: int
    menu_index: int
    slot: MenuSlot
    candidates: Tuple[Optional[Recipe], ...]  # None: leave the cell empty (paired slots only)
    first_in_menu: bool
    last_in_menu: bool
    # Bounds over the slots that follow this one in the same menu.
    rest_min_cost: Decimal
    rest_min_kcal: Decimal
    rest_max_kcal: Decimal
    # Cell index of the conditional partner in the same menu.
    partner_index: Optional[int] = None
    unique_demand: Demand = ()  # mandatory group cells strictly after this one

    @property
    def optional(self) -> bool:
        return self.partner_index is not None

    def counts_as_unique(self, recipe: Recipe) -> bool:
        if self.slot.is_constant:
            return False
        return self.slot.unique or recipe.is_unique


@dataclass(frozen=True)
class ClientModel:
    client: ClientConstraint
    client_ref: object  # id exactly as the caller sent it
    start_date: date
    end_date: date
    menus: Tuple[MenuSpec, ...]
    cells: Tuple[Cell, ...]
    unique_groups: Dict[str, FrozenSet[str]]
    conditional_pairs: Dict[str, FrozenSet[str]]
    # Per group, the distinct sets of its recipes that fit some cell's menu bounds.
    unique_profiles: Dict[str, Tuple[FrozenSet[str], ...]]
    root_demand: Demand
    # Recipes with the same class are interchangeable everywhere in this model.
    recipe_classes: Dict[str, int]

    @property
    def client_id(self) -> str:
        return self.client.client_id


def date_range(start_date: date, end_date: date) -> list[date]:
    return [start_date + timedelta(days=i) for i in range((end_date - start_date).days + 1)]


def validate_dates(start_date: date, end_date: date) -> None:
    if end_date < start_date:
        raise InvalidRequest(f"fecha_fin {end_date} is before fecha_inicio {start_date}")
    days = (end_date - start_date).days + 1
    if days > settings.max_plan_days:
        raise InvalidRequest(f"date range of {days} days exceeds the {settings.max_plan_days}-day limit")


def _ordered_slots(meal_type: MealType) -> Tuple[MenuSlot, ...]:
    return tuple(sorted(meal_type.slots, key=lambda s: (s.is_constant, s.priority, s.slot_id)))


def partner_map(slots: Iterable[MenuSlot]) -> Dict[str, str]:
    """slot_id -> partner slot_id for conditional links inside one meal type."""
    slots = list(slots)
    ids = {s.slot_id for s in slots}
    partners: Dict[str, str] = {}
    for slot in slots:
        if slot.conditional and slot.conditional in ids and slot.conditional != slot.slot_id:
            partners[slot.slot_id] = slot.conditional
            partners[slot.conditional] = slot.slot_id
    return partners


def _candidate_order(slot: MenuSlot, menu_ordinal: int, optional: bool) -> Tuple[Optional[Recipe], ...]:
    """Cheapest first, then kcal, then id. Constant slots rotate by menu ordinal."""
    ordered: List[Optional[Recipe]] = sorted(slot.eligible_recipes, key=lambda r: (r.cost, r.kcal, r.recipe_id))
    if slot.is_constant and ordered:
        shift = menu_ordinal % len(ordered)
        ordered = ordered[shift:] + ordered[:shift]
    if optional:
        ordered.append(None)
    return tuple(ordered)


def _span_bounds(slots: Sequence[MenuSlot], partners: Dict[str, str]) -> Tuple[Decimal, Decimal, Decimal]:
    """(min cost, min kcal, max kcal) of serving `slots`.

    A pair with both members in `slots` is served once; a member whose partner
    lies outside `slots` may end up empty.
    """
    by_id = {s.slot_id: s for s in slots}
    min_cost = min_kcal = max_kcal = _ZERO
    seen = set()
    for slot in slots:
        if slot.slot_id in seen:
            continue
        seen.add(slot.slot_id)
        lo_cost = min(r.cost for r in slot.eligible_recipes)
        lo_kcal = min(r.kcal for r in slot.eligible_recipes)
        hi_kcal = max(r.kcal for r in slot.eligible_recipes)
        partner_id = partners.get(slot.slot_id)
        if partner_id is None:
            min_cost, min_kcal, max_kcal = min_cost + lo_cost, min_kcal + lo_kcal, max_kcal + hi_kcal
        elif partner_id in by_id:
            seen.add(partner_id)
            partner = by_id[partner_id]
            min_cost += min(lo_cost, min(r.cost for r in partner.eligible_recipes))
            min_kcal += min(lo_kcal, min(r.kcal for r in partner.eligible_recipes))
            max_kcal += max(hi_kcal, max(r.kcal for r in partner.eligible_recipes))
        else:
            max_kcal += hi_kcal
    return min_cost, min_kcal, max_kcal


def _scheduled_menus(client: ClientConstraint, days: Sequence[date]) -> list[tuple[date, MealType]]:
    """Every (date, meal type) in range, capped at meals_per_week menus per ISO week."""
    per_week: Dict[Tuple[int, int], int] = {}
    scheduled = []
    for day in days:
        iso = day.isocalendar()
        week_key = (iso[0], iso[1])
        for meal_type in client.meal_types:
            if per_week.get(week_key, 0) >= client.meals_per_week:
                break
            per_week[week_key] = per_week.get(week_key, 0) + 1
            scheduled.append((day, meal_type))
    return scheduled


def _check_client(client: ClientConstraint) -> None:
    if not client.meal_types:
        raise InvalidRequest(f"client {client.client_id} has no menu types configured")
    for meal_type in client.meal_types:
        if not meal_type.slots:
            raise InvalidRequest(f"menu type {meal_type.name!r} of client {client.client_id} has no components")
        for slot in meal_type.slots:
            if not slot.eligible_recipes:
                raise InvalidRequest(
                    f"component {slot.name!r} of menu type {meal_type.name!r} "
                    f"(client {client.client_id}) has no eligible recipes"
                )


def build_constraint_model(
    snapshot: CatalogSnapshot,
    client_ref,
    start_date: date,
    end_date: date,
) -> ClientModel:
    validate_dates(start_date, end_date)
    client = snapshot.get(client_ref)
    if client is None:
        raise InvalidRequest(f"unknown client {client_ref}")
    _check_client(client)

    menus: list[MenuSpec] = []
    for ordinal, (day, meal_type) in enumerate(_scheduled_menus(client, date_range(start_date, end_date))):
        menus.append(
            MenuSpec(
                ordinal=ordinal,
                date=day,
                meal_type=meal_type,
                slots=_ordered_slots(meal_type),
                budget=meal_type.budget_per_menu if meal_type.budget_per_menu is not None else client.budget_per_menu,
                kcal_min=meal_type.kcal_min if meal_type.kcal_min is not None else client.kcal_min,
                kcal_max=meal_type.kcal_max if meal_type.kcal_max is not None else client.kcal_max,
            )
        )

    raw_cells = []
    for menu in menus:
        slots = menu.slots
        partners = partner_map(slots)
        start = len(raw_cells)
        position_of = {s.slot_id: start + pos for pos, s in enumerate(slots)}
        for pos, slot in enumerate(slots):
            rest_min_cost, rest_min_kcal, rest_max_kcal = _span_bounds(slots[pos + 1:], partners)
            partner_id = partners.get(slot.slot_id)
            others = [s for s in slots if s.slot_id not in (slot.slot_id, partner_id)]
            raw_cells.append(
                dict(
                    menu_index=menu.ordinal,
                    slot=slot,
                    candidates=_candidate_order(slot, menu.ordinal, partner_id is not None),
                    first_in_menu=pos == 0,
                    last_in_menu=pos == len(slots) - 1,
                    rest_min_cost=rest_min_cost,
                    rest_min_kcal=rest_min_kcal,
                    rest_max_kcal=rest_max_kcal,
                    partner_index=position_of[partner_id] if partner_id is not None else None,
                    _others=_span_bounds(others, partners),
                )
            )

    unique_groups = _unique_groups(raw_cells)
    profiles, cell_profiles = _fit_profiles(raw_cells, menus, unique_groups)
    demands, root_demand = _demands(raw_cells, unique_groups, profiles, cell_profiles)

    cells = []
    for index, raw in enumerate(raw_cells):
        raw.pop("_others")
        cells.append(Cell(index=index, unique_demand=demands[index], **raw))

    model = ClientModel(
        client=client,
        client_ref=client_ref,
        start_date=start_date,
        end_date=end_date,
        menus=tuple(menus),
        cells=tuple(cells),
        unique_groups=unique_groups,
        conditional_pairs=_conditional_pairs(client.meal_types),
        unique_profiles=profiles,
        root_demand=root_demand,
        recipe_classes=_recipe_classes(menus),
    )
    logger.info(
        "constraints.built client=%s menus=%s cells=%s unique_groups=%s pairs=%s",
        client.client_id,
        len(model.menus),
        len(model.cells),
        len(unique_groups),
        len(model.conditional_pairs),
    )
    return model


def _group_key(raw_cell: dict) -> Optional[str]:
    """Slot id when every recipe the cell can take is unique, else None."""
    slot: MenuSlot = raw_cell["slot"]
    if slot.is_constant:
        return None
    if slot.unique or all(r.is_unique for r in slot.eligible_recipes):
        return slot.slot_id
    return None


def _unique_groups(raw_cells: Iterable[dict]) -> Dict[str, FrozenSet[str]]:
    groups: Dict[str, set] = {}
    for raw in raw_cells:
        key = _group_key(raw)
        if key is not None:
            groups.setdefault(key, set()).update(r.recipe_id for r in raw["slot"].eligible_recipes)
    return {k: frozenset(v) for k, v in sorted(groups.items())}


def _fit_profiles(raw_cells, menus, unique_groups):
    """Which group recipes could fill each mandatory group cell given its menu's bounds."""
    profiles: Dict[str, List[FrozenSet[str]]] = {g: [] for g in unique_groups}
    cell_profiles: Dict[int, int] = {}
    for index, raw in enumerate(raw_cells):
        group = _group_key(raw)
        if group is None or raw["partner_index"] is not None:
            continue
        menu = menus[raw["menu_index"]]
        other_cost, other_min_kcal, other_max_kcal = raw["_others"]
        fit = frozenset(
            r.recipe_id
            for r in raw["slot"].eligible_recipes
            if r.cost + other_cost <= menu.budget
            and r.kcal + other_min_kcal <= menu.kcal_max
            and r.kcal + other_max_kcal >= menu.kcal_min
        )
        if fit not in profiles[group]:
            profiles[group].append(fit)
        cell_profiles[index] = profiles[group].index(fit)
    return {g: tuple(p) for g, p in profiles.items()}, cell_profiles


def _demands(raw_cells, unique_groups, profiles, cell_profiles) -> Tuple[List[Demand], Demand]:
    counts = {g: [0] * len(profiles[g]) for g in unique_groups}

    def snapshot() -> Demand:
        return tuple((g, tuple(counts[g])) for g in unique_groups)

    demands: List[Demand] = [()] * len(raw_cells)
    for index in range(len(raw_cells) - 1, -1, -1):
        demands[index] = snapshot()
        if index in cell_profiles:
            counts[_group_key(raw_cells[index])][cell_profiles[index]] += 1
    return demands, snapshot()


def _recipe_classes(menus: Sequence[MenuSpec]) -> Dict[str, int]:
    recipes: Dict[str, Recipe] = {}
    eligible_in: Dict[str, set] = {}
    for menu in menus:
        for slot in menu.slots:
            for recipe in slot.eligible_recipes:
                recipes[recipe.recipe_id] = recipe
                eligible_in.setdefault(recipe.recipe_id, set()).add(slot.slot_id)
    signatures: Dict[tuple, int] = {}
    classes = {}
    for rid in sorted(recipes):
        r = recipes[rid]
        signature = (r.cost, r.kcal, r.is_unique, r.conditional_pair_id, frozenset(eligible_in[rid]))
        classes[rid] = signatures.setdefault(signature, len(signatures))
    return classes


def _conditional_pairs(meal_types: Iterable[MealType]) -> Dict[str, FrozenSet[str]]:
    pairs: Dict[str, set] = {}
    for meal_type in meal_types:
        for slot in meal_type.slots:
            for recipe in slot.eligible_recipes:
                if recipe.conditional_pair_id:
                    pairs.setdefault(recipe.conditional_pair_id, set()).add(recipe.recipe_id)
    return {k: frozenset(v) for k, v in sorted(pairs.items())}


def build_request_models(
    snapshot: CatalogSnapshot,
    client_refs: Sequence,
    start_date: date,
    end_date: date,
) -> list[ClientModel]:
    """One model per distinct client, in request order."""
    validate_dates(start_date, end_date)
    if not client_refs:
        raise InvalidRequest("at least one client is required")
    seen = set()
    models = []
    for ref in client_refs:
        if str(ref) in seen:
            logger.info("constraints.duplicate_client client=%s skipped", ref)
            continue
        seen.add(str(ref))
        models.append(build_constraint_model(snapshot, ref, start_date, end_date))
    return models
