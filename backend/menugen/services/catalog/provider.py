"""Catalog providers: the read-only source of clients, menu types, slots and recipes.

A provider is called once per generation request; everything the search needs
is copied into immutable dataclasses so the hot loop never touches the DB.
"""

from decimal import Decimal, InvalidOperation
from typing import Callable, Iterable, Optional

from sqlmodel import Session

from menugen.config import settings
from menugen.errors import EngineFault
from menugen.logging import get_logger
from menugen.services.catalog.types import CatalogSnapshot, ClientConstraint, MealType, MenuSlot, Recipe
from menugen.storage import models
from menugen.storage.repositories import (
    get_active_recipes_by_component,
    get_clients_by_ids,
    get_components,
    get_meal_type_components,
    get_meal_types_for_clients,
)

logger = get_logger(__name__)


def to_decimal(value, field_name: str) -> Decimal:
    if value is None:
        raise EngineFault(f"catalog field {field_name} is missing")
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise EngineFault(f"catalog field {field_name} is not numeric: {value!r}") from exc


def _optional_decimal(value, field_name: str) -> Optional[Decimal]:
    return None if value is None else to_decimal(value, field_name)


def is_constant_slot_name(name: str) -> bool:
    wanted = {n.strip().upper() for n in settings.constant_slot_names}
    return name.strip().upper() in wanted


def validate_client(client: ClientConstraint) -> None:
    """Reject catalog data the search cannot reason about."""
    if client.meals_per_week <= 0:
        raise EngineFault(f"client {client.client_id}: meals_per_week must be > 0")
    if client.budget_per_menu < 0:
        raise EngineFault(f"client {client.client_id}: negative budget_per_menu")
    if client.kcal_min > client.kcal_max:
        raise EngineFault(f"client {client.client_id}: kcal_min > kcal_max")
    for meal_type in client.meal_types:
        lo = meal_type.kcal_min if meal_type.kcal_min is not None else client.kcal_min
        hi = meal_type.kcal_max if meal_type.kcal_max is not None else client.kcal_max
        if lo > hi:
            raise EngineFault(f"meal type {meal_type.meal_type_id}: kcal_min > kcal_max")
        if meal_type.budget_per_menu is not None and meal_type.budget_per_menu < 0:
            raise EngineFault(f"meal type {meal_type.meal_type_id}: negative price")
        _validate_pairs(meal_type)
        for slot in meal_type.slots:
            for recipe in slot.eligible_recipes:
                if recipe.cost < 0 or recipe.kcal < 0:
                    raise EngineFault(f"recipe {recipe.recipe_id}: negative cost or kcal")


def _validate_pairs(meal_type: MealType) -> None:
    """Conditional links must stay inside the meal type and pair each slot with one partner."""
    ids = {s.slot_id for s in meal_type.slots}
    partner_of: dict = {}
    for slot in meal_type.slots:
        if slot.conditional is None:
            continue
        if slot.conditional not in ids or slot.conditional == slot.slot_id:
            raise EngineFault(
                f"meal type {meal_type.meal_type_id}: component {slot.name} has conditional partner "
                f"{slot.conditional} outside the meal type"
            )
        for a, b in ((slot.slot_id, slot.conditional), (slot.conditional, slot.slot_id)):
            if partner_of.setdefault(a, b) != b:
                raise EngineFault(f"meal type {meal_type.meal_type_id}: component {a} is in two conditional pairs")


class CatalogProvider:
    def load(self, client_ids: Iterable) -> CatalogSnapshot:
        raise NotImplementedError


class InMemoryCatalogProvider(CatalogProvider):
    """Serves a fixed set of clients; used by tests and embedded callers."""

    def __init__(self, clients: Iterable[ClientConstraint]):
        self._clients = {c.client_id: c for c in clients}

    def load(self, client_ids: Iterable) -> CatalogSnapshot:
        found = {}
        for cid in client_ids:
            client = self._clients.get(str(cid))
            if client is not None:
                validate_client(client)
                found[client.client_id] = client
        return CatalogSnapshot(clients=found)


class SqlCatalogProvider(CatalogProvider):
    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def load(self, client_ids: Iterable) -> CatalogSnapshot:
        numeric_ids = []
        for cid in client_ids:
            try:
                numeric_ids.append(int(cid))
            except (TypeError, ValueError):
                logger.warning("catalog.client_id.non_numeric id=%r", cid)
        with self._session_factory() as session:
            rows = get_clients_by_ids(session, numeric_ids)
            meal_types = get_meal_types_for_clients(session, [c.id for c in rows])
            links = get_meal_type_components(session, [m.id for m in meal_types])
            components = get_components(session)
            recipes = get_active_recipes_by_component(session, {link.component_id for link in links})

        links_by_meal_type: dict[str, list[models.MealTypeComponent]] = {}
        for link in links:
            links_by_meal_type.setdefault(link.meal_type_id, []).append(link)
        meal_types_by_client: dict[int, list[models.MealType]] = {}
        for mt in meal_types:
            meal_types_by_client.setdefault(mt.client_id, []).append(mt)

        clients = {}
        for row in rows:
            built_types = []
            for mt in meal_types_by_client.get(row.id, []):
                slots = []
                mt_links = links_by_meal_type.get(mt.id, [])
                component_of_link = {link.id: str(link.component_id) for link in mt_links}
                for position, link in enumerate(mt_links):
                    component = components.get(link.component_id)
                    if component is None:
                        raise EngineFault(f"meal type {mt.id} references unknown component {link.component_id}")
                    is_constant = (
                        component.is_constant
                        if component.is_constant is not None
                        else is_constant_slot_name(component.name)
                    )
                    slots.append(
                        MenuSlot(
                            slot_id=str(component.id),
                            name=component.name,
                            eligible_recipes=tuple(
                                _recipe_from_row(r) for r in recipes.get(component.id, [])
                            ),
                            is_constant=is_constant,
                            unique=link.unique,
                            priority=position,
                            premium=link.premium,
                            conditional=_partner_slot(mt.id, link, component_of_link),
                        )
                    )
                built_types.append(
                    MealType(
                        meal_type_id=mt.id,
                        name=mt.name,
                        slots=tuple(slots),
                        budget_per_menu=_optional_decimal(mt.price, "mealtype.price"),
                        kcal_min=_optional_decimal(mt.kcal_min, "mealtype.kcal_min"),
                        kcal_max=_optional_decimal(mt.kcal_max, "mealtype.kcal_max"),
                    )
                )
            client = ClientConstraint(
                client_id=str(row.id),
                name=row.name,
                meals_per_week=row.meals_per_week,
                budget_per_menu=to_decimal(row.budget_per_menu, "client.budget_per_menu"),
                kcal_min=to_decimal(row.kcal_min, "client.kcal_min"),
                kcal_max=to_decimal(row.kcal_max, "client.kcal_max"),
                meal_types=tuple(built_types),
                meat_preferences=dict(row.meat_preferences or {}),
            )
            validate_client(client)
            clients[client.client_id] = client
        logger.info("catalog.load requested=%s found=%s", len(numeric_ids), len(clients))
        return CatalogSnapshot(clients=clients)


def _recipe_from_row(row: models.Recipe) -> Recipe:
    return Recipe(
        recipe_id=row.id,
        name=row.name,
        cost=to_decimal(row.cost, f"recipe[{row.id}].cost"),
        kcal=to_decimal(row.kcal, f"recipe[{row.id}].kcal"),
        is_unique=row.is_unique,
        conditional_pair_id=row.conditional_pair_id,
        category=str(row.component_id),
    )


def _partner_slot(meal_type_id: str, link: models.MealTypeComponent, component_of_link: dict) -> Optional[str]:
    if link.condicional is None:
        return None
    partner = component_of_link.get(link.condicional)
    if partner is None:
        raise EngineFault(
            f"meal type {meal_type_id}: conditional link {link.id} points to {link.condicional}, "
            "which is not a component of the same meal type"
        )
    return partner
