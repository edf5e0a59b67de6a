from typing import Iterable

from sqlmodel import Session, select

from menugen.logging import get_logger
from menugen.storage.models import Client, Component, MealType, MealTypeComponent, Recipe

logger = get_logger(__name__)


def get_clients_by_ids(session: Session, client_ids: Iterable[int]) -> list[Client]:
    ids = list(client_ids)
    if not ids:
        return []
    return list(session.exec(select(Client).where(Client.id.in_(ids), Client.active == True)))  # noqa: E712


def get_meal_types_for_clients(session: Session, client_ids: Iterable[int]) -> list[MealType]:
    ids = list(client_ids)
    if not ids:
        return []
    return list(
        session.exec(
            select(MealType)
            .where(MealType.client_id.in_(ids))
            .order_by(MealType.client_id, MealType.sort_order, MealType.id)
        )
    )


def get_meal_type_components(session: Session, meal_type_ids: Iterable[str]) -> list[MealTypeComponent]:
    ids = list(meal_type_ids)
    if not ids:
        return []
    return list(
        session.exec(
            select(MealTypeComponent)
            .where(MealTypeComponent.meal_type_id.in_(ids))
            .order_by(MealTypeComponent.meal_type_id, MealTypeComponent.id)
        )
    )


def get_components(session: Session) -> dict[int, Component]:
    return {c.id: c for c in session.exec(select(Component))}


def get_active_recipes_by_component(session: Session, component_ids: Iterable[int]) -> dict[int, list[Recipe]]:
    ids = list(component_ids)
    out: dict[int, list[Recipe]] = {cid: [] for cid in ids}
    if not ids:
        return out
    recipes = session.exec(
        select(Recipe)
        .where(Recipe.component_id.in_(ids), Recipe.active == True)  # noqa: E712
        .order_by(Recipe.id)
    )
    for recipe in recipes:
        out[recipe.component_id].append(recipe)
    logger.info(
        "catalog.recipes.loaded components=%s recipes=%s",
        len(ids),
        sum(len(v) for v in out.values()),
    )
    return out
