"""Project search results into the plan document the dashboard consumes."""

from decimal import ROUND_HALF_UP, Decimal
from typing import Sequence

from menugen.services.planning.constraints import ClientModel
from menugen.services.planning.search import ClientPlanResult

_CENTS = Decimal("0.01")


def _money(value: Decimal) -> float:
    return float(value.quantize(_CENTS, rounding=ROUND_HALF_UP))


def assemble_client(model: ClientModel, result: ClientPlanResult) -> dict:
    entry = {
        "cliente_id": model.client_ref,
        "cliente_nombre": model.client.name,
        "estado": result.status,
        "menus": [],
    }
    if not result.satisfied:
        entry["motivo"] = result.reason
        return entry

    menus = [
        {
            "fecha": menu.date.isoformat(),
            "tipo_menu": menu.meal_type.meal_type_id,
            "tipo_menu_nombre": menu.meal_type.name,
            "componentes": [],
            "costo_total": Decimal(0),
            "kilocalorias_total": Decimal(0),
        }
        for menu in model.menus
    ]
    for cell, recipe in zip(model.cells, result.recipes):
        if recipe is None:
            continue  # the partner of a conditional pair was served instead
        menu = menus[cell.menu_index]
        menu["componentes"].append(
            {
                "componente_id": cell.slot.slot_id,
                "componente_nombre": cell.slot.name,
                "receta_id": recipe.recipe_id,
                "receta_nombre": recipe.name,
                "unico": cell.counts_as_unique(recipe),
                "premium": cell.slot.premium,
            }
        )
        menu["costo_total"] += recipe.cost
        menu["kilocalorias_total"] += recipe.kcal
    for menu in menus:
        menu["costo_total"] = _money(menu["costo_total"])
        menu["kilocalorias_total"] = _money(menu["kilocalorias_total"])
    entry["menus"] = menus
    return entry


def assemble_plan(models: Sequence[ClientModel], results: Sequence[ClientPlanResult]) -> dict:
    """Plan document in request order. Infeasible clients are marked per entry, not at the top."""
    by_client = {r.client_id: r for r in results}
    plan = [assemble_client(model, by_client[model.client_id]) for model in models]
    return {"status": "success", "plan": plan}
