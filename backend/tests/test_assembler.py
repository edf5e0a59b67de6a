from datetime import date

from factories import client, meal_type, paired_client, recipe, scenario_client, slot, weekly_client
from menugen.services.catalog.types import CatalogSnapshot
from menugen.services.planning.assembler import assemble_client, assemble_plan
from menugen.services.planning.constraints import build_constraint_model
from menugen.services.planning.search import LIMIT_REACHED, search_client_plan

MONDAY = date(2024, 3, 4)


def _solved(c, client_ref=None, end=date(2024, 3, 5)):
    model = build_constraint_model(CatalogSnapshot(clients={c.client_id: c}), client_ref or c.client_id, MONDAY, end)
    return model, search_client_plan(model)


def test_menu_entry_shape_and_totals():
    model, result = _solved(scenario_client())
    entry = assemble_client(model, result)
    assert entry["estado"] == "satisfied"
    assert "motivo" not in entry
    first = entry["menus"][0]
    assert first["fecha"] == "2024-03-04"
    assert first["tipo_menu"] == "almuerzo"
    assert first["tipo_menu_nombre"] == "Almuerzo"
    assert [c["componente_nombre"] for c in first["componentes"]] == ["FONDO", "REFRESCO"]
    assert first["componentes"][0]["receta_nombre"] == "Lomo saltado"
    assert first["costo_total"] == 10.0
    assert first["kilocalorias_total"] == 700.0


def test_unico_flag_follows_recipe_and_slot():
    fondo = slot("8", [recipe("f1", 5, 600, is_unique=True), recipe("f2", 5, 610, is_unique=True)], name="FONDO")
    postre = slot("6", [recipe("p1", 1, 90, is_unique=True)], name="POSTRE", is_constant=True)
    model, result = _solved(client(1, [meal_type("almuerzo", [fondo, postre])]))
    flags = [c["unico"] for c in assemble_client(model, result)["menus"][0]["componentes"]]
    assert flags == [True, False]


def test_costs_rounded_to_cents():
    fondo = slot("8", [recipe("f1", "5.005", "600.333")], name="FONDO")
    model, result = _solved(client(1, [meal_type("almuerzo", [fondo])]), end=MONDAY)
    menu = assemble_client(model, result)["menus"][0]
    assert menu["costo_total"] == 5.01
    assert menu["kilocalorias_total"] == 600.33


def test_infeasible_client_keeps_reason_and_no_menus():
    fondo = slot("8", [recipe("f1", 50, 600)], name="FONDO")
    model, result = _solved(client(1, [meal_type("almuerzo", [fondo])]))
    entry = assemble_client(model, result)
    assert entry["estado"] == "infeasible"
    assert entry["menus"] == []
    assert "FONDO" in entry["motivo"]


def test_plan_keeps_request_order_and_client_ref():
    feasible = scenario_client("7")
    broke = client(3, [meal_type("almuerzo", [slot("8", [recipe("f1", 50, 600)], name="FONDO")])])
    snapshot = CatalogSnapshot(clients={feasible.client_id: feasible, broke.client_id: broke})
    models = [
        build_constraint_model(snapshot, 3, MONDAY, MONDAY),
        build_constraint_model(snapshot, "7", MONDAY, MONDAY),
    ]
    document = assemble_plan(models, [search_client_plan(m) for m in models])
    assert document["status"] == "success"
    assert [e["cliente_id"] for e in document["plan"]] == [3, "7"]
    assert [e["estado"] for e in document["plan"]] == ["infeasible", "satisfied"]


def test_unserved_pair_member_is_left_out_and_premium_carried():
    model, result = _solved(paired_client(), end=date(2024, 3, 10))
    menus = assemble_client(model, result)["menus"]
    first, last = menus[0], menus[-1]
    assert [c["componente_nombre"] for c in first["componentes"]] == ["FONDO", "ENTRADA", "REFRESCO"]
    assert [c["componente_nombre"] for c in last["componentes"]] == ["FONDO", "SOPA", "REFRESCO"]
    assert [c["premium"] for c in first["componentes"]] == [True, False, False]
    # the empty cell adds nothing to the totals
    assert first["costo_total"] == 8.0
    assert last["kilocalorias_total"] == 750.0


def test_search_limit_is_its_own_estado():
    model = build_constraint_model(CatalogSnapshot(clients={"1": weekly_client()}), 1, MONDAY, date(2024, 3, 10))
    result = search_client_plan(model, max_steps=2)
    assert result.status == LIMIT_REACHED
    entry = assemble_client(model, result)
    assert entry["estado"] == "limit_reached"
    assert entry["menus"] == []
    assert "search limit" in entry["motivo"]
