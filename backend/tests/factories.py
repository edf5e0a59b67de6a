"""Builders for catalog fixtures shared by the tests."""

from decimal import Decimal

from sqlmodel import Session

from menugen.services.catalog.types import ClientConstraint, MealType, MenuSlot, Recipe
from menugen.storage import models


def recipe(recipe_id, cost, kcal, name=None, **kwargs) -> Recipe:
    return Recipe(
        recipe_id=str(recipe_id),
        name=name or f"Receta {recipe_id}",
        cost=Decimal(str(cost)),
        kcal=Decimal(str(kcal)),
        **kwargs,
    )


def slot(slot_id, recipes, name=None, **kwargs) -> MenuSlot:
    return MenuSlot(slot_id=str(slot_id), name=name or str(slot_id), eligible_recipes=tuple(recipes), **kwargs)


def meal_type(meal_type_id, slots, name="Almuerzo", **kwargs) -> MealType:
    return MealType(meal_type_id=meal_type_id, name=name, slots=tuple(slots), **kwargs)


def client(client_id, meal_types, budget=20, kcal_min=500, kcal_max=900, meals_per_week=7, name=None) -> ClientConstraint:
    return ClientConstraint(
        client_id=str(client_id),
        name=name or f"Cliente {client_id}",
        meals_per_week=meals_per_week,
        budget_per_menu=Decimal(str(budget)),
        kcal_min=Decimal(str(kcal_min)),
        kcal_max=Decimal(str(kcal_max)),
        meal_types=tuple(meal_types),
    )


def scenario_client(client_id="1") -> ClientConstraint:
    """Budget 20, kcal 500-900, FONDO with a cost-8 and a cost-25 recipe."""
    fondo = slot(
        "8",
        [recipe("f-cheap", 8, 600, name="Lomo saltado"), recipe("f-pricey", 25, 650, name="Cabrito")],
        name="FONDO",
    )
    refresco = slot("5", [recipe("r1", 2, 100, name="Chicha morada")], name="REFRESCO", is_constant=True)
    return client(client_id, [meal_type("almuerzo", [fondo, refresco])])


def weekly_client(client_id="1", meals_per_week=7) -> ClientConstraint:
    """A realistic lunch menu: unique mains, a soup/entrada pair and constant extras."""
    fondos = [recipe(f"f{i}", 6 + i % 3, 450 + 20 * i, name=f"Fondo {i}", is_unique=True) for i in range(1, 10)]
    entradas = [
        recipe("e1", 2, 120, name="Causa", conditional_pair_id="entrada-sopa"),
        recipe("e2", 3, 150, name="Papa a la huancaína"),
    ]
    sopas = [
        recipe("s1", 2, 110, name="Sopa criolla", conditional_pair_id="entrada-sopa"),
        recipe("s2", 3, 130, name="Aguadito"),
    ]
    postres = [recipe("p1", 1, 90, name="Mazamorra"), recipe("p2", 1.5, 80, name="Arroz con leche")]
    refrescos = [recipe("r1", 1, 60, name="Chicha morada"), recipe("r2", 1, 50, name="Maracuyá")]
    slots = [
        slot("8", fondos, name="FONDO", priority=0),
        slot("2", entradas, name="ENTRADA", priority=1),
        slot("3", sopas, name="SOPA", priority=2),
        slot("6", postres, name="POSTRE", is_constant=True, priority=3),
        slot("5", refrescos, name="REFRESCO", is_constant=True, priority=4),
    ]
    return client(
        client_id,
        [meal_type("almuerzo", slots)],
        budget=20,
        kcal_min=700,
        kcal_max=1200,
        meals_per_week=meals_per_week,
    )


def paired_client(client_id="1") -> ClientConstraint:
    """ENTRADA and SOPA linked as a conditional pair; three unique entradas, so SOPA fills the rest."""
    fondo = slot("8", [recipe("f1", 5, 600, name="Lomo saltado")], name="FONDO", premium=True, priority=0)
    entradas = [recipe(f"e{i}", 2, 120, name=f"Entrada {i}") for i in range(1, 4)]
    entrada = slot("2", entradas, name="ENTRADA", unique=True, conditional="3", priority=1)
    sopa = slot("3", [recipe("s1", 1, 100, name="Sopa criolla")], name="SOPA", conditional="2", priority=2)
    refresco = slot("5", [recipe("r1", 1, 50, name="Chicha morada")], name="REFRESCO", is_constant=True, priority=3)
    return client(client_id, [meal_type("almuerzo", [fondo, entrada, sopa, refresco])])


def seed_catalog(session: Session) -> None:
    """Rows for the SQL catalog: client 1 feasible, 2 has an empty slot, 3 is over budget."""
    session.add_all(
        [
            models.Component(id=8, name="FONDO"),
            models.Component(id=2, name="ENTRADA"),
            models.Component(id=3, name="SOPA"),
            models.Component(id=6, name="POSTRE"),
            models.Component(id=5, name="REFRESCO"),
        ]
    )
    session.add_all(
        [
            models.Client(id=1, name="Minera Norte", budget_per_menu=20, kcal_min=500, kcal_max=900),
            models.Client(id=2, name="Colegio Sur", budget_per_menu=20, kcal_min=500, kcal_max=900),
            models.Client(id=3, name="Oficina Centro", budget_per_menu=5, kcal_min=500, kcal_max=900),
        ]
    )
    session.commit()
    session.add_all(
        [
            models.MealType(id="almuerzo-1", client_id=1, name="Almuerzo"),
            models.MealType(id="almuerzo-2", client_id=2, name="Almuerzo"),
            models.MealType(id="almuerzo-3", client_id=3, name="Almuerzo"),
            models.Recipe(id="f-cheap", name="Lomo saltado", component_id=8, cost=8, kcal=600),
            models.Recipe(id="f-pricey", name="Cabrito", component_id=8, cost=25, kcal=650),
            models.Recipe(id="e1", name="Causa", component_id=2, cost=3, kcal=100),
            models.Recipe(id="e2", name="Ocopa", component_id=2, cost=4, kcal=150),
            models.Recipe(id="p1", name="Mazamorra", component_id=6, cost=2, kcal=80),
            models.Recipe(id="p2", name="Arroz con leche", component_id=6, cost=2.5, kcal=90),
            models.Recipe(id="r1", name="Chicha morada", component_id=5, cost=1, kcal=50),
            models.Recipe(id="inactive", name="Retirado", component_id=8, cost=1, kcal=700, active=False),
        ]
    )
    session.commit()
    session.add_all(
        [
            models.MealTypeComponent(meal_type_id="almuerzo-1", component_id=8),
            models.MealTypeComponent(meal_type_id="almuerzo-1", component_id=2, unique=False),
            models.MealTypeComponent(meal_type_id="almuerzo-1", component_id=6),
            models.MealTypeComponent(meal_type_id="almuerzo-1", component_id=5),
            models.MealTypeComponent(meal_type_id="almuerzo-2", component_id=8),
            models.MealTypeComponent(meal_type_id="almuerzo-2", component_id=3),  # SOPA has no recipes
            models.MealTypeComponent(meal_type_id="almuerzo-3", component_id=8),
        ]
    )
    session.commit()
