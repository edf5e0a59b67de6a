"""Backtracking plan search for one client.

The search walks the model's cells in order and keeps an explicit stack of
frames. Each frame pairs an immutable SearchState (what has been assigned on
this branch) with the position of the next candidate to try for the frame's
cell, so backtracking is just popping a frame; no state is ever undone in place.

Pruning applied before a candidate is accepted:
  * unique recipes already used by this client (constant slots exempt)
  * a second member of the same conditional pair in one menu
  * both or neither slot of a conditional component pair served
  * menu cost + cheapest fill of the rest of the menu above budget
  * menu kcal that can no longer land inside [kcal_min, kcal_max]
  * all-unique slot groups whose unused recipes can no longer cover the
    remaining cells they fit (Hall's condition over the fit profiles)

A candidate interchangeable with one already tried at the same frame is
skipped: its subtree is a mirror image of one that already failed.
"""

from dataclasses import dataclass
from decimal import Decimal
from itertools import combinations
from typing import Callable, FrozenSet, List, NamedTuple, Optional, Tuple

from menugen.config import settings
from menugen.errors import EngineFault, SearchCancelled
from menugen.logging import get_logger
from menugen.services.catalog.types import Recipe
from menugen.services.planning.constraints import Cell, ClientModel, Demand

logger = get_logger(__name__)

SATISFIED = "satisfied"
INFEASIBLE = "infeasible"
LIMIT_REACHED = "limit_reached"  # step budget spent before the search could decide

_ZERO = Decimal(0)
_EMPTY: FrozenSet[str] = frozenset()
# Above this many fit profiles only single profiles and their union are checked.
_MAX_EXACT_PROFILES = 6


@dataclass(frozen=True)
class SearchState:
    index: int = 0
    recipes: Tuple[Optional[Recipe], ...] = ()
    used_main: FrozenSet[str] = _EMPTY  # every recipe placed in a non-constant slot
    consumed: FrozenSet[str] = _EMPTY  # recipes placed where they count as unique
    menu_cost: Decimal = _ZERO
    menu_kcal: Decimal = _ZERO
    menu_pairs: FrozenSet[str] = _EMPTY


class _Frame(NamedTuple):
    state: SearchState
    next_candidate: int
    tried: FrozenSet[tuple] = frozenset()


@dataclass(frozen=True)
class ClientPlanResult:
    client_id: str
    status: str
    recipes: Tuple[Optional[Recipe], ...] = ()
    reason: Optional[str] = None
    steps: int = 0

    @property
    def satisfied(self) -> bool:
        return self.status == SATISFIED


def _profile_subsets(active: List[int]):
    if len(active) <= _MAX_EXACT_PROFILES:
        for size in range(1, len(active) + 1):
            yield from combinations(active, size)
    else:
        for i in active:
            yield (i,)
        yield tuple(active)


def short_group(model: ClientModel, demand: Demand, used: FrozenSet[str]) -> Optional[str]:
    """First unique group whose unused recipes cannot cover its remaining cells."""
    for group_id, counts in demand:
        active = [i for i, n in enumerate(counts) if n]
        if not active:
            continue
        profiles = model.unique_profiles[group_id]
        for subset in _profile_subsets(active):
            need = sum(counts[i] for i in subset)
            available = frozenset().union(*(profiles[i] for i in subset)) - used
            if len(available) < need:
                return group_id
    return None


def _symmetry_key(model: ClientModel, state: SearchState, recipe: Optional[Recipe]) -> tuple:
    if recipe is None:
        return ("empty",)
    rid = recipe.recipe_id
    return (model.recipe_classes[rid], rid in state.used_main, rid in state.consumed)


def _extend(model: ClientModel, cell: Cell, state: SearchState, recipe: Optional[Recipe]) -> Optional[SearchState]:
    """Child state with `recipe` placed in `cell`, or None if a constraint rules it out."""
    menu = model.menus[cell.menu_index]
    if cell.first_in_menu:
        cost, kcal, pairs = _ZERO, _ZERO, _EMPTY
    else:
        cost, kcal, pairs = state.menu_cost, state.menu_kcal, state.menu_pairs

    if cell.partner_index is not None and cell.partner_index < cell.index:
        partner_served = state.recipes[cell.partner_index] is not None
        if partner_served == (recipe is not None):
            return None
    elif recipe is None and cell.partner_index is None:
        return None

    used_main, consumed = state.used_main, state.consumed
    if recipe is not None:
        rid = recipe.recipe_id
        if not cell.slot.is_constant:
            unique = cell.counts_as_unique(recipe)
            if unique and rid in used_main:
                return None
            if not unique and rid in consumed:
                return None
            used_main = used_main | {rid}
            if unique:
                consumed = consumed | {rid}

        pair_id = recipe.conditional_pair_id
        if pair_id:
            if pair_id in pairs:
                return None
            pairs = pairs | {pair_id}

        cost = cost + recipe.cost
        kcal = kcal + recipe.kcal

    if cost + cell.rest_min_cost > menu.budget:
        return None
    if kcal + cell.rest_min_kcal > menu.kcal_max:
        return None
    if kcal + cell.rest_max_kcal < menu.kcal_min:
        return None

    if used_main is not state.used_main and short_group(model, cell.unique_demand, used_main) is not None:
        return None

    return SearchState(
        index=state.index + 1,
        recipes=state.recipes + (recipe,),
        used_main=used_main,
        consumed=consumed,
        menu_cost=cost,
        menu_kcal=kcal,
        menu_pairs=pairs,
    )


def _describe_cell(model: ClientModel, index: int) -> str:
    cell = model.cells[index]
    menu = model.menus[cell.menu_index]
    return f"{cell.slot.name} on {menu.date.isoformat()} ({menu.meal_type.name})"


def _group_name(model: ClientModel, group_id: str) -> str:
    for cell in model.cells:
        if cell.slot.slot_id == group_id:
            return cell.slot.name
    return group_id


def search_client_plan(
    model: ClientModel,
    *,
    max_steps: Optional[int] = None,
    should_stop: Optional[Callable[[], bool]] = None,
    check_every: Optional[int] = None,
) -> ClientPlanResult:
    """Assign a recipe to every cell of `model`, or report the client infeasible.

    `max_steps` bounds the number of candidates evaluated; reaching it ends the
    search with LIMIT_REACHED, which is not a proof of infeasibility.
    `should_stop` is polled every `check_every` steps and raises
    SearchCancelled when it returns True.
    """
    limit = settings.solver_max_steps if max_steps is None else max_steps
    check_every = check_every or settings.solver_cancel_check_every
    cells = model.cells
    total = len(cells)

    short = short_group(model, model.root_demand, _EMPTY)
    if short is not None:
        reason = f"not enough distinct recipes for unique component {_group_name(model, short)}"
        logger.info("search.infeasible client=%s steps=0 reason=%s", model.client_id, reason)
        return ClientPlanResult(model.client_id, INFEASIBLE, reason=reason)

    stack: List[_Frame] = [_Frame(SearchState(), 0)]
    steps = 0
    deepest_failure = -1

    while stack:
        state, position, tried = stack[-1]
        if state.index == total:
            violations = check_plan(model, state.recipes)
            if violations:
                raise EngineFault(f"client {model.client_id}: search produced an invalid plan: {violations[0]}")
            logger.info("search.satisfied client=%s cells=%s steps=%s", model.client_id, total, steps)
            return ClientPlanResult(model.client_id, SATISFIED, state.recipes, steps=steps)

        cell = cells[state.index]
        child = None
        while position < len(cell.candidates):
            recipe = cell.candidates[position]
            position += 1
            key = _symmetry_key(model, state, recipe)
            if key in tried:
                continue
            tried = tried | {key}
            steps += 1
            if should_stop is not None and steps % check_every == 0 and should_stop():
                logger.info("search.cancelled client=%s steps=%s", model.client_id, steps)
                raise SearchCancelled(f"search for client {model.client_id} cancelled")
            if steps > limit:
                logger.warning("search.limit client=%s steps=%s", model.client_id, steps)
                return ClientPlanResult(
                    model.client_id,
                    LIMIT_REACHED,
                    reason=f"search limit reached after {limit} steps without a plan or a proof that none exists",
                    steps=steps,
                )
            child = _extend(model, cell, state, recipe)
            if child is not None:
                break

        if child is None:
            stack.pop()
            deepest_failure = max(deepest_failure, state.index)
            continue
        stack[-1] = _Frame(state, position, tried)
        stack.append(_Frame(child, 0))

    reason = "no combination of recipes satisfies the constraints"
    if deepest_failure >= 0:
        reason = f"{reason}; could not fill {_describe_cell(model, deepest_failure)}"
    logger.info("search.infeasible client=%s steps=%s reason=%s", model.client_id, steps, reason)
    return ClientPlanResult(model.client_id, INFEASIBLE, reason=reason, steps=steps)


def check_plan(model: ClientModel, recipes: Tuple[Optional[Recipe], ...]) -> list[str]:
    """List every hard-constraint violation of a complete assignment (empty when valid)."""
    problems: list[str] = []
    if len(recipes) != len(model.cells):
        return [f"expected {len(model.cells)} cells, got {len(recipes)}"]

    seen_unique: dict[str, int] = {}
    used_main: dict[str, int] = {}
    totals: dict[int, list] = {}
    pairs: dict[int, dict[str, str]] = {}
    for cell, recipe in zip(model.cells, recipes):
        cost_kcal = totals.setdefault(cell.menu_index, [_ZERO, _ZERO])
        if cell.partner_index is not None and cell.index < cell.partner_index:
            served = (recipe is not None) + (recipes[cell.partner_index] is not None)
            if served != 1:
                problems.append(f"cell {cell.index}: conditional pair {cell.slot.name} served {served} times")
        if recipe is None:
            if cell.partner_index is None:
                problems.append(f"cell {cell.index}: {cell.slot.name} left empty")
            continue
        if recipe not in cell.slot.eligible_recipes:
            problems.append(f"cell {cell.index}: recipe {recipe.recipe_id} not eligible for {cell.slot.name}")
        cost_kcal[0] += recipe.cost
        cost_kcal[1] += recipe.kcal
        if recipe.conditional_pair_id:
            menu_pairs = pairs.setdefault(cell.menu_index, {})
            if recipe.conditional_pair_id in menu_pairs:
                problems.append(
                    f"menu {cell.menu_index}: conditional pair {recipe.conditional_pair_id} used twice"
                )
            menu_pairs[recipe.conditional_pair_id] = recipe.recipe_id
        if cell.slot.is_constant:
            continue
        if cell.counts_as_unique(recipe):
            seen_unique[recipe.recipe_id] = seen_unique.get(recipe.recipe_id, 0) + 1
        used_main[recipe.recipe_id] = used_main.get(recipe.recipe_id, 0) + 1

    for rid in seen_unique:
        if used_main[rid] > 1:
            problems.append(f"unique recipe {rid} used {used_main[rid]} times")

    for menu in model.menus:
        cost, kcal = totals.get(menu.ordinal, [_ZERO, _ZERO])
        if cost > menu.budget:
            problems.append(f"menu {menu.ordinal}: cost {cost} over budget {menu.budget}")
        if not (menu.kcal_min <= kcal <= menu.kcal_max):
            problems.append(f"menu {menu.ordinal}: kcal {kcal} outside [{menu.kcal_min}, {menu.kcal_max}]")
    return problems
