from datetime import datetime
from typing import Optional

from sqlalchemy import Column, JSON
from sqlmodel import Field, SQLModel


class Client(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    empresa_id: Optional[str] = None
    name: str
    meals_per_week: int = 7
    budget_per_menu: float
    kcal_min: float
    kcal_max: float
    meat_preferences: Optional[dict] = Field(default=None, sa_column=Column(JSON, default=None))  # {"pollo": 2, "res": 1}
    active: bool = True
    created_at: datetime = Field(default_factory=datetime.utcnow)


class Component(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str  # FONDO | ENTRADA | SOPA | POSTRE | REFRESCO | AJI | PAN ...
    is_constant: Optional[bool] = None  # None: decided by settings.constant_slot_names


class MealType(SQLModel, table=True):
    id: str = Field(primary_key=True)
    client_id: int = Field(foreign_key="client.id")
    name: str
    price: Optional[float] = None
    kcal_min: Optional[float] = None
    kcal_max: Optional[float] = None
    sort_order: int = 0


class MealTypeComponent(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    meal_type_id: str = Field(foreign_key="mealtype.id")
    component_id: int = Field(foreign_key="component.id")
    unique: bool = False
    premium: bool = False
    condicional: Optional[int] = None  # id of the partner mealtypecomponent row


class Recipe(SQLModel, table=True):
    id: str = Field(primary_key=True)
    empresa_id: Optional[str] = None
    name: str
    component_id: int = Field(foreign_key="component.id")
    cost: float
    kcal: float
    is_unique: bool = False
    conditional_pair_id: Optional[str] = None
    active: bool = True
