"""Fatura öncesi sipariş kontrolü: müşteri, kalemler, tutar, restoran."""
from typing import NamedTuple

from app.models import Order


class LineItem(NamedTuple):
    name: str
    quantity: float
    unit_price: float
    total: float


def _first(item: dict, *keys: str):
    for key in keys:
        value = item.get(key)
        if value is not None and value != "":
            return value
    return None


def _to_number(value) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def line_items(order: Order) -> list[LineItem]:
    """items JSON'unu normalize eder: name/dish_name, quantity/qty, price/unit_price, total/total_price."""
    rows: list[LineItem] = []
    for raw in order.items or []:
        if not isinstance(raw, dict):
            continue
        name = str(_first(raw, "dish_name", "name") or "").strip()
        quantity = _to_number(_first(raw, "quantity", "qty"))
        price = _to_number(_first(raw, "price", "unit_price"))
        total = _to_number(_first(raw, "total", "total_price"))
        if total is None and quantity is not None and price is not None:
            total = round(quantity * price, 2)
        rows.append(LineItem(name, quantity or 0, price or 0, total or 0))
    return rows


def order_problems(order: Order | None) -> list[str]:
    if order is None:
        return ["order is missing"]
    problems: list[str] = []
    if not (order.customer_name or "").strip():
        problems.append("customer name is missing")
    items = line_items(order)
    if not items:
        problems.append("order has no line items")
    elif not any(i.quantity > 0 and i.unit_price > 0 for i in items):
        problems.append("no line item with positive quantity and price")
    total = _to_number(order.total_amount)
    if total is None or total <= 0:
        problems.append("total amount is missing or zero")
    restaurant = order.restaurant
    if restaurant is None or not (restaurant.name or "").strip():
        problems.append("restaurant name is missing")
    return problems


def validate_order(order: Order | None) -> bool:
    return not order_problems(order)
