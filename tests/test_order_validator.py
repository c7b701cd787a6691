"""Fatura öncesi sipariş doğrulama ve kalem normalizasyonu."""
from app.models import Order, Restaurant
from app.services.order_validator import line_items, order_problems, validate_order


def _order(**overrides) -> Order:
    data = {
        "id": "order-1",
        "customer_name": "Asha Rao",
        "items": [{"dish_name": "Masala Dosa", "quantity": 2, "price": 120}],
        "total_amount": 240.0,
    }
    data.update(overrides)
    order = Order(**data)
    order.restaurant = Restaurant(id="r-1", name="Spice Garden")
    return order


def test_valid_order():
    assert validate_order(_order())
    assert order_problems(_order()) == []


def test_missing_order():
    assert not validate_order(None)


def test_missing_customer_name():
    problems = order_problems(_order(customer_name="  "))
    assert problems == ["customer name is missing"]


def test_empty_items():
    assert "order has no line items" in order_problems(_order(items=[]))


def test_items_without_positive_quantity_and_price():
    order = _order(items=[{"name": "Water", "quantity": 0, "price": 20}, {"name": "Tea", "quantity": 1, "price": 0}])
    assert order_problems(order) == ["no line item with positive quantity and price"]


def test_zero_total():
    assert "total amount is missing or zero" in order_problems(_order(total_amount=0))


def test_missing_restaurant_name():
    order = _order()
    order.restaurant = None
    assert order_problems(order) == ["restaurant name is missing"]


def test_line_items_accept_alternate_keys():
    order = _order(items=[
        {"name": "Filter Coffee", "qty": "2", "unit_price": "30.5"},
        {"dish_name": "Idli", "quantity": 3, "price": 40, "total_price": 110},
        "not-a-dict",
    ])
    items = line_items(order)
    assert len(items) == 2
    assert items[0].name == "Filter Coffee"
    assert items[0].quantity == 2
    assert items[0].total == 61.0
    # Açık toplam varsa hesaplanmaz
    assert items[1].total == 110
