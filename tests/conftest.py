"""
Pytest configuration and shared fixtures
"""

import json

import pytest


@pytest.fixture
def products():
    """Product rows"""
    return [
        {"id": 1, "name": "Widget", "price": 19.99, "category": "tools"},
        {"id": 2, "name": "Gadget", "price": 29.99, "category": "toys"},
        {"id": 3, "name": "Doohickey", "price": 4.5, "category": "tools"},
    ]


@pytest.fixture
def orders():
    """Order rows, one pointing at a product that does not exist"""
    return [
        {"id": 100, "productId": 1, "qty": 2, "customerId": 7},
        {"id": 101, "productId": 2, "qty": 1, "customerId": 8},
        {"id": 102, "productId": 9, "qty": 5, "customerId": 7},
        {"id": 103, "productId": 1, "qty": 1},
    ]


@pytest.fixture
def customers():
    """Customer rows with nested objects"""
    return [
        {"id": 7, "name": "Alice", "address": {"city": "NYC", "zip": "10001"}, "tags": ["vip"]},
        {"id": 8, "name": "Bob", "address": {"city": "LA"}, "email": None},
    ]


@pytest.fixture
def data_dir(tmp_path, products, orders, customers):
    """Directory with products.json, orders.json and customers.json"""
    (tmp_path / "products.json").write_text(json.dumps(products))
    (tmp_path / "orders.json").write_text(json.dumps(orders))
    (tmp_path / "customers.json").write_text(json.dumps({"data": {"customers": customers}}))
    return tmp_path
