# Overview: Customer collaborator; existence checks used by orders and transactions.

from __future__ import annotations

from ..extensions import db
from ..errors import NotFound, ValidationError
from ..models import Customer


def get_customer(customer_id: int) -> Customer:
    customer = db.session.get(Customer, customer_id)
    if customer is None or not customer.is_active:
        raise NotFound(f"Customer not found: {customer_id}", {"customer_id": customer_id})
    return customer


def create_customer(name: str, phone: str | None = None, email: str | None = None) -> Customer:
    if not name or not name.strip():
        raise ValidationError("name is required", {"field": "name"})
    customer = Customer(name=name.strip(), phone=phone, email=email)
    db.session.add(customer)
    db.session.commit()
    return customer
