"""Faker-based data generators for Locust load test scenarios.

Each generator produces payloads that pass the domain's validation rules
(positive prices, min/max order quantities, DeliveryAddress VO) and match the
exact field names expected by the API's Pydantic request schemas.
"""

import random
import uuid

from faker import Faker

fake = Faker()

# Cities with a known delivery fee; everything else pays the default rate
DELIVERY_CITIES = ["Kathmandu", "Lalitpur", "Bhaktapur", "Kirtipur", "Pokhara", "Dharan", "Butwal"]

MEDICINES = [
    ("Paracetamol", "Pain Relief"),
    ("Ibuprofen", "Pain Relief"),
    ("Cetirizine", "Allergy"),
    ("Omeprazole", "Gastro"),
    ("Metformin", "Diabetes"),
    ("Amlodipine", "Cardiac"),
    ("Vitamin C", "Supplements"),
]

PRESCRIPTION_MEDICINES = [
    ("Amoxicillin", "Antibiotics"),
    ("Azithromycin", "Antibiotics"),
    ("Tramadol", "Pain Relief"),
]


# ---------- Stock ----------


def product_data(stock: int | None = None, requires_prescription: bool = False) -> dict:
    """Generate RegisterProductRequest payload matching schema field names."""
    name, category = random.choice(PRESCRIPTION_MEDICINES if requires_prescription else MEDICINES)
    units = random.choice([1, 10, 10, 15])
    strength = random.choice([10, 25, 50, 100, 250, 500])
    return {
        "name": f"{name} {strength}mg {uuid.uuid4().hex[:4].upper()}",
        "brand": fake.company()[:255],
        "category": category,
        "price": round(random.uniform(20.0, 900.0), 2),
        "stock": stock if stock is not None else random.randint(50, 500),
        "units_per_base_package": units,
        "allows_unit_sale": units > 1,
        "max_order_quantity": 50,
        "requires_prescription": requires_prescription,
    }


def scarce_product_data(stock: int = 5) -> dict:
    """A single-package product with very few units, for contention runs."""
    payload = product_data(stock=stock)
    payload.update({"units_per_base_package": 1, "allows_unit_sale": False})
    return payload


# ---------- Carts ----------


def cart_owner() -> dict:
    """OpenCartRequest payload: half account carts, half anonymous sessions."""
    if random.random() < 0.5:
        return {"customer_id": f"cust-{uuid.uuid4().hex[:8]}"}
    return {"session_id": f"sess-{uuid.uuid4().hex}"}


def cart_item_data(product_id: str, allows_unit_sale: bool = False) -> dict:
    """Generate AddToCartRequest payload."""
    if allows_unit_sale and random.random() < 0.4:
        return {"product_id": product_id, "quantity": random.randint(1, 25), "purchase_type": "unit"}
    return {"product_id": product_id, "quantity": random.randint(1, 3), "purchase_type": "package"}


# ---------- Checkout ----------


def nepal_phone() -> str:
    """Mobile numbers in the 98XXXXXXXX range."""
    return f"+977-98{random.randint(10000000, 99999999)}"


def delivery_address() -> dict:
    """Generate AddressSchema payload."""
    return {
        "address_line1": fake.street_address()[:255],
        "city": random.choice(DELIVERY_CITIES),
        "state": random.choice(["Bagmati", "Gandaki", "Koshi", "Lumbini"]),
        "postal_code": str(random.randint(10000, 99999)),
        "country": "Nepal",
    }


def checkout_data(guest: bool = False, prescriptions: int = 0) -> dict:
    """Generate CheckoutRequest payload."""
    payload = {
        "delivery_address": delivery_address(),
        "payment_method": random.choice(["cash_on_delivery", "cash_on_delivery", "online_transfer"]),
        "contact_phone": nepal_phone(),
        "contact_email": fake.email(),
        "prescriptions": [f"https://uploads.example/rx/{uuid.uuid4().hex}.pdf" for _ in range(prescriptions)],
    }
    if guest:
        payload["customer_name"] = fake.name()[:255]
    return payload
