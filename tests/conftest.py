"""Shared fixtures: API clients per role, fake external collaborators and
factories for products, orders and drivers.

External collaborators (geocoder, payment gateway) are replaced by
in-memory fakes wired through the same ``from_settings``/``build_*``
seams production uses, so views run unmodified.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import uuid4

import pytest
from django.contrib.auth import get_user_model
from django.contrib.auth.models import Group
from rest_framework.test import APIClient

from modules.catalog.models import Product, ProductStatus
from modules.core.permissions import DRIVER_GROUP
from modules.notifications.sink import StatusNotificationSink
from modules.orders.constants import OrderStatus, PaymentMethod
from modules.orders.repositories.django_repository import OrderDjangoRepository
from modules.orders.state_machine import transition_order
from modules.payments.gateway import PaymentGateway, PaymentIntent
from modules.shipping.calculator import Coordinates
from modules.shipping.exceptions import PostalCodeNotFound
from modules.shipping.geocoding import (
    IGeocoder,
    PostalAddress,
    ViaCepNominatimGeocoder,
    normalize_postal_code,
)
from modules.shipping.models import ShippingConfig, ShippingRate

User = get_user_model()

WAREHOUSE = Coordinates(lat=-21.1775, lng=-47.8103)
KM_PER_DEGREE_LAT = 6371.0 * 3.141592653589793 / 180

NEAR_CEP = "14010000"  # 3 km
MID_CEP = "14090000"  # 12 km
NO_RATE_CEP = "14800000"  # 25 km, no rate tier
FAR_CEP = "01310100"  # 250 km, beyond the radius


def north_of_warehouse(km: float) -> Coordinates:
    """Point *km* due north of the warehouse (haversine-exact)."""
    return Coordinates(lat=WAREHOUSE.lat + km / KM_PER_DEGREE_LAT, lng=WAREHOUSE.lng)


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeGeocoder(IGeocoder):
    def __init__(self) -> None:
        self.addresses: dict[str, PostalAddress] = {}
        self.coordinates: dict[str, Coordinates] = {}
        self.texts: dict[str, Coordinates] = {}
        self.error: Exception | None = None
        self.lookups: list[str] = []
        self.coordinate_calls = 0

    def add(self, postal_code, city, state, coordinates=None, street="Rua Teste"):
        cep = normalize_postal_code(postal_code)
        self.addresses[cep] = PostalAddress(
            postal_code=cep, street=street, neighborhood="Centro", city=city, state=state
        )
        if coordinates is not None:
            self.coordinates[cep] = coordinates

    def lookup(self, postal_code: str) -> PostalAddress:
        if self.error is not None:
            raise self.error
        cep = normalize_postal_code(postal_code)
        self.lookups.append(cep)
        if cep not in self.addresses:
            raise PostalCodeNotFound()
        return self.addresses[cep]

    def coordinates_for(self, address: PostalAddress) -> Coordinates:
        self.coordinate_calls += 1
        if address.postal_code not in self.coordinates:
            raise PostalCodeNotFound()
        return self.coordinates[address.postal_code]

    def geocode_text(self, query: str):
        for fragment, coordinates in self.texts.items():
            if fragment in query:
                return coordinates
        return None


class FakeGateway(PaymentGateway):
    def __init__(self) -> None:
        self.requests = []
        self.error: Exception | None = None

    def create_payment(self, request):
        if self.error is not None:
            raise self.error
        self.requests.append(request)
        return PaymentIntent(
            redirect_url=f"https://pagamento.example.com/checkout/{request.order_code}",
            correlation_id=f"PREF-{request.order_code}",
        )


# ---------------------------------------------------------------------------
# Database / clients
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _use_db(db):
    """Automatically use the test database for all tests."""


@pytest.fixture()
def api_client():
    """DRF APIClient for testing API endpoints."""
    return APIClient()


@pytest.fixture()
def api_client_with_correlation(api_client):
    """APIClient pre-configured with a known correlation ID header."""
    cid = "test-correlation-id-fixture"
    api_client.defaults["HTTP_X_REQUEST_ID"] = cid
    return api_client, cid


def _client_for(user) -> APIClient:
    client = APIClient()
    client.force_authenticate(user=user)
    return client


@pytest.fixture()
def admin_user():
    return User.objects.create_user(
        username="gerente", password="testpass123", is_staff=True
    )


@pytest.fixture()
def admin_client(admin_user):
    return _client_for(admin_user)


@pytest.fixture()
def make_driver():
    group, _ = Group.objects.get_or_create(name=DRIVER_GROUP)

    def _make(username: str = "carlos", first_name: str = "Carlos"):
        user = User.objects.create_user(
            username=username, password="testpass123", first_name=first_name
        )
        user.groups.add(group)
        return user

    return _make


@pytest.fixture()
def driver(make_driver):
    return make_driver("carlos", "Carlos")


@pytest.fixture()
def other_driver(make_driver):
    return make_driver("marina", "Marina")


@pytest.fixture()
def driver_client(driver):
    return _client_for(driver)


@pytest.fixture()
def other_driver_client(other_driver):
    return _client_for(other_driver)


# ---------------------------------------------------------------------------
# External collaborators
# ---------------------------------------------------------------------------


@pytest.fixture()
def fake_geocoder(monkeypatch):
    geocoder = FakeGeocoder()
    geocoder.add(NEAR_CEP, "Ribeirão Preto", "SP", north_of_warehouse(3))
    geocoder.add(MID_CEP, "Ribeirão Preto", "SP", north_of_warehouse(12))
    geocoder.add(NO_RATE_CEP, "Araraquara", "SP", north_of_warehouse(25))
    geocoder.add(FAR_CEP, "São Paulo", "SP", north_of_warehouse(250))
    monkeypatch.setattr(
        ViaCepNominatimGeocoder, "from_settings", staticmethod(lambda: geocoder)
    )
    return geocoder


@pytest.fixture()
def fake_gateway(monkeypatch):
    gateway = FakeGateway()
    monkeypatch.setattr(
        "modules.payments.gateway.build_payment_gateway", lambda: gateway
    )
    return gateway


@pytest.fixture()
def shipping_setup():
    """40 km radius, no minimum, tiers up to 20 km."""
    config = ShippingConfig.objects.create(
        max_distance_km=Decimal("40.00"), min_order_amount=Decimal("0.00")
    )
    for low, high, price in (
        ("0.00", "5.00", "5.00"),
        ("5.00", "10.00", "8.00"),
        ("10.00", "20.00", "12.00"),
    ):
        ShippingRate.objects.create(
            min_distance=Decimal(low), max_distance=Decimal(high), price=Decimal(price)
        )
    return config


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


@pytest.fixture()
def make_product():
    counter = {"n": 0}

    def _make(
        name: str = "Água Mineral 500ml",
        price: str = "3.50",
        stock: int = 100,
        status: str = ProductStatus.ACTIVE,
    ) -> Product:
        counter["n"] += 1
        return Product.objects.create(
            sku=f"PROD-{counter['n']:03d}",
            name=name,
            price=Decimal(price),
            stock_quantity=stock,
            status=status,
        )

    return _make


@pytest.fixture()
def product(make_product):
    return make_product("Cerveja Lata 350ml", price="4.50", stock=50)


@pytest.fixture()
def checkout_payload(product):
    def _payload(**overrides):
        payload = {
            "customer": {
                "name": "Maria Souza",
                "email": "maria@example.com",
                "phone": "(16) 99123-4567",
            },
            "address": {
                "street": "Rua Amador Bueno",
                "number": "100",
                "neighborhood": "Centro",
                "city": "Ribeirão Preto",
                "state": "SP",
                "zip_code": "14010-000",
            },
            "items": [{"product_id": str(product.id), "quantity": 4}],
            "payment_method": PaymentMethod.DINHEIRO,
        }
        payload.update(overrides)
        return payload

    return _payload


@pytest.fixture()
def make_order():
    """Persist an order the way checkout does, without the collaborators."""
    repository = OrderDjangoRepository()
    sink = StatusNotificationSink()

    def _make(
        status: str = OrderStatus.RECEBIDO,
        payment_method: str = PaymentMethod.DINHEIRO,
        correlation_id: str | None = None,
        customer_name: str = "Maria Souza",
        email: str = "maria@example.com",
        phone: str = "(16) 99123-4567",
        street: str = "Rua Amador Bueno",
        number: str = "100",
        shipping_price: str = "5.00",
    ):
        order = repository.create(
            {
                "customer": {"name": customer_name, "email": email, "phone": phone},
                "address": {
                    "street": street,
                    "number": number,
                    "complement": "",
                    "neighborhood": "Centro",
                    "city": "Ribeirão Preto",
                    "state": "SP",
                    "zip_code": "14010000",
                    "reference": "",
                },
                "items": [
                    {
                        "product_id": uuid4(),
                        "product_name": "Cerveja Lata 350ml",
                        "product_sku": "CERV-350",
                        "quantity": 4,
                        "unit_price": Decimal("4.50"),
                    }
                ],
                "shipping_price": Decimal(shipping_price),
                "distance_km": Decimal("3.00"),
                "payment_method": payment_method,
            }
        )
        sink.record(order, OrderStatus.RECEBIDO, note="Pedido criado")
        if correlation_id:
            order.payment_correlation_id = correlation_id
            repository.update_fields(order, ["payment_correlation_id"])
        if status != OrderStatus.RECEBIDO:
            transition_order(order, status, actor="test", sink=sink)
        return repository.get_by_id(str(order.id))

    return _make
