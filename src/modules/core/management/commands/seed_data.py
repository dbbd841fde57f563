from __future__ import annotations

import random
from datetime import timedelta
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.contrib.auth.models import Group
from django.core.management.base import BaseCommand
from django.db import transaction
from django.utils import timezone

from modules.catalog.models import Product, ProductStatus
from modules.core.permissions import DRIVER_GROUP
from modules.notifications.sink import StatusNotificationSink
from modules.orders.constants import OrderStatus, PaymentMethod
from modules.orders.models import Order
from modules.orders.repositories.django_repository import OrderDjangoRepository
from modules.shipping.models import FreeShippingCity, ShippingConfig, ShippingRate


class Command(BaseCommand):
    help = "Seed database with realistic development data."

    def handle(self, *args, **options):
        random.seed(42)
        self.stdout.write("Seeding development data...")

        users_created = self._seed_users()
        products = self._seed_products()
        rates = self._seed_shipping()
        orders_created = self._seed_orders(products)

        self.stdout.write(
            self.style.SUCCESS(
                "Seed completed: "
                f"users={users_created}, "
                f"products={len(products)}, "
                f"shipping_rates={rates}, "
                f"orders={orders_created}"
            )
        )

    def _seed_users(self) -> int:
        User = get_user_model()
        drivers, _ = Group.objects.get_or_create(name=DRIVER_GROUP)
        created = 0
        if not User.objects.filter(username="admin").exists():
            User.objects.create_superuser("admin", password="admin123")
            created += 1
        if not User.objects.filter(username="manager").exists():
            User.objects.create_user("manager", password="manager123", is_staff=True)
            created += 1
        for username, first_name in (("carlos", "Carlos"), ("marina", "Marina")):
            if User.objects.filter(username=username).exists():
                continue
            driver = User.objects.create_user(
                username, password=f"{username}123", first_name=first_name
            )
            driver.groups.add(drivers)
            created += 1
        return created

    def _seed_products(self) -> list[Product]:
        self.stdout.write("Creating products...")
        products: list[Product] = []
        catalog = [
            ("AGUA-001", "Água Mineral 500ml (fardo 12)", Decimal("18.90")),
            ("AGUA-002", "Água Mineral 1,5L (fardo 6)", Decimal("21.90")),
            ("AGUA-003", "Galão de Água 20L", Decimal("14.00")),
            ("REFR-001", "Refrigerante Cola 2L", Decimal("9.49")),
            ("REFR-002", "Refrigerante Guaraná 2L", Decimal("8.49")),
            ("REFR-003", "Refrigerante Lata (pack 12)", Decimal("39.90")),
            ("SUCO-001", "Suco de Uva Integral 1L", Decimal("16.90")),
            ("SUCO-002", "Suco de Laranja 1L", Decimal("11.90")),
            ("GELO-001", "Gelo em Cubos 5kg", Decimal("12.00")),
            ("CERV-001", "Cerveja Lata (pack 12)", Decimal("44.90")),
            ("ISOT-001", "Isotônico 500ml (fardo 6)", Decimal("29.90")),
            ("CARV-001", "Carvão Vegetal 4kg", Decimal("24.90")),
        ]
        for sku, name, price in catalog:
            product, _ = Product.objects.get_or_create(
                sku=sku,
                defaults={
                    "name": name,
                    "price": price,
                    "stock_quantity": random.randint(10, 200),
                    "status": ProductStatus.ACTIVE,
                },
            )
            products.append(product)
        self.stdout.write(self.style.SUCCESS("Creating products... Done!"))
        return products

    def _seed_shipping(self) -> int:
        self.stdout.write("Creating shipping configuration...")
        if not ShippingConfig.objects.exists():
            ShippingConfig.objects.create(
                max_distance_km=Decimal("40"), min_order_amount=Decimal("30.00")
            )
        tiers = [
            (Decimal("0"), Decimal("5"), Decimal("5.00")),
            (Decimal("5"), Decimal("10"), Decimal("8.00")),
            (Decimal("10"), Decimal("20"), Decimal("12.00")),
            (Decimal("20"), Decimal("40"), Decimal("20.00")),
        ]
        for min_distance, max_distance, price in tiers:
            ShippingRate.objects.get_or_create(
                min_distance=min_distance,
                max_distance=max_distance,
                defaults={"price": price, "active": True},
            )
        FreeShippingCity.objects.get_or_create(
            city="Ribeirão Preto",
            state="SP",
            defaults={"min_order_amount": Decimal("150.00"), "active": True},
        )
        self.stdout.write(self.style.SUCCESS("Creating shipping configuration... Done!"))
        return ShippingRate.objects.filter(active=True).count()

    def _seed_orders(self, products: list[Product]) -> int:
        self.stdout.write("Creating orders...")
        if not products:
            self.stdout.write(self.style.WARNING("Skipping orders (no products)."))
            return 0
        if Order.objects.filter(notes__startswith="Seed order").exists():
            self.stdout.write(self.style.WARNING("Skipping orders (already seeded)."))
            return 0

        repository = OrderDjangoRepository()
        sink = StatusNotificationSink()
        customers = [
            ("Ana Souza", "ana@example.com", "16991234567"),
            ("Bruno Lima", "bruno@example.com", "16998765432"),
            ("Carla Mendes", "carla@example.com", "16992223333"),
            ("Daniel Costa", "daniel@example.com", "16994445555"),
        ]
        streets = ["Rua Amador Bueno", "Av. Nove de Julho", "Rua Garibaldi", "Rua Lafaiete"]
        methods = [choice for choice, _ in PaymentMethod.choices]
        orders_created = 0

        for i in range(20):
            name, email, phone = random.choice(customers)
            lines = [
                {
                    "product_id": product.id,
                    "product_name": product.name,
                    "product_sku": product.sku,
                    "quantity": random.randint(1, 3),
                    "unit_price": product.price,
                }
                for product in random.sample(products, k=random.randint(1, 4))
            ]
            with transaction.atomic():
                order = repository.create(
                    {
                        "customer": {"name": name, "email": email, "phone": phone},
                        "address": {
                            "street": random.choice(streets),
                            "number": str(random.randint(10, 2000)),
                            "neighborhood": "Centro",
                            "city": "Ribeirão Preto",
                            "state": "SP",
                            "zip_code": "14010000",
                        },
                        "items": lines,
                        "shipping_price": Decimal("8.00"),
                        "payment_method": random.choice(methods),
                        "notes": f"Seed order {i + 1}",
                    }
                )
                sink.record(order, OrderStatus.RECEBIDO, note="Pedido criado")
            created_at = timezone.now() - timedelta(days=random.randint(0, 30))
            Order.objects.filter(id=order.id).update(created_at=created_at)
            orders_created += 1

        self.stdout.write(self.style.SUCCESS("Creating orders... Done!"))
        return orders_created
