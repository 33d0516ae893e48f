from __future__ import annotations

import random
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.contrib.auth.models import Group
from django.core.management.base import BaseCommand

from modules.core.actors import UserRole, resolve_actor
from modules.orders.dtos import CreateOrderDTO, CreateOrderItemDTO, TransitionRequestDTO
from modules.orders.repositories import OrderDjangoRepository
from modules.orders.services import OrderService

SEED_USERS = [
    ("vendedor", "Carlos Vendas", UserRole.VENDEDOR),
    ("financeiro", "Fernanda Caixa", UserRole.FINANCEIRO),
    ("gestor", "Gustavo Gestor", UserRole.GESTOR),
    ("producao", "Paulo Fábrica", UserRole.PRODUCAO),
]

CLIENTS = [
    ("cli-001", "Ana Souza"),
    ("cli-002", "Bruno Lima Ltda"),
    ("cli-003", "Carla Mendes"),
    ("cli-004", "Daniel Costa"),
    ("cli-005", "Eduarda Alves ME"),
]

CATALOG = [
    ("Portão basculante", Decimal("3200.00")),
    ("Grade de janela", Decimal("450.00")),
    ("Corrimão inox", Decimal("780.00")),
    ("Estrutura metálica", Decimal("5400.00")),
    ("Porta de aço", Decimal("1890.00")),
]

# Each path is the list of (role, action) fired after the quote is created.
PIPELINE_PATHS = [
    [],
    [(UserRole.VENDEDOR, "submit_to_financial")],
    [
        (UserRole.VENDEDOR, "submit_to_financial"),
        (UserRole.FINANCEIRO, "financial_reject"),
    ],
    [
        (UserRole.VENDEDOR, "submit_to_financial"),
        (UserRole.FINANCEIRO, "financial_approve"),
        (UserRole.FINANCEIRO, "send_to_manager"),
    ],
    [
        (UserRole.VENDEDOR, "submit_to_financial"),
        (UserRole.FINANCEIRO, "financial_approve"),
        (UserRole.FINANCEIRO, "send_to_manager"),
        (UserRole.GESTOR, "manager_approve"),
        (UserRole.GESTOR, "manager_send_to_production"),
        (UserRole.PRODUCAO, "start_production"),
    ],
    [
        (UserRole.VENDEDOR, "submit_to_financial"),
        (UserRole.FINANCEIRO, "financial_approve"),
        (UserRole.FINANCEIRO, "send_to_manager"),
        (UserRole.GESTOR, "manager_approve"),
        (UserRole.GESTOR, "manager_send_to_production"),
        (UserRole.PRODUCAO, "start_production"),
        (UserRole.PRODUCAO, "finish_production"),
    ],
]


class Command(BaseCommand):
    help = "Seed database with role users and orders spread across the pipeline."

    def add_arguments(self, parser):
        parser.add_argument("--orders", type=int, default=12)

    def handle(self, *args, **options):
        random.seed(42)
        self.stdout.write("Seeding development data...")

        actors = self._seed_users()
        orders_created = self._seed_orders(actors, options["orders"])

        self.stdout.write(
            self.style.SUCCESS(
                f"Seed completed: users={len(actors)}, orders={orders_created}"
            )
        )

    def _seed_users(self) -> dict:
        User = get_user_model()
        if not User.objects.filter(username="admin").exists():
            User.objects.create_superuser("admin", password="admin123")

        actors = {}
        for username, full_name, role in SEED_USERS:
            group, _ = Group.objects.get_or_create(name=role.value)
            first_name, _, last_name = full_name.partition(" ")
            user, created = User.objects.get_or_create(
                username=username,
                defaults={"first_name": first_name, "last_name": last_name},
            )
            if created:
                user.set_password(f"{username}123")
                user.save()
            user.groups.add(group)
            actors[role] = resolve_actor(user)
        self.stdout.write(self.style.SUCCESS("Creating users... Done!"))
        return actors

    def _seed_orders(self, actors: dict, count: int) -> int:
        self.stdout.write("Creating orders...")
        service = OrderService(order_repository=OrderDjangoRepository())

        for i in range(count):
            client_id, client_name = random.choice(CLIENTS)
            items = [
                CreateOrderItemDTO(
                    product=product,
                    quantity=random.randint(1, 4),
                    unit_price=price,
                    discount=Decimal(random.choice([0, 5, 10])),
                )
                for product, price in random.sample(CATALOG, k=random.randint(1, 3))
            ]
            order = service.create_order(
                CreateOrderDTO(
                    client_id=client_id,
                    client_name=client_name,
                    items=items,
                    notes=f"Seed order {i + 1}",
                ),
                actors[UserRole.VENDEDOR],
            )

            for role, action in PIPELINE_PATHS[i % len(PIPELINE_PATHS)]:
                service.perform_action(
                    order.id,
                    TransitionRequestDTO(
                        action=action,
                        rejection_reason="Pagamento não identificado"
                        if action.endswith("reject")
                        else "",
                    ),
                    actors[role],
                )

        self.stdout.write(self.style.SUCCESS("Creating orders... Done!"))
        return count
