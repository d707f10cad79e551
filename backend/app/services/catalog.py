from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal

from app.services.payment_errors import UnknownCatalogItemError


@dataclass(frozen=True)
class PointsPackage:
    package_id: str
    base_points: int
    bonus_points: int

    @property
    def points(self) -> int:
        return self.base_points + self.bonus_points


@dataclass(frozen=True)
class BillingCycle:
    code: str
    price: Decimal
    duration_days: int
    extension_months: int


POINTS_PACKAGES: dict[str, PointsPackage] = {
    p.package_id: p
    for p in (
        PointsPackage("package_100", 100, 0),
        PointsPackage("package_500", 500, 50),
        PointsPackage("package_1000", 1000, 150),
        PointsPackage("package_2500", 2500, 500),
        PointsPackage("package_5000", 5000, 1200),
    )
}

SUBSCRIPTION_PLANS = {"premium"}

BILLING_CYCLES: dict[str, BillingCycle] = {
    "monthly": BillingCycle("monthly", Decimal("4.99"), 30, 1),
    "yearly": BillingCycle("yearly", Decimal("39.99"), 365, 12),
}


def get_points_package(package_id: str) -> PointsPackage:
    package = POINTS_PACKAGES.get(package_id)
    if package is None:
        raise UnknownCatalogItemError(f"Paquete de puntos desconocido: {package_id}")
    return package


def get_billing_cycle(plan_type: str, billing_cycle: str) -> BillingCycle:
    if plan_type not in SUBSCRIPTION_PLANS:
        raise UnknownCatalogItemError(f"Plan de suscripcion desconocido: {plan_type}")
    cycle = BILLING_CYCLES.get(billing_cycle)
    if cycle is None:
        raise UnknownCatalogItemError(f"Ciclo de facturacion desconocido: {billing_cycle}")
    return cycle


def subscription_end_date(start: date, cycle: BillingCycle) -> date:
    return start + timedelta(days=cycle.duration_days)


def add_months(value: date, months: int) -> date:
    """Calendar-month addition, clamped to the last day of the target month."""
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)
