# ==============================================================================
# SERVICIO DE ÓRDENES
# ==============================================================================
# Historial de órdenes finalizadas (solo se agregan, nunca se borran) y
# estadísticas del día derivadas de ese historial.
#
# REGLAS:
# - Los totales se calculan UNA vez, desde las líneas recibidas
# - Un cambio de estado nunca altera totales ni líneas
# - Una orden completada no se puede anular
# - dailyStats se recalcula desde cero después de cada mutación
# ==============================================================================

import random
import threading
import time
import uuid
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from coffee_pos import config
from coffee_pos.models import (
    CartItem,
    CustomerType,
    DailyStats,
    Order,
    OrderItem,
    OrderStatus,
    ORDER_TRANSITIONS,
    PaymentMethod,
    now_local,
)
from coffee_pos.services.audit_service import AuditService


ACTIVE_STATUSES = frozenset([OrderStatus.PENDING, OrderStatus.PREPARING, OrderStatus.READY])


def calculate_tax(subtotal: float, rate: float = config.TAX_RATE) -> float:
    """Impuesto plano redondeado a 2 decimales."""
    return round(subtotal * rate, 2)


def generate_order_id() -> str:
    return f"order_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


def generate_order_number(today: datetime = None) -> str:
    """
    Número legible: ORD + AAAAMMDD + 3 dígitos aleatorios.
    No garantiza unicidad global (suficiente para un solo terminal).
    """
    today = today or now_local()
    return f"ORD{today.strftime('%Y%m%d')}{random.randint(1, 999):03d}"


def _coerce_status(status: Union[str, OrderStatus]) -> Optional[OrderStatus]:
    try:
        return OrderStatus(status)
    except ValueError:
        return None


class OrdersService:
    """
    Servicio para gestión de órdenes.

    Responsabilidades:
    - Crear órdenes desde las líneas del carrito
    - Cambios de estado y anulación
    - Consultas por ID y por estado
    - Estadísticas del día
    """

    def __init__(
        self,
        audit_service: AuditService = None,
        lock: threading.RLock = None,
        clock: Callable[[], datetime] = now_local,
        tax_rate: float = config.TAX_RATE
    ):
        """
        Args:
            audit_service: Servicio de auditoría (opcional)
            lock: Lock compartido con el resto de servicios del terminal
            clock: Fuente de la hora actual (inyectable para tests)
            tax_rate: Tasa de impuesto plana
        """
        self.audit_service = audit_service
        self._lock = lock or threading.RLock()
        self._clock = clock
        self.tax_rate = tax_rate
        self._orders: List[Order] = []
        self._todays_orders: List[Order] = []
        self._daily_stats = DailyStats()

    def _find(self, order_id: str) -> Optional[Order]:
        for order in self._orders:
            if order.id == order_id:
                return order
        return None

    # =========================================================================
    # CREACIÓN DE ÓRDENES
    # =========================================================================

    def create_order(
        self,
        cart_lines: Iterable[Union[CartItem, Dict[str, Any]]],
        details: Dict[str, Any] = None,
        user: str = None
    ) -> str:
        """
        Crea una orden desde las líneas del carrito.
        Esta es la ÚNICA función que crea órdenes.

        Args:
            cart_lines: Líneas del carrito (CartItem o dicts equivalentes)
            details: payment_method, customer_name, notes
            user: Usuario que registra (para auditoría)

        Returns:
            ID de la orden creada (disponible de inmediato para el recibo)
        """
        details = details or {}
        lines = [
            line if isinstance(line, CartItem) else CartItem.from_dict(line)
            for line in cart_lines
        ]

        subtotal = sum(line.price * line.quantity for line in lines)
        tax = calculate_tax(subtotal, self.tax_rate)
        total = subtotal + tax

        customer_name = (details.get('customer_name') or '').strip() or None
        payment_method = details.get('payment_method') or PaymentMethod.CASH.value
        if isinstance(payment_method, PaymentMethod):
            payment_method = payment_method.value

        now = self._clock()
        order = Order(
            id=generate_order_id(),
            order_number=generate_order_number(now),
            items=tuple(
                OrderItem(
                    id=line.id,
                    name=line.name,
                    price=line.price,
                    quantity=line.quantity,
                    category=line.category,
                )
                for line in lines
            ),
            subtotal=subtotal,
            tax=tax,
            total=total,
            status=OrderStatus.PENDING,
            customer_type=CustomerType.REGULAR if customer_name else CustomerType.WALK_IN,
            customer_name=customer_name,
            payment_method=payment_method,
            notes=details.get('notes') or None,
            created_at=now,
            updated_at=now,
        )

        with self._lock:
            # Más reciente primero
            self._orders.insert(0, order)
            self.calculate_daily_stats()

        if self.audit_service and user:
            self.audit_service.log_order_created(
                user, order.id, order.order_number, round(total, 2),
                payment_method, len(order.items)
            )

        return order.id

    # =========================================================================
    # ESTADOS
    # =========================================================================

    @staticmethod
    def is_valid_transition(old_status: Union[str, OrderStatus], new_status: Union[str, OrderStatus]) -> bool:
        """
        Verifica si el cambio de estado respeta el flujo
        pending → preparing → ready → completed (+ cancelled).
        """
        old = _coerce_status(old_status)
        new = _coerce_status(new_status)
        if old is None or new is None:
            return False
        return new in ORDER_TRANSITIONS[old]

    def update_order_status(
        self,
        order_id: str,
        status: Union[str, OrderStatus],
        user: str = None
    ) -> bool:
        """
        Cambia el estado de una orden.

        No valida el flujo de estados: eso le corresponde al llamador
        (ver is_valid_transition). Solo cambia status, updated_at y, al
        pasar a completed, completed_at.

        Returns:
            True si la orden existía y el estado es válido
        """
        new_status = _coerce_status(status)
        if new_status is None:
            return False

        with self._lock:
            order = self._find(order_id)
            if order is None:
                return False
            old_status = order.status
            now = self._clock()
            order.status = new_status
            order.updated_at = now
            if new_status == OrderStatus.COMPLETED:
                order.completed_at = now
            self.calculate_daily_stats()
            order_number = order.order_number

        if self.audit_service and user:
            self.audit_service.log_order_status_change(
                user, order_id, order_number, old_status.value, new_status.value
            )

        return True

    def cancel_order(self, order_id: str, user: str = None) -> bool:
        """
        Anula una orden salvo que ya esté completada.

        Returns:
            True si se anuló
        """
        with self._lock:
            order = self._find(order_id)
            if order is None or order.status == OrderStatus.COMPLETED:
                return False
            old_status = order.status
            order.status = OrderStatus.CANCELLED
            order.updated_at = self._clock()
            self.calculate_daily_stats()
            order_number = order.order_number

        if self.audit_service and user:
            self.audit_service.log_order_status_change(
                user, order_id, order_number, old_status.value, OrderStatus.CANCELLED.value
            )

        return True

    # =========================================================================
    # CONSULTAS
    # =========================================================================

    def get_orders(self) -> List[Order]:
        """Todas las órdenes, más recientes primero."""
        with self._lock:
            return [replace(o) for o in self._orders]

    def get_order_by_id(self, order_id: str) -> Optional[Order]:
        with self._lock:
            order = self._find(order_id)
            return replace(order) if order else None

    def get_orders_by_status(self, status: Union[str, OrderStatus]) -> List[Order]:
        wanted = _coerce_status(status)
        with self._lock:
            return [replace(o) for o in self._orders if o.status == wanted]

    def get_active_orders(self) -> List[Order]:
        """Órdenes en curso (pending, preparing, ready)."""
        with self._lock:
            return [replace(o) for o in self._orders if o.status in ACTIVE_STATUSES]

    @property
    def todays_orders(self) -> List[Order]:
        with self._lock:
            return [replace(o) for o in self._todays_orders]

    @property
    def daily_stats(self) -> DailyStats:
        with self._lock:
            return replace(self._daily_stats)

    # =========================================================================
    # ESTADÍSTICAS DEL DÍA
    # =========================================================================

    def calculate_daily_stats(self) -> DailyStats:
        """
        Recalcula desde cero las métricas del día (fecha local).

        - total_sales: suma de totales de órdenes completadas
        - total_orders: órdenes creadas hoy (cualquier estado)
        - average_order_value: total_sales / completadas (0 si no hay)
        """
        with self._lock:
            today = self._clock().astimezone().date()
            todays = [
                o for o in self._orders
                if o.created_at.astimezone().date() == today
            ]
            completed = [o for o in todays if o.status == OrderStatus.COMPLETED]
            total_sales = sum(o.total for o in completed)
            average = total_sales / len(completed) if completed else 0

            self._todays_orders = todays
            self._daily_stats = DailyStats(
                total_sales=round(total_sales, 2),
                total_orders=len(todays),
                completed_orders=len(completed),
                average_order_value=round(average, 2),
            )
            return replace(self._daily_stats)

    # =========================================================================
    # DATOS SEMILLA
    # =========================================================================

    def initialize_default_orders(self) -> int:
        """
        Carga tres órdenes de ejemplo solo si no hay ninguna.

        Returns:
            Cantidad de órdenes agregadas
        """
        with self._lock:
            if self._orders:
                return 0

            now = self._clock()

            def minutes_ago(n: int) -> datetime:
                return now - timedelta(minutes=n)

            seeds = [
                Order(
                    id=generate_order_id(),
                    order_number=generate_order_number(now),
                    items=(
                        OrderItem('1', 'Americano', 4.50, 1, 'Coffee'),
                        OrderItem('2', 'Croissant', 3.50, 1, 'Pastries'),
                    ),
                    subtotal=8.00, tax=0.64, total=8.64,
                    status=OrderStatus.COMPLETED,
                    customer_type=CustomerType.WALK_IN,
                    payment_method=PaymentMethod.CASH.value,
                    created_at=minutes_ago(10),
                    updated_at=minutes_ago(8),
                    completed_at=minutes_ago(8),
                ),
                Order(
                    id=generate_order_id(),
                    order_number=generate_order_number(now),
                    items=(OrderItem('3', 'Latte', 5.50, 2, 'Coffee'),),
                    subtotal=11.00, tax=0.88, total=11.88,
                    status=OrderStatus.PREPARING,
                    customer_type=CustomerType.WALK_IN,
                    payment_method=PaymentMethod.CARD.value,
                    created_at=minutes_ago(5),
                    updated_at=minutes_ago(3),
                ),
                Order(
                    id=generate_order_id(),
                    order_number=generate_order_number(now),
                    items=(
                        OrderItem('4', 'Cappuccino', 5.00, 1, 'Coffee'),
                        OrderItem('5', 'Blueberry Muffin', 4.00, 1, 'Pastries'),
                    ),
                    subtotal=9.00, tax=0.72, total=9.72,
                    status=OrderStatus.COMPLETED,
                    customer_type=CustomerType.REGULAR,
                    customer_name='John Doe',
                    payment_method=PaymentMethod.CARD.value,
                    created_at=minutes_ago(15),
                    updated_at=minutes_ago(10),
                    completed_at=minutes_ago(10),
                ),
            ]
            self._orders.extend(seeds)
            self.calculate_daily_stats()
            return len(seeds)
