# ==============================================================================
# SERVICIO DEL TERMINAL (POS)
# ==============================================================================
# Orquesta el flujo de venta del terminal:
#   catálogo → carrito → cobro en efectivo o con tarjeta (Xendit) → orden
#
# También retoma el pago cuando el navegador vuelve del checkout de Xendit
# con ?payment=success|failed.
#
# REGLAS:
# - Solo este servicio vacía el carrito después de cobrar
# - El controlador de pago nunca escribe en el carrito
# - El regreso del checkout crea la orden UNA sola vez (el snapshot se
#   consume y el marcador lo limpia la capa HTTP)
# - Volver del checkout cierra el diálogo de pago y deja el carrito vacío
# ==============================================================================

import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from coffee_pos import config
from coffee_pos.models import InventoryItem, PaymentMethod, now_local
from coffee_pos.repositories.pending_order_repository import PendingOrderRepository
from coffee_pos.services.audit_service import AuditService
from coffee_pos.services.cart_service import CartService
from coffee_pos.services.inventory_service import ALL_CATEGORIES, InventoryService
from coffee_pos.services.orders_service import OrdersService, calculate_tax
from coffee_pos.services.payment_controller import PaymentController
from coffee_pos.services.scheduler import TimerHandle


XENDIT_CHECKOUT_NOTE = 'Xendit Payment - Completed via checkout'
XENDIT_DEFAULT_CUSTOMER = 'Xendit Customer'

PAYMENT_RESULT_SUCCESS = 'success'
PAYMENT_RESULT_FAILED = 'failed'

NOTIFICATION_MESSAGES = {
    PAYMENT_RESULT_SUCCESS: ('Payment Successful!', 'Your order has been processed.'),
    PAYMENT_RESULT_FAILED: ('Payment Failed', 'Please try again or use a different payment method.'),
}


@dataclass
class PaymentNotification:
    """Aviso transitorio del resultado del pago (se oculta solo)."""
    result: str
    title: str
    message: str
    order_id: Optional[str] = None
    shown_at: datetime = field(default_factory=now_local)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'result': self.result,
            'title': self.title,
            'message': self.message,
            'order_id': self.order_id,
            'shown_at': self.shown_at.isoformat(),
        }


class TerminalService:
    """
    Servicio del terminal de venta.

    Responsabilidades:
    - Mostrar productos ofrecibles por categoría
    - Armar el carrito desde el inventario
    - Cobrar en efectivo (orden inmediata) o con tarjeta (diálogo de pago)
    - Crear la orden al confirmarse el pago con tarjeta
    - Retomar el pago al volver del checkout de Xendit
    """

    def __init__(
        self,
        inventory: InventoryService,
        cart: CartService,
        orders: OrdersService,
        payment: PaymentController,
        pending_repo: PendingOrderRepository,
        scheduler,
        lock: threading.RLock = None,
        audit_service: AuditService = None,
        notification_seconds: float = config.NOTIFICATION_SECONDS
    ):
        """
        Args:
            inventory: Store de inventario
            cart: Store del carrito
            orders: Store de órdenes
            payment: Controlador del diálogo de pago
            pending_repo: Buzón del carrito guardado antes del redirect
            scheduler: Temporizadores (auto-ocultar notificaciones)
            lock: Lock compartido del terminal
            audit_service: Servicio de auditoría (opcional)
            notification_seconds: Duración de la notificación de pago
        """
        self.inventory = inventory
        self.cart = cart
        self.orders = orders
        self.payment = payment
        self.pending_repo = pending_repo
        self.scheduler = scheduler
        self._lock = lock or threading.RLock()
        self.audit_service = audit_service
        self.notification_seconds = notification_seconds

        self.notification: Optional[PaymentNotification] = None
        self._notification_timer: Optional[TimerHandle] = None

    # =========================================================================
    # CATÁLOGO
    # =========================================================================

    def get_categories(self) -> List[str]:
        """Categorías para la navegación, con 'All' primero."""
        return [ALL_CATEGORIES] + self.inventory.categories

    def get_products(self, category: str = ALL_CATEGORIES) -> List[InventoryItem]:
        """Productos activos y con stock de la categoría elegida."""
        return self.inventory.get_offerable_items(category or ALL_CATEGORIES)

    # =========================================================================
    # CARRITO
    # =========================================================================

    def add_to_cart(self, item_id: str) -> Dict[str, Any]:
        """
        Agrega una unidad del producto copiando su snapshot del inventario.

        Returns:
            Dict con ok y el carrito actualizado
        """
        with self._lock:
            item = self.inventory.get_item_by_id(item_id)
            if not item:
                return {'ok': False, 'error': 'Producto no encontrado'}
            if not item.is_offerable:
                return {'ok': False, 'error': f'{item.name} no está disponible'}

            self.cart.add_item(item)
            return {'ok': True, 'cart': self.get_cart_summary()}

    @property
    def tax(self) -> float:
        return calculate_tax(self.cart.subtotal, self.orders.tax_rate)

    @property
    def grand_total(self) -> float:
        return self.cart.subtotal + self.tax

    def get_cart_summary(self) -> Dict[str, Any]:
        with self._lock:
            summary = self.cart.get_cart()
            summary['tax'] = self.tax
            summary['grand_total'] = self.grand_total
            return summary

    # =========================================================================
    # COBRO
    # =========================================================================

    def checkout(self, payment_method: str, user: str = None) -> Dict[str, Any]:
        """
        Cobra el carrito actual.

        - cash: crea la orden (cliente de paso) y vacía el carrito
        - card: abre el diálogo de pago con Xendit

        Args:
            payment_method: 'cash' o 'card'
            user: Cajero

        Returns:
            Dict con ok y order_id (efectivo) o payment (tarjeta)
        """
        with self._lock:
            items = self.cart.get_cart_items()
            if not items:
                return {'ok': False, 'error': 'El carrito está vacío'}

            if payment_method == PaymentMethod.CASH.value:
                order_id = self.orders.create_order(
                    items,
                    {'payment_method': PaymentMethod.CASH.value, 'customer_name': None, 'notes': None},
                    user=user
                )
                self.cart.clear_cart()
                order = self.orders.get_order_by_id(order_id)
                if self.audit_service and user:
                    self.audit_service.log_payment(user, order_id, order.total, PaymentMethod.CASH.value)
                return {'ok': True, 'order_id': order_id, 'order': order.to_dict()}

            if payment_method == PaymentMethod.CARD.value:
                self.payment.open(
                    items,
                    self.cart.subtotal,
                    self.tax,
                    self.grand_total,
                    on_success=self._on_payment_success
                )
                return {'ok': True, 'payment': self.payment.get_status()}

            return {'ok': False, 'error': f'Método de pago no soportado: {payment_method}'}

    def _on_payment_success(self, invoice_id: str) -> None:
        self.handle_payment_success(invoice_id, user=self.payment.user)

    def handle_payment_success(self, invoice_id: str, user: str = None) -> Optional[str]:
        """
        Factura pagada mientras el diálogo seguía abierto:
        crea la orden con tarjeta, vacía el carrito y cierra el diálogo.

        La orden se arma con las líneas que capturó el diálogo al abrirse
        (las mismas de la factura), no con el carrito vivo.

        Returns:
            ID de la orden creada (None si el carrito ya estaba vacío)
        """
        with self._lock:
            if self.payment.is_open:
                items = list(self.payment.items)
            else:
                items = self.cart.get_cart_items()
            order_id = None
            if items:
                order_id = self.orders.create_order(
                    items,
                    {
                        'payment_method': PaymentMethod.CARD.value,
                        'customer_name': None,
                        'notes': f'Xendit Payment - Invoice: {invoice_id}',
                    },
                    user=user
                )
                self._log_card_payment(user, invoice_id, order_id)
            self.cart.clear_cart()
            self.payment.close()
            return order_id

    def handle_payment_return(self, marker: Optional[str], user: str = None) -> Dict[str, Any]:
        """
        Retoma el pago al volver del checkout de Xendit.

        - success: crea la orden desde el snapshot guardado (o, si no hay,
          desde el carrito actual); el carrito vivo queda vacío
        - failed: descarta el snapshot, sin orden

        En ambos casos cierra el diálogo de pago y muestra una notificación
        que se oculta sola.
        El marcador ?payment= lo limpia quien llama.

        Returns:
            Dict con handled, result y order_id
        """
        if marker not in (PAYMENT_RESULT_SUCCESS, PAYMENT_RESULT_FAILED):
            return {'handled': False}

        with self._lock:
            # El diálogo de este intento ya no sigue consultando la factura
            self.payment.close()

            if marker == PAYMENT_RESULT_FAILED:
                self.pending_repo.clear()
                self._notify(PAYMENT_RESULT_FAILED)
                if self.audit_service and user:
                    self.audit_service.log_payment_failed(user, '', 'Checkout de Xendit no completado')
                return {'handled': True, 'result': PAYMENT_RESULT_FAILED, 'order_id': None}

            pending = self.pending_repo.consume()
            order_id = None

            if pending and pending.items:
                order_id = self.orders.create_order(
                    pending.items,
                    {
                        'payment_method': PaymentMethod.CARD.value,
                        'customer_name': pending.customer_name or XENDIT_DEFAULT_CUSTOMER,
                        'notes': XENDIT_CHECKOUT_NOTE,
                    },
                    user=user
                )
                self.cart.clear_cart()
            elif not self.cart.is_empty:
                order_id = self.orders.create_order(
                    self.cart.get_cart_items(),
                    {
                        'payment_method': PaymentMethod.CARD.value,
                        'customer_name': None,
                        'notes': XENDIT_CHECKOUT_NOTE,
                    },
                    user=user
                )
                self.cart.clear_cart()

            if order_id:
                self._log_card_payment(user, '', order_id)

            self._notify(PAYMENT_RESULT_SUCCESS, order_id)
            return {'handled': True, 'result': PAYMENT_RESULT_SUCCESS, 'order_id': order_id}

    def _log_card_payment(self, user: Optional[str], invoice_id: str, order_id: str) -> None:
        if not (self.audit_service and user):
            return
        order = self.orders.get_order_by_id(order_id)
        self.audit_service.log_payment(
            user, invoice_id or order.order_number, order.total, PaymentMethod.CARD.value
        )

    # =========================================================================
    # NOTIFICACIONES
    # =========================================================================

    def _notify(self, result: str, order_id: str = None) -> None:
        """Muestra el aviso y programa su auto-ocultado."""
        if self._notification_timer:
            self._notification_timer.cancel()

        title, message = NOTIFICATION_MESSAGES[result]
        notification = PaymentNotification(result, title, message, order_id)
        self.notification = notification
        self._notification_timer = self.scheduler.call_later(
            self.notification_seconds, lambda: self._expire_notification(notification)
        )

    def _expire_notification(self, notification: PaymentNotification) -> None:
        with self._lock:
            # Solo oculta el aviso que programó este temporizador
            if self.notification is notification:
                self.notification = None
                self._notification_timer = None

    def dismiss_notification(self) -> None:
        """Cierre manual del aviso."""
        with self._lock:
            if self._notification_timer:
                self._notification_timer.cancel()
            self.notification = None
            self._notification_timer = None

    # =========================================================================
    # ESTADO / CIERRE
    # =========================================================================

    def get_state(self, category: str = ALL_CATEGORIES) -> Dict[str, Any]:
        """Vista completa del terminal para la API."""
        with self._lock:
            return {
                'categories': self.get_categories(),
                'selected_category': category or ALL_CATEGORIES,
                'products': [i.to_dict() for i in self.get_products(category)],
                'cart': self.get_cart_summary(),
                'payment': self.payment.get_status(),
                'notification': self.notification.to_dict() if self.notification else None,
            }

    def shutdown(self) -> None:
        """Cancela temporizadores vivos (diálogo y notificación)."""
        with self._lock:
            self.payment.close()
            if self._notification_timer:
                self._notification_timer.cancel()
                self._notification_timer = None
