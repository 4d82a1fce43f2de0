# ==============================================================================
# SERVICIO DE AUDITORÍA
# ==============================================================================
# Centraliza toda la lógica de registro de auditoría.
# Formatea mensajes humanizados y categoriza eventos.
# ==============================================================================

from typing import Any, Dict, List

from coffee_pos.repositories.audit_repository import AuditRepository


class AuditService:
    """
    Servicio para registro y consulta de auditoría.

    Centraliza:
    - Registro de eventos con mensajes humanizados
    - Categorización de eventos (ORDEN, PAGO, STOCK, PRODUCTO, SISTEMA)

    La regla de oro: Si entra dinero → siempre log de PAGO
    """

    TYPE_ORDEN = 'ORDEN'
    TYPE_PAGO = 'PAGO'
    TYPE_STOCK = 'STOCK'
    TYPE_PRODUCTO = 'PRODUCTO'
    TYPE_SISTEMA = 'SISTEMA'

    def __init__(self, audit_repo: AuditRepository):
        """
        Args:
            audit_repo: Repositorio de auditoría
        """
        self.audit_repo = audit_repo

    # =========================================================================
    # REGISTRO DE EVENTOS
    # =========================================================================

    def log(
        self,
        log_type: str,
        user: str,
        message: str,
        related_id: str = '',
        details: Dict[str, Any] = None
    ) -> None:
        """
        Registra un evento de auditoría genérico.

        Args:
            log_type: Tipo de evento (ORDEN, PAGO, STOCK, etc.)
            user: Usuario que realizó la acción
            message: Mensaje descriptivo humanizado
            related_id: ID relacionado (orden, factura, producto)
            details: Detalles adicionales
        """
        self.audit_repo.log(log_type, user, message, related_id, details)

    def log_order_created(
        self,
        user: str,
        order_id: str,
        order_number: str,
        total: float,
        payment_method: str,
        items_count: int
    ) -> None:
        """Registra la creación de una orden."""
        message = (
            f"Orden {order_number} creada - Total: ${total:.2f} "
            f"({payment_method}) - {items_count} items"
        )
        self.log(
            self.TYPE_ORDEN,
            user,
            message,
            order_id,
            {'order_number': order_number, 'total': total, 'payment_method': payment_method}
        )

    def log_order_status_change(
        self,
        user: str,
        order_id: str,
        order_number: str,
        old_status: str,
        new_status: str
    ) -> None:
        """Registra un cambio de estado de orden."""
        message = f"Orden {order_number}: {old_status} → {new_status}"
        self.log(
            self.TYPE_ORDEN,
            user,
            message,
            order_id,
            {'from': old_status, 'to': new_status}
        )

    def log_payment(
        self,
        user: str,
        invoice_id: str,
        amount: float,
        method: str
    ) -> None:
        """
        Registra un pago confirmado.
        REGLA DE ORO: Si entra dinero, siempre se debe llamar esta función.
        """
        message = f"Pago recibido: ${amount:.2f} ({method}) - Factura {invoice_id}"
        self.log(
            self.TYPE_PAGO,
            user,
            message,
            invoice_id,
            {'amount': amount, 'method': method}
        )

    def log_invoice_created(self, user: str, invoice_id: str, amount: float, currency: str) -> None:
        message = f"Factura Xendit {invoice_id} creada por {currency} {amount:,.2f}"
        self.log(self.TYPE_PAGO, user, message, invoice_id, {'amount': amount, 'currency': currency})

    def log_payment_failed(self, user: str, invoice_id: str, reason: str) -> None:
        message = f"Pago no completado ({reason})"
        self.log(self.TYPE_PAGO, user, message, invoice_id or '', {'reason': reason})

    def log_stock_update(
        self,
        user: str,
        item_id: str,
        item_name: str,
        old_stock: int,
        new_stock: int
    ) -> None:
        """Registra un ajuste manual de stock."""
        message = f"Stock de {item_name}: {old_stock} → {new_stock}"
        self.log(
            self.TYPE_STOCK,
            user,
            message,
            item_id,
            {'from': old_stock, 'to': new_stock}
        )

    def log_item_created(self, user: str, item_id: str, name: str) -> None:
        message = f"Producto creado: {name}"
        self.log(self.TYPE_PRODUCTO, user, message, item_id, {'name': name})

    def log_item_updated(self, user: str, item_id: str, name: str, fields: List[str]) -> None:
        message = f"Producto actualizado: {name} ({', '.join(fields)})"
        self.log(self.TYPE_PRODUCTO, user, message, item_id, {'fields': fields})

    def log_item_deleted(self, user: str, item_id: str, name: str) -> None:
        message = f"Producto eliminado: {name}"
        self.log(self.TYPE_PRODUCTO, user, message, item_id, {'name': name})

    def log_user_login(self, user: str) -> None:
        self.log(self.TYPE_SISTEMA, user, f"Inicio de sesión: {user}")

    def log_user_logout(self, user: str) -> None:
        self.log(self.TYPE_SISTEMA, user, f"Cierre de sesión: {user}")

    # =========================================================================
    # CONSULTAS
    # =========================================================================

    def get_recent(self, limit: int = 100) -> List[Dict[str, Any]]:
        """Logs más recientes primero."""
        return self.audit_repo.get_recent_logs(limit)

    def get_by_type(self, log_type: str) -> List[Dict[str, Any]]:
        return self.audit_repo.get_logs_by_type(log_type)
