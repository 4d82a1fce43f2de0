# ==============================================================================
# REPOSITORIO DE ORDEN PENDIENTE (pago con Xendit)
# ==============================================================================
# Encapsula el acceso a pending_order.json.
# Antes de redirigir al checkout de Xendit se guarda aquí el carrito completo
# y los datos del cliente; al volver, el terminal lo consume UNA sola vez.
#
# LIMITACIÓN: un solo registro, la última escritura gana. Dos pagos con
# tarjeta simultáneos desde el mismo terminal no están soportados.
# ==============================================================================

import os
from typing import Optional

from coffee_pos.models import PendingOrder
from .base import SlotRepository


class PendingOrderRepository(SlotRepository):
    """
    Buzón de una posición para el snapshot del carrito.

    Formato de datos en pending_order.json:
    {
        "items": [{"id": "...", "name": "Latte", "price": 5.5, "quantity": 2, ...}],
        "customer_name": "Ana",
        "customer_email": null,
        "customer_phone": null,
        "total": 11.0,
        "tax": 0.88,
        "grand_total": 11.88,
        "timestamp": "2024-01-01T10:00:00+08:00"
    }
    """

    def __init__(self, base_path: str, filename: str = 'pending_order.json'):
        """
        Args:
            base_path: Carpeta de datos
            filename: Nombre del archivo JSON
        """
        super().__init__(os.path.join(base_path, filename))

    def save(self, pending: PendingOrder) -> None:
        """Guarda el snapshot (reemplaza cualquier anterior)."""
        self.write(pending.to_dict())

    def peek(self) -> Optional[PendingOrder]:
        """Lee el snapshot sin borrarlo."""
        data = self.read()
        return PendingOrder.from_dict(data) if data else None

    def consume(self) -> Optional[PendingOrder]:
        """
        Lee y borra el snapshot. Una recarga posterior ya no lo encuentra.

        Returns:
            PendingOrder o None si no había snapshot
        """
        data = self.take()
        if not data:
            return None
        return PendingOrder.from_dict(data)
