# ==============================================================================
# CAPA DE REPOSITORIOS - Acceso a datos persistentes
# ==============================================================================
# El inventario, el carrito y las órdenes viven en memoria (servicios).
# Aquí solo está lo que debe sobrevivir a un reinicio o a un redirect:
#
# ESTRUCTURA:
# ├── base.py                      → Clases base JSON (ListRepository, SlotRepository)
# ├── pending_order_repository.py  → pending_order.json (snapshot antes de Xendit)
# └── audit_repository.py          → audit.json
# ==============================================================================

from .base import BaseRepository, ListRepository, SlotRepository
from .pending_order_repository import PendingOrderRepository
from .audit_repository import AuditRepository

__all__ = [
    # Clases base
    'BaseRepository',
    'ListRepository',
    'SlotRepository',

    # Implementaciones JSON
    'PendingOrderRepository',
    'AuditRepository',
]
