# ==============================================================================
# CAPA DE SERVICIOS - Lógica de negocio
# ==============================================================================
# Esta capa contiene TODA la lógica de negocio del terminal.
#
# PRINCIPIOS:
# 1. Los stores (inventario, carrito, órdenes) son objetos explícitos,
#    creados por app_container.py e inyectados al terminal
# 2. Cada store tiene un único punto de mutación y recalcula sus derivados
# 3. Las rutas (controllers) solo llaman a servicios
# 4. Ningún error de la pasarela sale del controlador de pago
#
# ESTRUCTURA:
# ├── inventory_service.py   → Catálogo, stock, stock bajo
# ├── cart_service.py        → Carrito del terminal
# ├── orders_service.py      → Órdenes y estadísticas del día
# ├── xendit_client.py       → HTTP con la API de facturas de Xendit
# ├── payment_service.py     → Validación y armado de facturas
# ├── payment_controller.py  → Ciclo de vida del pago con tarjeta
# ├── scheduler.py           → Temporizadores (reales y virtuales)
# ├── terminal_service.py    → Flujo de venta y retorno del checkout
# └── audit_service.py       → Logs de actividad
# ==============================================================================

from coffee_pos.services.audit_service import AuditService
from coffee_pos.services.inventory_service import InventoryService
from coffee_pos.services.cart_service import CartService
from coffee_pos.services.orders_service import OrdersService
from coffee_pos.services.xendit_client import XenditClient
from coffee_pos.services.payment_service import PaymentService
from coffee_pos.services.payment_controller import PaymentController
from coffee_pos.services.scheduler import ManualScheduler, ThreadScheduler, TimerGroup
from coffee_pos.services.terminal_service import TerminalService

__all__ = [
    'AuditService',
    'InventoryService',
    'CartService',
    'OrdersService',
    'XenditClient',
    'PaymentService',
    'PaymentController',
    'ManualScheduler',
    'ThreadScheduler',
    'TimerGroup',
    'TerminalService',
]
