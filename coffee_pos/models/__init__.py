# ==============================================================================
# CAPA DE MODELOS - Estructuras de datos del sistema
# ==============================================================================
# Este módulo define todas las entidades del dominio usando dataclasses.
# Beneficios:
#   - Type hints para mejor documentación y autocompletado
#   - Fácil serialización a JSON para la API y el snapshot de pago
#   - Independiente del mecanismo de almacenamiento
# ==============================================================================

from .entities import (
    # Inventario
    InventoryItem,

    # Carrito
    CartItem,

    # Órdenes
    Order,
    OrderItem,
    OrderStatus,
    ORDER_TRANSITIONS,
    CustomerType,
    DailyStats,

    # Pagos
    Invoice,
    InvoiceStatus,
    PaymentMethod,
    PaymentState,
    PendingOrder,

    # Auditoría
    AuditType,

    # Utilidades
    now_local,
)

__all__ = [
    # Inventario
    'InventoryItem',

    # Carrito
    'CartItem',

    # Órdenes
    'Order',
    'OrderItem',
    'OrderStatus',
    'ORDER_TRANSITIONS',
    'CustomerType',
    'DailyStats',

    # Pagos
    'Invoice',
    'InvoiceStatus',
    'PaymentMethod',
    'PaymentState',
    'PendingOrder',

    # Auditoría
    'AuditType',

    'now_local',
]
