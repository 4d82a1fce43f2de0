# ==============================================================================
# ENTIDADES DEL DOMINIO - Definiciones de dataclasses
# ==============================================================================
# Cada entidad representa un concepto del negocio de la cafetería.
# Diseñadas para ser independientes del mecanismo de persistencia.
# ==============================================================================

from dataclasses import dataclass, field
from typing import Optional, List, Dict, Any, Tuple
from enum import Enum
from datetime import datetime


# ==============================================================================
# ENUMERACIONES - Estados y tipos válidos
# ==============================================================================

class OrderStatus(str, Enum):
    """Estados posibles de una orden."""
    PENDING = "pending"        # Recién creada
    PREPARING = "preparing"    # En barra
    READY = "ready"            # Lista para entregar
    COMPLETED = "completed"    # Entregada (terminal)
    CANCELLED = "cancelled"    # Anulada (terminal)


# Transiciones permitidas (avance hacia adelante + cancelación)
ORDER_TRANSITIONS: Dict[OrderStatus, frozenset] = {
    OrderStatus.PENDING: frozenset([OrderStatus.PREPARING, OrderStatus.CANCELLED]),
    OrderStatus.PREPARING: frozenset([OrderStatus.READY, OrderStatus.CANCELLED]),
    OrderStatus.READY: frozenset([OrderStatus.COMPLETED, OrderStatus.CANCELLED]),
    OrderStatus.COMPLETED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}


class PaymentMethod(str, Enum):
    """Métodos de pago aceptados."""
    CASH = "cash"
    CARD = "card"
    GCASH = "GCash"
    GRABPAY = "GrabPay"
    PAYMAYA = "PayMaya"
    CREDIT_CARD = "Credit Card"


class CustomerType(str, Enum):
    """Clasificación del cliente según si dio su nombre."""
    WALK_IN = "walk-in"
    REGULAR = "regular"


class PaymentState(str, Enum):
    """Estados del diálogo de pago con tarjeta."""
    IDLE = "idle"
    PROCESSING = "processing"
    READY = "ready"
    SUCCESS = "success"
    FAILED = "failed"


class InvoiceStatus(str, Enum):
    """Estados que reporta Xendit para una factura."""
    PENDING = "PENDING"
    PAID = "PAID"
    SETTLED = "SETTLED"
    EXPIRED = "EXPIRED"


class AuditType(str, Enum):
    """Tipos de eventos de auditoría."""
    ORDEN = "ORDEN"
    PAGO = "PAGO"
    STOCK = "STOCK"
    PRODUCTO = "PRODUCTO"
    SISTEMA = "SISTEMA"


# ==============================================================================
# UTILIDADES DE FECHAS
# ==============================================================================

def now_local() -> datetime:
    """Fecha/hora actual con zona horaria local."""
    return datetime.now().astimezone()


def _to_iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _from_iso(value: Any) -> Optional[datetime]:
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value).replace('Z', '+00:00'))
    except ValueError:
        return None


# ==============================================================================
# ENTIDADES DE INVENTARIO
# ==============================================================================

@dataclass
class InventoryItem:
    """
    Producto del menú con su stock.

    Attributes:
        id: Identificador opaco único
        name: Nombre visible (no necesita ser único)
        category: Categoría (conjunto abierto)
        price: Precio de venta
        cost: Costo de compra (para margen)
        stock: Existencias (nunca negativas)
        low_stock_threshold: Umbral de stock bajo
        is_active: Si se ofrece en el terminal
    """
    id: str
    name: str
    category: str
    price: float
    cost: float = 0.0
    stock: int = 0
    low_stock_threshold: int = 0
    is_active: bool = True
    description: Optional[str] = None
    image: Optional[str] = None
    created_at: datetime = field(default_factory=now_local)
    updated_at: datetime = field(default_factory=now_local)

    @property
    def is_low_stock(self) -> bool:
        """Activo y con stock igual o por debajo del umbral."""
        return self.is_active and self.stock <= self.low_stock_threshold

    @property
    def is_offerable(self) -> bool:
        """Puede agregarse a un carrito nuevo."""
        return self.is_active and self.stock > 0

    def to_dict(self) -> Dict[str, Any]:
        """Convierte a diccionario para JSON."""
        return {
            'id': self.id,
            'name': self.name,
            'category': self.category,
            'price': self.price,
            'cost': self.cost,
            'stock': self.stock,
            'low_stock_threshold': self.low_stock_threshold,
            'is_active': self.is_active,
            'description': self.description,
            'image': self.image,
            'created_at': _to_iso(self.created_at),
            'updated_at': _to_iso(self.updated_at),
        }


# ==============================================================================
# ENTIDADES DE CARRITO
# ==============================================================================

@dataclass
class CartItem:
    """
    Línea del carrito. Copia por valor los datos del producto al agregarlo,
    una edición posterior del inventario no cambia el carrito abierto.
    """
    id: str
    name: str
    price: float
    category: str
    image: Optional[str] = None
    quantity: int = 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'price': self.price,
            'category': self.category,
            'image': self.image,
            'quantity': self.quantity,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CartItem':
        """Crea instancia desde diccionario (ej: snapshot persistido)."""
        return cls(
            id=str(data.get('id', '')),
            name=data.get('name', ''),
            price=float(data.get('price', 0) or 0),
            category=data.get('category', ''),
            image=data.get('image'),
            quantity=int(data.get('quantity', 1) or 1),
        )


# ==============================================================================
# ENTIDADES DE ÓRDENES
# ==============================================================================

@dataclass(frozen=True)
class OrderItem:
    """Snapshot inmutable de una línea vendida."""
    id: str
    name: str
    price: float
    quantity: int
    category: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'price': self.price,
            'quantity': self.quantity,
            'category': self.category,
        }


@dataclass
class Order:
    """
    Orden finalizada.

    Los totales se calculan una sola vez al crearla; los cambios de estado
    no los alteran.
    """
    id: str
    order_number: str
    items: Tuple[OrderItem, ...]
    subtotal: float
    tax: float
    total: float
    status: OrderStatus = OrderStatus.PENDING
    customer_type: CustomerType = CustomerType.WALK_IN
    payment_method: str = PaymentMethod.CASH.value
    customer_name: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime = field(default_factory=now_local)
    updated_at: datetime = field(default_factory=now_local)
    completed_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'order_number': self.order_number,
            'items': [i.to_dict() for i in self.items],
            'subtotal': self.subtotal,
            'tax': self.tax,
            'total': self.total,
            'status': self.status.value,
            'customer_type': self.customer_type.value,
            'customer_name': self.customer_name,
            'payment_method': self.payment_method,
            'notes': self.notes,
            'created_at': _to_iso(self.created_at),
            'updated_at': _to_iso(self.updated_at),
            'completed_at': _to_iso(self.completed_at),
        }


@dataclass
class DailyStats:
    """Métricas del día calculadas desde la lista de órdenes."""
    total_sales: float = 0.0
    total_orders: int = 0
    completed_orders: int = 0
    average_order_value: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'total_sales': self.total_sales,
            'total_orders': self.total_orders,
            'completed_orders': self.completed_orders,
            'average_order_value': self.average_order_value,
        }


# ==============================================================================
# ENTIDADES DE PAGO (reflejo local de recursos de Xendit)
# ==============================================================================

@dataclass(frozen=True)
class Invoice:
    """
    Factura de Xendit. El sistema local nunca la modifica; los cambios de
    estado se observan por polling o por los parámetros del redirect.
    """
    id: str
    external_id: str
    amount: float
    status: str
    invoice_url: str
    expiry_date: Optional[str] = None
    description: str = ''
    currency: str = 'PHP'
    merchant_name: Optional[str] = None
    payer_email: Optional[str] = None
    created: Optional[str] = None
    updated: Optional[str] = None

    @property
    def is_paid(self) -> bool:
        return self.status in (InvoiceStatus.PAID.value, InvoiceStatus.SETTLED.value)

    @property
    def is_expired(self) -> bool:
        return self.status == InvoiceStatus.EXPIRED.value

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'external_id': self.external_id,
            'amount': self.amount,
            'status': self.status,
            'invoice_url': self.invoice_url,
            'expiry_date': self.expiry_date,
            'description': self.description,
            'currency': self.currency,
            'merchant_name': self.merchant_name,
            'payer_email': self.payer_email,
            'created': self.created,
            'updated': self.updated,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Invoice':
        """Crea instancia desde la respuesta JSON de la API."""
        return cls(
            id=str(data.get('id', '')),
            external_id=str(data.get('external_id', '')),
            amount=float(data.get('amount', 0) or 0),
            status=str(data.get('status', InvoiceStatus.PENDING.value)),
            invoice_url=data.get('invoice_url', ''),
            expiry_date=data.get('expiry_date'),
            description=data.get('description', ''),
            currency=data.get('currency', 'PHP'),
            merchant_name=data.get('merchant_name'),
            payer_email=data.get('payer_email'),
            created=data.get('created'),
            updated=data.get('updated'),
        )


@dataclass
class PendingOrder:
    """
    Snapshot del carrito guardado antes de redirigir al checkout de Xendit.
    La página que retoma después del redirect lo lee y lo borra.
    """
    items: List[CartItem]
    total: float
    tax: float
    grand_total: float
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    timestamp: datetime = field(default_factory=now_local)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'items': [i.to_dict() for i in self.items],
            'customer_name': self.customer_name,
            'customer_email': self.customer_email,
            'customer_phone': self.customer_phone,
            'total': self.total,
            'tax': self.tax,
            'grand_total': self.grand_total,
            'timestamp': _to_iso(self.timestamp),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PendingOrder':
        return cls(
            items=[CartItem.from_dict(i) for i in data.get('items') or []],
            customer_name=data.get('customer_name') or None,
            customer_email=data.get('customer_email') or None,
            customer_phone=data.get('customer_phone') or None,
            total=float(data.get('total', 0) or 0),
            tax=float(data.get('tax', 0) or 0),
            grand_total=float(data.get('grand_total', 0) or 0),
            timestamp=_from_iso(data.get('timestamp')) or now_local(),
        )
