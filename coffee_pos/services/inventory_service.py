# ==============================================================================
# SERVICIO DE INVENTARIO
# ==============================================================================
# Dueño del catálogo del menú y de los niveles de stock (en memoria).
# Es la hoja del sistema: no depende de ningún otro servicio.
#
# INVARIANTES:
# - El stock nunca es negativo
# - lowStock se recalcula después de CADA mutación
# - Un producto inactivo o sin stock no se ofrece en el terminal
# ==============================================================================

import threading
import time
import uuid
from dataclasses import replace
from typing import Any, Dict, List, Optional

from coffee_pos.models import InventoryItem, now_local
from coffee_pos.services.audit_service import AuditService


# Categorías iniciales (el conjunto crece al agregar productos)
DEFAULT_CATEGORIES = ['Coffee', 'Tea', 'Pastries', 'Sandwiches', 'Beverages']

# Catálogo semilla (solo se carga si el inventario está vacío)
DEFAULT_ITEMS: List[Dict[str, Any]] = [
    {
        'name': 'Americano', 'category': 'Coffee', 'price': 4.50, 'cost': 1.20,
        'stock': 50, 'low_stock_threshold': 10,
        'description': 'Rich and bold espresso with hot water',
        'image': 'https://images.unsplash.com/photo-1495474472287-4d71bcdd2085?w=300&h=200&fit=crop',
    },
    {
        'name': 'Latte', 'category': 'Coffee', 'price': 5.50, 'cost': 1.80,
        'stock': 45, 'low_stock_threshold': 10,
        'description': 'Smooth espresso with steamed milk',
        'image': 'https://images.unsplash.com/photo-1561047029-3000c68339ca?w=300&h=200&fit=crop',
    },
    {
        'name': 'Cappuccino', 'category': 'Coffee', 'price': 5.00, 'cost': 1.60,
        'stock': 40, 'low_stock_threshold': 10,
        'description': 'Equal parts espresso, steamed milk, and foam',
        'image': 'https://images.unsplash.com/photo-1572442388796-11668a67e53d?w=300&h=200&fit=crop',
    },
    {
        'name': 'Espresso', 'category': 'Coffee', 'price': 3.50, 'cost': 1.00,
        'stock': 30, 'low_stock_threshold': 15,
        'description': 'Pure espresso shot',
        'image': 'https://www.sharmispassions.com/wp-content/uploads/2012/07/espresso-coffee-recipe022.jpg',
    },
    {
        'name': 'Green Tea', 'category': 'Tea', 'price': 3.00, 'cost': 0.80,
        'stock': 25, 'low_stock_threshold': 8,
        'description': 'Refreshing green tea',
        'image': 'https://images.unsplash.com/photo-1556679343-c7306c1976bc?w=300&h=200&fit=crop',
    },
    {
        'name': 'Croissant', 'category': 'Pastries', 'price': 3.50, 'cost': 1.20,
        'stock': 20, 'low_stock_threshold': 5,
        'description': 'Buttery, flaky croissant',
        'image': 'https://static01.nyt.com/images/2021/04/07/dining/06croissantsrex1/merlin_184841898_ccc8fb62-ee41-44e8-9ddf-b95b198b88db-threeByTwoMediumAt2X.jpg',
    },
    {
        'name': 'Blueberry Muffin', 'category': 'Pastries', 'price': 4.00, 'cost': 1.50,
        'stock': 15, 'low_stock_threshold': 5,
        'description': 'Fresh blueberry muffin',
        'image': 'https://www.allrecipes.com/thmb/57iiSIoJi4CqyK3PgRTxDJ9GMoo=/0x512/6865-to-die-for-blueberry-muffins.jpg',
    },
    {
        'name': 'Club Sandwich', 'category': 'Sandwiches', 'price': 8.50, 'cost': 3.20,
        'stock': 12, 'low_stock_threshold': 3,
        'description': 'Triple-decker club sandwich',
        'image': 'https://upload.wikimedia.org/wikipedia/commons/5/51/Club_sandwich_at_Caf%C3%A9_Picnic.jpg',
    },
]

# Campos que se pueden editar (id y created_at no)
EDITABLE_FIELDS = frozenset([
    'name', 'category', 'price', 'cost', 'stock', 'low_stock_threshold',
    'is_active', 'description', 'image'
])

ALL_CATEGORIES = 'All'


def generate_item_id() -> str:
    """ID opaco: item_<milisegundos>_<9 caracteres aleatorios>"""
    return f"item_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


class InventoryService:
    """
    Servicio para gestión de inventario.

    Responsabilidades:
    - CRUD de productos del menú
    - Ajustes de stock
    - Vista derivada de stock bajo
    - Registro de categorías
    - Catálogo semilla

    Las lecturas devuelven copias: nadie fuera del servicio muta el estado.
    """

    def __init__(
        self,
        audit_service: AuditService = None,
        lock: threading.RLock = None
    ):
        """
        Inicializa el servicio de inventario.

        Args:
            audit_service: Servicio de auditoría (opcional)
            lock: Lock compartido con el resto de servicios del terminal
        """
        self.audit_service = audit_service
        self._lock = lock or threading.RLock()
        self._items: List[InventoryItem] = []
        self._categories: List[str] = list(DEFAULT_CATEGORIES)
        self._low_stock_items: List[InventoryItem] = []

    # =========================================================================
    # VISTAS DERIVADAS
    # =========================================================================

    def _recompute_low_stock(self) -> None:
        """Recalcula la lista de stock bajo. Se llama al final de cada mutación."""
        self._low_stock_items = [i for i in self._items if i.is_low_stock]

    def _register_category(self, category: Optional[str]) -> None:
        if category and category not in self._categories:
            self._categories.append(category)

    def _find(self, item_id: str) -> Optional[InventoryItem]:
        for item in self._items:
            if item.id == item_id:
                return item
        return None

    @property
    def categories(self) -> List[str]:
        with self._lock:
            return list(self._categories)

    @property
    def low_stock_items(self) -> List[InventoryItem]:
        with self._lock:
            return [replace(i) for i in self._low_stock_items]

    def get_low_stock_items(self) -> List[InventoryItem]:
        """Productos activos con stock <= umbral."""
        return self.low_stock_items

    # =========================================================================
    # OPERACIONES DE PRODUCTOS
    # =========================================================================

    def add_item(self, data: Dict[str, Any], user: str = None) -> str:
        """
        Crea un nuevo producto.

        Args:
            data: Campos del producto (name, category, price, cost, stock, ...)
            user: Usuario que crea (para auditoría)

        Returns:
            ID asignado al producto
        """
        now = now_local()
        item = InventoryItem(
            id=generate_item_id(),
            name=data.get('name', ''),
            category=data.get('category', ''),
            price=float(data.get('price', 0) or 0),
            cost=max(0.0, float(data.get('cost', 0) or 0)),
            stock=max(0, int(data.get('stock', 0) or 0)),
            low_stock_threshold=max(0, int(data.get('low_stock_threshold', 0) or 0)),
            is_active=bool(data.get('is_active', True)),
            description=data.get('description'),
            image=data.get('image'),
            created_at=now,
            updated_at=now,
        )

        with self._lock:
            self._items.append(item)
            self._register_category(item.category)
            self._recompute_low_stock()

        if self.audit_service and user:
            self.audit_service.log_item_created(user, item.id, item.name)

        return item.id

    def update_item(self, item_id: str, updates: Dict[str, Any], user: str = None) -> bool:
        """
        Actualiza datos de un producto. ID desconocido → no hace nada.

        Args:
            item_id: ID del producto
            updates: Campos a actualizar (solo EDITABLE_FIELDS)
            user: Usuario que actualiza (para auditoría)

        Returns:
            True si se actualizó
        """
        filtered = {k: v for k, v in updates.items() if k in EDITABLE_FIELDS}

        # Normalizar valores numéricos
        if 'price' in filtered:
            filtered['price'] = float(filtered['price'] or 0)
        if 'cost' in filtered:
            filtered['cost'] = max(0.0, float(filtered['cost'] or 0))
        if 'low_stock_threshold' in filtered:
            filtered['low_stock_threshold'] = max(0, int(filtered['low_stock_threshold'] or 0))
        if 'stock' in filtered:
            stock = int(filtered['stock'] or 0)
            if stock < 0:
                filtered.pop('stock')
            else:
                filtered['stock'] = stock
        if 'is_active' in filtered:
            filtered['is_active'] = bool(filtered['is_active'])

        with self._lock:
            item = self._find(item_id)
            if item is None:
                return False

            for key, value in filtered.items():
                setattr(item, key, value)
            item.updated_at = now_local()

            if 'category' in filtered:
                self._register_category(item.category)
            self._recompute_low_stock()
            name = item.name

        if self.audit_service and user:
            self.audit_service.log_item_updated(user, item_id, name, sorted(filtered))

        return True

    def delete_item(self, item_id: str, user: str = None) -> bool:
        """
        Quita un producto del catálogo activo. Las órdenes pasadas no se
        afectan porque guardan snapshots, no referencias.

        Returns:
            True si existía
        """
        with self._lock:
            item = self._find(item_id)
            self._items = [i for i in self._items if i.id != item_id]
            self._recompute_low_stock()

        if item is not None and self.audit_service and user:
            self.audit_service.log_item_deleted(user, item_id, item.name)

        return item is not None

    def update_stock(self, item_id: str, new_stock: int, user: str = None) -> bool:
        """
        Sobrescribe el stock de un producto.

        Args:
            item_id: ID del producto
            new_stock: Nuevo valor (negativo → se rechaza)
            user: Usuario que ajusta (para auditoría)

        Returns:
            True si se aplicó
        """
        try:
            new_stock = int(new_stock)
        except (TypeError, ValueError):
            return False
        if new_stock < 0:
            return False

        with self._lock:
            item = self._find(item_id)
            if item is None:
                return False
            old_stock = item.stock
            item.stock = new_stock
            item.updated_at = now_local()
            self._recompute_low_stock()
            name = item.name

        if self.audit_service and user:
            self.audit_service.log_stock_update(user, item_id, name, old_stock, new_stock)

        return True

    # =========================================================================
    # CONSULTAS
    # =========================================================================

    def get_all_items(self) -> List[InventoryItem]:
        """Copia de todos los productos del catálogo."""
        with self._lock:
            return [replace(i) for i in self._items]

    def get_item_by_id(self, item_id: str) -> Optional[InventoryItem]:
        with self._lock:
            item = self._find(item_id)
            return replace(item) if item else None

    def get_items_by_category(self, category: str) -> List[InventoryItem]:
        """Productos activos de una categoría."""
        with self._lock:
            return [
                replace(i) for i in self._items
                if i.category == category and i.is_active
            ]

    def get_offerable_items(self, category: str = ALL_CATEGORIES) -> List[InventoryItem]:
        """
        Productos que el terminal puede ofrecer: activos y con stock.

        Args:
            category: Categoría a filtrar ('All' = todas)
        """
        with self._lock:
            return [
                replace(i) for i in self._items
                if i.is_offerable and (category == ALL_CATEGORIES or i.category == category)
            ]

    def search_items(self, term: str = '', category: str = ALL_CATEGORIES) -> List[InventoryItem]:
        """
        Búsqueda por nombre o descripción (sin distinguir mayúsculas).
        Incluye productos inactivos (vista de back-office).
        """
        term_lower = (term or '').strip().lower()
        with self._lock:
            results = []
            for item in self._items:
                if category != ALL_CATEGORIES and item.category != category:
                    continue
                if term_lower:
                    haystack = [item.name or '', item.description or '']
                    if not any(term_lower in s.lower() for s in haystack):
                        continue
                results.append(replace(item))
            return results

    def get_summary(self) -> Dict[str, Any]:
        """
        Resumen para el panel de inventario.

        Returns:
            Dict con total_items, active_items, low_stock_count, total_value
        """
        with self._lock:
            total_value = sum(i.cost * i.stock for i in self._items)
            return {
                'total_items': len(self._items),
                'active_items': sum(1 for i in self._items if i.is_active),
                'low_stock_count': len(self._low_stock_items),
                'total_value': round(total_value, 2),
            }

    # =========================================================================
    # DATOS SEMILLA
    # =========================================================================

    def initialize_default_items(self) -> int:
        """
        Carga el catálogo inicial solo si el inventario está vacío.
        Llamadas repetidas no duplican nada.

        Returns:
            Cantidad de productos agregados
        """
        with self._lock:
            if self._items:
                return 0
            for data in DEFAULT_ITEMS:
                now = now_local()
                item = InventoryItem(
                    id=generate_item_id(),
                    is_active=True,
                    created_at=now,
                    updated_at=now,
                    **data
                )
                self._items.append(item)
                self._register_category(item.category)
            self._recompute_low_stock()
            return len(DEFAULT_ITEMS)
