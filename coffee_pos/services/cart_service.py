# ==============================================================================
# SERVICIO DE CARRITO
# ==============================================================================
# Centraliza toda la lógica del carrito que se arma en el terminal.
# El carrito vive en memoria; los totales se derivan de las líneas y nadie
# fuera de este servicio puede escribirlos.
# ==============================================================================

import threading
from dataclasses import replace
from typing import Any, Dict, List, Optional, Union

from coffee_pos.models import CartItem, InventoryItem


class CartService:
    """
    Servicio para gestión del carrito.

    Responsabilidades:
    - Agregar/eliminar items del carrito
    - Cambiar cantidades
    - Recalcular totales (subtotal, item_count) tras cada cambio
    - Limpiar carrito

    Una sola línea por producto: agregar el mismo ID incrementa la cantidad.
    """

    def __init__(self, lock: threading.RLock = None):
        """
        Args:
            lock: Lock compartido con el resto de servicios del terminal
        """
        self._lock = lock or threading.RLock()
        self._items: List[CartItem] = []
        self._subtotal = 0.0
        self._item_count = 0

    def _calculate_totals(self) -> None:
        """Fold puro sobre las líneas actuales."""
        self._subtotal = sum(item.price * item.quantity for item in self._items)
        self._item_count = sum(item.quantity for item in self._items)

    def _find(self, item_id: str) -> Optional[CartItem]:
        for item in self._items:
            if item.id == item_id:
                return item
        return None

    # =========================================================================
    # LECTURAS
    # =========================================================================

    @property
    def subtotal(self) -> float:
        with self._lock:
            return self._subtotal

    @property
    def item_count(self) -> int:
        with self._lock:
            return self._item_count

    @property
    def is_empty(self) -> bool:
        with self._lock:
            return not self._items

    def get_cart_items(self) -> List[CartItem]:
        """
        Obtiene copias de las líneas del carrito.

        Returns:
            Lista de items
        """
        with self._lock:
            return [replace(i) for i in self._items]

    def get_cart(self) -> Dict[str, Any]:
        """
        Obtiene el carrito con totales.

        Returns:
            Dict con items, subtotal, item_count, items_count
        """
        with self._lock:
            return {
                'items': [i.to_dict() for i in self._items],
                'subtotal': self._subtotal,
                'item_count': self._item_count,
                'items_count': len(self._items),
            }

    # =========================================================================
    # MUTACIONES
    # =========================================================================

    def add_item(self, snapshot: Union[InventoryItem, CartItem, Dict[str, Any]]) -> bool:
        """
        Agrega una unidad de un producto.

        Si ya hay una línea con ese ID se incrementa en 1; si no, se crea
        una línea nueva copiando precio, nombre, categoría e imagen.

        Args:
            snapshot: Producto del inventario (o sus datos)

        Returns:
            False si el snapshot no trae ID (el carrito no cambia)
        """
        if isinstance(snapshot, dict):
            data = snapshot
        else:
            data = {
                'id': snapshot.id,
                'name': snapshot.name,
                'price': snapshot.price,
                'category': snapshot.category,
                'image': snapshot.image,
            }

        item_id = data.get('id')
        if item_id is None or str(item_id).strip() == '':
            return False
        item_id = str(item_id)

        with self._lock:
            existing = self._find(item_id)
            if existing:
                existing.quantity += 1
            else:
                self._items.append(CartItem(
                    id=item_id,
                    name=data.get('name', ''),
                    price=float(data.get('price', 0) or 0),
                    category=data.get('category', ''),
                    image=data.get('image'),
                    quantity=1,
                ))
            self._calculate_totals()
            return True

    def remove_item(self, item_id: str) -> None:
        """Elimina la línea del producto si existe."""
        with self._lock:
            self._items = [i for i in self._items if i.id != item_id]
            self._calculate_totals()

    def update_quantity(self, item_id: str, quantity: int) -> None:
        """
        Cambia la cantidad de una línea.

        Args:
            item_id: ID del producto
            quantity: Nueva cantidad (<= 0 elimina la línea)
        """
        if quantity <= 0:
            self.remove_item(item_id)
            return

        with self._lock:
            item = self._find(item_id)
            if item:
                item.quantity = int(quantity)
            self._calculate_totals()

    def clear_cart(self) -> None:
        """Vacía el carrito: líneas y totales en un solo paso."""
        with self._lock:
            self._items = []
            self._subtotal = 0.0
            self._item_count = 0
