# ==============================================================================
# CONTENEDOR DE DEPENDENCIAS - Inyección de servicios
# ==============================================================================
# Este módulo proporciona una forma centralizada de obtener instancias
# de repositorios y servicios. Facilita:
#   - Inyección de dependencias
#   - Testing (se pueden inyectar pasarela y temporizadores falsos)
#   - Un solo lock compartido por todo el terminal
#
# Los stores (inventario, carrito, órdenes) viven en memoria y se crean UNA
# vez por contenedor. Lo único que persiste en disco es el snapshot del pago
# pendiente y la auditoría.
# ==============================================================================

import threading
from typing import Optional

from coffee_pos import config

# ═══════════════════════════════════════════════════════════════════════════════
# REPOSITORIOS - Capa de persistencia (JSON)
# ═══════════════════════════════════════════════════════════════════════════════
from coffee_pos.repositories import (
    AuditRepository,
    PendingOrderRepository,
)

# ═══════════════════════════════════════════════════════════════════════════════
# SERVICIOS - Capa de lógica de negocio
# ═══════════════════════════════════════════════════════════════════════════════
from coffee_pos.services import (
    AuditService,
    CartService,
    InventoryService,
    OrdersService,
    PaymentController,
    PaymentService,
    TerminalService,
    ThreadScheduler,
    XenditClient,
)


class AppContainer:
    """
    Contenedor de dependencias de la aplicación.

    Implementa el patrón Singleton para asegurar una única instancia
    de cada repositorio y servicio.

    Uso:
        container = AppContainer(base_path='/path/to/data')
        terminal = container.terminal_service
        orders = container.orders_service
    """

    _instance: Optional['AppContainer'] = None

    def __new__(cls, base_path: str = None, gateway=None, scheduler=None, seed: bool = None):
        """Singleton pattern."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self, base_path: str = None, gateway=None, scheduler=None, seed: bool = None):
        """
        Inicializa el contenedor.

        Args:
            base_path: Carpeta de datos (donde están los JSON)
            gateway: Cliente de pasarela (por defecto XenditClient)
            scheduler: Temporizadores (por defecto ThreadScheduler)
            seed: Cargar datos de ejemplo (por defecto: fuera de producción)
        """
        if self._initialized:
            return

        self._base_path = base_path or config.DATA_DIR
        self._gateway = gateway
        self._scheduler = scheduler
        self._seed = (not config.PRODUCTION_MODE) if seed is None else seed

        # Lock único: rutas HTTP y temporizadores comparten un hilo lógico
        self.lock = threading.RLock()

        self.reset()
        self._initialized = True

    # =========================================================================
    # INFRAESTRUCTURA
    # =========================================================================

    @property
    def scheduler(self):
        """Temporizadores del terminal (singleton)."""
        if self._scheduler is None:
            self._scheduler = ThreadScheduler()
        return self._scheduler

    @property
    def gateway(self) -> XenditClient:
        """Cliente de Xendit (singleton)."""
        if self._gateway is None:
            self._gateway = XenditClient()
        return self._gateway

    # =========================================================================
    # REPOSITORIOS
    # =========================================================================

    @property
    def audit_repo(self) -> AuditRepository:
        """Repositorio de auditoría (singleton)."""
        if self._audit_repo is None:
            self._audit_repo = AuditRepository(self._base_path, config.AUDIT_FILE)
        return self._audit_repo

    @property
    def pending_order_repo(self) -> PendingOrderRepository:
        """Buzón del pago pendiente (singleton)."""
        if self._pending_order_repo is None:
            self._pending_order_repo = PendingOrderRepository(self._base_path, config.PENDING_ORDER_FILE)
        return self._pending_order_repo

    # =========================================================================
    # SERVICIOS
    # =========================================================================

    @property
    def audit_service(self) -> AuditService:
        """Servicio de auditoría (singleton)."""
        if self._audit_service is None:
            self._audit_service = AuditService(self.audit_repo)
        return self._audit_service

    @property
    def inventory_service(self) -> InventoryService:
        """Store de inventario (singleton)."""
        if self._inventory_service is None:
            self._inventory_service = InventoryService(self.audit_service, self.lock)
            if self._seed:
                self._inventory_service.initialize_default_items()
        return self._inventory_service

    @property
    def cart_service(self) -> CartService:
        """Store del carrito (singleton)."""
        if self._cart_service is None:
            self._cart_service = CartService(self.lock)
        return self._cart_service

    @property
    def orders_service(self) -> OrdersService:
        """Store de órdenes (singleton)."""
        if self._orders_service is None:
            self._orders_service = OrdersService(self.audit_service, self.lock)
            if self._seed:
                self._orders_service.initialize_default_orders()
        return self._orders_service

    @property
    def payment_service(self) -> PaymentService:
        """Servicio de pagos (singleton)."""
        if self._payment_service is None:
            self._payment_service = PaymentService(self.gateway, self.audit_service)
        return self._payment_service

    @property
    def payment_controller(self) -> PaymentController:
        """Diálogo de pago con tarjeta (singleton)."""
        if self._payment_controller is None:
            self._payment_controller = PaymentController(
                self.payment_service,
                self.pending_order_repo,
                self.scheduler,
                self.lock
            )
        return self._payment_controller

    @property
    def terminal_service(self) -> TerminalService:
        """Terminal de venta (singleton)."""
        if self._terminal_service is None:
            self._terminal_service = TerminalService(
                self.inventory_service,
                self.cart_service,
                self.orders_service,
                self.payment_controller,
                self.pending_order_repo,
                self.scheduler,
                self.lock,
                self.audit_service
            )
        return self._terminal_service

    # =========================================================================
    # UTILIDADES
    # =========================================================================

    def reset(self) -> None:
        """
        Reinicia todas las instancias.
        Útil para testing o para recargar datos.
        """
        terminal = getattr(self, '_terminal_service', None)
        if terminal is not None:
            terminal.shutdown()

        self._audit_repo = None
        self._pending_order_repo = None

        self._audit_service = None
        self._inventory_service = None
        self._cart_service = None
        self._orders_service = None
        self._payment_service = None
        self._payment_controller = None
        self._terminal_service = None

    @classmethod
    def get_instance(cls, base_path: str = None) -> 'AppContainer':
        """
        Obtiene la instancia singleton del contenedor.

        Args:
            base_path: Ruta base (solo se usa en primera llamada)

        Returns:
            Instancia del contenedor
        """
        if cls._instance is None:
            return cls(base_path)
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        """Elimina la instancia singleton (útil para tests)."""
        if cls._instance is not None:
            cls._instance.reset()
            cls._instance = None


# Función helper para obtener el contenedor global
def get_container(base_path: str = None) -> AppContainer:
    """
    Obtiene el contenedor de dependencias global.

    Args:
        base_path: Ruta base del proyecto

    Returns:
        Instancia del contenedor
    """
    return AppContainer.get_instance(base_path)
