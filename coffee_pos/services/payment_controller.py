# ==============================================================================
# CONTROLADOR DEL DIÁLOGO DE PAGO (Xendit)
# ==============================================================================
# Máquina de estados de UN intento de cobro con tarjeta:
#
#   idle → processing → ready → success
#   idle → processing → failed
#
# - processing: factura solicitada / creada, esperando que el checkout esté listo
# - ready: el cajero puede ir al checkout alojado por Xendit
# - success: factura PAID/SETTLED, se crea la orden y se cierra el diálogo
# - failed: error de la pasarela o factura expirada (se puede reintentar)
#
# REGLAS:
# - Ningún error de red sale de este controlador: se guarda en self.error
# - Cerrar/abrir el diálogo cancela TODOS los temporizadores
# - Respuestas que llegan después de cerrar se descartan (token de intento)
# - Ir al checkout de Xendit cierra el diálogo: el polling no sobrevive al redirect
# ==============================================================================

import threading
from typing import Any, Callable, Dict, List, Optional

from coffee_pos import config
from coffee_pos.models import CartItem, Invoice, PaymentState, PendingOrder, now_local
from coffee_pos.performance_logger import log_payment_event
from coffee_pos.repositories.pending_order_repository import PendingOrderRepository
from coffee_pos.services.payment_service import PaymentService
from coffee_pos.services.scheduler import TimerGroup, TimerHandle
from coffee_pos.services.xendit_client import format_display_amount


EXPIRED_MESSAGE = 'Pago expirado'


class PaymentController:
    """
    Ciclo de vida del pago con tarjeta.

    Uso típico:
        with PaymentController(payments, pending_repo, scheduler) as dialog:
            dialog.open(items, total, tax, grand_total, on_success=callback)
            dialog.submit({'name': 'Ana'}, base_url)
            ...
        # al salir del bloque no queda ningún temporizador vivo
    """

    def __init__(
        self,
        payment_service: PaymentService,
        pending_repo: PendingOrderRepository,
        scheduler,
        lock: threading.RLock = None,
        poll_interval: float = config.POLL_INTERVAL_SECONDS,
        settle_delay: float = config.SETTLE_DELAY_SECONDS,
        success_delay: float = config.SUCCESS_DELAY_SECONDS
    ):
        """
        Args:
            payment_service: Servicio de pagos (crea y consulta facturas)
            pending_repo: Buzón donde se guarda el carrito antes del redirect
            scheduler: ThreadScheduler en producción, ManualScheduler en tests
            lock: Lock compartido del terminal
            poll_interval: Segundos entre consultas de estado
            settle_delay: Espera entre crear la factura y pasar a ready
            success_delay: Espera entre success y el callback de éxito
        """
        self.payment_service = payment_service
        self.pending_repo = pending_repo
        self._lock = lock or threading.RLock()
        self._timers = TimerGroup(scheduler)
        self.poll_interval = poll_interval
        self.settle_delay = settle_delay
        self.success_delay = success_delay

        self._attempt = 0
        self._poll_handle: Optional[TimerHandle] = None
        self.is_open = False
        self.on_success: Optional[Callable[[str], None]] = None

        # Datos del carrito que se cobra
        self.items: List[CartItem] = []
        self.total = 0.0
        self.tax = 0.0
        self.grand_total = 0.0

        self._reset()

    def __enter__(self) -> 'PaymentController':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _reset(self, keep_customer: bool = False) -> None:
        """Vuelve a idle e invalida cualquier respuesta en vuelo."""
        self._timers.cancel_all()
        self._poll_handle = None
        self._attempt += 1
        self.state = PaymentState.IDLE
        self.invoice: Optional[Invoice] = None
        self.error: Optional[str] = None
        self.user: Optional[str] = None
        if not keep_customer:
            self.customer: Dict[str, Optional[str]] = {'name': None, 'email': None, 'phone': None}

    def _is_current(self, attempt: int) -> bool:
        return self.is_open and attempt == self._attempt

    # =========================================================================
    # APERTURA Y CIERRE
    # =========================================================================

    def open(
        self,
        items: List[CartItem],
        total: float,
        tax: float,
        grand_total: float,
        on_success: Callable[[str], None] = None
    ) -> None:
        """
        Abre el diálogo para cobrar el carrito indicado.
        Reabrir descarta el intento anterior.
        """
        with self._lock:
            self._reset()
            self.items = list(items)
            self.total = total
            self.tax = tax
            self.grand_total = grand_total
            self.on_success = on_success
            self.is_open = True

    def close(self) -> None:
        """Cierra el diálogo: idle, sin factura, sin carrito y sin temporizadores."""
        with self._lock:
            self._reset()
            self.is_open = False
            self.on_success = None
            self.items = []
            self.total = 0.0
            self.tax = 0.0
            self.grand_total = 0.0

    # =========================================================================
    # TRANSICIONES
    # =========================================================================

    def submit(self, customer: Dict[str, Any], base_url: str = '', user: str = None) -> Dict[str, Any]:
        """
        idle → processing: crea la factura por el total del carrito.

        Un nombre vacío se rechaza sin tocar la pasarela y el estado
        sigue en idle.

        Args:
            customer: name (obligatorio), email, phone
            base_url: Origen del terminal para las URLs de retorno
            user: Cajero (para auditoría)

        Returns:
            Dict con ok, error o invoice
        """
        with self._lock:
            if not self.is_open:
                return {'ok': False, 'error': 'El diálogo de pago no está abierto'}
            if self.state != PaymentState.IDLE:
                return {'ok': False, 'error': 'Ya hay un pago en curso'}

            validation = self.payment_service.validate_customer(customer)
            if not validation['ok']:
                self.error = validation['error']
                return validation

            self.customer = {
                'name': validation['name'],
                'email': validation['email'],
                'phone': validation['phone'],
            }
            self.user = user
            self.state = PaymentState.PROCESSING
            self.error = None
            attempt = self._attempt
            items = list(self.items)
            grand_total = self.grand_total

        # Llamada de red sin el lock: el resto del terminal sigue respondiendo
        result = self.payment_service.create_payment(
            items, customer, grand_total, base_url or config.PUBLIC_URL, user
        )

        with self._lock:
            if not self._is_current(attempt):
                return {'ok': False, 'error': 'El pago fue cancelado'}

            if not result.get('ok'):
                self.state = PaymentState.FAILED
                self.error = result.get('error') or 'Failed to create payment'
                return {'ok': False, 'error': self.error}

            self.invoice = result['data']
            self._timers.call_later(self.settle_delay, lambda: self._mark_ready(attempt))
            self._poll_handle = self._timers.call_every(self.poll_interval, lambda: self._poll(attempt))
            return {'ok': True, 'invoice': self.invoice}

    def _mark_ready(self, attempt: int) -> None:
        """processing → ready, pasado el tiempo de asentamiento."""
        with self._lock:
            if self._is_current(attempt) and self.state == PaymentState.PROCESSING:
                self.state = PaymentState.READY

    def _stop_polling(self) -> None:
        if self._poll_handle:
            self._poll_handle.cancel()
            self._poll_handle = None

    def _poll(self, attempt: int) -> None:
        """Consulta el estado de la factura y aplica el resultado."""
        with self._lock:
            if not self._is_current(attempt) or self.invoice is None:
                return
            if self.state not in (PaymentState.PROCESSING, PaymentState.READY):
                return
            invoice_id = self.invoice.id

        result = self.payment_service.get_payment_status(invoice_id)

        with self._lock:
            # Cerrado o terminado mientras la consulta estaba en vuelo
            if not self._is_current(attempt):
                return
            if self.state not in (PaymentState.PROCESSING, PaymentState.READY):
                return

            if not result.get('ok'):
                # Un poll fallido no cambia el estado
                log_payment_event(
                    'WARNING', 'Poll de factura ignorado',
                    invoice_id=invoice_id, error=result.get('error')
                )
                return

            invoice = result['data']
            if invoice.is_paid:
                self.state = PaymentState.SUCCESS
                self.invoice = invoice
                self._stop_polling()
                self._timers.call_later(
                    self.success_delay, lambda: self._finish_success(attempt, invoice_id)
                )
            elif invoice.is_expired:
                self.state = PaymentState.FAILED
                self.error = EXPIRED_MESSAGE
                self.invoice = invoice
                self._stop_polling()
                log_payment_event('INFO', 'Factura expirada', invoice_id=invoice_id)
                self.payment_service.record_payment_failure(invoice_id, EXPIRED_MESSAGE, self.user)

    def _finish_success(self, attempt: int, invoice_id: str) -> None:
        """Entrega el ID de la factura al terminal y cierra el diálogo."""
        with self._lock:
            if not self._is_current(attempt):
                return
            callback = self.on_success
            if callback:
                callback(invoice_id)
            self.close()

    def proceed_to_checkout(self) -> Dict[str, Any]:
        """
        ready → redirect: guarda el carrito en el buzón y devuelve la URL
        del checkout de Xendit para navegar.

        El traspaso es de una sola vía: después de guardar el snapshot el
        diálogo se cierra y deja de consultar la factura. La orden la crea
        únicamente el regreso con ?payment=success.

        Returns:
            Dict con ok y checkout_url
        """
        with self._lock:
            if self.state != PaymentState.READY or self.invoice is None:
                return {'ok': False, 'error': 'El checkout todavía no está listo'}

            checkout_url = self.invoice.invoice_url
            self.pending_repo.save(PendingOrder(
                items=[CartItem.from_dict(i.to_dict()) for i in self.items],
                total=self.total,
                tax=self.tax,
                grand_total=self.grand_total,
                customer_name=self.customer.get('name'),
                customer_email=self.customer.get('email'),
                customer_phone=self.customer.get('phone'),
                timestamp=now_local(),
            ))
            log_payment_event(
                'INFO', 'Redirect al checkout de Xendit',
                invoice_id=self.invoice.id, customer=self.customer.get('name')
            )
            self.close()
            return {'ok': True, 'checkout_url': checkout_url}

    def try_again(self) -> bool:
        """
        failed → idle, conservando los datos del cliente.

        Returns:
            True si había un intento fallido que reiniciar
        """
        with self._lock:
            if self.state != PaymentState.FAILED:
                return False
            self._reset(keep_customer=True)
            return True

    def copy_invoice_url(self) -> Optional[str]:
        """URL del checkout para compartir con el cliente."""
        with self._lock:
            return self.invoice.invoice_url if self.invoice else None

    # =========================================================================
    # CONSULTAS
    # =========================================================================

    @property
    def active_timers(self) -> int:
        return self._timers.active_count

    def get_status(self) -> Dict[str, Any]:
        """Estado del diálogo para la API del terminal."""
        with self._lock:
            invoice = self.invoice
            return {
                'is_open': self.is_open,
                'state': self.state.value,
                'error': self.error,
                'customer': dict(self.customer),
                'invoice': invoice.to_dict() if invoice else None,
                'checkout_url': invoice.invoice_url if invoice else None,
                'display_amount': format_display_amount(invoice.amount) if invoice else None,
                'items_count': len(self.items),
                'total': self.total,
                'tax': self.tax,
                'grand_total': self.grand_total,
            }
