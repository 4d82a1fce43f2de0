# ==============================================================================
# CLIENTE XENDIT
# ==============================================================================
# Única pieza que habla con la API de facturas de Xendit.
# Nunca lanza excepciones hacia afuera: todo error de red o del proveedor
# se traduce a {'ok': False, 'error': mensaje legible}.
#
# Endpoints:
#   POST /v2/invoices            → crear factura
#   GET  /v2/invoices/<id>       → consultar estado
# ==============================================================================

import random
import string
import time
from datetime import timedelta
from typing import Any, Dict, Optional

import requests

from coffee_pos import config
from coffee_pos.models import Invoice, InvoiceStatus, now_local
from coffee_pos.performance_logger import log_payment_event, profile_function


DEMO_INVOICE_PREFIX = 'demo_invoice_'

GENERIC_ERROR = 'Payment service unavailable. Please try again.'
METHOD_MISMATCH_ERROR = (
    'Selected payment method is not available in your Xendit account. '
    'Please enable GCash, GrabPay, or PayMaya in your Xendit dashboard under Payment Channels.'
)


def format_amount(usd_amount: float, rate: float = config.USD_TO_PHP_RATE) -> float:
    """Convierte USD a PHP con la tasa fija, redondeado a 2 decimales."""
    return round(usd_amount * rate, 2)


def format_display_amount(amount: float) -> str:
    """Formato de moneda local para mostrar: ₱1,234.56"""
    return f"₱{amount:,.2f}"


def generate_external_id(reference: str) -> str:
    """
    ID externo único por intento de cobro.
    Formato: coffeerealmpos_<ref>_<ms>_<6 caracteres>
    """
    suffix = ''.join(random.choices(string.ascii_lowercase + string.digits, k=6))
    return f"coffeerealmpos_{reference}_{int(time.time() * 1000)}_{suffix}"


def _response_message(response: Optional[requests.Response]) -> Optional[str]:
    if response is None:
        return None
    try:
        data = response.json()
    except ValueError:
        return None
    if isinstance(data, dict):
        return data.get('message')
    return None


class XenditClient:
    """
    Cliente HTTP de Xendit basado en requests.Session.

    Autenticación: HTTP Basic con la secret key como usuario y clave vacía.
    """

    def __init__(
        self,
        secret_key: str = None,
        base_url: str = None,
        session: requests.Session = None,
        timeout: float = config.XENDIT_TIMEOUT_SECONDS
    ):
        self.base_url = (base_url or config.XENDIT_BASE_URL).rstrip('/')
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.auth = (secret_key if secret_key is not None else config.XENDIT_SECRET_KEY, '')
        self.session.headers.update({'Content-Type': 'application/json'})

    # Helpers puros expuestos también como métodos del cliente
    format_amount = staticmethod(format_amount)
    format_display_amount = staticmethod(format_display_amount)
    generate_external_id = staticmethod(generate_external_id)

    # =========================================================================
    # FACTURAS
    # =========================================================================

    @profile_function(name="Crear factura Xendit")
    def create_invoice(
        self,
        external_id: str,
        amount: float,
        description: str,
        duration_seconds: int = config.INVOICE_DURATION_SECONDS,
        success_url: str = None,
        failure_url: str = None,
        customer_name: str = None,
        payer_email: str = None,
        customer_phone: str = None
    ) -> Dict[str, Any]:
        """
        Crea una factura (checkout alojado por Xendit).

        Args:
            external_id: ID externo generado localmente
            amount: Monto en PHP
            description: Descripción visible en el checkout
            duration_seconds: Vigencia de la factura
            success_url / failure_url: URLs absolutas de retorno
            customer_name / payer_email / customer_phone: Datos opcionales

        Returns:
            {'ok': True, 'data': Invoice} o {'ok': False, 'error': str}
        """
        payload = {
            'external_id': external_id,
            'amount': amount,
            'description': description,
            'invoice_duration': duration_seconds or config.INVOICE_DURATION_SECONDS,
            'currency': config.XENDIT_CURRENCY,
        }
        # Campos opcionales solo si vienen con valor
        optional = {
            'customer_name': customer_name,
            'payer_email': payer_email,
            'customer_phone': customer_phone,
            'success_redirect_url': success_url,
            'failure_redirect_url': failure_url,
        }
        payload.update({k: v for k, v in optional.items() if v})

        try:
            response = self.session.post(
                f"{self.base_url}/v2/invoices", json=payload, timeout=self.timeout
            )
            response.raise_for_status()
            return {'ok': True, 'data': Invoice.from_dict(response.json())}
        except requests.RequestException as e:
            error = self._create_error(e)
        except ValueError:
            error = GENERIC_ERROR

        log_payment_event(
            'ERROR', 'Fallo al crear factura',
            external_id=external_id, amount=amount, error=error
        )
        return {'ok': False, 'error': error}

    @profile_function(name="Consultar factura Xendit")
    def get_invoice(self, invoice_id: str) -> Dict[str, Any]:
        """
        Consulta una factura por ID.
        Las facturas demo se responden localmente como PAID.

        Returns:
            {'ok': True, 'data': Invoice} o {'ok': False, 'error': str}
        """
        if invoice_id.startswith(DEMO_INVOICE_PREFIX):
            return {'ok': True, 'data': self._demo_invoice(invoice_id)}

        try:
            response = self.session.get(
                f"{self.base_url}/v2/invoices/{invoice_id}", timeout=self.timeout
            )
            response.raise_for_status()
            return {'ok': True, 'data': Invoice.from_dict(response.json())}
        except requests.RequestException as e:
            error = self._readable_error(e)
        except ValueError:
            error = GENERIC_ERROR

        log_payment_event('WARNING', 'Fallo al consultar factura', invoice_id=invoice_id, error=error)
        return {'ok': False, 'error': error}

    # =========================================================================
    # ERRORES
    # =========================================================================

    def _create_error(self, error: requests.RequestException) -> str:
        """Mensajes específicos para la creación de facturas."""
        response = getattr(error, 'response', None)
        status = response.status_code if response is not None else None

        if status == 403:
            return ('API key does not have permission to create invoices. '
                    'Please check your Xendit dashboard settings.')
        if status == 401:
            return 'Invalid API key. Please verify your Xendit credentials.'
        if status == 400:
            message = _response_message(response) or 'Invalid request parameters'
            if 'payment method choices did not match' in message:
                return METHOD_MISMATCH_ERROR
            return f"Bad request: {message}"

        return self._readable_error(error)

    @staticmethod
    def _readable_error(error: requests.RequestException) -> str:
        response = getattr(error, 'response', None)
        message = _response_message(response)
        if message:
            return message
        status = response.status_code if response is not None else None
        if status == 403:
            return 'API permissions insufficient. Please check Xendit dashboard settings.'
        if status == 401:
            return 'Invalid API key. Please check your Xendit credentials.'
        return str(error) or GENERIC_ERROR

    @staticmethod
    def _demo_invoice(invoice_id: str) -> Invoice:
        now = now_local()
        return Invoice(
            id=invoice_id,
            external_id='demo_external_id',
            amount=100,
            status=InvoiceStatus.PAID.value,
            invoice_url='https://checkout-staging.xendit.co/web/demo',
            expiry_date=(now + timedelta(days=1)).isoformat(),
            description='Demo payment',
            currency=config.XENDIT_CURRENCY,
            merchant_name=config.MERCHANT_DESCRIPTION,
            created=now.isoformat(),
            updated=now.isoformat(),
        )
