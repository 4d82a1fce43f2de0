# ==============================================================================
# SERVICIO DE PAGOS
# ==============================================================================
# Centraliza la lógica de negocio de los pagos con Xendit: validar los datos
# del cliente, armar la factura del carrito y consultar su estado.
# El controlador del diálogo de pago solo habla con este servicio.
# ==============================================================================

import time
from typing import Any, Dict, List, Optional

from coffee_pos import config
from coffee_pos.models import CartItem
from coffee_pos.services.audit_service import AuditService
from coffee_pos.services.xendit_client import XenditClient


def build_return_urls(base_url: str) -> Dict[str, str]:
    """
    URLs absolutas de retorno del checkout, con el marcador ?payment=.

    Args:
        base_url: Origen público del terminal (http://host:puerto)
    """
    origin = (base_url or '').rstrip('/')
    return {
        'success': f"{origin}/pos?payment=success",
        'failure': f"{origin}/pos?payment=failed",
    }


class PaymentService:
    """
    Servicio para gestión de pagos.

    Responsabilidades:
    - Validar los datos del cliente antes de tocar la pasarela
    - Crear la factura por el total del carrito
    - Consultar el estado de una factura
    - Registrar facturas y pagos en auditoría (REGLA DE ORO)
    """

    def __init__(
        self,
        gateway: XenditClient,
        audit_service: AuditService = None
    ):
        """
        Inicializa el servicio de pagos.

        Args:
            gateway: Cliente de la pasarela (XenditClient o compatible)
            audit_service: Servicio de auditoría
        """
        self.gateway = gateway
        self.audit_service = audit_service

    def validate_customer(self, customer: Dict[str, Any]) -> Dict[str, Any]:
        """
        Valida los datos del cliente sin aplicar nada.

        Returns:
            Dict con ok/error y los datos normalizados
        """
        customer = customer or {}
        name = (customer.get('name') or '').strip()
        if not name:
            return {'ok': False, 'error': 'El nombre del cliente es obligatorio'}

        return {
            'ok': True,
            'name': name,
            'email': (customer.get('email') or '').strip() or None,
            'phone': (customer.get('phone') or '').strip() or None,
        }

    def create_payment(
        self,
        items: List[CartItem],
        customer: Dict[str, Any],
        grand_total: float,
        base_url: str,
        user: str = None
    ) -> Dict[str, Any]:
        """
        Crea la factura de Xendit para el carrito actual.

        Args:
            items: Líneas del carrito
            customer: name (obligatorio), email, phone
            grand_total: Total con impuesto, en USD
            base_url: Origen del terminal para las URLs de retorno
            user: Usuario que cobra (para auditoría)

        Returns:
            {'ok': True, 'data': Invoice} o {'ok': False, 'error': str}
        """
        validation = self.validate_customer(customer)
        if not validation['ok']:
            return validation

        urls = build_return_urls(base_url)
        amount = self.gateway.format_amount(grand_total)
        result = self.gateway.create_invoice(
            external_id=self.gateway.generate_external_id(str(int(time.time() * 1000))),
            amount=amount,
            description=f"{config.MERCHANT_DESCRIPTION} - {len(items)} item(s)",
            duration_seconds=config.INVOICE_DURATION_SECONDS,
            success_url=urls['success'],
            failure_url=urls['failure'],
            customer_name=validation['name'],
            payer_email=validation['email'],
            customer_phone=validation['phone'],
        )

        if not result.get('ok'):
            return {'ok': False, 'error': result.get('error') or 'Failed to create payment'}

        invoice = result['data']
        if self.audit_service and user:
            self.audit_service.log_invoice_created(user, invoice.id, invoice.amount, invoice.currency)

        return result

    def get_payment_status(self, invoice_id: str) -> Dict[str, Any]:
        """
        Consulta el estado de una factura.

        Returns:
            {'ok': True, 'data': Invoice} o {'ok': False, 'error': str}
        """
        result = self.gateway.get_invoice(invoice_id)
        if not result.get('ok'):
            return {'ok': False, 'error': result.get('error') or 'Failed to get payment status'}
        return result

    def record_payment_failure(self, invoice_id: Optional[str], reason: str, user: str = None) -> None:
        """Deja constancia de un intento fallido (expirado o rechazado)."""
        if self.audit_service and user:
            self.audit_service.log_payment_failed(user, invoice_id or '', reason)
