# ==============================================================================
# COFFEE POS - Terminal de venta para cafetería
# ==============================================================================
# Inventario, carrito, órdenes y cobro con tarjeta vía Xendit.
# Punto de entrada WSGI: wsgi.py (raíz del repo) → coffee_pos.main:app
# ==============================================================================

__version__ = '1.0.0'
