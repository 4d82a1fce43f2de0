# ==============================================================================
# CONFIGURACIÓN DEL TERMINAL
# ==============================================================================
# Constantes de negocio y valores leídos de variables de entorno.
# En producción las claves DEBEN definirse vía entorno:
#   export POS_SECRET_KEY="clave_larga_y_aleatoria"
#   export XENDIT_SECRET_KEY="xnd_production_..."
# ==============================================================================

import os

BASE = os.path.dirname(os.path.abspath(__file__))

# ═══════════════════════════════════════════════════════════════════════════════
# MODO PRODUCCIÓN
# ═══════════════════════════════════════════════════════════════════════════════
# True = Sin datos de demostración (catálogo/órdenes semilla)
# False = Modo desarrollo, se siembran datos de ejemplo al iniciar
PRODUCTION_MODE = os.environ.get('POS_PRODUCTION', '0') == '1'

_DEFAULT_SECRET = "coffee_pos_dev_secret_key_change_in_production"
SECRET_KEY = os.environ.get("POS_SECRET_KEY") or _DEFAULT_SECRET

# Carpeta donde viven los JSON (snapshot de pago, auditoría)
DATA_DIR = os.environ.get("POS_DATA_DIR") or BASE

# URL pública del terminal, usada para armar las URLs de retorno de Xendit.
# Si está vacía se usa la URL del request actual.
PUBLIC_URL = os.environ.get("POS_PUBLIC_URL", "")

# ═══════════════════════════════════════════════════════════════════════════════
# XENDIT
# ═══════════════════════════════════════════════════════════════════════════════
XENDIT_BASE_URL = os.environ.get("XENDIT_BASE_URL", "https://api.xendit.co")
XENDIT_SECRET_KEY = os.environ.get("XENDIT_SECRET_KEY", "")
XENDIT_TIMEOUT_SECONDS = 15
XENDIT_CURRENCY = 'PHP'
MERCHANT_DESCRIPTION = 'Coffee Realm POS'

# Tasa ilustrativa fija (1 USD = 56 PHP)
USD_TO_PHP_RATE = 56

# Duración de la factura: 24 horas
INVOICE_DURATION_SECONDS = 86400

# ═══════════════════════════════════════════════════════════════════════════════
# REGLAS DE NEGOCIO
# ═══════════════════════════════════════════════════════════════════════════════
TAX_RATE = 0.08

# ═══════════════════════════════════════════════════════════════════════════════
# TIEMPOS DEL CICLO DE PAGO (segundos)
# ═══════════════════════════════════════════════════════════════════════════════
POLL_INTERVAL_SECONDS = 3        # Consulta de estado de factura
SETTLE_DELAY_SECONDS = 2         # Espera antes de mostrar "Ir al checkout"
SUCCESS_DELAY_SECONDS = 2        # Espera antes de cerrar el diálogo en éxito
NOTIFICATION_SECONDS = 5         # Auto-ocultar notificación de resultado

# ═══════════════════════════════════════════════════════════════════════════════
# ARCHIVOS
# ═══════════════════════════════════════════════════════════════════════════════
PENDING_ORDER_FILE = 'pending_order.json'
AUDIT_FILE = 'audit.json'
