from flask import Flask, request, redirect, url_for, session
from functools import wraps
import uuid

from coffee_pos import config
from coffee_pos.models import ORDER_TRANSITIONS, OrderStatus

# Sistema de profiling interno
from coffee_pos.performance_logger import init_profiling

# ═══════════════════════════════════════════════════════════════════════════
# CONTENEDOR DE DEPENDENCIAS - Servicios y Repositorios
# ═══════════════════════════════════════════════════════════════════════════
# Importamos el contenedor para acceder a los servicios de forma centralizada.
# Esto permite que la lógica de negocio viva en services/, no en las rutas.
# ═══════════════════════════════════════════════════════════════════════════
from coffee_pos.app_container import get_container

app = Flask(__name__)

# ═══════════════════════════════════════════════════════════════════════════
# INICIALIZAR SISTEMA DE PROFILING
# ═══════════════════════════════════════════════════════════════════════════
# Mide rendimiento de rutas y funciones. Logs en /logs/
# Para desactivar: POS_PROFILING=0
init_profiling(app)

# ═══════════════════════════════════════════════════════════════════════════════
# CONFIGURACIÓN DE SESIONES
# ═══════════════════════════════════════════════════════════════════════════════
# SECRET_KEY: En producción DEBE definirse via variable de entorno
# Comando: export POS_SECRET_KEY="tu_clave_secreta_muy_larga_y_aleatoria"
if config.PRODUCTION_MODE and config.SECRET_KEY == config._DEFAULT_SECRET:
    print("[ADVERTENCIA] PRODUCTION_MODE activo sin POS_SECRET_KEY definida")
    print("[ADVERTENCIA] Define la variable de entorno para mayor seguridad")

app.secret_key = config.SECRET_KEY

# Configuración de cookies de sesión
app.config.update(
    SESSION_COOKIE_HTTPONLY=True,      # Protege contra XSS
    SESSION_COOKIE_SECURE=False,       # False para HTTP local (True solo para HTTPS)
    SESSION_COOKIE_SAMESITE='Lax',     # Lax: la vuelta desde Xendit conserva la sesión
    PERMANENT_SESSION_LIFETIME=86400,  # 24 horas
)
app.config['MAX_CONTENT_LENGTH'] = 1 * 1024 * 1024  # 1 MB


def to_int(v, default=None):
    try:
        return int(v)
    except (TypeError, ValueError):
        return default


def current_user():
    return session.get("user")


def login_required(f):
    @wraps(f)
    def wrapper(*args, **kwargs):
        if "user" not in session:
            return {"ok": False, "error": "Debes iniciar sesión."}, 401
        return f(*args, **kwargs)
    return wrapper


def generate_csrf_token():
    if 'csrf_token' not in session:
        session['csrf_token'] = uuid.uuid4().hex
    return session['csrf_token']


def verify_csrf(f):
    @wraps(f)
    def wrapper(*args, **kwargs):
        if request.method in ('POST', 'PATCH', 'DELETE'):
            token = session.get('csrf_token')
            form_token = (
                request.headers.get('X-CSRF-Token') or
                request.headers.get('X-CSRFToken')  # Common JS naming
            )
            # Also check JSON body for AJAX calls
            if not form_token and request.is_json:
                json_data = request.get_json(silent=True) or {}
                form_token = json_data.get('csrf_token')

            if not token or not form_token or token != form_token:
                return {"ok": False, "error": "CSRF token inválido"}, 403
        return f(*args, **kwargs)
    return wrapper


@app.after_request
def set_security_headers(response):
    response.headers['X-Frame-Options'] = 'DENY'
    response.headers['X-Content-Type-Options'] = 'nosniff'
    response.headers['Referrer-Policy'] = 'no-referrer-when-downgrade'
    response.headers['Permissions-Policy'] = 'geolocation=(), microphone=()'
    if request.is_secure:
        response.headers['Strict-Transport-Security'] = 'max-age=31536000; includeSubDomains'
    return response


# ═══════════════════════════════════════════════════════════════════════════════
# PROTECCIÓN DE RUTAS SENSIBLES
# ═══════════════════════════════════════════════════════════════════════════════
@app.route('/logs/<path:filename>')
def block_sensitive_routes(filename):
    """Bloquea acceso a la carpeta de logs."""
    return "Not Found", 404


# ═══════════════════════════════════════════════════════════════════════════════
# SESIÓN
# ═══════════════════════════════════════════════════════════════════════════════
# La autenticación la hace un proveedor externo; aquí solo se guarda la
# identidad que ese proveedor ya verificó.

@app.route("/session", methods=["GET"])
def session_info():
    return {
        "ok": True,
        "user": current_user(),
        "csrf_token": generate_csrf_token() if current_user() else None,
    }


@app.route("/session", methods=["POST"])
def session_start():
    data = request.get_json(silent=True) or {}
    user = (data.get("user") or "").strip()
    if not user:
        return {"ok": False, "error": "Usuario requerido"}, 400

    session.clear()
    session.permanent = True
    session["user"] = user
    get_container().audit_service.log_user_login(user)
    return {"ok": True, "user": user, "csrf_token": generate_csrf_token()}


@app.route("/logout", methods=["POST"])
@login_required
@verify_csrf
def logout():
    user = current_user()
    get_container().terminal_service.payment.close()
    session.clear()
    get_container().audit_service.log_user_logout(user)
    return {"ok": True}


# ═══════════════════════════════════════════════════════════════════════════════
# TERMINAL
# ═══════════════════════════════════════════════════════════════════════════════

@app.route("/pos", methods=["GET"])
@login_required
def pos():
    """
    Vista del terminal.

    Al volver del checkout de Xendit llega con ?payment=success|failed:
    se procesa el resultado UNA vez y se redirige a /pos sin el marcador,
    así una recarga no vuelve a crear la orden.
    """
    terminal = get_container().terminal_service
    marker = request.args.get("payment")
    if marker:
        terminal.handle_payment_return(marker, user=current_user())
        return redirect(url_for("pos"))

    state = terminal.get_state(request.args.get("category") or "All")
    return {"ok": True, **state}


@app.route("/api/notification/dismiss", methods=["POST"])
@login_required
@verify_csrf
def api_dismiss_notification():
    get_container().terminal_service.dismiss_notification()
    return {"ok": True}


@app.route("/api/categories", methods=["GET"])
@login_required
def api_categories():
    return {"ok": True, "categories": get_container().terminal_service.get_categories()}


@app.route("/api/products", methods=["GET"])
@login_required
def api_products():
    """Productos ofrecibles (activos y con stock) por categoría"""
    category = request.args.get("category") or "All"
    items = get_container().terminal_service.get_products(category)
    return {"ok": True, "category": category, "products": [i.to_dict() for i in items]}


# ═══════════════════════════════════════════════════════════════════════════════
# CARRITO
# ═══════════════════════════════════════════════════════════════════════════════

@app.route("/api/cart", methods=["GET"])
@login_required
def api_cart():
    """Ver contenido actual del carrito"""
    return {"ok": True, "cart": get_container().terminal_service.get_cart_summary()}


@app.route("/api/cart/add", methods=["POST"])
@login_required
@verify_csrf
def api_cart_add():
    data = request.get_json(silent=True) or {}
    item_id = data.get("item_id")
    if not item_id:
        return {"ok": False, "error": "ID de producto inválido"}, 400

    result = get_container().terminal_service.add_to_cart(str(item_id))
    if not result["ok"]:
        status = 404 if result["error"] == "Producto no encontrado" else 400
        return result, status
    return result


@app.route("/api/cart/update", methods=["POST"])
@login_required
@verify_csrf
def api_cart_update():
    data = request.get_json(silent=True) or {}
    item_id = data.get("item_id")
    quantity = to_int(data.get("quantity"))
    if not item_id or quantity is None:
        return {"ok": False, "error": "ID o cantidad inválida"}, 400

    terminal = get_container().terminal_service
    terminal.cart.update_quantity(str(item_id), quantity)
    return {"ok": True, "cart": terminal.get_cart_summary()}


@app.route("/api/cart/remove", methods=["POST"])
@login_required
@verify_csrf
def api_cart_remove():
    """Eliminar un item específico del carrito"""
    data = request.get_json(silent=True) or {}
    item_id = data.get("item_id")
    if not item_id:
        return {"ok": False, "error": "ID de producto inválido"}, 400

    terminal = get_container().terminal_service
    terminal.cart.remove_item(str(item_id))
    return {"ok": True, "cart": terminal.get_cart_summary()}


@app.route("/api/cart/clear", methods=["POST"])
@login_required
@verify_csrf
def api_cart_clear():
    """Vaciar el carrito"""
    terminal = get_container().terminal_service
    terminal.cart.clear_cart()
    return {"ok": True, "cart": terminal.get_cart_summary()}


@app.route("/api/checkout", methods=["POST"])
@login_required
@verify_csrf
def api_checkout():
    """
    Cobrar el carrito.

    Body JSON:
    {"payment_method": "cash" | "card"}

    Respuesta:
    - cash: order_id y la orden creada
    - card: estado del diálogo de pago (abierto, idle)
    """
    data = request.get_json(silent=True) or {}
    method = (data.get("payment_method") or "cash").strip()
    result = get_container().terminal_service.checkout(method, user=current_user())
    if not result["ok"]:
        return result, 400
    return result


# ═══════════════════════════════════════════════════════════════════════════════
# PAGO CON TARJETA (Xendit)
# ═══════════════════════════════════════════════════════════════════════════════

def _public_base_url():
    return config.PUBLIC_URL or request.host_url.rstrip('/')


@app.route("/api/payment", methods=["GET"])
@login_required
def api_payment_status():
    return {"ok": True, "payment": get_container().payment_controller.get_status()}


@app.route("/api/payment/submit", methods=["POST"])
@login_required
@verify_csrf
def api_payment_submit():
    """
    Crear la factura de Xendit.

    Body JSON:
    {"name": "Ana", "email": "...", "phone": "..."}
    """
    data = request.get_json(silent=True) or {}
    customer = {
        "name": data.get("name"),
        "email": data.get("email"),
        "phone": data.get("phone"),
    }
    controller = get_container().payment_controller
    result = controller.submit(customer, _public_base_url(), user=current_user())
    payload = {"ok": result["ok"], "error": result.get("error"), "payment": controller.get_status()}
    if not result["ok"]:
        # Validación local → 400; la pasarela respondió con error → 502
        status = 502 if controller.state.value == "failed" else 400
        return payload, status
    return payload


@app.route("/api/payment/checkout", methods=["POST"])
@login_required
@verify_csrf
def api_payment_checkout():
    """Guardar el carrito y devolver la URL del checkout de Xendit"""
    result = get_container().payment_controller.proceed_to_checkout()
    if not result["ok"]:
        return result, 409
    return result


@app.route("/api/payment/invoice-url", methods=["GET"])
@login_required
def api_payment_invoice_url():
    url = get_container().payment_controller.copy_invoice_url()
    if not url:
        return {"ok": False, "error": "No hay factura"}, 404
    return {"ok": True, "invoice_url": url}


@app.route("/api/payment/close", methods=["POST"])
@login_required
@verify_csrf
def api_payment_close():
    controller = get_container().payment_controller
    controller.close()
    return {"ok": True, "payment": controller.get_status()}


@app.route("/api/payment/retry", methods=["POST"])
@login_required
@verify_csrf
def api_payment_retry():
    controller = get_container().payment_controller
    if not controller.try_again():
        return {"ok": False, "error": "No hay un pago fallido para reintentar"}, 409
    return {"ok": True, "payment": controller.get_status()}


# ═══════════════════════════════════════════════════════════════════════════════
# INVENTARIO
# ═══════════════════════════════════════════════════════════════════════════════

@app.route("/api/inventory", methods=["GET"])
@login_required
def api_inventory():
    """Listar inventario, con búsqueda opcional (?q=&category=)"""
    inventory = get_container().inventory_service
    term = (request.args.get("q") or "").strip()
    category = request.args.get("category") or "All"
    if term or category != "All":
        items = inventory.search_items(term, category)
    else:
        items = inventory.get_all_items()
    return {
        "ok": True,
        "items": [i.to_dict() for i in items],
        "categories": inventory.categories,
    }


@app.route("/api/inventory", methods=["POST"])
@login_required
@verify_csrf
def api_inventory_create():
    data = request.get_json(silent=True) or {}
    if not (data.get("name") or "").strip():
        return {"ok": False, "error": "El nombre es obligatorio"}, 400
    if not (data.get("category") or "").strip():
        return {"ok": False, "error": "La categoría es obligatoria"}, 400
    try:
        price = float(data.get("price"))
    except (TypeError, ValueError):
        return {"ok": False, "error": "Precio inválido"}, 400
    if price < 0:
        return {"ok": False, "error": "El precio no puede ser negativo"}, 400

    inventory = get_container().inventory_service
    try:
        item_id = inventory.add_item(data, user=current_user())
    except (TypeError, ValueError):
        return {"ok": False, "error": "Datos de producto inválidos"}, 400
    return {"ok": True, "item": inventory.get_item_by_id(item_id).to_dict()}, 201


@app.route("/api/inventory/low-stock", methods=["GET"])
@login_required
def api_inventory_low_stock():
    items = get_container().inventory_service.low_stock_items
    return {"ok": True, "items": [i.to_dict() for i in items], "count": len(items)}


@app.route("/api/inventory/summary", methods=["GET"])
@login_required
def api_inventory_summary():
    return {"ok": True, "summary": get_container().inventory_service.get_summary()}


@app.route("/api/inventory/<item_id>", methods=["GET"])
@login_required
def api_inventory_item(item_id):
    item = get_container().inventory_service.get_item_by_id(item_id)
    if not item:
        return {"ok": False, "error": "Producto no encontrado"}, 404
    return {"ok": True, "item": item.to_dict()}


@app.route("/api/inventory/<item_id>", methods=["PATCH"])
@login_required
@verify_csrf
def api_inventory_update(item_id):
    data = request.get_json(silent=True) or {}
    data.pop("csrf_token", None)
    inventory = get_container().inventory_service
    try:
        updated = inventory.update_item(item_id, data, user=current_user())
    except (TypeError, ValueError):
        return {"ok": False, "error": "Datos de producto inválidos"}, 400
    if not updated:
        return {"ok": False, "error": "Producto no encontrado"}, 404
    return {"ok": True, "item": inventory.get_item_by_id(item_id).to_dict()}


@app.route("/api/inventory/<item_id>", methods=["DELETE"])
@login_required
@verify_csrf
def api_inventory_delete(item_id):
    if not get_container().inventory_service.delete_item(item_id, user=current_user()):
        return {"ok": False, "error": "Producto no encontrado"}, 404
    return {"ok": True}


@app.route("/api/inventory/<item_id>/stock", methods=["POST"])
@login_required
@verify_csrf
def api_inventory_stock(item_id):
    """Sobrescribir el stock de un producto - retorna JSON"""
    data = request.get_json(silent=True) or {}
    stock = to_int(data.get("stock"))
    if stock is None or stock < 0:
        return {"ok": False, "error": "Stock inválido"}, 400

    inventory = get_container().inventory_service
    if not inventory.update_stock(item_id, stock, user=current_user()):
        return {"ok": False, "error": "Producto no encontrado"}, 404
    item = inventory.get_item_by_id(item_id)
    return {"ok": True, "item": item.to_dict(), "is_low_stock": item.is_low_stock}


# ═══════════════════════════════════════════════════════════════════════════════
# ÓRDENES
# ═══════════════════════════════════════════════════════════════════════════════

@app.route("/api/orders", methods=["GET"])
@login_required
def api_orders():
    """Listar órdenes (más recientes primero), filtro opcional ?status="""
    orders = get_container().orders_service
    status = request.args.get("status")
    if status:
        if status not in [s.value for s in OrderStatus]:
            return {"ok": False, "error": f"Estado inválido: {status}"}, 400
        result = orders.get_orders_by_status(status)
    else:
        result = orders.get_orders()
    return {"ok": True, "orders": [o.to_dict() for o in result]}


@app.route("/api/orders/active", methods=["GET"])
@login_required
def api_orders_active():
    result = get_container().orders_service.get_active_orders()
    return {"ok": True, "orders": [o.to_dict() for o in result], "count": len(result)}


@app.route("/api/orders/stats", methods=["GET"])
@login_required
def api_orders_stats():
    """Estadísticas del día (fecha local)"""
    orders = get_container().orders_service
    # Recalcula con la fecha de hoy aunque no haya cambiado ninguna orden
    stats = orders.calculate_daily_stats()
    return {
        "ok": True,
        "stats": stats.to_dict(),
        "todays_orders": len(orders.todays_orders),
    }


@app.route("/api/orders/<order_id>", methods=["GET"])
@login_required
def api_order(order_id):
    order = get_container().orders_service.get_order_by_id(order_id)
    if not order:
        return {"ok": False, "error": "Orden no encontrada"}, 404
    return {"ok": True, "order": order.to_dict()}


@app.route("/api/orders/<order_id>/status", methods=["POST"])
@login_required
@verify_csrf
def api_order_status(order_id):
    """
    Cambiar el estado de una orden.
    Solo se permiten los pasos del flujo:
    pending → preparing → ready → completed (cancelled desde los activos).
    """
    data = request.get_json(silent=True) or {}
    new_status = (data.get("status") or "").strip()
    if new_status not in [s.value for s in OrderStatus]:
        return {"ok": False, "error": f"Estado inválido: {new_status}"}, 400

    container = get_container()
    orders = container.orders_service
    with container.lock:
        order = orders.get_order_by_id(order_id)
        if not order:
            return {"ok": False, "error": "Orden no encontrada"}, 404
        if not orders.is_valid_transition(order.status, new_status):
            allowed = sorted(s.value for s in ORDER_TRANSITIONS[order.status])
            return {
                "ok": False,
                "error": f"Transición no permitida: {order.status.value} → {new_status}",
                "allowed": allowed,
            }, 409
        orders.update_order_status(order_id, new_status, user=current_user())
        return {"ok": True, "order": orders.get_order_by_id(order_id).to_dict()}


@app.route("/api/orders/<order_id>/cancel", methods=["POST"])
@login_required
@verify_csrf
def api_order_cancel(order_id):
    container = get_container()
    orders = container.orders_service
    with container.lock:
        if not orders.get_order_by_id(order_id):
            return {"ok": False, "error": "Orden no encontrada"}, 404
        if not orders.cancel_order(order_id, user=current_user()):
            return {"ok": False, "error": "Una orden completada no se puede anular"}, 409
        return {"ok": True, "order": orders.get_order_by_id(order_id).to_dict()}


# ═══════════════════════════════════════════════════════════════════════════════
# AUDITORÍA
# ═══════════════════════════════════════════════════════════════════════════════

@app.route("/api/audit", methods=["GET"])
@login_required
def api_audit():
    """Logs de actividad más recientes (?limit=&type=)"""
    audit = get_container().audit_service
    log_type = request.args.get("type")
    if log_type:
        logs = audit.get_by_type(log_type.upper())
    else:
        logs = audit.get_recent(to_int(request.args.get("limit"), 100))
    return {"ok": True, "logs": logs}


if __name__ == "__main__":
    import os
    # Configuración para desarrollo local y acceso desde red WiFi
    # En producción usar WSGI (gunicorn, waitress, etc.)
    DEBUG = os.environ.get('FLASK_DEBUG', '0') == '1'
    HOST = os.environ.get('FLASK_HOST', '0.0.0.0')  # Escucha en todas las interfaces
    PORT = int(os.environ.get('FLASK_PORT', 5000))

    if not DEBUG:
        print(f"\n{'='*50}")
        print(f"  Terminal iniciado en http://{HOST}:{PORT}/pos")
        print(f"  Acceso local: http://localhost:{PORT}/pos")
        print(f"{'='*50}\n")

    app.run(debug=DEBUG, host=HOST, port=PORT)
