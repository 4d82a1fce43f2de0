# ==============================================================================
# REPOSITORIO DE AUDITORÍA
# ==============================================================================
# Encapsula todo el acceso a audit.json
# La auditoría se almacena como lista: [{log1}, {log2}, ...]
# ==============================================================================

import os
from typing import Any, Dict, List
from datetime import datetime
from .base import ListRepository


class AuditRepository(ListRepository):
    """
    Repositorio para gestión del log de auditoría.

    Formato de datos en audit.json:
    [
        {
            "type": "ORDEN",
            "user": "barista",
            "message": "Orden ORD20240101042 creada - Total: $8.64",
            "timestamp": "2024-01-01 10:00:00",
            "related_id": "order_...",
            "details": {...}
        }
    ]
    """

    # Límite de registros para evitar archivos muy grandes
    MAX_LOGS = 10000

    def __init__(self, base_path: str, filename: str = 'audit.json'):
        """
        Args:
            base_path: Carpeta de datos
            filename: Nombre del archivo JSON
        """
        super().__init__(os.path.join(base_path, filename))

    def save(self, logs: List[Dict[str, Any]]) -> None:
        """
        Guarda todos los logs aplicando el límite de registros.
        """
        if len(logs) > self.MAX_LOGS:
            logs = logs[:self.MAX_LOGS]
        self.save_all(logs)

    def log(
        self,
        log_type: str,
        user: str,
        message: str,
        related_id: str = '',
        details: Dict[str, Any] = None
    ) -> None:
        """
        Registra un nuevo evento de auditoría (más reciente primero).

        Args:
            log_type: Tipo de evento (ORDEN, PAGO, STOCK, PRODUCTO, SISTEMA)
            user: Usuario que realizó la acción
            message: Mensaje descriptivo humanizado
            related_id: ID relacionado (orden, factura, producto)
            details: Detalles adicionales
        """
        log_entry = {
            'type': log_type,
            'user': user or 'sistema',
            'message': message,
            'timestamp': datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
            'related_id': related_id,
            'details': details or {}
        }

        with self._file_lock:
            logs = self.get_all()
            logs.insert(0, log_entry)
            self.save(logs)

    def get_logs_by_type(self, log_type: str) -> List[Dict[str, Any]]:
        """Filtra logs por tipo."""
        return self.find_all_by('type', log_type)

    def get_recent_logs(self, limit: int = 100) -> List[Dict[str, Any]]:
        """
        Obtiene los logs más recientes.

        Args:
            limit: Número máximo de logs
        """
        return self.get_all()[:limit]
