from extensions import db
from models import ActivityLog
from flask import current_app, has_request_context, request
from flask_login import current_user
from datetime import datetime


def _truncar(valor, limite):
    if valor is None:
        return None
    valor = str(valor)
    return valor[:limite] if len(valor) > limite else valor


def _ip_cliente():
    xff = request.headers.get('X-Forwarded-For', '')
    return (xff.split(',')[0] or request.remote_addr or '').strip() or None


def log_activity(action, category=None, details=None, resource_id=None, resultado='SUCCESS', user_id=None):
    """
    Registra una entrada en la bitácora de auditoría.
    Se llama después del commit de la operación principal; si falla solo se
    registra el error en el log de la aplicación.
    """
    try:
        ip_origen = None
        user_agent = None
        if has_request_context():
            ip_origen = _ip_cliente()
            user_agent = _truncar(request.headers.get('User-Agent'), 255)

        if user_id is None and current_user and current_user.is_authenticated:
            user_id = current_user.id

        log_entry = ActivityLog(
            user_id=user_id,
            action=_truncar(action, 255),
            category=_truncar(category, 100),
            details=_truncar(details, 500),
            resource_id=_truncar(resource_id, 50),
            resultado=resultado,
            ip_origen=_truncar(ip_origen, 45),
            user_agent=user_agent,
            timestamp=datetime.utcnow()
        )

        db.session.add(log_entry)
        db.session.commit()

    except Exception as e:
        current_app.logger.error(f"Error al registrar actividad: {e}")
        db.session.rollback()
