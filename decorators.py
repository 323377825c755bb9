# decorators.py

from functools import wraps
from flask import jsonify
from flask_login import current_user, login_required


def admin_required(f):
    """
    Restringe el acceso de una vista a usuarios con el rol 'admin'.
    """
    @wraps(f)
    @login_required
    def decorated_function(*args, **kwargs):
        if not current_user.is_admin():
            return jsonify({'error': 'No tienes permisos para acceder a este recurso.'}), 403
        return f(*args, **kwargs)
    return decorated_function


def permission_required(endpoint_name):
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not current_user.is_authenticated:
                return jsonify({'error': 'Autenticación requerida.'}), 401

            # Los permisos del usuario son la unión de los permisos de sus roles
            if endpoint_name not in current_user.permission_codes():
                return jsonify({'error': 'No tienes los permisos necesarios para esta acción.'}), 403

            return f(*args, **kwargs)
        return decorated_function
    return decorator
