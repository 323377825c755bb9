# routes/admin.py
from datetime import datetime, timedelta

from flask import Blueprint, request, jsonify, current_app
from flask_login import login_required
from sqlalchemy import or_, func

from extensions import db
from models import ActivityLog, User
from decorators import permission_required
from helpers import leer_paginacion, metadata_paginacion

admin_bp = Blueprint('admin', __name__)


def _estadisticas_bitacora():
    ahora = datetime.utcnow()
    inicio_hoy = ahora.replace(hour=0, minute=0, second=0, microsecond=0)

    total = ActivityLog.query.count()
    exitosos = ActivityLog.query.filter_by(resultado='SUCCESS').count()
    modulos = db.session.query(ActivityLog.category, func.count(ActivityLog.id)) \
        .filter(ActivityLog.category.isnot(None)) \
        .group_by(ActivityLog.category) \
        .order_by(func.count(ActivityLog.id).desc()) \
        .limit(5).all()

    return {
        'total': total,
        'hoy': ActivityLog.query.filter(ActivityLog.timestamp >= inicio_hoy).count(),
        'semana': ActivityLog.query.filter(ActivityLog.timestamp >= ahora - timedelta(days=7)).count(),
        'mes': ActivityLog.query.filter(ActivityLog.timestamp >= ahora - timedelta(days=30)).count(),
        'modulos_mas_activos': [{'modulo': modulo, 'cantidad': cantidad} for modulo, cantidad in modulos],
        'tasa_exito': round(exitosos * 100.0 / total, 1) if total else 0.0,
    }


@admin_bp.route('/api/auditoria', methods=['GET'])
@login_required
@permission_required('admin.view_activity_log')
def view_activity_log():
    filters = request.args
    page, limit = leer_paginacion(filters)

    # Valores de los filtros
    user_id = filters.get('user_id', type=int)
    category = filters.get('category')
    resultado = filters.get('resultado')
    start_date = filters.get('start_date')
    end_date = filters.get('end_date')
    search_term = filters.get('search_term')

    # Consulta base
    query = ActivityLog.query.order_by(ActivityLog.timestamp.desc(), ActivityLog.id.desc())

    # Aplicar filtros
    if user_id:
        query = query.filter(ActivityLog.user_id == user_id)
    if category:
        query = query.filter(ActivityLog.category == category)
    if resultado:
        query = query.filter(ActivityLog.resultado == resultado.upper())
    try:
        if start_date:
            query = query.filter(ActivityLog.timestamp >= datetime.strptime(start_date, '%Y-%m-%d'))
        if end_date:
            # Añadimos +1 día al end_date para incluir todo el día
            end_date_dt = datetime.strptime(end_date, '%Y-%m-%d') + timedelta(days=1)
            query = query.filter(ActivityLog.timestamp < end_date_dt)
    except ValueError:
        return jsonify({'error': 'Formato de fecha inválido, use AAAA-MM-DD.'}), 400
    if search_term:
        like_term = f"%{search_term}%"
        query = query.filter(
            or_(
                ActivityLog.action.like(like_term),
                ActivityLog.details.like(like_term),
                ActivityLog.resource_id.like(like_term)
            )
        )

    try:
        logs_pagination = query.paginate(page=page, per_page=limit, error_out=False)

        # Datos para los <select> de los filtros
        users = User.query.order_by(User.email).all()
        categories_db = db.session.query(ActivityLog.category).distinct().order_by(ActivityLog.category).all()
        categories = [c[0] for c in categories_db if c[0]]

        return jsonify({
            'registros': [log.to_dict() for log in logs_pagination.items],
            'paginacion': metadata_paginacion(logs_pagination, 'fecha_creacion', 'desc'),
            'estadisticas': _estadisticas_bitacora(),
            'usuarios': [{'id': u.id, 'nombre': u.nombre_completo, 'email': u.email} for u in users],
            'categorias': categories,
        })

    except Exception as e:
        current_app.logger.error(f"Error al cargar la bitácora: {e}", exc_info=True)
        return jsonify({'error': 'No se pudo cargar la bitácora.'}), 500
