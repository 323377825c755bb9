# reportes.py
# Estadísticas del dashboard y exportación de denuncias a Excel/CSV.

from datetime import datetime
from io import BytesIO

import pandas as pd
from flask import Blueprint, request, jsonify, current_app, send_file
from flask_login import current_user, login_required
from sqlalchemy import func

from models import Denuncia, Resolucion, User, Empresa
from decorators import permission_required
from log_activity import log_activity
from .workflows import ESTADOS, NOMBRES_ESTADOS, ESTADOS_EN_PROCESO, ESTADOS_FINALES
from .visibilidad import serializar_resumen, permisos_de_vista
from .denuncias import denuncias_visibles, aplicar_filtros

reportes_bp = Blueprint('reportes', __name__)

# Columnas del reporte en el orden en que se exportan
COLUMNAS_REPORTE = [
    ('numero', 'Número'),
    ('fecha_creacion', 'Fecha de Creación'),
    ('estado', 'Estado'),
    ('prioridad', 'Prioridad'),
    ('empresa', 'Empresa'),
    ('tipo', 'Tipo'),
    ('asunto', 'Asunto'),
    ('pais', 'País'),
    ('ciudad', 'Ciudad'),
    ('anonimo', 'Anónima'),
    ('denunciante', 'Denunciante'),
    ('telefono', 'Teléfono'),
    ('supervisor', 'Supervisor'),
    ('dias', 'Días'),
    ('nota_satisfaccion', 'Satisfacción'),
]

# Caracteres con los que una hoja de cálculo interpreta una celda como fórmula
PREFIJOS_FORMULA = ('=', '+', '-', '@', '\t', '\r')


def _neutralizar_formula(valor):
    if isinstance(valor, str) and valor.startswith(PREFIJOS_FORMULA):
        return "'" + valor
    return valor


def _promedio_dias_resolucion(query_base):
    filas = query_base.join(Resolucion, Resolucion.id_denuncia == Denuncia.id) \
        .with_entities(Denuncia.fecha_creacion, Resolucion.fecha_resolucion).all()
    if not filas:
        return None
    dias = [max((resuelta - creada).total_seconds(), 0) / 86400 for creada, resuelta in filas]
    return round(sum(dias) / len(dias), 1)


@reportes_bp.route('/api/dashboard/stats', methods=['GET'])
@login_required
@permission_required('reportes.ver')
def dashboard_stats():
    base = denuncias_visibles(current_user)

    conteo_por_estado = dict(
        base.with_entities(Denuncia.estado, func.count(Denuncia.id)).group_by(Denuncia.estado).all()
    )
    total = sum(conteo_por_estado.values())

    distribucion = []
    for estado in NOMBRES_ESTADOS:
        cantidad = conteo_por_estado.get(estado, 0)
        distribucion.append({
            'estado': estado,
            'cantidad': cantidad,
            'porcentaje': round(cantidad * 100.0 / total, 1) if total else 0.0,
            'color': ESTADOS[estado]['color'],
        })

    recientes = base.order_by(Denuncia.fecha_creacion.desc(), Denuncia.id.desc()).limit(5).all()

    return jsonify({
        'totales': {
            'total': total,
            'en_proceso': sum(conteo_por_estado.get(e, 0) for e in ESTADOS_EN_PROCESO),
            'nuevas': conteo_por_estado.get('Nuevo', 0),
            'resueltas': conteo_por_estado.get('Resuelto', 0),
            'criticas': base.filter(Denuncia.prioridad == 'critica', Denuncia.estado.notin_(ESTADOS_FINALES)).count(),
        },
        'distribucion_estados': distribucion,
        'metricas': {
            'usuarios_activos': User.query.filter_by(activo=True).count(),
            'empresas': Empresa.query.filter_by(activo=True).count(),
            'tiempo_promedio_resolucion_dias': _promedio_dias_resolucion(base),
        },
        'recientes': [serializar_resumen(d, current_user) for d in recientes],
    })


def _filas_reporte(denuncias, user):
    """Filas del reporte aplicando la misma visibilidad de identidad que el dashboard."""
    ver_identidad = permisos_de_vista(user)['identidad']
    filas = []
    for d in denuncias:
        identidad_visible = ver_identidad and not d.anonimo
        filas.append({
            'numero': d.numero,
            'fecha_creacion': d.fecha_creacion.strftime('%Y-%m-%d %H:%M') if d.fecha_creacion else '',
            'estado': d.estado,
            'prioridad': d.prioridad,
            'empresa': d.empresa.nombre if d.empresa else '',
            'tipo': d.tipo.nombre if d.tipo else '',
            'asunto': d.asunto or '',
            'pais': d.pais or '',
            'ciudad': d.ciudad or '',
            'anonimo': 'Sí' if d.anonimo else 'No',
            'denunciante': d.nombre_denunciante if identidad_visible else '',
            'telefono': d.telefono_denunciante if identidad_visible else '',
            'supervisor': d.supervisor.nombre_completo if d.supervisor else '',
            'dias': d.dias_abierta,
            'nota_satisfaccion': d.nota_satisfaccion if d.nota_satisfaccion is not None else '',
        })
    return filas


def _dataframe_reporte():
    query = aplicar_filtros(denuncias_visibles(current_user), request.args)
    denuncias = query.order_by(Denuncia.fecha_creacion.desc(), Denuncia.id.desc()).all()
    df = pd.DataFrame(_filas_reporte(denuncias, current_user), columns=[c for c, _ in COLUMNAS_REPORTE])
    return df.rename(columns=dict(COLUMNAS_REPORTE))


@reportes_bp.route('/api/reportes/denuncias.xlsx', methods=['GET'])
@login_required
@permission_required('reportes.exportar')
def exportar_excel():
    try:
        df = _dataframe_reporte()
    except ValueError:
        return jsonify({'error': 'Formato de fecha inválido, use AAAA-MM-DD.'}), 400

    try:
        excel_file_buffer = BytesIO()
        # Los textos del denunciante se escriben siempre como texto, nunca como fórmula
        with pd.ExcelWriter(excel_file_buffer, engine='xlsxwriter',
                            engine_kwargs={'options': {'strings_to_formulas': False}}) as writer:
            df.to_excel(writer, index=False, sheet_name='Denuncias')
            workbook = writer.book
            worksheet = writer.sheets['Denuncias']

            header_format = workbook.add_format({'bg_color': '#4A90E2', 'font_color': 'white', 'bold': True,
                                                 'align': 'center', 'valign': 'vcenter', 'border': 1})
            for col_num, column_name in enumerate(df.columns):
                worksheet.write(0, col_num, column_name, header_format)
                worksheet.set_column(col_num, col_num, 20)
        excel_file_buffer.seek(0)
    except Exception as e:
        current_app.logger.error(f"Error crítico al generar Excel: {e}", exc_info=True)
        return jsonify({'error': 'No se pudo generar el reporte.'}), 500

    log_activity(action="Exportación Excel", category="Reportes", details=f"{len(df)} denuncias exportadas")
    return send_file(
        excel_file_buffer,
        download_name=f"denuncias_{datetime.utcnow():%Y%m%d}.xlsx",
        mimetype='application/vnd.openxmlformats-officedocument.spreadsheetml.sheet',
        as_attachment=True
    )


@reportes_bp.route('/api/reportes/denuncias.csv', methods=['GET'])
@login_required
@permission_required('reportes.exportar')
def exportar_csv():
    try:
        df = _dataframe_reporte()
    except ValueError:
        return jsonify({'error': 'Formato de fecha inválido, use AAAA-MM-DD.'}), 400

    # utf-8-sig para que Excel reconozca los acentos al abrir el CSV
    for columna in df.columns:
        df[columna] = df[columna].map(_neutralizar_formula)
    output = BytesIO(df.to_csv(index=False).encode('utf-8-sig'))

    log_activity(action="Exportación CSV", category="Reportes", details=f"{len(df)} denuncias exportadas")
    return send_file(
        output,
        download_name=f"denuncias_{datetime.utcnow():%Y%m%d}.csv",
        mimetype='text/csv',
        as_attachment=True
    )
