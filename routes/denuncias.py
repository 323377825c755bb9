# denuncias.py
# API de gestión de denuncias para los dashboards (admin, analista, supervisor, auditor).

import os
from datetime import datetime, timedelta

from flask import Blueprint, request, jsonify, current_app, send_from_directory
from flask_login import current_user, login_required
from sqlalchemy import or_

from extensions import db
from models import Denuncia, Comentario, Adjunto, HistorialEstado, Resolucion, User, Reasignacion, RevelacionIdentidad
from forms import CambioEstadoForm, AsignacionForm, PrioridadForm, ComentarioForm, RevelarEmailForm
from decorators import permission_required
from helpers import (leer_paginacion, metadata_paginacion, validar_archivos, guardar_adjuntos, descartar_archivos,
                     verificar_clave)
from log_activity import log_activity
from notificaciones import send_status_change_email, send_identity_revealed_email
from seguridad import get_client_ip
from .workflows import validar_transicion
from .visibilidad import (serializar_denuncia, serializar_resumen, puede_ver_denuncia, tiene_vision_global,
                          permisos_de_vista)

denuncias_bp = Blueprint('denuncias', __name__)

ORDENAMIENTOS = {
    'fecha_creacion': Denuncia.fecha_creacion,
    'fecha_actualizacion': Denuncia.fecha_actualizacion,
    'numero': Denuncia.numero,
    'estado': Denuncia.estado,
    'prioridad': Denuncia.prioridad,
}

# Largo mínimo del motivo de una revelación forzada de identidad
MOTIVO_REVELACION_MIN = 10


def _parse_fecha(valor):
    return datetime.strptime(valor, '%Y-%m-%d')


def denuncias_visibles(user):
    """Consulta base: los supervisores solo ven las denuncias asignadas."""
    query = Denuncia.query
    if not tiene_vision_global(user):
        query = query.filter(Denuncia.id_supervisor == user.id)
    return query


def aplicar_filtros(query, args):
    """
    Aplica los filtros del listado (estado, prioridad, empresa, tipo,
    supervisor, rango de fechas y búsqueda libre). Lanza ValueError si
    una fecha no tiene el formato AAAA-MM-DD.
    """
    if args.get('estado'):
        query = query.filter(Denuncia.estado == args['estado'])
    if args.get('prioridad'):
        query = query.filter(Denuncia.prioridad == args['prioridad'])
    if args.get('id_empresa', type=int):
        query = query.filter(Denuncia.id_empresa == args.get('id_empresa', type=int))
    if args.get('id_tipo', type=int):
        query = query.filter(Denuncia.id_tipo == args.get('id_tipo', type=int))
    if args.get('id_supervisor', type=int):
        query = query.filter(Denuncia.id_supervisor == args.get('id_supervisor', type=int))
    if args.get('fecha_desde'):
        query = query.filter(Denuncia.fecha_creacion >= _parse_fecha(args['fecha_desde']))
    if args.get('fecha_hasta'):
        # +1 día para incluir todo el día
        query = query.filter(Denuncia.fecha_creacion < _parse_fecha(args['fecha_hasta']) + timedelta(days=1))
    if args.get('q'):
        like_term = f"%{args['q'].strip()}%"
        query = query.filter(
            or_(
                Denuncia.numero.like(like_term),
                Denuncia.asunto.like(like_term),
                Denuncia.descripcion.like(like_term)
            )
        )
    return query


def _denuncia_o_error(id_denuncia):
    """Devuelve (denuncia, None) o (None, respuesta de error) según la visibilidad del usuario."""
    denuncia = db.session.get(Denuncia, id_denuncia)
    if denuncia is None:
        return None, (jsonify({'error': 'Denuncia no encontrada.'}), 404)
    if not puede_ver_denuncia(current_user, denuncia):
        return None, (jsonify({'error': 'No tienes acceso a esta denuncia.'}), 403)
    return denuncia, None


@denuncias_bp.route('/api/denuncias', methods=['GET'])
@login_required
@permission_required('denuncias.listar')
def listar_denuncias():
    page, limit = leer_paginacion(request.args)
    ordenado_por = request.args.get('ordenar_por', 'fecha_creacion')
    if ordenado_por not in ORDENAMIENTOS:
        ordenado_por = 'fecha_creacion'
    orden = 'asc' if request.args.get('orden') == 'asc' else 'desc'

    try:
        query = aplicar_filtros(denuncias_visibles(current_user), request.args)
    except ValueError:
        return jsonify({'error': 'Formato de fecha inválido, use AAAA-MM-DD.'}), 400

    columna = ORDENAMIENTOS[ordenado_por]
    query = query.order_by(columna.asc() if orden == 'asc' else columna.desc(), Denuncia.id.desc())
    pagination = query.paginate(page=page, per_page=limit, error_out=False)

    return jsonify({
        'denuncias': [serializar_resumen(d, current_user) for d in pagination.items],
        'paginacion': metadata_paginacion(pagination, ordenado_por, orden),
    })


@denuncias_bp.route('/api/denuncias/<int:id_denuncia>', methods=['GET'])
@login_required
@permission_required('denuncias.ver')
def ver_denuncia(id_denuncia):
    denuncia, error = _denuncia_o_error(id_denuncia)
    if error:
        return error
    return jsonify(serializar_denuncia(denuncia, current_user))


@denuncias_bp.route('/api/denuncias/<int:id_denuncia>/estado', methods=['POST'])
@login_required
@permission_required('denuncias.cambiar_estado')
def cambiar_estado(id_denuncia):
    denuncia, error = _denuncia_o_error(id_denuncia)
    if error:
        return error

    form = CambioEstadoForm()
    if not form.validate():
        return jsonify({'error': 'Datos inválidos.', 'errores': form.errors}), 400

    nuevo_estado = form.estado.data
    # TransicionInvalida se responde como 400 desde el manejador de la app
    regla = validar_transicion(denuncia.estado, nuevo_estado, form.motivo.data, form.resolucion.data)

    estado_anterior = denuncia.estado
    try:
        ahora = datetime.utcnow()
        denuncia.estado = nuevo_estado
        denuncia.fecha_actualizacion = ahora
        db.session.add(HistorialEstado(
            denuncia=denuncia,
            estado_anterior=estado_anterior,
            estado_nuevo=nuevo_estado,
            motivo=form.motivo.data or None,
            id_usuario=current_user.id,
            fecha_cambio=ahora
        ))

        if regla.get('requiere_resolucion'):
            if denuncia.resolucion is None:
                denuncia.resolucion = Resolucion(contenido=form.resolucion.data, id_usuario=current_user.id,
                                                 fecha_resolucion=ahora)
            else:
                denuncia.resolucion.contenido = form.resolucion.data
                denuncia.resolucion.id_usuario = current_user.id
                denuncia.resolucion.fecha_resolucion = ahora

        db.session.commit()

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error al cambiar el estado de la denuncia {id_denuncia}: {e}", exc_info=True)
        return jsonify({'error': 'No se pudo cambiar el estado.'}), 500

    log_activity(action="Cambio de estado", category="Denuncias", resource_id=denuncia.numero,
                 details=f"'{estado_anterior}' -> '{nuevo_estado}'")
    send_status_change_email(denuncia)

    return jsonify({
        'mensaje': f"La denuncia {denuncia.numero} pasó a '{nuevo_estado}'.",
        'denuncia': serializar_denuncia(denuncia, current_user),
    })


@denuncias_bp.route('/api/denuncias/<int:id_denuncia>/asignar', methods=['POST'])
@login_required
@permission_required('denuncias.asignar')
def asignar_supervisor(id_denuncia):
    denuncia, error = _denuncia_o_error(id_denuncia)
    if error:
        return error

    form = AsignacionForm()
    if not form.validate():
        return jsonify({'error': 'Datos inválidos.', 'errores': form.errors}), 400

    supervisor = db.session.get(User, form.id_supervisor.data)
    if not supervisor or not supervisor.activo or not supervisor.has_role('supervisor'):
        return jsonify({'error': 'El usuario indicado no es un supervisor activo.'}), 400
    if denuncia.id_supervisor == supervisor.id:
        return jsonify({'error': 'La denuncia ya está asignada a ese supervisor.'}), 400

    anterior = denuncia.supervisor
    try:
        db.session.add(Reasignacion(denuncia=denuncia, id_usuario_anterior=denuncia.id_supervisor,
                                    id_usuario_nuevo=supervisor.id, id_reasignado_por=current_user.id))
        denuncia.supervisor = supervisor
        denuncia.fecha_actualizacion = datetime.utcnow()
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error al asignar la denuncia {id_denuncia}: {e}", exc_info=True)
        return jsonify({'error': 'No se pudo asignar la denuncia.'}), 500

    log_activity(action="Asignación de supervisor", category="Denuncias", resource_id=denuncia.numero,
                 details=f"{anterior.email if anterior else 'sin asignar'} -> {supervisor.email}")
    return jsonify({'mensaje': 'Supervisor asignado.', 'denuncia': serializar_resumen(denuncia, current_user)})


@denuncias_bp.route('/api/denuncias/<int:id_denuncia>/prioridad', methods=['POST'])
@login_required
@permission_required('denuncias.prioridad')
def cambiar_prioridad(id_denuncia):
    denuncia, error = _denuncia_o_error(id_denuncia)
    if error:
        return error

    form = PrioridadForm()
    if not form.validate():
        return jsonify({'error': 'Datos inválidos.', 'errores': form.errors}), 400

    prioridad_anterior = denuncia.prioridad
    try:
        denuncia.prioridad = form.prioridad.data
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error al cambiar la prioridad de la denuncia {id_denuncia}: {e}", exc_info=True)
        return jsonify({'error': 'No se pudo cambiar la prioridad.'}), 500

    log_activity(action="Cambio de prioridad", category="Denuncias", resource_id=denuncia.numero,
                 details=f"'{prioridad_anterior}' -> '{denuncia.prioridad}'")
    return jsonify({'mensaje': 'Prioridad actualizada.', 'denuncia': serializar_resumen(denuncia, current_user)})


@denuncias_bp.route('/api/denuncias/<int:id_denuncia>/comentarios', methods=['POST'])
@login_required
@permission_required('denuncias.comentar')
def agregar_comentario(id_denuncia):
    denuncia, error = _denuncia_o_error(id_denuncia)
    if error:
        return error

    form = ComentarioForm()
    if not form.validate():
        return jsonify({'error': 'Datos inválidos.', 'errores': form.errors}), 400

    try:
        ahora = datetime.utcnow()
        comentario = Comentario(
            denuncia=denuncia,
            id_usuario=current_user.id,
            origen='gestion',
            contenido=form.contenido.data,
            es_interno=form.es_interno.data,
            fecha_creacion=ahora
        )
        db.session.add(comentario)
        denuncia.fecha_actualizacion = ahora
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error al comentar la denuncia {id_denuncia}: {e}", exc_info=True)
        return jsonify({'error': 'No se pudo guardar el comentario.'}), 500

    log_activity(action="Comentario interno" if comentario.es_interno else "Comentario público",
                 category="Denuncias", resource_id=denuncia.numero)
    return jsonify({'mensaje': 'Comentario agregado.', 'denuncia': serializar_denuncia(denuncia, current_user)}), 201


@denuncias_bp.route('/api/denuncias/<int:id_denuncia>/adjuntos', methods=['POST'])
@login_required
@permission_required('denuncias.adjuntar')
def subir_adjuntos(id_denuncia):
    denuncia, error = _denuncia_o_error(id_denuncia)
    if error:
        return error

    archivos = [f for f in request.files.getlist('archivos') if f and f.filename]
    if not archivos:
        return jsonify({'error': 'No se recibieron archivos.'}), 400
    error_archivos = validar_archivos(archivos)
    if error_archivos:
        return jsonify({'error': error_archivos}), 400

    adjuntos = []
    try:
        adjuntos = guardar_adjuntos(denuncia, archivos, origen='gestion', id_usuario=current_user.id)
        denuncia.fecha_actualizacion = datetime.utcnow()
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        descartar_archivos(adjuntos)
        current_app.logger.error(f"Error al subir adjuntos a la denuncia {id_denuncia}: {e}", exc_info=True)
        return jsonify({'error': 'No se pudieron guardar los archivos.'}), 500

    log_activity(action="Carga de adjuntos", category="Denuncias", resource_id=denuncia.numero,
                 details=', '.join(a.nombre_archivo for a in adjuntos))
    return jsonify({'mensaje': f"{len(adjuntos)} archivo(s) agregado(s).",
                    'denuncia': serializar_denuncia(denuncia, current_user)}), 201


@denuncias_bp.route('/api/adjuntos/<int:id_adjunto>/descargar', methods=['GET'])
@login_required
@permission_required('denuncias.descargar_adjunto')
def descargar_adjunto(id_adjunto):
    adjunto = db.session.get(Adjunto, id_adjunto)
    if adjunto is None:
        return jsonify({'error': 'Adjunto no encontrado.'}), 404
    if not puede_ver_denuncia(current_user, adjunto.denuncia):
        return jsonify({'error': 'No tienes acceso a esta denuncia.'}), 403

    ruta = os.path.join(current_app.config['UPLOAD_FOLDER'], adjunto.ruta_archivo)
    if not os.path.isfile(ruta):
        current_app.logger.error(f"Adjunto {id_adjunto} registrado pero no encontrado en disco: {ruta}")
        return jsonify({'error': 'El archivo no está disponible.'}), 404

    log_activity(action="Descarga de adjunto", category="Denuncias", resource_id=adjunto.denuncia.numero,
                 details=adjunto.nombre_archivo)
    return send_from_directory(
        current_app.config['UPLOAD_FOLDER'],
        adjunto.ruta_archivo,
        as_attachment=True,
        download_name=adjunto.nombre_archivo,
        mimetype=adjunto.tipo_mime
    )


@denuncias_bp.route('/api/denuncias/<int:id_denuncia>/revelar-email', methods=['POST'])
@login_required
@permission_required('denuncias.ver')
def revelar_email(id_denuncia):
    """
    Entrega el correo del denunciante y deja registro de la revelación.
    Dos vías: la clave de acceso que el propio denunciante compartió con
    el equipo, o una revelación forzada con permiso especial y motivo.
    """
    denuncia, error = _denuncia_o_error(id_denuncia)
    if error:
        return error

    form = RevelarEmailForm()
    if not form.validate():
        return jsonify({'error': 'Datos inválidos.', 'errores': form.errors}), 400

    if denuncia.anonimo or not denuncia.email_denunciante:
        return jsonify({'error': 'La denuncia no tiene un correo de contacto que revelar.'}), 400

    if form.clave.data:
        if not permisos_de_vista(current_user)['identidad']:
            return jsonify({'error': 'No tienes permisos para ver la identidad del denunciante.'}), 403
        if not verificar_clave(denuncia.clave_hash, form.clave.data):
            log_activity(action="Revelación de correo rechazada", category="Denuncias", resource_id=denuncia.numero,
                         resultado='FAILED', details="Clave de acceso incorrecta")
            return jsonify({'error': 'La clave de acceso no corresponde a la denuncia.'}), 403
        metodo = 'clave_denunciante'
    else:
        if 'denuncias.revelar_identidad' not in current_user.permission_codes():
            return jsonify({'error': 'No tienes permisos para revelar la identidad sin la clave del denunciante.'}), 403
        if len(form.motivo.data or '') < MOTIVO_REVELACION_MIN:
            return jsonify({'error': 'validacion', 'errores': {
                'motivo': [f"Indique un motivo de al menos {MOTIVO_REVELACION_MIN} caracteres."]}}), 400
        metodo = 'forzado'

    try:
        revelacion = RevelacionIdentidad(
            denuncia=denuncia,
            id_usuario=current_user.id,
            metodo=metodo,
            motivo=form.motivo.data or None,
            ip_origen=(get_client_ip() or None),
            fecha=datetime.utcnow()
        )
        db.session.add(revelacion)
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error al registrar la revelación de la denuncia {id_denuncia}: {e}", exc_info=True)
        return jsonify({'error': 'No se pudo registrar la revelación.'}), 500

    log_activity(action="Revelación de correo del denunciante", category="Denuncias", resource_id=denuncia.numero,
                 details=f"Método: {metodo}")
    if metodo == 'forzado':
        send_identity_revealed_email(denuncia, current_user, revelacion.motivo)

    return jsonify({
        'email': denuncia.email_denunciante,
        'metodo': metodo,
        'fecha': revelacion.fecha.isoformat(),
    })


@denuncias_bp.route('/api/denuncias/<int:id_denuncia>/revelaciones', methods=['GET'])
@login_required
@permission_required('admin.view_activity_log')
def listar_revelaciones(id_denuncia):
    denuncia = db.session.get(Denuncia, id_denuncia)
    if denuncia is None:
        return jsonify({'error': 'Denuncia no encontrada.'}), 404
    return jsonify({'revelaciones': [r.to_dict() for r in denuncia.revelaciones]})
