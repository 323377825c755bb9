# publico.py
# Portal público: envío de denuncias y seguimiento con número + clave de acceso.
# Ninguna de estas rutas requiere sesión.

from datetime import datetime

from flask import Blueprint, request, jsonify, current_app

from extensions import db
from models import Denuncia, Empresa, TipoDenuncia, Comentario, HistorialEstado
from forms import DenunciaPublicaForm, SeguimientoForm, RespuestaDenuncianteForm, SatisfaccionForm
from helpers import (generar_numero, generar_clave, hash_clave, buscar_por_clave, validar_archivos, guardar_adjuntos,
                     descartar_archivos)
from seguridad import check_rate_limit, verify_recaptcha
from notificaciones import send_new_report_email
from log_activity import log_activity
from .workflows import ESTADO_INICIAL, RESPUESTA_DENUNCIANTE, es_terminal, es_calificable
from .visibilidad import serializar_publico

publico_bp = Blueprint('publico', __name__)

CREDENCIALES_INVALIDAS = {'error': 'credenciales_invalidas', 'mensaje': 'Número de denuncia o clave de acceso incorrectos.'}


def _denuncia_por_credenciales(form, accion):
    """Devuelve la denuncia o None, registrando el intento fallido en la bitácora."""
    denuncia = buscar_por_clave(form.numero.data, form.clave.data)
    if denuncia is None:
        log_activity(action=accion, category="Seguimiento", resultado='FAILED',
                     details=f"Credenciales inválidas para el número {form.numero.data}")
    return denuncia


@publico_bp.route('/api/publico/catalogos', methods=['GET'])
def catalogos_publicos():
    tipos = TipoDenuncia.query.filter_by(activo=True).order_by(TipoDenuncia.nombre).all()
    empresas = Empresa.query.filter_by(activo=True).order_by(Empresa.nombre).all()
    return jsonify({
        'tipos': [{'id': t.id, 'codigo': t.codigo, 'nombre': t.nombre, 'descripcion': t.descripcion} for t in tipos],
        'empresas': [{'id': e.id, 'nombre': e.nombre} for e in empresas],
    })


@publico_bp.route('/api/denuncias/public', methods=['POST'])
def crear_denuncia_publica():
    check_rate_limit()

    form = DenunciaPublicaForm()
    if not form.validate():
        return jsonify({'error': 'validacion', 'errores': form.errors}), 400

    if not verify_recaptcha(form.recaptcha_token.data):
        log_activity(action="Denuncia rechazada por reCAPTCHA", category="Denuncias", resultado='FAILED')
        return jsonify({'error': 'recaptcha_invalido'}), 400

    empresa = db.session.get(Empresa, form.id_empresa.data)
    if not empresa or not empresa.activo:
        return jsonify({'error': 'validacion', 'errores': {'id_empresa': ['La empresa seleccionada no existe.']}}), 400
    tipo = db.session.get(TipoDenuncia, form.id_tipo.data)
    if not tipo or not tipo.activo:
        return jsonify({'error': 'validacion', 'errores': {'id_tipo': ['El tipo de denuncia no existe.']}}), 400

    archivos = request.files.getlist('archivos')
    error_archivos = validar_archivos(archivos)
    if error_archivos:
        return jsonify({'error': 'validacion', 'errores': {'archivos': [error_archivos]}}), 400

    clave = generar_clave()
    adjuntos = []
    try:
        denuncia = Denuncia(
            numero=generar_numero(),
            clave_hash=hash_clave(clave),
            empresa=empresa,
            tipo=tipo,
            estado=ESTADO_INICIAL,
            asunto=form.asunto.data or None,
            descripcion=form.descripcion.data,
            canal_origen='web',
            relacion=form.relacion.data or None,
            periodo=form.periodo.data or None,
            pais=form.pais.data or None,
            ciudad=form.ciudad.data or None,
            involucrados=form.involucrados.data or [],
            anonimo=form.anonimo.data,
        )
        # Los datos de identidad de una denuncia anónima se descartan
        if not denuncia.anonimo:
            denuncia.nombre_denunciante = form.nombre.data
            denuncia.rut_denunciante = form.rut.data or None
            denuncia.email_denunciante = form.email.data or None
            denuncia.telefono_denunciante = form.telefono.data or None

        db.session.add(denuncia)
        db.session.add(HistorialEstado(denuncia=denuncia, estado_anterior=None, estado_nuevo=ESTADO_INICIAL,
                                       motivo='Denuncia recibida desde el portal público'))
        adjuntos = guardar_adjuntos(denuncia, archivos, origen='denunciante')
        db.session.commit()

    except Exception as e:
        db.session.rollback()
        descartar_archivos(adjuntos)
        current_app.logger.error(f"Error al registrar denuncia pública: {e}", exc_info=True)
        return jsonify({'error': 'No se pudo registrar la denuncia.'}), 500

    log_activity(action="Denuncia recibida", category="Denuncias", resource_id=denuncia.numero,
                 details=f"Tipo: {tipo.codigo}, empresa: {empresa.nombre}, anónima: {'sí' if denuncia.anonimo else 'no'}")
    send_new_report_email(denuncia)

    # Única vez que la clave en texto plano sale del servidor
    return jsonify({'numero': denuncia.numero, 'clave': clave}), 201


@publico_bp.route('/api/seguimiento', methods=['POST'])
def seguimiento():
    check_rate_limit()

    form = SeguimientoForm()
    if not form.validate():
        return jsonify({'error': 'validacion', 'errores': form.errors}), 400

    denuncia = _denuncia_por_credenciales(form, "Consulta de seguimiento")
    if denuncia is None:
        return jsonify(CREDENCIALES_INVALIDAS), 404

    return jsonify(serializar_publico(denuncia))


@publico_bp.route('/api/seguimiento/comentario', methods=['POST'])
def responder_denuncia():
    check_rate_limit()

    form = RespuestaDenuncianteForm()
    if not form.validate():
        return jsonify({'error': 'validacion', 'errores': form.errors}), 400

    denuncia = _denuncia_por_credenciales(form, "Respuesta del denunciante")
    if denuncia is None:
        return jsonify(CREDENCIALES_INVALIDAS), 404

    if es_terminal(denuncia.estado):
        return jsonify({'error': f"La denuncia está en estado '{denuncia.estado}' y ya no admite respuestas."}), 409

    archivos = request.files.getlist('archivos')
    error_archivos = validar_archivos(archivos)
    if error_archivos:
        return jsonify({'error': 'validacion', 'errores': {'archivos': [error_archivos]}}), 400

    adjuntos = []
    try:
        ahora = datetime.utcnow()
        db.session.add(Comentario(denuncia=denuncia, id_usuario=None, origen='denunciante',
                                  contenido=form.contenido.data, es_interno=False, fecha_creacion=ahora))
        adjuntos = guardar_adjuntos(denuncia, archivos, origen='denunciante')

        # La información solicitada llegó: la denuncia vuelve a revisión
        estado_pendiente, estado_retorno = RESPUESTA_DENUNCIANTE
        if denuncia.estado == estado_pendiente:
            db.session.add(HistorialEstado(denuncia=denuncia, estado_anterior=estado_pendiente,
                                           estado_nuevo=estado_retorno, id_usuario=None,
                                           motivo='Respuesta del denunciante', fecha_cambio=ahora))
            denuncia.estado = estado_retorno

        denuncia.fecha_actualizacion = ahora
        db.session.commit()

    except Exception as e:
        db.session.rollback()
        descartar_archivos(adjuntos)
        current_app.logger.error(f"Error al registrar la respuesta en {denuncia.numero}: {e}", exc_info=True)
        return jsonify({'error': 'No se pudo registrar la respuesta.'}), 500

    log_activity(action="Respuesta del denunciante", category="Seguimiento", resource_id=denuncia.numero)
    return jsonify(serializar_publico(denuncia)), 201


@publico_bp.route('/api/seguimiento/satisfaccion', methods=['POST'])
def calificar_atencion():
    check_rate_limit()

    form = SatisfaccionForm()
    if not form.validate():
        return jsonify({'error': 'validacion', 'errores': form.errors}), 400

    denuncia = _denuncia_por_credenciales(form, "Calificación de atención")
    if denuncia is None:
        return jsonify(CREDENCIALES_INVALIDAS), 404

    if not es_calificable(denuncia.estado):
        return jsonify({'error': 'Solo se puede calificar una denuncia resuelta o cerrada.'}), 409
    if denuncia.nota_satisfaccion is not None:
        return jsonify({'error': 'La atención de esta denuncia ya fue calificada.'}), 409

    try:
        denuncia.nota_satisfaccion = form.nota.data
        denuncia.comentario_satisfaccion = form.comentario.data or None
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error al guardar la calificación de {denuncia.numero}: {e}", exc_info=True)
        return jsonify({'error': 'No se pudo guardar la calificación.'}), 500

    log_activity(action="Calificación de atención", category="Seguimiento", resource_id=denuncia.numero,
                 details=f"Nota: {denuncia.nota_satisfaccion}")
    return jsonify(serializar_publico(denuncia))
