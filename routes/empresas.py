# empresas.py

from flask import Blueprint, request, jsonify, current_app
from flask_login import login_required
from sqlalchemy import or_, func, case
from sqlalchemy.exc import IntegrityError

from extensions import db
from models import Empresa, Denuncia
from forms import EmpresaForm
from decorators import permission_required
from log_activity import log_activity
from .workflows import ESTADOS_FINALES

empresas_bp = Blueprint('empresas', __name__, url_prefix='/api/empresas')


def _estadisticas_por_empresa(ids=None):
    """Totales de denuncias por empresa: {id_empresa: {...}}."""
    query = db.session.query(
        Denuncia.id_empresa,
        func.count(Denuncia.id),
        func.sum(case((Denuncia.estado.in_(ESTADOS_FINALES), 0), else_=1)),
        func.sum(case((Denuncia.estado == 'Resuelto', 1), else_=0)),
        func.max(Denuncia.fecha_creacion)
    ).group_by(Denuncia.id_empresa)
    if ids is not None:
        query = query.filter(Denuncia.id_empresa.in_(ids))

    estadisticas = {}
    for id_empresa, totales, activas, resueltas, ultima in query.all():
        estadisticas[id_empresa] = {
            'totales': totales,
            'activas': int(activas or 0),
            'resueltas': int(resueltas or 0),
            'ultima_denuncia': ultima.isoformat() if ultima else None,
        }
    return estadisticas


def _con_estadisticas(empresa, estadisticas):
    data = empresa.to_dict()
    data['estadisticas'] = estadisticas.get(empresa.id, {
        'totales': 0, 'activas': 0, 'resueltas': 0, 'ultima_denuncia': None
    })
    return data


@empresas_bp.route('', methods=['GET'])
@login_required
@permission_required('empresas.ver')
def listar_empresas():
    query = Empresa.query
    activo = request.args.get('activo')
    if activo in ('1', 'true'):
        query = query.filter_by(activo=True)
    elif activo in ('0', 'false'):
        query = query.filter_by(activo=False)
    if request.args.get('q'):
        like_term = f"%{request.args['q'].strip()}%"
        query = query.filter(or_(Empresa.nombre.like(like_term), Empresa.rut.like(like_term)))

    empresas = query.order_by(Empresa.nombre).all()
    estadisticas = _estadisticas_por_empresa([e.id for e in empresas])
    return jsonify({'empresas': [_con_estadisticas(e, estadisticas) for e in empresas]})


@empresas_bp.route('/<int:id_empresa>', methods=['GET'])
@login_required
@permission_required('empresas.ver')
def ver_empresa(id_empresa):
    empresa = db.session.get(Empresa, id_empresa)
    if empresa is None:
        return jsonify({'error': 'Empresa no encontrada.'}), 404
    return jsonify(_con_estadisticas(empresa, _estadisticas_por_empresa([empresa.id])))


@empresas_bp.route('', methods=['POST'])
@login_required
@permission_required('empresas.gestionar')
def crear_empresa():
    form = EmpresaForm()
    if not form.validate():
        return jsonify({'error': 'Datos inválidos.', 'errores': form.errors}), 400

    empresa = Empresa(
        nombre=form.nombre.data,
        rut=form.rut.data.upper(),
        direccion=form.direccion.data or None,
        telefono=form.telefono.data or None,
        email=form.email.data or None,
        activo=form.activo.data if form.activo.raw_data else True
    )
    try:
        db.session.add(empresa)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return jsonify({'error': f"Ya existe una empresa con el RUT {empresa.rut}."}), 409
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error al crear empresa: {e}", exc_info=True)
        return jsonify({'error': 'No se pudo crear la empresa.'}), 500

    log_activity(action="Creación de Empresa", category="Empresas", resource_id=empresa.id,
                 details=f"Se creó la empresa: {empresa.nombre}")
    return jsonify(_con_estadisticas(empresa, {})), 201


@empresas_bp.route('/<int:id_empresa>', methods=['PUT'])
@login_required
@permission_required('empresas.gestionar')
def editar_empresa(id_empresa):
    empresa = db.session.get(Empresa, id_empresa)
    if empresa is None:
        return jsonify({'error': 'Empresa no encontrada.'}), 404

    form = EmpresaForm()
    if not form.validate():
        return jsonify({'error': 'Datos inválidos.', 'errores': form.errors}), 400

    try:
        empresa.nombre = form.nombre.data
        empresa.rut = form.rut.data.upper()
        empresa.direccion = form.direccion.data or None
        empresa.telefono = form.telefono.data or None
        empresa.email = form.email.data or None
        if form.activo.raw_data:
            empresa.activo = form.activo.data
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return jsonify({'error': f"Ya existe una empresa con el RUT {form.rut.data.upper()}."}), 409
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error al editar la empresa {id_empresa}: {e}", exc_info=True)
        return jsonify({'error': 'No se pudo actualizar la empresa.'}), 500

    log_activity(action="Edición de Empresa", category="Empresas", resource_id=empresa.id,
                 details=f"Se editó la empresa: {empresa.nombre}")
    return jsonify(_con_estadisticas(empresa, _estadisticas_por_empresa([empresa.id])))


@empresas_bp.route('/<int:id_empresa>', methods=['DELETE'])
@login_required
@permission_required('empresas.gestionar')
def eliminar_empresa(id_empresa):
    empresa = db.session.get(Empresa, id_empresa)
    if empresa is None:
        return jsonify({'error': 'Empresa no encontrada.'}), 404

    nombre = empresa.nombre
    # Con denuncias asociadas solo se desactiva, para no perder el historial
    tiene_denuncias = db.session.query(Denuncia.id).filter_by(id_empresa=empresa.id).first() is not None
    try:
        if tiene_denuncias:
            empresa.activo = False
        else:
            db.session.delete(empresa)
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error al eliminar la empresa {id_empresa}: {e}", exc_info=True)
        return jsonify({'error': 'No se pudo eliminar la empresa.'}), 500

    if tiene_denuncias:
        log_activity(action="Desactivación de Empresa", category="Empresas", resource_id=id_empresa,
                     details=f"La empresa {nombre} tiene denuncias asociadas; se desactivó en lugar de eliminarse")
        return jsonify({'mensaje': 'La empresa tiene denuncias asociadas y fue desactivada.', 'desactivada': True})

    log_activity(action="Eliminación de Empresa", category="Empresas", resource_id=id_empresa,
                 details=f"Se eliminó la empresa: {nombre}")
    return jsonify({'mensaje': 'Empresa eliminada.', 'desactivada': False})
