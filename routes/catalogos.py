# catalogos.py

from flask import Blueprint, jsonify, current_app
from flask_login import login_required
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from config import PRIORIDADES
from extensions import db
from models import TipoDenuncia, Denuncia
from forms import TipoDenunciaForm
from decorators import permission_required
from log_activity import log_activity
from .workflows import catalogo_estados, transiciones_disponibles

catalogos_bp = Blueprint('catalogos', __name__, url_prefix='/api/catalogos')


@catalogos_bp.route('/estados', methods=['GET'])
@login_required
def listar_estados():
    estados = catalogo_estados()
    for estado in estados:
        estado['transiciones'] = transiciones_disponibles(estado['nombre'])
    return jsonify({'estados': estados, 'prioridades': PRIORIDADES})


@catalogos_bp.route('/tipos', methods=['GET'])
@login_required
def listar_tipos():
    conteos = dict(
        db.session.query(Denuncia.id_tipo, func.count(Denuncia.id)).group_by(Denuncia.id_tipo).all()
    )
    tipos = TipoDenuncia.query.order_by(TipoDenuncia.codigo).all()
    return jsonify({'tipos': [dict(t.to_dict(), total_denuncias=conteos.get(t.id, 0)) for t in tipos]})


@catalogos_bp.route('/tipos', methods=['POST'])
@login_required
@permission_required('catalogos.gestionar')
def crear_tipo():
    form = TipoDenunciaForm()
    if not form.validate():
        return jsonify({'error': 'Datos inválidos.', 'errores': form.errors}), 400

    tipo = TipoDenuncia(
        codigo=form.codigo.data.upper(),
        nombre=form.nombre.data,
        descripcion=form.descripcion.data or None,
        activo=form.activo.data if form.activo.raw_data else True
    )
    try:
        db.session.add(tipo)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return jsonify({'error': f"Ya existe un tipo de denuncia con el código {tipo.codigo}."}), 409
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error al crear tipo de denuncia: {e}", exc_info=True)
        return jsonify({'error': 'No se pudo crear el tipo de denuncia.'}), 500

    log_activity(action="Creación de Tipo de Denuncia", category="Catálogos", resource_id=tipo.id,
                 details=f"{tipo.codigo} - {tipo.nombre}")
    return jsonify(tipo.to_dict()), 201


@catalogos_bp.route('/tipos/<int:id_tipo>', methods=['PUT'])
@login_required
@permission_required('catalogos.gestionar')
def editar_tipo(id_tipo):
    tipo = db.session.get(TipoDenuncia, id_tipo)
    if tipo is None:
        return jsonify({'error': 'Tipo de denuncia no encontrado.'}), 404

    form = TipoDenunciaForm()
    if not form.validate():
        return jsonify({'error': 'Datos inválidos.', 'errores': form.errors}), 400

    try:
        tipo.codigo = form.codigo.data.upper()
        tipo.nombre = form.nombre.data
        tipo.descripcion = form.descripcion.data or None
        if form.activo.raw_data:
            tipo.activo = form.activo.data
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return jsonify({'error': f"Ya existe un tipo de denuncia con el código {form.codigo.data.upper()}."}), 409
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error al editar el tipo de denuncia {id_tipo}: {e}", exc_info=True)
        return jsonify({'error': 'No se pudo actualizar el tipo de denuncia.'}), 500

    log_activity(action="Edición de Tipo de Denuncia", category="Catálogos", resource_id=tipo.id,
                 details=f"{tipo.codigo} - {tipo.nombre}")
    return jsonify(tipo.to_dict())


@catalogos_bp.route('/tipos/<int:id_tipo>', methods=['DELETE'])
@login_required
@permission_required('catalogos.gestionar')
def eliminar_tipo(id_tipo):
    tipo = db.session.get(TipoDenuncia, id_tipo)
    if tipo is None:
        return jsonify({'error': 'Tipo de denuncia no encontrado.'}), 404

    codigo = tipo.codigo
    tiene_denuncias = db.session.query(Denuncia.id).filter_by(id_tipo=tipo.id).first() is not None
    try:
        if tiene_denuncias:
            tipo.activo = False
        else:
            db.session.delete(tipo)
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error al eliminar el tipo de denuncia {id_tipo}: {e}", exc_info=True)
        return jsonify({'error': 'No se pudo eliminar el tipo de denuncia.'}), 500

    if tiene_denuncias:
        log_activity(action="Desactivación de Tipo de Denuncia", category="Catálogos", resource_id=id_tipo,
                     details=f"{codigo} tiene denuncias asociadas; se desactivó en lugar de eliminarse")
        return jsonify({'mensaje': 'El tipo tiene denuncias asociadas y fue desactivado.', 'desactivado': True})

    log_activity(action="Eliminación de Tipo de Denuncia", category="Catálogos", resource_id=id_tipo, details=codigo)
    return jsonify({'mensaje': 'Tipo de denuncia eliminado.', 'desactivado': False})
