import uuid
from datetime import datetime, timedelta

from flask import Blueprint, request, jsonify, url_for, current_app
from flask_login import current_user
from sqlalchemy.exc import IntegrityError

from extensions import db
from models import User, Role, Permission, Denuncia
from forms import UserForm, RoleForm, ResetPasswordForm
from decorators import admin_required
from log_activity import log_activity

admin_users_bp = Blueprint('admin_users', __name__, url_prefix='/api/admin/users')


def _nombres_solicitados(campo):
    """Lista enviada en el cuerpo JSON o repetida en el formulario multipart."""
    if request.is_json:
        valores = (request.get_json(silent=True) or {}).get(campo)
        if valores is None:
            return None
        return [str(v) for v in valores] if isinstance(valores, list) else None
    if campo not in request.form:
        return None
    return request.form.getlist(campo)


def _roles_por_nombre(nombres):
    """Devuelve (roles, desconocidos) para la lista de nombres de rol."""
    roles = Role.query.filter(Role.name.in_(nombres)).all() if nombres else []
    desconocidos = sorted(set(nombres) - {r.name for r in roles})
    return roles, desconocidos


# --- Rutas de Administración de Roles ---

@admin_users_bp.route('/roles', methods=['GET'])
@admin_required
def list_roles():
    roles = Role.query.order_by(Role.name).all()
    return jsonify({'roles': [{
        'id': role.id,
        'name': role.name,
        'description': role.description,
        'permisos': sorted(p.endpoint for p in role.permissions),
        'usuarios': len(role.users),
    } for role in roles]})


@admin_users_bp.route('/roles', methods=['POST'])
@admin_required
def create_role():
    form = RoleForm()
    if not form.validate():
        return jsonify({'error': 'Datos inválidos.', 'errores': form.errors}), 400

    role = Role(name=form.name.data.lower(), description=form.description.data or None)
    try:
        db.session.add(role)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return jsonify({'error': f"El rol '{role.name}' ya existe."}), 409

    log_activity(action="Creación de Rol", category="Roles", resource_id=role.id,
                 details=f"Se agregó el nuevo rol: {role.name}")
    return jsonify({'id': role.id, 'name': role.name, 'description': role.description, 'permisos': []}), 201


@admin_users_bp.route('/permissions', methods=['GET'])
@admin_required
def list_permissions():
    permisos = Permission.query.order_by(Permission.endpoint).all()
    # Mapa rol -> permisos, como lo necesita la pantalla de gestión
    role_perms_map = {}
    for role in Role.query.all():
        role_perms_map[role.name] = sorted(p.endpoint for p in role.permissions)
    return jsonify({
        'permisos': [{'id': p.id, 'endpoint': p.endpoint, 'description': p.description} for p in permisos],
        'roles': role_perms_map,
    })


@admin_users_bp.route('/roles/<int:role_id>/permissions', methods=['PUT'])
@admin_required
def manage_permissions(role_id):
    role = db.session.get(Role, role_id)
    if role is None:
        return jsonify({'error': 'Rol no encontrado.'}), 404

    codigos = _nombres_solicitados('permissions')
    if codigos is None:
        return jsonify({'error': "Debe enviar la lista 'permissions'."}), 400

    permisos = Permission.query.filter(Permission.endpoint.in_(codigos)).all() if codigos else []
    desconocidos = sorted(set(codigos) - {p.endpoint for p in permisos})
    if desconocidos:
        return jsonify({'error': f"Permisos desconocidos: {', '.join(desconocidos)}"}), 400

    if role.name == 'admin' and 'admin.view_activity_log' not in codigos:
        return jsonify({'error': "El rol 'admin' debe conservar el acceso a la bitácora."}), 400

    try:
        role.permissions = permisos
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error al gestionar permisos del rol {role_id}: {e}", exc_info=True)
        return jsonify({'error': 'No se pudieron actualizar los permisos.'}), 500

    log_activity(action="Gestión de Permisos", category="Role-permisos", resource_id=role.id,
                 details=f"Se actualizaron los permisos para el rol '{role.name}'")
    return jsonify({'id': role.id, 'name': role.name, 'permisos': sorted(p.endpoint for p in role.permissions)})


# --- Rutas de Administración de Usuarios ---

@admin_users_bp.route('', methods=['GET'])
@admin_required
def list_users():
    query = User.query
    if request.args.get('rol'):
        query = query.filter(User.roles.any(Role.name == request.args['rol']))
    activo = request.args.get('activo')
    if activo in ('1', 'true'):
        query = query.filter_by(activo=True)
    elif activo in ('0', 'false'):
        query = query.filter_by(activo=False)
    users = query.order_by(User.email).all()
    return jsonify({'usuarios': [u.to_dict() for u in users]})


@admin_users_bp.route('/<int:user_id>', methods=['GET'])
@admin_required
def get_user(user_id):
    user = db.session.get(User, user_id)
    if user is None:
        return jsonify({'error': 'Usuario no encontrado.'}), 404
    return jsonify(user.to_dict())


@admin_users_bp.route('', methods=['POST'])
@admin_required
def create_user():
    form = UserForm()
    if not form.validate():
        return jsonify({'error': 'Datos inválidos.', 'errores': form.errors}), 400
    if not form.password.data:
        return jsonify({'error': 'Datos inválidos.', 'errores': {'password': ['La contraseña es requerida.']}}), 400

    roles, desconocidos = _roles_por_nombre(_nombres_solicitados('roles') or [])
    if desconocidos:
        return jsonify({'error': f"Roles desconocidos: {', '.join(desconocidos)}"}), 400

    user = User(
        email=form.email.data.lower(),
        nombre=form.nombre.data,
        apellido=form.apellido.data or None,
        telefono=form.telefono.data or None,
        activo=form.activo.data if form.activo.raw_data else True
    )
    user.set_password(form.password.data)
    user.roles = roles
    try:
        db.session.add(user)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return jsonify({'error': f"Ya existe un usuario con el email {form.email.data.lower()}."}), 409
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error al crear usuario: {e}", exc_info=True)
        return jsonify({'error': 'No se pudo crear el usuario.'}), 500

    log_activity(action="Creación de Usuario", category="Usuarios", resource_id=user.id,
                 details=f"Se creó el usuario: {user.email} ({', '.join(r.name for r in roles) or 'sin roles'})")
    return jsonify(user.to_dict()), 201


@admin_users_bp.route('/<int:user_id>', methods=['PUT'])
@admin_required
def edit_user(user_id):
    user = db.session.get(User, user_id)
    if user is None:
        return jsonify({'error': 'Usuario no encontrado.'}), 404

    form = UserForm()
    if not form.validate():
        return jsonify({'error': 'Datos inválidos.', 'errores': form.errors}), 400

    nombres_roles = _nombres_solicitados('roles')
    roles = None
    if nombres_roles is not None:
        roles, desconocidos = _roles_por_nombre(nombres_roles)
        if desconocidos:
            return jsonify({'error': f"Roles desconocidos: {', '.join(desconocidos)}"}), 400

    if user.id == current_user.id:
        if form.activo.raw_data and not form.activo.data:
            return jsonify({'error': 'No puedes desactivar tu propia cuenta.'}), 400
        if roles is not None and 'admin' not in {r.name for r in roles}:
            return jsonify({'error': 'No puedes quitarte el rol de administrador.'}), 400

    try:
        user.email = form.email.data.lower()
        user.nombre = form.nombre.data
        user.apellido = form.apellido.data or None
        user.telefono = form.telefono.data or None
        if form.activo.raw_data:
            user.activo = form.activo.data
        if form.password.data:
            user.set_password(form.password.data)
        if roles is not None:
            user.roles = roles
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return jsonify({'error': f"Ya existe un usuario con el email {form.email.data.lower()}."}), 409
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error al editar el usuario {user_id}: {e}", exc_info=True)
        return jsonify({'error': 'No se pudo actualizar el usuario.'}), 500

    log_activity(action="Edición de Usuario", category="Usuarios", resource_id=user.id,
                 details=f"Se editó el usuario: {user.email}")
    return jsonify(user.to_dict())


@admin_users_bp.route('/<int:user_id>', methods=['DELETE'])
@admin_required
def delete_user(user_id):
    if user_id == current_user.id:
        return jsonify({'error': 'No puedes eliminar tu propia cuenta.'}), 400

    user = db.session.get(User, user_id)
    if user is None:
        return jsonify({'error': 'Usuario no encontrado'}), 404

    email_deleted = user.email
    try:
        # Las denuncias asignadas quedan sin supervisor
        Denuncia.query.filter_by(id_supervisor=user.id).update({'id_supervisor': None})
        db.session.delete(user)
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error al eliminar el usuario {user_id}: {e}", exc_info=True)
        return jsonify({'error': 'No se pudo eliminar el usuario.'}), 500

    log_activity(action="Eliminación de Usuario", category="Usuarios", resource_id=user_id,
                 details=f"Se eliminó el usuario: {email_deleted}")
    return jsonify({'mensaje': 'Usuario eliminado exitosamente.'})


@admin_users_bp.route('/<int:user_id>/reset-password-request', methods=['POST'])
@admin_required
def reset_password_request(user_id):
    """Genera un token y un enlace para que el usuario restablezca su contraseña."""
    user = db.session.get(User, user_id)
    if user is None:
        return jsonify({'error': 'Usuario no encontrado.'}), 404

    try:
        # Token único, válido por 24 horas
        user.reset_token = uuid.uuid4().hex
        user.reset_token_expiration = datetime.utcnow() + timedelta(hours=24)
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error al generar el enlace de reseteo: {e}", exc_info=True)
        return jsonify({'error': 'No se pudo generar el enlace de reseteo.'}), 500

    reset_link = url_for('admin_users.reset_password', token=user.reset_token, _external=True)
    log_activity(action="Solicitud de reseteo de contraseña", category="Usuarios", resource_id=user_id)
    return jsonify({
        'mensaje': 'Copia y envía este enlace al usuario. El enlace expirará en 24 horas.',
        'reset_link': reset_link,
        'expira': user.reset_token_expiration.isoformat(),
    })


@admin_users_bp.route('/reset-password/<token>', methods=['POST'])
def reset_password(token):
    """El usuario final establece su nueva contraseña con el token recibido."""
    user = User.query.filter_by(reset_token=token).first()
    if user is None or not user.reset_token_expiration or user.reset_token_expiration < datetime.utcnow():
        return jsonify({'error': 'El enlace de reseteo es inválido o ha expirado.'}), 400

    form = ResetPasswordForm()
    if not form.validate():
        return jsonify({'error': 'Datos inválidos.', 'errores': form.errors}), 400

    try:
        user.set_password(form.password.data)
        user.reset_token = None
        user.reset_token_expiration = None
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error al restablecer la contraseña: {e}", exc_info=True)
        return jsonify({'error': 'No se pudo restablecer la contraseña.'}), 500

    log_activity(action="Contraseña restablecida", category="Usuarios", resource_id=user.id, user_id=user.id)
    return jsonify({'mensaje': 'Tu contraseña ha sido actualizada. Ya puedes iniciar sesión.'})
