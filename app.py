from flask import Flask, request, jsonify
from flask_login import login_user, logout_user, login_required, current_user
from werkzeug.exceptions import HTTPException
from datetime import datetime
import os


# --- INICIALIZACIÓN Y CONFIGURACIÓN ---
app = Flask(__name__)
# Importar la configuración de la base de datos y otras configuraciones
import config
from extensions import db, migrate, login_manager
from log_activity import log_activity

# Configuración de la aplicación: todas las constantes en mayúsculas de config.py
app.config.from_object(config)
app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False
# Margen para los campos de texto que acompañan a los archivos
app.config['MAX_CONTENT_LENGTH'] = config.MAX_ARCHIVO_BYTES * config.MAX_ARCHIVOS_POR_ENVIO + 1024 * 1024
app.json.ensure_ascii = False

# Inicializar la base de datos con la app
db.init_app(app)
migrate.init_app(app, db)

# --- IMPORTACIÓN DE MODELOS Y BLUEPRINTS ---
from models import User, Role
from forms import LoginForm, SetupForm
from database import init_tables
from seguridad import LimiteExcedido
from routes.workflows import TransicionInvalida
from routes.publico import publico_bp
from routes.denuncias import denuncias_bp
from routes.empresas import empresas_bp
from routes.catalogos import catalogos_bp
from routes.admin_users import admin_users_bp
from routes.admin import admin_bp
from routes.reportes import reportes_bp

# Ejecutar la inicialización de las tablas
with app.app_context():
    init_tables()

# --- CONFIGURACIÓN DE FLASK-LOGIN ---
login_manager.init_app(app)


@login_manager.user_loader
def load_user(user_id):
    return db.session.get(User, int(user_id))


@login_manager.unauthorized_handler
def unauthorized():
    return jsonify({'error': 'Autenticación requerida.'}), 401


# --- REGISTRO DE BLUEPRINTS ---
app.register_blueprint(publico_bp)
app.register_blueprint(denuncias_bp)
app.register_blueprint(empresas_bp)
app.register_blueprint(catalogos_bp)
app.register_blueprint(admin_users_bp)
app.register_blueprint(admin_bp)
app.register_blueprint(reportes_bp)


# --- MANEJO DE ERRORES ---

@app.errorhandler(TransicionInvalida)
def handle_transicion_invalida(e):
    return jsonify({'error': str(e)}), 400


@app.errorhandler(LimiteExcedido)
def handle_limite_excedido(e):
    return jsonify({'error': 'rate_limited', 'mensaje': 'Demasiadas solicitudes, intente nuevamente en un momento.'}), 429


@app.errorhandler(HTTPException)
def handle_http_exception(e):
    # La API responde siempre JSON, también en 404/405/413
    return jsonify({'error': e.name, 'mensaje': e.description}), e.code


# --- RUTAS DE AUTENTICACIÓN Y CONFIGURACIÓN INICIAL ---

@app.route('/setup', methods=['GET', 'POST'])
def setup():
    if request.method == 'GET':
        return jsonify({'configurado': User.query.count() > 0})

    if User.query.count() > 0:
        return jsonify({'error': 'El sistema ya ha sido configurado. Por favor, inicie sesión.'}), 409

    form = SetupForm()
    if not form.validate():
        return jsonify({'error': 'Datos inválidos.', 'errores': form.errors}), 400

    try:
        admin_role = Role.query.filter_by(name='admin').first()
        if not admin_role:
            admin_role = Role(name='admin', description='Administrador del sistema')
            db.session.add(admin_role)

        admin_user = User(email=form.email.data.lower(), nombre=form.nombre.data, apellido=form.apellido.data)
        admin_user.set_password(form.password.data)
        admin_user.roles.append(admin_role)

        db.session.add(admin_user)
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        app.logger.error(f"Error en la configuración inicial: {e}", exc_info=True)
        return jsonify({'error': 'No se pudo completar la configuración inicial.'}), 500

    login_user(admin_user)
    log_activity(action="Configuración inicial del sistema", category="Usuarios", resource_id=admin_user.id,
                 details=f"Se creó el administrador: {admin_user.email}")
    return jsonify({'mensaje': '¡Configuración completada!', 'usuario': admin_user.to_dict()}), 201


@app.route('/login', methods=['POST'])
def login():
    if User.query.count() == 0:
        return jsonify({'error': 'Debe crear la primera cuenta de administrador.', 'setup': True}), 409

    form = LoginForm()
    if not form.validate():
        return jsonify({'error': 'Datos inválidos.', 'errores': form.errors}), 400

    email = form.email.data.lower()
    user = User.query.filter_by(email=email).first()

    if not user or not user.check_password(form.password.data):
        log_activity(action=f"Inicio de sesión fallido: {email}", category="Login", resultado='FAILED')
        return jsonify({'error': 'Email o contraseña incorrectos.'}), 401

    if not login_user(user):
        log_activity(action=f"Inicio de sesión de usuario inactivo: {email}", category="Login",
                     resultado='FAILED', user_id=user.id)
        return jsonify({'error': 'La cuenta está desactivada.'}), 403

    user.ultimo_acceso = datetime.utcnow()
    db.session.commit()
    log_activity(action=f"Inicio de sesión del usuario: {email}", category="Login")
    return jsonify({'mensaje': '¡Inicio de sesión exitoso!', 'usuario': user.to_dict()})


@app.route('/logout', methods=['POST'])
@login_required
def logout():
    log_activity(action=f"Cierre de sesión del usuario: {current_user.email}", category="Logout")
    logout_user()
    return jsonify({'mensaje': 'Sesión cerrada.'})


@app.route('/me')
@login_required
def me():
    data = current_user.to_dict()
    data['permisos'] = sorted(current_user.permission_codes())
    return jsonify(data)


# --- Bloque para ejecutar la aplicación en modo de desarrollo ---
if __name__ == '__main__':
    os.makedirs(app.config['UPLOAD_FOLDER'], exist_ok=True)
    app.run(debug=True)
