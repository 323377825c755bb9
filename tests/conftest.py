"""Configuración compartida para las pruebas de la API de denuncias."""

import os
import sys
import tempfile

import pytest

ROOT_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

# La configuración se lee al importar la app: base en memoria y sin servicios externos
os.environ['DENUNCIAS_DATABASE_URI'] = 'sqlite://'
os.environ['DENUNCIAS_UPLOAD_FOLDER'] = tempfile.mkdtemp(prefix='denuncias-pruebas-')
os.environ['DENUNCIAS_RECAPTCHA_SECRET'] = ''
os.environ['DENUNCIAS_NOTIFY_ENABLED'] = '0'

from app import app as flask_app  # noqa: E402
from extensions import db  # noqa: E402
from database import sembrar_datos_base  # noqa: E402
from helpers import generar_numero, generar_clave, hash_clave  # noqa: E402
from models import User, Role, Empresa, TipoDenuncia, Denuncia, HistorialEstado  # noqa: E402

PASSWORD = 'Clave-Segura-2024'


@pytest.fixture
def app(tmp_path):
    """
    App con un esquema limpio y los datos base sembrados en cada prueba.
    No deja un app_context abierto: cada petición del cliente de pruebas
    debe tener su propio contexto (Flask-Login guarda el usuario en `g`).
    """
    flask_app.config.update(
        TESTING=True,
        UPLOAD_FOLDER=str(tmp_path / 'uploads'),
        RATELIMIT_MAX=1000,
        RATELIMIT_WINDOW_SEC=60,
        RECAPTCHA_SECRET='',
        NOTIFY_ENABLED=False,
    )
    with flask_app.app_context():
        db.drop_all()
        db.create_all()
        sembrar_datos_base()
    yield flask_app
    with flask_app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


def _crear_usuario(email, roles, nombre='Usuario', activo=True):
    user = User(email=email, nombre=nombre, apellido='Prueba', activo=activo)
    user.set_password(PASSWORD)
    user.roles = Role.query.filter(Role.name.in_(roles)).all()
    db.session.add(user)
    db.session.commit()
    return user.id


@pytest.fixture
def usuarios(app):
    """Un usuario por rol, más un segundo supervisor y un usuario inactivo. Devuelve {clave: id}."""
    with app.app_context():
        return {
            'admin': _crear_usuario('admin@example.com', ['admin'], nombre='Ada'),
            'analista': _crear_usuario('analista@example.com', ['analista'], nombre='Ana'),
            'supervisor': _crear_usuario('supervisor@example.com', ['supervisor'], nombre='Sergio'),
            'supervisor2': _crear_usuario('supervisor2@example.com', ['supervisor'], nombre='Sofía'),
            'auditor': _crear_usuario('auditor@example.com', ['auditor'], nombre='Aurelio'),
            'inactivo': _crear_usuario('inactivo@example.com', ['analista'], activo=False),
        }


@pytest.fixture
def login(app, usuarios):
    """Devuelve un cliente nuevo con la sesión iniciada para el rol indicado."""
    def _login(rol):
        cliente = app.test_client()
        resp = cliente.post('/login', json={'email': f'{rol}@example.com', 'password': PASSWORD})
        assert resp.status_code == 200, resp.get_json()
        return cliente
    return _login


@pytest.fixture
def empresa(app):
    with app.app_context():
        empresa = Empresa(nombre='Comercial Andes SpA', rut='76.123.456-7', email='contacto@andes.cl')
        db.session.add(empresa)
        db.session.commit()
        return empresa.id


@pytest.fixture
def tipo(app):
    with app.app_context():
        return TipoDenuncia.query.filter_by(codigo='FRA-001').first().id


@pytest.fixture
def nueva_denuncia(app, empresa, tipo):
    """
    Crea una denuncia directamente en la base y devuelve (id, numero, clave).
    Acepta cualquier columna de Denuncia como argumento con nombre.
    """
    def _nueva(**campos):
        with app.app_context():
            clave = generar_clave()
            datos = {
                'id_empresa': empresa,
                'id_tipo': tipo,
                'descripcion': 'Uso indebido de fondos en el área de compras.',
                'asunto': 'Compras irregulares',
                'anonimo': True,
                'estado': 'Nuevo',
            }
            datos.update(campos)
            denuncia = Denuncia(numero=generar_numero(), clave_hash=hash_clave(clave), **datos)
            db.session.add(denuncia)
            db.session.add(HistorialEstado(denuncia=denuncia, estado_anterior=None, estado_nuevo=datos['estado']))
            db.session.commit()
            return denuncia.id, denuncia.numero, clave
    return _nueva
