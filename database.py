# database.py
from flask import current_app
from sqlalchemy import inspect
from sqlalchemy.exc import OperationalError, ProgrammingError

from config import DB_CONFIG, ROLES, PERMISOS, ROLE_PERMISSIONS, TIPOS_DENUNCIA
from extensions import db
from models import Role, Permission, TipoDenuncia


def init_tables():
    """
    Verifica si las tablas existen y las crea si es necesario.
    Asume que la base de datos ya ha sido creada manualmente.
    Debe llamarse dentro de un app_context.
    """
    try:
        inspector = inspect(db.engine)
        if not inspector.get_table_names():
            current_app.logger.info("No se encontraron tablas, creando esquema completo...")
            db.create_all()
            current_app.logger.info("Tablas creadas exitosamente.")
        else:
            current_app.logger.info("Las tablas de la base de datos ya existen.")
        sembrar_datos_base()

    except (OperationalError, ProgrammingError) as e:
        current_app.logger.error(
            f"No se pudo conectar a la base de datos '{DB_CONFIG['database']}'. "
            f"Asegúrate de que exista y que las credenciales sean correctas. Detalle: {e}"
        )
        # Sin base de datos la aplicación no debe iniciar
        raise


def sembrar_datos_base():
    """
    Crea los roles, permisos y tipos de denuncia iniciales que falten.
    Se puede ejecutar varias veces: no duplica ni pisa cambios hechos a mano.
    """
    permisos = {p.endpoint: p for p in Permission.query.all()}
    for codigo, descripcion in PERMISOS.items():
        if codigo not in permisos:
            permisos[codigo] = Permission(endpoint=codigo, description=descripcion)
            db.session.add(permisos[codigo])

    for nombre, descripcion in ROLES.items():
        role = Role.query.filter_by(name=nombre).first()
        if role is None:
            # Solo los roles nuevos reciben los permisos por defecto
            role = Role(name=nombre, description=descripcion)
            role.permissions = [permisos[codigo] for codigo in ROLE_PERMISSIONS.get(nombre, [])]
            db.session.add(role)

    existentes = {codigo for (codigo,) in db.session.query(TipoDenuncia.codigo).all()}
    for codigo, nombre, descripcion in TIPOS_DENUNCIA:
        if codigo not in existentes:
            db.session.add(TipoDenuncia(codigo=codigo, nombre=nombre, descripcion=descripcion, activo=True))

    db.session.commit()
