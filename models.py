from extensions import db
from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash
from datetime import datetime
from sqlalchemy import Enum

from config import PRIORIDADES
from routes.workflows import NOMBRES_ESTADOS, ESTADO_INICIAL, es_final


# --- TABLAS DE UNIÓN (Many-to-Many Relationships) ---
user_roles = db.Table('user_roles',
    db.Column('user_id', db.Integer, db.ForeignKey('user.id', ondelete='CASCADE'), primary_key=True),
    db.Column('role_id', db.Integer, db.ForeignKey('role.id', ondelete='CASCADE'), primary_key=True)
)

role_permissions = db.Table('role_permissions',
    db.Column('role_id', db.Integer, db.ForeignKey('role.id', ondelete='CASCADE'), primary_key=True),
    db.Column('permission_id', db.Integer, db.ForeignKey('permission.id', ondelete='CASCADE'), primary_key=True)
)


# --- USUARIOS Y PERMISOS ---

class User(UserMixin, db.Model):
    __tablename__ = 'user'
    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(120), unique=True, nullable=False)
    nombre = db.Column(db.String(100), nullable=False)
    apellido = db.Column(db.String(100))
    telefono = db.Column(db.String(30))
    password_hash = db.Column(db.String(255), nullable=False)
    activo = db.Column(db.Boolean, default=True, nullable=False)
    fecha_creacion = db.Column(db.DateTime, default=datetime.utcnow)
    ultimo_acceso = db.Column(db.DateTime, nullable=True)

    roles = db.relationship('Role', secondary=user_roles, backref='users')
    activity_logs = db.relationship('ActivityLog', back_populates='user', lazy=True)

    reset_token = db.Column(db.String(255), unique=True, nullable=True)
    reset_token_expiration = db.Column(db.DateTime, nullable=True)

    @property
    def is_active(self):
        # Flask-Login rechaza el inicio de sesión de usuarios desactivados
        return bool(self.activo)

    @property
    def nombre_completo(self):
        return f"{self.nombre} {self.apellido or ''}".strip()

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        return check_password_hash(self.password_hash, password)

    def has_role(self, *names):
        return any(role.name in names for role in self.roles)

    def is_admin(self):
        return self.has_role('admin')

    def permission_codes(self):
        return {permission.endpoint for role in self.roles for permission in role.permissions}

    def to_dict(self):
        return {
            'id': self.id,
            'email': self.email,
            'nombre': self.nombre,
            'apellido': self.apellido,
            'nombre_completo': self.nombre_completo,
            'telefono': self.telefono,
            'activo': self.activo,
            'roles': sorted(role.name for role in self.roles),
            'fecha_creacion': _iso(self.fecha_creacion),
            'ultimo_acceso': _iso(self.ultimo_acceso),
        }


class Role(db.Model):
    __tablename__ = 'role'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(80), unique=True, nullable=False)
    description = db.Column(db.String(255))

    permissions = db.relationship('Permission', secondary=role_permissions, backref='roles')


class Permission(db.Model):
    __tablename__ = 'permission'
    id = db.Column(db.Integer, primary_key=True)
    endpoint = db.Column(db.String(255), unique=True, nullable=False)
    description = db.Column(db.String(255))


# --- CATÁLOGOS ---

class Empresa(db.Model):
    __tablename__ = 'empresas'
    id = db.Column(db.Integer, primary_key=True)
    nombre = db.Column(db.String(255), nullable=False)
    rut = db.Column(db.String(20), unique=True, nullable=False)
    direccion = db.Column(db.String(255))
    telefono = db.Column(db.String(30))
    email = db.Column(db.String(120))
    activo = db.Column(db.Boolean, default=True, nullable=False)
    fecha_creacion = db.Column(db.DateTime, default=datetime.utcnow)
    fecha_actualizacion = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    denuncias = db.relationship('Denuncia', back_populates='empresa', lazy=True)

    def to_dict(self):
        return {
            'id': self.id,
            'nombre': self.nombre,
            'rut': self.rut,
            'direccion': self.direccion,
            'telefono': self.telefono,
            'email': self.email,
            'activo': self.activo,
            'fecha_creacion': _iso(self.fecha_creacion),
            'fecha_actualizacion': _iso(self.fecha_actualizacion),
        }


class TipoDenuncia(db.Model):
    __tablename__ = 'tipos_denuncia'
    id = db.Column(db.Integer, primary_key=True)
    codigo = db.Column(db.String(20), unique=True, nullable=False)
    nombre = db.Column(db.String(100), nullable=False)
    descripcion = db.Column(db.Text)
    activo = db.Column(db.Boolean, default=True, nullable=False)

    denuncias = db.relationship('Denuncia', back_populates='tipo', lazy=True)

    def to_dict(self):
        return {
            'id': self.id,
            'codigo': self.codigo,
            'nombre': self.nombre,
            'descripcion': self.descripcion,
            'activo': self.activo,
        }


# --- DENUNCIAS ---

class Denuncia(db.Model):
    """
    Registro principal de una denuncia. La clave de acceso del denunciante
    nunca se guarda en texto plano, solo su hash con sal.
    """
    __tablename__ = 'denuncias'

    id = db.Column(db.Integer, primary_key=True)
    numero = db.Column(db.String(20), unique=True, nullable=False, index=True)
    clave_hash = db.Column(db.String(255), nullable=False)

    id_empresa = db.Column(db.Integer, db.ForeignKey('empresas.id', ondelete='RESTRICT'), nullable=False)
    id_tipo = db.Column(db.Integer, db.ForeignKey('tipos_denuncia.id', ondelete='RESTRICT'), nullable=False)

    estado = db.Column(Enum(*NOMBRES_ESTADOS, name='estado_denuncia_enum'), nullable=False, default=ESTADO_INICIAL, index=True)
    prioridad = db.Column(Enum(*PRIORIDADES, name='prioridad_denuncia_enum'), nullable=False, default='media')

    asunto = db.Column(db.String(255))
    descripcion = db.Column(db.Text, nullable=False)
    canal_origen = db.Column(db.String(50), nullable=False, default='web')
    pais = db.Column(db.String(100))
    ciudad = db.Column(db.String(100))
    relacion = db.Column(db.String(100), comment="Relación del denunciante con la empresa.")
    periodo = db.Column(db.String(100), comment="Cuándo ocurrieron los hechos.")
    involucrados = db.Column(db.JSON)

    # --- Identidad del denunciante (vacía si es anónima) ---
    anonimo = db.Column(db.Boolean, nullable=False, default=True)
    nombre_denunciante = db.Column(db.String(255))
    rut_denunciante = db.Column(db.String(20))
    email_denunciante = db.Column(db.String(120))
    telefono_denunciante = db.Column(db.String(30))

    id_supervisor = db.Column(db.Integer, db.ForeignKey('user.id', ondelete='SET NULL'), nullable=True)

    fecha_creacion = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    fecha_actualizacion = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    nota_satisfaccion = db.Column(db.Integer, nullable=True)
    comentario_satisfaccion = db.Column(db.Text, nullable=True)

    # --- Relaciones ---
    empresa = db.relationship('Empresa', back_populates='denuncias')
    tipo = db.relationship('TipoDenuncia', back_populates='denuncias')
    supervisor = db.relationship('User')
    comentarios = db.relationship('Comentario', back_populates='denuncia', cascade="all, delete-orphan",
                                  order_by='Comentario.fecha_creacion')
    adjuntos = db.relationship('Adjunto', back_populates='denuncia', cascade="all, delete-orphan",
                               order_by='Adjunto.fecha_subida')
    historial = db.relationship('HistorialEstado', back_populates='denuncia', cascade="all, delete-orphan",
                                order_by='HistorialEstado.id')
    resolucion = db.relationship('Resolucion', back_populates='denuncia', uselist=False, cascade="all, delete-orphan")
    reasignaciones = db.relationship('Reasignacion', back_populates='denuncia', cascade="all, delete-orphan",
                                    order_by='Reasignacion.id')
    revelaciones = db.relationship('RevelacionIdentidad', back_populates='denuncia', cascade="all, delete-orphan",
                                   order_by='RevelacionIdentidad.id')

    @property
    def dias_abierta(self):
        fin = datetime.utcnow()
        if self.resolucion:
            fin = self.resolucion.fecha_resolucion
        elif es_final(self.estado) and self.fecha_actualizacion:
            fin = self.fecha_actualizacion
        return max((fin - self.fecha_creacion).days, 0)


class Comentario(db.Model):
    __tablename__ = 'comentarios'
    id = db.Column(db.Integer, primary_key=True)
    id_denuncia = db.Column(db.Integer, db.ForeignKey('denuncias.id', ondelete='CASCADE'), nullable=False)
    # NULL cuando el comentario lo escribe el denunciante desde el portal
    id_usuario = db.Column(db.Integer, db.ForeignKey('user.id', ondelete='SET NULL'), nullable=True)
    origen = db.Column(Enum('denunciante', 'gestion', name='origen_comentario_enum'), nullable=False, default='gestion')
    contenido = db.Column(db.Text, nullable=False)
    es_interno = db.Column(db.Boolean, nullable=False, default=False)
    fecha_creacion = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    denuncia = db.relationship('Denuncia', back_populates='comentarios')
    usuario = db.relationship('User')


class Adjunto(db.Model):
    __tablename__ = 'adjuntos'
    id = db.Column(db.Integer, primary_key=True)
    id_denuncia = db.Column(db.Integer, db.ForeignKey('denuncias.id', ondelete='CASCADE'), nullable=False)
    nombre_archivo = db.Column(db.String(255), nullable=False)
    ruta_archivo = db.Column(db.String(512), nullable=False)
    tipo_mime = db.Column(db.String(100))
    tamano = db.Column(db.Integer, nullable=False, default=0)
    origen = db.Column(Enum('denunciante', 'gestion', name='origen_adjunto_enum'), nullable=False, default='denunciante')
    id_usuario = db.Column(db.Integer, db.ForeignKey('user.id', ondelete='SET NULL'), nullable=True)
    fecha_subida = db.Column(db.DateTime, default=datetime.utcnow)

    denuncia = db.relationship('Denuncia', back_populates='adjuntos')
    usuario = db.relationship('User')


class HistorialEstado(db.Model):
    __tablename__ = 'historial_estados'
    id = db.Column(db.Integer, primary_key=True)
    id_denuncia = db.Column(db.Integer, db.ForeignKey('denuncias.id', ondelete='CASCADE'), nullable=False)
    estado_anterior = db.Column(db.String(50), nullable=True)
    estado_nuevo = db.Column(db.String(50), nullable=False)
    motivo = db.Column(db.Text)
    id_usuario = db.Column(db.Integer, db.ForeignKey('user.id', ondelete='SET NULL'), nullable=True)
    fecha_cambio = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    denuncia = db.relationship('Denuncia', back_populates='historial')
    usuario = db.relationship('User')


class Resolucion(db.Model):
    __tablename__ = 'resoluciones'
    id = db.Column(db.Integer, primary_key=True)
    id_denuncia = db.Column(db.Integer, db.ForeignKey('denuncias.id', ondelete='CASCADE'), nullable=False, unique=True)
    contenido = db.Column(db.Text, nullable=False)
    id_usuario = db.Column(db.Integer, db.ForeignKey('user.id', ondelete='SET NULL'), nullable=True)
    fecha_resolucion = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    denuncia = db.relationship('Denuncia', back_populates='resolucion')
    usuario = db.relationship('User')


class Reasignacion(db.Model):
    """Historial de asignaciones de supervisor de una denuncia."""
    __tablename__ = 'reasignaciones'
    id = db.Column(db.Integer, primary_key=True)
    id_denuncia = db.Column(db.Integer, db.ForeignKey('denuncias.id', ondelete='CASCADE'), nullable=False, index=True)
    # NULL en la primera asignación
    id_usuario_anterior = db.Column(db.Integer, db.ForeignKey('user.id', ondelete='SET NULL'), nullable=True)
    id_usuario_nuevo = db.Column(db.Integer, db.ForeignKey('user.id', ondelete='SET NULL'), nullable=True)
    id_reasignado_por = db.Column(db.Integer, db.ForeignKey('user.id', ondelete='SET NULL'), nullable=True)
    fecha = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    denuncia = db.relationship('Denuncia', back_populates='reasignaciones')
    usuario_anterior = db.relationship('User', foreign_keys=[id_usuario_anterior])
    usuario_nuevo = db.relationship('User', foreign_keys=[id_usuario_nuevo])
    reasignado_por = db.relationship('User', foreign_keys=[id_reasignado_por])


class RevelacionIdentidad(db.Model):
    """
    Cada vez que alguien del equipo obtiene el correo de un denunciante
    queda un registro de quién lo pidió y por qué vía.
    """
    __tablename__ = 'revelaciones_identidad'
    id = db.Column(db.Integer, primary_key=True)
    id_denuncia = db.Column(db.Integer, db.ForeignKey('denuncias.id', ondelete='CASCADE'), nullable=False, index=True)
    id_usuario = db.Column(db.Integer, db.ForeignKey('user.id', ondelete='SET NULL'), nullable=True)
    metodo = db.Column(Enum('clave_denunciante', 'forzado', name='metodo_revelacion_enum'), nullable=False)
    motivo = db.Column(db.Text)
    ip_origen = db.Column(db.String(45))
    fecha = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    denuncia = db.relationship('Denuncia', back_populates='revelaciones')
    usuario = db.relationship('User')

    def to_dict(self):
        return {
            'id': self.id,
            'numero': self.denuncia.numero if self.denuncia else None,
            'usuario_nombre': self.usuario.nombre_completo if self.usuario else None,
            'metodo': self.metodo,
            'motivo': self.motivo,
            'ip_origen': self.ip_origen,
            'fecha': _iso(self.fecha),
        }


# --- AUDITORÍA ---

class ActivityLog(db.Model):
    __tablename__ = 'activity_log'
    id = db.Column(db.Integer, primary_key=True)
    timestamp = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id', ondelete='SET NULL'), nullable=True)
    action = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(100))
    details = db.Column(db.Text)
    resource_id = db.Column(db.String(50))
    resultado = db.Column(Enum('SUCCESS', 'FAILED', 'INFO', name='resultado_log_enum'), nullable=False, default='SUCCESS')
    ip_origen = db.Column(db.String(45))
    user_agent = db.Column(db.String(255))
    user = db.relationship('User', back_populates='activity_logs')

    def to_dict(self):
        return {
            'id': self.id,
            'fecha_creacion': _iso(self.timestamp),
            'usuario_id': self.user_id,
            'usuario_nombre': self.user.nombre_completo if self.user else 'Sistema',
            'accion': self.action,
            'modulo': self.category,
            'descripcion': self.details,
            'resource_id': self.resource_id,
            'resultado': self.resultado,
            'ip_origen': self.ip_origen,
            'user_agent': self.user_agent,
        }


class RateLimit(db.Model):
    """Contador por ventana de tiempo e IP para limitar el portal público."""
    __tablename__ = 'rate_limits'
    key = db.Column(db.String(120), primary_key=True)
    count = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)


def _iso(value):
    return value.isoformat() if value else None
