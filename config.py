# config.py
import os

# --- Configuración de la Base de Datos ---
DB_CONFIG = {
    'host': os.environ.get('DENUNCIAS_DB_HOST', 'localhost'),
    'user': os.environ.get('DENUNCIAS_DB_USER', 'root'),
    'password': os.environ.get('DENUNCIAS_DB_PASSWORD', ''),
    'database': os.environ.get('DENUNCIAS_DB_NAME', 'denuncias')
}

# Si se define DENUNCIAS_DATABASE_URI tiene prioridad sobre DB_CONFIG (ej. sqlite para pruebas)
SQLALCHEMY_DATABASE_URI = os.environ.get('DENUNCIAS_DATABASE_URI') or (
    f"mysql+mysqlconnector://{DB_CONFIG['user']}:{DB_CONFIG['password']}@{DB_CONFIG['host']}/{DB_CONFIG['database']}"
)

SECRET_KEY = os.environ.get('DENUNCIAS_SECRET_KEY', 'cambiar_esta_clave_en_produccion')


def _env_int(nombre, defecto):
    valor = os.environ.get(nombre)
    try:
        return int(valor) if valor not in (None, '') else defecto
    except ValueError:
        return defecto


def _env_bool(nombre, defecto=False):
    valor = os.environ.get(nombre)
    if valor is None:
        return defecto
    return valor.strip().lower() in ('1', 'true', 'si', 'yes', 'on')


# --- Rutas de Archivos ---
project_dir = os.path.dirname(os.path.abspath(__file__))
UPLOAD_FOLDER = os.environ.get('DENUNCIAS_UPLOAD_FOLDER') or os.path.join(project_dir, 'uploads')

# --- Extensiones Permitidas para Evidencias ---
ALLOWED_EXTENSIONS = {'png', 'jpg', 'jpeg', 'gif', 'pdf', 'doc', 'docx', 'xls', 'xlsx', 'txt', 'mp3', 'mp4'}
MAX_ARCHIVO_BYTES = _env_int('DENUNCIAS_MAX_ARCHIVO_BYTES', 20 * 1024 * 1024)
MAX_ARCHIVOS_POR_ENVIO = _env_int('DENUNCIAS_MAX_ARCHIVOS', 10)

# --- Seguridad del portal público ---
CLAVE_LONGITUD = _env_int('DENUNCIAS_CLAVE_LONGITUD', 12)
RATELIMIT_WINDOW_SEC = _env_int('DENUNCIAS_RATELIMIT_WINDOW_SEC', 60)
RATELIMIT_MAX = _env_int('DENUNCIAS_RATELIMIT_MAX', 10)
RECAPTCHA_SECRET = os.environ.get('DENUNCIAS_RECAPTCHA_SECRET', '')
RECAPTCHA_SCORE_MINIMO = 0.3
RECAPTCHA_URL = 'https://www.google.com/recaptcha/api/siteverify'

# --- Notificaciones por correo (SendGrid) ---
NOTIFY_ENABLED = _env_bool('DENUNCIAS_NOTIFY_ENABLED')
SENDGRID_KEY = os.environ.get('DENUNCIAS_SENDGRID_KEY', '')
SENDGRID_URL = 'https://api.sendgrid.com/v3/mail/send'
NOTIFY_TO = os.environ.get('DENUNCIAS_NOTIFY_TO', '')
NOTIFY_FROM = os.environ.get('DENUNCIAS_NOTIFY_FROM', 'noreply@example.com')
NOTIFY_SUBJECT_PREFIX = os.environ.get('DENUNCIAS_NOTIFY_SUBJECT_PREFIX', '[Nueva Denuncia]')
NOTIFY_TIMEOUT = 10

# --- Paginación ---
POR_PAGINA = 20
POR_PAGINA_MAX = 200

# --- Roles y permisos iniciales ---
ROLES = {
    'admin': 'Administrador del sistema',
    'analista': 'Analista de denuncias',
    'supervisor': 'Supervisor de casos asignados',
    'auditor': 'Auditor (solo lectura)',
}

# Cada permiso corresponde al código usado por @permission_required
PERMISOS = {
    'denuncias.listar': 'Listar denuncias',
    'denuncias.ver': 'Ver el detalle de una denuncia',
    'denuncias.cambiar_estado': 'Cambiar el estado de una denuncia',
    'denuncias.asignar': 'Asignar supervisor a una denuncia',
    'denuncias.prioridad': 'Cambiar la prioridad de una denuncia',
    'denuncias.comentar': 'Agregar comentarios a una denuncia',
    'denuncias.adjuntar': 'Subir adjuntos de gestión',
    'denuncias.descargar_adjunto': 'Descargar adjuntos',
    'empresas.ver': 'Ver empresas',
    'empresas.gestionar': 'Crear, editar y eliminar empresas',
    'catalogos.gestionar': 'Gestionar tipos de denuncia',
    'reportes.ver': 'Ver estadísticas del dashboard',
    'reportes.exportar': 'Exportar denuncias',
    'denuncias.revelar_identidad': 'Revelar el correo del denunciante sin su clave de acceso',
    'admin.view_activity_log': 'Ver la bitácora de auditoría',
}

ROLE_PERMISSIONS = {
    'admin': list(PERMISOS),
    'analista': [
        'denuncias.listar', 'denuncias.ver', 'denuncias.cambiar_estado', 'denuncias.asignar',
        'denuncias.prioridad', 'denuncias.comentar', 'denuncias.adjuntar', 'denuncias.descargar_adjunto',
        'empresas.ver', 'reportes.ver', 'reportes.exportar',
    ],
    'supervisor': [
        'denuncias.listar', 'denuncias.ver', 'denuncias.cambiar_estado', 'denuncias.prioridad',
        'denuncias.comentar', 'denuncias.adjuntar', 'denuncias.descargar_adjunto', 'reportes.ver',
    ],
    'auditor': [
        'denuncias.listar', 'denuncias.ver', 'denuncias.descargar_adjunto', 'empresas.ver',
        'reportes.ver', 'reportes.exportar', 'admin.view_activity_log',
    ],
}

# --- Tipos de denuncia iniciales ---
TIPOS_DENUNCIA = [
    ('ACO-001', 'Acoso Laboral', 'Situaciones de acoso, hostigamiento o maltrato en el ambiente laboral'),
    ('DIS-001', 'Discriminación', 'Actos discriminatorios por género, edad, orientación sexual, religión, etc.'),
    ('FRA-001', 'Fraude', 'Actividades fraudulentas, malversación de fondos o corrupción'),
    ('SEG-001', 'Seguridad Laboral', 'Condiciones inseguras de trabajo o incumplimiento de normas de seguridad'),
    ('CON-001', 'Conflicto de Interés', 'Situaciones donde existe conflicto entre intereses personales y corporativos'),
    ('INC-001', 'Incumplimiento Normativo', 'Violación de políticas internas, leyes o regulaciones'),
    ('AMB-001', 'Medio Ambiente', 'Daños ambientales o incumplimiento de normativas medioambientales'),
    ('OTR-001', 'Otros', 'Otros tipos de reclamos no categorizados'),
]

PRIORIDADES = ['baja', 'media', 'alta', 'critica']
