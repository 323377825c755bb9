# helpers.py
import os
import secrets
import uuid
from datetime import datetime

from flask import current_app
from werkzeug.security import generate_password_hash, check_password_hash
from werkzeug.utils import secure_filename

from extensions import db
from models import Denuncia, Adjunto

# Sin caracteres ambiguos (0/O, 1/I/L) para que la clave se pueda dictar
ALFABETO_CLAVE = 'ABCDEFGHJKMNPQRSTUVWXYZ23456789'

# Hash de relleno para que una búsqueda con número inexistente tarde lo mismo
_HASH_FICTICIO = generate_password_hash(secrets.token_hex(16))


# --- Número y clave de acceso ---

def generar_numero(anio=None):
    """Genera un número de denuncia único con formato AAAA-NNNNNNN."""
    anio = anio or datetime.utcnow().year
    while True:
        numero = f"{anio}-{secrets.randbelow(10 ** 7):07d}"
        if not db.session.query(Denuncia.id).filter_by(numero=numero).first():
            return numero


def generar_clave(longitud=None):
    longitud = longitud or current_app.config.get('CLAVE_LONGITUD', 12)
    return ''.join(secrets.choice(ALFABETO_CLAVE) for _ in range(longitud))


def hash_clave(clave):
    return generate_password_hash(normalizar_clave(clave))


def verificar_clave(clave_hash, clave):
    if not clave_hash or not clave:
        return False
    return check_password_hash(clave_hash, normalizar_clave(clave))


def normalizar_numero(numero):
    return (numero or '').strip().upper()


def normalizar_clave(clave):
    return (clave or '').strip().upper()


def buscar_por_clave(numero, clave):
    """
    Busca una denuncia por número y verifica la clave de acceso.
    Devuelve None tanto si el número no existe como si la clave no coincide.
    """
    numero = normalizar_numero(numero)
    if not numero or not clave:
        return None

    denuncia = Denuncia.query.filter_by(numero=numero).first()
    if denuncia is None:
        check_password_hash(_HASH_FICTICIO, normalizar_clave(clave))
        return None

    if not verificar_clave(denuncia.clave_hash, clave):
        return None
    return denuncia


# --- Archivos ---

def allowed_file(filename):
    """Verifica si la extensión del archivo es permitida."""
    allowed = current_app.config.get('ALLOWED_EXTENSIONS', set())
    return '.' in filename and \
           filename.rsplit('.', 1)[1].lower() in allowed


def tamano_archivo(file_storage):
    stream = file_storage.stream
    posicion = stream.tell()
    stream.seek(0, os.SEEK_END)
    tamano = stream.tell()
    stream.seek(posicion)
    return tamano


def validar_archivos(archivos):
    """
    Devuelve un mensaje de error si la lista de archivos no cumple las reglas
    (cantidad, extensión, tamaño) o None si todo está correcto.
    """
    archivos = [f for f in archivos if f and f.filename]
    max_archivos = current_app.config.get('MAX_ARCHIVOS_POR_ENVIO', 10)
    max_bytes = current_app.config.get('MAX_ARCHIVO_BYTES', 20 * 1024 * 1024)

    if len(archivos) > max_archivos:
        return f"Se permiten como máximo {max_archivos} archivos."
    for file in archivos:
        if not allowed_file(file.filename):
            return f"Archivo no permitido: '{file.filename}'"
        if tamano_archivo(file) > max_bytes:
            return f"El archivo '{file.filename}' supera el tamaño máximo permitido."
    return None


def guardar_adjuntos(denuncia, archivos, origen='denunciante', id_usuario=None):
    """
    Guarda los archivos en UPLOAD_FOLDER/denuncias/<numero>/ y agrega los
    registros Adjunto a la sesión (sin commit). Si la transacción falla
    después, quien llama debe borrar los archivos con descartar_archivos().
    """
    archivos = [f for f in archivos if f and f.filename]
    if not archivos:
        return []

    base_upload_folder = current_app.config['UPLOAD_FOLDER']
    carpeta_relativa = os.path.join('denuncias', denuncia.numero)
    carpeta = os.path.join(base_upload_folder, carpeta_relativa)
    os.makedirs(carpeta, exist_ok=True)

    adjuntos = []
    try:
        for file in archivos:
            filename = secure_filename(file.filename) or 'archivo'
            unique_filename = f"{uuid.uuid4().hex}-{filename}"
            adjunto = Adjunto(
                denuncia=denuncia,
                nombre_archivo=filename,
                ruta_archivo=os.path.join(carpeta_relativa, unique_filename),
                tipo_mime=file.mimetype,
                origen=origen,
                id_usuario=id_usuario
            )
            adjuntos.append(adjunto)
            file.save(os.path.join(carpeta, unique_filename))
            adjunto.tamano = os.path.getsize(os.path.join(carpeta, unique_filename))
            db.session.add(adjunto)
    except Exception:
        descartar_archivos(adjuntos)
        raise
    return adjuntos


def descartar_archivos(adjuntos):
    """Borra del disco los archivos de adjuntos que no llegaron a la base."""
    base_upload_folder = current_app.config['UPLOAD_FOLDER']
    for adjunto in adjuntos:
        ruta = os.path.join(base_upload_folder, adjunto.ruta_archivo)
        try:
            if os.path.exists(ruta):
                os.remove(ruta)
        except OSError as e:
            current_app.logger.error(f"No se pudo borrar el archivo huérfano {ruta}: {e}")


# --- Paginación ---

def leer_paginacion(args):
    try:
        page = max(int(args.get('page', 1)), 1)
    except (TypeError, ValueError):
        page = 1
    try:
        limit = int(args.get('limit', current_app.config['POR_PAGINA']))
    except (TypeError, ValueError):
        limit = current_app.config['POR_PAGINA']
    limit = min(max(limit, 1), current_app.config['POR_PAGINA_MAX'])
    return page, limit


def metadata_paginacion(pagination, ordenado_por='fecha_creacion', orden='desc'):
    return {
        'pagina_actual': pagination.page,
        'total_paginas': pagination.pages,
        'registros_por_pagina': pagination.per_page,
        'total_registros': pagination.total,
        'ordenado_por': ordenado_por,
        'orden': orden,
    }
