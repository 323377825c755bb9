# Este módulo centraliza la lógica de negocio del ciclo de vida de una denuncia.
# Define el catálogo de estados y las transiciones permitidas entre ellos,
# con los requisitos (motivo, resolución) de cada transición.

ESTADOS = {
    'Nuevo': {
        'descripcion': 'Denuncia recibida y pendiente de revisión inicial',
        'color': '#3b82f6',
        'orden': 1,
    },
    'En Revisión': {
        'descripcion': 'Denuncia en proceso de análisis y evaluación',
        'color': '#f59e0b',
        'orden': 2,
    },
    'En Investigación': {
        'descripcion': 'Se está llevando a cabo una investigación formal',
        'color': '#8b5cf6',
        'orden': 3,
    },
    'Pendiente de Información': {
        'descripcion': 'Se requiere información adicional del denunciante',
        'color': '#eab308',
        'orden': 4,
    },
    'Resuelto': {
        'descripcion': 'Denuncia resuelta satisfactoriamente',
        'color': '#10b981',
        'orden': 5,
    },
    'Cerrado': {
        'descripcion': 'Denuncia cerrada sin resolución o por falta de evidencia',
        'color': '#6b7280',
        'orden': 6,
    },
    'Rechazado': {
        'descripcion': 'Denuncia rechazada por no cumplir criterios',
        'color': '#ef4444',
        'orden': 7,
    },
}

NOMBRES_ESTADOS = sorted(ESTADOS, key=lambda nombre: ESTADOS[nombre]['orden'])

ESTADO_INICIAL = 'Nuevo'

# Estados desde los que no hay más transiciones
ESTADOS_TERMINALES = {'Cerrado', 'Rechazado'}

# Estados en los que la gestión terminó
ESTADOS_FINALES = {'Resuelto', 'Cerrado', 'Rechazado'}

# El denunciante puede calificar la atención solo en estos estados
ESTADOS_CALIFICABLES = {'Resuelto', 'Cerrado'}

ESTADOS_EN_PROCESO = {'En Revisión', 'En Investigación', 'Pendiente de Información'}

TRANSICIONES = {
    'Nuevo': {
        'En Revisión': {'texto_accion': 'Iniciar Revisión'},
        'Rechazado': {'texto_accion': 'Rechazar Denuncia', 'requiere_motivo': True},
    },
    'En Revisión': {
        'En Investigación': {'texto_accion': 'Abrir Investigación'},
        'Pendiente de Información': {'texto_accion': 'Solicitar Información', 'requiere_motivo': True},
        'Resuelto': {'texto_accion': 'Resolver', 'requiere_resolucion': True},
        'Cerrado': {'texto_accion': 'Cerrar', 'requiere_motivo': True},
        'Rechazado': {'texto_accion': 'Rechazar Denuncia', 'requiere_motivo': True},
    },
    'En Investigación': {
        'Pendiente de Información': {'texto_accion': 'Solicitar Información', 'requiere_motivo': True},
        'Resuelto': {'texto_accion': 'Resolver', 'requiere_resolucion': True},
        'Cerrado': {'texto_accion': 'Cerrar', 'requiere_motivo': True},
    },
    'Pendiente de Información': {
        'En Revisión': {'texto_accion': 'Retomar Revisión'},
        'En Investigación': {'texto_accion': 'Retomar Investigación'},
        'Cerrado': {'texto_accion': 'Cerrar por Falta de Información', 'requiere_motivo': True},
    },
    'Resuelto': {
        'Cerrado': {'texto_accion': 'Cerrar Caso'},
    },
    'Cerrado': {},
    'Rechazado': {},
}

# Transición automática cuando el denunciante responde desde el portal
RESPUESTA_DENUNCIANTE = ('Pendiente de Información', 'En Revisión')


class TransicionInvalida(ValueError):
    """Se intentó un cambio de estado que el flujo no permite."""


def es_terminal(estado):
    return estado in ESTADOS_TERMINALES


def es_final(estado):
    return estado in ESTADOS_FINALES


def es_calificable(estado):
    return estado in ESTADOS_CALIFICABLES


def transiciones_disponibles(estado):
    """
    Devuelve las transiciones que se pueden ejecutar desde `estado`,
    en el orden del catálogo de estados.
    """
    reglas = TRANSICIONES.get(estado, {})
    disponibles = []
    for destino in NOMBRES_ESTADOS:
        regla = reglas.get(destino)
        if regla is None:
            continue
        disponibles.append({
            'estado': destino,
            'texto_accion': regla['texto_accion'],
            'requiere_motivo': regla.get('requiere_motivo', False),
            'requiere_resolucion': regla.get('requiere_resolucion', False),
        })
    return disponibles


def validar_transicion(estado_actual, nuevo_estado, motivo=None, resolucion=None):
    """
    Verifica que el cambio de `estado_actual` a `nuevo_estado` esté permitido
    y que se entreguen los datos que exige la regla. Devuelve la regla.
    """
    if nuevo_estado not in ESTADOS:
        raise TransicionInvalida(f"El estado '{nuevo_estado}' no existe.")

    if nuevo_estado == estado_actual:
        raise TransicionInvalida(f"La denuncia ya se encuentra en estado '{estado_actual}'.")

    regla = TRANSICIONES.get(estado_actual, {}).get(nuevo_estado)
    if regla is None:
        raise TransicionInvalida(f"La transición de '{estado_actual}' a '{nuevo_estado}' no es válida.")

    if regla.get('requiere_motivo') and not (motivo or '').strip():
        raise TransicionInvalida(f"Para pasar a '{nuevo_estado}' se requiere indicar un motivo.")

    if regla.get('requiere_resolucion') and not (resolucion or '').strip():
        raise TransicionInvalida(f"Para pasar a '{nuevo_estado}' se requiere el texto de la resolución.")

    return regla


def catalogo_estados():
    return [
        {'nombre': nombre, **ESTADOS[nombre], 'terminal': es_terminal(nombre), 'final': es_final(nombre)}
        for nombre in NOMBRES_ESTADOS
    ]
