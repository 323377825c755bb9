# Reglas de visibilidad de los campos de una denuncia según el rol de quien la consulta.

from .workflows import ESTADOS, es_calificable, es_terminal, transiciones_disponibles, RESPUESTA_DENUNCIANTE

# Qué puede ver cada rol en los dashboards
VISIBILIDAD_ROLES = {
    'admin': {'identidad': True, 'internos': True},
    'analista': {'identidad': True, 'internos': True},
    'supervisor': {'identidad': True, 'internos': True},
    'auditor': {'identidad': False, 'internos': True},
}

# Roles que ven todas las denuncias; el resto solo las asignadas
ROLES_VISION_GLOBAL = {'admin', 'analista', 'auditor'}

AUTOR_DENUNCIANTE = 'Denunciante'
AUTOR_GESTION = 'Equipo de gestión'


def permisos_de_vista(user):
    """Unión de los perfiles de visibilidad de todos los roles del usuario."""
    vista = {'identidad': False, 'internos': False}
    for role in getattr(user, 'roles', []):
        perfil = VISIBILIDAD_ROLES.get(role.name, {})
        for campo in vista:
            vista[campo] = vista[campo] or perfil.get(campo, False)
    return vista


def tiene_vision_global(user):
    return any(role.name in ROLES_VISION_GLOBAL for role in getattr(user, 'roles', []))


def puede_ver_denuncia(user, denuncia):
    if tiene_vision_global(user):
        return True
    return denuncia.id_supervisor is not None and denuncia.id_supervisor == user.id


def _iso(value):
    return value.isoformat() if value else None


def _identidad(denuncia, visible):
    if denuncia.anonimo or not visible:
        return {
            'anonimo': bool(denuncia.anonimo),
            'nombre': None,
            'rut': None,
            'email': None,
            'telefono': None,
            'redactado': True,
            'email_protegido': False,
        }
    return {
        'anonimo': False,
        'nombre': denuncia.nombre_denunciante,
        'rut': denuncia.rut_denunciante,
        # El correo solo se entrega por /revelar-email, que deja registro
        'email': None,
        'telefono': denuncia.telefono_denunciante,
        'redactado': False,
        'email_protegido': bool(denuncia.email_denunciante),
    }


def serializar_resumen(denuncia, user):
    """Versión para listados (sin comentarios, historial ni adjuntos)."""
    vista = permisos_de_vista(user)
    return {
        'id': denuncia.id,
        'numero': denuncia.numero,
        'asunto': denuncia.asunto,
        'descripcion': denuncia.descripcion,
        'estado': denuncia.estado,
        'prioridad': denuncia.prioridad,
        'canal_origen': denuncia.canal_origen,
        'pais': denuncia.pais,
        'ciudad': denuncia.ciudad,
        'dias': denuncia.dias_abierta,
        'fecha_creacion': _iso(denuncia.fecha_creacion),
        'fecha_actualizacion': _iso(denuncia.fecha_actualizacion),
        'empresa': {'id': denuncia.empresa.id, 'nombre': denuncia.empresa.nombre} if denuncia.empresa else None,
        'tipo': {'id': denuncia.tipo.id, 'nombre': denuncia.tipo.nombre, 'codigo': denuncia.tipo.codigo} if denuncia.tipo else None,
        'denunciante': _identidad(denuncia, vista['identidad']),
        'supervisor': {
            'id': denuncia.supervisor.id,
            'nombre_completo': denuncia.supervisor.nombre_completo,
            'email': denuncia.supervisor.email,
        } if denuncia.supervisor else None,
    }


def serializar_denuncia(denuncia, user):
    """Detalle completo para los dashboards, aplicando la visibilidad del rol."""
    vista = permisos_de_vista(user)
    data = serializar_resumen(denuncia, user)

    comentarios = []
    for comentario in denuncia.comentarios:
        if comentario.es_interno and not vista['internos']:
            continue
        if comentario.origen == 'denunciante':
            autor = {'nombre': AUTOR_DENUNCIANTE, 'email': None}
        elif comentario.usuario:
            autor = {'nombre': comentario.usuario.nombre_completo, 'email': comentario.usuario.email}
        else:
            autor = {'nombre': AUTOR_GESTION, 'email': None}
        comentarios.append({
            'id': comentario.id,
            'contenido': comentario.contenido,
            'autor': autor,
            'es_interno': comentario.es_interno,
            'fecha_creacion': _iso(comentario.fecha_creacion),
        })

    data.update({
        'relacion': denuncia.relacion,
        'periodo': denuncia.periodo,
        'involucrados': denuncia.involucrados or [],
        'comentarios': comentarios,
        'adjuntos': [{
            'id': adjunto.id,
            'nombre': adjunto.nombre_archivo,
            'mime_type': adjunto.tipo_mime,
            'tamano': adjunto.tamano,
            'tipo_vinculo': adjunto.origen,
            'fecha_subida': _iso(adjunto.fecha_subida),
        } for adjunto in denuncia.adjuntos],
        'historial_estado': [{
            'id': cambio.id,
            'estado_anterior': cambio.estado_anterior,
            'estado_nuevo': cambio.estado_nuevo,
            'motivo': cambio.motivo,
            'usuario': {'nombre': cambio.usuario.nombre_completo} if cambio.usuario else None,
            'fecha_cambio': _iso(cambio.fecha_cambio),
        } for cambio in denuncia.historial],
        'resolucion': {
            'id': denuncia.resolucion.id,
            'contenido': denuncia.resolucion.contenido,
            'usuario_resolvio': {'nombre': denuncia.resolucion.usuario.nombre_completo} if denuncia.resolucion.usuario else None,
            'fecha_resolucion': _iso(denuncia.resolucion.fecha_resolucion),
        } if denuncia.resolucion else None,
        'nota_satisfaccion': denuncia.nota_satisfaccion,
        'comentario_satisfaccion': denuncia.comentario_satisfaccion,
        'reasignaciones': [{
            'de': {'id': r.usuario_anterior.id, 'nombre': r.usuario_anterior.nombre_completo} if r.usuario_anterior else None,
            'a': {'id': r.usuario_nuevo.id, 'nombre': r.usuario_nuevo.nombre_completo} if r.usuario_nuevo else None,
            'reasignado_por': {'nombre': r.reasignado_por.nombre_completo} if r.reasignado_por else None,
            'fecha': _iso(r.fecha),
        } for r in denuncia.reasignaciones],
        'transiciones_disponibles': transiciones_disponibles(denuncia.estado),
    })
    return data


def serializar_publico(denuncia):
    """
    Vista del portal de seguimiento. No expone identidad, comentarios
    internos, motivos internos ni datos del equipo de gestión.
    """
    comentarios = [{
        'contenido': comentario.contenido,
        'autor': AUTOR_DENUNCIANTE if comentario.origen == 'denunciante' else AUTOR_GESTION,
        'fecha_creacion': _iso(comentario.fecha_creacion),
    } for comentario in denuncia.comentarios if not comentario.es_interno]

    return {
        'numero': denuncia.numero,
        'estado': denuncia.estado,
        'estado_descripcion': ESTADOS.get(denuncia.estado, {}).get('descripcion'),
        'tipo': denuncia.tipo.nombre if denuncia.tipo else None,
        'empresa': denuncia.empresa.nombre if denuncia.empresa else None,
        'fecha_creacion': _iso(denuncia.fecha_creacion),
        'fecha_actualizacion': _iso(denuncia.fecha_actualizacion),
        'dias': denuncia.dias_abierta,
        'historial': [{
            'estado_anterior': cambio.estado_anterior,
            'estado_nuevo': cambio.estado_nuevo,
            'fecha_cambio': _iso(cambio.fecha_cambio),
        } for cambio in denuncia.historial],
        'comentarios': comentarios,
        'adjuntos': [adjunto.nombre_archivo for adjunto in denuncia.adjuntos if adjunto.origen == 'denunciante'],
        'resolucion': {
            'contenido': denuncia.resolucion.contenido,
            'fecha_resolucion': _iso(denuncia.resolucion.fecha_resolucion),
        } if denuncia.resolucion else None,
        'nota_satisfaccion': denuncia.nota_satisfaccion,
        'comentario_satisfaccion': denuncia.comentario_satisfaccion,
        'puede_responder': not es_terminal(denuncia.estado),
        'requiere_informacion': denuncia.estado == RESPUESTA_DENUNCIANTE[0],
        'puede_calificar': es_calificable(denuncia.estado) and denuncia.nota_satisfaccion is None,
    }
