# notificaciones.py
import requests
from flask import current_app


def _enviar_correo(to, subject, text):
    """
    Envía un correo de texto plano mediante la API HTTP de SendGrid.
    Devuelve True si el proveedor aceptó el mensaje.
    """
    config = current_app.config
    if not config.get('NOTIFY_ENABLED') or not config.get('SENDGRID_KEY') or not to:
        return False

    payload = {
        'personalizations': [{'to': [{'email': to}]}],
        'from': {'email': config['NOTIFY_FROM']},
        'subject': subject,
        'content': [{'type': 'text/plain', 'value': text}],
    }
    try:
        resp = requests.post(
            config['SENDGRID_URL'],
            json=payload,
            headers={'Authorization': f"Bearer {config['SENDGRID_KEY']}"},
            timeout=config.get('NOTIFY_TIMEOUT', 10)
        )
        resp.raise_for_status()
        return True
    except requests.RequestException as e:
        current_app.logger.error(f"Error al enviar correo a {to}: {e}")
        return False


def send_new_report_email(denuncia):
    """Avisa al equipo de gestión que llegó una nueva denuncia."""
    config = current_app.config
    subject = f"{config['NOTIFY_SUBJECT_PREFIX']} {denuncia.numero}"
    text = (
        "Nueva denuncia recibida\n\n"
        f"Caso: {denuncia.numero}\n"
        f"Tipo: {denuncia.tipo.nombre if denuncia.tipo else ''}\n"
        f"Empresa: {denuncia.empresa.nombre if denuncia.empresa else ''}\n"
        f"Fecha: {denuncia.fecha_creacion.isoformat()}\n\n"
        f"Resumen:\n{denuncia.descripcion[:400]}\n"
    )
    return _enviar_correo(config.get('NOTIFY_TO'), subject, text)


def send_status_change_email(denuncia):
    """
    Avisa al denunciante identificado del nuevo estado de su denuncia.
    Nunca incluye la clave de acceso.
    """
    if denuncia.anonimo or not denuncia.email_denunciante:
        return False
    subject = f"Actualización de su denuncia {denuncia.numero}"
    text = (
        f"Su denuncia {denuncia.numero} cambió al estado: {denuncia.estado}.\n\n"
        "Puede revisar el detalle en el portal de seguimiento con su número y clave de acceso.\n"
    )
    return _enviar_correo(denuncia.email_denunciante, subject, text)


def send_identity_revealed_email(denuncia, usuario, motivo):
    """
    Avisa al denunciante que su correo fue revelado sin su clave de acceso.
    El motivo se incluye tal como quedó registrado en la auditoría.
    """
    if not denuncia.email_denunciante:
        return False
    subject = f"Aviso sobre su denuncia {denuncia.numero}"
    text = (
        f"Se accedió a su correo de contacto en la denuncia {denuncia.numero} sin su clave de acceso.\n\n"
        f"Responsable: {usuario.nombre_completo}\n"
        f"Motivo: {motivo}\n\n"
        "Este acceso quedó registrado. Si tiene dudas, responda desde el portal de seguimiento.\n"
    )
    return _enviar_correo(denuncia.email_denunciante, subject, text)
