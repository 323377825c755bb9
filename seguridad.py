# seguridad.py
import re
import time
from datetime import datetime

import requests
from flask import current_app, request
from sqlalchemy.exc import IntegrityError

from extensions import db
from models import RateLimit


class LimiteExcedido(Exception):
    """Demasiadas solicitudes desde la misma IP en la ventana actual."""


def get_client_ip():
    xff = request.headers.get('X-Forwarded-For', '')
    return (xff.split(',')[0] or request.remote_addr or '').strip()


def check_rate_limit(ip=None):
    """
    Contador por ventana fija: la clave combina el número de ventana y la IP.
    Lanza LimiteExcedido cuando se supera RATELIMIT_MAX.
    """
    ip = ip if ip is not None else get_client_ip()
    window = current_app.config['RATELIMIT_WINDOW_SEC']
    maximo = current_app.config['RATELIMIT_MAX']

    ventana = int(time.time() // window)
    key = f"{ventana}_{re.sub(r'[^a-zA-Z0-9:_-]', '_', ip)}"[:120]

    registro = db.session.get(RateLimit, key)
    if registro is None:
        # Primera solicitud de esta IP en la ventana: se limpian las ventanas vencidas
        inicio_ventana = datetime.utcfromtimestamp(ventana * window)
        RateLimit.query.filter(RateLimit.created_at < inicio_ventana).delete(synchronize_session=False)
        try:
            db.session.add(RateLimit(key=key, count=1, created_at=datetime.utcnow()))
            db.session.commit()
            return
        except IntegrityError:
            # Otra solicitud concurrente creó el registro primero
            db.session.rollback()
            registro = db.session.get(RateLimit, key)
            if registro is None:
                return

    if registro.count >= maximo:
        raise LimiteExcedido('rate_limited')
    # Incremento en la base para no perder solicitudes concurrentes
    RateLimit.query.filter_by(key=key).update({RateLimit.count: RateLimit.count + 1}, synchronize_session=False)
    db.session.commit()


def verify_recaptcha(token):
    """
    Valida el token de reCAPTCHA. Si no hay secreto configurado la
    verificación está deshabilitada.
    """
    secret = current_app.config.get('RECAPTCHA_SECRET')
    if not secret:
        return True
    if not token:
        return False

    try:
        resp = requests.post(
            current_app.config['RECAPTCHA_URL'],
            data={'secret': secret, 'response': token},
            timeout=10
        )
        data = resp.json()
    except (requests.RequestException, ValueError) as e:
        current_app.logger.error(f"Error al verificar reCAPTCHA: {e}")
        return False

    score = data.get('score')
    return bool(data.get('success')) and (score is None or score >= current_app.config['RECAPTCHA_SCORE_MINIMO'])
