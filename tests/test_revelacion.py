import pytest

import notificaciones
from extensions import db
from models import RevelacionIdentidad, ActivityLog, Reasignacion

MOTIVO = 'Requerimiento de fiscalía, oficio 1234-2025'


@pytest.fixture
def identificada(nueva_denuncia):
    """Denuncia identificada con correo; devuelve (id, numero, clave)."""
    return nueva_denuncia(anonimo=False, nombre_denunciante='Marta Vera', email_denunciante='marta@example.com')


@pytest.fixture
def correos(app, monkeypatch):
    monkeypatch.setitem(app.config, 'NOTIFY_ENABLED', True)
    monkeypatch.setitem(app.config, 'SENDGRID_KEY', 'SG.prueba')
    enviados = []

    class _Respuesta:
        def raise_for_status(self):
            pass

    def _post(url, json=None, headers=None, timeout=None):
        enviados.append(json)
        return _Respuesta()

    monkeypatch.setattr(notificaciones.requests, 'post', _post)
    return enviados


def _revelaciones(app):
    with app.app_context():
        return [(r.metodo, r.id_usuario, r.motivo) for r in RevelacionIdentidad.query.order_by(RevelacionIdentidad.id)]


def test_detalle_no_incluye_el_correo(login, identificada):
    id_denuncia, _, _ = identificada
    data = login('analista').get(f'/api/denuncias/{id_denuncia}').get_json()
    assert data['denunciante']['email'] is None
    assert data['denunciante']['email_protegido'] is True


def test_revelacion_forzada_requiere_permiso(app, login, identificada):
    id_denuncia, _, _ = identificada
    resp = login('analista').post(f'/api/denuncias/{id_denuncia}/revelar-email', json={'motivo': MOTIVO})
    assert resp.status_code == 403
    assert _revelaciones(app) == []


def test_revelacion_forzada_exige_motivo(app, login, identificada):
    id_denuncia, _, _ = identificada
    cliente = login('admin')
    assert cliente.post(f'/api/denuncias/{id_denuncia}/revelar-email', json={'motivo': 'urgente'}).status_code == 400
    assert cliente.post(f'/api/denuncias/{id_denuncia}/revelar-email', json={}).status_code == 400
    assert _revelaciones(app) == []


def test_revelacion_forzada_queda_auditada_y_avisa(app, login, usuarios, identificada, correos):
    id_denuncia, numero, clave = identificada
    resp = login('admin').post(f'/api/denuncias/{id_denuncia}/revelar-email', json={'motivo': MOTIVO},
                               headers={'X-Forwarded-For': '198.51.100.4'})
    assert resp.status_code == 200
    data = resp.get_json()
    assert data['email'] == 'marta@example.com'
    assert data['metodo'] == 'forzado'

    assert _revelaciones(app) == [('forzado', usuarios['admin'], MOTIVO)]
    with app.app_context():
        assert RevelacionIdentidad.query.one().ip_origen == '198.51.100.4'
        assert ActivityLog.query.filter_by(action='Revelación de correo del denunciante',
                                           resource_id=numero).count() == 1

    assert len(correos) == 1
    assert correos[0]['personalizations'][0]['to'] == [{'email': 'marta@example.com'}]
    assert MOTIVO in correos[0]['content'][0]['value']
    assert clave not in str(correos[0])


def test_revelacion_con_clave_del_denunciante(app, login, usuarios, identificada, correos):
    id_denuncia, _, clave = identificada
    resp = login('analista').post(f'/api/denuncias/{id_denuncia}/revelar-email', json={'clave': clave.lower()})
    assert resp.status_code == 200
    assert resp.get_json()['metodo'] == 'clave_denunciante'
    assert _revelaciones(app) == [('clave_denunciante', usuarios['analista'], None)]
    # El denunciante entregó su clave: no se le avisa
    assert correos == []


def test_revelacion_con_clave_incorrecta(app, login, identificada):
    id_denuncia, numero, _ = identificada
    resp = login('analista').post(f'/api/denuncias/{id_denuncia}/revelar-email', json={'clave': 'ZZZZZZZZZZZZ'})
    assert resp.status_code == 403
    assert _revelaciones(app) == []
    with app.app_context():
        assert ActivityLog.query.filter_by(action='Revelación de correo rechazada', resultado='FAILED',
                                           resource_id=numero).count() == 1


def test_auditor_no_revela_ni_con_clave(app, login, identificada):
    id_denuncia, _, clave = identificada
    resp = login('auditor').post(f'/api/denuncias/{id_denuncia}/revelar-email', json={'clave': clave})
    assert resp.status_code == 403
    assert _revelaciones(app) == []


def test_supervisor_no_revela_denuncias_ajenas(login, identificada):
    id_denuncia, _, clave = identificada
    resp = login('supervisor').post(f'/api/denuncias/{id_denuncia}/revelar-email', json={'clave': clave})
    assert resp.status_code == 403


def test_denuncia_anonima_no_tiene_correo(login, nueva_denuncia):
    id_denuncia, _, clave = nueva_denuncia(anonimo=True)
    resp = login('admin').post(f'/api/denuncias/{id_denuncia}/revelar-email', json={'clave': clave})
    assert resp.status_code == 400


def test_listado_de_revelaciones(login, identificada):
    id_denuncia, numero, clave = identificada
    login('analista').post(f'/api/denuncias/{id_denuncia}/revelar-email', json={'clave': clave})
    login('admin').post(f'/api/denuncias/{id_denuncia}/revelar-email', json={'motivo': MOTIVO})

    data = login('auditor').get(f'/api/denuncias/{id_denuncia}/revelaciones').get_json()
    assert [r['metodo'] for r in data['revelaciones']] == ['clave_denunciante', 'forzado']
    assert data['revelaciones'][1]['usuario_nombre'] == 'Ada Prueba'
    assert data['revelaciones'][0]['numero'] == numero
    assert login('analista').get(f'/api/denuncias/{id_denuncia}/revelaciones').status_code == 403


def test_historial_de_reasignaciones(app, login, usuarios, nueva_denuncia):
    id_denuncia, _, _ = nueva_denuncia()
    cliente = login('analista')
    url = f'/api/denuncias/{id_denuncia}/asignar'

    assert cliente.post(url, json={'id_supervisor': usuarios['supervisor']}).status_code == 200
    # Reasignar al mismo supervisor no es un cambio
    assert cliente.post(url, json={'id_supervisor': usuarios['supervisor']}).status_code == 400
    assert login('admin').post(url, json={'id_supervisor': usuarios['supervisor2']}).status_code == 200

    with app.app_context():
        historial = [(r.id_usuario_anterior, r.id_usuario_nuevo, r.id_reasignado_por)
                     for r in Reasignacion.query.filter_by(id_denuncia=id_denuncia).order_by(Reasignacion.id)]
    assert historial == [
        (None, usuarios['supervisor'], usuarios['analista']),
        (usuarios['supervisor'], usuarios['supervisor2'], usuarios['admin']),
    ]

    detalle = cliente.get(f'/api/denuncias/{id_denuncia}').get_json()
    assert [r['a']['nombre'] for r in detalle['reasignaciones']] == ['Sergio Prueba', 'Sofía Prueba']
    assert detalle['reasignaciones'][0]['de'] is None
    assert detalle['reasignaciones'][1]['reasignado_por'] == {'nombre': 'Ada Prueba'}
