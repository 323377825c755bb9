import io
import os

from sqlalchemy.exc import SQLAlchemyError

from extensions import db
from models import Denuncia, Resolucion, HistorialEstado, Adjunto


def test_listado_requiere_sesion(client):
    resp = client.get('/api/denuncias')
    assert resp.status_code == 401
    assert resp.get_json() == {'error': 'Autenticación requerida.'}


def test_analista_ve_todas_y_supervisor_solo_asignadas(login, usuarios, nueva_denuncia):
    nueva_denuncia(id_supervisor=usuarios['supervisor'])
    nueva_denuncia(id_supervisor=usuarios['supervisor2'])
    nueva_denuncia()

    data = login('analista').get('/api/denuncias').get_json()
    assert data['paginacion']['total_registros'] == 3

    data = login('supervisor').get('/api/denuncias').get_json()
    assert data['paginacion']['total_registros'] == 1
    assert data['denuncias'][0]['supervisor']['id'] == usuarios['supervisor']


def test_filtros_y_paginacion(login, nueva_denuncia):
    nueva_denuncia(estado='En Revisión', asunto='Acoso en bodega')
    nueva_denuncia(estado='Nuevo', asunto='Fraude en compras')
    nueva_denuncia(estado='Nuevo', prioridad='critica')
    cliente = login('analista')

    data = cliente.get('/api/denuncias?estado=Nuevo').get_json()
    assert data['paginacion']['total_registros'] == 2

    data = cliente.get('/api/denuncias?q=bodega').get_json()
    assert [d['asunto'] for d in data['denuncias']] == ['Acoso en bodega']

    data = cliente.get('/api/denuncias?prioridad=critica').get_json()
    assert data['paginacion']['total_registros'] == 1

    data = cliente.get('/api/denuncias?limit=2&page=2').get_json()
    assert data['paginacion']['total_paginas'] == 2
    assert len(data['denuncias']) == 1

    assert cliente.get('/api/denuncias?fecha_desde=ayer').status_code == 400


def test_detalle_de_denuncia_no_asignada(login, usuarios, nueva_denuncia):
    id_denuncia, _, _ = nueva_denuncia(id_supervisor=usuarios['supervisor2'])
    assert login('supervisor').get(f'/api/denuncias/{id_denuncia}').status_code == 403
    assert login('supervisor2').get(f'/api/denuncias/{id_denuncia}').status_code == 200
    assert login('analista').get('/api/denuncias/9999').status_code == 404


def test_cambio_de_estado(app, login, nueva_denuncia):
    id_denuncia, _, _ = nueva_denuncia()
    cliente = login('analista')

    resp = cliente.post(f'/api/denuncias/{id_denuncia}/estado', json={'estado': 'En Revisión'})
    assert resp.status_code == 200
    data = resp.get_json()['denuncia']
    assert data['estado'] == 'En Revisión'
    assert [t['estado'] for t in data['transiciones_disponibles']] == [
        'En Investigación', 'Pendiente de Información', 'Resuelto', 'Cerrado', 'Rechazado'
    ]

    with app.app_context():
        historial = HistorialEstado.query.filter_by(id_denuncia=id_denuncia).order_by(HistorialEstado.id).all()
        assert [h.estado_nuevo for h in historial] == ['Nuevo', 'En Revisión']
        assert historial[-1].id_usuario is not None


def test_transicion_invalida(login, nueva_denuncia):
    id_denuncia, _, _ = nueva_denuncia()
    cliente = login('analista')

    resp = cliente.post(f'/api/denuncias/{id_denuncia}/estado', json={'estado': 'Resuelto', 'resolucion': 'x'})
    assert resp.status_code == 400
    assert 'no es válida' in resp.get_json()['error']

    resp = cliente.post(f'/api/denuncias/{id_denuncia}/estado', json={'estado': 'Rechazado'})
    assert resp.status_code == 400
    assert 'motivo' in resp.get_json()['error']

    resp = cliente.post(f'/api/denuncias/{id_denuncia}/estado', json={'estado': 'Archivado'})
    assert resp.status_code == 400


def test_resolver_crea_resolucion(app, login, nueva_denuncia):
    id_denuncia, _, _ = nueva_denuncia(estado='En Investigación')
    resp = login('analista').post(f'/api/denuncias/{id_denuncia}/estado', json={
        'estado': 'Resuelto', 'resolucion': 'Se desvinculó al responsable.'
    })
    assert resp.status_code == 200
    assert resp.get_json()['denuncia']['resolucion']['contenido'] == 'Se desvinculó al responsable.'

    with app.app_context():
        assert Resolucion.query.filter_by(id_denuncia=id_denuncia).count() == 1


def test_auditor_es_solo_lectura(login, nueva_denuncia):
    id_denuncia, _, _ = nueva_denuncia()
    cliente = login('auditor')

    assert cliente.get(f'/api/denuncias/{id_denuncia}').status_code == 200
    assert cliente.post(f'/api/denuncias/{id_denuncia}/estado', json={'estado': 'En Revisión'}).status_code == 403
    assert cliente.post(f'/api/denuncias/{id_denuncia}/comentarios', json={'contenido': 'hola'}).status_code == 403
    assert cliente.post(f'/api/denuncias/{id_denuncia}/prioridad', json={'prioridad': 'alta'}).status_code == 403


def test_auditor_no_ve_identidad(login, nueva_denuncia):
    id_denuncia, _, _ = nueva_denuncia(anonimo=False, nombre_denunciante='Carla Díaz', email_denunciante='carla@example.com')

    data = login('auditor').get(f'/api/denuncias/{id_denuncia}').get_json()
    assert data['denunciante']['nombre'] is None
    assert data['denunciante']['redactado'] is True

    data = login('analista').get(f'/api/denuncias/{id_denuncia}').get_json()
    assert data['denunciante']['nombre'] == 'Carla Díaz'


def test_comentario_interno_no_llega_al_portal(client, login, nueva_denuncia):
    id_denuncia, numero, clave = nueva_denuncia()
    cliente = login('analista')

    resp = cliente.post(f'/api/denuncias/{id_denuncia}/comentarios',
                        json={'contenido': 'Posible colusión con proveedor', 'es_interno': True})
    assert resp.status_code == 201
    resp = cliente.post(f'/api/denuncias/{id_denuncia}/comentarios',
                        json={'contenido': 'Recibimos su denuncia', 'es_interno': False})
    assert resp.status_code == 201
    internos = [c for c in resp.get_json()['denuncia']['comentarios'] if c['es_interno']]
    assert len(internos) == 1

    publico = client.post('/api/seguimiento', json={'numero': numero, 'clave': clave}).get_json()
    assert [c['contenido'] for c in publico['comentarios']] == ['Recibimos su denuncia']
    assert publico['comentarios'][0]['autor'] == 'Equipo de gestión'


def test_asignar_supervisor(app, login, usuarios, nueva_denuncia):
    id_denuncia, _, _ = nueva_denuncia()
    cliente = login('analista')

    resp = cliente.post(f'/api/denuncias/{id_denuncia}/asignar', json={'id_supervisor': usuarios['auditor']})
    assert resp.status_code == 400

    resp = cliente.post(f'/api/denuncias/{id_denuncia}/asignar', json={'id_supervisor': usuarios['supervisor']})
    assert resp.status_code == 200
    with app.app_context():
        assert db.session.get(Denuncia, id_denuncia).id_supervisor == usuarios['supervisor']

    assert login('supervisor').get(f'/api/denuncias/{id_denuncia}').status_code == 200
    # El supervisor no puede reasignar
    resp = login('supervisor').post(f'/api/denuncias/{id_denuncia}/asignar', json={'id_supervisor': usuarios['supervisor2']})
    assert resp.status_code == 403


def test_cambiar_prioridad(login, nueva_denuncia):
    id_denuncia, _, _ = nueva_denuncia()
    cliente = login('analista')
    resp = cliente.post(f'/api/denuncias/{id_denuncia}/prioridad', json={'prioridad': 'critica'})
    assert resp.status_code == 200
    assert resp.get_json()['denuncia']['prioridad'] == 'critica'
    assert cliente.post(f'/api/denuncias/{id_denuncia}/prioridad', json={'prioridad': 'urgente'}).status_code == 400


def test_adjuntos_de_gestion(login, usuarios, nueva_denuncia):
    id_denuncia, _, _ = nueva_denuncia(id_supervisor=usuarios['supervisor'])
    cliente = login('supervisor')

    resp = cliente.post(f'/api/denuncias/{id_denuncia}/adjuntos',
                        data={'archivos': (io.BytesIO(b'informe final'), 'informe.txt')},
                        content_type='multipart/form-data')
    assert resp.status_code == 201
    adjunto = resp.get_json()['denuncia']['adjuntos'][0]
    assert adjunto['tipo_vinculo'] == 'gestion'

    resp = cliente.get(f"/api/adjuntos/{adjunto['id']}/descargar")
    assert resp.status_code == 200
    assert resp.data == b'informe final'
    assert 'informe.txt' in resp.headers['Content-Disposition']

    assert login('supervisor2').get(f"/api/adjuntos/{adjunto['id']}/descargar").status_code == 403
    assert cliente.post(f'/api/denuncias/{id_denuncia}/adjuntos', data={},
                        content_type='multipart/form-data').status_code == 400


def test_adjuntos_de_gestion_no_quedan_huerfanos(app, login, usuarios, nueva_denuncia, monkeypatch):
    id_denuncia, numero, _ = nueva_denuncia(id_supervisor=usuarios['supervisor'])
    cliente = login('supervisor')
    commit_original = db.session.commit

    def commit_fallido():
        if any(isinstance(obj, Adjunto) for obj in db.session.new):
            raise SQLAlchemyError('base de datos no disponible')
        commit_original()

    monkeypatch.setattr(db.session, 'commit', commit_fallido)
    resp = cliente.post(f'/api/denuncias/{id_denuncia}/adjuntos',
                        data={'archivos': (io.BytesIO(b'informe final'), 'informe.txt')},
                        content_type='multipart/form-data')
    assert resp.status_code == 500
    carpeta = os.path.join(app.config['UPLOAD_FOLDER'], 'denuncias', numero)
    assert not os.path.isdir(carpeta) or os.listdir(carpeta) == []
    with app.app_context():
        assert Adjunto.query.count() == 0
