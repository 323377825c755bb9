from extensions import db
from models import Empresa, TipoDenuncia


def test_crear_empresa(login):
    cliente = login('admin')
    resp = cliente.post('/api/empresas', json={'nombre': 'Minera Norte', 'rut': '77.777.777-k'})
    assert resp.status_code == 201
    data = resp.get_json()
    assert data['rut'] == '77.777.777-K'
    assert data['activo'] is True
    assert data['estadisticas']['totales'] == 0

    resp = cliente.post('/api/empresas', json={'nombre': 'Otra Minera', 'rut': '77.777.777-K'})
    assert resp.status_code == 409


def test_crear_empresa_valida_datos(login):
    resp = login('admin').post('/api/empresas', json={'nombre': 'Sin RUT', 'email': 'no-es-email'})
    assert resp.status_code == 400
    errores = resp.get_json()['errores']
    assert 'rut' in errores
    assert 'email' in errores


def test_analista_no_gestiona_empresas(login, empresa):
    cliente = login('analista')
    assert cliente.get('/api/empresas').status_code == 200
    assert cliente.post('/api/empresas', json={'nombre': 'X', 'rut': '1-9'}).status_code == 403
    assert cliente.delete(f'/api/empresas/{empresa}').status_code == 403
    assert login('supervisor').get('/api/empresas').status_code == 403


def test_estadisticas_por_empresa(login, empresa, nueva_denuncia):
    nueva_denuncia(estado='Nuevo')
    nueva_denuncia(estado='En Investigación')
    nueva_denuncia(estado='Resuelto')
    nueva_denuncia(estado='Rechazado')

    data = login('analista').get(f'/api/empresas/{empresa}').get_json()
    assert data['estadisticas']['totales'] == 4
    assert data['estadisticas']['activas'] == 2
    assert data['estadisticas']['resueltas'] == 1
    assert data['estadisticas']['ultima_denuncia'] is not None


def test_listado_filtra_por_estado_y_texto(app, login, empresa):
    with app.app_context():
        db.session.add(Empresa(nombre='Pesquera Sur', rut='88.888.888-8', activo=False))
        db.session.commit()
    cliente = login('admin')

    nombres = [e['nombre'] for e in cliente.get('/api/empresas').get_json()['empresas']]
    assert nombres == ['Comercial Andes SpA', 'Pesquera Sur']
    nombres = [e['nombre'] for e in cliente.get('/api/empresas?activo=1').get_json()['empresas']]
    assert nombres == ['Comercial Andes SpA']
    nombres = [e['nombre'] for e in cliente.get('/api/empresas?q=88.888').get_json()['empresas']]
    assert nombres == ['Pesquera Sur']


def test_editar_empresa(login, empresa):
    cliente = login('admin')
    resp = cliente.put(f'/api/empresas/{empresa}', json={'nombre': 'Comercial Andes Ltda', 'rut': '76.123.456-7'})
    assert resp.status_code == 200
    assert resp.get_json()['nombre'] == 'Comercial Andes Ltda'
    # Sin el campo activo se mantiene el valor actual
    assert resp.get_json()['activo'] is True

    resp = cliente.put(f'/api/empresas/{empresa}', json={'nombre': 'Comercial Andes Ltda', 'rut': '76.123.456-7',
                                                         'activo': False})
    assert resp.get_json()['activo'] is False
    assert cliente.put('/api/empresas/9999', json={'nombre': 'X', 'rut': '1-9'}).status_code == 404


def test_eliminar_empresa_sin_denuncias(app, login, empresa):
    resp = login('admin').delete(f'/api/empresas/{empresa}')
    assert resp.status_code == 200
    assert resp.get_json()['desactivada'] is False
    with app.app_context():
        assert db.session.get(Empresa, empresa) is None


def test_eliminar_empresa_con_denuncias_la_desactiva(app, login, empresa, nueva_denuncia):
    nueva_denuncia()
    resp = login('admin').delete(f'/api/empresas/{empresa}')
    assert resp.status_code == 200
    assert resp.get_json()['desactivada'] is True
    with app.app_context():
        assert db.session.get(Empresa, empresa).activo is False


def test_catalogo_de_estados(login):
    data = login('auditor').get('/api/catalogos/estados').get_json()
    estados = {e['nombre']: e for e in data['estados']}
    assert estados['Cerrado']['terminal'] is True
    assert estados['Cerrado']['transiciones'] == []
    assert [t['estado'] for t in estados['Nuevo']['transiciones']] == ['En Revisión', 'Rechazado']
    assert data['prioridades'] == ['baja', 'media', 'alta', 'critica']


def test_tipos_de_denuncia(app, login, nueva_denuncia, tipo):
    nueva_denuncia()
    cliente = login('admin')

    tipos = {t['codigo']: t for t in cliente.get('/api/catalogos/tipos').get_json()['tipos']}
    assert tipos['FRA-001']['total_denuncias'] == 1
    assert tipos['ACO-001']['total_denuncias'] == 0

    resp = cliente.post('/api/catalogos/tipos', json={'codigo': 'ret-001', 'nombre': 'Represalias'})
    assert resp.status_code == 201
    nuevo = resp.get_json()
    assert nuevo['codigo'] == 'RET-001'
    assert cliente.post('/api/catalogos/tipos', json={'codigo': 'RET-001', 'nombre': 'Duplicado'}).status_code == 409

    resp = cliente.put(f"/api/catalogos/tipos/{nuevo['id']}", json={'codigo': 'RET-001', 'nombre': 'Represalias laborales'})
    assert resp.get_json()['nombre'] == 'Represalias laborales'

    assert cliente.delete(f"/api/catalogos/tipos/{nuevo['id']}").get_json()['desactivado'] is False
    assert cliente.delete(f'/api/catalogos/tipos/{tipo}').get_json()['desactivado'] is True
    with app.app_context():
        assert db.session.get(TipoDenuncia, tipo).activo is False


def test_analista_no_gestiona_tipos(login):
    resp = login('analista').post('/api/catalogos/tipos', json={'codigo': 'X-1', 'nombre': 'X'})
    assert resp.status_code == 403
