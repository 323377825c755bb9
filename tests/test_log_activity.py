from datetime import datetime, timedelta

from extensions import db
from log_activity import log_activity
from models import ActivityLog


def test_registro_fuera_de_una_peticion(app):
    with app.app_context():
        log_activity(action='x' * 300, category='Sistema', details='d' * 600, resource_id=12345)
        registro = ActivityLog.query.one()
        assert len(registro.action) == 255
        assert len(registro.details) == 500
        assert registro.resource_id == '12345'
        assert registro.user_id is None
        assert registro.ip_origen is None
        assert registro.resultado == 'SUCCESS'


def test_registro_guarda_ip_y_usuario(app, login, usuarios):
    cliente = login('analista')
    cliente.post('/logout', headers={'X-Forwarded-For': '203.0.113.9, 10.0.0.1', 'User-Agent': 'pruebas/1.0'})
    with app.app_context():
        registro = ActivityLog.query.filter_by(category='Logout').one()
        assert registro.user_id == usuarios['analista']
        assert registro.ip_origen == '203.0.113.9'
        assert registro.user_agent == 'pruebas/1.0'


def _sembrar_bitacora(app, usuarios):
    with app.app_context():
        antiguo = datetime.utcnow() - timedelta(days=60)
        db.session.add_all([
            ActivityLog(user_id=usuarios['analista'], action='Cambio de estado', category='Denuncias',
                        resource_id='2025-0000001', resultado='SUCCESS'),
            ActivityLog(user_id=None, action='Consulta de seguimiento fallida', category='Seguimiento',
                        resultado='FAILED'),
            ActivityLog(user_id=usuarios['admin'], action='Creación de Empresa', category='Empresas',
                        resultado='SUCCESS', timestamp=antiguo),
        ])
        db.session.commit()


def test_auditoria_filtros(app, login, usuarios):
    cliente = login('auditor')
    _sembrar_bitacora(app, usuarios)

    data = cliente.get('/api/auditoria?category=Denuncias').get_json()
    assert [r['accion'] for r in data['registros']] == ['Cambio de estado']
    assert data['registros'][0]['usuario_nombre'] == 'Ana Prueba'

    data = cliente.get('/api/auditoria?resultado=failed').get_json()
    assert [r['modulo'] for r in data['registros']] == ['Seguimiento']
    assert data['registros'][0]['usuario_nombre'] == 'Sistema'

    data = cliente.get(f"/api/auditoria?user_id={usuarios['admin']}").get_json()
    assert [r['accion'] for r in data['registros']] == ['Creación de Empresa']

    data = cliente.get('/api/auditoria?search_term=2025-0000001').get_json()
    assert data['paginacion']['total_registros'] == 1

    desde = (datetime.utcnow() - timedelta(days=7)).strftime('%Y-%m-%d')
    data = cliente.get(f'/api/auditoria?start_date={desde}&category=Empresas').get_json()
    assert data['registros'] == []

    assert cliente.get('/api/auditoria?end_date=mañana').status_code == 400


def test_auditoria_estadisticas(app, login, usuarios):
    cliente = login('admin')
    _sembrar_bitacora(app, usuarios)

    data = cliente.get('/api/auditoria').get_json()
    stats = data['estadisticas']
    # Los tres registros sembrados más el inicio de sesión del admin
    assert stats['total'] == 4
    assert stats['mes'] == 3
    assert stats['tasa_exito'] == 75.0
    assert {'modulo': 'Login', 'cantidad': 1} in stats['modulos_mas_activos']
    assert 'Seguimiento' in data['categorias']
    assert len(data['usuarios']) == 6


def test_auditoria_requiere_permiso(login):
    assert login('analista').get('/api/auditoria').status_code == 403
    assert login('supervisor').get('/api/auditoria').status_code == 403
