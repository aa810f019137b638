import io
from datetime import date, timedelta
from unittest.mock import patch

from app import db
from app.models.crm import ContactHistory, CrmDocument
from app.utils.errors import RpcError
from tests.conftest import auth_headers

WEBHOOK_HEADERS = {'X-Webhook-Secret': 'crm-test-secret'}


def _document(seed, name, expires_in_days, **extra):
    document = CrmDocument(
        company_id=seed.company.id, customer_id=seed.customer.id, document_type='coi', name=name,
        storage_key=f'crm/{name}.pdf', storage_url=f'https://files.example.com/{name}.pdf',
        expiration_date=date.today() + timedelta(days=expires_in_days) if expires_in_days is not None else None,
        **extra
    )
    db.session.add(document)
    db.session.commit()
    return document


def test_log_communication(client, seed):
    response = client.post('/api/crm/communications', json={
        'customer_id': str(seed.customer.id), 'type': 'phone', 'subject': 'Rate check'
    }, headers=auth_headers(seed.dispatcher))
    assert response.status_code == 201
    data = response.get_json()['data']
    assert data['source'] == 'manual'
    assert data['direction'] == 'outbound'
    assert data['user_id'] == str(seed.dispatcher.id)


def test_log_communication_requires_customer_or_vendor(client, seed):
    response = client.post('/api/crm/communications', json={'type': 'note'}, headers=auth_headers(seed.dispatcher))
    assert response.status_code == 400
    assert response.get_json()['error'] == 'Either customer_id or vendor_id must be provided'


def test_log_communication_rejects_unknown_type(client, seed):
    response = client.post('/api/crm/communications', json={
        'vendor_id': str(seed.vendor.id), 'type': 'fax'
    }, headers=auth_headers(seed.dispatcher))
    assert response.status_code == 400


def test_log_communication_for_another_companys_customer(client, seed):
    response = client.post('/api/crm/communications', json={
        'customer_id': str(seed.customer.id), 'type': 'note'
    }, headers=auth_headers(seed.outsider))
    assert response.status_code == 404


def test_timeline_is_newest_first_with_names(client, seed):
    headers = auth_headers(seed.dispatcher)
    client.post('/api/crm/communications', json={
        'customer_id': str(seed.customer.id), 'type': 'email', 'occurred_at': '2024-01-01T10:00:00Z'
    }, headers=headers)
    client.post('/api/crm/communications', json={
        'customer_id': str(seed.customer.id), 'type': 'meeting', 'occurred_at': '2024-02-01T10:00:00Z'
    }, headers=headers)

    response = client.get(f'/api/crm/communications?customer_id={seed.customer.id}', headers=headers)
    rows = response.get_json()['data']
    assert [row['type'] for row in rows] == ['meeting', 'email']
    assert rows[0]['customer_name'] == 'Big Box Retail'


def test_webhook_requires_secret(client, seed):
    response = client.post('/api/webhooks/crm-communication', json={'customer_id': str(seed.customer.id)})
    assert response.status_code == 401


def test_twilio_webhook_is_idempotent_on_message_sid(client, seed):
    body = {'MessageSid': 'SM123', 'Body': 'Loaded and rolling', 'Direction': 'inbound',
            'From': '+15550000001', 'metadata': {'customer_id': str(seed.customer.id)}}
    headers = {**WEBHOOK_HEADERS, 'X-Webhook-Source': 'twilio'}

    first = client.post('/api/webhooks/crm-communication', json=body, headers=headers)
    assert first.status_code == 200
    logged = first.get_json()['data']
    assert logged['type'] == 'sms'
    assert logged['direction'] == 'inbound'
    assert logged['company_id'] == str(seed.company.id)

    second = client.post('/api/webhooks/crm-communication', json=body, headers=headers)
    assert second.get_json()['data']['id'] == logged['id']
    assert ContactHistory.query.filter_by(external_id='SM123').count() == 1


def test_webhook_with_unknown_customer(client, seed):
    response = client.post('/api/webhooks/crm-communication', json={
        'customer_id': '00000000-0000-0000-0000-000000000001', 'type': 'note'
    }, headers=WEBHOOK_HEADERS)
    assert response.status_code == 404
    assert response.get_json()['error'] == 'Could not determine company'


def test_upload_document_stores_file(client, seed):
    with patch('app.routes.crm.upload_document', return_value='https://signed.example.com/doc') as upload:
        response = client.post('/api/crm/documents', data={
            'file': (io.BytesIO(b'%PDF-1.4'), 'coi.pdf'),
            'customer_id': str(seed.customer.id),
            'document_type': 'coi',
            'name': 'COI 2025',
            'expiration_date': '2030-01-01'
        }, content_type='multipart/form-data', headers=auth_headers(seed.dispatcher))

    assert response.status_code == 201
    key = upload.call_args[0][1]
    assert key.startswith(f'crm/{seed.company.id}/{seed.dispatcher.id}/')
    assert key.endswith('.pdf')
    assert response.get_json()['data']['storage_url'] == 'https://signed.example.com/doc'


def test_upload_document_rejects_bad_type(client, seed):
    response = client.post('/api/crm/documents', data={
        'file': (io.BytesIO(b'x'), 'x.pdf'), 'customer_id': str(seed.customer.id),
        'document_type': 'passport', 'name': 'X'
    }, content_type='multipart/form-data', headers=auth_headers(seed.dispatcher))
    assert response.status_code == 400


def test_document_list_hides_expired(client, seed):
    _document(seed, 'current', 90)
    _document(seed, 'expired', -5)
    headers = auth_headers(seed.dispatcher)

    names = [d['name'] for d in client.get('/api/crm/documents', headers=headers).get_json()['data']]
    assert names == ['current']

    names = [d['name'] for d in client.get('/api/crm/documents?include_expired=true', headers=headers).get_json()['data']]
    assert sorted(names) == ['current', 'expired']


def test_expiring_documents_fall_back_to_direct_query(client, seed):
    _document(seed, 'soon', 5)
    _document(seed, 'later', 60)
    with patch('app.utils.rpc.call_rpc', side_effect=RpcError('get_expiring_crm_documents', 'missing')):
        response = client.get('/api/crm/documents/expiring', headers=auth_headers(seed.dispatcher))

    rows = response.get_json()['data']
    assert [row['name'] for row in rows] == ['soon']
    assert rows[0]['days_until_expiration'] == 5


def test_delete_document_removes_stored_file(client, seed):
    document = _document(seed, 'old', 10)
    with patch('app.routes.crm.delete_document') as delete:
        response = client.delete(f'/api/crm/documents/{document.id}', headers=auth_headers(seed.dispatcher))
    assert response.status_code == 200
    delete.assert_called_once_with('crm/old.pdf')
    assert CrmDocument.query.count() == 0
