"""End-to-end tests for POST /upload/robinhood."""

import io

from conftest import activity_line, build_csv
from ingest import MAX_UPLOAD_BYTES, IngestionReport
from models import OptionPosition, OptionTransaction

SAMPLE = build_csv(
    activity_line('AAPL 6/21/2024 Call $150.50', quantity='2', price='$1.25'),
    activity_line('Apple', trans_code='Buy', quantity='10', price='$190.00'),
    activity_line('SPY 7/19/2024 Put $500', quantity='1', price='(2.50)', instrument='SPY'),
    activity_line('TSLA weekly thing', instrument='TSLA'),
    activity_line('AAPL 6/21/2024 Call $150.50', trans_code='BTC', price='$0.10'),
)


def test_upload_returns_report(upload):
    response = upload(SAMPLE)

    assert response.status_code == 200
    assert response.get_json() == {
        'acceptedRows': 2,
        'ignoredRows': 3,
        'newPositions': 2,
        'warnings': ['Invalid option description format: TSLA weekly thing'],
    }


def test_upload_persists_positions(upload):
    upload(SAMPLE)

    positions = {p.symbol: p for p in OptionPosition.query.all()}
    assert set(positions) == {'AAPL', 'SPY'}
    assert float(positions['AAPL'].premium_total) == 250.0
    assert positions['SPY'].option_type == 'PUT'
    assert float(positions['SPY'].open_price) == 2.5
    assert float(positions['SPY'].premium_total) == 250.0
    assert OptionTransaction.query.count() == 2


def test_reupload_creates_independent_records(upload):
    upload(SAMPLE)
    response = upload(SAMPLE)

    assert response.get_json()['newPositions'] == 2
    assert OptionPosition.query.count() == 4
    assert OptionTransaction.query.count() == 4


def test_requires_token(client):
    response = client.post(
        '/upload/robinhood',
        data={'file': (io.BytesIO(SAMPLE.encode()), 'activity.csv', 'text/csv')},
        content_type='multipart/form-data',
    )

    assert response.status_code == 401
    assert response.get_json() == {'error': 'Unauthorized'}


def test_rejects_invalid_token(upload):
    response = upload(SAMPLE, headers={'Authorization': 'Bearer not-a-token'})

    assert response.status_code == 401


def test_no_file(client, auth_headers):
    response = client.post(
        '/upload/robinhood', data={}, content_type='multipart/form-data', headers=auth_headers
    )

    assert response.status_code == 400
    assert response.get_json() == {'error': 'No file provided'}


def test_not_a_csv(upload):
    response = upload(SAMPLE, filename='statement.txt', content_type='text/plain')

    assert response.status_code == 400
    assert response.get_json() == {'error': 'File must be a CSV'}


def test_csv_mimetype_without_extension(upload):
    response = upload(SAMPLE, filename='export', content_type='text/csv')

    assert response.status_code == 200


def test_size_limit_boundary(upload):
    content = SAMPLE.encode()
    exact = content + b'\n' * (MAX_UPLOAD_BYTES - len(content))

    assert upload(exact).status_code == 200

    response = upload(exact + b'\n')
    assert response.status_code == 400
    assert response.get_json() == {'error': 'File size must be less than 2MB'}


def test_header_only_csv(upload):
    response = upload(build_csv())

    assert response.status_code == 400
    assert response.get_json() == {'error': 'CSV file is empty'}


def test_missing_trans_code_column(upload):
    header = 'Activity Date,Process Date,Settle Date,Instrument,Description,Quantity,Price,Amount'
    content = build_csv('6/3/2024,6/3/2024,6/4/2024,AAPL,AAPL 6/21/2024 Call $150,2,$1.25,$250', header=header)

    response = upload(content)

    assert response.status_code == 400
    assert response.get_json() == {'error': 'Missing required columns: Trans Code'}


def test_unexpected_failure_is_500(upload, monkeypatch):
    import app as app_module

    def boom(*args, **kwargs):
        raise RuntimeError('database unavailable')

    monkeypatch.setattr(app_module, 'ingest', boom)
    response = upload(SAMPLE)

    assert response.status_code == 500
    assert response.get_json() == {'error': 'Internal server error'}


def test_file_field_without_filename(client, auth_headers):
    response = client.post(
        '/upload/robinhood',
        data={'file': (io.BytesIO(SAMPLE.encode()), '', 'text/csv')},
        content_type='multipart/form-data',
        headers=auth_headers,
    )

    assert response.status_code == 400
    assert response.get_json() == {'error': 'No file provided'}


def test_long_description_is_a_row_warning(upload):
    description = 'X' * 200_000
    response = upload(build_csv(activity_line(description)))

    assert response.status_code == 200
    assert response.get_json()['ignoredRows'] == 1
    assert response.get_json()['warnings'] == [f'Invalid option description format: {description}']


def test_oversized_quantity_is_a_row_warning(upload):
    response = upload(build_csv(
        activity_line('AAPL 6/21/2024 Call $150', quantity='1E+30000000'),
        activity_line('SPY 7/19/2024 Put $500', quantity='1'),
    ))

    assert response.status_code == 200
    assert response.get_json() == {
        'acceptedRows': 1,
        'ignoredRows': 1,
        'newPositions': 1,
        'warnings': ["Error processing row: Invalid quantity: '1E+30000000'"],
    }


def test_upload_is_read_only_up_to_the_limit(upload, monkeypatch):
    import app as app_module

    seen = []

    def capture(content, *args, **kwargs):
        seen.append(len(content))
        return IngestionReport()

    monkeypatch.setattr(app_module, 'ingest', capture)
    response = upload(SAMPLE.encode() + b'\n' * (3 * MAX_UPLOAD_BYTES))

    assert response.status_code == 200
    assert seen == [MAX_UPLOAD_BYTES + 1]
