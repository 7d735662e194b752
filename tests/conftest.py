"""Pytest configuration and fixtures."""

import io

import pytest
from flask_jwt_extended import create_access_token

from app import create_app
from models import db

HEADER = 'Activity Date,Process Date,Settle Date,Instrument,Description,Trans Code,Quantity,Price,Amount'


def activity_line(description, trans_code='STO', quantity='2', price='$1.25',
                  activity_date='6/3/2024', instrument='AAPL', amount='$250.00'):
    """Build one CSV line in Robinhood's export layout."""
    cells = [activity_date, activity_date, '6/4/2024', instrument, description,
             trans_code, quantity, price, amount]
    return ','.join(f'"{c}"' for c in cells)


def build_csv(*lines, header=HEADER):
    return '\n'.join((header,) + lines) + '\n'


@pytest.fixture
def app():
    """Create an app bound to an in-memory database."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'JWT_SECRET_KEY': 'test-secret-key-with-enough-length-for-hs256',
    })
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def auth_headers(app):
    token = create_access_token(identity='user-1')
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture
def other_auth_headers(app):
    token = create_access_token(identity='user-2')
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture
def upload(client, auth_headers):
    """POST raw bytes to the Robinhood upload endpoint."""
    def _upload(content, filename='activity.csv', content_type='text/csv', headers=None):
        if isinstance(content, str):
            content = content.encode('utf-8')
        return client.post(
            '/upload/robinhood',
            data={'file': (io.BytesIO(content), filename, content_type)},
            content_type='multipart/form-data',
            headers=headers or auth_headers,
        )
    return _upload
