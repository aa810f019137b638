"""
Shared fixtures: an app on in-memory SQLite, one seeded company (plus a
second tenant for isolation checks) and HS256 access tokens.
"""
from datetime import datetime, timedelta, timezone

import jwt
import pytest

from app import create_app, db
from app.models.fleet import Customer, Driver, Truck, Vendor
from app.models.user import Company, User
from app.utils.db_init import seed_subscription_plans
from config import TestingConfig

TEST_JWT_SECRET = 'test-jwt-secret'


def make_token(sub, expires_in=3600):
    claims = {
        'sub': sub,
        'aud': 'authenticated',
        'exp': datetime.now(timezone.utc) + timedelta(seconds=expires_in),
    }
    return jwt.encode(claims, TEST_JWT_SECRET, algorithm='HS256')


def auth_headers(user):
    return {'Authorization': f'Bearer {make_token(user.auth_sub)}'}


@pytest.fixture
def app():
    app = create_app(TestingConfig)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


class Seed:
    pass


@pytest.fixture
def seed(app):
    """Company with owner/manager/dispatcher/driver users, two drivers, a truck, a customer and a vendor"""
    s = Seed()
    s.company = Company(name='Acme Freight', dot_number='1234567')
    s.other_company = Company(name='Rival Haulers')
    db.session.add_all([s.company, s.other_company])
    db.session.flush()

    def user(sub, role, company=s.company, phone=None):
        u = User(auth_sub=sub, email=f'{sub}@example.com', full_name=sub.title(), role=role,
                 company_id=company.id, phone_number=phone)
        db.session.add(u)
        return u

    s.owner = user('owner', 'owner')
    s.manager = user('manager', 'manager', phone='+15550000002')
    s.dispatcher = user('dispatcher', 'dispatcher')
    s.driver_user = user('driveruser', 'driver')
    s.outsider = user('outsider', 'manager', company=s.other_company)
    db.session.flush()

    s.truck = Truck(company_id=s.company.id, truck_number='T-100', make='Freightliner')
    db.session.add(s.truck)
    db.session.flush()

    s.driver = Driver(company_id=s.company.id, user_id=s.driver_user.id, truck_id=s.truck.id,
                      name='Dana Driver', phone='+15550000001', status='active')
    s.driver2 = Driver(company_id=s.company.id, name='Sam Second', status='pending')
    s.other_driver = Driver(company_id=s.other_company.id, name='Rita Rival', status='active')
    s.customer = Customer(company_id=s.company.id, name='Big Box Retail')
    s.vendor = Vendor(company_id=s.company.id, name='Diesel Depot')
    db.session.add_all([s.driver, s.driver2, s.other_driver, s.customer, s.vendor])
    db.session.commit()

    seed_subscription_plans()
    return s
