"""
Fixtures compartidas por los tests de los módulos.

Base de datos SQLite en memoria (una conexión compartida), notificaciones
desactivadas. Cada test arranca con las tablas vacías.
"""
import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENVIRONMENT"] = "test"
os.environ["NOTIFICATIONS_ENABLED"] = "false"

import pytest
from fastapi.testclient import TestClient

from app.main import app
from app.database.database import Base, SessionLocal, sync_engine
from app.modules.auth.models import Organization, User, UserOrganization, UserRole
from app.modules.auth.utils import create_access_token, hash_password
from app.modules.customers.models import Customer

TEST_PASSWORD = "password123"


@pytest.fixture(autouse=True)
def reset_database():
    Base.metadata.drop_all(bind=sync_engine)
    Base.metadata.create_all(bind=sync_engine)
    yield


@pytest.fixture
def db_session():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    return TestClient(app)


def _create_user(db, organization, email, name, role):
    user = User(email=email, name=name, password=hash_password(TEST_PASSWORD), is_active=True)
    db.add(user)
    db.flush()
    db.add(UserOrganization(user_id=user.id, organization_id=organization.id, role=role))
    db.commit()
    db.refresh(user)
    return user


def _headers(user, organization):
    token = create_access_token({"sub": str(user.id), "email": user.email})
    return {
        "Authorization": f"Bearer {token}",
        "X-Organization-ID": str(organization.id),
    }


def _create_customer(db, organization, user, name):
    customer = Customer(
        tenant_id=organization.id,
        name=name,
        email=user.email if user else None,
        user_id=user.id if user else None,
        billing_address={"street": "MG Road 12", "city": "Bengaluru", "state": "Karnataka",
                         "country": "India", "pincode": "560001"},
    )
    db.add(customer)
    db.commit()
    db.refresh(customer)
    return customer


@pytest.fixture
def organization(db_session):
    org = Organization(name="Acme Billing", email="billing@acme.in", currency="INR")
    db_session.add(org)
    db_session.commit()
    db_session.refresh(org)
    return org


@pytest.fixture
def other_organization(db_session):
    org = Organization(name="Globex", email="billing@globex.in", currency="INR")
    db_session.add(org)
    db_session.commit()
    db_session.refresh(org)
    return org


@pytest.fixture
def admin_user(db_session, organization):
    return _create_user(db_session, organization, "admin@acme.in", "Admin", UserRole.SUPER_ADMIN.value)


@pytest.fixture
def customer_user(db_session, organization):
    return _create_user(db_session, organization, "ravi@example.in", "Ravi Kumar", UserRole.CUSTOMER.value)


@pytest.fixture
def other_customer_user(db_session, organization):
    return _create_user(db_session, organization, "meera@example.in", "Meera Shah", UserRole.CUSTOMER.value)


@pytest.fixture
def customer(db_session, organization, customer_user):
    return _create_customer(db_session, organization, customer_user, "Ravi Kumar")


@pytest.fixture
def other_customer(db_session, organization, other_customer_user):
    return _create_customer(db_session, organization, other_customer_user, "Meera Shah")


@pytest.fixture
def admin_headers(admin_user, organization):
    return _headers(admin_user, organization)


@pytest.fixture
def customer_headers(customer_user, organization, customer):
    return _headers(customer_user, organization)


@pytest.fixture
def other_customer_headers(other_customer_user, organization, other_customer):
    return _headers(other_customer_user, organization)


@pytest.fixture
def create_invoice(client, admin_headers):
    """Factory: crea una factura por la API del admin y retorna el JSON"""
    def _create(customer_id, rate="1000.00", quantity="1", status="sent", **extra):
        payload = {
            "customer_id": str(customer_id),
            "status": status,
            "items": [{"name": "Consultoría", "quantity": quantity, "rate": rate}],
            **extra,
        }
        response = client.post("/invoices/", json=payload, headers=admin_headers)
        assert response.status_code == 201, response.text
        return response.json()
    return _create


@pytest.fixture
def submit_payment(client, customer_headers):
    """Factory: el cliente registra un pago con asignaciones"""
    def _submit(amount, allocations=(), headers=None, **extra):
        payload = {
            "amount": str(amount),
            "allocations": [
                {"invoice_id": str(invoice_id), "applied_amount": str(applied)}
                for invoice_id, applied in allocations
            ],
            **extra,
        }
        return client.post("/portal/payments", json=payload, headers=headers or customer_headers)
    return _submit
