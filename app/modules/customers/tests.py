"""
Tests para el módulo de Clientes

- CRUD de clientes por el administrador (scoped por organización)
- Perfil del portal: upsert idempotente, vinculación con clientes existentes
- Resolución del cliente autenticado
"""
from uuid import uuid4

from app.modules.auth.utils import create_access_token
from app.modules.customers.models import Customer


PROFILE = {
    "name": "Ravi Kumar",
    "phone": "+91 98450 12345",
    "company_name": "Kumar Traders",
    "billing_address": {"street": "MG Road 12", "city": "Bengaluru", "state": "Karnataka", "pincode": "560001"},
    "gstin": "29ABCDE1234F1Z5",
}


def _portal_headers(user, organization):
    """Usuario cliente sin perfil todavía"""
    token = create_access_token({"sub": str(user.id), "email": user.email})
    return {"Authorization": f"Bearer {token}", "X-Organization-ID": str(organization.id)}


class TestAdminCustomers:

    def test_create_and_get_customer(self, client, admin_headers):
        response = client.post("/customers/", json={
            "name": "Sharma Exports",
            "email": "Accounts@Sharma.in",
            "billing_address": {"city": "Pune", "pincode": "411001"}
        }, headers=admin_headers)

        assert response.status_code == 201
        data = response.json()
        assert data["email"] == "accounts@sharma.in"
        # sin dirección de envío se copia la de facturación
        assert data["shipping_address"]["city"] == "Pune"

        fetched = client.get(f"/customers/{data['id']}", headers=admin_headers)
        assert fetched.status_code == 200
        assert fetched.json()["name"] == "Sharma Exports"

    def test_duplicate_email_conflict(self, client, admin_headers, customer):
        response = client.post("/customers/", json={"name": "Otro", "email": customer.email},
                               headers=admin_headers)
        assert response.status_code == 409
        assert response.json()["code"] == "CONFLICT"

    def test_invalid_gstin(self, client, admin_headers):
        response = client.post("/customers/", json={"name": "X", "gstin": "123"}, headers=admin_headers)
        assert response.status_code == 422

    def test_list_with_search(self, client, admin_headers, customer, other_customer):
        response = client.get("/customers/", params={"search": "meera"}, headers=admin_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        assert data["items"][0]["id"] == str(other_customer.id)

    def test_update_customer(self, client, admin_headers, customer):
        response = client.patch(f"/customers/{customer.id}", json={"display_name": "Ravi K."},
                                headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["display_name"] == "Ravi K."

    def test_unknown_customer(self, client, admin_headers):
        response = client.get(f"/customers/{uuid4()}", headers=admin_headers)
        assert response.status_code == 404

    def test_other_tenant_customer_not_visible(self, client, admin_headers, db_session, other_organization):
        foreign = Customer(tenant_id=other_organization.id, name="Externo", email="x@globex.in")
        db_session.add(foreign)
        db_session.commit()

        response = client.get(f"/customers/{foreign.id}", headers=admin_headers)
        assert response.status_code == 404


class TestPortalProfile:

    def test_profile_required_before_portal_use(self, client, customer_user, organization):
        headers = _portal_headers(customer_user, organization)
        assert client.get("/portal/profile", headers=headers).status_code == 404

        response = client.get("/portal/invoices", headers=headers)
        assert response.status_code == 400
        assert response.json()["code"] == "PROFILE_REQUIRED"

    def test_upsert_creates_then_updates_single_profile(self, client, customer_user, organization, db_session):
        headers = _portal_headers(customer_user, organization)
        first = client.put("/portal/profile", json=PROFILE, headers=headers)
        assert first.status_code == 200
        assert first.json()["email"] == customer_user.email
        assert first.json()["user_id"] == str(customer_user.id)

        second = client.put("/portal/profile", json={**PROFILE, "company_name": "Kumar & Sons"}, headers=headers)
        assert second.status_code == 200
        assert second.json()["id"] == first.json()["id"]
        assert second.json()["company_name"] == "Kumar & Sons"

        count = db_session.query(Customer).filter(Customer.user_id == customer_user.id).count()
        assert count == 1

    def test_upsert_links_admin_created_customer(self, client, admin_headers, customer_user, organization):
        created = client.post("/customers/", json={"name": "Ravi", "email": customer_user.email},
                              headers=admin_headers).json()

        headers = _portal_headers(customer_user, organization)
        response = client.put("/portal/profile", json=PROFILE, headers=headers)
        assert response.status_code == 200
        assert response.json()["id"] == created["id"]

    def test_get_own_profile(self, client, customer_headers, customer):
        response = client.get("/portal/profile", headers=customer_headers)
        assert response.status_code == 200
        assert response.json()["id"] == str(customer.id)
