"""
Tests para el módulo de Autenticación

- Creación de organización con su super_admin
- Registro de clientes y login
- Contexto de autenticación y control de roles por organización
"""
from uuid import uuid4


class TestOrganizationSignup:

    def test_create_organization_returns_admin_token(self, client):
        response = client.post("/auth/organizations", json={
            "name": "Initech",
            "currency": "inr",
            "admin": {"email": "Owner@Initech.in", "name": "Owner"},
            "admin_password": "supersecret1"
        })

        assert response.status_code == 201
        data = response.json()
        assert data["access_token"]
        assert data["user"]["email"] == "owner@initech.in"
        assert len(data["organizations"]) == 1
        assert data["organizations"][0]["role"] == "super_admin"

    def test_duplicate_admin_email_rejected(self, client, admin_user):
        response = client.post("/auth/organizations", json={
            "name": "Otra",
            "admin": {"email": admin_user.email, "name": "Otro"},
            "admin_password": "supersecret1"
        })
        assert response.status_code == 400


class TestRegisterAndLogin:

    def test_register_customer_and_login(self, client, organization):
        response = client.post("/auth/register", json={
            "email": "nuevo@example.in",
            "name": "Nuevo Cliente",
            "password": "clave-segura",
            "organization_id": str(organization.id)
        })
        assert response.status_code == 201

        login = client.post("/auth/login", json={"email": "nuevo@example.in", "password": "clave-segura"})
        assert login.status_code == 200
        orgs = login.json()["organizations"]
        assert orgs[0]["organization_id"] == str(organization.id)
        assert orgs[0]["role"] == "customer"

    def test_register_unknown_organization(self, client):
        response = client.post("/auth/register", json={
            "email": "nadie@example.in",
            "name": "Nadie",
            "password": "clave-segura",
            "organization_id": str(uuid4())
        })
        assert response.status_code == 404

    def test_login_wrong_password(self, client, customer_user):
        response = client.post("/auth/login", json={"email": customer_user.email, "password": "incorrecta"})
        assert response.status_code == 401

    def test_login_is_case_insensitive_on_email(self, client, customer_user):
        response = client.post("/auth/login", json={"email": "RAVI@example.in", "password": "password123"})
        assert response.status_code == 200


class TestAuthContext:

    def test_context_includes_role(self, client, admin_headers, organization):
        response = client.get("/auth/context", headers=admin_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["tenant_id"] == str(organization.id)
        assert data["user_role"] == "super_admin"

    def test_invalid_token(self, client, organization):
        response = client.get("/auth/context", headers={
            "Authorization": "Bearer no-es-un-token",
            "X-Organization-ID": str(organization.id)
        })
        assert response.status_code == 401

    def test_missing_tenant_header(self, client, admin_headers):
        headers = {"Authorization": admin_headers["Authorization"]}
        response = client.get("/invoices/", headers=headers)
        assert response.status_code == 400
        assert response.json()["code"] == "TENANT_REQUIRED"

    def test_malformed_tenant_header(self, client, admin_headers):
        headers = {**admin_headers, "X-Organization-ID": "acme"}
        response = client.get("/invoices/", headers=headers)
        assert response.status_code == 400
        assert response.json()["code"] == "TENANT_REQUIRED"
        assert response.json()["context"]["value"] == "acme"

    def test_public_paths_skip_tenant(self, client):
        assert client.get("/health").status_code == 200
        assert client.get("/").status_code == 200

    def test_tenant_echoed_in_response(self, client, admin_headers, organization):
        response = client.get("/invoices/", headers=admin_headers)
        assert response.status_code == 200
        assert response.headers["X-Tenant-ID"] == str(organization.id)

    def test_foreign_organization_forbidden(self, client, admin_headers, other_organization):
        headers = {**admin_headers, "X-Organization-ID": str(other_organization.id)}
        response = client.get("/invoices/", headers=headers)
        assert response.status_code == 403

    def test_customer_cannot_use_admin_endpoints(self, client, customer_headers):
        response = client.get("/invoices/", headers=customer_headers)
        assert response.status_code == 403

    def test_admin_cannot_use_portal_endpoints(self, client, admin_headers):
        response = client.get("/portal/invoices", headers=admin_headers)
        assert response.status_code == 403
