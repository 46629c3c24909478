"""
Routers del módulo de Clientes

- /customers: gestión de clientes por administradores
- /portal/profile: perfil propio del cliente autenticado
"""

from fastapi import APIRouter, Depends, status, Query
from sqlalchemy.orm import Session
from typing import Optional
from uuid import UUID

from app.database.database import get_db
from app.common.exceptions import NotFoundError
from app.modules.auth.dependencies import AuthDependencies
from app.modules.customers.service import CustomerService
from app.modules.customers.schemas import (
    CustomerCreate, CustomerUpdate, CustomerOut, CustomerList, CustomerProfileUpdate
)

router = APIRouter(
    prefix="/customers",
    tags=["Customers"],
    responses={404: {"description": "Not found"}}
)

portal_router = APIRouter(prefix="/portal/profile", tags=["Customer Portal"])


@router.post("/", response_model=CustomerOut, status_code=status.HTTP_201_CREATED)
def create_customer(
    customer_data: CustomerCreate,
    db: Session = Depends(get_db),
    auth_context = Depends(AuthDependencies.require_admin())
):
    """Crear un cliente (opcionalmente vinculado a un usuario del portal)"""
    return CustomerService(db).create_customer(customer_data, auth_context.tenant_id)


@router.get("/", response_model=CustomerList)
def list_customers(
    search: Optional[str] = Query(None, description="Buscar por nombre, email o empresa"),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    auth_context = Depends(AuthDependencies.require_admin())
):
    return CustomerService(db).get_customers(auth_context.tenant_id, search, limit, offset)


@router.get("/{customer_id}", response_model=CustomerOut)
def get_customer(
    customer_id: UUID,
    db: Session = Depends(get_db),
    auth_context = Depends(AuthDependencies.require_admin())
):
    return CustomerService(db).get_customer_by_id(customer_id, auth_context.tenant_id)


@router.patch("/{customer_id}", response_model=CustomerOut)
def update_customer(
    customer_id: UUID,
    update: CustomerUpdate,
    db: Session = Depends(get_db),
    auth_context = Depends(AuthDependencies.require_admin())
):
    return CustomerService(db).update_customer(customer_id, update, auth_context.tenant_id)


@portal_router.get("", response_model=CustomerOut)
def get_my_profile(
    db: Session = Depends(get_db),
    auth_context = Depends(AuthDependencies.require_customer())
):
    """Perfil del cliente autenticado"""
    customer = CustomerService(db).find_customer_for_user(auth_context.user_id, auth_context.tenant_id)
    if not customer:
        raise NotFoundError("Perfil")
    return customer


@portal_router.put("", response_model=CustomerOut)
def upsert_my_profile(
    profile: CustomerProfileUpdate,
    db: Session = Depends(get_db),
    auth_context = Depends(AuthDependencies.require_customer())
):
    """
    Crear o actualizar el perfil del cliente autenticado.

    El email se toma de la cuenta; nunca se crea un segundo perfil para el mismo usuario.
    """
    return CustomerService(db).upsert_profile(
        auth_context.user_id, auth_context.email, auth_context.tenant_id, profile
    )
