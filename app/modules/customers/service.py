"""
Servicios de negocio para el módulo de Clientes

- CRUD de clientes para administradores
- Perfil propio del cliente en el portal (upsert)
- Resolución del cliente a partir del usuario autenticado

La relación usuario ↔ perfil es uno a uno por organización y se valida al
escribir; la lectura resuelve siempre por user_id, nunca por coincidencia de email.
"""

import logging
from typing import Optional
from uuid import UUID

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.common.exceptions import BillingError, ConflictError, NotFoundError
from app.modules.auth.models import User
from app.modules.customers.models import Customer
from app.modules.customers.schemas import (
    CustomerCreate, CustomerUpdate, CustomerProfileUpdate, CustomerList
)

logger = logging.getLogger(__name__)


class ProfileRequiredError(BillingError):
    code = "PROFILE_REQUIRED"


def _address_dict(address) -> Optional[dict]:
    return address.model_dump() if address is not None else None


class CustomerService:
    """Servicio principal para gestión de clientes"""

    def __init__(self, db: Session):
        self.db = db

    def _ensure_unique(self, tenant_id: UUID, email: Optional[str], user_id: Optional[UUID],
                       exclude_id: Optional[UUID] = None) -> None:
        """Validar unicidad de email y usuario dentro de la organización."""
        if email:
            query = self.db.query(Customer).filter(
                Customer.tenant_id == tenant_id,
                Customer.email == email
            )
            if exclude_id:
                query = query.filter(Customer.id != exclude_id)
            if query.first():
                raise ConflictError(f"Ya existe un cliente con el email {email}")

        if user_id:
            query = self.db.query(Customer).filter(
                Customer.tenant_id == tenant_id,
                Customer.user_id == user_id
            )
            if exclude_id:
                query = query.filter(Customer.id != exclude_id)
            if query.first():
                raise ConflictError("El usuario ya tiene un perfil de cliente en esta organización")

    def _commit(self, customer: Customer) -> Customer:
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise ConflictError("El perfil de cliente viola la unicidad de email o usuario")
        self.db.refresh(customer)
        return customer

    def create_customer(self, customer_data: CustomerCreate, tenant_id: UUID) -> Customer:
        """Crear cliente (administrador)"""
        if customer_data.user_id:
            user = self.db.query(User).filter(User.id == customer_data.user_id).first()
            if not user:
                raise NotFoundError("Usuario", customer_data.user_id)

        self._ensure_unique(tenant_id, customer_data.email, customer_data.user_id)

        customer = Customer(
            tenant_id=tenant_id,
            name=customer_data.name,
            display_name=customer_data.display_name,
            email=customer_data.email,
            phone=customer_data.phone,
            company_name=customer_data.company_name,
            customer_type=customer_data.customer_type.value,
            billing_address=_address_dict(customer_data.billing_address),
            shipping_address=_address_dict(customer_data.shipping_address or customer_data.billing_address),
            gstin=customer_data.gstin,
            place_of_supply=customer_data.place_of_supply,
            notes=customer_data.notes,
            user_id=customer_data.user_id
        )
        self.db.add(customer)
        return self._commit(customer)

    def get_customers(self, tenant_id: UUID, search: Optional[str] = None,
                      limit: int = 100, offset: int = 0) -> CustomerList:
        """Listar clientes con búsqueda por nombre, email o empresa"""
        query = self.db.query(Customer).filter(
            Customer.tenant_id == tenant_id,
            Customer.deleted_at.is_(None)
        )
        if search:
            pattern = f"%{search}%"
            query = query.filter(or_(
                Customer.name.ilike(pattern),
                Customer.email.ilike(pattern),
                Customer.company_name.ilike(pattern)
            ))

        total = query.count()
        customers = query.order_by(Customer.name).offset(offset).limit(limit).all()
        return CustomerList(items=customers, total=total, limit=limit, offset=offset)

    def get_customer_by_id(self, customer_id: UUID, tenant_id: UUID) -> Customer:
        customer = self.db.query(Customer).filter(
            Customer.id == customer_id,
            Customer.tenant_id == tenant_id,
            Customer.deleted_at.is_(None)
        ).first()
        if not customer:
            raise NotFoundError("Cliente", customer_id)
        return customer

    def update_customer(self, customer_id: UUID, update: CustomerUpdate, tenant_id: UUID) -> Customer:
        """Actualizar cliente (administrador)"""
        customer = self.get_customer_by_id(customer_id, tenant_id)
        data = update.model_dump(exclude_unset=True)

        if "email" in data and data["email"]:
            data["email"] = data["email"].lower()
            self._ensure_unique(tenant_id, data["email"], None, exclude_id=customer.id)

        for field in ("billing_address", "shipping_address"):
            if field in data:
                data[field] = _address_dict(getattr(update, field))
        if "customer_type" in data and data["customer_type"] is not None:
            data["customer_type"] = update.customer_type.value

        for field, value in data.items():
            setattr(customer, field, value)

        return self._commit(customer)

    def find_customer_for_user(self, user_id: UUID, tenant_id: UUID) -> Optional[Customer]:
        return self.db.query(Customer).filter(
            Customer.tenant_id == tenant_id,
            Customer.user_id == user_id,
            Customer.deleted_at.is_(None)
        ).first()

    def require_customer_for_user(self, user_id: UUID, tenant_id: UUID) -> Customer:
        """Perfil del usuario del portal; error si aún no lo ha completado."""
        customer = self.find_customer_for_user(user_id, tenant_id)
        if not customer:
            raise ProfileRequiredError("Completa tu perfil primero")
        return customer

    def upsert_profile(self, user_id: UUID, email: str, tenant_id: UUID,
                       profile: CustomerProfileUpdate) -> Customer:
        """
        Crear o actualizar el perfil del cliente autenticado.

        El email siempre se toma de la cuenta de usuario. Si existe un cliente
        creado por el administrador con ese email y sin usuario vinculado, se
        vincula en lugar de crear un duplicado.
        """
        customer = self.find_customer_for_user(user_id, tenant_id)

        if customer is None:
            customer = self.db.query(Customer).filter(
                Customer.tenant_id == tenant_id,
                Customer.email == email,
                Customer.deleted_at.is_(None)
            ).first()
            if customer is not None and customer.user_id is not None:
                raise ConflictError("El email ya está asociado a otro perfil de cliente")

        if customer is None:
            customer = Customer(tenant_id=tenant_id, email=email)
            self.db.add(customer)
            logger.info(f"Creating customer profile for user {user_id}")

        billing = _address_dict(profile.billing_address)
        customer.user_id = user_id
        customer.name = profile.name
        customer.display_name = profile.display_name
        customer.phone = profile.phone
        customer.company_name = profile.company_name
        customer.customer_type = profile.customer_type.value
        customer.billing_address = billing
        customer.shipping_address = _address_dict(profile.shipping_address) or billing
        customer.gstin = profile.gstin
        customer.place_of_supply = profile.place_of_supply

        return self._commit(customer)


def get_portal_customer(db: Session, auth_context) -> Customer:
    """Atajo para routers del portal."""
    return CustomerService(db).require_customer_for_user(auth_context.user_id, auth_context.tenant_id)
