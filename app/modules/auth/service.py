"""
Servicio de autenticación: organizaciones, registro de usuarios y login.
"""
import logging
from datetime import datetime, timezone
from typing import Tuple

from fastapi import HTTPException, status
from sqlalchemy.orm import Session, selectinload

from app.modules.auth.models import Organization, User, UserOrganization, UserRole
from app.modules.auth.schemas import (
    OrganizationCreate, UserCreate, TokenResponse, UserOut, UserOrganizationOut
)
from app.modules.auth.utils import hash_password, verify_password, create_access_token

logger = logging.getLogger(__name__)


class AuthService:
    def __init__(self, db: Session):
        self.db = db

    def _ensure_email_available(self, email: str) -> None:
        if self.db.query(User).filter(User.email == email.lower()).first():
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="El email ya está registrado"
            )

    def create_organization(self, data: OrganizationCreate) -> Tuple[Organization, User]:
        """Crear organización con su primer administrador (super_admin)."""
        self._ensure_email_available(data.admin.email)

        organization = Organization(
            name=data.name,
            email=data.email,
            currency=data.currency.upper()
        )
        self.db.add(organization)
        self.db.flush()

        admin = User(
            email=data.admin.email,
            name=data.admin.name,
            password=hash_password(data.admin_password),
            is_active=True
        )
        self.db.add(admin)
        self.db.flush()

        self.db.add(UserOrganization(
            user_id=admin.id,
            organization_id=organization.id,
            role=UserRole.SUPER_ADMIN.value
        ))
        self.db.commit()
        self.db.refresh(organization)
        self.db.refresh(admin)

        logger.info(f"Organization {organization.id} created with admin {admin.email}")
        return organization, admin

    def register_customer(self, user_data: UserCreate) -> User:
        """Registrar un usuario cliente dentro de una organización."""
        organization = self.db.query(Organization).filter(
            Organization.id == user_data.organization_id,
            Organization.is_active == True
        ).first()
        if not organization:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Organización no encontrada"
            )

        self._ensure_email_available(user_data.email)

        user = User(
            email=user_data.email,
            name=user_data.name,
            password=hash_password(user_data.password),
            is_active=True
        )
        self.db.add(user)
        self.db.flush()

        self.db.add(UserOrganization(
            user_id=user.id,
            organization_id=organization.id,
            role=UserRole.CUSTOMER.value
        ))
        self.db.commit()
        self.db.refresh(user)
        return user

    def login(self, email: str, password: str) -> TokenResponse:
        """
        Login de usuario con listado de organizaciones.
        """
        user = self.db.query(User).options(
            selectinload(User.user_organizations).selectinload(UserOrganization.organization)
        ).filter(User.email == email.lower()).first()

        if not user or not verify_password(password, user.password):
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Credenciales incorrectas"
            )

        if not user.is_active:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Cuenta inactiva"
            )

        user.last_login = datetime.now(timezone.utc)
        self.db.commit()

        access_token = create_access_token({"sub": str(user.id), "email": user.email})

        organizations = [
            UserOrganizationOut(
                organization_id=uo.organization_id,
                organization_name=uo.organization.name,
                role=UserRole(uo.role),
                is_active=uo.is_active
            )
            for uo in user.user_organizations if uo.is_active
        ]

        return TokenResponse(
            access_token=access_token,
            user=UserOut.model_validate(user),
            organizations=organizations
        )
