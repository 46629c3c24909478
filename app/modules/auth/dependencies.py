"""
Dependencias de autenticación para FastAPI.
"""
from uuid import UUID
from fastapi import Depends, HTTPException, status, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session, selectinload
import jwt

from app.database.database import get_db
from app.modules.auth.models import User, UserOrganization, ADMIN_ROLES, CUSTOMER_ROLES
from app.modules.auth.schemas import AuthContext
from app.modules.auth.utils import decode_token

# Security scheme
security = HTTPBearer()

class AuthDependencies:
    """Dependencias de autenticación reutilizables."""

    @staticmethod
    def get_auth_context(
        request: Request,
        credentials: HTTPAuthorizationCredentials = Depends(security),
        db: Session = Depends(get_db)
    ) -> AuthContext:
        """
        Obtener contexto de autenticación completo con tenant.
        El tenant viene del header X-Organization-ID (puesto en request.state por TenantMiddleware).
        """
        credentials_exception = HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="No se pudieron validar las credenciales",
            headers={"WWW-Authenticate": "Bearer"},
        )

        try:
            payload = decode_token(credentials.credentials)
            user_id: str = payload.get("sub")
            if user_id is None:
                raise credentials_exception
        except jwt.PyJWTError:
            raise credentials_exception

        user = db.query(User).options(
            selectinload(User.user_organizations)
        ).filter(User.id == UUID(user_id)).first()

        if user is None or not user.is_active:
            raise credentials_exception

        tenant_id = getattr(request.state, 'tenant_id', None)
        if tenant_id is None:
            header = request.headers.get("X-Organization-ID")
            if header:
                try:
                    tenant_id = UUID(header)
                except ValueError:
                    raise HTTPException(
                        status_code=status.HTTP_400_BAD_REQUEST,
                        detail="ID de organización inválido"
                    )

        user_role = None
        if tenant_id is not None:
            membership = next(
                (uo for uo in user.user_organizations
                 if uo.organization_id == tenant_id and uo.is_active),
                None
            )
            if not membership:
                raise HTTPException(
                    status_code=status.HTTP_403_FORBIDDEN,
                    detail="No tienes acceso a esta organización"
                )
            user_role = membership.role

        return AuthContext(
            user_id=user.id,
            email=user.email,
            tenant_id=tenant_id,
            user_role=user_role
        )

    @staticmethod
    def require_role(allowed_roles: list[str]):
        """
        Dependencia para requerir roles específicos.
        """
        def role_checker(auth_context: AuthContext = Depends(AuthDependencies.get_auth_context)):
            if not auth_context.tenant_id:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Se requiere seleccionar una organización"
                )

            if auth_context.user_role not in allowed_roles:
                raise HTTPException(
                    status_code=status.HTTP_403_FORBIDDEN,
                    detail=f"Se requiere uno de estos roles: {', '.join(allowed_roles)}"
                )

            return auth_context
        return role_checker

    @staticmethod
    def require_admin():
        """Dependencia para requerir rol de super_admin o admin."""
        return AuthDependencies.require_role(ADMIN_ROLES)

    @staticmethod
    def require_customer():
        """Dependencia para endpoints del portal de clientes."""
        return AuthDependencies.require_role(CUSTOMER_ROLES)

# Instancias de dependencias
get_auth_context = AuthDependencies.get_auth_context
require_admin = AuthDependencies.require_admin
require_customer = AuthDependencies.require_customer
