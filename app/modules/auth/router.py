from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.database.database import get_db
from app.modules.auth.service import AuthService
from app.modules.auth.dependencies import get_auth_context
from app.modules.auth.schemas import (
    OrganizationCreate, UserCreate, UserLogin, UserOut, TokenResponse, AuthContext
)

auth_router = APIRouter()


@auth_router.post("/organizations", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
def create_organization(data: OrganizationCreate, db: Session = Depends(get_db)):
    """
    Crear una organización con su primer administrador.
    Retorna el token del administrador.
    """
    auth_service = AuthService(db)
    auth_service.create_organization(data)
    return auth_service.login(data.admin.email, data.admin_password)


@auth_router.post("/register", response_model=UserOut, status_code=status.HTTP_201_CREATED)
def register(user_data: UserCreate, db: Session = Depends(get_db)):
    """
    Registrar un usuario cliente en una organización.
    """
    return AuthService(db).register_customer(user_data)


@auth_router.post("/login", response_model=TokenResponse)
def login(credentials: UserLogin, db: Session = Depends(get_db)):
    """
    Login de usuario. Retorna token de acceso y lista de organizaciones.
    """
    return AuthService(db).login(credentials.email, credentials.password)


@auth_router.get("/context", response_model=AuthContext)
def get_context(auth_context: AuthContext = Depends(get_auth_context)):
    """
    Obtener contexto de autenticación (usuario, organización y rol).
    """
    return auth_context
