"""
Dashboard del portal de clientes
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.config import settings
from app.database.database import get_db
from app.modules.auth.dependencies import AuthDependencies
from app.modules.auth.models import Organization
from app.modules.customers.service import get_portal_customer
from app.modules.dashboard.schemas import CustomerDashboard
from app.modules.dashboard.service import CustomerDashboardService

router = APIRouter(prefix="/portal/dashboard", tags=["Customer Portal"])


@router.get("", response_model=CustomerDashboard)
def get_dashboard(
    db: Session = Depends(get_db),
    auth_context = Depends(AuthDependencies.require_customer())
):
    """Saldo pendiente, facturas vencidas, pagos en verificación y documentos abiertos"""
    customer = get_portal_customer(db, auth_context)
    organization = db.get(Organization, customer.tenant_id)
    currency = organization.currency if organization else settings.DEFAULT_CURRENCY
    return CustomerDashboardService(db, customer).get_summary(currency)
