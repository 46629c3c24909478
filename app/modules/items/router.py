"""
Routers del catálogo de items y solicitudes de items

- /items: catálogo (admin)
- /item-requests: revisión de solicitudes (admin)
- /portal/item-requests: solicitudes del cliente autenticado
"""
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import List, Optional
from uuid import UUID

from app.database.database import get_db
from app.common.exceptions import ValidationError
from app.modules.auth.dependencies import AuthDependencies
from app.modules.customers.service import get_portal_customer
from app.modules.items.models import ItemRequestStatus
from app.modules.items.schemas import (
    ItemCreate, ItemUpdate, ItemOut, ItemList,
    ItemRequestCreate, ItemRequestStatusUpdate, ItemRequestOut, ItemRequestSubmitted
)
from app.modules.items.service import ItemService, ItemRequestService

router = APIRouter(prefix="/items", tags=["Items"])
requests_router = APIRouter(prefix="/item-requests", tags=["Item Requests"])
portal_router = APIRouter(prefix="/portal/item-requests", tags=["Customer Portal"])


@router.post("/", response_model=ItemOut, status_code=status.HTTP_201_CREATED)
def create_item(
    item_data: ItemCreate,
    db: Session = Depends(get_db),
    auth_context = Depends(AuthDependencies.require_admin())
):
    return ItemService(db).create_item(item_data, auth_context.tenant_id)


@router.get("/", response_model=ItemList)
def list_items(
    search: Optional[str] = Query(None),
    include_inactive: bool = Query(False),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    auth_context = Depends(AuthDependencies.require_admin())
):
    return ItemService(db).list_items(
        auth_context.tenant_id, search, None if include_inactive else True, limit, offset
    )


@router.patch("/{item_id}", response_model=ItemOut)
def update_item(
    item_id: UUID,
    update: ItemUpdate,
    db: Session = Depends(get_db),
    auth_context = Depends(AuthDependencies.require_admin())
):
    return ItemService(db).update_item(item_id, update, auth_context.tenant_id)


@router.delete("/{item_id}", response_model=ItemOut)
def deactivate_item(
    item_id: UUID,
    db: Session = Depends(get_db),
    auth_context = Depends(AuthDependencies.require_admin())
):
    """Desactivar item (soft delete)"""
    return ItemService(db).deactivate_item(item_id, auth_context.tenant_id)


@requests_router.get("/", response_model=List[ItemRequestOut])
def list_item_requests(
    status_filter: Optional[str] = Query("pending", alias="status", description="pending | approved | rejected | all"),
    db: Session = Depends(get_db),
    auth_context = Depends(AuthDependencies.require_admin())
):
    status_value = None
    if status_filter not in (None, "all"):
        try:
            status_value = ItemRequestStatus(status_filter)
        except ValueError:
            raise ValidationError(f"Estado inválido: {status_filter}")
    return ItemRequestService(db).list_requests(auth_context.tenant_id, status_value)


@requests_router.patch("/{request_id}", response_model=ItemRequestOut)
def update_item_request(
    request_id: UUID,
    update: ItemRequestStatusUpdate,
    db: Session = Depends(get_db),
    auth_context = Depends(AuthDependencies.require_admin())
):
    """Aprobar (crea el item en el catálogo) o rechazar una solicitud pendiente"""
    return ItemRequestService(db).update_status(request_id, auth_context.tenant_id, update)


@portal_router.post("", response_model=ItemRequestSubmitted, status_code=status.HTTP_201_CREATED)
def submit_item_request(
    data: ItemRequestCreate,
    db: Session = Depends(get_db),
    auth_context = Depends(AuthDependencies.require_customer())
):
    customer = get_portal_customer(db, auth_context)
    return ItemRequestService(db).submit_request(customer, data)


@portal_router.get("", response_model=List[ItemRequestOut])
def list_my_item_requests(
    db: Session = Depends(get_db),
    auth_context = Depends(AuthDependencies.require_customer())
):
    customer = get_portal_customer(db, auth_context)
    return ItemRequestService(db).list_requests(customer.tenant_id, customer_id=customer.id)
