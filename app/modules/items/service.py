"""
Servicios del catálogo de items y de las solicitudes de items de clientes
"""
from fastapi import HTTPException, status
from sqlalchemy.orm import Session, selectinload
from sqlalchemy import or_, desc
from typing import Any, Dict, Optional
from uuid import UUID
import logging

from app.common.exceptions import BillingError, ConflictError, NotFoundError
from app.modules.customers.models import Customer
from app.modules.items.models import Item, ItemRequest, ItemRequestStatus
from app.modules.items.schemas import ItemCreate, ItemUpdate, ItemRequestCreate, ItemRequestStatusUpdate
from app.modules.sales.schemas import LineItemCreate
from app.modules.sales.service import SalesService

logger = logging.getLogger(__name__)


class ItemService:
    """Catálogo de productos y servicios"""

    def __init__(self, db: Session):
        self.db = db

    def create_item(self, item_data: ItemCreate, tenant_id: UUID) -> Item:
        item = Item(tenant_id=tenant_id, **item_data.model_dump())
        self.db.add(item)
        self.db.commit()
        self.db.refresh(item)
        return item

    def get_item(self, item_id: UUID, tenant_id: UUID) -> Item:
        item = self.db.query(Item).filter(Item.id == item_id, Item.tenant_id == tenant_id).first()
        if not item:
            raise NotFoundError("Item", item_id)
        return item

    def list_items(self, tenant_id: UUID, search: Optional[str] = None, is_active: Optional[bool] = True,
                   limit: int = 100, offset: int = 0) -> Dict[str, Any]:
        query = self.db.query(Item).filter(Item.tenant_id == tenant_id)
        if is_active is not None:
            query = query.filter(Item.is_active == is_active)
        if search:
            query = query.filter(or_(
                Item.name.ilike(f"%{search}%"),
                Item.description.ilike(f"%{search}%")
            ))
        total = query.count()
        items = query.order_by(Item.name).offset(offset).limit(limit).all()
        return {"items": items, "total": total, "limit": limit, "offset": offset}

    def update_item(self, item_id: UUID, update: ItemUpdate, tenant_id: UUID) -> Item:
        item = self.get_item(item_id, tenant_id)
        for field, value in update.model_dump(exclude_unset=True).items():
            setattr(item, field, value)
        self.db.commit()
        self.db.refresh(item)
        return item

    def deactivate_item(self, item_id: UUID, tenant_id: UUID) -> Item:
        """Los items no se eliminan: las líneas de documentos los referencian"""
        item = self.get_item(item_id, tenant_id)
        item.is_active = False
        self.db.commit()
        self.db.refresh(item)
        return item


class ItemRequestService:
    """Solicitudes de items que aún no están en el catálogo"""

    def __init__(self, db: Session):
        self.db = db

    def submit_request(self, customer: Customer, data: ItemRequestCreate) -> Dict[str, Any]:
        """
        Registrar la solicitud (Pending) y los borradores de cotización y/o
        orden de venta con una línea a precio 0 para que el admin la cotice.
        """
        try:
            item_request = ItemRequest(
                tenant_id=customer.tenant_id,
                customer_id=customer.id,
                item_name=data.item_name,
                description=data.description,
                quantity=data.quantity,
                unit=data.unit,
                request_type=data.request_type,
                status=ItemRequestStatus.PENDING
            )
            self.db.add(item_request)
            self.db.flush()

            line = LineItemCreate(
                name=data.item_name,
                description=data.description,
                unit=data.unit,
                quantity=data.quantity,
                rate=0
            )
            quote, order = SalesService(self.db).create_drafts(
                customer, data.request_type, [line],
                notes=f"Solicitud de item: {data.item_name}",
                item_request_id=item_request.id
            )

            self.db.commit()
            self.db.refresh(item_request)
            logger.info(f"Item request '{data.item_name}' submitted by customer {customer.id}")

            return {
                "request": item_request,
                "quote_id": quote.id if quote else None,
                "quote_number": quote.number if quote else None,
                "sales_order_id": order.id if order else None,
                "sales_order_number": order.number if order else None,
            }

        except (HTTPException, BillingError):
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error submitting item request: {str(e)}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Error registrando solicitud: {str(e)}"
            )

    def list_requests(self, tenant_id: UUID, status_filter: Optional[ItemRequestStatus] = None,
                      customer_id: Optional[UUID] = None) -> list:
        query = self.db.query(ItemRequest).options(selectinload(ItemRequest.customer)).filter(
            ItemRequest.tenant_id == tenant_id
        )
        if status_filter:
            query = query.filter(ItemRequest.status == status_filter)
        if customer_id:
            query = query.filter(ItemRequest.customer_id == customer_id)
        return query.order_by(desc(ItemRequest.created_at)).all()

    def update_status(self, request_id: UUID, tenant_id: UUID, update: ItemRequestStatusUpdate) -> ItemRequest:
        """
        Aprobar o rechazar una solicitud pendiente.

        Al aprobar se crea el item en el catálogo con el nombre solicitado.
        """
        item_request = self.db.query(ItemRequest).filter(
            ItemRequest.id == request_id,
            ItemRequest.tenant_id == tenant_id
        ).with_for_update().first()
        if not item_request:
            raise NotFoundError("Solicitud de item", request_id)

        if item_request.status != ItemRequestStatus.PENDING:
            raise ConflictError(f"La solicitud ya fue {item_request.status.value}")
        if update.status == ItemRequestStatus.PENDING:
            raise ConflictError("La solicitud ya está pendiente")

        if update.status == ItemRequestStatus.APPROVED:
            item = Item(
                tenant_id=tenant_id,
                name=item_request.item_name,
                description=item_request.description,
                unit=item_request.unit,
                rate=update.rate or 0
            )
            self.db.add(item)
            self.db.flush()
            item_request.item_id = item.id
        else:
            item_request.rejection_reason = update.rejection_reason

        item_request.status = update.status
        self.db.commit()
        self.db.refresh(item_request)
        logger.info(f"Item request {item_request.id} {item_request.status.value}")
        return item_request
