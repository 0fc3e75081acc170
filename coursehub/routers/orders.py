from typing import Optional

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from .. import models, schemas
from ..database import get_db
from ..pagination import page_params
from ..security import get_current_user, require_role
from ..services import orders as order_service

router = APIRouter(prefix="/orders", tags=["orders"])
admin_only = require_role("admin")


@router.post("", response_model=schemas.OrderOut, status_code=status.HTTP_201_CREATED)
def create_order(body: schemas.OrderCreate, db: Session = Depends(get_db),
                 current_user: models.User = Depends(get_current_user)):
    return order_service.create_order(db, current_user, body)


@router.get("", response_model=schemas.Page[schemas.OrderOut])
def list_orders(user_id: Optional[int] = None, status: Optional[str] = None,
                payment_method: Optional[str] = None, page: dict = Depends(page_params),
                db: Session = Depends(get_db), current_user: models.User = Depends(get_current_user)):
    filters = {"user_id": user_id, "status": status, "payment_method": payment_method}
    return order_service.query_orders(db, filters, page, current_user)


@router.get("/my", response_model=schemas.Page[schemas.OrderOut])
def my_orders(page: dict = Depends(page_params), db: Session = Depends(get_db),
              current_user: models.User = Depends(get_current_user)):
    return order_service.orders_by_user(db, current_user.id, current_user, page)


@router.get("/stats")
def order_stats(db: Session = Depends(get_db), _: models.User = Depends(admin_only)):
    return order_service.order_stats(db)


@router.get("/user/{user_id}", response_model=schemas.Page[schemas.OrderOut])
def orders_by_user(user_id: int, page: dict = Depends(page_params), db: Session = Depends(get_db),
                   current_user: models.User = Depends(get_current_user)):
    return order_service.orders_by_user(db, user_id, current_user, page)


@router.get("/code/{code}", response_model=schemas.OrderOut)
def read_order_by_code(code: str, db: Session = Depends(get_db),
                       current_user: models.User = Depends(get_current_user)):
    return order_service.get_order_by_code(db, code, current_user)


@router.get("/{order_id}", response_model=schemas.OrderOut)
def read_order(order_id: int, db: Session = Depends(get_db),
               current_user: models.User = Depends(get_current_user)):
    return order_service.get_order(db, order_id, current_user)


@router.patch("/{order_id}", response_model=schemas.OrderOut)
def update_order(order_id: int, body: schemas.OrderUpdate, db: Session = Depends(get_db),
                 _: models.User = Depends(admin_only)):
    return order_service.update_order(db, order_id, body)


@router.delete("/{order_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_order(order_id: int, db: Session = Depends(get_db), _: models.User = Depends(admin_only)):
    order_service.delete_order(db, order_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{order_id}/pay", response_model=schemas.OrderOut)
def pay_order(order_id: int, db: Session = Depends(get_db),
              current_user: models.User = Depends(get_current_user)):
    return order_service.pay_with_wallet(db, order_id, current_user)


@router.post("/{order_id}/process", response_model=schemas.OrderOut)
def process_payment(order_id: int, db: Session = Depends(get_db), _: models.User = Depends(admin_only)):
    return order_service.process_payment(db, order_id)


@router.post("/{order_id}/cancel", response_model=schemas.OrderOut)
def cancel_order(order_id: int, db: Session = Depends(get_db),
                 current_user: models.User = Depends(get_current_user)):
    return order_service.cancel_order(db, order_id, current_user)


@router.post("/{order_id}/refund", response_model=schemas.OrderOut)
def refund_order(order_id: int, body: schemas.RefundIn, db: Session = Depends(get_db),
                 _: models.User = Depends(admin_only)):
    return order_service.refund_order(db, order_id, body)
