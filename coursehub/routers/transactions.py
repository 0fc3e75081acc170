from typing import Optional

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from .. import models, schemas
from ..database import get_db
from ..pagination import page_params
from ..security import get_current_user, require_role
from ..services import orders as order_service
from ..services import wallet as wallet_service

router = APIRouter(prefix="/transactions", tags=["transactions"])
admin_only = require_role("admin")


@router.post("/deposit", response_model=schemas.TransactionOut, status_code=status.HTTP_201_CREATED)
def deposit(body: schemas.AmountIn, db: Session = Depends(get_db),
            current_user: models.User = Depends(get_current_user)):
    return wallet_service.deposit(db, current_user, body)


@router.post("/withdraw", response_model=schemas.TransactionOut, status_code=status.HTTP_201_CREATED)
def withdraw(body: schemas.AmountIn, db: Session = Depends(get_db),
             current_user: models.User = Depends(get_current_user)):
    return wallet_service.withdraw(db, current_user, body)


@router.post("/purchase", response_model=schemas.OrderOut, status_code=status.HTTP_201_CREATED)
def purchase(body: schemas.PurchaseIn, db: Session = Depends(get_db),
             current_user: models.User = Depends(get_current_user)):
    return order_service.purchase_course(db, current_user, body.course_id)


@router.get("/balance", response_model=schemas.BalanceOut)
def balance(db: Session = Depends(get_db), current_user: models.User = Depends(get_current_user)):
    return wallet_service.get_balance(db, current_user)


@router.get("/summary")
def summary(db: Session = Depends(get_db), current_user: models.User = Depends(get_current_user)):
    return wallet_service.transaction_summary(db, current_user)


@router.get("/stats")
def transaction_stats(db: Session = Depends(get_db), _: models.User = Depends(admin_only)):
    return wallet_service.transaction_stats(db)


@router.post("", response_model=schemas.TransactionOut, status_code=status.HTTP_201_CREATED)
def create_transaction(body: schemas.TransactionCreate, db: Session = Depends(get_db),
                       _: models.User = Depends(admin_only)):
    return wallet_service.admin_create(db, body)


@router.get("", response_model=schemas.Page[schemas.TransactionOut])
def list_transactions(user_id: Optional[int] = None, type: Optional[str] = None,
                      page: dict = Depends(page_params), db: Session = Depends(get_db),
                      current_user: models.User = Depends(get_current_user)):
    return wallet_service.query_transactions(db, {"user_id": user_id, "type": type}, page, current_user)


@router.get("/my", response_model=schemas.Page[schemas.TransactionOut])
def my_transactions(page: dict = Depends(page_params), db: Session = Depends(get_db),
                    current_user: models.User = Depends(get_current_user)):
    return wallet_service.transactions_by_user(db, current_user.id, current_user, page)


@router.get("/user/{user_id}", response_model=schemas.Page[schemas.TransactionOut])
def transactions_by_user(user_id: int, page: dict = Depends(page_params), db: Session = Depends(get_db),
                         current_user: models.User = Depends(get_current_user)):
    return wallet_service.transactions_by_user(db, user_id, current_user, page)


@router.get("/{transaction_id}", response_model=schemas.TransactionOut)
def read_transaction(transaction_id: int, db: Session = Depends(get_db),
                     current_user: models.User = Depends(get_current_user)):
    return wallet_service.get_transaction(db, transaction_id, current_user)


@router.delete("/{transaction_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_transaction(transaction_id: int, db: Session = Depends(get_db), _: models.User = Depends(admin_only)):
    wallet_service.delete_transaction(db, transaction_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
