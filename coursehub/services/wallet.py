"""Wallet balance moves and the transaction ledger.

Every balance change goes through ``credit``/``debit``, which update the user
row in SQL and read the new balance back, so ``balance_after`` always matches
what was written. Callers own the commit.
"""
import logging

from fastapi import status
from sqlalchemy import func
from sqlalchemy.orm import Session

from .. import models, schemas
from ..errors import ApiError
from ..pagination import paginate
from .common import ensure_owner_or_admin, get_or_404

logger = logging.getLogger(__name__)

CREDIT_TYPES = ("deposit", "refund")
DEBIT_TYPES = ("payment", "withdrawal")


def current_balance(db: Session, user_id: int) -> float:
    balance = db.query(models.User.wallet_balance).filter(models.User.id == user_id).scalar()
    if balance is None:
        raise ApiError(status.HTTP_404_NOT_FOUND, "User not found")
    return balance


def credit(db: Session, user_id: int, amount: float) -> float:
    updated = (
        db.query(models.User)
        .filter(models.User.id == user_id)
        .update({models.User.wallet_balance: models.User.wallet_balance + amount}, synchronize_session=False)
    )
    if not updated:
        raise ApiError(status.HTTP_404_NOT_FOUND, "User not found")
    return current_balance(db, user_id)


def debit(db: Session, user_id: int, amount: float) -> float:
    """Take ``amount`` off the wallet only if the balance covers it."""
    updated = (
        db.query(models.User)
        .filter(models.User.id == user_id, models.User.wallet_balance >= amount)
        .update({models.User.wallet_balance: models.User.wallet_balance - amount}, synchronize_session=False)
    )
    if not updated:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "Insufficient wallet balance")
    return current_balance(db, user_id)


def record(db: Session, user_id: int, type: str, amount: float, balance_after: float,
           reference_id: int = None, description: str = "", wallet_moved: bool = True) -> models.Transaction:
    tx = models.Transaction(
        user_id=user_id,
        type=type,
        amount=amount,
        balance_after=balance_after,
        reference_id=reference_id,
        description=description,
        wallet_moved=wallet_moved,
    )
    db.add(tx)
    return tx


def _move(db: Session, user_id: int, type: str, amount: float) -> float:
    return credit(db, user_id, amount) if type in CREDIT_TYPES else debit(db, user_id, amount)


def deposit(db: Session, user: models.User, body: schemas.AmountIn) -> models.Transaction:
    balance = credit(db, user.id, body.amount)
    tx = record(db, user.id, "deposit", body.amount, balance, description=body.description or "Wallet deposit")
    db.commit()
    db.refresh(tx)
    logger.info("User %s deposited %s, balance now %s", user.id, body.amount, balance)
    return tx


def withdraw(db: Session, user: models.User, body: schemas.AmountIn) -> models.Transaction:
    try:
        balance = debit(db, user.id, body.amount)
    except ApiError:
        db.rollback()
        raise
    tx = record(db, user.id, "withdrawal", body.amount, balance,
                description=body.description or "Wallet withdrawal")
    db.commit()
    db.refresh(tx)
    logger.info("User %s withdrew %s, balance now %s", user.id, body.amount, balance)
    return tx


def get_balance(db: Session, user: models.User) -> dict:
    return {"balance": current_balance(db, user.id), "currency": user.wallet_currency}


def admin_create(db: Session, body: schemas.TransactionCreate) -> models.Transaction:
    get_or_404(db, models.User, body.user_id, "User not found")
    try:
        if body.update_wallet:
            balance = _move(db, body.user_id, body.type, body.amount)
        else:
            balance = current_balance(db, body.user_id)
    except ApiError:
        db.rollback()
        raise
    tx = record(db, body.user_id, body.type, body.amount, balance, body.reference_id, body.description,
                wallet_moved=body.update_wallet)
    db.commit()
    db.refresh(tx)
    logger.info("Admin recorded %s of %s for user %s (wallet moved: %s)",
                body.type, body.amount, body.user_id, body.update_wallet)
    return tx


def get_transaction(db: Session, transaction_id: int, user: models.User) -> models.Transaction:
    tx = get_or_404(db, models.Transaction, transaction_id, "Transaction not found")
    ensure_owner_or_admin(user, tx.user_id)
    return tx


def delete_transaction(db: Session, transaction_id: int):
    """Delete a ledger row and undo its effect on the wallet, if it had one."""
    tx = get_or_404(db, models.Transaction, transaction_id, "Transaction not found")
    try:
        if tx.wallet_moved:
            if tx.type in CREDIT_TYPES:
                debit(db, tx.user_id, tx.amount)
            else:
                credit(db, tx.user_id, tx.amount)
    except ApiError:
        db.rollback()
        raise ApiError(status.HTTP_400_BAD_REQUEST, "Cannot reverse transaction: insufficient wallet balance")
    db.delete(tx)
    db.commit()
    logger.info("Transaction %s (%s %s) deleted, wallet reversed: %s", tx.id, tx.type, tx.amount, tx.wallet_moved)


def query_transactions(db: Session, filters: dict, page: dict, user: models.User):
    query = db.query(models.Transaction)
    if user.role != "admin":
        query = query.filter(models.Transaction.user_id == user.id)
    elif filters.get("user_id"):
        query = query.filter(models.Transaction.user_id == filters["user_id"])
    if filters.get("type"):
        query = query.filter(models.Transaction.type == filters["type"])
    return paginate(query, models.Transaction, **page)


def transactions_by_user(db: Session, user_id: int, user: models.User, page: dict):
    ensure_owner_or_admin(user, user_id)
    query = db.query(models.Transaction).filter(models.Transaction.user_id == user_id)
    return paginate(query, models.Transaction, **page)


def _totals(db: Session, user_id: int = None) -> dict:
    query = db.query(models.Transaction.type, func.count(models.Transaction.id), func.sum(models.Transaction.amount))
    if user_id is not None:
        query = query.filter(models.Transaction.user_id == user_id)
    totals = {tx_type: {"count": 0, "amount": 0.0} for tx_type in models.TRANSACTION_TYPES}
    for tx_type, count, amount in query.group_by(models.Transaction.type).all():
        totals[tx_type] = {"count": count, "amount": float(amount or 0)}
    return totals


def transaction_stats(db: Session) -> dict:
    totals = _totals(db)
    return {
        "totalTransactions": sum(item["count"] for item in totals.values()),
        "byType": totals,
        "totalWalletBalance": float(db.query(func.sum(models.User.wallet_balance)).scalar() or 0),
    }


def transaction_summary(db: Session, user: models.User) -> dict:
    totals = _totals(db, user.id)
    return {
        "user_id": user.id,
        "total_deposits": totals["deposit"]["amount"],
        "total_payments": totals["payment"]["amount"],
        "total_refunds": totals["refund"]["amount"],
        "total_withdrawals": totals["withdrawal"]["amount"],
        "transaction_count": sum(item["count"] for item in totals.values()),
        "current_balance": current_balance(db, user.id),
        "currency": user.wallet_currency,
    }
