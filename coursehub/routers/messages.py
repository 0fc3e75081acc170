from typing import Optional

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from .. import models, schemas
from ..database import get_db
from ..pagination import page_params
from ..security import get_current_user, require_role
from ..services import messages as message_service

router = APIRouter(prefix="/messages", tags=["messages"])


@router.post("", response_model=schemas.MessageOut, status_code=status.HTTP_201_CREATED)
def create_message(body: schemas.MessageCreate, db: Session = Depends(get_db),
                   current_user: models.User = Depends(get_current_user)):
    return message_service.create_message(db, current_user, body)


@router.get("/search", response_model=schemas.Page[schemas.MessageOut])
def search_messages(q: Optional[str] = None, classroom_id: Optional[int] = None, type: Optional[str] = None,
                    page: dict = Depends(page_params), db: Session = Depends(get_db),
                    current_user: models.User = Depends(get_current_user)):
    filters = {"q": q, "classroom_id": classroom_id, "type": type}
    return message_service.search_messages(db, filters, page, current_user)


@router.get("/my", response_model=schemas.Page[schemas.MessageOut])
def my_messages(page: dict = Depends(page_params), db: Session = Depends(get_db),
                current_user: models.User = Depends(get_current_user)):
    return message_service.my_messages(db, current_user, page)


@router.get("/stats")
def message_stats(db: Session = Depends(get_db), _: models.User = Depends(require_role("admin"))):
    return message_service.message_stats(db)


@router.get("/classroom/{classroom_id}", response_model=schemas.Page[schemas.MessageOut])
def messages_by_classroom(classroom_id: int, page: dict = Depends(page_params), db: Session = Depends(get_db),
                          current_user: models.User = Depends(get_current_user)):
    return message_service.messages_by_classroom(db, classroom_id, current_user, page)


@router.get("/sender/{sender_id}", response_model=schemas.Page[schemas.MessageOut])
def messages_by_sender(sender_id: int, page: dict = Depends(page_params), db: Session = Depends(get_db),
                       current_user: models.User = Depends(get_current_user)):
    return message_service.messages_by_sender(db, sender_id, current_user, page)


@router.post("/read")
def mark_read(body: schemas.MarkReadIn, db: Session = Depends(get_db),
              current_user: models.User = Depends(get_current_user)):
    return {"marked": message_service.mark_read(db, body.message_ids, current_user)}


@router.get("/{message_id}", response_model=schemas.MessageOut)
def read_message(message_id: int, db: Session = Depends(get_db),
                 current_user: models.User = Depends(get_current_user)):
    return message_service.get_message(db, message_id, current_user)


@router.patch("/{message_id}", response_model=schemas.MessageOut)
def update_message(message_id: int, body: schemas.MessageUpdate, db: Session = Depends(get_db),
                   current_user: models.User = Depends(get_current_user)):
    return message_service.update_message(db, message_id, body, current_user)


@router.delete("/{message_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_message(message_id: int, db: Session = Depends(get_db),
                   current_user: models.User = Depends(get_current_user)):
    message_service.delete_message(db, message_id, current_user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
