# booking_engine/crud/crud_booking_portfolio_attachment.py
from typing import Optional, List
from sqlalchemy.orm import Session

from booking_engine.models.booking_portfolio_attachment import BookingPortfolioAttachment
from booking_engine.schemas.booking import PortfolioAttachmentCreate


def get(db: Session, attachment_id: str) -> Optional[BookingPortfolioAttachment]:
    return (
        db.query(BookingPortfolioAttachment)
        .filter(BookingPortfolioAttachment.id == attachment_id)
        .first()
    )


def get_by_file(
    db: Session, booking_id: str, portfolio_file_id: str
) -> Optional[BookingPortfolioAttachment]:
    return (
        db.query(BookingPortfolioAttachment)
        .filter(
            BookingPortfolioAttachment.booking_id == booking_id,
            BookingPortfolioAttachment.portfolio_file_id == portfolio_file_id,
        )
        .first()
    )


def list_for_booking(db: Session, booking_id: str) -> List[BookingPortfolioAttachment]:
    return (
        db.query(BookingPortfolioAttachment)
        .filter(BookingPortfolioAttachment.booking_id == booking_id)
        .order_by(BookingPortfolioAttachment.created_at.asc())
        .all()
    )


def create(
    db: Session, *, booking_id: str, attached_by: str, data: PortfolioAttachmentCreate
) -> BookingPortfolioAttachment:
    db_obj = BookingPortfolioAttachment(
        **data.model_dump(), booking_id=booking_id, attached_by=attached_by
    )
    db.add(db_obj)
    db.commit()
    db.refresh(db_obj)
    return db_obj


def delete(db: Session, *, attachment: BookingPortfolioAttachment) -> None:
    db.delete(attachment)
    db.commit()
