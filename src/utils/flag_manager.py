"""Moderation flags raised by staff on questions, answers and messages."""

import logging
from datetime import datetime
from typing import Iterable, List, Optional, Union

import pytz
from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from core.database import atomic
from core.exceptions import (
    AnswerNotFoundError,
    MessageNotFoundError,
    QuestionNotFoundError,
    ValidationError,
)
from models.answer import AnswerModel
from models.flag import FlagModel
from models.message import MessageModel
from models.question import QuestionModel
from schemas.flag import Flag, FlagItemType
from utils.converters import model_to_flag
from utils.validators import require_text

logger = logging.getLogger(__name__)

_ITEM_MODELS = {
    FlagItemType.QUESTION: (QuestionModel, QuestionNotFoundError),
    FlagItemType.ANSWER: (AnswerModel, AnswerNotFoundError),
    FlagItemType.MESSAGE: (MessageModel, MessageNotFoundError),
}


def _coerce_item_type(item_type: Union[FlagItemType, str]) -> FlagItemType:
    if isinstance(item_type, FlagItemType):
        return item_type
    try:
        return FlagItemType(str(item_type).strip().lower())
    except ValueError:
        raise ValidationError(
            f"Invalid item type: {item_type}. Must be 'question', 'answer' or 'message'."
        )


def purge_flags_for_items(
    db: Session, item_type: Union[FlagItemType, str], item_ids: Iterable[int]
) -> int:
    """Delete every flag raised on the given items.

    Does not commit; callers run it inside the atomic block that removes the
    items themselves.

    Returns:
        Number of flag rows deleted.
    """
    item_type = _coerce_item_type(item_type)
    ids = list(item_ids)
    if not ids:
        return 0
    result = db.execute(
        delete(FlagModel)
        .where(FlagModel.item_type == item_type.value, FlagModel.item_id.in_(ids))
        .execution_options(synchronize_session=False)
    )
    return result.rowcount or 0


class FlagManager:
    """Records and lists moderation flags."""

    def __init__(self, db: Session):
        self.db = db

    def add_flag(
        self,
        item_type: Union[FlagItemType, str],
        item_id: int,
        flagged_by: str,
        reason: str,
    ) -> Flag:
        """Flag an item for moderation.

        Raises:
            ValidationError: If the item type is unknown or the reason is empty.
            NotFoundError: If the flagged item does not exist.
        """
        item_type = _coerce_item_type(item_type)
        reason = require_text(reason, "Reason")
        model_cls, not_found = _ITEM_MODELS[item_type]
        with atomic(self.db):
            if self.db.get(model_cls, item_id) is None:
                raise not_found(item_id)
            model = FlagModel(
                item_type=item_type.value,
                item_id=item_id,
                flagged_by=flagged_by,
                reason=reason,
                created_at=datetime.now(pytz.utc).isoformat(),
            )
            self.db.add(model)
        logger.info("%s flagged %s %d", flagged_by, item_type.value, item_id)
        return model_to_flag(model)

    def list_flags(self, item_type: Optional[Union[FlagItemType, str]] = None) -> List[Flag]:
        query = select(FlagModel)
        if item_type is not None:
            query = query.where(FlagModel.item_type == _coerce_item_type(item_type).value)
        models = self.db.scalars(
            query.order_by(FlagModel.created_at.desc(), FlagModel.id.desc())
        ).all()
        return [model_to_flag(m) for m in models]

    def flags_for_item(self, item_type: Union[FlagItemType, str], item_id: int) -> List[Flag]:
        item_type = _coerce_item_type(item_type)
        models = self.db.scalars(
            select(FlagModel)
            .where(FlagModel.item_type == item_type.value, FlagModel.item_id == item_id)
            .order_by(FlagModel.id)
        ).all()
        return [model_to_flag(m) for m in models]

    def is_flagged(self, item_type: Union[FlagItemType, str], item_id: int) -> bool:
        item_type = _coerce_item_type(item_type)
        count = self.db.scalar(
            select(func.count(FlagModel.id)).where(
                FlagModel.item_type == item_type.value, FlagModel.item_id == item_id
            )
        )
        return bool(count)

    def clear_flags_for_item(self, item_type: Union[FlagItemType, str], item_id: int) -> int:
        item_type = _coerce_item_type(item_type)
        with atomic(self.db):
            removed = purge_flags_for_items(self.db, item_type, [item_id])
        logger.info("Cleared %d flags on %s %d", removed, item_type.value, item_id)
        return removed
