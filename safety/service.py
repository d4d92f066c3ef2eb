"""Blocking and reporting between identities."""

from typing import Optional

from db import get_db_client
from models.actor import Actor
from models.safety import Block, Complaint, ComplaintType
from utils.constants import MAX_NOTES_LENGTH, MAX_REPORT_LENGTH
from utils.exceptions import ValidationError
from utils.logging_config import setup_logging
from utils.validation import optional_text, required_text

logger = setup_logging(name=__name__, log_level="INFO")


class SafetyService:
    """Blocks hide two identities from each other; reports go to admins."""

    def __init__(self, db=None):
        self.db = db or get_db_client()

    async def block_user(
        self, actor: Actor, target_id: str, reason: Optional[str] = None
    ) -> Block:
        """
        Block ``target_id`` on behalf of ``actor``.

        Raises:
            ValidationError: When blocking oneself
            DuplicateRelation: If the block already exists
        """
        if target_id == actor.id:
            raise ValidationError("You cannot block yourself")

        block = await self.db.create_block(
            Block(
                blocker_id=actor.id,
                blocked_id=target_id,
                reason=optional_text(reason, "Reason", MAX_NOTES_LENGTH),
            )
        )
        logger.info(f"{actor.id} blocked {target_id}")
        return block

    async def unblock_user(self, actor: Actor, target_id: str) -> bool:
        """Remove a block. Returns False if there was none."""
        removed = await self.db.delete_block(actor.id, target_id)
        if removed:
            logger.info(f"{actor.id} unblocked {target_id}")
        return removed

    async def is_blocked_between(self, first_id: str, second_id: str) -> bool:
        """True if either identity has blocked the other."""
        blocks = await self.db.get_blocks_involving(first_id)
        return any(
            second_id in (block.blocker_id, block.blocked_id) for block in blocks
        )

    async def report_user(
        self,
        actor: Actor,
        target_id: str,
        complaint_type: ComplaintType,
        description: str,
        booking_id: Optional[str] = None,
    ) -> Complaint:
        """
        File a complaint against ``target_id``.

        Raises:
            ValidationError: If the description is missing or too long, the
                type is unknown, or the actor reports themself
        """
        if target_id == actor.id:
            raise ValidationError("You cannot report yourself")

        try:
            complaint_type = ComplaintType(complaint_type)
        except ValueError as e:
            raise ValidationError(f"Unknown complaint type: {complaint_type}") from e

        text = required_text(description, "Description", MAX_REPORT_LENGTH)

        complaint = await self.db.create_complaint(
            Complaint(
                reporter_id=actor.id,
                reported_user_id=target_id,
                booking_id=booking_id,
                complaint_type=complaint_type,
                description=text,
            )
        )
        logger.info(
            f"Complaint {complaint.id} ({complaint_type.value}) filed by "
            f"{actor.id} against {target_id}"
        )
        return complaint
