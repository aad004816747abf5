"""
Shipment list queries.

Read-only; visibility of the returned rows is decided by the access policy.
"""

import math
from typing import Dict, List, Optional, Tuple

from sqlalchemy import select, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from shiptrack.app.core.exceptions import ValidationError
from shiptrack.app.models.shipment import Shipment
from shiptrack.app.models.shipment_enums import ShipmentStatus
from shiptrack.app.models.user import User
from shiptrack.app.schemas.shipment import Pagination

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100


def associated_with(account: User):
    """SQL filter matching shipments the account created, sends or receives."""
    email = account.email.lower()
    return or_(
        Shipment.created_by_id == account.id,
        func.lower(Shipment.sender_email) == email,
        func.lower(Shipment.recipient_email) == email,
    )


class ShipmentQueryService:

    @staticmethod
    async def find_by_user(
        db: AsyncSession,
        account: User,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
        status: Optional[ShipmentStatus] = None,
    ) -> Tuple[List[Shipment], Pagination]:
        """
        Active shipments associated with ``account``, newest first.

        Returns:
            The requested page and its pagination block
        """
        if page < 1:
            raise ValidationError("Page must be at least 1", field="page")
        if not 1 <= limit <= MAX_PAGE_SIZE:
            raise ValidationError(f"Limit must be between 1 and {MAX_PAGE_SIZE}", field="limit")

        conditions = [Shipment.is_active == True, associated_with(account)]
        if status is not None:
            conditions.append(Shipment.current_status == status)

        total = (await db.execute(select(func.count(Shipment.id)).where(*conditions))).scalar() or 0

        result = await db.execute(
            select(Shipment)
            .where(*conditions)
            .order_by(Shipment.created_at.desc(), Shipment.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        shipments = list(result.scalars().all())

        pagination = Pagination(
            current=page,
            pages=math.ceil(total / limit),
            total=total,
            limit=limit,
        )
        return shipments, pagination

    @staticmethod
    async def resolve_parties_for(db: AsyncSession, shipments: List[Shipment]) -> Dict[int, Dict[str, Optional[User]]]:
        """Batch version of the ledger's party resolution, keyed by shipment id."""
        ids = set()
        for shipment in shipments:
            ids.update(i for i in (shipment.created_by_id, shipment.assigned_agent_id) if i is not None)

        users = {}
        if ids:
            result = await db.execute(select(User).where(User.id.in_(list(ids))))
            users = {user.id: user for user in result.scalars().all()}

        return {
            shipment.id: {
                "created_by": users.get(shipment.created_by_id),
                "assigned_agent": users.get(shipment.assigned_agent_id),
            }
            for shipment in shipments
        }
