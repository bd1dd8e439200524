"""
Command Queue Dispatcher
Writes a pending command row; the pool device polls and executes it
"""

import logging

from pooldose.domain.models import DoseDirection, DosingMode
from pooldose.infrastructure.db.repositories import DosingCommandRepository

logger = logging.getLogger(__name__)


class CommandQueueDispatcher:
    """Dispatch through the database command queue"""

    def __init__(self, commands: DosingCommandRepository):
        self.commands = commands

    async def dispatch_dose(
        self,
        pool_id: str,
        product: DoseDirection,
        duration_seconds: int,
    ) -> bool:
        command = await self.commands.create(
            pool_id=pool_id,
            product=product,
            duration_seconds=duration_seconds,
            source=DosingMode.AUTOMATIC,
        )
        logger.info(
            f"Queued command {command.id} for pool {pool_id}: "
            f"{DoseDirection(product).value} for {duration_seconds}s"
        )
        return True
