"""
SCHEDULER JOB DEFINITIONS

Jobs are thin wrappers that:
- Log execution
- Call the dosing service
- Never let an exception escape into the scheduler

NO business logic is allowed here.
"""

import logging

from pooldose.services.dosing_service import DosingService

_logger = logging.getLogger(__name__)


async def run_dosing_cycle_job(service: DosingService | None = None) -> None:
    """
    Evaluate every automatic pool once.
    """
    _logger.info("Running dosing cycle job")

    try:
        results = await (service or DosingService()).run_automatic_cycles()
    except Exception:
        _logger.exception("Dosing cycle job failed")
        return

    for result in results:
        if result.dosed and result.dose is not None:
            _logger.info(
                f"Pool {result.pool_id} dosed {result.dose.volume:g}{result.dose.unit} "
                f"{result.dose.chemical}"
            )
