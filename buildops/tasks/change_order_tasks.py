import asyncio

from buildops.common.logging import get_logger
from buildops.tasks.celery_app import app

logger = get_logger("tasks.change_orders")


def _run_async(coro):
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@app.task(name="buildops.tasks.change_order_tasks.reconcile_change_order_impacts")
def reconcile_change_order_impacts():
    """Celery Beat task: retry change order applies and reverts that failed."""
    logger.info("Reconciling change order impacts")

    async def _reconcile():
        from buildops.core.change_orders.reconcile import reconcile_change_order_impacts as run
        from buildops.db.session import async_session_factory

        async with async_session_factory() as db:
            try:
                repaired = await run(db)
                await db.commit()
                if repaired:
                    logger.info("Repaired %d change orders left half-done", len(repaired))
                return repaired
            except Exception as e:
                await db.rollback()
                logger.error("Change order reconciliation failed: %s", e)
                raise

    return _run_async(_reconcile())
