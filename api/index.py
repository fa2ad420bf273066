"""
Serverless entry point for the CityFlow CRM API

HTTP events go to the ASGI app. Scheduled events (the SLA cron trigger)
run one SLA status refresh, since no background scheduler survives
between invocations.
"""
import asyncio
import os
import sys

parent_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if parent_dir not in sys.path:
    sys.path.insert(0, parent_dir)

os.environ.setdefault("ENVIRONMENT", "production")
os.environ.setdefault("SLA_EVALUATION_INTERVAL", "0")

from mangum import Mangum

from cityflow.config import settings
from cityflow.infrastructure.database import close_database, init_database
from cityflow.main import app, run_sla_refresh
from cityflow.shared.infrastructure.logging import get_logger, setup_logging
from cityflow.sla.infrastructure import EscalationNotifier

logger = get_logger(__name__)

asgi_handler = Mangum(app, lifespan="auto")


async def _scheduled_refresh() -> dict:
    notifier = EscalationNotifier(settings)
    try:
        return await run_sla_refresh(notifier)
    finally:
        await notifier.close()
        await close_database()


def handler(event, context):
    if isinstance(event, dict) and event.get("source") == "aws.events":
        setup_logging(settings.log_level, settings.environment)
        init_database()
        summary = asyncio.run(_scheduled_refresh())
        logger.info("Scheduled SLA refresh finished", extra=summary)
        return summary
    return asgi_handler(event, context)
