"""
MarketPulse entry point.
Initializes the datastore and runs the analysis scheduler.
"""

import asyncio
import sys

from loguru import logger

from marketpulse.analysis.correlation import CorrelationEngine
from marketpulse.analysis.recommendation import RecommendationEngine
from marketpulse.analysis.trend import MarketTrendPredictor
from marketpulse.datastore.engine import close_db, get_session_factory, init_db
from marketpulse.datastore.store import SQLMarketStore
from marketpulse.scheduler import AnalysisScheduler
from marketpulse.settings import global_settings


async def main() -> None:
    logger.remove()
    logger.add(sys.stderr, level=global_settings.log_level.upper())

    logger.info("Starting MarketPulse...")
    scheduler: AnalysisScheduler | None = None

    try:
        logger.info("Initializing database...")
        await init_db()
        logger.info("Database initialized successfully")

        store = SQLMarketStore(get_session_factory())
        correlation_engine = CorrelationEngine(store)
        scheduler = AnalysisScheduler(
            RecommendationEngine(store, correlation_engine=correlation_engine),
            MarketTrendPredictor(store),
        )

        logger.info("Starting analysis scheduler...")
        scheduler.start()

        logger.info("Performing initial analysis run...")
        await scheduler.run_now()

        logger.info("MarketPulse is running. Press Ctrl+C to stop.")
        while True:
            await asyncio.sleep(60)

    except KeyboardInterrupt:
        logger.info("Received interrupt signal, shutting down...")
    except Exception as e:
        logger.error(f"Error in main loop: {e}")
    finally:
        if scheduler is not None and scheduler.is_running():
            logger.info("Stopping analysis scheduler...")
            scheduler.stop()

        logger.info("Closing database connections...")
        await close_db()

        logger.info("MarketPulse stopped")


if __name__ == "__main__":
    asyncio.run(main())
