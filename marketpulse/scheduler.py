"""
Analysis scheduler.
Runs the recommendation refresh and the market trend prediction on APScheduler intervals.
"""

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from loguru import logger

from marketpulse.analysis.recommendation import RecommendationEngine
from marketpulse.analysis.trend import MarketTrendPredictor
from marketpulse.analysis.types import Recommendation, TrendPrediction
from marketpulse.settings import global_settings
from marketpulse.utils import safe_func_wrapper


class AnalysisScheduler:
    """Periodic driver for the recommendation and trend jobs"""

    def __init__(
        self,
        recommendation_engine: RecommendationEngine,
        trend_predictor: MarketTrendPredictor,
        scheduler: AsyncIOScheduler | None = None,
    ):
        self.recommendation_engine = recommendation_engine
        self.trend_predictor = trend_predictor
        self.scheduler = scheduler or AsyncIOScheduler()
        self._is_running = False

    @safe_func_wrapper
    async def recommendation_job(self) -> list[Recommendation]:
        """Mine correlations and replace the active recommendation set"""
        recommendations = await self.recommendation_engine.refresh_recommendations()
        logger.info(f"Scheduled refresh produced {len(recommendations)} recommendations")
        return recommendations

    @safe_func_wrapper
    async def trend_job(self) -> TrendPrediction:
        """Generate and record one market trend prediction"""
        prediction = await self.trend_predictor.generate_market_trend_prediction()
        await self.trend_predictor.save_prediction(prediction)
        return prediction

    def start(self) -> None:
        if self._is_running:
            logger.warning("Analysis scheduler is already running")
            return

        recommendation_minutes = global_settings.recommendation_interval_minutes
        trend_minutes = global_settings.trend_interval_minutes

        self.scheduler.add_job(
            self.recommendation_job,
            trigger="interval",
            minutes=recommendation_minutes,
            id="recommendation_job",
            name="Recommendation Refresh",
            replace_existing=True,
            max_instances=1,
        )
        self.scheduler.add_job(
            self.trend_job,
            trigger="interval",
            minutes=trend_minutes,
            id="trend_job",
            name="Market Trend Prediction",
            replace_existing=True,
            max_instances=1,
        )

        self.scheduler.start()
        self._is_running = True

        logger.info(
            f"Analysis scheduler started: recommendations every {recommendation_minutes} "
            f"minutes, trend every {trend_minutes} minutes"
        )

    def stop(self) -> None:
        if not self._is_running:
            logger.warning("Analysis scheduler is not running")
            return

        self.scheduler.shutdown(wait=False)
        self._is_running = False
        logger.info("Analysis scheduler stopped")

    def is_running(self) -> bool:
        return self._is_running

    async def run_now(self) -> tuple[list[Recommendation], TrendPrediction]:
        """Run both jobs once, immediately (manual trigger)"""
        logger.info("Manual analysis run triggered")
        recommendations = await self.recommendation_job()
        prediction = await self.trend_job()
        return recommendations, prediction
