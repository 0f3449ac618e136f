import asyncio

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from admonitor.config import ANALYSIS_DELAY
from admonitor.errors import TaggingError
from admonitor.models import Ad
from admonitor.models.ad import AdTags
from admonitor.services.tagger import GeminiTagger
from admonitor.utils.logger import get_logger

logger = get_logger("analysis")


async def analyze_ad(session: Session, tagger: GeminiTagger, ad: Ad) -> AdTags:
    """Tag one ad and store the tags with the raw model reply."""
    result = await tagger.analyze(ad)
    if not result.cached:
        ad.tags = result.tags
        ad.ai_raw_response = result.raw
        session.flush()
    return result.tags


def count_untagged(session: Session) -> int:
    return session.execute(select(func.count(Ad.id)).where(Ad.untagged_clause())).scalar_one()


async def tag_untagged_ads(session: Session, tagger: GeminiTagger, delay: float = ANALYSIS_DELAY) -> dict:
    """Tag every ad without a complete tag set, committing after each one."""
    ads = session.execute(select(Ad).where(Ad.untagged_clause()).order_by(Ad.id)).scalars().all()
    summary = {"analyzed": 0, "errors": 0, "total": len(ads)}
    logger.info("tagging_started", total=len(ads))

    for i, ad in enumerate(ads):
        try:
            await analyze_ad(session, tagger, ad)
            session.commit()
            summary["analyzed"] += 1
        except TaggingError as e:
            session.rollback()
            summary["errors"] += 1
            logger.warning("ad_tagging_failed", ad_id=ad.ad_id, error=str(e))

        if delay and i < len(ads) - 1:
            await asyncio.sleep(delay)

    logger.info("tagging_completed", **summary)
    return summary
