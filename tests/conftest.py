from datetime import datetime, timezone

import pytest
from sqlalchemy.orm import sessionmaker

from admonitor.models import Brand, init_db
from admonitor.models.database import make_engine


@pytest.fixture()
def engine(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path / 'admonitor.db'}")
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, future=True)


@pytest.fixture()
def session(session_factory):
    with session_factory() as session:
        yield session


@pytest.fixture()
def brand(session):
    brand = Brand(
        brand_name="HexCo",
        website_url="https://hexco.com",
        fb_page_url="https://www.facebook.com/ads/library/?view_all_page_id=123456789",
        page_id="123456789",
        vertical="Health",
    )
    session.add(brand)
    session.commit()
    return brand


def _iso(day: str) -> str:
    return datetime.fromisoformat(day).replace(tzinfo=timezone.utc).isoformat()


@pytest.fixture()
def raw_ad():
    """Build a provider item shaped like the Ad Library actor's output."""

    def build(ad_id=None, video=None, image=None, title=None, body=None, cta=None, started=None, **extra):
        card = {}
        if title is not None:
            card["title"] = title
        if body is not None:
            card["body"] = {"text": body}
        if cta is not None:
            card["ctaText"] = cta
        if video:
            card["videoHdUrl"] = video
            card["videoPreviewImageUrl"] = image
        elif image:
            card["resizedImageUrl"] = image

        item = {"snapshot": {"cards": [card] if card else []}}
        if ad_id is not None:
            item["adArchiveID"] = ad_id
        if started is not None:
            item["startDateFormatted"] = _iso(started)
        item.update(extra)
        return item

    return build
