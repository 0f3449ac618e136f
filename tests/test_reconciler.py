from datetime import date

from sqlalchemy import select

from admonitor.models import Ad, WeeklySnapshot
from admonitor.pipeline.reconciler import Reconciler
from admonitor.pipeline.types import CanonicalAd

MONDAY = date(2024, 1, 8)
WEDNESDAY = date(2024, 1, 10)
NEXT_TUESDAY = date(2024, 1, 16)


def canonical(ad_id, brand_id, rank=1, **fields):
    fields.setdefault("creative_url", f"https://cdn.example.com/{ad_id}.jpg")
    return CanonicalAd(ad_id=ad_id, brand_id=brand_id, rank=rank, **fields)


def stored(session, brand_id, ad_id, **fields):
    values = dict(
        ad_id=ad_id,
        brand_id=brand_id,
        date_scraped=fields.get("last_seen", MONDAY),
        rank=5,
        creative_type="image",
        creative_url=f"https://cdn.example.com/{ad_id}.jpg",
        first_seen=MONDAY,
        last_seen=MONDAY,
        weeks_in_top10=1,
    )
    values.update(fields)
    ad = Ad(**values)
    session.add(ad)
    session.commit()
    return ad


def get_ad(session, ad_id):
    return session.execute(select(Ad).where(Ad.ad_id == ad_id)).scalar_one_or_none()


def snapshots(session, ad_id=None):
    query = select(WeeklySnapshot).order_by(WeeklySnapshot.week_start)
    if ad_id:
        query = query.where(WeeklySnapshot.ad_id == ad_id)
    return session.execute(query).scalars().all()


def test_new_ads_are_inserted(session, brand):
    result = Reconciler(session).reconcile(brand.id, [canonical("a", brand.id, 1), canonical("b", brand.id, 2)], today=WEDNESDAY)
    session.commit()

    assert result.inserted_count == 2
    assert result.inserted_ids == ["a", "b"]
    assert result.updated_count == 0
    assert result.ok

    ad = get_ad(session, "a")
    assert ad.first_seen == ad.last_seen == ad.date_scraped == WEDNESDAY
    assert ad.weeks_in_top10 == 1
    assert ad.tags is None
    assert ad.bookmarked is False

    (snapshot,) = snapshots(session, "b")
    assert snapshot.week_start == MONDAY
    assert snapshot.rank == 2
    assert brand.last_scraped is not None


def test_same_week_reingestion_does_not_double_count(session, brand):
    stored(session, brand.id, "x", last_seen=MONDAY, weeks_in_top10=3)
    reconciler = Reconciler(session)

    reconciler.reconcile(brand.id, [canonical("x", brand.id, rank=2)], today=WEDNESDAY)
    session.commit()
    ad = get_ad(session, "x")
    assert ad.weeks_in_top10 == 3
    assert ad.last_seen == WEDNESDAY
    assert ad.rank == 2

    reconciler.reconcile(brand.id, [canonical("x", brand.id, rank=1)], today=NEXT_TUESDAY)
    session.commit()
    ad = get_ad(session, "x")
    assert ad.weeks_in_top10 == 4
    assert ad.first_seen == MONDAY


def test_gap_counts_as_a_single_week(session, brand):
    stored(session, brand.id, "x", last_seen=date(2023, 12, 4), weeks_in_top10=2)

    Reconciler(session).reconcile(brand.id, [canonical("x", brand.id)], today=MONDAY)
    session.commit()

    assert get_ad(session, "x").weeks_in_top10 == 3


def test_snapshot_rank_replaced_within_week(session, brand):
    reconciler = Reconciler(session)

    reconciler.reconcile(brand.id, [canonical("a", brand.id, rank=4)], today=MONDAY)
    reconciler.reconcile(brand.id, [canonical("a", brand.id, rank=1)], today=WEDNESDAY)
    session.commit()

    (snapshot,) = snapshots(session, "a")
    assert snapshot.rank == 1

    reconciler.reconcile(brand.id, [canonical("a", brand.id, rank=3)], today=NEXT_TUESDAY)
    session.commit()
    assert [(s.week_start, s.rank) for s in snapshots(session, "a")] == [(MONDAY, 1), (date(2024, 1, 15), 3)]


def test_stale_ads_deleted_with_their_snapshots(session, brand):
    reconciler = Reconciler(session)
    reconciler.reconcile(brand.id, [canonical("old", brand.id), canonical("kept", brand.id, 2)], today=MONDAY)
    session.commit()

    result = reconciler.reconcile(brand.id, [canonical("kept", brand.id)], today=NEXT_TUESDAY)
    session.commit()

    assert result.deleted_count == 1
    assert get_ad(session, "old") is None
    assert snapshots(session, "old") == []
    assert get_ad(session, "kept") is not None


def test_bookmarked_ads_survive_unchanged(session, brand):
    stored(session, brand.id, "saved", last_seen=date(2024, 1, 1), weeks_in_top10=2, rank=7, bookmarked=True)

    result = Reconciler(session).reconcile(brand.id, [canonical("fresh", brand.id)], today=MONDAY)
    session.commit()

    assert result.deleted_count == 0
    ad = get_ad(session, "saved")
    assert ad is not None
    assert ad.weeks_in_top10 == 2
    assert ad.last_seen == date(2024, 1, 1)
    assert ad.rank == 7


def test_other_brands_untouched(session, brand):
    stored(session, brand.id + 1, "foreign")

    Reconciler(session).reconcile(brand.id, [canonical("mine", brand.id)], today=MONDAY)
    session.commit()

    assert get_ad(session, "foreign") is not None


def test_empty_batch_skips_deletion(session, brand):
    stored(session, brand.id, "a")

    result = Reconciler(session).reconcile(brand.id, [], today=MONDAY)
    session.commit()

    assert result.deleted_count == 0
    assert get_ad(session, "a") is not None


def test_media_only_overwritten_by_known_values(session, brand):
    stored(
        session,
        brand.id,
        "v",
        creative_type="video",
        creative_url="https://cdn.example.com/still.jpg",
        video_url="https://cdn.example.com/clip.mp4",
    )

    Reconciler(session).reconcile(brand.id, [canonical("v", brand.id, creative_url=None)], today=WEDNESDAY)
    session.commit()

    ad = get_ad(session, "v")
    assert ad.creative_type == "video"
    assert ad.creative_url == "https://cdn.example.com/still.jpg"
    assert ad.video_url == "https://cdn.example.com/clip.mp4"

    Reconciler(session).reconcile(
        brand.id,
        [canonical("v", brand.id, creative_type="video", creative_url="https://cdn.example.com/new.jpg")],
        today=WEDNESDAY,
    )
    session.commit()

    ad = get_ad(session, "v")
    assert ad.creative_url == "https://cdn.example.com/new.jpg"
    assert ad.video_url == "https://cdn.example.com/clip.mp4"


def test_video_rescraped_as_image_drops_video_url(session, brand):
    stored(
        session,
        brand.id,
        "v",
        creative_type="video",
        creative_url="https://cdn.example.com/still.jpg",
        video_url="https://cdn.example.com/clip.mp4",
    )

    Reconciler(session).reconcile(
        brand.id, [canonical("v", brand.id, creative_url="https://cdn.example.com/banner.jpg")], today=WEDNESDAY
    )
    session.commit()

    ad = get_ad(session, "v")
    assert ad.creative_type == "image"
    assert ad.creative_url == "https://cdn.example.com/banner.jpg"
    assert ad.video_url is None


def test_failing_ad_does_not_abort_batch(session, brand):
    ads = [canonical("good1", brand.id, 1), canonical(None, brand.id, 2), canonical("good2", brand.id, 3)]

    result = Reconciler(session).reconcile(brand.id, ads, today=MONDAY)
    session.commit()

    assert result.succeeded == 2
    assert result.failed == 1
    assert result.errors[0].ad_id is None
    assert [ad.ad_id for ad in result.processed] == ["good1", "good2"]
    assert get_ad(session, "good1") is not None
    assert get_ad(session, "good2") is not None
    assert len(snapshots(session)) == 2

    payload = result.to_dict()
    assert payload["inserted_count"] == 2
    assert payload["errors"][0]["message"]
