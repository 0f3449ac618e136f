from admonitor.pipeline.dedup import deduplicate

SHARED_IMAGE = "https://scontent.xx.fbcdn.net/v/t39.35426-6/1234567890123_42_n.jpg?stp=dst-jpg"


def image(n: int) -> str:
    return f"https://scontent.xx.fbcdn.net/v/t39.35426-6/{9000000000 + n}_{n}_n.jpg"


def test_scenario_keeps_earliest_of_shared_media(raw_ad):
    items = [
        raw_ad(ad_id="x1", title="Sale"),
        raw_ad(ad_id="x2", image=SHARED_IMAGE, startDate=100),
        raw_ad(ad_id="x3", image=SHARED_IMAGE, startDate=50),
    ]

    ads = deduplicate(items, brand_id=1)

    assert [ad.ad_id for ad in ads] == ["x1", "x3"]
    assert [ad.rank for ad in ads] == [1, 2]
    assert ads[1].creative_url == SHARED_IMAGE


def test_collapse_by_archive_id_keeps_earliest_start(raw_ad):
    items = [
        raw_ad(ad_id="same", image=image(1), started="2024-03-01"),
        raw_ad(ad_id="same", image=image(2), started="2024-01-01"),
    ]

    ads = deduplicate(items, brand_id=1)

    assert len(ads) == 1
    assert ads[0].creative_url == image(2)


def test_known_start_replaces_unknown(raw_ad):
    items = [
        raw_ad(ad_id="a", image=SHARED_IMAGE),
        raw_ad(ad_id="b", image=SHARED_IMAGE, started="2024-02-01"),
    ]

    ads = deduplicate(items, brand_id=1)

    assert [ad.ad_id for ad in ads] == ["b"]


def test_tie_on_unknown_start_keeps_first(raw_ad):
    items = [raw_ad(ad_id="a", image=SHARED_IMAGE), raw_ad(ad_id="b", image=SHARED_IMAGE)]

    assert [ad.ad_id for ad in deduplicate(items, brand_id=1)] == ["a"]


def test_collapse_by_headline_is_case_insensitive(raw_ad):
    items = [
        raw_ad(ad_id="a", image=image(1), title="Summer Sale", started="2024-05-02"),
        raw_ad(ad_id="b", image=image(2), title="  summer sale ", started="2024-05-01"),
        raw_ad(ad_id="c", image=image(3), title="Winter Sale"),
    ]

    ads = deduplicate(items, brand_id=1)

    assert [ad.ad_id for ad in ads] == ["b", "c"]
    assert [ad.rank for ad in ads] == [1, 2]


def test_group_keeps_position_of_first_member(raw_ad):
    items = [
        raw_ad(ad_id="first", image=SHARED_IMAGE, started="2024-05-10"),
        raw_ad(ad_id="middle", image=image(7)),
        raw_ad(ad_id="last", image=SHARED_IMAGE, started="2024-01-10"),
    ]

    ads = deduplicate(items, brand_id=1)

    assert [ad.ad_id for ad in ads] == ["last", "middle"]
    assert ads[0].rank == 1


def test_medialess_items_without_headline_never_merge():
    items = [{"snapshot": {"body": "same"}}, {"snapshot": {"body": "same"}}]

    ads = deduplicate(items, brand_id=3)

    assert len(ads) == 2
    assert ads[0].ad_id != ads[1].ad_id
    assert all(ad.ad_id.startswith("apify_") for ad in ads)
    assert [ad.rank for ad in ads] == [1, 2]


def test_ranks_are_contiguous_after_collapse(raw_ad):
    # 18 distinct creatives plus 7 repeats of earlier ones
    items = [raw_ad(ad_id=f"ad{n}", image=image(n), title=f"Headline {n}") for n in range(18)]
    items += [raw_ad(ad_id=f"dup{n}", image=image(n)) for n in range(7)]

    ads = deduplicate(items, brand_id=1)

    assert len(items) == 25
    assert [ad.rank for ad in ads] == list(range(1, 19))


def test_truncates_to_limit(raw_ad):
    items = [raw_ad(ad_id=f"ad{n}", image=image(n)) for n in range(30)]

    ads = deduplicate(items, brand_id=1)

    assert len(ads) == 20
    assert ads[-1].ad_id == "ad19"
    assert ads[-1].rank == 20
    assert len(deduplicate(items, brand_id=1, limit=5)) == 5


def test_canonical_fields(raw_ad):
    video = "https://video.xx.fbcdn.net/v/t42.1790-2/5555555555555_1_n.mp4"
    item = raw_ad(
        ad_id="777",
        video=video,
        image=image(1),
        title="Watch This",
        body="Body copy",
        cta="Shop Now",
        started="2024-01-08",
    )

    (ad,) = deduplicate([item], brand_id=9)

    assert ad.brand_id == 9
    assert ad.creative_type == "video"
    assert ad.video_url == video
    assert ad.creative_url == image(1)
    assert ad.headline == "Watch This"
    assert ad.ad_copy == "Body copy"
    assert ad.cta_type == "Shop Now"
    assert ad.start_date.isoformat() == "2024-01-08"
    assert ad.ad_library_link == "https://www.facebook.com/ads/library/?id=777"


def test_malformed_items_are_kept_and_never_raise():
    items = [
        None,
        "junk",
        42,
        {"snapshot": []},
        {"adArchiveID": "inf", "startDate": float("inf")},
        {"adArchiveID": "nan", "startDate": float("nan")},
    ]
    ads = deduplicate(items, brand_id=1)

    assert len(ads) == 6
    assert [ad.start_date for ad in ads[-2:]] == [None, None]
    assert all(ad.creative_url is None for ad in ads)


def test_empty_batch():
    assert deduplicate([], brand_id=1) == []
    assert deduplicate(None, brand_id=1) == []
