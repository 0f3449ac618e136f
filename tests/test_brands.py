from datetime import date

import httpx
import pytest
import respx
from sqlalchemy import func, select

from admonitor.errors import BrandError
from admonitor.models import Ad, Brand, ScrapeJob, WeeklySnapshot
from admonitor.services.brands import (
    add_brand,
    cleanup_orphaned_data,
    delete_brand,
    import_brands_csv,
    list_brands,
    parse_page_id,
    resolve_page_id,
    set_brand_status,
    toggle_bookmark,
    vertical_for_category,
)

LIBRARY_URL = "https://www.facebook.com/ads/library/?active_status=active&view_all_page_id=987654321&country=US"


def add_ad(session, brand_id, ad_id, weeks=1, **fields):
    ad = Ad(ad_id=ad_id, brand_id=brand_id, date_scraped=date(2024, 1, 8), weeks_in_top10=weeks, **fields)
    session.add(ad)
    session.flush()
    return ad


def count(session, model):
    return session.execute(select(func.count()).select_from(model)).scalar_one()


def test_parse_page_id():
    assert parse_page_id(LIBRARY_URL) == "987654321"
    assert parse_page_id("https://www.facebook.com/hexco") is None
    assert parse_page_id(None) is None


def test_vertical_for_category():
    assert vertical_for_category(" Health/Supplements ") == "Health"
    assert vertical_for_category("Food & Beverage") == "Food"
    assert vertical_for_category("Pets") == "Other"


def test_add_brand_takes_page_id_from_url(session):
    brand = add_brand(session, "Lumi", LIBRARY_URL, website_url="https://lumi.com", vertical="Beauty")
    session.commit()

    assert brand.page_id == "987654321"
    assert brand.status == "active"
    assert brand.is_scrapable


@pytest.mark.parametrize("name, url", [("", LIBRARY_URL), ("Lumi", ""), ("Lumi", "https://www.facebook.com/lumi")])
def test_add_brand_rejects_bad_input(session, name, url):
    with pytest.raises(BrandError):
        add_brand(session, name, url)


def test_list_brands_counts_ads_and_evergreens(session, brand):
    empty = add_brand(session, "Acme", LIBRARY_URL)
    add_ad(session, brand.id, "a", weeks=1)
    add_ad(session, brand.id, "b", weeks=4)
    add_ad(session, brand.id, "c", weeks=9)
    session.commit()

    rows = {row["brand"].brand_name: row for row in list_brands(session, min_weeks=4)}

    assert (rows["HexCo"]["ad_count"], rows["HexCo"]["evergreen_count"]) == (3, 2)
    assert (rows[empty.brand_name]["ad_count"], rows[empty.brand_name]["evergreen_count"]) == (0, 0)


def test_set_brand_status(session, brand):
    set_brand_status(session, brand.id, active=False)
    assert brand.status == "inactive"
    with pytest.raises(BrandError):
        set_brand_status(session, 9999, active=True)


def test_delete_brand_removes_dependents(session, brand):
    add_ad(session, brand.id, "a")
    session.add(WeeklySnapshot(brand_id=brand.id, ad_id="a", rank=1, week_start=date(2024, 1, 8)))
    session.add(ScrapeJob(brand_id=brand.id, status="complete"))
    session.commit()

    counts = delete_brand(session, brand.id)
    session.commit()

    assert counts == {"snapshots": 1, "ads": 1, "jobs": 1}
    assert count(session, Brand) == 0
    assert count(session, Ad) == 0


def test_toggle_bookmark(session, brand):
    ad = add_ad(session, brand.id, "a")
    assert toggle_bookmark(session, ad.id) is True
    assert toggle_bookmark(session, ad.id) is False
    with pytest.raises(BrandError):
        toggle_bookmark(session, 9999)


def test_cleanup_orphaned_data(session, brand):
    add_ad(session, brand.id, "kept")
    add_ad(session, 4242, "orphan")
    session.add(WeeklySnapshot(brand_id=4242, ad_id="orphan", rank=1, week_start=date(2024, 1, 8)))
    session.commit()

    counts = cleanup_orphaned_data(session)
    session.commit()

    assert counts == {"snapshots": 1, "ads": 1, "jobs": 0}
    assert session.execute(select(Ad.ad_id)).scalars().all() == ["kept"]


@pytest.mark.asyncio
async def test_resolve_page_id_from_page_html():
    async with respx.mock() as router:
        router.get("https://www.facebook.com/lumi").mock(
            return_value=httpx.Response(200, text='<script>{"pageID":"555000111","name":"Lumi"}</script>')
        )
        router.get("https://www.facebook.com/ghost").mock(return_value=httpx.Response(200, text="<html></html>"))
        async with httpx.AsyncClient(transport=httpx.MockTransport(router.async_handler)) as client:
            assert await resolve_page_id("https://www.facebook.com/lumi", client=client) == "555000111"
            assert await resolve_page_id("https://www.facebook.com/ghost", client=client) is None


@pytest.mark.asyncio
async def test_import_brands_csv(session, brand, tmp_path):
    csv_path = tmp_path / "brands.csv"
    csv_path.write_text(
        "Brand Name,Category,Facebook Page URL,Website Domain,Page ID\n"
        "HexCo,Health,https://www.facebook.com/hexco,hexco.com,\n"
        "Lumi,Beauty,https://www.facebook.com/lumi,lumi.com,\n"
        "Acme,Home Goods,https://www.facebook.com/acme,,777\n"
        f'Nordic,Apparel,"{LIBRARY_URL}",,\n'
        "Ghost,Tech,https://www.facebook.com/ghost,,\n"
        ",Tech,https://www.facebook.com/nobody,,\n"
    )
    resolved = {"https://www.facebook.com/lumi": "555000111"}
    asked = []

    async def resolver(url):
        asked.append(url)
        return resolved.get(url)

    report = await import_brands_csv(session, csv_path, resolver=resolver, delay=0)
    session.commit()

    assert report["summary"] == {"total": 6, "inserted": 3, "skipped": 1, "errors": 2}
    assert [s["brand_name"] for s in report["skipped"]] == ["HexCo"]
    assert [e["brand_name"] for e in report["errors"]] == ["Ghost", "Row 6"]
    assert asked == ["https://www.facebook.com/lumi", "https://www.facebook.com/ghost"]

    lumi = session.execute(select(Brand).where(Brand.brand_name == "Lumi")).scalar_one()
    assert lumi.page_id == "555000111"
    assert lumi.website_url == "https://lumi.com"
    assert lumi.vertical == "Beauty"
    assert "view_all_page_id=555000111" in lumi.fb_page_url

    acme = session.execute(select(Brand).where(Brand.brand_name == "Acme")).scalar_one()
    assert (acme.page_id, acme.vertical, acme.website_url) == ("777", "Home", None)


@pytest.mark.asyncio
async def test_import_rejects_missing_columns(session, tmp_path):
    csv_path = tmp_path / "brands.csv"
    csv_path.write_text("Brand Name,Facebook Page URL\nLumi,https://www.facebook.com/lumi\n")

    with pytest.raises(BrandError, match="Category"):
        await import_brands_csv(session, csv_path, delay=0)
