from venue_scraper.models import Location, RawListingRecord
from venue_scraper.pipeline.dedupe import dedupe


def _record(name, full, **kwargs):
    city, state = full.split(", ")
    return RawListingRecord(name=name, location=Location(city=city, state=state, full=full), **kwargs)


def test_case_insensitive_key_collapses_duplicates():
    records = [_record("Oak Hall", "Austin, TX"), _record("oak hall", "austin, tx")]

    unique = dedupe(records)

    assert len(unique) == 1
    assert unique[0].name == "Oak Hall"


def test_first_seen_wins_and_order_is_preserved():
    records = [
        _record("Lakeview Barn", "Springfield, IL", rating=4.5),
        _record("Oak Hall", "Austin, TX", rating=4.0),
        _record("Lakeview Barn", "Springfield, IL", rating=4.9, review_count=300),
    ]

    unique = dedupe(records)

    assert [r.name for r in unique] == ["Lakeview Barn", "Oak Hall"]
    assert unique[0].rating == 4.5
    assert unique[0].review_count == 0


def test_same_name_in_different_locations_is_kept():
    records = [_record("Oak Hall", "Austin, TX"), _record("Oak Hall", "Dallas, TX")]
    assert len(dedupe(records)) == 2


def test_unknown_location_uses_default_key():
    records = [RawListingRecord(name="Oak Hall"), RawListingRecord(name="OAK HALL")]
    assert dedupe(records)[0].dedupe_key() == "oak hall-unknown, unknown"
    assert len(dedupe(records)) == 1


def test_dedupe_is_idempotent_and_keys_are_unique():
    records = [
        _record("Oak Hall", "Austin, TX"),
        _record("oak hall", "AUSTIN, TX"),
        _record("Cedar House", "Joliet, IL"),
    ]
    once = dedupe(records)
    assert dedupe(once) == once
    keys = [r.dedupe_key() for r in once]
    assert len(keys) == len(set(keys))
