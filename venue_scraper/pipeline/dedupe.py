import logging
from typing import Iterable, List

from venue_scraper.models import RawListingRecord

logger = logging.getLogger(__name__)


def dedupe(records: Iterable[RawListingRecord]) -> List[RawListingRecord]:
    """
    Keeps the first record seen for each dedupe key (lowercased name plus
    lowercased full location) and drops later ones without merging fields.
    Input order is preserved.
    """
    seen = set()
    unique: List[RawListingRecord] = []
    dropped = 0
    for record in records:
        key = record.dedupe_key()
        if key in seen:
            dropped += 1
            continue
        seen.add(key)
        unique.append(record)
    if dropped:
        logger.debug(f"Dropped {dropped} duplicate records; {len(unique)} remain.")
    return unique
