import logging
from typing import List, Optional, Protocol, Sequence

from pymongo import MongoClient, UpdateOne
from pymongo.errors import BulkWriteError, ConnectionFailure, OperationFailure, PyMongoError

from venue_scraper.config import MongoDBSettings, settings
from venue_scraper.models import RawListingRecord, SubBatchReport

logger = logging.getLogger(__name__)


class ResultSink(Protocol):
    def upsert(self, records: Sequence[RawListingRecord], batch_size: int) -> List[SubBatchReport]:
        ...


def _chunks(items: Sequence, size: int):
    for start in range(0, len(items), size):
        yield items[start:start + size]


class MongoResultSink:
    """
    Upserts venue records into MongoDB keyed by (name, category).

    Each sub-batch is written with an unordered bulk_write and reported on its
    own, so one failing sub-batch does not block the rest.
    """

    def __init__(self, mongo_settings: Optional[MongoDBSettings] = None, client: Optional[MongoClient] = None):
        self.settings = mongo_settings or settings.mongodb
        self._client = client
        self._owns_client = client is None

    @property
    def client(self) -> MongoClient:
        if self._client is None:
            logger.info(
                f"Connecting to MongoDB: URI='{self.settings.uri}', DB='{self.settings.database}', "
                f"Collection='{self.settings.collection}'"
            )
            self._client = MongoClient(
                self.settings.uri,
                serverSelectionTimeoutMS=self.settings.server_selection_timeout_ms,
                connectTimeoutMS=20000,
            )
        return self._client

    @property
    def collection(self):
        return self.client[self.settings.database][self.settings.collection]

    @staticmethod
    def build_operation(record: RawListingRecord) -> UpdateOne:
        doc = record.to_persisted()
        return UpdateOne({"name": doc["name"], "category": doc["category"]}, {"$set": doc}, upsert=True)

    def upsert(self, records: Sequence[RawListingRecord], batch_size: int) -> List[SubBatchReport]:
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")
        records = list(records)
        if not records:
            logger.info("No records provided to upsert.")
            return []

        batches = list(_chunks(records, batch_size))
        try:
            self.client.admin.command("ping")
        except PyMongoError as e:
            logger.error(f"MongoDB connection failed for URI {self.settings.uri}: {e}", exc_info=True)
            return [
                SubBatchReport(index=i, attempted=len(batch), error=f"connection failed: {e}")
                for i, batch in enumerate(batches)
            ]

        reports = [self._write_batch(i, batch) for i, batch in enumerate(batches)]
        failed = sum(1 for report in reports if not report.ok)
        logger.info(
            f"Upserted {sum(r.upserted for r in reports)} and modified {sum(r.modified for r in reports)} "
            f"records in {len(reports)} sub-batches ({failed} failed)."
        )
        return reports

    def _write_batch(self, index: int, batch: Sequence[RawListingRecord]) -> SubBatchReport:
        operations = [self.build_operation(record) for record in batch]
        try:
            result = self.collection.bulk_write(operations, ordered=False)
        except BulkWriteError as bwe:
            details = bwe.details or {}
            logger.error(f"Sub-batch {index} bulk_write error: {details.get('writeErrors')}", exc_info=True)
            return SubBatchReport(
                index=index,
                attempted=len(operations),
                upserted=details.get("nUpserted", 0),
                modified=details.get("nModified", 0),
                error=f"{len(details.get('writeErrors', []))} write errors",
            )
        except (OperationFailure, ConnectionFailure) as e:
            logger.error(f"Sub-batch {index} failed: {e}", exc_info=True)
            return SubBatchReport(index=index, attempted=len(operations), error=str(e))

        logger.debug(
            f"Sub-batch {index}: upserted {result.upserted_count}, modified {result.modified_count}, "
            f"matched {result.matched_count}."
        )
        return SubBatchReport(
            index=index,
            attempted=len(operations),
            upserted=result.upserted_count,
            modified=result.modified_count,
        )

    def close(self):
        if self._client is not None and self._owns_client:
            try:
                self._client.close()
                logger.debug("MongoDB connection closed.")
            except Exception as e:
                logger.error(f"Error closing MongoDB connection: {e}", exc_info=True)
        self._client = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
