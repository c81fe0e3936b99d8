from .client import RESEARCHERS_TABLE, get_dynamo_resource
from ..exceptions import PersistenceError
from ..logging_setup import get_logger, with_extras
from ..models import ResearcherRecord, encode_topics
from boto3.dynamodb.conditions import Attr, Key
from botocore.exceptions import BotoCoreError, ClientError
from typing import Any, Dict, List, Optional
import datetime as dt

log = get_logger(__name__)


class ResearchersRepo:
    """DynamoDB-backed store of verified researcher records."""

    def __init__(self):
        ddb = get_dynamo_resource()
        self.t_researchers = ddb.Table(RESEARCHERS_TABLE)

    # --- reads ---
    def _scan(self, filter_expression) -> List[Dict[str, Any]]:
        items: List[Dict[str, Any]] = []
        try:
            resp = self.t_researchers.scan(FilterExpression=filter_expression)
            items.extend(resp.get("Items", []))
            while resp.get("LastEvaluatedKey"):
                resp = self.t_researchers.scan(
                    FilterExpression=filter_expression,
                    ExclusiveStartKey=resp["LastEvaluatedKey"],
                )
                items.extend(resp.get("Items", []))
        except (ClientError, BotoCoreError) as e:
            raise PersistenceError(f"researcher scan failed: {e}") from e
        return items

    def _records(self, filter_expression) -> List[ResearcherRecord]:
        return [ResearcherRecord.from_item(it) for it in self._scan(filter_expression) if it.get("id")]

    def select_missing_topics(self) -> List[ResearcherRecord]:
        """Records holding an ORCID but no topic list (topic backfill)."""
        cond = (
            Attr("orcid").exists()
            & Attr("orcid").ne("")
            & (Attr("research_topics").not_exists() | Attr("research_topics").eq(""))
        )
        return [r for r in self._records(cond) if r.orcid]

    def select_missing_orcid(self) -> List[ResearcherRecord]:
        """Records with no ORCID yet (identity discovery)."""
        cond = Attr("orcid").not_exists() | Attr("orcid").eq("")
        return self._records(cond)

    def select_active_with_topics(self) -> List[ResearcherRecord]:
        # a missing is_active means active, same as ResearcherRecord.from_item
        cond = (Attr("is_active").not_exists() | Attr("is_active").eq(True)) & Attr("research_topics").exists()
        return [r for r in self._records(cond) if r.is_active and r.has_topics]

    def get_by_handle(self, handle: str) -> Optional[ResearcherRecord]:
        # prefer the GSI; fall back to a scan on tables that predate it
        try:
            resp = self.t_researchers.query(
                IndexName="by_handle",
                KeyConditionExpression=Key("handle").eq(handle),
                Limit=1,
            )
            items = resp.get("Items", [])
        except ClientError:
            items = self._scan(Attr("handle").eq(handle))
        except BotoCoreError as e:
            raise PersistenceError(f"researcher lookup failed: {e}") from e
        return ResearcherRecord.from_item(items[0]) if items else None

    # --- writes ---
    def write_resolution(
        self,
        record: ResearcherRecord,
        *,
        orcid: Optional[str] = None,
        openalex_id: Optional[str] = None,
        topics: Optional[List[str]] = None,
        institution: Optional[str] = None,
    ) -> bool:
        """
        Persist the outcome of one resolution event.

        Only the given fields are written; topics are replaced wholesale.
        Guarded by topics_version: if another writer got there first the
        write still goes through (last writer wins) with a warning, and
        False is returned.
        """
        now = dt.datetime.now(dt.timezone.utc).isoformat()
        sets = ["updated_at = :t"]
        values: Dict[str, Any] = {":t": now, ":one": 1}
        if orcid is not None:
            sets.append("orcid = :orcid")
            values[":orcid"] = orcid
        if openalex_id is not None:
            sets.append("openalex_id = :oa")
            values[":oa"] = openalex_id
        if topics is not None:
            sets.append("research_topics = :topics")
            values[":topics"] = encode_topics(topics)
        if institution is not None:
            sets.append("institution = :inst")
            values[":inst"] = institution

        try:
            self.t_researchers.update_item(
                Key={"id": record.id},
                UpdateExpression="SET " + ", ".join(sets + ["topics_version = :next"]),
                ConditionExpression="attribute_not_exists(topics_version) OR topics_version = :expected",
                ExpressionAttributeValues={
                    **{k: v for k, v in values.items() if k != ":one"},
                    ":expected": record.topics_version,
                    ":next": record.topics_version + 1,
                },
            )
            record.topics_version += 1
            return True
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") != "ConditionalCheckFailedException":
                raise PersistenceError(f"researcher update failed: {e}") from e
        except BotoCoreError as e:
            raise PersistenceError(f"researcher update failed: {e}") from e

        with_extras(log, researcher_id=record.id, expected_version=record.topics_version).warning(
            "concurrent resolution detected; overwriting (last writer wins)"
        )
        try:
            resp = self.t_researchers.update_item(
                Key={"id": record.id},
                UpdateExpression=(
                    "SET " + ", ".join(sets)
                    + " ADD topics_version :one"
                ),
                ExpressionAttributeValues=values,
                ReturnValues="UPDATED_NEW",
            )
        except (ClientError, BotoCoreError) as e:
            raise PersistenceError(f"researcher update failed: {e}") from e
        new_version = (resp.get("Attributes") or {}).get("topics_version")
        if new_version is not None:
            record.topics_version = int(new_version)
        return False
