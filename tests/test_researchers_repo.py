"""Tests for researcher_sync.dynamo.researchers_repo: DynamoDB researcher table."""
import unittest
from decimal import Decimal
from unittest.mock import MagicMock, patch

from boto3.dynamodb.conditions import ConditionExpressionBuilder
from botocore.exceptions import ClientError

from researcher_sync.dynamo.researchers_repo import ResearchersRepo
from researcher_sync.exceptions import PersistenceError
from researcher_sync.models import ResearcherRecord


def _make_repo() -> tuple:
    """Create a ResearchersRepo with a mocked DynamoDB table."""
    with patch("researcher_sync.dynamo.researchers_repo.get_dynamo_resource") as mock_ddb:
        table = MagicMock()
        mock_ddb.return_value.Table.return_value = table
        repo = ResearchersRepo()
    return repo, table


def _client_error(code: str, op: str = "UpdateItem") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, op)


class ResearchersRepoReadTests(unittest.TestCase):
    def test_scan_follows_pagination(self) -> None:
        repo, table = _make_repo()
        table.scan.side_effect = [
            {"Items": [{"id": "r1", "orcid": "0000-0002-1825-0097"}], "LastEvaluatedKey": {"id": "r1"}},
            {"Items": [{"id": "r2", "orcid": "0000-0002-1694-233X"}]},
        ]
        out = repo.select_missing_topics()
        self.assertEqual([r.id for r in out], ["r1", "r2"])
        self.assertEqual(table.scan.call_count, 2)
        self.assertEqual(table.scan.call_args_list[1].kwargs["ExclusiveStartKey"], {"id": "r1"})

    def test_items_are_decoded(self) -> None:
        repo, table = _make_repo()
        table.scan.return_value = {
            "Items": [
                {
                    "id": "r1",
                    "did": "did:plc:abc",
                    "handle": "ada.bsky.social",
                    "research_topics": '["NLP", "Ethics"]',
                    "is_active": True,
                    "topics_version": Decimal("3"),
                },
                {"id": "r2", "research_topics": "not json"},
            ]
        }
        out = repo.select_active_with_topics()
        self.assertEqual(len(out), 1)
        self.assertEqual(out[0].topics, ["NLP", "Ethics"])
        self.assertEqual(out[0].topics_version, 3)

    def test_missing_is_active_counts_as_active(self) -> None:
        repo, table = _make_repo()
        table.scan.return_value = {
            "Items": [
                {"id": "r1", "research_topics": '["NLP"]'},
                {"id": "r2", "research_topics": '["NLP"]', "is_active": False},
            ]
        }
        out = repo.select_active_with_topics()

        self.assertEqual([r.id for r in out], ["r1"])
        built = ConditionExpressionBuilder().build_expression(table.scan.call_args.kwargs["FilterExpression"])
        self.assertIn("attribute_not_exists", built.condition_expression)
        self.assertIn("is_active", built.attribute_name_placeholders.values())
        self.assertEqual(list(built.attribute_value_placeholders.values()), [True])

    def test_scan_errors_become_persistence_errors(self) -> None:
        repo, table = _make_repo()
        table.scan.side_effect = _client_error("ProvisionedThroughputExceededException", "Scan")
        with self.assertRaises(PersistenceError):
            repo.select_missing_orcid()

    def test_get_by_handle_uses_index(self) -> None:
        repo, table = _make_repo()
        table.query.return_value = {"Items": [{"id": "r1", "handle": "ada.bsky.social"}]}
        record = repo.get_by_handle("ada.bsky.social")
        self.assertEqual(record.id, "r1")
        self.assertEqual(table.query.call_args.kwargs["IndexName"], "by_handle")
        table.scan.assert_not_called()

    def test_get_by_handle_falls_back_to_scan(self) -> None:
        repo, table = _make_repo()
        table.query.side_effect = _client_error("ValidationException", "Query")
        table.scan.return_value = {"Items": []}
        self.assertIsNone(repo.get_by_handle("ghost.bsky.social"))
        table.scan.assert_called_once()


class ResearchersRepoWriteTests(unittest.TestCase):
    def test_conditional_write_bumps_version(self) -> None:
        repo, table = _make_repo()
        record = ResearcherRecord(id="r1", topics_version=2)

        self.assertTrue(repo.write_resolution(record, openalex_id="A1", topics=["NLP"]))

        kwargs = table.update_item.call_args.kwargs
        self.assertEqual(kwargs["Key"], {"id": "r1"})
        self.assertIn("research_topics = :topics", kwargs["UpdateExpression"])
        self.assertIn("openalex_id = :oa", kwargs["UpdateExpression"])
        self.assertNotIn("orcid = :orcid", kwargs["UpdateExpression"])
        self.assertNotIn("institution = :inst", kwargs["UpdateExpression"])
        self.assertIn("topics_version = :expected", kwargs["ConditionExpression"])
        values = kwargs["ExpressionAttributeValues"]
        self.assertEqual(values[":topics"], '["NLP"]')
        self.assertEqual(values[":expected"], 2)
        self.assertEqual(values[":next"], 3)
        self.assertEqual(record.topics_version, 3)

    def test_version_conflict_overwrites_with_warning(self) -> None:
        repo, table = _make_repo()
        record = ResearcherRecord(id="r1", topics_version=2)
        table.update_item.side_effect = [
            _client_error("ConditionalCheckFailedException"),
            {"Attributes": {"topics_version": Decimal("5")}},
        ]

        with self.assertLogs("researcher_sync.dynamo.researchers_repo", level="WARNING"):
            self.assertFalse(repo.write_resolution(record, orcid="0000-0002-1825-0097"))

        second = table.update_item.call_args_list[1].kwargs
        self.assertNotIn("ConditionExpression", second)
        self.assertIn("ADD topics_version :one", second["UpdateExpression"])
        self.assertEqual(record.topics_version, 5)

    def test_institution_is_written_when_given(self) -> None:
        repo, table = _make_repo()
        repo.write_resolution(ResearcherRecord(id="r1"), topics=["NLP"], institution="CU Boulder")
        kwargs = table.update_item.call_args.kwargs
        self.assertIn("institution = :inst", kwargs["UpdateExpression"])
        self.assertEqual(kwargs["ExpressionAttributeValues"][":inst"], "CU Boulder")

    def test_other_write_errors_raise(self) -> None:
        repo, table = _make_repo()
        table.update_item.side_effect = _client_error("ResourceNotFoundException")
        with self.assertRaises(PersistenceError):
            repo.write_resolution(ResearcherRecord(id="r1"), topics=["NLP"])


if __name__ == "__main__":
    unittest.main()
