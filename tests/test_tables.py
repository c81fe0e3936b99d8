import unittest
from unittest.mock import MagicMock, patch

from researcher_sync.dynamo.client import RESEARCHERS_TABLE
from researcher_sync.dynamo.tables import TABLES, ensure_tables


def _ddb(existing_tables, live_gsis) -> MagicMock:
    ddb = MagicMock()
    ddb.tables.all.return_value = [MagicMock(name=n) for n in existing_tables]
    for mock_table, name in zip(ddb.tables.all.return_value, existing_tables):
        mock_table.name = name
    ddb.meta.client.describe_table.return_value = {
        "Table": {
            "GlobalSecondaryIndexes": [{"IndexName": g} for g in live_gsis],
            "AttributeDefinitions": [{"AttributeName": "id", "AttributeType": "S"}],
        }
    }
    return ddb


class EnsureTablesTests(unittest.TestCase):
    @patch("researcher_sync.dynamo.tables.time.sleep")
    @patch("researcher_sync.dynamo.tables.get_dynamo_resource")
    def test_creates_missing_table(self, mock_resource, _sleep) -> None:
        ddb = _ddb([], ["by_did", "by_handle"])
        mock_resource.return_value = ddb

        ensure_tables()

        kwargs = ddb.create_table.call_args.kwargs
        self.assertEqual(kwargs["TableName"], RESEARCHERS_TABLE)
        self.assertEqual(kwargs["KeySchema"], [{"AttributeName": "id", "KeyType": "HASH"}])
        ddb.meta.client.update_table.assert_not_called()

    @patch("researcher_sync.dynamo.tables.time.sleep")
    @patch("researcher_sync.dynamo.tables.get_dynamo_resource")
    def test_adds_missing_index_to_existing_table(self, mock_resource, _sleep) -> None:
        ddb = _ddb([RESEARCHERS_TABLE], ["by_did"])
        mock_resource.return_value = ddb

        ensure_tables()

        ddb.create_table.assert_not_called()
        params = ddb.meta.client.update_table.call_args.kwargs
        self.assertEqual(params["GlobalSecondaryIndexUpdates"][0]["Create"]["IndexName"], "by_handle")
        self.assertEqual(params["AttributeDefinitions"], [{"AttributeName": "handle", "AttributeType": "S"}])

    def test_declares_lookup_indexes(self) -> None:
        names = [g["IndexName"] for g in TABLES[RESEARCHERS_TABLE]["GlobalSecondaryIndexes"]]
        self.assertEqual(names, ["by_did", "by_handle"])


if __name__ == "__main__":
    unittest.main()
