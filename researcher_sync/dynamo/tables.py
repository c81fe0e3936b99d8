from .client import RESEARCHERS_TABLE, get_dynamo_resource
from botocore.exceptions import ClientError
import time

TABLES = {
  RESEARCHERS_TABLE: {
    "KeySchema":[{"AttributeName":"id","KeyType":"HASH"}],
    "AttributeDefinitions":[
        {"AttributeName":"id","AttributeType":"S"},
        {"AttributeName":"did","AttributeType":"S"},
        {"AttributeName":"handle","AttributeType":"S"}
    ],
    "GlobalSecondaryIndexes":[
        { "IndexName":"by_did",
          "KeySchema":[{"AttributeName":"did","KeyType":"HASH"}],
          "Projection":{"ProjectionType":"ALL"},
          "ProvisionedThroughput":{"ReadCapacityUnits":5,"WriteCapacityUnits":5}
        },
        { "IndexName":"by_handle",
          "KeySchema":[{"AttributeName":"handle","KeyType":"HASH"}],
          "Projection":{"ProjectionType":"ALL"},
          "ProvisionedThroughput":{"ReadCapacityUnits":5,"WriteCapacityUnits":5}
        }
    ],
    "ProvisionedThroughput":{"ReadCapacityUnits":5,"WriteCapacityUnits":5}
  }
}

def ensure_tables():
    ddb = get_dynamo_resource()
    existing = {t.name for t in ddb.tables.all()}
    for name, spec in TABLES.items():
        if name not in existing:
            params = {"TableName": name, **spec}
            try:
                ddb.create_table(**params).wait_until_exists()
            except ClientError as e:
                if e.response["Error"]["Code"] != "ResourceInUseException":
                    raise
        # tables created before an index was added still need it
        _ensure_gsis(ddb, name, spec)


def _ensure_gsis(ddb, table_name: str, spec: dict) -> None:
    """Create any GSI from TABLES[table_name] missing on the live table, one at a time."""
    client = ddb.meta.client
    try:
        desc = client.describe_table(TableName=table_name)["Table"]
    except ClientError:
        return

    existing = {g["IndexName"] for g in (desc.get("GlobalSecondaryIndexes") or [])}
    missing = [g for g in spec.get("GlobalSecondaryIndexes", []) if g["IndexName"] not in existing]
    if not missing:
        return

    have_attrs = {a["AttributeName"] for a in (desc.get("AttributeDefinitions") or [])}
    spec_attrs = {a["AttributeName"]: a["AttributeType"] for a in spec.get("AttributeDefinitions", [])}

    for gsi in missing:
        new_defs = [
            {"AttributeName": k["AttributeName"], "AttributeType": spec_attrs[k["AttributeName"]]}
            for k in gsi.get("KeySchema", [])
            if k["AttributeName"] not in have_attrs and k["AttributeName"] in spec_attrs
        ]
        params = {
            "TableName": table_name,
            "GlobalSecondaryIndexUpdates": [{"Create": gsi}],
        }
        if new_defs:
            params["AttributeDefinitions"] = new_defs

        try:
            client.update_table(**params)
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code")
            if code in {"ResourceInUseException", "ValidationException"}:
                # another process is already creating it
                continue
            raise
        # DynamoDB allows one GSI creation in flight per table on local dev
        time.sleep(0.2)
