import boto3
from botocore.exceptions import ClientError
import time
import os


def get_dynamodb_resource():
    return boto3.resource(
        "dynamodb",
        endpoint_url=os.getenv("DYNAMODB_ENDPOINT_URL", "http://localhost:8000"),
        region_name=os.getenv("AWS_DEFAULT_REGION", "us-east-1"),
    )


def create_table_if_not_exists(table_name="SocialEvents", dynamodb=None):
    """Create the events table with its GSIs if it doesn't exist"""
    dynamodb = dynamodb or get_dynamodb_resource()

    try:
        # Check if table exists
        table = dynamodb.Table(table_name)
        table.table_status
        print(f"Table {table_name} already exists")
        return table
    except ClientError as e:
        if e.response["Error"]["Code"] != "ResourceNotFoundException":
            raise

    table = dynamodb.create_table(
        TableName=table_name,
        KeySchema=[
            {"AttributeName": "PK", "KeyType": "HASH"},
            {"AttributeName": "SK", "KeyType": "RANGE"},
        ],
        AttributeDefinitions=[
            {"AttributeName": "PK", "AttributeType": "S"},
            {"AttributeName": "SK", "AttributeType": "S"},
            {"AttributeName": "GSI_EventsByDate_PK", "AttributeType": "S"},
            {"AttributeName": "GSI_EventsByDate_SK", "AttributeType": "S"},
            {"AttributeName": "GSI_EventsByCreator_PK", "AttributeType": "S"},
            {"AttributeName": "GSI_EventsByCreator_SK", "AttributeType": "S"},
        ],
        BillingMode="PAY_PER_REQUEST",
        GlobalSecondaryIndexes=[
            {
                "IndexName": "GSI_EventsByDate",
                "KeySchema": [
                    {"AttributeName": "GSI_EventsByDate_PK", "KeyType": "HASH"},
                    {"AttributeName": "GSI_EventsByDate_SK", "KeyType": "RANGE"},
                ],
                "Projection": {"ProjectionType": "ALL"},
            },
            {
                "IndexName": "GSI_EventsByCreator",
                "KeySchema": [
                    {"AttributeName": "GSI_EventsByCreator_PK", "KeyType": "HASH"},
                    {"AttributeName": "GSI_EventsByCreator_SK", "KeyType": "RANGE"},
                ],
                "Projection": {"ProjectionType": "ALL"},
            },
        ],
    )

    print(f"Creating table {table_name}...")
    table.wait_until_exists()

    # Wait for GSIs to be active
    while True:
        table.reload()
        gsi_statuses = [gsi["IndexStatus"] for gsi in table.global_secondary_indexes or []]
        if all(status == "ACTIVE" for status in gsi_statuses):
            break
        time.sleep(1)

    print(f"Table {table_name} created successfully")
    return table


def delete_table(table_name="SocialEvents", dynamodb=None):
    """Delete the events table"""
    dynamodb = dynamodb or get_dynamodb_resource()

    try:
        table = dynamodb.Table(table_name)
        table.delete()
        table.wait_until_not_exists()
        print(f"Table {table_name} deleted successfully")
    except ClientError as e:
        if e.response["Error"]["Code"] != "ResourceNotFoundException":
            raise
        print(f"Table {table_name} does not exist")


if __name__ == "__main__":
    create_table_if_not_exists(os.getenv("EVENTS_TABLE_NAME", "SocialEvents"))
