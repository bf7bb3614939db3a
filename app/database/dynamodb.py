import logging

import boto3

from app.core.config import Settings

logger = logging.getLogger(__name__)


class Database:
    """Owns the process-wide DynamoDB resource and the events table handle."""

    def __init__(self, dynamodb_resource, events_table_name="SocialEvents"):
        self.resource = dynamodb_resource
        self.events_table_name = events_table_name

    @classmethod
    def from_settings(cls, settings: Settings) -> "Database":
        resource = boto3.resource(
            "dynamodb",
            endpoint_url=settings.dynamodb_endpoint_url,
            region_name=settings.aws_region,
        )
        logger.info(
            "Connected to DynamoDB (endpoint=%s, table=%s)",
            settings.dynamodb_endpoint_url or "aws",
            settings.events_table_name,
        )
        return cls(resource, settings.events_table_name)

    @property
    def events(self):
        return self.resource.Table(self.events_table_name)

    def close(self) -> None:
        self.resource.meta.client.close()
        logger.info("DynamoDB connection closed")
