import os
from datetime import datetime, timedelta, timezone

import boto3
import pytest
from fastapi.testclient import TestClient
from moto import mock_aws

from app.core.security import StaticTokenVerifier, get_identity_verifier
from app.database.dynamodb import Database
from app.main import app
from app.routers.events import get_event_service
from app.schemas.identity import Identity
from app.services.event_service import EventService
from scripts.init_dynamodb import create_table_if_not_exists

TEST_TABLE_NAME = "SocialEvents_Test"

CREATOR = Identity(
    uid="creator-uid",
    email="creator@example.com",
    name="Casey Creator",
    picture="https://example.com/casey.png",
)
ALICE = Identity(uid="alice-uid", email="alice@example.com", name="Alice")
BOB = Identity(uid="bob-uid", email="bob@example.com", name="Bob")

TOKENS = {"creator-token": CREATOR, "alice-token": ALICE, "bob-token": BOB}


@pytest.fixture(autouse=True)
def aws_credentials(monkeypatch):
    """Keep boto3 away from real AWS credentials and endpoints"""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")
    monkeypatch.delenv("DYNAMODB_ENDPOINT_URL", raising=False)


@pytest.fixture
def dynamodb_resource():
    """In-memory DynamoDB with a fresh events table per test"""
    with mock_aws():
        resource = boto3.resource("dynamodb", region_name="us-east-1")
        create_table_if_not_exists(TEST_TABLE_NAME, resource)
        yield resource


@pytest.fixture
def database(dynamodb_resource):
    return Database(dynamodb_resource, TEST_TABLE_NAME)


@pytest.fixture
def event_service(database):
    return EventService(database)


@pytest.fixture
def future_date():
    return datetime.now(timezone.utc) + timedelta(days=7)


@pytest.fixture
def client(database):
    """Test client with the test table and a static token table"""

    def get_test_event_service():
        return EventService(database)

    def get_test_identity_verifier():
        return StaticTokenVerifier(TOKENS)

    app.dependency_overrides[get_event_service] = get_test_event_service
    app.dependency_overrides[get_identity_verifier] = get_test_identity_verifier

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides = {}


def auth(token):
    return {"Authorization": f"Bearer {token}"}
