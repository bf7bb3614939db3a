import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from boto3.dynamodb.conditions import Attr, Key
from botocore.exceptions import ClientError

from app.database.dynamodb import Database
from app.schemas.event import EventCreate, EventOut
from app.schemas.identity import Identity
from app.services.exceptions import (
    AlreadyJoinedError,
    EventBusyError,
    EventForbiddenError,
    EventNotFoundError,
    EventValidationError,
    NoChangesError,
)

logger = logging.getLogger(__name__)

EVENT_TIMELINE_PK = "EVENT_TIMELINE"
EVENT_DETAIL_SK = "DETAIL"

TEXT_FIELDS = ("title", "description", "eventType", "thumbnail", "location")

# Fields a creator may change through update_event. Anything not listed here
# (creator fields, timestamps, participants, counters) is never written by it.
PATCHABLE_FIELDS = TEXT_FIELDS + ("eventDate",)

INTERNAL_ATTRIBUTES = {
    "PK",
    "SK",
    "participantEmails",
    "titleLower",
    "GSI_EventsByDate_PK",
    "GSI_EventsByDate_SK",
    "GSI_EventsByCreator_PK",
    "GSI_EventsByCreator_SK",
}

BATCH_GET_LIMIT = 100


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(value: datetime) -> str:
    """Serialize as UTC with fixed precision so string order is time order."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def parse_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            pass
    raise EventValidationError("Invalid event date")


class EventService:
    def __init__(self, database: Database, require_future_event_date: bool = True):
        self.dynamodb = database.resource
        self.table = database.events
        self.require_future_event_date = require_future_event_date

    def _now(self) -> datetime:
        return utc_now()

    # ------------------------------------------------------------------ reads

    def list_upcoming(
        self, event_type: Optional[str] = None, search: Optional[str] = None
    ) -> List[EventOut]:
        """Events dated now or later, soonest first."""
        query_kwargs = {
            "IndexName": "GSI_EventsByDate",
            "KeyConditionExpression": Key("GSI_EventsByDate_PK").eq(EVENT_TIMELINE_PK)
            & Key("GSI_EventsByDate_SK").gte(to_iso(self._now())),
            "ScanIndexForward": True,
        }

        filter_expression = None
        if event_type and event_type.strip():
            filter_expression = Attr("eventType").eq(event_type.strip())
        if search and search.strip():
            title_match = Attr("titleLower").contains(search.strip().lower())
            filter_expression = (
                title_match if filter_expression is None else filter_expression & title_match
            )
        if filter_expression is not None:
            query_kwargs["FilterExpression"] = filter_expression

        return [self._to_event_out(item) for item in self._query_all(**query_kwargs)]

    def get_event(self, event_id: str) -> EventOut:
        return self._to_event_out(self._get_item(self._event_key(event_id)))

    def list_created_by(self, email: str) -> List[EventOut]:
        """Events created by ``email``, newest first."""
        items = self._query_all(
            IndexName="GSI_EventsByCreator",
            KeyConditionExpression=Key("GSI_EventsByCreator_PK").eq(f"CREATOR#{email}"),
            ScanIndexForward=False,
        )
        return [self._to_event_out(item) for item in items]

    def list_joined_by(self, email: str) -> List[EventOut]:
        """Events ``email`` has joined, ordered by event date."""
        memberships = self._query_all(
            KeyConditionExpression=Key("PK").eq(f"PARTICIPANT#{email}")
            & Key("SK").begins_with("JOINED#"),
            ConsistentRead=True,
        )
        items = self._batch_get_events([m["eventId"] for m in memberships])
        items.sort(key=lambda item: item["eventDate"])
        return [self._to_event_out(item) for item in items]

    # ----------------------------------------------------------------- writes

    def create_event(self, event_data: EventCreate, identity: Identity) -> EventOut:
        """Validate and store a new event owned by ``identity``."""
        fields = {}
        for name in TEXT_FIELDS:
            value = getattr(event_data, name)
            fields[name] = value.strip() if isinstance(value, str) else ""

        if not all(fields.values()) or event_data.eventDate is None:
            raise EventValidationError("All fields are required")

        now = self._now()
        event_date = self._check_event_date(event_data.eventDate, now)

        event_id = str(uuid.uuid4())
        now_iso = to_iso(now)
        event_date_iso = to_iso(event_date)

        item = {
            "PK": f"EVENT#{event_id}",
            "SK": EVENT_DETAIL_SK,
            "id": event_id,
            **fields,
            "eventDate": event_date_iso,
            "creatorId": identity.uid,
            "creatorEmail": identity.email,
            "creatorName": identity.name,
            "creatorPhoto": identity.picture,
            "createdAt": now_iso,
            "updatedAt": now_iso,
            "participants": [],
            "participantCount": 0,
            "titleLower": fields["title"].lower(),
        }

        # GSI attributes for the upcoming and created-by listings
        item["GSI_EventsByDate_PK"] = EVENT_TIMELINE_PK
        item["GSI_EventsByDate_SK"] = event_date_iso
        item["GSI_EventsByCreator_PK"] = f"CREATOR#{identity.email}"
        item["GSI_EventsByCreator_SK"] = now_iso

        self.table.put_item(Item=item, ConditionExpression="attribute_not_exists(PK)")
        logger.info("Event %s created by %s", event_id, identity.email)
        return self._to_event_out(item)

    def join_event(self, event_id: str, identity: Identity) -> EventOut:
        """Add ``identity`` as a participant, at most once per email."""
        key = self._event_key(event_id)
        item = self._get_item(key)

        if identity.email in item.get("participantEmails", set()):
            logger.info("Rejected duplicate join of %s by %s", item["id"], identity.email)
            raise AlreadyJoinedError()

        self._append_participant(item["id"], identity)
        logger.info("%s joined event %s", identity.email, item["id"])
        return self._to_event_out(self._get_item(key))

    def _append_participant(self, event_id: str, identity: Identity) -> None:
        """Append the participant and bump the counter in one conditional write.

        The event update only succeeds while no participant with this exact
        email exists, so concurrent joins by the same caller land once.
        """
        now_iso = to_iso(self._now())
        participant = {
            "userId": identity.uid,
            "userEmail": identity.email,
            "userName": identity.name,
            "userPhoto": identity.picture,
            "joinedAt": now_iso,
        }
        membership_item = {
            "PK": f"PARTICIPANT#{identity.email}",
            "SK": f"JOINED#{event_id}",
            "eventId": event_id,
            "userEmail": identity.email,
            "joinedAt": now_iso,
        }

        transact_items = [
            {
                "Update": {
                    "TableName": self.table.table_name,
                    "Key": {"PK": f"EVENT#{event_id}", "SK": EVENT_DETAIL_SK},
                    "UpdateExpression": (
                        "SET participants = list_append("
                        "if_not_exists(participants, :empty), :participant), "
                        "participantCount = if_not_exists(participantCount, :zero) + :one, "
                        "updatedAt = :now "
                        "ADD participantEmails :emailSet"
                    ),
                    "ConditionExpression": (
                        "attribute_exists(PK) AND (attribute_not_exists(participantEmails) "
                        "OR NOT contains(participantEmails, :email))"
                    ),
                    "ExpressionAttributeValues": {
                        ":empty": [],
                        ":participant": [participant],
                        ":zero": 0,
                        ":one": 1,
                        ":now": now_iso,
                        ":emailSet": {identity.email},
                        ":email": identity.email,
                    },
                }
            },
            {
                "Put": {
                    "TableName": self.table.table_name,
                    "Item": membership_item,
                    "ConditionExpression": "attribute_not_exists(PK)",
                }
            },
        ]

        try:
            self.dynamodb.meta.client.transact_write_items(TransactItems=transact_items)
        except ClientError as e:
            if e.response["Error"]["Code"] != "TransactionCanceledException":
                raise
            codes = [reason.get("Code") for reason in e.response.get("CancellationReasons", [])]
            if codes and "ConditionalCheckFailed" not in codes:
                if "TransactionConflict" in codes:
                    # Another write to this event was in flight; nothing was applied.
                    logger.info("Join of %s by %s hit a write conflict", event_id, identity.email)
                    raise EventBusyError() from e
                raise
            logger.info("Rejected duplicate join of %s by %s", event_id, identity.email)
            raise AlreadyJoinedError() from e

    def update_event(
        self, event_id: str, patch: Dict[str, Any], identity: Identity
    ) -> EventOut:
        """Apply a creator-only partial update restricted to PATCHABLE_FIELDS."""
        key = self._event_key(event_id)
        item = self._get_item(key)

        if item["creatorEmail"] != identity.email:
            raise EventForbiddenError()

        now = self._now()
        changes = {
            name: value
            for name, value in self._clean_patch(patch, now).items()
            if item.get(name) != value
        }
        if not changes:
            raise NoChangesError()

        names = {"#updatedAt": "updatedAt"}
        values = {":now": to_iso(now), ":requester": identity.email}
        assignments = ["#updatedAt = :now"]
        for name, value in changes.items():
            names[f"#{name}"] = name
            values[f":{name}"] = value
            assignments.append(f"#{name} = :{name}")

        if "title" in changes:
            values[":titleLower"] = changes["title"].lower()
            assignments.append("titleLower = :titleLower")
        if "eventDate" in changes:
            assignments.append("GSI_EventsByDate_SK = :eventDate")

        try:
            response = self.table.update_item(
                Key=key,
                UpdateExpression="SET " + ", ".join(assignments),
                ConditionExpression="attribute_exists(PK) AND creatorEmail = :requester",
                ExpressionAttributeNames=names,
                ExpressionAttributeValues=values,
                ReturnValues="ALL_NEW",
            )
        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                raise EventForbiddenError() from e
            raise

        logger.info(
            "Event %s updated by %s (%s)", item["id"], identity.email, ", ".join(changes)
        )
        return self._to_event_out(response["Attributes"])

    # ---------------------------------------------------------------- helpers

    def _check_event_date(self, value: Any, now: datetime) -> datetime:
        event_date = parse_datetime(value)
        if event_date.tzinfo is None:
            event_date = event_date.replace(tzinfo=timezone.utc)
        if self.require_future_event_date and event_date <= now:
            raise EventValidationError("Event date must be in the future")
        return event_date

    def _clean_patch(self, patch: Dict[str, Any], now: datetime) -> Dict[str, Any]:
        cleaned = {}
        for name in PATCHABLE_FIELDS:
            if name not in patch:
                continue
            value = patch[name]
            if name == "eventDate":
                cleaned[name] = to_iso(self._check_event_date(value, now))
                continue
            if not isinstance(value, str) or not value.strip():
                raise EventValidationError(f"{name} cannot be empty")
            cleaned[name] = value.strip()
        return cleaned

    @staticmethod
    def _event_key(event_id: str) -> Dict[str, str]:
        try:
            normalized = str(uuid.UUID(event_id))
        except (ValueError, TypeError, AttributeError):
            raise EventNotFoundError() from None
        return {"PK": f"EVENT#{normalized}", "SK": EVENT_DETAIL_SK}

    def _get_item(self, key: Dict[str, str]) -> Dict[str, Any]:
        item = self.table.get_item(Key=key, ConsistentRead=True).get("Item")
        if not item:
            raise EventNotFoundError()
        return item

    def _query_all(self, **query_kwargs) -> List[Dict[str, Any]]:
        items = []
        while True:
            response = self.table.query(**query_kwargs)
            items.extend(response.get("Items", []))
            last_key = response.get("LastEvaluatedKey")
            if not last_key:
                return items
            query_kwargs["ExclusiveStartKey"] = last_key

    def _batch_get_events(self, event_ids: List[str]) -> List[Dict[str, Any]]:
        items = []
        for start in range(0, len(event_ids), BATCH_GET_LIMIT):
            keys = [
                {"PK": f"EVENT#{event_id}", "SK": EVENT_DETAIL_SK}
                for event_id in event_ids[start : start + BATCH_GET_LIMIT]
            ]
            request = {self.table.table_name: {"Keys": keys, "ConsistentRead": True}}
            while request:
                response = self.dynamodb.batch_get_item(RequestItems=request)
                items.extend(response["Responses"].get(self.table.table_name, []))
                request = response.get("UnprocessedKeys") or None
        return items

    @staticmethod
    def _to_event_out(item: Dict[str, Any]) -> EventOut:
        data = {k: v for k, v in item.items() if k not in INTERNAL_ATTRIBUTES}
        data["participantCount"] = int(data.get("participantCount", 0))
        data["participants"] = list(data.get("participants", []))
        return EventOut(**data)
