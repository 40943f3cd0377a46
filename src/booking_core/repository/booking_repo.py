from botocore.exceptions import ClientError
import logging
from typing import Iterable, List, Optional
from boto3.dynamodb.conditions import Key
from booking_core.models.bookings import (
    Booking,
    BookingStatus,
    CategorySnapshot,
    DaySlots,
    SlotRecord,
)
from booking_core.utils.custom_exceptions import StoreUnavailable, WriteConflict
from booking_core.utils.datetime_normaliser import from_iso_string, to_iso_string
from decimal import Decimal
from datetime import datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from types_boto3_dynamodb.service_resource import Table
    from types_boto3_dynamodb import DynamoDBClient
else:
    Table = object
    DynamoDBClient = object


logger = logging.getLogger(__name__)

RETRYABLE_CANCELLATION_CODES = {"ConditionalCheckFailed", "TransactionConflict"}


def booking_pk(booking_id: str) -> str:
    return f"BOOKING#{booking_id}"


def slots_pk(provider_id: str, day: str) -> str:
    return f"SLOTS#{provider_id}#{day}"


def consumer_pk(consumer_id: str) -> str:
    return f"CONSUMER#{consumer_id}"


def provider_pk(provider_id: str) -> str:
    return f"PROVIDER#{provider_id}"


class BookingRepository:
    def __init__(self, table: Table, client: DynamoDBClient = None):
        self.table = table
        self.client = client if client else table.meta.client

    @staticmethod
    def _iso(dt: datetime | str) -> str:
        return to_iso_string(dt)

    def _booking_attributes(self, booking: Booking) -> dict:
        return {
            "booking_id": booking.booking_id,
            "service_id": booking.service_id,
            "provider_id": booking.provider_id,
            "consumer_id": booking.consumer_id,
            "date": booking.date,
            "start_time": self._iso(booking.start_time),
            "end_time": self._iso(booking.end_time),
            "categories": [
                {
                    "category_id": c.category_id,
                    "name": c.name,
                    "price": Decimal(str(c.price)),
                }
                for c in booking.categories
            ],
            "total_price": Decimal(str(booking.total_price)),
            "booking_status": booking.status.value,
            "created_at": self._iso(booking.created_at),
            "updated_at": self._iso(booking.updated_at),
        }

    @staticmethod
    def _to_domain(item: dict) -> Booking:
        return Booking(
            booking_id=item["booking_id"],
            service_id=item["service_id"],
            provider_id=item["provider_id"],
            consumer_id=item["consumer_id"],
            date=item["date"],
            start_time=from_iso_string(item["start_time"]),
            end_time=from_iso_string(item["end_time"]),
            categories=[
                CategorySnapshot(
                    category_id=c["category_id"],
                    name=c["name"],
                    price=Decimal(str(c["price"])),
                )
                for c in item.get("categories", [])
            ],
            total_price=Decimal(str(item["total_price"])),
            status=BookingStatus(item["booking_status"]),
            created_at=from_iso_string(item["created_at"]),
            updated_at=from_iso_string(item["updated_at"]),
        )

    @staticmethod
    def _version_condition(expected: int) -> tuple[str, dict]:
        if expected == 0:
            return "attribute_not_exists(#version)", {}
        return "#version = :expected", {":expected": expected}

    def _query_all(self, **kwargs) -> List[dict]:
        response = self.table.query(**kwargs)
        items = list(response.get("Items", []))
        while "LastEvaluatedKey" in response:
            response = self.table.query(
                **kwargs, ExclusiveStartKey=response["LastEvaluatedKey"]
            )
            items.extend(response.get("Items", []))
        return items

    def add_booking(self, booking: Booking, ledger_versions: dict):
        """Insert a booking, conditioned on the slot ledgers being unchanged.

        ``ledger_versions`` maps every day key that was read for the conflict
        check to the ledger version seen. The booking's own day is bumped, the
        other days are only checked.
        """
        if booking.date not in ledger_versions:
            raise ValueError(
                f"ledger version for {booking.date} is required to commit "
                f"booking {booking.booking_id}"
            )
        attributes = self._booking_attributes(booking)

        transact_items = [
            {
                "Put": {
                    "TableName": self.table.name,
                    "Item": {
                        "pk": booking_pk(booking.booking_id),
                        "sk": "DETAILS",
                        **attributes,
                    },
                    "ConditionExpression": "attribute_not_exists(pk)",
                }
            },
            {
                "Put": {
                    "TableName": self.table.name,
                    "Item": {
                        "pk": slots_pk(booking.provider_id, booking.date),
                        "sk": booking_pk(booking.booking_id),
                        "booking_id": booking.booking_id,
                        "start_time": attributes["start_time"],
                        "end_time": attributes["end_time"],
                        "booking_status": attributes["booking_status"],
                    },
                }
            },
            {
                "Put": {
                    "TableName": self.table.name,
                    "Item": {
                        "pk": consumer_pk(booking.consumer_id),
                        "sk": booking_pk(booking.booking_id),
                        **attributes,
                    },
                }
            },
            {
                "Put": {
                    "TableName": self.table.name,
                    "Item": {
                        "pk": provider_pk(booking.provider_id),
                        "sk": booking_pk(booking.booking_id),
                        **attributes,
                    },
                }
            },
        ]

        for day, expected in sorted(ledger_versions.items()):
            condition, values = self._version_condition(expected)
            key = {"pk": slots_pk(booking.provider_id, day), "sk": "LEDGER"}
            if day == booking.date:
                transact_items.append(
                    {
                        "Update": {
                            "TableName": self.table.name,
                            "Key": key,
                            "UpdateExpression": (
                                "SET #version = if_not_exists(#version, :zero) + :one, "
                                "#updated_at = :now"
                            ),
                            "ConditionExpression": condition,
                            "ExpressionAttributeNames": {
                                "#version": "version",
                                "#updated_at": "updated_at",
                            },
                            "ExpressionAttributeValues": {
                                ":zero": 0,
                                ":one": 1,
                                ":now": attributes["created_at"],
                                **values,
                            },
                        }
                    }
                )
            else:
                check = {
                    "TableName": self.table.name,
                    "Key": key,
                    "ConditionExpression": condition,
                    "ExpressionAttributeNames": {"#version": "version"},
                }
                if values:
                    check["ExpressionAttributeValues"] = values
                transact_items.append({"ConditionCheck": check})

        try:
            self.client.transact_write_items(TransactItems=transact_items)
        except ClientError as err:
            if self._is_write_conflict(err):
                logger.warning(
                    f"Slot ledger for provider {booking.provider_id} on {booking.date} "
                    f"changed while booking {booking.booking_id} was being committed"
                )
                raise WriteConflict(booking.booking_id) from err
            logger.error(f"Error creating booking {booking.booking_id}: {err}")
            raise StoreUnavailable(str(err)) from err

    @staticmethod
    def _is_write_conflict(err: ClientError) -> bool:
        if err.response.get("Error", {}).get("Code") != "TransactionCanceledException":
            return False
        reasons = err.response.get("CancellationReasons", [])
        return any(r.get("Code") in RETRYABLE_CANCELLATION_CODES for r in reasons)

    def get_day_slots(self, provider_id: str, date_keys: Iterable[str]) -> DaySlots:
        date_keys = list(date_keys)
        result = DaySlots()

        # ledgers are read before the slot records: a commit landing between
        # the two reads bumps a ledger and fails the later version check
        for day in date_keys:
            try:
                response = self.table.get_item(
                    Key={"pk": slots_pk(provider_id, day), "sk": "LEDGER"},
                    ConsistentRead=True,
                )
            except ClientError as err:
                logger.error(
                    f"Error reading slot ledger for provider {provider_id} on {day}: {err}"
                )
                raise StoreUnavailable(str(err)) from err
            item = response.get("Item") or {}
            result.ledger_versions[day] = int(item.get("version", 0))

        for day in date_keys:
            try:
                items = self._query_all(
                    KeyConditionExpression=Key("pk").eq(slots_pk(provider_id, day))
                    & Key("sk").begins_with("BOOKING#"),
                    ConsistentRead=True,
                )
            except ClientError as err:
                logger.error(
                    f"Error retrieving slots for provider {provider_id} on {day}: {err}"
                )
                raise StoreUnavailable(str(err)) from err

            for item in items:
                result.slots.append(
                    SlotRecord(
                        booking_id=item["booking_id"],
                        provider_id=provider_id,
                        date=day,
                        start_time=from_iso_string(item["start_time"]),
                        end_time=from_iso_string(item["end_time"]),
                        status=BookingStatus(item["booking_status"]),
                    )
                )

        return result

    def get_booking_by_id(self, booking_id: str) -> Optional[Booking]:
        try:
            response = self.table.get_item(
                Key={"pk": booking_pk(booking_id), "sk": "DETAILS"},
                ConsistentRead=True,
            )
        except ClientError as err:
            logger.error(f"Error retrieving booking {booking_id}: {err}")
            raise StoreUnavailable(str(err)) from err

        item = response.get("Item")
        if not item:
            return None
        return self._to_domain(item)

    def _get_indexed_bookings(self, pk: str) -> List[Booking]:
        try:
            items = self._query_all(
                KeyConditionExpression=Key("pk").eq(pk)
                & Key("sk").begins_with("BOOKING#"),
                ConsistentRead=True,
            )
        except ClientError as err:
            logger.error(f"Error retrieving bookings for {pk}: {err}")
            raise StoreUnavailable(str(err)) from err
        return [self._to_domain(item) for item in items]

    def get_consumer_bookings(self, consumer_id: str) -> List[Booking]:
        return self._get_indexed_bookings(consumer_pk(consumer_id))

    def get_provider_bookings(self, provider_id: str) -> List[Booking]:
        return self._get_indexed_bookings(provider_pk(provider_id))

    def update_booking_status(
        self,
        booking: Booking,
        status: BookingStatus,
        updated_at: datetime,
    ):
        """Move every copy of ``booking`` to ``status`` in one transaction.

        The canonical item must still hold ``booking.status``; otherwise another
        transition won and ``WriteConflict`` is raised.
        """
        updated_iso = self._iso(updated_at)
        names = {"#booking_status": "booking_status", "#updated_at": "updated_at"}
        values = {":new_value": status.value, ":updated_at": updated_iso}

        def _update(key: dict, condition: str, extra_values: Optional[dict] = None):
            return {
                "Update": {
                    "Key": key,
                    "TableName": self.table.name,
                    "UpdateExpression": (
                        "SET #booking_status = :new_value, #updated_at = :updated_at"
                    ),
                    "ExpressionAttributeNames": names,
                    "ExpressionAttributeValues": {**values, **(extra_values or {})},
                    "ConditionExpression": condition,
                }
            }

        sk = booking_pk(booking.booking_id)
        try:
            self.client.transact_write_items(
                TransactItems=[
                    _update(
                        {"pk": booking_pk(booking.booking_id), "sk": "DETAILS"},
                        "#booking_status = :expected_status",
                        {":expected_status": booking.status.value},
                    ),
                    _update(
                        {"pk": slots_pk(booking.provider_id, booking.date), "sk": sk},
                        "attribute_exists(pk)",
                    ),
                    _update(
                        {"pk": consumer_pk(booking.consumer_id), "sk": sk},
                        "attribute_exists(pk)",
                    ),
                    _update(
                        {"pk": provider_pk(booking.provider_id), "sk": sk},
                        "attribute_exists(pk)",
                    ),
                ]
            )
        except ClientError as err:
            if self._is_write_conflict(err):
                raise WriteConflict(booking.booking_id) from err
            logger.error(f"Error updating booking {booking.booking_id} status: {err}")
            raise StoreUnavailable(str(err)) from err
