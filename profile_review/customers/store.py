"""
Customer Store — the canonical profile, its additional-data area and notes.

Profile fields are a flat key-value map validated per key by the
FieldValidator. Writes are last-writer-wins.
"""

import sqlite3
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import uuid4

from profile_review.errors import NotFoundError, ValidationError
from profile_review.models.customer import (
    RESERVED_FIELDS,
    AdditionalDataItem,
    Customer,
    CustomerNote,
)
from profile_review.observability.logging import get_logger
from profile_review.storage.database import (
    Database,
    dumps,
    from_db_time,
    loads,
    to_db_time,
    utcnow,
)
from profile_review.validation.catalogue import field_label
from profile_review.validation.fields import FieldValidator

logger = get_logger(__name__)


class CustomerStore:

    def __init__(self, database: Database, validator: Optional[FieldValidator] = None):
        self.db = database
        self.validator = validator or FieldValidator()

    def create(
        self,
        full_name: Optional[str],
        primary_mobile: Optional[str],
        email_primary: Optional[str] = None,
        city_of_residence: Optional[str] = None,
        extra_fields: Optional[Dict[str, Any]] = None,
    ) -> Customer:
        """Create a customer. Full name and primary mobile are required."""
        if not full_name or not str(full_name).strip():
            raise ValidationError("Full name is required")
        if not primary_mobile or not str(primary_mobile).strip():
            raise ValidationError("Primary mobile is required")

        raw = dict(extra_fields or {})
        raw.update({
            "full_name": str(full_name).strip(),
            "primary_mobile": primary_mobile,
            "email_primary": email_primary,
            "city_of_residence": city_of_residence.strip() if city_of_residence else None,
        })
        fields = {k: v for k, v in self._validate(raw).items() if v is not None}

        now = utcnow()
        customer = Customer(
            id=f"cus_{uuid4().hex[:12]}",
            fields=fields,
            created_at=now,
            updated_at=now,
        )
        with self.db.transaction() as conn:
            conn.execute(
                """
                INSERT INTO customer (id, fields_json, additional_data_json, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (customer.id, dumps(customer.fields), "[]", to_db_time(now), to_db_time(now)),
            )
        logger.info("customer_created", customer_id=customer.id)
        return customer

    def _validate(self, updates: Dict[str, Any]) -> Dict[str, Any]:
        """Reject reserved keys and normalize every value through the validator."""
        validated = {}
        for key, value in updates.items():
            if key in RESERVED_FIELDS:
                raise ValidationError("Cannot update reserved field")
            result = self.validator.validate(key, value)
            if not result.valid:
                raise ValidationError(f"Invalid value for {field_label(key)}: {result.error}")
            validated[key] = result.value
        return validated

    def _deserialize(self, row: sqlite3.Row) -> Customer:
        return Customer(
            id=row["id"],
            fields=loads(row["fields_json"], {}),
            additional_data=loads(row["additional_data_json"], []),
            created_at=from_db_time(row["created_at"]),
            updated_at=from_db_time(row["updated_at"]),
        )

    def _fetch(self, conn: sqlite3.Connection, customer_id: str) -> Customer:
        row = conn.execute("SELECT * FROM customer WHERE id = ?", (customer_id,)).fetchone()
        if row is None:
            raise NotFoundError("Customer not found")
        return self._deserialize(row)

    def get(self, customer_id: str) -> Customer:
        with self.db.transaction() as conn:
            return self._fetch(conn, customer_id)

    def exists(self, customer_id: str) -> bool:
        with self.db.transaction() as conn:
            row = conn.execute(
                "SELECT 1 FROM customer WHERE id = ?", (customer_id,)
            ).fetchone()
        return row is not None

    def update_fields(self, customer_id: str, updates: Dict[str, Any]) -> Customer:
        """
        Validate and merge field values into the profile. Either every key is
        written or none is.
        """
        validated = self._validate(updates)
        with self.db.transaction() as conn:
            customer = self._fetch(conn, customer_id)
            if not validated:
                return customer
            fields = {**customer.fields, **validated}
            now = utcnow()
            conn.execute(
                "UPDATE customer SET fields_json = ?, updated_at = ? WHERE id = ?",
                (dumps(fields), to_db_time(now), customer_id),
            )
            updated = customer.model_copy(update={"fields": fields, "updated_at": now})
        logger.info("customer_fields_updated", customer_id=customer_id, keys=sorted(validated))
        return updated

    def append_additional_data(
        self, customer_id: str, items: List[AdditionalDataItem]
    ) -> Customer:
        with self.db.transaction() as conn:
            customer = self._fetch(conn, customer_id)
            if not items:
                return customer
            additional = customer.additional_data + list(items)
            now = utcnow()
            conn.execute(
                "UPDATE customer SET additional_data_json = ?, updated_at = ? WHERE id = ?",
                (
                    dumps([i.model_dump(mode="json") for i in additional]),
                    to_db_time(now),
                    customer_id,
                ),
            )
            updated = customer.model_copy(
                update={"additional_data": additional, "updated_at": now}
            )
        logger.info("additional_data_appended", customer_id=customer_id, count=len(items))
        return updated

    # --- Notes ---

    def add_note(
        self,
        customer_id: str,
        content: str,
        source: Optional[str] = None,
        tags: Optional[List[str]] = None,
        raw_input: Optional[str] = None,
        metadata: Optional[dict] = None,
        created_by: Optional[str] = None,
        created_at: Optional[datetime] = None,
    ) -> CustomerNote:
        if not content or not content.strip():
            raise ValidationError("Note content is required")

        note = CustomerNote(
            id=f"note_{uuid4().hex[:12]}",
            customer_id=customer_id,
            content=content,
            source=source or "meeting",
            tags=tags or [],
            raw_input=raw_input,
            metadata=metadata or {},
            created_by=created_by,
            created_at=created_at or utcnow(),
        )
        with self.db.transaction() as conn:
            self._fetch(conn, customer_id)
            conn.execute(
                """
                INSERT INTO customer_note (
                    id, customer_id, content, source, tags_json,
                    raw_input, metadata_json, created_by, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    note.id,
                    customer_id,
                    note.content,
                    note.source,
                    dumps(note.tags),
                    note.raw_input,
                    dumps(note.metadata),
                    note.created_by,
                    to_db_time(note.created_at),
                ),
            )
        logger.info("note_added", note_id=note.id, customer_id=customer_id)
        return note

    def list_notes(self, customer_id: str) -> List[CustomerNote]:
        """Notes for one customer, newest first."""
        with self.db.transaction() as conn:
            rows = conn.execute(
                "SELECT * FROM customer_note WHERE customer_id = ? "
                "ORDER BY created_at DESC, id DESC",
                (customer_id,),
            ).fetchall()
        return [
            CustomerNote(
                id=r["id"],
                customer_id=r["customer_id"],
                content=r["content"],
                source=r["source"],
                tags=loads(r["tags_json"], []),
                raw_input=r["raw_input"],
                metadata=loads(r["metadata_json"], {}),
                created_by=r["created_by"],
                created_at=from_db_time(r["created_at"]),
            )
            for r in rows
        ]
