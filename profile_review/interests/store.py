"""
Interest Store — durable customer interests with an append-only audit trail.

Behavioral Contract:
- Rows are never deleted; archive is a status change.
- create_from_artifact accepts the artifact, inserts the Interest and
  appends its audit record in one transaction. If the artifact is no
  longer pending nothing is written and InvalidStateError propagates.
- The first archival is authoritative: re-archiving is a no-op.
- Every mutation appends exactly one InterestAuditRecord.
"""

import sqlite3
from datetime import datetime
from typing import Iterable, List, Optional, Union
from uuid import uuid4

from profile_review.artifacts.store import ArtifactStore
from profile_review.errors import NotFoundError, ValidationError
from profile_review.models.artifact import InterestCategory
from profile_review.models.interest import (
    ActorType,
    Interest,
    InterestAuditAction,
    InterestAuditRecord,
    InterestSourceType,
    InterestStatus,
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

logger = get_logger(__name__)


def _require_rm(rm_id: Optional[str]) -> str:
    if not rm_id:
        raise ValidationError("RM ID is required")
    return rm_id


def _parse_category(category) -> InterestCategory:
    try:
        return InterestCategory(category)
    except ValueError:
        raise ValidationError(
            f"Invalid category: {category}. Must be 'personal' or 'financial'"
        )


class InterestStore:
    """
    Interest persistence over the shared Database.
    Artifact acceptance is delegated to the ArtifactStore so both writes
    share one transaction.
    """

    def __init__(self, database: Database, artifacts: Optional[ArtifactStore] = None):
        self.db = database
        self.artifacts = artifacts or ArtifactStore(database)

    # --- Creation ---

    def create_manual(
        self,
        customer_id: str,
        rm_id: str,
        category: Union[str, InterestCategory],
        label: str,
        description: Optional[str] = None,
        created_at: Optional[datetime] = None,
    ) -> Interest:
        """Confirmed interest entered directly by the RM."""
        rm_id = _require_rm(rm_id)
        if not label or not label.strip():
            raise ValidationError("Label is required")

        now = created_at or utcnow()
        interest = Interest(
            id=f"int_{uuid4().hex[:12]}",
            customer_id=customer_id,
            category=_parse_category(category),
            label=label.strip(),
            description=description,
            status=InterestStatus.CONFIRMED,
            source_type=InterestSourceType.MANUAL,
            created_by=rm_id,
            created_at=now,
            updated_at=now,
        )
        with self.db.transaction() as conn:
            self._insert(conn, interest)
            self._append_audit(
                conn, interest.id, InterestAuditAction.CREATED, rm_id, new_state=interest
            )
        logger.info("interest_created", interest_id=interest.id, customer_id=customer_id)
        return interest

    def create_from_artifact(
        self,
        artifact_id: str,
        rm_id: str,
        label: Optional[str] = None,
        description: Optional[str] = None,
        customer_id: Optional[str] = None,
    ) -> Interest:
        """
        Confirm a pending interest_proposal artifact as a durable Interest.
        Exactly one of any number of concurrent calls succeeds.
        """
        rm_id = _require_rm(rm_id)

        with self.db.transaction() as conn:
            artifact = self.artifacts.get_by_id(artifact_id)
            if customer_id is not None and artifact.customer_id != customer_id:
                raise NotFoundError(f"Artifact {artifact_id} not found")

            accepted = self.artifacts.accept_interest_proposal(
                artifact_id, label=label, description=description, decided_by=rm_id
            )
            payload = accepted.payload
            now = utcnow()
            interest = Interest(
                id=f"int_{uuid4().hex[:12]}",
                customer_id=accepted.customer_id,
                category=payload.category,
                label=accepted.overrides.get("label", payload.label),
                description=accepted.overrides.get("description", payload.description),
                status=InterestStatus.CONFIRMED,
                source_type=InterestSourceType.SYSTEM_SUGGESTED,
                source_artifact_id=artifact_id,
                source_text=payload.source_text,
                confidence=payload.confidence,
                created_by=rm_id,
                created_at=now,
                updated_at=now,
            )
            self._insert(conn, interest)
            self._append_audit(
                conn, interest.id, InterestAuditAction.CONFIRMED, rm_id, new_state=interest
            )

        logger.info(
            "interest_confirmed",
            interest_id=interest.id,
            artifact_id=artifact_id,
            customer_id=interest.customer_id,
        )
        return interest

    def _insert(self, conn: sqlite3.Connection, interest: Interest) -> None:
        conn.execute(
            """
            INSERT INTO interest (
                id, customer_id, category, label, description, status,
                source_type, source_artifact_id, source_text, confidence,
                created_by, archived_by, archived_at, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                interest.id,
                interest.customer_id,
                interest.category.value,
                interest.label,
                interest.description,
                interest.status.value,
                interest.source_type.value,
                interest.source_artifact_id,
                interest.source_text,
                interest.confidence.value if interest.confidence else None,
                interest.created_by,
                interest.archived_by,
                to_db_time(interest.archived_at),
                to_db_time(interest.created_at),
                to_db_time(interest.updated_at),
            ),
        )

    # --- Mutation ---

    def update(
        self,
        interest_id: str,
        rm_id: str,
        label: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Interest:
        """Partial update of label/description. status and category never change here."""
        if label is None and description is None:
            raise ValidationError("At least one of label or description is required")
        if label is not None and not label.strip():
            raise ValidationError("Label cannot be empty")

        with self.db.transaction() as conn:
            current = self._fetch(conn, interest_id)
            updated = current.model_copy(update={
                "label": label.strip() if label is not None else current.label,
                "description": description if description is not None else current.description,
                "updated_at": utcnow(),
            })
            conn.execute(
                "UPDATE interest SET label = ?, description = ?, updated_at = ? WHERE id = ?",
                (updated.label, updated.description, to_db_time(updated.updated_at), interest_id),
            )
            self._append_audit(
                conn, interest_id, InterestAuditAction.EDITED, rm_id,
                previous_state=current, new_state=updated,
            )
        logger.info("interest_edited", interest_id=interest_id)
        return updated

    def archive(self, interest_id: str, rm_id: str) -> Interest:
        """Soft delete. Archiving an archived interest returns it unchanged."""
        with self.db.transaction() as conn:
            current = self._fetch(conn, interest_id)
            if current.status == InterestStatus.ARCHIVED:
                return current

            now = utcnow()
            archived = current.model_copy(update={
                "status": InterestStatus.ARCHIVED,
                "archived_by": rm_id,
                "archived_at": now,
                "updated_at": now,
            })
            conn.execute(
                """
                UPDATE interest
                SET status = ?, archived_by = ?, archived_at = ?, updated_at = ?
                WHERE id = ? AND status != ?
                """,
                (
                    InterestStatus.ARCHIVED.value,
                    rm_id,
                    to_db_time(now),
                    to_db_time(now),
                    interest_id,
                    InterestStatus.ARCHIVED.value,
                ),
            )
            self._append_audit(
                conn, interest_id, InterestAuditAction.ARCHIVED, rm_id,
                previous_state=current, new_state=archived,
            )
        logger.info("interest_archived", interest_id=interest_id)
        return archived

    # --- Reads ---

    def _deserialize(self, row: sqlite3.Row) -> Interest:
        return Interest(
            id=row["id"],
            customer_id=row["customer_id"],
            category=row["category"],
            label=row["label"],
            description=row["description"],
            status=row["status"],
            source_type=row["source_type"],
            source_artifact_id=row["source_artifact_id"],
            source_text=row["source_text"],
            confidence=row["confidence"],
            created_by=row["created_by"],
            archived_by=row["archived_by"],
            archived_at=from_db_time(row["archived_at"]),
            created_at=from_db_time(row["created_at"]),
            updated_at=from_db_time(row["updated_at"]),
        )

    def _fetch(self, conn: sqlite3.Connection, interest_id: str) -> Interest:
        row = conn.execute("SELECT * FROM interest WHERE id = ?", (interest_id,)).fetchone()
        if row is None:
            raise NotFoundError(f"Interest {interest_id} not found")
        return self._deserialize(row)

    def get_by_id(self, interest_id: str) -> Interest:
        with self.db.transaction() as conn:
            return self._fetch(conn, interest_id)

    def list_by_customer(
        self,
        customer_id: str,
        status: Union[None, str, InterestStatus, Iterable] = None,
        category: Union[None, str, InterestCategory] = None,
        include_archived: bool = False,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Interest]:
        """
        Newest first. Archived interests appear only when include_archived
        is set or archived is one of the requested statuses.
        """
        clauses = ["customer_id = ?"]
        params: list = [customer_id]

        statuses = InterestStatus.parse_many(status)
        if statuses:
            clauses.append(f"status IN ({', '.join('?' for _ in statuses)})")
            params.extend(s.value for s in statuses)
        elif not include_archived:
            clauses.append("status != ?")
            params.append(InterestStatus.ARCHIVED.value)

        if category is not None:
            clauses.append("category = ?")
            params.append(_parse_category(category).value)

        params.extend([limit, offset])
        with self.db.transaction() as conn:
            rows = conn.execute(
                f"SELECT * FROM interest WHERE {' AND '.join(clauses)} "
                "ORDER BY created_at DESC, id DESC LIMIT ? OFFSET ?",
                params,
            ).fetchall()
        return [self._deserialize(r) for r in rows]

    # --- Audit ---

    def _append_audit(
        self,
        conn: sqlite3.Connection,
        interest_id: str,
        action: InterestAuditAction,
        actor_id: Optional[str],
        previous_state: Optional[Interest] = None,
        new_state: Optional[Interest] = None,
        actor_type: ActorType = ActorType.RM,
    ) -> None:
        conn.execute(
            """
            INSERT INTO interest_audit (
                id, interest_id, action, actor_id, actor_type,
                previous_state_json, new_state_json, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                f"aud_{uuid4().hex[:12]}",
                interest_id,
                action.value,
                actor_id,
                actor_type.value,
                dumps(previous_state.model_dump(mode="json")) if previous_state else None,
                dumps(new_state.model_dump(mode="json")) if new_state else None,
                to_db_time(utcnow()),
            ),
        )

    def get_audit_history(self, interest_id: str) -> List[InterestAuditRecord]:
        """Audit records for one interest, newest first."""
        with self.db.transaction() as conn:
            rows = conn.execute(
                "SELECT * FROM interest_audit WHERE interest_id = ? "
                "ORDER BY created_at DESC, rowid DESC",
                (interest_id,),
            ).fetchall()
        return [
            InterestAuditRecord(
                id=r["id"],
                interest_id=r["interest_id"],
                action=r["action"],
                actor_id=r["actor_id"],
                actor_type=r["actor_type"],
                previous_state=loads(r["previous_state_json"]),
                new_state=loads(r["new_state_json"]),
                created_at=from_db_time(r["created_at"]),
            )
            for r in rows
        ]
