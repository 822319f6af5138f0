"""
Artifact Store — persistence and lifecycle for extracted suggestions.

Behavioral Contract:
- Artifacts are born pending. accepted, rejected and edited are terminal.
- Every transition is a compare-and-set on (id, status='pending'): of N
  concurrent deciders exactly one wins, the rest get InvalidStateError.
- The payload column is written once at creation and never updated.
- Lists are newest first, ties broken by id.
"""

import sqlite3
from datetime import datetime
from typing import Any, Iterable, List, Optional, Union
from uuid import uuid4

from profile_review.errors import InvalidStateError, NotFoundError, ValidationError
from profile_review.models.artifact import (
    Artifact,
    ArtifactPayload,
    ArtifactStatus,
    ArtifactType,
    Confidence,
    CreatorType,
    InterestCategory,
    InterestProposalPayload,
    NotePayload,
    ProfileEditPayload,
    parse_tokens,
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

_UNSET = object()


def new_artifact_id() -> str:
    return f"art_{uuid4().hex[:12]}"


class ArtifactStore:
    """
    Artifact persistence over the shared Database.
    Prototype: SQLite. Production: PostgreSQL with the same CAS updates.
    """

    def __init__(self, database: Database):
        self.db = database

    # --- Creation ---

    def create(
        self,
        customer_id: str,
        payload: ArtifactPayload,
        batch_id: Optional[str] = None,
        created_by_type: CreatorType = CreatorType.AGENT,
        created_by_id: Optional[str] = None,
        created_at: Optional[datetime] = None,
    ) -> Artifact:
        """Persist one pending artifact."""
        artifact = Artifact(
            id=new_artifact_id(),
            customer_id=customer_id,
            artifact_type=ArtifactType(payload.artifact_type),
            payload=payload,
            batch_id=batch_id,
            created_by_type=created_by_type,
            created_by_id=created_by_id,
            created_at=created_at or utcnow(),
        )
        with self.db.transaction() as conn:
            self._insert(conn, artifact)
        logger.info(
            "artifact_created",
            artifact_id=artifact.id,
            customer_id=customer_id,
            artifact_type=artifact.artifact_type.value,
            batch_id=batch_id,
        )
        return artifact

    def create_profile_edit(
        self,
        customer_id: str,
        field_key: str,
        proposed_value: Any,
        field_label: Optional[str] = None,
        previous_value: Any = None,
        confidence: Confidence = Confidence.MEDIUM,
        source_text: str = "",
        **kwargs,
    ) -> Artifact:
        payload = ProfileEditPayload(
            field_key=field_key,
            field_label=field_label,
            proposed_value=proposed_value,
            previous_value=previous_value,
            confidence=confidence,
            source_text=source_text,
        )
        return self.create(customer_id, payload, **kwargs)

    def create_interest_proposal(
        self,
        customer_id: str,
        category: InterestCategory,
        label: str,
        description: Optional[str] = None,
        confidence: Confidence = Confidence.MEDIUM,
        source_text: str = "",
        **kwargs,
    ) -> Artifact:
        payload = InterestProposalPayload(
            category=category,
            label=label,
            description=description,
            confidence=confidence,
            source_text=source_text,
        )
        return self.create(customer_id, payload, **kwargs)

    def create_note(
        self,
        customer_id: str,
        content: str,
        source: Optional[str] = None,
        tags: Optional[List[str]] = None,
        **kwargs,
    ) -> Artifact:
        payload = NotePayload(content=content, source=source, tags=tags or [])
        return self.create(customer_id, payload, **kwargs)

    def create_batch(
        self,
        customer_id: str,
        payloads: List[ArtifactPayload],
        batch_id: Optional[str] = None,
        created_by_type: CreatorType = CreatorType.AGENT,
        created_by_id: Optional[str] = None,
    ) -> List[Artifact]:
        """Insert several artifacts in one transaction under a shared batch id."""
        now = utcnow()
        artifacts = [
            Artifact(
                id=new_artifact_id(),
                customer_id=customer_id,
                artifact_type=ArtifactType(payload.artifact_type),
                payload=payload,
                batch_id=batch_id,
                created_by_type=created_by_type,
                created_by_id=created_by_id,
                created_at=now,
            )
            for payload in payloads
        ]
        with self.db.transaction() as conn:
            for artifact in artifacts:
                self._insert(conn, artifact)
        logger.info(
            "artifact_batch_created",
            customer_id=customer_id,
            batch_id=batch_id,
            count=len(artifacts),
        )
        return artifacts

    def _insert(self, conn: sqlite3.Connection, artifact: Artifact) -> None:
        conn.execute(
            """
            INSERT INTO artifact (
                id, customer_id, artifact_type, status, batch_id,
                created_by_type, created_by_id, payload_json,
                edited_value_json, overrides_json, decided_by, decided_at, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                artifact.id,
                artifact.customer_id,
                artifact.artifact_type.value,
                artifact.status.value,
                artifact.batch_id,
                artifact.created_by_type.value,
                artifact.created_by_id,
                dumps(artifact.payload.model_dump(mode="json")),
                None,
                dumps(artifact.overrides),
                None,
                None,
                to_db_time(artifact.created_at),
            ),
        )

    # --- Reads ---

    def _deserialize(self, row: sqlite3.Row) -> Artifact:
        return Artifact(
            id=row["id"],
            customer_id=row["customer_id"],
            artifact_type=row["artifact_type"],
            payload=loads(row["payload_json"]),
            status=row["status"],
            batch_id=row["batch_id"],
            created_by_type=row["created_by_type"],
            created_by_id=row["created_by_id"],
            edited_value=loads(row["edited_value_json"]),
            overrides=loads(row["overrides_json"], {}),
            decided_by=row["decided_by"],
            decided_at=from_db_time(row["decided_at"]),
            created_at=from_db_time(row["created_at"]),
        )

    def _fetch(self, conn: sqlite3.Connection, artifact_id: str) -> Artifact:
        row = conn.execute("SELECT * FROM artifact WHERE id = ?", (artifact_id,)).fetchone()
        if row is None:
            raise NotFoundError(f"Artifact {artifact_id} not found")
        return self._deserialize(row)

    def get_by_id(self, artifact_id: str) -> Artifact:
        with self.db.transaction() as conn:
            return self._fetch(conn, artifact_id)

    def list_by_customer(
        self,
        customer_id: str,
        status: Union[None, str, ArtifactStatus, Iterable] = None,
        artifact_type: Union[None, str, ArtifactType] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Artifact]:
        """
        Newest first. status takes one token or several; unknown tokens are
        dropped, and if none survive the filter is not applied. An unknown
        artifact_type is ignored the same way.
        """
        clauses = ["customer_id = ?"]
        params: list = [customer_id]

        statuses = ArtifactStatus.parse_many(status)
        if statuses:
            clauses.append(f"status IN ({', '.join('?' for _ in statuses)})")
            params.extend(s.value for s in statuses)

        types = parse_tokens(ArtifactType, artifact_type)
        if types:
            clauses.append("artifact_type = ?")
            params.append(types[0].value)

        params.extend([limit, offset])
        with self.db.transaction() as conn:
            rows = conn.execute(
                f"SELECT * FROM artifact WHERE {' AND '.join(clauses)} "
                "ORDER BY created_at DESC, id DESC LIMIT ? OFFSET ?",
                params,
            ).fetchall()
        return [self._deserialize(r) for r in rows]

    def list_by_batch(self, batch_id: str) -> List[Artifact]:
        """Artifacts recorded from one proposal, in creation order."""
        with self.db.transaction() as conn:
            rows = conn.execute(
                "SELECT * FROM artifact WHERE batch_id = ? ORDER BY created_at, rowid",
                (batch_id,),
            ).fetchall()
        return [self._deserialize(r) for r in rows]

    # --- Transitions ---

    def _transition(
        self,
        artifact_id: str,
        expected_type: ArtifactType,
        new_status: ArtifactStatus,
        decided_by: Optional[str],
        edited_value: Any = _UNSET,
        overrides: Optional[dict] = None,
    ) -> Artifact:
        with self.db.transaction() as conn:
            current = self._fetch(conn, artifact_id)
            if current.artifact_type != expected_type:
                raise InvalidStateError(
                    f"Artifact {artifact_id} is a {current.artifact_type.value} artifact, "
                    f"not {expected_type.value}"
                )

            cursor = conn.execute(
                """
                UPDATE artifact
                SET status = ?, decided_by = ?, decided_at = ?,
                    edited_value_json = ?, overrides_json = ?
                WHERE id = ? AND status = ?
                """,
                (
                    new_status.value,
                    decided_by,
                    to_db_time(utcnow()),
                    None if edited_value is _UNSET else dumps(edited_value),
                    dumps(overrides or {}),
                    artifact_id,
                    ArtifactStatus.PENDING.value,
                ),
            )
            if cursor.rowcount != 1:
                raise InvalidStateError(
                    f"Artifact {artifact_id} is already {current.status.value}"
                )
            decided = self._fetch(conn, artifact_id)

        logger.info(
            "artifact_decided",
            artifact_id=artifact_id,
            artifact_type=expected_type.value,
            status=new_status.value,
            decided_by=decided_by,
        )
        return decided

    def accept_profile_edit(self, artifact_id: str, decided_by: Optional[str] = None) -> Artifact:
        """pending → accepted. The proposed value is what gets applied."""
        return self._transition(
            artifact_id, ArtifactType.PROFILE_EDIT, ArtifactStatus.ACCEPTED, decided_by
        )

    def reject_profile_edit(self, artifact_id: str, decided_by: Optional[str] = None) -> Artifact:
        return self._transition(
            artifact_id, ArtifactType.PROFILE_EDIT, ArtifactStatus.REJECTED, decided_by
        )

    def accept_profile_edit_with_edits(
        self,
        artifact_id: str,
        edited_value: Any,
        decided_by: Optional[str] = None,
    ) -> Artifact:
        """pending → edited. The payload keeps the original proposal."""
        return self._transition(
            artifact_id,
            ArtifactType.PROFILE_EDIT,
            ArtifactStatus.EDITED,
            decided_by,
            edited_value=edited_value,
        )

    def accept_interest_proposal(
        self,
        artifact_id: str,
        label: Optional[str] = None,
        description: Optional[str] = None,
        decided_by: Optional[str] = None,
    ) -> Artifact:
        """
        pending → accepted. label/description overrides are recorded next to
        the payload, never written into it. An empty description clears the
        proposed one; a blank label is refused.
        """
        overrides = {}
        if label is not None:
            if not label.strip():
                raise ValidationError("Label cannot be empty")
            overrides["label"] = label.strip()
        if description is not None:
            overrides["description"] = description
        return self._transition(
            artifact_id,
            ArtifactType.INTEREST_PROPOSAL,
            ArtifactStatus.ACCEPTED,
            decided_by,
            overrides=overrides,
        )

    def reject_interest_proposal(self, artifact_id: str, decided_by: Optional[str] = None) -> Artifact:
        return self._transition(
            artifact_id, ArtifactType.INTEREST_PROPOSAL, ArtifactStatus.REJECTED, decided_by
        )

    def accept_note(self, artifact_id: str, decided_by: Optional[str] = None) -> Artifact:
        return self._transition(
            artifact_id, ArtifactType.NOTE, ArtifactStatus.ACCEPTED, decided_by
        )

    def reject_note(self, artifact_id: str, decided_by: Optional[str] = None) -> Artifact:
        return self._transition(
            artifact_id, ArtifactType.NOTE, ArtifactStatus.REJECTED, decided_by
        )
