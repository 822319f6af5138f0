"""
Profile Review API — FastAPI endpoints.

Exposes the review pipeline over REST:
- Artifact inspection and per-artifact decisions
- Customer creation and single-field edits
- Proposal recording and follow-up (nudge) finalization
- Interest management and confirmation
- Applying a reviewed proposal

Every error body is {"error": message}.
"""

from typing import Any, List, Optional

from fastapi import FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from starlette.exceptions import HTTPException as StarletteHTTPException

from profile_review.actors import SessionResolver, header_session_resolver, request_actor_id
from profile_review.apply.engine import ApplyEngine
from profile_review.artifacts.store import ArtifactStore
from profile_review.config import Settings
from profile_review.customers.store import CustomerStore
from profile_review.errors import InternalError, NotFoundError, ReviewError, ValidationError
from profile_review.interests.store import InterestStore
from profile_review.models.artifact import InterestCategory
from profile_review.models.customer import RESERVED_FIELDS
from profile_review.models.interest import Interest
from profile_review.models.nudge import NudgeAnswer, NudgeSet
from profile_review.models.proposal import ApplyUpdatesRequest, ProfileUpdateProposal
from profile_review.nudges import resolver as nudges
from profile_review.observability.logging import get_logger, setup_logging
from profile_review.review.engine import ReviewEngine
from profile_review.review.presentation import proposal_to_tree
from profile_review.storage.database import Database
from profile_review.validation.fields import FieldValidator

logger = get_logger(__name__)


# --- Request Models ---

class _Body(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ArtifactDecisionRequest(_Body):
    status: Optional[str] = None
    edited_value: Any = None
    label: Optional[str] = None
    description: Optional[str] = None
    rm_id: Optional[str] = None


class CustomerCreateRequest(_Body):
    full_name: Optional[str] = None
    primary_mobile: Optional[str] = None
    email_primary: Optional[str] = None
    city_of_residence: Optional[str] = None


class FieldUpdateRequest(_Body):
    field: Optional[str] = None
    value: Any = None


class InterestCreateRequest(_Body):
    category: Optional[str] = None
    label: Optional[str] = None
    description: Optional[str] = None
    rm_id: Optional[str] = None


class InterestConfirmRequest(_Body):
    artifact_id: Optional[str] = None
    label: Optional[str] = None
    description: Optional[str] = None
    rm_id: Optional[str] = None


class InterestUpdateRequest(_Body):
    label: Optional[str] = None
    description: Optional[str] = None
    rm_id: Optional[str] = None


class ProposalRecordRequest(_Body):
    proposal: ProfileUpdateProposal
    nudges: Optional[NudgeSet] = None       # Built from the profile when omitted
    rm_id: Optional[str] = None


class NudgeFinalizeRequest(_Body):
    nudge_set: NudgeSet
    answers: List[NudgeAnswer] = []
    proposal: Optional[ProfileUpdateProposal] = None


class ApplyUpdatesBody(ApplyUpdatesRequest):
    proposal: Optional[ProfileUpdateProposal] = None


def _split_tokens(value: Optional[str]) -> Optional[List[str]]:
    if not value:
        return None
    return [token.strip() for token in value.split(",") if token.strip()]


def _dump(model: Optional[BaseModel]) -> Optional[dict]:
    return model.model_dump(mode="json") if model is not None else None


# --- Application Factory ---

def create_app(
    database: Optional[Database] = None,
    settings: Optional[Settings] = None,
    session_resolver: Optional[SessionResolver] = None,
    validator: Optional[FieldValidator] = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""

    config = settings or Settings()
    setup_logging(config.log_level, config.log_format, config.redact_pii)

    app = FastAPI(
        title="Profile Review API",
        description="Proposal, review and apply pipeline for customer profiles",
        version="0.1.0",
    )

    # Initialize components
    db = database or Database(config.database_path)
    artifacts = ArtifactStore(db)
    interests = InterestStore(db, artifacts)
    customers = CustomerStore(db, validator)
    review = ReviewEngine(artifacts, interests, customers)
    applier = ApplyEngine(customers, interests)
    resolve_session = session_resolver or header_session_resolver(config.actor_header)

    # Store components on app state for access in endpoints
    app.state.settings = config
    app.state.database = db
    app.state.artifact_store = artifacts
    app.state.interest_store = interests
    app.state.customer_store = customers
    app.state.review_engine = review
    app.state.apply_engine = applier

    def actor(request: Request, body_rm_id: Optional[str] = None) -> Optional[str]:
        return request_actor_id(request, resolve_session, body_rm_id)

    def owned_interest(customer_id: str, interest_id: str) -> Interest:
        customers.get(customer_id)
        interest = interests.get_by_id(interest_id)
        if interest.customer_id != customer_id:
            raise NotFoundError("Interest not found")
        return interest

    # === ERROR MAPPING ===

    @app.exception_handler(ReviewError)
    def handle_review_error(request: Request, exc: ReviewError):
        if isinstance(exc, InternalError):
            logger.error("internal_error", path=request.url.path, detail=exc.message)
            return JSONResponse({"error": "Internal server error"}, status_code=500)
        return JSONResponse({"error": exc.message}, status_code=exc.status_code)

    @app.exception_handler(StarletteHTTPException)
    def handle_http_error(request: Request, exc: StarletteHTTPException):
        return JSONResponse({"error": str(exc.detail)}, status_code=exc.status_code)

    @app.exception_handler(RequestValidationError)
    def handle_request_validation(request: Request, exc: RequestValidationError):
        problems = exc.errors()
        if problems:
            first = problems[0]
            location = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
            message = f"Invalid request: {location} {first.get('msg', '')}".strip()
        else:
            message = "Invalid request"
        return JSONResponse({"error": message}, status_code=400)

    @app.exception_handler(Exception)
    def handle_unexpected(request: Request, exc: Exception):
        logger.exception("unhandled_error", path=request.url.path)
        return JSONResponse({"error": "Internal server error"}, status_code=500)

    # === HEALTH ===

    @app.get("/health")
    def health():
        return {"status": "ok", "app": config.app_name}

    # === ARTIFACTS ===

    @app.get("/artifacts/{artifact_id}")
    def get_artifact(artifact_id: str):
        return {"artifact": _dump(artifacts.get_by_id(artifact_id))}

    @app.patch("/artifacts/{artifact_id}")
    def decide_artifact(artifact_id: str, req: ArtifactDecisionRequest, request: Request):
        """Accept, reject or edit one artifact."""
        decision = review.decide(
            artifact_id,
            req.status,
            actor_id=actor(request, req.rm_id),
            edited_value=req.edited_value,
            label=req.label,
            description=req.description,
        )
        return {
            "artifact": _dump(decision.artifact),
            "interest": _dump(decision.interest),
            "note": _dump(decision.note),
        }

    # === CUSTOMERS ===

    @app.post("/customers")
    def create_customer(req: CustomerCreateRequest):
        customer = customers.create(
            full_name=req.full_name,
            primary_mobile=req.primary_mobile,
            email_primary=req.email_primary,
            city_of_residence=req.city_of_residence,
        )
        return {"success": True, "customer": _dump(customer)}

    @app.get("/customers/{customer_id}")
    def get_customer(customer_id: str):
        return {"customer": _dump(customers.get(customer_id))}

    @app.patch("/customers/{customer_id}/fields")
    def update_customer_field(customer_id: str, req: FieldUpdateRequest):
        if not req.field:
            raise ValidationError("Field name is required")
        if req.field in RESERVED_FIELDS:
            raise ValidationError("Cannot update reserved field")
        customer = customers.update_fields(customer_id, {req.field: req.value})
        return {"success": True, "field": req.field, "value": customer.get(req.field)}

    @app.get("/customers/{customer_id}/artifacts")
    def list_customer_artifacts(
        customer_id: str,
        request: Request,
        status: Optional[str] = None,
        artifact_type: Optional[str] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ):
        customers.get(customer_id)
        artifact_type = artifact_type or request.query_params.get("artifactType")
        found = artifacts.list_by_customer(
            customer_id,
            status=_split_tokens(status),
            artifact_type=artifact_type,
            limit=config.clamp_limit(limit),
            offset=max(offset, 0),
        )
        return {"artifacts": [_dump(a) for a in found]}

    @app.post("/customers/{customer_id}/proposals")
    def record_proposal(customer_id: str, req: ProposalRecordRequest, request: Request):
        """Record a proposal as pending artifacts and return its render trees."""
        if req.proposal.customer_id != customer_id:
            raise ValidationError("Proposal customer does not match")
        customer = customers.get(customer_id)
        recorded = review.record_proposal(req.proposal, actor_id=actor(request, req.rm_id))

        nudge_set = req.nudges
        if nudge_set is None:
            nudge_set = nudges.build_nudge_set(
                customer,
                recorded.field_updates,
                extraction_context=recorded.raw_input,
                max_questions=config.nudge_max_questions,
                top_fraction=config.nudge_top_fraction,
            )
        nudge_tree = nudges.transform(nudge_set, proposal_id=recorded.proposal_id)

        return {
            "proposal": _dump(recorded),
            "tree": _dump(proposal_to_tree(recorded)),
            "nudges": _dump(nudge_set),
            "nudges_tree": _dump(nudge_tree),
        }

    @app.post("/customers/{customer_id}/nudges/finalize")
    def finalize_nudges(customer_id: str, req: NudgeFinalizeRequest):
        customer = customers.get(customer_id)
        answers = nudges.finalize(req.nudge_set, req.answers)
        field_updates = nudges.answers_to_field_updates(req.nudge_set, answers, customer)

        merged = None
        if req.proposal is not None:
            if req.proposal.customer_id != customer_id:
                raise ValidationError("Proposal customer does not match")
            merged = nudges.merge_answers(req.proposal, req.nudge_set, answers, customer)

        return {
            "answers": [_dump(a) for a in answers],
            "field_updates": [_dump(u) for u in field_updates],
            "proposal": _dump(merged),
            "tree": _dump(proposal_to_tree(merged)) if merged is not None else None,
        }

    @app.get("/customers/{customer_id}/notes")
    def list_customer_notes(customer_id: str):
        customers.get(customer_id)
        return {"notes": [_dump(n) for n in customers.list_notes(customer_id)]}

    # === INTERESTS ===

    @app.get("/customers/{customer_id}/interests")
    def list_customer_interests(
        customer_id: str,
        status: Optional[str] = None,
        category: Optional[str] = None,
        include_archived: bool = False,
        include_archived_camel: bool = Query(False, alias="includeArchived"),
        limit: Optional[int] = None,
        offset: int = 0,
    ):
        customers.get(customer_id)
        if category not in {c.value for c in InterestCategory}:
            category = None
        found = interests.list_by_customer(
            customer_id,
            status=_split_tokens(status),
            category=category,
            include_archived=include_archived or include_archived_camel,
            limit=config.clamp_limit(limit),
            offset=max(offset, 0),
        )
        return {"interests": [_dump(i) for i in found]}

    @app.post("/customers/{customer_id}/interests", status_code=201)
    def create_customer_interest(customer_id: str, req: InterestCreateRequest, request: Request):
        """Create a confirmed interest entered by the RM."""
        if not req.category or not req.label:
            raise ValidationError("Category and label are required")
        if req.category not in {c.value for c in InterestCategory}:
            raise ValidationError("Invalid category. Must be one of: personal, financial")
        customers.get(customer_id)

        rm_id = actor(request, req.rm_id)
        if not rm_id:
            raise ValidationError("RM ID is required to create interests")
        interest = interests.create_manual(
            customer_id, rm_id, req.category, req.label, req.description
        )
        return {"interest": _dump(interest)}

    @app.post("/customers/{customer_id}/interests/confirm", status_code=201)
    def confirm_customer_interest(customer_id: str, req: InterestConfirmRequest, request: Request):
        """Confirm a pending interest proposal artifact."""
        if not req.artifact_id:
            raise ValidationError("Artifact ID is required")
        customers.get(customer_id)

        rm_id = actor(request, req.rm_id)
        if not rm_id:
            raise ValidationError("RM ID is required to confirm interests")
        interest = interests.create_from_artifact(
            req.artifact_id,
            rm_id,
            label=req.label,
            description=req.description,
            customer_id=customer_id,
        )
        return {"interest": _dump(interest)}

    @app.get("/customers/{customer_id}/interests/{interest_id}")
    def get_customer_interest(customer_id: str, interest_id: str):
        return {"interest": _dump(owned_interest(customer_id, interest_id))}

    @app.patch("/customers/{customer_id}/interests/{interest_id}")
    def update_customer_interest(
        customer_id: str, interest_id: str, req: InterestUpdateRequest, request: Request
    ):
        owned_interest(customer_id, interest_id)
        interest = interests.update(
            interest_id,
            actor(request, req.rm_id),
            label=req.label,
            description=req.description,
        )
        return {"interest": _dump(interest)}

    @app.delete("/customers/{customer_id}/interests/{interest_id}")
    def archive_customer_interest(customer_id: str, interest_id: str, request: Request):
        owned_interest(customer_id, interest_id)
        interest = interests.archive(interest_id, actor(request))
        return {"interest": _dump(interest)}

    @app.get("/customers/{customer_id}/interests/{interest_id}/audit")
    def get_customer_interest_audit(customer_id: str, interest_id: str):
        owned_interest(customer_id, interest_id)
        history = interests.get_audit_history(interest_id)
        return {"audit": [_dump(r) for r in history]}

    # === APPLY ===

    @app.post("/customers/{customer_id}/apply-updates")
    def apply_customer_updates(customer_id: str, req: ApplyUpdatesBody, request: Request):
        """Apply the approved subset of a reviewed proposal."""
        if req.proposal is None:
            raise ValidationError("Proposal ID and proposal data are required")
        selection = ApplyUpdatesRequest.model_validate(
            req.model_dump(exclude={"proposal", "rm_id"})
        ).model_copy(update={"rm_id": actor(request, req.rm_id)})

        result = applier.apply_updates(customer_id, selection, req.proposal)
        return {
            "success": result.success,
            "customer": _dump(result.updated_customer),
            "errors": result.errors,
            "fields_updated": result.fields_updated,
            "additional_data_added": result.additional_data_added,
            "interests_created": [_dump(i) for i in result.interests_created],
            "note_created": result.note_created,
        }

    return app
