"""Tests for the FastAPI API endpoints."""

import pytest
from fastapi.testclient import TestClient

from profile_review.api.app import create_app
from profile_review.config import Settings
from profile_review.storage.database import Database


@pytest.fixture
def app():
    """Create an app with a fresh in-memory database."""
    return create_app(
        database=Database(":memory:"),
        settings=Settings(log_format="console", max_page_limit=5),
    )


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def customer_id(client):
    response = client.post("/customers", json={
        "fullName": "Priya Shah",
        "primaryMobile": "98765 43210",
        "emailPrimary": "Priya@Example.com",
    })
    return response.json()["customer"]["id"]


def _proposal_body(customer_id: str) -> dict:
    return {
        "proposalId": "prop_1",
        "customerId": customer_id,
        "fieldUpdates": [
            {"id": "f1", "field": "city_of_residence", "label": "City",
             "proposedValue": "Pune", "confidence": "high"},
            {"id": "f2", "field": "risk_bucket", "label": "Risk Bucket",
             "proposedValue": "moderate", "confidence": "low"},
        ],
        "additionalData": [
            {"id": "d1", "key": "pet_name", "label": "Pet Name", "value": "Bruno"},
        ],
        "interests": [
            {"id": "i1", "category": "personal", "label": "Golf", "sourceText": "plays golf"},
        ],
        "note": {"id": "n1", "content": "Discussed retirement", "source": "call"},
        "rawInput": "Met Priya at the branch",
    }


@pytest.fixture
def recorded(client, customer_id):
    response = client.post(
        f"/customers/{customer_id}/proposals",
        json={"proposal": _proposal_body(customer_id)},
        headers={"X-RM-Id": "rm_1"},
    )
    assert response.status_code == 200
    return response.json()


class TestHealthAndErrors:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok", "app": "profile-review"}

    def test_unknown_route_uses_error_body(self, client):
        response = client.get("/nowhere")
        assert response.status_code == 404
        assert "error" in response.json()

    def test_malformed_body_is_400(self, client, customer_id):
        response = client.post(f"/customers/{customer_id}/proposals", json={})
        assert response.status_code == 400
        assert response.json()["error"].startswith("Invalid request")

    def test_unexpected_failure_is_500(self, app, customer_id, monkeypatch):
        def boom(_customer_id):
            raise RuntimeError("disk on fire")

        monkeypatch.setattr(app.state.customer_store, "get", boom)
        response = TestClient(app, raise_server_exceptions=False).get(f"/customers/{customer_id}")
        assert response.status_code == 500
        assert response.json() == {"error": "Internal server error"}


class TestCustomerEndpoints:
    def test_create_normalizes(self, client):
        response = client.post("/customers", json={
            "full_name": "Arjun Rao",
            "primary_mobile": "+91 91234-56789",
            "city_of_residence": "Chennai",
        })
        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["customer"]["fields"]["primary_mobile"] == "+91 91234 56789"
        assert data["customer"]["id"].startswith("cus_")

    def test_create_requires_name(self, client):
        response = client.post("/customers", json={"primaryMobile": "9876543210"})
        assert response.status_code == 400
        assert response.json() == {"error": "Full name is required"}

    def test_get_missing(self, client):
        response = client.get("/customers/cus_missing")
        assert response.status_code == 404
        assert response.json() == {"error": "Customer not found"}

    def test_update_field(self, client, customer_id):
        response = client.patch(f"/customers/{customer_id}/fields", json={
            "field": "secondary_mobile", "value": "09812345678",
        })
        assert response.status_code == 200
        assert response.json() == {
            "success": True, "field": "secondary_mobile", "value": "+91 98123 45678",
        }
        customer = client.get(f"/customers/{customer_id}").json()["customer"]
        assert customer["fields"]["secondary_mobile"] == "+91 98123 45678"
        assert customer["fields"]["email_primary"] == "priya@example.com"

    @pytest.mark.parametrize("body,message", [
        ({"value": "x"}, "Field name is required"),
        ({"field": "id", "value": "x"}, "Cannot update reserved field"),
        ({"field": "email_primary", "value": "nope"}, "Invalid value for Email: Invalid email format"),
    ])
    def test_update_field_errors(self, client, customer_id, body, message):
        response = client.patch(f"/customers/{customer_id}/fields", json=body)
        assert response.status_code == 400
        assert response.json() == {"error": message}


class TestProposalEndpoints:
    def test_record_returns_trees(self, recorded):
        proposal = recorded["proposal"]
        assert all(f["artifact_id"] for f in proposal["field_updates"])
        assert proposal["interests"][0]["artifact_id"]
        assert recorded["tree"]["root"]["type"] == "ProposalCard"
        assert recorded["nudges_tree"]["root"]["type"] == "NudgesCard"
        asked = [n["field_key"] for n in recorded["nudges"]["nudges"]]
        assert asked[0] == "risk_bucket"
        assert "city_of_residence" not in asked

    def test_record_for_other_customer(self, client, customer_id):
        response = client.post(
            f"/customers/{customer_id}/proposals",
            json={"proposal": _proposal_body("cus_other")},
        )
        assert response.status_code == 400
        assert response.json() == {"error": "Proposal customer does not match"}

    def test_artifacts_are_listed_and_filtered(self, client, customer_id, recorded):
        listed = client.get(f"/customers/{customer_id}/artifacts").json()["artifacts"]
        assert len(listed) == 4
        assert all(a["created_by_id"] == "rm_1" for a in listed)

        edits = client.get(
            f"/customers/{customer_id}/artifacts", params={"artifactType": "profile_edit"}
        ).json()["artifacts"]
        assert {a["payload"]["field_key"] for a in edits} == {"city_of_residence", "risk_bucket"}

        none_accepted = client.get(
            f"/customers/{customer_id}/artifacts", params={"status": "accepted,bogus"}
        ).json()["artifacts"]
        assert none_accepted == []

    def test_limit_is_clamped(self, client, customer_id, recorded):
        response = client.get(f"/customers/{customer_id}/artifacts", params={"limit": 1000})
        assert len(response.json()["artifacts"]) == 4
        response = client.get(f"/customers/{customer_id}/artifacts", params={"limit": 2})
        assert len(response.json()["artifacts"]) == 2

    def test_unknown_artifact_type_is_ignored(self, client, customer_id, recorded):
        response = client.get(
            f"/customers/{customer_id}/artifacts", params={"artifactType": "essay"}
        )
        assert response.status_code == 200
        assert len(response.json()["artifacts"]) == 4

    def test_finalize_nudges_merges_answers(self, client, customer_id, recorded):
        nudge_set = recorded["nudges"]
        first = nudge_set["nudges"][0]
        response = client.post(f"/customers/{customer_id}/nudges/finalize", json={
            "nudgeSet": nudge_set,
            "answers": [
                {"questionId": first["id"], "fieldKey": first["field_key"], "answer": "conservative"},
            ],
            "proposal": recorded["proposal"],
        })
        assert response.status_code == 200
        data = response.json()
        assert len(data["answers"]) == len(nudge_set["nudges"])
        assert all(a["skipped"] for a in data["answers"][1:])
        assert data["field_updates"][0]["proposed_value"] == "conservative"
        by_field = {u["field"]: u for u in data["proposal"]["field_updates"]}
        assert by_field["risk_bucket"]["proposed_value"] == "conservative"
        assert data["tree"]["root"]["type"] == "ProposalCard"


class TestArtifactDecisions:
    def test_decide_uses_header_actor(self, client, recorded):
        artifact_id = recorded["proposal"]["field_updates"][0]["artifact_id"]
        response = client.patch(
            f"/artifacts/{artifact_id}", json={"status": "accepted"}, headers={"X-RM-Id": "rm_9"}
        )
        assert response.status_code == 200
        artifact = response.json()["artifact"]
        assert artifact["status"] == "accepted"
        assert artifact["decided_by"] == "rm_9"

    def test_body_actor_beats_header(self, client, recorded):
        artifact_id = recorded["proposal"]["field_updates"][1]["artifact_id"]
        response = client.patch(
            f"/artifacts/{artifact_id}",
            json={"status": "edited", "editedValue": "conservative", "rmId": "rm_body"},
            headers={"X-RM-Id": "rm_header"},
        )
        artifact = response.json()["artifact"]
        assert artifact["status"] == "edited"
        assert artifact["edited_value"] == "conservative"
        assert artifact["decided_by"] == "rm_body"
        assert artifact["payload"]["proposed_value"] == "moderate"

    def test_second_decision_is_400(self, client, recorded):
        artifact_id = recorded["proposal"]["field_updates"][0]["artifact_id"]
        client.patch(f"/artifacts/{artifact_id}", json={"status": "rejected"})
        response = client.patch(f"/artifacts/{artifact_id}", json={"status": "accepted"})
        assert response.status_code == 400

    def test_invalid_status(self, client, recorded):
        artifact_id = recorded["proposal"]["field_updates"][0]["artifact_id"]
        response = client.patch(f"/artifacts/{artifact_id}", json={"status": "pending"})
        assert response.status_code == 400
        assert response.json()["error"].startswith("Invalid status")

    def test_accepting_note_artifact(self, client, customer_id, recorded):
        artifact_id = recorded["proposal"]["note"]["artifact_id"]
        response = client.patch(f"/artifacts/{artifact_id}", json={"status": "accepted"})
        assert response.json()["note"]["content"] == "Discussed retirement"
        notes = client.get(f"/customers/{customer_id}/notes").json()["notes"]
        assert len(notes) == 1

    def test_missing_artifact(self, client):
        response = client.get("/artifacts/art_missing")
        assert response.status_code == 404


class TestInterestEndpoints:
    def test_confirm_from_artifact(self, client, customer_id, recorded):
        artifact_id = recorded["proposal"]["interests"][0]["artifact_id"]
        response = client.post(
            f"/customers/{customer_id}/interests/confirm",
            json={"artifactId": artifact_id, "label": "Weekend golf"},
            headers={"X-RM-Id": "rm_1"},
        )
        assert response.status_code == 201
        interest = response.json()["interest"]
        assert interest["label"] == "Weekend golf"
        assert interest["source_type"] == "system_suggested"
        assert interest["source_artifact_id"] == artifact_id

        again = client.post(
            f"/customers/{customer_id}/interests/confirm",
            json={"artifactId": artifact_id},
            headers={"X-RM-Id": "rm_2"},
        )
        assert again.status_code == 400

    def test_confirm_requires_rm(self, client, customer_id, recorded):
        artifact_id = recorded["proposal"]["interests"][0]["artifact_id"]
        response = client.post(
            f"/customers/{customer_id}/interests/confirm", json={"artifactId": artifact_id}
        )
        assert response.status_code == 400
        assert response.json() == {"error": "RM ID is required to confirm interests"}

    def test_confirm_for_wrong_customer(self, client, recorded):
        other = client.post("/customers", json={
            "fullName": "Someone Else", "primaryMobile": "9123456780",
        }).json()["customer"]["id"]
        artifact_id = recorded["proposal"]["interests"][0]["artifact_id"]
        response = client.post(
            f"/customers/{other}/interests/confirm",
            json={"artifactId": artifact_id},
            headers={"X-RM-Id": "rm_1"},
        )
        assert response.status_code == 404

    @pytest.mark.parametrize("body,message", [
        ({"label": "Chess"}, "Category and label are required"),
        ({"category": "hobby", "label": "Chess"}, "Invalid category. Must be one of: personal, financial"),
        ({"category": "personal", "label": "Chess"}, "RM ID is required to create interests"),
    ])
    def test_create_errors(self, client, customer_id, body, message):
        response = client.post(f"/customers/{customer_id}/interests", json=body)
        assert response.status_code == 400
        assert response.json() == {"error": message}

    def test_manual_lifecycle(self, client, customer_id):
        created = client.post(
            f"/customers/{customer_id}/interests",
            params={"rmId": "rm_query"},
            json={"category": "financial", "label": "Gold ETFs"},
        )
        assert created.status_code == 201
        interest = created.json()["interest"]
        assert interest["created_by"] == "rm_query"
        base = f"/customers/{customer_id}/interests/{interest['id']}"

        assert client.get(base).json()["interest"]["label"] == "Gold ETFs"

        patched = client.patch(base, json={"description": "Sovereign gold bonds"})
        assert patched.json()["interest"]["description"] == "Sovereign gold bonds"

        archived = client.delete(base, headers={"X-RM-Id": "rm_1"})
        assert archived.json()["interest"]["status"] == "archived"

        assert client.get(f"/customers/{customer_id}/interests").json()["interests"] == []
        everything = client.get(
            f"/customers/{customer_id}/interests", params={"include_archived": "true"}
        ).json()["interests"]
        assert [i["id"] for i in everything] == [interest["id"]]

        audit = client.get(f"{base}/audit").json()["audit"]
        assert [a["action"] for a in audit] == ["archived", "edited", "created"]

    def test_interest_of_other_customer_is_404(self, client, customer_id):
        other = client.post("/customers", json={
            "fullName": "Someone Else", "primaryMobile": "9123456780",
        }).json()["customer"]["id"]
        interest = client.post(
            f"/customers/{other}/interests",
            json={"category": "personal", "label": "Chess", "rmId": "rm_1"},
        ).json()["interest"]

        response = client.get(f"/customers/{customer_id}/interests/{interest['id']}")
        assert response.status_code == 404
        assert response.json() == {"error": "Interest not found"}
        assert client.delete(f"/customers/{customer_id}/interests/{interest['id']}").status_code == 404

    def test_invalid_category_filter_is_ignored(self, client, customer_id):
        client.post(
            f"/customers/{customer_id}/interests",
            json={"category": "personal", "label": "Chess", "rmId": "rm_1"},
        )
        listed = client.get(
            f"/customers/{customer_id}/interests", params={"category": "hobby"}
        ).json()["interests"]
        assert len(listed) == 1

    def test_include_archived_camel_case(self, client, customer_id):
        created = client.post(
            f"/customers/{customer_id}/interests",
            json={"category": "personal", "label": "Chess", "rmId": "rm_1"},
        ).json()["interest"]
        client.delete(
            f"/customers/{customer_id}/interests/{created['id']}", headers={"X-RM-Id": "rm_1"}
        )
        listed = client.get(
            f"/customers/{customer_id}/interests", params={"includeArchived": "true"}
        ).json()["interests"]
        assert [i["id"] for i in listed] == [created["id"]]

    def test_confirm_with_blank_label(self, client, customer_id, recorded):
        artifact_id = recorded["proposal"]["interests"][0]["artifact_id"]
        response = client.post(
            f"/customers/{customer_id}/interests/confirm",
            json={"artifactId": artifact_id, "label": "   "},
            headers={"X-RM-Id": "rm_1"},
        )
        assert response.status_code == 400
        assert response.json() == {"error": "Label cannot be empty"}
        assert client.get(f"/artifacts/{artifact_id}").json()["artifact"]["status"] == "pending"



class TestApplyEndpoint:
    def test_apply_selected_items(self, client, customer_id, recorded):
        response = client.post(
            f"/customers/{customer_id}/apply-updates",
            headers={"X-RM-Id": "rm_1"},
            json={
                "proposalId": "prop_1",
                "proposal": recorded["proposal"],
                "approvedFieldIds": ["f1"],
                "approvedAdditionalDataIds": ["d1"],
                "approvedInterestIds": ["i1"],
                "approvedNote": True,
                "editedValues": {"f1": "Mumbai"},
            },
        )
        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["errors"] == []
        assert data["fields_updated"] == 1
        assert data["additional_data_added"] == 1
        assert data["note_created"] is True
        assert data["customer"]["fields"]["city_of_residence"] == "Mumbai"
        assert data["customer"]["additional_data"][0]["added_by"] == "rm_1"
        assert data["interests_created"][0]["created_by"] == "rm_1"

        note = client.get(f"/customers/{customer_id}/notes").json()["notes"][0]
        assert note["metadata"]["fields_rejected"] == ["f2"]

    def test_partial_failure_reported(self, client, customer_id, recorded):
        proposal = recorded["proposal"]
        proposal["field_updates"].append({
            "id": "f3", "field": "secondary_mobile", "label": "Secondary Mobile",
            "proposed_value": "12345",
        })
        response = client.post(f"/customers/{customer_id}/apply-updates", json={
            "proposalId": "prop_1",
            "proposal": proposal,
            "approvedFieldIds": ["f2", "f3"],
        })
        data = response.json()
        assert response.status_code == 200
        assert data["success"] is False
        assert data["fields_updated"] == 1
        assert data["errors"][0].startswith("Invalid value for Secondary Mobile")

    def test_missing_proposal(self, client, customer_id):
        response = client.post(
            f"/customers/{customer_id}/apply-updates", json={"proposalId": "prop_1"}
        )
        assert response.status_code == 400
        assert response.json() == {"error": "Proposal ID and proposal data are required"}
