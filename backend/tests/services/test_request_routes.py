"""Request Routes — verifies the HTTP surface of the request workflow.

Tests:
    - View returns state, ledger and the caller's allowed actions
    - Actor headers are mandatory
    - Assign / review / pre-approve / reject through the API, with error codes
    - RECHAZADO refuses later writes with 409 TERMINAL_STATE
    - Pre-approval only after instructor review; reviews only by the assigned instructor
    - Health check reports the service and backend mode
"""

from tests.services.conftest import (
    COORDINATOR_HEADERS, INSTRUCTOR_HEADERS,
    make_instructor, make_message, make_request,
)


def _reviewer_headers(instructor_id: int) -> dict[str, str]:
    return {"X-Actor-Role": "INSTRUCTOR", "X-Actor-Id": str(instructor_id)}


async def test_view_lists_allowed_actions(client, test_db):
    instructor_id = await make_instructor(test_db)
    request_id = await make_request(
        test_db, request_state="PRE-APROBADO", instructor_id=instructor_id,
    )
    await make_message(test_db, request_id, "Perfil adecuado", "APROBADA", "INSTRUCTOR")

    response = await client.get(
        f"/api/v1/requests/{request_id}", headers=COORDINATOR_HEADERS,
    )

    assert response.status_code == 200
    data = response.json()
    assert data["request"]["request_state"] == "PRE-APROBADO"
    assert data["allowed_actions"] == ["assign", "pre_approve", "reject"]
    assert [m["content"] for m in data["ledger"]] == ["Perfil adecuado"]


async def test_missing_actor_role_is_rejected(client, test_db):
    request_id = await make_request(test_db)
    response = await client.get(f"/api/v1/requests/{request_id}")
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"


async def test_unknown_request_is_404(client):
    response = await client.get("/api/v1/requests/999", headers=COORDINATOR_HEADERS)
    assert response.status_code == 404
    assert response.json()["error"]["code"] == "RESOURCE_NOT_FOUND"


async def test_assign_moves_request_to_verification(client, test_db):
    instructor_id = await make_instructor(test_db)
    request_id = await make_request(test_db)

    response = await client.post(
        f"/api/v1/requests/{request_id}/assign",
        json={"instructor_id": instructor_id, "content": "Por favor revisar"},
        headers=COORDINATOR_HEADERS,
    )

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "success"
    assert data["request"]["request_state"] == "VERIFICANDO"
    assert data["request"]["instructor_id"] == instructor_id
    assert data["ledger"][-1]["type_message"] == "VERIFICACION"


async def test_assign_with_blank_message_writes_nothing(client, test_db):
    instructor_id = await make_instructor(test_db)
    request_id = await make_request(test_db)

    response = await client.post(
        f"/api/v1/requests/{request_id}/assign",
        json={"instructor_id": instructor_id, "content": "   "},
        headers=COORDINATOR_HEADERS,
    )

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "EMPTY_CONTENT"
    messages = await client.get(f"/api/v1/requests/{request_id}/messages")
    assert messages.json() == []


async def test_assign_by_instructor_is_forbidden(client, test_db):
    instructor_id = await make_instructor(test_db)
    request_id = await make_request(test_db)
    response = await client.post(
        f"/api/v1/requests/{request_id}/assign",
        json={"instructor_id": instructor_id, "content": "Revisar"},
        headers=INSTRUCTOR_HEADERS,
    )
    assert response.status_code == 403


async def test_message_over_limit_fails_schema(client, test_db):
    request_id = await make_request(test_db)
    response = await client.post(
        f"/api/v1/requests/{request_id}/assign",
        json={"instructor_id": 1, "content": "x" * 501},
        headers=COORDINATOR_HEADERS,
    )
    assert response.status_code == 400
    assert response.json()["error"]["details"][0]["field"] == "body.content"


async def test_reject_requires_reason(client, test_db):
    request_id = await make_request(test_db, request_state="VERIFICANDO")

    response = await client.post(
        f"/api/v1/requests/{request_id}/reject",
        json={"reason": ""}, headers=COORDINATOR_HEADERS,
    )

    assert response.status_code == 400
    view = await client.get(
        f"/api/v1/requests/{request_id}", headers=COORDINATOR_HEADERS,
    )
    assert view.json()["request"]["request_state"] == "VERIFICANDO"


async def test_rejected_request_refuses_assignment(client, test_db):
    instructor_id = await make_instructor(test_db)
    request_id = await make_request(test_db, request_state="VERIFICANDO")

    rejected = await client.post(
        f"/api/v1/requests/{request_id}/reject",
        json={"reason": "Documentos incompletos"}, headers=COORDINATOR_HEADERS,
    )
    assert rejected.status_code == 200
    assert rejected.json()["request"]["request_state"] == "RECHAZADO"

    response = await client.post(
        f"/api/v1/requests/{request_id}/assign",
        json={"instructor_id": instructor_id, "content": "Revisar"},
        headers=COORDINATOR_HEADERS,
    )
    assert response.status_code == 409
    assert response.json()["error"]["code"] == "TERMINAL_STATE"

    view = await client.get(
        f"/api/v1/requests/{request_id}", headers=COORDINATOR_HEADERS,
    )
    assert view.json()["allowed_actions"] == []


async def test_instructor_rejection_blocks_pre_approval(client, test_db):
    instructor_id = await make_instructor(test_db)
    request_id = await make_request(
        test_db, request_state="VERIFICANDO", instructor_id=instructor_id,
    )

    reviewed = await client.post(
        f"/api/v1/requests/{request_id}/review",
        json={"approve": False, "content": "No cumple el perfil"},
        headers=_reviewer_headers(instructor_id),
    )
    assert reviewed.status_code == 200
    assert reviewed.json()["request"]["request_state"] == "PRE-APROBADO"

    response = await client.post(
        f"/api/v1/requests/{request_id}/pre-approve",
        json={"content": "Aprobado"}, headers=COORDINATOR_HEADERS,
    )
    assert response.status_code == 409
    assert response.json()["error"]["code"] == "BLOCKED_BY_INSTRUCTOR_REJECTION"


async def test_pre_approve_with_contract_dates(client, test_db):
    instructor_id = await make_instructor(test_db)
    request_id = await make_request(
        test_db, request_state="PRE-APROBADO", instructor_id=instructor_id,
    )
    await make_message(test_db, request_id, "Perfil adecuado", "APROBADA", "INSTRUCTOR")

    response = await client.post(
        f"/api/v1/requests/{request_id}/pre-approve",
        json={
            "content": "Aprobado",
            "fecha_inicio_contrato": "2026-04-01",
            "fecha_fin_contrato": "2026-09-30",
        },
        headers=COORDINATOR_HEADERS,
    )

    assert response.status_code == 200
    assert response.json()["request"]["request_state"] == "ASIGNADO"
    form = await client.get(f"/api/v1/requests/{request_id}/form")
    assert form.json()["fecha_fin_contrato"] == "2026-09-30"


async def test_pre_approve_before_review_is_refused(client, test_db):
    request_id = await make_request(test_db)

    response = await client.post(
        f"/api/v1/requests/{request_id}/pre-approve",
        json={"content": "Aprobado"}, headers=COORDINATOR_HEADERS,
    )

    assert response.status_code == 409
    assert response.json()["error"]["code"] == "INVALID_TRANSITION"
    view = await client.get(
        f"/api/v1/requests/{request_id}", headers=COORDINATOR_HEADERS,
    )
    assert view.json()["request"]["request_state"] == "SIN_ASIGNAR"
    assert view.json()["ledger"] == []


async def test_review_by_unassigned_instructor_is_forbidden(client, test_db):
    instructor_id = await make_instructor(test_db)
    request_id = await make_request(
        test_db, request_state="VERIFICANDO", instructor_id=instructor_id,
    )

    response = await client.post(
        f"/api/v1/requests/{request_id}/review",
        json={"approve": True, "content": "Perfil adecuado"},
        headers=_reviewer_headers(instructor_id + 1),
    )

    assert response.status_code == 403
    assert response.json()["error"]["code"] == "FORBIDDEN_ACTOR"
    messages = await client.get(f"/api/v1/requests/{request_id}/messages")
    assert messages.json() == []


async def test_inverted_contract_dates_fail_schema(client, test_db):
    request_id = await make_request(test_db, request_state="PRE-APROBADO")
    response = await client.post(
        f"/api/v1/requests/{request_id}/pre-approve",
        json={
            "content": "Aprobado",
            "fecha_inicio_contrato": "2026-09-30",
            "fecha_fin_contrato": "2026-04-01",
        },
        headers=COORDINATOR_HEADERS,
    )
    assert response.status_code == 400


async def test_health(client):
    response = await client.get("/api/v1/health/")
    assert response.status_code == 200
    assert response.json()["service"] == "assignflow-api"
    assert response.json()["backend"] == "sql"
