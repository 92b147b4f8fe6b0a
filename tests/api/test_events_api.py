"""Tests for the domain event endpoints (emit, process, retry, dismiss, stats)."""

from typing import Any

from httpx import AsyncClient


async def _create_task_workflow(client: AsyncClient, **overrides: Any) -> dict[str, Any]:
    body = {
        "name": "Thank paying customers",
        "triggers": [
            {
                "trigger_type": "invoice_paid",
                "conditions": [{"field": "amount", "operator": ">=", "value": 100}],
            }
        ],
        "actions": [
            {"action_type": "create_task", "config": {"title": "Call {{ customer_name }}"}}
        ],
        **overrides,
    }
    response = await client.post("/api/v1/workflows", json=body)
    assert response.status_code == 201
    return response.json()


async def _emit(client: AsyncClient, event_type: str, payload: dict[str, Any]) -> str:
    response = await client.post(
        "/api/v1/events", json={"event_type": event_type, "payload": payload}
    )
    assert response.status_code == 202
    assert response.json()["accepted"] is True
    return response.json()["event_id"]


async def test_emit_records_pending_event(client: AsyncClient) -> None:
    """POST /api/v1/events returns 202 and the stored event is pending."""
    event_id = await _emit(client, "invoice_paid", {"id": "inv-1", "amount": 500})

    response = await client.get(f"/api/v1/events/{event_id}")
    assert response.status_code == 200
    event = response.json()
    assert event["status"] == "pending"
    assert event["attempts"] == 0
    assert event["entity_type"] == "invoice"
    assert event["entity_id"] == "inv-1"
    assert event["payload"] == {"id": "inv-1", "amount": 500}


async def test_emit_duplicate_is_not_accepted(client: AsyncClient) -> None:
    await _emit(client, "job_completed", {"id": "job-1"})
    response = await client.post(
        "/api/v1/events", json={"event_type": "job_completed", "payload": {"id": "job-1"}}
    )
    assert response.status_code == 202
    assert response.json() == {"accepted": False, "event_id": None}


async def test_emit_requires_event_type(client: AsyncClient) -> None:
    response = await client.post("/api/v1/events", json={"event_type": "", "payload": {}})
    assert response.status_code == 422
    assert response.json()["error"] == "VALIDATION_ERROR"


async def test_process_runs_matching_workflow(client: AsyncClient) -> None:
    """POST /api/v1/events/process completes the event and writes action logs."""
    workflow = await _create_task_workflow(client)
    big = await _emit(
        client, "invoice_paid", {"id": "inv-1", "amount": 500, "customer_name": "Dana"}
    )
    small = await _emit(client, "invoice_paid", {"id": "inv-2", "amount": 20})

    response = await client.post("/api/v1/events/process")
    assert response.status_code == 200
    summary = response.json()
    assert summary["claimed"] == 2
    assert summary["completed"] == 2
    assert summary["failed"] == 0
    assert set(summary["event_ids"]) == {big, small}

    for event_id in (big, small):
        event = (await client.get(f"/api/v1/events/{event_id}")).json()
        assert event["status"] == "completed"
        assert event["processed_at"] is not None

    logs = (
        await client.get("/api/v1/automation-logs", params={"workflow_id": workflow["id"]})
    ).json()
    assert logs["total"] == 1
    [log] = logs["items"]
    assert log["status"] == "completed"
    assert log["action_type"] == "create_task"
    assert log["entity_id"] == "inv-1"
    assert log["output_data"]["title"] == "Call Dana"


async def test_retry_failed_event(client: AsyncClient, app_runtime, monkeypatch) -> None:
    await _create_task_workflow(client)
    original = app_runtime.executor.run_workflow
    calls: list[str] = []

    async def flaky(workflow, context, **kwargs):
        calls.append(workflow.id)
        if len(calls) == 1:
            raise RuntimeError("mail relay down")
        return await original(workflow, context, **kwargs)

    monkeypatch.setattr(app_runtime.executor, "run_workflow", flaky)
    event_id = await _emit(client, "invoice_paid", {"id": "inv-9", "amount": 900})

    summary = (await client.post("/api/v1/events/process")).json()
    assert summary["failed"] == 1
    failed = (await client.get(f"/api/v1/events/{event_id}")).json()
    assert failed["status"] == "failed"
    assert failed["last_error"] == "RuntimeError: mail relay down"
    assert failed["next_attempt_at"] is not None

    response = await client.post(f"/api/v1/events/{event_id}/retry")
    assert response.status_code == 200
    body = response.json()
    assert body["processing"]["completed"] == 1
    assert body["processing"]["event_ids"] == [event_id]
    assert body["event"]["status"] == "completed"
    assert body["event"]["attempts"] == 1
    assert len(calls) == 2


async def test_retry_requires_failed_event(client: AsyncClient) -> None:
    event_id = await _emit(client, "lead_created", {"id": "lead-1"})
    response = await client.post(f"/api/v1/events/{event_id}/retry")
    assert response.status_code == 409
    assert response.json()["error"] == "INVALID_EVENT_TRANSITION"


async def test_dismiss_pending_event(client: AsyncClient) -> None:
    event_id = await _emit(client, "quote_sent", {"id": "q-1"})

    response = await client.post(f"/api/v1/events/{event_id}/dismiss")
    assert response.status_code == 200
    assert response.json()["status"] == "dismissed"

    # dismissed events are skipped by processing and cannot be dismissed twice
    summary = (await client.post("/api/v1/events/process")).json()
    assert summary["claimed"] == 0
    again = await client.post(f"/api/v1/events/{event_id}/dismiss")
    assert again.status_code == 409


async def test_unknown_event_returns_404(client: AsyncClient) -> None:
    for response in (
        await client.get("/api/v1/events/missing"),
        await client.post("/api/v1/events/missing/dismiss"),
        await client.post("/api/v1/events/missing/retry"),
    ):
        assert response.status_code == 404
        assert response.json()["error"] == "RESOURCE_NOT_FOUND"


async def test_list_and_stats(client: AsyncClient) -> None:
    first = await _emit(client, "job_created", {"id": "job-1"})
    second = await _emit(client, "job_created", {"id": "job-2"})
    await client.post(f"/api/v1/events/{first}/dismiss")

    listed = (await client.get("/api/v1/events")).json()
    assert {e["id"] for e in listed} == {first, second}
    pending = (await client.get("/api/v1/events", params={"status": "pending"})).json()
    assert [e["id"] for e in pending] == [second]

    stats = (await client.get("/api/v1/events/stats")).json()
    assert stats["total"] == 2
    assert stats["counts"]["pending"] == 1
    assert stats["counts"]["dismissed"] == 1
    assert stats["counts"]["failed"] == 0
    assert stats["queued"] == 0


async def test_list_rejects_unknown_status(client: AsyncClient) -> None:
    response = await client.get("/api/v1/events", params={"status": "lost"})
    assert response.status_code == 400
    assert response.json()["error"] == "VALIDATION_ERROR"
