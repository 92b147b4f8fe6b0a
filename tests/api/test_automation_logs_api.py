"""Tests for execution history endpoints (logs, execution detail, stats)."""

from typing import Any

from httpx import AsyncClient


async def _run_workflow(client: AsyncClient, actions: list[dict[str, Any]]) -> dict[str, Any]:
    created = await client.post(
        "/api/v1/workflows",
        json={
            "name": "Lead nurture",
            "triggers": [{"trigger_type": "lead_created"}],
            "actions": actions,
        },
    )
    assert created.status_code == 201
    workflow = created.json()
    response = await client.post(
        f"/api/v1/workflows/{workflow['id']}/execute",
        json={"entityType": "lead", "entityId": "lead-7", "entityData": {"name": "Sam"}},
    )
    assert response.status_code == 200
    return response.json()


async def test_execution_detail_orders_logs(client: AsyncClient) -> None:
    result = await _run_workflow(
        client,
        [
            {"action_type": "update_lead_stage", "config": {"new_stage": "contacted"}},
            {"action_type": "create_task", "config": {"title": "Call {{ name }}"}},
        ],
    )

    response = await client.get(f"/api/v1/automation-logs/{result['execution_id']}")
    assert response.status_code == 200
    detail = response.json()
    assert detail["status"] == "completed"
    assert detail["workflow_id"] == result["workflow_id"]
    assert detail["trigger_type"] == "manual"
    assert detail["entity_type"] == "lead"
    assert detail["entity_id"] == "lead-7"
    assert detail["finished_at"] is not None
    assert [log["action_type"] for log in detail["logs"]] == [
        "update_lead_stage",
        "create_task",
    ]
    assert detail["logs"][1]["output_data"]["title"] == "Call Sam"


async def test_failed_action_marks_execution_failed(client: AsyncClient) -> None:
    result = await _run_workflow(
        client,
        [
            {"action_type": "send_sms", "config": {"message": "Hi"}, "continue_on_error": False},
            {"action_type": "create_task", "config": {"title": "Never runs"}},
        ],
    )
    assert result["outcome"] == "failed"

    detail = (await client.get(f"/api/v1/automation-logs/{result['execution_id']}")).json()
    assert detail["status"] == "failed"
    [log] = detail["logs"]
    assert log["error_message"] == "No recipient phone number"

    failed = (
        await client.get("/api/v1/automation-logs", params={"status": "failed"})
    ).json()
    assert failed["total"] == 1
    assert failed["items"][0]["action_type"] == "send_sms"


async def test_list_logs_filters(client: AsyncClient) -> None:
    await _run_workflow(
        client,
        [
            {"action_type": "create_task", "config": {"title": "One"}},
            {"action_type": "wait", "config": {}},
        ],
    )

    everything = (await client.get("/api/v1/automation-logs")).json()
    assert everything["total"] == 2
    waits = (
        await client.get("/api/v1/automation-logs", params={"action_type": "wait"})
    ).json()
    assert [log["action_type"] for log in waits["items"]] == ["wait"]
    by_entity = (
        await client.get(
            "/api/v1/automation-logs", params={"entity_type": "lead", "entity_id": "lead-7"}
        )
    ).json()
    assert by_entity["total"] == 2
    none = (
        await client.get("/api/v1/automation-logs", params={"entity_id": "lead-8"})
    ).json()
    assert none["total"] == 0


async def test_list_logs_rejects_bad_filters(client: AsyncClient) -> None:
    bad_status = await client.get("/api/v1/automation-logs", params={"status": "lost"})
    assert bad_status.status_code == 400

    reversed_range = await client.get(
        "/api/v1/automation-logs",
        params={"start_date": "2026-03-10T00:00:00Z", "end_date": "2026-03-01T00:00:00Z"},
    )
    assert reversed_range.status_code == 400
    assert reversed_range.json()["details"]["field"] == "start_date"


async def test_stats(client: AsyncClient) -> None:
    result = await _run_workflow(
        client,
        [
            {"action_type": "create_task", "config": {"title": "One"}},
            {"action_type": "send_email", "config": {"subject": "Hi"}},
        ],
    )

    response = await client.get("/api/v1/automation-logs/stats", params={"days": 7})
    assert response.status_code == 200
    stats = response.json()
    assert stats["period_days"] == 7
    overall = stats["overall"]
    assert overall["total"] == 2
    assert overall["completed"] == 1
    assert overall["failed"] == 1
    assert overall["success_rate"] == 50.0
    assert len(stats["daily"]) == 1
    assert {t["action_type"] for t in stats["by_action_type"]} == {"create_task", "send_email"}
    [top] = stats["top_workflows"]
    assert top["workflow_id"] == result["workflow_id"]
    assert top["workflow_name"] == "Lead nurture"
    assert top["executions"] == 1


async def test_stats_rejects_out_of_range_days(client: AsyncClient) -> None:
    response = await client.get("/api/v1/automation-logs/stats", params={"days": 0})
    assert response.status_code == 400
    assert response.json()["error"] == "VALIDATION_ERROR"


async def test_unknown_execution_returns_404(client: AsyncClient) -> None:
    response = await client.get("/api/v1/automation-logs/nope")
    assert response.status_code == 404
    assert response.json()["error"] == "RESOURCE_NOT_FOUND"
