from datetime import datetime, timezone

import pytest

from conftest import FakeResult, make_admin, make_dsa, make_user, sequence_handler
from loanportal.services import statistics

NOW = datetime(2025, 3, 15, tzinfo=timezone.utc)


def test_month_starts_cross_year_boundary() -> None:
    months = statistics._month_starts(datetime(2025, 2, 10, tzinfo=timezone.utc), 4)
    assert [f"{m:%Y-%m}" for m in months] == ["2024-11", "2024-12", "2025-01", "2025-02"]


@pytest.mark.asyncio
async def test_dsa_statistics(fake_db) -> None:
    fake_db.on_execute_return(FakeResult(rows=[("approved", 3), ("under_review", 2), ("rejected", 1)]))

    stats = await statistics.build_statistics(fake_db, make_dsa(), now=NOW)

    assert stats["role"] == "dsa"
    assert stats["overview"] == {
        "total_assigned": 6,
        "pending_reviews": 2,
        "approved": 3,
        "rejected": 1,
        "success_rate": 50.0,
    }
    assert stats["by_status"]["partially_approved"] == 0


@pytest.mark.asyncio
async def test_user_statistics(fake_db) -> None:
    fake_db.on_execute(
        sequence_handler([FakeResult(rows=[("pending", 1), ("under_review", 1)]), FakeResult(scalar=None)])
    )

    stats = await statistics.build_statistics(fake_db, make_user(), period_days=7, now=NOW)

    assert stats["period_days"] == 7
    assert stats["overview"]["pending"] == 2
    assert stats["overview"]["total_applications"] == 2
    assert stats["latest_application"] is None


@pytest.mark.asyncio
async def test_admin_statistics_fills_empty_buckets(fake_db) -> None:
    counts = [FakeResult(scalar=value) for value in (10, 7, 3, 1, 4)]
    fake_db.on_execute(
        sequence_handler(
            counts
            + [
                FakeResult(rows=[("approved", 4, 900000)]),
                FakeResult(rows=[("high", 2)]),
                FakeResult(rows=[]),
                FakeResult(rows=[(datetime(2025, 3, 1, tzinfo=timezone.utc), 5, 1250000)]),
            ]
        )
    )

    stats = await statistics.build_statistics(fake_db, make_admin(), now=NOW)

    assert stats["overview"]["total_applications"] == 10
    assert stats["overview"]["pending_verifications"] == 1
    assert stats["by_status"]["approved"]["count"] == 4
    assert stats["by_status"]["pending"]["count"] == 0
    assert stats["by_priority"] == {"low": 0, "medium": 0, "high": 2}
    assert len(stats["monthly_trends"]) == statistics.TREND_MONTHS
    assert stats["monthly_trends"][-1] == {"month": "2025-03", "count": 5, "total_amount": 1250000}


def test_statistics_route_uses_role_shape(fake_db, act_as) -> None:
    fake_db.on_execute_return(FakeResult(rows=[("approved", 1)]))

    response = act_as(make_dsa()).get("/api/v1/statistics", params={"period": 14})

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["role"] == "dsa"
    assert data["period_days"] == 14
    assert data["overview"]["success_rate"] == 100.0
