"""Tests for distribution API endpoints."""

import uuid
from collections.abc import AsyncGenerator, Generator
from datetime import UTC, datetime
from unittest.mock import AsyncMock, patch

import pytest
from conftest import make_actor
from fastapi import status
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession

from pressledger.api.dependencies import get_current_actor
from pressledger.database import get_db
from pressledger.hierarchy import HierarchySnapshot, Role
from pressledger.main import app
from pressledger.models import Actor, DistributionRecord
from pressledger.services.exceptions import (
    HierarchyViolationError,
    InvalidInputError,
    NotFoundError,
)
from pressledger.services.ledger import (
    PropagationReport,
    PropagationStep,
    StatusUpdateResult,
    StepOutcome,
)


@pytest.fixture
def mock_session() -> AsyncMock:
    """Create a mock database session."""
    return AsyncMock(spec=AsyncSession)


@pytest.fixture(autouse=True)
def clear_overrides() -> Generator[None, None, None]:
    """Reset dependency overrides after each test."""
    yield
    app.dependency_overrides.clear()


def override_dependencies(session: AsyncMock, actor: Actor | None = None) -> None:
    """Route get_db to ``session`` and, if given, authenticate as ``actor``."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield session

    app.dependency_overrides[get_db] = override_get_db
    if actor is not None:
        app.dependency_overrides[get_current_actor] = lambda: actor


def make_record(
    sender: Actor,
    receiver: Actor,
    status_value: str = "distributed",
    quantity: int = 100,
) -> DistributionRecord:
    """Build a transient distribution record."""
    now = datetime.now(UTC)
    record = DistributionRecord(
        id=uuid.uuid4(),
        newspaper_name="Morning Post",
        quantity=quantity,
        sender_id=sender.id,
        receiver_id=receiver.id,
        status=status_value,
        total_unsold=0,
        received_quantity=quantity,
        status_updates=[
            {
                "actor_id": str(sender.id),
                "status": status_value,
                "quantity": quantity,
                "received_quantity": quantity,
                "timestamp": now.isoformat(),
            }
        ],
        created_at=now,
        updated_at=now,
    )
    record.hierarchy = HierarchySnapshot(
        manufacturer_id=sender.superior_id,
        district_distributor_id=sender.id,
        area_distributor_id=receiver.id,
    )
    return record


class TestAuthentication:
    """Tests for caller resolution."""

    def test_missing_header(self, mock_session: AsyncMock) -> None:
        """Test that requests without X-Actor-Id are rejected."""
        override_dependencies(mock_session)

        client = TestClient(app)
        response = client.get("/distributions")

        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_unknown_actor(self, mock_session: AsyncMock) -> None:
        """Test that an id the directory does not know is rejected."""
        override_dependencies(mock_session)

        with patch(
            "pressledger.api.dependencies.find_actor",
            new_callable=AsyncMock,
            return_value=None,
        ):
            client = TestClient(app)
            response = client.get(
                "/distributions", headers={"X-Actor-Id": str(uuid.uuid4())}
            )

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json()["detail"] == "Unknown actor"

    def test_known_actor(self, mock_session: AsyncMock) -> None:
        """Test that the header resolves to the directory entry."""
        actor = make_actor("vendor")
        override_dependencies(mock_session)

        with (
            patch(
                "pressledger.api.dependencies.find_actor",
                new_callable=AsyncMock,
                return_value=actor,
            ) as mock_find,
            patch(
                "pressledger.api.distributions.list_distributions",
                new_callable=AsyncMock,
                return_value=[],
            ),
        ):
            client = TestClient(app)
            response = client.get("/distributions", headers={"X-Actor-Id": str(actor.id)})

        assert response.status_code == status.HTTP_200_OK
        assert mock_find.call_args.args[1] == actor.id


class TestCreateDistribution:
    """Tests for POST /distributions."""

    def test_create_success(self, mock_session: AsyncMock) -> None:
        """Test a successful shipment."""
        district = make_actor("district_distributor", uuid.uuid4())
        area = make_actor("area_distributor", district.id)
        record = make_record(district, area)
        override_dependencies(mock_session, district)

        with patch(
            "pressledger.api.distributions.create_distribution",
            new_callable=AsyncMock,
            return_value=record,
        ) as mock_create:
            client = TestClient(app)
            response = client.post(
                "/distributions",
                json={
                    "newspaper_name": "Morning Post",
                    "quantity": 100,
                    "receiver_id": str(area.id),
                },
            )

        assert response.status_code == status.HTTP_201_CREATED
        data = response.json()
        assert data["id"] == str(record.id)
        assert data["status"] == "distributed"
        assert data["hierarchy"]["area_distributor_id"] == str(area.id)
        assert data["hierarchy"]["vendor_id"] is None
        assert len(data["status_updates"]) == 1
        mock_create.assert_awaited_once()
        assert mock_create.call_args.args[1] is district
        assert mock_create.call_args.args[4] == area.id

    def test_hierarchy_violation(self, mock_session: AsyncMock) -> None:
        """Test that hierarchy violations are client errors."""
        override_dependencies(mock_session, make_actor("manufacturer"))

        with patch(
            "pressledger.api.distributions.create_distribution",
            new_callable=AsyncMock,
            side_effect=HierarchyViolationError(
                "manufacturer can only distribute to district_distributor"
            ),
        ):
            client = TestClient(app)
            response = client.post(
                "/distributions",
                json={
                    "newspaper_name": "Morning Post",
                    "quantity": 10,
                    "receiver_id": str(uuid.uuid4()),
                },
            )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert "can only distribute" in response.json()["detail"]

    def test_invalid_body(self, mock_session: AsyncMock) -> None:
        """Test that a malformed receiver id fails validation."""
        override_dependencies(mock_session, make_actor("manufacturer"))

        client = TestClient(app)
        response = client.post(
            "/distributions",
            json={"newspaper_name": "Morning Post", "quantity": 10, "receiver_id": "x"},
        )

        assert response.status_code == 422

    def test_pending_shipment(self, mock_session: AsyncMock) -> None:
        """Test the pending shipment endpoint."""
        district = make_actor("district_distributor", uuid.uuid4())
        area = make_actor("area_distributor", district.id)
        record = make_record(district, area, status_value="pending")
        override_dependencies(mock_session, district)

        with patch(
            "pressledger.api.distributions.create_pending_shipment",
            new_callable=AsyncMock,
            return_value=record,
        ):
            client = TestClient(app)
            response = client.post(
                "/distributions/pending",
                json={
                    "newspaper_name": "Morning Post",
                    "quantity": 100,
                    "receiver_id": str(area.id),
                },
            )

        assert response.status_code == status.HTTP_201_CREATED
        assert response.json()["status"] == "pending"


class TestReadDistributions:
    """Tests for listing and fetching records."""

    def test_list(self, mock_session: AsyncMock) -> None:
        """Test listing the caller's records."""
        district = make_actor("district_distributor", uuid.uuid4())
        area = make_actor("area_distributor", district.id)
        records = [make_record(district, area), make_record(district, area)]
        override_dependencies(mock_session, district)

        with patch(
            "pressledger.api.distributions.list_distributions",
            new_callable=AsyncMock,
            return_value=records,
        ):
            client = TestClient(app)
            response = client.get("/distributions")

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["total"] == 2
        assert [item["id"] for item in data["items"]] == [str(r.id) for r in records]

    def test_get_out_of_scope(self, mock_session: AsyncMock) -> None:
        """Test that records outside the caller's subtree are 404."""
        override_dependencies(mock_session, make_actor("vendor"))

        with patch(
            "pressledger.api.distributions.get_distribution",
            new_callable=AsyncMock,
            side_effect=NotFoundError("Distribution record not found"),
        ):
            client = TestClient(app)
            response = client.get(f"/distributions/{uuid.uuid4()}")

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_newspapers(self, mock_session: AsyncMock) -> None:
        """Test the newspaper title listing."""
        override_dependencies(mock_session, make_actor("vendor"))

        with patch(
            "pressledger.api.distributions.get_available_newspapers",
            new_callable=AsyncMock,
            return_value=["Evening Star", "Morning Post"],
        ):
            client = TestClient(app)
            response = client.get("/distributions/newspapers")

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {"newspapers": ["Evening Star", "Morning Post"]}

    def test_newspapers_admin(self, mock_session: AsyncMock) -> None:
        """Test that admins get a client error for newspaper selection."""
        override_dependencies(mock_session, make_actor("admin"))

        with patch(
            "pressledger.api.distributions.get_available_newspapers",
            new_callable=AsyncMock,
            side_effect=InvalidInputError("Invalid role for newspaper selection"),
        ):
            client = TestClient(app)
            response = client.get("/distributions/newspapers")

        assert response.status_code == status.HTTP_400_BAD_REQUEST


class TestUpdateUnsold:
    """Tests for PATCH /distributions/{id}/unsold."""

    def test_vendor_success(self, mock_session: AsyncMock) -> None:
        """Test a vendor closing a shipment."""
        area = make_actor("area_distributor", uuid.uuid4())
        vendor = make_actor("vendor", area.id)
        record = make_record(area, vendor, status_value="delivered")
        record.total_unsold = 20
        override_dependencies(mock_session, vendor)

        with patch(
            "pressledger.api.distributions.update_unsold",
            new_callable=AsyncMock,
            return_value=record,
        ) as mock_update:
            client = TestClient(app)
            response = client.patch(
                f"/distributions/{record.id}/unsold", json={"unsold_quantity": 20}
            )

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["total_unsold"] == 20
        mock_update.assert_awaited_once_with(mock_session, vendor.id, record.id, 20)

    def test_non_vendor_forbidden(self, mock_session: AsyncMock) -> None:
        """Test that only vendors report unsold copies."""
        override_dependencies(mock_session, make_actor("area_distributor", uuid.uuid4()))

        client = TestClient(app)
        response = client.patch(
            f"/distributions/{uuid.uuid4()}/unsold", json={"unsold_quantity": 1}
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_already_updated(self, mock_session: AsyncMock) -> None:
        """Test that closed records are 404."""
        override_dependencies(mock_session, make_actor("vendor", uuid.uuid4()))

        with patch(
            "pressledger.api.distributions.update_unsold",
            new_callable=AsyncMock,
            side_effect=NotFoundError("Distribution record not found or already updated"),
        ):
            client = TestClient(app)
            response = client.patch(
                f"/distributions/{uuid.uuid4()}/unsold", json={"unsold_quantity": 1}
            )

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_unsold_too_large(self, mock_session: AsyncMock) -> None:
        """Test that out-of-range unsold counts are 400."""
        override_dependencies(mock_session, make_actor("vendor", uuid.uuid4()))

        with patch(
            "pressledger.api.distributions.update_unsold",
            new_callable=AsyncMock,
            side_effect=InvalidInputError("Unsold quantity cannot be greater"),
        ):
            client = TestClient(app)
            response = client.patch(
                f"/distributions/{uuid.uuid4()}/unsold", json={"unsold_quantity": 999}
            )

        assert response.status_code == status.HTTP_400_BAD_REQUEST


class TestUpdateStatus:
    """Tests for PATCH /distributions/{id}/status."""

    def test_partial_propagation_is_ok(self, mock_session: AsyncMock) -> None:
        """Test that a partial propagation is reported in a 200 response."""
        district = make_actor("district_distributor", uuid.uuid4())
        area = make_actor("area_distributor", district.id)
        record = make_record(district, area, status_value="delivered")
        record.received_quantity = 90
        report = PropagationReport(
            [
                PropagationStep(
                    Role.MANUFACTURER,
                    Role.DISTRICT_DISTRIBUTOR,
                    StepOutcome.FAILED,
                    error="connection reset",
                ),
            ]
        )
        override_dependencies(mock_session, area)

        with patch(
            "pressledger.api.distributions.update_status",
            new_callable=AsyncMock,
            return_value=StatusUpdateResult(record=record, propagation=report),
        ) as mock_update:
            client = TestClient(app)
            response = client.patch(
                f"/distributions/{record.id}/status",
                json={"status": "delivered", "received_quantity": 90},
            )

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["record"]["received_quantity"] == 90
        assert data["propagation"]["outcome"] == "failed"
        assert data["propagation"]["steps"][0] == {
            "upper_role": "manufacturer",
            "lower_role": "district_distributor",
            "outcome": "failed",
            "target_id": None,
            "error": "connection reset",
        }
        mock_update.assert_awaited_once_with(
            mock_session, area.id, record.id, "delivered", 90
        )

    def test_not_receiver(self, mock_session: AsyncMock) -> None:
        """Test that non-receivers get a 404."""
        override_dependencies(mock_session, make_actor("vendor", uuid.uuid4()))

        with patch(
            "pressledger.api.distributions.update_status",
            new_callable=AsyncMock,
            side_effect=NotFoundError("Distribution record not found"),
        ):
            client = TestClient(app)
            response = client.patch(
                f"/distributions/{uuid.uuid4()}/status",
                json={"status": "delivered", "received_quantity": 1},
            )

        assert response.status_code == status.HTTP_404_NOT_FOUND


def test_health_check() -> None:
    """Test the health endpoint."""
    client = TestClient(app)
    response = client.get("/health")

    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"status": "healthy"}
