"""Tests for actor directory API endpoints."""

import uuid
from collections.abc import AsyncGenerator, Generator
from unittest.mock import AsyncMock, patch

import pytest
from conftest import make_actor
from fastapi import status
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession

from pressledger.api.dependencies import get_current_actor
from pressledger.database import get_db
from pressledger.main import app
from pressledger.models import Actor
from pressledger.services.exceptions import InvalidInputError


@pytest.fixture
def mock_session() -> AsyncMock:
    """Create a mock database session."""
    return AsyncMock(spec=AsyncSession)


@pytest.fixture
def client_as(mock_session: AsyncMock) -> Generator[object, None, None]:
    """Return a factory for test clients authenticated as a given actor."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield mock_session

    def factory(actor: Actor) -> TestClient:
        app.dependency_overrides[get_db] = override_get_db
        app.dependency_overrides[get_current_actor] = lambda: actor
        return TestClient(app)

    yield factory
    app.dependency_overrides.clear()


class TestRegisterActor:
    """Tests for POST /actors."""

    def test_admin_registers(self, client_as, mock_session: AsyncMock) -> None:  # type: ignore[no-untyped-def]
        """Test that admins can register actors."""
        manufacturer = make_actor("manufacturer")
        district = make_actor("district_distributor", manufacturer.id)

        with patch(
            "pressledger.api.actors.register_actor",
            new_callable=AsyncMock,
            return_value=district,
        ) as mock_register:
            response = client_as(make_actor("admin")).post(
                "/actors",
                json={
                    "name": district.name,
                    "email": district.email,
                    "role": "district_distributor",
                    "superior_id": str(manufacturer.id),
                },
            )

        assert response.status_code == status.HTTP_201_CREATED
        data = response.json()
        assert data["id"] == str(district.id)
        assert data["superior_id"] == str(manufacturer.id)
        mock_register.assert_awaited_once_with(
            mock_session, district.name, district.email, "district_distributor", manufacturer.id
        )

    def test_non_admin_forbidden(self, client_as) -> None:  # type: ignore[no-untyped-def]
        """Test that only admins register actors."""
        response = client_as(make_actor("manufacturer")).post(
            "/actors",
            json={"name": "Press", "email": "p@example.com", "role": "manufacturer"},
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.json()["detail"] == "You do not have permission to perform this action"

    def test_duplicate_email(self, client_as) -> None:  # type: ignore[no-untyped-def]
        """Test that registration errors are 400."""
        with patch(
            "pressledger.api.actors.register_actor",
            new_callable=AsyncMock,
            side_effect=InvalidInputError("Email 'p@example.com' is already registered"),
        ):
            response = client_as(make_actor("admin")).post(
                "/actors",
                json={"name": "Press", "email": "p@example.com", "role": "manufacturer"},
            )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert "already registered" in response.json()["detail"]


class TestListActors:
    """Tests for directory listings."""

    def test_subordinates(self, client_as) -> None:  # type: ignore[no-untyped-def]
        """Test listing the caller's direct reports."""
        area = make_actor("area_distributor", uuid.uuid4())
        vendors = [make_actor("vendor", area.id), make_actor("vendor", area.id)]

        with patch(
            "pressledger.api.actors.list_subordinates",
            new_callable=AsyncMock,
            return_value=vendors,
        ) as mock_list:
            response = client_as(area).get("/actors/subordinates")

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["total"] == 2
        assert mock_list.call_args.args[1] == area.id

    def test_by_role(self, client_as) -> None:  # type: ignore[no-untyped-def]
        """Test listing actors by role."""
        districts = [make_actor("district_distributor", uuid.uuid4())]

        with patch(
            "pressledger.api.actors.list_actors_by_role",
            new_callable=AsyncMock,
            return_value=districts,
        ):
            response = client_as(make_actor("manufacturer")).get(
                "/actors/role/district_distributor"
            )

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["items"][0]["role"] == "district_distributor"

    def test_unknown_role(self, client_as) -> None:  # type: ignore[no-untyped-def]
        """Test that unknown roles are 400."""
        with patch(
            "pressledger.api.actors.list_actors_by_role",
            new_callable=AsyncMock,
            side_effect=InvalidInputError("Unknown role: 'printer'"),
        ):
            response = client_as(make_actor("manufacturer")).get("/actors/role/printer")

        assert response.status_code == status.HTTP_400_BAD_REQUEST
