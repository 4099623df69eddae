import pytest

from aircontrol.schemas import DisplaySettingsUpdate
from aircontrol.services.display_settings import DisplaySettingsService, InMemorySettingsStore
from aircontrol.services.errors import ValidationError


def test_defaults_when_nothing_stored():
    settings = DisplaySettingsService(InMemorySettingsStore()).load("tablet-1")
    assert settings.auto_hide_panels is True
    assert settings.is_wide_mode is False
    assert settings.upcoming_days == 30
    assert settings.maintenance_view_mode == "list"
    assert settings.base_font_size == 16
    assert settings.show_completed_tasks is False


def test_partial_update_keeps_other_values():
    store = InMemorySettingsStore()
    service = DisplaySettingsService(store)

    service.update("tablet-1", DisplaySettingsUpdate(upcoming_days="endOfMonth"))
    updated = service.update("tablet-1", DisplaySettingsUpdate(is_wide_mode=True))

    assert updated.upcoming_days == "endOfMonth"
    assert updated.is_wide_mode is True
    assert store.get("display:tablet-1")["isWideMode"] is True
    assert service.load("tablet-2").is_wide_mode is False


def test_corrupt_stored_values_fall_back_to_defaults():
    store = InMemorySettingsStore()
    store.put("display:phone", {"baseFontSize": "huge"})
    assert DisplaySettingsService(store).load("phone").base_font_size == 16


def test_owner_is_required():
    with pytest.raises(ValidationError):
        DisplaySettingsService(InMemorySettingsStore()).load("  ")


def test_settings_endpoints(client):
    response = client.get("/api/settings/display/phone-1")
    assert response.status_code == 200
    assert response.json()["upcomingDays"] == 30

    response = client.put("/api/settings/display/phone-1", json={"baseFontSize": 18, "maintenanceViewMode": "kanban-engineer"})
    assert response.status_code == 200
    assert response.json()["baseFontSize"] == 18

    stored = client.get("/api/settings/display/phone-1").json()
    assert stored["maintenanceViewMode"] == "kanban-engineer"
    assert stored["showOverdue"] is True

    assert client.put("/api/settings/display/phone-1", json={"baseFontSize": 99}).status_code == 400
    assert client.put("/api/settings/display/phone-1", json={"upcomingDays": -3}).status_code == 400
