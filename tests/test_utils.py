from datetime import date, datetime

import pytest

from aircontrol.services.errors import ValidationError
from aircontrol.utils.dates import format_dotted, month_bounds, same_month, to_date
from aircontrol.utils.text import capitalize_words, clean_address_for_navigation, navigation_links


@pytest.mark.parametrize("value, expected", [
    (None, None),
    ("", None),
    ("2025-03-10", date(2025, 3, 10)),
    ("10.03.2025", date(2025, 3, 10)),
    ("2025-03-10T12:00:00.000Z", date(2025, 3, 10)),
    (datetime(2025, 3, 10, 23, 59), date(2025, 3, 10)),
    (1741564800000, date(2025, 3, 10)),
    ({"seconds": 1741564800, "nanoseconds": 0}, date(2025, 3, 10)),
])
def test_to_date(value, expected):
    assert to_date(value) == expected


@pytest.mark.parametrize("value", ["31.02.2025", "tomorrow", True, {"foo": 1}, [2025, 3, 10]])
def test_to_date_rejects(value):
    with pytest.raises(ValidationError):
        to_date(value)


def test_month_helpers():
    assert month_bounds("2024-02", date(2025, 3, 1)) == (date(2024, 2, 1), date(2024, 2, 29))
    assert month_bounds(None, date(2025, 3, 15)) == (date(2025, 3, 1), date(2025, 3, 31))
    with pytest.raises(ValidationError):
        month_bounds("March", date(2025, 3, 1))
    assert same_month(date(2025, 3, 1), date(2025, 3, 31))
    assert not same_month(date(2025, 3, 1), date(2024, 3, 1))
    assert format_dotted(date(2025, 3, 5)) == "05.03.2025"


def test_capitalize_words():
    assert capitalize_words("торговий центр океан") == "Торговий Центр Океан"
    assert capitalize_words("ТОВ кліма-сервіс") == "ТОВ Кліма-Сервіс"
    assert capitalize_words(None) == ""


def test_navigation_links():
    links = navigation_links("50.4501, 30.5234", "вул. Хрещатик, 1")
    assert links["waze"] == "https://waze.com/ul?ll=50.4501,30.5234&navigate=yes"

    links = navigation_links(None, "вул. Хрещатик, буд. 1, літ. А")
    assert "maps/dir" in links["google"]
    assert navigation_links(None, None) == {}

    assert clean_address_for_navigation("вул. Січових Стрільців, буд. 5, корп. 2") == "вул. Січових Стрільців 5"


@pytest.mark.parametrize("value", [
    {"seconds": 1741557600, "nanoseconds": 0},
    1741557600000,
    "2025-03-09T22:00:00.000Z",
    "2025-03-10T00:00:00+02:00",
])
def test_instants_are_read_as_kyiv_dates(value):
    # Local midnight on 10 March is still 9 March in UTC
    assert to_date(value) == date(2025, 3, 10)


@pytest.mark.parametrize("value", [10 ** 20, -(10 ** 20), float("inf"), {"seconds": 10 ** 18}])
def test_out_of_range_instants_are_rejected(value):
    with pytest.raises(ValidationError):
        to_date(value)
