# Overview: Pytest coverage for the availability gate and encounter selection.

"""
Availability Gate Tests

Tour info fixture: 2025-05-15 at 14:00:00 with 2 seats left, ADT pricing.

Test Coverage:
- Date / time / quota failures carry their stable codes
- isAvailable=false slots have no usable quota
- Age groups follow the price schedule; a schedule without ADT is rejected
- Encounter selection for NONE, MEETINGPOINT, PICKUPLOCATION
"""

import pytest

from toursales.errors import AvailabilityError, ValidationError
from toursales.services import availability_service
from toursales.services.availability_service import (
    DATE_NOT_AVAILABLE,
    EXCEEDS_AVAILABLE_QUOTA,
    NO_AVAILABILITY,
    TIME_NOT_AVAILABLE,
)


class TestCheckAvailability:

    def test_matching_slot_within_quota(self, tour_info_factory):
        quota = availability_service.check_availability(tour_info_factory(), "2025-05-15", "14:00:00", 2)
        assert quota["availableQuota"] == 2

    def test_datetime_input_matches_on_calendar_day(self, tour_info_factory):
        info = tour_info_factory(date="2025-05-15T00:00:00")
        quota = availability_service.check_availability(info, "2025-05-15T00:00:00.000Z", "14:00:00", 1)
        assert quota["startTime"] == "14:00:00"

    def test_unknown_date(self, tour_info_factory):
        with pytest.raises(AvailabilityError) as exc:
            availability_service.check_availability(tour_info_factory(), "2025-05-16", "14:00:00", 1)
        assert exc.value.code == DATE_NOT_AVAILABLE

    def test_unknown_time(self, tour_info_factory):
        with pytest.raises(AvailabilityError) as exc:
            availability_service.check_availability(tour_info_factory(), "2025-05-15", "09:00:00", 1)
        assert exc.value.code == TIME_NOT_AVAILABLE

    def test_exceeding_quota(self, tour_info_factory):
        with pytest.raises(AvailabilityError) as exc:
            availability_service.check_availability(tour_info_factory(), "2025-05-15", "14:00:00", 3)
        assert exc.value.code == EXCEEDS_AVAILABLE_QUOTA
        assert exc.value.details == {"requested": 3, "available": 2}

    def test_no_dates_at_all(self, tour_info_factory):
        with pytest.raises(AvailabilityError) as exc:
            availability_service.check_availability(tour_info_factory(date=None), "2025-05-15", "14:00:00", 1)
        assert exc.value.code == NO_AVAILABILITY

    def test_unavailable_slot_has_no_quota(self, tour_info_factory):
        info = tour_info_factory(available_quota=10)
        info["dates"][0]["quotas"][0]["isAvailable"] = False
        with pytest.raises(AvailabilityError) as exc:
            availability_service.check_availability(info, "2025-05-15", "14:00:00", 1)
        assert exc.value.code == EXCEEDS_AVAILABLE_QUOTA

    def test_without_price_schedule_raw_pax_is_used(self, tour_info_factory):
        info = tour_info_factory(with_prices=False)
        assert availability_service.compute_requested_pax(info, 4) == 4
        with pytest.raises(AvailabilityError):
            availability_service.check_availability(info, "2025-05-15", "14:00:00", 4)


class TestAgeGroups:

    def test_all_passengers_booked_as_adults(self, tour_info_factory):
        groups = availability_service.build_age_groups(tour_info_factory(), "item-1", 3)
        assert groups == [{"idItemEcommerce": "item-1", "ageGroupCode": "ADT", "quantity": 3}]

    def test_schedule_groups_other_than_adult_are_dropped(self, tour_info_factory):
        info = tour_info_factory()
        info["priceHeaders"].append({"prices": [{"ageGroupCode": "INF"}, {"ageGroupCode": "ADT"}]})

        assert availability_service.schedule_age_group_codes(info) == ["ADT", "CHD", "INF"]
        groups = availability_service.build_age_groups(info, "item-1", 2)
        assert groups == [{"idItemEcommerce": "item-1", "ageGroupCode": "ADT", "quantity": 2}]

    def test_without_schedule_single_adult_group(self, tour_info_factory):
        groups = availability_service.build_age_groups(tour_info_factory(with_prices=False), "item-1", 4)
        assert groups == [{"idItemEcommerce": "item-1", "ageGroupCode": "ADT", "quantity": 4}]

    def test_schedule_without_adult_code_is_rejected(self, tour_info_factory):
        info = tour_info_factory()
        info["priceHeaders"] = [{"prices": [{"ageGroupCode": "GEN"}, {"ageGroupCode": "CHD"}]}]

        with pytest.raises(ValidationError) as exc:
            availability_service.build_age_groups(info, "item-1", 1)
        assert exc.value.code == "INVALID_AGE_GROUP"
        assert exc.value.details == {"ageGroupCodes": ["GEN", "CHD"]}

        with pytest.raises(ValidationError):
            availability_service.check_availability(info, "2025-05-15", "14:00:00", 1)

    def test_requested_pax_counts_adult_group(self, tour_info_factory):
        info = tour_info_factory()
        groups = [
            {"ageGroupCode": "ADT", "quantity": 2},
            {"ageGroupCode": "CHD", "quantity": 5},
        ]
        assert availability_service.compute_requested_pax(info, 7, groups) == 2


class TestSelectEncounter:

    def test_none(self, tour_info_factory):
        assert availability_service.select_encounter(tour_info_factory()) == (None, None)

    def test_meeting_point_uses_first_point(self, tour_info_factory):
        info = tour_info_factory(encounter_type="MEETINGPOINT")
        assert availability_service.select_encounter(info) == (41, None)

    def test_pickup_location_uses_first_location(self, tour_info_factory):
        info = tour_info_factory(encounter_type="PICKUPLOCATION")
        assert availability_service.select_encounter(info) == (None, "PK-7")

    def test_meeting_point_required_but_missing(self, tour_info_factory):
        info = tour_info_factory(encounter_type="MEETINGPOINT")
        info["meetingPoints"] = []
        with pytest.raises(ValidationError) as exc:
            availability_service.select_encounter(info)
        assert exc.value.code == "INVALID_ENCOUNTER_TYPE"

    def test_unknown_encounter_type(self, tour_info_factory):
        with pytest.raises(ValidationError):
            availability_service.select_encounter(tour_info_factory(encounter_type="BOAT"))
