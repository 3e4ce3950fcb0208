"""
Unit tests for the appointment list filter.
"""
from datetime import timedelta

import pytest

from portal.exceptions import MappingError
from portal.lifecycle.listing import filter_appointments
from tests.conftest import NOW, AppointmentFactory


class TestFilterAppointments:

    def _records(self):
        return [
            AppointmentFactory(id='late', scheduled_at=NOW + timedelta(days=5), status='CONFIRMED'),
            AppointmentFactory(id='early', scheduled_at=NOW + timedelta(days=1), status='PENDING',
                               doctor_name='Dr. Lee', reason='Rash'),
            AppointmentFactory(id='mid', scheduled_at=NOW + timedelta(days=2), status='CANCELLED',
                               clinic_name='South Clinic'),
        ]

    def test_sorted_ascending(self):
        assert [r.id for r in filter_appointments(self._records())] == ['early', 'mid', 'late']

    def test_status_filter_normalizes_aliases(self):
        records = filter_appointments(self._records(), status='pending_payment')
        assert [r.id for r in records] == ['early']

    def test_search_counterpart_clinic_reason(self):
        assert [r.id for r in filter_appointments(self._records(), term='lee')] == ['early']
        assert [r.id for r in filter_appointments(self._records(), term='south')] == ['mid']
        assert [r.id for r in filter_appointments(self._records(), term='RASH')] == ['early']

    def test_doctor_searches_patient_name(self):
        records = [AppointmentFactory(id='1', patient_name='Ana Ruiz', doctor_name='Dr. X')]
        assert filter_appointments(records, term='ruiz', role='doctor')
        assert not filter_appointments(records, term='dr. x', role='doctor')

    def test_unknown_status_filter(self):
        with pytest.raises(MappingError):
            filter_appointments(self._records(), status='LOST')
