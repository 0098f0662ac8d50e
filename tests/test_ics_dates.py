"""Tests for iCalendar date-time decoding."""
import pytest
import pytz

from ics_dates import LocalDateTime, decode_ics_datetime, get_timezone

WINNIPEG = 'America/Winnipeg'


class TestAllDay:
    def test_eight_digit_date(self):
        result = decode_ics_datetime('20251117', WINNIPEG)
        assert result == LocalDateTime('2025-11-17', '')
        assert result.all_day

    @pytest.mark.parametrize('tz', ['UTC', 'Pacific/Auckland', 'America/Los_Angeles'])
    def test_does_not_depend_on_timezone(self, tz):
        assert decode_ics_datetime('20251117', tz) == LocalDateTime('2025-11-17', '')


class TestUtc:
    def test_converted_to_facility_time(self):
        # CST (UTC-6) after the November DST change
        assert decode_ics_datetime('20251117T153000Z', WINNIPEG) == LocalDateTime('2025-11-17', '09:30')

    def test_summer_offset(self):
        # CDT (UTC-5)
        assert decode_ics_datetime('20250701T120000Z', WINNIPEG) == LocalDateTime('2025-07-01', '07:00')

    def test_crosses_back_a_day(self):
        assert decode_ics_datetime('20251118T030000Z', WINNIPEG) == LocalDateTime('2025-11-17', '21:00')

    def test_seconds_optional(self):
        assert decode_ics_datetime('20251117T1530Z', WINNIPEG) == LocalDateTime('2025-11-17', '09:30')

    def test_accepts_pytz_zone(self):
        zone = pytz.timezone('Europe/London')
        assert decode_ics_datetime('20251117T153000Z', zone) == LocalDateTime('2025-11-17', '15:30')


class TestFloating:
    def test_no_conversion(self):
        assert decode_ics_datetime('20251117T153000', WINNIPEG) == LocalDateTime('2025-11-17', '15:30')

    def test_same_result_for_any_zone(self):
        assert decode_ics_datetime('20251117T223000', 'Asia/Tokyo') == LocalDateTime('2025-11-17', '22:30')


class TestUnparsable:
    @pytest.mark.parametrize('token', [
        None,
        '',
        'tomorrow',
        '2025-11-17',
        '2025111',
        '20251317',
        '20251132',
        '20251117T2560',
        '20251117T153000+0100',
    ])
    def test_returns_none(self, token):
        assert decode_ics_datetime(token, WINNIPEG) is None


def test_default_timezone_is_facility_zone():
    assert get_timezone().zone == WINNIPEG
