"""Tests for summary line and grid name heuristics."""
import pytest

from summary_decoder import decode_summary, extract_clinician_name, strip_annotation


class TestDecodeSummary:
    def test_full_summary_with_day_counter(self):
        parts = decode_summary('SBH - ED - R-PM2 - 15:30-00:30 - Peters (Day 2/2)')
        assert parts.code == 'R-PM2'
        assert parts.clinician == 'Peters'
        assert (parts.start, parts.end) == ('15:30', '00:30')

    def test_full_summary_without_annotation(self):
        parts = decode_summary('SBH - ED - Surge-AM - 08:00-17:00 - Klassen')
        assert parts.code == 'Surge-AM'
        assert parts.clinician == 'Klassen'

    def test_extra_segments_ignored(self):
        parts = decode_summary('SBH - ED - R7 - 07:00-15:00 - Luo - covering')
        assert (parts.code, parts.clinician) == ('R7', 'Luo')

    def test_short_form_uses_last_two_segments(self):
        parts = decode_summary('R5 - Klassen (Day 1/2)')
        assert (parts.code, parts.clinician) == ('R5', 'Klassen')

    def test_four_segments_use_last_two(self):
        parts = decode_summary('ED - R-PM2 - 15:30-00:30 - Peters')
        assert (parts.code, parts.clinician) == ('15:30-00:30', 'Peters')

    def test_single_segment_is_the_code(self):
        parts = decode_summary('  Admin day ')
        assert (parts.code, parts.clinician) == ('Admin day', '')
        assert parts.start is None and parts.end is None

    @pytest.mark.parametrize('value', [None, '', '   '])
    def test_blank_never_fails(self, value):
        parts = decode_summary(value)
        assert (parts.code, parts.clinician) == ('', '')

    def test_hyphenated_code_kept_whole(self):
        # only " - " with spaces separates segments
        parts = decode_summary('SBH - ED - RAZ-PM - 14:00-23:00 - Tran')
        assert parts.code == 'RAZ-PM'

    def test_time_block_zero_padded(self):
        parts = decode_summary('SBH - ED - R7 - 7:00-15:00 - Luo')
        assert (parts.start, parts.end) == ('07:00', '15:00')


class TestStripAnnotation:
    def test_only_trailing_parenthetical(self):
        assert strip_annotation('KlassenMa (FRCP R3) / Luo (M3)') == 'KlassenMa (FRCP R3) / Luo'

    def test_no_annotation(self):
        assert strip_annotation('  Peters ') == 'Peters'


class TestExtractClinicianName:
    def test_first_letter_run(self):
        assert extract_clinician_name('KlassenMa (FRCP R3) / Luo (M3)') == 'KlassenMa'

    def test_plain_name(self):
        assert extract_clinician_name('  Klassen\n') == 'Klassen'

    @pytest.mark.parametrize('value', [None, '', '   ', '--', ' -- '])
    def test_unassigned(self, value):
        assert extract_clinician_name(value) == ''

    def test_no_letters(self):
        assert extract_clinician_name('12:00') == ''

    def test_stops_at_punctuation(self):
        assert extract_clinician_name("O'Brien") == 'O'
