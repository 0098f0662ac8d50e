import json

import pytest

from contacts import Contact, ContactDirectory, format_preference, validate_contact
from roster_errors import ValidationError


@pytest.fixture
def directory(tmp_path):
    return ContactDirectory(tmp_path / 'contacts.json')


class TestContactDirectory:
    def test_missing_file_is_empty(self, directory):
        assert directory.all() == []
        assert directory.get('Klassen') is None

    def test_upsert_and_get(self, directory):
        directory.upsert(Contact(clinician=' Klassen ', email='k@example.org', preferred='Email'))
        assert directory.get('Klassen') == Contact(clinician='Klassen', email='k@example.org',
                                                   phone='', preferred='email')

    def test_upsert_replaces(self, directory):
        directory.upsert(Contact(clinician='Luo', phone='204-555-0100', preferred='sms'))
        directory.upsert(Contact(clinician='Luo', email='luo@example.org', preferred='either'))
        assert directory.get('Luo').preferred == 'either'
        assert directory.get('Luo').phone == ''
        assert len(directory.all()) == 1

    def test_file_layout(self, directory):
        directory.upsert(Contact(clinician='Tran', email='t@example.org', preferred='email'))
        data = json.loads(directory.path.read_text())
        assert data == {'contacts': {'Tran': {'email': 't@example.org', 'phone': '', 'preferred': 'email'}}}

    def test_hand_edited_file_with_extra_keys(self, directory):
        directory.path.write_text(json.dumps({'contacts': {
            'Peters': {'email': 'p@example.org', 'preferred': 'email', 'pager': '1234'},
        }}))
        expected = Contact(clinician='Peters', email='p@example.org', phone='', preferred='email')
        assert directory.get('Peters') == expected
        assert directory.all() == [expected]

    def test_all_sorted(self, directory):
        for name in ('Tran', 'Klassen', 'Luo'):
            directory.upsert(Contact(clinician=name))
        assert [c.clinician for c in directory.all()] == ['Klassen', 'Luo', 'Tran']

    def test_remove(self, directory):
        directory.upsert(Contact(clinician='Peters'))
        assert directory.remove('Peters') is True
        assert directory.remove('Peters') is False
        assert directory.get('Peters') is None


class TestValidation:
    @pytest.mark.parametrize('name', ['', '   ', None])
    def test_name_required(self, name):
        with pytest.raises(ValidationError):
            validate_contact(Contact(clinician=name))

    def test_unknown_preference(self, directory):
        with pytest.raises(ValidationError, match='pigeon'):
            directory.upsert(Contact(clinician='Luo', preferred='pigeon'))
        assert not directory.path.exists()


@pytest.mark.parametrize('contact, expected', [
    (None, 'No contact info'),
    (Contact(clinician='a', preferred='email'), 'Prefers email'),
    (Contact(clinician='a', preferred='sms'), 'Prefers SMS'),
    (Contact(clinician='a', preferred='either'), 'Email or SMS'),
    (Contact(clinician='a', preferred='none'), 'Prefers not to share'),
    (Contact(clinician='a', preferred=''), 'No preference set'),
])
def test_format_preference(contact, expected):
    assert format_preference(contact) == expected
