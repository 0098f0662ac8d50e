"""
Clinician contact directory.

A small JSON file keyed by clinician name, used to show how to reach a
trade candidate. Nothing in the trade analysis depends on it.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Optional

from roster_errors import ValidationError

logger = logging.getLogger(__name__)

PREFERENCES = ('email', 'sms', 'either', 'none')


@dataclass(frozen=True)
class Contact:
    clinician: str
    email: str = ''
    phone: str = ''
    preferred: str = 'none'


def format_preference(contact: Optional[Contact]) -> str:
    if contact is None:
        return 'No contact info'
    if contact.preferred == 'email':
        return 'Prefers email'
    if contact.preferred == 'sms':
        return 'Prefers SMS'
    if contact.preferred == 'either':
        return 'Email or SMS'
    if contact.preferred == 'none':
        return 'Prefers not to share'
    return 'No preference set'


def validate_contact(contact: Contact) -> Contact:
    """
    Clean up and check a contact before it is written.

    Raises:
        ValidationError: clinician name missing or unknown preference
    """
    name = (contact.clinician or '').strip()
    if not name:
        raise ValidationError('Contact requires a clinician name')
    preferred = (contact.preferred or 'none').strip().lower()
    if preferred not in PREFERENCES:
        raise ValidationError(
            f"Unknown contact preference {contact.preferred!r}; expected one of {', '.join(PREFERENCES)}"
        )
    return Contact(
        clinician=name,
        email=(contact.email or '').strip(),
        phone=(contact.phone or '').strip(),
        preferred=preferred,
    )


def _from_entry(name: str, entry: dict) -> Contact:
    # unknown keys in a hand-edited file are ignored
    return Contact(
        clinician=name,
        email=entry.get('email', ''),
        phone=entry.get('phone', ''),
        preferred=entry.get('preferred', 'none'),
    )


class ContactDirectory:
    """Contacts stored as {"contacts": {name: {email, phone, preferred}}}."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def _load(self) -> dict:
        if self.path.exists():
            with open(self.path) as f:
                data = json.load(f)
            data.setdefault('contacts', {})
            return data
        return {'contacts': {}}

    def _save(self, data: dict):
        with open(self.path, 'w') as f:
            json.dump(data, f, indent=2, sort_keys=True)

    def get(self, clinician: str) -> Optional[Contact]:
        entry = self._load()['contacts'].get((clinician or '').strip())
        if entry is None:
            return None
        return _from_entry(clinician.strip(), entry)

    def all(self) -> list[Contact]:
        contacts = self._load()['contacts']
        return [_from_entry(name, entry) for name, entry in sorted(contacts.items())]

    def upsert(self, contact: Contact) -> Contact:
        contact = validate_contact(contact)
        data = self._load()
        entry = asdict(contact)
        del entry['clinician']
        data['contacts'][contact.clinician] = entry
        self._save(data)
        logger.info("Saved contact for %s", contact.clinician)
        return contact

    def remove(self, clinician: str) -> bool:
        data = self._load()
        if data['contacts'].pop((clinician or '').strip(), None) is None:
            return False
        self._save(data)
        return True
