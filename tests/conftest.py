"""
Pytest fixtures for RecordStore tests.
"""

import pytest
from typing import Any, Dict, List

from recordstore import Collection, Record


Person = Record.define("Person", {"fname": None, "lname": None})


@pytest.fixture
def person_factory():
    """Record factory with an fname/lname schema."""
    return Person


@pytest.fixture
def people_data() -> List[Dict[str, Any]]:
    """Raw payloads for three people, two sharing a last name."""
    return [
        {"fname": "John", "lname": "Doe"},
        {"fname": "Jane", "lname": "Doe"},
        {"fname": "Vince", "lname": "Vaughn"},
    ]


@pytest.fixture
def people(person_factory, people_data) -> Collection:
    """Loaded collection indexed on lname."""
    collection = Collection(record_factory=person_factory, index_fields=["lname"])
    collection.load(people_data)
    return collection

