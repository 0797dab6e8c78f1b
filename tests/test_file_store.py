"""Tests for the JSON file storage adapter."""

import json
from datetime import date

import pytest

from cadence.adapters.file_store import JsonFileStore
from cadence.core.habits import Habit, Interval, SpecificDays
from cadence.core.identity import Committed, new_pending
from cadence.core.recurrence import Frequency, Occurrence, RecurrenceRule, Subtask
from cadence.ports.persistence import PersistenceError


@pytest.fixture
def store(tmp_path):
    return JsonFileStore(tmp_path / "data" / "cadence.json")


def _payload(text: str, day: date, **kwargs) -> Occurrence:
    return Occurrence(id=new_pending(), text=text, due_date=day, **kwargs)


class TestOccurrences:
    def test_empty_store(self, store):
        assert store.load_occurrences() == []
        assert not store.path.exists()

    def test_insert_assigns_ids(self, store):
        created = store.insert_occurrences([
            _payload("Laundry", date(2024, 1, 1)),
            _payload("Groceries", date(2024, 1, 2)),
        ])

        assert [o.id for o in created] == [Committed(1), Committed(2)]
        assert [o.text for o in store.load_occurrences()] == ["Laundry", "Groceries"]

    def test_recurrence_persisted(self, store):
        rule = RecurrenceRule(Frequency.CUSTOM, frozenset({1, 3}), group_id="recurrence-1", source_id=Committed(1))
        store.insert_occurrences([_payload("Gym", date(2024, 1, 3), recurrence=rule)])

        loaded = store.load_occurrences()[0]
        assert loaded.recurrence == rule

    def test_insert_subtasks(self, store):
        parent = store.insert_occurrences([_payload("Trip", date(2024, 1, 1))])[0]

        created = store.insert_subtasks(parent.id, [Subtask("Tickets"), Subtask("Hotel")])

        assert [st.id for st in created] == [Committed(2), Committed(3)]
        assert [st.text for st in store.load_occurrences()[0].subtasks] == ["Tickets", "Hotel"]

    def test_insert_subtasks_unknown_parent(self, store):
        with pytest.raises(PersistenceError):
            store.insert_subtasks(Committed(5), [Subtask("x")])

    def test_update_keeps_subtask_ids(self, store):
        parent = store.insert_occurrences([_payload("Trip", date(2024, 1, 1))])[0]
        subtasks = store.insert_subtasks(parent.id, [Subtask("Tickets")])
        edited = Occurrence(
            id=parent.id,
            text="Trip to Lisbon",
            due_date=date(2024, 1, 2),
            completed=True,
            subtasks=(Subtask("Tickets", True, subtasks[0].id), Subtask("Adapter")),
        )

        saved = store.update_occurrence(edited)

        assert saved.text == "Trip to Lisbon"
        assert saved.due_date == date(2024, 1, 2)
        assert saved.subtasks[0] == Subtask("Tickets", True, subtasks[0].id)
        assert saved.subtasks[1].id == Committed(3)
        assert store.load_occurrences() == [saved]

    def test_update_unknown(self, store):
        with pytest.raises(PersistenceError):
            store.update_occurrence(Occurrence(id=Committed(9), text="x", due_date=None))

    def test_delete(self, store):
        created = store.insert_occurrences([_payload(t, date(2024, 1, 1)) for t in "abc"])

        store.delete_occurrences([created[0].id, created[2].id, new_pending()])

        assert [o.text for o in store.load_occurrences()] == ["b"]

    def test_ids_not_reused_after_delete(self, store):
        first = store.insert_occurrences([_payload("a", date(2024, 1, 1))])[0]
        store.delete_occurrences([first.id])
        second = store.insert_occurrences([_payload("b", date(2024, 1, 1))])[0]
        assert second.id == Committed(2)


class TestStoreFile:
    def test_corrupt_file(self, store):
        store.path.write_text("{not json")
        with pytest.raises(PersistenceError, match="Corrupt store"):
            store.load_occurrences()

    def test_no_temp_file_left(self, store):
        store.insert_occurrences([_payload("a", date(2024, 1, 1))])
        assert [p.name for p in store.path.parent.iterdir()] == ["cadence.json"]

    def test_document_shape(self, store):
        store.set_completion("read", date(2024, 1, 2), True)
        document = json.loads(store.path.read_text())
        assert document["completions"] == {"read": ["2024-01-02"]}
        assert document["profile"] == {"last_streak_celebration": 0}


class TestHabits:
    def test_save_and_replace(self, store):
        store.save_habit(Habit("read", "Read", SpecificDays(frozenset({1, 3}))))
        store.save_habit(Habit("read", "Read more", Interval(2, date(2024, 1, 1)), emoji="📚"))

        habits = store.load_habits()

        assert habits == [Habit("read", "Read more", Interval(2, date(2024, 1, 1)), emoji="📚")]

    def test_completions_are_a_set(self, store):
        store.set_completion("read", date(2024, 1, 2), True)
        store.set_completion("read", date(2024, 1, 2), True)
        store.set_completion("read", date(2024, 1, 1), True)

        assert store.load_completions("read") == {date(2024, 1, 1), date(2024, 1, 2)}

    def test_remove_completion(self, store):
        store.set_completion("read", date(2024, 1, 2), True)
        store.set_completion("read", date(2024, 1, 2), False)
        assert store.load_completions("read") == set()

    def test_unknown_habit_has_no_completions(self, store):
        assert store.load_completions("nope") == set()


class TestProfile:
    def test_last_celebration(self, store):
        assert store.last_celebration() == 0
        store.save_last_celebration(7)
        assert store.last_celebration() == 7
