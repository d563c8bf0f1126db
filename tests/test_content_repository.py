"""Tests for question bank storage and test lookup."""

import pytest

from content_repository import ContentRepository
from errors import ValidationError
from models import PracticeTest, TestModule

from conftest import make_bank, make_reading_test, make_speaking_test, make_writing_test


class TestSaveBank:
    def test_saved_bank_is_listed_first(self, content):
        content.save_bank(make_bank("b1"))
        content.save_bank(make_bank("b2"))
        assert [b.id for b in content.list_banks()] == ["b2", "b1"]

    def test_reading_test_with_wrong_question_count_rejected(self, content):
        bank = make_bank(tests=[make_reading_test(counts=(13, 13, 13))])
        with pytest.raises(ValidationError):
            content.save_bank(bank)
        assert content.list_banks() == []

    def test_reading_test_with_two_passages_rejected(self, content):
        with pytest.raises(ValidationError):
            content.save_bank(make_bank(tests=[make_reading_test(counts=(20, 20))]))

    def test_duplicate_test_ids_rejected(self, content):
        with pytest.raises(ValidationError):
            content.save_bank(make_bank(tests=[make_writing_test("t1"), make_speaking_test("t1")]))

    def test_tests_without_modules_are_dropped(self, content):
        stored = content.save_bank(make_bank(tests=[make_writing_test("w1"), PracticeTest(id="empty", name="Empty")]))
        assert [t.id for t in stored.tests] == ["w1"]
        assert [t.id for t in content.get_bank("bank1").tests] == ["w1"]

    def test_bank_with_only_empty_tests_rejected(self, content):
        with pytest.raises(ValidationError):
            content.save_bank(make_bank(tests=[PracticeTest(id="empty", name="Empty")]))


class TestDeleteTest:
    def test_delete_one_of_two(self, content):
        content.save_bank(make_bank(tests=[make_writing_test("w1"), make_writing_test("w2")]))
        content.delete_test("bank1", "w1")
        assert [t.id for t in content.get_bank("bank1").tests] == ["w2"]

    def test_deleting_last_test_removes_bank(self, content):
        content.save_bank(make_bank(tests=[make_writing_test("w1")]))
        content.delete_test("bank1", "w1")
        assert content.get_bank("bank1") is None
        assert content.list_banks() == []

    def test_double_delete_is_noop(self, content):
        content.save_bank(make_bank(tests=[make_writing_test("w1"), make_writing_test("w2")]))
        content.delete_test("bank1", "w1")
        content.delete_test("bank1", "w1")
        assert [t.id for t in content.get_bank("bank1").tests] == ["w2"]

    def test_unknown_bank_is_noop(self, content):
        content.delete_test("missing", "w1")
        assert content.list_banks() == []


class TestListByModule:
    def test_bank_order_then_test_order(self, content):
        content.save_bank(make_bank("old", tests=[make_writing_test("w1"), make_speaking_test("s1")]))
        content.save_bank(make_bank("new", tests=[make_writing_test("w2"), make_writing_test("w3")]))
        entries = content.list_tests_by_module(TestModule.WRITING)
        assert [(e.bank_id, e.test.id) for e in entries] == [("new", "w2"), ("new", "w3"), ("old", "w1")]

    def test_only_matching_module(self, content):
        content.save_bank(make_bank(tests=[make_writing_test("w1"), make_speaking_test("s1")]))
        assert [e.test.id for e in content.list_tests_by_module(TestModule.SPEAKING)] == ["s1"]
        assert content.list_tests_by_module(TestModule.READING) == []

    def test_find_test(self, content):
        content.save_bank(make_bank(tests=[make_reading_test("r1")]))
        assert content.find_test(TestModule.READING, "r1").bank_id == "bank1"
        assert content.find_test(TestModule.READING, "r1", bank_id="other") is None
        assert content.find_test(TestModule.WRITING, "r1") is None


class TestRemoteBackend:
    def test_saves_go_to_remote(self, remote_backend, remote, local_store):
        ContentRepository(remote_backend).save_bank(make_bank("b1"))
        assert "b1" in remote.banks
        assert local_store.list_banks() == []

    def test_falls_back_to_local_when_remote_fails(self, remote_backend, remote, local_store):
        remote.fail = True
        repo = ContentRepository(remote_backend)
        repo.save_bank(make_bank("b1"))
        assert [b.id for b in local_store.list_banks()] == ["b1"]
        assert [b.id for b in repo.list_banks()] == ["b1"]

    def test_cascade_delete_on_remote(self, remote_backend, remote):
        repo = ContentRepository(remote_backend)
        repo.save_bank(make_bank("b1", tests=[make_writing_test("w1")]))
        repo.delete_test("b1", "w1")
        assert remote.banks == {}
