"""
Tests for the nonce store — seeding, persistence, reset, and
durability handling when the file cannot be written.
"""

import threading

import pytest

from predictme.sequence import SequenceStore

SEED = 1_718_000_000_000


def _store(path) -> SequenceStore:
    return SequenceStore(path, clock=lambda: SEED)


class TestSeeding:
    def test_fresh_store_seeds_from_clock(self, tmp_path):
        store = _store(tmp_path / "nonce")
        assert store.current_or_init() == SEED

    def test_consecutive_advances_from_seed(self, tmp_path):
        store = _store(tmp_path / "nonce")
        assert store.advance() == SEED + 1
        assert store.advance() == SEED + 2

    def test_default_clock_is_epoch_millis(self, tmp_path):
        store = SequenceStore(tmp_path / "nonce")
        assert store.current_or_init() > 1_600_000_000_000

    def test_loads_existing_file(self, tmp_path):
        path = tmp_path / "nonce"
        path.write_text("42\n")
        store = _store(path)
        assert store.current_or_init() == 42
        assert store.advance() == 43

    @pytest.mark.parametrize("content", ["", "garbage", "0"])
    def test_unusable_file_reseeds(self, tmp_path, content):
        path = tmp_path / "nonce"
        path.write_text(content)
        assert _store(path).current_or_init() == SEED

    def test_current_does_not_write(self, tmp_path):
        path = tmp_path / "nonce"
        _store(path).current_or_init()
        assert not path.exists()


class TestPersistence:
    def test_advance_persists_plain_decimal(self, tmp_path):
        path = tmp_path / "nonce"
        _store(path).advance()
        assert path.read_text() == str(SEED + 1)

    def test_new_store_continues_after_restart(self, tmp_path):
        path = tmp_path / "nonce"
        first = _store(path)
        first.advance()
        first.advance()

        second = SequenceStore(path, clock=lambda: 1)
        assert second.advance() == SEED + 3

    def test_reset_then_advance(self, tmp_path):
        path = tmp_path / "nonce"
        store = _store(path)
        store.advance()
        store.reset(42)
        assert path.read_text() == "42"
        assert store.current_or_init() == 42
        assert store.advance() == 43

    def test_reset_rejects_negative(self, tmp_path):
        with pytest.raises(ValueError):
            _store(tmp_path / "nonce").reset(-1)

    def test_in_memory_value_wins_over_file(self, tmp_path):
        path = tmp_path / "nonce"
        store = _store(path)
        store.advance()
        path.write_text("5")
        assert store.advance() == SEED + 2


class TestDurability:
    def test_unwritable_path_keeps_memory_value(self, tmp_path):
        path = tmp_path / "missing-dir" / "nonce"
        store = _store(path)

        assert store.advance() == SEED + 1
        assert store.advance() == SEED + 2
        assert store.durable is False
        assert store.last_persist_error.error_code == "SEQUENCE_NOT_DURABLE"
        assert str(path) in str(store.last_persist_error)

    def test_durability_restored_after_good_write(self, tmp_path):
        path = tmp_path / "later" / "nonce"
        store = _store(path)
        store.advance()
        assert store.durable is False

        path.parent.mkdir()
        store.advance()
        assert store.durable is True
        assert path.read_text() == str(SEED + 2)


class TestConcurrency:
    def test_threads_never_share_a_value(self, tmp_path):
        store = _store(tmp_path / "nonce")
        issued: list[int] = []
        lock = threading.Lock()

        def worker():
            for _ in range(50):
                value = store.advance()
                with lock:
                    issued.append(value)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(issued) == 400
        assert len(set(issued)) == 400
        assert max(issued) == SEED + 400
