import redis

from recruit_triage.services import dedup_cache
from recruit_triage.services.dedup_cache import (
    claim_message,
    get_redis_client,
    is_message_processed,
    release_message,
    reset_redis_client,
)


def test_claim_is_set_if_absent(fake_redis):
    assert not is_message_processed("m1")
    assert claim_message("m1", ttl_s=60) is True
    assert is_message_processed("m1")
    # second claim does not overwrite
    assert claim_message("m1") is False
    assert fake_redis.store["triage:processed:m1"] == ("1", 60)


def test_default_ttl_from_settings(fake_redis, monkeypatch):
    monkeypatch.setattr(dedup_cache.settings, "dedup_ttl_s", 123)
    claim_message("m2")
    assert fake_redis.store["triage:processed:m2"][1] == 123


def test_empty_id_is_never_stored(fake_redis):
    assert claim_message("") is True
    assert fake_redis.store == {}


def test_release_lets_the_next_run_retry(fake_redis):
    assert claim_message("m1") is True
    release_message("m1")
    assert not is_message_processed("m1")
    assert claim_message("m1") is True


def test_unreachable_redis_degrades_to_no_dedup(monkeypatch):
    attempts = []

    def broken_from_url(url, **kwargs):
        attempts.append(url)
        raise ConnectionError("refused")

    reset_redis_client(None)
    monkeypatch.setattr(redis, "from_url", broken_from_url)

    assert get_redis_client() is None
    assert is_message_processed("m1") is False
    assert claim_message("m1") is True
    assert claim_message("m1") is True
    release_message("m1")
    # the failed connection is remembered, not retried on every call
    assert len(attempts) == 1


def test_redis_errors_are_swallowed(fake_redis, monkeypatch):
    def boom(*args, **kwargs):
        raise TimeoutError("slow")

    monkeypatch.setattr(fake_redis, "exists", boom)
    monkeypatch.setattr(fake_redis, "set", boom)
    monkeypatch.setattr(fake_redis, "delete", boom)
    assert is_message_processed("m1") is False
    assert claim_message("m1") is True
    release_message("m1")
