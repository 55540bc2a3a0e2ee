from __future__ import annotations

import json
from datetime import date

import pytest

from stickerbot.infrastructure.channel_config_store import ChannelConfigStore
from stickerbot.infrastructure.usage_limit_store import DailyUsageStore


def test_channel_store_creates_missing_file(tmp_path) -> None:
    path = tmp_path / 'nested' / 'channels.json'
    store = ChannelConfigStore(path)

    assert json.loads(path.read_text()) == {}
    assert store.get(-100).whitelist == []


def test_channel_store_adds_and_persists_words(tmp_path) -> None:
    path = tmp_path / 'channels.json'
    store = ChannelConfigStore(path)

    assert store.add_words(-100, 'whitelist', ['cat', 'dog']) == ['cat', 'dog']
    assert store.add_words(-100, 'whitelist', ['dog', 'owl']) == ['owl']
    assert store.add_words(-100, 'whitelist', ['cat']) == []

    reloaded = ChannelConfigStore(path)
    assert reloaded.get(-100).whitelist == ['cat', 'dog', 'owl']
    assert reloaded.get('-100').blacklist == []


def test_channel_store_clear(tmp_path) -> None:
    store = ChannelConfigStore(tmp_path / 'channels.json')
    store.add_words(5, 'blacklist', ['spam'])
    store.clear(5, 'blacklist')
    assert store.get(5).blacklist == []


def test_channel_store_get_returns_copy(tmp_path) -> None:
    store = ChannelConfigStore(tmp_path / 'channels.json')
    store.add_words(5, 'whitelist', ['cat'])
    store.get(5).whitelist.append('dog')
    assert store.get(5).whitelist == ['cat']


def test_channel_store_rejects_unknown_list(tmp_path) -> None:
    store = ChannelConfigStore(tmp_path / 'channels.json')
    with pytest.raises(ValueError):
        store.add_words(5, 'greylist', ['x'])


def test_channel_store_tolerates_corrupt_file(tmp_path) -> None:
    path = tmp_path / 'channels.json'
    path.write_text('{not json')
    assert ChannelConfigStore(path).get(1).whitelist == []


def test_usage_store_enforces_daily_limit(tmp_path) -> None:
    store = DailyUsageStore(tmp_path / 'usage.json', today=lambda: date(2026, 10, 17))

    assert store.try_consume(1, limit=2)
    assert store.try_consume(1, limit=2)
    assert not store.try_consume(1, limit=2)
    assert store.try_consume(2, limit=2)
    assert store.used(1) == 2


def test_usage_store_rolls_over_at_day_change(tmp_path) -> None:
    current = {'day': date(2026, 10, 17)}
    path = tmp_path / 'usage.json'
    store = DailyUsageStore(path, today=lambda: current['day'])
    store.try_consume(1, limit=1)
    assert not store.try_consume(1, limit=1)

    current['day'] = date(2026, 10, 18)
    assert store.used(1) == 0
    assert store.try_consume(1, limit=1)


def test_usage_store_persists_counts(tmp_path) -> None:
    path = tmp_path / 'usage.json'
    today = lambda: date(2026, 10, 17)  # noqa: E731
    DailyUsageStore(path, today=today).try_consume('42', limit=0)

    assert DailyUsageStore(path, today=today).used(42) == 1


def test_usage_store_zero_limit_is_unlimited(tmp_path) -> None:
    store = DailyUsageStore(tmp_path / 'usage.json')
    assert all(store.try_consume(1, limit=0) for _ in range(20))


def test_usage_store_refund(tmp_path) -> None:
    path = tmp_path / 'usage.json'
    today = lambda: date(2026, 10, 17)  # noqa: E731
    store = DailyUsageStore(path, today=today)
    store.try_consume(1, limit=1)

    store.refund(1)
    assert store.used(1) == 0
    assert DailyUsageStore(path, today=today).used(1) == 0

    store.refund(1)
    assert store.used(1) == 0
    assert store.try_consume(1, limit=1)
