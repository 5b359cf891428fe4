"""
Sync client state machine tests.

Transports are stubbed; the replica is a real in-memory LocalReplica.
"""

import threading
from unittest import mock

import pytest

from stockroom.client.errors import TransientSyncError
from stockroom.client.replica import LocalReplica
from stockroom.client.scheduler import SyncClient, SyncState
from stockroom.client.transport import LocalTransport
from stockroom.services import stock_service, storage_service
from stockroom.services.changelog_service import SYSTEM_ACTOR_ID
from stockroom.services.sync_service import PullResult


USER_ID = "11111111-1111-4111-8111-111111111111"


def insert(key, **obj):
    return {"type": 1, "table": "storage", "key": key, "obj": {"id": key, **obj}}


@pytest.fixture
def replica():
    replica = LocalReplica()
    yield replica
    replica.close()


@pytest.fixture
def transport():
    transport = mock.Mock()
    transport.pull.return_value = PullResult(changes=[insert("a", name="A")], new_watermark=1)
    return transport


@pytest.fixture
def sync_client(transport, replica):
    client = SyncClient(transport, replica, interval_seconds=3600)
    states = []
    client.add_listener(states.append)
    client.states = states
    yield client
    client.disconnect()


class TestLifecycle:

    def test_connect_pulls_and_settles_connected(self, sync_client, transport, replica):
        assert sync_client.connect() is True

        transport.pull.assert_called_once_with(None)
        assert sync_client.states == [SyncState.CONNECTING, SyncState.SYNCING, SyncState.CONNECTED]
        assert replica.watermark == 1
        assert replica.get("storage", "a") == {"id": "a", "name": "A"}

    def test_sync_now_uses_watermark(self, sync_client, transport):
        sync_client.connect()
        transport.pull.return_value = PullResult(changes=[], new_watermark=1)

        assert sync_client.sync_now() is True
        transport.pull.assert_called_with(1)

    def test_sync_now_when_disconnected_connects(self, sync_client):
        assert sync_client.state == SyncState.DISCONNECTED
        sync_client.sync_now()
        assert sync_client.connected
        assert sync_client.state == SyncState.CONNECTED

    def test_disconnect_keeps_replica(self, sync_client, replica):
        sync_client.connect()
        sync_client.disconnect()
        assert sync_client.state == SyncState.DISCONNECTED
        assert replica.watermark == 1
        assert replica.count() == 1

    def test_reset_resyncs_from_scratch(self, sync_client, transport, replica):
        sync_client.connect()
        sync_client.reset()
        assert transport.pull.call_args_list == [mock.call(None), mock.call(None)]
        assert replica.watermark == 1
        assert sync_client.state == SyncState.CONNECTED

    def test_removed_listener_is_not_called(self, transport, replica):
        client = SyncClient(transport, replica, interval_seconds=3600)
        seen = []
        remove = client.add_listener(seen.append)
        remove()
        client.connect()
        client.disconnect()
        assert seen == []

    def test_local_changes_force_full_resync(self, sync_client, transport, replica):
        replica.apply_changes([insert("stale")], expected_watermark=None, new_watermark=40)
        replica.record_local_change("storage", "stale", 2, {"name": "offline edit"})

        assert sync_client.connect() is True

        transport.pull.assert_called_once_with(None)
        assert replica.get("storage", "stale") is None
        assert replica.pending_local_changes() == []


class TestFailures:

    def test_transient_error_keeps_watermark(self, sync_client, transport, replica):
        sync_client.connect()
        transport.pull.side_effect = TransientSyncError("timeout")

        assert sync_client.sync_now() is False
        assert sync_client.state == SyncState.ERROR_WILL_RETRY
        assert isinstance(sync_client.last_error, TransientSyncError)
        assert replica.watermark == 1

    def test_recovers_after_transient_error(self, sync_client, transport):
        sync_client.connect()
        transport.pull.side_effect = TransientSyncError("timeout")
        sync_client.sync_now()

        transport.pull.side_effect = None
        transport.pull.return_value = PullResult(changes=[], new_watermark=1)
        assert sync_client.sync_now() is True
        assert sync_client.state == SyncState.CONNECTED
        assert sync_client.last_error is None

    def test_server_behind_watermark_wipes_replica(self, sync_client, transport, replica):
        sync_client.connect()
        transport.pull.return_value = PullResult(changes=[], new_watermark=0)

        assert sync_client.sync_now() is False
        assert replica.watermark is None
        assert replica.count() == 0

        transport.pull.return_value = PullResult(changes=[insert("a", name="A")], new_watermark=1)
        assert sync_client.sync_now() is True
        transport.pull.assert_called_with(None)

    def test_drift_wipes_replica(self, sync_client, transport, replica):
        sync_client.connect()
        transport.pull.return_value = PullResult(
            changes=[{"type": 2, "table": "storage", "key": "ghost", "mods": {"name": "x"}}],
            new_watermark=2,
        )

        assert sync_client.sync_now() is False
        assert sync_client.state == SyncState.ERROR_WILL_RETRY
        assert replica.watermark is None

    def test_failed_connect_reports_retry(self, transport, replica):
        transport.pull.side_effect = TransientSyncError("down")
        client = SyncClient(transport, replica, interval_seconds=3600)
        assert client.connect() is False
        assert client.state == SyncState.ERROR_WILL_RETRY
        client.disconnect()
        assert client.state == SyncState.DISCONNECTED


class TestConcurrency:

    def test_overlapping_pull_is_skipped(self, sync_client, transport, replica):
        sync_client.connect()

        entered = threading.Event()
        release = threading.Event()

        def slow_pull(watermark):
            entered.set()
            release.wait(5)
            return PullResult(changes=[], new_watermark=1)

        transport.pull.side_effect = slow_pull
        worker = threading.Thread(target=sync_client.sync_now)
        worker.start()
        assert entered.wait(5)

        assert sync_client.sync_now() is None
        assert transport.pull.call_count == 2

        release.set()
        worker.join(5)
        assert sync_client.state == SyncState.CONNECTED

    def test_disconnect_lets_inflight_pull_apply(self, sync_client, transport, replica):
        sync_client.connect()

        entered = threading.Event()
        release = threading.Event()

        def slow_pull(watermark):
            entered.set()
            release.wait(5)
            return PullResult(changes=[insert("b", name="B")], new_watermark=2)

        transport.pull.side_effect = slow_pull
        worker = threading.Thread(target=sync_client.sync_now)
        worker.start()
        assert entered.wait(5)

        sync_client.disconnect()
        assert sync_client.state == SyncState.SYNCING

        release.set()
        worker.join(5)
        assert replica.watermark == 2
        assert replica.get("storage", "b") == {"id": "b", "name": "B"}
        assert sync_client.state == SyncState.DISCONNECTED

    def test_ticker_pulls_periodically(self, transport, replica):
        client = SyncClient(transport, replica, interval_seconds=0.05)
        pulled = threading.Event()
        transport.pull.return_value = PullResult(changes=[], new_watermark=1)
        replica.apply_changes([], expected_watermark=None, new_watermark=1)

        def pull(watermark):
            if transport.pull.call_count >= 2:
                pulled.set()
            return PullResult(changes=[], new_watermark=1)

        transport.pull.side_effect = pull
        client.connect()
        try:
            assert pulled.wait(5)
        finally:
            client.disconnect()
        assert client.state == SyncState.DISCONNECTED

    def test_reconnect_retires_ticker_stuck_in_pull(self, transport, replica):
        client = SyncClient(transport, replica, interval_seconds=0.05)
        replica.apply_changes([], expected_watermark=None, new_watermark=1)
        entered = threading.Event()
        release = threading.Event()

        def pull(watermark):
            if transport.pull.call_count == 2:
                entered.set()
                release.wait(5)
            return PullResult(changes=[], new_watermark=1)

        transport.pull.side_effect = pull
        client.connect()
        old_ticker = client._thread
        try:
            assert entered.wait(5)
            # The join inside disconnect times out while the pull blocks.
            client.disconnect()
            assert old_ticker.is_alive()

            client.connect()
            new_ticker = client._thread
            assert new_ticker is not old_ticker

            release.set()
            old_ticker.join(5)
            assert not old_ticker.is_alive()
            assert new_ticker.is_alive()
        finally:
            release.set()
            client.disconnect()


class TestAgainstServer:

    def test_replica_follows_server(self, app, db_session, replica):
        storage = storage_service.create_storage(USER_ID, name="S1")
        client = SyncClient(LocalTransport(app), replica, interval_seconds=3600)
        try:
            client.connect()
            assert replica.get("storage", storage.id)["name"] == "S1"

            storage_service.update_storage(USER_ID, storage.id, name="Main")
            client.sync_now()
            assert replica.get("storage", storage.id)["name"] == "Main"
            assert len(replica.rows("changelog")) == 2
        finally:
            client.disconnect()
