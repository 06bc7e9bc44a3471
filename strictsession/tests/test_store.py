"""Tests for :mod:`strictsession.store`."""

from unittest import TestCase, mock
import tempfile

import fakeredis
from redis.exceptions import ConnectionError, TimeoutError

from strictsession import savepath, store
from strictsession.exceptions import StoreUnavailable


class TestConnect(TestCase):
    """Connect to Redis with a parsed descriptor."""

    def test_tcp(self):
        """Host, port and timeout are passed, along with auth and db."""
        factory = mock.MagicMock()
        client = store.StoreClient(factory)
        config = savepath.parse(
            'tcp://redis-host:6380?timeout=2.5&auth=foo&database=3'
        )
        self.assertTrue(client.connect(config))
        factory.assert_called_once_with(decode_responses=True,
                                        host='redis-host', port=6380,
                                        socket_timeout=2.5, password='foo',
                                        db=3)
        self.assertEqual(factory.return_value.ping.call_count, 1)
        self.assertTrue(client.connected)

    def test_defaults_are_not_passed(self):
        """Default auth and database are left out; no timeout is None."""
        factory = mock.MagicMock()
        client = store.StoreClient(factory)
        self.assertTrue(client.connect(savepath.parse('redis-host')))
        factory.assert_called_once_with(decode_responses=True,
                                        host='redis-host', port=6379,
                                        socket_timeout=None)

    def test_unix_socket(self):
        """Only the socket path is passed when the host is a socket."""
        factory = mock.MagicMock()
        client = store.StoreClient(factory)
        with tempfile.NamedTemporaryFile() as sock:
            config = savepath.parse(f'{sock.name}?database=2')
            self.assertTrue(client.connect(config))
            factory.assert_called_once_with(decode_responses=True,
                                            unix_socket_path=sock.name,
                                            db=2)

    def test_connection_failed(self):
        """``False`` is returned when Redis does not answer."""
        factory = mock.MagicMock()
        factory.return_value.ping.side_effect = ConnectionError
        client = store.StoreClient(factory)
        self.assertFalse(client.connect(savepath.parse('redis-host')))
        self.assertFalse(client.connected)
        self.assertEqual(factory.return_value.close.call_count, 1)


class TestKeyOperations(TestCase):
    """Key operations are namespaced by the key prefix."""

    def setUp(self):
        """Connect to a fake Redis."""
        server = fakeredis.FakeServer()
        self.redis = fakeredis.FakeStrictRedis(server=server,
                                               decode_responses=True)
        self.client = store.StoreClient(store.fake_factory(server))
        self.client.connect(savepath.parse('redis-host?prefix=foo:'))

    def test_setex_and_get(self):
        """Values are stored under the prefixed key, with a TTL."""
        self.assertTrue(self.client.setex('abc', 100, 'data'))
        self.assertEqual(self.redis.get('foo:abc'), 'data')
        self.assertGreater(self.redis.ttl('foo:abc'), 0)
        self.assertEqual(self.client.get('abc'), 'data')
        self.assertIsNone(self.client.get('nope'))

    def test_set_if_absent(self):
        """Only the first conditional set succeeds."""
        self.assertTrue(self.client.set_if_absent('abc_lock', '', ttl=10))
        self.assertFalse(self.client.set_if_absent('abc_lock', '', ttl=10))
        self.assertGreater(self.redis.ttl('foo:abc_lock'), 0)

    def test_set_if_absent_without_ttl(self):
        """Without a TTL the key never expires."""
        self.assertTrue(self.client.set_if_absent('abc_lock', ''))
        self.assertEqual(self.redis.ttl('foo:abc_lock'), -1)

    def test_exists_expire_delete(self):
        """Existence, expiry and deletion all report success as bools."""
        self.assertFalse(self.client.exists('abc'))
        self.assertFalse(self.client.expire('abc', 10))
        self.assertFalse(self.client.delete('abc'))
        self.redis.set('foo:abc', 'data')
        self.assertTrue(self.client.exists('abc'))
        self.assertTrue(self.client.expire('abc', 10))
        self.assertTrue(self.client.delete('abc'))
        self.assertFalse(self.redis.exists('foo:abc'))

    def test_close(self):
        """Closing twice is harmless."""
        self.client.close()
        self.assertFalse(self.client.connected)
        self.client.close()


class TestConnectionLost(TestCase):
    """Connection errors are raised as :class:`.StoreUnavailable`."""

    def test_connection_error(self):
        """Redis goes away after we connected."""
        factory = mock.MagicMock()
        factory.return_value.setex.side_effect = ConnectionError
        factory.return_value.get.side_effect = TimeoutError
        client = store.StoreClient(factory)
        client.connect(savepath.parse('redis-host'))
        with self.assertRaises(StoreUnavailable):
            client.setex('abc', 10, 'data')
        with self.assertRaises(StoreUnavailable):
            client.get('abc')
