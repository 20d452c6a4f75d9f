import fnmatch

import redis


class FakeRedis:
    """In-memory stand-in for the handful of redis-py calls the service makes."""

    def __init__(self):
        self.data = {}
        self.sets = {}

    def ping(self):
        return True

    def get(self, key):
        return self.data.get(key)

    def set(self, key, value):
        self.data[key] = value
        return True

    def delete(self, *keys):
        deleted = 0
        for key in keys:
            if self.data.pop(key, None) is not None:
                deleted += 1
        return deleted

    def scan_iter(self, match=None):
        for key in list(self.data):
            if match is None or fnmatch.fnmatchcase(key, match):
                yield key

    def sadd(self, name, *values):
        members = self.sets.setdefault(name, set())
        before = len(members)
        members.update(values)
        return len(members) - before

    def smembers(self, name):
        return set(self.sets.get(name, set()))


class BrokenRedis:
    """Every call fails as if the Redis server were down."""

    def __getattr__(self, name):
        def fail(*args, **kwargs):
            raise redis.exceptions.ConnectionError("Error 111 connecting to localhost:6379. Connection refused.")
        return fail


class RecordingSleep:
    def __init__(self):
        self.calls = []

    def __call__(self, seconds):
        self.calls.append(seconds)
