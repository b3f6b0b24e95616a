# ==============================================
# Tests for document sources
# ==============================================
#
# No live MongoDB or HTTP server: the pymongo client and the
# requests session are replaced with small fakes.
# ==============================================

import pytest
import requests

from docschema.sources import MongoSource, stream_documents
from docschema.sources import mongo_source


class FakeCursor:
    def __init__(self, documents):
        self._documents = list(documents)

    def sort(self, key, direction):
        self._documents.sort(key=lambda d: d[key])
        return self

    def skip(self, n):
        self._documents = self._documents[n:]
        return self

    def limit(self, n):
        self._documents = self._documents[:n]
        return self

    def __iter__(self):
        return iter(self._documents)


class FakeCollection:
    def __init__(self, documents):
        self.documents = documents

    def _matching(self, query):
        return [d for d in self.documents if all(d.get(k) == v for k, v in query.items())]

    def count_documents(self, query):
        return len(self._matching(query))

    def find(self, query):
        return FakeCursor(self._matching(query))


class FakeAdmin:
    def command(self, name):
        return {"ok": 1}


class FakeMongoClient:
    collections = {}

    def __init__(self, uri):
        self.uri = uri
        self.admin = FakeAdmin()
        self.closed = False

    def __getitem__(self, database):
        return self.collections

    def close(self):
        self.closed = True


@pytest.fixture
def fake_mongo(monkeypatch):
    documents = [{"_id": i, "kind": "even" if i % 2 == 0 else "odd"} for i in range(10)]
    FakeMongoClient.collections = {"artists": FakeCollection(documents)}
    monkeypatch.setattr(mongo_source, "PyMongoClient", FakeMongoClient)
    return documents


class TestMongoSource:

    def test_connect_builds_uri(self, fake_mongo):
        source = MongoSource("db.local", 27017, "music", user="u", password="p", verbose=False)
        source.connect()
        assert source.client.uri == "mongodb://u:p@db.local:27017/music"
        source.disconnect()
        assert source.client is None

    def test_iter_documents(self, fake_mongo):
        with MongoSource("localhost", 27017, "music", verbose=False) as source:
            documents = list(source.iter_documents("artists", limit=3))
            filtered = list(source.iter_documents("artists", query={"kind": "odd"}))

        assert len(documents) == 3
        assert [d["_id"] for d in filtered] == [1, 3, 5, 7, 9]

    def test_iter_shards_partitions_collection(self, fake_mongo):
        with MongoSource("localhost", 27017, "music", verbose=False) as source:
            shards = [list(shard) for shard in source.iter_shards("artists", 3)]

        assert [len(s) for s in shards] == [4, 4, 2]
        ids = [d["_id"] for shard in shards for d in shard]
        assert ids == list(range(10))

    def test_iter_shards_empty_collection(self, fake_mongo):
        FakeMongoClient.collections["empty"] = FakeCollection([])
        with MongoSource("localhost", 27017, "music", verbose=False) as source:
            assert source.iter_shards("empty", 4) == []

    def test_iter_shards_rejects_zero(self, fake_mongo):
        with MongoSource("localhost", 27017, "music", verbose=False) as source:
            with pytest.raises(ValueError):
                source.iter_shards("artists", 0)

    def test_requires_connection(self):
        source = MongoSource("localhost", 27017, "music", verbose=False)
        with pytest.raises(RuntimeError):
            list(source.iter_documents("artists"))

    def test_shards_feed_the_analyser(self, fake_mongo, analyser):
        with MongoSource("localhost", 27017, "music", verbose=False) as source:
            result = analyser.analyse_shards(source.iter_shards("artists", 3))

        assert result.schema.count == 10
        kind = result.schema.get_field("kind")
        assert kind.has_duplicates is True
        assert kind.types[0].unique == 2


class FakeResponse:
    def __init__(self, payload=None, error=None):
        self._payload = payload
        self._error = error

    def raise_for_status(self):
        if self._error:
            raise self._error

    def json(self):
        return self._payload


class FakeSession:
    def __init__(self, responses):
        self._responses = list(responses)
        self.calls = 0

    def get(self, url, timeout=None):
        self.calls += 1
        response = self._responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class TestHttpSource:

    def test_stops_after_max_documents(self):
        session = FakeSession([FakeResponse({"n": i}) for i in range(5)])
        documents = list(stream_documents("http://x", max_documents=3, session=session, verbose=False))
        assert documents == [{"n": 0}, {"n": 1}, {"n": 2}]
        assert session.calls == 3

    def test_skips_transient_errors(self):
        session = FakeSession([
            requests.ConnectionError("down"),
            FakeResponse(error=requests.HTTPError("500")),
            FakeResponse({"n": 1}),
        ])
        documents = list(stream_documents("http://x", max_documents=1, session=session, verbose=False))
        assert documents == [{"n": 1}]

    def test_gives_up_after_max_errors(self):
        session = FakeSession([requests.ConnectionError("down")] * 3)
        documents = list(stream_documents("http://x", max_errors=3, session=session, verbose=False))
        assert documents == []
        assert session.calls == 3
