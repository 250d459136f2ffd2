import time

import pytest

from csemark.config import load_config
from csemark.downloader import SimpleDownloader
from csemark.fetcher import build_sync_service


class FakeCollection:
    def __init__(self):
        self.docs = []
        self.queries = []
        self.updates = []
        self.dropped = 0
        self.bulk = []

    def find(self, query):
        self.queries.append(query)
        return list(self.docs)

    def update_one(self, flt, update, upsert=False):
        self.updates.append((flt, update, upsert))

    def drop(self):
        self.dropped += 1

    def bulk_write(self, requests, ordered=True):
        self.bulk.append((list(requests), ordered))
        return "ok"


class FakeDb:
    def __init__(self):
        self.collections = {}

    def __getitem__(self, name):
        return self.collections.setdefault(name, FakeCollection())


class FakeClient:
    timeout = 5.0

    def __init__(self):
        self.dbs = {}

    def database(self, name):
        return self.dbs.setdefault(name, FakeDb())


class FakeDownloader:
    def __init__(self, records=None, error=None):
        self.records = records
        self.error = error
        self.urls = []

    def download_csv(self, url):
        self.urls.append(url)
        if self.error is not None:
            raise self.error
        return self.records


@pytest.fixture
def config():
    return load_config({})


@pytest.fixture
def client(config):
    fake = FakeClient()
    courses = fake.database(config.db_settings)[config.db_settings_courses]
    courses.docs.append(
        {
            "_id": "CO1",
            "course": "CO1",
            "link": "http://localhost/co1.csv",
            "updated_at": int(time.time()),
        }
    )
    return fake


def test_sync_round_imports_active_course(config, client):
    downloader = FakeDownloader([["id", "x"], ["ID", "Score"], ["s1", "9"]])
    service = build_sync_service(config, client, downloader)
    service.fetching_interval = 0
    service.fetch_new_marks()

    assert downloader.urls == ["http://localhost/co1.csv"]
    marks = client.database(config.db_mark)["CO1"]
    assert marks.dropped == 1
    assert len(marks.bulk) == 1
    assert len(marks.bulk[0][0]) == 1
    assert marks.bulk[0][1] is False

    courses = client.database(config.db_settings)[config.db_settings_courses]
    assert courses.updates == [({"_id": "CO1"}, {"$set": {"record_cnt": 1}}, False)]


def test_sync_queries_only_recent_courses_with_links(config, client):
    service = build_sync_service(config, client, FakeDownloader(error=ConnectionError()))
    service.fetching_interval = 0
    before = time.time()
    service.fetch_new_marks()

    courses = client.database(config.db_settings)[config.db_settings_courses]
    conditions = courses.queries[0]["$and"]
    assert {"link": {"$ne": ""}} in conditions
    threshold = conditions[0]["updated_at"]["$gt"]
    expected = before - config.course_active_age.total_seconds()
    assert abs(threshold - expected) <= 2


def test_download_failure_leaves_marks_untouched(config, client):
    downloader = FakeDownloader(error=ConnectionError("down"))
    service = build_sync_service(config, client, downloader)
    service.fetching_interval = 0
    service.fetch_new_marks()
    assert downloader.urls == ["http://localhost/co1.csv"]
    assert client.database(config.db_mark)["CO1"].dropped == 0


def test_default_downloader_uses_config_timeout(config, client):
    service = build_sync_service(config, client)
    assert isinstance(service.downloader, SimpleDownloader)
    assert service.downloader.timeout == config.downloader_timeout.total_seconds()