# test/test_store.py

import os
import unittest
from tempfile import TemporaryDirectory
from unittest.mock import MagicMock, patch

import requests

from dishtile.errors import NotFoundError, StoreError
from dishtile.services.store import LocalObjectStore, SupabaseObjectStore


class TestLocalObjectStore(unittest.TestCase):
    def setUp(self):
        self.temp_dir = TemporaryDirectory()
        self.store = LocalObjectStore(self.temp_dir.name, public_base_url="https://cdn.example.com/dish-tiles/")

    def tearDown(self):
        self.temp_dir.cleanup()

    def test_upload_download_and_overwrite(self):
        self.store.upload("tiles/1/regular-0.jpg", b"first")
        self.store.upload("tiles/1/regular-0.jpg", b"second")
        self.assertEqual(self.store.download("tiles/1/regular-0.jpg"), b"second")
        self.assertEqual(self.store.list("tiles/1/"), ["tiles/1/regular-0.jpg"])

    def test_failed_replace_leaves_no_temp_file(self):
        self.store.upload("tiles/5/regular-0.jpg", b"first")
        with patch("dishtile.services.store.os.replace", side_effect=OSError("disk full")):
            with self.assertRaises(StoreError):
                self.store.upload("tiles/5/regular-1.jpg", b"second")
        self.assertEqual(self.store.list("tiles/5/"), ["tiles/5/regular-0.jpg"])
        self.assertEqual(os.listdir(os.path.join(self.temp_dir.name, "tiles", "5")), ["regular-0.jpg"])

    def test_upload_without_upsert_refuses_overwrite(self):
        self.store.upload("a/b", b"x")
        with self.assertRaises(StoreError):
            self.store.upload("a/b", b"y", upsert=False)

    def test_download_missing(self):
        with self.assertRaises(NotFoundError):
            self.store.download("tiles/9/regular-0.jpg")

    def test_prefix_does_not_match_sibling_dish(self):
        self.store.upload("tiles/1/regular-0.jpg", b"a")
        self.store.upload("tiles/10/regular-0.jpg", b"b")
        self.assertEqual(self.store.list("tiles/1/"), ["tiles/1/regular-0.jpg"])

    def test_list_pages_and_list_all(self):
        for i in range(7):
            self.store.upload("tiles/2/blurred-%d.jpg" % i, b"x")
        self.assertEqual(len(self.store.list("tiles/2/", limit=3, offset=0)), 3)
        self.assertEqual(len(self.store.list("tiles/2/", limit=3, offset=6)), 1)
        self.assertEqual(len(self.store.list_all("tiles/2/", page_size=3)), 7)

    def test_remove(self):
        self.store.upload("tiles/3/regular-0.jpg", b"x")
        self.assertEqual(self.store.remove(["tiles/3/regular-0.jpg", "tiles/3/missing.jpg"]), 1)
        self.assertEqual(self.store.list("tiles/3/"), [])

    def test_rejects_path_traversal(self):
        for key in ("../escape", "tiles/../../x", "", "tiles//x"):
            with self.assertRaises(StoreError):
                self.store.upload(key, b"x")

    def test_public_url(self):
        self.assertEqual(self.store.public_url("tiles/1/regular-0.jpg"),
                         "https://cdn.example.com/dish-tiles/tiles/1/regular-0.jpg")
        self.assertIsNone(LocalObjectStore(self.temp_dir.name).public_url("tiles/1/regular-0.jpg"))


class TestSupabaseObjectStore(unittest.TestCase):
    def setUp(self):
        self.session = MagicMock()
        self.store = SupabaseObjectStore("https://proj.supabase.co/", "service-key", "dish-tiles", session=self.session)

    def _response(self, status=200, content=b"", payload=None):
        resp = MagicMock()
        resp.status_code = status
        resp.content = content
        resp.text = content.decode("utf-8", "ignore")
        resp.json.return_value = payload
        if status >= 400:
            resp.raise_for_status.side_effect = requests.HTTPError("HTTP %d" % status)
        else:
            resp.raise_for_status.return_value = None
        return resp

    def test_upload_sends_upsert(self):
        self.session.post.return_value = self._response(200)
        self.store.upload("tiles/1/regular-0.jpg", b"jpeg", content_type="image/jpeg")
        args, kwargs = self.session.post.call_args
        self.assertEqual(args[0], "https://proj.supabase.co/storage/v1/object/dish-tiles/tiles/1/regular-0.jpg")
        self.assertEqual(kwargs["headers"]["x-upsert"], "true")
        self.assertEqual(kwargs["headers"]["Content-Type"], "image/jpeg")
        self.assertEqual(kwargs["headers"]["Authorization"], "Bearer service-key")
        self.assertEqual(kwargs["data"], b"jpeg")

    def test_upload_error(self):
        self.session.post.return_value = self._response(500, b"boom")
        with self.assertRaises(StoreError):
            self.store.upload("tiles/1/regular-0.jpg", b"jpeg")

    def test_download(self):
        self.session.get.return_value = self._response(200, b"bytes")
        self.assertEqual(self.store.download("tiles/1/blurred-2.jpg"), b"bytes")

    def test_download_missing_is_not_found(self):
        for status in (400, 404):
            self.session.get.return_value = self._response(status)
            with self.assertRaises(NotFoundError):
                self.store.download("tiles/1/blurred-2.jpg")

    def test_download_network_error_is_store_error(self):
        self.session.get.side_effect = requests.ConnectionError("down")
        with self.assertRaises(StoreError):
            self.store.download("tiles/1/blurred-2.jpg")

    def test_list_uses_explicit_window(self):
        self.session.post.return_value = self._response(200, payload=[
            {"name": "blurred-0.jpg", "id": "a"},
            {"name": "regular-0.jpg", "id": "b"},
            {"name": "nested", "id": None},
        ])
        keys = self.store.list("tiles/5/", limit=50, offset=100)
        self.assertEqual(keys, ["tiles/5/blurred-0.jpg", "tiles/5/regular-0.jpg"])
        args, kwargs = self.session.post.call_args
        self.assertEqual(args[0], "https://proj.supabase.co/storage/v1/object/list/dish-tiles")
        self.assertEqual(kwargs["json"]["prefix"], "tiles/5")
        self.assertEqual(kwargs["json"]["limit"], 50)
        self.assertEqual(kwargs["json"]["offset"], 100)

    def test_remove(self):
        self.session.delete.return_value = self._response(200, payload=[])
        self.assertEqual(self.store.remove(["tiles/5/a.jpg", "tiles/5/b.jpg"]), 2)
        self.assertEqual(self.session.delete.call_args[1]["json"], {"prefixes": ["tiles/5/a.jpg", "tiles/5/b.jpg"]})
        self.assertEqual(self.store.remove([]), 0)

    def test_public_url(self):
        self.assertEqual(self.store.public_url("tiles/1/regular-0.jpg"),
                         "https://proj.supabase.co/storage/v1/object/public/dish-tiles/tiles/1/regular-0.jpg")


if __name__ == '__main__':
    unittest.main()
