# test/test_api_contracts.py

import json
import random
import unittest
from io import BytesIO
from tempfile import TemporaryDirectory
from unittest.mock import MagicMock

from PIL import Image

from dishtile import create_app
from dishtile.config import Config
from dishtile.errors import NotFoundError
from dishtile.services.codec import BLURRED
from dishtile.services.container import Services
from dishtile.services.dishes import Dish
from dishtile.services.envelope import open_answer_envelope
from dishtile.services.store import LocalObjectStore


def make_photo(width=180, height=120):
    rng = random.Random(11)
    img = Image.new("RGB", (width, height))
    img.putdata([(rng.randint(0, 255), rng.randint(0, 255), rng.randint(0, 255)) for _ in range(width * height)])
    buf = BytesIO()
    img.save(buf, format="JPEG")
    return buf.getvalue()


class StubFetcher:
    def __init__(self, images):
        self.images = images

    def fetch(self, uri):
        if uri not in self.images:
            raise NotFoundError("image not accessible: %s" % uri)
        return self.images[uri]


class TestAPIContracts(unittest.TestCase):
    def setUp(self):
        self.temp_dir = TemporaryDirectory()
        self.dish = Dish(
            id=3,
            name="Pad Thai",
            country="Thailand",
            image_url="https://images.example.com/pad-thai.jpg",
            acceptable_guesses=["phad thai"],
            ingredients=["rice noodles", "tamarind"],
            release_date="2025-05-28",
            tags=["noodles"],
            region="Southeast Asia",
        )
        self.repository = MagicMock()
        self.repository.get_dish_by_id.return_value = self.dish
        self.repository.get_dish_for_date.return_value = self.dish
        self.fetcher = StubFetcher({self.dish.image_url: make_photo()})
        self.store = LocalObjectStore(self.temp_dir.name)

        config = Config()
        config.STORAGE_BACKEND = "local"
        services = Services.assemble(self.store, self.repository, self.fetcher)
        self.app = create_app(config, services)
        self.client = self.app.test_client()

    def tearDown(self):
        self.temp_dir.cleanup()

    # ---- /api/dish-tiles ----

    def test_tile_from_store(self):
        self.store.upload("tiles/3/blurred-4.jpg", b"stored-bytes", content_type="image/jpeg")
        response = self.client.get('/api/dish-tiles?dishId=3&tileIndex=4&fidelity=blurred')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data, b"stored-bytes")
        self.assertEqual(response.mimetype, 'image/jpeg')
        self.assertEqual(response.headers['Cache-Control'], 'public, max-age=2592000, immutable')
        self.assertEqual(response.headers['X-Tile-Source'], 'store')
        self.repository.get_dish_by_id.assert_not_called()

    def test_tile_generated_on_demand(self):
        response = self.client.get('/api/dish-tiles?dishId=3&tileIndex=0')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.headers['Cache-Control'], 'public, max-age=86400')
        self.assertEqual(response.headers['X-Tile-Source'], 'generated')
        with Image.open(BytesIO(response.data)) as tile:
            self.assertEqual(tile.format, 'JPEG')
            self.assertEqual(tile.size, (60, 60))

    def test_tile_not_modified(self):
        self.store.upload("tiles/3/regular-1.jpg", b"stored-bytes")
        first = self.client.get('/api/dish-tiles?dishId=3&tileIndex=1')
        etag = first.headers['ETag']
        second = self.client.get('/api/dish-tiles?dishId=3&tileIndex=1', headers={'If-None-Match': etag})
        self.assertEqual(second.status_code, 304)
        self.assertEqual(second.headers['ETag'], etag)

    def test_missing_parameters(self):
        for url in ('/api/dish-tiles', '/api/dish-tiles?dishId=3', '/api/dish-tiles?tileIndex=0'):
            response = self.client.get(url)
            self.assertEqual(response.status_code, 400)
            self.assertEqual(response.get_json()['error'], 'Missing dishId or tileIndex')

    def test_invalid_parameters(self):
        for query in ('dishId=3&tileIndex=6', 'dishId=3&tileIndex=-1', 'dishId=3&tileIndex=1.5',
                      'dishId=abc&tileIndex=0', 'dishId=3&tileIndex=0&fidelity=sharp'):
            response = self.client.get('/api/dish-tiles?' + query)
            self.assertEqual(response.status_code, 400, query)
            self.assertIn('error', response.get_json())

    def test_unknown_dish(self):
        self.repository.get_dish_by_id.side_effect = NotFoundError("dish not found: 99")
        response = self.client.get('/api/dish-tiles?dishId=99&tileIndex=0')
        self.assertEqual(response.status_code, 404)

    def test_dish_without_image(self):
        self.repository.get_dish_by_id.return_value = Dish(id=3, name="Pad Thai", country="Thailand")
        response = self.client.get('/api/dish-tiles?dishId=3&tileIndex=0&fidelity=%s' % BLURRED)
        self.assertEqual(response.status_code, 404)

    def test_undecodable_source(self):
        self.fetcher.images[self.dish.image_url] = b"not an image"
        response = self.client.get('/api/dish-tiles?dishId=3&tileIndex=0')
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.get_json()['error'], 'Could not process image')

    # ---- /api/dishes ----

    def test_todays_dish_is_obfuscated(self):
        response = self.client.get('/api/dishes')
        self.assertEqual(response.status_code, 200)
        self.assertNotIn(b'Pad Thai', response.data)
        self.assertNotIn(b'Thailand', response.data)
        data = json.loads(response.data)
        self.assertEqual(len(data), 1)
        self.assertEqual(data[0]['id'], 3)
        self.assertTrue(data[0]['_salt'].startswith('fft-'))
        self.assertEqual(open_answer_envelope(data[0]), self.dish)
        self.assertIn('s-maxage=', response.headers['Cache-Control'])
        self.assertIn('stale-while-revalidate=60', response.headers['Cache-Control'])
        self.assertTrue(response.headers['Expires'].endswith('00:00:00 GMT'))
        self.assertEqual(response.headers['Referrer-Policy'], 'no-referrer')

    def test_no_dish_today(self):
        self.repository.get_dish_for_date.side_effect = NotFoundError("no dish scheduled")
        response = self.client.get('/api/dishes')
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.get_json()['error'], 'No dish available for today')

    def test_dish_store_failure(self):
        self.repository.get_dish_for_date.side_effect = RuntimeError("db down")
        response = self.client.get('/api/dishes')
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.get_json()['error'], 'Failed to fetch dish data')

    # ---- misc ----

    def test_health_api(self):
        response = self.client.get('/api/health')
        self.assertEqual(response.status_code, 200)
        data = response.get_json()
        self.assertEqual(data['status'], 'ok')
        self.assertEqual(data['backend'], 'local')
        self.assertIn('metrics', data)
        self.assertIn('no-store', response.headers['Cache-Control'])

    def test_security_headers_and_json_404(self):
        response = self.client.get('/nope')
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.get_json()['error'], 'Not found')
        self.assertEqual(response.headers['X-Content-Type-Options'], 'nosniff')
        self.assertIn('Server-Timing', response.headers)


if __name__ == '__main__':
    unittest.main()
