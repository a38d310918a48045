import json
import os
import tempfile
import time
from io import StringIO
from unittest.mock import MagicMock, patch

import requests
from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.core.management import call_command
from django.test import TestCase
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from trips.models import Itinerary, ItineraryItem
from .models import POI, POIImage, Tag
from .services import (
    GeoService,
    GeocodingError,
    MapboxGeocoder,
    OneMapClient,
    OneMapError,
    POIImportService,
    tags_with_counts,
)
from .tagging import TaggingService, parse_tag_list

User = get_user_model()


class POIModelTests(TestCase):
    def setUp(self):
        self.poi = POI.objects.create(
            name="Test Location",
            address="123 Test St",
            latitude=20.0,
            longitude=10.0,
        )

    def test_create_poi(self):
        """Test that a POI can be created successfully."""
        self.assertEqual(POI.objects.count(), 1)
        self.assertEqual(self.poi.name, "Test Location")
        self.assertEqual(self.poi.get_lat_lon(), (20.0, 10.0))

    def test_invalid_coordinates(self):
        """Test that invalid coordinates raise a ValueError during save."""
        poi = POI(name="Bad Location", latitude=100.0, longitude=200.0)
        with self.assertRaises(ValueError):
            poi.save()

    def test_distance_to(self):
        """Test distance calculation between points."""
        # 0.01 degrees of latitude is roughly 1.11km
        distance = self.poi.distance_to(20.01, 10.0)

        self.assertIsNotNone(distance)
        self.assertGreater(distance, 1000)
        self.assertLess(distance, 1200)

    def test_imported_image_uploader_name(self):
        image = POIImage.objects.create(poi=self.poi, image_url="https://img/1.jpg")
        self.assertEqual(image.uploader_name, "database")

        user = User.objects.create_user(username="alice", password="pw", first_name="Alice")
        image.uploader = user
        self.assertEqual(image.uploader_name, "Alice")

        user.first_name = ""
        self.assertEqual(image.uploader_name, "alice")


class GeoServiceTests(TestCase):
    def setUp(self):
        self.center_poi = POI.objects.create(name="Center", latitude=1.3, longitude=103.8)
        # ~1km east
        self.nearby_poi = POI.objects.create(name="Nearby", latitude=1.3, longitude=103.809)
        # ~100km away
        self.far_poi = POI.objects.create(name="Far", latitude=2.2, longitude=103.8)

    def test_haversine(self):
        self.assertAlmostEqual(GeoService.haversine_km(1.3, 103.8, 1.3, 103.8), 0.0)
        self.assertAlmostEqual(GeoService.haversine_km(0, 0, 1, 0), 111.19, places=1)

    def test_find_nearby(self):
        """Test finding POIs within a specific radius."""
        results = GeoService.find_nearby(1.3, 103.8, radius_km=2)
        names = [item['name'] for item in results]

        self.assertEqual(names, ["Center", "Nearby"])
        self.assertEqual(results[0]['distance'], 0.0)
        self.assertNotIn("Far", names)

    def test_find_nearby_respects_limit(self):
        results = GeoService.find_nearby(1.3, 103.8, radius_km=2, limit=1)
        self.assertEqual(len(results), 1)
        self.assertEqual(results[0]['name'], "Center")

    def test_clamp_radius(self):
        self.assertEqual(GeoService.clamp_radius(None), 2.0)
        self.assertEqual(GeoService.clamp_radius(0.1), 0.5)
        self.assertEqual(GeoService.clamp_radius(50), 10.0)
        self.assertEqual(GeoService.clamp_radius(3), 3.0)

    def test_find_in_viewport(self):
        results = GeoService.find_in_viewport(north=1.4, south=1.2, east=103.9, west=103.7)
        self.assertIn(self.center_poi, results)
        self.assertIn(self.nearby_poi, results)
        self.assertNotIn(self.far_poi, results)

    def test_find_near_place_uses_onemap(self):
        place_search = MagicMock()
        place_search.search.return_value = {'latitude': 1.3, 'longitude': 103.8, 'address': 'X'}

        results = GeoService.find_near_place(place_name="Orchard", place_search=place_search)

        place_search.search.assert_called_once_with("Orchard")
        self.assertEqual(len(results), 2)

    def test_find_near_place_without_input(self):
        self.assertEqual(GeoService.find_near_place(), [])


class SearchTests(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(username="traveller", password="pw")
        self.museum = Tag.objects.create(name="Museum")
        self.food = Tag.objects.create(name="Food")

        self.visited = POI.objects.create(name="Visited", latitude=1.30, longitude=103.80)
        self.visited.tags.add(self.museum)
        self.unvisited = POI.objects.create(name="Unvisited", latitude=1.31, longitude=103.81)
        self.unvisited.tags.add(self.museum, self.food)
        self.untagged = POI.objects.create(name="Untagged", latitude=1.32, longitude=103.82)

        itinerary = Itinerary.objects.create(user=self.user, name="Day 1")
        ItineraryItem.objects.create(itinerary=itinerary, poi=self.visited, order_priority=1, checked=True)
        ItineraryItem.objects.create(itinerary=itinerary, poi=self.unvisited, order_priority=2, checked=False)

    def test_both_flags_false_returns_nothing(self):
        results = GeoService.search(self.user, show_visited=False, show_unvisited=False)
        self.assertEqual(list(results), [])

    def test_no_filters_returns_everything(self):
        results = GeoService.search(self.user)
        self.assertEqual(results.count(), 3)

    def test_excluded_tags_keep_pois_with_other_tags(self):
        results = list(GeoService.search(self.user, excluded_tags=[self.museum.id]))
        self.assertEqual(results, [self.unvisited])

    def test_visited_only(self):
        results = list(GeoService.search(self.user, show_visited=True, show_unvisited=False))
        self.assertEqual(results, [self.visited])

    def test_unvisited_only(self):
        results = set(GeoService.search(self.user, show_visited=False, show_unvisited=True))
        self.assertEqual(results, {self.unvisited, self.untagged})

    def test_visited_filter_ignored_for_anonymous(self):
        results = GeoService.search(None, show_visited=True, show_unvisited=False)
        self.assertEqual(results.count(), 3)

    def test_recommend_from_box(self):
        # 1km box around the first POI only covers it
        results = list(GeoService.search(self.user, recommend_from=(1.30, 103.80), radius_km=1))
        self.assertEqual(results, [self.visited])


class MapboxGeocoderTests(TestCase):
    def setUp(self):
        cache.clear()
        self.geocoder = MapboxGeocoder(access_token="token")

    @patch('locations.services.requests.get')
    def test_reverse_returns_preferred_name_and_caches(self, mock_get):
        mock_get.return_value.json.return_value = {
            'features': [{'properties': {'name_preferred': 'Marina Bay'}}]
        }

        self.assertEqual(self.geocoder.reverse(1.283, 103.86), 'Marina Bay')
        self.assertEqual(self.geocoder.reverse(1.283, 103.86), 'Marina Bay')
        self.assertEqual(mock_get.call_count, 1)

    @patch('locations.services.requests.get')
    def test_reverse_without_features(self, mock_get):
        mock_get.return_value.json.return_value = {'features': []}
        self.assertEqual(self.geocoder.reverse(1.0, 103.0), MapboxGeocoder.UNKNOWN_LOCATION)

    @patch('locations.services.requests.get')
    def test_reverse_error(self, mock_get):
        mock_get.side_effect = requests.ConnectionError("down")
        with self.assertRaises(GeocodingError):
            self.geocoder.reverse(1.0, 103.0)


class OneMapClientTests(TestCase):
    def setUp(self):
        OneMapClient.reset_token()

    def tearDown(self):
        OneMapClient.reset_token()

    def test_search_requires_credentials(self):
        client = OneMapClient(email="", password="")
        client.email = client.password = ""
        with self.assertRaises(OneMapError):
            client.search("Orchard")

    @patch('locations.services.requests.get')
    @patch('locations.services.requests.post')
    def test_search_returns_first_hit(self, mock_post, mock_get):
        mock_post.return_value.ok = True
        mock_post.return_value.json.return_value = {
            'access_token': 'abc',
            'expiry_timestamp': '9999999999',
        }
        mock_get.return_value.json.return_value = {
            'found': 2,
            'results': [
                {'LATITUDE': '1.3048', 'LONGITUDE': '103.8318', 'ADDRESS': 'ORCHARD ROAD'},
                {'LATITUDE': '0', 'LONGITUDE': '0', 'ADDRESS': 'OTHER'},
            ],
        }

        client = OneMapClient(email="me@example.com", password="secret")
        result = client.search("Orchard")

        self.assertEqual(result, {'latitude': 1.3048, 'longitude': 103.8318, 'address': 'ORCHARD ROAD'})
        self.assertEqual(mock_get.call_args.kwargs['headers'], {'Authorization': 'abc'})

        # token is reused
        client.search("Orchard")
        self.assertEqual(mock_post.call_count, 1)

    @patch('locations.services.requests.get')
    @patch('locations.services.requests.post')
    def test_search_no_results(self, mock_post, mock_get):
        mock_post.return_value.ok = True
        mock_post.return_value.json.return_value = {'access_token': 'abc', 'expiry_timestamp': '9999999999'}
        mock_get.return_value.json.return_value = {'found': 0, 'results': []}

        client = OneMapClient(email="me@example.com", password="secret")
        self.assertIsNone(client.search("Nowhere"))

    @patch('locations.services.requests.get')
    @patch('locations.services.requests.post')
    def test_expired_token_is_refreshed(self, mock_post, mock_get):
        mock_post.return_value.ok = True
        mock_post.return_value.json.return_value = {'access_token': 'fresh', 'expiry_timestamp': '9999999999'}
        mock_get.return_value.json.return_value = {'found': 0, 'results': []}

        client = OneMapClient(email="me@example.com", password="secret")
        client.search("Orchard")
        self.assertEqual(mock_post.call_count, 1)

        OneMapClient._token_expiry = int(time.time()) - 60
        client.search("Orchard")

        self.assertEqual(mock_post.call_count, 2)
        self.assertEqual(mock_get.call_args.kwargs['headers'], {'Authorization': 'fresh'})

    @patch('locations.services.requests.post')
    def test_search_auth_failure_returns_none(self, mock_post):
        mock_post.return_value.ok = False
        mock_post.return_value.status_code = 401

        client = OneMapClient(email="me@example.com", password="wrong")
        self.assertIsNone(client.search("Orchard"))


class POIImportServiceTests(TestCase):
    ATTRACTION = {
        'type': 'Feature',
        'properties': {
            'Name': 'kml_1',
            'Description': (
                '<table><tr><th>PAGETITLE</th><td>Gardens by the Bay</td></tr>'
                '<tr><th>OVERVIEW</th><td>Futuristic gardens</td></tr>'
                '<tr><th>LATITUDE</th><td>1.2816</td></tr>'
                '<tr><th>LONGTITUDE</th><td>103.8636</td></tr>'
                '<tr><th>IMAGE_PATH</th><td>https://www.yoursingapore.com/gardens.jpg</td></tr>'
                '<tr><th>OPENING_HOURS</th><td>5am - 2am</td></tr></table>'
            ),
        },
        'geometry': {'type': 'Point', 'coordinates': [103.8636, 1.2816, 0]},
    }
    PARK = {
        'type': 'Feature',
        'properties': {'NAME': 'Bishan Park'},
        'geometry': {'type': 'Point', 'coordinates': [103.84, 1.36]},
    }

    def setUp(self):
        self.service = POIImportService()

    def test_parse_attraction(self):
        dto = self.service.parse_feature(self.ATTRACTION)

        self.assertEqual(dto.name, 'Gardens by the Bay')
        self.assertEqual(dto.description, 'Futuristic gardens')
        self.assertEqual((dto.lat, dto.lon), (1.2816, 103.8636))
        self.assertEqual(dto.opening_hours, '5am - 2am')
        self.assertEqual(dto.image_urls, ['https://www.visitsingapore.com/gardens.jpg'])

    def test_parse_park(self):
        dto = self.service.parse_feature(self.PARK)
        self.assertEqual(dto.name, 'Bishan Park')
        self.assertEqual((dto.lat, dto.lon), (1.36, 103.84))

    def test_park_with_description_table(self):
        feature = {
            'properties': {
                'NAME': 'Bishan Park',
                'Description': '<table><tr><th>NAME</th><td>Bishan Park</td></tr></table>',
            },
            'geometry': {'type': 'Point', 'coordinates': [103.84, 1.36]},
        }
        dto = self.service.parse_feature(feature)
        self.assertEqual(dto.name, 'Bishan Park')
        self.assertEqual((dto.lat, dto.lon), (1.36, 103.84))
        self.assertTrue(dto.external_id.startswith('park:'))

    def test_long_names_are_truncated(self):
        feature = {'properties': {'NAME': 'x' * 300}, 'geometry': {'coordinates': [103.8, 1.3]}}
        self.assertEqual(len(self.service.parse_feature(feature).name), 128)

    def test_import_is_idempotent(self):
        counts = self.service.import_features([self.ATTRACTION, self.PARK, {'properties': {}}])
        self.assertEqual(counts, {'created': 2, 'updated': 0, 'skipped': 1})

        counts = self.service.import_features([self.ATTRACTION])
        self.assertEqual(counts, {'created': 0, 'updated': 1, 'skipped': 0})
        self.assertEqual(POI.objects.count(), 2)
        self.assertEqual(POIImage.objects.count(), 1)

    def test_import_command(self):
        with tempfile.NamedTemporaryFile('w', suffix='.geojson', delete=False) as handle:
            json.dump({'type': 'FeatureCollection', 'features': [self.PARK]}, handle)
        self.addCleanup(os.remove, handle.name)

        out = StringIO()
        call_command('import_pois', handle.name, stdout=out)

        self.assertIn('1 created', out.getvalue())
        self.assertTrue(POI.objects.filter(name='Bishan Park').exists())


class TaggingTests(TestCase):
    def setUp(self):
        call_command('seed_tags', stdout=StringIO())
        self.poi = POI.objects.create(name="Buddha Tooth Relic Temple", latitude=1.28, longitude=103.84)

    def test_seed_tags_is_idempotent(self):
        call_command('seed_tags', stdout=StringIO())
        self.assertEqual(Tag.objects.count(), 20)

    def test_parse_tag_list(self):
        self.assertEqual(
            parse_tag_list("Temple, Culture, Culture, Spaceship, Heritage, History, Traditional, Art"),
            ["Temple", "Culture", "Heritage", "History", "Traditional"],
        )
        self.assertEqual(parse_tag_list(""), [])

    def test_suggest_and_apply(self):
        client = MagicMock()
        client.chat.completions.create.return_value.choices = [
            MagicMock(message=MagicMock(content=" Temple, Culture, temple-ish "))
        ]
        service = TaggingService(client=client, model="test-model")

        tags = service.suggest_tags(self.poi)
        self.assertEqual(tags, ["Temple", "Culture"])

        kwargs = client.chat.completions.create.call_args.kwargs
        self.assertEqual(kwargs['temperature'], 0.1)
        self.assertEqual(kwargs['max_tokens'], 100)

        service.apply_tags(self.poi, tags + ["Unknown"])
        self.assertEqual(sorted(self.poi.tags.values_list('name', flat=True)), ["Culture", "Temple"])

    def test_suggest_failure_returns_empty(self):
        client = MagicMock()
        client.chat.completions.create.side_effect = RuntimeError("rate limited")
        service = TaggingService(client=client, model="test-model")
        self.assertEqual(service.suggest_tags(self.poi), [])

    def test_import_poi_tags_command(self):
        with tempfile.NamedTemporaryFile('w', suffix='.csv', delete=False, newline='') as handle:
            handle.write("poi_id,poi_name,poi_description,suggested_tags\n")
            handle.write(f'{self.poi.id},Temple,desc,"temple, Culture, Bogus"\n')
            handle.write("00000000-0000-0000-0000-000000000000,Ghost,desc,Park\n")
        self.addCleanup(os.remove, handle.name)

        out, err = StringIO(), StringIO()
        call_command('import_poi_tags', handle.name, stdout=out, stderr=err)
        call_command('import_poi_tags', handle.name, stdout=StringIO(), stderr=StringIO())

        self.assertEqual(sorted(self.poi.tags.values_list('name', flat=True)), ["Culture", "Temple"])
        self.assertIn("Processed: 1 POIs", out.getvalue())
        self.assertIn("bogus", err.getvalue())

    def test_tags_with_counts(self):
        self.poi.tags.add(Tag.objects.get(name="Temple"))
        counts = {row['name']: row['count'] for row in tags_with_counts()}
        self.assertEqual(counts["Temple"], 1)
        self.assertEqual(counts["Park"], 0)


class POIAPITests(APITestCase):
    def setUp(self):
        self.user = User.objects.create_user(username="uploader", password="pw", first_name="Up")
        self.other = User.objects.create_user(username="other", password="pw")
        self.tag = Tag.objects.create(name="Nature")
        self.poi = POI.objects.create(name="Existing", latitude=1.3, longitude=103.8, uploader=self.user)
        POIImage.objects.create(poi=self.poi, image_url="https://img/seed.jpg")

        self.list_url = reverse('locations:poi-list')
        self.detail_url = reverse('locations:poi-detail', kwargs={'pk': self.poi.pk})

    def test_create_requires_authentication(self):
        response = self.client.post(self.list_url, {'name': 'X', 'latitude': 1.3, 'longitude': 103.8}, format='json')
        self.assertIn(response.status_code, [status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN])

    def test_create_poi_with_images_and_tags(self):
        self.client.force_authenticate(user=self.user)
        data = {
            'name': 'Botanic Gardens',
            'description': 'UNESCO site',
            'address': '1 Cluny Rd',
            'latitude': 1.3138,
            'longitude': 103.8159,
            'image_urls': ['https://img/a.jpg', 'https://img/b.jpg'],
            'tag_ids': [self.tag.id],
        }
        response = self.client.post(self.list_url, data, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        poi = POI.objects.get(name='Botanic Gardens')
        self.assertEqual(poi.uploader, self.user)
        self.assertEqual(poi.images.count(), 2)
        self.assertEqual(list(poi.tags.all()), [self.tag])

    def test_create_rejects_bad_coordinates(self):
        self.client.force_authenticate(user=self.user)
        response = self.client.post(self.list_url, {'name': 'X', 'latitude': 95, 'longitude': 103.8}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_retrieve(self):
        response = self.client.get(self.detail_url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['images'], ['https://img/seed.jpg'])

    def test_retrieve_unknown(self):
        url = reverse('locations:poi-detail', kwargs={'pk': '00000000-0000-0000-0000-000000000000'})
        self.assertEqual(self.client.get(url).status_code, status.HTTP_404_NOT_FOUND)

    def test_only_uploader_can_delete(self):
        self.client.force_authenticate(user=self.other)
        self.assertEqual(self.client.delete(self.detail_url).status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(user=self.user)
        self.assertEqual(self.client.delete(self.detail_url).status_code, status.HTTP_204_NO_CONTENT)

    def test_images_list_and_upload(self):
        url = reverse('locations:poi-images', kwargs={'pk': self.poi.pk})
        self.client.force_authenticate(user=self.other)
        response = self.client.post(url, {'image_urls': ['https://img/new.jpg']}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

        response = self.client.get(url)
        names = [row['uploader_name'] for row in response.data]
        self.assertEqual(names, ['database', 'other'])

    def test_images_upload_validation(self):
        url = reverse('locations:poi-images', kwargs={'pk': self.poi.pk})
        self.client.force_authenticate(user=self.user)
        response = self.client.post(url, {'image_urls': []}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_tags_action(self):
        self.poi.tags.add(self.tag)
        url = reverse('locations:poi-tags', kwargs={'pk': self.poi.pk})
        response = self.client.get(url)
        self.assertEqual(response.data, [{'tag_id': self.tag.id, 'name': 'Nature'}])

    def test_search_invalid_params(self):
        url = reverse('locations:poi-search')
        response = self.client.get(url, {'excluded_tags': 'a,b'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_search(self):
        url = reverse('locations:poi-search')
        response = self.client.get(url, {'latitude': 1.3, 'longitude': 103.8})
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(set(response.data['results'][0].keys()), {'id', 'latitude', 'longitude'})

    def test_nearby_requires_location(self):
        url = reverse('locations:poi-nearby')
        response = self.client.get(url)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_nearby(self):
        url = reverse('locations:poi-nearby')
        response = self.client.get(url, {'latitude': 1.3, 'longitude': 103.8})
        self.assertEqual(response.data['count'], 1)

    @patch('locations.views.GeoService.find_near_place', side_effect=OneMapError("not configured"))
    def test_nearby_place_without_onemap(self, _):
        url = reverse('locations:poi-nearby')
        response = self.client.get(url, {'place_name': 'Orchard'})
        self.assertEqual(response.status_code, status.HTTP_503_SERVICE_UNAVAILABLE)

    def test_distance(self):
        url = reverse('locations:poi-distance', kwargs={'pk': self.poi.pk})
        response = self.client.get(url, {'latitude': 1.31, 'longitude': 103.8})
        self.assertAlmostEqual(response.data['distance_km'], 1.11, places=1)

    def test_distance_rejects_non_finite_coordinates(self):
        url = reverse('locations:poi-distance', kwargs={'pk': self.poi.pk})
        for params in ({'latitude': 'nan', 'longitude': 103.8}, {'latitude': 1.3, 'longitude': 'inf'},
                       {'latitude': 95, 'longitude': 103.8}):
            response = self.client.get(url, params)
            self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
            self.assertEqual(response.data, {'error': 'Invalid coordinates'})

    @patch('locations.views.MapboxGeocoder.reverse', side_effect=GeocodingError("boom"))
    def test_address_upstream_failure(self, _):
        url = reverse('locations:poi-address')
        response = self.client.get(url, {'latitude': 1.3, 'longitude': 103.8})
        self.assertEqual(response.status_code, status.HTTP_502_BAD_GATEWAY)

    @patch('locations.views.MapboxGeocoder.reverse', return_value="Orchard")
    def test_address(self, _):
        url = reverse('locations:poi-address')
        response = self.client.get(url, {'latitude': 1.3, 'longitude': 103.8})
        self.assertEqual(response.data['place'], "Orchard")

    def test_tag_list_with_counts(self):
        self.poi.tags.add(self.tag)
        response = self.client.get(reverse('locations:tag-list'))
        self.assertEqual(response.data, [{'id': self.tag.id, 'name': 'Nature', 'count': 1}])
