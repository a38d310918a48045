from django.test import TestCase
from django.contrib.auth import get_user_model
from django.urls import reverse
from rest_framework.test import APITestCase
from rest_framework import status

from .models import Itinerary, ItineraryItem
from locations.models import POI
from recommendations.models import Review

User = get_user_model()


def make_pois(count):
    return [
        POI.objects.create(name=f"Stop {i}", latitude=1.3 + i * 0.001, longitude=103.8)
        for i in range(1, count + 1)
    ]


class ItineraryModelTest(TestCase):
    """Test cases for Itinerary model"""

    def setUp(self):
        """Set up test data"""
        self.user = User.objects.create_user(username='testuser', password='testpass')
        self.itinerary = Itinerary.objects.create(user=self.user, name='Weekend')
        self.pois = make_pois(4)

    def priorities(self):
        return list(
            self.itinerary.items.order_by('order_priority').values_list('poi__name', 'order_priority')
        )

    def test_add_poi_appends(self):
        """Stops are numbered from 1 in insertion order"""
        first = self.itinerary.add_poi(self.pois[0])
        second = self.itinerary.add_poi(self.pois[1])

        self.assertEqual(first.order_priority, 1)
        self.assertEqual(second.order_priority, 2)
        self.assertFalse(second.checked)

    def test_add_duplicate_poi(self):
        self.itinerary.add_poi(self.pois[0])
        with self.assertRaises(ValueError):
            self.itinerary.add_poi(self.pois[0])

    def test_remove_poi_closes_gap(self):
        for poi in self.pois:
            self.itinerary.add_poi(poi)

        self.assertTrue(self.itinerary.remove_poi(self.pois[1].id))

        self.assertEqual(self.priorities(), [('Stop 1', 1), ('Stop 3', 2), ('Stop 4', 3)])

    def test_remove_missing_poi(self):
        self.assertFalse(self.itinerary.remove_poi(self.pois[0].id))

    def test_add_after_remove_uses_max(self):
        for poi in self.pois[:3]:
            self.itinerary.add_poi(poi)
        self.itinerary.remove_poi(self.pois[2].id)

        item = self.itinerary.add_poi(self.pois[3])
        self.assertEqual(item.order_priority, 3)

    def test_reorder_swaps_without_collision(self):
        for poi in self.pois[:3]:
            self.itinerary.add_poi(poi)

        self.itinerary.reorder({
            self.pois[0].id: 3,
            self.pois[2].id: 1,
        })

        self.assertEqual(self.priorities(), [('Stop 3', 1), ('Stop 2', 2), ('Stop 1', 3)])

    def test_reorder_unknown_poi(self):
        self.itinerary.add_poi(self.pois[0])
        with self.assertRaises(ItineraryItem.DoesNotExist):
            self.itinerary.reorder({self.pois[1].id: 1})

    def test_delete_removes_items(self):
        self.itinerary.add_poi(self.pois[0])
        self.itinerary.delete()
        self.assertEqual(ItineraryItem.objects.count(), 0)


class ItineraryAPITest(APITestCase):
    """Test cases for Itinerary API endpoints"""

    def setUp(self):
        self.user = User.objects.create_user(username='owner', password='pw')
        self.other = User.objects.create_user(username='intruder', password='pw')
        self.itinerary = Itinerary.objects.create(user=self.user, name='Day trip')
        self.pois = make_pois(3)
        self.client.force_authenticate(user=self.user)

    def url(self, name, itinerary=None):
        return reverse(f'trips:itinerary-{name}', kwargs={'pk': (itinerary or self.itinerary).pk})

    def test_requires_authentication(self):
        self.client.force_authenticate(user=None)
        response = self.client.get(reverse('trips:itinerary-list'))
        self.assertIn(response.status_code, [status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN])

    def test_list_only_own_itineraries(self):
        Itinerary.objects.create(user=self.other, name='Not mine')
        response = self.client.get(reverse('trips:itinerary-list'))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data, [{'id': str(self.itinerary.id), 'name': 'Day trip'}])

    def test_create_itinerary(self):
        response = self.client.post(reverse('trips:itinerary-list'), {'name': 'Night safari'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(Itinerary.objects.get(name='Night safari').user, self.user)

    def test_create_requires_name(self):
        response = self.client.post(reverse('trips:itinerary-list'), {'name': '  '}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.post(reverse('trips:itinerary-list'), {'name': 'x' * 129}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_rename(self):
        response = self.client.patch(self.url('detail'), {'name': 'Renamed'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.itinerary.refresh_from_db()
        self.assertEqual(self.itinerary.name, 'Renamed')

    def test_other_users_itinerary_is_not_found(self):
        self.client.force_authenticate(user=self.other)
        self.assertEqual(self.client.get(self.url('detail')).status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(self.client.delete(self.url('detail')).status_code, status.HTTP_404_NOT_FOUND)
        response = self.client.post(self.url('add-poi'), {'poi_id': str(self.pois[0].id)}, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_add_poi_and_retrieve(self):
        for poi in self.pois[:2]:
            response = self.client.post(self.url('add-poi'), {'poi_id': str(poi.id)}, format='json')
            self.assertEqual(response.status_code, status.HTTP_201_CREATED)

        response = self.client.get(self.url('detail'))
        pois = response.data['pois']
        self.assertEqual([p['name'] for p in pois], ['Stop 1', 'Stop 2'])
        self.assertEqual([p['order_priority'] for p in pois], [1, 2])
        self.assertEqual(pois[0]['id'], str(self.pois[0].id))
        self.assertEqual(pois[0]['latitude'], self.pois[0].latitude)

    def test_add_duplicate_poi(self):
        self.itinerary.add_poi(self.pois[0])
        response = self.client.post(self.url('add-poi'), {'poi_id': str(self.pois[0].id)}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_add_unknown_poi(self):
        response = self.client.post(
            self.url('add-poi'), {'poi_id': '00000000-0000-0000-0000-000000000000'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_remove_poi(self):
        for poi in self.pois:
            self.itinerary.add_poi(poi)

        response = self.client.post(self.url('remove-poi'), {'poi_id': str(self.pois[0].id)}, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([p['order_priority'] for p in response.data['pois']], [1, 2])

    def test_remove_missing_poi(self):
        response = self.client.post(self.url('remove-poi'), {'poi_id': str(self.pois[0].id)}, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_reorder(self):
        for poi in self.pois:
            self.itinerary.add_poi(poi)

        data = {'pois': [
            {'id': str(self.pois[0].id), 'order_priority': 2},
            {'id': str(self.pois[1].id), 'order_priority': 1},
        ]}
        response = self.client.post(self.url('reorder'), data, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([p['name'] for p in response.data['pois']], ['Stop 2', 'Stop 1', 'Stop 3'])

    def test_reorder_collision(self):
        for poi in self.pois:
            self.itinerary.add_poi(poi)

        data = {'pois': [{'id': str(self.pois[0].id), 'order_priority': 3}]}
        response = self.client.post(self.url('reorder'), data, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(self.itinerary.items.get(poi=self.pois[0]).order_priority, 1)

    def test_check_poi_returns_review(self):
        self.itinerary.add_poi(self.pois[0])
        Review.objects.create(user=self.user, poi=self.pois[0], liked=True, comment='Lovely')

        data = {'poi_id': str(self.pois[0].id), 'checked': True}
        response = self.client.post(self.url('check-poi'), data, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['checked'])
        self.assertEqual(response.data['review']['comment'], 'Lovely')
        self.assertTrue(self.itinerary.items.get(poi=self.pois[0]).checked)

    def test_check_poi_without_review(self):
        self.itinerary.add_poi(self.pois[0])
        data = {'poi_id': str(self.pois[0].id), 'checked': True}
        response = self.client.post(self.url('check-poi'), data, format='json')
        self.assertIsNone(response.data['review'])
