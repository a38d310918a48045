from django.test import TestCase
from django.urls import reverse
from django.contrib.auth import get_user_model
from rest_framework import status
from rest_framework.test import APITestCase

from locations.models import POI
from recommendations.models import Review
from trips.models import Itinerary
from .models import UserProfile

User = get_user_model()

class UserProfileTests(TestCase):
    def setUp(self):
        # Profiles are created by the post_save signal
        self.user = User.objects.create_user(username='user1', password='password123', first_name='Ada')
        self.profile = self.user.profile
        self.poi1 = POI.objects.create(name='Merlion', latitude=1.2868, longitude=103.8545)
        self.poi2 = POI.objects.create(name='Gardens', latitude=1.2816, longitude=103.8636)

    def test_profile_created_on_signup(self):
        self.assertTrue(UserProfile.objects.filter(user=self.user).exists())
        self.assertEqual(str(self.profile),'user1')

    def test_display_name_falls_back_to_username(self):
        self.assertEqual(self.profile.display_name,'Ada')
        other = User.objects.create_user(username='nofirst', password='password123')
        self.assertEqual(other.profile.display_name,'nofirst')

    def test_activity_counts(self):
        """Visited counts distinct checked POIs across every itinerary."""
        trip1 = Itinerary.objects.create(user=self.user, name='Day 1')
        trip2 = Itinerary.objects.create(user=self.user, name='Day 2')
        trip1.add_poi(self.poi1)
        trip1.add_poi(self.poi2)
        trip2.add_poi(self.poi1)
        trip1.set_checked(self.poi1.id, True)
        trip2.set_checked(self.poi1.id, True)
        Review.objects.create(user=self.user, poi=self.poi1, liked=True)

        self.assertEqual(self.profile.itinerary_count(),2)
        self.assertEqual(self.profile.review_count(),1)
        self.assertEqual(self.profile.visited_count(),1)


class UserAPITests(APITestCase):
    def setUp(self):
        self.user = User.objects.create_user(username='apiuser', password='password123')
        self.other = User.objects.create_user(username='other', password='password123')
        self.client.force_authenticate(user=self.user)

    def test_get_me(self):
        url = reverse('user:me')
        response = self.client.get(url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['username'], 'apiuser')
        self.assertEqual(response.data['itinerary_count'], 0)
        self.assertEqual(response.data['visited_count'], 0)

    def test_patch_me_updates_bio(self):
        url = reverse('user:me')
        response = self.client.patch(url, {'bio': 'Coffee and museums', 'avatar_url': 'https://example.com/a.png'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.user.profile.refresh_from_db()
        self.assertEqual(self.user.profile.bio, 'Coffee and museums')

    def test_me_requires_auth(self):
        self.client.force_authenticate(user=None)
        response = self.client.get(reverse('user:me'))
        self.assertIn(response.status_code, [status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN])

    def test_get_other_profile(self):
        url = reverse('user:profile', args=[self.other.profile.id])
        response = self.client.get(url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['username'], 'other')

    def test_unknown_profile_404(self):
        url = reverse('user:profile', args=['00000000-0000-0000-0000-000000000000'])
        response = self.client.get(url)
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
