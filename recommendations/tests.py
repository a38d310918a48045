"""
Tests for the recommendations module.
"""
import math

from django.test import TestCase
from django.contrib.auth import get_user_model
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from locations.models import POI, POIImage, Tag
from recommendations.models import Review, ReviewImage, SurveyPreference
from recommendations.dtos import ContextDTO, PointDTO
from recommendations.scoring_service import ScoringService
from recommendations.survey_service import SurveyService

User = get_user_model()


class ScoringServiceTestCase(TestCase):
    """Test cases for ScoringService"""

    def setUp(self):
        """Set up test fixtures"""
        self.user = User.objects.create_user(username='testuser', password='testpass123')
        self.reviewers = [
            User.objects.create_user(username=f'reviewer{i}', password='pw') for i in range(4)
        ]
        self.museum = Tag.objects.create(name='Museum')
        self.food = Tag.objects.create(name='Food')

        # Three POIs around the Civic District, one far away
        self.gallery = POI.objects.create(name='National Gallery', latitude=1.2903, longitude=103.8515)
        self.gallery.tags.add(self.museum)
        self.hawker = POI.objects.create(name='Lau Pa Sat', latitude=1.2807, longitude=103.8504)
        self.hawker.tags.add(self.food)
        self.plain = POI.objects.create(name='Plain Spot', latitude=1.2850, longitude=103.8520)
        self.far = POI.objects.create(name='Changi', latitude=1.3644, longitude=103.9915)

        self.context = ContextDTO(user_location=PointDTO(latitude=1.2868, longitude=103.8545))
        self.scoring_service = ScoringService()

    def review(self, poi, liked_flags):
        for reviewer, liked in zip(self.reviewers, liked_flags):
            Review.objects.create(user=reviewer, poi=poi, liked=liked)

    def test_normalize_min_max(self):
        self.assertEqual(ScoringService.normalize_min_max({'a': 2, 'b': 4, 'c': 3}), {'a': 0.0, 'b': 1.0, 'c': 0.5})
        # Equal values collapse to zero
        self.assertEqual(ScoringService.normalize_min_max({'a': 3, 'b': 3}), {'a': 0.0, 'b': 0.0})

    def test_normalize_log_volume(self):
        scores = ScoringService.normalize_log_volume({'a': 0, 'b': 1, 'c': 3})
        self.assertEqual(scores['a'], 0.0)
        self.assertAlmostEqual(scores['b'], 0.5)
        self.assertEqual(scores['c'], 1.0)
        self.assertEqual(ScoringService.normalize_log_volume({'a': 0}), {'a': 0.0})

    def test_tag_preferences(self):
        SurveyPreference.objects.create(user=self.user, poi=self.gallery, liked=True)
        SurveyPreference.objects.create(user=self.user, poi=self.hawker, liked=False)

        self.assertEqual(
            self.scoring_service.get_tag_preferences(self.user),
            {self.museum.id: 1, self.food.id: -1},
        )

    def test_tag_preference_list_includes_unknown_tags(self):
        Tag.objects.create(name='Nature')
        SurveyPreference.objects.create(user=self.user, poi=self.gallery, liked=True)

        scores = {row['name']: row['liked_score'] for row in self.scoring_service.tag_preference_list(self.user)}
        self.assertEqual(scores, {'Museum': 1, 'Food': 0, 'Nature': 0})

    def test_generate_recommendations_weights(self):
        """Preference 0.5, review volume 0.3, like ratio 0.2"""
        SurveyPreference.objects.create(user=self.user, poi=self.gallery, liked=True)
        self.review(self.hawker, [True, True, True, False])
        self.review(self.plain, [True])

        results = self.scoring_service.generate_recommendations(self.user, self.context)
        by_id = {result.poi_id: result for result in results}

        self.assertNotIn(self.far.id, by_id)
        self.assertEqual(len(results), 3)

        gallery = by_id[self.gallery.id]
        self.assertEqual(gallery.preference_score, 1.0)
        self.assertEqual(gallery.review_volume_score, 0.0)
        self.assertAlmostEqual(gallery.final_score, 0.5)

        hawker = by_id[self.hawker.id]
        self.assertEqual(hawker.preference_score, 0.0)
        self.assertEqual(hawker.review_volume_score, 1.0)
        self.assertAlmostEqual(hawker.like_ratio_score, 0.75)
        self.assertAlmostEqual(hawker.final_score, 0.3 + 0.2 * 0.75)

        plain = by_id[self.plain.id]
        expected_volume = math.log2(2) / math.log2(5)
        self.assertAlmostEqual(plain.review_volume_score, expected_volume)
        self.assertAlmostEqual(plain.final_score, 0.3 * expected_volume + 0.2)

        self.assertEqual([r.poi_id for r in results], [self.gallery.id, self.hawker.id, self.plain.id])

    def test_generate_recommendations_limits_results(self):
        self.context.max_results = 2
        results = self.scoring_service.generate_recommendations(self.user, self.context)
        self.assertEqual(len(results), 2)

    def test_generate_recommendations_without_candidates(self):
        context = ContextDTO(user_location=PointDTO(latitude=-33.86, longitude=151.2))
        self.assertEqual(self.scoring_service.generate_recommendations(self.user, context), [])

    def test_popularity_scores_sorted(self):
        self.review(self.hawker, [True, False])
        self.review(self.plain, [True])

        results = self.scoring_service.popularity_scores(None, ContextDTO(user_location=None))

        self.assertEqual(len(results), 4)
        self.assertEqual(results[0].poi_id, self.hawker.id)
        self.assertAlmostEqual(results[0].final_score, 0.5 + 0.3 * 0.5)
        self.assertEqual(results[-1].final_score, 0.0)


class SurveyServiceTestCase(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(username='swiper', password='pw')
        self.service = SurveyService()
        self.museum = Tag.objects.create(name='Museum')
        self.nature = Tag.objects.create(name='Nature')

        self.liked = self.make_poi('Liked Museum', self.museum)
        self.similar = self.make_poi('Another Museum', self.museum)
        self.unrelated = self.make_poi('Park', self.nature)
        self.no_image = POI.objects.create(name='No Image Museum', latitude=1.3, longitude=103.8)
        self.no_image.tags.add(self.museum)

    def make_poi(self, name, tag):
        poi = POI.objects.create(name=name, latitude=1.3, longitude=103.8)
        poi.tags.add(tag)
        POIImage.objects.create(poi=poi, image_url=f'https://img/{name}.jpg')
        return poi

    def test_survey_pois_have_images(self):
        cards = self.service.random_survey_pois()
        self.assertEqual(len(cards), 3)
        for card in cards:
            self.assertIsNotNone(card['image_url'])
        self.assertNotIn(self.no_image.id, [card['id'] for card in cards])

    def test_record_preferences_overwrites(self):
        SurveyService.record_preferences(self.user, [{'poi_id': self.liked.id, 'liked': False}])
        SurveyService.record_preferences(self.user, [{'poi_id': self.liked.id, 'liked': True}])

        self.assertEqual(SurveyPreference.objects.count(), 1)
        self.assertTrue(SurveyPreference.objects.get().liked)

    def test_record_preferences_remove_old(self):
        SurveyService.record_preferences(self.user, [{'poi_id': self.liked.id, 'liked': True}])
        SurveyService.record_preferences(self.user, [], remove_old=True)
        self.assertEqual(SurveyPreference.objects.count(), 0)

    def test_suggest_without_likes_is_random(self):
        suggestions = self.service.suggest(self.user)
        self.assertEqual(len(suggestions), 3)

    def test_suggest_uses_liked_tags(self):
        SurveyService.record_preferences(self.user, [{'poi_id': self.liked.id, 'liked': True}])

        suggestions = self.service.suggest(self.user)

        self.assertEqual([s['id'] for s in suggestions], [self.similar.id])
        self.assertEqual(suggestions[0]['images'], ['https://img/Another Museum.jpg'])

    def test_recommend_by_tag_weights(self):
        results = self.service.recommend_by_tag_weights({'Nature': 1.0})
        self.assertEqual([r['id'] for r in results], [self.unrelated.id])
        self.assertEqual(results[0]['tags'], ['Nature'])
        self.assertEqual(self.service.recommend_by_tag_weights({}), [])


class ReviewAPITestCase(APITestCase):
    def setUp(self):
        self.author = User.objects.create_user(username='author', password='pw', first_name='Ann')
        self.other = User.objects.create_user(username='other', password='pw')
        self.poi = POI.objects.create(name='Merlion', latitude=1.2868, longitude=103.8545)
        self.list_url = reverse('recommendations:review-list')

    def create_review(self, **extra):
        return Review.objects.create(user=self.author, poi=self.poi, liked=True, comment='Iconic', **extra)

    def test_create_review_with_images(self):
        self.client.force_authenticate(user=self.author)
        data = {'poi': str(self.poi.id), 'liked': True, 'comment': 'Iconic', 'image_urls': ['https://img/1.jpg']}

        response = self.client.post(self.list_url, data, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['author_name'], 'Ann')
        self.assertEqual(response.data['images'], ['https://img/1.jpg'])

    def test_second_review_rejected(self):
        self.create_review()
        self.client.force_authenticate(user=self.author)
        response = self.client.post(self.list_url, {'poi': str(self.poi.id), 'liked': False}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_comment_length_limit(self):
        self.client.force_authenticate(user=self.author)
        data = {'poi': str(self.poi.id), 'liked': True, 'comment': 'x' * 256}
        response = self.client.post(self.list_url, data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_list_reviews_for_poi(self):
        self.create_review()
        response = self.client.get(self.list_url, {'poi_id': str(self.poi.id)})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['comment'], 'Iconic')

    def test_mine(self):
        url = reverse('recommendations:review-mine')
        self.client.force_authenticate(user=self.author)
        self.assertIsNone(self.client.get(url, {'poi_id': str(self.poi.id)}).data)

        self.create_review()
        response = self.client.get(url, {'poi_id': str(self.poi.id)})
        self.assertEqual(response.data['comment'], 'Iconic')

    def test_only_author_can_update_or_delete(self):
        review = self.create_review()
        url = reverse('recommendations:review-detail', kwargs={'pk': review.pk})

        self.client.force_authenticate(user=self.other)
        self.assertEqual(self.client.patch(url, {'liked': False}, format='json').status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(self.client.delete(url).status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(user=self.author)
        response = self.client.patch(url, {'liked': False}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['liked'])

    def test_delete_removes_images(self):
        review = self.create_review()
        ReviewImage.objects.create(review=review, image_url='https://img/1.jpg')
        url = reverse('recommendations:review-detail', kwargs={'pk': review.pk})

        self.client.force_authenticate(user=self.author)
        self.assertEqual(self.client.delete(url).status_code, status.HTTP_204_NO_CONTENT)
        self.assertEqual(ReviewImage.objects.count(), 0)

    def test_update_images(self):
        review = self.create_review()
        ReviewImage.objects.create(review=review, image_url='https://img/old.jpg')
        url = reverse('recommendations:review-images', kwargs={'pk': review.pk})

        self.client.force_authenticate(user=self.other)
        response = self.client.post(url, {'images': ['https://img/x.jpg']}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(user=self.author)
        data = {'images': ['https://img/new.jpg'], 'delete_images': ['https://img/old.jpg']}
        response = self.client.post(url, data, format='json')
        self.assertEqual(response.data['images'], ['https://img/new.jpg'])


class SurveyAPITestCase(APITestCase):
    def setUp(self):
        self.user = User.objects.create_user(username='swiper', password='pw')
        self.tag = Tag.objects.create(name='Museum')
        self.poi = POI.objects.create(name='ArtScience Museum', latitude=1.2863, longitude=103.8593)
        self.poi.tags.add(self.tag)
        POIImage.objects.create(poi=self.poi, image_url='https://img/asm.jpg')

    def test_survey(self):
        response = self.client.get(reverse('recommendations:survey_pois'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data[0]['image_url'], 'https://img/asm.jpg')
        self.assertEqual(response.data[0]['tags'], ['Museum'])

    def test_preferences_require_authentication(self):
        response = self.client.post(reverse('recommendations:indicate_preference'), {'preferences': []}, format='json')
        self.assertIn(response.status_code, [status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN])

    def test_indicate_preference_then_tag_scores(self):
        self.client.force_authenticate(user=self.user)
        data = {'preferences': [{'poi_id': str(self.poi.id), 'liked': True}], 'remove_old': True}

        response = self.client.post(reverse('recommendations:indicate_preference'), data, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        response = self.client.get(reverse('recommendations:tag_preferences'))
        self.assertEqual(response.data, [{'tag_id': self.tag.id, 'name': 'Museum', 'liked_score': 1}])

    def test_indicate_preference_unknown_poi(self):
        self.client.force_authenticate(user=self.user)
        data = {'preferences': [{'poi_id': '00000000-0000-0000-0000-000000000000', 'liked': True}]}
        response = self.client.post(reverse('recommendations:indicate_preference'), data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_anonymous_tag_scores_are_zero(self):
        response = self.client.get(reverse('recommendations:tag_preferences'))
        self.assertEqual(response.data[0]['liked_score'], 0)

    def test_suggest(self):
        response = self.client.get(reverse('recommendations:suggest'))
        self.assertEqual(response.data[0]['images'], ['https://img/asm.jpg'])

    def test_tag_weights(self):
        url = reverse('recommendations:tag_weights')
        self.assertEqual(self.client.post(url, {'tag_weights': 'Museum'}, format='json').status_code,
                         status.HTTP_400_BAD_REQUEST)
        response = self.client.post(url, {'tag_weights': {'Museum': 1}}, format='json')
        self.assertEqual(len(response.data), 1)

    def test_tag_weights_must_be_numbers(self):
        url = reverse('recommendations:tag_weights')
        for weights in ({'Museum': 'abc'}, {'Museum': None}, {'Museum': True}):
            response = self.client.post(url, {'tag_weights': weights}, format='json')
            self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(self.client.post(url, {}, format='json').status_code, status.HTTP_400_BAD_REQUEST)
        response = self.client.post(url, {'tag_weights': {'Museum': 0.5}}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_generate_requires_location(self):
        url = reverse('recommendations:generate_recommendations')
        self.assertEqual(self.client.post(url, {}, format='json').status_code, status.HTTP_400_BAD_REQUEST)
        response = self.client.post(url, {'context': {'radius_km': 5}}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_generate(self):
        url = reverse('recommendations:generate_recommendations')
        data = {'context': {'user_location': {'latitude': 1.2868, 'longitude': 103.8545}}}
        response = self.client.post(url, data, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['recommendations'][0]['poi_id'], str(self.poi.id))

    def test_popularity(self):
        response = self.client.post(reverse('recommendations:popularity'), {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['results']), 1)
