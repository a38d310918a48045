import json
import re
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

from django.test import TestCase
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from locations.models import POI, Tag
from locations.services import OneMapError
from .services import (
    ChatbotService,
    ConversationStore,
    EMPTY_REPLY,
    NEED_LOCATION_REPLY,
    TOOL_FAILURE_REPLY,
    conversation_store,
    generate_session_id,
    keyword_fallback,
)


def completion(content=None, tool_calls=None):
    message = SimpleNamespace(content=content, tool_calls=tool_calls)
    return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def tool_call(arguments):
    return SimpleNamespace(
        id='call_1',
        type='function',
        function=SimpleNamespace(name='get_nearby_pois', arguments=json.dumps(arguments)),
    )


class HelperTests(TestCase):
    def test_session_id_format(self):
        self.assertRegex(generate_session_id(), r'^session_\d+_[a-z0-9]{9}$')

    def test_keyword_fallbacks(self):
        self.assertIn('Maxwell Food Centre', keyword_fallback('Where should I EAT?'))
        self.assertIn('National Museum', keyword_fallback('any temple worth seeing'))
        self.assertIn('Botanic Gardens', keyword_fallback('a park for the kids'))
        self.assertIn('Orchard Road', keyword_fallback('best mall'))
        self.assertIn('try asking me again', keyword_fallback('hello'))


class ConversationStoreTests(TestCase):
    def setUp(self):
        self.store = ConversationStore()

    def test_save_and_summary(self):
        self.store.save('u1', 'default', [{'role': 'user', 'content': 'hi', 'timestamp': 't1'}])
        self.store.save('u1', 'trip', [])
        summary = {item['conversation_id']: item for item in self.store.summary('u1')}
        self.assertEqual(summary['default']['message_count'], 1)
        self.assertEqual(summary['default']['last_message'], 't1')
        self.assertIsNone(summary['trip']['last_message'])

    def test_clear_one_and_all(self):
        self.store.save('u1', 'a', [{'role': 'user', 'content': 'x', 'timestamp': 't'}])
        self.store.save('u1', 'b', [{'role': 'user', 'content': 'y', 'timestamp': 't'}])
        self.assertEqual(self.store.clear('u1', 'a'), 'Conversation a cleared')
        self.assertEqual(self.store.get('u1', 'a'), [])
        self.assertEqual(len(self.store.get('u1', 'b')), 1)
        self.assertEqual(self.store.clear('u1'), 'All conversations cleared for user')
        self.assertEqual(self.store.summary('u1'), [])
        self.assertEqual(self.store.clear('nobody'), 'No conversations found for user')


class ChatbotServiceTests(TestCase):
    def setUp(self):
        self.client = MagicMock()
        self.store = ConversationStore()
        self.service = ChatbotService(client=self.client, model='test-model', store=self.store)

        museum = Tag.objects.create(name='Museum')
        self.poi = POI.objects.create(
            name='National Museum', description='History', latitude=1.2966, longitude=103.8485
        )
        self.poi.tags.add(museum)

    def test_plain_reply_is_stored(self):
        self.client.chat.completions.create.return_value = completion('Try the hawker centres!')

        result = self.service.send_message('Food?', user_id='u1')

        self.assertEqual(result['response'], 'Try the hawker centres!')
        self.assertEqual(result['conversation_id'], 'default')
        self.assertEqual(result['user_id'], 'u1')
        history = self.store.get('u1', 'default')
        self.assertEqual([m['role'] for m in history], ['user', 'assistant'])

        kwargs = self.client.chat.completions.create.call_args.kwargs
        self.assertEqual(kwargs['model'], 'test-model')
        self.assertEqual(kwargs['temperature'], 0.8)
        self.assertEqual(kwargs['max_tokens'], 500)
        self.assertEqual(kwargs['messages'][0]['role'], 'system')
        self.assertEqual(kwargs['tools'][0]['function']['name'], 'get_nearby_pois')

    def test_missing_user_gets_session_id(self):
        self.client.chat.completions.create.return_value = completion('Hello!')
        result = self.service.send_message('Hi')
        self.assertTrue(re.match(r'^session_\d+_', result['user_id']))

    def test_history_trimmed_before_new_message(self):
        old = [{'role': 'user', 'content': f'm{i}', 'timestamp': i} for i in range(30)]
        self.store.save('u1', 'default', old)
        self.client.chat.completions.create.return_value = completion('ok')

        self.service.send_message('newest', user_id='u1')

        sent = self.client.chat.completions.create.call_args.kwargs['messages']
        # system + last 20 old messages + the new one
        self.assertEqual(len(sent), 22)
        self.assertEqual(sent[1]['content'], 'm10')
        self.assertEqual(sent[-1]['content'], 'newest')

    def test_empty_reply_becomes_polite_fallback(self):
        self.client.chat.completions.create.return_value = completion('')
        result = self.service.send_message('???', user_id='u1')
        self.assertEqual(result['response'], EMPTY_REPLY)

    def test_llm_failure_uses_keyword_fallback(self):
        self.client.chat.completions.create.side_effect = RuntimeError('connection reset')
        result = self.service.send_message('I am hungry', user_id='u1')
        self.assertIn('Maxwell Food Centre', result['response'])
        self.assertEqual(self.store.get('u1', 'default'), [])

    def test_tool_call_with_coordinates(self):
        self.client.chat.completions.create.side_effect = [
            completion(None, [tool_call({'latitude': 1.2966, 'longitude': 103.8485})]),
            completion('The **National Museum** is right there.'),
        ]

        result = self.service.send_message('What is near 1.2966, 103.8485?', user_id='u1')

        self.assertEqual(result['response'], 'The **National Museum** is right there.')
        second = self.client.chat.completions.create.call_args_list[1].kwargs
        self.assertEqual(second['max_tokens'], 600)
        tool_message = second['messages'][-1]
        self.assertEqual(tool_message['role'], 'tool')
        self.assertEqual(tool_message['tool_call_id'], 'call_1')
        payload = json.loads(tool_message['content'])
        self.assertEqual(payload['count'], 1)
        self.assertEqual(payload['pois'][0]['name'], 'National Museum')
        self.assertEqual(payload['pois'][0]['tags'], ['Museum'])

    def test_tool_call_empty_follow_up_lists_names(self):
        self.client.chat.completions.create.side_effect = [
            completion(None, [tool_call({'latitude': 1.2966, 'longitude': 103.8485})]),
            completion(None),
        ]
        result = self.service.send_message('near me', user_id='u1')
        self.assertIn('I found 1 places', result['response'])
        self.assertIn('National Museum', result['response'])

    def test_tool_call_without_location(self):
        self.client.chat.completions.create.return_value = completion(None, [tool_call({})])
        result = self.service.send_message('near me', user_id='u1')
        self.assertEqual(result['response'], NEED_LOCATION_REPLY)
        self.assertEqual(self.client.chat.completions.create.call_count, 1)

    def test_tool_call_with_place_name(self):
        place_search = MagicMock()
        place_search.search.return_value = {'latitude': 1.2966, 'longitude': 103.8485, 'address': 'Stamford'}
        service = ChatbotService(client=self.client, model='m', store=self.store, place_search=place_search)
        self.client.chat.completions.create.side_effect = [
            completion(None, [tool_call({'place_name': 'Stamford Road'})]),
            completion('Here you go'),
        ]

        result = service.send_message('What is near Stamford Road?', user_id='u1')

        place_search.search.assert_called_once_with('Stamford Road')
        self.assertEqual(result['response'], 'Here you go')

    def test_tool_failure_apologises(self):
        place_search = MagicMock()
        place_search.search.side_effect = OneMapError('not configured')
        service = ChatbotService(client=self.client, model='m', store=self.store, place_search=place_search)
        self.client.chat.completions.create.return_value = completion(
            None, [tool_call({'place_name': 'Sentosa'})]
        )

        result = service.send_message('Sentosa?', user_id='u1')
        self.assertEqual(result['response'], TOOL_FAILURE_REPLY)

    def test_history_views(self):
        self.store.save('u1', 'default', [{'role': 'user', 'content': 'hi', 'timestamp': 't'}])
        one = self.service.history('u1', 'default')
        self.assertEqual(one['message_count'], 1)
        summary = self.service.history('u1')
        self.assertEqual(summary['total_conversations'], 1)
        self.assertEqual(self.service.history('ghost')['conversations'], [])


@patch('chatbot.services.build_openrouter_client')
class ChatbotAPITests(APITestCase):
    def setUp(self):
        conversation_store.reset()

    def tearDown(self):
        conversation_store.reset()

    def test_send_message(self, build_client):
        build_client.return_value.chat.completions.create.return_value = completion('Welcome to Singapore!')
        url = reverse('chatbot:message')
        response = self.client.post(url, {'message': 'Hello', 'user_id': 'u1'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['response'], 'Welcome to Singapore!')
        self.assertEqual(response.data['conversation_id'], 'default')

        history = self.client.get(reverse('chatbot:history'), {'user_id': 'u1', 'conversation_id': 'default'})
        self.assertEqual(history.status_code, status.HTTP_200_OK)
        self.assertEqual(history.data['message_count'], 2)

    def test_send_message_requires_text(self, build_client):
        response = self.client.post(reverse('chatbot:message'), {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_history_requires_user_id(self, build_client):
        response = self.client.get(reverse('chatbot:history'))
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_clear(self, build_client):
        conversation_store.save('u1', 'default', [{'role': 'user', 'content': 'hi', 'timestamp': 't'}])
        response = self.client.post(reverse('chatbot:clear'), {'user_id': 'u1'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['success'])
        self.assertEqual(conversation_store.summary('u1'), [])
