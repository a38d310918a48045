"""
Singapore travel assistant backed by an OpenRouter chat model.

Conversations live in process memory, keyed by (user_id, conversation_id).
The model may call one tool, get_nearby_pois, which is answered from the
POI table through GeoService.
"""
import json
import logging
import random
import string
import threading
import time
from typing import Dict, List, Optional

from django.conf import settings
from django.utils import timezone
from openai import OpenAI

from locations.services import GeoService, OneMapClient
from locations.tagging import build_openrouter_client

logger = logging.getLogger(__name__)


DEFAULT_CONVERSATION_ID = 'default'
HISTORY_LIMIT = 20

SYSTEM_PROMPT = """You are a knowledgeable and enthusiastic travel assistant specializing in Singapore!

Your role:
- Help users discover places, food, culture and experiences in Singapore
- Give specific recommendations with location details, what to expect and tips
- Be conversational and friendly
- Remember earlier messages in the conversation and refer to them naturally
- Ask follow-up questions to understand what the user is looking for

Tool usage:
- Call get_nearby_pois when the user gives coordinates, names an area or landmark
  (e.g. "Marina Bay", "Orchard Road", "Sentosa") or says "near me"
- The tool accepts either coordinates or a place name
- Answer general questions from your own knowledge

Formatting:
- Use ## for main sections
- Use **bold** for place names (no spaces inside the asterisks)
- Use - for bullet lists and keep paragraphs short
- Mention addresses or MRT stations when relevant"""

NEARBY_POIS_TOOL = {
    "type": "function",
    "function": {
        "name": "get_nearby_pois",
        "description": (
            "Get the top 5 points of interest near a location in Singapore. Use this when the user "
            "asks about places near coordinates, a place name, a neighbourhood, or 'near me'. "
            "Provide either coordinates or a place name."
        ),
        "parameters": {
            "type": "object",
            "properties": {
                "latitude": {
                    "type": "number",
                    "description": "Latitude of the location (optional if place_name is provided)",
                },
                "longitude": {
                    "type": "number",
                    "description": "Longitude of the location (optional if place_name is provided)",
                },
                "place_name": {
                    "type": "string",
                    "description": "Name of a place, building, area or landmark in Singapore",
                },
                "radius_km": {
                    "type": "number",
                    "description": "Search radius in kilometers (default 2, max 10)",
                    "minimum": 0.5,
                    "maximum": 10,
                },
            },
            "required": [],
        },
    },
}

NEED_LOCATION_REPLY = (
    "I need either coordinates or a place name to find places near you. Could you share your "
    "location, or name an area in Singapore like 'Marina Bay' or 'Orchard Road'?"
)
TOOL_FAILURE_REPLY = (
    "I had trouble looking up places in that area, but I can still help with general Singapore "
    "recommendations! What type of places are you looking for?"
)
EMPTY_REPLY = (
    "I'm sorry, I couldn't process that request. Could you try asking about specific places "
    "or experiences in Singapore?"
)

FALLBACK_PREFIX = "I'm having trouble with my connection right now, "
KEYWORD_FALLBACKS = [
    (("food", "eat", "hungry"),
     "but I can still recommend some great Singapore food! Try hawker centres like Maxwell Food Centre "
     "for chicken rice, or Newton Food Centre for satay and laksa!"),
    (("culture", "temple", "museum"),
     "but for culture, I'd suggest visiting Chinatown, Little India, or the National Museum of Singapore!"),
    (("nature", "park", "outdoor"),
     "but for nature, Gardens by the Bay and Singapore Botanic Gardens are must-visits!"),
    (("shopping", "mall"),
     "but for shopping, Orchard Road is Singapore's main shopping district!"),
]
GENERIC_FALLBACK = "could you try asking me again? I love helping with Singapore travel tips!"


def generate_session_id() -> str:
    suffix = ''.join(random.choices(string.ascii_lowercase + string.digits, k=9))
    return f"session_{int(time.time() * 1000)}_{suffix}"


def keyword_fallback(message: str) -> str:
    """Canned answer used when the model cannot be reached."""
    text = message.lower()
    for keywords, reply in KEYWORD_FALLBACKS:
        if any(keyword in text for keyword in keywords):
            return FALLBACK_PREFIX + reply
    return FALLBACK_PREFIX + GENERIC_FALLBACK


class ConversationStore:
    """
    Thread safe in-memory message history.
    Lost on restart and not shared between worker processes.
    """

    def __init__(self):
        self._conversations: Dict[str, Dict[str, List[Dict]]] = {}
        self._lock = threading.Lock()

    def get(self, user_id: str, conversation_id: str) -> List[Dict]:
        with self._lock:
            return list(self._conversations.get(user_id, {}).get(conversation_id, []))

    def save(self, user_id: str, conversation_id: str, messages: List[Dict]) -> None:
        with self._lock:
            self._conversations.setdefault(user_id, {})[conversation_id] = list(messages)

    def clear(self, user_id: str, conversation_id: Optional[str] = None) -> str:
        with self._lock:
            conversations = self._conversations.get(user_id)
            if conversations is None:
                return "No conversations found for user"
            if conversation_id:
                conversations.pop(conversation_id, None)
                return f"Conversation {conversation_id} cleared"
            del self._conversations[user_id]
            return "All conversations cleared for user"

    def summary(self, user_id: str) -> List[Dict]:
        with self._lock:
            conversations = self._conversations.get(user_id, {})
            return [
                {
                    'conversation_id': conversation_id,
                    'message_count': len(messages),
                    'last_message': messages[-1]['timestamp'] if messages else None,
                }
                for conversation_id, messages in conversations.items()
            ]

    def reset(self) -> None:
        with self._lock:
            self._conversations.clear()


conversation_store = ConversationStore()


class ChatbotService:
    """
    Runs one chat turn: history, model call, optional POI tool call, fallbacks.
    """

    TEMPERATURE = 0.8
    MAX_TOKENS = 500
    TOOL_FOLLOW_UP_MAX_TOKENS = 600

    def __init__(self, client: Optional[OpenAI] = None, model: str = None,
                 store: Optional[ConversationStore] = None, place_search: Optional[OneMapClient] = None):
        self.client = client or build_openrouter_client("SG Travel Assistant")
        self.model = model or settings.OPEN_ROUTER_MODEL
        self.store = store or conversation_store
        self.place_search = place_search

    def send_message(self, message: str, user_id: Optional[str] = None,
                     conversation_id: Optional[str] = None) -> Dict:
        """
        Sends a user message and returns the assistant reply.

        Returns:
            Dict with response, timestamp, conversation_id and user_id
        """
        user_id = user_id or generate_session_id()
        conversation_id = conversation_id or DEFAULT_CONVERSATION_ID

        try:
            history = self.store.get(user_id, conversation_id)[-HISTORY_LIMIT:]
            history.append({'role': 'user', 'content': message, 'timestamp': timezone.now()})
            logger.info(f"Chat turn for {user_id}/{conversation_id} with {len(history)} messages")

            messages = [{'role': 'system', 'content': SYSTEM_PROMPT}] + [
                {'role': item['role'], 'content': item['content']} for item in history
            ]
            completion = self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                tools=[NEARBY_POIS_TOOL],
                tool_choice="auto",
                max_tokens=self.MAX_TOKENS,
                temperature=self.TEMPERATURE,
            )
            choice = completion.choices[0].message
            response = choice.content or ""

            tool_calls = getattr(choice, 'tool_calls', None)
            if tool_calls:
                response = self._handle_tool_call(messages, tool_calls[0])

            if not response:
                response = EMPTY_REPLY

            history.append({'role': 'assistant', 'content': response, 'timestamp': timezone.now()})
            self.store.save(user_id, conversation_id, history)
        except Exception as e:
            logger.error(f"Chatbot error for {user_id}/{conversation_id}: {str(e)}")
            response = keyword_fallback(message)

        return {
            'response': response,
            'timestamp': timezone.now(),
            'conversation_id': conversation_id,
            'user_id': user_id,
        }

    def history(self, user_id: str, conversation_id: Optional[str] = None) -> Dict:
        if conversation_id:
            messages = self.store.get(user_id, conversation_id)
            return {
                'messages': messages,
                'message_count': len(messages),
                'conversation_id': conversation_id,
            }
        conversations = self.store.summary(user_id)
        return {
            'conversations': conversations,
            'total_conversations': len(conversations),
        }

    def clear(self, user_id: str, conversation_id: Optional[str] = None) -> Dict:
        return {'success': True, 'message': self.store.clear(user_id, conversation_id)}

    def _handle_tool_call(self, messages: List[Dict], tool_call) -> str:
        if getattr(tool_call, 'type', 'function') != 'function' or tool_call.function.name != 'get_nearby_pois':
            logger.warning(f"Ignoring unknown tool call {tool_call.function.name}")
            return ""

        logger.info(f"Model requested POI data: {tool_call.function.arguments}")
        try:
            args = json.loads(tool_call.function.arguments or "{}")
            latitude = args.get('latitude')
            longitude = args.get('longitude')
            place_name = args.get('place_name')
            radius_km = args.get('radius_km') or GeoService.DEFAULT_NEARBY_RADIUS_KM

            has_coordinates = isinstance(latitude, (int, float)) and isinstance(longitude, (int, float))
            has_place_name = isinstance(place_name, str) and bool(place_name.strip())
            if not has_coordinates and not has_place_name:
                return NEED_LOCATION_REPLY

            pois = GeoService.find_near_place(
                latitude=latitude if has_coordinates else None,
                longitude=longitude if has_coordinates else None,
                place_name=place_name if has_place_name else None,
                radius_km=radius_km,
                place_search=self.place_search,
            )

            tool_result = {
                'role': 'tool',
                'tool_call_id': tool_call.id,
                'content': json.dumps({
                    'location': {'latitude': latitude, 'longitude': longitude, 'radius_km': radius_km},
                    'pois': [
                        {
                            'name': poi['name'],
                            'description': poi['description'],
                            'tags': poi['tags'],
                            'distance': poi['distance'],
                        }
                        for poi in pois
                    ],
                    'count': len(pois),
                }),
            }
            assistant_call = {
                'role': 'assistant',
                'content': "",
                'tool_calls': [{
                    'id': tool_call.id,
                    'type': 'function',
                    'function': {
                        'name': tool_call.function.name,
                        'arguments': tool_call.function.arguments,
                    },
                }],
            }

            final = self.client.chat.completions.create(
                model=self.model,
                messages=messages + [assistant_call, tool_result],
                max_tokens=self.TOOL_FOLLOW_UP_MAX_TOKENS,
                temperature=self.TEMPERATURE,
            )
            logger.info(f"Tool call successful: found {len(pois)} POIs")
            return final.choices[0].message.content or (
                f"I found {len(pois)} places near your location! Here are some great options: "
                f"{', '.join(poi['name'] for poi in pois)}"
            )
        except Exception as e:
            logger.error(f"Tool call error: {str(e)}")
            return TOOL_FAILURE_REPLY
