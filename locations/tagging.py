"""
LLM assisted POI tagging.

Asks an OpenRouter hosted model to pick tags for a POI out of the fixed
tag vocabulary and attaches the valid ones.
"""
import logging
from typing import Iterable, List, Optional

from django.conf import settings
from openai import OpenAI

from .models import POI, Tag

logger = logging.getLogger(__name__)


AVAILABLE_TAGS = [
    "Park", "History", "Culture", "Heritage", "Architecture",
    "Museum", "Temple", "Mosque", "Church", "Art", "Gallery",
    "Shopping", "Food", "Entertainment", "Nature", "Viewpoint",
    "Memorial", "Modern", "Traditional", "Waterfront",
]

MAX_TAGS_PER_POI = 5

TAGGING_PROMPT = """Given this Point of Interest in Singapore, suggest appropriate tags from the available list.

POI Name: {name}
Description: {description}

Available tags: {tags}

Instructions:
- Return only the tag names that best fit this POI
- Separate multiple tags with commas
- Use exact tag names from the available list
- Consider the POI's type, purpose, and characteristics
- Return a maximum of {max_tags} tags

Tags:"""


def build_openrouter_client(title: str) -> OpenAI:
    """OpenAI SDK client pointed at OpenRouter."""
    return OpenAI(
        base_url=settings.OPEN_ROUTER_BASE_URL,
        api_key=settings.OPEN_ROUTER_API_KEY or "missing-key",
        default_headers={
            "HTTP-Referer": "https://sg-travel-app.local",
            "X-Title": title,
        },
    )


def parse_tag_list(raw: str, vocabulary: Iterable[str] = AVAILABLE_TAGS) -> List[str]:
    """
    Splits a comma separated model answer and keeps exact vocabulary matches,
    in answer order, without duplicates.
    """
    allowed = set(vocabulary)
    tags = []
    for part in (raw or "").split(','):
        name = part.strip()
        if name in allowed and name not in tags:
            tags.append(name)
    return tags[:MAX_TAGS_PER_POI]


class TaggingService:
    """
    Suggests and applies tags for POIs.
    """

    def __init__(self, client: Optional[OpenAI] = None, model: str = None):
        self.client = client or build_openrouter_client("SG Travel POI Tagging")
        self.model = model or settings.POI_TAGGING_MODEL

    def suggest_tags(self, poi: POI) -> List[str]:
        """
        Asks the model for up to five vocabulary tags.
        Failures are logged and produce an empty list so a batch run can continue.
        """
        prompt = TAGGING_PROMPT.format(
            name=poi.name,
            description=poi.description,
            tags=', '.join(AVAILABLE_TAGS),
            max_tags=MAX_TAGS_PER_POI,
        )
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                max_tokens=100,
                temperature=0.1,
            )
            content = response.choices[0].message.content or ""
        except Exception as e:
            logger.error(f"Error tagging POI {poi.id} ({poi.name}): {str(e)}")
            return []

        return parse_tag_list(content.strip())

    @staticmethod
    def apply_tags(poi: POI, tag_names: Iterable[str]) -> List[Tag]:
        """
        Links existing tags (matched case-insensitively) to the POI.
        Unknown names are logged and skipped; existing links are left alone.
        """
        lookup = {tag.name.lower(): tag for tag in Tag.objects.all()}
        applied = []
        for name in tag_names:
            tag = lookup.get(name.strip().lower())
            if tag is None:
                logger.warning(f"Unknown tag: \"{name}\" for POI {poi.id}: {poi.name}")
                continue
            applied.append(tag)
        if applied:
            poi.tags.add(*applied)
        return applied
