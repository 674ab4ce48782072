import logging
from typing import Any, Dict, Optional, Sequence

import requests

from ..config import Config

logger = logging.getLogger(__name__)


class ClassificationFailure(Exception):
    """The vision call produced no usable answer; nothing should be cached for it."""
    pass


def build_color_prompt(vocabulary: Sequence[str]) -> str:
    choices = ', '.join(vocabulary)
    return (
        'Look at this NFT image. Focus on the central character or avatar - their color is the dominant color of the image.\n\n'
        'Assign color tags using these rules:\n'
        f'1. Identify the single dominant color of the central character/avatar and assign that tag. Choose from: {choices}.\n'
        '2. Only assign two tags if the image is very close to a 50/50 split between two colors (e.g. half blue half green) - this should be rare.\n'
        '3. Additionally assign "red" if there are any clearly red objects or an explicitly red background in the image, regardless of the dominant color.\n\n'
        f'Respond with only the color name(s) separated by commas (e.g. "blue" or "blue, red"), or "none" if none of the {len(vocabulary)} colors apply.'
    )


class OpenRouterClient:

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None,
                 vocabulary: Sequence[str] = Config.COLOR_VOCABULARY,
                 session: Optional[requests.Session] = None):
        self.api_key = api_key or Config.require_openrouter()
        self.model = model or Config.OPENROUTER_MODEL
        self.url = Config.OPENROUTER_URL
        self.timeout = Config.CLASSIFY_TIMEOUT_SECONDS
        self.prompt = build_color_prompt(vocabulary)
        self._session = session or requests.Session()

    def _post(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        try:
            resp = self._session.post(
                self.url,
                json=payload,
                timeout=self.timeout,
                headers={
                    'Authorization': f'Bearer {self.api_key}',
                    'HTTP-Referer': Config.OPENROUTER_REFERER,
                    'X-Title': Config.OPENROUTER_TITLE,
                },
            )
            resp.raise_for_status()
            return resp.json()
        except requests.exceptions.RequestException as e:
            raise ClassificationFailure(f'OpenRouter request failed: {e}') from e
        except ValueError as e:
            raise ClassificationFailure(f'OpenRouter returned a non-JSON body: {e}') from e

    def classify_image(self, image_url: str) -> str:
        """
        Ask the vision model which vocabulary colours apply to an image.

        Returns:
            The model's raw text reply

        Raises:
            ClassificationFailure: On transport errors, service errors or a reply without text
        """
        body = self._post({
            'model': self.model,
            'max_tokens': Config.CLASSIFY_MAX_TOKENS,
            'messages': [{
                'role': 'user',
                'content': [
                    {'type': 'image_url', 'image_url': {'url': image_url}},
                    {'type': 'text', 'text': self.prompt},
                ],
            }],
        })
        if not isinstance(body, dict):
            raise ClassificationFailure('OpenRouter reply is not an object')
        if body.get('error'):
            error = body['error']
            message = error.get('message') if isinstance(error, dict) else error
            raise ClassificationFailure(f'OpenRouter error: {message}')

        try:
            content = body['choices'][0]['message']['content']
        except (KeyError, IndexError, TypeError) as e:
            raise ClassificationFailure(f'OpenRouter reply has no message content: {e}') from e
        if not isinstance(content, str) or not content.strip():
            raise ClassificationFailure('OpenRouter reply content is empty')
        return content
