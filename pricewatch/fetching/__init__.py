"""
Outbound clients: plain HTTP, headless render service, AI extraction.
"""

from .ai_client import AiExtractionClient
from .http_client import HttpClient, read_response_text, send_request
from .render_client import RenderClient

__all__ = [
    'AiExtractionClient',
    'HttpClient',
    'RenderClient',
    'read_response_text',
    'send_request',
]
