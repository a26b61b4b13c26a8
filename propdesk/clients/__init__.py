# Clients package
from propdesk.clients.api_client import ApiClient, ApiError, AuthenticationError
