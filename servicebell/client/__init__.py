"""Cliente Python do ServiceBell: chamadas HTTP e sincronização via socket."""
from servicebell.client.api_client import ApiError, ApiUnavailableError, ServiceBellClient, SessionInvalidError
from servicebell.client.sync_agent import ClientSyncAgent, SyncState

__all__ = ["ApiError", "ApiUnavailableError", "ClientSyncAgent", "ServiceBellClient", "SessionInvalidError", "SyncState"]
