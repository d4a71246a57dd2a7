"""Host performance metrics broadcast over WebSocket, long polling and plain polling."""
