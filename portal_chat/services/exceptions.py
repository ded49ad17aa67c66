class ChatError(Exception):
    """Базова помилка чату."""


class ChatSessionNotFound(ChatError):
    def __init__(self, session_id: str):
        super().__init__(f"Chat session {session_id} not found")
        self.session_id = session_id


class ChatSessionClosedError(ChatError):
    def __init__(self, session_id: str):
        super().__init__(f"Chat session {session_id} is closed")
        self.session_id = session_id


class EmptyMessageError(ChatError):
    def __init__(self):
        super().__init__("Message content is required")


class ChatCloseError(ChatError):
    """Системне повідомлення записано, але статус не оновився."""

    def __init__(self, session_id: str, reason: Exception):
        super().__init__(f"Failed to close chat session {session_id}: {reason}")
        self.session_id = session_id
        self.reason = reason
