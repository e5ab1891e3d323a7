from infinet_ai.models.turn import ConversationTurnRecord

__all__ = ["ConversationTurnRecord"]
