from chat_toolkit.messaging.dispatcher import MessageDispatcher

__all__ = ["MessageDispatcher"]
