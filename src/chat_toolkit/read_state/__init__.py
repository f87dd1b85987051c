from chat_toolkit.read_state.engine import BadgeBreakdown, ReadStateEngine

__all__ = ["BadgeBreakdown", "ReadStateEngine"]
