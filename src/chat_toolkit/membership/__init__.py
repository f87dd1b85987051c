from chat_toolkit.membership.manager import MemberInput, MembershipChange, MembershipManager, ReconcileReport

__all__ = ["MemberInput", "MembershipChange", "MembershipManager", "ReconcileReport"]
