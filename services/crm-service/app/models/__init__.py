from app.models.user import Role, User
from app.models.client import Client
from app.models.support_line import SupportLine
from app.models.funnel import Funnel, FunnelStage
from app.models.ticket import Ticket, Comment, TransferHistory

__all__ = [
    "Role",
    "User",
    "Client",
    "SupportLine",
    "Funnel",
    "FunnelStage",
    "Ticket",
    "Comment",
    "TransferHistory",
]
