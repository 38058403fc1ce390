from portal.db.models.broker import Broker
from portal.db.models.role import Role
from portal.db.models.account import Account
from portal.db.models.agent import Agent
from portal.db.models.invitation import Invitation
from portal.db.models.loan_request import LoanRequest
from portal.db.models.document import Document, DocumentVersion, DocumentComment

__all__ = [
    'Broker', 'Role', 'Account', 'Agent', 'Invitation', 'LoanRequest',
    'Document', 'DocumentVersion', 'DocumentComment',
]
