from chain_equity_indexer.app.infrastructure.db.models.corporate_actions import CorporateActionsDB
from chain_equity_indexer.app.infrastructure.db.models.events import RawEventsDB
from chain_equity_indexer.app.infrastructure.db.models.meta import MetaDB
from chain_equity_indexer.app.infrastructure.db.models.shareholders import ShareholdersDB
from chain_equity_indexer.app.infrastructure.db.models.transactions import TransactionsDB

__all__ = [
    "CorporateActionsDB",
    "MetaDB",
    "RawEventsDB",
    "ShareholdersDB",
    "TransactionsDB",
]
