from datetime import datetime
from typing import List, Optional

from loguru import logger
from sqlalchemy import select
from sqlalchemy.orm import Session

from rental_store.models import Transaction


class TransactionRepository:
    def __init__(self, session: Session):
        self.session = session

    def get_by_id(self, transaction_id: str) -> Optional[Transaction]:
        return self.session.get(Transaction, transaction_id)

    def create_transaction(self, transaction: Transaction) -> None:
        self.session.add(transaction)
        self.session.flush()
        logger.info(
            f"Transaction {transaction.status}: rental={transaction.rental_id}, "
            f"amount={transaction.amount}, method={transaction.payment_method}"
        )

    def delete_transaction(self, transaction_id: str) -> bool:
        transaction = self.get_by_id(transaction_id)
        if not transaction:
            return False
        self.session.delete(transaction)
        self.session.flush()
        return True

    def list_for_rental(self, rental_id: str) -> List[Transaction]:
        return list(
            self.session.execute(
                select(Transaction).where(Transaction.rental_id == rental_id)
            )
            .scalars()
            .all()
        )

    def list_transactions(self, since: Optional[datetime] = None) -> List[Transaction]:
        query = select(Transaction)
        if since is not None:
            query = query.where(Transaction.created_at >= since)
        return list(
            self.session.execute(query.order_by(Transaction.created_at.desc()))
            .scalars()
            .all()
        )
