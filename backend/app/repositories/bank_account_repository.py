"""BankAccount repository for data access."""

from uuid import UUID

from sqlalchemy.orm import Session

from app.models.bank_account import BankAccount
from app.schemas.bank_account import BankAccountCreate, BankAccountUpdate


class BankAccountRepository:
    """Repository for BankAccount model."""

    def __init__(self, db: Session):
        self.db = db

    def get_all(self, restaurant_id: UUID, include_inactive: bool = False) -> list[BankAccount]:
        query = self.db.query(BankAccount).filter(BankAccount.restaurant_id == restaurant_id)
        if not include_inactive:
            query = query.filter(BankAccount.is_active == True)  # noqa: E712
        return query.order_by(BankAccount.is_default.desc(), BankAccount.group_name.asc()).all()

    def get_by_id(self, account_id: UUID, restaurant_id: UUID) -> BankAccount | None:
        return (
            self.db.query(BankAccount)
            .filter(BankAccount.id == account_id, BankAccount.restaurant_id == restaurant_id)
            .first()
        )

    def get_by_group(self, restaurant_id: UUID, group_name: str) -> BankAccount | None:
        return (
            self.db.query(BankAccount)
            .filter(
                BankAccount.restaurant_id == restaurant_id,
                BankAccount.group_name == group_name,
            )
            .first()
        )

    def get_payout_destination(self, restaurant_id: UUID, group_name: str) -> BankAccount | None:
        """Active verified account for a group, else the restaurant's default."""
        usable = self.db.query(BankAccount).filter(
            BankAccount.restaurant_id == restaurant_id,
            BankAccount.is_active == True,  # noqa: E712
            BankAccount.is_verified == True,  # noqa: E712
        )
        account = usable.filter(BankAccount.group_name == group_name).first()
        if account is not None:
            return account
        return usable.filter(BankAccount.is_default == True).first()  # noqa: E712

    def _clear_default(self, restaurant_id: UUID, keep_id: UUID | None = None) -> None:
        query = self.db.query(BankAccount).filter(
            BankAccount.restaurant_id == restaurant_id,
            BankAccount.is_default == True,  # noqa: E712
        )
        if keep_id is not None:
            query = query.filter(BankAccount.id != keep_id)
        query.update({BankAccount.is_default: False}, synchronize_session=False)

    def create(self, restaurant_id: UUID, data: BankAccountCreate) -> BankAccount:
        if data.is_default:
            self._clear_default(restaurant_id)
        account = BankAccount(restaurant_id=restaurant_id, **data.model_dump())
        self.db.add(account)
        self.db.commit()
        self.db.refresh(account)
        return account

    def update(self, account: BankAccount, data: BankAccountUpdate) -> BankAccount:
        update_data = data.model_dump(exclude_unset=True)
        if update_data.get("is_default"):
            self._clear_default(account.restaurant_id, keep_id=account.id)  # type: ignore[arg-type]
        for key, value in update_data.items():
            setattr(account, key, value)
        self.db.commit()
        self.db.refresh(account)
        return account

    def deactivate(self, account: BankAccount) -> BankAccount:
        """Soft delete; past payouts may still reference the account."""
        account.is_active = False  # type: ignore[assignment]
        account.is_default = False  # type: ignore[assignment]
        self.db.commit()
        self.db.refresh(account)
        return account
