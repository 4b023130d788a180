"""Item and customer registry for PawnLedger.

This service handles loan origination and the descriptive records around it:
- Customer creation, update, listing and deletion
- Pledging items (originating a loan against a customer)
- Item detail updates, listing and administrative deletion
"""
from pawnledger.config import (
    CUSTOMER_RELATIONS,
    DEFAULT_PAGE_SIZE,
    ITEM_CATEGORIES,
    SORTABLE_COLUMNS,
)
from pawnledger.dates import format_datetime, parse_amount, parse_datetime
from pawnledger.exceptions import CustomerNotFoundError, InvalidInputError, ItemNotFoundError
from pawnledger.logging_setup import get_logger

log = get_logger(__name__)


def _require_text(value, field):
    if value is None or not str(value).strip():
        raise InvalidInputError(f"{field} is required", field, value)
    return str(value).strip()


def _contains(series, needle):
    return series.fillna("").str.lower().str.contains(needle.lower(), regex=False)


def _paginate(df, page, limit, sort_by, sort_order):
    if sort_by not in SORTABLE_COLUMNS:
        raise InvalidInputError(f"Cannot sort by {sort_by}", 'sort_by', sort_by)
    if sort_order not in ("asc", "desc"):
        raise InvalidInputError(f"Invalid sort order {sort_order}", 'sort_order', sort_order)
    if page < 1 or limit < 1:
        raise InvalidInputError("page and limit must be positive", 'page', page)

    df = df.sort_values(by=[sort_by, 'id'], ascending=sort_order == "asc")
    start = (page - 1) * limit
    return df.iloc[start:start + limit], len(df)


class ItemService:
    """Originates loans and manages customers and pledged items."""

    def __init__(self, db_manager):
        """Initialize ItemService.

        Args:
            db_manager: DatabaseManager instance for data persistence.
        """
        self.db = db_manager

    # Customers
    def _validate_customer(self, name, guardian_name, relation, address):
        name = _require_text(name, 'name')
        guardian_name = _require_text(guardian_name, 'guardian_name')
        address = _require_text(address, 'address')
        if relation not in CUSTOMER_RELATIONS:
            raise InvalidInputError(f"Invalid relation {relation!r}", 'relation', relation)
        return name, guardian_name, relation, address

    def create_customer(self, name, guardian_name, relation, address, aadhar_number="", mobile_number=""):
        """Register a customer.

        Returns:
            ID of the new customer.

        Raises:
            InvalidInputError: If a required field is missing or the relation is unknown.
        """
        name, guardian_name, relation, address = self._validate_customer(name, guardian_name, relation, address)
        customer_id = self.db.add_customer(
            name, guardian_name, relation, address, aadhar_number or "", mobile_number or "")
        log.info("Customer %s created", customer_id)
        return customer_id

    def update_customer(self, customer_id, name, guardian_name, relation, address,
                        aadhar_number="", mobile_number=""):
        self.get_customer(customer_id)
        name, guardian_name, relation, address = self._validate_customer(name, guardian_name, relation, address)
        self.db.update_customer(customer_id, name, guardian_name, relation, address,
                                aadhar_number or "", mobile_number or "")
        return self.get_customer(customer_id)

    def get_customer(self, customer_id):
        customer = self.db.get_customer(customer_id)
        if not customer:
            raise CustomerNotFoundError(customer_id)
        return customer

    def get_customers(self, name=None, guardian_name=None, address=None, page=1, limit=DEFAULT_PAGE_SIZE,
                      sort_by="created_at", sort_order="desc"):
        """List customers with case-insensitive substring filters and pagination.

        Returns:
            Dict with ``customers`` (list of dicts), ``page``, ``limit`` and ``total``.
        """
        df = self.db.get_customers()
        if name:
            df = df[_contains(df['name'], name)]
        if guardian_name:
            df = df[_contains(df['guardian_name'], guardian_name)]
        if address:
            df = df[_contains(df['address'], address)]

        page_df, total = _paginate(df, page, limit, sort_by, sort_order)
        return {
            'customers': page_df.to_dict('records'),
            'page': page,
            'limit': limit,
            'total': total,
        }

    def delete_customer(self, customer_id):
        """Delete a customer together with their items and payment history."""
        self.get_customer(customer_id)
        self.db.delete_customer(customer_id)
        log.info("Customer %s deleted", customer_id)

    # Items
    def create_item(self, customer_id, name, amount, percentage, category="gold", item_weight=None,
                    description=None, created_at=None):
        """Pledge an item, originating a loan of ``amount`` at ``percentage`` a month.

        Args:
            customer_id: Owner of the item.
            name: Item name.
            amount: Principal lent against the item.
            percentage: Monthly interest rate in percent.
            category: One of ITEM_CATEGORIES.
            item_weight: Optional weight description.
            description: Optional free text.
            created_at: Origination date, defaults to now. Interest accrues from it.

        Returns:
            ID of the new item.
        """
        self.get_customer(customer_id)
        name = _require_text(name, 'name')
        amount = parse_amount(amount, 'amount', allow_zero=False)
        percentage = parse_amount(percentage, 'percentage', allow_zero=False)
        if category not in ITEM_CATEGORIES:
            raise InvalidInputError(f"Invalid category {category!r}", 'category', category)
        created = format_datetime(parse_datetime(created_at, 'created_at')) if created_at is not None else None

        item_id = self.db.add_item(
            customer_id, name, amount, percentage, category, item_weight, description, created_at=created)
        log.info("Item %s pledged by customer %s: amount=%.2f rate=%.2f%%/month",
                 item_id, customer_id, amount, percentage)
        return item_id

    def get_item(self, item_id):
        item = self.db.get_item(item_id)
        if not item:
            raise ItemNotFoundError(item_id)
        return item

    def update_item(self, item_id, name=None, item_weight=None, category=None, description=None):
        """Update an item's descriptive fields. Loan terms cannot change."""
        item = self.get_item(item_id)
        name = _require_text(name, 'name') if name is not None else item['name']
        category = category if category is not None else item['category']
        if category not in ITEM_CATEGORIES:
            raise InvalidInputError(f"Invalid category {category!r}", 'category', category)
        self.db.update_item_details(
            item_id,
            name,
            item_weight if item_weight is not None else item['item_weight'],
            category,
            description if description is not None else item['description'],
        )
        return self.get_item(item_id)

    def get_items(self, customer_id=None, name=None, page=1, limit=DEFAULT_PAGE_SIZE,
                  sort_by="created_at", sort_order="desc"):
        """List items, optionally for one customer and filtered by name.

        Returns:
            Dict with ``data`` (list of dicts), ``page``, ``limit`` and ``total``.
        """
        if customer_id is not None:
            self.get_customer(customer_id)
        df = self.db.get_items(customer_id)
        if name:
            df = df[_contains(df['name'], name)]

        page_df, total = _paginate(df, page, limit, sort_by, sort_order)
        return {
            'data': page_df.to_dict('records'),
            'page': page,
            'limit': limit,
            'total': total,
        }

    def delete_item(self, item_id):
        """Administratively delete an item with its payments and interest history."""
        self.get_item(item_id)
        self.db.delete_item(item_id)
        log.info("Item %s deleted", item_id)
