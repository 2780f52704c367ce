"""
Expense Input Validation

DESIGN DECISION: Every user-supplied value is checked BEFORE the ledger
touches the budget or the store. A rejected operation leaves no trace
except an audit event.

Checks:
- Supplier name: trimmed, non-empty, letters and whitespace only
- Amount: finite and strictly positive (optionally capped)
- Details and currency: length/format
- Photo: size limit and decodable as an image (Pillow)

IMPORTANT: Validation NEVER silently fixes values beyond trimming
whitespace and normalizing number types. Everything else is reported.
"""

from decimal import Decimal, InvalidOperation
from io import BytesIO
from typing import Any, NamedTuple, Optional

from PIL import Image

from expense_ledger.config import LedgerSettings, get_settings
from expense_ledger.models.expense import ExpenseUpdate, ValidationIssue


SUPPLIER_NAME_MAX_LENGTH = 200
DETAILS_MAX_LENGTH = 500
ALLOWED_PHOTO_FORMATS = {"JPEG", "PNG", "WEBP"}


class ValidationError(Exception):
    """
    Malformed user input.

    `field` names the first invalid field; `issues` holds one entry per
    problem found.
    """

    def __init__(self, issues: list[ValidationIssue]):
        self.issues = issues
        self.field = issues[0].field if issues else None
        super().__init__("; ".join(issue.message for issue in issues))


class NewExpenseInput(NamedTuple):
    """Normalized values for a new expense."""
    details: str
    amount: Decimal
    supplier_name: str
    currency: str
    photo: Optional[bytes]


class ExpenseValidator:
    """
    Validates expense input at the ledger boundary.

    Collects every issue rather than stopping at the first, so the user
    sees all of them at once.
    """

    def __init__(self, settings: Optional[LedgerSettings] = None):
        self._settings = settings or get_settings().ledger

    # -------------------------------------------------------------------------
    # Field checks
    # -------------------------------------------------------------------------

    def _check_amount(
        self,
        value: Any,
        issues: list[ValidationIssue],
    ) -> Optional[Decimal]:
        if value is None or isinstance(value, bool):
            issues.append(ValidationIssue(
                field="amount",
                issue_type="missing" if value is None else "invalid_format",
                message="Amount is required",
                suggested_fix="Enter the amount as a number",
            ))
            return None

        try:
            if isinstance(value, float):
                amount = Decimal(str(value))
            else:
                amount = Decimal(str(value).strip()) if isinstance(value, str) else Decimal(value)
        except (InvalidOperation, TypeError, ValueError):
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_format",
                message=f"Amount is not a number: {value!r}",
                suggested_fix="Enter the amount as a number",
            ))
            return None

        if not amount.is_finite():
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message="Amount must be a finite number",
            ))
            return None

        if amount <= 0:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message="Amount must be greater than zero",
            ))
            return None

        limit = self._settings.max_expense_amount
        if limit is not None and amount > limit:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message=f"Amount {amount} exceeds the maximum of {limit}",
                suggested_fix="Check that the amount was typed correctly",
            ))
            return None

        return amount

    def _check_supplier_name(
        self,
        name: Optional[str],
        issues: list[ValidationIssue],
    ) -> Optional[str]:
        trimmed = (name or "").strip()
        if not trimmed:
            issues.append(ValidationIssue(
                field="supplier_name",
                issue_type="missing",
                message="Supplier name is required and cannot contain only whitespace",
            ))
            return None

        if not all(c.isalpha() or c.isspace() for c in trimmed):
            issues.append(ValidationIssue(
                field="supplier_name",
                issue_type="invalid_format",
                message="Supplier name may only contain letters and spaces",
                suggested_fix="Remove digits and symbols from the supplier name",
            ))
            return None

        if len(trimmed) > SUPPLIER_NAME_MAX_LENGTH:
            issues.append(ValidationIssue(
                field="supplier_name",
                issue_type="too_long",
                message=f"Supplier name is longer than {SUPPLIER_NAME_MAX_LENGTH} characters",
            ))
            return None

        return trimmed

    def _check_details(
        self,
        details: Optional[str],
        issues: list[ValidationIssue],
    ) -> str:
        cleaned = (details or "").strip()
        if len(cleaned) > DETAILS_MAX_LENGTH:
            issues.append(ValidationIssue(
                field="details",
                issue_type="too_long",
                message=f"Details are longer than {DETAILS_MAX_LENGTH} characters",
            ))
        return cleaned

    def _check_currency(
        self,
        currency: Optional[str],
        issues: list[ValidationIssue],
    ) -> str:
        code = (currency or self._settings.default_currency).strip().upper()
        if len(code) != 3 or not code.isalpha():
            issues.append(ValidationIssue(
                field="currency",
                issue_type="invalid_format",
                message=f"Currency must be a 3-letter code, got {currency!r}",
            ))
        return code

    def _check_photo(
        self,
        photo: Optional[bytes],
        issues: list[ValidationIssue],
    ) -> Optional[bytes]:
        if photo is None:
            return None

        if len(photo) > self._settings.max_photo_size_bytes:
            issues.append(ValidationIssue(
                field="photo",
                issue_type="too_large",
                message=(
                    f"Photo is {len(photo) // 1024} KB, "
                    f"the limit is {self._settings.max_photo_size_kb} KB"
                ),
                suggested_fix="Use a smaller or more compressed photo",
            ))
            return None

        try:
            with Image.open(BytesIO(photo)) as img:
                img.verify()
                photo_format = img.format
        except Exception:
            issues.append(ValidationIssue(
                field="photo",
                issue_type="invalid_format",
                message="Photo could not be read as an image",
            ))
            return None

        if photo_format not in ALLOWED_PHOTO_FORMATS:
            issues.append(ValidationIssue(
                field="photo",
                issue_type="invalid_format",
                message=f"Unsupported photo format: {photo_format}",
                suggested_fix="Use a JPEG, PNG or WEBP photo",
            ))
            return None

        return photo

    # -------------------------------------------------------------------------
    # Entry points
    # -------------------------------------------------------------------------

    def validate_new_expense(
        self,
        *,
        details: Optional[str],
        amount: Any,
        supplier_name: Optional[str],
        currency: Optional[str] = None,
        photo: Optional[bytes] = None,
    ) -> NewExpenseInput:
        """
        Validate the logging form.

        Raises:
            ValidationError: If any field is invalid
        """
        issues: list[ValidationIssue] = []

        clean_supplier = self._check_supplier_name(supplier_name, issues)
        clean_amount = self._check_amount(amount, issues)
        clean_details = self._check_details(details, issues)
        clean_currency = self._check_currency(currency, issues)
        clean_photo = self._check_photo(photo, issues)

        if issues:
            raise ValidationError(issues)

        return NewExpenseInput(
            details=clean_details,
            amount=clean_amount,
            supplier_name=clean_supplier,
            currency=clean_currency,
            photo=clean_photo,
        )

    def validate_update(self, update: ExpenseUpdate) -> dict[str, Any]:
        """
        Validate an edit and return only the fields being changed,
        normalized. `supplier_name` stays a name; the ledger resolves it.

        Raises:
            ValidationError: If any provided field is invalid
        """
        issues: list[ValidationIssue] = []
        changes: dict[str, Any] = {}

        if update.amount is not None:
            changes["amount"] = self._check_amount(update.amount, issues)
        if update.supplier_name is not None:
            changes["supplier_name"] = self._check_supplier_name(update.supplier_name, issues)
        if update.details is not None:
            changes["details"] = self._check_details(update.details, issues)
        if update.currency is not None:
            changes["currency"] = self._check_currency(update.currency, issues)
        if update.date is not None:
            changes["date"] = update.date
        if update.category is not None:
            changes["category"] = update.category

        if update.remove_photo:
            if update.photo is not None:
                issues.append(ValidationIssue(
                    field="photo",
                    issue_type="conflict",
                    message="Cannot replace and remove the photo in the same edit",
                ))
            changes["photo"] = None
        elif update.photo is not None:
            changes["photo"] = self._check_photo(update.photo, issues)

        if issues:
            raise ValidationError(issues)

        return changes

    def validate_supplier_name(self, name: Optional[str]) -> str:
        """
        Raises:
            ValidationError: If the name is empty or malformed
        """
        issues: list[ValidationIssue] = []
        clean = self._check_supplier_name(name, issues)
        if issues:
            raise ValidationError(issues)
        return clean

    def get_user_friendly_summary(self, error: ValidationError) -> str:
        """
        Generate a user-friendly summary of a validation failure.

        This is what the presentation layer shows inline.
        """
        lines = ["Please fix the following:"]
        for issue in error.issues:
            lines.append(f"   • {issue.message}")
            if issue.suggested_fix:
                lines.append(f"     {issue.suggested_fix}")
        return "\n".join(lines)
