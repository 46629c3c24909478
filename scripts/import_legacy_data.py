"""
Import script: load the legacy JSON collections into an organization.

What it reads (from --data-dir):
- customers.json         {"customers": [...]}
- invoices.json          {"invoices": [...]}
- paymentsReceived.json  {"paymentsReceived": [...]}

What it does:
- Creates (or reuses) the organization and its super_admin user.
- Customers are matched by email inside the organization; portal users are
  linked later when they save their profile.
- Payment status strings go through the ledger normalizer:
  counted -> verified, rejected/failed -> rejected, anything else -> pending_verification.
- Invoice amount_paid / balance_due / status are recomputed from the imported
  payments; the legacy stored values are ignored.
- Document sequences are moved past the highest imported INV-/PAY- numbers.

Run inside the API container:
    docker compose exec api python scripts/import_legacy_data.py \
        --data-dir ./legacy \
        --organization-name "Acme Billing" \
        --email admin@acme.in \
        --password ChangeMe!2025

Re-running skips invoices and payments whose numbers already exist.
"""

# Add project root (/code) to sys.path so `app.*` imports work even if CWD changes
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import argparse
import json
import re
from datetime import date, datetime, timezone
from decimal import Decimal

from app.common.exceptions import ValidationError
from app.common.sequences import DocumentSequence, SEQUENCE_FORMATS
from app.common.validators import state_code_from_gstin
from app.database.database import SessionLocal
from app.modules.auth.models import Organization, User, UserOrganization, UserRole
from app.modules.auth.utils import hash_password
from app.modules.customers.models import Customer, CustomerType
from app.modules.invoices.models import Invoice, InvoiceLineItem
from app.modules.invoices.service import InvoiceService
from app.modules.payments.ledger import (
    InvoiceStatus, PaymentStatus, canonical_payment_status, to_money, validate_allocations
)
from app.modules.payments.models import PaymentAllocation, PaymentMode, PaymentReceived
from app.modules.sales.utils import line_amount


def key(value) -> str:
    return re.sub(r"[^a-z0-9]", "", str(value or "").lower())


def parse_date(value, default=None):
    """'2025-01-05T10:00:00.000Z' -> date(2025, 1, 5)"""
    if not value:
        return default
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        return default


def load_collection(data_dir: Path, filename: str, collection: str) -> list:
    path = data_dir / filename
    if not path.exists():
        print(f"  {filename} not found, skipping")
        return []
    with path.open(encoding="utf-8") as fh:
        data = json.load(fh)
    return data.get(collection, []) if isinstance(data, dict) else data


def get_or_create_organization(db, name: str, currency: str):
    organization = db.query(Organization).filter(Organization.name == name).first()
    if organization:
        return organization
    organization = Organization(name=name, currency=currency.upper())
    db.add(organization)
    db.commit()
    db.refresh(organization)
    return organization


def get_or_create_admin(db, organization, email: str, password: str):
    user = db.query(User).filter(User.email == email.lower()).first()
    if not user:
        user = User(email=email.lower(), name="Admin", password=hash_password(password), is_active=True)
        db.add(user)
        db.flush()
    membership = db.query(UserOrganization).filter(
        UserOrganization.user_id == user.id,
        UserOrganization.organization_id == organization.id
    ).first()
    if not membership:
        db.add(UserOrganization(
            user_id=user.id,
            organization_id=organization.id,
            role=UserRole.SUPER_ADMIN.value
        ))
    db.commit()
    db.refresh(user)
    return user


def import_customers(db, tenant_id, records) -> dict:
    """Returns {legacy id: Customer}"""
    by_legacy_id = {}
    for record in records:
        email = (record.get("email") or "").strip().lower() or None
        customer = None
        if email:
            customer = db.query(Customer).filter(
                Customer.tenant_id == tenant_id,
                Customer.email == email
            ).first()
        if not customer:
            billing = record.get("billingAddress") or None
            customer_type = CustomerType.INDIVIDUAL if key(record.get("customerType")) == "individual" \
                else CustomerType.BUSINESS
            customer = Customer(
                tenant_id=tenant_id,
                name=record.get("name") or record.get("displayName") or "Unknown",
                display_name=record.get("displayName") or None,
                email=email,
                phone=record.get("phone") or None,
                company_name=record.get("companyName") or None,
                customer_type=customer_type.value,
                billing_address=billing,
                shipping_address=record.get("shippingAddress") or billing,
                gstin=(record.get("gstin") or "").strip().upper() or None,
                place_of_supply=record.get("placeOfSupply") or state_code_from_gstin(record.get("gstin")),
            )
            db.add(customer)
            db.flush()
        by_legacy_id[str(record.get("id"))] = customer
    db.commit()
    return by_legacy_id


def legacy_invoice_status(value) -> InvoiceStatus:
    status = key(value)
    if status == "draft":
        return InvoiceStatus.DRAFT
    if status in ("void", "voided", "cancelled"):
        return InvoiceStatus.VOID
    return InvoiceStatus.SENT


def build_lines(items) -> tuple:
    lines = []
    subtotal = Decimal("0.00")
    for position, raw in enumerate(items or []):
        quantity = Decimal(str(raw.get("quantity") or 1))
        rate = to_money(raw.get("rate") or raw.get("price") or 0, "rate")
        amount = line_amount(quantity, rate)
        lines.append(InvoiceLineItem(
            position=position,
            name=raw.get("name") or raw.get("itemName") or "Item",
            description=raw.get("description") or None,
            unit=raw.get("unit") or None,
            quantity=quantity,
            rate=rate,
            amount=amount
        ))
        subtotal += amount
    return lines, subtotal


def import_invoices(db, organization, records, customers, user_id) -> dict:
    """Returns {legacy id: Invoice}"""
    tenant_id = organization.id
    by_legacy_id = {}
    skipped = 0
    for record in records:
        number = record.get("invoiceNumber")
        customer = customers.get(str(record.get("customerId")))
        if not number or not customer:
            skipped += 1
            continue

        existing = db.query(Invoice).filter(Invoice.tenant_id == tenant_id, Invoice.number == number).first()
        if existing:
            by_legacy_id[str(record.get("id"))] = existing
            continue

        lines, subtotal = build_lines(record.get("items"))
        total = to_money(record.get("total"), "total") if record.get("total") is not None else subtotal
        status = legacy_invoice_status(record.get("status"))
        issue_date = parse_date(record.get("date") or record.get("createdAt"), date.today())

        invoice = Invoice(
            tenant_id=tenant_id,
            customer_id=customer.id,
            created_by=user_id,
            number=number,
            status=status,
            issue_date=issue_date,
            due_date=parse_date(record.get("dueDate")),
            sent_at=datetime.combine(issue_date, datetime.min.time(), tzinfo=timezone.utc)
            if status != InvoiceStatus.DRAFT else None,
            notes=record.get("notes") or None,
            currency=organization.currency,
            subtotal=to_money(record.get("subTotal"), "subTotal") if record.get("subTotal") is not None else subtotal,
            total=total,
            amount_paid=Decimal("0.00"),
            balance_due=total,
            line_items=lines
        )
        db.add(invoice)
        by_legacy_id[str(record.get("id"))] = invoice

    db.flush()
    if skipped:
        print(f"  Invoices skipped (no number or unknown customer): {skipped}")
    return by_legacy_id


def payment_mode(value) -> PaymentMode:
    mode = key(value)
    for candidate in PaymentMode:
        if key(candidate.value) == mode:
            return candidate
    if mode in ("banktransfer", "neft", "rtgs", "imps"):
        return PaymentMode.BANK_TRANSFER
    return PaymentMode.OTHER


def import_payments(db, organization, records, customers, invoices) -> int:
    tenant_id = organization.id
    created = 0
    for record in records:
        number = record.get("paymentNumber")
        customer = customers.get(str(record.get("customerId")))
        if not number or not customer:
            continue
        if db.query(PaymentReceived).filter(
            PaymentReceived.tenant_id == tenant_id,
            PaymentReceived.number == number
        ).first():
            continue

        allocations = []
        for applied in record.get("invoices") or []:
            invoice = invoices.get(str(applied.get("id") or applied.get("invoiceId")))
            if invoice is None:
                print(f"  {number}: invoice {applied.get('invoiceNumber')} not imported, allocation dropped")
                continue
            allocations.append({
                "invoice": invoice,
                "invoice_id": invoice.id,
                "applied_amount": applied.get("amountApplied") or applied.get("paymentAmount"),
            })

        try:
            amount = to_money(record.get("amount"))
            unused = validate_allocations(amount, allocations)
        except ValidationError as e:
            print(f"  {number}: skipped ({e.message})")
            continue

        status = canonical_payment_status(record.get("status"))
        payment = PaymentReceived(
            tenant_id=tenant_id,
            customer_id=customer.id,
            number=number,
            amount=amount,
            payment_date=parse_date(record.get("date"), date.today()),
            mode=payment_mode(record.get("mode")),
            reference_number=record.get("referenceNumber") or None,
            notes=record.get("notes") or None,
            currency=organization.currency,
            attachments=record.get("attachments") or [],
            bank_charges=to_money(record.get("bankCharges") or 0, "bankCharges"),
            tds_amount=to_money(record.get("taxAmount") or 0, "taxAmount"),
            status=status,
            unused_amount=unused,
            verified_at=datetime.now(timezone.utc) if status == PaymentStatus.VERIFIED else None,
            allocations=[
                PaymentAllocation(
                    tenant_id=tenant_id,
                    invoice=allocation["invoice"],
                    applied_amount=to_money(allocation["applied_amount"], "applied_amount")
                )
                for allocation in allocations
            ]
        )
        db.add(payment)
        created += 1

    db.flush()
    return created


def recompute_balances(db, invoices) -> int:
    service = InvoiceService(db)
    changed = 0
    for invoice in {inv.id: inv for inv in invoices.values()}.values():
        before = (invoice.amount_paid, invoice.balance_due, invoice.status)
        service.recalculate_balance(invoice)
        if before != (invoice.amount_paid, invoice.balance_due, invoice.status):
            changed += 1
    return changed


def sync_sequences(db, tenant_id) -> None:
    """Move invoice/payment sequences past the highest imported number"""
    for document_type, model in (("invoice", Invoice), ("payment", PaymentReceived)):
        prefix, start, _ = SEQUENCE_FORMATS[document_type]
        numbers = [
            int(match.group(1))
            for (number,) in db.query(model.number).filter(model.tenant_id == tenant_id).all()
            if (match := re.match(rf"^{re.escape(prefix)}(\d+)$", number or ""))
        ]
        if not numbers:
            continue

        sequence = db.query(DocumentSequence).filter(
            DocumentSequence.tenant_id == tenant_id,
            DocumentSequence.document_type == document_type
        ).with_for_update().first()
        if not sequence:
            sequence = DocumentSequence(
                tenant_id=tenant_id,
                document_type=document_type,
                current_number=start - 1,
                prefix=prefix
            )
            db.add(sequence)
        sequence.current_number = max(sequence.current_number, max(numbers))


def main():
    parser = argparse.ArgumentParser(description="Import legacy billing JSON data")
    parser.add_argument("--data-dir", required=True, type=Path)
    parser.add_argument("--organization-name", default="Billing Portal")
    parser.add_argument("--currency", default="INR")
    parser.add_argument("--email", default="admin@billing.local")
    parser.add_argument("--password", default="ChangeMe!2025")
    args = parser.parse_args()

    db = SessionLocal()
    try:
        organization = get_or_create_organization(db, args.organization_name, args.currency)
        admin = get_or_create_admin(db, organization, args.email, args.password)

        print("Importing customers...")
        customers = import_customers(
            db, organization.id, load_collection(args.data_dir, "customers.json", "customers")
        )
        print(f"Customers: {len(set(c.id for c in customers.values()))}")

        print("Importing invoices...")
        invoices = import_invoices(
            db, organization, load_collection(args.data_dir, "invoices.json", "invoices"), customers, admin.id
        )
        print(f"Invoices: {len(invoices)}")

        print("Importing payments received...")
        payments = import_payments(
            db, organization,
            load_collection(args.data_dir, "paymentsReceived.json", "paymentsReceived"),
            customers, invoices
        )
        print(f"Payments created: {payments}")

        changed = recompute_balances(db, invoices)
        sync_sequences(db, organization.id)
        db.commit()
        print(f"Balances recomputed, {changed} invoice(s) differ from their initial values")

        print("\nImport completed.")
        print("Organization:")
        print(f"  Name:     {organization.name}")
        print(f"  ID:       {organization.id}")
        print("Headers for API requests:")
        print(f"  X-Organization-ID: {organization.id}")
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    main()
