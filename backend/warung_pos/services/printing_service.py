# Overview: Receipt rendering and print dispatch for committed transactions.

from __future__ import annotations

from concurrent.futures import Future

from flask import current_app

from ..extensions import printer
from ..money import format_rupiah
from ..printing import PrintError, PrintResult
from ..time_utils import format_receipt_time
from .transaction_service import receipt_view

RECEIPT_WIDTH = 32


def _rule(char: str = "-") -> str:
    return char * RECEIPT_WIDTH + "\n"


def render_receipt(view: dict, title: str = "DIMSUM WARUNG") -> str:
    """
    Render a 32-column thermal receipt from receipt_view() output.
    """
    txn = view["transaction"]

    receipt = _rule("=")
    receipt += title.center(RECEIPT_WIDTH).rstrip() + "\n"
    receipt += _rule("=")
    receipt += f"No: {txn.transaction_number}\n"
    receipt += f"Date: {format_receipt_time(txn.created_at)}\n"
    receipt += f"Cashier: {view['cashier']}\n"
    receipt += _rule()

    for item in view["items"]:
        receipt += f"{item['name']}\n"
        receipt += (
            f"{item['quantity']} x {format_rupiah(item['unit_price'])}"
            f" = {format_rupiah(item['total_price'])}\n"
        )
        receipt += _rule()

    receipt += f"TOTAL: Rp {format_rupiah(txn.total_amount)}\n"
    receipt += f"Paid ({txn.payment_method}): Rp {format_rupiah(txn.payment_amount)}\n"
    receipt += f"Change: Rp {format_rupiah(txn.change_amount)}\n"
    receipt += _rule("=")
    receipt += "Thank you for".center(RECEIPT_WIDTH).rstrip() + "\n"
    receipt += "your visit!".center(RECEIPT_WIDTH).rstrip() + "\n"
    receipt += _rule("=")
    # Feed lines so the cutter clears the text
    receipt += "\n\n\n"
    return receipt


def render_transaction_receipt(transaction_id: int) -> str:
    return render_receipt(receipt_view(transaction_id), title=current_app.config["RECEIPT_TITLE"])


def print_receipt(transaction_id: int) -> PrintResult:
    """
    Render and print a committed transaction's receipt synchronously.

    Raises NotFoundError for an unknown transaction and PrintError when the
    print server or device fails. Never modifies the transaction.
    """
    text = render_transaction_receipt(transaction_id)
    return printer.print_text(text)


def dispatch_receipt(transaction_id: int) -> Future:
    """Queue a receipt print on the background pool; failures are only logged."""
    return printer.submit(print_receipt, transaction_id)


__all__ = [
    "PrintError",
    "PrintResult",
    "render_receipt",
    "render_transaction_receipt",
    "print_receipt",
    "dispatch_receipt",
]
