# Overview: HTTP gateway to the thermal receipt print server, registered as a Flask extension.

"""
Receipt Printing Gateway

The print server is an external collaborator reachable over HTTP:
- POST {PRINT_SERVER_URL}/print  {text, printer, options} -> {success, message, ...}
- GET  {PRINT_SERVER_URL}/status -> {connected, printer, status, ...}

INVARIANTS:
- Printing never participates in a sale's database transaction.
- A failed print raises PrintError; callers report it, they never roll back.
- Background jobs run in their own app context and only log failures.
"""

from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable

import httpx
from flask import Flask, current_app


class PrintError(Exception):
    """Raised when the print server is unreachable or reports a device error."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


@dataclass(frozen=True)
class PrintResult:
    success: bool
    message: str
    printer: str | None = None
    printed_at: str | None = None

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "message": self.message,
            "printer": self.printer,
            "printed_at": self.printed_at,
        }


class ReceiptPrinter:
    """Flask extension wrapping the print server API."""

    def __init__(self, app: Flask | None = None):
        self._executors: dict[int, ThreadPoolExecutor] = {}
        if app is not None:
            self.init_app(app)

    def init_app(self, app: Flask) -> None:
        app.config.setdefault("PRINT_SERVER_URL", "http://localhost:3001")
        app.config.setdefault("PRINTER_NAME", "RPP02N")
        app.config.setdefault("PRINT_TIMEOUT_SECONDS", 5.0)
        app.config.setdefault("PRINT_CHARACTER_SET", "UTF8")
        app.config.setdefault("PRINT_FONT_SIZE", "small")
        app.config.setdefault("PRINT_ALIGNMENT", "left")
        app.config.setdefault("PRINT_WORKERS", 2)
        # Tests inject an httpx.MockTransport here
        app.config.setdefault("PRINT_TRANSPORT", None)
        app.extensions["receipt_printer"] = self

    def _client(self) -> httpx.Client:
        cfg = current_app.config
        return httpx.Client(
            base_url=cfg["PRINT_SERVER_URL"],
            timeout=cfg["PRINT_TIMEOUT_SECONDS"],
            transport=cfg["PRINT_TRANSPORT"],
        )

    def print_text(self, text: str) -> PrintResult:
        """Send rendered receipt text to the configured printer."""
        cfg = current_app.config
        payload = {
            "text": text,
            "printer": cfg["PRINTER_NAME"],
            "options": {
                "characterSet": cfg["PRINT_CHARACTER_SET"],
                "fontSize": cfg["PRINT_FONT_SIZE"],
                "alignment": cfg["PRINT_ALIGNMENT"],
            },
        }

        try:
            with self._client() as client:
                response = client.post("/print", json=payload)
        except httpx.HTTPError as exc:
            current_app.logger.warning("Print server unreachable: %s", exc)
            raise PrintError("Print server unreachable", details={"reason": str(exc)})

        if response.status_code >= 400:
            current_app.logger.warning("Print server returned HTTP %s", response.status_code)
            raise PrintError("Print server error", details={"status_code": response.status_code})

        try:
            body = response.json()
        except ValueError:
            raise PrintError("Print server returned an invalid response")

        if not body.get("success", False):
            message = body.get("message") or "Printer reported a failure"
            current_app.logger.warning("Printer reported failure: %s", message)
            raise PrintError(message, details={"printer": body.get("printer")})

        return PrintResult(
            success=True,
            message=body.get("message") or "Receipt printed",
            printer=body.get("printer") or cfg["PRINTER_NAME"],
            printed_at=body.get("timestamp"),
        )

    def status(self) -> dict:
        """Device connectivity/readiness; never raises."""
        try:
            with self._client() as client:
                response = client.get("/status")
            response.raise_for_status()
            body = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            current_app.logger.warning("Printer status check failed: %s", exc)
            return {
                "connected": False,
                "printer": current_app.config["PRINTER_NAME"],
                "status": "unreachable",
            }

        body.setdefault("connected", False)
        return body

    def submit(self, job: Callable[..., PrintResult], *args) -> Future:
        """
        Run a print job on the background pool, outside the request.

        The job runs inside a fresh app context. PrintError is logged as a
        warning; the Future resolves to None in that case.
        """
        app = current_app._get_current_object()
        executor = self._executor_for(app)

        def _run():
            with app.app_context():
                try:
                    return job(*args)
                except PrintError as exc:
                    app.logger.warning("Background receipt print failed: %s", exc)
                except Exception:
                    app.logger.exception("Background receipt print crashed")
                return None

        return executor.submit(_run)

    def _executor_for(self, app: Flask) -> ThreadPoolExecutor:
        key = id(app)
        executor = self._executors.get(key)
        if executor is None:
            executor = ThreadPoolExecutor(
                max_workers=max(1, int(app.config["PRINT_WORKERS"])),
                thread_name_prefix="receipt-print",
            )
            self._executors[key] = executor
        return executor

    def shutdown(self, app: Flask, wait: bool = True) -> None:
        executor = self._executors.pop(id(app), None)
        if executor is not None:
            executor.shutdown(wait=wait)
