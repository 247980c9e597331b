# integrations/authorize_net.py
"""
Authorize.Net JSON API adapters.

One endpoint, many request types: every call is
    {"<requestName>": {"merchantAuthentication": {...}, ...}}
POSTed to PAYMENTS["AUTHORIZE_NET"]["ENDPOINT"].

Transaction responseCode:
    1 = approved, 2 = declined, 3 = error, 4 = held for review
"""

from __future__ import annotations

import logging
import uuid
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from django.conf import settings

from integrations.contracts import (
    BankAccount,
    CardDetails,
    CloudTerminal,
    OpaqueToken,
    PaymentGateway,
    PaymentProfile,
    PaymentResult,
    StoredProfileRef,
)
from integrations.exceptions import (
    GatewayTransportError,
    IntegrationError,
    IntegrationNotConfigured,
)
from integrations.http import request_json

logger = logging.getLogger(__name__)

APPROVED = "1"
DECLINED = "2"
ERROR = "3"
HELD_FOR_REVIEW = "4"

# getTransactionDetails statuses
APPROVED_STATUSES = {
    "settledSuccessfully",
    "capturedPendingSettlement",
    "authorizedPendingCapture",
}
FAILED_STATUSES = {
    "declined",
    "voided",
    "expired",
    "generalError",
    "communicationError",
    "settlementError",
    "couldNotVoid",
    "failedReview",
}


def _amount(value: Decimal) -> str:
    return str(Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def _first_error(response: dict[str, Any]) -> tuple[str, str]:
    tr = response.get("transactionResponse") or {}
    errors = tr.get("errors") or []
    if errors:
        e = errors[0] or {}
        return str(e.get("errorText") or ""), str(e.get("errorCode") or "")

    root = (response.get("messages") or {}).get("message") or []
    if isinstance(root, dict):
        root = [root]
    if root:
        m = root[0] or {}
        return str(m.get("text") or ""), str(m.get("code") or "")

    return "", ""


def _result_ok(response: dict[str, Any]) -> bool:
    return str((response.get("messages") or {}).get("resultCode") or "") == "Ok"


class _AuthorizeNetClient:
    def __init__(self, *, api_login_id: str, transaction_key: str, endpoint: str, timeout: int = 30):
        self.api_login_id = (api_login_id or "").strip()
        self.transaction_key = (transaction_key or "").strip()
        self.endpoint = (endpoint or "").strip()
        self.timeout = int(timeout or 30)

    @classmethod
    def from_settings(cls):
        cfg = (getattr(settings, "PAYMENTS", {}) or {}).get("AUTHORIZE_NET") or {}
        return cls(
            api_login_id=cfg.get("API_LOGIN_ID") or "",
            transaction_key=cfg.get("TRANSACTION_KEY") or "",
            endpoint=cfg.get("ENDPOINT") or "",
            timeout=cfg.get("TIMEOUT") or 30,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.api_login_id and self.transaction_key and self.endpoint)

    def _call(self, request_name: str, payload: dict[str, Any]) -> dict[str, Any]:
        if not self.is_configured:
            raise IntegrationNotConfigured(
                "Authorize.Net is not configured. "
                "Expected settings.PAYMENTS['AUTHORIZE_NET'] API_LOGIN_ID / TRANSACTION_KEY / ENDPOINT."
            )

        body = {
            request_name: {
                "merchantAuthentication": {
                    "name": self.api_login_id,
                    "transactionKey": self.transaction_key,
                },
                **payload,
            }
        }
        try:
            return request_json(
                "POST", self.endpoint, body=body, timeout=self.timeout, label="Authorize.Net"
            )
        except IntegrationError as exc:
            logger.warning(
                "authorize_net.transport_failed",
                extra={"request": request_name, "error": str(exc)},
            )
            raise GatewayTransportError(str(exc)) from exc

    def _transaction(self, amount: Decimal, payment: dict[str, Any], *, invoice_number: str, description: str = "", **extra) -> dict[str, Any]:
        txn = {
            "transactionType": "authCaptureTransaction",
            "amount": _amount(amount),
            **payment,
            "order": {
                "invoiceNumber": (invoice_number or "")[:20],
                "description": (description or "POS Sale")[:255],
            },
            **extra,
        }
        return self._call(
            "createTransactionRequest",
            {"refId": uuid.uuid4().hex[:20], "transactionRequest": txn},
        )


class AuthorizeNetGateway(_AuthorizeNetClient, PaymentGateway):
    def _charge(self, amount, payment, *, invoice_number, description="") -> PaymentResult:
        response = self._transaction(
            amount, payment, invoice_number=invoice_number, description=description
        )
        tr = response.get("transactionResponse") or {}
        code = str(tr.get("responseCode") or "")
        trans_id = str(tr.get("transId") or "")

        if code == APPROVED and trans_id and trans_id != "0":
            messages = tr.get("messages") or []
            msg = (messages[0] or {}).get("description", "") if messages else ""
            return PaymentResult.approved(trans_id, message=msg)

        text, err_code = _first_error(response)
        if code == HELD_FOR_REVIEW:
            text = text or "Transaction held for review"
        logger.info(
            "authorize_net.charge_declined",
            extra={"response_code": code, "error_code": err_code, "invoice_number": invoice_number},
        )
        return PaymentResult.declined(text or "Transaction declined", err_code, trans_id)

    def charge_card(self, amount, card: CardDetails, *, invoice_number, description=""):
        credit_card = {
            "cardNumber": card.number,
            "expirationDate": card.expiration,
        }
        if card.cvv:
            credit_card["cardCode"] = card.cvv
        return self._charge(
            amount,
            {"payment": {"creditCard": credit_card}},
            invoice_number=invoice_number,
            description=description,
        )

    def charge_opaque_token(self, amount, token: OpaqueToken, *, invoice_number, description=""):
        return self._charge(
            amount,
            {"payment": {"opaqueData": {"dataDescriptor": token.descriptor, "dataValue": token.value}}},
            invoice_number=invoice_number,
            description=description,
        )

    def charge_stored_profile(self, amount, *, customer_profile_id, payment_profile_id, invoice_number, description=""):
        return self._charge(
            amount,
            {
                "profile": {
                    "customerProfileId": str(customer_profile_id),
                    "paymentProfile": {"paymentProfileId": str(payment_profile_id)},
                }
            },
            invoice_number=invoice_number,
            description=description,
        )

    def charge_ach(self, amount, account: BankAccount, *, invoice_number, description=""):
        return self._charge(
            amount,
            {
                "payment": {
                    "bankAccount": {
                        "accountType": account.account_type or "checking",
                        "routingNumber": account.routing_number,
                        "accountNumber": account.account_number,
                        "nameOnAccount": (account.name_on_account or "")[:22],
                        "echeckType": "WEB",
                    }
                }
            },
            invoice_number=invoice_number,
            description=description,
        )

    @staticmethod
    def _payment_block(instrument: CardDetails | BankAccount) -> dict[str, Any]:
        if isinstance(instrument, BankAccount):
            return {
                "bankAccount": {
                    "accountType": instrument.account_type or "checking",
                    "routingNumber": instrument.routing_number,
                    "accountNumber": instrument.account_number,
                    "nameOnAccount": (instrument.name_on_account or "")[:22],
                }
            }
        return {
            "creditCard": {
                "cardNumber": instrument.number,
                "expirationDate": instrument.expiration,
            }
        }

    def create_stored_profile(
        self,
        *,
        customer_profile_id="",
        instrument=None,
        transaction_id="",
        name="",
        email="",
        merchant_customer_id="",
    ) -> StoredProfileRef:
        if transaction_id:
            payload: dict[str, Any] = {"transId": str(transaction_id)}
            if customer_profile_id:
                payload["customerProfileId"] = str(customer_profile_id)
            else:
                payload["customer"] = {
                    "merchantCustomerId": (merchant_customer_id or "")[:20],
                    "email": email or "",
                }
            response = self._call("createCustomerProfileFromTransactionRequest", payload)
        elif instrument is None:
            raise ValueError("instrument or transaction_id is required")
        elif customer_profile_id:
            response = self._call(
                "createCustomerPaymentProfileRequest",
                {
                    "customerProfileId": str(customer_profile_id),
                    "paymentProfile": {"payment": self._payment_block(instrument)},
                    "validationMode": "none",
                },
            )
        else:
            response = self._call(
                "createCustomerProfileRequest",
                {
                    "profile": {
                        "merchantCustomerId": (merchant_customer_id or "")[:20],
                        "description": (name or "")[:255],
                        "email": email or "",
                        "paymentProfiles": {"payment": self._payment_block(instrument)},
                    },
                    "validationMode": "none",
                },
            )

        if not _result_ok(response):
            text, _ = _first_error(response)
            raise GatewayTransportError(text or "Could not create stored payment profile")

        profile_id = str(response.get("customerProfileId") or customer_profile_id or "")
        payment_profile_id = response.get("customerPaymentProfileId")
        if payment_profile_id is None:
            ids = response.get("customerPaymentProfileIdList") or []
            payment_profile_id = ids[0] if ids else ""
        return StoredProfileRef(
            customer_profile_id=profile_id,
            payment_profile_id=str(payment_profile_id or ""),
        )

    def _get_profile(self, lookup: dict[str, Any]) -> dict[str, Any] | None:
        response = self._call("getCustomerProfileRequest", {**lookup, "unmaskExpirationDate": "false"})
        if not _result_ok(response):
            return None
        return response.get("profile") or None

    def find_customer_profile(self, *, name="", email="", merchant_customer_id="") -> str | None:
        if merchant_customer_id:
            profile = self._get_profile({"merchantCustomerId": str(merchant_customer_id)[:20]})
            if profile:
                return str(profile.get("customerProfileId") or "") or None

        if email:
            profile = self._get_profile({"email": email})
            if profile:
                return str(profile.get("customerProfileId") or "") or None

        # Name-only matches are ambiguous; the gateway has no name search.
        if name:
            logger.info("authorize_net.profile_not_found", extra={"customer_name": name})
        return None

    def get_payment_profiles(self, customer_profile_id: str) -> list[PaymentProfile]:
        profile = self._get_profile({"customerProfileId": str(customer_profile_id)})
        if not profile:
            return []

        out: list[PaymentProfile] = []
        for p in profile.get("paymentProfiles") or []:
            payment = p.get("payment") or {}
            pid = str(p.get("customerPaymentProfileId") or "")
            if "bankAccount" in payment:
                bank = payment.get("bankAccount") or {}
                out.append(
                    PaymentProfile(
                        payment_profile_id=pid,
                        kind="bank",
                        last4=str(bank.get("accountNumber") or "")[-4:],
                        label=str(bank.get("accountType") or "bank"),
                    )
                )
            elif "creditCard" in payment:
                card = payment.get("creditCard") or {}
                out.append(
                    PaymentProfile(
                        payment_profile_id=pid,
                        kind="card",
                        last4=str(card.get("cardNumber") or "")[-4:],
                        label=str(card.get("cardType") or "card"),
                        is_debit=str(card.get("cardFunding") or "").lower() == "debit",
                    )
                )
        return out


class AuthorizeNetCloudTerminal(_AuthorizeNetClient, CloudTerminal):
    """
    Card-present terminal routed through the gateway's cloud connection.

    initiate_payment() returns a pending result carrying the transaction id;
    the register polls check_status() until the buyer completes on the device.
    """

    def initiate_payment(self, amount, terminal_number, invoice_number) -> PaymentResult:
        terminal_number = (terminal_number or "").strip()
        if not terminal_number:
            return PaymentResult.declined("Terminal number is required for cloud terminal payments")

        response = self._transaction(
            amount,
            {"terminalNumber": terminal_number},
            invoice_number=invoice_number,
            description="POS Sale - Terminal Payment",
            transactionSettings={
                "setting": [
                    {"settingName": "allowPartialAuth", "settingValue": "false"},
                    {"settingName": "duplicateWindow", "settingValue": "0"},
                ]
            },
        )
        tr = response.get("transactionResponse") or {}
        code = str(tr.get("responseCode") or "")
        trans_id = str(tr.get("transId") or response.get("refId") or "")

        if code in (APPROVED, ERROR, HELD_FOR_REVIEW) and trans_id:
            return PaymentResult.awaiting(
                trans_id, message="Payment request sent to terminal. Complete payment on the device."
            )

        text, err_code = _first_error(response)
        return PaymentResult.declined(text or "Terminal payment failed", err_code)

    def check_status(self, transaction_id) -> PaymentResult:
        response = self._call("getTransactionDetailsRequest", {"transId": str(transaction_id)})
        txn = response.get("transaction")
        if not txn:
            text, err_code = _first_error(response)
            return PaymentResult.declined(
                text or "Failed to retrieve transaction details", err_code, transaction_id
            )

        status = str(txn.get("transactionStatus") or "unknown")
        trans_id = str(txn.get("transId") or transaction_id)

        if status in APPROVED_STATUSES:
            return PaymentResult.approved(trans_id, message=f"Transaction {status}")
        if status in FAILED_STATUSES:
            return PaymentResult.declined(
                str(txn.get("responseReasonDescription") or f"Transaction {status}"),
                status,
                trans_id,
            )
        # FDS review holds and unrecognized statuses keep the register waiting.
        return PaymentResult.awaiting(trans_id, message=f"Transaction {status}")
