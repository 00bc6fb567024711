"""
In-memory Daraja for tests.

FakeDaraja answers the three Daraja endpoints through an
``httpx.MockTransport`` and records every request it receives. Responses
default to the happy path and can be overridden per call by queueing an
``httpx.Response`` or an exception.

Usage:
    daraja = FakeDaraja()
    adapter = MpesaAdapter(config, http_client=daraja.client())

    daraja.queue_push(daraja.rejected_push("Invalid PhoneNumber"))
    daraja.queue_query(httpx.ConnectTimeout("boom"))
"""

import json
from collections import deque

import httpx

from payments.adapters.mpesa_adapter import OAUTH_PATH, STK_PUSH_PATH, STK_QUERY_PATH


def stk_callback(
    checkout_request_id,
    result_code=0,
    result_desc="The service request is processed successfully.",
    merchant_request_id="29115-34620561-1",
    receipt="NLJ7RT61SV",
    amount=500,
    phone=254712345678,
    transaction_date=20240131102115,
    include_metadata=None,
):
    """Build an STK result callback body as Daraja posts it."""
    callback = {
        "MerchantRequestID": merchant_request_id,
        "CheckoutRequestID": checkout_request_id,
        "ResultCode": result_code,
        "ResultDesc": result_desc,
    }
    if include_metadata is None:
        include_metadata = result_code == 0
    if include_metadata:
        callback["CallbackMetadata"] = {
            "Item": [
                {"Name": "Amount", "Value": amount},
                {"Name": "MpesaReceiptNumber", "Value": receipt},
                {"Name": "Balance"},
                {"Name": "TransactionDate", "Value": transaction_date},
                {"Name": "PhoneNumber", "Value": phone},
            ]
        }
    return {"Body": {"stkCallback": callback}}


class FakeDaraja:
    """Scriptable Daraja backend."""

    def __init__(self, token="test-access-token", expires_in="3599"):
        self.token = token
        self.expires_in = expires_in
        self.requests: list[httpx.Request] = []
        self._token_queue: deque = deque()
        self._push_queue: deque = deque()
        self._query_queue: deque = deque()
        self._push_count = 0

    # -------------------------------------------------------------------------
    # Wiring
    # -------------------------------------------------------------------------

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def client(self) -> httpx.Client:
        return httpx.Client(transport=self.transport)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path == OAUTH_PATH:
            return self._next(self._token_queue, self.token_response)
        if path == STK_PUSH_PATH:
            return self._next(self._push_queue, self.accepted_push)
        if path == STK_QUERY_PATH:
            return self._next(self._query_queue, self.pending_query)
        return httpx.Response(404, json={"errorMessage": f"Unknown path {path}"})

    @staticmethod
    def _next(queue: deque, default):
        item = queue.popleft() if queue else default()
        if isinstance(item, Exception):
            raise item
        return item

    def queue_token(self, response):
        self._token_queue.append(response)

    def queue_push(self, response):
        self._push_queue.append(response)

    def queue_query(self, response):
        self._query_queue.append(response)

    # -------------------------------------------------------------------------
    # Inspection
    # -------------------------------------------------------------------------

    def calls(self, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path == path]

    @property
    def token_calls(self) -> list[httpx.Request]:
        return self.calls(OAUTH_PATH)

    @property
    def push_calls(self) -> list[httpx.Request]:
        return self.calls(STK_PUSH_PATH)

    @property
    def query_calls(self) -> list[httpx.Request]:
        return self.calls(STK_QUERY_PATH)

    @staticmethod
    def body(request: httpx.Request) -> dict:
        return json.loads(request.content)

    # -------------------------------------------------------------------------
    # Canned responses
    # -------------------------------------------------------------------------

    def token_response(self) -> httpx.Response:
        return httpx.Response(200, json={"access_token": self.token, "expires_in": self.expires_in})

    def accepted_push(self) -> httpx.Response:
        self._push_count += 1
        return httpx.Response(
            200,
            json={
                "MerchantRequestID": f"29115-34620561-{self._push_count}",
                "CheckoutRequestID": f"ws_CO_19122019102036392{self._push_count}",
                "ResponseCode": "0",
                "ResponseDescription": "Success. Request accepted for processing",
                "CustomerMessage": "Success. Request accepted for processing",
            },
        )

    @staticmethod
    def rejected_push(description="Invalid PhoneNumber", code="1") -> httpx.Response:
        return httpx.Response(
            200,
            json={"ResponseCode": code, "ResponseDescription": description},
        )

    @staticmethod
    def pending_query() -> httpx.Response:
        return httpx.Response(
            500,
            json={
                "requestId": "12345-678-1",
                "errorCode": "500.001.1001",
                "errorMessage": "The transaction is being processed",
            },
        )

    @staticmethod
    def query_result(result_code, result_desc="The service request is processed successfully."):
        return httpx.Response(
            200,
            json={
                "ResponseCode": "0",
                "ResponseDescription": "The service request has been accepted successsfully",
                "MerchantRequestID": "29115-34620561-1",
                "CheckoutRequestID": "ws_CO_191220191020363925",
                "ResultCode": str(result_code),
                "ResultDesc": result_desc,
            },
        )
