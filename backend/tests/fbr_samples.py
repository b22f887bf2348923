"""Sample FBR gateway bodies and a fake HTTP session shared by the tests."""

VALID_FBR_RESPONSE = {
    "dated": "2025-06-15 10:00:00",
    "validationResponse": {
        "statusCode": "00",
        "status": "Valid",
        "error": "",
        "invoiceStatuses": [
            {"itemSNo": "1", "statusCode": "00", "status": "Valid", "invoiceNo": "7000007DI1747119701593-1",
             "errorCode": "", "error": ""},
        ],
    },
}

POSTED_FBR_RESPONSE = {
    "invoiceNumber": "7000007DI1747119701593",
    **VALID_FBR_RESPONSE,
}

INVALID_FBR_RESPONSE = {
    "dated": "2025-06-15 10:00:00",
    "validationResponse": {
        "statusCode": "01",
        "status": "Invalid",
        "error": "",
        "invoiceStatuses": [
            {"itemSNo": "1", "statusCode": "01", "status": "Invalid", "invoiceNo": None,
             "errorCode": "0052", "error": "Provide proper HS Code with invoice no. null"},
        ],
    },
}


class FakeResponse:
    def __init__(self, status_code=200, body=None, text=""):
        self.status_code = status_code
        self._body = body
        self.text = text

    def json(self):
        if self._body is None:
            raise ValueError("No JSON object could be decoded")
        return self._body


class FakeSession:
    """Stands in for requests.Session; answers are responses or exceptions to raise."""

    def __init__(self, responses):
        self.responses = list(responses)
        self.calls = []

    def _next(self):
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    def post(self, url, json=None, headers=None, timeout=None):
        self.calls.append({"url": url, "json": json, "headers": headers, "timeout": timeout})
        return self._next()

    def get(self, url, timeout=None):
        self.calls.append({"url": url, "timeout": timeout})
        return self._next()
