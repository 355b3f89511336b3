"""
Mock data bucket and SMS gateway for integration testing.

Data bucket: serves {region}/locations.json and {region}/availability.json.
SMS gateway: Pinpoint-style per-address results, with configurable failures.
"""

from typing import Any

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

# ── Mock data bucket ──


def create_bucket_app(documents: dict[str, Any]) -> FastAPI:
    """documents maps "{region}/{name}" to the JSON to serve."""
    app = FastAPI(title="Mock data bucket")

    @app.get("/{region}/{name}")
    async def get_object(region: str, name: str):
        key = f"{region}/{name}"
        if key not in documents:
            raise HTTPException(status_code=404, detail="NoSuchKey")
        return JSONResponse(documents[key])

    return app


# ── Mock SMS gateway ──


class GatewayState:
    def __init__(
        self,
        undeliverable: set[str] | None = None,
        server_error_for: set[str] | None = None,
    ):
        self.undeliverable = undeliverable or set()
        self.server_error_for = server_error_for or set()
        self.requests: list[dict[str, Any]] = []

    def bodies_for(self, address: str) -> list[str]:
        return [
            r["MessageRequest"]["MessageConfiguration"]["SMSMessage"]["Body"]
            for r in self.requests
            if address in r["MessageRequest"]["Addresses"]
        ]


def create_gateway_app(state: GatewayState) -> FastAPI:
    app = FastAPI(title="Mock SMS gateway")

    @app.post("/v1/apps/{application_id}/messages")
    async def send_messages(application_id: str, request: Request):
        body = await request.json()
        state.requests.append(body)
        addresses = list(body["MessageRequest"]["Addresses"])
        if any(a in state.server_error_for for a in addresses):
            return JSONResponse({"message": "InternalFailure"}, status_code=500)

        result = {}
        for address in addresses:
            if address in state.undeliverable:
                result[address] = {
                    "DeliveryStatus": "PERMANENT_FAILURE",
                    "StatusCode": 400,
                    "StatusMessage": "Destination is not a mobile number",
                }
            else:
                result[address] = {
                    "DeliveryStatus": "SUCCESSFUL",
                    "StatusCode": 200,
                    "StatusMessage": "MessageId: test",
                }
        return {"MessageResponse": {"ApplicationId": application_id, "Result": result}}

    return app
