from datetime import datetime, timedelta, timezone
import os
import random

from fastapi import FastAPI, Header
from pydantic import BaseModel

app = FastAPI(title="Mock SMS Gateway", version="1.0.0")

# number -> (code, expires_at); every generate supersedes the previous code
CODES: dict[str, tuple[str, datetime]] = {}
# Set MOCK_OTP_CODE to make generated codes predictable
FIXED_CODE = os.environ.get("MOCK_OTP_CODE")


class GenerateBody(BaseModel):
    number: str
    expiry: int = 5
    length: int = 6
    medium: str = "sms"
    message: str = ""
    sender_id: str = ""
    type: str = "numeric"


class VerifyBody(BaseModel):
    number: str
    code: str


@app.get("/health")
def health(): return {"status": "ok"}


@app.post("/api/otp/generate")
def generate(body: GenerateBody, api_key: str | None = Header(None, alias="api-key")):
    if not api_key:
        return {"code": "1001", "message": "API key is required"}
    if not body.number.isdigit() or len(body.number) < 10:
        return {"code": "1005", "message": "Invalid phone number"}
    if body.number.startswith("2330000"):
        return {"code": "1007", "message": "Insufficient balance"}

    code = FIXED_CODE or "".join(random.choice("0123456789") for _ in range(body.length))
    CODES[body.number] = (code, datetime.now(timezone.utc) + timedelta(minutes=body.expiry))
    return {"code": "1000", "message": "Successful, OTP sent"}


@app.post("/api/otp/verify")
def verify(body: VerifyBody, api_key: str | None = Header(None, alias="api-key")):
    if not api_key:
        return {"code": "1001", "message": "API key is required"}
    issued = CODES.get(body.number)
    if issued is None or issued[0] != body.code:
        return {"code": "1104", "message": "Invalid code"}
    if issued[1] < datetime.now(timezone.utc):
        return {"code": "1105", "message": "Code has expired"}
    # Codes stay valid until they expire or are superseded, so a repeated
    # verify of the same code succeeds again
    return {"code": "1100", "message": "Successful"}
