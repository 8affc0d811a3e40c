from fastapi import FastAPI, Header, HTTPException
from fastapi.responses import JSONResponse
import base64
import uuid

app = FastAPI(title="Mock Daraja Server", version="1.0.0")

CONSUMER_KEY = "test-key"
CONSUMER_SECRET = "test-secret"
ACCESS_TOKEN = "mock-access-token"

# PartyA numbers the sandbox refuses, mirroring Daraja's "Invalid PhoneNumber" answer
REJECTED_NUMBERS = {"254700000000"}


@app.get("/health")
def health(): return {"status": "ok"}


@app.get("/oauth/v1/generate")
def generate_token(grant_type: str, authorization: str = Header(default="")):
    expected = base64.b64encode(f"{CONSUMER_KEY}:{CONSUMER_SECRET}".encode()).decode()
    if grant_type != "client_credentials" or authorization != f"Basic {expected}":
        raise HTTPException(status_code=400, detail="Invalid Authentication passed")
    return {"access_token": ACCESS_TOKEN, "expires_in": "3599"}


@app.post("/mpesa/stkpush/v1/processrequest")
def process_request(body: dict, authorization: str = Header(default="")):
    if authorization != f"Bearer {ACCESS_TOKEN}":
        return JSONResponse(status_code=401, content={"errorCode": "404.001.03", "errorMessage": "Invalid Access Token"})
    if len(str(body.get("AccountReference", ""))) > 12:
        return JSONResponse(status_code=400, content={"errorCode": "400.002.02", "errorMessage": "Bad Request - Invalid AccountReference"})
    if body.get("PartyA") in REJECTED_NUMBERS:
        return JSONResponse(status_code=400, content={"errorCode": "400.002.02", "errorMessage": "Bad Request - Invalid PhoneNumber"})
    return {
        "MerchantRequestID": f"mr-{uuid.uuid4().hex[:12]}",
        "CheckoutRequestID": f"ws_CO_{uuid.uuid4().hex[:16]}",
        "ResponseCode": "0",
        "ResponseDescription": "Success. Request accepted for processing",
        "CustomerMessage": "Success. Request accepted for processing",
    }
