from datetime import datetime
import uuid

from fastapi import FastAPI, HTTPException

app = FastAPI(title="Mock Messaging Provider", version="0.1.0")

# Recipients that always bounce, for exercising partial-failure paths in dev.
BOUNCE_PREFIX = "bounce"

@app.get("/ping")
def ping():
    return {"status": "ok", "service": "mock-messaging", "time": datetime.utcnow().isoformat()}

@app.post("/{channel}/send")
def send(channel: str, payload: dict):
    if channel not in {"email", "sms", "push"}:
        raise HTTPException(status_code=404, detail=f"Unknown channel: {channel}")

    to = str(payload.get("to") or "")
    if not to:
        raise HTTPException(status_code=400, detail="Missing recipient")
    if to.lower().startswith(BOUNCE_PREFIX):
        raise HTTPException(status_code=422, detail=f"Simulated {channel} bounce for {to}")

    return {
        "ack": True,
        "channel": channel,
        "message_id": f"{channel}_{uuid.uuid4().hex[:12]}",
        "received": payload,
        "processed_at": datetime.utcnow().isoformat()
    }
