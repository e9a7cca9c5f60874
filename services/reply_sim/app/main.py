import asyncio
import logging
import os
from contextlib import asynccontextmanager
from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from services.reply_sim.app.core.protocol import SimModel, parse_request, pad_reply
from services.reply_sim.app.core.state import ServerState

log = logging.getLogger(__name__)

HTTP_HOST = os.getenv("SIM_HTTP_HOST", "127.0.0.1")
HTTP_PORT = int(os.getenv("SIM_HTTP_PORT", "8000"))

UDP_HOST = os.getenv("SIM_UDP_HOST", "127.0.0.1")
UDP_PORT = int(os.getenv("SIM_UDP_PORT", "9000"))

MODEL = SimModel()

class FaultsIn(BaseModel):
    delay_ms: int = Field(0, ge=0, le=5000)
    drop_rate: float = Field(0.0, ge=0.0, le=1.0)
    corrupt_rate: float = Field(0.0, ge=0.0, le=1.0)

class UdpProto(asyncio.DatagramProtocol):
    def __init__(self, model: SimModel = MODEL):
        self.model = model
        self.transport = None

    def connection_made(self, transport):
        # required: stored transport for later sendto()
        self.transport = transport

    def datagram_received(self, data: bytes, addr):
        loop = asyncio.get_running_loop()

        # drop packet
        if self.model.faults.should_drop():
            return

        text = parse_request(data)
        try:
            reply = self.model.handle(text)
        except ValueError as e:
            log.info("ignoring request from %s: %s", addr, e)
            return
        log.info("request from %s: %r -> %r", addr, text, reply)

        resp_pkt = pad_reply(reply)

        # corrupt the leading tag so the reply no longer classifies
        if self.model.faults.should_corrupt():
            b = bytearray(resp_pkt)
            b[0] ^= 0xFF
            resp_pkt = bytes(b)

        # schedule send (with optional delay)
        delay = self.model.faults.delay_ms / 1000.0
        if delay > 0:
            loop.call_later(delay, self._send, resp_pkt, addr)
        else:
            self._send(resp_pkt, addr)

    def _send(self, pkt: bytes, addr) -> None:
        if self.transport is None or self.transport.is_closing():
            return
        self.model.replies_sent += 1
        self.transport.sendto(pkt, addr)
        # after <shutdown/> the endpoint stops serving once the reply is out
        if self.model.state == ServerState.SHUT_DOWN:
            log.info("reply simulator shutting down")
            self.transport.close()

async def open_udp_endpoint(host: str = UDP_HOST, port: int = UDP_PORT, model: SimModel = MODEL):
    loop = asyncio.get_running_loop()
    transport, _ = await loop.create_datagram_endpoint(
        lambda: UdpProto(model),
        local_addr=(host, port),
    )
    return transport

@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.udp_transport = await open_udp_endpoint()
    try:
        yield
    finally:
        app.state.udp_transport.close()

app = FastAPI(title="Reply Simulator", version="0.1.0", lifespan=lifespan)

def _faults() -> dict:
    return {
        "delay_ms": MODEL.faults.delay_ms,
        "drop_rate": MODEL.faults.drop_rate,
        "corrupt_rate": MODEL.faults.corrupt_rate,
    }

@app.get("/health")
def health():
    return {"status": "ok", "state": MODEL.state.value}

@app.get("/status")
def status():
    return {
        "state": MODEL.state.value,
        "reset_count": MODEL.reset_count,
        "requests_seen": MODEL.requests_seen,
        "replies_sent": MODEL.replies_sent,
        "last_request": MODEL.last_request,
        "faults": _faults(),
    }

@app.post("/control/reset")
def reset():
    MODEL.reset()
    return {"status": "reset", "reset_count": MODEL.reset_count, "state": MODEL.state.value}

@app.get("/control/faults")
def get_faults():
    return _faults()

@app.post("/control/faults")
def set_faults(f: FaultsIn):
    if MODEL.state != ServerState.LISTENING:
        raise HTTPException(status_code=409, detail=f"Server is {MODEL.state.value}")
    MODEL.faults.delay_ms = f.delay_ms
    MODEL.faults.drop_rate = f.drop_rate
    MODEL.faults.corrupt_rate = f.corrupt_rate
    return {"status": "faults_updated", "faults": f.model_dump()}

if __name__ == "__main__":
    import uvicorn
    logging.basicConfig(level=logging.INFO)
    uvicorn.run(
        app,
        host=HTTP_HOST,
        port=HTTP_PORT,
        reload=False)
