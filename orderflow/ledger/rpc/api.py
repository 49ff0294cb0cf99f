from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, RootModel
from typing import Optional
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from ...protocol.types.claim import ClaimRequest, MerkleClaim
from ...protocol.types.common import AuthMethod, LedgerError, Unauthorized
from ..core.ledger import RewardLedger
from ..observability.metrics import metrics_registry, update_metrics
import logging

logger = logging.getLogger(__name__)

app = FastAPI(title="OrderFlow Ledger RPC")

ledger: Optional[RewardLedger] = None


class SignedRequest(BaseModel):
    """Account-changing request, signed by `address` over operation_message_hash."""
    address: str
    signature: str                 # hex (r || s)
    pub_key: str                   # hex compressed secp256k1 key


class AmountRequest(SignedRequest):
    amount: int


class ClaimBody(RootModel[ClaimRequest]):
    pass


class AutoCompoundRequest(SignedRequest):
    enabled: bool


def _require_ledger() -> RewardLedger:
    if not ledger:
        raise HTTPException(status_code=503, detail="Ledger not initialized")
    return ledger


def _execute(req: SignedRequest, operation: str, **args):
    return _require_ledger().execute_signed(req.address, operation, args, req.signature, req.pub_key)


@app.exception_handler(LedgerError)
async def ledger_error_handler(request: Request, exc: LedgerError):
    return JSONResponse(status_code=400, content={"error": exc.code, "message": exc.message})


@app.get("/status")
async def get_status():
    led = _require_ledger()
    return {
        "network": led.config.network_id,
        "chain_id": led.config.chain_id,
        "epoch": led.current_epoch,
        "last_epoch_reset": led.state.clock.last_reset,
        "lifetime_distributed": str(led.lifetime_distributed),
        "reward_rate_per_volume": led.state.globals.reward_rate_per_volume,
        "min_volume_threshold": led.state.globals.min_volume_threshold,
    }


@app.get("/account/{address}")
async def get_account(address: str):
    led = _require_ledger()
    acc = led.get_account(address)
    unstake = led.get_unstake(address)
    bond = led.get_bond(address)
    return {
        "account": acc.model_dump(mode="json"),
        "tier": acc.tier.name,
        "multiplier": acc.multiplier,
        "vesting": led.get_vesting(address).model_dump(),
        "claimable_vested": led.claimable_vested(address),
        "pending_unstake": unstake.model_dump() if unstake else None,
        "bond": bond.model_dump() if bond else None,
    }


@app.post("/stake")
async def stake(req: AmountRequest):
    acc = _execute(req, "stake", amount=req.amount)
    return {"staked": acc.staked, "tier": acc.tier.name}


@app.post("/unstake")
async def request_unstake(req: AmountRequest):
    pending = _execute(req, "request_unstake", amount=req.amount)
    return pending.model_dump()


@app.post("/withdraw")
async def withdraw(req: SignedRequest):
    amount = _execute(req, "withdraw_unstaked")
    return {"withdrawn": amount}


@app.post("/auto-compound")
async def set_auto_compound(req: AutoCompoundRequest):
    acc = _execute(req, "set_auto_compound", enabled=req.enabled)
    return {"auto_compound": acc.auto_compound}


@app.post("/claim")
async def claim(req: ClaimBody):
    led = _require_ledger()
    if req.root.method == AuthMethod.DIRECT:
        # Private path, only reachable in-process
        raise Unauthorized("DIRECT claims are not accepted over RPC")
    result = led.claim(req.root)
    return result.model_dump(mode="json")


@app.post("/claim/vested")
async def claim_vested(req: SignedRequest):
    amount = _execute(req, "claim_vested")
    return {"released": amount}


@app.post("/claim/merkle")
async def claim_merkle(req: MerkleClaim):
    result = _require_ledger().claim(req)
    return result.model_dump(mode="json")


@app.get("/metrics")
async def get_metrics():
    """Prometheus metrics endpoint."""
    led = _require_ledger()
    update_metrics(led)
    return Response(content=generate_latest(metrics_registry), media_type=CONTENT_TYPE_LATEST)


def start_rpc_server(ledger_instance: RewardLedger, host: str = "0.0.0.0", port: int = 8000):
    """Serve the RPC app over the given ledger (blocking)."""
    import uvicorn
    from ..observability.metrics import register_event_metrics

    global ledger
    ledger = ledger_instance
    register_event_metrics(ledger.events)

    logger.info(f"Starting RPC on {host}:{port} ({ledger.config.network_id})")
    uvicorn.run(app, host=host, port=port, log_level="info")
